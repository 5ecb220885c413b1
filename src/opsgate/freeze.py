"""
Freeze-mode baseline evaluator.

While freeze mode is enabled, every token of the required-always
baseline must be green in the rollup. With freeze mode disabled the
evaluator passes regardless of the rollup, since freeze is opt-in
strictness only.

The baseline comes from the packaged freeze_baseline.json, which is also
what `opsgate freeze baseline` prints.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.resources import load_freeze_baseline
from opsgate.schema import GateResult, Tier

logger = logging.getLogger(__name__)

TOKEN_NAME = "FREEZE_MODE_STRICT_OK"
FAIL_SIGNAL_CODE = "E_FREEZE_MODE_STRICT"


def token_is_green(value: Any) -> bool:
    """A rollup value is green only if it is the integer 1; booleans do not count."""
    return isinstance(value, int) and not isinstance(value, bool) and value == 1


def missing_tokens(rollups: Mapping[str, Any], baseline: Iterable[str]) -> list[str]:
    """Baseline tokens that are absent or not 1 in rollups, sorted and de-duplicated."""
    return sorted({token for token in baseline if not token_is_green(rollups.get(token))})


def evaluate_freeze(
    rollups: Mapping[str, Any],
    freeze_mode_enabled: bool,
    baseline: Iterable[str] | None = None,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Evaluate a rollup against the freeze baseline.

    Args:
        rollups: Mapping of tokenId to 0|1; any other value counts as 0
        freeze_mode_enabled: Whether freeze mode is active
        baseline: Required-always token list; the packaged baseline by default
        tier: Tier to resolve the disposition for

    Returns:
        GateResult with token FREEZE_MODE_STRICT_OK and details
        freezeModeEnabled, baselineVersion, missingTokens
    """
    resolver = resolver or DispositionResolver()
    version = ""
    if baseline is None:
        packaged = load_freeze_baseline()
        baseline = packaged.required_always
        version = packaged.version
    baseline = sorted(set(baseline))

    missing: list[str] = []
    issues = IssueCollector()
    if freeze_mode_enabled:
        missing = missing_tokens(rollups, baseline)
        for token in missing:
            issues.add(FAIL_SIGNAL_CODE, f"rollups.{token}", f"baseline token {token} is not 1")
    else:
        logger.debug("Freeze mode disabled; baseline not enforced")

    return resolver.evaluate(
        check="freeze",
        token_name=TOKEN_NAME,
        fail_signal_code=FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details={
            "freezeModeEnabled": bool(freeze_mode_enabled),
            "baselineVersion": version,
            "requiredAlways": baseline,
            "missingTokens": missing,
        },
    )
