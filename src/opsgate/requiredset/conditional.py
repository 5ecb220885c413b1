"""
Conditional gate binding check.

Runs a fixed table of cases (one scope flag off, then on) through a
required-set generator and verifies that each scope-gated token appears
in the release set exactly when its flag says it should. The generator is
passed in, so a substituted or stale implementation can be checked the
same way as the real one.
"""

import copy
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.documents import as_document
from opsgate.errors import OpsGateError
from opsgate.requiredset.generator import generate
from opsgate.schema import GateResult, Tier

logger = logging.getLogger(__name__)

TOKEN_NAME = "CONDITIONAL_GATES_BOUND_OK"
FAIL_SIGNAL_CODE = "E_CONDITIONAL_GATE_MISAPPLIED"

Generator = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class ConditionalGateCase:
    """One row of the case table."""

    case_id: str
    token: str
    flag: str
    flag_value: bool
    expect_included: bool


DEFAULT_CASES: tuple[ConditionalGateCase, ...] = (
    ConditionalGateCase("A_RELEASE_SCOPE_PERF_0", "PERF_BASELINE_OK", "RELEASE_SCOPE_PERF", False, False),
    ConditionalGateCase("B_RELEASE_SCOPE_PERF_1", "PERF_BASELINE_OK", "RELEASE_SCOPE_PERF", True, True),
    ConditionalGateCase(
        "C_ECONOMIC_CLAIM_SHARED_CODE_0",
        "SCR_SHARED_CODE_RATIO_OK",
        "ECONOMIC_CLAIM_SHARED_CODE",
        False,
        False,
    ),
    ConditionalGateCase(
        "D_ECONOMIC_CLAIM_SHARED_CODE_1",
        "SCR_SHARED_CODE_RATIO_OK",
        "ECONOMIC_CLAIM_SHARED_CODE",
        True,
        True,
    ),
)


def cases_from_profile(profile: Any) -> list[ConditionalGateCase]:
    """
    Build off/on cases for every release-scoped conditional row of a profile.

    Rows with enabledWhen=false invert the expectation.
    """
    document = as_document(profile)
    rows = ((document or {}).get("requiredSets") or {}).get("conditional") or []
    cases: dict[str, ConditionalGateCase] = {}
    for row in rows:
        if not isinstance(row, dict) or "release" not in (row.get("applyTo") or []):
            continue
        flag = str(row.get("flag", "")).strip()
        enabled_when = row.get("enabledWhen", True) is True
        for token in sorted(set(row.get("tokens") or [])):
            for value in (False, True):
                case_id = f"{flag}_{token}_{int(value)}"
                cases[case_id] = ConditionalGateCase(
                    case_id=case_id,
                    token=token,
                    flag=flag,
                    flag_value=value,
                    expect_included=value == enabled_when,
                )
    return list(cases.values())


def _profile_for_case(base_profile: dict[str, Any], case: ConditionalGateCase) -> dict[str, Any]:
    profile = copy.deepcopy(base_profile)
    profile.setdefault("scopeFlags", {})
    required_sets = profile.setdefault("requiredSets", {})

    # The token must be reachable only through the case's flag.
    required_sets["release"] = [t for t in required_sets.get("release", []) if t != case.token]
    conditional = []
    for row in required_sets.get("conditional") or []:
        if isinstance(row, dict) and row.get("flag") != case.flag and "release" in (row.get("applyTo") or []):
            tokens = [t for t in row.get("tokens") or [] if t != case.token]
            if not tokens:
                continue
            row = {**row, "tokens": tokens}
        conditional.append(row)
    required_sets["conditional"] = conditional
    bound = any(
        isinstance(row, dict)
        and row.get("flag") == case.flag
        and "release" in (row.get("applyTo") or [])
        and case.token in (row.get("tokens") or [])
        for row in conditional
    )
    if not bound:
        conditional.append(
            {"flag": case.flag, "enabledWhen": True, "applyTo": ["release"], "tokens": [case.token]}
        )
    profile["scopeFlags"][case.flag] = case.flag_value
    return profile


def _release_tokens(generated: Any) -> list[str]:
    document = as_document(generated)
    if not isinstance(document, dict):
        return []
    required_sets = document.get("requiredSets") or {}
    release = required_sets.get("release") if isinstance(required_sets, dict) else None
    return sorted(release) if isinstance(release, list) else []


def check_conditional_gates(
    generator: Generator = generate,
    base_profile: Any = None,
    cases: Sequence[ConditionalGateCase] = DEFAULT_CASES,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Run the case table through a generator.

    Args:
        generator: Callable taking a profile document and returning a
            RequiredTokenSet (model or document)
        base_profile: Profile the cases are derived from; a minimal
            profile is used when omitted
        cases: Case table
        tier: Tier to resolve the disposition for

    Returns:
        GateResult with token CONDITIONAL_GATES_BOUND_OK and per-case
        results under details["cases"]
    """
    resolver = resolver or DispositionResolver()
    issues = IssueCollector()
    base = as_document(base_profile) if base_profile is not None else {}
    if not isinstance(base, dict):
        base = {}

    results = []
    for case in sorted(cases, key=lambda c: c.case_id):
        profile = _profile_for_case(base, case)
        generator_ok = True
        try:
            generated = generator(profile)
        except OpsGateError as e:
            logger.debug("Generator rejected case %s: %s", case.case_id, e)
            generator_ok = False
            generated = None

        included = case.token in _release_tokens(generated)
        passed = generator_ok and included == case.expect_included
        results.append(
            {
                "caseId": case.case_id,
                "token": case.token,
                "flag": case.flag,
                "flagValue": case.flag_value,
                "expectedIncluded": case.expect_included,
                "actualIncluded": included,
                "generatorOk": generator_ok,
                "pass": passed,
            }
        )
        if not passed:
            reason = "generator failed" if not generator_ok else (
                f"token {'present' if included else 'absent'} with {case.flag}={case.flag_value}"
            )
            issues.add(FAIL_SIGNAL_CODE, f"cases.{case.case_id}", f"{case.token}: {reason}")

    return resolver.evaluate(
        check="conditional-gates",
        token_name=TOKEN_NAME,
        fail_signal_code=FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details={"cases": results},
    )
