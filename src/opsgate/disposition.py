"""
Disposition Resolver.

Maps a failure and a pipeline tier to PASS, WARN or FAIL using the
failure's mode matrix. Every concrete check in OpsGate only detects
issues; turning those issues into a disposition and a GateResult happens
here, once, for all of them.

Contract:
    - No failure: PASS
    - Failure, mode advisory in the tier: WARN (exit 0, code still reported)
    - Failure, mode blocking in the tier: FAIL (exit non-zero)
    - Failure whose code is not registered: FAIL
"""

import logging
from typing import Any

from opsgate.errors import UnknownFailSignalError
from opsgate.resources import load_engine_registry
from opsgate.schema import (
    Disposition,
    FailSignal,
    FailSignalRegistry,
    GateResult,
    Issue,
    Mode,
    Tier,
)

logger = logging.getLogger(__name__)


def resolve(fail_signal: FailSignal | None, tier: Tier | str) -> Disposition:
    """
    Resolve the disposition of one failure in one tier.

    Args:
        fail_signal: The failure that occurred, or None when nothing failed
        tier: Pipeline tier

    Returns:
        PASS when fail_signal is None, otherwise WARN or FAIL per its mode matrix
    """
    if fail_signal is None:
        return Disposition.PASS
    mode = fail_signal.mode_matrix.mode_for(Tier.parse(tier))
    return Disposition.WARN if mode is Mode.ADVISORY else Disposition.FAIL


class IssueCollector:
    """
    Accumulates issues without short-circuiting.

    Usage:
        issues = IssueCollector()
        issues.add("E_FOO", "doc.field", "field is missing")
        result = resolver.evaluate(..., issues=issues.sorted())
    """

    def __init__(self) -> None:
        self._issues: list[Issue] = []

    def add(self, code: str, path: str = "", message: str = "") -> None:
        self._issues.append(Issue(code=code, path=path, message=message))

    def extend(self, issues: list[Issue]) -> None:
        self._issues.extend(issues)

    def sorted(self) -> list[Issue]:
        return sorted(self._issues, key=Issue.sort_key)

    def codes(self) -> list[str]:
        return sorted({issue.code for issue in self._issues})

    def __len__(self) -> int:
        return len(self._issues)

    def __bool__(self) -> bool:
        return bool(self._issues)


class DispositionResolver:
    """
    Registry-backed disposition resolution shared by every check.

    Attributes:
        registry: FailSignal registry consulted for mode matrices
    """

    def __init__(self, registry: FailSignalRegistry | None = None) -> None:
        if registry is None:
            registry = load_engine_registry()
        self.registry = registry

    @classmethod
    def with_project_registry(cls, project: FailSignalRegistry | None) -> "DispositionResolver":
        """Resolver over the engine registry overlaid with a project's registry."""
        registry = load_engine_registry()
        if project is not None:
            registry = registry.merged_with(project)
        return cls(registry)

    def require(self, code: str) -> FailSignal:
        """
        Look up a registered fail signal.

        Raises:
            UnknownFailSignalError: If the code is not registered
        """
        signal = self.registry.get(code)
        if signal is None:
            raise UnknownFailSignalError(fail_signal_code=code)
        return signal

    def mode(self, code: str, tier: Tier | str) -> Mode | None:
        """Return the registered mode of a code in a tier, or None if unregistered."""
        signal = self.registry.get(code)
        if signal is None:
            return None
        return signal.mode_matrix.mode_for(Tier.parse(tier))

    def resolve(self, code: str | None, tier: Tier | str) -> Disposition:
        """
        Resolve a failure code in a tier.

        Unregistered codes resolve to FAIL.
        """
        if code is None:
            return Disposition.PASS
        signal = self.registry.get(code)
        if signal is None:
            logger.warning("Fail signal %s is not registered; resolving to FAIL", code)
            return Disposition.FAIL
        return resolve(signal, tier)

    def resolve_issue(self, issue: Issue, fallback_code: str, tier: Tier | str) -> Disposition:
        """Resolve an issue by its own code, falling back to the check's primary code."""
        if self.registry.get(issue.code) is not None:
            return self.resolve(issue.code, tier)
        return self.resolve(fallback_code, tier)

    def evaluate(
        self,
        *,
        check: str,
        token_name: str,
        fail_signal_code: str,
        tier: Tier | str,
        issues: list[Issue],
        details: dict[str, Any] | None = None,
    ) -> GateResult:
        """
        Turn a detector's issues into a GateResult.

        Args:
            check: Short name of the check
            token_name: Component token key
            fail_signal_code: Primary fail signal of the check
            tier: Tier to resolve for
            issues: Issues found by the detector (any order)
            details: Extra component-specific fields

        Returns:
            GateResult with the worst disposition over all issues
        """
        tier = Tier.parse(tier)
        ordered = sorted(issues, key=Issue.sort_key)
        dispositions = [self.resolve_issue(issue, fail_signal_code, tier) for issue in ordered]
        disposition = Disposition.worst(dispositions)

        result = GateResult(
            check=check,
            token_name=token_name,
            tier=tier,
            disposition=disposition,
            fail_signal_code="" if disposition is Disposition.PASS else fail_signal_code,
            failures=sorted({issue.code for issue in ordered}),
            issues=ordered,
            details=details or {},
        )
        logger.debug(
            "%s tier=%s disposition=%s failures=%s",
            check,
            tier.value,
            disposition.value,
            result.failures,
        )
        return result
