"""
Reference rollup aggregator.

Collects a {tokenId: 0|1} rollup by running each token's proof hook
(unless a value was supplied by the caller), then feeds the rollup into
the freeze evaluator.

Policy and execution failures are kept apart:
    - a hook that ran and reported 0 raises the token's own fail signal
    - a hook that could not run, timed out or printed garbage raises
      E_PROOFHOOK_EXEC_FAILED / E_PROOFHOOK_TIMEOUT / E_PROOFHOOK_OUTPUT_INVALID
      and the token is left out of the rollup values
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.errors import HookError, HookOutputError, HookTimeoutError
from opsgate.freeze import evaluate_freeze, token_is_green
from opsgate.hooks import HookRegistry, ProofHookRunner
from opsgate.schema import Disposition, GateResult, Tier

logger = logging.getLogger(__name__)

TOKEN_NAME = "ROLLUP_OK"
FAIL_SIGNAL_CODE = "E_PROOFHOOK_EXEC_FAILED"

EXEC_FAILED = "E_PROOFHOOK_EXEC_FAILED"
TIMEOUT = "E_PROOFHOOK_TIMEOUT"
OUTPUT_INVALID = "E_PROOFHOOK_OUTPUT_INVALID"
TOKEN_UNKNOWN = "E_ROLLUP_TOKEN_UNKNOWN"


def execution_failure_code(error: HookError) -> str:
    """Map a hook error to its execution failure code."""
    if isinstance(error, HookTimeoutError):
        return TIMEOUT
    if isinstance(error, HookOutputError):
        return OUTPUT_INVALID
    return EXEC_FAILED


class ExecutionFailure(BaseModel):
    """A hook that could not produce a token value."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    token_id: str = Field(..., alias="tokenId")
    code: str
    message: str


class RollupReport(BaseModel):
    """
    Output of one aggregation.

    Attributes:
        tokens: Token values that were determined (0 or 1)
        execution_failures: Hooks that failed to execute
        gate: Combined GateResult over policy and execution failures
        freeze: Freeze evaluation over the collected tokens
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tokens: dict[str, int] = Field(default_factory=dict)
    execution_failures: list[ExecutionFailure] = Field(default_factory=list, alias="executionFailures")
    gate: GateResult
    freeze: GateResult

    @property
    def disposition(self) -> Disposition:
        return Disposition.worst([self.gate.disposition, self.freeze.disposition])

    @property
    def exit_code(self) -> int:
        return self.disposition.exit_code

    def to_output(self) -> dict[str, Any]:
        return {
            "ok": self.disposition is not Disposition.FAIL,
            "disposition": self.disposition.value,
            "tokens": dict(sorted(self.tokens.items())),
            "executionFailures": [f.model_dump(by_alias=True) for f in self.execution_failures],
            "failures": sorted(set(self.gate.failures) | set(self.freeze.failures)),
            "gate": self.gate.to_output(),
            "freeze": self.freeze.to_output(),
        }


class RollupAggregator:
    """
    Runs proof hooks and evaluates the resulting rollup.

    Usage:
        aggregator = RollupAggregator(HookRegistry.from_catalog(catalog))
        report = aggregator.evaluate({"PERF_BASELINE_OK": 1}, tier="release")

    Attributes:
        hooks: Token id -> proof hook
        runner: Executes hooks
        resolver: Disposition resolver; should know the project's fail signals
    """

    def __init__(
        self,
        hooks: HookRegistry,
        runner: ProofHookRunner | None = None,
        resolver: DispositionResolver | None = None,
    ) -> None:
        self.hooks = hooks
        self.runner = runner or ProofHookRunner()
        self.resolver = resolver or DispositionResolver()

    def collect(
        self,
        token_values: Mapping[str, int] | None = None,
        tokens: Iterable[str] | None = None,
    ) -> tuple[dict[str, int], list[ExecutionFailure]]:
        """
        Determine token values, running hooks only for tokens not supplied.

        Args:
            token_values: Values already known, used as-is
            tokens: Tokens to determine (default: every registered hook)
        """
        supplied = dict(token_values or {})
        wanted = sorted(set(tokens) if tokens is not None else set(self.hooks.token_ids()) | set(supplied))

        values: dict[str, int] = {}
        failures: list[ExecutionFailure] = []
        for token_id in wanted:
            if token_id in supplied:
                values[token_id] = 1 if token_is_green(supplied[token_id]) else 0
                continue
            hook = self.hooks.get_optional(token_id)
            if hook is None:
                failures.append(
                    ExecutionFailure(token_id=token_id, code=TOKEN_UNKNOWN, message="no proof hook registered")
                )
                continue
            try:
                outcome = self.runner.run(hook.token_id, hook.hook_ref)
            except HookError as e:
                logger.warning("Proof hook for %s failed: %s", token_id, e.message)
                failures.append(
                    ExecutionFailure(token_id=token_id, code=execution_failure_code(e), message=e.message)
                )
                continue
            values[token_id] = outcome.value
        return values, failures

    def evaluate(
        self,
        token_values: Mapping[str, int] | None = None,
        tokens: Iterable[str] | None = None,
        freeze_mode_enabled: bool = False,
        baseline: Iterable[str] | None = None,
        tier: Tier | str = Tier.RELEASE,
    ) -> RollupReport:
        """
        Collect a rollup and evaluate it.

        Returns:
            RollupReport whose disposition is the worst of the token gate
            and the freeze evaluation
        """
        values, failures = self.collect(token_values, tokens)

        issues = IssueCollector()
        for failure in failures:
            issues.add(failure.code, f"tokens.{failure.token_id}", failure.message)
        for token_id, value in sorted(values.items()):
            if value == 1:
                continue
            hook = self.hooks.get_optional(token_id)
            code = hook.fail_signal_code if hook else TOKEN_UNKNOWN
            issues.add(code, f"tokens.{token_id}", f"{token_id}=0")

        gate = self.resolver.evaluate(
            check="rollup",
            token_name=TOKEN_NAME,
            fail_signal_code=FAIL_SIGNAL_CODE,
            tier=tier,
            issues=issues.sorted(),
            details={"tokenCount": len(values)},
        )
        freeze = evaluate_freeze(
            values,
            freeze_mode_enabled,
            baseline=baseline,
            tier=tier,
            resolver=self.resolver,
        )
        return RollupReport(tokens=values, execution_failures=failures, gate=gate, freeze=freeze)
