"""
Unit tests for the rollup aggregator.

Tests cover:
- Supplied values vs values computed by hooks
- Separation of policy failures and execution failures
- Freeze evaluation over the collected rollup
"""

import shlex
import sys

import pytest

from opsgate.disposition import DispositionResolver
from opsgate.hooks import HookRegistry, ProofHookRunner
from opsgate.rollup import RollupAggregator
from opsgate.schema import Disposition, FailSignalRegistry


def python_hook(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


@pytest.fixture
def project_resolver(failsignal_registry: dict) -> DispositionResolver:
    return DispositionResolver.with_project_registry(FailSignalRegistry.model_validate(failsignal_registry))


@pytest.fixture
def hooks(token_catalog: dict) -> HookRegistry:
    """Catalog hooks replaced by Python snippets: green, red, crashed, green."""
    refs = {
        "CORE_SOT_EXECUTABLE_OK": python_hook("raise SystemExit(0)"),
        "PERF_BASELINE_OK": python_hook("raise SystemExit(1)"),
        "PROOFHOOK_INTEGRITY_OK": python_hook("import os; os._exit(70)"),
        "SCR_SHARED_CODE_RATIO_OK": python_hook("print('SCR_SHARED_CODE_RATIO_OK=1')"),
    }
    for token in token_catalog["tokens"]:
        token["proofHookRef"] = refs[token["tokenId"]]
    return HookRegistry.from_catalog(token_catalog)


class TestRollupAggregator:
    """Tests for RollupAggregator.evaluate()."""

    def test_values_from_hooks(self, hooks: HookRegistry, project_resolver: DispositionResolver) -> None:
        report = RollupAggregator(hooks, ProofHookRunner(timeout_seconds=30), project_resolver).evaluate(
            tier="release"
        )
        assert report.tokens == {
            "CORE_SOT_EXECUTABLE_OK": 1,
            "PERF_BASELINE_OK": 0,
            "SCR_SHARED_CODE_RATIO_OK": 1,
        }
        assert report.gate.failures == ["E_PERF_BASELINE_MISSING", "E_PROOFHOOK_EXEC_FAILED"]
        assert report.disposition is Disposition.FAIL

    def test_hook_crash_is_execution_failure(
        self, hooks: HookRegistry, project_resolver: DispositionResolver
    ) -> None:
        aggregator = RollupAggregator(hooks, resolver=project_resolver)
        report = aggregator.evaluate(tokens=["PROOFHOOK_INTEGRITY_OK"], tier="prCore")
        assert "PROOFHOOK_INTEGRITY_OK" not in report.tokens
        assert [(f.token_id, f.code) for f in report.execution_failures] == [
            ("PROOFHOOK_INTEGRITY_OK", "E_PROOFHOOK_EXEC_FAILED")
        ]
        # the token's own policy signal is not raised
        assert report.gate.failures == ["E_PROOFHOOK_EXEC_FAILED"]
        assert report.disposition is Disposition.FAIL
        assert report.exit_code == 1

    def test_token_without_hook_is_execution_failure(self, hooks: HookRegistry) -> None:
        report = RollupAggregator(hooks).evaluate(tokens=["XPLAT_CONTRACT_OK"], tier="prCore")
        assert report.tokens == {}
        assert report.gate.failures == ["E_ROLLUP_TOKEN_UNKNOWN"]
        assert report.disposition is Disposition.FAIL

    def test_supplied_values_skip_hooks(self, hooks: HookRegistry, project_resolver: DispositionResolver) -> None:
        supplied = {"PROOFHOOK_INTEGRITY_OK": 1, "PERF_BASELINE_OK": 1}
        report = RollupAggregator(hooks, resolver=project_resolver).evaluate(
            supplied, tokens=sorted(supplied), tier="promotion"
        )
        assert report.tokens == supplied
        assert report.execution_failures == []
        assert report.disposition is Disposition.PASS

    def test_supplied_non_integer_counts_as_zero(self, hooks: HookRegistry, project_resolver) -> None:
        report = RollupAggregator(hooks, resolver=project_resolver).evaluate(
            {"CORE_SOT_EXECUTABLE_OK": True}, tokens=["CORE_SOT_EXECUTABLE_OK"]
        )
        assert report.tokens == {"CORE_SOT_EXECUTABLE_OK": 0}
        assert report.gate.failures == ["E_CORE_SOT_NOT_EXECUTABLE"]

    def test_project_signal_modes(self, hooks: HookRegistry, project_resolver: DispositionResolver) -> None:
        supplied = {"PERF_BASELINE_OK": 0}
        with_registry = RollupAggregator(hooks, resolver=project_resolver).evaluate(
            supplied, tokens=["PERF_BASELINE_OK"], tier="prCore"
        )
        assert with_registry.disposition is Disposition.WARN

        # unknown to the engine registry: falls back to the blocking rollup code
        engine_only = RollupAggregator(hooks).evaluate(supplied, tokens=["PERF_BASELINE_OK"], tier="prCore")
        assert engine_only.disposition is Disposition.FAIL
        assert engine_only.gate.failures == ["E_PERF_BASELINE_MISSING"]

    def test_freeze_over_rollup(self, hooks: HookRegistry, project_resolver: DispositionResolver) -> None:
        supplied = {"CORE_SOT_EXECUTABLE_OK": 1, "SCR_SHARED_CODE_RATIO_OK": 0}
        aggregator = RollupAggregator(hooks, resolver=project_resolver)
        report = aggregator.evaluate(
            supplied,
            tokens=sorted(supplied),
            freeze_mode_enabled=True,
            baseline=["CORE_SOT_EXECUTABLE_OK", "XPLAT_CONTRACT_OK"],
            tier="release",
        )
        assert report.gate.disposition is Disposition.WARN
        assert report.freeze.disposition is Disposition.FAIL
        assert report.freeze.details["missingTokens"] == ["XPLAT_CONTRACT_OK"]
        assert report.disposition is Disposition.FAIL

        output = report.to_output()
        assert output["ok"] is False
        assert output["failures"] == ["E_FREEZE_MODE_STRICT", "E_SCR_SHARED_CODE_RATIO_LOW"]
        assert output["tokens"] == {"CORE_SOT_EXECUTABLE_OK": 1, "SCR_SHARED_CODE_RATIO_OK": 0}
