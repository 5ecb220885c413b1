"""
Pytest configuration and fixtures for OpsGate tests.

This module provides the governance documents shared by unit and
integration tests. Every fixture returns a fresh dict, so tests may
mutate what they receive.
"""

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator

import pytest


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_json(temp_dir: Path) -> Callable[[str, Any], Path]:
    """Return a helper that writes a document under temp_dir."""

    def _write(name: str, document: Any) -> Path:
        path = temp_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def token_catalog() -> dict[str, Any]:
    """A well-formed catalog, sorted by tokenId."""
    return {
        "schemaVersion": 1,
        "tokens": [
            {
                "tokenId": "CORE_SOT_EXECUTABLE_OK",
                "failSignalCode": "E_CORE_SOT_NOT_EXECUTABLE",
                "proofHookRef": "python scripts/check_core_sot.py",
                "sourceBinding": "script",
            },
            {
                "tokenId": "PERF_BASELINE_OK",
                "failSignalCode": "E_PERF_BASELINE_MISSING",
                "proofHookRef": "python scripts/check_perf_baseline.py --strict",
                "sourceBinding": "contract-test",
            },
            {
                "tokenId": "PROOFHOOK_INTEGRITY_OK",
                "failSignalCode": "E_PROOFHOOK_INTEGRITY",
                "proofHookRef": "python scripts/check_proof_hooks.py",
                "sourceBinding": "generated",
            },
            {
                "tokenId": "SCR_SHARED_CODE_RATIO_OK",
                "failSignalCode": "E_SCR_SHARED_CODE_RATIO_LOW",
                "proofHookRef": "python scripts/check_shared_code_ratio.py",
                "sourceBinding": "script",
            },
        ],
    }


@pytest.fixture
def failsignal_registry() -> dict[str, Any]:
    """Project fail signals matching token_catalog."""
    return {
        "schemaVersion": 1,
        "failSignals": [
            {
                "code": "E_CORE_SOT_NOT_EXECUTABLE",
                "blocking": True,
                "tier": "core",
                "negativeTestRef": "tests/contract/test_core_sot.py::test_missing_entrypoint",
                "modeMatrix": {"prCore": "blocking", "release": "blocking", "promotion": "blocking"},
                "precedence": 10,
            },
            {
                "code": "E_PERF_BASELINE_MISSING",
                "blocking": True,
                "tier": "release",
                "negativeTestRef": "tests/contract/test_perf.py::test_missing_baseline",
                "modeMatrix": {"prCore": "advisory", "release": "blocking", "promotion": "blocking"},
                "precedence": 20,
            },
            {
                "code": "E_PROOFHOOK_INTEGRITY",
                "blocking": True,
                "tier": "release",
                "negativeTestRef": "tests/contract/test_hooks.py::test_tampered_hook",
                "modeMatrix": {"prCore": "blocking", "release": "blocking", "promotion": "blocking"},
                "precedence": 30,
            },
            {
                "code": "E_SCR_SHARED_CODE_RATIO_LOW",
                "blocking": False,
                "tier": "release",
                "negativeTestRef": "",
                "modeMatrix": {"prCore": "advisory", "release": "advisory", "promotion": "blocking"},
                "precedence": 40,
            },
        ],
    }


@pytest.fixture
def execution_profile() -> dict[str, Any]:
    """Release profile with the performance flag on and the shared-code flag off."""
    return {
        "schemaVersion": 1,
        "profile": "default",
        "gateTier": "release",
        "scopeFlags": {
            "ECONOMIC_CLAIM_SHARED_CODE": False,
            "RELEASE_SCOPE_PERF": True,
        },
        "requiredSets": {
            "core": ["CORE_SOT_EXECUTABLE_OK"],
            "release": ["CORE_SOT_EXECUTABLE_OK"],
            "freezeMode": ["CORE_SOT_EXECUTABLE_OK"],
            "conditional": [
                {
                    "flag": "RELEASE_SCOPE_PERF",
                    "enabledWhen": True,
                    "applyTo": ["release"],
                    "tokens": ["PERF_BASELINE_OK"],
                },
                {
                    "flag": "ECONOMIC_CLAIM_SHARED_CODE",
                    "enabledWhen": True,
                    "applyTo": ["release"],
                    "tokens": ["SCR_SHARED_CODE_RATIO_OK"],
                },
            ],
        },
    }


@pytest.fixture
def scope_flags() -> dict[str, Any]:
    """One scope flag per non-baseline stage."""
    return {
        "schemaVersion": 1,
        "flags": [
            {"flagId": "STAGE_X1_ENABLED", "defaultEnabled": False},
            {"flagId": "STAGE_X2_ENABLED", "defaultEnabled": False},
            {"flagId": "STAGE_X3_ENABLED", "defaultEnabled": False},
            {"flagId": "STAGE_X4_ENABLED", "defaultEnabled": False},
        ],
    }


@pytest.fixture
def stage_plan() -> dict[str, Any]:
    """Plan at the baseline stage with promotion allowed."""
    return {
        "schemaVersion": 1,
        "stages": ["X0", "X1", "X2", "X3", "X4"],
        "activeStageId": "X0",
        "stageToScopeFlag": {
            "X0": None,
            "X1": "STAGE_X1_ENABLED",
            "X2": "STAGE_X2_ENABLED",
            "X3": "STAGE_X3_ENABLED",
            "X4": "STAGE_X4_ENABLED",
        },
        "promotionModeAllowed": True,
    }


@pytest.fixture
def promotion_policy() -> dict[str, Any]:
    return {
        "schemaVersion": 1,
        "metrics": {
            "errorRatePercent": {"type": "percent", "maximum": 1},
            "p95LatencyMs": {"type": "number", "minimum": 0, "maximum": 500},
            "rollbackTested": {"type": "boolean"},
        },
        "requiredMetricsByStage": {
            "X1": ["errorRatePercent", "p95LatencyMs", "rollbackTested"],
            "X2": ["errorRatePercent", "p95LatencyMs"],
            "X3": ["errorRatePercent"],
            "X4": ["errorRatePercent"],
        },
    }


@pytest.fixture
def promotion_record() -> dict[str, Any]:
    """Active X0 -> X1 record carrying every metric X1 requires."""
    return {
        "schemaVersion": 1,
        "promotionId": "promo-0001",
        "fromStageId": "X0",
        "toStageId": "X1",
        "isActive": True,
        "approvedBy": "release-manager",
        "approvedAtUtc": "2026-03-01T12:00:00Z",
        "evidence": {
            "errorRatePercent": 0.4,
            "p95LatencyMs": 210,
            "rollbackTested": True,
        },
    }


@pytest.fixture
def alias_canon() -> dict[str, Any]:
    return {
        "canonicalPrefix": "project.",
        "deprecatedPrefixes": ["deprecated."],
        "aliasMap": {
            "deprecated.load": "project.load",
            "deprecated.save": "project.save",
        },
        "sunsetDateUtc": "2026-06-30",
    }


@pytest.fixture
def governance_dir(
    temp_dir: Path,
    write_json: Callable[[str, Any], Path],
    token_catalog: dict[str, Any],
    failsignal_registry: dict[str, Any],
    execution_profile: dict[str, Any],
    scope_flags: dict[str, Any],
    stage_plan: dict[str, Any],
    promotion_policy: dict[str, Any],
    promotion_record: dict[str, Any],
    alias_canon: dict[str, Any],
) -> Path:
    """
    Lay out every document at its default location under temp_dir.

    Returns temp_dir; run the CLI from there so default paths resolve.
    """
    write_json("governance/token_catalog.json", token_catalog)
    write_json("governance/failsignal_registry.json", failsignal_registry)
    write_json("governance/execution_profile.json", execution_profile)
    write_json("governance/scope_flags.json", scope_flags)
    write_json("governance/stage_plan.json", stage_plan)
    write_json("governance/promotion_policy.json", promotion_policy)
    write_json("governance/promotion_record.json", promotion_record)
    write_json("governance/alias_canon.json", alias_canon)
    return temp_dir
