"""
Unit tests for the catalog validator.

Tests cover:
- FailSignal rules (pattern, duplicates, negative tests, precedence, mode matrix)
- Token rules (ids, bindings, hook refs, fail signal resolution, order)
- Required-set coverage
- Collection of every issue without short-circuiting
"""

import pytest

from opsgate.catalog import FAIL_SIGNAL_CODE, TOKEN_NAME, CatalogValidator, validate_catalog
from opsgate.schema import Disposition


def _codes(result) -> list[str]:
    return result.failures


class TestValidCatalog:
    def test_passes(self, token_catalog: dict, failsignal_registry: dict) -> None:
        result = validate_catalog(token_catalog, failsignal_registry)
        assert result.disposition is Disposition.PASS
        assert result.token_name == TOKEN_NAME
        assert result.token_value == 1
        assert result.details["tokenCount"] == 4
        assert result.details["failSignalCount"] == 4

    def test_deterministic(self, token_catalog: dict, failsignal_registry: dict) -> None:
        token_catalog["tokens"][0]["tokenId"] = "bad id"
        first = validate_catalog(token_catalog, failsignal_registry)
        second = validate_catalog(token_catalog, failsignal_registry)
        assert first == second


class TestFailSignalChecks:
    """Tests for registry rows."""

    def test_blocking_signal_without_negative_test_fails(
        self, token_catalog: dict, failsignal_registry: dict
    ) -> None:
        failsignal_registry["failSignals"][0]["negativeTestRef"] = "  "
        result = validate_catalog(token_catalog, failsignal_registry, tier="prCore")
        assert _codes(result) == ["E_FAILSIGNAL_NEGATIVE_TEST_MISSING"]
        assert result.disposition is Disposition.FAIL
        assert result.fail_signal_code == FAIL_SIGNAL_CODE

    def test_non_blocking_signal_may_omit_negative_test(
        self, token_catalog: dict, failsignal_registry: dict
    ) -> None:
        del failsignal_registry["failSignals"][3]["negativeTestRef"]
        assert validate_catalog(token_catalog, failsignal_registry).ok

    def test_duplicate_code(self, token_catalog: dict, failsignal_registry: dict) -> None:
        duplicate = dict(failsignal_registry["failSignals"][0], precedence=99)
        failsignal_registry["failSignals"].append(duplicate)
        assert _codes(validate_catalog(token_catalog, failsignal_registry)) == ["E_FAILSIGNAL_DUPLICATE"]

    @pytest.mark.parametrize("code", ["E_lower", "FOO", "E-DASH", ""])
    def test_malformed_code(self, token_catalog: dict, failsignal_registry: dict, code: str) -> None:
        failsignal_registry["failSignals"][3]["code"] = code
        result = validate_catalog(token_catalog, failsignal_registry)
        assert "E_FAILSIGNAL_CODE_INVALID" in _codes(result)
        # the token that referenced the row can no longer resolve
        assert "E_CATALOG_FAILSIGNAL_UNRESOLVED" in _codes(result)

    @pytest.mark.parametrize("precedence", [-1, 1.5, "10", True])
    def test_invalid_precedence(self, token_catalog: dict, failsignal_registry: dict, precedence) -> None:
        failsignal_registry["failSignals"][0]["precedence"] = precedence
        assert _codes(validate_catalog(token_catalog, failsignal_registry)) == ["E_FAILSIGNAL_PRECEDENCE_INVALID"]

    def test_duplicate_precedence(self, token_catalog: dict, failsignal_registry: dict) -> None:
        failsignal_registry["failSignals"][1]["precedence"] = 10
        assert _codes(validate_catalog(token_catalog, failsignal_registry)) == ["E_FAILSIGNAL_PRECEDENCE_DUPLICATE"]

    def test_precedence_optional(self, token_catalog: dict, failsignal_registry: dict) -> None:
        for row in failsignal_registry["failSignals"]:
            del row["precedence"]
        assert validate_catalog(token_catalog, failsignal_registry).ok

    def test_mode_matrix_missing_tier(self, token_catalog: dict, failsignal_registry: dict) -> None:
        del failsignal_registry["failSignals"][0]["modeMatrix"]["promotion"]
        failsignal_registry["failSignals"][1]["modeMatrix"]["release"] = "strict"
        failsignal_registry["failSignals"][2]["modeMatrix"]["staging"] = "advisory"
        result = validate_catalog(token_catalog, failsignal_registry)
        assert _codes(result) == ["E_FAILSIGNAL_MODE_MATRIX_INVALID"]
        assert len(result.issues) == 3

    def test_blocking_and_tier_types(self, token_catalog: dict, failsignal_registry: dict) -> None:
        failsignal_registry["failSignals"][0]["blocking"] = "yes"
        failsignal_registry["failSignals"][1]["tier"] = "promotion"
        assert _codes(validate_catalog(token_catalog, failsignal_registry)) == [
            "E_FAILSIGNAL_BLOCKING_INVALID",
            "E_FAILSIGNAL_TIER_INVALID",
        ]

    def test_registry_without_array(self, token_catalog: dict) -> None:
        result = validate_catalog(token_catalog, {"signals": []})
        assert "E_FAILSIGNAL_REGISTRY_SCHEMA_INVALID" in _codes(result)
        assert "E_CATALOG_FAILSIGNAL_UNRESOLVED" in _codes(result)


class TestTokenChecks:
    """Tests for catalog rows."""

    def test_duplicate_token(self, token_catalog: dict, failsignal_registry: dict) -> None:
        token_catalog["tokens"].insert(1, dict(token_catalog["tokens"][0]))
        assert _codes(validate_catalog(token_catalog, failsignal_registry)) == ["E_CATALOG_TOKEN_DUPLICATE"]

    def test_unresolved_fail_signal(self, token_catalog: dict, failsignal_registry: dict) -> None:
        token_catalog["tokens"][0]["failSignalCode"] = "E_NOT_IN_REGISTRY"
        result = validate_catalog(token_catalog, failsignal_registry)
        assert _codes(result) == ["E_CATALOG_FAILSIGNAL_UNRESOLVED"]
        assert result.issues[0].path == "catalog.tokens[0].failSignalCode"

    def test_row_problems(self, token_catalog: dict, failsignal_registry: dict) -> None:
        token_catalog["tokens"][0]["proofHookRef"] = ""
        token_catalog["tokens"][1]["sourceBinding"] = "manual"
        token_catalog["tokens"][2]["failSignalCode"] = "proofhook"
        token_catalog["tokens"][3]["tokenId"] = "lower_case"
        assert _codes(validate_catalog(token_catalog, failsignal_registry)) == [
            "E_CATALOG_FAILSIGNAL_INVALID",
            "E_CATALOG_PROOF_HOOK_EMPTY",
            "E_CATALOG_SOURCE_BINDING_INVALID",
            "E_CATALOG_TOKEN_ID_INVALID",
        ]

    def test_non_object_rows_are_skipped(self, token_catalog: dict, failsignal_registry: dict) -> None:
        token_catalog["tokens"].insert(0, "PERF_BASELINE_OK")
        result = validate_catalog(token_catalog, failsignal_registry)
        assert _codes(result) == ["E_CATALOG_TOKEN_ROW_INVALID"]
        assert result.details["tokenCount"] == 4

    def test_unsorted_catalog_only_warns(self, token_catalog: dict, failsignal_registry: dict) -> None:
        token_catalog["tokens"].reverse()
        for tier in ("prCore", "release", "promotion"):
            result = validate_catalog(token_catalog, failsignal_registry, tier=tier)
            assert result.disposition is Disposition.WARN
            assert result.failures == ["E_CATALOG_ORDER_NOT_SORTED"]
            assert result.exit_code == 0

    def test_missing_tokens_array(self, failsignal_registry: dict) -> None:
        assert _codes(validate_catalog({"schemaVersion": 1}, failsignal_registry)) == ["E_CATALOG_SCHEMA_INVALID"]

    def test_all_issues_collected(self, token_catalog: dict, failsignal_registry: dict) -> None:
        failsignal_registry["failSignals"][0]["negativeTestRef"] = ""
        failsignal_registry["failSignals"][1]["precedence"] = -5
        token_catalog["tokens"][2]["proofHookRef"] = ""
        token_catalog["tokens"].reverse()
        result = validate_catalog(token_catalog, failsignal_registry)
        assert result.failures == [
            "E_CATALOG_ORDER_NOT_SORTED",
            "E_CATALOG_PROOF_HOOK_EMPTY",
            "E_FAILSIGNAL_NEGATIVE_TEST_MISSING",
            "E_FAILSIGNAL_PRECEDENCE_INVALID",
        ]
        assert result.disposition is Disposition.FAIL


class TestRequiredCoverage:
    def test_covered(self, token_catalog: dict, failsignal_registry: dict) -> None:
        required = {"requiredSets": {"core": ["CORE_SOT_EXECUTABLE_OK"], "release": ["PERF_BASELINE_OK"]}}
        result = CatalogValidator().validate(token_catalog, failsignal_registry, required)
        assert result.ok
        assert result.details["missingRequiredTokens"] == []

    def test_missing(self, token_catalog: dict, failsignal_registry: dict) -> None:
        required = {"requiredSets": {"core": [], "release": ["XPLAT_CONTRACT_OK", "PERF_BASELINE_OK"]}}
        result = CatalogValidator().validate(token_catalog, failsignal_registry, required)
        assert result.failures == ["E_CATALOG_REQUIRED_TOKEN_MISSING"]
        assert result.details["missingRequiredTokens"] == ["XPLAT_CONTRACT_OK"]

    def test_malformed(self, token_catalog: dict, failsignal_registry: dict) -> None:
        result = CatalogValidator().validate(token_catalog, failsignal_registry, {"requiredSets": []})
        assert result.failures == ["E_CATALOG_REQUIRED_SET_INVALID"]
