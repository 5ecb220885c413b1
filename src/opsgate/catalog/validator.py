"""
Catalog Validator for OpsGate.

Validates the Token Catalog and the FailSignal Registry for internal
consistency. Works on the raw documents so that every violation is
collected: a malformed row is reported and skipped, never allowed to
hide the rows after it.

Checks performed:
    Tokens
        1. Document has a tokens array
        2. Each row is an object with a well-formed tokenId
        3. tokenId is unique
        4. proofHookRef is non-empty, sourceBinding is known
        5. failSignalCode is well-formed and resolves in the registry
        6. Rows are sorted by tokenId (advisory)
    FailSignals
        1. Document has a failSignals array
        2. code matches E_[A-Z0-9_]+ and is unique
        3. blocking is a boolean, tier is core or release
        4. blocking=true requires a non-empty negativeTestRef
        5. precedence, when present, is a non-negative integer, not repeated
        6. modeMatrix maps prCore, release and promotion to advisory|blocking
    Required set (optional)
        Every core/release token of a RequiredTokenSet exists in the catalog
"""

import logging
import re
from collections.abc import Iterable
from typing import Any

from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.documents import as_document
from opsgate.schema import GateResult, Mode, SourceBinding, Tier

logger = logging.getLogger(__name__)

TOKEN_NAME = "TOKEN_CATALOG_VALID_OK"
FAIL_SIGNAL_CODE = "E_TOKEN_CATALOG_INVALID"

TOKEN_ID_RE = re.compile(r"^[A-Z0-9_]+$")
FAIL_SIGNAL_RE = re.compile(r"^E_[A-Z0-9_]+$")
FAIL_SIGNAL_TIERS = {"core", "release"}
MODE_MATRIX_KEYS = ("prCore", "release", "promotion")
MODE_VALUES = {mode.value for mode in Mode}
SOURCE_BINDINGS = {binding.value for binding in SourceBinding}


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _is_strict_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class CatalogValidator:
    """
    Validates a token catalog against its fail signal registry.

    Usage:
        validator = CatalogValidator()
        result = validator.validate(catalog_doc, registry_doc, tier="release")
        if not result.ok:
            for code in result.failures:
                print(code)

    Attributes:
        resolver: Disposition resolver for the validator's own codes
    """

    def __init__(self, resolver: DispositionResolver | None = None) -> None:
        self.resolver = resolver or DispositionResolver()

    def validate(
        self,
        catalog: Any,
        registry: Any,
        required_set: Any = None,
        tier: Tier | str = Tier.RELEASE,
    ) -> GateResult:
        """
        Validate a catalog and registry, collecting every issue.

        Args:
            catalog: Token catalog document (mapping or TokenCatalog)
            registry: FailSignal registry document (mapping or FailSignalRegistry)
            required_set: Optional RequiredTokenSet to check coverage against
            tier: Tier to resolve the disposition for

        Returns:
            GateResult with token TOKEN_CATALOG_VALID_OK
        """
        issues = IssueCollector()

        known_codes = self._check_fail_signals(as_document(registry), issues)
        token_ids = self._check_tokens(as_document(catalog), known_codes, issues)

        missing_required: list[str] = []
        if required_set is not None:
            missing_required = self._check_required_coverage(
                as_document(required_set), set(token_ids), issues
            )

        return self.resolver.evaluate(
            check="catalog",
            token_name=TOKEN_NAME,
            fail_signal_code=FAIL_SIGNAL_CODE,
            tier=tier,
            issues=issues.sorted(),
            details={
                "tokenCount": len(token_ids),
                "failSignalCount": len(known_codes),
                "missingRequiredTokens": missing_required,
            },
        )

    # =========================================================================
    # FailSignal Registry
    # =========================================================================

    def _check_fail_signals(self, registry: Any, issues: IssueCollector) -> set[str]:
        """Validate registry rows and return the set of well-formed codes."""
        codes: set[str] = set()
        if not isinstance(registry, dict) or not isinstance(registry.get("failSignals"), list):
            issues.add(
                "E_FAILSIGNAL_REGISTRY_SCHEMA_INVALID",
                "registry.failSignals",
                "failSignals must be an array",
            )
            return codes

        seen_precedence: dict[int, str] = {}
        for index, row in enumerate(registry["failSignals"]):
            path = f"registry.failSignals[{index}]"
            if not isinstance(row, dict):
                issues.add("E_FAILSIGNAL_ROW_INVALID", path, "entry must be an object")
                continue

            code = _text(row.get("code"))
            if not FAIL_SIGNAL_RE.match(code):
                issues.add(
                    "E_FAILSIGNAL_CODE_INVALID",
                    f"{path}.code",
                    f"code {code or '<empty>'!r} does not match E_[A-Z0-9_]+",
                )
                continue

            if code in codes:
                issues.add("E_FAILSIGNAL_DUPLICATE", f"{path}.code", f"duplicate code {code}")
            codes.add(code)

            blocking = row.get("blocking")
            if not isinstance(blocking, bool):
                issues.add("E_FAILSIGNAL_BLOCKING_INVALID", f"{path}.blocking", f"{code}: blocking must be boolean")

            tier = _text(row.get("tier"))
            if tier not in FAIL_SIGNAL_TIERS:
                issues.add(
                    "E_FAILSIGNAL_TIER_INVALID",
                    f"{path}.tier",
                    f"{code}: tier {tier or '<empty>'!r} must be core or release",
                )

            if blocking is True and not _text(row.get("negativeTestRef")):
                issues.add(
                    "E_FAILSIGNAL_NEGATIVE_TEST_MISSING",
                    f"{path}.negativeTestRef",
                    f"{code}: blocking fail signal requires a negativeTestRef",
                )

            if "precedence" in row:
                precedence = row["precedence"]
                if not _is_strict_int(precedence) or precedence < 0:
                    issues.add(
                        "E_FAILSIGNAL_PRECEDENCE_INVALID",
                        f"{path}.precedence",
                        f"{code}: precedence {precedence!r} must be an integer >= 0",
                    )
                elif precedence in seen_precedence:
                    issues.add(
                        "E_FAILSIGNAL_PRECEDENCE_DUPLICATE",
                        f"{path}.precedence",
                        f"{code}: precedence {precedence} already used by {seen_precedence[precedence]}",
                    )
                else:
                    seen_precedence[precedence] = code

            self._check_mode_matrix(code, row.get("modeMatrix"), f"{path}.modeMatrix", issues)

        return codes

    def _check_mode_matrix(
        self,
        code: str,
        matrix: Any,
        path: str,
        issues: IssueCollector,
    ) -> None:
        if not isinstance(matrix, dict):
            issues.add("E_FAILSIGNAL_MODE_MATRIX_INVALID", path, f"{code}: modeMatrix must be an object")
            return
        for key in MODE_MATRIX_KEYS:
            if matrix.get(key) not in MODE_VALUES:
                issues.add(
                    "E_FAILSIGNAL_MODE_MATRIX_INVALID",
                    f"{path}.{key}",
                    f"{code}: modeMatrix.{key} must be advisory or blocking",
                )
        for key in sorted(set(matrix) - set(MODE_MATRIX_KEYS)):
            issues.add("E_FAILSIGNAL_MODE_MATRIX_INVALID", f"{path}.{key}", f"{code}: unknown tier {key!r}")

    # =========================================================================
    # Token Catalog
    # =========================================================================

    def _check_tokens(
        self,
        catalog: Any,
        known_codes: set[str],
        issues: IssueCollector,
    ) -> list[str]:
        """Validate catalog rows and return token ids in declaration order."""
        token_ids: list[str] = []
        if not isinstance(catalog, dict) or not isinstance(catalog.get("tokens"), list):
            issues.add("E_CATALOG_SCHEMA_INVALID", "catalog.tokens", "tokens must be an array")
            return token_ids

        seen: set[str] = set()
        for index, row in enumerate(catalog["tokens"]):
            path = f"catalog.tokens[{index}]"
            if not isinstance(row, dict):
                issues.add("E_CATALOG_TOKEN_ROW_INVALID", path, "entry must be an object")
                continue

            token_id = _text(row.get("tokenId"))
            if not TOKEN_ID_RE.match(token_id):
                issues.add(
                    "E_CATALOG_TOKEN_ID_INVALID",
                    f"{path}.tokenId",
                    f"tokenId {token_id or '<empty>'!r} does not match [A-Z0-9_]+",
                )
                continue
            token_ids.append(token_id)

            if token_id in seen:
                issues.add("E_CATALOG_TOKEN_DUPLICATE", f"{path}.tokenId", f"duplicate tokenId {token_id}")
            seen.add(token_id)

            if not _text(row.get("proofHookRef")):
                issues.add("E_CATALOG_PROOF_HOOK_EMPTY", f"{path}.proofHookRef", f"{token_id}: proofHookRef is empty")

            binding = _text(row.get("sourceBinding"))
            if binding not in SOURCE_BINDINGS:
                issues.add(
                    "E_CATALOG_SOURCE_BINDING_INVALID",
                    f"{path}.sourceBinding",
                    f"{token_id}: sourceBinding {binding or '<empty>'!r} is not one of {sorted(SOURCE_BINDINGS)}",
                )

            fail_code = _text(row.get("failSignalCode"))
            if not FAIL_SIGNAL_RE.match(fail_code):
                issues.add(
                    "E_CATALOG_FAILSIGNAL_INVALID",
                    f"{path}.failSignalCode",
                    f"{token_id}: failSignalCode {fail_code or '<empty>'!r} is malformed",
                )
            elif fail_code not in known_codes:
                issues.add(
                    "E_CATALOG_FAILSIGNAL_UNRESOLVED",
                    f"{path}.failSignalCode",
                    f"{token_id}: failSignalCode {fail_code} is not in the registry",
                )

        if token_ids != sorted(token_ids):
            issues.add("E_CATALOG_ORDER_NOT_SORTED", "catalog.tokens", "tokens are not sorted by tokenId")

        return token_ids

    # =========================================================================
    # Required Set Coverage
    # =========================================================================

    def _check_required_coverage(
        self,
        required_set: Any,
        catalog_ids: set[str],
        issues: IssueCollector,
    ) -> list[str]:
        sets = required_set.get("requiredSets") if isinstance(required_set, dict) else None
        if not isinstance(sets, dict):
            issues.add(
                "E_CATALOG_REQUIRED_SET_INVALID",
                "requiredSet.requiredSets",
                "requiredSets must be an object",
            )
            return []

        required = _unique_strings(
            list(_iter_strings(sets.get("core"))) + list(_iter_strings(sets.get("release")))
        )
        missing = [token for token in required if token not in catalog_ids]
        for token in missing:
            issues.add(
                "E_CATALOG_REQUIRED_TOKEN_MISSING",
                "requiredSet.requiredSets",
                f"required token {token} is not declared in the catalog",
            )
        return missing


def _iter_strings(values: Any) -> Iterable[str]:
    if isinstance(values, list):
        for value in values:
            if isinstance(value, str) and value.strip():
                yield value.strip()


def _unique_strings(values: Iterable[str]) -> list[str]:
    return sorted(set(values))


def validate_catalog(
    catalog: Any,
    registry: Any,
    required_set: Any = None,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """Convenience wrapper around CatalogValidator.validate()."""
    return CatalogValidator(resolver).validate(catalog, registry, required_set, tier)
