"""
Schema definitions for OpsGate.

This module defines the Pydantic models used throughout OpsGate:
- Tier/Mode/Disposition: the three-valued gate vocabulary
- Token/TokenCatalog, FailSignal/FailSignalRegistry: the governance catalog
- ExecutionProfile/RequiredTokenSet: conditional required sets
- MetricType, DEFAULT_STAGE_ORDER: staged rollout vocabulary
- Lock, AliasCanon: drift lock and identifier deprecation
- Issue/GateResult/AliasResolution: evaluation results

Design Decisions:
    - Document models are frozen and forbid unknown fields
    - Python attributes are snake_case; on-disk names are camelCase aliases
    - Stage plans, scope flag registries and promotion records have no
      models: their validators collect every violation from the raw
      mapping, so a model could only restate those checks
"""

from datetime import date
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from opsgate.errors import TierError


DOCUMENT_CONFIG = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

FAIL_SIGNAL_CODE_PATTERN = r"^E_[A-Z0-9_]+$"
TOKEN_ID_PATTERN = r"^[A-Z0-9_]+$"

# Five maturity levels, baseline through terminal.
DEFAULT_STAGE_ORDER: tuple[str, ...] = ("X0", "X1", "X2", "X3", "X4")


# =============================================================================
# Enums
# =============================================================================


class Tier(str, Enum):
    """
    A pipeline context with its own strictness.

    PR_CORE is pull-request review, RELEASE is a release candidate and
    PROMOTION is promotion to production.
    """

    PR_CORE = "prCore"
    RELEASE = "release"
    PROMOTION = "promotion"

    @classmethod
    def parse(cls, value: "str | Tier") -> "Tier":
        """Parse a tier name, accepting the spellings used across pipelines."""
        if isinstance(value, Tier):
            return value
        normalized = str(value or "").strip().replace("_", "-").lower()
        aliases = {
            "prcore": cls.PR_CORE,
            "pr-core": cls.PR_CORE,
            "core": cls.PR_CORE,
            "pr": cls.PR_CORE,
            "release": cls.RELEASE,
            "promotion": cls.PROMOTION,
        }
        tier = aliases.get(normalized)
        if tier is None:
            raise TierError(tier=str(value))
        return tier


class Mode(str, Enum):
    """Severity of a fail signal within one tier."""

    ADVISORY = "advisory"
    BLOCKING = "blocking"


class Disposition(str, Enum):
    """
    Three-valued outcome for a failure and a tier.

    WARN exits 0 like PASS but always carries the failure code,
    so aggregation can tell a clean pass from outstanding advisory debt.
    """

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"

    @property
    def exit_code(self) -> int:
        return 1 if self is Disposition.FAIL else 0

    @classmethod
    def worst(cls, dispositions: "list[Disposition]") -> "Disposition":
        """Combine dispositions: any FAIL wins, then any WARN, else PASS."""
        if cls.FAIL in dispositions:
            return cls.FAIL
        if cls.WARN in dispositions:
            return cls.WARN
        return cls.PASS


class SourceBinding(str, Enum):
    """How a token's proof hook is bound to its source."""

    SCRIPT = "script"
    CONTRACT_TEST = "contract-test"
    GENERATED = "generated"


class MetricType(str, Enum):
    """Value type of a promotion evidence metric."""

    NUMBER = "number"
    PERCENT = "percent"
    BOOLEAN = "boolean"


# =============================================================================
# Catalog Models
# =============================================================================


class ModeMatrix(BaseModel):
    """
    Per-tier severity schedule for one fail signal.

    Attributes:
        pr_core: Mode in pull-request review
        release: Mode on a release candidate
        promotion: Mode on promotion to production
    """

    model_config = DOCUMENT_CONFIG

    pr_core: Mode = Field(..., alias="prCore")
    release: Mode
    promotion: Mode

    def mode_for(self, tier: Tier) -> Mode:
        if tier is Tier.PR_CORE:
            return self.pr_core
        if tier is Tier.RELEASE:
            return self.release
        return self.promotion


class FailSignal(BaseModel):
    """
    The typed failure a token's zero value represents.

    Attributes:
        code: Unique code matching E_[A-Z0-9_]+
        blocking: Whether the signal is blocking in its home tier
        tier: Home tier, core or release
        negative_test_ref: Test proving the signal fires; required when blocking
        mode_matrix: Advisory/blocking schedule per pipeline tier
        precedence: Ordering key, integer >= 0
    """

    model_config = DOCUMENT_CONFIG

    code: str = Field(..., pattern=FAIL_SIGNAL_CODE_PATTERN)
    blocking: bool
    tier: Literal["core", "release"] = "core"
    negative_test_ref: str = Field(default="", alias="negativeTestRef")
    mode_matrix: ModeMatrix = Field(..., alias="modeMatrix")
    precedence: int = Field(default=0, ge=0)
    rationale: str = ""


class FailSignalRegistry(BaseModel):
    """Registry of every fail signal the pipeline can emit."""

    model_config = DOCUMENT_CONFIG

    schema_version: int = Field(default=1, alias="schemaVersion")
    fail_signals: list[FailSignal] = Field(default_factory=list, alias="failSignals")

    def get(self, code: str) -> FailSignal | None:
        for signal in self.fail_signals:
            if signal.code == code:
                return signal
        return None

    def codes(self) -> list[str]:
        return sorted(signal.code for signal in self.fail_signals)

    def merged_with(self, other: "FailSignalRegistry") -> "FailSignalRegistry":
        """Return a registry where entries of other override entries of self."""
        by_code = {signal.code: signal for signal in self.fail_signals}
        for signal in other.fail_signals:
            by_code[signal.code] = signal
        return FailSignalRegistry(
            schema_version=self.schema_version,
            fail_signals=[by_code[code] for code in sorted(by_code)],
        )


class Token(BaseModel):
    """
    A named boolean fact about the system, produced by a proof hook.

    Attributes:
        token_id: Unique token identifier
        fail_signal_code: Fail signal raised when the token is 0
        proof_hook_ref: Opaque command string that computes the token
        source_binding: How the hook is bound to its source
    """

    model_config = DOCUMENT_CONFIG

    token_id: str = Field(..., alias="tokenId", pattern=TOKEN_ID_PATTERN)
    fail_signal_code: str = Field(..., alias="failSignalCode", pattern=FAIL_SIGNAL_CODE_PATTERN)
    proof_hook_ref: str = Field(..., alias="proofHookRef", min_length=1)
    source_binding: SourceBinding = Field(..., alias="sourceBinding")
    description: str = ""


class TokenCatalog(BaseModel):
    """The token catalog declaration."""

    model_config = DOCUMENT_CONFIG

    schema_version: int = Field(default=1, alias="schemaVersion")
    tokens: list[Token] = Field(default_factory=list)

    def get(self, token_id: str) -> Token | None:
        for token in self.tokens:
            if token.token_id == token_id:
                return token
        return None


# =============================================================================
# Execution Profile Models
# =============================================================================


class ConditionalRequirement(BaseModel):
    """
    Tokens required in some tiers only while a scope flag has a given value.

    Attributes:
        flag: Owning scope flag id
        enabled_when: Flag value that activates the requirement
        apply_to: Required-set tiers affected (core, release)
        tokens: Tokens added to those tiers
    """

    model_config = DOCUMENT_CONFIG

    flag: str = Field(..., min_length=1)
    enabled_when: bool = Field(default=True, alias="enabledWhen")
    apply_to: list[Literal["core", "release"]] = Field(..., alias="applyTo", min_length=1)
    tokens: list[str] = Field(..., min_length=1)


class RequiredSetsDeclaration(BaseModel):
    """Per-tier base sets declared by an execution profile."""

    model_config = DOCUMENT_CONFIG

    core: list[str] = Field(default_factory=list)
    release: list[str] = Field(default_factory=list)
    freeze_mode: list[str] = Field(default_factory=list, alias="freezeMode")
    conditional: list[ConditionalRequirement] = Field(default_factory=list)


class ExecutionProfile(BaseModel):
    """
    Scope flags plus declared per-tier base sets.

    Attributes:
        profile: Profile name
        gate_tier: Which set is active, core or release
        scope_flags: Scope flag values for this profile
        required_sets: Declared base and conditional sets
    """

    model_config = DOCUMENT_CONFIG

    schema_version: int = Field(default=1, alias="schemaVersion")
    profile: str = "default"
    gate_tier: Literal["core", "release"] = Field(default="core", alias="gateTier")
    scope_flags: dict[str, bool] = Field(default_factory=dict, alias="scopeFlags")
    required_sets: RequiredSetsDeclaration = Field(
        default_factory=RequiredSetsDeclaration,
        alias="requiredSets",
    )


class RequiredSets(BaseModel):
    """Final per-tier required token sets, each sorted and de-duplicated."""

    model_config = DOCUMENT_CONFIG

    core: list[str]
    release: list[str]
    active: list[str]
    freeze_mode: list[str] = Field(..., alias="freezeMode")


class FreezeReady(BaseModel):
    """Tokens a freeze-ready rollup must see green."""

    model_config = DOCUMENT_CONFIG

    required_always: list[str] = Field(..., alias="requiredAlways")
    required_freeze_mode: list[str] = Field(..., alias="requiredFreezeMode")
    required_tokens: list[str] = Field(..., alias="requiredTokens")


class RequiredTokenSet(BaseModel):
    """A generated (and optionally materialized) required token set."""

    model_config = DOCUMENT_CONFIG

    schema_version: int = Field(default=1, alias="schemaVersion")
    tool_version: str = Field(..., alias="toolVersion")
    profile: str
    gate_tier: Literal["core", "release"] = Field(..., alias="gateTier")
    scope_flags: dict[str, bool] = Field(..., alias="scopeFlags")
    required_sets: RequiredSets = Field(..., alias="requiredSets")
    freeze_ready: FreezeReady = Field(..., alias="freezeReady")
    config_hash: str = Field(default="", alias="configHash")


# =============================================================================
# Lock and Alias Models
# =============================================================================


class Lock(BaseModel):
    """A pinned content hash of a declaration document."""

    model_config = DOCUMENT_CONFIG

    version: str
    canonical_source_name: str = Field(..., alias="canonicalSourceName")
    digest_hex: str = Field(..., alias="digestHex", pattern=r"^[0-9a-f]{64}$")
    generated_at_utc: str = Field(..., alias="generatedAtUtc")


class AliasCanon(BaseModel):
    """
    Canonical identifier prefix plus deprecated aliases and their sunset.

    Attributes:
        canonical_prefix: Prefix every canonical id starts with
        deprecated_prefixes: Prefixes of deprecated ids
        alias_map: Deprecated id to canonical id
        sunset_date_utc: Last day deprecated ids resolve without narrowing
    """

    model_config = DOCUMENT_CONFIG

    canonical_prefix: str = Field(..., alias="canonicalPrefix", min_length=1)
    deprecated_prefixes: list[str] = Field(default_factory=list, alias="deprecatedPrefixes")
    alias_map: dict[str, str] = Field(default_factory=dict, alias="aliasMap")
    sunset_date_utc: date = Field(..., alias="sunsetDateUtc")

    @field_validator("deprecated_prefixes")
    @classmethod
    def validate_prefixes(cls, v: list[str]) -> list[str]:
        """Strip, drop empties and de-duplicate while keeping order."""
        seen: list[str] = []
        for prefix in v:
            prefix = prefix.strip()
            if prefix and prefix not in seen:
                seen.append(prefix)
        return seen


# =============================================================================
# Runtime Models
# =============================================================================


class Issue(BaseModel):
    """
    One violated rule found by a detector.

    Attributes:
        code: Failure code (E_...)
        path: Dotted location in the offending document
        message: Human-readable explanation
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: str
    path: str = ""
    message: str = ""

    def sort_key(self) -> tuple[str, str, str]:
        return (self.code, self.path, self.message)


class GateResult(BaseModel):
    """
    Result of one concrete check for one tier.

    Every evaluator returns this shape so CLI output and aggregation are
    identical everywhere.

    Attributes:
        check: Short name of the check
        token_name: Component token key, e.g. FREEZE_MODE_STRICT_OK
        tier: Tier the disposition was resolved for
        disposition: PASS, WARN or FAIL
        fail_signal_code: Primary fail signal (empty on PASS)
        failures: Sorted unique failure codes
        issues: Sorted issue records
        details: Component-specific extra fields
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    check: str
    token_name: str
    tier: Tier
    disposition: Disposition
    fail_signal_code: str = ""
    failures: list[str] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.disposition is not Disposition.FAIL

    @property
    def token_value(self) -> int:
        return 1 if self.ok else 0

    @property
    def exit_code(self) -> int:
        return self.disposition.exit_code

    def to_output(self) -> dict[str, Any]:
        """Machine-readable object with fixed field names."""
        output: dict[str, Any] = {
            "check": self.check,
            "ok": self.ok,
            self.token_name: self.token_value,
            "tier": self.tier.value,
            "disposition": self.disposition.value,
            "failSignalCode": self.fail_signal_code,
            "failures": list(self.failures),
            "issues": [issue.model_dump() for issue in self.issues],
        }
        for key, value in self.details.items():
            output.setdefault(key, value)
        return output


class AliasResolution(BaseModel):
    """Outcome of resolving one identifier against an AliasCanon."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    input_id: str
    ok: bool
    canonical_id: str | None = None
    disposition: Disposition
    tier: Tier
    deprecated: bool = False
    sunset_expired: bool = False
    fail_signal_code: str = ""
    warnings: list[str] = Field(default_factory=list)

    def to_output(self) -> dict[str, Any]:
        return {
            "inputId": self.input_id,
            "ok": self.ok,
            "canonicalId": self.canonical_id,
            "disposition": self.disposition.value,
            "tier": self.tier.value,
            "deprecated": self.deprecated,
            "sunsetExpired": self.sunset_expired,
            "failSignalCode": self.fail_signal_code,
            "warnings": list(self.warnings),
        }
