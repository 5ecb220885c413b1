"""
Exception hierarchy for OpsGate.

All OpsGate exceptions inherit from OpsGateError, allowing callers to catch
every OpsGate-specific exception with a single except clause.

Evaluators do NOT raise for rule violations. A violated rule becomes an
issue inside a GateResult. Exceptions are reserved for conditions an
evaluator cannot recover from:

    - DocumentError: a governance document is missing or unreadable
    - LockError: a lock cannot be parsed, or drift was asserted explicitly
    - UnknownFailSignalError: a fail signal lookup that must succeed did not
    - HookError: a proof hook could not be executed or parsed
    - ArtifactWriteError: a generated artifact could not be written

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (path, token, hook where applicable)
    - Errors are designed to be both human-readable and machine-parseable
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Document (schema) errors: 1xxx
ERROR_DOCUMENT_UNREADABLE = 1001
ERROR_DOCUMENT_INVALID_FORMAT = 1002
ERROR_DOCUMENT_SCHEMA = 1003

# Drift errors: 2xxx
ERROR_LOCK_INVALID = 2001
ERROR_LOCK_MISMATCH = 2002

# Policy errors: 3xxx
ERROR_FAILSIGNAL_UNKNOWN = 3001
ERROR_TIER_UNKNOWN = 3002

# Temporal errors: 4xxx
ERROR_DATE_INVALID = 4001

# Execution errors: 5xxx
ERROR_HOOK_EXECUTION_FAILED = 5001
ERROR_HOOK_TIMEOUT = 5002
ERROR_HOOK_OUTPUT_INVALID = 5003

# Storage errors: 6xxx
ERROR_ARTIFACT_WRITE = 6001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class OpsGateError(Exception):
    """
    Base exception for all OpsGate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Document Errors
# =============================================================================


@dataclass
class DocumentError(OpsGateError):
    """
    Base class for governance document errors.

    Attributes:
        path: Path of the document that failed to load
    """

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["path"] = self.path


@dataclass
class DocumentUnreadableError(DocumentError):
    """Raised when a document does not exist or cannot be read."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Document unreadable: {self.path}"
            if self.underlying_error:
                self.message += f" ({self.underlying_error})"
        if self.code == 0:
            self.code = ERROR_DOCUMENT_UNREADABLE
        if not self.suggestion:
            self.suggestion = "Check that the path exists and is readable"
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class DocumentFormatError(DocumentError):
    """Raised when a document is not valid JSON/YAML or not an object."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Document is not a JSON/YAML object: {self.path}"
            if self.underlying_error:
                self.message += f" ({self.underlying_error})"
        if self.code == 0:
            self.code = ERROR_DOCUMENT_INVALID_FORMAT
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class DocumentSchemaError(DocumentError):
    """Raised when a document that must be well-formed fails its model."""

    model: str = ""
    validation_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid {self.model or 'document'}: {self.validation_error}"
        if self.code == 0:
            self.code = ERROR_DOCUMENT_SCHEMA
        super().__post_init__()
        self.context.update({
            "model": self.model,
            "validation_error": self.validation_error,
        })


# =============================================================================
# Drift Errors
# =============================================================================


@dataclass
class LockError(OpsGateError):
    """Base class for immutability lock errors."""

    lock_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["lock_path"] = self.lock_path


@dataclass
class LockInvalidError(LockError):
    """Raised by ensure_lock() when the lock is missing or malformed."""

    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid lock {self.lock_path or '<memory>'}: {self.reason}"
        if self.code == 0:
            self.code = ERROR_LOCK_INVALID
        if not self.suggestion:
            self.suggestion = "Regenerate the lock with 'opsgate lock write'"
        super().__post_init__()
        self.context["reason"] = self.reason


@dataclass
class LockMismatchError(LockError):
    """
    Raised by ensure_lock() when the live digest diverges from the lock.

    verify() reports the same condition as a failure instead of raising.
    """

    expected: str = ""
    actual: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Lock mismatch: expected {self.expected[:12]}..., "
                f"got {self.actual[:12]}..."
            )
        if self.code == 0:
            self.code = ERROR_LOCK_MISMATCH
        if not self.suggestion:
            self.suggestion = "Review the declaration change, then run 'opsgate lock write'"
        super().__post_init__()
        self.context.update({
            "expected": self.expected,
            "actual": self.actual,
        })


# =============================================================================
# Policy Errors
# =============================================================================


@dataclass
class UnknownFailSignalError(OpsGateError):
    """Raised when a fail signal code has no registry entry."""

    fail_signal_code: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown fail signal: {self.fail_signal_code}"
        if self.code == 0:
            self.code = ERROR_FAILSIGNAL_UNKNOWN
        if not self.suggestion:
            self.suggestion = "Register the code in the FailSignal registry"
        self.context["fail_signal_code"] = self.fail_signal_code


@dataclass
class TierError(OpsGateError):
    """Raised when a pipeline tier name cannot be parsed."""

    tier: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown tier: {self.tier}"
        if self.code == 0:
            self.code = ERROR_TIER_UNKNOWN
        if not self.suggestion:
            self.suggestion = "Use one of: prCore, release, promotion"
        self.context["tier"] = self.tier


# =============================================================================
# Temporal Errors
# =============================================================================


@dataclass
class DateFormatError(OpsGateError):
    """Raised when a date argument is not YYYY-MM-DD."""

    value: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid date (expected YYYY-MM-DD): {self.value}"
        if self.code == 0:
            self.code = ERROR_DATE_INVALID
        self.context["value"] = self.value


# =============================================================================
# Execution Errors
# =============================================================================


@dataclass
class HookError(OpsGateError):
    """
    Base class for proof hook execution errors.

    These are execution failures. They never stand in for a policy
    failure of the token the hook proves.

    Attributes:
        token_id: Token whose proof hook failed
        hook_ref: The opaque command reference that was invoked
    """

    token_id: str = ""
    hook_ref: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "token_id": self.token_id,
            "hook_ref": self.hook_ref,
        })


@dataclass
class HookExecutionError(HookError):
    """Raised when a hook cannot be started or exits unexpectedly."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Proof hook for {self.token_id} failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_HOOK_EXECUTION_FAILED
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class HookTimeoutError(HookError):
    """Raised when a hook exceeds its timeout."""

    timeout_seconds: float = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Proof hook for {self.token_id} timed out after {self.timeout_seconds}s"
        if self.code == 0:
            self.code = ERROR_HOOK_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase the hook timeout or speed up the hook"
        super().__post_init__()
        self.context["timeout_seconds"] = self.timeout_seconds


@dataclass
class HookOutputError(HookError):
    """Raised when a hook's output cannot be parsed into a token value."""

    output: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unparseable output from proof hook for {self.token_id}"
        if self.code == 0:
            self.code = ERROR_HOOK_OUTPUT_INVALID
        super().__post_init__()
        self.context["output"] = self.output


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class ArtifactWriteError(OpsGateError):
    """Raised when an atomic artifact write fails."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to write {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_ARTIFACT_WRITE
        if not self.suggestion:
            self.suggestion = "Check that the target directory exists and is writable"
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })
