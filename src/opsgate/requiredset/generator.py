"""
Required-Set Generator for OpsGate.

Assembles per-tier required token sets from an execution profile.

Rule:
    A token is in a tier's set iff it is declared there unconditionally,
    or a conditional row applying to that tier has a flag whose value in
    the profile equals the row's enabledWhen.

generate() is referentially transparent: it reads nothing but its
argument, and every list in its output is sorted and de-duplicated.
"""

import logging
from pathlib import Path
from typing import Any

from opsgate.canonical import digest
from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.documents import as_document, parse_model, write_json_atomic
from opsgate.errors import DocumentSchemaError
from opsgate.schema import (
    ExecutionProfile,
    FreezeReady,
    GateResult,
    RequiredSets,
    RequiredTokenSet,
    Tier,
)

logger = logging.getLogger(__name__)

TOOL_VERSION = "opsgate.required-token-set.v1"

TOKEN_NAME = "GATE_TIER_POLICY_OK"
FAIL_SIGNAL_CODE = "E_EXECUTION_PROFILE_INVALID"

DRIFT_TOKEN_NAME = "REQUIRED_TOKEN_SET_IN_SYNC_OK"
DRIFT_FAIL_SIGNAL_CODE = "E_REQUIRED_TOKEN_SET_DRIFT"

# Required on every release, independent of the profile.
RELEASE_ALWAYS_REQUIRED_TOKENS: tuple[str, ...] = ("PROOFHOOK_INTEGRITY_OK",)

# Integrity of the hooks themselves is not part of the freeze snapshot.
FREEZE_READY_EXCLUDED_TOKENS = frozenset({"PROOFHOOK_INTEGRITY_OK"})


def _sorted_unique(values) -> list[str]:
    return sorted({value.strip() for value in values if value and value.strip()})


def _conditional_tokens(profile: ExecutionProfile, tier: str) -> list[str]:
    tokens: list[str] = []
    for row in profile.required_sets.conditional:
        if tier not in row.apply_to:
            continue
        value = profile.scope_flags.get(row.flag)
        if value is None:
            logger.debug("Conditional row skipped: flag %s not set in profile", row.flag)
            continue
        if value == row.enabled_when:
            tokens.extend(row.tokens)
    return _sorted_unique(tokens)


def generate(profile: ExecutionProfile | dict[str, Any]) -> RequiredTokenSet:
    """
    Generate the required token set for an execution profile.

    Args:
        profile: ExecutionProfile or its document form

    Returns:
        RequiredTokenSet with configHash set

    Raises:
        DocumentSchemaError: If the profile document is malformed
    """
    profile = parse_model(profile, ExecutionProfile, path="executionProfile")
    declared = profile.required_sets

    core = _sorted_unique([*declared.core, *_conditional_tokens(profile, "core")])
    release = _sorted_unique(
        [
            *declared.release,
            *_conditional_tokens(profile, "release"),
            *RELEASE_ALWAYS_REQUIRED_TOKENS,
        ]
    )
    freeze_mode = _sorted_unique(declared.freeze_mode)
    active = release if profile.gate_tier == "release" else core

    required_always = [token for token in release if token not in FREEZE_READY_EXCLUDED_TOKENS]

    payload = RequiredTokenSet(
        schema_version=1,
        tool_version=TOOL_VERSION,
        profile=profile.profile,
        gate_tier=profile.gate_tier,
        scope_flags=dict(sorted(profile.scope_flags.items())),
        required_sets=RequiredSets(
            core=core,
            release=release,
            active=list(active),
            freeze_mode=freeze_mode,
        ),
        freeze_ready=FreezeReady(
            required_always=required_always,
            required_freeze_mode=freeze_mode,
            required_tokens=_sorted_unique([*required_always, *freeze_mode]),
        ),
    )
    return payload.model_copy(update={"config_hash": config_hash(payload)})


def config_hash(token_set: RequiredTokenSet | dict[str, Any]) -> str:
    """Digest of a required token set, ignoring its own configHash field."""
    document = as_document(token_set)
    if isinstance(document, dict):
        document = {key: value for key, value in document.items() if key != "configHash"}
    return digest(document)


def evaluate_profile(
    profile: Any,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Generate a required token set and report it as a GateResult.

    A malformed profile is reported as E_EXECUTION_PROFILE_INVALID with
    the validation message, never raised.
    """
    resolver = resolver or DispositionResolver()
    issues = IssueCollector()
    details: dict[str, Any] = {"toolVersion": TOOL_VERSION, "requiredTokenSet": None, "configHash": ""}

    try:
        token_set = generate(profile)
    except DocumentSchemaError as e:
        issues.add(FAIL_SIGNAL_CODE, "executionProfile", e.validation_error or e.message)
    else:
        details["requiredTokenSet"] = token_set.model_dump(mode="json", by_alias=True)
        details["configHash"] = token_set.config_hash

    return resolver.evaluate(
        check="required-set",
        token_name=TOKEN_NAME,
        fail_signal_code=FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details=details,
    )


def materialize(profile: Any, path: Path | str) -> RequiredTokenSet:
    """
    Generate a required token set and write it atomically to path.

    Raises:
        DocumentSchemaError: If the profile is malformed
        ArtifactWriteError: If the file cannot be written
    """
    token_set = generate(profile)
    write_json_atomic(path, token_set)
    logger.info("Materialized required token set for profile %s at %s", token_set.profile, path)
    return token_set


def check_drift(
    profile: Any,
    committed: Any,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Compare a committed materialized set with a fresh generation.

    Args:
        profile: Execution profile the committed set was generated from
        committed: The materialized RequiredTokenSet document
        tier: Tier to resolve the disposition for

    Returns:
        GateResult with token REQUIRED_TOKEN_SET_IN_SYNC_OK; on drift the
        details carry both expectedHash and actualHash
    """
    resolver = resolver or DispositionResolver()
    issues = IssueCollector()
    expected_hash = ""
    actual_hash = ""

    try:
        fresh = generate(profile)
    except DocumentSchemaError as e:
        issues.add(FAIL_SIGNAL_CODE, "executionProfile", e.validation_error or e.message)
        fresh = None

    committed_doc = as_document(committed)
    if not isinstance(committed_doc, dict):
        issues.add(DRIFT_FAIL_SIGNAL_CODE, "requiredTokenSet", "committed required token set is not an object")
    elif fresh is not None:
        expected_hash = fresh.config_hash
        actual_hash = config_hash(committed_doc)
        if actual_hash != expected_hash:
            issues.add(
                DRIFT_FAIL_SIGNAL_CODE,
                "requiredTokenSet",
                f"committed set differs from generated set (expected {expected_hash}, actual {actual_hash})",
            )
        elif committed_doc.get("configHash", "") not in ("", expected_hash):
            issues.add(
                DRIFT_FAIL_SIGNAL_CODE,
                "requiredTokenSet.configHash",
                "stored configHash does not match the set's content",
            )

    return resolver.evaluate(
        check="required-set-drift",
        token_name=DRIFT_TOKEN_NAME,
        fail_signal_code=DRIFT_FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details={"expectedHash": expected_hash, "actualHash": actual_hash},
    )
