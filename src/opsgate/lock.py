"""
Immutability lock for governance declarations.

A lock pins the canonical SHA-256 of a declaration. verify() recomputes
the digest of the live declaration and compares it with the pinned one;
on mismatch it reports both digests and nothing else. It never explains
what changed.

write_lock() is the only mutating operation in OpsGate. It is never
called as a side effect of a failed verify().
"""

import logging
import re
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from opsgate.canonical import digest
from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.documents import as_document, write_json_atomic
from opsgate.errors import LockInvalidError, LockMismatchError
from opsgate.schema import GateResult, Lock, Tier
from opsgate.timeutil import format_utc, is_iso8601, utc_now

logger = logging.getLogger(__name__)

TOKEN_NAME = "TOKEN_CATALOG_IMMUTABLE_OK"
FAIL_SIGNAL_CODE = "E_TOKEN_CATALOG_LOCK_MISMATCH"
LOCK_INVALID_CODE = "E_TOKEN_CATALOG_LOCK_INVALID"
LOCK_MISSING_CODE = "E_TOKEN_CATALOG_LOCK_MISSING"

LOCK_VERSION = "v1"
DEFAULT_SOURCE_NAME = "TOKEN_CATALOG"

DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")


def build_lock(
    declaration: Any,
    canonical_source_name: str = DEFAULT_SOURCE_NAME,
    clock: Callable[[], datetime] = utc_now,
) -> Lock:
    """Compute a Lock for a declaration without writing anything."""
    return Lock(
        version=LOCK_VERSION,
        canonical_source_name=canonical_source_name,
        digest_hex=digest(declaration),
        generated_at_utc=format_utc(clock()),
    )


def write_lock(
    declaration: Any,
    path: Path | str,
    canonical_source_name: str = DEFAULT_SOURCE_NAME,
    clock: Callable[[], datetime] = utc_now,
) -> Lock:
    """
    Compute and atomically write the lock for a declaration.

    Args:
        declaration: The declaration document to pin
        path: Destination lock file
        canonical_source_name: Name recorded in the lock
        clock: Source of generatedAtUtc

    Returns:
        The written Lock

    Raises:
        ArtifactWriteError: If the lock file cannot be written
    """
    lock = build_lock(declaration, canonical_source_name, clock)
    write_json_atomic(path, lock)
    logger.info("Lock for %s written to %s (%s)", canonical_source_name, path, lock.digest_hex)
    return lock


def lock_shape_issues(lock: Any, source_name: str | None = None) -> list[tuple[str, str]]:
    """Return (path, message) pairs for every malformed field of a lock document."""
    if not isinstance(lock, dict):
        return [("lock", "lock must be an object")]

    problems: list[tuple[str, str]] = []
    version = lock.get("version")
    if not isinstance(version, str) or not version.strip():
        problems.append(("lock.version", "version must be a non-empty string"))

    name = lock.get("canonicalSourceName")
    if not isinstance(name, str) or not name.strip():
        problems.append(("lock.canonicalSourceName", "canonicalSourceName must be a non-empty string"))
    elif source_name is not None and name.strip() != source_name:
        problems.append(
            ("lock.canonicalSourceName", f"lock is for {name.strip()}, expected {source_name}")
        )

    digest_hex = lock.get("digestHex")
    if not isinstance(digest_hex, str) or not DIGEST_RE.match(digest_hex):
        problems.append(("lock.digestHex", "digestHex must be 64 lowercase hex characters"))

    if not is_iso8601(lock.get("generatedAtUtc")):
        problems.append(("lock.generatedAtUtc", "generatedAtUtc must be an ISO-8601 timestamp"))
    return problems


def verify(
    declaration: Any,
    lock: Any,
    source_name: str | None = None,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Verify a live declaration against its lock.

    Args:
        declaration: The live declaration document
        lock: Lock document, or None when no lock exists
        source_name: Expected canonicalSourceName, if it should be checked
        tier: Tier to resolve the disposition for

    Returns:
        GateResult with token TOKEN_CATALOG_IMMUTABLE_OK and details
        expected (pinned digest) and actual (live digest)
    """
    resolver = resolver or DispositionResolver()
    issues = IssueCollector()
    actual = digest(declaration)
    expected = ""

    lock_doc = as_document(lock)
    if lock_doc is None:
        issues.add(LOCK_MISSING_CODE, "lock", "no lock exists for this declaration")
    else:
        problems = lock_shape_issues(lock_doc, source_name)
        for path, message in problems:
            issues.add(LOCK_INVALID_CODE, path, message)
        if isinstance(lock_doc, dict) and isinstance(lock_doc.get("digestHex"), str):
            expected = lock_doc["digestHex"]
        if not problems and expected != actual:
            issues.add(FAIL_SIGNAL_CODE, "lock.digestHex", f"expected {expected}, actual {actual}")

    return resolver.evaluate(
        check="lock",
        token_name=TOKEN_NAME,
        fail_signal_code=FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details={
            "expected": expected,
            "actual": actual,
            "algorithm": "sha256",
        },
    )


def ensure_lock(declaration: Any, lock: Any, lock_path: str = "") -> None:
    """
    Assert that a declaration matches its lock.

    Raises:
        LockInvalidError: If the lock is missing or malformed
        LockMismatchError: If the digests differ
    """
    lock_doc = as_document(lock)
    if lock_doc is None:
        raise LockInvalidError(lock_path=lock_path, reason="lock is missing")
    problems = lock_shape_issues(lock_doc)
    if problems:
        raise LockInvalidError(lock_path=lock_path, reason="; ".join(message for _, message in problems))

    actual = digest(declaration)
    if lock_doc["digestHex"] != actual:
        raise LockMismatchError(lock_path=lock_path, expected=lock_doc["digestHex"], actual=actual)
