"""
Unit tests for the immutability lock.

Tests cover:
- Lock construction with an injected clock
- Verification: match, mismatch, missing and malformed locks
- ensure_lock() exceptions
"""

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from opsgate.canonical import digest
from opsgate.errors import LockInvalidError, LockMismatchError
from opsgate.lock import build_lock, ensure_lock, verify, write_lock
from opsgate.schema import Disposition


def _clock() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def lock(token_catalog: dict) -> dict:
    return build_lock(token_catalog, clock=_clock).model_dump(mode="json", by_alias=True)


class TestBuildLock:
    def test_fields(self, token_catalog: dict) -> None:
        built = build_lock(token_catalog, clock=_clock)
        assert built.version == "v1"
        assert built.canonical_source_name == "TOKEN_CATALOG"
        assert built.digest_hex == digest(token_catalog)
        assert built.generated_at_utc == "2026-03-01T12:00:00Z"

    def test_write_lock(self, token_catalog: dict, temp_dir: Path) -> None:
        path = temp_dir / "token_catalog.lock.json"
        written = write_lock(token_catalog, path, "CATALOG_V2", clock=_clock)
        on_disk = json.loads(path.read_text())
        assert on_disk["digestHex"] == written.digest_hex
        assert on_disk["canonicalSourceName"] == "CATALOG_V2"
        assert on_disk["generatedAtUtc"] == "2026-03-01T12:00:00Z"


class TestVerify:
    """Tests for verify()."""

    def test_matching_lock(self, token_catalog: dict, lock: dict) -> None:
        result = verify(token_catalog, lock)
        assert result.disposition is Disposition.PASS
        assert result.token_name == "TOKEN_CATALOG_IMMUTABLE_OK"
        assert result.details["expected"] == result.details["actual"]

    def test_key_order_does_not_matter(self, token_catalog: dict, lock: dict) -> None:
        reordered = {"tokens": token_catalog["tokens"], "schemaVersion": token_catalog["schemaVersion"]}
        assert verify(reordered, lock).ok

    def test_appended_entry_reports_mismatch(self, token_catalog: dict, lock: dict) -> None:
        token_catalog["tokens"].append(
            {
                "tokenId": "XPLAT_CONTRACT_OK",
                "failSignalCode": "E_XPLAT_CONTRACT",
                "proofHookRef": "python scripts/check_xplat.py",
                "sourceBinding": "contract-test",
            }
        )
        result = verify(token_catalog, lock, tier="prCore")
        assert result.disposition is Disposition.FAIL
        assert result.failures == ["E_TOKEN_CATALOG_LOCK_MISMATCH"]
        assert result.details["expected"] == lock["digestHex"]
        assert result.details["actual"] == digest(token_catalog)
        assert result.details["expected"] != result.details["actual"]

    def test_missing_lock_fails(self, token_catalog: dict) -> None:
        result = verify(token_catalog, None, tier="prCore")
        assert result.disposition is Disposition.FAIL
        assert result.failures == ["E_TOKEN_CATALOG_LOCK_MISSING"]
        assert result.details["expected"] == ""

    def test_malformed_lock_fails(self, token_catalog: dict, lock: dict) -> None:
        lock["digestHex"] = lock["digestHex"].upper()
        lock["generatedAtUtc"] = "later"
        result = verify(token_catalog, lock, tier="prCore")
        assert result.disposition is Disposition.FAIL
        assert result.failures == ["E_TOKEN_CATALOG_LOCK_INVALID"]
        assert [issue.path for issue in result.issues] == ["lock.digestHex", "lock.generatedAtUtc"]

    def test_lock_not_an_object(self, token_catalog: dict) -> None:
        assert verify(token_catalog, ["abc"]).failures == ["E_TOKEN_CATALOG_LOCK_INVALID"]

    def test_source_name_checked_when_given(self, token_catalog: dict, lock: dict) -> None:
        assert verify(token_catalog, lock, source_name="TOKEN_CATALOG").ok
        result = verify(token_catalog, lock, source_name="OTHER_DECLARATION")
        assert result.failures == ["E_TOKEN_CATALOG_LOCK_INVALID"]


class TestEnsureLock:
    def test_match(self, token_catalog: dict, lock: dict) -> None:
        ensure_lock(token_catalog, lock)

    def test_missing(self, token_catalog: dict) -> None:
        with pytest.raises(LockInvalidError) as exc_info:
            ensure_lock(token_catalog, None, lock_path="governance/token_catalog.lock.json")
        assert exc_info.value.context["lock_path"] == "governance/token_catalog.lock.json"

    def test_mismatch(self, token_catalog: dict, lock: dict) -> None:
        token_catalog["tokens"].pop()
        with pytest.raises(LockMismatchError) as exc_info:
            ensure_lock(token_catalog, lock)
        assert exc_info.value.expected == lock["digestHex"]
        assert exc_info.value.actual == digest(token_catalog)
