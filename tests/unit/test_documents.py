"""
Unit tests for document I/O.

Tests cover:
- JSON and YAML reading
- Unreadable and non-object documents
- Model validation errors
- Atomic writes
"""

import json
import os
import stat
from pathlib import Path

import pytest

from opsgate.documents import as_document, load_model, parse_model, read_document, write_json_atomic
from opsgate.errors import (
    ArtifactWriteError,
    DocumentFormatError,
    DocumentSchemaError,
    DocumentUnreadableError,
)
from opsgate.schema import ExecutionProfile, TokenCatalog


class TestReadDocument:
    def test_json(self, write_json, token_catalog: dict) -> None:
        path = write_json("catalog.json", token_catalog)
        assert read_document(path) == token_catalog

    def test_yaml(self, temp_dir: Path) -> None:
        path = temp_dir / "flags.yaml"
        path.write_text("flags:\n  - flagId: STAGE_X1_ENABLED\n    defaultEnabled: false\n")
        assert read_document(path) == {"flags": [{"flagId": "STAGE_X1_ENABLED", "defaultEnabled": False}]}

    def test_missing(self, temp_dir: Path) -> None:
        with pytest.raises(DocumentUnreadableError) as exc_info:
            read_document(temp_dir / "missing.json")
        assert "missing.json" in exc_info.value.path

    def test_not_an_object(self, temp_dir: Path) -> None:
        path = temp_dir / "list.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(DocumentFormatError):
            read_document(path)

    def test_unparseable(self, temp_dir: Path) -> None:
        path = temp_dir / "broken.json"
        path.write_text('{"tokens": [')
        with pytest.raises(DocumentFormatError):
            read_document(path)


class TestLoadModel:
    def test_valid(self, write_json, token_catalog: dict) -> None:
        catalog = load_model(write_json("catalog.json", token_catalog), TokenCatalog)
        assert len(catalog.tokens) == 4

    def test_invalid_reports_field(self, execution_profile: dict) -> None:
        execution_profile["gateTier"] = "promotion"
        with pytest.raises(DocumentSchemaError) as exc_info:
            parse_model(execution_profile, ExecutionProfile, path="profile.json")
        assert exc_info.value.model == "ExecutionProfile"
        assert "gateTier" in exc_info.value.validation_error

    def test_model_passthrough(self, execution_profile: dict) -> None:
        profile = ExecutionProfile.model_validate(execution_profile)
        assert parse_model(profile, ExecutionProfile) is profile

    def test_as_document_dumps_by_alias(self, execution_profile: dict) -> None:
        profile = ExecutionProfile.model_validate(execution_profile)
        assert as_document(profile)["gateTier"] == "release"
        assert as_document([1]) == [1]


class TestWriteJsonAtomic:
    """Tests for temp-file-then-replace writes."""

    def test_writes_sorted_json(self, temp_dir: Path) -> None:
        path = write_json_atomic(temp_dir / "out.json", {"b": 1, "a": 2})
        text = path.read_text()
        assert text.endswith("\n")
        assert list(json.loads(text)) == ["a", "b"]

    def test_replaces_existing_file(self, temp_dir: Path) -> None:
        target = temp_dir / "out.json"
        target.write_text('{"old": true}')
        write_json_atomic(target, {"new": True})
        assert json.loads(target.read_text()) == {"new": True}

    def test_new_file_is_world_readable(self, temp_dir: Path) -> None:
        path = write_json_atomic(temp_dir / "out.json", {"a": 1})
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    @pytest.mark.parametrize("mode", [0o644, 0o640])
    def test_rewrite_keeps_mode(self, temp_dir: Path, mode: int) -> None:
        target = temp_dir / "out.json"
        target.write_text('{"old": true}')
        target.chmod(mode)
        write_json_atomic(target, {"new": True})
        assert stat.S_IMODE(target.stat().st_mode) == mode

    def test_leaves_no_temp_files(self, temp_dir: Path) -> None:
        write_json_atomic(temp_dir / "out.json", {"a": 1})
        assert os.listdir(temp_dir) == ["out.json"]

    def test_missing_directory(self, temp_dir: Path) -> None:
        with pytest.raises(ArtifactWriteError):
            write_json_atomic(temp_dir / "no" / "such" / "dir.json", {"a": 1})

    def test_failed_replace_keeps_old_content(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        target = temp_dir / "out.json"
        target.write_text('{"old": true}')

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", broken_replace)
        with pytest.raises(ArtifactWriteError):
            write_json_atomic(target, {"new": True})
        assert json.loads(target.read_text()) == {"old": True}
        assert os.listdir(temp_dir) == ["out.json"]
