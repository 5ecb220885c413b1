"""
Governance document I/O.

Reading: JSON or YAML files are parsed with yaml.safe_load (a JSON
document is valid YAML) and must have an object at the top level.

Writing: generated artifacts (locks, materialized required sets) are
written to a temporary file in the target directory and moved into place
with os.replace, so a concurrent reader sees either the old file or the
new one and never a partial write.
"""

import json
import logging
import os
import stat
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from opsgate.errors import (
    ArtifactWriteError,
    DocumentFormatError,
    DocumentSchemaError,
    DocumentUnreadableError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

NEW_FILE_MODE = 0o644


def read_document(path: Path | str) -> dict[str, Any]:
    """
    Load a JSON/YAML document whose top level is an object.

    Args:
        path: Path to the document

    Returns:
        The parsed mapping

    Raises:
        DocumentUnreadableError: If the file is missing or unreadable
        DocumentFormatError: If it does not parse to an object
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentUnreadableError(path=str(path), underlying_error=str(e)) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentFormatError(path=str(path), underlying_error=str(e)) from e

    if not isinstance(data, dict):
        raise DocumentFormatError(
            path=str(path),
            underlying_error=f"top level is {type(data).__name__}, expected object",
        )
    logger.debug("Loaded document %s (%d top-level keys)", path, len(data))
    return data


def load_model(path: Path | str, model: type[ModelT]) -> ModelT:
    """
    Load a document and validate it against a pydantic model.

    Raises:
        DocumentUnreadableError: If the file is missing or unreadable
        DocumentFormatError: If it does not parse to an object
        DocumentSchemaError: If the object does not match the model
    """
    data = read_document(path)
    return parse_model(data, model, path=str(path))


def parse_model(data: Any, model: type[ModelT], path: str = "") -> ModelT:
    """Validate an in-memory document against a model, raising DocumentSchemaError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(as_document(data))
    except ValidationError as e:
        raise DocumentSchemaError(
            path=path,
            model=model.__name__,
            validation_error=_summarize_validation_error(e),
        ) from e


def as_document(value: Any) -> Any:
    """
    Return a plain JSON-compatible form of a model or mapping.

    Models are dumped by alias so they look exactly like the on-disk
    document. Anything that is not a model or mapping is returned as-is
    so detectors can report it as malformed.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, Mapping):
        return dict(value)
    return value


def _target_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return NEW_FILE_MODE


def write_json_atomic(path: Path | str, document: Any) -> Path:
    """
    Write a document as pretty JSON via temp file + os.replace.

    Args:
        path: Destination path
        document: JSON-compatible value or pydantic model

    Returns:
        The destination path

    Raises:
        ArtifactWriteError: If the write or the replace fails
    """
    path = Path(path)
    payload = json.dumps(as_document(document), indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent),
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; keep the permissions of the file being replaced
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        raise ArtifactWriteError(path=str(path), underlying_error=str(e)) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.info("Wrote %s (%d bytes)", path, len(payload.encode("utf-8")))
    return path


def _summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg', '')}" if loc else item.get("msg", ""))
    return "; ".join(parts)
