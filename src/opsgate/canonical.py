"""
Canonical serialization and digests.

canonicalize() sorts every object key recursively while keeping array
order, so two documents that differ only in key order or whitespace
serialize to the same bytes and therefore share a digest.
"""

import hashlib
import json
from typing import Any

from pydantic import BaseModel

DIGEST_ALGORITHM = "sha256"


def _normalize(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _normalize(value.model_dump(mode="json", by_alias=True))
    if isinstance(value, dict):
        return {str(key): _normalize(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]
    return value


def canonicalize(document: Any) -> str:
    """
    Serialize a document to its canonical JSON text.

    Object keys are sorted at every depth, arrays keep their order, and
    the output carries no insignificant whitespace.

    Args:
        document: A JSON-compatible value or a pydantic model

    Returns:
        Canonical JSON string
    """
    return json.dumps(
        _normalize(document),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def sha256_hex(data: str | bytes) -> str:
    """Return the hex SHA-256 of text (UTF-8) or bytes."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def digest(document: Any) -> str:
    """Return the hex SHA-256 of the canonical serialization of a document."""
    return sha256_hex(canonicalize(document))
