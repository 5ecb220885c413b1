"""
JSON output for OpsGate.

Design Principles:
    - One object per invocation
    - Sorted keys at every level, so identical results print identically
    - Fixed field names: ok, failures, disposition, failSignalCode and the
      component token key are always present on gate results
"""

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any


def render_json(document: Any, indent: int = 2) -> str:
    """Serialize a result or plain document to sorted, indented JSON."""
    if hasattr(document, "to_output"):
        document = document.to_output()
    return json.dumps(document, indent=indent, sort_keys=True, ensure_ascii=False, default=_json_serializer)


def error_document(error_type: str, message: str, **extra: Any) -> dict[str, Any]:
    """
    Build the single top-level failure printed for unrecoverable input.

    Carries ok/failures so consumers can treat it like any other result.
    """
    output: dict[str, Any] = {
        "ok": False,
        "error": True,
        "error_type": error_type,
        "message": message,
        "disposition": "FAIL",
        "failures": [extra.pop("failure_code", "E_INPUT_UNREADABLE")],
    }
    output.update(extra)
    return output


def _json_serializer(obj: Any) -> Any:
    """Custom JSON serializer for non-standard types."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
