"""
Settings for OpsGate.

GateSettings holds the default location of every governance document
plus a few run-time knobs. Each value is resolved in this order:

    1. Explicit CLI option (applied by the caller via GateSettings.pick)
    2. Environment variable OPSGATE_<FIELD> (e.g. OPSGATE_TOKEN_CATALOG_PATH)
    3. Settings file (opsgate.yaml in the working directory, or the file
       named by OPSGATE_SETTINGS)
    4. Built-in default, relative to the working directory
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from opsgate.errors import DocumentFormatError, DocumentSchemaError, DocumentUnreadableError

logger = logging.getLogger(__name__)

ENV_PREFIX = "OPSGATE_"
SETTINGS_ENV = "OPSGATE_SETTINGS"
DEFAULT_SETTINGS_FILE = "opsgate.yaml"


class GateSettings(BaseModel):
    """Default document paths and run-time knobs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    token_catalog_path: Path = Path("governance/token_catalog.json")
    failsignal_registry_path: Path = Path("governance/failsignal_registry.json")
    execution_profile_path: Path = Path("governance/execution_profile.json")
    required_token_set_path: Path = Path("governance/required_token_set.json")
    scope_flags_path: Path = Path("governance/scope_flags.json")
    stage_plan_path: Path = Path("governance/stage_plan.json")
    promotion_policy_path: Path = Path("governance/promotion_policy.json")
    promotion_record_path: Path = Path("governance/promotion_record.json")
    token_catalog_lock_path: Path = Path("governance/token_catalog.lock.json")
    alias_canon_path: Path = Path("governance/alias_canon.json")

    tier: str = "release"
    hook_timeout_seconds: float = Field(default=120.0, gt=0)

    def pick(self, field_name: str, override: Any = None) -> Any:
        """Return override if given, else this setting."""
        if override is not None:
            return override
        return getattr(self, field_name)


def _env_overrides(environ: Mapping[str, str]) -> dict[str, str]:
    overrides = {}
    for name in GateSettings.model_fields:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value:
            overrides[name] = value
    return overrides


def _read_settings_file(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise DocumentUnreadableError(path=str(path), underlying_error=str(e)) from e
    except yaml.YAMLError as e:
        raise DocumentFormatError(path=str(path), underlying_error=str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DocumentFormatError(path=str(path), underlying_error="settings file must be a mapping")
    return data


def load_settings(
    settings_file: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    cwd: Path | str | None = None,
) -> GateSettings:
    """
    Build GateSettings from file and environment.

    Args:
        settings_file: Explicit settings file (must exist if given)
        environ: Environment mapping (default: os.environ)
        cwd: Directory searched for opsgate.yaml (default: current directory)

    Raises:
        DocumentUnreadableError: If an explicit settings file cannot be read
        DocumentSchemaError: If the merged settings are invalid
    """
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    path: Path | None = None
    if settings_file is not None:
        path = Path(settings_file)
    elif environ.get(SETTINGS_ENV):
        path = Path(environ[SETTINGS_ENV])
    else:
        candidate = Path(cwd or ".") / DEFAULT_SETTINGS_FILE
        if candidate.is_file():
            path = candidate

    if path is not None:
        values.update(_read_settings_file(path))
        logger.debug("Loaded settings file %s", path)

    values.update(_env_overrides(environ))

    try:
        return GateSettings.model_validate(values)
    except ValidationError as e:
        raise DocumentSchemaError(
            path=str(path or "<environment>"),
            model="GateSettings",
            validation_error=str(e.errors()[0].get("msg", e)),
        ) from e
