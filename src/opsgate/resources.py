"""
Versioned configuration data shipped with OpsGate.

- failsignal_registry.json: mode matrices for every code OpsGate emits
- freeze_baseline.json: the required-always baseline for freeze mode

The freeze evaluator and `opsgate freeze baseline` both read the baseline
from here, so the documented list and the enforced list are one list.
"""

import json
from functools import lru_cache
from importlib.resources import files

from pydantic import BaseModel, ConfigDict, Field

from opsgate.schema import FailSignalRegistry


class FreezeBaseline(BaseModel):
    """Versioned list of tokens that must be green while frozen."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    version: str
    required_always: list[str] = Field(..., alias="requiredAlways", min_length=1)


def _read_data(name: str) -> dict:
    return json.loads(files("opsgate").joinpath("data").joinpath(name).read_text(encoding="utf-8"))


@lru_cache(maxsize=1)
def load_engine_registry() -> FailSignalRegistry:
    """Load the FailSignal registry for OpsGate's own failure codes."""
    return FailSignalRegistry.model_validate(_read_data("failsignal_registry.json"))


@lru_cache(maxsize=1)
def load_freeze_baseline() -> FreezeBaseline:
    """Load the packaged freeze-mode baseline."""
    return FreezeBaseline.model_validate(_read_data("freeze_baseline.json"))
