"""
Proof hooks for OpsGate.

- HookRegistry: token id -> hook reference, built from the catalog
- ProofHookRunner: runs a hook in a subprocess with a timeout
"""

from opsgate.hooks.registry import HookRegistry, ProofHook
from opsgate.hooks.runner import (
    DEFAULT_TIMEOUT_SECONDS,
    HookOutcome,
    ProofHookRunner,
    parse_printed_value,
    split_hook_ref,
)

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "HookOutcome",
    "HookRegistry",
    "ProofHook",
    "ProofHookRunner",
    "parse_printed_value",
    "split_hook_ref",
]
