"""
Hook registry for OpsGate.

Maps token ids to the proof hooks declared in the token catalog. The
registry only records references; ProofHookRunner runs them.

Usage:
    registry = HookRegistry.from_catalog(catalog)
    hook = registry.get("PERF_BASELINE_OK")
    outcome = runner.run(hook.token_id, hook.hook_ref)
"""

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from opsgate.documents import parse_model
from opsgate.schema import SourceBinding, TokenCatalog


@dataclass(frozen=True)
class ProofHook:
    """One token's proof hook reference."""

    token_id: str
    hook_ref: str
    fail_signal_code: str
    source_binding: SourceBinding = SourceBinding.SCRIPT


class HookRegistry:
    """
    Registry for looking up proof hooks by token id.

    Attributes:
        _hooks: Internal mapping of token ids to hooks
    """

    def __init__(self) -> None:
        self._hooks: dict[str, ProofHook] = {}

    @classmethod
    def from_catalog(cls, catalog: TokenCatalog | dict[str, Any]) -> "HookRegistry":
        """
        Build a registry from a token catalog.

        Raises:
            DocumentSchemaError: If the catalog does not match TokenCatalog
        """
        catalog = parse_model(catalog, TokenCatalog, path="tokenCatalog")
        registry = cls()
        for token in catalog.tokens:
            registry.register(
                ProofHook(
                    token_id=token.token_id,
                    hook_ref=token.proof_hook_ref,
                    fail_signal_code=token.fail_signal_code,
                    source_binding=token.source_binding,
                )
            )
        return registry

    def register(self, hook: ProofHook) -> None:
        """
        Register a hook, replacing any hook for the same token.

        Raises:
            ValueError: If the hook has an empty token id or reference
        """
        if not hook.token_id:
            msg = "Hook must have a non-empty token id"
            raise ValueError(msg)
        if not hook.hook_ref.strip():
            msg = f"Hook for {hook.token_id} has an empty reference"
            raise ValueError(msg)
        self._hooks[hook.token_id] = hook

    def get(self, token_id: str) -> ProofHook:
        """
        Look up a hook by token id.

        Raises:
            KeyError: If no hook is registered for the token
        """
        hook = self._hooks.get(token_id)
        if hook is None:
            raise KeyError(token_id)
        return hook

    def get_optional(self, token_id: str) -> ProofHook | None:
        return self._hooks.get(token_id)

    def token_ids(self) -> list[str]:
        """Registered token ids in sorted order."""
        return sorted(self._hooks)

    def __len__(self) -> int:
        return len(self._hooks)

    def __iter__(self) -> Iterator[ProofHook]:
        return iter(self._hooks[token_id] for token_id in self.token_ids())

    def __contains__(self, token_id: str) -> bool:
        return token_id in self._hooks

    def __repr__(self) -> str:
        return f"<HookRegistry: [{', '.join(self.token_ids())}]>"
