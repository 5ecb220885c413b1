"""
Required token sets for OpsGate.

- generate / materialize: profile -> RequiredTokenSet (pure / atomic write)
- check_drift: committed set vs fresh generation
- check_conditional_gates: case table run against any generator callable
"""

from opsgate.requiredset.conditional import (
    DEFAULT_CASES,
    ConditionalGateCase,
    cases_from_profile,
    check_conditional_gates,
)
from opsgate.requiredset.generator import (
    RELEASE_ALWAYS_REQUIRED_TOKENS,
    TOOL_VERSION,
    check_drift,
    config_hash,
    evaluate_profile,
    generate,
    materialize,
)

__all__ = [
    "DEFAULT_CASES",
    "RELEASE_ALWAYS_REQUIRED_TOKENS",
    "TOOL_VERSION",
    "ConditionalGateCase",
    "cases_from_profile",
    "check_conditional_gates",
    "check_drift",
    "config_hash",
    "evaluate_profile",
    "generate",
    "materialize",
]
