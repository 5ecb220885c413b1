"""
Catalog module for OpsGate.

Validates the Token Catalog and FailSignal Registry documents:
    - CatalogValidator: collects every consistency issue, never short-circuits
    - validate_catalog: one-call convenience wrapper
"""

from opsgate.catalog.validator import (
    FAIL_SIGNAL_CODE,
    TOKEN_NAME,
    CatalogValidator,
    validate_catalog,
)

__all__ = [
    "FAIL_SIGNAL_CODE",
    "TOKEN_NAME",
    "CatalogValidator",
    "validate_catalog",
]
