"""
OpsGate - Policy-gate evaluation engine for delivery pipelines.

OpsGate decides whether a change may advance through pull-request review,
release and promotion. It provides:
- Token catalog and FailSignal registry validation
- Required token sets generated from execution profiles and scope flags
- Three-valued PASS/WARN/FAIL dispositions driven by per-tier mode matrices
- Staged rollout and promotion record validation
- Freeze-mode baseline enforcement, immutability locks and sunset-aware aliases

Example usage:
    $ opsgate catalog validate --tier release
    $ opsgate stage promotion --record promotion_record.json --json
    $ opsgate alias resolve deprecated.save --today 2026-01-01 --tier promotion
"""

__version__ = "0.1.0"
__author__ = "OpsGate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
