"""
Staged rollout for OpsGate.

Stages advance one step at a time along a fixed order. This package
validates the stage plan and the promotion records that move it forward.
"""

from opsgate.rollout.plan import PlanFacts, validate_stage_plan
from opsgate.rollout.promotion import (
    check_metric,
    evaluate_stage_activation,
    validate_promotion,
)

__all__ = [
    "PlanFacts",
    "check_metric",
    "evaluate_stage_activation",
    "validate_promotion",
    "validate_stage_plan",
]
