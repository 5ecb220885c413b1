"""
Promotion record validation.

A promotion record proposes moving the rollout one stage forward. An
inactive record is a template and always valid. An active record must:

    1. Move exactly one step forward in the plan's stage order
    2. Start from the plan's active stage
    3. Carry every metric required for the target stage, each matching
       its metric spec
    4. Be allowed by the plan (promotionModeAllowed)
    5. Target a stage owned by a registered scope flag

All violations are collected into one result.
"""

import logging
import math
from collections.abc import Iterable
from typing import Any

from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.documents import as_document
from opsgate.rollout.plan import PlanFacts, check_enabled_flags, read_plan
from opsgate.schema import GateResult, MetricType, Tier
from opsgate.timeutil import is_iso8601

logger = logging.getLogger(__name__)

TOKEN_NAME = "STAGE_PROMOTION_RECORD_VALID_OK"
FAIL_SIGNAL_CODE = "E_STAGE_PROMOTION_INVALID"

ACTIVATION_TOKEN_NAME = "STAGE_ACTIVATION_OK"

METRIC_TYPES = {metric_type.value for metric_type in MetricType}


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _bound(spec: dict[str, Any], key: str) -> float | None:
    value = spec.get(key)
    if _is_number(value) and math.isfinite(value):
        return float(value)
    return None


def check_metric(name: str, value: Any, spec: Any, issues: IssueCollector) -> None:
    """Check one evidence metric against its metric spec."""
    path = f"record.evidence.{name}"
    if not isinstance(spec, dict):
        issues.add("E_PROMOTION_METRIC_SPEC_MISSING", path, f"no metric spec for {name}")
        return

    metric_type = _text(spec.get("type"))
    if metric_type not in METRIC_TYPES:
        issues.add("E_PROMOTION_METRIC_SPEC_INVALID", path, f"{name}: unknown metric type {metric_type!r}")
        return

    if metric_type == MetricType.BOOLEAN.value:
        if not isinstance(value, bool):
            issues.add("E_PROMOTION_METRIC_TYPE_INVALID", path, f"{name} must be boolean")
        return

    if not _is_number(value):
        issues.add("E_PROMOTION_METRIC_TYPE_INVALID", path, f"{name} must be a number")
        return
    if not math.isfinite(value):
        issues.add("E_PROMOTION_METRIC_NAN_OR_INVALID", path, f"{name} must be finite")
        return

    if value < 0:
        issues.add("E_PROMOTION_METRIC_NEGATIVE", path, f"{name} cannot be negative")

    minimum = _bound(spec, "minimum")
    if minimum is not None and value < minimum:
        issues.add("E_PROMOTION_METRIC_OUT_OF_RANGE", path, f"{name} must be >= {minimum:g}")

    maximum = _bound(spec, "maximum")
    if maximum is not None and value > maximum:
        issues.add("E_PROMOTION_METRIC_OUT_OF_RANGE", path, f"{name} must be <= {maximum:g}")

    if metric_type == MetricType.PERCENT.value and not 0 <= value <= 100:
        issues.add("E_PROMOTION_METRIC_OUT_OF_RANGE", path, f"{name} percent must be in 0..100")


def _check_record_shape(record: dict[str, Any], facts: PlanFacts, issues: IssueCollector) -> None:
    if not _text(record.get("promotionId")):
        issues.add("E_PROMOTION_RECORD_ID_MISSING", "record.promotionId", "promotionId is required")
    if not _text(record.get("approvedBy")):
        issues.add("E_PROMOTION_RECORD_APPROVED_BY_MISSING", "record.approvedBy", "approvedBy is required")
    if not is_iso8601(record.get("approvedAtUtc")):
        issues.add(
            "E_PROMOTION_RECORD_APPROVED_AT_INVALID",
            "record.approvedAtUtc",
            "approvedAtUtc must be an ISO-8601 timestamp",
        )
    if _text(record.get("fromStageId")) not in facts.stage_order:
        issues.add("E_PROMOTION_STAGE_FROM_INVALID", "record.fromStageId", "fromStageId is not a known stage")
    if _text(record.get("toStageId")) not in facts.stage_order:
        issues.add("E_PROMOTION_STAGE_TO_INVALID", "record.toStageId", "toStageId is not a known stage")
    if not isinstance(record.get("evidence"), dict):
        issues.add("E_PROMOTION_EVIDENCE_INVALID", "record.evidence", "evidence must be an object")


def _check_transition(record: dict[str, Any], facts: PlanFacts, issues: IssueCollector) -> None:
    from_stage = _text(record.get("fromStageId"))
    to_stage = _text(record.get("toStageId"))

    if facts.next_stage(from_stage) != to_stage or not to_stage:
        issues.add(
            "E_PROMOTION_STAGE_TRANSITION_INVALID",
            "record.toStageId",
            f"{from_stage or '<empty>'} -> {to_stage or '<empty>'} is not a single forward step",
        )
    if facts.active_stage_id and from_stage != facts.active_stage_id:
        issues.add(
            "E_PROMOTION_STAGE_FROM_MISMATCH",
            "record.fromStageId",
            f"fromStageId {from_stage or '<empty>'} is not the active stage {facts.active_stage_id}",
        )
    if not facts.promotion_mode_allowed:
        issues.add(
            "E_STAGE_PROMOTION_MODE_NOT_ALLOWED",
            "plan.promotionModeAllowed",
            "the stage plan does not allow promotion",
        )

    flag = facts.stage_to_scope_flag.get(to_stage)
    if to_stage in facts.stage_order and not flag:
        issues.add(
            "E_PROMOTION_STAGE_SCOPEFLAG_UNKNOWN",
            f"plan.stageToScopeFlag.{to_stage}",
            f"target stage {to_stage} is not mapped to a scope flag",
        )
    elif flag and facts.known_flags is None:
        issues.add(
            "E_SCOPEFLAGS_REGISTRY_UNREADABLE",
            f"plan.stageToScopeFlag.{to_stage}",
            f"scope flag {flag} cannot be confirmed without a readable registry",
        )
    elif flag and flag not in facts.known_flags:
        issues.add(
            "E_PROMOTION_STAGE_SCOPEFLAG_UNKNOWN",
            f"plan.stageToScopeFlag.{to_stage}",
            f"target stage {to_stage} maps to unregistered scope flag {flag}",
        )


def _check_evidence(
    record: dict[str, Any],
    policy: Any,
    issues: IssueCollector,
) -> None:
    to_stage = _text(record.get("toStageId"))
    evidence = record.get("evidence") if isinstance(record.get("evidence"), dict) else {}

    if not isinstance(policy, dict):
        issues.add("E_PROMOTION_POLICY_INVALID", "policy", "promotion policy must be an object")
        return
    specs = policy.get("metrics")
    if not isinstance(specs, dict):
        issues.add("E_PROMOTION_POLICY_INVALID", "policy.metrics", "metrics must be an object")
        specs = {}
    by_stage = policy.get("requiredMetricsByStage")
    if not isinstance(by_stage, dict):
        issues.add(
            "E_PROMOTION_POLICY_INVALID",
            "policy.requiredMetricsByStage",
            "requiredMetricsByStage must be an object",
        )
        return

    required = by_stage.get(to_stage)
    if not isinstance(required, list):
        issues.add(
            "E_PROMOTION_REQUIRED_METRICS_STAGE_UNDEFINED",
            f"policy.requiredMetricsByStage.{to_stage}",
            f"no required metric list for stage {to_stage or '<empty>'}",
        )
        return

    for name in sorted({_text(n) for n in required if _text(n)}):
        if name not in evidence:
            issues.add(
                "E_PROMOTION_REQUIRED_METRIC_MISSING",
                f"record.evidence.{name}",
                f"required metric {name} is missing",
            )
            continue
        check_metric(name, evidence[name], specs.get(name), issues)


def read_promotion(
    record: Any,
    policy: Any,
    facts: PlanFacts,
    issues: IssueCollector,
) -> bool:
    """
    Validate a promotion record against plan facts and a policy.

    Returns:
        The record's isActive value (False when unreadable)
    """
    document = as_document(record)
    if not isinstance(document, dict):
        issues.add("E_PROMOTION_RECORD_INVALID", "record", "promotion record must be an object")
        return False

    is_active = document.get("isActive", False)
    if not isinstance(is_active, bool):
        issues.add("E_PROMOTION_RECORD_IS_ACTIVE_INVALID", "record.isActive", "isActive must be boolean")
        return False
    if not is_active:
        logger.debug("Promotion record %s is inactive; nothing to validate", document.get("promotionId", ""))
        return False

    _check_record_shape(document, facts, issues)
    _check_transition(document, facts, issues)
    _check_evidence(document, as_document(policy), issues)
    return True


def validate_promotion(
    record: Any,
    policy: Any,
    plan: Any,
    scope_flags: Any = None,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Validate one promotion record.

    Issues in the plan itself are reported by validate_stage_plan(); here
    the plan only provides stage order, active stage and flag mapping.

    Args:
        record: Promotion record document
        policy: Promotion policy document (metrics + requiredMetricsByStage)
        plan: Stage plan document
        scope_flags: Scope flag registry document; without one an active
            record cannot confirm its target stage's flag
        tier: Tier to resolve the disposition for

    Returns:
        GateResult with token STAGE_PROMOTION_RECORD_VALID_OK
    """
    resolver = resolver or DispositionResolver()
    facts = read_plan(plan, IssueCollector(), scope_flags)
    issues = IssueCollector()
    is_active = read_promotion(record, policy, facts, issues)

    return resolver.evaluate(
        check="stage-promotion",
        token_name=TOKEN_NAME,
        fail_signal_code=FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details=_promotion_details(record, facts, is_active, not issues),
    )


def evaluate_stage_activation(
    plan: Any,
    record: Any,
    policy: Any,
    scope_flags: Any = None,
    enabled_flags: Iterable[str] | None = None,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Validate a stage plan and its promotion record together.

    Issues from both documents land in one result with token
    STAGE_ACTIVATION_OK. promotionMode is 1 only when both are clean.
    """
    resolver = resolver or DispositionResolver()
    issues = IssueCollector()
    facts = read_plan(plan, issues, scope_flags)
    if enabled_flags is not None:
        check_enabled_flags(facts, enabled_flags, issues)
    plan_clean = not issues
    record_issues = IssueCollector()
    is_active = read_promotion(record, policy, facts, record_issues)
    issues.extend(record_issues.sorted())

    return resolver.evaluate(
        check="stage-activation",
        token_name=ACTIVATION_TOKEN_NAME,
        fail_signal_code=FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details=_promotion_details(record, facts, is_active, plan_clean and not record_issues),
    )


def _promotion_details(record: Any, facts: PlanFacts, is_active: bool, valid: bool) -> dict[str, Any]:
    document = as_document(record)
    document = document if isinstance(document, dict) else {}
    promotion_mode = is_active and valid and facts.promotion_mode_allowed
    return {
        "activeStageId": facts.active_stage_id,
        "isActive": is_active,
        "fromStageId": _text(document.get("fromStageId")),
        "toStageId": _text(document.get("toStageId")),
        "promotionMode": 1 if promotion_mode else 0,
    }
