"""
Stage plan validation.

A stage plan fixes the rollout order (baseline first), names the active
stage, maps each stage to the scope flag that owns it and says whether
promotion records may be applied at all.

Failure codes:
    E_ROLLOUT_PLAN_INVALID                       plan is not an object
    E_ROLLOUT_PLAN_STAGES_INVALID                stages not a non-empty list of unique ids
    E_ROLLOUT_PLAN_ACTIVE_STAGE_MISSING          activeStageId absent or empty
    E_ROLLOUT_PLAN_ACTIVE_STAGE_UNKNOWN          activeStageId not in stages
    E_ROLLOUT_PLAN_PROMOTION_MODE_ALLOWED_INVALID  promotionModeAllowed not boolean
    E_ROLLOUT_PLAN_STAGE_SCOPEFLAG_MAP_INVALID   stageToScopeFlag not an object
    E_ROLLOUT_PLAN_STAGE_SCOPEFLAG_STAGE_UNKNOWN mapping key is not a stage
    E_ROLLOUT_PLAN_SCOPEFLAG_VALUE_INVALID       mapping value not string/null
    E_ROLLOUT_PLAN_SCOPEFLAG_UNKNOWN             mapped flag not in the registry
    E_ROLLOUT_PLAN_SCOPEFLAG_REQUIRED            non-baseline active stage has no flag
    E_SCOPEFLAGS_REGISTRY_UNREADABLE             registry absent
    E_SCOPEFLAGS_REGISTRY_INVALID                registry malformed
    E_STAGE_SCOPEFLAG_DISABLED                   active stage's flag is not enabled
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from opsgate.disposition import DispositionResolver, IssueCollector
from opsgate.documents import as_document
from opsgate.schema import DEFAULT_STAGE_ORDER, GateResult, Tier

logger = logging.getLogger(__name__)

TOKEN_NAME = "STAGE_PLAN_VALID_OK"
FAIL_SIGNAL_CODE = "E_STAGE_ROLLOUT_INVALID"


@dataclass
class PlanFacts:
    """Normalized view of a plan, usable even when the plan has issues."""

    stage_order: list[str] = field(default_factory=lambda: list(DEFAULT_STAGE_ORDER))
    active_stage_id: str = ""
    promotion_mode_allowed: bool = False
    stage_to_scope_flag: dict[str, str | None] = field(default_factory=dict)
    known_flags: set[str] | None = None  # None: registry unreadable

    @property
    def required_scope_flag(self) -> str | None:
        return self.stage_to_scope_flag.get(self.active_stage_id)

    def next_stage(self, stage_id: str) -> str | None:
        if stage_id not in self.stage_order:
            return None
        index = self.stage_order.index(stage_id)
        if index + 1 >= len(self.stage_order):
            return None
        return self.stage_order[index + 1]


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def read_scope_flag_ids(registry: Any, issues: IssueCollector) -> set[str] | None:
    """
    Return the flag ids of a ScopeFlag registry, reporting malformed rows.

    An absent registry is reported and yields None, so that no mapped flag
    can pass as registered.
    """
    if registry is None:
        issues.add(
            "E_SCOPEFLAGS_REGISTRY_UNREADABLE",
            "scopeFlags",
            "scope flag registry is missing or unreadable",
        )
        return None
    document = as_document(registry)
    flags = document.get("flags") if isinstance(document, dict) else None
    if not isinstance(flags, list):
        issues.add("E_SCOPEFLAGS_REGISTRY_INVALID", "scopeFlags.flags", "flags must be an array")
        return set()

    ids: set[str] = set()
    for index, row in enumerate(flags):
        flag_id = _text(row.get("flagId")) if isinstance(row, dict) else ""
        if not flag_id:
            issues.add(
                "E_SCOPEFLAGS_REGISTRY_INVALID",
                f"scopeFlags.flags[{index}].flagId",
                "flag row must be an object with a non-empty flagId",
            )
            continue
        ids.add(flag_id)
    return ids


def read_plan(
    plan: Any,
    issues: IssueCollector,
    scope_flags: Any = None,
) -> PlanFacts:
    """
    Validate a stage plan document and return its normalized facts.

    Issues are added to the collector; the facts hold whatever could be
    read so that promotion checks can still run against a flawed plan.
    """
    facts = PlanFacts(known_flags=read_scope_flag_ids(scope_flags, issues))
    document = as_document(plan)
    if not isinstance(document, dict):
        issues.add("E_ROLLOUT_PLAN_INVALID", "plan", "stage plan must be an object")
        return facts

    if "stages" in document:
        stages = document["stages"]
        names = [_text(s) for s in stages] if isinstance(stages, list) else []
        if not names or not all(names) or len(set(names)) != len(names):
            issues.add(
                "E_ROLLOUT_PLAN_STAGES_INVALID",
                "plan.stages",
                "stages must be a non-empty list of unique stage ids",
            )
        else:
            facts.stage_order = names

    active = _text(document.get("activeStageId"))
    if not active:
        issues.add("E_ROLLOUT_PLAN_ACTIVE_STAGE_MISSING", "plan.activeStageId", "activeStageId is required")
    elif active not in facts.stage_order:
        issues.add(
            "E_ROLLOUT_PLAN_ACTIVE_STAGE_UNKNOWN",
            "plan.activeStageId",
            f"activeStageId {active!r} is not one of {facts.stage_order}",
        )
    facts.active_stage_id = active

    allowed = document.get("promotionModeAllowed")
    if not isinstance(allowed, bool):
        issues.add(
            "E_ROLLOUT_PLAN_PROMOTION_MODE_ALLOWED_INVALID",
            "plan.promotionModeAllowed",
            "promotionModeAllowed must be boolean",
        )
    else:
        facts.promotion_mode_allowed = allowed

    mapping = document.get("stageToScopeFlag", {})
    if not isinstance(mapping, dict):
        issues.add(
            "E_ROLLOUT_PLAN_STAGE_SCOPEFLAG_MAP_INVALID",
            "plan.stageToScopeFlag",
            "stageToScopeFlag must be an object",
        )
        mapping = {}

    for stage_id in sorted(mapping):
        value = mapping[stage_id]
        path = f"plan.stageToScopeFlag.{stage_id}"
        if stage_id not in facts.stage_order:
            issues.add("E_ROLLOUT_PLAN_STAGE_SCOPEFLAG_STAGE_UNKNOWN", path, f"{stage_id} is not a stage")
            continue
        if value is None:
            facts.stage_to_scope_flag[stage_id] = None
            continue
        if not _text(value):
            issues.add("E_ROLLOUT_PLAN_SCOPEFLAG_VALUE_INVALID", path, "flag must be a non-empty string or null")
            continue
        flag = _text(value)
        if facts.known_flags is not None and flag not in facts.known_flags:
            issues.add("E_ROLLOUT_PLAN_SCOPEFLAG_UNKNOWN", path, f"scope flag {flag} is not registered")
        facts.stage_to_scope_flag[stage_id] = flag

    baseline = facts.stage_order[0] if facts.stage_order else ""
    if active in facts.stage_order and active != baseline and not facts.required_scope_flag:
        issues.add(
            "E_ROLLOUT_PLAN_SCOPEFLAG_REQUIRED",
            f"plan.stageToScopeFlag.{active}",
            f"active stage {active} must be owned by a scope flag",
        )
    return facts


def check_enabled_flags(facts: PlanFacts, enabled_flags: Iterable[str], issues: IssueCollector) -> None:
    """The active stage's owning flag must be among the enabled flags."""
    enabled = {flag.strip() for flag in enabled_flags if flag and flag.strip()}
    flag = facts.required_scope_flag
    if flag and flag not in enabled:
        issues.add(
            "E_STAGE_SCOPEFLAG_DISABLED",
            f"enabledFlags.{flag}",
            f"active stage {facts.active_stage_id} requires scope flag {flag} to be enabled",
        )


def validate_stage_plan(
    plan: Any,
    scope_flags: Any = None,
    enabled_flags: Iterable[str] | None = None,
    tier: Tier | str = Tier.RELEASE,
    resolver: DispositionResolver | None = None,
) -> GateResult:
    """
    Validate a stage plan against the ScopeFlag registry.

    Args:
        plan: Stage plan document
        scope_flags: Scope flag registry document; None is reported as
            E_SCOPEFLAGS_REGISTRY_UNREADABLE
        enabled_flags: Optional enabled flag ids; when given, the active
            stage's owning flag must be one of them
        tier: Tier to resolve the disposition for

    Returns:
        GateResult with token STAGE_PLAN_VALID_OK
    """
    resolver = resolver or DispositionResolver()
    issues = IssueCollector()
    facts = read_plan(plan, issues, scope_flags)
    if enabled_flags is not None:
        check_enabled_flags(facts, enabled_flags, issues)

    return resolver.evaluate(
        check="stage-plan",
        token_name=TOKEN_NAME,
        fail_signal_code=FAIL_SIGNAL_CODE,
        tier=tier,
        issues=issues.sorted(),
        details={
            "activeStageId": facts.active_stage_id,
            "promotionModeAllowed": facts.promotion_mode_allowed,
            "requiredScopeFlag": facts.required_scope_flag or "",
            "stageOrder": facts.stage_order,
        },
    )
