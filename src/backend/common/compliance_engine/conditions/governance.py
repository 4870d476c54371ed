from __future__ import annotations

import re

from ..config import ApprovedRegionsConfig, PlanTierByTagConfig
from ..context import ConditionOutcome, EvaluationContext, compliant, non_compliant, not_applicable
from ..models import ComplianceRule, ConditionType, Resource
from ..registry import register_condition

_PLAN_CLASS_PREFIX = re.compile(r"^g\d+-")
_PLAN_SIZE_SUFFIX = re.compile(r"-\d+$")


def plan_tier(plan_type: str) -> str:
    """`g6-dedicated-8` -> `dedicated`."""
    return _PLAN_SIZE_SUFFIX.sub("", _PLAN_CLASS_PREFIX.sub("", plan_type or ""))


@register_condition(ConditionType.APPROVED_REGIONS, config_model=ApprovedRegionsConfig)
def approved_regions(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Resource is deployed in an approved region."""
    cfg = rule.config_as(ApprovedRegionsConfig)
    if not cfg.approved_regions:
        return not_applicable("No approved regions configured for this rule.")
    if not resource.region:
        return not_applicable("Resource has no region information.")
    if resource.region in cfg.approved_regions:
        return compliant(f'Region "{resource.region}" is approved.')
    return non_compliant(
        f'Region "{resource.region}" is not in the approved list: {", ".join(cfg.approved_regions)}.'
    )


@register_condition(
    ConditionType.LINODE_PLAN_TIER_BY_TAG,
    config_model=PlanTierByTagConfig,
)
def linode_plan_tier_by_tag(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Tagged instances run on an approved plan tier."""
    cfg = rule.config_as(PlanTierByTagConfig)
    tag_key = cfg.tag.strip().lower()
    wanted_value = cfg.tag_value.strip().lower()
    if not tag_key or not cfg.approved_tiers:
        return not_applicable("Rule is not fully configured (tag key or approved tiers missing).")

    tags = [str(t).lower() for t in resource.specs.get("tags") or []]
    if wanted_value:
        matched = f"{tag_key}:{wanted_value}" in tags
    else:
        matched = any(t == tag_key or t.startswith(f"{tag_key}:") for t in tags)
    if not matched:
        shown = f"{tag_key}:{wanted_value}" if wanted_value else tag_key
        return not_applicable(f'Linode does not have the tag "{shown}"; rule does not apply.')

    plan = resource.plan_type or ""
    tier = plan_tier(plan)
    approved = ", ".join(cfg.approved_tiers)
    if any(tier.startswith(prefix) for prefix in cfg.approved_tiers):
        return compliant(f'Plan "{plan}" (tier: {tier}) is in the approved tiers: {approved}.')
    return non_compliant(
        f'Plan "{plan}" (tier: {tier}) is not in the approved tiers: {approved}. '
        f"Upgrade to a {' or '.join(cfg.approved_tiers)} instance."
    )
