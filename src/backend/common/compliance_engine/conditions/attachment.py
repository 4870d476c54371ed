from __future__ import annotations

from ..context import ConditionOutcome, EvaluationContext, compliant, non_compliant
from ..models import ComplianceRule, ConditionType, Resource
from ..registry import register_condition


@register_condition(ConditionType.FIREWALL_ATTACHED)
def firewall_attached(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Instance is protected by at least one firewall."""
    firewalls = ctx.protecting_firewalls(resource)
    if not firewalls:
        return non_compliant("No firewall is attached to this Linode.")
    labels = ", ".join(str(fw["label"] or fw["id"]) for fw in firewalls)
    return compliant(f"Protected by firewall: {labels}")


@register_condition(ConditionType.FIREWALL_HAS_TARGETS)
def firewall_has_targets(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Firewall is attached to at least one entity."""
    count = resource.specs.get("entity_count")
    if count is None:
        count = len(resource.specs.get("entities") or [])
    if int(count) > 0:
        return compliant(f"Attached to {count} Linode(s).")
    return non_compliant("Firewall has no attached Linodes.")


@register_condition(ConditionType.VOLUME_ATTACHED)
def volume_attached(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Volume is attached to an instance."""
    linode_id = resource.specs.get("linode_id")
    if linode_id:
        return compliant(f"Attached to Linode ID {linode_id}.")
    return non_compliant("Volume is not attached to any Linode.")
