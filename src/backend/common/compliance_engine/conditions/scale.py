from __future__ import annotations

from ..config import MinNodeCountConfig
from ..context import ConditionOutcome, EvaluationContext, compliant, non_compliant, not_applicable
from ..models import ComplianceRule, ConditionType, Resource
from ..registry import register_condition


@register_condition(ConditionType.MIN_NODE_COUNT, config_model=MinNodeCountConfig)
def min_node_count(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Cluster has at least the configured number of nodes."""
    cfg = rule.config_as(MinNodeCountConfig)
    count = resource.specs.get("node_count")
    if count is None:
        nodes = resource.specs.get("nodes")
        count = len(nodes) if isinstance(nodes, list) else 1
    count = int(count)
    if count >= cfg.min_count:
        return compliant(f"Cluster has {count} node(s).")
    return non_compliant(f"Cluster has {count} node(s); minimum required is {cfg.min_count}.")


@register_condition(ConditionType.LKE_CONTROL_PLANE_HA)
def lke_control_plane_ha(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Control plane high availability is enabled."""
    if resource.specs.get("high_availability"):
        return compliant("Control plane high availability is enabled for this cluster.")
    return non_compliant(
        "Control plane high availability is not enabled. Enable HA to ensure the API server "
        "remains available during node failures."
    )


@register_condition(ConditionType.LKE_AUDIT_LOGS_ENABLED)
def lke_audit_logs_enabled(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Control plane audit logging is enabled."""
    enabled = resource.specs.get("audit_logs_enabled")
    if enabled is None:
        return not_applicable("Audit logs status not available. Re-sync to fetch the latest cluster data.")
    if enabled:
        return compliant("Control plane audit logs are enabled for this cluster.")
    return non_compliant(
        "Control plane audit logs are disabled. Enable audit logging to track API activity "
        "for security and compliance purposes."
    )
