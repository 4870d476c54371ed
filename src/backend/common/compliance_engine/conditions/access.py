from __future__ import annotations

from typing import Any, Dict, List

from ..config import (
    BucketAclConfig,
    BucketCorsConfig,
    DbAllowlistConfig,
    DbPublicAccessConfig,
    NodeBalancerPortConfig,
    NodeBalancerProtocolConfig,
)
from ..context import ConditionOutcome, EvaluationContext, compliant, non_compliant, not_applicable
from ..models import ComplianceRule, ConditionType, Resource
from ..registry import register_condition

NODEBALANCER_NOT_SYNCED = "No port configurations found. Re-sync to fetch the latest NodeBalancer data."


@register_condition(ConditionType.DB_ALLOWLIST_CHECK, config_model=DbAllowlistConfig)
def db_allowlist_check(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Database allow list contains no unrestricted CIDRs."""
    allow_list = resource.specs.get("allow_list")
    if allow_list is None:
        return not_applicable("Allow list data not available. Re-sync to fetch the latest database settings.")
    cfg = rule.config_as(DbAllowlistConfig)
    entries = [str(cidr) for cidr in allow_list]
    forbidden = set(cfg.forbidden_cidrs)

    violations: List[str] = []
    if cfg.require_non_empty and not entries:
        violations.append("Allow list is empty; a non-empty allow list is required.")
    for cidr in entries:
        if cidr in forbidden:
            violations.append(f'Unrestricted CIDR "{cidr}" is in the allow list.')

    if violations:
        return non_compliant(" ".join(violations))
    if not entries:
        return compliant("Allow list is empty (access restricted by default).")
    noun = "entry" if len(entries) == 1 else "entries"
    return compliant(f"Allow list contains {len(entries)} {noun}: {', '.join(entries)}.")


@register_condition(ConditionType.DB_PUBLIC_ACCESS, config_model=DbPublicAccessConfig)
def db_public_access(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Database is not reachable from outside its VPC."""
    public_access = resource.specs.get("public_access")
    if public_access is None:
        return not_applicable("Public access data not available. Re-sync to fetch the latest database settings.")
    cfg = rule.config_as(DbPublicAccessConfig)
    if not public_access:
        return compliant("Database does not have public access enabled.")
    if cfg.allow_public_access:
        return compliant("Database has public access enabled (permitted by rule configuration).")
    return non_compliant("Database has public access enabled; it is reachable outside the VPC.")


@register_condition(ConditionType.BUCKET_ACL_CHECK, config_model=BucketAclConfig)
def bucket_acl_check(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Bucket ACL is not publicly readable or writable."""
    acl = resource.specs.get("acl")
    if acl is None:
        return not_applicable("ACL data not available. Re-sync resources to fetch bucket access settings.")
    cfg = rule.config_as(BucketAclConfig)
    if cfg.required_acl and acl != cfg.required_acl:
        return non_compliant(f'Bucket ACL is "{acl}", expected "{cfg.required_acl}".')
    if acl in cfg.forbidden_acls:
        return non_compliant(f'Bucket ACL is "{acl}", which is not permitted.')
    return compliant(f'Bucket ACL is "{acl}".')


@register_condition(ConditionType.BUCKET_CORS_CHECK, config_model=BucketCorsConfig)
def bucket_cors_check(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Bucket CORS setting matches the requirement."""
    cors_enabled = resource.specs.get("cors_enabled")
    if cors_enabled is None:
        return not_applicable("CORS data not available. Re-sync resources to fetch bucket access settings.")
    cfg = rule.config_as(BucketCorsConfig)
    if cfg.require_cors_disabled and cors_enabled:
        return non_compliant("CORS is enabled on this bucket; it must be disabled.")
    if cfg.require_cors_enabled and not cors_enabled:
        return non_compliant("CORS is disabled on this bucket; it must be enabled.")
    return compliant(f"CORS is {'enabled' if cors_enabled else 'disabled'}.")


def _port_configs(resource: Resource) -> List[Dict[str, Any]]:
    return [c for c in resource.specs.get("configs") or [] if isinstance(c, dict)]


@register_condition(ConditionType.NODEBALANCER_PROTOCOL_CHECK, config_model=NodeBalancerProtocolConfig)
def nodebalancer_protocol_check(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """NodeBalancer ports use permitted protocols."""
    configs = _port_configs(resource)
    if not configs:
        return not_applicable(NODEBALANCER_NOT_SYNCED)
    cfg = rule.config_as(NodeBalancerProtocolConfig)
    allowed = [p.lower() for p in cfg.allowed_protocols]
    forbidden = [p.lower() for p in cfg.forbidden_protocols]

    violations: List[str] = []
    for port_cfg in configs:
        protocol = str(port_cfg.get("protocol") or "").lower()
        port = port_cfg.get("port")
        if forbidden and protocol in forbidden:
            violations.append(f'Port {port} uses forbidden protocol "{protocol}"')
        elif allowed and protocol not in allowed:
            violations.append(f'Port {port} uses disallowed protocol "{protocol}" (allowed: {", ".join(allowed)})')

    if violations:
        return non_compliant("; ".join(violations) + ".")
    listing = ", ".join(f"port {c.get('port')} ({c.get('protocol')})" for c in configs)
    return compliant(f"All port configurations use compliant protocols: {listing}.")


@register_condition(ConditionType.NODEBALANCER_PORT_ALLOWLIST, config_model=NodeBalancerPortConfig)
def nodebalancer_port_allowlist(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """NodeBalancer listens only on approved ports."""
    configs = _port_configs(resource)
    if not configs:
        return not_applicable(NODEBALANCER_NOT_SYNCED)
    cfg = rule.config_as(NodeBalancerPortConfig)
    if not cfg.allowed_ports:
        return not_applicable("No allowed ports configured for this rule.")

    allowed = set(cfg.allowed_ports)
    violations = [
        f"Port {c.get('port')} is not in the allowed list" for c in configs if int(c.get("port") or 0) not in allowed
    ]
    allowed_text = ", ".join(str(p) for p in cfg.allowed_ports)
    if violations:
        return non_compliant("; ".join(violations) + f". Allowed: {allowed_text}.")
    ports = ", ".join(str(c.get("port")) for c in configs)
    return compliant(f"All configured ports ({ports}) are in the allowed list.")
