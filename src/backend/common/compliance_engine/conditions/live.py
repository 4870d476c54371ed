"""Condition kinds that query the provider API at evaluation time.

Every failure path degrades to `not_applicable`: a missing credential, a
provider error, or a feature the resource does not support.
"""

from __future__ import annotations

from typing import List

from ..config import EmptyConfig, LoginAllowedIpsConfig, TfaUsersConfig
from ..context import ConditionOutcome, EvaluationContext, compliant, non_compliant, not_applicable
from ..models import ComplianceRule, ConditionType, Resource
from ..network import WILDCARD_CIDRS
from ..provider import ProviderError
from ..registry import register_condition
from .state import parse_timestamp

NO_TOKEN = "No API token available to {what}."


@register_condition(ConditionType.TFA_USERS, scope="account", live=True, config_model=TfaUsersConfig)
def tfa_users(rule: ComplianceRule, ctx: EvaluationContext) -> List[ConditionOutcome]:
    """Every account user has two-factor authentication enabled."""
    if ctx.provider is None:
        return [not_applicable(NO_TOKEN.format(what="check user TFA status"))]
    cfg = rule.config_as(TfaUsersConfig)
    try:
        users = ctx.provider.list_users()
    except ProviderError as exc:
        return [not_applicable(f"Could not fetch users: {exc}")]

    excluded = set(cfg.exclude_user_types)
    users = [u for u in users if u.get("user_type") not in excluded]
    if not users:
        return [not_applicable("No users found to evaluate.")]

    outcomes: List[ConditionOutcome] = []
    for user in users:
        username = user.get("username") or "unknown"
        if user.get("tfa_enabled") is True:
            outcomes.append(compliant(f'User "{username}" has TFA enabled.'))
        else:
            outcomes.append(non_compliant(f'User "{username}" does not have TFA enabled.'))
    return outcomes


@register_condition(
    ConditionType.LOGIN_ALLOWED_IPS,
    scope="account",
    live=True,
    config_model=LoginAllowedIpsConfig,
)
def login_allowed_ips(rule: ComplianceRule, ctx: EvaluationContext) -> List[ConditionOutcome]:
    """Account logins originate from allowed IP addresses."""
    if ctx.provider is None:
        return [not_applicable(NO_TOKEN.format(what="check login history"))]
    cfg = rule.config_as(LoginAllowedIpsConfig)
    try:
        logins = ctx.provider.list_logins()
    except ProviderError as exc:
        return [not_applicable(f"Could not fetch login history: {exc}")]

    if not logins:
        return [not_applicable("No login history found to evaluate.")]
    if not cfg.allowed_ips:
        return [not_applicable("No allowed IPs configured for this rule.")]

    allowed = set(cfg.allowed_ips)
    outcomes: List[ConditionOutcome] = []
    for login in logins:
        ip = login.get("ip") or "unknown"
        when = parse_timestamp(login.get("datetime")) if login.get("datetime") else None
        label = f"{login.get('username') or 'unknown'} from {ip}"
        if when is not None:
            label = f"{label} on {when.strftime('%Y-%m-%d %H:%M UTC')}"
        if ip in allowed:
            outcomes.append(compliant(f"Login allowed: {label}; IP {ip} is in the allowed list."))
        else:
            outcomes.append(non_compliant(f"Login from unexpected IP: {label}; IP {ip} is not in the allowed list."))
    return outcomes


@register_condition(
    ConditionType.LKE_CONTROL_PLANE_ACL,
    live=True,
    config_model=EmptyConfig,
    resource_types=("lke_cluster",),
)
def lke_control_plane_acl(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Cluster control plane ACL is enabled and restricted."""
    if ctx.provider is None:
        return not_applicable(NO_TOKEN.format(what="check control plane ACL"))
    try:
        payload = ctx.provider.get_control_plane_acl(resource.provider_id or resource.id)
    except ProviderError as exc:
        if exc.status == 400:
            return not_applicable("This cluster does not support Control Plane ACL.")
        if exc.status == 404:
            return not_applicable("Cluster not found when checking Control Plane ACL.")
        return not_applicable(f"Could not fetch control plane ACL: {exc}")

    acl = (payload.get("acl") if isinstance(payload, dict) else None) or {}
    if not isinstance(acl, dict):
        return not_applicable(f"Unexpected control plane ACL payload: {acl!r}")
    if not acl.get("enabled", False):
        return non_compliant(
            "Control plane ACL is not enabled. The Kubernetes API server is accessible from any IP."
        )
    addresses = acl.get("addresses") or {}
    if not isinstance(addresses, dict):
        return not_applicable(f"Unexpected control plane ACL addresses: {addresses!r}")
    cidrs = [*(addresses.get("ipv4") or []), *(addresses.get("ipv6") or [])]
    open_entries = [cidr for cidr in cidrs if cidr in WILDCARD_CIDRS]
    if open_entries:
        return non_compliant(
            f"Control plane ACL is enabled but allows unrestricted access: {', '.join(open_entries)}. "
            "Remove wildcard entries and restrict to known CIDRs."
        )
    return compliant(
        f"Control plane ACL is enabled and restricted to: {', '.join(cidrs) or 'no addresses (deny all)'}"
    )
