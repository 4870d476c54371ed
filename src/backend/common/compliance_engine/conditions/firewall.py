from __future__ import annotations

from typing import Dict, List

from ..config import (
    AllPortsAllowedConfig,
    FirewallRulesCheckConfig,
    LateralMovementConfig,
    NoOpenInboundConfig,
)
from ..context import (
    ConditionOutcome,
    EvaluationContext,
    compliant,
    non_compliant,
    not_applicable,
    plural,
)
from ..models import ComplianceRule, ConditionType, Resource
from ..network import PORTLESS_PROTOCOLS, FirewallRule, is_private_cidr, parse_rules
from ..registry import register_condition

RULES_NOT_SYNCED = "Firewall rule data not available. Re-sync to fetch the latest firewall data."


def _has_rule_data(resource: Resource) -> bool:
    specs = resource.specs
    return any(key in specs for key in ("inbound_rules_detail", "outbound_rules_detail", "inbound_policy"))


@register_condition(ConditionType.NO_OPEN_INBOUND, config_model=NoOpenInboundConfig)
def no_open_inbound(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """No sensitive port is reachable from the whole internet."""
    if not _has_rule_data(resource):
        return not_applicable(RULES_NOT_SYNCED)
    cfg = rule.config_as(NoOpenInboundConfig)
    inbound = parse_rules(resource.specs.get("inbound_rules_detail"))

    violations: List[str] = []
    for fw_rule in inbound:
        if not fw_rule.is_accept() or not fw_rule.is_tcp_or_all():
            continue
        if not fw_rule.is_open_to_world():
            continue
        for port in cfg.sensitive_ports:
            if fw_rule.covers_port(port):
                violations.append(f"Port {port} open to all (rule: {fw_rule.display_label})")

    if violations:
        return non_compliant("; ".join(violations))
    policy = str(resource.specs.get("inbound_policy") or "").upper()
    if policy == "ACCEPT" and not inbound:
        return non_compliant("Inbound policy is ACCEPT with no rules; all traffic allowed.")
    return compliant("No unrestricted inbound access detected.")


@register_condition(ConditionType.FIREWALL_RFC1918_LATERAL, config_model=LateralMovementConfig)
def firewall_rfc1918_lateral(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Sensitive ports do not accept traffic from private address ranges."""
    cfg = rule.config_as(LateralMovementConfig)
    inbound = parse_rules(resource.specs.get("inbound_rules_detail"))
    if not inbound:
        return not_applicable("No inbound rules to evaluate.")

    violations: List[str] = []
    for fw_rule in inbound:
        if not fw_rule.is_accept() or not fw_rule.is_tcp_or_all():
            continue
        private_sources = [cidr for cidr in fw_rule.addresses.ipv4 if is_private_cidr(cidr)]
        if not private_sources:
            continue
        for port in cfg.sensitive_ports:
            if fw_rule.covers_port(port):
                violations.append(
                    f'Rule "{fw_rule.display_label}": port {port} accepts traffic from private range(s) '
                    f"{', '.join(private_sources)}"
                )

    if violations:
        return non_compliant(f"Potential lateral movement: {'; '.join(violations)}.")
    return compliant("No inbound rules accept RFC-1918 traffic on sensitive ports.")


@register_condition(ConditionType.FIREWALL_ALL_PORTS_ALLOWED, config_model=AllPortsAllowedConfig)
def firewall_all_ports_allowed(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """No rule opens the full port range."""
    cfg = rule.config_as(AllPortsAllowedConfig)
    actions = {a.upper() for a in cfg.actions}
    directions = []
    if cfg.check_inbound:
        directions.append(("Inbound", parse_rules(resource.specs.get("inbound_rules_detail"))))
    if cfg.check_outbound:
        directions.append(("Outbound", parse_rules(resource.specs.get("outbound_rules_detail"))))

    total_checked = sum(len(rules) for _, rules in directions)
    if total_checked == 0:
        return not_applicable("No rules to evaluate.")

    violations: List[str] = []
    for direction, rules in directions:
        for fw_rule in rules:
            if fw_rule.normalized_action not in actions:
                continue
            if fw_rule.normalized_protocol in PORTLESS_PROTOCOLS:
                continue
            if fw_rule.covers_all_ports():
                violations.append(
                    f'{direction} rule "{fw_rule.display_label}": allows all ports '
                    f'(protocol: {fw_rule.normalized_protocol or "ALL"}, ports: "{fw_rule.ports or "any"}")'
                )

    if violations:
        return non_compliant("; ".join(violations))
    return compliant(f"No rules allow all ports across {plural(total_checked, 'rule')} checked.")


@register_condition(ConditionType.FIREWALL_RULES_CHECK, config_model=FirewallRulesCheckConfig)
def firewall_rules_check(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Firewalls protecting an instance meet the configured policy requirements."""
    protecting = ctx.protecting_firewalls(resource)
    if not protecting:
        return non_compliant("No firewall is attached to this Linode.")

    known = ctx.firewall_by_numeric_id()
    firewalls = [known[fw["id"]] for fw in protecting if fw["id"] in known]
    if not firewalls:
        return not_applicable("Attached firewall details are not in the inventory. Re-sync to fetch firewall data.")

    cfg = rule.config_as(FirewallRulesCheckConfig)
    required_in = (cfg.required_inbound_policy or "").upper()
    required_out = (cfg.required_outbound_policy or "").upper()

    violations: List[str] = []
    for fw in firewalls:
        name = fw.label or fw.id
        inbound_policy = str(fw.specs.get("inbound_policy") or "ACCEPT").upper()
        outbound_policy = str(fw.specs.get("outbound_policy") or "ACCEPT").upper()
        if required_in and inbound_policy != required_in:
            violations.append(f'Firewall "{name}": inbound policy is {inbound_policy}, expected {required_in}')
        if required_out and outbound_policy != required_out:
            violations.append(f'Firewall "{name}": outbound policy is {outbound_policy}, expected {required_out}')

        for fw_rule in parse_rules(fw.specs.get("inbound_rules_detail")):
            if not fw_rule.is_accept() or not fw_rule.is_tcp_or_all():
                continue
            for port in cfg.blocked_ports:
                if fw_rule.covers_port(port):
                    violations.append(
                        f'Firewall "{name}": port {port} is allowed inbound (rule: {fw_rule.display_label})'
                    )
            open_to_world = fw_rule.is_open_to_world()
            if cfg.require_no_open_ports and open_to_world:
                violations.append(
                    f'Firewall "{name}": rule "{fw_rule.display_label}" allows unrestricted inbound traffic'
                )
            if cfg.allowed_source_ips and not open_to_world:
                allowed = set(cfg.allowed_source_ips)
                if any(ip not in allowed for ip in fw_rule.all_addresses()):
                    violations.append(
                        f'Firewall "{name}": rule "{fw_rule.display_label}" allows traffic from IPs '
                        "not in the allowed list"
                    )

    if violations:
        return non_compliant("; ".join(violations))
    labels = ", ".join(fw.label or fw.id for fw in firewalls)
    return compliant(f"Firewall rules compliant ({labels})")


def _duplicates(rules: List[FirewallRule], direction: str) -> List[str]:
    seen: Dict[str, str] = {}
    found: List[str] = []
    for fw_rule in rules:
        fingerprint = fw_rule.fingerprint()
        if fingerprint in seen:
            found.append(f'{direction} rule "{fw_rule.display_label}" is identical to "{seen[fingerprint]}"')
        else:
            seen[fingerprint] = fw_rule.display_label
    return found


@register_condition(ConditionType.FIREWALL_NO_DUPLICATE_RULES)
def firewall_no_duplicate_rules(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """No two rules in the same direction are identical."""
    inbound = parse_rules(resource.specs.get("inbound_rules_detail"))
    outbound = parse_rules(resource.specs.get("outbound_rules_detail"))
    total = len(inbound) + len(outbound)
    if total == 0:
        return not_applicable("No rules to evaluate.")

    duplicates = _duplicates(inbound, "Inbound") + _duplicates(outbound, "Outbound")
    if duplicates:
        return non_compliant(f"Duplicate rules detected: {'; '.join(duplicates)}.")
    return compliant(f"No duplicate rules found across {plural(total, 'rule')}.")


@register_condition(ConditionType.FIREWALL_RULE_DESCRIPTIONS)
def firewall_rule_descriptions(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Every firewall rule carries a description."""
    rules = parse_rules(resource.specs.get("inbound_rules_detail")) + parse_rules(
        resource.specs.get("outbound_rules_detail")
    )
    if not rules:
        return not_applicable("No rules to evaluate.")

    undescribed = [r for r in rules if not (r.description or "").strip()]
    if undescribed:
        names = ", ".join(f'"{r.display_label}"' for r in undescribed)
        verb = "is" if len(undescribed) == 1 else "are"
        return non_compliant(f"{plural(len(undescribed), 'rule')} {verb} missing a description: {names}.")
    return compliant(f"All {plural(len(rules), 'rule')} have descriptions set.")
