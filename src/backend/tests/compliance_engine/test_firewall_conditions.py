import pytest

from common.compliance_engine.models import FindingStatus
from common.compliance_engine.network import is_private_cidr, port_in_ranges


def _rule(label, *, action="ACCEPT", protocol="TCP", ports="", ipv4=None, ipv6=None, description="d"):
    return {
        "label": label,
        "action": action,
        "protocol": protocol,
        "ports": ports,
        "addresses": {"ipv4": ipv4 or [], "ipv6": ipv6 or []},
        "description": description,
    }


@pytest.fixture
def firewall(make_resource):
    def _make(inbound=None, outbound=None, *, inbound_policy="DROP", outbound_policy="ACCEPT", **kw):
        return make_resource(
            "firewall",
            specs={
                "inbound_rules_detail": inbound or [],
                "outbound_rules_detail": outbound or [],
                "inbound_policy": inbound_policy,
                "outbound_policy": outbound_policy,
            },
            **kw,
        )

    return _make


@pytest.mark.parametrize(
    "ports, expected",
    [("", True), ("22", True), ("80, 443", False), ("20-25", True), ("1-65535", True), ("x, 22", True)],
)
def test_port_in_ranges(ports, expected):
    assert port_in_ranges(22, ports) is expected


def test_is_private_cidr():
    assert is_private_cidr("10.1.0.0/16")
    assert is_private_cidr("192.168.1.5/32")
    assert is_private_cidr("172.20.0.0/16")
    assert not is_private_cidr("172.32.0.0/16")
    assert not is_private_cidr("0.0.0.0/0")
    assert not is_private_cidr("not-a-cidr")


def test_no_open_inbound_all_protocol_flags_every_default_port(firewall, make_rule, make_ctx, evaluate):
    fw = firewall([_rule("allow-everything", protocol="ALL", ports="", ipv4=["0.0.0.0/0"])])
    rule = make_rule("no_open_inbound", resource_types=["firewall"])

    res = evaluate(rule, fw, make_ctx([fw]))

    assert res.status == FindingStatus.NON_COMPLIANT
    for port in (22, 3389, 3306, 5432, 6379, 27017):
        assert f"Port {port} open to all" in res.detail
    assert "allow-everything" in res.detail


def test_no_open_inbound_ignores_restricted_and_drop_rules(firewall, make_rule, make_ctx, evaluate):
    fw = firewall(
        [
            _rule("office-ssh", ports="22", ipv4=["203.0.113.4/32"]),
            _rule("drop-ssh", action="DROP", ports="22", ipv4=["0.0.0.0/0"]),
            _rule("web", ports="80,443", ipv6=["::/0"]),
        ]
    )
    rule = make_rule("no_open_inbound", resource_types=["firewall"])

    assert evaluate(rule, fw, make_ctx([fw])).status == FindingStatus.COMPLIANT


def test_no_open_inbound_ipv6_wildcard_and_custom_ports(firewall, make_rule, make_ctx, evaluate):
    fw = firewall([_rule("web", ports="8000-8100", ipv6=["2000::/3"])])
    rule = make_rule("no_open_inbound", resource_types=["firewall"], config={"sensitive_ports": [8080]})

    res = evaluate(rule, fw, make_ctx([fw]))

    assert res.status == FindingStatus.NON_COMPLIANT
    assert "Port 8080" in res.detail


def test_no_open_inbound_accept_policy_without_rules(firewall, make_rule, make_ctx, evaluate):
    fw = firewall([], inbound_policy="ACCEPT")
    rule = make_rule("no_open_inbound", resource_types=["firewall"])

    assert evaluate(rule, fw, make_ctx([fw])).status == FindingStatus.NON_COMPLIANT


def test_no_open_inbound_without_rule_data_is_not_applicable(make_resource, make_rule, make_ctx, evaluate):
    fw = make_resource("firewall", specs={})
    rule = make_rule("no_open_inbound", resource_types=["firewall"])

    assert evaluate(rule, fw, make_ctx([fw])).status == FindingStatus.NOT_APPLICABLE


def test_rfc1918_lateral(firewall, make_rule, make_ctx, evaluate):
    rule = make_rule("firewall_rfc1918_lateral", resource_types=["firewall"])
    bad = firewall([_rule("vpc-db", ports="5432", ipv4=["10.0.0.0/8"])])
    good = firewall([_rule("vpc-web", ports="443", ipv4=["10.0.0.0/8"])])
    empty = firewall([])
    ctx = make_ctx([bad, good, empty])

    res = evaluate(rule, bad, ctx)
    assert res.status == FindingStatus.NON_COMPLIANT
    assert "port 5432" in res.detail
    assert evaluate(rule, good, ctx).status == FindingStatus.COMPLIANT
    assert evaluate(rule, empty, ctx).status == FindingStatus.NOT_APPLICABLE


def test_all_ports_allowed(firewall, make_rule, make_ctx, evaluate):
    rule = make_rule("firewall_all_ports_allowed", resource_types=["firewall"])
    fw = firewall(
        [
            _rule("ping", protocol="ICMP", ports=""),
            _rule("full-range", protocol="TCP", ports="1-65535"),
            _rule("web", protocol="TCP", ports="443"),
        ]
    )
    ctx = make_ctx([fw])

    res = evaluate(rule, fw, ctx)

    assert res.status == FindingStatus.NON_COMPLIANT
    assert "full-range" in res.detail
    assert "ping" not in res.detail


def test_all_ports_allowed_outbound_only_when_configured(firewall, make_rule, make_ctx, evaluate):
    fw = firewall([_rule("web", ports="443")], [_rule("egress", protocol="ALL")])
    default_rule = make_rule("firewall_all_ports_allowed", resource_types=["firewall"])
    outbound_rule = make_rule(
        "firewall_all_ports_allowed", resource_types=["firewall"], config={"check_outbound": True}
    )
    ctx = make_ctx([fw])

    assert evaluate(default_rule, fw, ctx).status == FindingStatus.COMPLIANT
    res = evaluate(outbound_rule, fw, ctx)
    assert res.status == FindingStatus.NON_COMPLIANT
    assert "Outbound" in res.detail


def test_all_ports_allowed_no_rules(firewall, make_rule, make_ctx, evaluate):
    fw = firewall([])
    rule = make_rule("firewall_all_ports_allowed", resource_types=["firewall"])
    assert evaluate(rule, fw, make_ctx([fw])).status == FindingStatus.NOT_APPLICABLE


def test_firewall_rules_check_policies_and_blocked_ports(make_resource, firewall, make_rule, make_ctx, evaluate):
    linode = make_resource(provider_id="500")
    fw = firewall(
        [_rule("ssh", ports="22", ipv4=["203.0.113.0/24"])],
        inbound_policy="ACCEPT",
        provider_id="31",
        label="prod-fw",
    )
    fw.specs["entities"] = [{"id": 500}]
    rule = make_rule(
        "firewall_rules_check",
        config={"required_inbound_policy": "DROP", "required_outbound_policy": "", "blocked_ports": [22]},
    )

    res = evaluate(rule, linode, make_ctx([linode, fw]))

    assert res.status == FindingStatus.NON_COMPLIANT
    assert "inbound policy is ACCEPT, expected DROP" in res.detail
    assert "port 22 is allowed inbound" in res.detail


def test_firewall_rules_check_source_ip_allowlist(make_resource, firewall, make_rule, make_ctx, evaluate):
    linode = make_resource(provider_id="500", specs={"attached_firewalls": [{"id": 31, "label": "prod-fw"}]})
    fw = firewall([_rule("ssh", ports="22", ipv4=["198.51.100.7/32"])], provider_id="31", label="prod-fw")
    allowed = make_rule("firewall_rules_check", config={"allowed_source_ips": ["198.51.100.7/32"]})
    other = make_rule("firewall_rules_check", config={"allowed_source_ips": ["192.0.2.1/32"]})
    ctx = make_ctx([linode, fw])

    assert evaluate(allowed, linode, ctx).status == FindingStatus.COMPLIANT
    assert evaluate(other, linode, ctx).status == FindingStatus.NON_COMPLIANT


def test_firewall_rules_check_without_firewall(make_resource, make_rule, make_ctx, evaluate):
    linode = make_resource()
    rule = make_rule("firewall_rules_check", config={"required_inbound_policy": "DROP"})

    assert evaluate(rule, linode, make_ctx([linode])).status == FindingStatus.NON_COMPLIANT


def test_firewall_rules_check_unknown_firewall_details(make_resource, make_rule, make_ctx, evaluate):
    linode = make_resource(specs={"attached_firewalls": [{"id": 999, "label": "elsewhere"}]})
    rule = make_rule("firewall_rules_check")

    assert evaluate(rule, linode, make_ctx([linode])).status == FindingStatus.NOT_APPLICABLE


def test_duplicate_rules_named_in_detail(firewall, make_rule, make_ctx, evaluate):
    fw = firewall(
        [
            _rule("A", ports="22", ipv4=["10.0.0.1/32", "10.0.0.2/32"]),
            _rule("B", ports="22", ipv4=["10.0.0.2/32", "10.0.0.1/32"]),
        ]
    )
    rule = make_rule("firewall_no_duplicate_rules", resource_types=["firewall"])

    res = evaluate(rule, fw, make_ctx([fw]))

    assert res.status == FindingStatus.NON_COMPLIANT
    assert 'Inbound rule "B" is identical to "A"' in res.detail


def test_duplicate_rules_ignore_port_list_spacing(firewall, make_rule, make_ctx, evaluate):
    fw = firewall([_rule("web", ports="22,80"), _rule("web-again", ports=" 22, 80 ")])
    rule = make_rule("firewall_no_duplicate_rules", resource_types=["firewall"])

    res = evaluate(rule, fw, make_ctx([fw]))

    assert res.status == FindingStatus.NON_COMPLIANT
    assert '"web-again" is identical to "web"' in res.detail


def test_duplicate_rules_across_directions_are_not_duplicates(firewall, make_rule, make_ctx, evaluate):
    same = _rule("A", ports="443", ipv4=["0.0.0.0/0"])
    fw = firewall([same], [dict(same, label="B")])
    rule = make_rule("firewall_no_duplicate_rules", resource_types=["firewall"])

    assert evaluate(rule, fw, make_ctx([fw])).status == FindingStatus.COMPLIANT


def test_rule_descriptions(firewall, make_rule, make_ctx, evaluate):
    rule = make_rule("firewall_rule_descriptions", resource_types=["firewall"])
    fw = firewall([_rule("ssh", description="Office SSH")], [_rule("egress", description="  ")])
    ctx = make_ctx([fw])

    res = evaluate(rule, fw, ctx)

    assert res.status == FindingStatus.NON_COMPLIANT
    assert '"egress"' in res.detail
    assert evaluate(rule, firewall([]), ctx).status == FindingStatus.NOT_APPLICABLE


def test_rules_tolerate_null_fields(firewall, make_rule, make_ctx, evaluate):
    fw = firewall([{"label": None, "action": "ACCEPT", "protocol": "TCP", "ports": None, "addresses": None}])
    rule = make_rule("no_open_inbound", resource_types=["firewall"])

    assert evaluate(rule, fw, make_ctx([fw])).status == FindingStatus.COMPLIANT
