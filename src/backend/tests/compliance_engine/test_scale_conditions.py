import pytest

from common.compliance_engine.models import FindingStatus


@pytest.mark.parametrize(
    "specs, expected",
    [
        ({"node_count": 3}, FindingStatus.COMPLIANT),
        ({"node_count": 1}, FindingStatus.NON_COMPLIANT),
        ({"nodes": [{"id": 1}, {"id": 2}]}, FindingStatus.COMPLIANT),
        ({}, FindingStatus.NON_COMPLIANT),
    ],
)
def test_min_node_count(make_resource, make_rule, make_ctx, evaluate, specs, expected):
    rule = make_rule("min_node_count", resource_types=["lke_cluster"], config={"min_count": 2})
    cluster = make_resource("lke_cluster", specs=specs)

    assert evaluate(rule, cluster, make_ctx([cluster])).status == expected


def test_min_node_count_message(make_resource, make_rule, make_ctx, evaluate):
    rule = make_rule("min_node_count", resource_types=["lke_cluster"], config={"min_count": 3})
    cluster = make_resource("lke_cluster", specs={"node_count": 2})

    res = evaluate(rule, cluster, make_ctx([cluster]))

    assert res.detail == "Cluster has 2 node(s); minimum required is 3."


def test_control_plane_ha(make_resource, make_rule, make_ctx, evaluate):
    rule = make_rule("lke_control_plane_ha", resource_types=["lke_cluster"])
    ha = make_resource("lke_cluster", specs={"high_availability": True})
    single = make_resource("lke_cluster", specs={})
    ctx = make_ctx([ha, single])

    assert evaluate(rule, ha, ctx).status == FindingStatus.COMPLIANT
    assert evaluate(rule, single, ctx).status == FindingStatus.NON_COMPLIANT


def test_audit_logs(make_resource, make_rule, make_ctx, evaluate):
    rule = make_rule("lke_audit_logs_enabled", resource_types=["lke_cluster"])
    on = make_resource("lke_cluster", specs={"audit_logs_enabled": True})
    off = make_resource("lke_cluster", specs={"audit_logs_enabled": False})
    unknown = make_resource("lke_cluster")
    ctx = make_ctx([on, off, unknown])

    assert evaluate(rule, on, ctx).status == FindingStatus.COMPLIANT
    assert evaluate(rule, off, ctx).status == FindingStatus.NON_COMPLIANT
    assert evaluate(rule, unknown, ctx).status == FindingStatus.NOT_APPLICABLE
