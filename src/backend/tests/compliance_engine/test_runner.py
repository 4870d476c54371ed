from common.compliance_engine.models import FindingStatus
from common.compliance_engine.runner import ComplianceRunner


def test_run_appends_composite_findings_after_base(make_resource, make_rule, make_ctx, now):
    linode = make_resource(specs={"tags": ["owner:a"], "backups": {"enabled": False}})
    tags = make_rule("has_tags", rule_id="tags")
    backups = make_rule("linode_backups_enabled", rule_id="backups")
    combo = make_rule("composite", rule_id="combo", resource_types=[], config={"rule_ids": ["tags", "backups"]})

    report = ComplianceRunner().run([combo, tags, backups], make_ctx([linode]))

    assert [f.rule_id for f in report.findings] == ["tags", "backups", "combo"]
    assert report.findings[-1].status == FindingStatus.NON_COMPLIANT
    assert report.findings[-1].resource_id == linode.id
    assert report.totals == {FindingStatus.COMPLIANT: 1, FindingStatus.NON_COMPLIANT: 2}
    assert report.evaluated_at == now
    assert [r.id for r in report.rules_evaluated] == ["combo", "tags", "backups"]


def test_run_can_be_limited_to_rule_ids(make_resource, make_rule, make_ctx):
    linode = make_resource(specs={"tags": []})
    rules = [make_rule("has_tags", rule_id="tags"), make_rule("linode_not_offline", rule_id="offline")]

    report = ComplianceRunner().run(rules, make_ctx([linode]), rule_ids={"offline"})

    assert [f.rule_id for f in report.findings] == ["offline"]
    assert report.findings[0].status == FindingStatus.NOT_APPLICABLE
