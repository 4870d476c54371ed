from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from .models import (
    ComplianceRule,
    Finding,
    FindingStatus,
    ResourceComplianceHistoryEntry,
    ResourceHistoryResult,
    RuleBreakdownEntry,
    ScoreHistoryEntry,
    Severity,
)


def compliance_score(compliant: int, non_compliant: int) -> Optional[float]:
    scoreable = compliant + non_compliant
    if scoreable == 0:
        return None
    return round(compliant / scoreable * 100, 2)


def count_statuses(findings: Iterable[Finding]) -> Dict[FindingStatus, int]:
    counts = {status: 0 for status in FindingStatus}
    for finding in findings:
        counts[finding.status] += 1
    return counts


def build_score_history(
    findings: Sequence[Finding],
    rules: Sequence[ComplianceRule],
    *,
    account_id: str,
    evaluated_at: datetime,
) -> ScoreHistoryEntry:
    """Snapshot of one run. Acknowledged findings are excluded from every count but their own."""
    open_findings = [f for f in findings if not f.acknowledged]
    counts = count_statuses(open_findings)

    by_rule: Dict[str, List[Finding]] = {}
    for finding in open_findings:
        by_rule.setdefault(finding.rule_id, []).append(finding)

    breakdown = []
    for rule in rules:
        rule_counts = count_statuses(by_rule.get(rule.id, []))
        breakdown.append(
            RuleBreakdownEntry(
                rule_id=rule.id,
                rule_name=rule.name,
                severity=rule.severity,
                compliant=rule_counts[FindingStatus.COMPLIANT],
                non_compliant=rule_counts[FindingStatus.NON_COMPLIANT],
                not_applicable=rule_counts[FindingStatus.NOT_APPLICABLE],
            )
        )

    return ScoreHistoryEntry(
        account_id=account_id,
        evaluated_at=evaluated_at,
        total_results=len(open_findings),
        compliant_count=counts[FindingStatus.COMPLIANT],
        non_compliant_count=counts[FindingStatus.NON_COMPLIANT],
        not_applicable_count=counts[FindingStatus.NOT_APPLICABLE],
        acknowledged_count=len(findings) - len(open_findings),
        compliance_score=compliance_score(counts[FindingStatus.COMPLIANT], counts[FindingStatus.NON_COMPLIANT]),
        total_rules_evaluated=len(rules),
        rule_breakdown=breakdown,
    )


def build_resource_history(
    findings: Sequence[Finding],
    rules: Sequence[ComplianceRule],
    *,
    account_id: str,
    evaluated_at: datetime,
) -> List[ResourceComplianceHistoryEntry]:
    rules_by_id = {r.id: r for r in rules}
    grouped: Dict[str, List[Finding]] = {}
    for finding in findings:
        if finding.resource_id is not None:
            grouped.setdefault(finding.resource_id, []).append(finding)

    entries = []
    for resource_id, resource_findings in grouped.items():
        results = []
        for finding in resource_findings:
            rule = rules_by_id.get(finding.rule_id)
            results.append(
                ResourceHistoryResult(
                    rule_id=finding.rule_id,
                    rule_name=rule.name if rule is not None else "",
                    severity=rule.severity if rule is not None else Severity.INFO,
                    status=finding.status,
                    detail=finding.detail,
                    acknowledged=finding.acknowledged,
                )
            )
        entries.append(
            ResourceComplianceHistoryEntry(
                account_id=account_id,
                resource_id=resource_id,
                evaluated_at=evaluated_at,
                results=results,
            )
        )
    return entries
