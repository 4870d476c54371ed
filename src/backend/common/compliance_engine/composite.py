"""Second pass: boolean composition of first-pass findings.

Composites read from a `FindingArena` built from non-composite findings only,
so a composite that references another composite sees no findings.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .config import CompositeConfig
from .models import ComplianceRule, Finding, FindingStatus

logger = logging.getLogger(__name__)

C = FindingStatus.COMPLIANT
NC = FindingStatus.NON_COMPLIANT
NA = FindingStatus.NOT_APPLICABLE

OPERATORS = ("AND", "OR", "NOT", "IF_THEN")


class FindingArena:
    """Read-only index of first-pass findings keyed by `(rule_id, resource_id | None)`."""

    def __init__(self, findings: Iterable[Finding]):
        self._cells: Dict[Tuple[str, Optional[str]], List[Finding]] = {}
        self._by_rule: Dict[str, List[Finding]] = {}
        for finding in findings:
            self._cells.setdefault((finding.rule_id, finding.resource_id), []).append(finding)
            self._by_rule.setdefault(finding.rule_id, []).append(finding)

    def cell(self, rule_id: str, resource_id: Optional[str]) -> List[Finding]:
        return list(self._cells.get((rule_id, resource_id), ()))

    def findings_for(self, rule_id: str) -> List[Finding]:
        return list(self._by_rule.get(rule_id, ()))

    def account_findings(self, rule_id: str) -> List[Finding]:
        return self.cell(rule_id, None)

    def resource_ids(self, rule_ids: Sequence[str]) -> List[str]:
        seen: Dict[str, None] = {}
        for rule_id in rule_ids:
            for finding in self._by_rule.get(rule_id, ()):
                if finding.resource_id is not None:
                    seen.setdefault(finding.resource_id, None)
        return list(seen)


def all_of(statuses: Sequence[FindingStatus]) -> FindingStatus:
    if statuses and all(s == C for s in statuses):
        return C
    if any(s == NC for s in statuses):
        return NC
    return NA


def any_of(statuses: Sequence[FindingStatus]) -> FindingStatus:
    if any(s == C for s in statuses):
        return C
    if statuses and not any(s == NA for s in statuses):
        return NC
    return NA


def negate(status: FindingStatus) -> FindingStatus:
    if status == C:
        return NC
    if status == NC:
        return C
    return NA


class CompositeResolver:
    def __init__(
        self,
        rules: Iterable[ComplianceRule],
        arena: FindingArena,
        *,
        account_id: str,
        evaluated_at: datetime,
    ):
        self._rules = {r.id: r for r in rules}
        self._arena = arena
        self._account_id = account_id
        self._evaluated_at = evaluated_at

    def resolve(self, composites: Iterable[ComplianceRule]) -> List[Finding]:
        findings: List[Finding] = []
        for rule in composites:
            findings.extend(self.resolve_rule(rule))
        return findings

    def resolve_rule(self, rule: ComplianceRule) -> List[Finding]:
        try:
            cfg = rule.config_as(CompositeConfig)
        except ValidationError as exc:
            logger.warning("Composite rule %s has invalid configuration: %s", rule.id, exc)
            return [self._finding(rule, None, NA, "Composite rule configuration is invalid.")]

        operator = (cfg.operator or "AND").upper()
        if operator == "IF_THEN":
            return self._if_then(rule, cfg)
        if operator == "NOT":
            return self._not(rule, cfg)
        if operator in ("AND", "OR"):
            return self._combine(rule, cfg, operator)
        return [self._finding(rule, None, NA, f'Unknown composite operator "{cfg.operator}".')]

    def _finding(
        self, rule: ComplianceRule, resource_id: Optional[str], status: FindingStatus, detail: str
    ) -> Finding:
        return Finding(
            rule_id=rule.id,
            resource_id=resource_id,
            account_id=self._account_id,
            status=status,
            detail=detail,
            evaluated_at=self._evaluated_at,
        )

    def _name(self, rule_id: str) -> str:
        rule = self._rules.get(rule_id)
        return rule.name if rule is not None else rule_id

    def _unknown(self, rule_ids: Iterable[str]) -> List[str]:
        return [rid for rid in rule_ids if rid not in self._rules]

    def _status(self, rule_id: str, resource_id: Optional[str]) -> FindingStatus:
        """Collapsed status of one sub-rule for one group.

        Account-level findings stand in for resources the sub-rule did not
        evaluate, so account checks apply to every resource group.
        """
        cell = self._arena.cell(rule_id, resource_id) if resource_id is not None else []
        if not cell:
            cell = self._arena.account_findings(rule_id)
        return all_of([f.status for f in cell]) if cell else NA

    def _groups(self, rule_ids: Sequence[str]) -> Optional[List[Optional[str]]]:
        resource_ids = self._arena.resource_ids(rule_ids)
        if resource_ids:
            return list(resource_ids)
        if any(self._arena.account_findings(rid) for rid in rule_ids):
            return [None]
        return None

    def _combine(self, rule: ComplianceRule, cfg: CompositeConfig, operator: str) -> List[Finding]:
        rule_ids = list(cfg.rule_ids)
        if not rule_ids:
            return [self._finding(rule, None, NA, f"{operator} composite rule has no sub-rules specified.")]
        unknown = self._unknown(rule_ids)
        if unknown:
            return [
                self._finding(rule, None, NA, f"Composite rule references unknown sub-rule(s): {', '.join(unknown)}.")
            ]
        groups = self._groups(rule_ids)
        if groups is None:
            return [self._finding(rule, None, NA, "No sub-rule results to combine.")]

        names = [self._name(rid) for rid in rule_ids]
        findings: List[Finding] = []
        for resource_id in groups:
            statuses = [self._status(rid, resource_id) for rid in rule_ids]
            breakdown = "; ".join(f"{n}: {s.value}" for n, s in zip(names, statuses))
            if operator == "AND":
                status = all_of(statuses)
                detail = (
                    f"All conditions passed: {', '.join(names)}"
                    if status == C
                    else f"AND not satisfied. Sub-rule statuses: {breakdown}"
                )
            else:
                status = any_of(statuses)
                detail = (
                    f"OR passed, at least one condition met: {', '.join(names)}"
                    if status == C
                    else f"OR not satisfied. Sub-rule statuses: {breakdown}"
                )
            findings.append(self._finding(rule, resource_id, status, detail))
        return findings

    def _not(self, rule: ComplianceRule, cfg: CompositeConfig) -> List[Finding]:
        if not cfg.rule_ids:
            return [self._finding(rule, None, NA, "NOT composite rule has no sub-rule specified.")]
        target = cfg.rule_ids[0]
        if self._unknown([target]):
            return [self._finding(rule, None, NA, f"Composite rule references unknown sub-rule(s): {target}.")]
        subs = self._arena.findings_for(target)
        if not subs:
            return [self._finding(rule, None, NA, "No results found for sub-rule.")]
        return [self._finding(rule, sub.resource_id, negate(sub.status), f"NOT({sub.detail})") for sub in subs]

    def _if_then(self, rule: ComplianceRule, cfg: CompositeConfig) -> List[Finding]:
        if_id, then_id = cfg.if_rule_id, cfg.then_rule_id
        if not if_id or not then_id or self._unknown([if_id, then_id]):
            return [self._finding(rule, None, NA, "IF_THEN composite rule references missing sub-rules.")]
        groups = self._groups([if_id, then_id])
        if groups is None:
            return [self._finding(rule, None, NA, "No resources to evaluate for IF_THEN composite rule.")]

        if_name, then_name = self._name(if_id), self._name(then_id)
        findings: List[Finding] = []
        for resource_id in groups:
            if self._status(if_id, resource_id) != NC:
                findings.append(
                    self._finding(rule, resource_id, NA, f"IF condition ({if_name}) not triggered; rule does not apply.")
                )
            elif self._status(then_id, resource_id) == C:
                findings.append(
                    self._finding(
                        rule,
                        resource_id,
                        C,
                        f"IF condition ({if_name}) triggered and THEN condition ({then_name}) is satisfied.",
                    )
                )
            else:
                findings.append(
                    self._finding(
                        rule,
                        resource_id,
                        NC,
                        f"IF condition ({if_name}) triggered but THEN condition ({then_name}) failed.",
                    )
                )
        return findings
