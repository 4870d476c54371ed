from __future__ import annotations

import logging
from typing import Iterable, Optional

from .composite import CompositeResolver, FindingArena
from .context import EvaluationContext
from .interpreter import ConditionInterpreter
from .models import ComplianceRule, EvaluationReport, FindingStatus

logger = logging.getLogger(__name__)


class ComplianceRunner:
    """Two-pass evaluation of an already-filtered rule set. Pure: no store access."""

    def __init__(self, interpreter: Optional[ConditionInterpreter] = None):
        self._interpreter = interpreter or ConditionInterpreter()

    def run(
        self,
        rules: Iterable[ComplianceRule],
        ctx: EvaluationContext,
        *,
        rule_ids: Optional[set[str]] = None,
    ) -> EvaluationReport:
        selected = [r for r in rules if rule_ids is None or r.id in rule_ids]
        base_rules = [r for r in selected if not r.is_composite]
        composite_rules = [r for r in selected if r.is_composite]

        base_findings = self._interpreter.evaluate(base_rules, ctx)
        resolver = CompositeResolver(
            selected,
            FindingArena(base_findings),
            account_id=ctx.account_id,
            evaluated_at=ctx.now,
        )
        composite_findings = resolver.resolve(composite_rules)
        findings = base_findings + composite_findings

        totals: dict[FindingStatus, int] = {}
        for finding in findings:
            totals[finding.status] = totals.get(finding.status, 0) + 1

        logger.info(
            "Evaluated %d rule(s) (%d composite) for account %s: %d finding(s)",
            len(selected),
            len(composite_rules),
            ctx.account_id,
            len(findings),
        )
        return EvaluationReport(
            account_id=ctx.account_id,
            evaluated_at=ctx.now,
            findings=findings,
            rules_evaluated=selected,
            totals=totals,
        )
