from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Iterable, List, Optional, Union

from pydantic import ValidationError

from .context import ConditionOutcome, EvaluationContext, not_applicable
from .models import ComplianceRule, Finding, Resource
from .provider import ProviderError
from .registry import ConditionRegistry, ConditionSpec, registry as default_registry

logger = logging.getLogger(__name__)

UNRECOGNIZED_DETAIL = "Rule condition not recognized."

# Errors a condition may raise on malformed specs or config. Anything else propagates, except from live kinds.
DATA_ERRORS = (ValidationError, TypeError, ValueError, KeyError, ProviderError)


@dataclass
class _Slot:
    rule: ComplianceRule
    resource: Optional[Resource]
    result: Union[List[ConditionOutcome], Future]


class ConditionInterpreter:
    """First pass: evaluates every non-composite rule against the account.

    Live kinds are submitted to a bounded thread pool; each task that has not
    finished by `live_timeout_seconds` is reported as not_applicable.
    """

    def __init__(
        self,
        *,
        conditions: Optional[ConditionRegistry] = None,
        max_workers: int = 4,
        live_timeout_seconds: float = 30.0,
    ):
        self._conditions = conditions or default_registry
        self._max_workers = max(1, int(max_workers))
        self._live_timeout = float(live_timeout_seconds)

    def applicable_resources(self, rule: ComplianceRule, ctx: EvaluationContext) -> List[Resource]:
        spec = self._conditions.get(rule.condition_type)
        types = spec.resource_types if spec is not None and spec.resource_types is not None else set(rule.resource_types)
        return [r for r in ctx.resources if r.resource_type in types]

    def evaluate(self, rules: Iterable[ComplianceRule], ctx: EvaluationContext) -> List[Finding]:
        slots: List[_Slot] = []
        executor: Optional[ThreadPoolExecutor] = None
        try:
            for rule in rules:
                if rule.is_composite:
                    continue
                spec = self._conditions.get(rule.condition_type)
                if spec is None:
                    logger.warning("Unrecognized condition_type %r on rule %s", rule.condition_type, rule.id)
                    for resource in self.applicable_resources(rule, ctx):
                        slots.append(_Slot(rule, resource, [not_applicable(UNRECOGNIZED_DETAIL)]))
                    continue

                targets: List[Optional[Resource]] = (
                    [None] if spec.scope == "account" else list(self.applicable_resources(rule, ctx))
                )
                for resource in targets:
                    if spec.live:
                        if executor is None:
                            executor = ThreadPoolExecutor(
                                max_workers=self._max_workers, thread_name_prefix="live-check"
                            )
                        result: Union[List[ConditionOutcome], Future] = executor.submit(
                            self._call, spec, rule, resource, ctx
                        )
                    else:
                        result = self._call(spec, rule, resource, ctx)
                    slots.append(_Slot(rule, resource, result))

            pending = [s.result for s in slots if isinstance(s.result, Future)]
            if pending:
                _, not_done = wait(pending, timeout=self._live_timeout)
                if not_done:
                    logger.warning(
                        "%d live check(s) for account %s exceeded %.0fs", len(not_done), ctx.account_id, self._live_timeout
                    )
        finally:
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)

        findings: List[Finding] = []
        for slot in slots:
            for outcome in self._resolve(slot):
                findings.append(
                    Finding(
                        rule_id=slot.rule.id,
                        resource_id=slot.resource.id if slot.resource is not None else outcome.resource_id,
                        account_id=ctx.account_id,
                        status=outcome.status,
                        detail=outcome.detail,
                        evaluated_at=ctx.now,
                    )
                )
        return findings

    def _resolve(self, slot: _Slot) -> List[ConditionOutcome]:
        if not isinstance(slot.result, Future):
            return slot.result
        future = slot.result
        if future.cancelled() or not future.done():
            return [not_applicable(f"Live check timed out after {self._live_timeout:g}s.")]
        return future.result()

    def _call(
        self,
        spec: ConditionSpec,
        rule: ComplianceRule,
        resource: Optional[Resource],
        ctx: EvaluationContext,
    ) -> List[ConditionOutcome]:
        try:
            if spec.scope == "account":
                return list(spec.evaluate(rule, ctx))
            return [spec.evaluate(rule, resource, ctx)]
        except DATA_ERRORS as exc:
            target = resource.id if resource is not None else "account"
            logger.exception("Condition %s failed for rule %s on %s", rule.condition_type, rule.id, target)
            return [not_applicable(f"Could not evaluate this rule: {exc}")]
        except Exception as exc:
            # A failed live check only affects its own finding.
            if not spec.live:
                raise
            target = resource.id if resource is not None else "account"
            logger.exception("Live condition %s failed for rule %s on %s", rule.condition_type, rule.id, target)
            return [not_applicable(f"Live check failed: {exc!r}")]
