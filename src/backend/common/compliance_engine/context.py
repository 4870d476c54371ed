from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from .models import ComplianceRule, FindingStatus, Resource, utcnow
from .provider import LiveAccountProvider


class ConditionOutcome(BaseModel):
    status: FindingStatus
    detail: str
    resource_id: Optional[str] = None


def compliant(detail: str) -> ConditionOutcome:
    return ConditionOutcome(status=FindingStatus.COMPLIANT, detail=detail)


def non_compliant(detail: str) -> ConditionOutcome:
    return ConditionOutcome(status=FindingStatus.NON_COMPLIANT, detail=detail)


def not_applicable(detail: str) -> ConditionOutcome:
    return ConditionOutcome(status=FindingStatus.NOT_APPLICABLE, detail=detail)


def plural(count: int, singular: str, many: Optional[str] = None) -> str:
    if count == 1:
        return f"{count} {singular}"
    return f"{count} {many or singular + 's'}"


@dataclass(frozen=True)
class EvaluationContext:
    account_id: str
    resources: tuple[Resource, ...] = ()
    now: datetime = field(default_factory=utcnow)
    # None when the account has no API credential.
    provider: Optional[LiveAccountProvider] = None
    rules: tuple[ComplianceRule, ...] = ()

    def resources_of_type(self, resource_type: str) -> List[Resource]:
        return [r for r in self.resources if r.resource_type == resource_type]

    def firewalls(self) -> List[Resource]:
        return self.resources_of_type("firewall")

    def firewall_by_numeric_id(self) -> Dict[int, Resource]:
        out: Dict[int, Resource] = {}
        for fw in self.firewalls():
            fw_id = fw.numeric_id()
            if fw_id is not None:
                out[fw_id] = fw
        return out

    def protecting_firewalls(self, resource: Resource) -> List[Dict[str, object]]:
        """Firewalls protecting `resource`, as `{id, label, status}` dicts.

        Union of the resource's direct attachment list and firewalls that
        reference the resource in their `entities`, de-duplicated by numeric id.
        """
        attached: List[Dict[str, object]] = []
        seen: set[int] = set()
        for item in resource.specs.get("attached_firewalls") or []:
            fw_id = _as_int(item.get("id")) if isinstance(item, dict) else None
            if fw_id is None or fw_id in seen:
                continue
            seen.add(fw_id)
            attached.append({"id": fw_id, "label": item.get("label") or "", "status": item.get("status") or ""})

        target_id = resource.numeric_id()
        if target_id is not None:
            for fw in self.firewalls():
                fw_id = fw.numeric_id()
                if fw_id is None or fw_id in seen:
                    continue
                entities = fw.specs.get("entities") or []
                if any(isinstance(e, dict) and _as_int(e.get("id")) == target_id for e in entities):
                    seen.add(fw_id)
                    attached.append({"id": fw_id, "label": fw.label, "status": fw.status})
        return attached

    def rule_by_id(self, rule_id: str) -> Optional[ComplianceRule]:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None


def _as_int(value: object) -> Optional[int]:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
