from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from common.compliance_engine.models import (
    AccountRuleOverride,
    ComplianceProfile,
    ComplianceRule,
    Finding,
    FindingNote,
    ResourceComplianceHistoryEntry,
    ScoreHistoryEntry,
)


class NotFoundError(LookupError):
    pass


class ComplianceStore(Protocol):
    def list_rules(self) -> List[ComplianceRule]: ...

    def get_rule(self, rule_id: str) -> ComplianceRule: ...

    def upsert_rule(self, rule: ComplianceRule) -> None: ...

    def list_profiles(self) -> List[ComplianceProfile]: ...

    def get_profile(self, profile_id: str) -> ComplianceProfile: ...

    def upsert_profile(self, profile: ComplianceProfile) -> None: ...

    def list_overrides(self, account_id: str) -> List[AccountRuleOverride]: ...

    def upsert_override(self, override: AccountRuleOverride) -> None: ...

    def replace_overrides(self, account_id: str, overrides: Iterable[AccountRuleOverride]) -> None: ...

    def list_findings(self, account_id: str) -> List[Finding]: ...

    def get_finding(self, finding_id: str) -> Finding: ...

    def replace_findings(self, account_id: str, findings: Iterable[Finding]) -> None:
        """Swap the account's whole finding set in one step."""
        ...

    def update_finding(self, finding: Finding) -> None: ...

    def append_score_history(self, entry: ScoreHistoryEntry) -> None: ...

    def list_score_history(self, account_id: str, *, limit: int = 90) -> List[ScoreHistoryEntry]: ...

    def append_resource_history(self, entries: Iterable[ResourceComplianceHistoryEntry]) -> None: ...

    def list_resource_history(self, resource_id: str, *, limit: int = 90) -> List[ResourceComplianceHistoryEntry]: ...

    def add_note(self, note: FindingNote) -> None: ...

    def list_notes(self, account_id: str) -> List[FindingNote]: ...

    def delete_note(self, note_id: str) -> None: ...

    def set_last_evaluated_at(self, account_id: str, evaluated_at: datetime) -> None: ...

    def get_last_evaluated_at(self, account_id: str) -> Optional[datetime]: ...


class InMemoryComplianceStore:
    """Thread-safe in-process store. Every read returns copies."""

    def __init__(
        self,
        *,
        rules: Iterable[ComplianceRule] = (),
        profiles: Iterable[ComplianceProfile] = (),
    ) -> None:
        self._lock = threading.RLock()
        self._rules: Dict[str, ComplianceRule] = {r.id: r for r in rules}
        self._profiles: Dict[str, ComplianceProfile] = {p.id: p for p in profiles}
        self._overrides: Dict[str, Dict[str, AccountRuleOverride]] = {}
        self._findings: Dict[str, List[Finding]] = {}
        self._score_history: Dict[str, List[ScoreHistoryEntry]] = {}
        self._resource_history: Dict[str, List[ResourceComplianceHistoryEntry]] = {}
        self._notes: Dict[str, FindingNote] = {}
        self._last_evaluated_at: Dict[str, datetime] = {}

    # rules / profiles

    def list_rules(self) -> List[ComplianceRule]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._rules.values()]

    def get_rule(self, rule_id: str) -> ComplianceRule:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                raise NotFoundError(f"Rule '{rule_id}' not found")
            return rule.model_copy(deep=True)

    def upsert_rule(self, rule: ComplianceRule) -> None:
        with self._lock:
            self._rules[rule.id] = rule.model_copy(deep=True)

    def list_profiles(self) -> List[ComplianceProfile]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._profiles.values()]

    def get_profile(self, profile_id: str) -> ComplianceProfile:
        with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                raise NotFoundError(f"Profile '{profile_id}' not found")
            return profile.model_copy(deep=True)

    def upsert_profile(self, profile: ComplianceProfile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile.model_copy(deep=True)

    # overrides

    def list_overrides(self, account_id: str) -> List[AccountRuleOverride]:
        with self._lock:
            return [o.model_copy() for o in self._overrides.get(account_id, {}).values()]

    def upsert_override(self, override: AccountRuleOverride) -> None:
        with self._lock:
            self._overrides.setdefault(override.account_id, {})[override.rule_id] = override.model_copy()

    def replace_overrides(self, account_id: str, overrides: Iterable[AccountRuleOverride]) -> None:
        rows = {o.rule_id: o.model_copy() for o in overrides if o.account_id == account_id}
        with self._lock:
            self._overrides[account_id] = rows

    # findings

    def list_findings(self, account_id: str) -> List[Finding]:
        with self._lock:
            return [f.model_copy() for f in self._findings.get(account_id, [])]

    def get_finding(self, finding_id: str) -> Finding:
        with self._lock:
            for findings in self._findings.values():
                for finding in findings:
                    if finding.id == finding_id:
                        return finding.model_copy()
        raise NotFoundError(f"Finding '{finding_id}' not found")

    def replace_findings(self, account_id: str, findings: Iterable[Finding]) -> None:
        new_set = [f.model_copy() for f in findings]
        with self._lock:
            self._findings[account_id] = new_set

    def update_finding(self, finding: Finding) -> None:
        with self._lock:
            findings = self._findings.get(finding.account_id, [])
            for idx, existing in enumerate(findings):
                if existing.id == finding.id:
                    findings[idx] = finding.model_copy()
                    return
        raise NotFoundError(f"Finding '{finding.id}' not found")

    # history

    def append_score_history(self, entry: ScoreHistoryEntry) -> None:
        with self._lock:
            self._score_history.setdefault(entry.account_id, []).append(entry.model_copy(deep=True))

    def list_score_history(self, account_id: str, *, limit: int = 90) -> List[ScoreHistoryEntry]:
        """Most recent `limit` entries, oldest first."""
        with self._lock:
            entries = sorted(self._score_history.get(account_id, []), key=lambda e: e.evaluated_at)
            return [e.model_copy(deep=True) for e in entries[-limit:]] if limit > 0 else []

    def append_resource_history(self, entries: Iterable[ResourceComplianceHistoryEntry]) -> None:
        with self._lock:
            for entry in entries:
                self._resource_history.setdefault(entry.resource_id, []).append(entry.model_copy(deep=True))

    def list_resource_history(self, resource_id: str, *, limit: int = 90) -> List[ResourceComplianceHistoryEntry]:
        """Oldest `limit` entries for the resource, oldest first."""
        with self._lock:
            entries = sorted(self._resource_history.get(resource_id, []), key=lambda e: e.evaluated_at)
            return [e.model_copy(deep=True) for e in entries[:limit]] if limit > 0 else []

    # notes

    def add_note(self, note: FindingNote) -> None:
        with self._lock:
            self._notes[note.id] = note.model_copy()

    def list_notes(self, account_id: str) -> List[FindingNote]:
        with self._lock:
            return [n.model_copy() for n in self._notes.values() if n.account_id == account_id]

    def delete_note(self, note_id: str) -> None:
        with self._lock:
            if self._notes.pop(note_id, None) is None:
                raise NotFoundError(f"Note '{note_id}' not found")

    # accounts

    def set_last_evaluated_at(self, account_id: str, evaluated_at: datetime) -> None:
        with self._lock:
            self._last_evaluated_at[account_id] = evaluated_at

    def get_last_evaluated_at(self, account_id: str) -> Optional[datetime]:
        with self._lock:
            return self._last_evaluated_at.get(account_id)
