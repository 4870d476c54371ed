"""Human follow-up on findings: acknowledgements and note threads."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from common.compliance_engine.acknowledgements import acknowledge, new_note, notes_for, unacknowledge
from common.compliance_engine.models import Finding, FindingNote, FindingStatus

from .store import ComplianceStore

logger = logging.getLogger(__name__)


def acknowledge_finding(
    store: ComplianceStore,
    finding_id: str,
    *,
    note: Optional[str] = None,
    by: Optional[str] = None,
) -> Finding:
    finding = acknowledge(store.get_finding(finding_id), note=note, by=by)
    store.update_finding(finding)
    logger.info("Finding %s (%s) acknowledged by %s", finding.id, finding.ledger_key, by or "unknown")
    return finding


def unacknowledge_finding(store: ComplianceStore, finding_id: str) -> Finding:
    finding = unacknowledge(store.get_finding(finding_id))
    store.update_finding(finding)
    return finding


def add_finding_note(store: ComplianceStore, finding_id: str, text: str, *, by: Optional[str] = None) -> FindingNote:
    note = new_note(store.get_finding(finding_id), text, by=by)
    store.add_note(note)
    return note


def list_finding_notes(store: ComplianceStore, finding_id: str) -> List[FindingNote]:
    finding = store.get_finding(finding_id)
    return notes_for(store.list_notes(finding.account_id), finding)


def summarize_findings(findings: Sequence[Finding]) -> Dict[str, int]:
    counts = {"total": len(findings)}
    for status in FindingStatus:
        counts[status.value] = sum(1 for f in findings if f.status == status)
    return counts
