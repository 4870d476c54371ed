from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .models import Finding, FindingNote, utcnow


@dataclass(frozen=True)
class Acknowledgement:
    acknowledged_at: Optional[datetime]
    note: Optional[str]
    by: Optional[str]


class AcknowledgementLedger:
    """Acknowledgements keyed by `"{rule_id}:{resource_id or ''}"`.

    Captured from the outgoing finding set before a run replaces it, then
    re-stamped onto the incoming set. Keys that do not reappear are dropped.
    """

    def __init__(self, entries: Optional[Dict[str, Acknowledgement]] = None):
        self._entries: Dict[str, Acknowledgement] = dict(entries or {})

    @classmethod
    def capture(cls, findings: Iterable[Finding]) -> "AcknowledgementLedger":
        entries: Dict[str, Acknowledgement] = {}
        for finding in findings:
            if finding.acknowledged:
                entries[finding.ledger_key] = Acknowledgement(
                    acknowledged_at=finding.acknowledged_at,
                    note=finding.acknowledged_note,
                    by=finding.acknowledged_by,
                )
        return cls(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[Acknowledgement]:
        return self._entries.get(key)

    def restamp(self, findings: Iterable[Finding]) -> List[Finding]:
        out: List[Finding] = []
        for finding in findings:
            ack = self._entries.get(finding.ledger_key)
            if ack is None:
                out.append(
                    finding.model_copy(
                        update={
                            "acknowledged": False,
                            "acknowledged_at": None,
                            "acknowledged_note": None,
                            "acknowledged_by": None,
                        }
                    )
                )
            else:
                out.append(
                    finding.model_copy(
                        update={
                            "acknowledged": True,
                            "acknowledged_at": ack.acknowledged_at,
                            "acknowledged_note": ack.note,
                            "acknowledged_by": ack.by,
                        }
                    )
                )
        return out


def acknowledge(
    finding: Finding,
    *,
    note: Optional[str] = None,
    by: Optional[str] = None,
    at: Optional[datetime] = None,
) -> Finding:
    return finding.model_copy(
        update={
            "acknowledged": True,
            "acknowledged_at": at or utcnow(),
            "acknowledged_note": (note or "").strip() or None,
            "acknowledged_by": by,
        }
    )


def unacknowledge(finding: Finding) -> Finding:
    return finding.model_copy(
        update={"acknowledged": False, "acknowledged_at": None, "acknowledged_note": None, "acknowledged_by": None}
    )


def new_note(finding: Finding, text: str, *, by: Optional[str] = None) -> FindingNote:
    body = (text or "").strip()
    if not body:
        raise ValueError("Note text must not be blank")
    return FindingNote(
        finding_id=finding.id,
        account_id=finding.account_id,
        rule_id=finding.rule_id,
        resource_id=finding.resource_id,
        note=body,
        created_by=by,
    )


def notes_for(notes: Iterable[FindingNote], finding: Finding) -> List[FindingNote]:
    """Notes attached to this finding or to earlier findings for the same rule/resource pair."""
    key = finding.ledger_key
    matched = [
        n for n in notes if n.finding_id == finding.id or (n.account_id == finding.account_id and n.ledger_key == key)
    ]
    return sorted(matched, key=lambda n: n.created_at)
