from datetime import datetime, timedelta, timezone

import pytest

from common.compliance_engine.acknowledgements import (
    AcknowledgementLedger,
    acknowledge,
    new_note,
    notes_for,
    unacknowledge,
)
from common.compliance_engine.models import Finding, FindingNote, FindingStatus


def _finding(rule_id="rule-a", resource_id="linode-1", status=FindingStatus.NON_COMPLIANT, account_id="acct-1"):
    return Finding(rule_id=rule_id, resource_id=resource_id, account_id=account_id, status=status, detail="x")


def test_acknowledge_sets_fields_and_blanks_empty_note():
    at = datetime(2026, 1, 2, tzinfo=timezone.utc)

    acked = acknowledge(_finding(), note="  ", by="dana", at=at)

    assert acked.acknowledged is True
    assert acked.acknowledged_at == at
    assert acked.acknowledged_note is None
    assert acked.acknowledged_by == "dana"


def test_unacknowledge_clears_everything():
    cleared = unacknowledge(acknowledge(_finding(), note="known issue", by="dana"))

    assert cleared.acknowledged is False
    assert cleared.acknowledged_at is None
    assert cleared.acknowledged_note is None
    assert cleared.acknowledged_by is None


def test_ledger_restamps_by_rule_and_resource():
    at = datetime(2026, 1, 2, tzinfo=timezone.utc)
    previous = [
        acknowledge(_finding(resource_id="linode-1"), note="accepted risk", by="dana", at=at),
        _finding(resource_id="linode-2"),
        acknowledge(_finding(rule_id="rule-tfa", resource_id=None), by="sam", at=at),
    ]
    ledger = AcknowledgementLedger.capture(previous)

    assert len(ledger) == 2
    assert "rule-a:linode-1" in ledger
    assert "rule-tfa:" in ledger

    fresh = [
        _finding(resource_id="linode-1", status=FindingStatus.COMPLIANT),
        _finding(resource_id="linode-2"),
        _finding(rule_id="rule-tfa", resource_id=None),
    ]
    stamped = ledger.restamp(fresh)

    assert [f.acknowledged for f in stamped] == [True, False, True]
    assert stamped[0].acknowledged_note == "accepted risk"
    assert stamped[0].acknowledged_by == "dana"
    assert stamped[0].acknowledged_at == at
    assert stamped[0].status == FindingStatus.COMPLIANT
    assert stamped[0].id == fresh[0].id


def test_ledger_clears_acknowledgements_it_does_not_hold():
    stale = acknowledge(_finding(), note="n", by="b")

    (restamped,) = AcknowledgementLedger().restamp([stale])

    assert restamped.acknowledged is False
    assert restamped.acknowledged_note is None


def test_new_note_rejects_blank_text():
    with pytest.raises(ValueError):
        new_note(_finding(), "   ")


def test_new_note_copies_finding_identity():
    finding = _finding()
    note = new_note(finding, "  ticket OPS-12  ", by="dana")

    assert note.note == "ticket OPS-12"
    assert note.finding_id == finding.id
    assert note.ledger_key == finding.ledger_key


def test_notes_follow_the_rule_resource_pair_across_runs():
    old = _finding()
    new = _finding()
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    notes = [
        FindingNote(finding_id=new.id, account_id="acct-1", rule_id="rule-a", resource_id="linode-1", note="second", created_at=base + timedelta(hours=1)),
        FindingNote(finding_id=old.id, account_id="acct-1", rule_id="rule-a", resource_id="linode-1", note="first", created_at=base),
        FindingNote(finding_id="other", account_id="acct-2", rule_id="rule-a", resource_id="linode-1", note="other account", created_at=base),
        FindingNote(finding_id="other", account_id="acct-1", rule_id="rule-a", resource_id="linode-9", note="other resource", created_at=base),
    ]

    assert [n.note for n in notes_for(notes, new)] == ["first", "second"]
