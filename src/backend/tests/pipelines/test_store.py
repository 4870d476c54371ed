from datetime import datetime, timedelta, timezone

import pytest

from common.compliance_engine.models import (
    AccountRuleOverride,
    Finding,
    FindingNote,
    FindingStatus,
    ResourceComplianceHistoryEntry,
    ScoreHistoryEntry,
)
from pipelines.store import InMemoryComplianceStore, NotFoundError

BASE = datetime(2026, 2, 1, tzinfo=timezone.utc)


def _finding(account_id="acct-1", resource_id="r1"):
    return Finding(rule_id="rule", resource_id=resource_id, account_id=account_id, status=FindingStatus.COMPLIANT, detail="ok")


def test_reads_return_copies(rules):
    store = InMemoryComplianceStore(rules=rules)

    store.list_rules()[0].name = "mutated"
    store.get_rule("tags").is_active = False

    assert store.get_rule("tags").name == "Resources are tagged"
    assert store.get_rule("tags").is_active is True


def test_unknown_ids_raise_not_found():
    store = InMemoryComplianceStore()

    for call in (
        lambda: store.get_rule("nope"),
        lambda: store.get_profile("nope"),
        lambda: store.get_finding("nope"),
        lambda: store.update_finding(_finding()),
        lambda: store.delete_note("nope"),
    ):
        with pytest.raises(NotFoundError):
            call()


def test_replace_findings_is_per_account():
    store = InMemoryComplianceStore()
    store.replace_findings("acct-1", [_finding(), _finding(resource_id="r2")])
    store.replace_findings("acct-2", [_finding(account_id="acct-2")])

    store.replace_findings("acct-1", [_finding(resource_id="r3")])

    assert [f.resource_id for f in store.list_findings("acct-1")] == ["r3"]
    assert len(store.list_findings("acct-2")) == 1


def test_update_finding_in_place():
    store = InMemoryComplianceStore()
    finding = _finding()
    store.replace_findings("acct-1", [finding])

    store.update_finding(finding.model_copy(update={"acknowledged": True}))

    assert store.get_finding(finding.id).acknowledged is True


def test_score_history_returns_latest_entries_oldest_first():
    store = InMemoryComplianceStore()
    for day in (3, 1, 2, 0):
        store.append_score_history(ScoreHistoryEntry(account_id="acct-1", evaluated_at=BASE + timedelta(days=day)))

    latest = store.list_score_history("acct-1", limit=2)

    assert [e.evaluated_at.day for e in latest] == [3, 4]


def test_resource_history_returns_earliest_entries_oldest_first():
    store = InMemoryComplianceStore()
    store.append_resource_history(
        ResourceComplianceHistoryEntry(account_id="acct-1", resource_id="r1", evaluated_at=BASE + timedelta(days=d))
        for d in (2, 0, 1)
    )

    entries = store.list_resource_history("r1", limit=2)

    assert [e.evaluated_at.day for e in entries] == [1, 2]
    assert store.list_resource_history("unknown") == []


def test_notes_are_scoped_to_account():
    store = InMemoryComplianceStore()
    note = FindingNote(finding_id="f1", account_id="acct-1", rule_id="rule", note="hello")
    store.add_note(note)
    store.add_note(FindingNote(finding_id="f2", account_id="acct-2", rule_id="rule", note="other"))

    assert [n.note for n in store.list_notes("acct-1")] == ["hello"]
    store.delete_note(note.id)
    assert store.list_notes("acct-1") == []


def test_replace_overrides_drops_previous_rows(rules):
    store = InMemoryComplianceStore(rules=rules)
    store.upsert_override(AccountRuleOverride(account_id="acct-1", rule_id="tags", is_active=False))
    store.replace_overrides("acct-1", [AccountRuleOverride(account_id="acct-1", rule_id="tfa", is_active=False)])

    assert [o.rule_id for o in store.list_overrides("acct-1")] == ["tfa"]
