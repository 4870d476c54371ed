from datetime import datetime, timezone

import pytest

from common.compliance_engine.models import ComplianceProfile, ComplianceRule, Resource, Severity
from pipelines.data_source import InMemoryInventorySource
from pipelines.evaluation import ComplianceEvaluationPipeline, EvaluationSettings
from pipelines.store import InMemoryComplianceStore


class StubProvider:
    def __init__(self, users=None):
        self.users = users or []

    def list_users(self):
        return list(self.users)

    def list_logins(self):
        return []

    def get_control_plane_acl(self, cluster_id):
        return {"acl": {"enabled": True, "addresses": {"ipv4": ["10.0.0.0/8"]}}}


@pytest.fixture
def run_times():
    base = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
    return [base.replace(hour=9 + i) for i in range(4)]


@pytest.fixture
def rules():
    return [
        ComplianceRule(
            id="tags",
            name="Resources are tagged",
            resource_types=["linode"],
            condition_type="has_tags",
            severity=Severity.INFO,
        ),
        ComplianceRule(
            id="backups",
            name="Backups enabled",
            resource_types=["linode"],
            condition_type="linode_backups_enabled",
            severity=Severity.CRITICAL,
        ),
        ComplianceRule(
            id="tfa",
            name="Users have TFA",
            resource_types=[],
            condition_type="tfa_users",
        ),
        ComplianceRule(
            id="regions",
            name="Approved regions",
            resource_types=["linode"],
            condition_type="approved_regions",
            condition_config={"approved_regions": ["us-east"]},
            is_active=False,
        ),
    ]


@pytest.fixture
def profiles():
    return [ComplianceProfile(id="profile-tags-only", slug="tags-only", name="Tags only", rule_condition_types=["has_tags"])]


@pytest.fixture
def resources():
    return [
        Resource(
            id="linode-a",
            provider_id="101",
            resource_type="linode",
            region="us-east",
            specs={"tags": ["owner:ops"], "backups": {"enabled": True}},
        ),
        Resource(
            id="linode-b",
            provider_id="102",
            resource_type="linode",
            region="eu-west",
            specs={"tags": [], "backups": {"enabled": False}},
        ),
    ]


@pytest.fixture
def store(rules, profiles):
    return InMemoryComplianceStore(rules=rules, profiles=profiles)


@pytest.fixture
def inventory(resources):
    return InMemoryInventorySource({"acct-1": resources}, api_tokens={"acct-1": "token-1"})


@pytest.fixture
def provider_calls():
    return []


@pytest.fixture
def pipeline(store, inventory, provider_calls):
    def _factory(token):
        provider_calls.append(token)
        return StubProvider(users=[{"username": "ops", "tfa_enabled": True}])

    return ComplianceEvaluationPipeline(
        store,
        inventory,
        settings=EvaluationSettings(live_check_concurrency=2, live_check_timeout_seconds=5),
        provider_factory=_factory,
    )
