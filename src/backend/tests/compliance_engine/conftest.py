import os
import sys


# Ensure `src/backend` is on sys.path so imports like `import common...` work.
BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

import itertools
from datetime import datetime, timezone

import pytest

import common.compliance_engine  # noqa: F401  registers condition kinds
from common.compliance_engine.context import EvaluationContext
from common.compliance_engine.models import ComplianceRule, Resource, Severity
from common.compliance_engine.provider import ProviderError
from common.compliance_engine.registry import registry


class FakeProvider:
    def __init__(self, *, users=None, logins=None, acls=None, errors=None):
        self.users = users or []
        self.logins = logins or []
        self.acls = acls or {}
        self.errors = errors or {}
        self.calls = []

    def _maybe_raise(self, key):
        self.calls.append(key)
        if key in self.errors:
            raise self.errors[key]

    def list_users(self):
        self._maybe_raise("users")
        return list(self.users)

    def list_logins(self):
        self._maybe_raise("logins")
        return list(self.logins)

    def get_control_plane_acl(self, cluster_id):
        self._maybe_raise(f"acl:{cluster_id}")
        if str(cluster_id) not in self.acls:
            raise ProviderError(404, "Not Found")
        return self.acls[str(cluster_id)]


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_resource():
    counter = itertools.count(1)

    def _make(
        resource_type: str = "linode",
        *,
        resource_id: str | None = None,
        provider_id: str | None = None,
        label: str | None = None,
        region: str = "us-east",
        plan_type: str = "",
        status: str = "",
        specs: dict | None = None,
    ) -> Resource:
        n = next(counter)
        return Resource(
            id=resource_id or f"{resource_type}-{n}",
            provider_id=provider_id if provider_id is not None else str(1000 + n),
            label=label or f"{resource_type}-{n}",
            resource_type=resource_type,
            region=region,
            plan_type=plan_type,
            status=status,
            specs=specs or {},
        )

    return _make


@pytest.fixture
def make_rule():
    def _make(
        condition_type: str,
        *,
        resource_types: list[str] | None = None,
        config: dict | None = None,
        rule_id: str | None = None,
        name: str | None = None,
        severity: Severity = Severity.WARNING,
        account_id: str | None = None,
        is_active: bool = True,
    ) -> ComplianceRule:
        return ComplianceRule(
            id=rule_id or f"rule-{condition_type}",
            name=name or condition_type.replace("_", " ").title(),
            resource_types=resource_types if resource_types is not None else ["linode"],
            condition_type=condition_type,
            condition_config=config or {},
            severity=severity,
            account_id=account_id,
            is_active=is_active,
        )

    return _make


@pytest.fixture
def make_ctx(now):
    def _make(resources=(), *, provider=None, rules=(), account_id: str = "acct-1") -> EvaluationContext:
        return EvaluationContext(
            account_id=account_id,
            resources=tuple(resources),
            now=now,
            provider=provider,
            rules=tuple(rules),
        )

    return _make


@pytest.fixture
def evaluate():
    """Call a resource-scope condition kind directly."""

    def _evaluate(rule, resource, ctx):
        return registry.get(rule.condition_type).evaluate(rule, resource, ctx)

    return _evaluate


@pytest.fixture
def fake_provider():
    return FakeProvider
