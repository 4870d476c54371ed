from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from common.compliance_engine.models import ComplianceRule, Resource


@dataclass(frozen=True)
class EvaluationInputs:
    account_id: str
    resources: tuple[Resource, ...] = ()
    # Only presence matters to the engine: live checks need it.
    api_token: str | None = None
    # Account-scoped custom rules shipped alongside a fixture inventory.
    extra_rules: tuple[ComplianceRule, ...] = field(default_factory=tuple)


class InventorySource(Protocol):
    def load_inputs(self, *, account_id: str) -> EvaluationInputs:
        """Return the current resource inventory and credential for an account."""
        ...


def get_inventory_source(name: str, *, fixtures_root: Path | None = None) -> InventorySource:
    """Resolve an inventory source implementation by name (fixtures)."""
    source = (name or "").strip().lower()
    if source in ("fixtures", ""):
        return FixturesInventorySource(fixtures_root=fixtures_root)
    raise ValueError(f"Unknown inventory source '{name}' (expected 'fixtures').")


class FixturesInventorySource:
    """Reads `<root>/<account_id>/resources.json` (plus optional account.json and rules.json)."""

    def __init__(self, *, fixtures_root: Path | None = None) -> None:
        self._fixtures_root = fixtures_root or _default_fixtures_root()

    def load_inputs(self, *, account_id: str) -> EvaluationInputs:
        return load_fixture_inputs(self._fixtures_root / account_id, account_id=account_id)


class InMemoryInventorySource:
    def __init__(
        self,
        resources: Mapping[str, Sequence[Resource]] | None = None,
        *,
        api_tokens: Mapping[str, str] | None = None,
    ) -> None:
        self._resources = {k: tuple(v) for k, v in (resources or {}).items()}
        self._tokens = dict(api_tokens or {})

    def set_resources(self, account_id: str, resources: Sequence[Resource]) -> None:
        self._resources[account_id] = tuple(resources)

    def load_inputs(self, *, account_id: str) -> EvaluationInputs:
        if account_id not in self._resources:
            raise LookupError(f"No inventory for account '{account_id}'")
        return EvaluationInputs(
            account_id=account_id,
            resources=self._resources[account_id],
            api_token=self._tokens.get(account_id),
        )


def load_fixture_inputs(fixtures_dir: Path, *, account_id: str) -> EvaluationInputs:
    resources_path = fixtures_dir / "resources.json"
    if not resources_path.exists():
        raise FileNotFoundError(f"Missing inventory fixture: {resources_path}")

    raw_resources = _load_json(resources_path)
    if isinstance(raw_resources, dict):
        raw_resources = raw_resources.get("resources", [])
    if not isinstance(raw_resources, list):
        raise ValueError(f"{resources_path} must contain a list of resources")
    resources = tuple(Resource.model_validate(item) for item in raw_resources)

    api_token = None
    account_path = fixtures_dir / "account.json"
    if account_path.exists():
        account = _load_json(account_path)
        api_token = (account.get("api_token") or None) if isinstance(account, dict) else None

    extra_rules: tuple[ComplianceRule, ...] = ()
    rules_path = fixtures_dir / "rules.json"
    if rules_path.exists():
        raw_rules = _load_json(rules_path)
        if not isinstance(raw_rules, list):
            raise ValueError(f"{rules_path} must contain a list of rules")
        extra_rules = tuple(
            ComplianceRule.model_validate({"account_id": account_id, **item}) for item in raw_rules
        )

    return EvaluationInputs(
        account_id=account_id,
        resources=resources,
        api_token=api_token,
        extra_rules=extra_rules,
    )


def _load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _default_fixtures_root() -> Path:
    return Path(__file__).resolve().parents[1] / "tests" / "fixtures" / "accounts"
