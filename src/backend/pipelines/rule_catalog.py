from __future__ import annotations

import logging
from typing import Iterable, List

from pydantic import BaseModel

from common.compliance_engine.models import ComplianceRule
from common.compliance_engine.overrides import (
    apply_profile,
    effective_is_active,
    override_map,
    toggle_rule,
    visible_rules,
)

from .store import ComplianceStore, NotFoundError

logger = logging.getLogger(__name__)


class AccountRuleView(BaseModel):
    rule: ComplianceRule
    effective_is_active: bool
    overridden: bool
    applied_by_profile_id: str | None = None


class ProfileApplyResult(BaseModel):
    profile_id: str
    enabled: int
    disabled: int


def list_account_rules(store: ComplianceStore, account_id: str) -> List[AccountRuleView]:
    overrides = override_map(store.list_overrides(account_id), account_id)
    views = []
    for rule in visible_rules(store.list_rules(), account_id):
        override = overrides.get(rule.id)
        views.append(
            AccountRuleView(
                rule=rule,
                effective_is_active=effective_is_active(rule, override),
                overridden=override is not None,
                applied_by_profile_id=override.applied_by_profile_id if override is not None else None,
            )
        )
    return views


def toggle_account_rule(store: ComplianceStore, account_id: str, rule_id: str, is_active: bool) -> AccountRuleView:
    rule = store.get_rule(rule_id)
    try:
        override = toggle_rule(rule, account_id, is_active)
    except LookupError as exc:
        raise NotFoundError(str(exc)) from exc
    store.upsert_override(override)
    return AccountRuleView(rule=rule, effective_is_active=is_active, overridden=True)


def register_account_rules(store: ComplianceStore, account_id: str, rules: Iterable[ComplianceRule]) -> int:
    """Upsert account-owned rules so overrides and profiles cover them like any stored rule."""
    registered = 0
    for rule in rules:
        if rule.account_id != account_id:
            raise ValueError(f"Rule '{rule.id}' is owned by account '{rule.account_id}', not '{account_id}'")
        try:
            existing = store.get_rule(rule.id)
        except NotFoundError:
            existing = None
        if existing is not None and existing.account_id != account_id:
            raise ValueError(f"Rule id '{rule.id}' is already used by another rule")
        store.upsert_rule(rule)
        registered += 1
    if registered:
        logger.debug("Registered %d account rule(s) for %s", registered, account_id)
    return registered


def apply_account_profile(store: ComplianceStore, account_id: str, profile_id: str) -> ProfileApplyResult:
    profile = store.get_profile(profile_id)
    application = apply_profile(store.list_rules(), account_id, profile)
    store.replace_overrides(account_id, application.overrides)
    logger.info(
        "Applied profile %s to account %s: %d enabled, %d disabled",
        profile.slug or profile.id,
        account_id,
        application.enabled,
        application.disabled,
    )
    return ProfileApplyResult(profile_id=profile.id, enabled=application.enabled, disabled=application.disabled)
