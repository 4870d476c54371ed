"""Per-account rule activation.

A rule's effective activation for an account is the override row when one
exists, otherwise the rule's own `is_active`. Rules are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .models import AccountRuleOverride, ComplianceProfile, ComplianceRule, utcnow


@dataclass
class ProfileApplication:
    profile_id: str
    overrides: List[AccountRuleOverride] = field(default_factory=list)
    enabled: int = 0
    disabled: int = 0


def visible_rules(rules: Iterable[ComplianceRule], account_id: str) -> List[ComplianceRule]:
    return [r for r in rules if r.account_id is None or r.account_id == account_id]


def override_map(overrides: Iterable[AccountRuleOverride], account_id: str) -> Dict[str, AccountRuleOverride]:
    return {o.rule_id: o for o in overrides if o.account_id == account_id}


def effective_is_active(rule: ComplianceRule, override: Optional[AccountRuleOverride]) -> bool:
    return override.is_active if override is not None else rule.is_active


def effective_rules(
    rules: Iterable[ComplianceRule],
    overrides: Iterable[AccountRuleOverride],
    account_id: str,
) -> List[ComplianceRule]:
    """Visible rules that are active for the account after overrides."""
    by_rule = override_map(overrides, account_id)
    return [r for r in visible_rules(rules, account_id) if effective_is_active(r, by_rule.get(r.id))]


def apply_profile(
    rules: Iterable[ComplianceRule],
    account_id: str,
    profile: ComplianceProfile,
) -> ProfileApplication:
    """Build the full override set a profile implies.

    The caller replaces every existing override for the account with the
    returned rows.
    """
    wanted = set(profile.rule_condition_types)
    now = utcnow()
    result = ProfileApplication(profile_id=profile.id)
    for rule in visible_rules(rules, account_id):
        active = rule.condition_type in wanted
        result.overrides.append(
            AccountRuleOverride(
                account_id=account_id,
                rule_id=rule.id,
                is_active=active,
                applied_by_profile_id=profile.id,
                updated_at=now,
            )
        )
        if active:
            result.enabled += 1
        else:
            result.disabled += 1
    return result


def toggle_rule(rule: ComplianceRule, account_id: str, is_active: bool) -> AccountRuleOverride:
    if rule.account_id is not None and rule.account_id != account_id:
        raise LookupError(f"Rule {rule.id} is not visible to account {account_id}")
    return AccountRuleOverride(account_id=account_id, rule_id=rule.id, is_active=is_active)
