from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from ..config import BackupRecencyConfig, LockConfiguredConfig
from ..context import ConditionOutcome, EvaluationContext, compliant, non_compliant, not_applicable
from ..models import ComplianceRule, ConditionType, Resource
from ..registry import register_condition

_MISSING = object()


def backup_state(specs: Dict[str, Any]) -> Tuple[Optional[bool], Any]:
    """Return `(enabled, last_successful)` from nested or flattened backup specs.

    `last_successful` is `_MISSING` when the field was never synced.
    """
    backups = specs.get("backups")
    if isinstance(backups, dict):
        enabled = backups.get("enabled")
        last = backups.get("last_successful", _MISSING)
    else:
        enabled = specs.get("backups_enabled")
        last = specs.get("backups_last_successful", _MISSING)
    return (bool(enabled) if enabled is not None else None), last


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@register_condition(ConditionType.LINODE_BACKUPS_ENABLED)
def linode_backups_enabled(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Automated backups are enabled."""
    enabled, _ = backup_state(resource.specs)
    if enabled is None:
        return not_applicable("Backup status not available. Re-sync to fetch the latest instance data.")
    if enabled:
        return compliant("Backups are enabled for this Linode.")
    return non_compliant("Backups are not enabled for this Linode.")


@register_condition(ConditionType.LINODE_BACKUP_RECENCY, config_model=BackupRecencyConfig)
def linode_backup_recency(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """A successful backup exists within the configured window."""
    cfg = rule.config_as(BackupRecencyConfig)
    enabled, last = backup_state(resource.specs)
    if enabled is None:
        return not_applicable("Backup status not available. Re-sync to fetch the latest instance data.")
    if not enabled:
        return non_compliant("Backups are not enabled for this Linode, so no recent recovery point exists.")
    if last is _MISSING:
        return not_applicable("Last backup timestamp not available. Re-sync to fetch the latest instance data.")
    if not last:
        return non_compliant("Backups are enabled but no successful backup has been recorded yet.")

    last_at = parse_timestamp(last)
    if last_at is None:
        return not_applicable(f'Last backup timestamp "{last}" could not be parsed.')

    age_hours = (ctx.now - last_at).total_seconds() / 3600
    age_days = age_hours / 24
    when = last_at.strftime("%b %d, %Y")
    if age_days <= cfg.max_age_days:
        age = f"{round(age_hours)}h ago" if age_hours < 24 else f"{round(age_days)} day(s) ago"
        return compliant(
            f"Last successful backup was {age} ({when}), within the {cfg.max_age_days:g}-day window."
        )
    return non_compliant(
        f"Last successful backup was {round(age_days)} day(s) ago ({when}), "
        f"which exceeds the required {cfg.max_age_days:g}-day window."
    )


@register_condition(ConditionType.LINODE_DISK_ENCRYPTION)
def linode_disk_encryption(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Instance disks are encrypted."""
    value = resource.specs.get("disk_encryption")
    if value is None:
        return not_applicable("Disk encryption status not available. Re-sync to fetch the latest instance data.")
    if value == "enabled":
        return compliant("Disk encryption is enabled for this Linode.")
    return non_compliant(f'Disk encryption is "{value}". It must be set to "enabled".')


@register_condition(ConditionType.VOLUME_ENCRYPTION_ENABLED)
def volume_encryption_enabled(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Block storage volume is encrypted."""
    value = resource.specs.get("encryption")
    if value is None:
        return not_applicable("Encryption status not available. Re-sync to fetch the latest volume data.")
    if value == "enabled":
        return compliant("Disk encryption is enabled for this volume.")
    return non_compliant(f'Disk encryption is "{value}". It must be set to "enabled" to protect data at rest.')


@register_condition(ConditionType.LINODE_LOCK_CONFIGURED, config_model=LockConfiguredConfig)
def linode_lock_configured(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Deletion locks of the required types are configured."""
    if "locks" not in resource.specs:
        return not_applicable("Lock data not available. Re-sync to fetch the latest instance data.")
    cfg = rule.config_as(LockConfiguredConfig)
    locks = [str(lock) for lock in resource.specs.get("locks") or []]
    required = cfg.required_lock_types

    if not locks:
        if required:
            return non_compliant(f"No lock configured. Required: {', '.join(required)}.")
        return non_compliant("No deletion lock is configured for this Linode.")
    missing = [lock_type for lock_type in required if lock_type not in locks]
    if missing:
        return non_compliant(
            f"Lock(s) present ({', '.join(locks)}) but missing required type(s): {', '.join(missing)}."
        )
    if required:
        return compliant(f"Required lock(s) configured: {', '.join(locks)}.")
    return compliant(f"Deletion lock is configured: {', '.join(locks)}.")


@register_condition(ConditionType.LINODE_NOT_OFFLINE)
def linode_not_offline(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Instance is not offline."""
    status = str(resource.specs.get("status") or resource.status or "")
    if not status:
        return not_applicable("Instance status not available. Re-sync to fetch the latest data.")
    if status == "offline":
        return non_compliant("Linode is offline.")
    return compliant(f'Linode status is "{status}".')
