from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T", bound=BaseModel)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class FindingStatus(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    NOT_APPLICABLE = "not_applicable"


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ConditionType(str, Enum):
    FIREWALL_ATTACHED = "firewall_attached"
    FIREWALL_HAS_TARGETS = "firewall_has_targets"
    VOLUME_ATTACHED = "volume_attached"
    NO_OPEN_INBOUND = "no_open_inbound"
    FIREWALL_RFC1918_LATERAL = "firewall_rfc1918_lateral"
    FIREWALL_ALL_PORTS_ALLOWED = "firewall_all_ports_allowed"
    FIREWALL_RULES_CHECK = "firewall_rules_check"
    FIREWALL_NO_DUPLICATE_RULES = "firewall_no_duplicate_rules"
    FIREWALL_RULE_DESCRIPTIONS = "firewall_rule_descriptions"
    HAS_TAGS = "has_tags"
    LINODE_BACKUPS_ENABLED = "linode_backups_enabled"
    LINODE_BACKUP_RECENCY = "linode_backup_recency"
    LINODE_DISK_ENCRYPTION = "linode_disk_encryption"
    VOLUME_ENCRYPTION_ENABLED = "volume_encryption_enabled"
    LINODE_LOCK_CONFIGURED = "linode_lock_configured"
    LINODE_NOT_OFFLINE = "linode_not_offline"
    DB_ALLOWLIST_CHECK = "db_allowlist_check"
    DB_PUBLIC_ACCESS = "db_public_access"
    BUCKET_ACL_CHECK = "bucket_acl_check"
    BUCKET_CORS_CHECK = "bucket_cors_check"
    NODEBALANCER_PROTOCOL_CHECK = "nodebalancer_protocol_check"
    NODEBALANCER_PORT_ALLOWLIST = "nodebalancer_port_allowlist"
    MIN_NODE_COUNT = "min_node_count"
    LKE_CONTROL_PLANE_HA = "lke_control_plane_ha"
    LKE_AUDIT_LOGS_ENABLED = "lke_audit_logs_enabled"
    APPROVED_REGIONS = "approved_regions"
    LINODE_PLAN_TIER_BY_TAG = "linode_plan_tier_by_tag"
    TFA_USERS = "tfa_users"
    LOGIN_ALLOWED_IPS = "login_allowed_ips"
    LKE_CONTROL_PLANE_ACL = "lke_control_plane_acl"
    COMPOSITE = "composite"


class Resource(BaseModel):
    id: str
    # Provider-side numeric id; firewall entities and attachments reference it.
    provider_id: str = ""
    label: str = ""
    resource_type: str
    region: str = ""
    plan_type: str = ""
    monthly_cost: float = 0.0
    status: str = ""
    specs: Dict[str, Any] = Field(default_factory=dict)

    def numeric_id(self) -> Optional[int]:
        try:
            return int(self.provider_id)
        except (TypeError, ValueError):
            return None


class ComplianceRule(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    resource_types: List[str] = Field(default_factory=list)
    condition_type: str
    condition_config: Dict[str, Any] = Field(default_factory=dict)
    severity: Severity = Severity.WARNING
    is_active: bool = True
    account_id: Optional[str] = None
    is_builtin: bool = False

    @property
    def is_global(self) -> bool:
        return self.account_id is None

    @property
    def is_composite(self) -> bool:
        return self.condition_type == ConditionType.COMPOSITE.value

    def config_as(self, model: Type[T]) -> T:
        return model.model_validate(self.condition_config or {})


class AccountRuleOverride(BaseModel):
    account_id: str
    rule_id: str
    is_active: bool
    applied_by_profile_id: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class ComplianceProfile(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    slug: str = ""
    description: str = ""
    tier: str = ""
    rule_condition_types: List[str] = Field(default_factory=list)
    is_builtin: bool = False


class Finding(BaseModel):
    id: str = Field(default_factory=new_id)
    rule_id: str
    resource_id: Optional[str] = None
    account_id: str
    status: FindingStatus
    detail: str
    evaluated_at: datetime = Field(default_factory=utcnow)

    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    acknowledged_note: Optional[str] = None
    acknowledged_by: Optional[str] = None

    @property
    def ledger_key(self) -> str:
        return ledger_key(self.rule_id, self.resource_id)


def ledger_key(rule_id: str, resource_id: Optional[str]) -> str:
    return f"{rule_id}:{resource_id or ''}"


class FindingNote(BaseModel):
    id: str = Field(default_factory=new_id)
    finding_id: str
    account_id: str
    rule_id: str
    resource_id: Optional[str] = None
    note: str
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def ledger_key(self) -> str:
        return ledger_key(self.rule_id, self.resource_id)


class RuleBreakdownEntry(BaseModel):
    rule_id: str
    rule_name: str
    severity: Severity
    compliant: int = 0
    non_compliant: int = 0
    not_applicable: int = 0


class ScoreHistoryEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    account_id: str
    evaluated_at: datetime
    total_results: int = 0
    compliant_count: int = 0
    non_compliant_count: int = 0
    not_applicable_count: int = 0
    acknowledged_count: int = 0
    compliance_score: Optional[float] = None
    total_rules_evaluated: int = 0
    rule_breakdown: List[RuleBreakdownEntry] = Field(default_factory=list)


class ResourceHistoryResult(BaseModel):
    rule_id: str
    rule_name: str = ""
    severity: Severity = Severity.INFO
    status: FindingStatus
    detail: Optional[str] = None
    acknowledged: bool = False


class ResourceComplianceHistoryEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    account_id: str
    resource_id: str
    evaluated_at: datetime
    results: List[ResourceHistoryResult] = Field(default_factory=list)


class EvaluationReport(BaseModel):
    """Output of a single two-pass run, before acknowledgements are merged."""

    run_id: str = Field(default_factory=new_id)
    account_id: str
    evaluated_at: datetime
    findings: List[Finding] = Field(default_factory=list)
    rules_evaluated: List[ComplianceRule] = Field(default_factory=list)
    totals: Dict[FindingStatus, int] = Field(default_factory=dict)
