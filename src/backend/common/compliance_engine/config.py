from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SENSITIVE_PORTS = [22, 3389, 3306, 5432, 6379, 27017]
DEFAULT_LATERAL_SENSITIVE_PORTS = [22, 3389, 3306, 5432, 5984, 6379, 9200, 27017]
DEFAULT_FORBIDDEN_CIDRS = ["0.0.0.0/0", "::/0"]
DEFAULT_FORBIDDEN_ACLS = ["public-read", "public-read-write", "authenticated-read"]


class ConditionConfigBase(BaseModel):
    # Rule rows are edited by hand; unknown keys must not fail evaluation.
    model_config = ConfigDict(extra="ignore")


class EmptyConfig(ConditionConfigBase):
    pass


class NoOpenInboundConfig(ConditionConfigBase):
    sensitive_ports: List[int] = Field(default_factory=lambda: list(DEFAULT_SENSITIVE_PORTS))


class LateralMovementConfig(ConditionConfigBase):
    sensitive_ports: List[int] = Field(default_factory=lambda: list(DEFAULT_LATERAL_SENSITIVE_PORTS))


class AllPortsAllowedConfig(ConditionConfigBase):
    check_inbound: bool = True
    check_outbound: bool = False
    actions: List[str] = Field(default_factory=lambda: ["ACCEPT"])


class FirewallRulesCheckConfig(ConditionConfigBase):
    # Empty string means "no requirement".
    required_inbound_policy: Optional[str] = None
    required_outbound_policy: Optional[str] = None
    blocked_ports: List[int] = Field(default_factory=list)
    allowed_source_ips: List[str] = Field(default_factory=list)
    require_no_open_ports: bool = False


class RequiredTag(ConditionConfigBase):
    key: str = ""
    # None and "" behave like "*".
    value: Optional[str] = "*"


class HasTagsConfig(ConditionConfigBase):
    required_tags: List[RequiredTag] = Field(default_factory=list)
    min_tags: int = 1


class BackupRecencyConfig(ConditionConfigBase):
    max_age_days: float = 7


class LockConfiguredConfig(ConditionConfigBase):
    required_lock_types: List[str] = Field(default_factory=list)


class DbAllowlistConfig(ConditionConfigBase):
    forbidden_cidrs: List[str] = Field(default_factory=lambda: list(DEFAULT_FORBIDDEN_CIDRS))
    require_non_empty: bool = False


class DbPublicAccessConfig(ConditionConfigBase):
    allow_public_access: bool = False


class BucketAclConfig(ConditionConfigBase):
    required_acl: Optional[str] = None
    forbidden_acls: List[str] = Field(default_factory=lambda: list(DEFAULT_FORBIDDEN_ACLS))


class BucketCorsConfig(ConditionConfigBase):
    require_cors_disabled: bool = False
    require_cors_enabled: bool = False


class NodeBalancerProtocolConfig(ConditionConfigBase):
    allowed_protocols: List[str] = Field(default_factory=list)
    forbidden_protocols: List[str] = Field(default_factory=list)


class NodeBalancerPortConfig(ConditionConfigBase):
    allowed_ports: List[int] = Field(default_factory=list)


class MinNodeCountConfig(ConditionConfigBase):
    min_count: int = 2


class ApprovedRegionsConfig(ConditionConfigBase):
    approved_regions: List[str] = Field(default_factory=list)


class PlanTierByTagConfig(ConditionConfigBase):
    tag: str = ""
    tag_value: str = ""
    approved_tiers: List[str] = Field(default_factory=list)


class TfaUsersConfig(ConditionConfigBase):
    exclude_user_types: List[str] = Field(default_factory=lambda: ["proxy"])


class LoginAllowedIpsConfig(ConditionConfigBase):
    allowed_ips: List[str] = Field(default_factory=list)


class CompositeConfig(ConditionConfigBase):
    operator: str = "AND"
    rule_ids: List[str] = Field(default_factory=list)
    if_rule_id: Optional[str] = None
    then_rule_id: Optional[str] = None
