from __future__ import annotations

from typing import Iterable, List, Optional

from ..config import HasTagsConfig, RequiredTag
from ..context import ConditionOutcome, EvaluationContext, compliant, non_compliant
from ..models import ComplianceRule, ConditionType, Resource
from ..registry import register_condition

WILDCARD_VALUES = (None, "", "*")


def find_tag(tags: Iterable[str], key: str) -> Optional[str]:
    """First tag equal to `key` or starting with `key:`, case-insensitively."""
    key_lower = key.lower()
    for tag in tags:
        tag_lower = str(tag).lower()
        if tag_lower == key_lower or tag_lower.startswith(key_lower + ":"):
            return str(tag)
    return None


def tag_value(tag: str) -> Optional[str]:
    if ":" not in tag:
        return None
    return tag.split(":", 1)[1].strip()


def describe_required(required: RequiredTag) -> str:
    value = required.value if required.value not in WILDCARD_VALUES else "*"
    return f"{required.key}:{value}"


@register_condition(
    ConditionType.HAS_TAGS,
    config_model=HasTagsConfig,
)
def has_tags(rule: ComplianceRule, resource: Resource, ctx: EvaluationContext) -> ConditionOutcome:
    """Resource carries the required tags."""
    cfg = rule.config_as(HasTagsConfig)
    tags: List[str] = [str(t) for t in resource.specs.get("tags") or []]
    required = [r for r in cfg.required_tags if r.key]

    if not required:
        if len(tags) >= cfg.min_tags:
            return compliant(f"Has {len(tags)} tag(s): {', '.join(tags)}")
        return non_compliant(f"Has {len(tags)} tag(s). At least {cfg.min_tags} tag(s) required.")

    missing: List[str] = []
    wrong_value: List[str] = []
    for req in required:
        match = find_tag(tags, req.key)
        if match is None:
            missing.append(req.key)
            continue
        if req.value in WILDCARD_VALUES:
            continue
        found = tag_value(match)
        if found is None or found.lower() != req.value.lower():
            wrong_value.append(f'{req.key} (expected "{req.value}", found "{found if found is not None else match}")')

    if missing or wrong_value:
        parts = []
        if missing:
            parts.append(f"Missing tags: {', '.join(missing)}")
        if wrong_value:
            parts.append(f"Wrong values: {'; '.join(wrong_value)}")
        return non_compliant(". ".join(parts))
    return compliant(f"All required tags present: {', '.join(describe_required(r) for r in required)}")
