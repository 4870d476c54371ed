"""Built-in rule catalog and compliance profiles, shipped as YAML package data."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .models import ComplianceProfile, ComplianceRule
from .registry import registry

from . import conditions as _conditions  # noqa: F401

DATA_DIR = Path(__file__).resolve().parent / "data"
RULE_ID_PREFIX = "builtin-"
PROFILE_ID_PREFIX = "profile-"


def _load(name: str) -> Dict[str, Any]:
    with (DATA_DIR / name).open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{name} must contain a mapping at the top level")
    return data


@lru_cache(maxsize=1)
def _rule_rows() -> Dict[str, Dict[str, Any]]:
    return dict(_load("builtin_rules.yaml").get("rules") or {})


@lru_cache(maxsize=1)
def _profile_rows() -> Dict[str, Dict[str, Any]]:
    return dict(_load("builtin_profiles.yaml").get("profiles") or {})


def builtin_rules() -> List[ComplianceRule]:
    """Fresh copies of the global built-in rules, with stable ids (`builtin-<key>`)."""
    rules = []
    for key, row in _rule_rows().items():
        rules.append(
            ComplianceRule(
                id=f"{RULE_ID_PREFIX}{key}",
                is_builtin=True,
                account_id=None,
                **row,
            )
        )
    return rules


def builtin_profiles() -> List[ComplianceProfile]:
    profiles = []
    for slug, row in _profile_rows().items():
        row = dict(row)
        kinds = row.pop("rule_condition_types", [])
        if kinds == "all":
            kinds = sorted(registry.ids())
        profiles.append(
            ComplianceProfile(
                id=f"{PROFILE_ID_PREFIX}{slug}",
                slug=slug,
                is_builtin=True,
                rule_condition_types=list(kinds),
                **row,
            )
        )
    return profiles
