from __future__ import annotations

import argparse
import json
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from .builtins import builtin_profiles, builtin_rules
from .registry import registry

# Import condition modules so every kind is registered before listing.
from . import conditions as _conditions  # noqa: F401


class ConditionCatalogEntry(BaseModel):
    condition_type: str
    title: str
    scope: str
    live: bool
    resource_types: Optional[List[str]] = None

    module: str
    function: str

    config_model: str
    config_schema: Dict[str, Any] = Field(default_factory=dict)


def build_catalog() -> List[ConditionCatalogEntry]:
    entries: List[ConditionCatalogEntry] = []
    for spec in registry.specs():
        entries.append(
            ConditionCatalogEntry(
                condition_type=spec.condition_type.value,
                title=spec.title,
                scope=spec.scope,
                live=spec.live,
                resource_types=sorted(spec.resource_types) if spec.resource_types is not None else None,
                module=getattr(spec.evaluate, "__module__", ""),
                function=getattr(spec.evaluate, "__name__", ""),
                config_model=spec.config_model.__name__,
                config_schema=spec.config_model.model_json_schema(),
            )
        )

    entries.sort(key=lambda e: e.condition_type)
    return entries


def _dump_json(catalog: list[dict[str, Any]]) -> str:
    return json.dumps(catalog, indent=2, sort_keys=True)


def _dump_yaml(catalog: list[dict[str, Any]]) -> str:
    return yaml.safe_dump(catalog, sort_keys=True)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="List registered condition kinds, or the built-in rules and profiles.")
    parser.add_argument(
        "--format",
        choices=("yaml", "json"),
        default="yaml",
        help="Output format (default: yaml).",
    )
    parser.add_argument(
        "--show",
        choices=("conditions", "rules", "profiles"),
        default="conditions",
        help="What to list (default: conditions).",
    )
    args = parser.parse_args(argv)

    if args.show == "rules":
        catalog = [r.model_dump(mode="json") for r in builtin_rules()]
    elif args.show == "profiles":
        catalog = [p.model_dump(mode="json") for p in builtin_profiles()]
    else:
        catalog = [e.model_dump() for e in build_catalog()]
    if args.format == "json":
        print(_dump_json(catalog))
    else:
        print(_dump_yaml(catalog))


if __name__ == "__main__":
    main()
