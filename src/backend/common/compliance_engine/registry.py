from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Literal, Optional, Type

from pydantic import BaseModel

from .config import EmptyConfig
from .models import ConditionType

Scope = Literal["resource", "account"]


@dataclass(frozen=True)
class ConditionSpec:
    condition_type: ConditionType
    evaluate: Callable
    scope: Scope = "resource"
    live: bool = False
    config_model: Type[BaseModel] = EmptyConfig
    # Pins applicable resource types regardless of the rule's resource_types.
    resource_types: Optional[frozenset[str]] = None
    title: str = ""


class ConditionRegistry:
    def __init__(self):
        self._specs: Dict[str, ConditionSpec] = {}

    def register(self, spec: ConditionSpec) -> None:
        key = spec.condition_type.value
        if key == ConditionType.COMPOSITE.value:
            raise ValueError("Composite rules are resolved in the second pass and cannot be registered")
        if key in self._specs:
            raise ValueError(f"Duplicate condition_type registered: {key}")
        self._specs[key] = spec

    def get(self, condition_type: str) -> Optional[ConditionSpec]:
        return self._specs.get(condition_type)

    def ids(self) -> Iterable[str]:
        return self._specs.keys()

    def specs(self) -> list[ConditionSpec]:
        return list(self._specs.values())


registry = ConditionRegistry()


def register_condition(
    condition_type: ConditionType,
    *,
    scope: Scope = "resource",
    live: bool = False,
    config_model: Type[BaseModel] = EmptyConfig,
    resource_types: Optional[Iterable[str]] = None,
    title: str = "",
) -> Callable[[Callable], Callable]:
    def _decorate(fn: Callable) -> Callable:
        registry.register(
            ConditionSpec(
                condition_type=condition_type,
                evaluate=fn,
                scope=scope,
                live=live,
                config_model=config_model,
                resource_types=frozenset(resource_types) if resource_types is not None else None,
                title=title or _first_doc_line(fn),
            )
        )
        return fn

    return _decorate


def _first_doc_line(fn: Callable) -> str:
    lines = (fn.__doc__ or "").strip().splitlines()
    return lines[0].strip() if lines else ""
