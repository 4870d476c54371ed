from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol


class SnapshotStore(Protocol):
    def save_json(
        self,
        *,
        account_id: str,
        evaluated_at: datetime,
        name: str,
        payload: dict[str, Any],
    ) -> None:
        ...


@dataclass(frozen=True)
class LocalSnapshotStore:
    """Writes `<root>/<account_id>/<run timestamp>/<name>.json`."""

    root_dir: Path

    def save_json(
        self,
        *,
        account_id: str,
        evaluated_at: datetime,
        name: str,
        payload: dict[str, Any],
    ) -> None:
        out_dir = self.root_dir / account_id / run_folder(evaluated_at)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_path = out_dir / f"{name}.json"
        out_path.write_text(json.dumps(payload, indent=2, default=str))


def run_folder(evaluated_at: datetime) -> str:
    return evaluated_at.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
