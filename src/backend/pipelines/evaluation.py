from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from common.compliance_engine.acknowledgements import AcknowledgementLedger
from common.compliance_engine.context import EvaluationContext
from common.compliance_engine.interpreter import ConditionInterpreter
from common.compliance_engine.models import utcnow
from common.compliance_engine.overrides import effective_rules
from common.compliance_engine.provider import LiveAccountProvider
from common.compliance_engine.runner import ComplianceRunner
from common.compliance_engine.scoring import build_resource_history, build_score_history

from .data_source import InventorySource
from .rule_catalog import register_account_rules
from .snapshots import LocalSnapshotStore, SnapshotStore
from .store import ComplianceStore

logger = logging.getLogger(__name__)

load_dotenv()

ProviderFactory = Callable[[str], LiveAccountProvider]


class EvaluationError(RuntimeError):
    """Run-level failure. Raised before the previous finding set is touched."""


class EvaluationInProgressError(RuntimeError):
    def __init__(self, account_id: str):
        super().__init__(f"An evaluation is already running for account '{account_id}'")
        self.account_id = account_id


@dataclass(frozen=True)
class EvaluationSettings:
    live_check_concurrency: int = 4
    live_check_timeout_seconds: float = 30.0
    snapshot_dir: Optional[Path] = None


def get_evaluation_settings() -> EvaluationSettings:
    """
    Load evaluation settings from environment variables:
      COMPLIANCE_LIVE_CHECK_CONCURRENCY, COMPLIANCE_LIVE_CHECK_TIMEOUT_SECONDS,
      COMPLIANCE_SNAPSHOT_DIR (optional; enables per-run JSON snapshots)
    """
    concurrency = _positive_env("COMPLIANCE_LIVE_CHECK_CONCURRENCY", 4)
    timeout = _positive_env("COMPLIANCE_LIVE_CHECK_TIMEOUT_SECONDS", 30)
    snapshot_dir = os.getenv("COMPLIANCE_SNAPSHOT_DIR", "").strip()
    return EvaluationSettings(
        live_check_concurrency=int(concurrency),
        live_check_timeout_seconds=float(timeout),
        snapshot_dir=Path(snapshot_dir) if snapshot_dir else None,
    )


def _positive_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


class AccountLockRegistry:
    """One non-blocking lock per account id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, account_id: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(account_id, threading.Lock())

    @contextmanager
    def hold(self, account_id: str) -> Iterator[None]:
        lock = self._lock_for(account_id)
        if not lock.acquire(blocking=False):
            raise EvaluationInProgressError(account_id)
        try:
            yield
        finally:
            lock.release()

    def is_running(self, account_id: str) -> bool:
        return self._lock_for(account_id).locked()


class EvaluationSummary(BaseModel):
    account_id: str
    evaluated_at: datetime
    evaluated: int
    compliant: int
    non_compliant: int
    not_applicable: int
    acknowledged: int
    compliance_score: Optional[float] = None
    rules_evaluated: int


def linode_provider_factory(api_token: str) -> LiveAccountProvider:
    from connectors.linode import LinodeAccountProvider, get_linode_config

    return LinodeAccountProvider(get_linode_config(api_token))


class ComplianceEvaluationPipeline:
    def __init__(
        self,
        store: ComplianceStore,
        inventory: InventorySource,
        *,
        settings: Optional[EvaluationSettings] = None,
        provider_factory: ProviderFactory = linode_provider_factory,
        locks: Optional[AccountLockRegistry] = None,
        snapshot_store: Optional[SnapshotStore] = None,
    ) -> None:
        self._store = store
        self._inventory = inventory
        self._settings = settings or get_evaluation_settings()
        self._provider_factory = provider_factory
        self._locks = locks or AccountLockRegistry()
        if snapshot_store is None and self._settings.snapshot_dir is not None:
            snapshot_store = LocalSnapshotStore(root_dir=self._settings.snapshot_dir)
        self._snapshot_store = snapshot_store
        self._runner = ComplianceRunner(
            ConditionInterpreter(
                max_workers=self._settings.live_check_concurrency,
                live_timeout_seconds=self._settings.live_check_timeout_seconds,
            )
        )

    @property
    def locks(self) -> AccountLockRegistry:
        return self._locks

    def evaluate(self, account_id: str, *, now: Optional[datetime] = None) -> EvaluationSummary:
        """Run a full evaluation and replace the account's findings.

        Raises EvaluationInProgressError if a run for the account is in flight,
        and EvaluationError if inputs cannot be loaded (findings left untouched).
        """
        with self._locks.hold(account_id):
            return self._evaluate_locked(account_id, now or utcnow())

    def _evaluate_locked(self, account_id: str, now: datetime) -> EvaluationSummary:
        logger.info("Starting compliance evaluation for account %s", account_id)
        try:
            inputs = self._inventory.load_inputs(account_id=account_id)
            register_account_rules(self._store, account_id, inputs.extra_rules)
            rules = effective_rules(
                self._store.list_rules(),
                self._store.list_overrides(account_id),
                account_id,
            )
            provider = self._provider_factory(inputs.api_token) if inputs.api_token else None
        except (OSError, ValueError, LookupError) as exc:
            logger.error("Evaluation inputs unavailable for account %s: %s", account_id, exc)
            raise EvaluationError(f"Could not load evaluation inputs for account '{account_id}': {exc}") from exc

        ctx = EvaluationContext(
            account_id=account_id,
            resources=tuple(inputs.resources),
            now=now,
            provider=provider,
            rules=tuple(rules),
        )
        report = self._runner.run(rules, ctx)

        ledger = AcknowledgementLedger.capture(self._store.list_findings(account_id))
        findings = ledger.restamp(report.findings)
        self._store.replace_findings(account_id, findings)
        self._store.set_last_evaluated_at(account_id, now)

        score = build_score_history(findings, rules, account_id=account_id, evaluated_at=now)
        self._store.append_score_history(score)
        self._store.append_resource_history(
            build_resource_history(findings, rules, account_id=account_id, evaluated_at=now)
        )

        if self._snapshot_store is not None:
            self._snapshot_store.save_json(
                account_id=account_id,
                evaluated_at=now,
                name="evaluation_report",
                payload=report.model_copy(update={"findings": findings}).model_dump(mode="json"),
            )

        summary = EvaluationSummary(
            account_id=account_id,
            evaluated_at=now,
            evaluated=len(findings),
            compliant=score.compliant_count,
            non_compliant=score.non_compliant_count,
            not_applicable=score.not_applicable_count,
            acknowledged=score.acknowledged_count,
            compliance_score=score.compliance_score,
            rules_evaluated=len(rules),
        )
        logger.info(
            "Finished evaluation for account %s: %d finding(s), %d re-acknowledged, score=%s",
            account_id,
            len(findings),
            summary.acknowledged,
            summary.compliance_score,
        )
        return summary