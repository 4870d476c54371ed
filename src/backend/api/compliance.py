from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from common.compliance_engine.builtins import builtin_profiles, builtin_rules
from pipelines.data_source import get_inventory_source
from pipelines.evaluation import (
    ComplianceEvaluationPipeline,
    EvaluationError,
    EvaluationInProgressError,
)
from pipelines.findings import (
    acknowledge_finding,
    add_finding_note,
    list_finding_notes,
    summarize_findings,
    unacknowledge_finding,
)
from pipelines.rule_catalog import apply_account_profile, list_account_rules, toggle_account_rule
from pipelines.store import ComplianceStore, InMemoryComplianceStore


router = APIRouter(prefix="/compliance", tags=["compliance"])


@dataclass
class ComplianceServices:
    store: ComplianceStore
    pipeline: ComplianceEvaluationPipeline


_SERVICES: ComplianceServices | None = None
_SERVICES_LOCK = threading.Lock()


def build_default_services() -> ComplianceServices:
    store = InMemoryComplianceStore(rules=builtin_rules(), profiles=builtin_profiles())
    fixtures_root = os.getenv("COMPLIANCE_FIXTURES_ROOT", "").strip()
    inventory = get_inventory_source(
        os.getenv("COMPLIANCE_INVENTORY_SOURCE", "fixtures"),
        fixtures_root=Path(fixtures_root) if fixtures_root else None,
    )
    return ComplianceServices(store=store, pipeline=ComplianceEvaluationPipeline(store, inventory))


def get_services() -> ComplianceServices:
    global _SERVICES
    with _SERVICES_LOCK:
        if _SERVICES is None:
            _SERVICES = build_default_services()
        return _SERVICES


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except EvaluationInProgressError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except EvaluationError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


class AcknowledgeRequest(BaseModel):
    note: Optional[str] = None
    by: Optional[str] = None


class NoteRequest(BaseModel):
    note: str
    by: Optional[str] = None


class ToggleRuleRequest(BaseModel):
    is_active: bool


@router.post("/accounts/{account_id}/evaluate")
def evaluate_account(account_id: str, services: ComplianceServices = Depends(get_services)):
    with _http_errors():
        return services.pipeline.evaluate(account_id).model_dump(mode="json")


@router.get("/accounts/{account_id}/findings")
def get_findings(account_id: str, services: ComplianceServices = Depends(get_services)):
    return [f.model_dump(mode="json") for f in services.store.list_findings(account_id)]


@router.get("/accounts/{account_id}/summary")
def get_summary(account_id: str, services: ComplianceServices = Depends(get_services)) -> dict[str, Any]:
    summary: dict[str, Any] = dict(summarize_findings(services.store.list_findings(account_id)))
    last = services.store.get_last_evaluated_at(account_id)
    summary["last_evaluated_at"] = last.isoformat() if last is not None else None
    return summary


@router.get("/accounts/{account_id}/score-history")
def get_score_history(
    account_id: str,
    limit: int = Query(90, ge=1, le=1000),
    services: ComplianceServices = Depends(get_services),
):
    return [e.model_dump(mode="json") for e in services.store.list_score_history(account_id, limit=limit)]


@router.get("/resources/{resource_id}/history")
def get_resource_history(
    resource_id: str,
    limit: int = Query(90, ge=1, le=1000),
    services: ComplianceServices = Depends(get_services),
):
    return [e.model_dump(mode="json") for e in services.store.list_resource_history(resource_id, limit=limit)]


@router.get("/accounts/{account_id}/rules")
def get_account_rules(account_id: str, services: ComplianceServices = Depends(get_services)):
    return [v.model_dump(mode="json") for v in list_account_rules(services.store, account_id)]


@router.put("/accounts/{account_id}/rules/{rule_id}")
def put_account_rule(
    account_id: str,
    rule_id: str,
    body: ToggleRuleRequest,
    services: ComplianceServices = Depends(get_services),
):
    with _http_errors():
        return toggle_account_rule(services.store, account_id, rule_id, body.is_active).model_dump(mode="json")


@router.post("/accounts/{account_id}/profiles/{profile_id}/apply")
def post_apply_profile(account_id: str, profile_id: str, services: ComplianceServices = Depends(get_services)):
    with _http_errors():
        result = apply_account_profile(services.store, account_id, profile_id)
    return {"enabled": result.enabled, "disabled": result.disabled}


@router.post("/findings/{finding_id}/acknowledge")
def post_acknowledge(
    finding_id: str,
    body: Optional[AcknowledgeRequest] = None,
    services: ComplianceServices = Depends(get_services),
):
    body = body or AcknowledgeRequest()
    with _http_errors():
        return acknowledge_finding(services.store, finding_id, note=body.note, by=body.by).model_dump(mode="json")


@router.delete("/findings/{finding_id}/acknowledge")
def delete_acknowledge(finding_id: str, services: ComplianceServices = Depends(get_services)):
    with _http_errors():
        return unacknowledge_finding(services.store, finding_id).model_dump(mode="json")


@router.get("/findings/{finding_id}/notes")
def get_notes(finding_id: str, services: ComplianceServices = Depends(get_services)):
    with _http_errors():
        return [n.model_dump(mode="json") for n in list_finding_notes(services.store, finding_id)]


@router.post("/findings/{finding_id}/notes", status_code=status.HTTP_201_CREATED)
def post_note(finding_id: str, body: NoteRequest, services: ComplianceServices = Depends(get_services)):
    with _http_errors():
        return add_finding_note(services.store, finding_id, body.note, by=body.by).model_dump(mode="json")


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(note_id: str, services: ComplianceServices = Depends(get_services)) -> None:
    with _http_errors():
        services.store.delete_note(note_id)
