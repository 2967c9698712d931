"""Anomaly detection and resolution workflow API router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from supply_sentinel.common.config import get_settings
from supply_sentinel.common.exceptions import (
    AnomalyNotFoundError,
    DataStoreUnavailableError,
    InvalidRequestError,
    InvalidStateError,
    SentinelError,
)
from supply_sentinel.common.security import require_api_key
from supply_sentinel.anomaly.models import AnomalyModel
from supply_sentinel.anomaly.schemas import (
    AnomalyPage,
    AnomalyResponse,
    AnomalyStats,
    EscalateRequest,
    InvestigateRequest,
    ResolveRequest,
    ScanRequest,
    ScanResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service():
    from supply_sentinel.deps import get_anomaly_service
    return get_anomaly_service()


def _get_workflow():
    from supply_sentinel.deps import get_workflow
    return get_workflow()


def _get_db():
    from supply_sentinel.deps import get_db
    return get_db()


def _http_error(exc: SentinelError) -> HTTPException:
    if isinstance(exc, AnomalyNotFoundError):
        status_code = 404
    elif isinstance(exc, InvalidStateError):
        status_code = 409
    elif isinstance(exc, InvalidRequestError):
        status_code = 422
    else:
        status_code = 500
    return HTTPException(
        status_code=status_code, detail={"error": exc.message, "code": exc.code},
    )


def _to_response(a: AnomalyModel) -> AnomalyResponse:
    return AnomalyResponse(
        id=a.id,
        anomaly_type=a.anomaly_type,
        severity=a.severity,
        status=a.status,
        title=a.title,
        description=a.description,
        suggested_resolution=a.suggested_resolution,
        can_auto_resolve=a.can_auto_resolve,
        affected_resource_type=a.affected_resource_type,
        affected_resource_id=a.affected_resource_id,
        metadata=a.metadata_ or {},
        ai_root_cause=a.ai_root_cause,
        root_cause=a.root_cause,
        detected_at=a.detected_at,
        resolved_at=a.resolved_at,
        resolved_by=a.resolved_by,
        resolution_applied=a.resolution_applied,
        auto_resolved=a.auto_resolved,
        escalated_at=a.escalated_at,
        escalated_to=a.escalated_to,
        escalation_reason=a.escalation_reason,
    )


# ── Detection ──

@router.post("/anomalies/scan", response_model=ScanResponse)
async def scan_anomalies(body: ScanRequest | None = None, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    scan_type = body.scan_type if body else None
    try:
        async with db.get_session() as session:
            result = await svc.scan(session, scan_type)
    except InvalidRequestError as e:
        raise _http_error(e)
    except (DataStoreUnavailableError, SQLAlchemyError):
        logger.exception("Anomaly detection failed")
        return JSONResponse(status_code=500, content={"error": "Anomaly detection failed"})

    svc.enqueue_enrichment(result)
    return ScanResponse(
        detected=result.detected,
        anomalies=[
            {
                "type": a["type"],
                "severity": a["severity"],
                "can_auto_resolve": a["can_auto_resolve"],
            }
            for a in result.anomalies
        ],
    )


# ── Queries ──

@router.get("/anomalies", response_model=AnomalyPage)
async def list_anomalies(
    severity: str | None = Query(None),
    anomaly_type: str | None = Query(None, alias="type"),
    status: str | None = Query(None),
    limit: int | None = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    _=Depends(require_api_key),
):
    settings = get_settings()
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        items, total = await svc.list_anomalies(
            session, severity=severity, anomaly_type=anomaly_type, status=status,
            limit=limit, offset=offset,
        )
        return AnomalyPage(
            items=[_to_response(a) for a in items],
            total=total, limit=limit, offset=offset,
        )


@router.get("/anomalies/stats", response_model=AnomalyStats)
async def anomaly_stats(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        return AnomalyStats(**await svc.get_stats(session))


@router.get("/anomalies/{anomaly_id}", response_model=AnomalyResponse)
async def get_anomaly(anomaly_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        try:
            anomaly = await svc.get_anomaly(session, anomaly_id)
        except AnomalyNotFoundError as e:
            raise _http_error(e)
        return _to_response(anomaly)


# ── Workflow ──

@router.post("/anomalies/{anomaly_id}/investigate", response_model=AnomalyResponse)
async def investigate_anomaly(
    anomaly_id: str,
    body: InvestigateRequest | None = None,
    _=Depends(require_api_key),
):
    body = body or InvestigateRequest()
    workflow = _get_workflow()
    db = _get_db()
    async with db.get_session() as session:
        try:
            anomaly = await workflow.investigate(
                session, anomaly_id, performed_by=body.performed_by, notes=body.notes,
            )
        except SentinelError as e:
            raise _http_error(e)
        return _to_response(anomaly)


@router.post("/anomalies/{anomaly_id}/resolve", response_model=AnomalyResponse)
async def resolve_anomaly(
    anomaly_id: str,
    body: ResolveRequest | None = None,
    _=Depends(require_api_key),
):
    body = body or ResolveRequest()
    workflow = _get_workflow()
    db = _get_db()
    async with db.get_session() as session:
        try:
            anomaly = await workflow.resolve(
                session, anomaly_id, body.resolution_notes,
                performed_by=body.performed_by,
            )
        except SentinelError as e:
            raise _http_error(e)
        return _to_response(anomaly)


@router.post("/anomalies/{anomaly_id}/escalate", response_model=AnomalyResponse)
async def escalate_anomaly(
    anomaly_id: str,
    body: EscalateRequest | None = None,
    _=Depends(require_api_key),
):
    body = body or EscalateRequest()
    workflow = _get_workflow()
    db = _get_db()
    async with db.get_session() as session:
        try:
            anomaly = await workflow.escalate(
                session, anomaly_id, body.escalation_reason,
                escalated_to=body.escalated_to, performed_by=body.performed_by,
            )
        except SentinelError as e:
            raise _http_error(e)
        return _to_response(anomaly)


@router.post("/anomalies/{anomaly_id}/auto-resolve", response_model=AnomalyResponse)
async def auto_resolve_anomaly(anomaly_id: str, _=Depends(require_api_key)):
    workflow = _get_workflow()
    db = _get_db()
    async with db.get_session() as session:
        try:
            anomaly = await workflow.auto_resolve(session, anomaly_id)
        except SentinelError as e:
            raise _http_error(e)
        return _to_response(anomaly)
