"""Resolution history API router."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select

from supply_sentinel.common.exceptions import AnomalyNotFoundError
from supply_sentinel.common.security import require_api_key
from supply_sentinel.anomaly.models import AnomalyModel
from supply_sentinel.audit.schemas import HistoryChainVerification, HistoryEntryResponse

router = APIRouter()


def _get_service():
    from supply_sentinel.deps import get_history_service
    return get_history_service()


def _get_db():
    from supply_sentinel.deps import get_db
    return get_db()


async def _ensure_anomaly(session, anomaly_id: str) -> None:
    found = await session.execute(
        select(AnomalyModel.id).where(AnomalyModel.id == anomaly_id)
    )
    if found.scalar_one_or_none() is None:
        exc = AnomalyNotFoundError()
        raise HTTPException(
            status_code=404, detail={"error": exc.message, "code": exc.code},
        )


@router.get("/anomalies/{anomaly_id}/history", response_model=list[HistoryEntryResponse])
async def get_history(
    anomaly_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await _ensure_anomaly(session, anomaly_id)
        entries = await svc.get_history(session, anomaly_id, limit=limit, offset=offset)
        return [HistoryEntryResponse.model_validate(e) for e in entries]


@router.get(
    "/anomalies/{anomaly_id}/history/verify",
    response_model=HistoryChainVerification,
)
async def verify_history(anomaly_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await _ensure_anomaly(session, anomaly_id)
        result = await svc.verify_chain(session, anomaly_id)
        return HistoryChainVerification(**result)
