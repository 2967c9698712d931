"""Dependency injection singletons for Supply Sentinel."""

from supply_sentinel.common.config import get_settings
from supply_sentinel.common.database import DatabaseManager
from supply_sentinel.anomaly.service import AnomalyService
from supply_sentinel.anomaly.workflow import ResolutionWorkflow
from supply_sentinel.audit.service import HistoryService
from supply_sentinel.enrichment.client import RootCauseClient
from supply_sentinel.enrichment.queue import RootCauseEnricher

_db: DatabaseManager | None = None
_history: HistoryService | None = None
_enricher: RootCauseEnricher | None = None
_anomaly: AnomalyService | None = None
_workflow: ResolutionWorkflow | None = None


def get_db() -> DatabaseManager:
    global _db
    if _db is None:
        _db = DatabaseManager(get_settings())
    return _db


def get_history_service() -> HistoryService:
    global _history
    if _history is None:
        _history = HistoryService(get_settings())
    return _history


def get_enricher() -> RootCauseEnricher:
    global _enricher
    if _enricher is None:
        settings = get_settings()
        client = None
        if settings.enrichment_enabled:
            client = RootCauseClient(
                settings.llm_base_url,
                settings.llm_api_key,
                settings.llm_model,
                timeout=settings.enrichment_timeout,
            )
        _enricher = RootCauseEnricher(
            get_db(),
            client,
            timeout=settings.enrichment_timeout,
            workers=settings.enrichment_workers,
        )
    return _enricher


def get_anomaly_service() -> AnomalyService:
    global _anomaly
    if _anomaly is None:
        _anomaly = AnomalyService(
            get_settings(),
            history_service=get_history_service(),
            enricher=get_enricher(),
        )
    return _anomaly


def get_workflow() -> ResolutionWorkflow:
    global _workflow
    if _workflow is None:
        _workflow = ResolutionWorkflow(get_settings(), get_history_service())
    return _workflow


def reset_singletons() -> None:
    """Reset all singletons (for testing)."""
    global _db, _history, _enricher, _anomaly, _workflow
    _db = None
    _history = None
    _enricher = None
    _anomaly = None
    _workflow = None
