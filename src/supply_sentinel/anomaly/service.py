"""Anomaly service: scan supply-chain records, then store and query anomalies."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from supply_sentinel.common.config import SentinelSettings
from supply_sentinel.common.exceptions import (
    AnomalyNotFoundError,
    DataStoreUnavailableError,
    InvalidRequestError,
)
from supply_sentinel.common.models import utcnow
from supply_sentinel.anomaly import detector
from supply_sentinel.anomaly.detector import AnomalyReport
from supply_sentinel.anomaly.models import AnomalyModel
from supply_sentinel.enrichment.queue import EnrichmentJob
from supply_sentinel.supply.models import (
    ComplianceSyncLogModel,
    ErpSyncLogModel,
    ProcurementBatchModel,
    ShipmentModel,
    VehicleModel,
)

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Outcome of one detection pass."""
    detected: int = 0
    anomalies: list[dict[str, Any]] = field(default_factory=list)
    scanned_domains: list[str] = field(default_factory=list)
    failed_domains: list[str] = field(default_factory=list)
    enrichment_jobs: list[EnrichmentJob] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return len(self.enrichment_jobs)


class AnomalyService:
    """Rule-based anomaly detection over supply-chain records."""

    def __init__(self, settings: SentinelSettings, history_service=None, enricher=None):
        self.settings = settings
        self.history_service = history_service
        self.enricher = enricher
        self._rules = {
            "serialization": self._scan_serialization,
            "logistics": self._scan_logistics,
            "erp": self._scan_erp,
            "compliance": self._scan_compliance,
            "maintenance": self._scan_maintenance,
        }

    # ── Detection ──

    @staticmethod
    def resolve_domains(scan_type: Optional[str]) -> list[str]:
        """Map a scanType filter to the domains it covers."""
        if scan_type is None or scan_type == "all":
            return list(detector.SCAN_DOMAINS)
        if scan_type not in detector.SCAN_DOMAINS:
            valid = ", ".join(detector.SCAN_DOMAINS)
            raise InvalidRequestError(
                f"Unknown scan type '{scan_type}'; expected one of: {valid}, all"
            )
        return [scan_type]

    async def scan(
        self,
        session: AsyncSession,
        scan_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ScanResult:
        """
        Run the detection rules for the requested domains and insert one
        anomaly per violation.

        A failing domain is rolled back to its savepoint, logged and skipped.
        Raises DataStoreUnavailableError when the store is unreachable, when
        every requested domain failed, or when the insert fails.
        """
        domains = self.resolve_domains(scan_type)
        now = now or utcnow()

        try:
            await session.execute(text("SELECT 1"))
        except SQLAlchemyError as exc:
            raise DataStoreUnavailableError() from exc

        result = ScanResult()
        reports: list[AnomalyReport] = []
        for domain in domains:
            try:
                async with session.begin_nested():
                    found = await self._rules[domain](session, now)
            except Exception:
                logger.exception("Anomaly scan failed for domain %s", domain)
                result.failed_domains.append(domain)
                continue
            result.scanned_domains.append(domain)
            reports.extend(found)

        if not result.scanned_domains:
            raise DataStoreUnavailableError("Every requested scan domain failed")

        try:
            anomalies = await self._record(session, reports, now)
        except SQLAlchemyError as exc:
            raise DataStoreUnavailableError("Failed to store detected anomalies") from exc

        result.detected = len(anomalies)
        for anomaly in anomalies:
            result.anomalies.append({
                "id": anomaly.id,
                "type": anomaly.anomaly_type,
                "severity": anomaly.severity,
                "can_auto_resolve": anomaly.can_auto_resolve,
            })
            if anomaly.severity == detector.SEVERITY_CRITICAL:
                result.enrichment_jobs.append(_enrichment_job(anomaly))

        logger.info(
            "Anomaly scan finished: %d detected, %d critical, failed domains: %s",
            result.detected, result.critical_count, result.failed_domains or "none",
        )
        return result

    def enqueue_enrichment(self, result: ScanResult) -> int:
        """Hand CRITICAL anomalies to the root-cause queue. Call after commit."""
        if self.enricher is None:
            return 0
        return sum(1 for job in result.enrichment_jobs if self.enricher.submit(job))

    async def _record(
        self, session: AsyncSession, reports: list[AnomalyReport], now: datetime,
    ) -> list[AnomalyModel]:
        anomalies = [
            AnomalyModel(
                anomaly_type=report.anomaly_type,
                severity=report.severity,
                title=report.title,
                description=report.description,
                suggested_resolution=report.suggested_resolution,
                affected_resource_type=report.affected_resource_type,
                affected_resource_id=report.affected_resource_id,
                status="open",
                metadata_=report.metadata.to_dict(),
                detected_at=now,
            )
            for report in reports
        ]
        if not anomalies:
            return []
        session.add_all(anomalies)
        await session.flush()

        if self.history_service:
            for anomaly in anomalies:
                await self.history_service.record_entry(
                    session, anomaly.id, "detected", "system",
                )
        return anomalies

    # ── Rules ──

    async def _scan_serialization(self, session: AsyncSession, now: datetime) -> list[AnomalyReport]:
        result = await session.execute(
            select(ProcurementBatchModel)
            .where(
                ProcurementBatchModel.status.in_(self.settings.serialization_statuses),
                ProcurementBatchModel.serialization_complete.is_(False),
            )
            .order_by(ProcurementBatchModel.created_at.asc())
            .limit(self.settings.scan_row_limit)
        )
        return [detector.serialization_backlog(batch, now) for batch in result.scalars().all()]

    async def _scan_logistics(self, session: AsyncSession, now: datetime) -> list[AnomalyReport]:
        result = await session.execute(
            select(ShipmentModel)
            .where(
                ShipmentModel.status == "in-transit",
                ShipmentModel.expected_arrival.is_not(None),
                ShipmentModel.expected_arrival < now,
            )
            .order_by(ShipmentModel.expected_arrival.asc())
            .limit(self.settings.scan_row_limit)
        )
        return [detector.shipment_delay(shipment, now) for shipment in result.scalars().all()]

    async def _scan_erp(self, session: AsyncSession, now: datetime) -> list[AnomalyReport]:
        return await self._scan_sync_failures(
            session, ErpSyncLogModel, detector.ERP_SYNC_FAILURE, now,
        )

    async def _scan_compliance(self, session: AsyncSession, now: datetime) -> list[AnomalyReport]:
        return await self._scan_sync_failures(
            session, ComplianceSyncLogModel, detector.COMPLIANCE_SYNC_FAILURE, now,
        )

    async def _scan_sync_failures(
        self, session: AsyncSession, model, anomaly_type: str, now: datetime,
    ) -> list[AnomalyReport]:
        window_days = self.settings.sync_failure_window_days
        filters = (
            model.status == "failed",
            model.created_at >= now - timedelta(days=window_days),
            model.created_at <= now,
        )
        counts = dict(
            (
                await session.execute(
                    select(model.sync_type, func.count(model.id))
                    .where(*filters)
                    .group_by(model.sync_type)
                )
            ).all()
        )
        result = await session.execute(
            select(model)
            .where(*filters)
            .order_by(model.created_at.desc())
            .limit(self.settings.scan_row_limit)
        )
        return [
            detector.sync_failure(log, anomaly_type, counts.get(log.sync_type, 1), window_days)
            for log in result.scalars().all()
        ]

    async def _scan_maintenance(self, session: AsyncSession, now: datetime) -> list[AnomalyReport]:
        result = await session.execute(
            select(VehicleModel)
            .where(
                VehicleModel.status == "active",
                VehicleModel.next_maintenance_date.is_not(None),
                VehicleModel.next_maintenance_date < now,
            )
            .order_by(VehicleModel.next_maintenance_date.asc())
            .limit(self.settings.scan_row_limit)
        )
        return [detector.maintenance_overdue(vehicle, now) for vehicle in result.scalars().all()]

    # ── Queries ──

    async def get_anomaly(self, session: AsyncSession, anomaly_id: str) -> AnomalyModel:
        result = await session.execute(
            select(AnomalyModel).where(AnomalyModel.id == anomaly_id)
        )
        anomaly = result.scalar_one_or_none()
        if anomaly is None:
            raise AnomalyNotFoundError()
        return anomaly

    async def list_anomalies(
        self,
        session: AsyncSession,
        severity: Optional[str] = None,
        anomaly_type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[AnomalyModel], int]:
        """List anomalies newest first with count. Returns (items, total)."""
        filters = []
        if severity is not None:
            filters.append(AnomalyModel.severity == severity.upper())
        if anomaly_type is not None:
            filters.append(AnomalyModel.anomaly_type == anomaly_type)
        if status is not None:
            filters.append(AnomalyModel.status == status)

        count_q = select(func.count(AnomalyModel.id))
        if filters:
            count_q = count_q.where(*filters)
        total = (await session.execute(count_q)).scalar() or 0

        query = select(AnomalyModel)
        if filters:
            query = query.where(*filters)
        query = (
            query.order_by(AnomalyModel.detected_at.desc(), AnomalyModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all()), total

    async def get_stats(self, session: AsyncSession) -> dict[str, Any]:
        """Counts by status and severity, plus open auto-resolvable anomalies."""
        by_status = dict(
            (
                await session.execute(
                    select(AnomalyModel.status, func.count(AnomalyModel.id))
                    .group_by(AnomalyModel.status)
                )
            ).all()
        )
        by_severity = dict(
            (
                await session.execute(
                    select(AnomalyModel.severity, func.count(AnomalyModel.id))
                    .group_by(AnomalyModel.severity)
                )
            ).all()
        )
        open_rows = await session.execute(
            select(AnomalyModel.anomaly_type, func.count(AnomalyModel.id))
            .where(AnomalyModel.status == "open")
            .group_by(AnomalyModel.anomaly_type)
        )
        auto_resolvable_open = sum(
            count for anomaly_type, count in open_rows.all()
            if detector.lookup_resolution(anomaly_type)[1]
        )
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_severity": by_severity,
            "critical": by_severity.get(detector.SEVERITY_CRITICAL, 0),
            "open": by_status.get("open", 0),
            "escalated": by_status.get("escalated", 0),
            "auto_resolvable_open": auto_resolvable_open,
        }


def _enrichment_job(anomaly: AnomalyModel) -> EnrichmentJob:
    return EnrichmentJob(
        anomaly_id=anomaly.id,
        anomaly_type=anomaly.anomaly_type,
        severity=anomaly.severity,
        title=anomaly.title,
        description=anomaly.description,
        affected_resource_type=anomaly.affected_resource_type,
        affected_resource_id=anomaly.affected_resource_id,
        metadata=dict(anomaly.metadata_ or {}),
    )
