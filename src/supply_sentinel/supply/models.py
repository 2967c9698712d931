"""SQLAlchemy models for the supply-chain records the detector inspects.

These tables are owned by the operational side of the platform; the detector
only reads them, so only the columns its rules need are mapped.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_sentinel.common.models import Base, TimestampMixin, generate_uuid


class ProcurementBatchModel(Base, TimestampMixin):
    __tablename__ = "procurement_batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    batch_number: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    quantity_kg: Mapped[float] = mapped_column(Float, default=0.0)
    status: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    serialization_complete: Mapped[bool] = mapped_column(Boolean, default=False)


class ShipmentModel(Base, TimestampMixin):
    __tablename__ = "shipments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    shipment_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    origin: Mapped[str] = mapped_column(String(255), default="")
    destination: Mapped[str] = mapped_column(String(255), default="")
    expected_arrival: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )


class _SyncLogColumns(TimestampMixin):
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    sync_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    record_count: Mapped[int] = mapped_column(Integer, default=0)


class ErpSyncLogModel(Base, _SyncLogColumns):
    __tablename__ = "erp_sync_logs"


class ComplianceSyncLogModel(Base, _SyncLogColumns):
    __tablename__ = "compliance_sync_logs"


class VehicleModel(Base, TimestampMixin):
    __tablename__ = "vehicles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    registration: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    next_maintenance_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
