"""SQLAlchemy models for detected anomalies."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_sentinel.common.models import Base, TimestampMixin, generate_uuid, utcnow


class AnomalyModel(Base, TimestampMixin):
    __tablename__ = "anomaly_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    anomaly_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    suggested_resolution: Mapped[str] = mapped_column(Text, default="")
    # Weak reference: no foreign key, the referenced row may change or vanish.
    affected_resource_type: Mapped[str] = mapped_column(String(50), nullable=False)
    affected_resource_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default="open", nullable=False, index=True)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    ai_root_cause: Mapped[str | None] = mapped_column(Text, nullable=True)
    root_cause: Mapped[str | None] = mapped_column(Text, nullable=True)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolution_applied: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    escalated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    escalated_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    escalation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def can_auto_resolve(self) -> bool:
        return bool((self.metadata_ or {}).get("can_auto_resolve", False))
