"""SQLAlchemy model for the append-only anomaly resolution history."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from supply_sentinel.common.models import Base, generate_uuid, utcnow


class ResolutionHistoryModel(Base):
    __tablename__ = "anomaly_resolution_history"
    __table_args__ = (
        UniqueConstraint("anomaly_id", "sequence", name="uq_history_anomaly_sequence"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    anomaly_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("anomaly_logs.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    performed_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system")
    performed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    signature: Mapped[str] = mapped_column(String(64), nullable=False)
