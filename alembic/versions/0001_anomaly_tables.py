"""anomaly log and resolution history tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "anomaly_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("anomaly_type", sa.String(50), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("suggested_resolution", sa.Text()),
        sa.Column("affected_resource_type", sa.String(50), nullable=False),
        sa.Column("affected_resource_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("metadata", sa.JSON()),
        sa.Column("ai_root_cause", sa.Text(), nullable=True),
        sa.Column("root_cause", sa.Text(), nullable=True),
        sa.Column("detected_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.String(255), nullable=True),
        sa.Column("resolution_applied", sa.Text(), nullable=True),
        sa.Column("auto_resolved", sa.Boolean()),
        sa.Column("escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escalated_to", sa.String(255), nullable=True),
        sa.Column("escalation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    for column in ("anomaly_type", "severity", "affected_resource_id", "status"):
        op.create_index(f"ix_anomaly_logs_{column}", "anomaly_logs", [column])

    op.create_table(
        "anomaly_resolution_history",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "anomaly_id", sa.String(36), sa.ForeignKey("anomaly_logs.id"), nullable=False,
        ),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(255), nullable=False),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("prev_hash", sa.String(64), nullable=True),
        sa.Column("entry_hash", sa.String(64), nullable=False),
        sa.Column("signature", sa.String(64), nullable=False),
        sa.UniqueConstraint("anomaly_id", "sequence", name="uq_history_anomaly_sequence"),
    )
    op.create_index(
        "ix_anomaly_resolution_history_anomaly_id",
        "anomaly_resolution_history", ["anomaly_id"],
    )
    op.create_index(
        "ix_anomaly_resolution_history_action",
        "anomaly_resolution_history", ["action"],
    )


def downgrade() -> None:
    op.drop_table("anomaly_resolution_history")
    op.drop_table("anomaly_logs")
