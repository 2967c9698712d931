"""Resolution workflow: the status state machine for detected anomalies.

    open ──► investigating ──► resolved
      │             │
      ├─────────────┴────────► escalated
      └──────────────────────► resolved

``resolved`` and ``escalated`` are terminal. Every accepted transition
updates the anomaly with a status-guarded UPDATE and appends exactly one
history entry in the same transaction.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from supply_sentinel.common.config import SentinelSettings
from supply_sentinel.common.exceptions import (
    AnomalyNotFoundError,
    InvalidRequestError,
    InvalidStateError,
)
from supply_sentinel.common.models import utcnow
from supply_sentinel.anomaly.models import AnomalyModel

logger = logging.getLogger(__name__)

STATUSES: tuple[str, ...] = ("open", "investigating", "resolved", "escalated")
TERMINAL_STATUSES: frozenset[str] = frozenset({"resolved", "escalated"})


@dataclass(frozen=True)
class Transition:
    allowed_from: frozenset[str]
    target: str
    history_action: str


TRANSITIONS: dict[str, Transition] = {
    "investigate": Transition(frozenset({"open"}), "investigating", "investigated"),
    "resolve": Transition(frozenset({"open", "investigating"}), "resolved", "resolved"),
    "escalate": Transition(frozenset({"open", "investigating"}), "escalated", "escalated"),
}


def allowed_actions(status: str) -> list[str]:
    """Workflow actions available from a status, in declaration order."""
    return [name for name, t in TRANSITIONS.items() if status in t.allowed_from]


def _require_text(value: Optional[str], field_name: str) -> str:
    if value is None or not value.strip():
        raise InvalidRequestError(f"{field_name} must not be empty")
    return value.strip()


class ResolutionWorkflow:
    """Operator-driven transitions with an audit entry per step."""

    def __init__(self, settings: SentinelSettings, history_service):
        self.settings = settings
        self.history_service = history_service

    async def investigate(
        self,
        session: AsyncSession,
        anomaly_id: str,
        performed_by: str = "operator",
        notes: Optional[str] = None,
    ) -> AnomalyModel:
        anomaly = await self._load(session, anomaly_id)
        return await self._apply(
            session, anomaly, "investigate", {}, performed_by, notes,
        )

    async def resolve(
        self,
        session: AsyncSession,
        anomaly_id: str,
        resolution_notes: Optional[str],
        performed_by: str = "operator",
    ) -> AnomalyModel:
        notes = _require_text(resolution_notes, "resolution_notes")
        anomaly = await self._load(session, anomaly_id)
        values = {
            "resolved_at": utcnow(),
            "resolved_by": performed_by,
            "resolution_applied": notes,
            "auto_resolved": False,
        }
        return await self._apply(session, anomaly, "resolve", values, performed_by, notes)

    async def escalate(
        self,
        session: AsyncSession,
        anomaly_id: str,
        escalation_reason: Optional[str],
        escalated_to: Optional[str] = None,
        performed_by: str = "operator",
    ) -> AnomalyModel:
        reason = _require_text(escalation_reason, "escalation_reason")
        anomaly = await self._load(session, anomaly_id)
        values = {
            "escalated_at": utcnow(),
            "escalation_reason": reason,
            "escalated_to": escalated_to,
        }
        return await self._apply(session, anomaly, "escalate", values, performed_by, reason)

    async def auto_resolve(self, session: AsyncSession, anomaly_id: str) -> AnomalyModel:
        """Opt-in resolution using the playbook's suggested remediation.

        Only anomaly types flagged ``can_auto_resolve`` qualify. Nothing calls
        this implicitly; an operator or scheduler has to ask for it.
        """
        anomaly = await self._load(session, anomaly_id)
        self._check_allowed(anomaly, "resolve")
        if not anomaly.can_auto_resolve:
            raise InvalidRequestError(
                f"Anomaly type '{anomaly.anomaly_type}' is not auto-resolvable"
            )
        notes = anomaly.suggested_resolution
        values = {
            "resolved_at": utcnow(),
            "resolved_by": "system",
            "resolution_applied": notes,
            "auto_resolved": True,
        }
        return await self._apply(session, anomaly, "resolve", values, "system", notes)

    # ── Internal helpers ──

    async def _load(self, session: AsyncSession, anomaly_id: str) -> AnomalyModel:
        result = await session.execute(
            select(AnomalyModel).where(AnomalyModel.id == anomaly_id)
        )
        anomaly = result.scalar_one_or_none()
        if anomaly is None:
            raise AnomalyNotFoundError()
        return anomaly

    @staticmethod
    def _check_allowed(anomaly: AnomalyModel, action: str) -> Transition:
        transition = TRANSITIONS[action]
        if anomaly.status not in transition.allowed_from:
            raise InvalidStateError(
                f"Cannot {action} an anomaly in status '{anomaly.status}'"
            )
        return transition

    async def _apply(
        self,
        session: AsyncSession,
        anomaly: AnomalyModel,
        action: str,
        values: dict[str, Any],
        performed_by: str,
        notes: Optional[str],
    ) -> AnomalyModel:
        transition = self._check_allowed(anomaly, action)
        observed = anomaly.status

        # Applied only if nobody moved the anomaly since we read it.
        result = await session.execute(
            update(AnomalyModel)
            .where(AnomalyModel.id == anomaly.id, AnomalyModel.status == observed)
            .values(status=transition.target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidStateError(
                f"Anomaly {anomaly.id} changed status concurrently; expected '{observed}'"
            )

        await self.history_service.record_entry(
            session, anomaly.id, transition.history_action, performed_by, notes,
        )
        await session.refresh(anomaly)
        logger.info(
            "Anomaly %s moved %s -> %s by %s",
            anomaly.id, observed, transition.target, performed_by,
        )
        return anomaly
