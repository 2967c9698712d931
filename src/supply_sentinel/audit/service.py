"""History service for the hash-chained anomaly resolution trail."""

import hashlib
import hmac as hmac_mod
import json
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from supply_sentinel.common.config import SentinelSettings
from supply_sentinel.audit.models import ResolutionHistoryModel
from supply_sentinel.anomaly.models import AnomalyModel

# History action -> anomaly status it leaves behind
ACTION_TO_STATUS: dict[str, str] = {
    "detected": "open",
    "investigated": "investigating",
    "resolved": "resolved",
    "escalated": "escalated",
}
VALID_ACTIONS: frozenset[str] = frozenset(ACTION_TO_STATUS)


class HistoryService:
    """Append-only, hash-chained history per anomaly."""

    def __init__(self, settings: SentinelSettings):
        self.settings = settings

    # ── Write ──

    async def record_entry(
        self,
        session: AsyncSession,
        anomaly_id: str,
        action: str,
        performed_by: str = "system",
        notes: Optional[str] = None,
    ) -> ResolutionHistoryModel:
        """Append a new entry to the anomaly's history chain."""
        if action not in VALID_ACTIONS:
            raise ValueError(f"Unknown history action '{action}'")

        head = await self.get_latest(session, anomaly_id)
        prev_hash = head.entry_hash if head else None
        sequence = head.sequence + 1 if head else 1

        entry_hash = self._compute_entry_hash(
            anomaly_id, sequence, action, performed_by, notes, prev_hash,
        )
        entry = ResolutionHistoryModel(
            anomaly_id=anomaly_id,
            sequence=sequence,
            action=action,
            notes=notes,
            performed_by=performed_by,
            prev_hash=prev_hash,
            entry_hash=entry_hash,
            signature=self._sign(entry_hash),
        )
        session.add(entry)
        await session.flush()
        return entry

    # ── Read ──

    async def get_latest(
        self, session: AsyncSession, anomaly_id: str,
    ) -> Optional[ResolutionHistoryModel]:
        """Return the most recent entry for an anomaly."""
        result = await session.execute(
            select(ResolutionHistoryModel)
            .where(ResolutionHistoryModel.anomaly_id == anomaly_id)
            .order_by(ResolutionHistoryModel.sequence.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_history(
        self,
        session: AsyncSession,
        anomaly_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[ResolutionHistoryModel]:
        """Paginated history, newest first."""
        result = await session.execute(
            select(ResolutionHistoryModel)
            .where(ResolutionHistoryModel.anomaly_id == anomaly_id)
            .order_by(ResolutionHistoryModel.sequence.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    # ── Verify ──

    async def verify_chain(
        self, session: AsyncSession, anomaly_id: str,
    ) -> dict[str, Any]:
        """Walk the chain oldest to newest and check it against the anomaly status."""
        result = await session.execute(
            select(ResolutionHistoryModel)
            .where(ResolutionHistoryModel.anomaly_id == anomaly_id)
            .order_by(ResolutionHistoryModel.sequence.asc())
        )
        entries = list(result.scalars().all())
        status = (
            await session.execute(
                select(AnomalyModel.status).where(AnomalyModel.id == anomaly_id)
            )
        ).scalar_one_or_none()

        if not entries:
            return {
                "valid": True,
                "entries_checked": 0,
                "break_at": None,
                "status_consistent": status is None,
            }

        prev_hash = None
        for index, entry in enumerate(entries):
            expected_hash = self._compute_entry_hash(
                entry.anomaly_id, entry.sequence, entry.action,
                entry.performed_by, entry.notes, entry.prev_hash,
            )
            if (
                entry.prev_hash != prev_hash
                or entry.sequence != index + 1
                or entry.entry_hash != expected_hash
                or not self._verify_signature(entry.entry_hash, entry.signature)
            ):
                return {
                    "valid": False,
                    "entries_checked": index,
                    "break_at": entry.id,
                    "status_consistent": False,
                }
            prev_hash = entry.entry_hash

        return {
            "valid": True,
            "entries_checked": len(entries),
            "break_at": None,
            "status_consistent": ACTION_TO_STATUS[entries[-1].action] == status,
        }

    # ── Internal helpers ──

    @staticmethod
    def _compute_entry_hash(
        anomaly_id: str,
        sequence: int,
        action: str,
        performed_by: str,
        notes: Optional[str],
        prev_hash: Optional[str],
    ) -> str:
        """SHA-256 of canonical JSON of the entry fields."""
        canonical = json.dumps(
            {
                "anomaly_id": anomaly_id,
                "sequence": sequence,
                "action": action,
                "performed_by": performed_by,
                "notes": notes,
                "prev_hash": prev_hash,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode()).hexdigest()

    def _sign(self, entry_hash: str) -> str:
        return hmac_mod.new(
            self.settings.audit_key.encode(),
            entry_hash.encode(),
            hashlib.sha256,
        ).hexdigest()

    def _verify_signature(self, entry_hash: str, signature: str) -> bool:
        return hmac_mod.compare_digest(self._sign(entry_hash), signature)
