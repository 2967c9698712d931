"""Tests for the hash-chained resolution history."""

import pytest
from sqlalchemy import update

from supply_sentinel.common.config import SentinelSettings
from supply_sentinel.common.database import DatabaseManager
from supply_sentinel.anomaly.models import AnomalyModel
from supply_sentinel.audit.models import ResolutionHistoryModel
from supply_sentinel.audit.service import HistoryService


AUDIT_KEY = "test-audit-key-for-unit-tests"


def make_settings(**overrides) -> SentinelSettings:
    defaults = {"audit_key": AUDIT_KEY, "db_url": "sqlite+aiosqlite://"}
    defaults.update(overrides)
    return SentinelSettings(**defaults)


@pytest.fixture
async def db():
    manager = DatabaseManager(make_settings())
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def history_svc():
    return HistoryService(make_settings())


async def _create_anomaly(db, status="open"):
    async with db.get_session() as session:
        anomaly = AnomalyModel(
            anomaly_type="delayed_shipment",
            severity="MEDIUM",
            title="Shipment late",
            affected_resource_type="shipment",
            affected_resource_id="s-1",
            status=status,
        )
        session.add(anomaly)
        await session.flush()
        return anomaly.id


class TestRecordEntry:
    async def test_first_entry(self, db, history_svc):
        anomaly_id = await _create_anomaly(db)
        async with db.get_session() as session:
            entry = await history_svc.record_entry(session, anomaly_id, "detected")
            assert entry.sequence == 1
            assert entry.prev_hash is None
            assert entry.performed_by == "system"
            assert entry.performed_at is not None
            assert len(entry.entry_hash) == 64
            assert len(entry.signature) == 64

    async def test_chained_entries(self, db, history_svc):
        anomaly_id = await _create_anomaly(db)
        async with db.get_session() as session:
            first = await history_svc.record_entry(session, anomaly_id, "detected")
            second = await history_svc.record_entry(
                session, anomaly_id, "investigated", "ops", "checking GPS",
            )
            assert second.sequence == 2
            assert second.prev_hash == first.entry_hash
            assert second.notes == "checking GPS"

    async def test_chains_are_per_anomaly(self, db, history_svc):
        a = await _create_anomaly(db)
        b = await _create_anomaly(db)
        async with db.get_session() as session:
            await history_svc.record_entry(session, a, "detected")
            other = await history_svc.record_entry(session, b, "detected")
            assert other.sequence == 1
            assert other.prev_hash is None

    async def test_unknown_action_rejected(self, db, history_svc):
        anomaly_id = await _create_anomaly(db)
        async with db.get_session() as session:
            with pytest.raises(ValueError):
                await history_svc.record_entry(session, anomaly_id, "reopened")


class TestQueries:
    async def test_history_newest_first(self, db, history_svc):
        anomaly_id = await _create_anomaly(db)
        async with db.get_session() as session:
            await history_svc.record_entry(session, anomaly_id, "detected")
            await history_svc.record_entry(session, anomaly_id, "investigated")
            await history_svc.record_entry(session, anomaly_id, "resolved")
        async with db.get_session() as session:
            entries = await history_svc.get_history(session, anomaly_id)
            assert [e.action for e in entries] == ["resolved", "investigated", "detected"]
            page = await history_svc.get_history(session, anomaly_id, limit=1, offset=1)
            assert [e.action for e in page] == ["investigated"]
            latest = await history_svc.get_latest(session, anomaly_id)
            assert latest.action == "resolved"

    async def test_latest_none_without_entries(self, db, history_svc):
        anomaly_id = await _create_anomaly(db)
        async with db.get_session() as session:
            assert await history_svc.get_latest(session, anomaly_id) is None


class TestVerifyChain:
    async def test_valid_chain(self, db, history_svc):
        anomaly_id = await _create_anomaly(db, status="investigating")
        async with db.get_session() as session:
            await history_svc.record_entry(session, anomaly_id, "detected")
            await history_svc.record_entry(session, anomaly_id, "investigated")
        async with db.get_session() as session:
            result = await history_svc.verify_chain(session, anomaly_id)
        assert result == {
            "valid": True,
            "entries_checked": 2,
            "break_at": None,
            "status_consistent": True,
        }

    async def test_status_drift_reported(self, db, history_svc):
        anomaly_id = await _create_anomaly(db, status="resolved")
        async with db.get_session() as session:
            await history_svc.record_entry(session, anomaly_id, "detected")
        async with db.get_session() as session:
            result = await history_svc.verify_chain(session, anomaly_id)
        assert result["valid"] is True
        assert result["status_consistent"] is False

    async def test_tampered_notes_detected(self, db, history_svc):
        anomaly_id = await _create_anomaly(db)
        async with db.get_session() as session:
            await history_svc.record_entry(session, anomaly_id, "detected")
            second = await history_svc.record_entry(
                session, anomaly_id, "investigated", "ops", "original",
            )
            second_id = second.id
        async with db.get_session() as session:
            await session.execute(
                update(ResolutionHistoryModel)
                .where(ResolutionHistoryModel.id == second_id)
                .values(notes="rewritten")
            )
        async with db.get_session() as session:
            result = await history_svc.verify_chain(session, anomaly_id)
        assert result["valid"] is False
        assert result["entries_checked"] == 1
        assert result["break_at"] == second_id

    async def test_foreign_key_signature_rejected(self, db, history_svc):
        anomaly_id = await _create_anomaly(db)
        forger = HistoryService(make_settings(audit_key="someone-else"))
        async with db.get_session() as session:
            await forger.record_entry(session, anomaly_id, "detected")
        async with db.get_session() as session:
            result = await history_svc.verify_chain(session, anomaly_id)
        assert result["valid"] is False

    async def test_empty_chain(self, db, history_svc):
        async with db.get_session() as session:
            result = await history_svc.verify_chain(session, "missing-id")
        assert result["valid"] is True
        assert result["entries_checked"] == 0
