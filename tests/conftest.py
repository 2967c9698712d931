"""Shared test fixtures for Supply Sentinel."""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from supply_sentinel.common.models import utcnow
from supply_sentinel.supply.models import (
    ComplianceSyncLogModel,
    ErpSyncLogModel,
    ProcurementBatchModel,
    ShipmentModel,
    VehicleModel,
)


API_KEY = "test-admin-api-key"
AUDIT_KEY = "test-audit-key-for-unit-tests"


async def seed_violations(session, now=None):
    """One record per detection domain, each violating its threshold."""
    now = now or utcnow()
    records = {
        "batch": ProcurementBatchModel(
            batch_number="TB-0107", quantity_kg=1250.0, status="approved",
            serialization_complete=False, created_at=now - timedelta(days=10),
        ),
        "shipment": ShipmentModel(
            shipment_number="SH-88213", status="in-transit",
            origin="Harare", destination="Beira",
            expected_arrival=now - timedelta(hours=50),
        ),
        "erp_log": ErpSyncLogModel(
            sync_type="purchase_orders", entity_type="order", status="failed",
            error_message="401 Unauthorized", created_at=now - timedelta(hours=3),
        ),
        "compliance_log": ComplianceSyncLogModel(
            sync_type="eu_tpd", entity_type="serial_numbers", status="failed",
            error_message="Endpoint timeout", created_at=now - timedelta(days=1),
        ),
        "vehicle": VehicleModel(
            registration="ADF-4471", status="active",
            next_maintenance_date=now - timedelta(days=5),
        ),
    }
    session.add_all(records.values())
    await session.flush()
    return records


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def app(monkeypatch):
    """Create a test app with in-memory DB."""
    monkeypatch.setenv("SENTINEL_DB_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("SENTINEL_AUDIT_KEY", AUDIT_KEY)
    monkeypatch.setenv("SENTINEL_API_KEY", API_KEY)
    monkeypatch.setenv("SENTINEL_LLM_API_KEY", "")

    # Clear caches and singletons so new env vars take effect
    from supply_sentinel.common.config import get_settings
    get_settings.cache_clear()

    from supply_sentinel.deps import reset_singletons
    reset_singletons()

    from supply_sentinel.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from supply_sentinel.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Sentinel-Api-Key": API_KEY}


@pytest.fixture
def seed():
    """Async helper that inserts one violating record per detection domain."""
    return seed_violations
