#!/usr/bin/env python3
"""Seed the database with supply-chain records that trip every detection rule.

Usage:
    python scripts/seed_demo.py
    sentinel scan
"""

import asyncio
import sys
from datetime import timedelta
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from supply_sentinel.common.config import get_settings
from supply_sentinel.common.database import DatabaseManager
from supply_sentinel.common.models import utcnow
from supply_sentinel.supply.models import (
    ComplianceSyncLogModel,
    ErpSyncLogModel,
    ProcurementBatchModel,
    ShipmentModel,
    VehicleModel,
)


def demo_records():
    now = utcnow()
    return [
        ProcurementBatchModel(
            batch_number="TB-2024-0107", quantity_kg=1250.0, status="approved",
            serialization_complete=False, created_at=now - timedelta(days=10),
        ),
        ProcurementBatchModel(
            batch_number="TB-2024-0112", quantity_kg=480.0, status="approved",
            serialization_complete=False, created_at=now - timedelta(days=2),
        ),
        ShipmentModel(
            shipment_number="SH-88213", status="in-transit",
            origin="Harare Auction Floors", destination="Beira Port",
            expected_arrival=now - timedelta(hours=50),
        ),
        ShipmentModel(
            shipment_number="SH-88240", status="in-transit",
            origin="Lilongwe Depot", destination="Blantyre Warehouse",
            expected_arrival=now - timedelta(hours=6),
        ),
        ErpSyncLogModel(
            sync_type="purchase_orders", entity_type="order", status="failed",
            error_message="401 Unauthorized", created_at=now - timedelta(hours=3),
        ),
        ComplianceSyncLogModel(
            sync_type="eu_tpd", entity_type="serial_numbers", status="failed",
            error_message="Endpoint timeout", record_count=320,
            created_at=now - timedelta(days=1),
        ),
        VehicleModel(
            registration="ADF-4471", status="active",
            next_maintenance_date=now - timedelta(days=5),
        ),
        VehicleModel(
            registration="ADF-5520", status="active",
            next_maintenance_date=now - timedelta(days=20),
        ),
    ]


async def seed_demo() -> None:
    settings = get_settings()
    db = DatabaseManager(settings)
    await db.init()
    await db.create_all()

    records = demo_records()
    async with db.get_session() as session:
        session.add_all(records)
        for record in records:
            print(f"  [created] {record.__tablename__}")

    await db.close()
    print(f"\nDone. {len(records)} records seeded.")


if __name__ == "__main__":
    asyncio.run(seed_demo())
