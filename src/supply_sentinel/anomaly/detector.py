"""Threshold rules that turn supply-chain records into anomaly reports.

Everything in this module is pure: callers query the rows, pass them in
together with a reference ``now`` and persist whatever comes back. Severity
is decided once here and never recomputed after insertion.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, ClassVar, Optional

from supply_sentinel.common.models import as_utc

SEVERITY_LOW = "LOW"
SEVERITY_MEDIUM = "MEDIUM"
SEVERITY_HIGH = "HIGH"
SEVERITY_CRITICAL = "CRITICAL"
SEVERITIES: tuple[str, ...] = (
    SEVERITY_LOW, SEVERITY_MEDIUM, SEVERITY_HIGH, SEVERITY_CRITICAL,
)

MISSING_SERIAL = "missing_serial"
DELAYED_SHIPMENT = "delayed_shipment"
ERP_SYNC_FAILURE = "erp_sync_failure"
COMPLIANCE_SYNC_FAILURE = "compliance_sync_failure"
OVERDUE_MAINTENANCE = "overdue_maintenance"
ANOMALY_TYPES: tuple[str, ...] = (
    MISSING_SERIAL, DELAYED_SHIPMENT, ERP_SYNC_FAILURE,
    COMPLIANCE_SYNC_FAILURE, OVERDUE_MAINTENANCE,
)

# scanType values accepted by the detector, in scan order
SCAN_DOMAINS: dict[str, str] = {
    "serialization": MISSING_SERIAL,
    "logistics": DELAYED_SHIPMENT,
    "erp": ERP_SYNC_FAILURE,
    "compliance": COMPLIANCE_SYNC_FAILURE,
    "maintenance": OVERDUE_MAINTENANCE,
}

# anomaly_type -> (suggested_resolution, can_auto_resolve)
RESOLUTION_PLAYBOOK: dict[str, tuple[str, bool]] = {
    MISSING_SERIAL: (
        "Generate missing serial numbers for batch and update aggregation relationships",
        True,
    ),
    DELAYED_SHIPMENT: (
        "Alert logistics manager, reassign vehicle if available, update ETA notifications",
        False,
    ),
    ERP_SYNC_FAILURE: (
        "Retry ERP synchronization with exponential backoff, escalate if 3 failures",
        True,
    ),
    COMPLIANCE_SYNC_FAILURE: (
        "Retry compliance sync, verify endpoint connectivity, check credentials",
        True,
    ),
    OVERDUE_MAINTENANCE: (
        "Schedule immediate maintenance, reassign active shipments to other vehicles",
        False,
    ),
}
FALLBACK_RESOLUTION: tuple[str, bool] = ("Manual investigation required", False)

# anomaly_type -> (critical_above, high_above); anything else is MEDIUM
DURATION_THRESHOLDS: dict[str, tuple[float, float]] = {
    MISSING_SERIAL: (7.0, 3.0),       # days since batch creation
    DELAYED_SHIPMENT: (48.0, 24.0),   # hours past expected arrival
    OVERDUE_MAINTENANCE: (14.0, 7.0), # days past next maintenance date
}
FIXED_SEVERITY: dict[str, str] = {
    ERP_SYNC_FAILURE: SEVERITY_HIGH,
    COMPLIANCE_SYNC_FAILURE: SEVERITY_HIGH,
}


def lookup_resolution(anomaly_type: str) -> tuple[str, bool]:
    """Return (suggested_resolution, can_auto_resolve) for an anomaly type."""
    return RESOLUTION_PLAYBOOK.get(anomaly_type, FALLBACK_RESOLUTION)


def classify_severity(anomaly_type: str, measurement: Optional[float] = None) -> str:
    """
    Classify severity from the type-specific duration metric.

    Thresholds are strict: a serialization backlog of exactly 7 days is
    HIGH, anything beyond it is CRITICAL. Sync failures are always HIGH
    and ignore the measurement.
    """
    if anomaly_type in FIXED_SEVERITY:
        return FIXED_SEVERITY[anomaly_type]
    if anomaly_type not in DURATION_THRESHOLDS:
        raise ValueError(f"No severity rule for anomaly type '{anomaly_type}'")
    if measurement is None:
        raise ValueError(f"'{anomaly_type}' severity needs a duration measurement")
    critical_above, high_above = DURATION_THRESHOLDS[anomaly_type]
    if measurement > critical_above:
        return SEVERITY_CRITICAL
    if measurement > high_above:
        return SEVERITY_HIGH
    return SEVERITY_MEDIUM


def elapsed_days(since: datetime, now: datetime) -> float:
    return (as_utc(now) - as_utc(since)) / timedelta(days=1)


def elapsed_hours(since: datetime, now: datetime) -> float:
    return (as_utc(now) - as_utc(since)) / timedelta(hours=1)


# ── Metadata variants ──


@dataclass(frozen=True)
class AnomalyMetadata:
    """Typed measurement attached to an anomaly, keyed by its anomaly type."""

    anomaly_type: ClassVar[str] = ""

    @property
    def can_auto_resolve(self) -> bool:
        return lookup_resolution(self.anomaly_type)[1]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["can_auto_resolve"] = self.can_auto_resolve
        return data


@dataclass(frozen=True)
class SerializationBacklog(AnomalyMetadata):
    anomaly_type: ClassVar[str] = MISSING_SERIAL
    batch_number: str
    quantity_kg: float
    days_waiting: float


@dataclass(frozen=True)
class ShipmentDelay(AnomalyMetadata):
    anomaly_type: ClassVar[str] = DELAYED_SHIPMENT
    shipment_number: str
    origin: str
    destination: str
    delay_hours: float


@dataclass(frozen=True)
class SyncFailure(AnomalyMetadata):
    sync_type: str
    entity_type: str
    error: Optional[str]
    failures_in_window: int


@dataclass(frozen=True)
class ErpSyncFailure(SyncFailure):
    anomaly_type: ClassVar[str] = ERP_SYNC_FAILURE


@dataclass(frozen=True)
class ComplianceSyncFailure(SyncFailure):
    anomaly_type: ClassVar[str] = COMPLIANCE_SYNC_FAILURE


@dataclass(frozen=True)
class MaintenanceOverdue(AnomalyMetadata):
    anomaly_type: ClassVar[str] = OVERDUE_MAINTENANCE
    registration: str
    days_overdue: float


@dataclass
class AnomalyReport:
    """A single violation, ready to be persisted."""
    severity: str
    title: str
    description: str
    affected_resource_type: str
    affected_resource_id: str
    metadata: AnomalyMetadata
    suggested_resolution: str = field(init=False)

    def __post_init__(self) -> None:
        self.suggested_resolution = lookup_resolution(self.anomaly_type)[0]

    @property
    def anomaly_type(self) -> str:
        return self.metadata.anomaly_type

    @property
    def can_auto_resolve(self) -> bool:
        return self.metadata.can_auto_resolve


# ── Rules ──


def serialization_backlog(batch: Any, now: datetime) -> AnomalyReport:
    """Approved batch whose serialization is still incomplete."""
    days = elapsed_days(batch.created_at, now)
    return AnomalyReport(
        severity=classify_severity(MISSING_SERIAL, days),
        title=f"Missing serial numbers for batch {batch.batch_number}",
        description=(
            f"Batch {batch.batch_number} ({batch.quantity_kg:g} kg) has waited "
            f"{days:.1f} days without completed serialization."
        ),
        affected_resource_type="batch",
        affected_resource_id=batch.id,
        metadata=SerializationBacklog(
            batch_number=batch.batch_number,
            quantity_kg=batch.quantity_kg,
            days_waiting=round(days, 2),
        ),
    )


def shipment_delay(shipment: Any, now: datetime) -> AnomalyReport:
    """In-transit shipment past its expected arrival."""
    hours = elapsed_hours(shipment.expected_arrival, now)
    return AnomalyReport(
        severity=classify_severity(DELAYED_SHIPMENT, hours),
        title=f"Shipment {shipment.shipment_number} delayed by {int(hours)} hours",
        description=(
            f"Shipment {shipment.shipment_number} from {shipment.origin or 'unknown'} "
            f"to {shipment.destination or 'unknown'} is {hours:.1f} hours past its "
            "expected arrival."
        ),
        affected_resource_type="shipment",
        affected_resource_id=shipment.id,
        metadata=ShipmentDelay(
            shipment_number=shipment.shipment_number,
            origin=shipment.origin,
            destination=shipment.destination,
            delay_hours=round(hours, 2),
        ),
    )


def sync_failure(
    log: Any,
    anomaly_type: str,
    failures_in_window: int,
    window_days: int,
) -> AnomalyReport:
    """Failed ERP or compliance sync log row inside the lookback window."""
    if anomaly_type == ERP_SYNC_FAILURE:
        variant, label, resource = ErpSyncFailure, "ERP", "erp_sync_log"
    elif anomaly_type == COMPLIANCE_SYNC_FAILURE:
        variant, label, resource = ComplianceSyncFailure, "Compliance", "compliance_sync_log"
    else:
        raise ValueError(f"'{anomaly_type}' is not a sync failure type")

    failed_at = as_utc(log.created_at)
    return AnomalyReport(
        severity=classify_severity(anomaly_type),
        title=f"{label} sync failed: {log.sync_type}",
        description=(
            f"{log.entity_type or 'Record'} sync failed at "
            f"{failed_at:%Y-%m-%d %H:%M} UTC. Error: {log.error_message or 'Unknown'}. "
            f"{failures_in_window} failed {log.sync_type} syncs in the last "
            f"{window_days} days."
        ),
        affected_resource_type=resource,
        affected_resource_id=log.id,
        metadata=variant(
            sync_type=log.sync_type,
            entity_type=log.entity_type,
            error=log.error_message,
            failures_in_window=failures_in_window,
        ),
    )


def maintenance_overdue(vehicle: Any, now: datetime) -> AnomalyReport:
    """Active vehicle past its next maintenance date."""
    days = elapsed_days(vehicle.next_maintenance_date, now)
    return AnomalyReport(
        severity=classify_severity(OVERDUE_MAINTENANCE, days),
        title=f"Vehicle {vehicle.registration} maintenance overdue",
        description=(
            f"Scheduled maintenance for vehicle {vehicle.registration} was due "
            f"{days:.1f} days ago."
        ),
        affected_resource_type="vehicle",
        affected_resource_id=vehicle.id,
        metadata=MaintenanceOverdue(
            registration=vehicle.registration,
            days_overdue=round(days, 2),
        ),
    )
