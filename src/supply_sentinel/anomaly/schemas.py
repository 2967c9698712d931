"""Pydantic schemas for anomaly detection and workflow APIs."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ScanRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    scan_type: Optional[str] = Field(default=None, alias="scanType")


class DetectedAnomaly(BaseModel):
    type: str
    severity: str
    can_auto_resolve: bool


class ScanResponse(BaseModel):
    success: bool = True
    detected: int
    anomalies: list[DetectedAnomaly] = []


class AnomalyResponse(BaseModel):
    id: str
    anomaly_type: str
    severity: str
    status: str
    title: str
    description: str
    suggested_resolution: str
    can_auto_resolve: bool
    affected_resource_type: str
    affected_resource_id: str
    metadata: dict[str, Any] = {}
    ai_root_cause: Optional[str] = None
    root_cause: Optional[str] = None
    detected_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolution_applied: Optional[str] = None
    auto_resolved: bool = False
    escalated_at: Optional[datetime] = None
    escalated_to: Optional[str] = None
    escalation_reason: Optional[str] = None


class AnomalyPage(BaseModel):
    items: list[AnomalyResponse]
    total: int
    limit: int
    offset: int


class AnomalyStats(BaseModel):
    total: int
    critical: int
    open: int
    escalated: int
    auto_resolvable_open: int
    by_status: dict[str, int] = {}
    by_severity: dict[str, int] = {}


class InvestigateRequest(BaseModel):
    performed_by: str = "operator"
    notes: Optional[str] = None


class ResolveRequest(BaseModel):
    resolution_notes: str = ""
    performed_by: str = "operator"


class EscalateRequest(BaseModel):
    escalation_reason: str = ""
    escalated_to: Optional[str] = None
    performed_by: str = "operator"
