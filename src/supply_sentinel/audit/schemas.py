"""Pydantic schemas for resolution history API responses."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class HistoryEntryResponse(BaseModel):
    id: str
    anomaly_id: str
    sequence: int
    action: str
    notes: Optional[str] = None
    performed_by: str
    performed_at: datetime
    prev_hash: Optional[str] = None
    entry_hash: str
    signature: str

    model_config = {"from_attributes": True}


class HistoryChainVerification(BaseModel):
    valid: bool
    entries_checked: int
    break_at: Optional[str] = None
    status_consistent: bool
