"""Shared Pydantic schemas for Supply Sentinel."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "supply-sentinel"
