"""Pydantic schemas for the HTTP and WebSocket layer."""

from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field

from models.records import Severity


class AlarmPayload(BaseModel):
    """Alarm classification for one reading."""

    index: int = Field(..., ge=0)
    value: float
    type: Severity
    message: str


class ReadingsMessage(BaseModel):
    """Message pushed to subscribers after every successful poll cycle."""

    data: List[float] = Field(default_factory=list, description="Decoded float32 readings.")
    timestamp: str = Field(..., description="UTC ISO-8601 time the cycle completed.")
    alarms: List[AlarmPayload] = Field(default_factory=list)


class HealthStatus(BaseModel):
    """Service health plus a summary of the polling setup."""

    status: str = "ok"
    device: str
    poll_mode: str
    poll_interval: float
    subscribers: int = Field(..., ge=0)
