"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Tuple


class Severity(str, Enum):
    """Alarm tiers derived from a reading's magnitude."""

    normal = "normal"
    warning = "warning"
    critical = "critical"


@dataclass(frozen=True, slots=True)
class SensorReading:
    """A single float32 value decoded from a pair of holding registers."""

    index: int
    value: float


@dataclass(frozen=True, slots=True)
class AlarmEvent:
    """Classification of one reading for the current poll cycle."""

    index: int
    value: float
    severity: Severity
    message: str


@dataclass(frozen=True, slots=True)
class PollResult:
    """Immutable snapshot of one successful poll cycle."""

    readings: Tuple[SensorReading, ...]
    alarms: Tuple[AlarmEvent, ...]
    timestamp: datetime

    def __post_init__(self) -> None:
        if len(self.readings) != len(self.alarms):
            raise ValueError(
                f"Reading/alarm count mismatch: {len(self.readings)} != {len(self.alarms)}"
            )
