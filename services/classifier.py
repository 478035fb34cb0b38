"""Threshold classification for decoded readings."""

from __future__ import annotations

from typing import Iterable, List

from models.records import AlarmEvent, SensorReading, Severity

CRITICAL_THRESHOLD = 39999.0
WARNING_THRESHOLD = 100.0


def classify(reading: SensorReading) -> AlarmEvent:
    # Evaluated top-down, first match wins. NaN matches neither comparison.
    value = reading.value
    if value >= CRITICAL_THRESHOLD:
        severity, message = Severity.critical, "critical value"
    elif value > WARNING_THRESHOLD:
        severity, message = Severity.warning, "elevated value"
    else:
        severity, message = Severity.normal, "nominal"
    return AlarmEvent(index=reading.index, value=value, severity=severity, message=message)


def classify_all(readings: Iterable[SensorReading]) -> List[AlarmEvent]:
    return [classify(reading) for reading in readings]
