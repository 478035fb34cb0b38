from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from services.connector import DeviceConfig


_HOST_ENV = "MODBUS_HOST"
_PORT_ENV = "MODBUS_PORT"
_UNIT_ID_ENV = "MODBUS_UNIT_ID"
_START_REGISTER_ENV = "MODBUS_START_REGISTER"
_REGISTER_COUNT_ENV = "MODBUS_REGISTER_COUNT"
_TIMEOUT_ENV = "MODBUS_TIMEOUT"
_SERIALIZE_ENV = "MODBUS_SERIALIZE_POLLS"
_POLL_INTERVAL_ENV = "POLL_INTERVAL"
_POLL_MODE_ENV = "POLL_MODE"
_LOG_LEVEL_ENV = "LOG_LEVEL"
_MODBUS_LOG_LEVEL_ENV = "MODBUS_LOG_LEVEL"

POLL_MODES = ("per_session", "shared")


@dataclass(frozen=True)
class Settings:
    device_host: str
    device_port: int
    unit_id: int
    start_register: int
    register_count: int
    device_timeout: float
    serialize_polls: bool
    poll_interval: float
    poll_mode: str
    log_level: str
    modbus_log_level: str

    def device_config(self) -> "DeviceConfig":
        from services.connector import DeviceConfig

        return DeviceConfig(
            host=self.device_host,
            port=self.device_port,
            unit_id=self.unit_id,
            start_register=self.start_register,
            register_count=self.register_count,
            timeout=self.device_timeout,
        )


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_int_env(name: str, default: int, minimum: int = 0) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _read_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if candidate in {"1", "true", "yes", "on"}:
        return True
    if candidate in {"0", "false", "no", "off"}:
        return False
    return default


def _read_poll_mode(default: str) -> str:
    candidate = _read_str_env(_POLL_MODE_ENV, default).lower()
    return candidate if candidate in POLL_MODES else default


def _read_log_level(default: str, name: str = _LOG_LEVEL_ENV) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    # Register count is passed through unvalidated so an odd value fails
    # loudly when the connector is built instead of being silently replaced.
    return Settings(
        device_host=_read_str_env(_HOST_ENV, "127.0.0.1"),
        device_port=_read_int_env(_PORT_ENV, 502, minimum=1),
        unit_id=_read_int_env(_UNIT_ID_ENV, 1),
        start_register=_read_int_env(_START_REGISTER_ENV, 0),
        register_count=_read_int_env(_REGISTER_COUNT_ENV, 10, minimum=1),
        device_timeout=_read_float_env(_TIMEOUT_ENV, 3.0),
        serialize_polls=_read_bool_env(_SERIALIZE_ENV, True),
        poll_interval=_read_float_env(_POLL_INTERVAL_ENV, 5.0),
        poll_mode=_read_poll_mode("per_session"),
        log_level=_read_log_level("INFO"),
        modbus_log_level=_read_log_level("ERROR", _MODBUS_LOG_LEVEL_ENV),
    )
