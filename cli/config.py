from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

from services.connector import DeviceConfig
from settings import get_settings

DEFAULT_BASE_URL = "http://localhost:8000"

_BASE_URL_ENV = "API_BASE_URL"


@dataclass(frozen=True)
class CLIConfig:
    device: DeviceConfig
    poll_interval: float
    base_url: str = DEFAULT_BASE_URL


def load_config(
    base_url: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    unit_id: Optional[int] = None,
    register_count: Optional[int] = None,
    poll_interval: Optional[float] = None,
) -> CLIConfig:
    settings = get_settings()
    overrides = {
        "host": host,
        "port": port,
        "unit_id": unit_id,
        "register_count": register_count,
    }
    device = replace(
        settings.device_config(),
        **{key: value for key, value in overrides.items() if value is not None},
    )
    url = base_url or os.getenv(_BASE_URL_ENV) or DEFAULT_BASE_URL
    interval = poll_interval if poll_interval and poll_interval > 0 else settings.poll_interval
    return CLIConfig(
        device=device,
        poll_interval=interval,
        base_url=url.rstrip("/"),
    )
