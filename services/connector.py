"""Modbus TCP transport for reading the device's holding registers."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import lru_cache
from typing import AsyncIterator, Callable, List, Optional

from pymodbus.client import AsyncModbusTcpClient
from pymodbus.exceptions import ModbusException

from services.decoder import WORDS_PER_READING, DecodeError
from settings import get_settings

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """A poll could not produce the requested register block."""

    def __init__(self, reason: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.cause = cause


@dataclass(frozen=True)
class DeviceConfig:
    """Where the device lives and which register block to read."""

    host: str
    port: int = 502
    unit_id: int = 1
    start_register: int = 0
    register_count: int = 10
    timeout: float = 3.0

    def __post_init__(self) -> None:
        if self.register_count <= 0 or self.register_count % WORDS_PER_READING:
            raise DecodeError(
                f"register_count must be a positive multiple of {WORDS_PER_READING}, "
                f"got {self.register_count}."
            )
        if not 0 <= self.unit_id <= 247:
            raise ValueError(f"unit_id must be within 0..247, got {self.unit_id}.")
        if not 0 <= self.start_register <= 0xFFFF:
            raise ValueError(f"start_register must be within 0..65535, got {self.start_register}.")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive.")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


ClientFactory = Callable[..., AsyncModbusTcpClient]


class ModbusConnector:
    """Opens a fresh session per poll and always releases it afterwards."""

    def __init__(
        self,
        device: DeviceConfig,
        client_factory: ClientFactory = AsyncModbusTcpClient,
        serialize: bool = True,
    ) -> None:
        self.device = device
        self._client_factory = client_factory
        self._lock: Optional[asyncio.Lock] = asyncio.Lock() if serialize else None

    @property
    def serialized(self) -> bool:
        return self._lock is not None

    async def poll(self) -> List[int]:
        """Read ``register_count`` holding registers from ``start_register``."""
        if self._lock is None:
            return await self._poll()
        async with self._lock:
            return await self._poll()

    async def _poll(self) -> List[int]:
        device = self.device
        start_time = time.perf_counter()
        try:
            async with self._session() as client:
                response = await client.read_holding_registers(
                    device.start_register,
                    count=device.register_count,
                    device_id=device.unit_id,
                )
        except ConnectorError as exc:
            self._log_failure(exc)
            raise
        except (ModbusException, OSError, asyncio.TimeoutError) as exc:
            error = ConnectorError(f"read failed: {exc}", cause=exc)
            self._log_failure(error)
            raise error from exc

        if response.isError():
            error = ConnectorError(f"device returned exception response: {response}")
            self._log_failure(error)
            raise error

        words = list(response.registers)
        if len(words) != device.register_count:
            error = ConnectorError(
                f"expected {device.register_count} registers, received {len(words)}"
            )
            self._log_failure(error)
            raise error

        logger.debug(
            "Read holding registers",
            extra={
                "device": device.address,
                "register_count": len(words),
                "elapsed_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return words

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncModbusTcpClient]:
        device = self.device
        client = self._client_factory(
            device.host,
            port=device.port,
            timeout=device.timeout,
            reconnect_delay=0,
        )
        try:
            connected = await client.connect()
            if not connected:
                raise ConnectorError(f"could not connect to {device.address}")
            yield client
        finally:
            client.close()

    def _log_failure(self, error: ConnectorError) -> None:
        logger.warning(
            "Modbus poll failed",
            extra={"device": self.device.address, "reason": error.reason},
        )


@lru_cache
def build_default_connector() -> ModbusConnector:
    """Factory that wires the connector from environment settings."""
    settings = get_settings()
    return ModbusConnector(
        device=settings.device_config(),
        serialize=settings.serialize_polls,
    )
