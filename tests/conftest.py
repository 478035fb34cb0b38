from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Sequence

import pytest

from services.connector import ConnectorError
from services.decoder import encode


def words_for(*values: float) -> List[int]:
    words: List[int] = []
    for value in values:
        words.extend(encode(value))
    return words


class FakeResponse:
    def __init__(self, registers: Sequence[int], error: bool = False) -> None:
        self.registers = list(registers)
        self._error = error

    def isError(self) -> bool:  # noqa: N802 - mirrors pymodbus
        return self._error

    def __str__(self) -> str:
        return "ExceptionResponse(dev_id=1, function_code=131, exception_code=2)"


class FakeModbusClient:
    """Stands in for ``AsyncModbusTcpClient`` with scripted behaviour."""

    def __init__(
        self,
        host: str,
        port: int = 502,
        timeout: float = 3.0,
        reconnect_delay: float = 0,
        *,
        registers: Sequence[int] = (),
        connected: bool = True,
        error_response: bool = False,
        connect_exc: Optional[BaseException] = None,
        read_exc: Optional[BaseException] = None,
        read_delay: float = 0.0,
        tracker: Optional["ClientTracker"] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self.reconnect_delay = reconnect_delay
        self.registers = list(registers)
        self.connected = connected
        self.error_response = error_response
        self.connect_exc = connect_exc
        self.read_exc = read_exc
        self.read_delay = read_delay
        self.tracker = tracker
        self.closed = False
        self.read_calls: List[tuple] = []

    async def connect(self) -> bool:
        if self.connect_exc is not None:
            raise self.connect_exc
        if self.tracker is not None and self.connected:
            self.tracker.opened()
        return self.connected

    async def read_holding_registers(self, address: int, *, count: int = 1, device_id: int = 1):
        self.read_calls.append((address, count, device_id))
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        if self.read_exc is not None:
            raise self.read_exc
        return FakeResponse(self.registers, error=self.error_response)

    def close(self) -> None:
        if self.tracker is not None and self.connected and not self.closed:
            self.tracker.released()
        self.closed = True


class ClientTracker:
    def __init__(self) -> None:
        self.clients: List[FakeModbusClient] = []
        self.live = 0
        self.max_live = 0

    def opened(self) -> None:
        self.live += 1
        self.max_live = max(self.max_live, self.live)

    def released(self) -> None:
        self.live -= 1


def make_client_factory(tracker: Optional[ClientTracker] = None, **behaviour) -> Callable[..., FakeModbusClient]:
    tracker = tracker if tracker is not None else ClientTracker()

    def factory(host: str, **kwargs) -> FakeModbusClient:
        client = FakeModbusClient(host, tracker=tracker, **kwargs, **behaviour)
        tracker.clients.append(client)
        return client

    factory.tracker = tracker  # type: ignore[attr-defined]
    return factory


class ScriptedConnector:
    """Connector double whose polls follow a script of word lists and errors."""

    def __init__(
        self,
        script: Sequence[object] = (),
        default: object = None,
        delay: float = 0.0,
    ) -> None:
        self.script = list(script)
        self.default = default
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def poll(self) -> List[int]:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            outcome = self.script.pop(0) if self.script else self.default
            if outcome is None:
                raise ConnectorError("scripted failure")
            if isinstance(outcome, BaseException):
                raise outcome
            return list(outcome)  # type: ignore[arg-type]
        finally:
            self.in_flight -= 1


class FakeWebSocket:
    def __init__(self, fail_with: Optional[BaseException] = None, delay: float = 0.0) -> None:
        self.sent: List[str] = []
        self.fail_with = fail_with
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def send_text(self, data: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_with is not None:
                raise self.fail_with
            self.sent.append(data)
        finally:
            self.in_flight -= 1


@pytest.fixture
def client_factory():
    return make_client_factory


@pytest.fixture
def scripted_connector():
    return ScriptedConnector


@pytest.fixture
def fake_websocket():
    return FakeWebSocket


@pytest.fixture
def register_words():
    return words_for
