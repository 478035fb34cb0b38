"""Timer-driven poll cycles feeding a single subscriber sink."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from models.records import PollResult
from services.broadcaster import BroadcastError
from services.classifier import classify_all
from services.connector import ConnectorError, ModbusConnector
from services.decoder import decode

logger = logging.getLogger(__name__)

ResultSink = Callable[[PollResult], Awaitable[None]]


class SchedulerState(str, Enum):
    """Lifecycle of a poll scheduler."""

    idle = "idle"
    scheduled = "scheduled"
    polling = "polling"
    cancelled = "cancelled"


async def poll_once(connector: ModbusConnector) -> Optional[PollResult]:
    """Run connect, decode and classify once; ``None`` when the device read failed."""
    try:
        words = await connector.poll()
    except ConnectorError:
        return None

    readings = decode(words)
    alarms = classify_all(readings)
    return PollResult(
        readings=tuple(readings),
        alarms=tuple(alarms),
        timestamp=datetime.now(timezone.utc),
    )


class PollScheduler:
    """Polls the connector every ``interval`` seconds and forwards results to ``sink``.

    Ticks never overlap: a slow poll pushes the next tick back until it
    completes. Cancelling the scheduler stops any pending or in-flight tick
    and guarantees the sink is not called again.
    """

    def __init__(
        self,
        connector: ModbusConnector,
        sink: ResultSink,
        interval: float,
        *,
        name: Optional[str] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("Poll interval must be positive.")
        self.connector = connector
        self.sink = sink
        self.interval = interval
        self.name = name
        self.state = SchedulerState.idle
        self.ticks = 0
        self.emitted = 0
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Scheduler has already been started.")
        self.state = SchedulerState.scheduled
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_done)
        logger.info(
            "Poll scheduler started",
            extra={"session_id": self.name, "interval": self.interval},
        )

    async def cancel(self) -> None:
        if self.state is SchedulerState.cancelled and not self.running:
            return
        self.state = SchedulerState.cancelled
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait_closed(self) -> None:
        """Block until the scheduler's task has finished for any reason."""
        if self._task is None:
            return
        await asyncio.wait({self._task})

    async def run_cycle(self) -> bool:
        """Execute one tick. Returns ``True`` when a result was delivered."""
        self.state = SchedulerState.polling
        self.ticks += 1
        result = await poll_once(self.connector)
        if self.state is SchedulerState.cancelled:
            return False
        if result is None:
            self.state = SchedulerState.scheduled
            return False

        await self.sink(result)
        self.emitted += 1
        logger.debug(
            "Poll result delivered",
            extra={"session_id": self.name, "reading_count": len(result.readings)},
        )
        if self.state is SchedulerState.polling:
            self.state = SchedulerState.scheduled
        return True

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while self.state is not SchedulerState.cancelled:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            tick_started = loop.time()
            try:
                await self.run_cycle()
            except BroadcastError as exc:
                logger.info(
                    "Subscriber gone, stopping scheduler",
                    extra={"session_id": self.name, "reason": str(exc)},
                )
                self.state = SchedulerState.cancelled
                return
            next_tick = max(tick_started + self.interval, loop.time())

    def _on_done(self, task: "asyncio.Task[None]") -> None:
        self.state = SchedulerState.cancelled
        if task.cancelled():
            logger.info("Poll scheduler cancelled", extra={"session_id": self.name})
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Poll scheduler crashed",
                exc_info=exc,
                extra={"session_id": self.name},
            )
