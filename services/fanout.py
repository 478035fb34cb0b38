"""Single poll loop whose results are shared by every subscriber."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Optional, Set

from models.records import PollResult
from services.broadcaster import BroadcastError, Broadcaster
from services.connector import ModbusConnector, build_default_connector
from services.scheduler import PollScheduler
from settings import get_settings

logger = logging.getLogger(__name__)


class SharedPollLoop:
    """Polls the device once per interval no matter how many subscribers are connected.

    The underlying scheduler starts with the first subscriber and is
    cancelled when the last one leaves.
    """

    def __init__(self, connector: ModbusConnector, interval: float) -> None:
        self.connector = connector
        self.interval = interval
        self._subscribers: Set[Broadcaster] = set()
        self._scheduler: Optional[PollScheduler] = None
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    async def subscribe(self, broadcaster: Broadcaster) -> None:
        async with self._lock:
            self._subscribers.add(broadcaster)
            if not self.running:
                self._scheduler = PollScheduler(
                    self.connector, self._fan_out, self.interval, name="shared"
                )
                self._scheduler.start()
        logger.info(
            "Subscriber joined shared poll loop",
            extra={
                "session_id": broadcaster.session_id,
                "subscriber_count": self.subscriber_count,
            },
        )

    async def unsubscribe(self, broadcaster: Broadcaster) -> None:
        async with self._lock:
            self._subscribers.discard(broadcaster)
            if self._subscribers:
                return
            scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            await scheduler.cancel()

    async def shutdown(self) -> None:
        async with self._lock:
            self._subscribers.clear()
            scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            await scheduler.cancel()

    async def _fan_out(self, result: PollResult) -> None:
        targets = list(self._subscribers)
        outcomes = await asyncio.gather(
            *(target.send(result) for target in targets), return_exceptions=True
        )
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BroadcastError):
                self._subscribers.discard(target)
            elif isinstance(outcome, BaseException):
                raise outcome


@lru_cache
def build_default_shared_loop() -> SharedPollLoop:
    settings = get_settings()
    return SharedPollLoop(build_default_connector(), settings.poll_interval)
