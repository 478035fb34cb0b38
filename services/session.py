from __future__ import annotations

import logging
from typing import Dict, Optional
from uuid import uuid4

from services.broadcaster import Broadcaster
from services.connector import ModbusConnector
from services.fanout import SharedPollLoop
from services.scheduler import PollScheduler

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return str(uuid4())


class SubscriberSession:
    """Ties one subscriber's broadcaster to its polling for the life of the connection."""

    def __init__(
        self,
        broadcaster: Broadcaster,
        connector: ModbusConnector,
        interval: float,
        shared_loop: Optional[SharedPollLoop] = None,
    ) -> None:
        self.broadcaster = broadcaster
        self.shared_loop = shared_loop
        self.scheduler: Optional[PollScheduler] = None
        if shared_loop is None:
            self.scheduler = PollScheduler(
                connector, broadcaster.send, interval, name=broadcaster.session_id
            )
        self._opened = False
        self._closed = False

    @property
    def session_id(self) -> str:
        return self.broadcaster.session_id

    async def open(self) -> None:
        if self._opened:
            return
        self._opened = True
        if self.shared_loop is not None:
            await self.shared_loop.subscribe(self.broadcaster)
        elif self.scheduler is not None:
            self.scheduler.start()
        logger.info("Subscriber session opened", extra={"session_id": self.session_id})

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.broadcaster.close()
        if self.scheduler is not None:
            await self.scheduler.cancel()
        if self.shared_loop is not None:
            await self.shared_loop.unsubscribe(self.broadcaster)
        logger.info(
            "Subscriber session closed",
            extra={"session_id": self.session_id},
        )


class SessionRegistry:
    """Tracks the sessions that are currently connected."""

    def __init__(self) -> None:
        self._sessions: Dict[str, SubscriberSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: SubscriberSession) -> None:
        self._sessions[session.session_id] = session

    def discard(self, session: SubscriberSession) -> None:
        self._sessions.pop(session.session_id, None)

    async def close_all(self) -> None:
        while self._sessions:
            _, session = self._sessions.popitem()
            await session.close()
