"""Per-connection delivery of poll results to a WebSocket subscriber."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import WebSocket, WebSocketDisconnect

from app.schemas import AlarmPayload, ReadingsMessage
from models.records import PollResult

logger = logging.getLogger(__name__)


class BroadcastError(Exception):
    """The subscriber can no longer receive messages."""


def format_timestamp(moment: datetime) -> str:
    """Render ``moment`` as UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def render_message(result: PollResult) -> ReadingsMessage:
    return ReadingsMessage(
        data=[reading.value for reading in result.readings],
        timestamp=format_timestamp(result.timestamp),
        alarms=[
            AlarmPayload(
                index=alarm.index,
                value=alarm.value,
                type=alarm.severity,
                message=alarm.message,
            )
            for alarm in result.alarms
        ],
    )


class Broadcaster:
    """Serializes results and writes them to exactly one WebSocket."""

    def __init__(self, websocket: WebSocket, session_id: str) -> None:
        self.websocket = websocket
        self.session_id = session_id
        self.closed = False
        self.sent = 0
        self._lock = asyncio.Lock()

    async def send(self, result: PollResult) -> None:
        payload = render_message(result).model_dump_json()
        async with self._lock:
            if self.closed:
                raise BroadcastError(f"Session {self.session_id} is closed.")
            try:
                await self.websocket.send_text(payload)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                self.closed = True
                logger.info(
                    "Dropping subscriber after failed send",
                    extra={"session_id": self.session_id, "reason": repr(exc)},
                )
                raise BroadcastError(f"Send to session {self.session_id} failed.") from exc
            self.sent += 1

    def close(self) -> None:
        self.closed = True
