"""HTTP and WebSocket route definitions for the service."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, WebSocket, status

from app.schemas import HealthStatus
from services.broadcaster import Broadcaster
from services.connector import ModbusConnector, build_default_connector
from services.fanout import SharedPollLoop, build_default_shared_loop
from services.session import SessionRegistry, SubscriberSession, new_session_id
from settings import Settings, get_settings

router = APIRouter()


def get_connector() -> ModbusConnector:
    return build_default_connector()


def get_shared_loop() -> SharedPollLoop:
    return build_default_shared_loop()


@router.websocket("/ws")
async def readings_stream(
    websocket: WebSocket,
    interval: Optional[float] = Query(
        None, gt=0, description="Per-subscriber poll cadence in seconds."
    ),
    settings: Settings = Depends(get_settings),
    connector: ModbusConnector = Depends(get_connector),
) -> None:
    """Stream one readings message per successful poll until the client disconnects.

    ``interval`` sets a private cadence and is only honoured in ``per_session``
    mode; in ``shared`` mode every subscriber follows the shared loop, so the
    handshake is refused with close code 1008.
    """
    if settings.poll_mode == "shared" and interval is not None:
        await websocket.close(
            code=status.WS_1008_POLICY_VIOLATION,
            reason="interval is not supported in shared poll mode",
        )
        return

    broadcaster = Broadcaster(websocket, new_session_id())
    shared_loop = get_shared_loop() if settings.poll_mode == "shared" else None
    session = SubscriberSession(
        broadcaster,
        connector,
        interval or settings.poll_interval,
        shared_loop=shared_loop,
    )
    sessions: SessionRegistry = websocket.app.state.sessions
    sessions.add(session)
    try:
        await websocket.accept()
        await session.open()
        # Inbound frames are ignored; only the close matters.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        sessions.discard(session)
        await session.close()


@router.get(
    "/health",
    response_model=HealthStatus,
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    request: Request,
    settings: Settings = Depends(get_settings),
    connector: ModbusConnector = Depends(get_connector),
) -> HealthStatus:
    sessions: SessionRegistry = request.app.state.sessions
    return HealthStatus(
        device=connector.device.address,
        poll_mode=settings.poll_mode,
        poll_interval=settings.poll_interval,
        subscribers=len(sessions),
    )


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /datas for the live dashboard and /health for status."}
