from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.connector import build_default_connector
from services.fanout import build_default_shared_loop
from services.session import SessionRegistry
from settings import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    # Fail at startup on a bad register layout rather than on the first poll.
    build_default_connector()
    try:
        yield
    finally:
        await app.state.sessions.close_all()
        if settings.poll_mode == "shared":
            await build_default_shared_loop().shutdown()
        build_default_shared_loop.cache_clear()
        build_default_connector.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Modbus Live Monitor",
        description="Polls a Modbus TCP device and streams classified readings over WebSocket.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.sessions = SessionRegistry()
    app.include_router(router)
    app.include_router(web_router)
    return app

app = create_app()
