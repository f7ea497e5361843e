from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alumni_chat.api.middleware.correlation_id import CorrelationIdMiddleware
from alumni_chat.api.middleware.timing import AccessLogMiddleware
from alumni_chat.api.v1.routers import health, messages, ws
from alumni_chat.application.exceptions import (
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from alumni_chat.config import settings
from alumni_chat.infrastructure.db.session import engine
from alumni_chat.infrastructure.ws.connection import ChatConnection
from alumni_chat.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    logger.info("Chat service started, socket path %s", settings.WS_PATH)

    yield

    await engine.dispose()
    logger.info("Database connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Alumni Chat Service",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.chat_registry = ConnectionRegistry[ChatConnection]()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(messages.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(StorageError)
    async def _storage(_req: Request, exc: StorageError) -> JSONResponse:
        logger.error("Storage failure: %s", exc.detail, exc_info=exc.__cause__)
        return JSONResponse(status_code=503, content={"detail": exc.detail})
