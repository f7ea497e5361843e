from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from alumni_chat.api.deps import RegistryDep
from alumni_chat.infrastructure.db.session import AsyncSessionLocal

router = APIRouter(tags=["health"])


async def _database_error() -> str | None:
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        return f"postgres: {exc}"
    return None


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(registry: RegistryDep) -> JSONResponse:
    """Ready once the message store answers; also reports live chat sockets."""
    error = await _database_error()
    if error is not None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": [error]},
        )
    return JSONResponse(content={"status": "ready", "connections": len(registry)})
