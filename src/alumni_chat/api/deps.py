"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated, AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import HTTPConnection

from alumni_chat.application.dto.principal import Principal
from alumni_chat.application.ports.auth import TokenVerifier
from alumni_chat.application.uow import UoWFactory
from alumni_chat.config import settings
from alumni_chat.infrastructure.auth.hs256_verifier import HS256Verifier
from alumni_chat.infrastructure.db.session import open_uow
from alumni_chat.infrastructure.db.uow import SqlAlchemyUoW
from alumni_chat.infrastructure.ws.connection import ChatConnection
from alumni_chat.infrastructure.ws.registry import ConnectionRegistry

_bearer_scheme = HTTPBearer()


async def get_uow() -> AsyncIterator[SqlAlchemyUoW]:
    async with open_uow() as uow:
        yield uow


UoWDep = Annotated[SqlAlchemyUoW, Depends(get_uow)]


def get_uow_factory() -> UoWFactory:
    """Sockets live longer than a request, so they open a unit of work per frame."""
    return open_uow


UoWFactoryDep = Annotated[UoWFactory, Depends(get_uow_factory)]


def get_registry(conn: HTTPConnection) -> ConnectionRegistry[ChatConnection]:
    return conn.app.state.chat_registry


RegistryDep = Annotated[ConnectionRegistry[ChatConnection], Depends(get_registry)]


_verifier: TokenVerifier | None = None


def get_verifier() -> TokenVerifier:
    global _verifier  # noqa: PLW0603
    if _verifier is None:
        _verifier = HS256Verifier(settings.JWT_SECRET, settings.JWT_ALGORITHM)
    return _verifier


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(_bearer_scheme)],
) -> Principal:
    verifier = get_verifier()
    try:
        return await verifier.verify(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]
