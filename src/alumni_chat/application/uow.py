from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from alumni_chat.application.repositories.message import MessageReader, MessageWriter


class UnitOfWork(Protocol):
    messages: MessageReader
    messages_w: MessageWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...


UoWFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
