"""Create the chat tables if they do not exist yet (development databases)."""
from __future__ import annotations

import asyncio
import logging

from alumni_chat.config import settings
from alumni_chat.infrastructure.db.base import Base
from alumni_chat.infrastructure.db.models import MessageModel, UserModel
from alumni_chat.infrastructure.db.session import engine
from alumni_chat.log_config import configure_logging

logger = logging.getLogger(__name__)


async def create_schema() -> None:
    try:
        async with engine.begin() as conn:
            await conn.run_sync(
                Base.metadata.create_all,
                tables=[UserModel.__table__, MessageModel.__table__],
                checkfirst=True,
            )
        logger.info("Schema ready on %s:%d/%s", settings.DB_HOST, settings.DB_PORT, settings.POSTGRES_DB)
    finally:
        await engine.dispose()


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(create_schema())


if __name__ == "__main__":
    main()
