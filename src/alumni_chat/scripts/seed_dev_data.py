"""Seed development data: two users and a short conversation between them."""
from __future__ import annotations

import asyncio
import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert

from alumni_chat.config import settings
from alumni_chat.infrastructure.db.models import UserModel
from alumni_chat.infrastructure.db.session import engine, open_uow
from alumni_chat.log_config import configure_logging

logger = logging.getLogger(__name__)

USERS = [(1, "alice.alumna"), (2, "bob.student")]

MESSAGES = [
    (2, 1, "Hi Alice! I saw you work in data engineering. Could I ask a few questions?"),
    (1, 2, "Of course, happy to help. What would you like to know?"),
    (2, 1, "How did you get your first role after graduating?"),
    (1, 2, "Through the alumni mentorship program, actually. Let's set up a call."),
]


async def seed() -> None:
    async with open_uow() as uow:
        await uow.session.execute(
            pg_insert(UserModel)
            .values([{"id": uid, "username": name} for uid, name in USERS])
            .on_conflict_do_nothing(index_elements=["id"])
        )
        for sender_id, receiver_id, content in MESSAGES:
            await uow.messages_w.persist(sender_id, receiver_id, content)

        await uow.commit()
        logger.info("Seeded %d users and %d messages", len(USERS), len(MESSAGES))
    await engine.dispose()


def main() -> None:
    configure_logging(settings.LOG_LEVEL)
    asyncio.run(seed())


if __name__ == "__main__":
    main()
