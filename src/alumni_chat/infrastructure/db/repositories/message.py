from __future__ import annotations

from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from alumni_chat.domain.entities.message import Message
from alumni_chat.domain.value_objects.enums import MessageRole
from alumni_chat.infrastructure.db.mappers import message as mapper
from alumni_chat.infrastructure.db.models.message import MessageModel


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, message_id: int) -> Message | None:
        model = await self._session.get(MessageModel, message_id)
        return mapper.model_to_entity(model) if model else None

    async def messages_involving(self, user_id: int, role: MessageRole) -> list[Message]:
        column = MessageModel.sender_id if role == MessageRole.SENDER else MessageModel.receiver_id
        stmt = (
            select(MessageModel)
            .where(column == user_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]

    async def conversation_between(self, user_a: int, user_b: int) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(
                or_(
                    and_(MessageModel.sender_id == user_a, MessageModel.receiver_id == user_b),
                    and_(MessageModel.sender_id == user_b, MessageModel.receiver_id == user_a),
                )
            )
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def persist(self, sender_id: int, receiver_id: int, content: str) -> Message:
        """Insert a row; id, is_read and created_at come from the database."""
        stmt = (
            insert(MessageModel)
            .values(
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                created_at=func.timezone("utc", func.now()),
            )
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

    async def mark_read(self, message_id: int) -> Message | None:
        stmt = (
            update(MessageModel)
            .where(MessageModel.id == message_id)
            .values(is_read=True)
            .returning(MessageModel)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None
