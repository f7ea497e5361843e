from __future__ import annotations

from sqlalchemy import Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from alumni_chat.infrastructure.db.base import Base


class UserModel(Base):
    """Read-only view of the externally owned ``users`` table.

    Only the key is mapped; the profile columns belong to the profile service.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
