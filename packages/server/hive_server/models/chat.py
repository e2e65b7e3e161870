"""Hive chat and its append-only messages."""

from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, _utcnow, new_uuid


class Chat(TimestampMixin, SQLModel, table=True):
    __tablename__ = "chats"

    id: str = Field(default_factory=new_uuid, primary_key=True)
    workspace_id: str = Field(nullable=False, index=True)
    title: str = Field(nullable=False)
    status: str = Field(default="active", nullable=False)  # active | archived


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"

    id: str = Field(default_factory=new_uuid, primary_key=True)
    chat_id: str = Field(foreign_key="chats.id", nullable=False, index=True)
    message: str = Field(default="", nullable=False)
    role: str = Field(nullable=False)  # user | assistant
    status: str = Field(nullable=False)  # sending | sent | error
    source: str = Field(nullable=False)  # user | agent
    timestamp: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
