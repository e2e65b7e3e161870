"""Hive chat schemas and the websocket frame sent to client sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_id: str = Field("", alias="workspaceId")
    title: str = ""


class ChatUpdate(BaseModel):
    title: str = ""


class ChatRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    workspace_id: str
    title: str
    status: str
    created_at: datetime
    updated_at: datetime


class ChatMessageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    chat_id: str
    message: str
    role: str
    status: str
    source: str
    timestamp: datetime


class ContextTag(BaseModel):
    type: str = ""
    id: str = ""


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = ""
    message: str = ""
    context_tags: List[ContextTag] = Field(default_factory=list, alias="contextTags")
    source_websocket_id: str = Field("", alias="sourceWebsocketId")
    workspace_uuid: str = Field("", alias="workspaceUUID")


class ChatResponseValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: str = Field("", alias="chatId")
    message_id: str = Field("", alias="messageId")
    response: str = ""
    source_websocket_id: str = Field("", alias="sourceWebsocketId")


class ChatResponseWebhook(BaseModel):
    """Body posted back by the chat workflow."""
    value: ChatResponseValue


class ChatEnvelope(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None


# ---------------------------------------------------------------------------
# Websocket frame
# ---------------------------------------------------------------------------

class SessionMessage(BaseModel):
    """Frame pushed to a client websocket session."""
    model_config = ConfigDict(populate_by_name=True)

    broadcast_type: str = Field("direct", alias="broadcastType")
    source_session_id: str = Field("", alias="sourceSessionId")
    message: str = ""
    action: str = ""
    chat_message: Optional[dict] = Field(None, alias="chatMessage")
    ticket_details: Optional[dict] = Field(None, alias="ticketDetails")

    def to_frame(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
