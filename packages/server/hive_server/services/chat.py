"""
Chat service layer: hive chats, their messages and workflow dispatch.

Handles:
- Chat create/update/archive and listing by workspace
- Sending a user message: persisted, then dispatched to the chat workflow
  with the workspace product brief and recent history as context
- Ingesting the workflow's answer and pushing it to the client session
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hive_server.core.workflow import (
    CHAT_WORKFLOW_ID,
    CHAT_WORKFLOW_NAME,
    WorkflowClient,
    WorkflowError,
)
from hive_server.models.chat import Chat, ChatMessage
from hive_server.models.workspace import Workspace
from hive_server.services.notifications import ServiceResult, notify_session
from hive_shared.schemas.chat import (
    ChatCreate,
    ChatMessageRead,
    ChatResponseWebhook,
    SendMessageRequest,
)
from hive_shared.schemas.common import (
    ChatRole,
    ChatStatus,
    MessageSource,
    MessageStatus,
)

log = structlog.get_logger()

HISTORY_LIMIT = 20


# ---------------------------------------------------------------------------
# Chats
# ---------------------------------------------------------------------------


async def get_chat_or_404(session: AsyncSession, chat_id: str) -> Chat:
    chat = await session.get(Chat, chat_id) if chat_id else None
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


async def create_chat(session: AsyncSession, data: ChatCreate) -> Chat:
    if not data.workspace_id:
        raise HTTPException(status_code=400, detail="Workspace ID is required")
    if not data.title:
        raise HTTPException(status_code=400, detail="Title is required")

    chat = Chat(workspace_id=data.workspace_id, title=data.title, status=ChatStatus.ACTIVE.value)
    session.add(chat)
    await session.flush()
    return chat


async def update_chat(session: AsyncSession, chat_id: str, title: str) -> Chat:
    chat = await get_chat_or_404(session, chat_id)
    if title:
        chat.title = title
    chat.updated_at = datetime.now(timezone.utc)
    session.add(chat)
    await session.flush()
    return chat


async def archive_chat(session: AsyncSession, chat_id: str) -> Chat:
    chat = await get_chat_or_404(session, chat_id)
    chat.status = ChatStatus.ARCHIVED.value
    chat.updated_at = datetime.now(timezone.utc)
    session.add(chat)
    await session.flush()
    return chat


async def list_chats(
    session: AsyncSession, workspace_id: str, status: Optional[str] = None
) -> list[Chat]:
    stmt = select(Chat).where(Chat.workspace_id == workspace_id)
    if status:
        stmt = stmt.where(Chat.status == status)
    result = await session.execute(stmt.order_by(Chat.updated_at.desc()))
    return list(result.scalars().all())


async def get_chat_history(session: AsyncSession, chat_id: str) -> list[ChatMessage]:
    """Messages of a chat, oldest first."""
    result = await session.execute(
        select(ChatMessage)
        .where(ChatMessage.chat_id == chat_id)
        .order_by(ChatMessage.timestamp, ChatMessage.id)
    )
    return list(result.scalars().all())


async def get_recent_messages(
    session: AsyncSession, chat_id: str, limit: int = HISTORY_LIMIT
) -> list[ChatMessage]:
    """The newest ``limit`` messages of a chat, oldest first."""
    result = await session.execute(
        select(ChatMessage)
        .where(ChatMessage.chat_id == chat_id)
        .order_by(ChatMessage.timestamp.desc(), ChatMessage.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


async def get_product_brief(session: AsyncSession, workspace_uuid: str) -> str:
    workspace = await session.get(Workspace, workspace_uuid)
    if workspace is None:
        raise HTTPException(status_code=500, detail="Error retrieving product brief")
    return f"Mission: {workspace.mission}.\n\nTactics: {workspace.tactics}"


def _message_payload(message: ChatMessage) -> dict:
    return ChatMessageRead.model_validate(message).model_dump(mode="json")


async def send_message(
    session: AsyncSession,
    client: WorkflowClient,
    request: SendMessageRequest,
    webhook_url: str,
    jobs_url: str,
) -> ServiceResult[ChatMessage]:
    """
    Persist a user message and hand it to the chat workflow.

    A dispatch failure marks the message ``error`` and raises 500 after the
    message row has been kept. Session notifications are best effort.
    """
    if not request.workspace_uuid:
        raise HTTPException(status_code=400, detail="workspaceUUID is required")

    product_brief = await get_product_brief(session, request.workspace_uuid)
    await get_chat_or_404(session, request.chat_id)

    history = await get_recent_messages(session, request.chat_id)
    recent = [{"role": m.role, "content": m.message} for m in history]

    message = ChatMessage(
        chat_id=request.chat_id,
        message=request.message,
        role=ChatRole.USER.value,
        status=MessageStatus.SENDING.value,
        source=MessageSource.USER.value,
    )
    session.add(message)
    await session.flush()

    variables = {
        "chatId": request.chat_id,
        "messageId": message.id,
        "message": request.message,
        "history": recent,
        "contextTags": product_brief,
        "sourceWebsocketId": request.source_websocket_id,
        "webhook_url": webhook_url,
    }
    try:
        project_id = await client.run(CHAT_WORKFLOW_NAME, CHAT_WORKFLOW_ID, variables)
    except WorkflowError as exc:
        message.status = MessageStatus.ERROR.value
        session.add(message)
        # The failed message stays in the history even though the request fails.
        await session.commit()
        log.error("chat.dispatch_failed", chat_id=request.chat_id, error=str(exc))
        raise HTTPException(status_code=500, detail=f"Failed to process message: {exc}")

    outcome = ServiceResult(value=message)
    if request.source_websocket_id:
        outcome.notifications.append(
            await notify_session(
                request.source_websocket_id, "swrun", f"{jobs_url}/{project_id}"
            )
        )
        outcome.notifications.append(
            await notify_session(
                request.source_websocket_id,
                "process",
                "Message sent",
                chat_message=_message_payload(message),
            )
        )
    return outcome


async def process_chat_response(
    session: AsyncSession, webhook: ChatResponseWebhook
) -> ServiceResult[ChatMessage]:
    value = webhook.value
    if not value.chat_id:
        raise HTTPException(status_code=400, detail="ChatID is required for the response")
    if not value.response:
        raise HTTPException(status_code=400, detail="Response is required")

    await get_chat_or_404(session, value.chat_id)

    message = ChatMessage(
        chat_id=value.chat_id,
        message=value.response,
        role=ChatRole.ASSISTANT.value,
        status=MessageStatus.SENT.value,
        source=MessageSource.AGENT.value,
    )
    session.add(message)
    await session.flush()
    log.info("chat.response_stored", chat_id=value.chat_id, message_id=message.id)

    outcome = ServiceResult(value=message)
    if value.source_websocket_id:
        outcome.notifications.append(
            await notify_session(
                value.source_websocket_id,
                "message",
                value.response,
                chat_message=_message_payload(message),
            )
        )
    return outcome
