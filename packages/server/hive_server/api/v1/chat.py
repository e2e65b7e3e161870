"""
Hive chat endpoints.

- POST /hivechat                    create a chat
- GET  /hivechat?workspace_id=      list chats (optional ``status``)
- PUT  /hivechat/{id}               rename
- PUT  /hivechat/{id}/archive       archive
- POST /hivechat/send               send a user message to the chat workflow
- GET  /hivechat/history/{id}       messages, oldest first
- POST /hivechat/response           chat workflow webhook
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hive_server.core.auth import AuthenticatedCaller, require_caller
from hive_server.core.config import get_settings
from hive_server.core.database import get_session
from hive_server.core.requests import parse_body
from hive_server.core.workflow import WorkflowClient, get_workflow_client
from hive_server.services import chat as chat_service
from hive_shared.schemas.chat import (
    ChatCreate,
    ChatEnvelope,
    ChatMessageRead,
    ChatRead,
    ChatResponseWebhook,
    ChatUpdate,
    SendMessageRequest,
)

router = APIRouter()


@router.post("", response_model=ChatEnvelope)
async def create_chat_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, ChatCreate, error_status=400)
    chat = await chat_service.create_chat(session, data)
    return ChatEnvelope(
        success=True,
        message="Chat created successfully",
        data=ChatRead.model_validate(chat),
    )


@router.get("", response_model=ChatEnvelope)
async def list_chats_endpoint(
    workspace_id: str = "",
    status: Optional[str] = None,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    if not workspace_id:
        raise HTTPException(status_code=400, detail="workspace_id query parameter is required")

    chats = await chat_service.list_chats(session, workspace_id, status)
    return ChatEnvelope(success=True, data=[ChatRead.model_validate(c) for c in chats])


@router.post("/send", response_model=ChatEnvelope)
async def send_message_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
    client: WorkflowClient = Depends(get_workflow_client),
):
    data = await parse_body(request, SendMessageRequest, error_status=400)
    settings = get_settings()
    outcome = await chat_service.send_message(
        session,
        client,
        data,
        webhook_url=f"{settings.public_url}/hivechat/response",
        jobs_url=settings.stakwork_jobs_url,
    )
    return ChatEnvelope(
        success=True,
        message="Message sent successfully",
        data=ChatMessageRead.model_validate(outcome.value),
    )


@router.post("/response", response_model=ChatEnvelope)
async def chat_response_endpoint(
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Webhook called by the chat workflow with the assistant's answer."""
    webhook = await parse_body(request, ChatResponseWebhook, error_status=400)
    outcome = await chat_service.process_chat_response(session, webhook)
    return ChatEnvelope(
        success=True,
        message="Response processed successfully",
        data=ChatMessageRead.model_validate(outcome.value),
    )


@router.get("/history/{chat_id}", response_model=ChatEnvelope)
async def chat_history_endpoint(
    chat_id: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    messages = await chat_service.get_chat_history(session, chat_id)
    return ChatEnvelope(success=True, data=[ChatMessageRead.model_validate(m) for m in messages])


@router.put("/{chat_id}", response_model=ChatEnvelope)
async def update_chat_endpoint(
    chat_id: str,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, ChatUpdate, error_status=400)
    chat = await chat_service.update_chat(session, chat_id, data.title)
    return ChatEnvelope(
        success=True,
        message="Chat updated successfully",
        data=ChatRead.model_validate(chat),
    )


@router.put("/{chat_id}/archive", response_model=ChatEnvelope)
async def archive_chat_endpoint(
    chat_id: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    chat = await chat_service.archive_chat(session, chat_id)
    return ChatEnvelope(
        success=True,
        message="Chat archived successfully",
        data=ChatRead.model_validate(chat),
    )
