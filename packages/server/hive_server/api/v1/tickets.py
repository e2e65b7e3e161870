"""
Ticket endpoints.

- GET    /tickets/groups                    distinct ticket group ids
- GET    /tickets/group/{group}             all tickets in a group
- GET    /tickets/group/{group}/latest      highest version in a group
- POST   /tickets/review                    review workflow webhook
- GET    /tickets/{uuid}
- POST   /tickets/{uuid}                    upsert (version is compare-and-swap)
- DELETE /tickets/{uuid}
- POST   /tickets/{uuid}/bounty             create a bounty from the ticket
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from hive_server.core.auth import AuthenticatedCaller, require_caller
from hive_server.core.database import get_session
from hive_server.core.requests import parse_body
from hive_server.services import tickets as ticket_service
from hive_shared.schemas.common import MessageResponse
from hive_shared.schemas.tickets import (
    TicketRead,
    TicketReviewRequest,
    TicketReviewResponse,
    TicketToBountyResponse,
    TicketUpsertRequest,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


@router.get("/groups", response_model=List[str])
async def list_ticket_groups_endpoint(
    session: AsyncSession = Depends(get_session),
):
    return await ticket_service.list_ticket_groups(session)


@router.get("/group/{group_uuid}", response_model=List[TicketRead])
async def list_group_tickets_endpoint(
    group_uuid: str,
    session: AsyncSession = Depends(get_session),
):
    ticket_service.validate_uuid(group_uuid, "Invalid group UUID format")
    return await ticket_service.list_tickets_by_group(session, group_uuid)


@router.get("/group/{group_uuid}/latest", response_model=TicketRead)
async def latest_group_ticket_endpoint(
    group_uuid: str,
    session: AsyncSession = Depends(get_session),
):
    ticket_service.validate_uuid(group_uuid, "Invalid group UUID format")
    return await ticket_service.get_latest_ticket_in_group(session, group_uuid)


# ---------------------------------------------------------------------------
# Review webhook
# ---------------------------------------------------------------------------


@router.post("/review", response_model=TicketReviewResponse)
async def review_ticket_endpoint(
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """
    Apply a reviewed description to a ticket and notify the source session.

    A failed websocket delivery is reported as ``websocket_error`` next to
    the updated ticket; the status stays 200.
    """
    review = await parse_body(
        request, TicketReviewRequest, error_status=400, error_detail="Error parsing request body"
    )
    try:
        outcome = await ticket_service.process_ticket_review(session, review)
    except HTTPException as exc:
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"error": exc.detail})
        raise

    return TicketReviewResponse(
        ticket=TicketRead.model_validate(outcome.value),
        websocket_error=outcome.notification_error,
    )


# ---------------------------------------------------------------------------
# Single ticket
# ---------------------------------------------------------------------------


@router.get("/{ticket_uuid}", response_model=TicketRead)
async def get_ticket_endpoint(
    ticket_uuid: str,
    session: AsyncSession = Depends(get_session),
):
    ticket_service.validate_uuid(ticket_uuid)
    return await ticket_service.get_ticket_or_404(session, ticket_uuid)


@router.post("/{ticket_uuid}", response_model=TicketRead)
async def upsert_ticket_endpoint(
    ticket_uuid: str,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    if not ticket_uuid.strip():
        raise HTTPException(status_code=400, detail="UUID is required")
    ticket_service.validate_uuid(ticket_uuid)

    body = await parse_body(request, TicketUpsertRequest, error_status=400)
    outcome = await ticket_service.upsert_ticket(session, ticket_uuid, body)
    return TicketRead.model_validate(outcome.value)


@router.delete("/{ticket_uuid}", response_model=MessageResponse)
async def delete_ticket_endpoint(
    ticket_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    await ticket_service.delete_ticket(session, ticket_uuid)
    return MessageResponse(message="Ticket deleted successfully")


@router.post("/{ticket_uuid}/bounty", response_model=TicketToBountyResponse, status_code=201)
async def ticket_to_bounty_endpoint(
    ticket_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    if not ticket_uuid.strip():
        raise HTTPException(status_code=400, detail="Ticket UUID is required")

    bounty = await ticket_service.create_bounty_from_ticket(session, caller, ticket_uuid)
    return TicketToBountyResponse(
        success=True,
        bounty_id=bounty.id,
        message="Bounty created successfully",
    )
