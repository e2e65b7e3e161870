"""
Ticket service layer: versioned tickets, ticket groups and bounty conversion.

Handles:
- Upsert keyed by a caller-supplied UUID with a compare-and-swap version
- Ticket groups (all members, latest by version, distinct group ids)
- Review webhook: description/name rewrite plus a session notification
- Ticket-to-bounty conversion
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hive_server.core.auth import AuthenticatedCaller
from hive_server.models.base import is_uuid
from hive_server.models.bounty import Bounty
from hive_server.models.feature import WorkspaceFeature
from hive_server.models.ticket import Ticket
from hive_server.services.notifications import ServiceResult, notify_session
from hive_shared.schemas.common import TicketStatus
from hive_shared.schemas.tickets import (
    TicketFields,
    TicketRead,
    TicketReviewRequest,
    TicketUpsertRequest,
    is_valid_author_type,
    is_valid_ticket_status,
)

log = structlog.get_logger()

# Columns that may be set back to NULL by an explicit null in the payload.
NULLABLE_FIELDS = frozenset({"ticket_group", "author", "author_id"})

BOUNTY_PRICE = 21
BOUNTY_TYPE = "freelance_job_request"
BOUNTY_WANTED_TYPE = "Other"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def validate_uuid(value: str, detail: str = "Invalid UUID format") -> str:
    """Return ``value`` if it parses as a UUID, otherwise raise 400."""
    if not is_uuid(value):
        raise HTTPException(status_code=400, detail=detail)
    return value


async def get_ticket_or_404(session: AsyncSession, ticket_uuid: str) -> Ticket:
    ticket = await session.get(Ticket, ticket_uuid)
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


def _changed_fields(fields: TicketFields) -> dict:
    values = fields.model_dump(exclude_unset=True, exclude={"version"})
    if values.get("status") == "":
        # An empty status means unspecified.
        del values["status"]
    return {k: v for k, v in values.items() if v is not None or k in NULLABLE_FIELDS}


def _validate_fields(fields: TicketFields) -> None:
    if fields.status and not is_valid_ticket_status(fields.status):
        raise HTTPException(status_code=400, detail="Invalid ticket status")
    if fields.author and not is_valid_author_type(fields.author):
        raise HTTPException(status_code=400, detail="Invalid author type")
    if fields.ticket_group:
        validate_uuid(fields.ticket_group, "Invalid ticket group UUID")


# ---------------------------------------------------------------------------
# Upsert / delete
# ---------------------------------------------------------------------------


async def upsert_ticket(
    session: AsyncSession, ticket_uuid: str, request: TicketUpsertRequest
) -> ServiceResult[Ticket]:
    """
    Insert or update the ticket stored under ``ticket_uuid``.

    On update only the fields present in the payload change. When the
    payload carries ``version`` the update applies only if it still equals
    the stored version (409 otherwise). Every update bumps the version.
    """
    fields = request.ticket
    _validate_fields(fields)
    changes = _changed_fields(fields)

    ticket = await session.get(Ticket, ticket_uuid)
    if ticket is None:
        ticket = Ticket(uuid=ticket_uuid, version=1, **changes)
        if not ticket.status:
            ticket.status = TicketStatus.DRAFT.value
        session.add(ticket)
        await session.flush()
        log.info("tickets.created", ticket_uuid=ticket_uuid)
    else:
        stmt = update(Ticket).where(Ticket.uuid == ticket_uuid)
        if fields.version is not None:
            stmt = stmt.where(Ticket.version == fields.version)
        stmt = stmt.values(
            **changes,
            version=Ticket.version + 1,
            updated_at=datetime.now(timezone.utc),
        ).execution_options(synchronize_session=False)

        result = await session.execute(stmt)
        if result.rowcount == 0:
            log.info(
                "tickets.version_conflict",
                ticket_uuid=ticket_uuid,
                expected=fields.version,
                stored=ticket.version,
            )
            raise HTTPException(status_code=409, detail="Ticket version conflict")
        await session.refresh(ticket)

    outcome = ServiceResult(value=ticket)
    metadata = request.metadata
    if metadata.source == "websocket" and metadata.id:
        outcome.notifications.append(
            await notify_session(
                metadata.id,
                "message",
                "Ticket updated successfully",
                ticket_details=TicketRead.model_validate(ticket).model_dump(mode="json"),
            )
        )
    return outcome


async def delete_ticket(session: AsyncSession, ticket_uuid: str) -> None:
    ticket = await get_ticket_or_404(session, ticket_uuid)
    await session.delete(ticket)
    await session.flush()


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def list_tickets_by_phase(
    session: AsyncSession, feature_uuid: str, phase_uuid: str
) -> list[Ticket]:
    result = await session.execute(
        select(Ticket)
        .where(Ticket.feature_uuid == feature_uuid, Ticket.phase_uuid == phase_uuid)
        .order_by(Ticket.sequence, Ticket.created_at)
    )
    return list(result.scalars().all())


async def list_tickets_by_group(session: AsyncSession, group_uuid: str) -> list[Ticket]:
    result = await session.execute(
        select(Ticket).where(Ticket.ticket_group == group_uuid).order_by(Ticket.version)
    )
    return list(result.scalars().all())


async def get_latest_ticket_in_group(session: AsyncSession, group_uuid: str) -> Ticket:
    result = await session.execute(
        select(Ticket)
        .where(Ticket.ticket_group == group_uuid)
        .order_by(Ticket.version.desc(), Ticket.updated_at.desc())
        .limit(1)
    )
    ticket = result.scalar_one_or_none()
    if ticket is None:
        raise HTTPException(status_code=404, detail="No tickets found in group")
    return ticket


async def list_ticket_groups(session: AsyncSession) -> list[str]:
    result = await session.execute(
        select(Ticket.ticket_group)
        .where(Ticket.ticket_group.is_not(None), Ticket.ticket_group != "")
        .distinct()
        .order_by(Ticket.ticket_group)
    )
    return [row[0] for row in result.all()]


# ---------------------------------------------------------------------------
# Review webhook
# ---------------------------------------------------------------------------


async def process_ticket_review(
    session: AsyncSession, request: TicketReviewRequest
) -> ServiceResult[Ticket]:
    review = request.value
    if not review.ticket_uuid:
        raise HTTPException(status_code=400, detail="ticketUUID is required")
    if not review.ticket_description:
        raise HTTPException(status_code=400, detail="ticketDescription is required")

    ticket = await get_ticket_or_404(session, review.ticket_uuid)
    ticket.description = review.ticket_description
    if review.ticket_name:
        ticket.name = review.ticket_name
    ticket.version += 1
    ticket.updated_at = datetime.now(timezone.utc)
    session.add(ticket)
    await session.flush()

    log.info("tickets.reviewed", ticket_uuid=ticket.uuid)

    outcome = ServiceResult(value=ticket)
    if request.source_websocket:
        outcome.notifications.append(
            await notify_session(
                request.source_websocket,
                "message",
                f"Ticket {ticket.uuid} has been updated",
                ticket_details=review.model_dump(by_alias=True),
            )
        )
    return outcome


# ---------------------------------------------------------------------------
# Ticket -> bounty
# ---------------------------------------------------------------------------


async def create_bounty_from_ticket(
    session: AsyncSession, caller: AuthenticatedCaller, ticket_uuid: str
) -> Bounty:
    """Create a fixed-price bounty from a ticket. Each call makes a new bounty."""
    ticket = await get_ticket_or_404(session, ticket_uuid)

    feature = await session.get(WorkspaceFeature, ticket.feature_uuid) if ticket.feature_uuid else None
    if feature is None:
        raise HTTPException(status_code=404, detail="Feature not found")

    bounty = Bounty(
        owner_id=caller.pubkey,
        title=ticket.name,
        description=ticket.description,
        price=BOUNTY_PRICE,
        type=BOUNTY_TYPE,
        wanted_type=BOUNTY_WANTED_TYPE,
        show=True,
        coding_languages=[],
        workspace_uuid=feature.workspace_uuid,
        feature_uuid=ticket.feature_uuid,
        phase_uuid=ticket.phase_uuid,
    )
    session.add(bounty)
    await session.flush()

    log.info("tickets.bounty_created", ticket_uuid=ticket_uuid, bounty_id=bounty.id)
    return bounty
