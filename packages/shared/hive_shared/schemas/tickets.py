"""Ticket schemas: upsert envelope, review webhook and bounty conversion."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import AuthorType, TicketStatus

TICKET_STATUSES = frozenset(s.value for s in TicketStatus)
AUTHOR_TYPES = frozenset(a.value for a in AuthorType)


def is_valid_ticket_status(status: str) -> bool:
    return status in TICKET_STATUSES


def is_valid_author_type(author: str) -> bool:
    return author in AUTHOR_TYPES


class TicketFields(BaseModel):
    """
    Partial ticket payload.

    Only fields present in the JSON are applied on update. ``version``, when
    present, is the version the caller last read.
    """
    feature_uuid: Optional[str] = None
    phase_uuid: Optional[str] = None
    name: Optional[str] = None
    sequence: Optional[int] = None
    dependency: Optional[List[str]] = None
    description: Optional[str] = None
    status: Optional[str] = None
    ticket_group: Optional[str] = None
    version: Optional[int] = None
    author: Optional[str] = None
    author_id: Optional[str] = None


class TicketMetadata(BaseModel):
    source: str = ""
    id: str = ""


class TicketUpsertRequest(BaseModel):
    metadata: TicketMetadata = Field(default_factory=TicketMetadata)
    ticket: TicketFields


class TicketRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    feature_uuid: str
    phase_uuid: str
    name: str
    sequence: int
    dependency: List[str] = Field(default_factory=list)
    description: str
    status: str
    ticket_group: Optional[str] = None
    version: int
    author: Optional[str] = None
    author_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Review webhook
# ---------------------------------------------------------------------------

class TicketReviewValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    feature_uuid: str = Field("", alias="featureUUID")
    phase_uuid: str = Field("", alias="phaseUUID")
    ticket_uuid: str = Field("", alias="ticketUUID")
    ticket_description: str = Field("", alias="ticketDescription")
    ticket_name: str = Field("", alias="ticketName")


class TicketReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: TicketReviewValue
    source_websocket: str = Field("", alias="sourceWebsocket")


class TicketReviewResponse(BaseModel):
    ticket: TicketRead
    websocket_error: Optional[str] = None


# ---------------------------------------------------------------------------
# Ticket -> bounty
# ---------------------------------------------------------------------------

class TicketToBountyResponse(BaseModel):
    success: bool
    bounty_id: int
    message: str
