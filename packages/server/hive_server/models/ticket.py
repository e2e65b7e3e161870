"""Ticket model. The uuid is always supplied by the caller."""

from typing import List, Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, TimestampMixin


class Ticket(TimestampMixin, SQLModel, table=True):
    __tablename__ = "tickets"

    uuid: str = Field(primary_key=True, index=True, nullable=False)
    # Plain indexed columns: deleting a phase leaves its tickets in place.
    feature_uuid: str = Field(default="", nullable=False, index=True)
    phase_uuid: str = Field(default="", nullable=False, index=True)
    name: str = Field(default="", nullable=False)
    sequence: int = Field(default=0, nullable=False)
    dependency: List[str] = Field(
        default_factory=list,
        sa_column=sa.Column(JSONType, nullable=False),
    )
    description: str = Field(default="", nullable=False)
    status: str = Field(default="draft", nullable=False)
    ticket_group: Optional[str] = Field(default=None, index=True)
    version: int = Field(default=1, nullable=False)  # compare-and-swap token
    author: Optional[str] = None  # HUMAN | AGENT
    author_id: Optional[str] = None
