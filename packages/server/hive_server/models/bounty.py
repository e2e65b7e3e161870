"""Bounty model."""

import time
from datetime import datetime
from typing import List, Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import JSONType, _utcnow


def _epoch() -> int:
    return int(time.time())


class Bounty(SQLModel, table=True):
    __tablename__ = "bounties"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(nullable=False, index=True)
    title: str = Field(nullable=False)
    description: str = Field(default="", nullable=False)
    price: int = Field(default=0, nullable=False)  # sats
    type: str = Field(default="", nullable=False)
    wanted_type: str = Field(default="", nullable=False)
    assignee: str = Field(default="", nullable=False, index=True)
    paid: bool = Field(default=False, nullable=False)
    completed: bool = Field(default=False, nullable=False)
    show: bool = Field(default=True, nullable=False)
    coding_languages: List[str] = Field(
        default_factory=list,
        sa_column=sa.Column(JSONType, nullable=False),
    )
    tags: List[str] = Field(
        default_factory=list,
        sa_column=sa.Column(JSONType, nullable=False),
    )
    # Linked by uuid only, not by database constraints.
    workspace_uuid: Optional[str] = Field(default=None, index=True)
    feature_uuid: Optional[str] = Field(default=None, index=True)
    phase_uuid: Optional[str] = Field(default=None, index=True)
    phase_priority: int = Field(default=0, nullable=False)
    created: int = Field(default_factory=_epoch, nullable=False, index=True)  # unix seconds
    updated_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": _utcnow},
        sa_type=sa.DateTime(timezone=True),
    )
    assigned_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    completion_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    paid_date: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
