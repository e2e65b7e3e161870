"""Workspace model and its membership, role and repository tables."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UUIDMixin, _utcnow


class Workspace(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workspaces"

    owner_pubkey: str = Field(nullable=False, index=True)
    name: str = Field(nullable=False, index=True, max_length=20)
    description: str = Field(default="", nullable=False, max_length=120)
    github: str = Field(default="", nullable=False)
    website: str = Field(default="", nullable=False)
    img: str = Field(default="", nullable=False)
    mission: str = Field(default="", nullable=False)
    tactics: str = Field(default="", nullable=False)
    schematic_url: str = Field(default="", nullable=False)
    budget: int = Field(default=0, nullable=False)  # sats
    deleted: bool = Field(default=False, nullable=False)


class WorkspaceUser(SQLModel, table=True):
    __tablename__ = "workspace_users"
    __table_args__ = (sa.UniqueConstraint("workspace_uuid", "pubkey"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_uuid: str = Field(foreign_key="workspaces.uuid", nullable=False, index=True)
    pubkey: str = Field(nullable=False, index=True)
    created_at: datetime = Field(default_factory=_utcnow, sa_type=sa.DateTime(timezone=True))


class WorkspaceUserRole(SQLModel, table=True):
    __tablename__ = "workspace_user_roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    workspace_uuid: str = Field(foreign_key="workspaces.uuid", nullable=False, index=True)
    pubkey: str = Field(nullable=False, index=True)
    role: str = Field(nullable=False)  # one of hive_shared Role values
    created_at: datetime = Field(default_factory=_utcnow, sa_type=sa.DateTime(timezone=True))


class WorkspaceRepository(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "workspace_repositories"

    workspace_uuid: str = Field(foreign_key="workspaces.uuid", nullable=False, index=True)
    name: str = Field(nullable=False)
    url: str = Field(nullable=False)
    created_by: str = Field(default="", nullable=False)
    updated_by: str = Field(default="", nullable=False)
