"""Workspace, membership, budget and people schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel

from .common import PaymentType


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

class PersonWrite(BaseModel):
    alias: Optional[str] = None
    unique_name: Optional[str] = None
    description: Optional[str] = None
    img: Optional[str] = None


class PersonRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    pubkey: str
    alias: str
    unique_name: str
    description: str
    img: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------

class WorkspaceWrite(BaseModel):
    """Create-or-edit payload. Length rules are checked by the service."""
    uuid: Optional[str] = None
    owner_pubkey: str = ""
    name: str = ""
    description: str = ""
    github: str = ""
    website: str = ""
    img: str = ""
    mission: Optional[str] = None
    tactics: Optional[str] = None
    schematic_url: Optional[str] = None


class WorkspaceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    owner_pubkey: str
    name: str
    description: str
    github: str
    website: str
    img: str
    mission: str
    tactics: str
    schematic_url: str
    budget: int
    deleted: bool
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Membership and roles
# ---------------------------------------------------------------------------

class WorkspaceUserWrite(BaseModel):
    owner_pubkey: str


class WorkspaceUserRead(BaseModel):
    workspace_uuid: str
    pubkey: str
    alias: str = ""
    unique_name: str = ""
    img: str = ""
    created_at: datetime


class RoleAssignment(BaseModel):
    role: str


class RoleAssignmentList(RootModel[List[RoleAssignment]]):
    pass


class UserRoleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    workspace_uuid: str
    pubkey: str
    role: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Budget and payments
# ---------------------------------------------------------------------------

class BudgetChange(BaseModel):
    amount: int = Field(gt=0)


class WorkspaceBudgetRead(BaseModel):
    workspace_uuid: str
    current_budget: int
    open_budget: int
    open_count: int
    assigned_budget: int
    assigned_count: int
    completed_budget: int
    completed_count: int


class PaymentHistoryRead(BaseModel):
    id: int
    workspace_uuid: str
    bounty_id: Optional[int] = None
    amount: int
    payment_type: PaymentType
    status: str
    sender_pubkey: str
    sender_name: str = ""
    sender_img: str = ""
    receiver_pubkey: str
    receiver_name: str = ""
    receiver_img: str = ""
    created_at: datetime


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------

class RepositoryWrite(BaseModel):
    uuid: Optional[str] = None
    workspace_uuid: str = ""
    name: str = ""
    url: str = ""


class RepositoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    workspace_uuid: str
    name: str
    url: str
    created_by: str
    updated_by: str
    created_at: datetime
    updated_at: datetime
