"""
Workspace endpoints: workspaces, membership, roles, budget and repositories.

Role checks follow the workspace role model: the owner holds every role,
members hold what they were granted (see ``hive_shared.schemas.common.Role``).
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hive_server.api.v1.bounties import bounty_filters
from hive_server.core.auth import AuthenticatedCaller, require_caller
from hive_server.core.database import get_session
from hive_server.core.requests import parse_body
from hive_server.services import bounties as bounty_service
from hive_server.services import workspaces as workspace_service
from hive_shared.schemas.bounties import BountyFilters, BountyRead
from hive_shared.schemas.common import BOUNTY_ROLES, MessageResponse
from hive_shared.schemas.workspaces import (
    BudgetChange,
    PaymentHistoryRead,
    RepositoryRead,
    RepositoryWrite,
    RoleAssignmentList,
    UserRoleRead,
    WorkspaceBudgetRead,
    WorkspaceRead,
    WorkspaceUserRead,
    WorkspaceUserWrite,
    WorkspaceWrite,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Workspace CRUD
# ---------------------------------------------------------------------------


@router.post("", response_model=WorkspaceRead)
async def create_or_edit_workspace_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, WorkspaceWrite)
    return await workspace_service.create_or_edit_workspace(session, caller, data)


@router.get("", response_model=List[WorkspaceRead])
async def list_workspaces_endpoint(
    limit: int = Query(0, ge=0),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.list_workspaces(session, limit, offset)


@router.get("/count", response_model=int)
async def count_workspaces_endpoint(session: AsyncSession = Depends(get_session)):
    return await workspace_service.count_workspaces(session)


@router.get("/bounty/roles")
async def list_bounty_roles_endpoint():
    return [{"name": role.value} for role in BOUNTY_ROLES]


@router.get("/user", response_model=List[WorkspaceRead])
async def list_caller_workspaces_endpoint(
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.get_user_workspaces(session, caller.pubkey)


@router.post("/repositories", response_model=RepositoryRead)
async def create_or_edit_repository_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, RepositoryWrite)
    return await workspace_service.create_or_edit_repository(session, caller, data)


@router.get("/{workspace_uuid}", response_model=WorkspaceRead)
async def get_workspace_endpoint(
    workspace_uuid: str,
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.get_workspace_or_404(session, workspace_uuid)


@router.delete("/{workspace_uuid}", response_model=WorkspaceRead)
async def delete_workspace_endpoint(
    workspace_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.delete_workspace(session, caller, workspace_uuid)


# ---------------------------------------------------------------------------
# Membership and roles
# ---------------------------------------------------------------------------


@router.post("/{workspace_uuid}/users", response_model=WorkspaceUserRead)
async def add_workspace_user_endpoint(
    workspace_uuid: str,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, WorkspaceUserWrite)
    return await workspace_service.add_workspace_user(session, caller, workspace_uuid, data.owner_pubkey)


@router.get("/{workspace_uuid}/users", response_model=List[WorkspaceUserRead])
async def list_workspace_users_endpoint(
    workspace_uuid: str,
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.list_workspace_users(session, workspace_uuid)


@router.get("/{workspace_uuid}/users/count", response_model=int)
async def count_workspace_users_endpoint(
    workspace_uuid: str,
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.count_workspace_users(session, workspace_uuid)


@router.delete("/{workspace_uuid}/users/{pubkey}", response_model=MessageResponse)
async def delete_workspace_user_endpoint(
    workspace_uuid: str,
    pubkey: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    await workspace_service.delete_workspace_user(session, caller, workspace_uuid, pubkey)
    return MessageResponse(message="User removed from workspace")


@router.get("/{workspace_uuid}/users/{pubkey}/roles", response_model=List[UserRoleRead])
async def list_user_roles_endpoint(
    workspace_uuid: str,
    pubkey: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.list_user_roles(session, workspace_uuid, pubkey)


@router.post("/{workspace_uuid}/users/{pubkey}/roles", response_model=List[UserRoleRead])
async def add_user_roles_endpoint(
    workspace_uuid: str,
    pubkey: str,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    """Replace the user's roles with the posted list, e.g. ``[{"role": "ADD BOUNTY"}]``."""
    roles = await parse_body(request, RoleAssignmentList)
    return await workspace_service.add_user_roles(session, caller, workspace_uuid, pubkey, roles.root)


# ---------------------------------------------------------------------------
# Budget and payments
# ---------------------------------------------------------------------------


@router.get("/{workspace_uuid}/budget", response_model=WorkspaceBudgetRead)
async def get_budget_endpoint(
    workspace_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.get_workspace_budget(session, caller, workspace_uuid)


@router.post("/{workspace_uuid}/budget/deposit", response_model=WorkspaceRead)
async def deposit_budget_endpoint(
    workspace_uuid: str,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, BudgetChange)
    return await workspace_service.deposit_budget(session, caller, workspace_uuid, data.amount)


@router.post("/{workspace_uuid}/budget/withdraw", response_model=WorkspaceRead)
async def withdraw_budget_endpoint(
    workspace_uuid: str,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, BudgetChange)
    return await workspace_service.withdraw_budget(session, caller, workspace_uuid, data.amount)


@router.get("/{workspace_uuid}/payments", response_model=List[PaymentHistoryRead])
async def payment_history_endpoint(
    workspace_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.get_payment_history(session, caller, workspace_uuid)


@router.get("/{workspace_uuid}/lastwithdrawal", response_model=int)
async def last_withdrawal_endpoint(
    workspace_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    """Hours since the last withdrawal."""
    return await workspace_service.hours_since_last_withdrawal(session, workspace_uuid)


# ---------------------------------------------------------------------------
# Bounties
# ---------------------------------------------------------------------------


@router.get("/{workspace_uuid}/bounties", response_model=List[BountyRead])
async def list_workspace_bounties_endpoint(
    workspace_uuid: str,
    filters: BountyFilters = Depends(bounty_filters),
    session: AsyncSession = Depends(get_session),
):
    return await bounty_service.list_workspace_bounties(session, workspace_uuid, filters)


@router.get("/{workspace_uuid}/bounties/count", response_model=int)
async def count_workspace_bounties_endpoint(
    workspace_uuid: str,
    filters: BountyFilters = Depends(bounty_filters),
    session: AsyncSession = Depends(get_session),
):
    return await bounty_service.count_workspace_bounties(session, workspace_uuid, filters)


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


@router.get("/{workspace_uuid}/repositories", response_model=List[RepositoryRead])
async def list_repositories_endpoint(
    workspace_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.list_repositories(session, workspace_uuid)


@router.get("/{workspace_uuid}/repository/{repo_uuid}", response_model=RepositoryRead)
async def get_repository_endpoint(
    workspace_uuid: str,
    repo_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await workspace_service.get_repository_or_404(session, workspace_uuid, repo_uuid)


@router.delete("/{workspace_uuid}/repository/{repo_uuid}", response_model=MessageResponse)
async def delete_repository_endpoint(
    workspace_uuid: str,
    repo_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    await workspace_service.delete_repository(session, workspace_uuid, repo_uuid)
    return MessageResponse(message="Repository deleted successfully")
