"""
Workspace service layer: workspaces, people, membership, roles and budget.

Handles:
- Workspace create-or-edit with name/description/github validation
- Owner-only soft delete that clears memberships and roles
- Membership and role grants, guarded by the caller's own roles
- Budget deposits/withdrawals and the payment history ledger
- Workspace repositories
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hive_server.core.auth import AuthenticatedCaller, get_user_roles, user_has_access
from hive_server.models.base import ensure_utc, new_uuid
from hive_server.models.bounty import Bounty
from hive_server.models.payment import PaymentHistory
from hive_server.models.person import Person
from hive_server.models.workspace import (
    Workspace,
    WorkspaceRepository,
    WorkspaceUser,
    WorkspaceUserRole,
)
from hive_shared.schemas.common import PaymentType, Role
from hive_shared.schemas.workspaces import (
    PaymentHistoryRead,
    PersonWrite,
    RepositoryWrite,
    RoleAssignment,
    WorkspaceBudgetRead,
    WorkspaceUserRead,
    WorkspaceWrite,
)

log = structlog.get_logger()

MAX_NAME_LENGTH = 20
MAX_DESCRIPTION_LENGTH = 120


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------


async def get_person_by_pubkey(session: AsyncSession, pubkey: str) -> Optional[Person]:
    result = await session.execute(select(Person).where(Person.pubkey == pubkey))
    return result.scalar_one_or_none()


async def create_or_edit_person(
    session: AsyncSession, caller: AuthenticatedCaller, data: PersonWrite
) -> Person:
    """A caller may only create or edit their own person row."""
    person = await get_person_by_pubkey(session, caller.pubkey)
    if person is None:
        person = Person(pubkey=caller.pubkey)

    for key, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(person, key, value)

    session.add(person)
    await session.flush()
    return person


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


async def get_workspace_or_404(session: AsyncSession, workspace_uuid: str) -> Workspace:
    workspace = await session.get(Workspace, workspace_uuid) if workspace_uuid else None
    if not workspace or workspace.deleted:
        raise HTTPException(status_code=404, detail="Workspace not found")
    return workspace


async def _get_workspace_by_name(session: AsyncSession, name: str) -> Optional[Workspace]:
    result = await session.execute(
        select(Workspace).where(Workspace.name == name, Workspace.deleted == False)  # noqa: E712
    )
    return result.scalars().first()


def validate_workspace_fields(data: WorkspaceWrite) -> WorkspaceWrite:
    """Trim and check the user-facing fields. Raises 400 on violation."""
    data.name = data.name.strip()
    if not data.name or len(data.name) > MAX_NAME_LENGTH:
        raise HTTPException(
            status_code=400,
            detail="Error: workspace name must be present and should not exceed 20 character",
        )
    if len(data.description) > MAX_DESCRIPTION_LENGTH:
        raise HTTPException(
            status_code=400,
            detail="Error: workspace description should not exceed 120 character",
        )
    if data.github and "github.com/" not in data.github:
        raise HTTPException(status_code=400, detail="Error: not a valid github")
    return data


async def create_or_edit_workspace(
    session: AsyncSession, caller: AuthenticatedCaller, data: WorkspaceWrite
) -> Workspace:
    data = validate_workspace_fields(data)
    owner_pubkey = data.owner_pubkey or caller.pubkey

    if caller.pubkey != owner_pubkey:
        if not await user_has_access(session, caller.pubkey, data.uuid or "", Role.EDIT_ORG):
            log.info("workspaces.mismatched_pubkey", caller=caller.pubkey, owner=owner_pubkey)
            raise HTTPException(status_code=401, detail="Don't have access to Edit workspace")

    existing = await session.get(Workspace, data.uuid) if data.uuid else None

    same_name = await _get_workspace_by_name(session, data.name)
    if same_name and (existing is None or same_name.uuid != existing.uuid):
        raise HTTPException(status_code=409, detail=f"Workspace name already exists - {data.name}")

    if existing is None:
        workspace = Workspace(
            uuid=data.uuid or new_uuid(),
            owner_pubkey=owner_pubkey,
            name=data.name,
            description=data.description,
            github=data.github,
            website=data.website,
            img=data.img,
            mission=data.mission or "",
            tactics=data.tactics or "",
            schematic_url=data.schematic_url or "",
        )
    else:
        if existing.deleted:
            raise HTTPException(status_code=404, detail="Workspace not found")
        workspace = existing
        workspace.name = data.name
        workspace.description = data.description
        workspace.github = data.github
        workspace.website = data.website
        workspace.img = data.img
        for key in ("mission", "tactics", "schematic_url"):
            value = getattr(data, key)
            if value is not None:
                setattr(workspace, key, value)

    session.add(workspace)
    await session.flush()
    return workspace


async def list_workspaces(
    session: AsyncSession, limit: int = 0, offset: int = 0
) -> list[Workspace]:
    stmt = (
        select(Workspace)
        .where(Workspace.deleted == False)  # noqa: E712
        .order_by(Workspace.created_at.desc())
    )
    if limit > 0:
        stmt = stmt.offset(offset).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_workspaces(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(Workspace).where(Workspace.deleted == False)  # noqa: E712
    )
    return result.scalar_one()


async def get_user_workspaces(session: AsyncSession, pubkey: str) -> list[Workspace]:
    """Workspaces the pubkey owns or is a member of."""
    member_of = select(WorkspaceUser.workspace_uuid).where(WorkspaceUser.pubkey == pubkey)
    result = await session.execute(
        select(Workspace)
        .where(
            Workspace.deleted == False,  # noqa: E712
            (Workspace.owner_pubkey == pubkey) | (Workspace.uuid.in_(member_of)),
        )
        .order_by(Workspace.created_at)
    )
    return list(result.scalars().all())


async def delete_workspace(
    session: AsyncSession, caller: AuthenticatedCaller, workspace_uuid: str
) -> Workspace:
    """Owner-only soft delete; memberships and roles are removed."""
    workspace = await get_workspace_or_404(session, workspace_uuid)
    if caller.pubkey != workspace.owner_pubkey:
        raise HTTPException(status_code=401, detail="only workspace admin can delete an workspace")

    workspace.deleted = True
    workspace.website = ""
    workspace.github = ""
    workspace.description = ""
    session.add(workspace)

    await session.execute(delete(WorkspaceUserRole).where(WorkspaceUserRole.workspace_uuid == workspace_uuid))
    await session.execute(delete(WorkspaceUser).where(WorkspaceUser.workspace_uuid == workspace_uuid))
    await session.flush()

    log.info("workspaces.deleted", workspace_uuid=workspace_uuid)
    return workspace


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


async def _get_membership(
    session: AsyncSession, workspace_uuid: str, pubkey: str
) -> Optional[WorkspaceUser]:
    result = await session.execute(
        select(WorkspaceUser).where(
            WorkspaceUser.workspace_uuid == workspace_uuid,
            WorkspaceUser.pubkey == pubkey,
        )
    )
    return result.scalar_one_or_none()


async def add_workspace_user(
    session: AsyncSession,
    caller: AuthenticatedCaller,
    workspace_uuid: str,
    pubkey: str,
) -> WorkspaceUserRead:
    workspace = await get_workspace_or_404(session, workspace_uuid)

    if pubkey == workspace.owner_pubkey:
        raise HTTPException(status_code=401, detail="Cannot add workspace admin as a user")
    if pubkey == caller.pubkey:
        raise HTTPException(status_code=401, detail="Cannot add userself as a user")
    if not await user_has_access(session, caller.pubkey, workspace_uuid, Role.ADD_USER):
        raise HTTPException(status_code=401, detail="Don't have access to add user")

    person = await get_person_by_pubkey(session, pubkey)
    if person is None:
        raise HTTPException(status_code=401, detail="User doesn't exists in people")
    if await _get_membership(session, workspace_uuid, pubkey):
        raise HTTPException(status_code=401, detail="User already exists")

    membership = WorkspaceUser(workspace_uuid=workspace_uuid, pubkey=pubkey)
    session.add(membership)
    await session.flush()

    return WorkspaceUserRead(
        workspace_uuid=workspace_uuid,
        pubkey=pubkey,
        alias=person.alias,
        unique_name=person.unique_name,
        img=person.img,
        created_at=membership.created_at,
    )


async def list_workspace_users(session: AsyncSession, workspace_uuid: str) -> list[WorkspaceUserRead]:
    result = await session.execute(
        select(WorkspaceUser, Person)
        .join(Person, Person.pubkey == WorkspaceUser.pubkey, isouter=True)
        .where(WorkspaceUser.workspace_uuid == workspace_uuid)
        .order_by(WorkspaceUser.created_at)
    )
    return [
        WorkspaceUserRead(
            workspace_uuid=membership.workspace_uuid,
            pubkey=membership.pubkey,
            alias=person.alias if person else "",
            unique_name=person.unique_name if person else "",
            img=person.img if person else "",
            created_at=membership.created_at,
        )
        for membership, person in result.all()
    ]


async def count_workspace_users(session: AsyncSession, workspace_uuid: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(WorkspaceUser)
        .where(WorkspaceUser.workspace_uuid == workspace_uuid)
    )
    return result.scalar_one()


async def delete_workspace_user(
    session: AsyncSession,
    caller: AuthenticatedCaller,
    workspace_uuid: str,
    pubkey: str,
) -> None:
    workspace = await get_workspace_or_404(session, workspace_uuid)

    if pubkey == workspace.owner_pubkey:
        raise HTTPException(status_code=401, detail="Cannot delete workspace admin")
    if not await user_has_access(session, caller.pubkey, workspace_uuid, Role.DELETE_USER):
        raise HTTPException(status_code=401, detail="Don't have access to delete user")

    membership = await _get_membership(session, workspace_uuid, pubkey)
    if membership is None:
        raise HTTPException(status_code=404, detail="User is not a member of this workspace")

    await session.execute(
        delete(WorkspaceUserRole).where(
            WorkspaceUserRole.workspace_uuid == workspace_uuid,
            WorkspaceUserRole.pubkey == pubkey,
        )
    )
    await session.delete(membership)
    await session.flush()


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------

VALID_ROLES = frozenset(r.value for r in Role)


async def add_user_roles(
    session: AsyncSession,
    caller: AuthenticatedCaller,
    workspace_uuid: str,
    pubkey: str,
    roles: list[RoleAssignment],
) -> list[WorkspaceUserRole]:
    """Replace ``pubkey``'s roles. The caller can only grant roles they hold."""
    if caller.pubkey == pubkey:
        raise HTTPException(status_code=401, detail="auth pubkey cannot be the same with user's")
    if not await user_has_access(session, caller.pubkey, workspace_uuid, Role.ADD_ROLES):
        raise HTTPException(
            status_code=401, detail="user does not have adequate permissions to add roles"
        )

    for assignment in roles:
        if assignment.role not in VALID_ROLES:
            raise HTTPException(status_code=400, detail="not a valid user role")
        if not await user_has_access(session, caller.pubkey, workspace_uuid, assignment.role):
            raise HTTPException(status_code=401, detail="cannot add a role you don't have")

    if await _get_membership(session, workspace_uuid, pubkey) is None:
        raise HTTPException(status_code=401, detail="User does not exists in the workspace")

    await session.execute(
        delete(WorkspaceUserRole).where(
            WorkspaceUserRole.workspace_uuid == workspace_uuid,
            WorkspaceUserRole.pubkey == pubkey,
        )
    )
    created = []
    for role in dict.fromkeys(a.role for a in roles):
        row = WorkspaceUserRole(workspace_uuid=workspace_uuid, pubkey=pubkey, role=role)
        session.add(row)
        created.append(row)
    await session.flush()
    return created


async def list_user_roles(
    session: AsyncSession, workspace_uuid: str, pubkey: str
) -> list[WorkspaceUserRole]:
    return await get_user_roles(session, workspace_uuid, pubkey)


# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------


async def _require_role(
    session: AsyncSession,
    caller: AuthenticatedCaller,
    workspace_uuid: str,
    role: Role,
    detail: str,
) -> None:
    if not await user_has_access(session, caller.pubkey, workspace_uuid, role):
        raise HTTPException(status_code=401, detail=detail)


async def _sum_and_count(session: AsyncSession, *conditions) -> tuple[int, int]:
    result = await session.execute(
        select(func.coalesce(func.sum(Bounty.price), 0), func.count(Bounty.id)).where(*conditions)
    )
    total, count = result.one()
    return int(total), int(count)


async def get_workspace_budget(
    session: AsyncSession, caller: AuthenticatedCaller, workspace_uuid: str
) -> WorkspaceBudgetRead:
    await _require_role(session, caller, workspace_uuid, Role.VIEW_REPORT, "Don't have access to view budget")
    workspace = await get_workspace_or_404(session, workspace_uuid)

    in_workspace = Bounty.workspace_uuid == workspace_uuid
    not_paid = Bounty.paid == False  # noqa: E712
    open_budget, open_count = await _sum_and_count(
        session, in_workspace, not_paid, Bounty.assignee == ""
    )
    assigned_budget, assigned_count = await _sum_and_count(
        session, in_workspace, not_paid, Bounty.assignee != "", Bounty.completed == False  # noqa: E712
    )
    completed_budget, completed_count = await _sum_and_count(
        session, in_workspace, not_paid, Bounty.completed == True  # noqa: E712
    )

    return WorkspaceBudgetRead(
        workspace_uuid=workspace_uuid,
        current_budget=workspace.budget,
        open_budget=open_budget,
        open_count=open_count,
        assigned_budget=assigned_budget,
        assigned_count=assigned_count,
        completed_budget=completed_budget,
        completed_count=completed_count,
    )


async def deposit_budget(
    session: AsyncSession, caller: AuthenticatedCaller, workspace_uuid: str, amount: int
) -> Workspace:
    await _require_role(session, caller, workspace_uuid, Role.ADD_BUDGET, "Don't have access to add budget")
    workspace = await get_workspace_or_404(session, workspace_uuid)

    workspace.budget += amount
    session.add(workspace)
    session.add(
        PaymentHistory(
            workspace_uuid=workspace_uuid,
            amount=amount,
            sender_pubkey=caller.pubkey,
            payment_type=PaymentType.DEPOSIT.value,
        )
    )
    await session.flush()
    log.info("workspaces.budget_deposit", workspace_uuid=workspace_uuid, amount=amount)
    return workspace


async def withdraw_budget(
    session: AsyncSession, caller: AuthenticatedCaller, workspace_uuid: str, amount: int
) -> Workspace:
    await _require_role(
        session, caller, workspace_uuid, Role.WITHDRAW_BUDGET, "Don't have access to withdraw budget"
    )
    workspace = await get_workspace_or_404(session, workspace_uuid)

    if amount > workspace.budget:
        raise HTTPException(status_code=400, detail="Insufficient workspace budget")

    workspace.budget -= amount
    session.add(workspace)
    session.add(
        PaymentHistory(
            workspace_uuid=workspace_uuid,
            amount=amount,
            receiver_pubkey=caller.pubkey,
            payment_type=PaymentType.WITHDRAW.value,
        )
    )
    await session.flush()
    log.info("workspaces.budget_withdraw", workspace_uuid=workspace_uuid, amount=amount)
    return workspace


async def get_payment_history(
    session: AsyncSession, caller: AuthenticatedCaller, workspace_uuid: str
) -> list[PaymentHistoryRead]:
    await _require_role(session, caller, workspace_uuid, Role.VIEW_REPORT, "Don't have access to view payments")

    result = await session.execute(
        select(PaymentHistory)
        .where(PaymentHistory.workspace_uuid == workspace_uuid)
        .order_by(PaymentHistory.created_at.desc(), PaymentHistory.id.desc())
    )
    payments = list(result.scalars().all())

    pubkeys = {p.sender_pubkey for p in payments} | {p.receiver_pubkey for p in payments}
    pubkeys.discard("")
    people: dict[str, Person] = {}
    if pubkeys:
        rows = await session.execute(select(Person).where(Person.pubkey.in_(pubkeys)))
        people = {p.pubkey: p for p in rows.scalars().all()}

    history = []
    for payment in payments:
        sender = people.get(payment.sender_pubkey)
        receiver = people.get(payment.receiver_pubkey)
        history.append(
            PaymentHistoryRead(
                id=payment.id,
                workspace_uuid=payment.workspace_uuid,
                bounty_id=payment.bounty_id,
                amount=payment.amount,
                payment_type=payment.payment_type,
                status=payment.status,
                sender_pubkey=payment.sender_pubkey,
                sender_name=sender.unique_name if sender else "",
                sender_img=sender.img if sender else "",
                receiver_pubkey=payment.receiver_pubkey,
                receiver_name=receiver.unique_name if receiver else "",
                receiver_img=receiver.img if receiver else "",
                created_at=payment.created_at,
            )
        )
    return history


async def hours_since_last_withdrawal(session: AsyncSession, workspace_uuid: str) -> int:
    """Whole hours since the last withdrawal; 1 when there has been none."""
    result = await session.execute(
        select(PaymentHistory)
        .where(
            PaymentHistory.workspace_uuid == workspace_uuid,
            PaymentHistory.payment_type == PaymentType.WITHDRAW.value,
        )
        .order_by(PaymentHistory.created_at.desc())
        .limit(1)
    )
    last = result.scalar_one_or_none()
    if last is None:
        return 1

    elapsed = datetime.now(timezone.utc) - ensure_utc(last.created_at)
    return int(elapsed.total_seconds() // 3600)


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


async def create_or_edit_repository(
    session: AsyncSession, caller: AuthenticatedCaller, data: RepositoryWrite
) -> WorkspaceRepository:
    if not data.workspace_uuid or not data.name or not data.url:
        raise HTTPException(status_code=400, detail="workspace_uuid, name and url are required")
    await get_workspace_or_404(session, data.workspace_uuid)

    repo = await session.get(WorkspaceRepository, data.uuid) if data.uuid else None
    if repo is None:
        repo = WorkspaceRepository(
            uuid=data.uuid or new_uuid(),
            workspace_uuid=data.workspace_uuid,
            created_by=caller.pubkey,
        )
    repo.name = data.name
    repo.url = data.url
    repo.updated_by = caller.pubkey

    session.add(repo)
    await session.flush()
    return repo


async def list_repositories(session: AsyncSession, workspace_uuid: str) -> list[WorkspaceRepository]:
    result = await session.execute(
        select(WorkspaceRepository)
        .where(WorkspaceRepository.workspace_uuid == workspace_uuid)
        .order_by(WorkspaceRepository.created_at)
    )
    return list(result.scalars().all())


async def get_repository_or_404(
    session: AsyncSession, workspace_uuid: str, repo_uuid: str
) -> WorkspaceRepository:
    repo = await session.get(WorkspaceRepository, repo_uuid)
    if not repo or repo.workspace_uuid != workspace_uuid:
        raise HTTPException(status_code=404, detail="Repository not found")
    return repo


async def delete_repository(session: AsyncSession, workspace_uuid: str, repo_uuid: str) -> None:
    repo = await get_repository_or_404(session, workspace_uuid, repo_uuid)
    await session.delete(repo)
    await session.flush()
