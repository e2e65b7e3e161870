"""
Bounty service layer: filtered listings and bounty bookkeeping.

Handles:
- The shared filter grammar (search, languages, tags, status flags, sort
  whitelist, pagination) as SQLAlchemy expressions with bound parameters
- Listings scoped to a feature/phase pair or to a workspace
- Create/edit, delete, assign, complete and pay
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

import sqlalchemy as sa
import structlog
from fastapi import HTTPException
from sqlalchemy import and_, false, func, or_, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hive_server.core.auth import AuthenticatedCaller, user_has_access
from hive_server.models.base import is_uuid
from hive_server.models.bounty import Bounty
from hive_server.models.payment import PaymentHistory
from hive_server.models.workspace import Workspace
from hive_shared.schemas.bounties import BountyFilters, BountyWrite
from hive_shared.schemas.common import PaymentType, Role, SortDirection

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def _json_list_overlaps(column, values: list[str]):
    """Any of ``values`` appears as an element of the JSON list ``column``."""
    as_text = sa.cast(column, sa.Text)
    return or_(*(as_text.contains(json.dumps(v), autoescape=True) for v in values))


def bounty_filter_conditions(filters: BountyFilters) -> list[Any]:
    conditions: list[Any] = []

    if filters.search:
        conditions.append(Bounty.title.ilike(f"%{filters.search}%"))
    if filters.languages:
        conditions.append(_json_list_overlaps(Bounty.coding_languages, filters.languages))
    if filters.tags:
        conditions.append(_json_list_overlaps(Bounty.tags, filters.tags))

    statuses = []
    if filters.open:
        statuses.append(and_(Bounty.assignee == "", Bounty.paid == false()))
    if filters.assigned:
        statuses.append(and_(Bounty.assignee != "", Bounty.paid == false()))
    if filters.completed:
        statuses.append(Bounty.completed == true())
    if filters.paid:
        statuses.append(Bounty.paid == true())
    if statuses:
        conditions.append(or_(*statuses))

    return conditions


def ordered_page(stmt, filters: BountyFilters):
    column = getattr(Bounty, filters.sort_column)
    if filters.direction == SortDirection.ASC:
        stmt = stmt.order_by(column.asc(), Bounty.id.asc())
    else:
        stmt = stmt.order_by(column.desc(), Bounty.id.desc())
    if filters.offset:
        stmt = stmt.offset(filters.offset)
    if filters.limit:
        stmt = stmt.limit(filters.limit)
    return stmt


async def _list(session: AsyncSession, scope: list[Any], filters: BountyFilters) -> list[Bounty]:
    stmt = select(Bounty).where(*scope, *bounty_filter_conditions(filters))
    result = await session.execute(ordered_page(stmt, filters))
    return list(result.scalars().all())


async def _count(session: AsyncSession, scope: list[Any], filters: BountyFilters) -> int:
    result = await session.execute(
        select(func.count(Bounty.id)).where(*scope, *bounty_filter_conditions(filters))
    )
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def list_bounties_by_feature_and_phase(
    session: AsyncSession,
    feature_uuid: str,
    phase_uuid: str,
    filters: BountyFilters,
) -> list[Bounty]:
    """
    Bounties of one phase of one feature.

    An empty or malformed UUID, or a pair with no matching bounties, is a 404.
    """
    if not is_uuid(feature_uuid) or not is_uuid(phase_uuid):
        raise HTTPException(status_code=404, detail="Bounties not found")

    scope = [Bounty.feature_uuid == feature_uuid, Bounty.phase_uuid == phase_uuid]
    bounties = await _list(session, scope, filters)
    if not bounties:
        raise HTTPException(status_code=404, detail="Bounties not found")
    return bounties


async def count_bounties_by_feature_and_phase(
    session: AsyncSession,
    feature_uuid: str,
    phase_uuid: str,
    filters: BountyFilters,
) -> int:
    scope = [Bounty.feature_uuid == feature_uuid, Bounty.phase_uuid == phase_uuid]
    return await _count(session, scope, filters)


async def list_workspace_bounties(
    session: AsyncSession, workspace_uuid: str, filters: BountyFilters
) -> list[Bounty]:
    return await _list(session, [Bounty.workspace_uuid == workspace_uuid], filters)


async def count_workspace_bounties(
    session: AsyncSession, workspace_uuid: str, filters: BountyFilters
) -> int:
    return await _count(session, [Bounty.workspace_uuid == workspace_uuid], filters)


async def count_bounty_statuses(
    session: AsyncSession, feature_uuid: str, phase_uuids: list[str]
) -> dict[str, int]:
    """Open/assigned/completed counts over the given phases of a feature."""
    counts = {"open": 0, "assigned": 0, "completed": 0}
    if not phase_uuids:
        return counts

    scope = [Bounty.feature_uuid == feature_uuid, Bounty.phase_uuid.in_(phase_uuids)]
    buckets = {
        "open": [Bounty.assignee == "", Bounty.paid == false()],
        "assigned": [Bounty.assignee != "", Bounty.completed == false(), Bounty.paid == false()],
        "completed": [Bounty.completed == true()],
    }
    for name, conditions in buckets.items():
        result = await session.execute(select(func.count(Bounty.id)).where(*scope, *conditions))
        counts[name] = result.scalar_one()
    return counts


# ---------------------------------------------------------------------------
# CRUD and bookkeeping
# ---------------------------------------------------------------------------


async def get_bounty_or_404(session: AsyncSession, bounty_id: int) -> Bounty:
    bounty = await session.get(Bounty, bounty_id)
    if not bounty:
        raise HTTPException(status_code=404, detail="Bounty not found")
    return bounty


async def _can_manage(
    session: AsyncSession, caller: AuthenticatedCaller, bounty: Bounty, role: Role
) -> bool:
    if caller.pubkey == bounty.owner_id:
        return True
    if bounty.workspace_uuid:
        return await user_has_access(session, caller.pubkey, bounty.workspace_uuid, role)
    return False


async def _check_move(
    session: AsyncSession, caller: AuthenticatedCaller, bounty: Bounty, target: Optional[str]
) -> None:
    """A bounty changes workspace only if the caller may add bounties there."""
    if target:
        allowed = await user_has_access(session, caller.pubkey, target, Role.ADD_BOUNTY)
    else:
        allowed = caller.pubkey == bounty.owner_id
    if not allowed:
        log.info("bounties.move_denied", bounty_id=bounty.id, target=target)
        raise HTTPException(
            status_code=401, detail="You don't have a right to add a bounty to this workspace"
        )


async def create_or_edit_bounty(
    session: AsyncSession, caller: AuthenticatedCaller, data: BountyWrite
) -> Bounty:
    if not data.title.strip():
        raise HTTPException(status_code=400, detail="Missing title")

    if data.id:
        bounty = await get_bounty_or_404(session, data.id)
        if not await _can_manage(session, caller, bounty, Role.UPDATE_BOUNTY):
            raise HTTPException(status_code=401, detail="You don't have a right to update this bounty")
        # Edits only touch the fields the caller sent.
        fields = data.model_dump(exclude_unset=True, exclude={"id"})
        target = fields.get("workspace_uuid")
        if "workspace_uuid" in fields and target != bounty.workspace_uuid:
            await _check_move(session, caller, bounty, target)
    else:
        if data.workspace_uuid and not await user_has_access(
            session, caller.pubkey, data.workspace_uuid, Role.ADD_BOUNTY
        ):
            raise HTTPException(
                status_code=401, detail="You don't have a right to add a bounty to this workspace"
            )
        fields = data.model_dump(exclude={"id"})
        bounty = Bounty(owner_id=caller.pubkey, title=data.title)

    for key, value in fields.items():
        setattr(bounty, key, value)
    bounty.updated_at = datetime.now(timezone.utc)

    session.add(bounty)
    await session.flush()
    await session.refresh(bounty)
    return bounty


async def delete_bounty(session: AsyncSession, caller: AuthenticatedCaller, bounty_id: int) -> None:
    bounty = await get_bounty_or_404(session, bounty_id)
    if not await _can_manage(session, caller, bounty, Role.DELETE_BOUNTY):
        raise HTTPException(status_code=401, detail="You don't have a right to delete this bounty")
    await session.delete(bounty)
    await session.flush()
    log.info("bounties.deleted", bounty_id=bounty_id)


async def assign_bounty(
    session: AsyncSession, caller: AuthenticatedCaller, bounty_id: int, assignee: str
) -> Bounty:
    bounty = await get_bounty_or_404(session, bounty_id)
    if not await _can_manage(session, caller, bounty, Role.UPDATE_BOUNTY):
        raise HTTPException(status_code=401, detail="You don't have a right to assign this bounty")
    if bounty.paid:
        raise HTTPException(status_code=400, detail="Bounty has already been paid")

    now = datetime.now(timezone.utc)
    bounty.assignee = assignee
    bounty.assigned_date = now if assignee else None
    bounty.updated_at = now
    session.add(bounty)
    await session.flush()
    return bounty


async def complete_bounty(
    session: AsyncSession, caller: AuthenticatedCaller, bounty_id: int
) -> Bounty:
    bounty = await get_bounty_or_404(session, bounty_id)
    if not await _can_manage(session, caller, bounty, Role.UPDATE_BOUNTY):
        raise HTTPException(status_code=401, detail="You don't have a right to update this bounty")
    if not bounty.assignee:
        raise HTTPException(status_code=400, detail="Bounty has no assignee")

    now = datetime.now(timezone.utc)
    bounty.completed = True
    bounty.completion_date = now
    bounty.updated_at = now
    session.add(bounty)
    await session.flush()
    return bounty


async def pay_bounty(session: AsyncSession, caller: AuthenticatedCaller, bounty_id: int) -> Bounty:
    """Debit the workspace budget and record the payment."""
    bounty = await get_bounty_or_404(session, bounty_id)
    if not bounty.workspace_uuid:
        raise HTTPException(status_code=400, detail="Bounty does not belong to a workspace")
    if not await user_has_access(session, caller.pubkey, bounty.workspace_uuid, Role.PAY_BOUNTY):
        raise HTTPException(status_code=401, detail="You don't have a right to pay this bounty")
    if not bounty.assignee:
        raise HTTPException(status_code=400, detail="Bounty has no assignee")
    if bounty.paid:
        raise HTTPException(status_code=400, detail="Bounty has already been paid")

    workspace: Optional[Workspace] = await session.get(Workspace, bounty.workspace_uuid)
    if workspace is None or workspace.budget < bounty.price:
        raise HTTPException(status_code=400, detail="Workspace budget is not enough to pay bounty")

    now = datetime.now(timezone.utc)
    workspace.budget -= bounty.price
    bounty.paid = True
    bounty.paid_date = now
    if not bounty.completed:
        bounty.completed = True
        bounty.completion_date = now
    bounty.updated_at = now

    session.add_all([workspace, bounty])
    session.add(
        PaymentHistory(
            workspace_uuid=bounty.workspace_uuid,
            bounty_id=bounty.id,
            amount=bounty.price,
            sender_pubkey=caller.pubkey,
            receiver_pubkey=bounty.assignee,
            payment_type=PaymentType.PAYMENT.value,
        )
    )
    await session.flush()

    log.info("bounties.paid", bounty_id=bounty.id, amount=bounty.price, assignee=bounty.assignee)
    return bounty
