"""
Metrics service layer: read-only aggregates for the admin dashboard.

Bounty ranges compare the unix ``created`` column directly; people,
workspaces and payments compare their ``created_at`` timestamps.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import false, func, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hive_server.models.base import ensure_utc
from hive_server.models.bounty import Bounty
from hive_server.models.payment import PaymentHistory
from hive_server.models.person import Person
from hive_server.models.workspace import Workspace
from hive_server.services.bounties import bounty_filter_conditions, ordered_page
from hive_shared.schemas.bounties import BountyFilters
from hive_shared.schemas.metrics import BountyMetrics, DateRange

SECONDS_PER_DAY = 60 * 60 * 24


def _as_datetime(ts: int) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _bounty_scope(r: DateRange, workspace: Optional[str]) -> list[Any]:
    scope = [Bounty.created >= r.start, Bounty.created <= r.end]
    if workspace:
        scope.append(Bounty.workspace_uuid == workspace)
    return scope


def _created_between(column, r: DateRange) -> list[Any]:
    return [column >= _as_datetime(r.start), column <= _as_datetime(r.end)]


async def _scalar(session: AsyncSession, stmt) -> int:
    result = await session.execute(stmt)
    return int(result.scalar_one() or 0)


def percentage(part: int, whole: int) -> int:
    if not part or not whole:
        return 0
    return part * 100 // whole


def average_days(differences: Sequence[float]) -> int:
    """Mean of per-bounty seconds, rounded, then expressed in whole days."""
    total = sum(round(d) for d in differences)
    if not differences or not total:
        return 0
    avg_seconds = round(total / len(differences))
    return round(avg_seconds / SECONDS_PER_DAY)


# ---------------------------------------------------------------------------
# Simple totals
# ---------------------------------------------------------------------------


async def total_payments(session: AsyncSession, r: DateRange, workspace: Optional[str] = None) -> int:
    stmt = select(func.coalesce(func.sum(PaymentHistory.amount), 0)).where(
        *_created_between(PaymentHistory.created_at, r)
    )
    if r.payment_type:
        stmt = stmt.where(PaymentHistory.payment_type == r.payment_type.value)
    if workspace:
        stmt = stmt.where(PaymentHistory.workspace_uuid == workspace)
    return await _scalar(session, stmt)


async def total_people(session: AsyncSession, r: DateRange) -> int:
    return await _scalar(
        session, select(func.count(Person.id)).where(*_created_between(Person.created_at, r))
    )


async def total_workspaces(session: AsyncSession, r: DateRange) -> int:
    return await _scalar(
        session,
        select(func.count(Workspace.uuid)).where(*_created_between(Workspace.created_at, r)),
    )


async def new_hunters(session: AsyncSession, r: DateRange) -> int:
    """People who joined since the range start, counted only once anyone predates it."""
    total = await _scalar(session, select(func.count(Person.id)))
    before = await _scalar(
        session, select(func.count(Person.id)).where(Person.created_at < _as_datetime(r.start))
    )
    if before > 0 and total > before:
        return total - before
    return 0


# ---------------------------------------------------------------------------
# Bounty stats
# ---------------------------------------------------------------------------


async def _count_bounties(session: AsyncSession, scope: list[Any], *conditions) -> int:
    return await _scalar(session, select(func.count(Bounty.id)).where(*scope, *conditions))


async def _sum_price(session: AsyncSession, scope: list[Any], *conditions) -> int:
    return await _scalar(
        session, select(func.coalesce(func.sum(Bounty.price), 0)).where(*scope, *conditions)
    )


async def _date_differences(session: AsyncSession, scope: list[Any], column) -> list[float]:
    result = await session.execute(select(Bounty.created, column).where(*scope, column.is_not(None)))
    return [ensure_utc(done).timestamp() - created for created, done in result.all()]


async def bounty_metrics(
    session: AsyncSession, r: DateRange, workspace: Optional[str] = None
) -> BountyMetrics:
    scope = _bounty_scope(r, workspace)
    paid = Bounty.paid == true()

    posted = await _count_bounties(session, scope)
    paid_count = await _count_bounties(session, scope, paid)
    assigned = await _count_bounties(session, scope, Bounty.assignee != "", Bounty.paid == false())
    sats_posted = await _sum_price(session, scope)
    sats_paid = await _sum_price(session, scope, paid)

    hunters_paid = await _scalar(
        session,
        select(func.count(func.distinct(Bounty.assignee))).where(*scope, paid, Bounty.assignee != ""),
    )

    paid_before = select(Bounty.assignee).where(paid, Bounty.created < r.start)
    new_hunters_paid = await _scalar(
        session,
        select(func.count(func.distinct(Bounty.assignee))).where(
            *scope, paid, Bounty.assignee != "", Bounty.assignee.not_in(paid_before)
        ),
    )

    return BountyMetrics(
        bounties_posted=posted,
        bounties_paid=paid_count,
        bounties_assigned=assigned,
        bounties_paid_percentage=percentage(paid_count, posted),
        sats_posted=sats_posted,
        sats_paid=sats_paid,
        sats_paid_percentage=percentage(sats_paid, sats_posted),
        hunters_paid=hunters_paid,
        new_hunters_paid=new_hunters_paid,
        new_hunters=await new_hunters(session, r),
        average_paid=average_days(await _date_differences(session, scope, Bounty.paid_date)),
        average_completed=average_days(
            await _date_differences(session, scope, Bounty.completion_date)
        ),
    )


# ---------------------------------------------------------------------------
# Bounty listings by date range
# ---------------------------------------------------------------------------


def _range_conditions(
    r: DateRange, filters: BountyFilters, providers: list[str], workspace: Optional[str]
) -> list[Any]:
    conditions = _bounty_scope(r, workspace) + bounty_filter_conditions(filters)
    if providers:
        conditions.append(Bounty.owner_id.in_(providers))
    return conditions


async def bounties_in_range(
    session: AsyncSession,
    r: DateRange,
    filters: BountyFilters,
    providers: list[str],
    workspace: Optional[str] = None,
) -> list[Bounty]:
    stmt = select(Bounty).where(*_range_conditions(r, filters, providers, workspace))
    result = await session.execute(ordered_page(stmt, filters))
    return list(result.scalars().all())


async def count_bounties_in_range(
    session: AsyncSession,
    r: DateRange,
    filters: BountyFilters,
    providers: list[str],
    workspace: Optional[str] = None,
) -> int:
    return await _scalar(
        session,
        select(func.count(Bounty.id)).where(*_range_conditions(r, filters, providers, workspace)),
    )


async def bounty_providers(
    session: AsyncSession,
    r: DateRange,
    filters: BountyFilters,
    providers: list[str],
    workspace: Optional[str] = None,
) -> list[Person]:
    """People who posted bounties in the range."""
    owners = select(Bounty.owner_id).where(*_range_conditions(r, filters, providers, workspace))
    stmt = select(Person).where(Person.pubkey.in_(owners)).order_by(Person.created_at.desc())
    if filters.offset:
        stmt = stmt.offset(filters.offset)
    if filters.limit:
        stmt = stmt.limit(filters.limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())
