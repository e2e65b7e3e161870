"""
Bounty endpoints: CRUD plus assign/complete/pay bookkeeping.

Also exports ``bounty_filters``, the query-string parser shared by every
bounty listing (feature/phase, workspace and metrics):

    ?search=&limit=&offset=&sortBy=&direction=&languages=a,b&tags=x,y
     &Open=true&Assigned=true&Completed=true&Paid=true
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hive_server.core.auth import AuthenticatedCaller, require_caller
from hive_server.core.database import get_session
from hive_server.core.requests import parse_body
from hive_server.services.bounties import (
    assign_bounty,
    complete_bounty,
    create_or_edit_bounty,
    delete_bounty,
    get_bounty_or_404,
    pay_bounty,
)
from hive_shared.schemas.bounties import BountyAssign, BountyFilters, BountyRead, BountyWrite
from hive_shared.schemas.common import MessageResponse, SortDirection

router = APIRouter()


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _flag(value: str) -> bool:
    return value.lower() == "true"


def bounty_filters(
    search: str = "",
    limit: int = Query(0, ge=0),
    offset: int = Query(0, ge=0),
    sortBy: str = "created",
    direction: str = "desc",
    languages: str = "",
    tags: str = "",
    Open: str = "",
    Assigned: str = "",
    Completed: str = "",
    Paid: str = "",
) -> BountyFilters:
    return BountyFilters(
        search=search.strip(),
        limit=limit,
        offset=offset,
        sort_by=sortBy,
        direction=SortDirection.ASC if direction.lower() == "asc" else SortDirection.DESC,
        languages=_split(languages),
        tags=_split(tags),
        open=_flag(Open),
        assigned=_flag(Assigned),
        completed=_flag(Completed),
        paid=_flag(Paid),
    )


@router.post("", response_model=BountyRead)
async def create_or_edit_bounty_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, BountyWrite)
    return await create_or_edit_bounty(session, caller, data)


@router.get("/{bounty_id}", response_model=BountyRead)
async def get_bounty_endpoint(
    bounty_id: int,
    session: AsyncSession = Depends(get_session),
):
    return await get_bounty_or_404(session, bounty_id)


@router.delete("/{bounty_id}", response_model=MessageResponse)
async def delete_bounty_endpoint(
    bounty_id: int,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    await delete_bounty(session, caller, bounty_id)
    return MessageResponse(message="Bounty deleted successfully")


@router.post("/{bounty_id}/assignee", response_model=BountyRead)
async def assign_bounty_endpoint(
    bounty_id: int,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, BountyAssign)
    return await assign_bounty(session, caller, bounty_id, data.assignee)


@router.post("/{bounty_id}/complete", response_model=BountyRead)
async def complete_bounty_endpoint(
    bounty_id: int,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await complete_bounty(session, caller, bounty_id)


@router.post("/{bounty_id}/pay", response_model=BountyRead)
async def pay_bounty_endpoint(
    bounty_id: int,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    """Pay the assignee out of the workspace budget."""
    return await pay_bounty(session, caller, bounty_id)
