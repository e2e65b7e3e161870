"""
Dashboard metrics. Super admins only.

Every endpoint takes ``{"start_date": "<unix>", "end_date": "<unix>"}`` and
an optional ``?workspace=`` scope.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hive_server.api.v1.bounties import bounty_filters
from hive_server.core.auth import AuthenticatedCaller, require_super_admin
from hive_server.core.database import get_session
from hive_server.core.requests import parse_body
from hive_server.services import metrics as metrics_service
from hive_shared.schemas.bounties import BountyFilters, BountyRead
from hive_shared.schemas.metrics import BountyMetrics, DateRange
from hive_shared.schemas.workspaces import PersonRead

router = APIRouter()


def _providers(provider: str = "") -> list[str]:
    return [p.strip() for p in provider.split(",") if p.strip()]


@router.post("/payment", response_model=int)
async def payment_metrics_endpoint(
    request: Request,
    workspace: Optional[str] = None,
    admin: AuthenticatedCaller = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    r = await parse_body(request, DateRange)
    return await metrics_service.total_payments(session, r, workspace)


@router.post("/people", response_model=int)
async def people_metrics_endpoint(
    request: Request,
    admin: AuthenticatedCaller = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    r = await parse_body(request, DateRange)
    return await metrics_service.total_people(session, r)


@router.post("/workspaces", response_model=int)
async def workspace_metrics_endpoint(
    request: Request,
    admin: AuthenticatedCaller = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    r = await parse_body(request, DateRange)
    return await metrics_service.total_workspaces(session, r)


@router.post("/bounty_stats", response_model=BountyMetrics)
async def bounty_stats_endpoint(
    request: Request,
    workspace: Optional[str] = None,
    admin: AuthenticatedCaller = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    r = await parse_body(request, DateRange)
    return await metrics_service.bounty_metrics(session, r, workspace)


@router.post("/bounties", response_model=List[BountyRead])
async def bounties_in_range_endpoint(
    request: Request,
    workspace: Optional[str] = None,
    providers: list[str] = Depends(_providers),
    filters: BountyFilters = Depends(bounty_filters),
    admin: AuthenticatedCaller = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    r = await parse_body(request, DateRange)
    return await metrics_service.bounties_in_range(session, r, filters, providers, workspace)


@router.post("/bounties/count", response_model=int)
async def count_bounties_in_range_endpoint(
    request: Request,
    workspace: Optional[str] = None,
    providers: list[str] = Depends(_providers),
    filters: BountyFilters = Depends(bounty_filters),
    admin: AuthenticatedCaller = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    r = await parse_body(request, DateRange)
    return await metrics_service.count_bounties_in_range(session, r, filters, providers, workspace)


@router.post("/bounties/providers", response_model=List[PersonRead])
async def bounty_providers_endpoint(
    request: Request,
    workspace: Optional[str] = None,
    providers: list[str] = Depends(_providers),
    filters: BountyFilters = Depends(bounty_filters),
    admin: AuthenticatedCaller = Depends(require_super_admin),
    session: AsyncSession = Depends(get_session),
):
    r = await parse_body(request, DateRange)
    return await metrics_service.bounty_providers(session, r, filters, providers, workspace)
