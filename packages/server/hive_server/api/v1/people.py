"""Person endpoints. A caller can only create or edit their own row."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hive_server.core.auth import AuthenticatedCaller, require_caller
from hive_server.core.database import get_session
from hive_server.core.requests import parse_body
from hive_server.services.workspaces import create_or_edit_person, get_person_by_pubkey
from hive_shared.schemas.workspaces import PersonRead, PersonWrite

router = APIRouter()


@router.post("", response_model=PersonRead)
async def create_or_edit_person_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, PersonWrite)
    return await create_or_edit_person(session, caller, data)


@router.get("/{pubkey}", response_model=PersonRead)
async def get_person_endpoint(
    pubkey: str,
    session: AsyncSession = Depends(get_session),
):
    person = await get_person_by_pubkey(session, pubkey)
    if person is None:
        raise HTTPException(status_code=404, detail="Person not found")
    return person
