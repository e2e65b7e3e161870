"""
Feature endpoints: features, phases, stories and per-phase bounties/tickets.

- POST   /features                         create or edit a feature
- GET    /features/forworkspace/{ws}       paginated features of a workspace
- GET    /features/workspace/count/{ws}    feature count
- GET    /features/{uuid}                  one feature
- DELETE /features/{uuid}
- PUT    /features/{uuid}/status           active | archived
- POST   /features/phase, /features/story  create or edit
- POST   /features/stories                 story workflow webhook
- POST   /features/stories/send            start the story workflow
- GET    /features/{f}/phase/{p}/bounty[/count], /features/{f}/phase/{p}/tickets
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from hive_server.api.v1.bounties import bounty_filters
from hive_server.core.auth import AuthenticatedCaller, person_exists, require_caller
from hive_server.core.config import get_settings
from hive_server.core.database import get_session
from hive_server.core.requests import parse_body
from hive_server.core.workflow import WorkflowClient, WorkflowError, get_workflow_client
from hive_server.services import bounties as bounty_service
from hive_server.services import features as feature_service
from hive_server.services.tickets import list_tickets_by_phase
from hive_shared.schemas.bounties import BountyFilters, BountyRead
from hive_shared.schemas.common import MessageResponse
from hive_shared.schemas.features import (
    FeatureRead,
    FeatureStatusUpdate,
    FeatureWrite,
    GeneratedStoriesWebhook,
    PhaseRead,
    PhaseWrite,
    StoriesRequest,
    StoryRead,
    StoryWrite,
)
from hive_shared.schemas.tickets import TicketRead

router = APIRouter()


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------


@router.post("", response_model=FeatureRead)
async def create_or_edit_feature_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, FeatureWrite)
    feature = await feature_service.create_or_edit_feature(session, caller, data)
    return FeatureRead.model_validate(feature)


@router.get("/forworkspace/{workspace_uuid}", response_model=List[FeatureRead])
async def list_workspace_features_endpoint(
    workspace_uuid: str,
    limit: int = Query(0, ge=0),
    offset: int = Query(0, ge=0),
    sortBy: str = "created_at",
    direction: str = "desc",
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await feature_service.list_workspace_features(
        session, workspace_uuid, limit, offset, sortBy, direction.lower()
    )


@router.get("/workspace/count/{workspace_uuid}", response_model=int)
async def count_workspace_features_endpoint(
    workspace_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await feature_service.count_workspace_features(session, workspace_uuid)


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


@router.post("/phase", response_model=PhaseRead, status_code=201)
async def create_or_edit_phase_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, PhaseWrite)
    return await feature_service.create_or_edit_phase(session, caller, data)


@router.get("/{feature_uuid}/phase", response_model=List[PhaseRead])
async def list_phases_endpoint(
    feature_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await feature_service.list_phases(session, feature_uuid)


@router.get("/{feature_uuid}/phase/{phase_uuid}", response_model=PhaseRead)
async def get_phase_endpoint(
    feature_uuid: str,
    phase_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await feature_service.get_phase_or_404(session, feature_uuid, phase_uuid)


@router.delete("/{feature_uuid}/phase/{phase_uuid}", response_model=MessageResponse)
async def delete_phase_endpoint(
    feature_uuid: str,
    phase_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    """Tickets that point at the phase are left in place."""
    await feature_service.delete_phase(session, feature_uuid, phase_uuid)
    return MessageResponse(message="Phase deleted successfully")


@router.get("/{feature_uuid}/phase/{phase_uuid}/bounty", response_model=List[BountyRead])
async def list_phase_bounties_endpoint(
    feature_uuid: str,
    phase_uuid: str,
    filters: BountyFilters = Depends(bounty_filters),
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await bounty_service.list_bounties_by_feature_and_phase(
        session, feature_uuid, phase_uuid, filters
    )


@router.get("/{feature_uuid}/phase/{phase_uuid}/bounty/count", response_model=int)
async def count_phase_bounties_endpoint(
    feature_uuid: str,
    phase_uuid: str,
    filters: BountyFilters = Depends(bounty_filters),
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await bounty_service.count_bounties_by_feature_and_phase(
        session, feature_uuid, phase_uuid, filters
    )


@router.get("/{feature_uuid}/phase/{phase_uuid}/tickets", response_model=List[TicketRead])
async def list_phase_tickets_endpoint(
    feature_uuid: str,
    phase_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await list_tickets_by_phase(session, feature_uuid, phase_uuid)


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------


@router.post("/story", response_model=StoryRead, status_code=201)
async def create_or_edit_story_endpoint(
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    data = await parse_body(request, StoryWrite)
    return await feature_service.create_or_edit_story(session, caller, data)


@router.post("/stories")
async def ingest_stories_endpoint(
    request: Request,
    session: AsyncSession = Depends(get_session),
):
    """Webhook called by the story workflow with generated user stories."""
    webhook = await parse_body(request, GeneratedStoriesWebhook)
    await feature_service.ingest_generated_stories(session, webhook)
    return "User stories added successfully"


@router.post("/stories/send")
async def send_stories_endpoint(
    request: Request,
    client: WorkflowClient = Depends(get_workflow_client),
):
    """Start the story workflow and relay its response as-is."""
    data = await parse_body(request, StoriesRequest, error_detail="Invalid JSON format")
    if not client.configured:
        raise HTTPException(status_code=500, detail="API key not set in environment")

    webhook_url = f"{get_settings().public_url}/features/stories"
    try:
        resp = await feature_service.send_stories_request(client, data, webhook_url)
    except WorkflowError:
        raise HTTPException(status_code=500, detail="Failed to send request to Stakwork API")

    return Response(
        content=resp.content,
        status_code=resp.status_code,
        media_type=resp.headers.get("content-type", "application/json"),
    )


@router.get("/{feature_uuid}/story", response_model=List[StoryRead])
async def list_stories_endpoint(
    feature_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await feature_service.list_stories(session, feature_uuid)


@router.get("/{feature_uuid}/story/{story_uuid}", response_model=StoryRead)
async def get_story_endpoint(
    feature_uuid: str,
    story_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    return await feature_service.get_story_or_404(session, feature_uuid, story_uuid)


@router.delete("/{feature_uuid}/story/{story_uuid}", response_model=MessageResponse)
async def delete_story_endpoint(
    feature_uuid: str,
    story_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    await feature_service.delete_story(session, feature_uuid, story_uuid)
    return MessageResponse(message="Story deleted successfully")


# ---------------------------------------------------------------------------
# Single feature (declared last so the static paths above win)
# ---------------------------------------------------------------------------


@router.get("/{feature_uuid}", response_model=FeatureRead)
async def get_feature_endpoint(
    feature_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    feature = await feature_service.get_feature_or_404(session, feature_uuid)
    return await feature_service.enrich_feature(session, feature)


@router.delete("/{feature_uuid}")
async def delete_feature_endpoint(
    feature_uuid: str,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    await feature_service.delete_feature(session, feature_uuid)
    return "Feature deleted successfully"


@router.put("/{feature_uuid}/status", response_model=FeatureRead)
async def update_feature_status_endpoint(
    feature_uuid: str,
    request: Request,
    caller: AuthenticatedCaller = Depends(require_caller),
    session: AsyncSession = Depends(get_session),
):
    if not await person_exists(session, caller.pubkey):
        raise HTTPException(status_code=401, detail="Unauthorized: invalid pubkey")
    if not feature_uuid.strip():
        raise HTTPException(status_code=400, detail="Feature UUID is required")

    data = await parse_body(request, FeatureStatusUpdate, error_status=400)
    feature = await feature_service.update_feature_status(session, caller, feature_uuid, data.status)
    return FeatureRead.model_validate(feature)
