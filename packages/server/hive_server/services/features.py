"""
Feature service layer: features, phases and user stories.

Handles:
- Feature upsert scoped to an existing workspace
- Feature status transition (active/archived)
- Phase and story CRUD with created_by/updated_by bookkeeping
- Ingestion of generated stories from the story workflow webhook
- Outbound story-generation requests to the workflow engine
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog
from fastapi import HTTPException
from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hive_server.core.auth import AuthenticatedCaller
from hive_server.core.workflow import (
    STORIES_WORKFLOW_ID,
    STORIES_WORKFLOW_NAME,
    WorkflowClient,
    build_payload,
)
from hive_server.models.base import is_uuid, new_uuid
from hive_server.models.feature import FeaturePhase, FeatureStory, WorkspaceFeature
from hive_server.models.workspace import Workspace
from hive_server.services.bounties import count_bounty_statuses
from hive_shared.schemas.common import FeatureStatus, SortDirection
from hive_shared.schemas.features import (
    FeatureRead,
    FeatureWrite,
    GeneratedStoriesWebhook,
    PhaseWrite,
    StoriesRequest,
    StoryWrite,
)

log = structlog.get_logger()

FEATURE_SORT_COLUMNS = ("created_at", "updated_at", "priority", "name")


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------


async def get_feature_or_404(session: AsyncSession, feature_uuid: str) -> WorkspaceFeature:
    feature = await session.get(WorkspaceFeature, feature_uuid) if feature_uuid else None
    if not feature:
        raise HTTPException(status_code=404, detail="Feature not found")
    return feature


async def create_or_edit_feature(
    session: AsyncSession, caller: AuthenticatedCaller, data: FeatureWrite
) -> WorkspaceFeature:
    existing = await session.get(WorkspaceFeature, data.uuid) if data.uuid else None
    if existing is None and data.uuid and not is_uuid(data.uuid):
        raise HTTPException(status_code=400, detail="Invalid feature UUID")
    workspace_uuid = data.workspace_uuid or (existing.workspace_uuid if existing else "")

    workspace = await session.get(Workspace, workspace_uuid) if workspace_uuid else None
    if workspace is None or workspace.deleted:
        raise HTTPException(status_code=401, detail="Workspace does not exists")

    if existing is None:
        feature = WorkspaceFeature(
            uuid=data.uuid or new_uuid(),
            workspace_uuid=workspace_uuid,
            created_by=caller.pubkey,
        )
    else:
        feature = existing
    feature.updated_by = caller.pubkey

    updates = data.model_dump(exclude_unset=True, exclude={"uuid", "workspace_uuid"})
    for key, value in updates.items():
        if value is not None:
            setattr(feature, key, value)

    session.add(feature)
    await session.flush()
    return feature


async def enrich_feature(session: AsyncSession, feature: WorkspaceFeature) -> FeatureRead:
    """Attach bounty counts summed over the feature's phases."""
    result = await session.execute(
        select(FeaturePhase.uuid).where(FeaturePhase.feature_uuid == feature.uuid)
    )
    phase_uuids = [row[0] for row in result.all()]
    counts = await count_bounty_statuses(session, feature.uuid, phase_uuids)

    read = FeatureRead.model_validate(feature)
    read.bounties_count_open = counts["open"]
    read.bounties_count_assigned = counts["assigned"]
    read.bounties_count_completed = counts["completed"]
    return read


async def list_workspace_features(
    session: AsyncSession,
    workspace_uuid: str,
    limit: int = 0,
    offset: int = 0,
    sort_by: str = "created_at",
    direction: str = "desc",
) -> list[FeatureRead]:
    column = getattr(WorkspaceFeature, sort_by if sort_by in FEATURE_SORT_COLUMNS else "created_at")
    order = column.asc() if direction == SortDirection.ASC.value else column.desc()

    stmt = select(WorkspaceFeature).where(WorkspaceFeature.workspace_uuid == workspace_uuid).order_by(order)
    if offset:
        stmt = stmt.offset(offset)
    if limit:
        stmt = stmt.limit(limit)

    result = await session.execute(stmt)
    return [await enrich_feature(session, f) for f in result.scalars().all()]


async def count_workspace_features(session: AsyncSession, workspace_uuid: str) -> int:
    result = await session.execute(
        select(func.count())
        .select_from(WorkspaceFeature)
        .where(WorkspaceFeature.workspace_uuid == workspace_uuid)
    )
    return result.scalar_one()


async def delete_feature(session: AsyncSession, feature_uuid: str) -> None:
    """Delete a feature with its phases and stories. Tickets and bounties stay."""
    feature = await get_feature_or_404(session, feature_uuid)
    await session.execute(delete(FeaturePhase).where(FeaturePhase.feature_uuid == feature_uuid))
    await session.execute(delete(FeatureStory).where(FeatureStory.feature_uuid == feature_uuid))
    await session.delete(feature)
    await session.flush()
    log.info("features.deleted", feature_uuid=feature_uuid)


async def update_feature_status(
    session: AsyncSession,
    caller: AuthenticatedCaller,
    feature_uuid: str,
    status: FeatureStatus,
) -> WorkspaceFeature:
    # A missing feature is reported as a storage failure, not a 404.
    feature = await session.get(WorkspaceFeature, feature_uuid)
    if feature is None:
        log.error("features.status_update_failed", feature_uuid=feature_uuid)
        raise HTTPException(status_code=500, detail="Failed to update feature status")

    feature.status = status.value
    feature.updated_by = caller.pubkey
    session.add(feature)
    await session.flush()
    return feature


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


async def create_or_edit_phase(
    session: AsyncSession, caller: AuthenticatedCaller, data: PhaseWrite
) -> FeaturePhase:
    feature = await session.get(WorkspaceFeature, data.feature_uuid) if data.feature_uuid else None
    if feature is None:
        raise HTTPException(status_code=401, detail="Feature does not exists")

    phase: Optional[FeaturePhase] = await session.get(FeaturePhase, data.uuid) if data.uuid else None
    if phase is None:
        if data.uuid and not is_uuid(data.uuid):
            raise HTTPException(status_code=400, detail="Invalid phase UUID")
        phase = FeaturePhase(
            uuid=data.uuid or new_uuid(),
            feature_uuid=data.feature_uuid,
            created_by=caller.pubkey,
        )
    phase.updated_by = caller.pubkey

    updates = data.model_dump(exclude_unset=True, exclude={"uuid", "feature_uuid"})
    for key, value in updates.items():
        if value is not None:
            setattr(phase, key, value)

    session.add(phase)
    await session.flush()
    return phase


async def list_phases(session: AsyncSession, feature_uuid: str) -> list[FeaturePhase]:
    result = await session.execute(
        select(FeaturePhase)
        .where(FeaturePhase.feature_uuid == feature_uuid)
        .order_by(FeaturePhase.priority, FeaturePhase.created_at)
    )
    return list(result.scalars().all())


async def get_phase_or_404(session: AsyncSession, feature_uuid: str, phase_uuid: str) -> FeaturePhase:
    phase = await session.get(FeaturePhase, phase_uuid)
    if not phase or phase.feature_uuid != feature_uuid:
        raise HTTPException(status_code=404, detail="Phase not found")
    return phase


async def delete_phase(session: AsyncSession, feature_uuid: str, phase_uuid: str) -> None:
    phase = await get_phase_or_404(session, feature_uuid, phase_uuid)
    await session.delete(phase)
    await session.flush()


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------


async def create_or_edit_story(
    session: AsyncSession, caller: AuthenticatedCaller, data: StoryWrite
) -> FeatureStory:
    await get_feature_or_404(session, data.feature_uuid)

    story: Optional[FeatureStory] = await session.get(FeatureStory, data.uuid) if data.uuid else None
    if story is None:
        story = FeatureStory(
            uuid=data.uuid or new_uuid(),
            feature_uuid=data.feature_uuid,
            created_by=caller.pubkey,
        )
    story.updated_by = caller.pubkey

    updates = data.model_dump(exclude_unset=True, exclude={"uuid", "feature_uuid"})
    for key, value in updates.items():
        if value is not None:
            setattr(story, key, value)

    session.add(story)
    await session.flush()
    return story


async def list_stories(session: AsyncSession, feature_uuid: str) -> list[FeatureStory]:
    result = await session.execute(
        select(FeatureStory)
        .where(FeatureStory.feature_uuid == feature_uuid)
        .order_by(FeatureStory.priority, FeatureStory.created_at)
    )
    return list(result.scalars().all())


async def get_story_or_404(session: AsyncSession, feature_uuid: str, story_uuid: str) -> FeatureStory:
    story = await session.get(FeatureStory, story_uuid)
    if not story or story.feature_uuid != feature_uuid:
        raise HTTPException(status_code=404, detail="Story not found")
    return story


async def delete_story(session: AsyncSession, feature_uuid: str, story_uuid: str) -> None:
    story = await get_story_or_404(session, feature_uuid, story_uuid)
    await session.delete(story)
    await session.flush()


async def ingest_generated_stories(session: AsyncSession, webhook: GeneratedStoriesWebhook) -> int:
    """Store stories posted back by the workflow. Unknown features are skipped."""
    output = webhook.output
    feature = await session.get(WorkspaceFeature, output.feature_uuid) if output.feature_uuid else None
    if feature is None:
        log.warning(
            "features.stories_unknown_feature",
            feature_uuid=output.feature_uuid,
            skipped=len(output.stories),
        )
        return 0

    for story in output.stories:
        session.add(
            FeatureStory(
                feature_uuid=feature.uuid,
                description=story.user_story,
                priority=story.order,
            )
        )
    await session.flush()

    log.info("features.stories_ingested", feature_uuid=feature.uuid, count=len(output.stories))
    return len(output.stories)


async def send_stories_request(
    client: WorkflowClient, data: StoriesRequest, webhook_url: str
) -> httpx.Response:
    """Start the story workflow. The engine's response is relayed untouched."""
    variables = data.model_dump(by_alias=True)
    variables["webhook_url"] = webhook_url
    return await client.post(build_payload(STORIES_WORKFLOW_NAME, STORIES_WORKFLOW_ID, variables))
