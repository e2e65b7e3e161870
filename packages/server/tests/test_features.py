"""
Integration tests for feature, phase and story endpoints.

Tests cover:
- Feature upsert scoped to an existing workspace, created_by/updated_by
- Status transition: validation, unknown caller, missing feature
- Phase and story CRUD
- Story workflow webhook and outbound story-generation request
- Feature listing with per-status bounty counts
"""

from __future__ import annotations

import uuid

import httpx
import pytest
from httpx import AsyncClient

from hive_server.models.feature import FeaturePhase, FeatureStory, WorkspaceFeature
from hive_server.models.ticket import Ticket
from hive_shared.schemas.common import FeatureStatus

OWNER = "02feature000000000000000000000000000000000000000000000000000000000"
EDITOR = "03editor0000000000000000000000000000000000000000000000000000000000"


# ---------------------------------------------------------------------------
# Features
# ---------------------------------------------------------------------------


class TestFeatureUpsert:
    """POST /features"""

    @pytest.mark.asyncio
    async def test_unknown_workspace_is_rejected_and_nothing_saved(self, client: AsyncClient, make, auth):
        response = await client.post(
            "/features",
            json={"workspace_uuid": str(uuid.uuid4()), "name": "Search"},
            headers=auth(OWNER),
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Workspace does not exists"
        assert await make.all(WorkspaceFeature) == []

    @pytest.mark.asyncio
    async def test_malformed_body_is_406(self, client: AsyncClient, auth):
        response = await client.post("/features", content=b"{bad", headers=auth(OWNER))
        assert response.status_code == 406

    @pytest.mark.asyncio
    async def test_create_records_caller_as_creator(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        response = await client.post(
            "/features",
            json={"workspace_uuid": ws.uuid, "name": "Search", "priority": 2},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Search"
        assert data["status"] == FeatureStatus.ACTIVE.value
        assert data["created_by"] == OWNER
        assert data["updated_by"] == OWNER

    @pytest.mark.asyncio
    async def test_edit_keeps_creator_and_unsent_fields(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid, name="Search", brief="find things", created_by=OWNER)

        response = await client.post(
            "/features",
            json={"uuid": feature.uuid, "workspace_uuid": ws.uuid, "priority": 5},
            headers=auth(EDITOR),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["uuid"] == feature.uuid
        assert data["name"] == "Search"
        assert data["brief"] == "find things"
        assert data["priority"] == 5
        assert data["created_by"] == OWNER
        assert data["updated_by"] == EDITOR

    @pytest.mark.asyncio
    async def test_get_and_count(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)
        await make.feature(ws.uuid, name="Billing")

        response = await client.get(f"/features/{feature.uuid}", headers=auth(OWNER))
        assert response.status_code == 200
        assert response.json()["uuid"] == feature.uuid

        response = await client.get(f"/features/workspace/count/{ws.uuid}", headers=auth(OWNER))
        assert response.json() == 2

        response = await client.get(f"/features/{uuid.uuid4()}", headers=auth(OWNER))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_removes_phases_and_stories(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)
        await make.phase(feature.uuid)
        await make.story(feature.uuid)

        response = await client.delete(f"/features/{feature.uuid}", headers=auth(OWNER))
        assert response.status_code == 200
        assert response.json() == "Feature deleted successfully"
        assert await make.all(WorkspaceFeature) == []
        assert await make.all(FeaturePhase) == []
        assert await make.all(FeatureStory) == []


class TestFeatureListing:
    """GET /features/forworkspace/{ws}"""

    @pytest.mark.asyncio
    async def test_bounty_counts_by_status(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)
        phase = await make.phase(feature.uuid)
        scope = {"feature_uuid": feature.uuid, "phase_uuid": phase.uuid, "workspace_uuid": ws.uuid}
        await make.bounty(OWNER, title="open", **scope)
        await make.bounty(OWNER, title="assigned", assignee=EDITOR, **scope)
        await make.bounty(OWNER, title="done", assignee=EDITOR, completed=True, **scope)

        response = await client.get(f"/features/forworkspace/{ws.uuid}", headers=auth(OWNER))
        assert response.status_code == 200
        [data] = response.json()
        assert data["bounties_count_open"] == 1
        assert data["bounties_count_assigned"] == 1
        assert data["bounties_count_completed"] == 1

    @pytest.mark.asyncio
    async def test_sort_and_pagination(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        await make.feature(ws.uuid, name="B", priority=2)
        await make.feature(ws.uuid, name="A", priority=1)
        await make.feature(ws.uuid, name="C", priority=3)

        response = await client.get(
            f"/features/forworkspace/{ws.uuid}?sortBy=priority&direction=asc&limit=2",
            headers=auth(OWNER),
        )
        assert [f["name"] for f in response.json()] == ["A", "B"]

        response = await client.get(
            f"/features/forworkspace/{ws.uuid}?sortBy=priority&direction=asc&limit=2&offset=2",
            headers=auth(OWNER),
        )
        assert [f["name"] for f in response.json()] == ["C"]


class TestFeatureStatus:
    """PUT /features/{uuid}/status"""

    @pytest.mark.asyncio
    async def test_archive(self, client: AsyncClient, make, auth):
        await make.person(EDITOR)
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)

        response = await client.put(
            f"/features/{feature.uuid}/status",
            json={"status": "archived"},
            headers=auth(EDITOR),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "archived"
        stored = await make.get(WorkspaceFeature, feature.uuid)
        assert stored.status == "archived"
        assert stored.updated_by == EDITOR

    @pytest.mark.asyncio
    async def test_invalid_status_is_400_and_nothing_changes(self, client: AsyncClient, make, auth):
        await make.person(OWNER)
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)

        response = await client.put(
            f"/features/{feature.uuid}/status",
            json={"status": "deleted"},
            headers=auth(OWNER),
        )
        assert response.status_code == 400
        assert (await make.get(WorkspaceFeature, feature.uuid)).status == "active"

    @pytest.mark.asyncio
    async def test_unknown_person_is_401(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)

        response = await client.put(
            f"/features/{feature.uuid}/status",
            json={"status": "archived"},
            headers=auth(OWNER),
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized: invalid pubkey"

    @pytest.mark.asyncio
    async def test_missing_feature_is_500(self, client: AsyncClient, make, auth):
        await make.person(OWNER)
        response = await client.put(
            f"/features/{uuid.uuid4()}/status",
            json={"status": "archived"},
            headers=auth(OWNER),
        )
        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to update feature status"


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


class TestPhases:
    """Phase CRUD under a feature."""

    @pytest.mark.asyncio
    async def test_create_and_edit(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)

        response = await client.post(
            "/features/phase",
            json={"feature_uuid": feature.uuid, "name": "Phase 1", "priority": 1},
            headers=auth(OWNER),
        )
        assert response.status_code == 201
        phase = response.json()
        assert phase["created_by"] == OWNER

        response = await client.post(
            "/features/phase",
            json={"uuid": phase["uuid"], "feature_uuid": feature.uuid, "phase_scope": "MVP"},
            headers=auth(EDITOR),
        )
        assert response.status_code == 201
        edited = response.json()
        assert edited["name"] == "Phase 1"
        assert edited["phase_scope"] == "MVP"
        assert edited["created_by"] == OWNER
        assert edited["updated_by"] == EDITOR

    @pytest.mark.asyncio
    async def test_unknown_feature_is_401(self, client: AsyncClient, auth):
        response = await client.post(
            "/features/phase",
            json={"feature_uuid": str(uuid.uuid4()), "name": "Phase 1"},
            headers=auth(OWNER),
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Feature does not exists"

    @pytest.mark.asyncio
    async def test_list_is_ordered_by_priority(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)
        await make.phase(feature.uuid, name="Later", priority=2)
        await make.phase(feature.uuid, name="First", priority=1)

        response = await client.get(f"/features/{feature.uuid}/phase", headers=auth(OWNER))
        assert [p["name"] for p in response.json()] == ["First", "Later"]

    @pytest.mark.asyncio
    async def test_phase_must_belong_to_feature(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)
        other = await make.feature(ws.uuid, name="Other")
        phase = await make.phase(other.uuid)

        response = await client.get(f"/features/{feature.uuid}/phase/{phase.uuid}", headers=auth(OWNER))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_leaves_tickets(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)
        phase = await make.phase(feature.uuid)
        ticket = await make.ticket(feature.uuid, phase.uuid)

        response = await client.delete(
            f"/features/{feature.uuid}/phase/{phase.uuid}", headers=auth(OWNER)
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Phase deleted successfully"}
        assert await make.get(FeaturePhase, phase.uuid) is None
        assert await make.get(Ticket, ticket.uuid) is not None

    @pytest.mark.asyncio
    async def test_phase_tickets_in_sequence_order(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)
        phase = await make.phase(feature.uuid)
        await make.ticket(feature.uuid, phase.uuid, name="second", sequence=2)
        await make.ticket(feature.uuid, phase.uuid, name="first", sequence=1)

        response = await client.get(
            f"/features/{feature.uuid}/phase/{phase.uuid}/tickets", headers=auth(OWNER)
        )
        assert [t["name"] for t in response.json()] == ["first", "second"]


# ---------------------------------------------------------------------------
# Stories
# ---------------------------------------------------------------------------


class TestStories:
    """Story CRUD and the story workflow round trip."""

    @pytest.mark.asyncio
    async def test_create_list_delete(self, client: AsyncClient, make, auth):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)

        response = await client.post(
            "/features/story",
            json={"feature_uuid": feature.uuid, "description": "As a user I search", "priority": 1},
            headers=auth(OWNER),
        )
        assert response.status_code == 201
        story = response.json()

        response = await client.get(f"/features/{feature.uuid}/story", headers=auth(OWNER))
        assert [s["uuid"] for s in response.json()] == [story["uuid"]]

        response = await client.delete(
            f"/features/{feature.uuid}/story/{story['uuid']}", headers=auth(OWNER)
        )
        assert response.status_code == 200
        assert await make.all(FeatureStory) == []

    @pytest.mark.asyncio
    async def test_story_for_unknown_feature_is_404(self, client: AsyncClient, auth):
        response = await client.post(
            "/features/story",
            json={"feature_uuid": str(uuid.uuid4()), "description": "x"},
            headers=auth(OWNER),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_webhook_stores_generated_stories(self, client: AsyncClient, make):
        ws = await make.workspace(OWNER)
        feature = await make.feature(ws.uuid)

        response = await client.post(
            "/features/stories",
            json={
                "output": {
                    "featureUuid": feature.uuid,
                    "featureContext": "search",
                    "stories": [
                        {"userStory": "As a user I search", "rationale": "core", "order": 1},
                        {"userStory": "As a user I filter", "rationale": "nice", "order": 2},
                    ],
                }
            },
        )
        assert response.status_code == 200
        assert response.json() == "User stories added successfully"
        stories = await make.all(FeatureStory)
        assert sorted(s.description for s in stories) == ["As a user I filter", "As a user I search"]

    @pytest.mark.asyncio
    async def test_webhook_for_unknown_feature_stores_nothing(self, client: AsyncClient, make):
        response = await client.post(
            "/features/stories",
            json={
                "output": {
                    "featureUuid": str(uuid.uuid4()),
                    "stories": [{"userStory": "orphan", "order": 1}],
                }
            },
        )
        assert response.status_code == 200
        assert await make.all(FeatureStory) == []


class TestSendStories:
    """POST /features/stories/send"""

    BODY = {
        "productBrief": "A search product",
        "featureName": "Search",
        "description": "Find things",
        "examples": ["Find by name"],
        "featureUUID": "f-1",
    }

    @pytest.mark.asyncio
    async def test_relays_workflow_response(self, client: AsyncClient, workflow):
        workflow.status = 201
        workflow.body = {"success": True, "data": {"project_id": 7}}

        response = await client.post("/features/stories/send", json=self.BODY)
        assert response.status_code == 201
        assert response.json() == {"success": True, "data": {"project_id": 7}}

        [sent] = workflow.requests
        assert sent["headers"]["authorization"] == "Token token=test-key"
        assert sent["json"]["workflow_id"] == 35080
        variables = sent["json"]["workflow_params"]["set_var"]["attributes"]["vars"]
        assert variables["featureName"] == "Search"
        assert variables["featureUUID"] == "f-1"
        assert variables["webhook_url"].endswith("/features/stories")

    @pytest.mark.asyncio
    async def test_missing_api_key_is_500(self, client: AsyncClient, workflow):
        workflow.api_key = ""
        response = await client.post("/features/stories/send", json=self.BODY)
        assert response.status_code == 500
        assert response.json()["detail"] == "API key not set in environment"
        assert workflow.requests == []

    @pytest.mark.asyncio
    async def test_unreachable_engine_is_500(self, client: AsyncClient, workflow):
        workflow.fail_with = httpx.ConnectError("refused")
        response = await client.post("/features/stories/send", json=self.BODY)
        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_malformed_body_is_406(self, client: AsyncClient):
        response = await client.post("/features/stories/send", content=b"not json")
        assert response.status_code == 406
        assert response.json()["detail"] == "Invalid JSON format"
