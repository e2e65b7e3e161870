"""
Integration tests for ticket endpoints.

Tests cover:
- Upsert keyed by caller UUID: insert defaults, partial updates, invalid status
- Version compare-and-swap (409 on a stale version, bump on every update)
- Ticket groups: listing, latest by version, malformed ids
- Review webhook with best-effort session notification
- Ticket to bounty conversion
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient

from hive_server.models.bounty import Bounty
from hive_server.models.feature import FeaturePhase, WorkspaceFeature
from hive_server.models.ticket import Ticket
from hive_server.services.tickets import BOUNTY_PRICE, BOUNTY_TYPE, BOUNTY_WANTED_TYPE

OWNER = "02ticket0000000000000000000000000000000000000000000000000000000000"


async def _feature_and_phase(make):
    ws = await make.workspace(OWNER)
    feature = await make.feature(ws.uuid)
    phase = await make.phase(feature.uuid)
    return ws, feature, phase


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------


class TestTicketUpsert:
    """POST /tickets/{uuid}"""

    @pytest.mark.asyncio
    async def test_insert_defaults(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket_uuid = str(uuid.uuid4())

        response = await client.post(
            f"/tickets/{ticket_uuid}",
            json={"ticket": {"feature_uuid": feature.uuid, "phase_uuid": phase.uuid, "name": "Search box"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["uuid"] == ticket_uuid
        assert data["version"] == 1
        assert data["status"] == "draft"
        assert data["dependency"] == []

    @pytest.mark.asyncio
    async def test_invalid_uuid_is_400(self, client: AsyncClient, auth):
        response = await client.post(
            "/tickets/not-a-uuid", json={"ticket": {"name": "x"}}, headers=auth(OWNER)
        )
        assert response.status_code == 400

        response = await client.get("/tickets/not-a-uuid")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_caller(self, client: AsyncClient):
        response = await client.post(f"/tickets/{uuid.uuid4()}", json={"ticket": {"name": "x"}})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, client: AsyncClient, auth):
        response = await client.post(f"/tickets/{uuid.uuid4()}", content=b"{", headers=auth(OWNER))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid, name="Search box", description="old")

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"description": "new"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["description"] == "new"
        assert data["name"] == "Search box"
        assert data["feature_uuid"] == feature.uuid
        assert data["phase_uuid"] == phase.uuid
        assert data["version"] == 2

    @pytest.mark.asyncio
    async def test_invalid_status_is_400_and_nothing_changes(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid, description="old")

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"status": "shipped", "description": "new"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 400
        stored = await make.get(Ticket, ticket.uuid)
        assert stored.description == "old"
        assert stored.version == 1

    @pytest.mark.asyncio
    async def test_empty_status_is_unspecified(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        new_uuid = str(uuid.uuid4())

        response = await client.post(
            f"/tickets/{new_uuid}",
            json={"ticket": {"feature_uuid": feature.uuid, "phase_uuid": phase.uuid, "name": "T", "status": ""}},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "draft"

        ticket = await make.ticket(feature.uuid, phase.uuid, status="ready")
        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"status": "", "description": "new"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "ready"
        assert response.json()["description"] == "new"

    @pytest.mark.asyncio
    async def test_author_must_be_human_or_agent(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"author": "robot"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid author type"

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"author": "AGENT", "author_id": "planner"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        assert response.json()["author"] == "AGENT"

    @pytest.mark.asyncio
    async def test_invalid_group_is_400(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"ticket_group": "group-one"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 400


class TestTicketVersioning:
    """The version field is a compare-and-swap token."""

    @pytest.mark.asyncio
    async def test_stale_version_is_409(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid, description="original", version=3)

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"description": "mine", "version": 2}},
            headers=auth(OWNER),
        )
        assert response.status_code == 409
        stored = await make.get(Ticket, ticket.uuid)
        assert stored.description == "original"
        assert stored.version == 3

    @pytest.mark.asyncio
    async def test_matching_version_applies_and_bumps(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid, version=3)

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"description": "mine", "version": 3}},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        assert response.json()["version"] == 4

        # The same write again is now stale.
        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"ticket": {"description": "again", "version": 3}},
            headers=auth(OWNER),
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_every_update_bumps_version(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)

        for expected in (2, 3):
            response = await client.post(
                f"/tickets/{ticket.uuid}",
                json={"ticket": {"sequence": expected}},
                headers=auth(OWNER),
            )
            assert response.json()["version"] == expected

    @pytest.mark.asyncio
    async def test_websocket_source_is_notified(self, client: AsyncClient, make, auth, connect_session):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)
        socket = connect_session("editor-tab")

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={
                "metadata": {"source": "websocket", "id": "editor-tab"},
                "ticket": {"description": "new"},
            },
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        [frame] = socket.frames
        assert frame["action"] == "message"
        assert frame["ticketDetails"]["uuid"] == ticket.uuid
        assert frame["ticketDetails"]["description"] == "new"

    @pytest.mark.asyncio
    async def test_unknown_session_does_not_fail_update(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)

        response = await client.post(
            f"/tickets/{ticket.uuid}",
            json={"metadata": {"source": "websocket", "id": "gone"}, "ticket": {"name": "renamed"}},
            headers=auth(OWNER),
        )
        assert response.status_code == 200
        assert (await make.get(Ticket, ticket.uuid)).name == "renamed"


class TestTicketReadDelete:
    """GET/DELETE /tickets/{uuid}"""

    @pytest.mark.asyncio
    async def test_get_and_delete(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)

        response = await client.get(f"/tickets/{ticket.uuid}")
        assert response.status_code == 200
        assert response.json()["name"] == "Build search box"

        response = await client.delete(f"/tickets/{ticket.uuid}", headers=auth(OWNER))
        assert response.status_code == 200
        assert await make.get(Ticket, ticket.uuid) is None

        response = await client.get(f"/tickets/{ticket.uuid}")
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


class TestTicketGroups:
    """GET /tickets/group/..."""

    @pytest.mark.asyncio
    async def test_unknown_group_is_empty_list(self, client: AsyncClient):
        response = await client.get(f"/tickets/group/{uuid.uuid4()}")
        assert response.status_code == 200
        assert response.json() == []

    @pytest.mark.asyncio
    async def test_malformed_group_is_400(self, client: AsyncClient):
        response = await client.get("/tickets/group/not-a-uuid")
        assert response.status_code == 400
        response = await client.get("/tickets/group/not-a-uuid/latest")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_latest_is_highest_version(self, client: AsyncClient, make):
        _, feature, phase = await _feature_and_phase(make)
        group = str(uuid.uuid4())
        await make.ticket(feature.uuid, phase.uuid, name="v1", ticket_group=group, version=1)
        await make.ticket(feature.uuid, phase.uuid, name="v3", ticket_group=group, version=3)
        await make.ticket(feature.uuid, phase.uuid, name="v2", ticket_group=group, version=2)

        response = await client.get(f"/tickets/group/{group}")
        assert [t["name"] for t in response.json()] == ["v1", "v2", "v3"]

        response = await client.get(f"/tickets/group/{group}/latest")
        assert response.status_code == 200
        assert response.json()["name"] == "v3"

    @pytest.mark.asyncio
    async def test_latest_of_empty_group_is_404(self, client: AsyncClient):
        response = await client.get(f"/tickets/group/{uuid.uuid4()}/latest")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_distinct_groups(self, client: AsyncClient, make):
        _, feature, phase = await _feature_and_phase(make)
        first, second = sorted([str(uuid.uuid4()), str(uuid.uuid4())])
        await make.ticket(feature.uuid, phase.uuid, ticket_group=first)
        await make.ticket(feature.uuid, phase.uuid, ticket_group=first, version=2)
        await make.ticket(feature.uuid, phase.uuid, ticket_group=second)
        await make.ticket(feature.uuid, phase.uuid)

        response = await client.get("/tickets/groups")
        assert response.json() == [first, second]


# ---------------------------------------------------------------------------
# Review webhook
# ---------------------------------------------------------------------------


class TestTicketReview:
    """POST /tickets/review"""

    @pytest.mark.asyncio
    async def test_review_without_session_reports_websocket_error(self, client: AsyncClient, make):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid, description="draft")

        response = await client.post(
            "/tickets/review",
            json={
                "value": {
                    "featureUUID": feature.uuid,
                    "phaseUUID": phase.uuid,
                    "ticketUUID": ticket.uuid,
                    "ticketDescription": "reviewed description",
                    "ticketName": "Reviewed name",
                },
                "sourceWebsocket": "source-session-id",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["ticket"]["description"] == "reviewed description"
        assert data["ticket"]["name"] == "Reviewed name"
        assert data["ticket"]["version"] == 2
        assert data["websocket_error"] == "client not found: source-session-id"

        stored = await make.get(Ticket, ticket.uuid)
        assert stored.description == "reviewed description"

    @pytest.mark.asyncio
    async def test_review_notifies_connected_session(self, client: AsyncClient, make, connect_session):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid, name="Keep me")
        socket = connect_session("reviewer")

        response = await client.post(
            "/tickets/review",
            json={
                "value": {"ticketUUID": ticket.uuid, "ticketDescription": "better"},
                "sourceWebsocket": "reviewer",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["websocket_error"] is None
        assert data["ticket"]["name"] == "Keep me"

        [frame] = socket.frames
        assert frame["action"] == "message"
        assert frame["message"] == f"Ticket {ticket.uuid} has been updated"
        assert frame["ticketDetails"]["ticketDescription"] == "better"

    @pytest.mark.asyncio
    async def test_unknown_ticket_is_404_error_body(self, client: AsyncClient):
        response = await client.post(
            "/tickets/review",
            json={"value": {"ticketUUID": str(uuid.uuid4()), "ticketDescription": "x"}},
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Ticket not found"}

    @pytest.mark.asyncio
    async def test_missing_fields_are_400(self, client: AsyncClient):
        response = await client.post("/tickets/review", json={"value": {"ticketDescription": "x"}})
        assert response.status_code == 400
        assert response.json()["detail"] == "ticketUUID is required"

        response = await client.post(
            "/tickets/review", json={"value": {"ticketUUID": str(uuid.uuid4())}}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "ticketDescription is required"

    @pytest.mark.asyncio
    async def test_malformed_body_is_400(self, client: AsyncClient):
        response = await client.post("/tickets/review", content=b"[]")
        assert response.status_code == 400
        assert response.json()["detail"] == "Error parsing request body"


# ---------------------------------------------------------------------------
# Ticket -> bounty
# ---------------------------------------------------------------------------


class TestTicketToBounty:
    """POST /tickets/{uuid}/bounty"""

    @pytest.mark.asyncio
    async def test_bounty_fields_derived_from_ticket(self, client: AsyncClient, make, auth):
        ws, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid, name="Search box", description="Add it")

        response = await client.post(f"/tickets/{ticket.uuid}/bounty", headers=auth(OWNER))
        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Bounty created successfully"

        bounty = await make.get(Bounty, data["bounty_id"])
        assert bounty.owner_id == OWNER
        assert bounty.title == "Search box"
        assert bounty.description == "Add it"
        assert bounty.price == BOUNTY_PRICE
        assert bounty.type == BOUNTY_TYPE
        assert bounty.wanted_type == BOUNTY_WANTED_TYPE
        assert bounty.show is True
        assert bounty.coding_languages == []
        assert bounty.workspace_uuid == ws.uuid
        assert bounty.feature_uuid == feature.uuid
        assert bounty.phase_uuid == phase.uuid

    @pytest.mark.asyncio
    async def test_missing_ticket_is_404_and_creates_nothing(self, client: AsyncClient, make, auth):
        response = await client.post(f"/tickets/{uuid.uuid4()}/bounty", headers=auth(OWNER))
        assert response.status_code == 404
        assert await make.all(Bounty) == []

    @pytest.mark.asyncio
    async def test_missing_feature_is_404(self, client: AsyncClient, make, auth):
        ticket = await make.ticket(str(uuid.uuid4()), str(uuid.uuid4()))
        response = await client.post(f"/tickets/{ticket.uuid}/bounty", headers=auth(OWNER))
        assert response.status_code == 404
        assert response.json()["detail"] == "Feature not found"

    @pytest.mark.asyncio
    async def test_each_call_creates_a_new_bounty(self, client: AsyncClient, make, auth):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)

        first = await client.post(f"/tickets/{ticket.uuid}/bounty", headers=auth(OWNER))
        second = await client.post(f"/tickets/{ticket.uuid}/bounty", headers=auth(OWNER))
        assert first.json()["bounty_id"] != second.json()["bounty_id"]
        assert len(await make.all(Bounty)) == 2

    @pytest.mark.asyncio
    async def test_requires_caller(self, client: AsyncClient, make):
        _, feature, phase = await _feature_and_phase(make)
        ticket = await make.ticket(feature.uuid, phase.uuid)
        response = await client.post(f"/tickets/{ticket.uuid}/bounty")
        assert response.status_code == 401


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_workspace_to_phase_bounty_flow(client: AsyncClient, auth):
    """Workspace -> feature -> phase -> ticket -> bounty -> phase bounty listing."""
    headers = auth(OWNER)

    ws = (await client.post("/workspaces", json={"name": "hive"}, headers=headers)).json()
    feature = (
        await client.post("/features", json={"workspace_uuid": ws["uuid"], "name": "Search"}, headers=headers)
    ).json()
    phase = (
        await client.post(
            "/features/phase", json={"feature_uuid": feature["uuid"], "name": "MVP"}, headers=headers
        )
    ).json()

    ticket_uuid = str(uuid.uuid4())
    response = await client.post(
        f"/tickets/{ticket_uuid}",
        json={
            "ticket": {
                "feature_uuid": feature["uuid"],
                "phase_uuid": phase["uuid"],
                "name": "Search box",
                "description": "Add a search box",
            }
        },
        headers=headers,
    )
    assert response.status_code == 200

    response = await client.post(f"/tickets/{ticket_uuid}/bounty", headers=headers)
    assert response.status_code == 201
    bounty_id = response.json()["bounty_id"]

    response = await client.get(
        f"/features/{feature['uuid']}/phase/{phase['uuid']}/bounty", headers=headers
    )
    assert response.status_code == 200
    [bounty] = response.json()
    assert bounty["id"] == bounty_id
    assert bounty["title"] == "Search box"

    response = await client.get(f"/features/{feature['uuid']}", headers=headers)
    assert response.json()["bounties_count_open"] == 1


@pytest.mark.asyncio
async def test_caller_supplied_ids_list_their_bounties(client: AsyncClient, make, auth):
    """Ids a caller picks for a feature and phase work in the phase bounty listing."""
    headers = auth(OWNER)
    ws = await make.workspace(OWNER)
    feature_uuid, phase_uuid = str(uuid.uuid4()), str(uuid.uuid4())

    response = await client.post(
        "/features", json={"uuid": feature_uuid, "workspace_uuid": ws.uuid, "name": "Search"}, headers=headers
    )
    assert response.json()["uuid"] == feature_uuid
    response = await client.post(
        "/features/phase", json={"uuid": phase_uuid, "feature_uuid": feature_uuid, "name": "MVP"}, headers=headers
    )
    assert response.json()["uuid"] == phase_uuid

    ticket = await make.ticket(feature_uuid, phase_uuid, name="Search box")
    response = await client.post(f"/tickets/{ticket.uuid}/bounty", headers=headers)
    assert response.status_code == 201

    listing = f"/features/{feature_uuid}/phase/{phase_uuid}/bounty"
    assert (await client.get(f"{listing}/count", headers=headers)).json() == 1
    response = await client.get(listing, headers=headers)
    assert response.status_code == 200
    assert [b["title"] for b in response.json()] == ["Search box"]


@pytest.mark.asyncio
async def test_malformed_feature_and_phase_ids_are_rejected(client: AsyncClient, make, auth):
    headers = auth(OWNER)
    ws = await make.workspace(OWNER)
    feature = await make.feature(ws.uuid)

    response = await client.post(
        "/features", json={"uuid": "feature-1", "workspace_uuid": ws.uuid, "name": "Search"}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid feature UUID"

    response = await client.post(
        "/features/phase", json={"uuid": "phase-1", "feature_uuid": feature.uuid, "name": "MVP"}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid phase UUID"
    assert len(await make.all(WorkspaceFeature)) == 1
    assert await make.all(FeaturePhase) == []
