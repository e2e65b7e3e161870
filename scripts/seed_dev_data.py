#!/usr/bin/env python3
"""Seed a development database with a workspace, a feature plan, tickets and bounties.

Usage:
    python scripts/seed_dev_data.py

Uses HIVE_DATABASE_URL (or the default from hive_server.core.config).
"""

import asyncio
import time

from hive_server.core.database import close_db, init_db, session_scope
from hive_server.models import (
    Bounty,
    Chat,
    FeaturePhase,
    FeatureStory,
    Person,
    Ticket,
    Workspace,
    WorkspaceFeature,
    WorkspaceUser,
    WorkspaceUserRole,
)
from hive_shared.schemas.common import Role

# Deterministic ids for reproducibility
OWNER = "02" + "a1" * 32
HUNTER = "03" + "b2" * 32
WORKSPACE_UUID = "00000000-0000-0000-0000-000000000001"
FEATURE_UUID = "00000000-0000-0000-0000-000000000101"
PHASE_UUIDS = [f"00000000-0000-0000-0000-0000000002{i:02d}" for i in range(2)]
TICKET_UUIDS = [f"00000000-0000-0000-0000-0000000003{i:02d}" for i in range(4)]


async def seed():
    await init_db()
    try:
        seeded = await _seed()
    finally:
        await close_db()
    if seeded:
        print(f"Seeded workspace '{WORKSPACE_UUID}' with 1 feature, 2 phases, 4 tickets, 2 bounties.")
    else:
        print("Already seeded.")


async def _seed() -> bool:
    async with session_scope() as session:
        if await session.get(Workspace, WORKSPACE_UUID) is not None:
            return False

        session.add_all([
            Person(pubkey=OWNER, alias="alice", unique_name="alice"),
            Person(pubkey=HUNTER, alias="bob", unique_name="bob"),
            Workspace(
                uuid=WORKSPACE_UUID,
                owner_pubkey=OWNER,
                name="hive",
                description="Bounty platform dogfooding",
                mission="Pay people to ship small things.",
                tactics="Phase work into tickets, tickets into bounties.",
                budget=50_000,
            ),
        ])
        await session.flush()

        session.add(WorkspaceUser(workspace_uuid=WORKSPACE_UUID, pubkey=HUNTER))
        for role in (Role.VIEW_REPORT, Role.ADD_BOUNTY):
            session.add(WorkspaceUserRole(workspace_uuid=WORKSPACE_UUID, pubkey=HUNTER, role=role.value))

        session.add(
            WorkspaceFeature(
                uuid=FEATURE_UUID,
                workspace_uuid=WORKSPACE_UUID,
                name="Bounty search",
                brief="Let hunters find bounties by language and tag.",
                created_by=OWNER,
                updated_by=OWNER,
            )
        )
        await session.flush()

        session.add(FeatureStory(feature_uuid=FEATURE_UUID, description="As a hunter I filter by language"))
        for priority, (uuid_, name) in enumerate(zip(PHASE_UUIDS, ("Backend", "Frontend"))):
            session.add(FeaturePhase(uuid=uuid_, feature_uuid=FEATURE_UUID, name=name, priority=priority))

        ticket_specs = [
            (PHASE_UUIDS[0], "Add language filter"),
            (PHASE_UUIDS[0], "Add tag filter"),
            (PHASE_UUIDS[1], "Filter chips"),
            (PHASE_UUIDS[1], "Empty state"),
        ]
        for sequence, (uuid_, (phase, name)) in enumerate(zip(TICKET_UUIDS, ticket_specs), start=1):
            session.add(
                Ticket(
                    uuid=uuid_,
                    feature_uuid=FEATURE_UUID,
                    phase_uuid=phase,
                    name=name,
                    sequence=sequence,
                    ticket_group=uuid_,
                    author="HUMAN",
                    author_id=OWNER,
                )
            )

        now = int(time.time())
        session.add_all([
            Bounty(
                owner_id=OWNER,
                title="Add language filter",
                price=2_100,
                coding_languages=["Python"],
                tags=["backend"],
                workspace_uuid=WORKSPACE_UUID,
                feature_uuid=FEATURE_UUID,
                phase_uuid=PHASE_UUIDS[0],
                created=now,
            ),
            Bounty(
                owner_id=OWNER,
                title="Filter chips",
                price=1_500,
                coding_languages=["Typescript"],
                assignee=HUNTER,
                workspace_uuid=WORKSPACE_UUID,
                feature_uuid=FEATURE_UUID,
                phase_uuid=PHASE_UUIDS[1],
                created=now,
            ),
        ])
        session.add(Chat(workspace_id=WORKSPACE_UUID, title="Planning"))

    return True


if __name__ == "__main__":
    asyncio.run(seed())
