"""
Shared fixtures: in-memory SQLite database, app client and factories.

Every test gets a fresh schema. The workflow engine is replaced by an
httpx.MockTransport whose reply can be changed per test.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Optional

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, select

import hive_server.models  # noqa: F401
from hive_server.core.auth import create_token
from hive_server.core.database import get_session
from hive_server.core.sessions import ClientSession, registry
from hive_server.core.workflow import WorkflowClient, get_workflow_client
from hive_server.main import app
from hive_server.models.bounty import Bounty
from hive_server.models.chat import Chat, ChatMessage
from hive_server.models.feature import FeaturePhase, FeatureStory, WorkspaceFeature
from hive_server.models.payment import PaymentHistory
from hive_server.models.person import Person
from hive_server.models.ticket import Ticket
from hive_server.models.workspace import Workspace, WorkspaceUser, WorkspaceUserRole


def auth_headers(pubkey: str) -> dict[str, str]:
    return {"x-jwt": create_token(pubkey)}


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# ---------------------------------------------------------------------------
# Workflow engine stand-in
# ---------------------------------------------------------------------------


class FakeWorkflow:
    """Records outbound workflow requests and answers with ``status``/``body``."""

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.status = 200
        self.body: Any = {"success": True, "data": {"project_id": 4242}}
        self.fail_with: Optional[Exception] = None
        self.api_key = "test-key"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(
            {
                "headers": dict(request.headers),
                "json": json.loads(request.content),
            }
        )
        if self.fail_with is not None:
            raise self.fail_with
        return httpx.Response(self.status, json=self.body)

    def client(self) -> WorkflowClient:
        return WorkflowClient(
            api_url="https://workflow.test/api/v1/projects",
            api_key=self.api_key,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def workflow() -> FakeWorkflow:
    return FakeWorkflow()


@pytest.fixture
async def client(session_factory, workflow):
    async def _session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_workflow_client] = workflow.client
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class Factory:
    """Inserts rows directly, committing each one."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    async def _save(self, obj):
        async with self._session_factory() as session:
            session.add(obj)
            await session.commit()
            await session.refresh(obj)
        return obj

    async def get(self, model, key):
        async with self._session_factory() as session:
            return await session.get(model, key)

    async def all(self, model) -> list:
        async with self._session_factory() as session:
            result = await session.execute(select(model))
            return list(result.scalars().all())

    async def person(self, pubkey: str, **kw) -> Person:
        kw.setdefault("unique_name", pubkey[:8])
        kw.setdefault("alias", pubkey[:8])
        return await self._save(Person(pubkey=pubkey, **kw))

    async def workspace(self, owner: str, name: str = "hive", **kw) -> Workspace:
        return await self._save(Workspace(owner_pubkey=owner, name=name, **kw))

    async def member(self, workspace_uuid: str, pubkey: str, roles: tuple[str, ...] = ()) -> None:
        await self._save(WorkspaceUser(workspace_uuid=workspace_uuid, pubkey=pubkey))
        for role in roles:
            await self._save(WorkspaceUserRole(workspace_uuid=workspace_uuid, pubkey=pubkey, role=role))

    async def feature(self, workspace_uuid: str, name: str = "Search", **kw) -> WorkspaceFeature:
        return await self._save(WorkspaceFeature(workspace_uuid=workspace_uuid, name=name, **kw))

    async def phase(self, feature_uuid: str, name: str = "Phase 1", **kw) -> FeaturePhase:
        return await self._save(FeaturePhase(feature_uuid=feature_uuid, name=name, **kw))

    async def story(self, feature_uuid: str, description: str = "As a user I search", **kw) -> FeatureStory:
        return await self._save(FeatureStory(feature_uuid=feature_uuid, description=description, **kw))

    async def ticket(self, feature_uuid: str, phase_uuid: str, **kw) -> Ticket:
        kw.setdefault("uuid", str(uuid.uuid4()))
        kw.setdefault("name", "Build search box")
        return await self._save(Ticket(feature_uuid=feature_uuid, phase_uuid=phase_uuid, **kw))

    async def bounty(self, owner_id: str, title: str = "Fix login", **kw) -> Bounty:
        return await self._save(Bounty(owner_id=owner_id, title=title, **kw))

    async def chat(self, workspace_id: str, title: str = "Planning", **kw) -> Chat:
        return await self._save(Chat(workspace_id=workspace_id, title=title, **kw))

    async def chat_message(self, chat_id: str, message: str, **kw) -> ChatMessage:
        kw.setdefault("role", "user")
        kw.setdefault("status", "sent")
        kw.setdefault("source", "user")
        return await self._save(ChatMessage(chat_id=chat_id, message=message, **kw))

    async def payment(self, workspace_uuid: str, amount: int, payment_type: str, **kw) -> PaymentHistory:
        return await self._save(
            PaymentHistory(workspace_uuid=workspace_uuid, amount=amount, payment_type=payment_type, **kw)
        )


@pytest.fixture
def make(session_factory) -> Factory:
    return Factory(session_factory)


@pytest.fixture
def auth():
    """``auth(pubkey)`` returns request headers carrying a token for ``pubkey``."""
    return auth_headers


@pytest.fixture(autouse=True)
def _clear_sessions():
    registry.sessions.clear()
    yield
    registry.sessions.clear()


# ---------------------------------------------------------------------------
# Websocket sessions
# ---------------------------------------------------------------------------


class FakeWebSocket:
    """Collects frames sent through the session registry."""

    def __init__(self, fail: bool = False) -> None:
        self.frames: list[dict] = []
        self.accepted = False
        self.fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(json.loads(data))


@pytest.fixture
def connect_session():
    """``connect_session(id)`` registers a fake socket under ``id`` and returns it."""

    def _connect(session_id: str, fail: bool = False) -> FakeWebSocket:
        socket = FakeWebSocket(fail=fail)
        registry.sessions[session_id] = ClientSession(socket, session_id)
        return socket

    return _connect


@pytest.fixture
def fake_socket():
    """``fake_socket(fail=False)`` builds an unregistered FakeWebSocket."""
    return FakeWebSocket
