"""
WebSocket session registry.

Features:
- Sessions addressed by an opaque client-chosen id (``uniqueId``)
- Direct delivery to one session, raising when the session is unknown
- Dead sockets are dropped when a send fails
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class SessionDeliveryError(Exception):
    """A message could not be handed to a websocket session."""


class SessionNotFoundError(SessionDeliveryError):
    def __init__(self, session_id: str):
        super().__init__(f"client not found: {session_id}")
        self.session_id = session_id


class ClientSession:
    """Tracks a single WebSocket connection's metadata."""

    __slots__ = ("websocket", "session_id", "connected_at")

    def __init__(self, websocket: WebSocket, session_id: str):
        self.websocket = websocket
        self.session_id = session_id
        self.connected_at = datetime.now(timezone.utc)


class SessionRegistry:
    """
    In-process registry of connected websocket sessions.

    A reconnect with the same id replaces the previous socket.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ClientSession] = {}

    @property
    def sessions(self) -> dict[str, ClientSession]:
        return self._sessions

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._sessions

    async def connect(self, websocket: WebSocket, session_id: str) -> ClientSession:
        """Accept a WebSocket connection and register it under ``session_id``."""
        await websocket.accept()
        session = ClientSession(websocket, session_id)
        self._sessions[session_id] = session
        logger.info(
            "WebSocket connected: session=%s total=%d",
            session_id,
            len(self._sessions),
        )
        return session

    def disconnect(self, session: ClientSession) -> None:
        """Remove a session if it is still the registered one for its id."""
        current = self._sessions.get(session.session_id)
        if current is session:
            del self._sessions[session.session_id]
        logger.info("WebSocket disconnected: session=%s", session.session_id)

    async def send(self, session_id: str, message: dict[str, Any]) -> None:
        """
        Deliver ``message`` to one session.

        Raises SessionNotFoundError when no such session is connected and
        SessionDeliveryError when the socket rejects the frame.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        try:
            await session.websocket.send_text(json.dumps(message, default=str))
        except Exception as exc:
            self.disconnect(session)
            raise SessionDeliveryError(f"send failed for {session_id}: {exc}") from exc


# Singleton
registry = SessionRegistry()
