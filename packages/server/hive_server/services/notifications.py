"""
Best-effort websocket notifications and the result type that carries them.

A service call has a primary effect (persisted rows) that decides the HTTP
status, and zero or more notifications whose delivery outcome is reported
separately and never changes that status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

import structlog

from hive_server.core.sessions import SessionDeliveryError, SessionRegistry, registry
from hive_shared.schemas.chat import SessionMessage

log = structlog.get_logger()

T = TypeVar("T")


@dataclass
class Notification:
    session_id: str
    action: str
    delivered: bool = False
    error: Optional[str] = None


@dataclass
class ServiceResult(Generic[T]):
    value: T
    notifications: list[Notification] = field(default_factory=list)

    @property
    def notification_error(self) -> Optional[str]:
        """First delivery error, if any."""
        for n in self.notifications:
            if n.error:
                return n.error
        return None


async def notify_session(
    session_id: str,
    action: str,
    message: str,
    *,
    chat_message: dict[str, Any] | None = None,
    ticket_details: dict[str, Any] | None = None,
    sessions: SessionRegistry | None = None,
) -> Notification:
    """Push one frame to ``session_id``; failures are logged and returned."""
    sessions = sessions or registry
    frame = SessionMessage(
        source_session_id=session_id,
        message=message,
        action=action,
        chat_message=chat_message,
        ticket_details=ticket_details,
    )
    notification = Notification(session_id=session_id, action=action)

    try:
        await sessions.send(session_id, frame.to_frame())
        notification.delivered = True
    except SessionDeliveryError as exc:
        notification.error = str(exc)
        log.warning("notify.failed", session_id=session_id, action=action, error=str(exc))

    return notification
