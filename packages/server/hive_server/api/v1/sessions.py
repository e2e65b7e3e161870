"""
WebSocket endpoint for client sessions.

Clients connect to ``/websocket?uniqueId=<id>`` and receive server-pushed
frames (chat messages, workflow runs, ticket updates) addressed to that id.
"""

from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from hive_server.core.sessions import registry
from hive_server.models.base import new_uuid

router = APIRouter()


@router.websocket("/websocket")
async def websocket_endpoint(
    websocket: WebSocket,
    uniqueId: Optional[str] = Query(None),
):
    """
    Register the socket under ``uniqueId`` (generated when absent).

    Supports frame types:
    - ping → pong
    Anything else is ignored; the channel is server-to-client.
    """
    session_id = uniqueId or new_uuid()
    client = await registry.connect(websocket, session_id)
    await websocket.send_text(json.dumps({"msg": "client_connected", "uniqueId": session_id}))

    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(frame, dict) and frame.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        registry.disconnect(client)
