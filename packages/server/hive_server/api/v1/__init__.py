"""
API v1 Router

Resource routers are mounted at the root paths the web client uses
(/features, /tickets, /hivechat, ...); ``/api`` describes them.
"""

from fastapi import APIRouter
from . import bounties, chat, features, metrics, people, sessions, tickets, workspaces

router = APIRouter()

router.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])
router.include_router(people.router, prefix="/people", tags=["People"])
router.include_router(features.router, prefix="/features", tags=["Features"])
router.include_router(tickets.router, prefix="/tickets", tags=["Tickets"])
router.include_router(bounties.router, prefix="/bounties", tags=["Bounties"])
router.include_router(chat.router, prefix="/hivechat", tags=["Chat"])
router.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
router.include_router(sessions.router, tags=["WebSocket"])


@router.get("/api", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/workspaces",
            "/people",
            "/features",
            "/tickets",
            "/bounties",
            "/hivechat",
            "/metrics",
            "/websocket",
        ],
    }
