"""
Client for the third-party workflow engine (Stakwork).

Every workflow run is a POST of

    {"name": ..., "workflow_id": ..., "workflow_params":
        {"set_var": {"attributes": {"vars": {...}}}}}

authenticated with ``Authorization: Token token=<key>``.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from hive_server.core.config import get_settings

log = structlog.get_logger()

CHAT_WORKFLOW_ID = 38842
CHAT_WORKFLOW_NAME = "Hive Chat Processor"
STORIES_WORKFLOW_ID = 35080
STORIES_WORKFLOW_NAME = "Hive Story Generator"


class WorkflowError(Exception):
    """The workflow engine could not be reached or rejected the run."""


def build_payload(name: str, workflow_id: int, variables: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": name,
        "workflow_id": workflow_id,
        "workflow_params": {
            "set_var": {
                "attributes": {
                    "vars": variables,
                },
            },
        },
    }


class WorkflowClient:
    """Thin async wrapper around the workflow engine's project endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_url = api_url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token token={self._api_key}",
            "Content-Type": "application/json",
        }

    async def post(self, payload: dict[str, Any]) -> httpx.Response:
        """POST a raw payload and return the response whatever its status."""
        if not self.configured:
            raise WorkflowError("workflow API key is not configured")

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            ) as client:
                return await client.post(self._api_url, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            log.error("workflow.unreachable", error=str(exc))
            raise WorkflowError(f"error sending request: {exc}") from exc

    async def run(self, name: str, workflow_id: int, variables: dict[str, Any]) -> int:
        """Start a workflow run and return the engine's project id."""
        resp = await self.post(build_payload(name, workflow_id, variables))

        if resp.status_code != 200:
            log.error("workflow.rejected", status=resp.status_code, workflow_id=workflow_id)
            raise WorkflowError(f"workflow API error: {resp.text}")

        try:
            project_id = resp.json()["data"]["project_id"]
        except (ValueError, KeyError, TypeError) as exc:
            raise WorkflowError(f"error decoding response: {exc}") from exc

        log.info("workflow.started", workflow_id=workflow_id, project_id=project_id)
        return int(project_id)


def get_workflow_client() -> WorkflowClient:
    """FastAPI dependency; tests override it with a mock transport."""
    settings = get_settings()
    return WorkflowClient(
        api_url=settings.stakwork_api_url,
        api_key=settings.stakwork_api_key,
        timeout=settings.stakwork_timeout_seconds,
    )
