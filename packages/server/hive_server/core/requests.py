"""
Request body parsing with per-endpoint error statuses.

Endpoints report malformed bodies with different codes (406 for most
create/edit endpoints, 400 for tickets and chat), so bodies are read and
validated here instead of through FastAPI's 422 handler.
"""

from __future__ import annotations

from typing import TypeVar

import structlog
from fastapi import HTTPException, Request
from pydantic import BaseModel, ValidationError

log = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)


async def parse_body(
    request: Request,
    model: type[M],
    *,
    error_status: int = 406,
    error_detail: str = "Invalid request body",
) -> M:
    """Validate the raw JSON body against ``model`` or raise ``error_status``."""
    raw = await request.body()
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        log.info(
            "request.body_rejected",
            path=request.url.path,
            errors=exc.error_count(),
        )
        raise HTTPException(status_code=error_status, detail=error_detail)
