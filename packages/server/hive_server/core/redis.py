"""
Redis access for token revocation.

The server only reads: the service that issues tokens writes
``hive:jwt:revoked:<jti>`` keys with a TTL matching the token lifetime.
"""

from __future__ import annotations

import redis.asyncio as redis

from hive_server.core.config import get_settings

REVOKED_PREFIX = "hive:jwt:revoked:"

_client: redis.Redis | None = None


def get_redis() -> redis.Redis:
    """Shared client. The pool connects lazily on the first command."""
    global _client
    if _client is None:
        _client = redis.from_url(get_settings().redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


async def is_token_revoked(jti: str) -> bool:
    return bool(await get_redis().exists(f"{REVOKED_PREFIX}{jti}"))
