"""
Authentication and authorization for the Hive server.

Supports:
- Caller resolution from an externally issued JWT (``x-jwt`` header or
  ``Authorization: Bearer``) carrying the caller public key
- Redis revocation list for tokens that carry a ``jti``
- Workspace role checks (owner has every role)
- Super admin check for dashboard metrics
"""

from __future__ import annotations

from typing import Optional

import jwt
import structlog
from fastapi import Depends, Header, HTTPException
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from hive_server.core.config import get_settings
from hive_server.core.redis import is_token_revoked
from hive_server.models.person import Person
from hive_server.models.workspace import Workspace, WorkspaceUserRole
from hive_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()

authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


# ---------------------------------------------------------------------------
# Token decoding
# ---------------------------------------------------------------------------

def decode_token(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def create_token(pubkey: str, **claims) -> str:
    """Sign a token for ``pubkey``. Used by dev tooling and tests."""
    payload = {"pubkey": pubkey, **claims}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


# ---------------------------------------------------------------------------
# Caller resolution
# ---------------------------------------------------------------------------

class AuthenticatedCaller:
    """The public-key identity of the current request."""

    def __init__(self, pubkey: str, claims: dict | None = None):
        self.pubkey = pubkey
        self.claims = claims or {}

    def __repr__(self) -> str:
        return f"AuthenticatedCaller(pubkey={self.pubkey!r})"


def _extract_token(x_jwt: Optional[str], authorization: Optional[str]) -> Optional[str]:
    if x_jwt:
        return x_jwt.strip()
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return None


async def get_optional_caller(
    x_jwt: Optional[str] = Header(None, alias="x-jwt"),
    authorization: Optional[str] = Depends(authorization_header),
) -> Optional[AuthenticatedCaller]:
    """Resolve the caller if a token was sent; None for anonymous requests."""
    token = _extract_token(x_jwt, authorization)
    if not token:
        return None

    try:
        claims = decode_token(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    pubkey = claims.get("pubkey") or claims.get("sub")
    if not pubkey:
        raise HTTPException(status_code=401, detail="Token carries no pubkey")

    jti = claims.get("jti")
    if jti and await is_token_revoked(jti):
        raise HTTPException(status_code=401, detail="Token has been revoked")

    return AuthenticatedCaller(pubkey=pubkey, claims=claims)


async def require_caller(
    caller: Optional[AuthenticatedCaller] = Depends(get_optional_caller),
) -> AuthenticatedCaller:
    """Any authenticated caller. Runs before the body is read."""
    if caller is None:
        log.info("auth.no_pubkey")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return caller


async def require_super_admin(
    caller: AuthenticatedCaller = Depends(require_caller),
) -> AuthenticatedCaller:
    """Requires a pubkey listed in HIVE_SUPER_ADMINS."""
    if caller.pubkey not in get_settings().super_admins:
        raise HTTPException(status_code=401, detail="Super admin access required")
    return caller


# ---------------------------------------------------------------------------
# Workspace roles
# ---------------------------------------------------------------------------

async def get_user_roles(
    session: AsyncSession, workspace_uuid: str, pubkey: str
) -> list[WorkspaceUserRole]:
    result = await session.execute(
        select(WorkspaceUserRole).where(
            WorkspaceUserRole.workspace_uuid == workspace_uuid,
            WorkspaceUserRole.pubkey == pubkey,
        )
    )
    return list(result.scalars().all())


async def user_has_access(
    session: AsyncSession, pubkey: str, workspace_uuid: str, role: Role | str
) -> bool:
    """Owners hold every role; members hold the roles they were granted."""
    if not pubkey or not workspace_uuid:
        return False

    workspace = await session.get(Workspace, workspace_uuid)
    if workspace is None or workspace.deleted:
        return False
    if workspace.owner_pubkey == pubkey:
        return True

    wanted = role.value if isinstance(role, Role) else role
    roles = await get_user_roles(session, workspace_uuid, pubkey)
    return any(r.role == wanted for r in roles)


async def person_exists(session: AsyncSession, pubkey: str) -> bool:
    result = await session.execute(select(Person.id).where(Person.pubkey == pubkey))
    return result.first() is not None
