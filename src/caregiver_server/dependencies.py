"""FastAPI dependency injection: DB sessions, the engine, and user identity.

Each request that touches the database gets a fresh ``AsyncSession`` via
``get_db()``.  The session is committed on success and rolled back on error,
matching the SDK convention where engine and repositories call ``flush()``
but never ``commit()``.
"""

import hmac
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_db.engine import session_scope
from caregiver_questionnaire.engine import QuestionnaireEngine


# ------------------------------------------------------------------
# Database session: transaction boundary lives here
# ------------------------------------------------------------------

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session; commit on success, rollback on error.

    The SDK's repository methods call ``flush()`` but never ``commit()``,
    so this dependency is the single place where transactions are finalised.
    """
    async with session_scope() as session:
        yield session


# ------------------------------------------------------------------
# Engine: stashed on app.state during lifespan
# ------------------------------------------------------------------

def get_engine(request: Request) -> QuestionnaireEngine:
    """Return the engine singleton from ``app.state``."""
    return request.app.state.engine


# ------------------------------------------------------------------
# User identity: extracted from the X-User-ID header
# ------------------------------------------------------------------

def _check_proxy_secret(request: Request, x_proxy_secret: str | None) -> None:
    """Require a matching ``X-Proxy-Secret`` when ``TRUSTED_PROXY_SECRET`` is set.

    This proves the ``X-User-ID`` was injected by a trusted API gateway and
    not forged by an external client.
    """
    expected_secret: str | None = request.app.state.settings.trusted_proxy_secret
    if not expected_secret:
        return
    if not x_proxy_secret:
        raise HTTPException(status_code=403, detail="X-Proxy-Secret header is required")
    # Constant-time comparison to prevent timing side-channels.
    if not hmac.compare_digest(x_proxy_secret, expected_secret):
        raise HTTPException(status_code=403, detail="Invalid proxy secret")


async def get_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str:
    """Extract user identity from the ``X-User-ID`` header; 401 when absent."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header is required")
    _check_proxy_secret(request, x_proxy_secret)
    return x_user_id


async def get_optional_user_id(
    request: Request,
    x_user_id: str | None = Header(None, alias="X-User-ID"),
    x_proxy_secret: str | None = Header(None, alias="X-Proxy-Secret"),
) -> str | None:
    """Like :func:`get_user_id` but returns ``None`` for guests."""
    if not x_user_id:
        return None
    _check_proxy_secret(request, x_proxy_secret)
    return x_user_id


# ------------------------------------------------------------------
# Admin key
# ------------------------------------------------------------------

async def require_admin_key(
    request: Request,
    x_admin_key: str | None = Header(None, alias="X-Admin-Key"),
) -> str:
    """Validate the ``X-Admin-Key`` header against ``ADMIN_API_KEY``.

    Raises 403 if admin endpoints are disabled or the key is wrong, 401 if
    the header is missing.
    """
    expected: str | None = request.app.state.settings.admin_api_key
    if not expected:
        raise HTTPException(
            status_code=403,
            detail="Admin endpoints are disabled (ADMIN_API_KEY not configured)",
        )
    if not x_admin_key:
        raise HTTPException(status_code=401, detail="X-Admin-Key header is required")
    if not hmac.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=403, detail="Invalid admin key")
    return x_admin_key
