"""Admin endpoints: definition lifecycle and stale-session cleanup.

Protected by the ``ADMIN_API_KEY`` environment variable.  Every request
must include an ``X-Admin-Key`` header whose value matches the configured
key.  Returns 401 if missing, 403 if wrong.
"""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_questionnaire.engine import QuestionnaireEngine

from caregiver_server.dependencies import get_db, get_engine, require_admin_key

router = APIRouter(prefix="/admin", tags=["admin"])


# ------------------------------------------------------------------
# Response models
# ------------------------------------------------------------------

class PublishResult(BaseModel):
    questionnaire_id: str
    status: str
    archived: list[str]


class CleanupResult(BaseModel):
    """Response body for cleanup operations."""
    affected_rows: int
    action: str


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/questionnaires/{questionnaire_id}/publish")
async def publish_questionnaire(
    questionnaire_id: str,
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
    _admin: str = Depends(require_admin_key),
) -> PublishResult:
    """Validate and publish a draft definition.

    Publishing an onboarding definition archives the previous one.
    """
    archived = await engine.catalog.publish(db, questionnaire_id)
    return PublishResult(
        questionnaire_id=questionnaire_id, status="published", archived=archived,
    )


@router.post("/questionnaires/{questionnaire_id}/archive")
async def archive_questionnaire(
    questionnaire_id: str,
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
    _admin: str = Depends(require_admin_key),
) -> PublishResult:
    """Retire a definition; it disappears from listings."""
    await engine.catalog.archive(db, questionnaire_id)
    return PublishResult(
        questionnaire_id=questionnaire_id, status="archived", archived=[questionnaire_id],
    )


@router.post("/cleanup/abandon")
async def abandon_stale_sessions(
    request: Request,
    older_than_days: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
    _admin: str = Depends(require_admin_key),
) -> CleanupResult:
    """Mark in-progress sessions idle for too long as abandoned.

    Args:
        older_than_days: idle threshold; defaults to ``STALE_SESSION_DAYS``
    """
    days = older_than_days or request.app.state.settings.stale_session_days
    affected = await engine.sessions.abandon_stale_sessions(db, older_than_days=days)
    return CleanupResult(affected_rows=affected, action="abandon")
