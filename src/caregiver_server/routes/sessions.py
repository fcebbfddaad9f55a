"""Session listing endpoints.

All endpoints require the ``X-User-ID`` header.  A user can only read their
own sessions; another user's session id answers 404.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_questionnaire.engine import QuestionnaireEngine
from caregiver_questionnaire.errors import NotFoundError
from caregiver_questionnaire.models.session import ResponseRecord, SessionInfo

from caregiver_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from caregiver_server.dependencies import get_db, get_engine, get_user_id

router = APIRouter(tags=["sessions"])


@router.get("/sessions")
async def list_sessions(
    questionnaire_id: str | None = Query(None),
    status: str | None = Query(None),
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> list[SessionInfo]:
    """List sessions for the current user, most recent first."""
    return await engine.sessions.list_sessions(
        db,
        user_id=user_id,
        questionnaire_id=questionnaire_id,
        status=status,
        limit=limit,
        offset=offset,
    )


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> SessionInfo:
    """Get one of the caller's sessions."""
    info = await engine.sessions.get_session(db, session_id)
    if info.user_id != user_id:
        raise NotFoundError(f"Session not found: session_id={session_id}")
    return info


@router.get("/sessions/{session_id}/responses")
async def list_session_responses(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: QuestionnaireEngine = Depends(get_engine),
) -> list[ResponseRecord]:
    """The current answers recorded in one of the caller's sessions."""
    info = await engine.sessions.get_session(db, session_id)
    if info.user_id != user_id:
        raise NotFoundError(f"Session not found: session_id={session_id}")
    return await engine.responses.list_responses(db, session_id)
