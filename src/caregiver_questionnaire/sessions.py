"""SessionManager: lazy session creation and single-shot completion.

A session is opened on a user's first answer to a questionnaire and closed
exactly once.  ``get_or_create_active_session`` uses find-or-create and is
deliberately not atomic: two racing callers may both create a row.  That is
tolerated because responses are keyed by (session, question), so the worst
case is answers split across two sessions, never a corrupted one.

Completion scores ``scored`` questionnaires over all of the session's
responses.  Completing when there is no active session is a no-op so that a
client can safely retry after a network failure.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_db.models.enums import QuestionnaireKind
from caregiver_db.models.session import QuestionnaireSession
from caregiver_db.repository import ResponseRepository, SessionRepository

from caregiver_questionnaire.definitions import DefinitionCatalog
from caregiver_questionnaire.errors import NotFoundError, translate_store_errors
from caregiver_questionnaire.models.session import ScoreResult, SessionInfo
from caregiver_questionnaire.responses import ResponseStore, answers_from_records, as_session_uuid
from caregiver_questionnaire.scoring import ScoringEngine

logger = logging.getLogger(__name__)


class SessionManager:
    """Opens, looks up and completes questionnaire sessions.

    Args:
        repo: session repository (defaults to the PostgreSQL one)
        responses: response store used to read answers at completion time
        catalog: definition catalog used to decide whether to score
        scoring: scoring engine
    """

    def __init__(
        self,
        repo: SessionRepository | None = None,
        responses: ResponseStore | None = None,
        catalog: DefinitionCatalog | None = None,
        scoring: ScoringEngine | None = None,
    ) -> None:
        self._repo = repo or SessionRepository()
        self._responses = responses or ResponseStore(ResponseRepository(), self._repo)
        self._catalog = catalog or DefinitionCatalog()
        self._scoring = scoring or ScoringEngine()

    # ==================================================================
    # Lookup
    # ==================================================================

    async def find_active_session(
        self, db: AsyncSession, *, user_id: str, questionnaire_id: str
    ) -> SessionInfo | None:
        """The user's in-progress session for the questionnaire, if any."""
        with translate_store_errors("find_active_session"):
            row = await self._repo.get_active_session(db, user_id, questionnaire_id)
        return self._to_session_info(row) if row is not None else None

    async def get_session(
        self, db: AsyncSession, session_id: str | uuid.UUID
    ) -> SessionInfo:
        """Fetch a session by id or raise ``NotFoundError``."""
        pk = as_session_uuid(session_id)
        with translate_store_errors("get_session"):
            row = await self._repo.get_by_id(db, pk)
        if row is None:
            raise NotFoundError(f"Session not found: {pk}")
        return self._to_session_info(row)

    async def list_sessions(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        questionnaire_id: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SessionInfo]:
        """List sessions for a user, most recent first."""
        with translate_store_errors("list_sessions"):
            rows = await self._repo.list_by_user(
                db, user_id,
                questionnaire_id=questionnaire_id,
                status=status,
                limit=limit,
                offset=offset,
            )
        return [self._to_session_info(r) for r in rows]

    # ==================================================================
    # Lifecycle
    # ==================================================================

    async def get_or_create_active_session(
        self, db: AsyncSession, *, user_id: str, questionnaire_id: str
    ) -> str:
        """Return the id of the user's in-progress session, opening one if needed.

        Raises ``NotFoundError`` when the questionnaire does not exist.
        """
        with translate_store_errors("get_or_create_active_session"):
            row = await self._repo.get_active_session(db, user_id, questionnaire_id)
            if row is not None:
                return str(row.id)

        # Validates that the questionnaire exists before inserting
        await self._catalog.get_definition(db, questionnaire_id)

        with translate_store_errors("create_session"):
            row = await self._repo.create_session(
                db, user_id=user_id, questionnaire_id=questionnaire_id,
            )
        logger.info(
            "Session opened: user=%s questionnaire=%s session=%s",
            user_id, questionnaire_id, row.id,
        )
        return str(row.id)

    async def complete_session(
        self, db: AsyncSession, *, user_id: str, questionnaire_id: str
    ) -> SessionInfo | None:
        """Close the user's active session, scoring it when the kind is ``scored``.

        Returns ``None`` without side effects when no session is active.
        """
        with translate_store_errors("complete_session"):
            row = await self._repo.get_active_session(db, user_id, questionnaire_id)
        if row is None:
            logger.debug(
                "complete_session: no active session for user=%s questionnaire=%s",
                user_id, questionnaire_id,
            )
            return None

        result: ScoreResult | None = None
        definition = await self._catalog.get_definition(db, questionnaire_id)
        if definition.kind == QuestionnaireKind.SCORED:
            records = await self._responses.list_responses(db, row.id)
            result = self._scoring.score(definition, answers_from_records(records))

        with translate_store_errors("complete_session"):
            row = await self._repo.complete_session(
                db,
                row,
                score=result.final_score if result else None,
                result=result.model_dump(mode="json") if result else None,
            )
        logger.info(
            "Session completed: session=%s questionnaire=%s score=%s",
            row.id, questionnaire_id, row.score,
        )
        return self._to_session_info(row)

    async def abandon_stale_sessions(
        self, db: AsyncSession, *, older_than_days: int
    ) -> int:
        """Mark sessions untouched for ``older_than_days`` as abandoned.

        The only transition into ``abandoned``; returns the affected count.
        """
        if older_than_days < 1:
            raise ValueError("older_than_days must be at least 1")
        with translate_store_errors("abandon_stale_sessions"):
            affected = await self._repo.abandon_stale_sessions(
                db, older_than_days=older_than_days,
            )
        logger.info(
            "Stale sessions abandoned: count=%d older_than_days=%d",
            affected, older_than_days,
        )
        return affected

    # ==================================================================
    # Helpers
    # ==================================================================

    @staticmethod
    def _to_session_info(row: QuestionnaireSession) -> SessionInfo:
        return SessionInfo(
            session_id=str(row.id),
            user_id=row.user_id,
            questionnaire_id=row.questionnaire_id,
            status=str(getattr(row.status, "value", row.status)),
            score=row.score,
            result=row.result,
            started_at=row.started_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
        )
