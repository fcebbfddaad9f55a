"""ResponseStore: idempotent answer persistence for identified users.

There is exactly one response row per (session, question).  Re-answering a
question overwrites that row in place via ``INSERT ... ON CONFLICT DO
UPDATE``, so retried or duplicated writes never create extra rows.

Writes are refused once the owning session is completed or abandoned.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_db.models.enums import ResponseType, SessionStatus
from caregiver_db.models.session import QuestionnaireResponse
from caregiver_db.repository import ResponseRepository, SessionRepository

from caregiver_questionnaire.errors import (
    InvalidAnswerError,
    NotFoundError,
    SessionClosedError,
    translate_store_errors,
)
from caregiver_questionnaire.models.graph import Choice, QuestionNode
from caregiver_questionnaire.models.session import ResponseRecord
from caregiver_questionnaire.textutil import sanitize_string
from caregiver_questionnaire.visibility import VisibilityEvaluator

logger = logging.getLogger(__name__)


def validate_choice(question: QuestionNode, choice: Choice) -> Choice:
    """Check ``choice`` against ``question`` and return a normalised copy.

    Free text is sanitised and must not be blank; option answers must use
    the question's selectable options, exactly one for single choice.
    Raises ``InvalidAnswerError`` otherwise.
    """
    if question.is_free_text:
        text = sanitize_string(choice.free_text)
        if not text:
            raise InvalidAnswerError(f"Question {question.id!r} needs a text answer")
        phantom = question.phantom_option
        allowed = [phantom.id] if phantom is not None else []
        if choice.option_ids and choice.option_ids != allowed:
            raise InvalidAnswerError(
                f"Free-text question {question.id!r} takes no options"
            )
        return Choice(option_ids=[], free_text=text)

    # De-duplicate while keeping the caller's order
    option_ids = list(dict.fromkeys(choice.option_ids))
    valid = {opt.id for opt in VisibilityEvaluator().visible_options(question)}
    unknown = [oid for oid in option_ids if oid not in valid]
    if unknown:
        raise InvalidAnswerError(
            f"Unknown option(s) {unknown} for question {question.id!r}"
        )
    if question.response_type == ResponseType.SINGLE_CHOICE and len(option_ids) != 1:
        raise InvalidAnswerError(
            f"Question {question.id!r} takes exactly one option, got {len(option_ids)}"
        )
    if not option_ids:
        raise InvalidAnswerError(f"Question {question.id!r} needs at least one option")
    return Choice(option_ids=option_ids)


def as_session_uuid(session_id: str | uuid.UUID) -> uuid.UUID:
    """Parse a session id, treating malformed ids as unknown sessions."""
    if isinstance(session_id, uuid.UUID):
        return session_id
    try:
        return uuid.UUID(str(session_id))
    except ValueError:
        raise NotFoundError(f"Session not found: {session_id!r}") from None


def answers_from_records(records: Iterable[ResponseRecord]) -> dict[str, Choice]:
    """Build the ``{question_id: Choice}`` map the engine and scorer consume."""
    return {
        r.question_id: Choice(option_ids=list(r.option_ids), free_text=r.free_text)
        for r in records
    }


class ResponseStore:
    """Upserts and lists the answers recorded in a session.

    Args:
        repo: response repository (defaults to the PostgreSQL one)
        sessions: session repository used for the open-session check
    """

    def __init__(
        self,
        repo: ResponseRepository | None = None,
        sessions: SessionRepository | None = None,
    ) -> None:
        self._repo = repo or ResponseRepository()
        self._sessions = sessions or SessionRepository()

    async def upsert_response(
        self,
        db: AsyncSession,
        *,
        session_id: str | uuid.UUID,
        question_id: str,
        choice: Choice,
    ) -> ResponseRecord:
        """Write or overwrite the answer to ``question_id`` in the session.

        Raises ``NotFoundError`` for an unknown session and
        ``SessionClosedError`` when the session is no longer in progress.
        """
        pk = as_session_uuid(session_id)
        with translate_store_errors("upsert_response"):
            session = await self._sessions.get_by_id(db, pk)
            if session is None:
                raise NotFoundError(f"Session not found: {pk}")
            if session.status != SessionStatus.IN_PROGRESS:
                raise SessionClosedError(
                    f"Session {pk} is {session.status}; answers are read-only"
                )
            row = await self._repo.upsert_response(
                db,
                session_id=pk,
                question_id=question_id,
                option_ids=list(choice.option_ids),
                free_text=choice.free_text,
            )
            await self._sessions.touch(db, session)

        logger.debug("Response upserted: session=%s question=%s", pk, question_id)
        return self._to_record(row)

    async def list_responses(
        self, db: AsyncSession, session_id: str | uuid.UUID
    ) -> list[ResponseRecord]:
        """All current answers of a session."""
        pk = as_session_uuid(session_id)
        with translate_store_errors("list_responses"):
            rows = await self._repo.list_by_session(db, pk)
        return [self._to_record(r) for r in rows]

    @staticmethod
    def _to_record(row: QuestionnaireResponse) -> ResponseRecord:
        return ResponseRecord(
            session_id=str(row.session_id),
            question_id=row.question_id,
            option_ids=list(row.option_ids or []),
            free_text=row.free_text,
            updated_at=row.updated_at,
        )
