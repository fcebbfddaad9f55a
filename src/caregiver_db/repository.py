"""Async repositories for questionnaire definitions, sessions, responses and profiles.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries: repositories ``flush()`` but never ``commit()``.

The repositories deliberately avoid business-logic validation; graph
integrity, session lifecycle rules and scoring belong in the SDK layer.
They *do* rely on structural invariants enforced by the database (e.g. the
``(session_id, question_id)`` unique constraint that backs the response
upsert).
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_db.models.enums import (
    QuestionnaireKind,
    QuestionnaireStatus,
    SessionStatus,
)
from caregiver_db.models.profile import PROFILE_COLUMNS, CaregiverProfile
from caregiver_db.models.questionnaire import Option, Question, Questionnaire
from caregiver_db.models.session import QuestionnaireResponse, QuestionnaireSession


class DefinitionRepository:
    """Read/write operations on ``questionnaires`` and their graph rows."""

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_by_id(
        self, db: AsyncSession, questionnaire_id: str
    ) -> Questionnaire | None:
        """Fetch a definition with its questions and options eagerly loaded."""
        return await db.get(Questionnaire, questionnaire_id)

    async def list_published(
        self, db: AsyncSession, *, kind: str | None = None
    ) -> list[Questionnaire]:
        """List published definitions, newest first, optionally by kind."""
        stmt = select(Questionnaire).where(
            Questionnaire.status == QuestionnaireStatus.PUBLISHED
        )
        if kind is not None:
            stmt = stmt.where(Questionnaire.kind == kind)
        stmt = stmt.order_by(Questionnaire.published_at.desc())
        result = await db.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_definition(
        self,
        db: AsyncSession,
        *,
        questionnaire_id: str,
        title: str,
        kind: str,
        description: str | None = None,
        scoring_policy: str | None = None,
        questions: list[dict[str, Any]] | None = None,
    ) -> Questionnaire:
        """Insert a draft definition together with its question/option rows.

        ``questions`` is a list of plain dicts using the ORM column names,
        each with an ``options`` list of dicts.
        """
        row = Questionnaire(
            id=questionnaire_id,
            title=title,
            kind=kind,
            description=description,
            scoring_policy=scoring_policy,
            status=QuestionnaireStatus.DRAFT,
        )
        for q in questions or []:
            q = dict(q)
            options = q.pop("options", [])
            question = Question(**q)
            question.options = [Option(**o) for o in options]
            row.questions.append(question)
        db.add(row)
        await db.flush()
        return row

    # ------------------------------------------------------------------
    # Update: lifecycle
    # ------------------------------------------------------------------

    async def publish(
        self, db: AsyncSession, questionnaire: Questionnaire
    ) -> list[str]:
        """Publish a definition and return the ids it archived.

        For onboarding definitions every other published onboarding is
        archived inside the same transaction, so at most one stays live.
        """
        now = datetime.now(timezone.utc)
        archived: list[str] = []
        if questionnaire.kind == QuestionnaireKind.ONBOARDING:
            stmt = (
                update(Questionnaire)
                .where(
                    Questionnaire.kind == QuestionnaireKind.ONBOARDING,
                    Questionnaire.status == QuestionnaireStatus.PUBLISHED,
                    Questionnaire.id != questionnaire.id,
                )
                .values(status=QuestionnaireStatus.ARCHIVED, updated_at=now)
                .returning(Questionnaire.id)
            )
            result = await db.execute(stmt)
            archived = list(result.scalars().all())

        questionnaire.status = QuestionnaireStatus.PUBLISHED
        questionnaire.published_at = now
        questionnaire.updated_at = now
        await db.flush()
        return archived

    async def archive(self, db: AsyncSession, questionnaire: Questionnaire) -> Questionnaire:
        """Retire a definition."""
        questionnaire.status = QuestionnaireStatus.ARCHIVED
        questionnaire.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return questionnaire


class SessionRepository:
    """Read/write operations on the ``questionnaire_sessions`` table."""

    async def create_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        questionnaire_id: str,
    ) -> QuestionnaireSession:
        """Insert a new in-progress session row and return it."""
        session = QuestionnaireSession(
            user_id=user_id,
            questionnaire_id=questionnaire_id,
            status=SessionStatus.IN_PROGRESS,
        )
        db.add(session)
        await db.flush()
        return session

    async def get_by_id(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> QuestionnaireSession | None:
        """Fetch a session by its primary-key UUID."""
        return await db.get(QuestionnaireSession, session_pk)

    async def get_active_session(
        self, db: AsyncSession, user_id: str, questionnaire_id: str
    ) -> QuestionnaireSession | None:
        """Return the user's in-progress session for a questionnaire, if any.

        If racing callers created more than one, the most recently started
        is returned.
        """
        stmt = (
            select(QuestionnaireSession)
            .where(
                QuestionnaireSession.user_id == user_id,
                QuestionnaireSession.questionnaire_id == questionnaire_id,
                QuestionnaireSession.status == SessionStatus.IN_PROGRESS,
            )
            .order_by(QuestionnaireSession.started_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        questionnaire_id: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[QuestionnaireSession]:
        """List sessions for a user, most recent first."""
        stmt = select(QuestionnaireSession).where(
            QuestionnaireSession.user_id == user_id
        )
        if questionnaire_id is not None:
            stmt = stmt.where(QuestionnaireSession.questionnaire_id == questionnaire_id)
        if status is not None:
            stmt = stmt.where(QuestionnaireSession.status == status)
        stmt = (
            stmt.order_by(QuestionnaireSession.started_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def touch(self, db: AsyncSession, session: QuestionnaireSession) -> None:
        """Bump ``updated_at`` so stale-session cleanup sees recent activity."""
        session.updated_at = datetime.now(timezone.utc)
        await db.flush()

    async def complete_session(
        self,
        db: AsyncSession,
        session: QuestionnaireSession,
        *,
        score: float | None = None,
        result: dict[str, Any] | None = None,
    ) -> QuestionnaireSession:
        """Mark a session completed, storing the score if one was computed."""
        now = datetime.now(timezone.utc)
        session.status = SessionStatus.COMPLETED
        session.score = score
        session.result = result
        session.completed_at = now
        session.updated_at = now
        await db.flush()
        return session

    async def abandon_stale_sessions(
        self, db: AsyncSession, *, older_than_days: int
    ) -> int:
        """Mark in-progress sessions idle for longer than the threshold as abandoned.

        Returns the number of affected rows.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=older_than_days)
        stmt = (
            update(QuestionnaireSession)
            .where(
                QuestionnaireSession.status == SessionStatus.IN_PROGRESS,
                QuestionnaireSession.updated_at < cutoff,
            )
            .values(status=SessionStatus.ABANDONED, updated_at=datetime.now(timezone.utc))
        )
        result = await db.execute(stmt)
        await db.flush()
        return result.rowcount


class ResponseRepository:
    """Upsert and query operations on ``questionnaire_responses``."""

    async def upsert_response(
        self,
        db: AsyncSession,
        *,
        session_id: uuid.UUID,
        question_id: str,
        option_ids: list[str],
        free_text: str | None,
    ) -> QuestionnaireResponse:
        """Write or overwrite the single response row for (session, question).

        Backed by ``INSERT ... ON CONFLICT ON CONSTRAINT uq_session_question
        DO UPDATE`` so the write is idempotent under retries.
        """
        now = datetime.now(timezone.utc)
        stmt = pg_insert(QuestionnaireResponse).values(
            session_id=session_id,
            question_id=question_id,
            option_ids=option_ids,
            free_text=free_text,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="uq_session_question",
            set_={
                "option_ids": stmt.excluded.option_ids,
                "free_text": stmt.excluded.free_text,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(QuestionnaireResponse)
        result = await db.execute(
            stmt, execution_options={"populate_existing": True}
        )
        return result.scalar_one()

    async def list_by_session(
        self, db: AsyncSession, session_id: uuid.UUID
    ) -> list[QuestionnaireResponse]:
        """All current answers of a session, oldest first."""
        stmt = (
            select(QuestionnaireResponse)
            .where(QuestionnaireResponse.session_id == session_id)
            .order_by(QuestionnaireResponse.created_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())


class ProfileRepository:
    """Upserts onto ``caregiver_profiles``."""

    async def get(self, db: AsyncSession, user_id: str) -> CaregiverProfile | None:
        return await db.get(CaregiverProfile, user_id)

    async def upsert_fields(
        self, db: AsyncSession, user_id: str, fields: dict[str, str]
    ) -> None:
        """Write the given profile columns, creating the row if needed.

        Keys outside ``PROFILE_COLUMNS`` raise ``ValueError``.
        """
        unknown = set(fields) - set(PROFILE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)}")
        if not fields:
            return
        now = datetime.now(timezone.utc)
        stmt = pg_insert(CaregiverProfile).values(
            user_id=user_id, created_at=now, updated_at=now, **fields
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[CaregiverProfile.user_id],
            set_={**fields, "updated_at": now},
        )
        await db.execute(stmt)
        await db.flush()
