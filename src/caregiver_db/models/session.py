"""Session and response ORM models.

A ``QuestionnaireSession`` is one attempt by one user at one questionnaire.
Each ``QuestionnaireResponse`` row is the *current* answer to one question
within that attempt; re-answering overwrites the row, no history is kept.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from caregiver_db.models.base import Base, TimestampMixin, utcnow
from caregiver_db.models.enums import SessionStatus


class QuestionnaireSession(Base):
    """One attempt at a questionnaire.

    At most one ``in_progress`` row per (user_id, questionnaire_id) is the
    intended state, but this is advisory: the SDK uses find-or-create and
    two racing callers can both create a row.
    """

    __tablename__ = "questionnaire_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    questionnaire_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("questionnaires.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[SessionStatus] = mapped_column(
        String(20),
        nullable=False,
        default=SessionStatus.IN_PROGRESS,
        index=True,
    )

    # Written once on completion of a scored questionnaire
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    # Shape: {"policy": "who5", "raw_score": 15, "final_score": 60, "band": {...}}
    result: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('in_progress', 'completed', 'abandoned')",
            name="ck_session_status",
        ),
        CheckConstraint(
            "status != 'completed' OR completed_at IS NOT NULL",
            name="ck_completed_has_timestamp",
        ),
        # Non-unique on purpose: lookup index for find-or-create, not a lock
        Index(
            "ix_active_questionnaire_session",
            "user_id",
            "questionnaire_id",
            postgresql_where=text("status = 'in_progress'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<QuestionnaireSession(id={self.id!s}, user={self.user_id!r}, "
            f"questionnaire={self.questionnaire_id!r}, status={self.status!r})>"
        )


class QuestionnaireResponse(TimestampMixin, Base):
    """The current answer to one question within one session."""

    __tablename__ = "questionnaire_responses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("questionnaire_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("questionnaire_questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Selected option ids; a single element for single-choice and free-text
    # (the phantom option), possibly several for multi-choice
    option_ids: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        server_default=text("'[]'::jsonb"),
    )
    free_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        # Conflict target of the upsert: one answer per question per attempt
        UniqueConstraint("session_id", "question_id", name="uq_session_question"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuestionnaireResponse(session={self.session_id!s}, "
            f"question={self.question_id!r}, options={self.option_ids!r})>"
        )
