"""Questionnaire graph ORM models: definitions, questions and options.

A definition owns its questions, a question owns its options.  Edges of the
graph live on the options (``next_question_id``) and are deliberately *not*
foreign keys: an option may point at a question that was never authored, and
the SDK must be able to surface that as a dangling edge instead of the
database silently nulling it.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from caregiver_db.models.base import Base, TimestampMixin
from caregiver_db.models.enums import QuestionnaireStatus


class Questionnaire(TimestampMixin, Base):
    """One questionnaire definition (onboarding, WHO-5, generic...)."""

    __tablename__ = "questionnaires"

    # Authoring-time identifier (e.g. "who-5"), stable across environments
    id: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    kind: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=QuestionnaireStatus.DRAFT,
        index=True,
    )
    # Only meaningful for kind == "scored": "sum" or "who5"
    scoring_policy: Mapped[str | None] = mapped_column(String(20), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    questions: Mapped[list["Question"]] = relationship(
        back_populates="questionnaire",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('onboarding', 'scored', 'generic')",
            name="ck_questionnaire_kind",
        ),
        CheckConstraint(
            "status IN ('draft', 'published', 'archived')",
            name="ck_questionnaire_status",
        ),
        # Published definitions always carry a publish timestamp
        CheckConstraint(
            "status != 'published' OR published_at IS NOT NULL",
            name="ck_published_has_timestamp",
        ),
        Index(
            "ix_published_kind",
            "kind",
            postgresql_where=text("status = 'published'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Questionnaire(id={self.id!r}, kind={self.kind!r}, "
            f"status={self.status!r})>"
        )


class Question(Base):
    """A node of the questionnaire graph."""

    __tablename__ = "questionnaire_questions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    questionnaire_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("questionnaires.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Weak total order, fallback heuristic only, never the traversal order
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    # {"combinator": "AND"|"OR", "conditions": [{"question_id", "option_ids"}]}
    visibility_rule: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    # Profile field filled from this answer (name, caregiving_subject, ...)
    captures_profile_field: Mapped[str | None] = mapped_column(
        String(40), nullable=True
    )
    # Explicit entry-point override; NULL means "derive from incoming edges"
    entry_point: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    questionnaire: Mapped[Questionnaire] = relationship(back_populates="questions")
    options: Mapped[list["Option"]] = relationship(
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Option.order_index",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("questionnaire_id", "order_index", name="uq_question_order"),
        CheckConstraint(
            "response_type IN ('single_choice', 'multi_choice', 'free_text')",
            name="ck_response_type",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Question(id={self.id!r}, questionnaire={self.questionnaire_id!r}, "
            f"order={self.order_index})>"
        )


class Option(Base):
    """An answer option; ``next_question_id`` is the outgoing edge."""

    __tablename__ = "question_options"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    question_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("questionnaire_questions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    label: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    # NULL ends the questionnaire
    next_question_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Synthetic option of a free-text question, never shown to the user
    is_phantom: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )

    question: Mapped[Question] = relationship(back_populates="options")

    def __repr__(self) -> str:
        return (
            f"<Option(id={self.id!r}, question={self.question_id!r}, "
            f"next={self.next_question_id!r})>"
        )
