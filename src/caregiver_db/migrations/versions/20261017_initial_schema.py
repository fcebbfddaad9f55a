"""Create questionnaire graph, session, response and profile tables.

Initial schema for the caregiver questionnaire engine:
  - questionnaires / questionnaire_questions / question_options (the graph)
  - questionnaire_sessions (one row per attempt)
  - questionnaire_responses (one row per question per attempt, upsert target)
  - caregiver_profiles (fields captured from onboarding answers)

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

# revision identifiers, used by Alembic.
revision = "20261017_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def upgrade() -> None:
    # --- Graph: definitions ---
    op.create_table(
        "questionnaires",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'draft'"),
        ),
        sa.Column("scoring_policy", sa.String(20), nullable=True),
        *_timestamps(),
        sa.Column("published_at", TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "kind IN ('onboarding', 'scored', 'generic')",
            name="ck_questionnaire_kind",
        ),
        sa.CheckConstraint(
            "status IN ('draft', 'published', 'archived')",
            name="ck_questionnaire_status",
        ),
        sa.CheckConstraint(
            "status != 'published' OR published_at IS NOT NULL",
            name="ck_published_has_timestamp",
        ),
    )
    op.create_index("ix_questionnaires_kind", "questionnaires", ["kind"])
    op.create_index("ix_questionnaires_status", "questionnaires", ["status"])
    op.create_index(
        "ix_published_kind",
        "questionnaires",
        ["kind"],
        postgresql_where=sa.text("status = 'published'"),
    )

    # --- Graph: questions ---
    op.create_table(
        "questionnaire_questions",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column(
            "questionnaire_id",
            sa.Text,
            sa.ForeignKey("questionnaires.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("response_type", sa.String(20), nullable=False),
        sa.Column("order_index", sa.Integer, nullable=False),
        sa.Column("visibility_rule", JSONB, nullable=True),
        sa.Column("captures_profile_field", sa.String(40), nullable=True),
        sa.Column("entry_point", sa.Boolean, nullable=True),
        sa.UniqueConstraint("questionnaire_id", "order_index", name="uq_question_order"),
        sa.CheckConstraint(
            "response_type IN ('single_choice', 'multi_choice', 'free_text')",
            name="ck_response_type",
        ),
    )
    op.create_index(
        "ix_questionnaire_questions_questionnaire_id",
        "questionnaire_questions",
        ["questionnaire_id"],
    )

    # --- Graph: options (edges live here; next_question_id is not an FK) ---
    op.create_table(
        "question_options",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column(
            "question_id",
            sa.Text,
            sa.ForeignKey("questionnaire_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("label", sa.Text, nullable=False),
        sa.Column("score", sa.Float, nullable=True),
        sa.Column("next_question_id", sa.Text, nullable=True),
        sa.Column("order_index", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("is_phantom", sa.Boolean, nullable=False, server_default=sa.text("false")),
    )
    op.create_index(
        "ix_question_options_question_id", "question_options", ["question_id"]
    )

    # --- Sessions ---
    op.create_table(
        "questionnaire_sessions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Text, nullable=False),
        sa.Column(
            "questionnaire_id",
            sa.Text,
            sa.ForeignKey("questionnaires.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'in_progress'"),
        ),
        sa.Column("score", sa.Float, nullable=True),
        sa.Column("result", JSONB, nullable=True),
        sa.Column(
            "started_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('in_progress', 'completed', 'abandoned')",
            name="ck_session_status",
        ),
        sa.CheckConstraint(
            "status != 'completed' OR completed_at IS NOT NULL",
            name="ck_completed_has_timestamp",
        ),
    )
    op.create_index(
        "ix_questionnaire_sessions_user_id", "questionnaire_sessions", ["user_id"]
    )
    op.create_index(
        "ix_questionnaire_sessions_status", "questionnaire_sessions", ["status"]
    )
    # Non-unique: find-or-create lookup, duplicates from racing tabs allowed
    op.create_index(
        "ix_active_questionnaire_session",
        "questionnaire_sessions",
        ["user_id", "questionnaire_id"],
        postgresql_where=sa.text("status = 'in_progress'"),
    )

    # --- Responses ---
    op.create_table(
        "questionnaire_responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "session_id",
            UUID(as_uuid=True),
            sa.ForeignKey("questionnaire_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "question_id",
            sa.Text,
            sa.ForeignKey("questionnaire_questions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "option_ids",
            JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("free_text", sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("session_id", "question_id", name="uq_session_question"),
    )
    op.create_index(
        "ix_questionnaire_responses_session_id",
        "questionnaire_responses",
        ["session_id"],
    )

    # --- Profiles ---
    op.create_table(
        "caregiver_profiles",
        sa.Column("user_id", sa.Text, primary_key=True),
        sa.Column("name", sa.Text, nullable=True),
        sa.Column("caregiving_subject", sa.Text, nullable=True),
        sa.Column("relationship_type", sa.Text, nullable=True),
        sa.Column("caregiving_duration", sa.Text, nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("caregiver_profiles")
    op.drop_table("questionnaire_responses")
    op.drop_table("questionnaire_sessions")
    op.drop_table("question_options")
    op.drop_table("questionnaire_questions")
    op.drop_table("questionnaires")
