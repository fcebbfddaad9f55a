"""Session, step and score models: the contract between the engine and API callers.

These models define what the engine returns for each user action.  They
are intentionally decoupled from the ORM models in ``caregiver_db`` so that
API consumers never see database internals.

Step types:
  - QuestionStep: present the next question to the user
  - CompletionStep: the questionnaire ended, optionally with a score

The ``StepResult`` union covers both cases so callers can dispatch on ``type``.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SessionInfo(BaseModel):
    """Public view of a questionnaire session.

    Maps from the ORM ``QuestionnaireSession`` model but exposes only what
    external callers need.
    """

    session_id: str
    user_id: str
    questionnaire_id: str
    status: str
    score: Optional[float] = None
    result: Optional[dict] = None
    started_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class ResponseRecord(BaseModel):
    """The current answer to one question within a session."""

    session_id: str
    question_id: str
    option_ids: list[str] = Field(default_factory=list)
    free_text: Optional[str] = None
    updated_at: Optional[datetime] = None


class GraphProgress(BaseModel):
    """Step counter derived from the graph shape.

    ``max_steps`` assumes the longest remaining branch is taken;
    ``min_remaining`` counts the questions left on the shortest one.
    """

    current_step: int
    max_steps: int
    min_remaining: int


class QuestionPayload(BaseModel):
    """Flattened question for API consumers.

    Phantom options are stripped and placeholders in the text are rendered.
    """

    question_id: str
    text: str
    description: Optional[str] = None
    response_type: str
    # [{id, label}] for choice questions, empty for free text
    options: list[dict] = Field(default_factory=list)


class WHO5Band(BaseModel):
    """One qualitative band of the 0-100 WHO-5 scale (inclusive bounds)."""

    min_score: int
    max_score: int
    label: str
    mood: Literal["calm", "okay", "mixed", "challenging"]
    description: str


class ScoreResult(BaseModel):
    """Outcome of reducing a completed session to a number."""

    policy: str
    raw_score: float
    final_score: float
    band: Optional[WHO5Band] = None


class QuestionStep(BaseModel):
    """Engine step: present one question and wait for the answer."""

    type: Literal["question"] = "question"
    questionnaire_id: str
    session_id: Optional[str] = None
    question: QuestionPayload
    progress: GraphProgress


class CompletionStep(BaseModel):
    """Engine step: the questionnaire ended.

    ``session_id`` is ``None`` for guests; ``score`` is ``None`` unless the
    questionnaire is of kind ``scored``.
    """

    type: Literal["completed"] = "completed"
    questionnaire_id: str
    session_id: Optional[str] = None
    score: Optional[ScoreResult] = None


# Callers can match on step.type to dispatch rendering logic.
StepResult = QuestionStep | CompletionStep


class QuestionnaireProgress(BaseModel):
    """Resume summary of a user's attempt at one questionnaire."""

    questionnaire_id: str
    session_id: Optional[str] = None
    answered: int
    current_question_id: Optional[str] = None
    is_complete: bool
    progress: Optional[GraphProgress] = None


class SyncResult(BaseModel):
    """Outcome of reconciling a guest buffer into durable storage."""

    session_id: str
    questionnaire_id: str
    responses_synced: int
    profile_fields: list[str] = Field(default_factory=list)
