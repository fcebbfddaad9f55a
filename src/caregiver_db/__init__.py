"""caregiver_db: PostgreSQL persistence layer for questionnaire sessions.

This package provides the ORM models, async engine factory, and repositories
for questionnaire definitions, sessions, responses and caregiver profiles.
It is consumed by the questionnaire SDK and the FastAPI server.
"""

from caregiver_db.engine import get_engine, get_session_factory, session_scope
from caregiver_db.models.enums import QuestionnaireStatus, SessionStatus
from caregiver_db.models.questionnaire import Option, Question, Questionnaire
from caregiver_db.models.session import QuestionnaireResponse, QuestionnaireSession
from caregiver_db.repository import (
    DefinitionRepository,
    ProfileRepository,
    ResponseRepository,
    SessionRepository,
)

__all__ = [
    "DefinitionRepository",
    "Option",
    "ProfileRepository",
    "Question",
    "Questionnaire",
    "QuestionnaireResponse",
    "QuestionnaireSession",
    "QuestionnaireStatus",
    "ResponseRepository",
    "SessionRepository",
    "SessionStatus",
    "get_engine",
    "get_session_factory",
    "session_scope",
]
