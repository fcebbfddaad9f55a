"""ORM models for caregiver_db."""

from caregiver_db.models.base import Base
from caregiver_db.models.enums import (
    QuestionnaireKind,
    QuestionnaireStatus,
    ResponseType,
    ScoringPolicy,
    SessionStatus,
)
from caregiver_db.models.profile import CaregiverProfile
from caregiver_db.models.questionnaire import Option, Question, Questionnaire
from caregiver_db.models.session import QuestionnaireResponse, QuestionnaireSession

__all__ = [
    "Base",
    "CaregiverProfile",
    "Option",
    "Question",
    "Questionnaire",
    "QuestionnaireKind",
    "QuestionnaireResponse",
    "QuestionnaireSession",
    "QuestionnaireStatus",
    "ResponseType",
    "ScoringPolicy",
    "SessionStatus",
]
