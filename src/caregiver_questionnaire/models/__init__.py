"""Public model re-exports for caregiver_questionnaire.

Consumers should import from ``caregiver_questionnaire.models`` rather than
reaching into sub-modules directly.
"""

# --- Graph ---
from caregiver_questionnaire.models.graph import (
    Choice,
    Condition,
    OptionNode,
    ProfileField,
    QuestionNode,
    QuestionnaireDefinition,
    VisibilityRule,
)

# --- Guest buffer ---
from caregiver_questionnaire.models.guest import GuestProgress, GuestResponse

# --- Session / step / score ---
from caregiver_questionnaire.models.session import (
    CompletionStep,
    GraphProgress,
    QuestionnaireProgress,
    QuestionPayload,
    QuestionStep,
    ResponseRecord,
    ScoreResult,
    SessionInfo,
    StepResult,
    SyncResult,
    WHO5Band,
)

__all__ = [
    # Graph
    "Choice",
    "Condition",
    "OptionNode",
    "ProfileField",
    "QuestionNode",
    "QuestionnaireDefinition",
    "VisibilityRule",
    # Guest
    "GuestProgress",
    "GuestResponse",
    # Session
    "CompletionStep",
    "GraphProgress",
    "QuestionnaireProgress",
    "QuestionPayload",
    "QuestionStep",
    "ResponseRecord",
    "ScoreResult",
    "SessionInfo",
    "StepResult",
    "SyncResult",
    "WHO5Band",
]
