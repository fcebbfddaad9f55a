"""caregiver_questionnaire: graph-driven questionnaire SDK.

Public API:
    QuestionnaireEngine : orchestrates traversal, persistence and completion
    QuestionGraph       : lookup, edge resolution and publish-time validation
    VisibilityEvaluator : AND/OR visibility rules over prior answers
    ProgressEstimator   : "step X of ~N" bounds from the graph shape
    SessionManager      : lazy session creation and single-shot completion
    ResponseStore       : idempotent per-question answer upserts
    ScoringEngine       : sum and WHO-5 scoring
    GuestBuffer         : client-side progress for users not signed in
    GuestSync           : reconciles a guest buffer on sign-in
    DefinitionCatalog   : database lookup / publish / archive of definitions
    DefinitionLoader    : loads YAML definitions from ``definitions/``

Collaborator interfaces:
    ProfileWriter       : ABC for the caregiver profile store
    LocalStorage        : ABC for client-side key/value storage
"""

from caregiver_questionnaire.definitions import (
    DefinitionCatalog,
    DefinitionLoader,
    build_who5_definition,
)
from caregiver_questionnaire.engine import QuestionnaireEngine
from caregiver_questionnaire.errors import (
    DanglingEdgeError,
    DefinitionStateError,
    GraphIntegrityError,
    InvalidAnswerError,
    NotFoundError,
    PersistenceError,
    QuestionnaireError,
    ScoringError,
    SessionClosedError,
    SyncError,
)
from caregiver_questionnaire.graph import QuestionGraph
from caregiver_questionnaire.guest import (
    GuestBuffer,
    GuestSync,
    InMemoryLocalStorage,
    JsonFileStorage,
)
from caregiver_questionnaire.interfaces import LocalStorage, ProfileWriter
from caregiver_questionnaire.models import (
    Choice,
    CompletionStep,
    GraphProgress,
    QuestionnaireDefinition,
    QuestionStep,
    ScoreResult,
    SessionInfo,
    StepResult,
)
from caregiver_questionnaire.progress import ProgressEstimator
from caregiver_questionnaire.responses import ResponseStore
from caregiver_questionnaire.scoring import WHO5_BANDS, ScoringEngine
from caregiver_questionnaire.sessions import SessionManager
from caregiver_questionnaire.visibility import VisibilityEvaluator

__all__ = [
    # Engine & components
    "QuestionnaireEngine",
    "QuestionGraph",
    "VisibilityEvaluator",
    "ProgressEstimator",
    "SessionManager",
    "ResponseStore",
    "ScoringEngine",
    "WHO5_BANDS",
    "GuestBuffer",
    "GuestSync",
    "InMemoryLocalStorage",
    "JsonFileStorage",
    "DefinitionCatalog",
    "DefinitionLoader",
    "build_who5_definition",
    # Interfaces
    "LocalStorage",
    "ProfileWriter",
    # Models
    "Choice",
    "CompletionStep",
    "GraphProgress",
    "QuestionnaireDefinition",
    "QuestionStep",
    "ScoreResult",
    "SessionInfo",
    "StepResult",
    # Errors
    "QuestionnaireError",
    "GraphIntegrityError",
    "DanglingEdgeError",
    "DefinitionStateError",
    "NotFoundError",
    "PersistenceError",
    "SessionClosedError",
    "InvalidAnswerError",
    "ScoringError",
    "SyncError",
]
