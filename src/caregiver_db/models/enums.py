"""Database-level enumerations for questionnaires and sessions."""

import enum


class QuestionnaireKind(str, enum.Enum):
    """What a questionnaire is used for.

    ``onboarding`` feeds the caregiver profile, ``scored`` produces a score
    on completion, ``generic`` only records answers.
    """

    ONBOARDING = "onboarding"
    SCORED = "scored"
    GENERIC = "generic"


class QuestionnaireStatus(str, enum.Enum):
    """Authoring lifecycle of a questionnaire definition.

    Transitions:
        draft -> published   (graph frozen from here on)
        published -> archived
    """

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ScoringPolicy(str, enum.Enum):
    """How a scored questionnaire is reduced to a number."""

    SUM = "sum"
    WHO5 = "who5"


class ResponseType(str, enum.Enum):
    """Answer shape of a question."""

    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"
    FREE_TEXT = "free_text"


class SessionStatus(str, enum.Enum):
    """Lifecycle states for a questionnaire session.

    Transitions:
        in_progress -> completed (last question answered, score written)
        in_progress -> abandoned (stale-session cleanup job only)

    Both terminal states are final; a new attempt opens a new session.
    """

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"
