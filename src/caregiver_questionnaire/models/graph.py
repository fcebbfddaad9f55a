"""Question graph models: definitions, questions, options and visibility rules.

A questionnaire is a directed graph.  Questions are the nodes; each option
carries at most one outgoing edge (``next_question_id``), and ``None`` ends
the questionnaire.  Free-text questions own exactly one *phantom* option
that is never shown but carries the branch destination for the typed answer.

``order_index`` is only a weak ordering: the first-question tie-breaker, the
fallback when a question reached by an edge is not visible, and the
progress heuristic.  The real flow is defined by the option edges.

These models mirror the ORM rows in ``caregiver_db.models.questionnaire``
but carry no persistence details, so YAML seed files and database rows load
into the same shape.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from caregiver_db.models.enums import QuestionnaireKind, QuestionnaireStatus, ResponseType
from caregiver_db.models.profile import ProfileField


# --- Visibility ---

class Condition(BaseModel):
    """Satisfied when the answer to ``question_id`` includes an acceptable option."""

    question_id: str
    acceptable_option_ids: list[str] = Field(default_factory=list)


class VisibilityRule(BaseModel):
    """Conditions joined by ``AND`` or ``OR``.

    ``combinator`` is kept as a plain string so an unknown value authored in
    the database can be reported by the evaluator instead of failing to load.
    """

    combinator: str = "AND"
    conditions: list[Condition] = Field(default_factory=list)


# --- Graph nodes ---

class OptionNode(BaseModel):
    """One selectable answer and the edge it follows."""

    id: str
    label: str
    score: Optional[float] = None
    next_question_id: Optional[str] = None
    order_index: int = 0
    is_phantom: bool = False


class QuestionNode(BaseModel):
    """One question of the graph."""

    id: str
    text: str
    description: Optional[str] = None
    response_type: ResponseType = ResponseType.SINGLE_CHOICE
    order_index: int
    visibility_rule: Optional[VisibilityRule] = None
    captures_profile_field: Optional[ProfileField] = None
    # Explicit override of the derived "no incoming edge" entry-point flag
    entry_point: Optional[bool] = None
    options: list[OptionNode] = Field(default_factory=list)

    @property
    def is_free_text(self) -> bool:
        return self.response_type == ResponseType.FREE_TEXT

    @property
    def phantom_option(self) -> OptionNode | None:
        """The hidden edge carrier of a free-text question, if present."""
        for opt in self.options:
            if opt.is_phantom:
                return opt
        return None

    def option(self, option_id: str) -> OptionNode | None:
        for opt in self.options:
            if opt.id == option_id:
                return opt
        return None

    @model_validator(mode="after")
    def _sort_options(self):
        # Multi-choice edge selection depends on option order
        self.options.sort(key=lambda o: o.order_index)
        return self


class QuestionnaireDefinition(BaseModel):
    """A complete questionnaire: metadata plus its question graph."""

    id: str
    title: str
    description: Optional[str] = None
    kind: QuestionnaireKind = QuestionnaireKind.GENERIC
    status: QuestionnaireStatus = QuestionnaireStatus.DRAFT
    scoring_policy: Optional[str] = None
    questions: list[QuestionNode] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self):
        seen: set[str] = set()
        orders: set[int] = set()
        for q in self.questions:
            if q.id in seen:
                raise ValueError(f"duplicate question id {q.id!r} in {self.id!r}")
            if q.order_index in orders:
                raise ValueError(
                    f"duplicate order_index {q.order_index} in {self.id!r}"
                )
            seen.add(q.id)
            orders.add(q.order_index)
        return self


# --- Answers ---

class Choice(BaseModel):
    """A user's answer to one question.

    Choice questions fill ``option_ids``; free-text questions fill
    ``free_text`` and leave ``option_ids`` empty (the phantom option is
    implied).
    """

    option_ids: list[str] = Field(default_factory=list)
    free_text: Optional[str] = None
