"""Questionnaire definitions: YAML loading, ORM conversion and the catalog.

Definitions reach the engine from two places:

  - YAML seed files under ``definitions/`` (see :class:`DefinitionLoader`)
  - ``questionnaires`` rows in PostgreSQL (see :func:`definition_from_row`)

Both produce the same :class:`QuestionnaireDefinition` model.
:class:`DefinitionCatalog` is the database-facing entry point used by the
engine and the server: lookup, listing, publish and archive.

Usage::

    loader = DefinitionLoader()          # defaults to definitions/ at repo root
    loader.load()
    who5 = loader.get("who-5")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_db.models.enums import (
    QuestionnaireKind,
    QuestionnaireStatus,
    ResponseType,
    ScoringPolicy,
)
from caregiver_db.models.questionnaire import Questionnaire
from caregiver_db.repository import DefinitionRepository

from caregiver_questionnaire.constants import PHANTOM_OPTION_LABEL, WHO5_DEFINITION_ID
from caregiver_questionnaire.errors import (
    DefinitionStateError,
    NotFoundError,
    translate_store_errors,
)
from caregiver_questionnaire.graph import QuestionGraph
from caregiver_questionnaire.models.graph import (
    Condition,
    OptionNode,
    QuestionNode,
    QuestionnaireDefinition,
    VisibilityRule,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Utility helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to find the repo root (dir with pyproject.toml or .git).

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# ORM <-> model conversion
# ---------------------------------------------------------------------------

def definition_from_row(row: Questionnaire) -> QuestionnaireDefinition:
    """Convert an ORM ``Questionnaire`` (with questions/options loaded)."""
    questions = []
    for q in row.questions:
        rule = None
        if q.visibility_rule:
            rule = VisibilityRule.model_validate(q.visibility_rule)
        questions.append(
            QuestionNode(
                id=q.id,
                text=q.text,
                description=q.description,
                response_type=q.response_type,
                order_index=q.order_index,
                visibility_rule=rule,
                captures_profile_field=q.captures_profile_field,
                entry_point=q.entry_point,
                options=[
                    OptionNode(
                        id=o.id,
                        label=o.label,
                        score=o.score,
                        next_question_id=o.next_question_id,
                        order_index=o.order_index,
                        is_phantom=bool(o.is_phantom),
                    )
                    for o in q.options
                ],
            )
        )
    return QuestionnaireDefinition(
        id=row.id,
        title=row.title,
        description=row.description,
        kind=row.kind,
        status=row.status,
        scoring_policy=row.scoring_policy,
        questions=questions,
    )


def definition_to_rows(definition: QuestionnaireDefinition) -> dict[str, Any]:
    """Keyword arguments for :meth:`DefinitionRepository.create_definition`."""
    questions = []
    for q in definition.questions:
        questions.append({
            "id": q.id,
            "text": q.text,
            "description": q.description,
            "response_type": q.response_type.value,
            "order_index": q.order_index,
            "visibility_rule": (
                q.visibility_rule.model_dump() if q.visibility_rule else None
            ),
            "captures_profile_field": q.captures_profile_field,
            "entry_point": q.entry_point,
            "options": [o.model_dump() for o in q.options],
        })
    return {
        "questionnaire_id": definition.id,
        "title": definition.title,
        "kind": definition.kind.value,
        "description": definition.description,
        "scoring_policy": definition.scoring_policy,
        "questions": questions,
    }


# ---------------------------------------------------------------------------
# WHO-5 template
# ---------------------------------------------------------------------------

WHO5_QUESTIONS: tuple[str, ...] = (
    "Me he sentido alegre y de buen humor.",
    "Me he sentido tranquilo/a y relajado/a.",
    "Me he sentido activo/a y con energía.",
    "Me he despertado sintiéndome fresco/a y descansado/a.",
    "Mi vida cotidiana ha estado llena de cosas que me interesan.",
)

# (label, score) from "all of the time" down to "at no time"
WHO5_OPTIONS: tuple[tuple[str, int], ...] = (
    ("Todo el tiempo", 5),
    ("La mayor parte del tiempo", 4),
    ("Más de la mitad del tiempo", 3),
    ("Menos de la mitad del tiempo", 2),
    ("Alguna vez", 1),
    ("En ningún momento", 0),
)


def build_who5_definition(
    questionnaire_id: str = WHO5_DEFINITION_ID,
    title: str = "Bienestar (WHO-5)",
) -> QuestionnaireDefinition:
    """The standard five-question WHO-5 graph.

    Every option of question *n* leads to question *n + 1*; the options of
    the last question end the questionnaire.  Question ids are
    ``{questionnaire_id}-q1`` .. ``-q5``.
    """
    questions = []
    count = len(WHO5_QUESTIONS)
    for i, text in enumerate(WHO5_QUESTIONS, start=1):
        qid = f"{questionnaire_id}-q{i}"
        nxt = f"{questionnaire_id}-q{i + 1}" if i < count else None
        questions.append(
            QuestionNode(
                id=qid,
                text=text,
                description="En las últimas dos semanas...",
                response_type=ResponseType.SINGLE_CHOICE,
                order_index=i,
                options=[
                    OptionNode(
                        id=f"{qid}-o{score}",
                        label=label,
                        score=score,
                        next_question_id=nxt,
                        order_index=j,
                    )
                    for j, (label, score) in enumerate(WHO5_OPTIONS)
                ],
            )
        )
    return QuestionnaireDefinition(
        id=questionnaire_id,
        title=title,
        description="Índice de bienestar de la OMS (WHO-5).",
        kind=QuestionnaireKind.SCORED,
        scoring_policy=ScoringPolicy.WHO5.value,
        questions=questions,
    )


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

class DefinitionLoader:
    """Loads questionnaire definitions from YAML files.

    Each ``*.yaml`` file holds one definition.  Free-text questions may carry
    a ``next`` key, which becomes their phantom option's edge.  A file with
    ``template: who5`` expands to :func:`build_who5_definition`.

    Args:
        definitions_dir: directory to scan (default: ``definitions/`` at repo root)
    """

    def __init__(self, definitions_dir: Path | str | None = None) -> None:
        if definitions_dir is None:
            definitions_dir = find_repo_root() / "definitions"
        self._dir = Path(definitions_dir)
        self.definitions: dict[str, QuestionnaireDefinition] = {}

    def load(self) -> None:
        """Parse every YAML file in the directory, validating each graph."""
        if not self._dir.is_dir():
            raise FileNotFoundError(f"Definitions directory not found: {self._dir}")
        for path in sorted(self._dir.glob("*.yaml")):
            definition = self.parse(load_yaml(path))
            QuestionGraph(definition).validate()
            self.definitions[definition.id] = definition
            logger.info(
                "Loaded definition %s (%d questions) from %s",
                definition.id, len(definition.questions), path.name,
            )

    def get(self, questionnaire_id: str) -> QuestionnaireDefinition:
        try:
            return self.definitions[questionnaire_id]
        except KeyError:
            raise NotFoundError(f"Definition not found: {questionnaire_id!r}") from None

    @staticmethod
    def parse(data: dict[str, Any]) -> QuestionnaireDefinition:
        """Build a definition from one parsed YAML document."""
        if data.get("template") == "who5":
            return build_who5_definition(
                questionnaire_id=data.get("id", WHO5_DEFINITION_ID),
                title=data.get("title", "Bienestar (WHO-5)"),
            )

        raw_questions = []
        for q in data.get("questions", []):
            q = dict(q)
            nxt = q.pop("next", None)
            if q.get("response_type") == ResponseType.FREE_TEXT.value:
                q.setdefault("options", [])
                q["options"] = list(q["options"]) + [{
                    "id": f"{q['id']}-free",
                    "label": PHANTOM_OPTION_LABEL,
                    "next_question_id": nxt,
                    "is_phantom": True,
                }]
            if "visibility_rule" in q and q["visibility_rule"] is not None:
                rule = q["visibility_rule"]
                q["visibility_rule"] = VisibilityRule(
                    combinator=rule.get("combinator", "AND"),
                    conditions=[Condition(**c) for c in rule.get("conditions", [])],
                )
            raw_questions.append(q)

        return QuestionnaireDefinition.model_validate({**data, "questions": raw_questions})


# ---------------------------------------------------------------------------
# Database catalog
# ---------------------------------------------------------------------------

class DefinitionCatalog:
    """Database-backed lookup and lifecycle operations on definitions.

    Args:
        repo: definition repository (defaults to the PostgreSQL one)
    """

    def __init__(self, repo: DefinitionRepository | None = None) -> None:
        self._repo = repo or DefinitionRepository()

    async def get_definition(
        self, db: AsyncSession, questionnaire_id: str
    ) -> QuestionnaireDefinition:
        """Load a definition by id or raise ``NotFoundError``."""
        row = await self._get_row(db, questionnaire_id)
        return definition_from_row(row)

    async def get_traversable(
        self, db: AsyncSession, questionnaire_id: str
    ) -> QuestionnaireDefinition:
        """Like :meth:`get_definition`, but drafts count as not found.

        Archived definitions stay traversable so attempts started before a
        new version was published can still be finished.
        """
        definition = await self.get_definition(db, questionnaire_id)
        if definition.status == QuestionnaireStatus.DRAFT:
            raise NotFoundError(f"Questionnaire {questionnaire_id!r} is not published")
        return definition

    async def list_published(
        self, db: AsyncSession, *, kind: str | None = None
    ) -> list[QuestionnaireDefinition]:
        with translate_store_errors("list_published"):
            rows = await self._repo.list_published(db, kind=kind)
        return [definition_from_row(r) for r in rows]

    async def create(
        self, db: AsyncSession, definition: QuestionnaireDefinition
    ) -> QuestionnaireDefinition:
        """Store a new definition as a draft."""
        with translate_store_errors("create_definition"):
            row = await self._repo.create_definition(db, **definition_to_rows(definition))
        logger.info("Definition created: %s", definition.id)
        return definition_from_row(row)

    async def publish(self, db: AsyncSession, questionnaire_id: str) -> list[str]:
        """Validate and publish a draft; return the ids archived as a result.

        Publishing an onboarding definition archives the previously
        published onboarding in the same transaction.
        """
        row = await self._get_row(db, questionnaire_id)
        if row.status != QuestionnaireStatus.DRAFT:
            raise DefinitionStateError(
                f"Only draft definitions can be published; "
                f"{questionnaire_id!r} is {row.status}"
            )
        QuestionGraph(definition_from_row(row)).validate()
        with translate_store_errors("publish"):
            archived = await self._repo.publish(db, row)
        logger.info("Definition published: %s (archived: %s)", questionnaire_id, archived)
        return archived

    async def archive(self, db: AsyncSession, questionnaire_id: str) -> None:
        row = await self._get_row(db, questionnaire_id)
        if row.status == QuestionnaireStatus.ARCHIVED:
            return
        with translate_store_errors("archive"):
            await self._repo.archive(db, row)
        logger.info("Definition archived: %s", questionnaire_id)

    async def _get_row(self, db: AsyncSession, questionnaire_id: str) -> Questionnaire:
        with translate_store_errors("get_definition"):
            row = await self._repo.get_by_id(db, questionnaire_id)
        if row is None:
            raise NotFoundError(f"Definition not found: {questionnaire_id!r}")
        return row
