"""QuestionnaireEngine: the orchestrator for walking a questionnaire graph.

Stateless engine pattern: each call loads the definition and the recorded
answers, replays them from the first question along the chosen edges to
find where the user is, applies the action, and returns the next step.  No
in-memory state is kept between calls.

The engine accepts an ``AsyncSession`` from the caller so that the caller
(typically a FastAPI endpoint) controls transaction boundaries.

Identified users (``user_id``) write through the session manager and the
response store; guests (``buffer``) write to their :class:`GuestBuffer`
and are reconciled later with :meth:`QuestionnaireEngine.sync_guest`.

Replay rules:
    - start at :meth:`QuestionGraph.first_question`
    - an answered question advances along the chosen option's edge
    - a question reached whose visibility rule is not satisfied is skipped
      in favour of the next visible question by ``order_index``
    - the first unanswered visible question is the current one; running
      off a terminal edge means the questionnaire is finished
    - progress is estimated from the question actually served, so after an
      ``order_index`` jump the bounds describe the remaining graph from there
"""

from __future__ import annotations

import logging
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession

from caregiver_db.models.enums import QuestionnaireKind

from caregiver_questionnaire.definitions import DefinitionCatalog
from caregiver_questionnaire.errors import (
    GraphIntegrityError,
    InvalidAnswerError,
)
from caregiver_questionnaire.graph import QuestionGraph
from caregiver_questionnaire.guest import GuestBuffer, GuestSync
from caregiver_questionnaire.interfaces import ProfileWriter
from caregiver_questionnaire.models.graph import Choice, QuestionNode
from caregiver_questionnaire.models.session import (
    CompletionStep,
    QuestionnaireProgress,
    QuestionPayload,
    QuestionStep,
    ScoreResult,
    SessionInfo,
    StepResult,
    SyncResult,
)
from caregiver_questionnaire.progress import ProgressEstimator
from caregiver_questionnaire.responses import ResponseStore, answers_from_records, validate_choice
from caregiver_questionnaire.scoring import ScoringEngine
from caregiver_questionnaire.sessions import SessionManager
from caregiver_questionnaire.textutil import render_question_text, sanitize_string
from caregiver_questionnaire.visibility import VisibilityEvaluator

logger = logging.getLogger(__name__)


class QuestionnaireEngine:
    """Drives one user (or guest) through a questionnaire.

    Args:
        catalog: definition lookup
        sessions: session manager
        responses: response store
        profiles: profile collaborator; when ``None`` captured fields are
            not written and placeholders use their fallbacks
        scoring: scoring engine
    """

    def __init__(
        self,
        *,
        catalog: DefinitionCatalog | None = None,
        sessions: SessionManager | None = None,
        responses: ResponseStore | None = None,
        profiles: ProfileWriter | None = None,
        scoring: ScoringEngine | None = None,
    ) -> None:
        self._catalog = catalog or DefinitionCatalog()
        self._responses = responses or ResponseStore()
        self._scoring = scoring or ScoringEngine()
        self._sessions = sessions or SessionManager(
            responses=self._responses, catalog=self._catalog, scoring=self._scoring,
        )
        self._profiles = profiles
        self._visibility = VisibilityEvaluator()
        self._sync = GuestSync(self._sessions, self._responses, profiles, self._catalog)

    @property
    def catalog(self) -> DefinitionCatalog:
        return self._catalog

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def responses(self) -> ResponseStore:
        return self._responses

    # ==================================================================
    # Step API
    # ==================================================================

    async def get_current_step(
        self,
        db: AsyncSession,
        *,
        questionnaire_id: str,
        user_id: str | None = None,
        buffer: GuestBuffer | None = None,
    ) -> StepResult:
        """Return the question the caller should answer next.

        Read-only: no session is opened until the first answer.  A walk that
        already ran off a terminal edge yields a ``CompletionStep`` without a
        score; call :meth:`complete` to finalise it.
        """
        definition = await self._catalog.get_traversable(db, questionnaire_id)
        graph = QuestionGraph(definition)
        session_id, answers, profile = await self._load_state(
            db, questionnaire_id, user_id, buffer,
        )
        current, path = self._walk(graph, answers)
        if current is None:
            return CompletionStep(questionnaire_id=questionnaire_id, session_id=session_id)
        return self._question_step(graph, current, len(path), session_id, profile)

    async def submit_answer(
        self,
        db: AsyncSession,
        *,
        questionnaire_id: str,
        question_id: str,
        choice: Choice,
        user_id: str | None = None,
        buffer: GuestBuffer | None = None,
    ) -> StepResult:
        """Record an answer and return the next step.

        ``question_id`` must be the current question or one already answered
        on the current path (re-answering overwrites it).  When the answer
        ends the walk, identified sessions are completed (and scored) and a
        ``CompletionStep`` is returned.
        """
        if user_id is None and buffer is None:
            raise ValueError("submit_answer needs a user_id or a guest buffer")

        definition = await self._catalog.get_traversable(db, questionnaire_id)
        graph = QuestionGraph(definition)
        question = graph.get(question_id)
        choice = validate_choice(question, choice)

        session_id, answers, profile = await self._load_state(
            db, questionnaire_id, user_id, buffer,
        )
        current, path = self._walk(graph, answers)
        reachable = set(path)
        if current is not None:
            reachable.add(current.id)
        if question_id not in reachable:
            raise InvalidAnswerError(
                f"Question {question_id!r} is not on the current path of {questionnaire_id!r}"
            )

        captured = self._capture(question, choice)
        if user_id is not None:
            session_id = await self._sessions.get_or_create_active_session(
                db, user_id=user_id, questionnaire_id=questionnaire_id,
            )
            await self._responses.upsert_response(
                db, session_id=session_id, question_id=question_id, choice=choice,
            )
            if captured and self._profiles is not None:
                await self._profiles.write_fields(db, user_id, captured)
        else:
            buffer.upsert_response(questionnaire_id, question_id, choice)
            for field, value in captured.items():
                buffer.capture_field(questionnaire_id, field, value)
        profile = {**profile, **captured}

        answers[question_id] = choice
        current, path = self._walk(graph, answers)
        if current is not None:
            return self._question_step(graph, current, len(path), session_id, profile)

        # Ran off a terminal edge: the questionnaire is finished
        score: ScoreResult | None = None
        if user_id is not None:
            info = await self._sessions.complete_session(
                db, user_id=user_id, questionnaire_id=questionnaire_id,
            )
            if info is not None and info.result is not None:
                score = ScoreResult.model_validate(info.result)
        elif definition.kind == QuestionnaireKind.SCORED:
            score = self._scoring.score(definition, answers)
        return CompletionStep(
            questionnaire_id=questionnaire_id, session_id=session_id, score=score,
        )

    async def complete(
        self, db: AsyncSession, *, questionnaire_id: str, user_id: str
    ) -> SessionInfo | None:
        """Explicitly complete the user's active session (no-op when none)."""
        return await self._sessions.complete_session(
            db, user_id=user_id, questionnaire_id=questionnaire_id,
        )

    async def get_progress(
        self, db: AsyncSession, *, questionnaire_id: str, user_id: str
    ) -> QuestionnaireProgress:
        """Resume summary for the user's active attempt at a questionnaire."""
        definition = await self._catalog.get_traversable(db, questionnaire_id)
        graph = QuestionGraph(definition)
        session_id, answers, _ = await self._load_state(
            db, questionnaire_id, user_id, None, with_profile=False,
        )
        current, path = self._walk(graph, answers)
        progress = None
        if current is not None:
            progress = ProgressEstimator(graph).estimate(current.id, len(path))
        return QuestionnaireProgress(
            questionnaire_id=questionnaire_id,
            session_id=session_id,
            answered=len(path),
            current_question_id=current.id if current is not None else None,
            is_complete=current is None,
            progress=progress,
        )

    # ==================================================================
    # Guest reconciliation
    # ==================================================================

    async def sync_guest(
        self, db: AsyncSession, *, buffer: GuestBuffer, user_id: str
    ) -> SyncResult | None:
        """Move a guest buffer into the user's session (see :class:`GuestSync`).

        If the synced answers already reach the end of the questionnaire the
        session is completed as well.  The buffer is cleared only once that
        step has succeeded too.
        """
        result = await self._sync.sync_to_cloud(db, buffer, user_id, clear=False)
        if result is None:
            return None
        definition = await self._catalog.get_traversable(db, result.questionnaire_id)
        records = await self._responses.list_responses(db, result.session_id)
        current, _ = self._walk(QuestionGraph(definition), answers_from_records(records))
        if current is None:
            await self._sessions.complete_session(
                db, user_id=user_id, questionnaire_id=result.questionnaire_id,
            )
        buffer.clear()
        return result

    # ==================================================================
    # Internal: state loading
    # ==================================================================

    async def _load_state(
        self,
        db: AsyncSession,
        questionnaire_id: str,
        user_id: str | None,
        buffer: GuestBuffer | None,
        *,
        with_profile: bool = True,
    ) -> tuple[str | None, dict[str, Choice], dict[str, str]]:
        """Return (session_id, answers by question id, profile fields)."""
        if user_id is not None:
            profile: dict[str, str] = {}
            if with_profile and self._profiles is not None:
                profile = await self._profiles.read_fields(db, user_id)
            info = await self._sessions.find_active_session(
                db, user_id=user_id, questionnaire_id=questionnaire_id,
            )
            if info is None:
                return None, {}, profile
            records = await self._responses.list_responses(db, info.session_id)
            return info.session_id, answers_from_records(records), profile

        if buffer is not None:
            progress = buffer.load()
            if progress is not None and progress.questionnaire_id == questionnaire_id:
                return None, progress.answers(), dict(progress.captured_fields)
        return None, {}, {}

    # ==================================================================
    # Internal: replay
    # ==================================================================

    def _walk(
        self, graph: QuestionGraph, answers: Mapping[str, Choice]
    ) -> tuple[QuestionNode | None, list[str]]:
        """Replay ``answers`` from the first question.

        Returns the current question (``None`` when finished) and the ids of
        the answered questions on the path, in order.  Answers to questions
        off the path are ignored.
        """
        answered: dict[str, list[str]] = {}
        path: list[str] = []
        visited: set[str] = set()

        node = self._next_visible(graph, graph.first_question(), answered, visited)
        while node is not None:
            choice = answers.get(node.id)
            if choice is None:
                return node, path
            path.append(node.id)
            visited.add(node.id)
            answered[node.id] = self._answered_option_ids(node, choice)

            nxt = graph.next_for_choice(node, choice)
            if nxt is not None and nxt.id in visited:
                raise GraphIntegrityError(
                    f"Cycle detected: {node.id!r} leads back to {nxt.id!r}"
                )
            node = self._next_visible(graph, nxt, answered, visited)
        return None, path

    def _next_visible(
        self,
        graph: QuestionGraph,
        node: QuestionNode | None,
        answered: Mapping[str, list[str]],
        visited: set[str],
    ) -> QuestionNode | None:
        """``node`` if visible, else the next visible unvisited question by order."""
        while node is not None:
            if node.id not in visited:
                if self._visibility.is_visible(node, answered):
                    return node
                logger.warning(
                    "Question %s reached but hidden by its visibility rule; "
                    "falling back to order_index",
                    node.id,
                )
            node = graph.next_in_order(node)
        return None

    @staticmethod
    def _answered_option_ids(question: QuestionNode, choice: Choice) -> list[str]:
        # A free-text answer counts as choosing the phantom option
        if question.is_free_text:
            phantom = question.phantom_option
            return [phantom.id] if phantom is not None else []
        return list(choice.option_ids)

    # ==================================================================
    # Internal: answers
    # ==================================================================

    @staticmethod
    def _capture(question: QuestionNode, choice: Choice) -> dict[str, str]:
        """Profile field written by this answer, if the question captures one."""
        field = question.captures_profile_field
        if field is None:
            return {}
        if question.is_free_text:
            value = choice.free_text
        else:
            labels = [question.option(oid).label for oid in choice.option_ids]
            value = ", ".join(labels)
        value = sanitize_string(value)
        return {field: value} if value else {}

    # ==================================================================
    # Internal: payloads
    # ==================================================================

    def _question_step(
        self,
        graph: QuestionGraph,
        question: QuestionNode,
        answered: int,
        session_id: str | None,
        profile: Mapping[str, str],
    ) -> QuestionStep:
        payload = QuestionPayload(
            question_id=question.id,
            text=render_question_text(question.text, profile),
            description=(
                render_question_text(question.description, profile)
                if question.description else None
            ),
            response_type=question.response_type.value,
            options=[
                {"id": opt.id, "label": opt.label}
                for opt in self._visibility.visible_options(question)
            ],
        )
        return QuestionStep(
            questionnaire_id=graph.definition.id,
            session_id=session_id,
            question=payload,
            progress=ProgressEstimator(graph).estimate(question.id, answered),
        )
