"""QuestionGraph: lookup and edge resolution over a questionnaire definition.

The graph is built from a :class:`QuestionnaireDefinition` once per call and
is read-only.  It answers three questions for the traversal engine:

  - where does the questionnaire start (:meth:`first_question`)
  - where does a chosen option lead (:meth:`resolve_next`, :meth:`next_for_choice`)
  - is the graph fit to be published (:meth:`validate`)

Usage::

    graph = QuestionGraph(definition)
    q = graph.first_question()
    nxt = graph.next_for_choice(q, Choice(option_ids=["opt-a"]))
"""

from __future__ import annotations

import logging

from caregiver_db.models.enums import ResponseType

from caregiver_questionnaire.errors import (
    DanglingEdgeError,
    GraphIntegrityError,
    InvalidAnswerError,
    NotFoundError,
)
from caregiver_questionnaire.models.graph import (
    Choice,
    OptionNode,
    QuestionNode,
    QuestionnaireDefinition,
)

logger = logging.getLogger(__name__)


class QuestionGraph:
    """Read-only view of a definition's questions and option edges.

    Args:
        definition: the questionnaire to wrap
    """

    def __init__(self, definition: QuestionnaireDefinition) -> None:
        self._definition = definition
        self._by_id: dict[str, QuestionNode] = {q.id: q for q in definition.questions}
        self._ordered: list[QuestionNode] = sorted(
            definition.questions, key=lambda q: q.order_index
        )

    @property
    def definition(self) -> QuestionnaireDefinition:
        return self._definition

    @property
    def questions(self) -> list[QuestionNode]:
        """All questions sorted by ``order_index``."""
        return list(self._ordered)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, question_id: str) -> QuestionNode:
        """Return the question with this id or raise ``NotFoundError``."""
        try:
            return self._by_id[question_id]
        except KeyError:
            raise NotFoundError(
                f"Question not found: {question_id!r} in {self._definition.id!r}"
            ) from None

    def entry_points(self) -> list[QuestionNode]:
        """Questions with no incoming edge, in ``order_index`` order.

        An explicit ``entry_point`` flag on a question overrides the derived
        value in either direction.
        """
        targets = {
            opt.next_question_id
            for q in self._ordered
            for opt in q.options
            if opt.next_question_id is not None
        }
        result = []
        for q in self._ordered:
            if q.entry_point is not None:
                if q.entry_point:
                    result.append(q)
            elif q.id not in targets:
                result.append(q)
        return result

    def first_question(self) -> QuestionNode:
        """The entry point with the lowest ``order_index``.

        Raises ``GraphIntegrityError`` for an empty graph or when every
        question has an incoming edge.
        """
        if not self._ordered:
            raise GraphIntegrityError(
                f"Questionnaire {self._definition.id!r} has no questions"
            )
        entries = self.entry_points()
        if not entries:
            raise GraphIntegrityError(
                f"Questionnaire {self._definition.id!r} has no entry point"
            )
        return entries[0]

    def next_in_order(self, question: QuestionNode) -> QuestionNode | None:
        """The question immediately after ``question`` by ``order_index``."""
        for q in self._ordered:
            if q.order_index > question.order_index:
                return q
        return None

    # ------------------------------------------------------------------
    # Edge resolution
    # ------------------------------------------------------------------

    def resolve_next(self, option: OptionNode) -> QuestionNode | None:
        """Follow an option's edge.

        Returns ``None`` when the option ends the questionnaire and raises
        ``DanglingEdgeError`` when it points at an unknown question.
        """
        if option.next_question_id is None:
            return None
        target = self._by_id.get(option.next_question_id)
        if target is None:
            raise DanglingEdgeError(option.id, option.next_question_id)
        return target

    def successors(self, question: QuestionNode) -> list[QuestionNode | None]:
        """Resolved targets of every option edge, ``None`` for terminal edges."""
        return [self.resolve_next(opt) for opt in question.options]

    def edge_for_choice(self, question: QuestionNode, choice: Choice) -> OptionNode | None:
        """Pick the option whose edge a choice follows.

        - single choice: the selected option
        - multi choice: the first selected option, in option order, whose
          edge is not terminal; if all are terminal, the first selected
        - free text: the phantom option

        Returns ``None`` only for a free-text question without a phantom
        option (treated as terminal).
        """
        if question.is_free_text:
            return question.phantom_option

        selected = [opt for opt in question.options if opt.id in set(choice.option_ids)]
        if not selected:
            raise InvalidAnswerError(
                f"No option of question {question.id!r} was selected"
            )
        if question.response_type == ResponseType.MULTI_CHOICE:
            for opt in selected:
                if opt.next_question_id is not None:
                    return opt
        return selected[0]

    def next_for_choice(self, question: QuestionNode, choice: Choice) -> QuestionNode | None:
        """Where the questionnaire goes after ``question`` is answered with ``choice``."""
        option = self.edge_for_choice(question, choice)
        if option is None:
            return None
        return self.resolve_next(option)

    # ------------------------------------------------------------------
    # Publish-time validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check that the graph can be traversed safely.

        Raises on the first problem found, in this order:

          1. empty graph or not exactly one entry point → ``GraphIntegrityError``
          2. option edge to an unknown question → ``DanglingEdgeError``
          3. free-text question without exactly one phantom option, or a
             choice question carrying a phantom option → ``GraphIntegrityError``
          4. visibility condition referencing an unknown question →
             ``GraphIntegrityError``
          5. a cycle along option edges → ``GraphIntegrityError``
        """
        qid = self._definition.id
        if not self._ordered:
            raise GraphIntegrityError(f"Questionnaire {qid!r} has no questions")

        entries = self.entry_points()
        if len(entries) != 1:
            raise GraphIntegrityError(
                f"Questionnaire {qid!r} must have exactly one entry point, "
                f"found {[q.id for q in entries]}"
            )

        for q in self._ordered:
            self.successors(q)

        for q in self._ordered:
            phantoms = [opt for opt in q.options if opt.is_phantom]
            if q.is_free_text and len(phantoms) != 1:
                raise GraphIntegrityError(
                    f"Free-text question {q.id!r} must own exactly one phantom "
                    f"option, found {len(phantoms)}"
                )
            if not q.is_free_text and phantoms:
                raise GraphIntegrityError(
                    f"Choice question {q.id!r} must not own a phantom option"
                )
            if not q.is_free_text and not q.options:
                raise GraphIntegrityError(f"Choice question {q.id!r} has no options")

        for q in self._ordered:
            if q.visibility_rule is None:
                continue
            for cond in q.visibility_rule.conditions:
                if cond.question_id not in self._by_id:
                    raise GraphIntegrityError(
                        f"Visibility rule of {q.id!r} references unknown "
                        f"question {cond.question_id!r}"
                    )

        cycle = self.find_cycle()
        if cycle:
            raise GraphIntegrityError(
                f"Questionnaire {qid!r} contains a cycle: {' -> '.join(cycle)}"
            )
        logger.debug("Graph %s validated (%d questions)", qid, len(self._ordered))

    def find_cycle(self) -> list[str] | None:
        """Return one cycle as a list of question ids, or ``None`` if acyclic."""
        done: set[str] = set()

        for root in self._ordered:
            if root.id in done:
                continue
            # Iterative DFS; ``path`` holds the grey (in-progress) nodes
            path: list[str] = []
            on_path: set[str] = set()
            stack: list[tuple[QuestionNode, int]] = [(root, 0)]
            while stack:
                node, idx = stack.pop()
                if idx == 0:
                    path.append(node.id)
                    on_path.add(node.id)
                targets = [t for t in self.successors(node) if t is not None]
                if idx < len(targets):
                    stack.append((node, idx + 1))
                    nxt = targets[idx]
                    if nxt.id in on_path:
                        return path[path.index(nxt.id):] + [nxt.id]
                    if nxt.id not in done:
                        stack.append((nxt, 0))
                else:
                    path.pop()
                    on_path.discard(node.id)
                    done.add(node.id)
        return None
