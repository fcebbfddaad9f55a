"""ProgressEstimator: step counters derived from the shape of the graph.

From the current question it measures the longest and the shortest path,
in option edges, to any terminal option.  Visibility is ignored: the
estimate is an upper/lower bound on the structure, not a prediction.

    current_step  = answered + 1
    max_steps     = answered + 1 + longest
    min_remaining = shortest

A question whose options are all terminal has longest = shortest = 0.
"""

from __future__ import annotations

from collections import deque

from caregiver_questionnaire.errors import GraphIntegrityError
from caregiver_questionnaire.graph import QuestionGraph
from caregiver_questionnaire.models.graph import QuestionNode
from caregiver_questionnaire.models.session import GraphProgress


class ProgressEstimator:
    """Longest/shortest remaining path over a :class:`QuestionGraph`.

    Longest-path results are memoised per estimator, so reuse one instance
    for repeated queries against the same graph.
    """

    def __init__(self, graph: QuestionGraph) -> None:
        self._graph = graph
        self._longest: dict[str, int] = {}

    def estimate(self, current_question_id: str, answered: int) -> GraphProgress:
        """Progress for a user sitting on ``current_question_id``."""
        question = self._graph.get(current_question_id)
        longest = self.longest_remaining(question)
        shortest = self.shortest_remaining(question)
        return GraphProgress(
            current_step=answered + 1,
            max_steps=answered + 1 + longest,
            min_remaining=shortest,
        )

    def longest_remaining(self, question: QuestionNode) -> int:
        """Edges on the longest path from ``question`` to a terminal option.

        Raises ``GraphIntegrityError`` if a cycle is reachable and
        ``DanglingEdgeError`` for an edge to an unknown question.
        """
        return self._dfs(question, set())

    def shortest_remaining(self, question: QuestionNode) -> int:
        """Edges on the shortest path from ``question`` to a terminal option.

        Breadth-first, so the first question reached that owns a terminal
        option (or no options at all) gives the answer.
        """
        queue: deque[tuple[QuestionNode, int]] = deque([(question, 0)])
        seen = {question.id}
        while queue:
            node, depth = queue.popleft()
            targets = self._graph.successors(node)
            if not targets or any(t is None for t in targets):
                return depth
            for target in targets:
                if target.id not in seen:
                    seen.add(target.id)
                    queue.append((target, depth + 1))
        raise GraphIntegrityError(
            f"No terminal option reachable from question {question.id!r}"
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dfs(self, node: QuestionNode, in_progress: set[str]) -> int:
        if node.id in self._longest:
            return self._longest[node.id]
        if node.id in in_progress:
            raise GraphIntegrityError(
                f"Cycle detected through question {node.id!r}"
            )
        in_progress.add(node.id)
        best = 0
        for target in self._graph.successors(node):
            if target is None:
                continue
            best = max(best, 1 + self._dfs(target, in_progress))
        in_progress.discard(node.id)
        self._longest[node.id] = best
        return best
