"""VisibilityEvaluator: decides whether a question should be shown.

A question without a visibility rule is always visible.  Otherwise each
condition is satisfied when the recorded answer to its ``question_id``
shares at least one option with ``acceptable_option_ids``; an unanswered
question never satisfies a condition.  Conditions are joined by ``AND``
(all) or ``OR`` (any).

An empty condition list is visible under neither combinator: a rule must
name at least one condition to let its question through.

Conditions may point at questions that come later in the flow or at the
question itself; such conditions are simply unsatisfied until answered.
"""

from __future__ import annotations

import logging
from typing import Collection, Mapping

from caregiver_questionnaire.models.graph import Condition, OptionNode, QuestionNode

logger = logging.getLogger(__name__)


class VisibilityEvaluator:
    """Evaluates visibility rules against prior answers."""

    def is_visible(
        self,
        question: QuestionNode,
        answered: Mapping[str, Collection[str]],
    ) -> bool:
        """Return True if ``question`` should be shown.

        Args:
            question: the question to test
            answered: option ids chosen so far, keyed by question id
        """
        rule = question.visibility_rule
        if rule is None:
            return True

        combinator = rule.combinator.strip().upper()
        if combinator not in ("AND", "OR"):
            logger.warning(
                "Unknown visibility combinator %r on question %s; showing it",
                rule.combinator, question.id,
            )
            return True

        if not rule.conditions:
            return False

        results = (self._eval_condition(c, answered) for c in rule.conditions)
        if combinator == "AND":
            return all(results)
        return any(results)

    def visible_options(self, question: QuestionNode) -> list[OptionNode]:
        """Options a user can pick; phantom options are never offered."""
        return [opt for opt in question.options if not opt.is_phantom]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _eval_condition(
        cond: Condition, answered: Mapping[str, Collection[str]]
    ) -> bool:
        chosen = answered.get(cond.question_id)
        if not chosen:
            return False
        return not set(chosen).isdisjoint(cond.acceptable_option_ids)
