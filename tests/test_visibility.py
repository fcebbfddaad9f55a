"""VisibilityEvaluator tests: AND/OR rules over prior answers."""

import logging

import pytest

from caregiver_questionnaire.models.graph import (
    Condition,
    OptionNode,
    QuestionNode,
    VisibilityRule,
)
from caregiver_questionnaire.visibility import VisibilityEvaluator


def _question(rule=None, options=None):
    return QuestionNode(
        id="target",
        text="Target",
        order_index=10,
        visibility_rule=rule,
        options=options or [OptionNode(id="t-a", label="A")],
    )


def _rule(combinator, *conditions):
    return VisibilityRule(
        combinator=combinator,
        conditions=[
            Condition(question_id=qid, acceptable_option_ids=list(ids))
            for qid, ids in conditions
        ],
    )


@pytest.fixture
def evaluator():
    return VisibilityEvaluator()


class TestIsVisible:

    def test_no_rule_is_visible(self, evaluator):
        assert evaluator.is_visible(_question(), {}) is True

    def test_and_requires_every_condition(self, evaluator):
        q = _question(_rule("AND", ("q1", ["yes"]), ("q2", ["b", "c"])))
        assert evaluator.is_visible(q, {"q1": ["yes"], "q2": ["c"]}) is True
        assert evaluator.is_visible(q, {"q1": ["yes"], "q2": ["a"]}) is False
        assert evaluator.is_visible(q, {"q1": ["yes"]}) is False, (
            "An unanswered question never satisfies a condition"
        )

    def test_or_requires_any_condition(self, evaluator):
        q = _question(_rule("OR", ("q1", ["yes"]), ("q2", ["b"])))
        assert evaluator.is_visible(q, {"q1": ["no"], "q2": ["b"]}) is True
        assert evaluator.is_visible(q, {"q1": ["no"], "q2": ["a"]}) is False
        assert evaluator.is_visible(q, {}) is False

    def test_condition_matches_any_overlap_with_multi_answers(self, evaluator):
        q = _question(_rule("AND", ("q1", ["x"])))
        assert evaluator.is_visible(q, {"q1": ["w", "x", "y"]}) is True

    def test_combinator_is_case_insensitive(self, evaluator):
        q = _question(_rule("or", ("q1", ["yes"])))
        assert evaluator.is_visible(q, {"q1": ["yes"]}) is True

    @pytest.mark.parametrize("combinator", ["AND", "OR"])
    def test_empty_conditions_are_hidden(self, evaluator, combinator):
        q = _question(VisibilityRule(combinator=combinator, conditions=[]))
        assert evaluator.is_visible(q, {"q1": ["yes"]}) is False

    def test_unknown_combinator_shows_question_and_warns(self, evaluator, caplog):
        q = _question(_rule("XOR", ("q1", ["yes"])))
        with caplog.at_level(logging.WARNING, logger="caregiver_questionnaire.visibility"):
            assert evaluator.is_visible(q, {}) is True
        assert "XOR" in caplog.text

    def test_self_reference_is_unsatisfied_until_answered(self, evaluator):
        q = _question(_rule("AND", ("target", ["t-a"])))
        assert evaluator.is_visible(q, {}) is False


class TestVisibleOptions:

    def test_phantom_option_is_never_offered(self, evaluator):
        q = _question(options=[
            OptionNode(id="real", label="Real"),
            OptionNode(id="hidden", label="Respuesta libre", is_phantom=True),
        ])
        assert [o.id for o in evaluator.visible_options(q)] == ["real"]
