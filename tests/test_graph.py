"""QuestionGraph tests: entry points, edge resolution and publish-time validation."""

import pytest

from caregiver_questionnaire.errors import (
    DanglingEdgeError,
    GraphIntegrityError,
    InvalidAnswerError,
    NotFoundError,
)
from caregiver_questionnaire.graph import QuestionGraph
from caregiver_questionnaire.models.graph import Choice

from helpers.mocks import make_definition, opt


def _linear():
    """q1 -> q2 -> q3 -> end."""
    return make_definition([
        {"id": "q1", "options": [opt("q1-a", "q2")]},
        {"id": "q2", "options": [opt("q2-a", "q3")]},
        {"id": "q3", "options": [opt("q3-a")]},
    ])


class TestEntryPoints:

    def test_first_question_is_node_without_incoming_edge(self):
        graph = QuestionGraph(_linear())
        assert graph.first_question().id == "q1", "q1 has no incoming edge"

    def test_first_question_ignores_order_index_of_targets(self):
        """A question listed first but reached by an edge is not the entry."""
        definition = make_definition([
            {"id": "a", "order_index": 1, "options": [opt("a-1")]},
            {"id": "b", "order_index": 2, "options": [opt("b-1", "a")]},
        ])
        assert QuestionGraph(definition).first_question().id == "b"

    def test_lowest_order_index_wins_between_entry_points(self):
        definition = make_definition([
            {"id": "late", "order_index": 5, "options": [opt("l-1")]},
            {"id": "early", "order_index": 2, "options": [opt("e-1")]},
        ])
        graph = QuestionGraph(definition)
        assert [q.id for q in graph.entry_points()] == ["early", "late"]
        assert graph.first_question().id == "early"

    def test_explicit_flag_overrides_derived_value(self):
        definition = make_definition([
            {"id": "q1", "entry_point": False, "options": [opt("q1-a", "q2")]},
            {"id": "q2", "entry_point": True, "options": [opt("q2-a")]},
        ])
        graph = QuestionGraph(definition)
        assert [q.id for q in graph.entry_points()] == ["q2"], (
            "Explicit flags should win over incoming-edge detection"
        )

    def test_empty_graph_has_no_first_question(self):
        graph = QuestionGraph(make_definition([]))
        with pytest.raises(GraphIntegrityError):
            graph.first_question()

    def test_every_node_targeted_has_no_first_question(self):
        definition = make_definition([
            {"id": "q1", "options": [opt("q1-a", "q2")]},
            {"id": "q2", "options": [opt("q2-a", "q1")]},
        ])
        with pytest.raises(GraphIntegrityError):
            QuestionGraph(definition).first_question()


class TestEdgeResolution:

    def test_single_choice_follows_selected_option(self):
        definition = make_definition([
            {"id": "q1", "options": [opt("yes", "q2"), opt("no")]},
            {"id": "q2", "options": [opt("q2-a")]},
        ])
        graph = QuestionGraph(definition)
        q1 = graph.get("q1")
        assert graph.next_for_choice(q1, Choice(option_ids=["yes"])).id == "q2"
        assert graph.next_for_choice(q1, Choice(option_ids=["no"])) is None, (
            "A null edge ends the questionnaire"
        )

    def test_multi_choice_takes_first_non_terminal_edge_in_option_order(self):
        definition = make_definition([
            {
                "id": "q1",
                "response_type": "multi_choice",
                "options": [
                    opt("a", order_index=0),
                    opt("b", "q2", order_index=1),
                    opt("c", "q3", order_index=2),
                ],
            },
            {"id": "q2", "options": [opt("q2-a")]},
            {"id": "q3", "options": [opt("q3-a")]},
        ])
        graph = QuestionGraph(definition)
        q1 = graph.get("q1")
        # Selection order does not matter, option order does
        nxt = graph.next_for_choice(q1, Choice(option_ids=["c", "a", "b"]))
        assert nxt.id == "q2"

    def test_multi_choice_all_terminal_ends(self):
        definition = make_definition([
            {
                "id": "q1",
                "response_type": "multi_choice",
                "options": [opt("a"), opt("b")],
            },
        ])
        graph = QuestionGraph(definition)
        assert graph.next_for_choice(graph.get("q1"), Choice(option_ids=["a", "b"])) is None

    def test_free_text_follows_phantom_option(self):
        definition = make_definition([
            {
                "id": "name",
                "response_type": "free_text",
                "options": [opt("name-free", "q2", is_phantom=True)],
            },
            {"id": "q2", "options": [opt("q2-a")]},
        ])
        graph = QuestionGraph(definition)
        nxt = graph.next_for_choice(graph.get("name"), Choice(free_text="Ana"))
        assert nxt.id == "q2"

    def test_no_selected_option_is_invalid(self):
        graph = QuestionGraph(_linear())
        with pytest.raises(InvalidAnswerError):
            graph.next_for_choice(graph.get("q1"), Choice(option_ids=["nope"]))

    def test_dangling_edge_raises_with_ids(self):
        definition = make_definition([
            {"id": "q1", "options": [opt("q1-a", "ghost")]},
        ])
        graph = QuestionGraph(definition)
        with pytest.raises(DanglingEdgeError) as exc_info:
            graph.next_for_choice(graph.get("q1"), Choice(option_ids=["q1-a"]))
        assert exc_info.value.option_id == "q1-a"
        assert exc_info.value.next_question_id == "ghost"

    def test_unknown_question_raises_not_found(self):
        with pytest.raises(NotFoundError):
            QuestionGraph(_linear()).get("missing")

    def test_next_in_order(self):
        graph = QuestionGraph(_linear())
        assert graph.next_in_order(graph.get("q1")).id == "q2"
        assert graph.next_in_order(graph.get("q3")) is None


class TestValidate:

    def test_linear_graph_is_valid(self):
        QuestionGraph(_linear()).validate()

    def test_seed_definitions_are_valid(self, loader):
        for definition in loader.definitions.values():
            QuestionGraph(definition).validate()

    def test_two_entry_points_rejected(self):
        definition = make_definition([
            {"id": "q1", "options": [opt("q1-a")]},
            {"id": "q2", "options": [opt("q2-a")]},
        ])
        with pytest.raises(GraphIntegrityError, match="exactly one entry point"):
            QuestionGraph(definition).validate()

    def test_dangling_edge_rejected(self):
        definition = make_definition([
            {"id": "q1", "options": [opt("q1-a", "ghost")]},
        ])
        with pytest.raises(DanglingEdgeError):
            QuestionGraph(definition).validate()

    def test_free_text_without_phantom_rejected(self):
        definition = make_definition([
            {"id": "q1", "response_type": "free_text", "options": []},
        ])
        with pytest.raises(GraphIntegrityError, match="phantom"):
            QuestionGraph(definition).validate()

    def test_choice_question_without_options_rejected(self):
        definition = make_definition([
            {"id": "q1", "options": []},
        ])
        with pytest.raises(GraphIntegrityError, match="no options"):
            QuestionGraph(definition).validate()

    def test_visibility_reference_to_unknown_question_rejected(self):
        definition = make_definition([
            {
                "id": "q1",
                "options": [opt("q1-a")],
                "visibility_rule": {
                    "combinator": "AND",
                    "conditions": [{"question_id": "ghost", "acceptable_option_ids": ["x"]}],
                },
            },
        ])
        with pytest.raises(GraphIntegrityError, match="ghost"):
            QuestionGraph(definition).validate()

    def test_cycle_rejected(self):
        definition = make_definition([
            {"id": "q1", "options": [opt("q1-a", "q2")]},
            {"id": "q2", "options": [opt("q2-a", "q3")]},
            {"id": "q3", "options": [opt("q3-a", "q2"), opt("q3-b")]},
        ])
        graph = QuestionGraph(definition)
        assert graph.find_cycle() == ["q2", "q3", "q2"]
        with pytest.raises(GraphIntegrityError, match="cycle"):
            graph.validate()
