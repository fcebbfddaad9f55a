"""ScoringEngine tests: sum policy, WHO-5 scale and band lookup."""

import pytest

from caregiver_db.models.enums import QuestionnaireKind
from caregiver_questionnaire.definitions import build_who5_definition
from caregiver_questionnaire.errors import ScoringError
from caregiver_questionnaire.models.graph import Choice
from caregiver_questionnaire.scoring import WHO5_BANDS, ScoringEngine, who5_band

from helpers.mocks import make_definition, opt


@pytest.fixture
def scoring():
    return ScoringEngine()


def _who5_answers(values, questionnaire_id="who-5"):
    return {
        f"{questionnaire_id}-q{i}": Choice(option_ids=[f"{questionnaire_id}-q{i}-o{v}"])
        for i, v in enumerate(values, start=1)
    }


class TestWHO5Bands:

    def test_bands_partition_zero_to_hundred(self):
        for score in range(0, 101):
            matches = [b for b in WHO5_BANDS if b.min_score <= score <= b.max_score]
            assert len(matches) == 1, f"score {score} falls in {len(matches)} bands"

    def test_band_edges(self):
        assert who5_band(49).label == "Día cansado"
        assert who5_band(50).label == "Día normal"
        assert who5_band(100).label == "Día muy bueno"
        assert who5_band(0).label == "Día de sobrecarga"

    def test_out_of_range_raises(self):
        with pytest.raises(ScoringError):
            who5_band(101)


class TestWHO5Scoring:

    def test_example_answers_score_sixty(self, scoring):
        result = scoring.score_who5([3, 4, 2, 5, 1])
        assert result.raw_score == 15
        assert result.final_score == 60
        assert result.band.label == "Día normal"
        assert result.band.mood == "okay"

    def test_final_score_stays_in_range(self, scoring):
        assert scoring.score_who5([0] * 5).final_score == 0
        assert scoring.score_who5([5] * 5).final_score == 100

    def test_wrong_answer_count_raises(self, scoring):
        with pytest.raises(ScoringError, match="5 answers"):
            scoring.score_who5([3, 4, 2, 5])

    @pytest.mark.parametrize("bad", [6, -1])
    def test_answer_out_of_scale_raises(self, scoring, bad):
        with pytest.raises(ScoringError):
            scoring.score_who5([3, 4, 2, 5, bad])

    def test_score_from_definition(self, scoring):
        definition = build_who5_definition()
        result = scoring.score(definition, _who5_answers([3, 4, 2, 5, 1]))
        assert result.policy == "who5"
        assert result.final_score == 60

    def test_missing_answer_raises(self, scoring):
        definition = build_who5_definition()
        answers = _who5_answers([3, 4, 2, 5])
        with pytest.raises(ScoringError):
            scoring.score(definition, answers)


class TestSumScoring:

    def _definition(self, policy="sum"):
        return make_definition(
            [
                {"id": "q1", "options": [opt("a", "q2", score=2), opt("b", "q2", score=5)]},
                {
                    "id": "q2",
                    "response_type": "multi_choice",
                    "options": [opt("c", "q3", score=1), opt("d", "q3", score=3), opt("e", "q3")],
                },
                {
                    "id": "q3",
                    "response_type": "free_text",
                    "options": [opt("q3-free", is_phantom=True, score=10)],
                },
            ],
            kind=QuestionnaireKind.SCORED,
            scoring_policy=policy,
        )

    def test_sums_selected_option_scores(self, scoring):
        answers = {
            "q1": Choice(option_ids=["b"]),
            "q2": Choice(option_ids=["c", "d", "e"]),
            "q3": Choice(free_text="anything"),
        }
        result = scoring.score(self._definition(), answers)
        assert result.policy == "sum"
        assert result.final_score == 9, "Free text and unscored options add nothing"
        assert result.band is None

    def test_missing_policy_defaults_to_sum(self, scoring):
        result = scoring.score(self._definition(policy=None), {"q1": Choice(option_ids=["a"])})
        assert result.final_score == 2

    def test_unknown_policy_raises(self, scoring):
        with pytest.raises(ScoringError, match="Unknown scoring policy"):
            scoring.score(self._definition(policy="median"), {})
