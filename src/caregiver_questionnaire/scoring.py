"""ScoringEngine: reduces a completed session's answers to a score.

Two policies are supported, selected by the definition's ``scoring_policy``:

  - ``sum``: the sum of the chosen options' scores.  Free-text answers and
    unscored options contribute 0.
  - ``who5``: the WHO-5 wellbeing index.  Exactly five answers on a 0-5
    scale; ``raw = sum`` (0-25) and ``final = raw * 4`` (0-100), mapped to
    one of seven qualitative bands.

Bands are inclusive on both ends and partition 0-100 without gaps.
"""

from __future__ import annotations

import logging
from typing import Sequence

from caregiver_db.models.enums import ScoringPolicy

from caregiver_questionnaire.constants import (
    DEFAULT_SCORING_POLICY,
    WHO5_MAX_ANSWER,
    WHO5_QUESTION_COUNT,
    WHO5_SCORE_FACTOR,
)
from caregiver_questionnaire.errors import ScoringError
from caregiver_questionnaire.models.graph import Choice, QuestionnaireDefinition
from caregiver_questionnaire.models.session import ScoreResult, WHO5Band

logger = logging.getLogger(__name__)

# Highest band first, so lookups read top-down like the published table.
WHO5_BANDS: tuple[WHO5Band, ...] = (
    WHO5Band(
        min_score=85, max_score=100, label="Día muy bueno", mood="calm",
        description=(
            "Tu bienestar es excelente. Estás experimentando una sensación "
            "profunda de calma y plenitud."
        ),
    ),
    WHO5Band(
        min_score=70, max_score=84, label="Día tranquilo", mood="calm",
        description=(
            "Te encuentras en buen estado. La serenidad y el equilibrio "
            "predominan en tu vida."
        ),
    ),
    WHO5Band(
        min_score=50, max_score=69, label="Día normal", mood="okay",
        description=(
            "Tu bienestar es moderado. Estás saliendo adelante con altibajos "
            "habituales."
        ),
    ),
    WHO5Band(
        min_score=35, max_score=49, label="Día cansado", mood="mixed",
        description=(
            "Percibes cierto agotamiento. Es un buen momento para descansar "
            "y cuidarte."
        ),
    ),
    WHO5Band(
        min_score=20, max_score=34, label="Día estresante", mood="challenging",
        description=(
            "Estás atravesando un momento de tensión. Procura buscar apoyo "
            "y espacios de alivio."
        ),
    ),
    WHO5Band(
        min_score=10, max_score=19, label="Día cuesta arriba", mood="challenging",
        description=(
            "El peso del día se hace notar. No estás solo/a — hablar con "
            "alguien puede ayudar."
        ),
    ),
    WHO5Band(
        min_score=0, max_score=9, label="Día de sobrecarga", mood="challenging",
        description=(
            "Tu nivel de bienestar es muy bajo. Considera buscar apoyo "
            "profesional cuanto antes."
        ),
    ),
)


def who5_band(score: float) -> WHO5Band:
    """Return the band containing ``score`` (0-100)."""
    for band in WHO5_BANDS:
        if band.min_score <= score <= band.max_score:
            return band
    raise ScoringError(f"WHO-5 score out of range: {score}")


class ScoringEngine:
    """Applies a definition's scoring policy to its answers."""

    def score(
        self,
        definition: QuestionnaireDefinition,
        answers: dict[str, Choice],
    ) -> ScoreResult:
        """Score ``answers`` (keyed by question id) under the definition's policy."""
        policy = definition.scoring_policy or DEFAULT_SCORING_POLICY
        if policy == ScoringPolicy.WHO5:
            values = self._who5_values(definition, answers)
            return self.score_who5(values)
        if policy == ScoringPolicy.SUM:
            return self.score_sum(definition, answers)
        raise ScoringError(
            f"Unknown scoring policy {policy!r} on {definition.id!r}"
        )

    def score_sum(
        self,
        definition: QuestionnaireDefinition,
        answers: dict[str, Choice],
    ) -> ScoreResult:
        total = 0.0
        for question in definition.questions:
            choice = answers.get(question.id)
            if choice is None or question.is_free_text:
                continue
            for option_id in choice.option_ids:
                opt = question.option(option_id)
                if opt is not None and opt.score is not None:
                    total += opt.score
        return ScoreResult(policy=ScoringPolicy.SUM.value, raw_score=total, final_score=total)

    def score_who5(self, values: Sequence[int]) -> ScoreResult:
        """Score five 0-5 answers on the WHO-5 scale."""
        if len(values) != WHO5_QUESTION_COUNT:
            raise ScoringError(
                f"WHO-5 needs {WHO5_QUESTION_COUNT} answers, got {len(values)}"
            )
        for v in values:
            if not 0 <= v <= WHO5_MAX_ANSWER or int(v) != v:
                raise ScoringError(f"WHO-5 answer out of range: {v}")
        raw = sum(values)
        final = raw * WHO5_SCORE_FACTOR
        band = who5_band(final)
        logger.debug("WHO-5 raw=%d final=%d band=%s", raw, final, band.label)
        return ScoreResult(
            policy=ScoringPolicy.WHO5.value,
            raw_score=raw,
            final_score=final,
            band=band,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _who5_values(
        definition: QuestionnaireDefinition, answers: dict[str, Choice]
    ) -> list[int]:
        """Per-question option scores, in question order."""
        values: list[int] = []
        for question in sorted(definition.questions, key=lambda q: q.order_index):
            choice = answers.get(question.id)
            if choice is None:
                continue
            if len(choice.option_ids) != 1:
                raise ScoringError(
                    f"WHO-5 question {question.id!r} needs exactly one option"
                )
            opt = question.option(choice.option_ids[0])
            if opt is None or opt.score is None:
                raise ScoringError(
                    f"Answer to {question.id!r} has no score"
                )
            values.append(_as_int(opt.score))
        return values


def _as_int(value: float) -> int:
    if int(value) != value:
        raise ScoringError(f"WHO-5 answer is not an integer: {value}")
    return int(value)

