"""Tests for the scoring evaluator.

Tests cover:
1. Reference scenarios (aggressive profile, need exceeding capacity)
2. Determinism: identical inputs give identical results
3. Rule semantics: lookup, transform clamp, scale, multi-select mean
4. Tolerated anomalies are scored 0 and recorded as diagnostics
5. Engine integrity errors are raised, never defaulted
"""

from __future__ import annotations

import logging
from typing import Any

import pytest

from riskprofile.scoring.config import (
    LookupRule,
    ScaleRule,
    ScoringConfiguration,
    TransformRule,
)
from riskprofile.scoring.evaluator import (
    EngineIntegrityError,
    ScoringEvaluator,
    evaluate,
    score_input,
)
from riskprofile.scoring.models import DiagnosticReason
from riskprofile.scoring.reference import NEED_EXCEEDS_CAPACITY_MESSAGE, reference_config


class TestReferenceScenarios:
    def test_aggressive_profile(self, aggressive_answers: dict[str, Any]) -> None:
        result = evaluate(reference_config(), aggressive_answers)

        assert result.pillar_scores["capacity"] == pytest.approx(83.25)
        assert result.pillar_scores["tolerance"] == pytest.approx(80.5)
        assert result.pillar_scores["need"] == pytest.approx(85.0)
        assert result.decision == pytest.approx(80.5)
        assert result.bucket == "Aggressive"
        assert result.warnings == []
        assert result.diagnostics == []

    def test_need_exceeds_capacity(self, need_exceeds_capacity_answers: dict[str, Any]) -> None:
        result = evaluate(reference_config(), need_exceeds_capacity_answers)

        assert result.pillar_scores["capacity"] == pytest.approx(45.25)
        assert result.pillar_scores["tolerance"] == pytest.approx(20.0)
        assert result.pillar_scores["need"] == pytest.approx(95.0)
        assert result.decision == pytest.approx(20.0)
        assert result.bucket == "Conservative"
        assert result.warnings == [NEED_EXCEEDS_CAPACITY_MESSAGE]

    def test_pillars_in_document_order(self, aggressive_answers: dict[str, Any]) -> None:
        result = evaluate(reference_config(), aggressive_answers)

        assert list(result.pillar_scores) == ["capacity", "tolerance", "need"]

    def test_outcome_excludes_diagnostics(self, aggressive_answers: dict[str, Any]) -> None:
        outcome = evaluate(reference_config(), aggressive_answers).outcome()

        assert set(outcome) == {"pillar_scores", "decision", "bucket", "warnings"}


class TestDeterminism:
    def test_repeated_evaluation_is_identical(self, aggressive_answers: dict[str, Any]) -> None:
        evaluator = ScoringEvaluator(reference_config())

        first = evaluator.evaluate(aggressive_answers)
        for _ in range(20):
            assert evaluator.evaluate(aggressive_answers) == first

    def test_fresh_evaluators_agree(self, need_exceeds_capacity_answers: dict[str, Any]) -> None:
        a = evaluate(reference_config(), need_exceeds_capacity_answers)
        b = evaluate(reference_config(), dict(reversed(need_exceeds_capacity_answers.items())))

        assert a.model_dump() == b.model_dump()

    def test_extra_answers_are_ignored(self, aggressive_answers: dict[str, Any]) -> None:
        baseline = evaluate(reference_config(), aggressive_answers)

        with_extra = evaluate(reference_config(), {**aggressive_answers, "favourite_colour": "blue"})

        assert with_extra == baseline


class TestScoreInput:
    LOOKUP = LookupRule(table={"12": 85, "Buy more": 85, "Sell": 20})
    TRANSFORM = TransformRule(expression="100 - value", min_score=0, max_score=100)
    SCALE = ScaleRule(thresholds=[3, 6, 12], scores=[20, 50, 80])

    def test_lookup_exact_match(self) -> None:
        assert score_input(self.LOOKUP, "Sell") == (20.0, None)

    def test_lookup_numeric_answer_matches_canonical_string(self) -> None:
        assert score_input(self.LOOKUP, 12) == (85.0, None)
        assert score_input(self.LOOKUP, 12.0) == (85.0, None)

    def test_lookup_unmatched(self) -> None:
        assert score_input(self.LOOKUP, "buy more") == (0.0, DiagnosticReason.UNMATCHED_OPTION)

    def test_lookup_multi_select_mean(self) -> None:
        assert score_input(self.LOOKUP, ["Buy more", "Sell"]) == (52.5, None)

    def test_lookup_multi_select_with_unmatched_option(self) -> None:
        score, reason = score_input(self.LOOKUP, ["Buy more", "Hold"])

        assert score == 42.5
        assert reason is DiagnosticReason.UNMATCHED_OPTION

    def test_transform(self) -> None:
        assert score_input(self.TRANSFORM, 15) == (85.0, None)
        assert score_input(self.TRANSFORM, "40") == (60.0, None)

    def test_transform_clamps(self) -> None:
        assert score_input(self.TRANSFORM, 150) == (0.0, None)
        assert score_input(self.TRANSFORM, -20) == (100.0, None)

    def test_transform_not_numeric(self) -> None:
        assert score_input(self.TRANSFORM, "a lot") == (0.0, DiagnosticReason.NOT_NUMERIC)
        assert score_input(self.TRANSFORM, True) == (0.0, DiagnosticReason.NOT_NUMERIC)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, 20.0), (3, 20.0), (3.5, 50.0), (6, 50.0), (12, 80.0)],
    )
    def test_scale(self, value: float, expected: float) -> None:
        assert score_input(self.SCALE, value) == (expected, None)

    def test_scale_above_last_threshold(self) -> None:
        assert score_input(self.SCALE, 13) == (0.0, DiagnosticReason.ABOVE_SCALE)


class TestDiagnostics:
    def test_unmatched_option_scores_zero_and_is_recorded(
        self,
        aggressive_answers: dict[str, Any],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        answers = {**aggressive_answers, "drawdown_reaction": "Panic"}

        with caplog.at_level(logging.WARNING, logger="riskprofile.scoring.evaluator"):
            result = evaluate(reference_config(), answers)

        assert result.pillar_scores["tolerance"] == pytest.approx(0.18 * 60 + 0.40 * 85)
        assert len(result.diagnostics) == 1
        diagnostic = result.diagnostics[0]
        assert diagnostic.pillar == "tolerance"
        assert diagnostic.question_key == "drawdown_reaction"
        assert diagnostic.reason is DiagnosticReason.UNMATCHED_OPTION
        assert diagnostic.value == "Panic"
        assert "drawdown_reaction" in caplog.text

    def test_missing_answer_scores_zero_and_is_recorded(
        self, aggressive_answers: dict[str, Any]
    ) -> None:
        answers = dict(aggressive_answers)
        del answers["income_security"]

        result = evaluate(reference_config(), answers)

        assert result.pillar_scores["capacity"] == pytest.approx(83.25 - 0.15 * 90)
        assert [d.reason for d in result.diagnostics] == [DiagnosticReason.MISSING_ANSWER]

    def test_not_numeric_answer(self, aggressive_answers: dict[str, Any]) -> None:
        answers = {**aggressive_answers, "emi_ratio": "fifteen"}

        result = evaluate(reference_config(), answers)

        assert result.diagnostics[0].reason is DiagnosticReason.NOT_NUMERIC
        assert result.diagnostics[0].value == "fifteen"


def _single_pillar_config(formula: str, bands: list[dict[str, Any]]) -> ScoringConfiguration:
    """Build a configuration without publish-time checks, as a corrupted store could."""
    return ScoringConfiguration.model_validate(
        {
            "pillars": [
                {
                    "name": "capacity",
                    "weight": 1.0,
                    "inputs": [
                        {
                            "question_key": "q",
                            "weight": 1.0,
                            "rule": {"kind": "lookup", "table": {"a": 80, "b": 10}},
                        }
                    ],
                }
            ],
            "decision": {"formula": formula},
            "bands": bands,
        }
    )


class TestEngineIntegrity:
    def test_decision_outside_every_band(self, caplog: pytest.LogCaptureFixture) -> None:
        config = _single_pillar_config("capacity", [{"min": 0, "max": 50, "label": "Low"}])

        with caplog.at_level(logging.ERROR, logger="riskprofile.scoring.evaluator"):
            with pytest.raises(EngineIntegrityError) as exc_info:
                evaluate(config, {"q": "a"})

        assert exc_info.value.details["decision"] == 80.0
        assert "outside every band" in caplog.text

    def test_decision_inside_band_still_scores(self) -> None:
        config = _single_pillar_config("capacity", [{"min": 0, "max": 50, "label": "Low"}])

        assert evaluate(config, {"q": "b"}).bucket == "Low"

    def test_formula_that_does_not_compile(self) -> None:
        config = _single_pillar_config(
            "min(capacity, tolerance)", [{"min": 0, "max": 100, "label": "All"}]
        )

        with pytest.raises(EngineIntegrityError):
            ScoringEvaluator(config)

    def test_non_finite_decision(self) -> None:
        huge = "1" + "0" * 200
        config = _single_pillar_config(
            f"capacity * {huge} * {huge}", [{"min": 0, "max": 100, "label": "All"}]
        )

        with pytest.raises(EngineIntegrityError, match="not a finite number"):
            evaluate(config, {"q": "a"})
