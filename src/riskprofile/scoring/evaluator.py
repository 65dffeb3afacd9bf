"""Scoring evaluator.

Deterministic, pure evaluation of typed answers against a scoring
configuration:
1. Score every input with its rule (lookup, transform or scale)
2. pillar_score = sum(input_score_i * input_weight_i), in document order
3. decision = decision formula over pillar scores
4. bucket = the unique band containing the decision scalar
5. warnings = messages of every predicate that holds

Tolerated anomalies (unmatched option, non-numeric answer, value above the
scale, absent answer) score 0 and are recorded as diagnostics. A decision
outside every band is an engine integrity error: it is logged at ERROR and
raised, never defaulted.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from riskprofile.models.answer import as_number, canonical_option_value
from riskprofile.scoring.config import (
    LookupRule,
    Pillar,
    ScaleRule,
    ScoringConfiguration,
    TransformRule,
)
from riskprofile.scoring.expressions import (
    Expression,
    ExpressionError,
    compile_decision_formula,
    compile_transform,
    compile_warning_predicate,
)
from riskprofile.scoring.models import DiagnosticReason, ScoringDiagnostic, ScoringResult

logger = logging.getLogger(__name__)


class EngineIntegrityError(Exception):
    """Raised when evaluation hits a state publish-time validation must exclude."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


@lru_cache(maxsize=256)
def _decision(source: str, pillars: tuple[str, ...]) -> Expression:
    return compile_decision_formula(source, pillars)


@lru_cache(maxsize=256)
def _predicate(source: str, pillars: tuple[str, ...]) -> Expression:
    return compile_warning_predicate(source, pillars)


@lru_cache(maxsize=256)
def _transform(source: str) -> Expression:
    return compile_transform(source)


class ScoringEvaluator:
    """Evaluates typed answers against one scoring configuration.

    Holds no mutable state; one instance may be shared across threads.
    """

    def __init__(self, config: ScoringConfiguration) -> None:
        """Compile the configuration's formulas.

        Args:
            config: Scoring configuration, normally one that passed
                parse_scoring_config().

        Raises:
            EngineIntegrityError: If a formula does not compile, e.g. the
                decision formula references a pillar the configuration
                does not declare.
        """
        self._config = config
        pillars = config.pillar_names
        try:
            self._decision = _decision(config.decision.formula, pillars)
            self._warnings = [
                (_predicate(rule.when, pillars), rule.message) for rule in config.warnings
            ]
        except ExpressionError as exc:
            logger.error(
                "Scoring configuration formula failed to compile at evaluation time: %s",
                exc,
            )
            raise EngineIntegrityError(
                f"Configuration formula is not evaluable: {exc.message}",
                details={"expression": exc.expression},
            ) from exc

    @property
    def config(self) -> ScoringConfiguration:
        return self._config

    def evaluate(self, answers: Mapping[str, Any]) -> ScoringResult:
        """Score typed answers.

        Args:
            answers: Normalized answers keyed by question key. Keys the
                configuration does not read are ignored.

        Returns:
            ScoringResult with pillar scores, decision, bucket, warnings and
            diagnostics.

        Raises:
            EngineIntegrityError: If the decision scalar is not finite or
                falls outside every band.
        """
        diagnostics: list[ScoringDiagnostic] = []
        pillar_scores: dict[str, float] = {}
        for pillar in self._config.pillars:
            pillar_scores[pillar.name] = self._score_pillar(pillar, answers, diagnostics)

        decision = float(self._decision.evaluate(pillar_scores, self._config.pillar_weights))
        if not math.isfinite(decision):
            logger.error(
                "Decision formula '%s' produced a non-finite value for pillar scores %s",
                self._decision.source,
                pillar_scores,
            )
            raise EngineIntegrityError(
                "Decision scalar is not a finite number",
                details={"pillar_scores": pillar_scores},
            )

        band = self._config.resolve_band(decision)
        if band is None:
            lo, hi = self._config.band_domain
            logger.error(
                "Decision scalar %r is outside every band [%s, %s] (formula '%s')",
                decision,
                lo,
                hi,
                self._decision.source,
            )
            raise EngineIntegrityError(
                f"Decision scalar {decision!r} is outside every bucket band",
                details={"decision": decision, "domain": [lo, hi]},
            )

        variables = {**pillar_scores, "decision": decision}
        warnings = [
            message
            for predicate, message in self._warnings
            if predicate.evaluate(variables, self._config.pillar_weights)
        ]

        return ScoringResult(
            pillar_scores=pillar_scores,
            decision=decision,
            bucket=band.label,
            warnings=warnings,
            diagnostics=diagnostics,
        )

    def _score_pillar(
        self,
        pillar: Pillar,
        answers: Mapping[str, Any],
        diagnostics: list[ScoringDiagnostic],
    ) -> float:
        total = 0.0
        for item in pillar.inputs:
            value = answers.get(item.question_key)
            if value is None or value == [] or value == "":
                diagnostics.append(
                    ScoringDiagnostic(
                        pillar=pillar.name,
                        question_key=item.question_key,
                        reason=DiagnosticReason.MISSING_ANSWER,
                    )
                )
                logger.warning(
                    "No answer for scored input '%s' of pillar '%s'; scoring 0",
                    item.question_key,
                    pillar.name,
                )
                continue
            score, reason = score_input(item.rule, value)
            if reason is not None:
                diagnostics.append(
                    ScoringDiagnostic(
                        pillar=pillar.name,
                        question_key=item.question_key,
                        reason=reason,
                        value=value,
                    )
                )
                logger.warning(
                    "Answer %r for '%s' (pillar '%s') scored 0: %s",
                    value,
                    item.question_key,
                    pillar.name,
                    reason.value,
                )
            total += score * item.weight
        return total


def score_input(
    rule: LookupRule | TransformRule | ScaleRule,
    value: Any,
) -> tuple[float, DiagnosticReason | None]:
    """Apply one scoring rule to one answer value.

    Returns:
        Tuple of (score, reason). reason is set when the value could not be
        scored and the score fell back to 0. For multi-select lookups the
        score is the mean of the per-option scores and reason is set if any
        option was unmatched.
    """
    if isinstance(rule, LookupRule):
        if isinstance(value, list):
            scores: list[float] = []
            unmatched = False
            for option in value:
                score, reason = _lookup(rule, option)
                scores.append(score)
                unmatched = unmatched or reason is not None
            mean = math.fsum(scores) / len(scores) if scores else 0.0
            return mean, DiagnosticReason.UNMATCHED_OPTION if unmatched else None
        return _lookup(rule, value)

    number = as_number(value)
    if number is None:
        return 0.0, DiagnosticReason.NOT_NUMERIC

    if isinstance(rule, TransformRule):
        score = float(_transform(rule.expression).evaluate({"value": number}))
        if rule.min_score is not None:
            score = max(rule.min_score, score)
        if rule.max_score is not None:
            score = min(rule.max_score, score)
        return score, None

    for threshold, score in zip(rule.thresholds, rule.scores, strict=True):
        if number <= threshold:
            return score, None
    return 0.0, DiagnosticReason.ABOVE_SCALE


def _lookup(rule: LookupRule, value: Any) -> tuple[float, DiagnosticReason | None]:
    option = canonical_option_value(value)
    if option is not None and option in rule.table:
        return float(rule.table[option]), None
    return 0.0, DiagnosticReason.UNMATCHED_OPTION


def evaluate(config: ScoringConfiguration, answers: Mapping[str, Any]) -> ScoringResult:
    """Convenience wrapper: ScoringEvaluator(config).evaluate(answers)."""
    return ScoringEvaluator(config).evaluate(answers)
