"""Built-in three-pillar reference framework.

Capacity (ability to take risk), tolerance (willingness) and need (required
return) pillars; the decision is the weaker of capacity and tolerance, and a
warning fires when the required return outruns capacity by more than 10
points.
"""

from __future__ import annotations

from typing import Any

from riskprofile.models.question import Question, QuestionType
from riskprofile.scoring.config import ScoringConfiguration, parse_scoring_config

REFERENCE_FRAMEWORK_CODE = "cfa_three_pillar_v1"
REFERENCE_FRAMEWORK_NAME = "CFA three-pillar risk profile"

NEED_EXCEEDS_CAPACITY_MESSAGE = "Required return exceeds risk capacity; revisit goals/savings."

_AGE_SCORES = {"<25": 85, "25-35": 75, "36-50": 60, "51+": 40}
_INCOME_SECURITY_SCORES = {
    "Very secure": 90,
    "Fairly secure": 70,
    "Somewhat secure": 50,
    "Not secure": 25,
}
_MARKET_KNOWLEDGE_SCORES = {"High": 60, "Medium": 40, "Low": 20}
_DRAWDOWN_REACTION_SCORES = {"Buy more": 85, "Do nothing": 60, "Sell": 20}
_GAIN_LOSS_TRADEOFF_SCORES = {
    "Loss25Gain50": 85,
    "Loss8Gain22": 60,
    "NoLossEvenIfLowGain": 20,
}
_GOAL_REQUIRED_RETURN_SCORES = {
    "0": 10,
    "4": 30,
    "6": 45,
    "8": 60,
    "10": 75,
    "12": 85,
    "15": 95,
}


def _lookup(table: dict[str, int]) -> dict[str, Any]:
    return {"kind": "lookup", "table": dict(table)}


def _inverse_percent() -> dict[str, Any]:
    return {"kind": "transform", "expression": "100 - value", "min_score": 0, "max_score": 100}


REFERENCE_CONFIG_DOCUMENT: dict[str, Any] = {
    "engine": "three_pillar",
    "pillars": [
        {
            "name": "capacity",
            "weight": 0.40,
            "inputs": [
                {"question_key": "age", "weight": 0.40, "rule": _lookup(_AGE_SCORES)},
                {"question_key": "emi_ratio", "weight": 0.30, "rule": _inverse_percent()},
                {
                    "question_key": "liquidity_withdrawal_2y",
                    "weight": 0.15,
                    "rule": _inverse_percent(),
                },
                {
                    "question_key": "income_security",
                    "weight": 0.15,
                    "rule": _lookup(_INCOME_SECURITY_SCORES),
                },
            ],
        },
        {
            "name": "tolerance",
            "weight": 0.35,
            "inputs": [
                {
                    "question_key": "market_knowledge",
                    "weight": 0.18,
                    "rule": _lookup(_MARKET_KNOWLEDGE_SCORES),
                },
                {
                    "question_key": "drawdown_reaction",
                    "weight": 0.42,
                    "rule": _lookup(_DRAWDOWN_REACTION_SCORES),
                },
                {
                    "question_key": "gain_loss_tradeoff",
                    "weight": 0.40,
                    "rule": _lookup(_GAIN_LOSS_TRADEOFF_SCORES),
                },
            ],
        },
        {
            "name": "need",
            "weight": 0.25,
            "inputs": [
                {
                    "question_key": "goal_required_return",
                    "weight": 1.0,
                    "rule": _lookup(_GOAL_REQUIRED_RETURN_SCORES),
                },
            ],
        },
    ],
    "decision": {"formula": "min(capacity, tolerance)"},
    "bands": [
        {"min": 0, "max": 35, "label": "Conservative"},
        {"min": 35, "max": 55, "label": "Moderate"},
        {"min": 55, "max": 75, "label": "Growth"},
        {"min": 75, "max": 100, "label": "Aggressive"},
    ],
    "warnings": [
        {"when": "need > capacity + 10", "message": NEED_EXCEEDS_CAPACITY_MESSAGE},
    ],
}


def _select(key: str, label: str, options: dict[str, int], module: str) -> Question:
    return Question(
        key=key,
        label=label,
        type=QuestionType.SINGLE_SELECT,
        options=list(options),
        module=module,
    )


def _percent(key: str, label: str, module: str) -> Question:
    return Question(
        key=key,
        label=label,
        type=QuestionType.NUMBER,
        module=module,
        min_value=0,
        max_value=100,
    )


REFERENCE_QUESTIONS: tuple[Question, ...] = (
    _select("age", "What is your age?", _AGE_SCORES, "capacity"),
    _percent("emi_ratio", "What share of your monthly income goes to EMIs (%)?", "capacity"),
    _percent(
        "liquidity_withdrawal_2y",
        "What share of this investment may you need to withdraw within 2 years (%)?",
        "capacity",
    ),
    _select(
        "income_security",
        "How secure is your current and future income?",
        _INCOME_SECURITY_SCORES,
        "capacity",
    ),
    _select(
        "market_knowledge",
        "How would you rate your knowledge of financial markets?",
        _MARKET_KNOWLEDGE_SCORES,
        "tolerance",
    ),
    _select(
        "drawdown_reaction",
        "If your portfolio fell 20% in a month, what would you do?",
        _DRAWDOWN_REACTION_SCORES,
        "tolerance",
    ),
    _select(
        "gain_loss_tradeoff",
        "Which one-year outcome range would you accept?",
        _GAIN_LOSS_TRADEOFF_SCORES,
        "tolerance",
    ),
    _select(
        "goal_required_return",
        "What annual return (%) do your goals require?",
        _GOAL_REQUIRED_RETURN_SCORES,
        "need",
    ),
)


def reference_config() -> ScoringConfiguration:
    """Return the validated reference scoring configuration."""
    return parse_scoring_config(REFERENCE_CONFIG_DOCUMENT)
