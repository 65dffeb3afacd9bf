"""Scoring engine: configuration, expression language and evaluator."""

from riskprofile.scoring.config import (
    BucketBand,
    DecisionSpec,
    LookupRule,
    Pillar,
    PillarInput,
    ScaleRule,
    ScoringConfigError,
    ScoringConfiguration,
    TransformRule,
    WarningRule,
    canonical_json,
    compute_config_hash,
    parse_scoring_config,
)
from riskprofile.scoring.evaluator import EngineIntegrityError, ScoringEvaluator, evaluate
from riskprofile.scoring.expressions import ExpressionError
from riskprofile.scoring.models import DiagnosticReason, ScoringDiagnostic, ScoringResult

__all__ = [
    "BucketBand",
    "DecisionSpec",
    "DiagnosticReason",
    "EngineIntegrityError",
    "ExpressionError",
    "LookupRule",
    "Pillar",
    "PillarInput",
    "ScaleRule",
    "ScoringConfigError",
    "ScoringConfiguration",
    "ScoringDiagnostic",
    "ScoringEvaluator",
    "ScoringResult",
    "TransformRule",
    "WarningRule",
    "canonical_json",
    "compute_config_hash",
    "evaluate",
    "parse_scoring_config",
]
