"""Scoring configuration document and its publish-time validation.

A scoring configuration is the declarative, versioned part of a framework:
pillars of weighted inputs, one scoring rule per input, a decision formula,
bucket bands and warning rules. It is validated once, when a framework
version is published; a configuration that fails any check is
un-publishable and never reaches the evaluator.

Fail-closed: parse_scoring_config() raises ScoringConfigError carrying every
problem found, with a JSON path for each.
"""

from __future__ import annotations

import hashlib
import json
import math
import re
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from riskprofile.scoring.expressions import (
    RESERVED_NAMES,
    ExpressionError,
    compile_decision_formula,
    compile_transform,
    compile_warning_predicate,
)
from riskprofile.validators.result import ValidationError

WEIGHT_SUM_TOLERANCE = 1e-6
# Floating-point slack tolerated at the outer edges of the band domain.
DOMAIN_EDGE_TOLERANCE = 1e-9

_PILLAR_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ScoringConfigError(Exception):
    """Raised when a scoring configuration fails publish-time validation."""

    def __init__(self, errors: list[ValidationError]) -> None:
        self.errors = errors
        details = "; ".join(f"{e.path}: {e.message}" for e in errors[:5])
        more = f" (+{len(errors) - 5} more)" if len(errors) > 5 else ""
        super().__init__(f"Invalid scoring configuration: {details}{more}")


class LookupRule(BaseModel):
    """Categorical lookup: option string -> score."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["lookup"] = "lookup"
    table: dict[str, float] = Field(..., description="Option string to score")


class TransformRule(BaseModel):
    """Numeric transform of the answer, e.g. ``100 - value``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["transform"] = "transform"
    expression: str = Field(..., description="Arithmetic over 'value'")
    min_score: float | None = Field(default=None, description="Lower clamp")
    max_score: float | None = Field(default=None, description="Upper clamp")


class ScaleRule(BaseModel):
    """Threshold scale: the first threshold >= value selects the score."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["scale"] = "scale"
    thresholds: list[float] = Field(..., description="Strictly ascending thresholds")
    scores: list[float] = Field(..., description="Score per threshold")


ScoringRule = Annotated[LookupRule | TransformRule | ScaleRule, Field(discriminator="kind")]


class PillarInput(BaseModel):
    """One weighted input of a pillar, bound to a question key."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    question_key: str = Field(..., min_length=1, description="Catalog question key")
    weight: float = Field(..., ge=0.0, description="Weight within the pillar")
    rule: ScoringRule


class Pillar(BaseModel):
    """A named sub-score aggregating weighted inputs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., description="Pillar name, usable in formulas")
    weight: float = Field(..., ge=0.0, description="Weight across pillars")
    inputs: list[PillarInput] = Field(..., min_length=1)


class DecisionSpec(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    formula: str = Field(..., min_length=1, description="e.g. min(capacity, tolerance)")


class BucketBand(BaseModel):
    """A band of the decision scalar mapped to a risk category label."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    min: float
    max: float
    label: str = Field(..., min_length=1)


class WarningRule(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    when: str = Field(..., min_length=1, description="Predicate, e.g. need > capacity + 10")
    message: str = Field(..., min_length=1)


class ScoringConfiguration(BaseModel):
    """Complete scoring configuration of a framework version.

    Immutable after construction. Only instances returned by
    parse_scoring_config() have passed publish-time validation.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    engine: str = Field(default="three_pillar", description="Informational engine label")
    pillars: list[Pillar] = Field(..., min_length=1)
    decision: DecisionSpec
    bands: list[BucketBand] = Field(..., min_length=1)
    warnings: list[WarningRule] = Field(default_factory=list)

    @property
    def pillar_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.pillars)

    @property
    def pillar_weights(self) -> dict[str, float]:
        return {p.name: p.weight for p in self.pillars}

    @property
    def band_domain(self) -> tuple[float, float]:
        """Closed interval covered by the bands."""
        return self.bands[0].min, self.bands[-1].max

    @property
    def question_keys(self) -> frozenset[str]:
        """Every question key any input reads."""
        return frozenset(i.question_key for p in self.pillars for i in p.inputs)

    def resolve_band(self, decision: float) -> BucketBand | None:
        """Find the unique band containing the decision scalar.

        The first band is closed ``[min, max]``; every later band is
        ``(min, max]``. Values within DOMAIN_EDGE_TOLERANCE outside the
        domain edges fall into the first/last band.

        Returns:
            The matching band, or None when the scalar is outside the domain.
        """
        first, last = self.bands[0], self.bands[-1]
        first_max = first.max + DOMAIN_EDGE_TOLERANCE if len(self.bands) == 1 else first.max
        if first.min - DOMAIN_EDGE_TOLERANCE <= decision <= first_max:
            return first
        for band in self.bands[1:-1]:
            if band.min < decision <= band.max:
                return band
        if len(self.bands) > 1 and last.min < decision <= last.max + DOMAIN_EDGE_TOLERANCE:
            return last
        return None

    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible document."""
        return self.model_dump(mode="json")

    @property
    def config_hash(self) -> str:
        """SHA256 of the canonical JSON document."""
        return compute_config_hash(self.to_document())


def canonical_json(obj: Any) -> str:
    """Serialize to canonical JSON: sorted keys, no whitespace."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


def compute_config_hash(document: dict[str, Any]) -> str:
    """Compute the stable SHA256 hash of a configuration document."""
    return hashlib.sha256(canonical_json(document).encode("utf-8")).hexdigest()


def rule_score_range(rule: LookupRule | TransformRule | ScaleRule) -> tuple[float, float]:
    """Bound the score an input can produce, including the zero default."""
    if isinstance(rule, LookupRule):
        values = [0.0, *rule.table.values()]
        return min(values), max(values)
    if isinstance(rule, ScaleRule):
        values = [0.0, *rule.scores]
        return min(values), max(values)
    lo = rule.min_score if rule.min_score is not None else -math.inf
    hi = rule.max_score if rule.max_score is not None else math.inf
    return min(lo, 0.0), max(hi, 0.0)


def pillar_score_ranges(config: ScoringConfiguration) -> dict[str, tuple[float, float]]:
    """Bound every pillar score from its inputs' score ranges and weights."""
    ranges: dict[str, tuple[float, float]] = {}
    for pillar in config.pillars:
        lo = hi = 0.0
        for item in pillar.inputs:
            r_lo, r_hi = rule_score_range(item.rule)
            if item.weight != 0.0:
                lo += r_lo * item.weight
                hi += r_hi * item.weight
        ranges[pillar.name] = (lo, hi)
    return ranges


def _pydantic_errors(exc: PydanticValidationError) -> list[ValidationError]:
    errors: list[ValidationError] = []
    for err in exc.errors():
        path = "$" + "".join(
            f"[{part}]" if isinstance(part, int) else f".{part}" for part in err.get("loc", ())
        )
        errors.append(
            ValidationError(
                code="SCHEMA_VIOLATION",
                message=err.get("msg", "Invalid value"),
                path=path,
            )
        )
    return errors


def _check_weights(
    weights: list[float],
    path: str,
    what: str,
) -> list[ValidationError]:
    total = math.fsum(weights)
    if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
        return [
            ValidationError(
                code="WEIGHTS_NOT_BALANCED",
                message=f"{what} weights must sum to 1.0 (got {total:.10f})",
                path=path,
                value=total,
            )
        ]
    return []


def _check_rule(
    rule: LookupRule | TransformRule | ScaleRule,
    path: str,
) -> list[ValidationError]:
    errors: list[ValidationError] = []
    if isinstance(rule, LookupRule):
        if not rule.table:
            errors.append(
                ValidationError(code="EMPTY_LOOKUP_TABLE", message="Lookup table is empty", path=path)
            )
        for option, score in rule.table.items():
            if not math.isfinite(score):
                errors.append(
                    ValidationError(
                        code="NON_FINITE_SCORE",
                        message=f"Score for option '{option}' is not finite",
                        path=f"{path}.table.{option}",
                    )
                )
    elif isinstance(rule, TransformRule):
        try:
            compile_transform(rule.expression)
        except ExpressionError as exc:
            errors.append(
                ValidationError(
                    code="UNSUPPORTED_TRANSFORM",
                    message=exc.message,
                    path=f"{path}.expression",
                    value=rule.expression,
                )
            )
        if (
            rule.min_score is not None
            and rule.max_score is not None
            and rule.min_score > rule.max_score
        ):
            errors.append(
                ValidationError(
                    code="INVALID_CLAMP",
                    message="min_score must not exceed max_score",
                    path=path,
                )
            )
    else:
        if not rule.thresholds:
            errors.append(
                ValidationError(code="EMPTY_SCALE", message="Scale has no thresholds", path=path)
            )
        if len(rule.thresholds) != len(rule.scores):
            errors.append(
                ValidationError(
                    code="SCALE_LENGTH_MISMATCH",
                    message="thresholds and scores must have the same length",
                    path=path,
                )
            )
        for i in range(1, len(rule.thresholds)):
            if rule.thresholds[i] <= rule.thresholds[i - 1]:
                errors.append(
                    ValidationError(
                        code="SCALE_NOT_ASCENDING",
                        message="thresholds must be strictly ascending",
                        path=f"{path}.thresholds[{i}]",
                        value=rule.thresholds[i],
                    )
                )
    return errors


def _check_bands(bands: list[BucketBand]) -> list[ValidationError]:
    errors: list[ValidationError] = []
    labels: set[str] = set()
    for i, band in enumerate(bands):
        path = f"$.bands[{i}]"
        if not (math.isfinite(band.min) and math.isfinite(band.max)):
            errors.append(
                ValidationError(code="NON_FINITE_BAND", message="Band bounds must be finite", path=path)
            )
            continue
        if band.min >= band.max:
            errors.append(
                ValidationError(
                    code="EMPTY_BAND",
                    message=f"Band '{band.label}' has min >= max",
                    path=path,
                )
            )
        if band.label in labels:
            errors.append(
                ValidationError(
                    code="DUPLICATE_BAND_LABEL",
                    message=f"Band label '{band.label}' is used more than once",
                    path=f"{path}.label",
                    value=band.label,
                )
            )
        labels.add(band.label)
        if i > 0:
            previous = bands[i - 1]
            if band.min > previous.max:
                errors.append(
                    ValidationError(
                        code="BAND_GAP",
                        message=f"Gap between {previous.max} and {band.min}",
                        path=f"{path}.min",
                        value=band.min,
                    )
                )
            elif band.min < previous.max:
                errors.append(
                    ValidationError(
                        code="BAND_OVERLAP",
                        message=f"Band '{band.label}' overlaps '{previous.label}'",
                        path=f"{path}.min",
                        value=band.min,
                    )
                )
    return errors


def check_configuration(config: ScoringConfiguration) -> list[ValidationError]:
    """Run every semantic publish-time check on a parsed configuration.

    Returns:
        All problems found (empty when the configuration is publishable).
    """
    errors: list[ValidationError] = []

    seen_pillars: set[str] = set()
    for i, pillar in enumerate(config.pillars):
        path = f"$.pillars[{i}]"
        if not _PILLAR_NAME_PATTERN.match(pillar.name) or pillar.name in RESERVED_NAMES:
            errors.append(
                ValidationError(
                    code="INVALID_PILLAR_NAME",
                    message=f"'{pillar.name}' is not a usable pillar name",
                    path=f"{path}.name",
                    value=pillar.name,
                )
            )
        if pillar.name in seen_pillars:
            errors.append(
                ValidationError(
                    code="DUPLICATE_PILLAR",
                    message=f"Pillar '{pillar.name}' is declared more than once",
                    path=f"{path}.name",
                    value=pillar.name,
                )
            )
        seen_pillars.add(pillar.name)

        seen_keys: set[str] = set()
        for j, item in enumerate(pillar.inputs):
            if item.question_key in seen_keys:
                errors.append(
                    ValidationError(
                        code="DUPLICATE_INPUT",
                        message=f"Question '{item.question_key}' is used twice in '{pillar.name}'",
                        path=f"{path}.inputs[{j}].question_key",
                        value=item.question_key,
                    )
                )
            seen_keys.add(item.question_key)
            errors.extend(_check_rule(item.rule, f"{path}.inputs[{j}].rule"))
        errors.extend(
            _check_weights([item.weight for item in pillar.inputs], f"{path}.inputs", "Input")
        )

    errors.extend(_check_weights([p.weight for p in config.pillars], "$.pillars", "Pillar"))
    errors.extend(_check_bands(config.bands))

    pillars = config.pillar_names
    decision = None
    try:
        decision = compile_decision_formula(config.decision.formula, pillars)
    except ExpressionError as exc:
        errors.append(
            ValidationError(
                code="UNSUPPORTED_FORMULA",
                message=exc.message,
                path="$.decision.formula",
                value=config.decision.formula,
            )
        )

    for i, rule in enumerate(config.warnings):
        try:
            compile_warning_predicate(rule.when, pillars)
        except ExpressionError as exc:
            errors.append(
                ValidationError(
                    code="UNSUPPORTED_PREDICATE",
                    message=exc.message,
                    path=f"$.warnings[{i}].when",
                    value=rule.when,
                )
            )

    # The decision range check needs every other part to be sound.
    if decision is not None and not errors:
        lo, hi = decision.value_range(pillar_score_ranges(config), config.pillar_weights)
        d_lo, d_hi = config.band_domain
        if lo < d_lo - DOMAIN_EDGE_TOLERANCE or hi > d_hi + DOMAIN_EDGE_TOLERANCE:
            errors.append(
                ValidationError(
                    code="DECISION_RANGE_OUTSIDE_BANDS",
                    message=(
                        f"Decision can range over [{lo}, {hi}] but bands only cover "
                        f"[{d_lo}, {d_hi}]; clamp transforms or widen the bands"
                    ),
                    path="$.decision.formula",
                    value=[lo, hi],
                )
            )

    return errors


def parse_scoring_config(document: Any) -> ScoringConfiguration:
    """Parse and fully validate a configuration document.

    Args:
        document: JSON-shaped configuration (dict) or a ScoringConfiguration.

    Returns:
        Validated, immutable ScoringConfiguration.

    Raises:
        ScoringConfigError: With every structural and semantic problem found.
    """
    if isinstance(document, ScoringConfiguration):
        config = document
    else:
        try:
            config = ScoringConfiguration.model_validate(document)
        except PydanticValidationError as exc:
            raise ScoringConfigError(_pydantic_errors(exc)) from exc

    errors = check_configuration(config)
    if errors:
        raise ScoringConfigError(errors)
    return config
