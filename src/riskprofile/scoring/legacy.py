"""Converter for legacy framework configuration documents.

Older frameworks were stored in two loosely typed shapes:

- ``engine: "three_pillar"`` with ``capacity``/``tolerance``/``need`` objects
  (``inputs`` + per-key ``weights``) and a ``decision`` object holding
  ``bucket_bands`` and ``warnings`` (``{"if": ..., "message": ...}``)
- ``engine: "weighted_sum"`` with a flat ``questions`` list whose scores are
  added up, and ``bands``

Both are rewritten into the closed configuration document accepted by
parse_scoring_config(). Each legacy input becomes exactly one rule:
``map`` -> lookup, ``type: "percent"`` -> clamped transform,
``type: "scale"`` -> scale.
"""

from __future__ import annotations

import math
from typing import Any

from riskprofile.scoring.config import ScoringConfigError
from riskprofile.validators.result import ValidationError

THREE_PILLAR_NAMES = ("capacity", "tolerance", "need")
LEGACY_ENGINES = frozenset({"three_pillar", "weighted_sum"})

_DEFAULT_PERCENT_MAX = 100.0


def is_legacy_document(document: Any) -> bool:
    """Return True if the document uses one of the legacy shapes."""
    if not isinstance(document, dict) or document.get("engine") not in LEGACY_ENGINES:
        return False
    if document["engine"] == "weighted_sum":
        return "questions" in document
    return "pillars" not in document and any(name in document for name in THREE_PILLAR_NAMES)


def _fail(code: str, message: str, path: str) -> ScoringConfigError:
    return ScoringConfigError([ValidationError(code=code, message=message, path=path)])


def _convert_rule(item: dict[str, Any], path: str) -> dict[str, Any]:
    if isinstance(item.get("map"), dict):
        return {
            "kind": "lookup",
            "table": {str(option): score for option, score in item["map"].items()},
        }
    kind = item.get("type")
    if kind == "percent":
        expression = "100 - value" if item.get("transform") == "100 - value" else "value"
        if item.get("transform") not in (None, "100 - value"):
            raise _fail(
                "LEGACY_UNSUPPORTED_TRANSFORM",
                f"Unsupported legacy transform '{item.get('transform')}'",
                f"{path}.transform",
            )
        upper = item.get("max", _DEFAULT_PERCENT_MAX)
        return {
            "kind": "transform",
            "expression": expression,
            "min_score": 0.0,
            "max_score": float(upper),
        }
    if kind == "scale" and "scale" in item and "scores" in item:
        return {
            "kind": "scale",
            "thresholds": list(item["scale"]),
            "scores": list(item["scores"]),
        }
    raise _fail(
        "LEGACY_UNSUPPORTED_INPUT",
        f"Input '{item.get('qkey')}' has no map, percent or scale rule",
        path,
    )


def _normalized_weights(keys: list[str], weights: dict[str, Any]) -> list[float]:
    raw = [float(weights.get(key) or 1.0) for key in keys]
    total = math.fsum(raw)
    if total <= 0:
        return [1.0 / len(keys)] * len(keys)
    return [w / total for w in raw]


def _convert_bands(bands: Any, path: str) -> list[dict[str, Any]]:
    """Close integer-gapped legacy bands (0-35, 36-55, ...) into contiguous bands."""
    if not isinstance(bands, list) or not bands:
        raise _fail("LEGACY_MISSING_BANDS", "Legacy document has no bands", path)
    ordered = sorted(bands, key=lambda b: float(b["min"]))
    converted: list[dict[str, Any]] = []
    for i, band in enumerate(ordered):
        lower = float(band["min"]) if i == 0 else converted[-1]["max"]
        converted.append({"min": lower, "max": float(band["max"]), "label": band["bucket"]})
    return converted


def _convert_inputs(
    inputs: list[dict[str, Any]],
    weights: dict[str, Any],
    path: str,
) -> list[dict[str, Any]]:
    if not inputs:
        raise _fail("LEGACY_EMPTY_PILLAR", "Legacy pillar has no inputs", path)
    keys = [str(item.get("qkey", "")) for item in inputs]
    normalized = _normalized_weights(keys, weights)
    return [
        {
            "question_key": key,
            "weight": weight,
            "rule": _convert_rule(item, f"{path}[{i}]"),
        }
        for i, (key, weight, item) in enumerate(zip(keys, normalized, inputs, strict=True))
    ]


def _convert_three_pillar(document: dict[str, Any]) -> dict[str, Any]:
    names = [name for name in THREE_PILLAR_NAMES if name in document]
    explicit = document.get("pillar_weights") or {}
    pillars = []
    for name in names:
        section = document[name] or {}
        weight = float(explicit[name]) if name in explicit else 1.0 / len(names)
        pillars.append(
            {
                "name": name,
                "weight": weight,
                "inputs": _convert_inputs(
                    section.get("inputs") or [],
                    section.get("weights") or {},
                    f"$.{name}.inputs",
                ),
            }
        )
    decision = document.get("decision") or {}
    return {
        "engine": "three_pillar",
        "pillars": pillars,
        "decision": {"formula": decision.get("formula", "min(capacity, tolerance)")},
        "bands": _convert_bands(decision.get("bucket_bands"), "$.decision.bucket_bands"),
        "warnings": [
            {"when": rule["if"], "message": rule["message"]}
            for rule in decision.get("warnings") or []
        ],
    }


def _convert_weighted_sum(document: dict[str, Any]) -> dict[str, Any]:
    questions = document.get("questions") or []
    if not questions:
        raise _fail("LEGACY_EMPTY_PILLAR", "Legacy document has no questions", "$.questions")
    count = len(questions)
    inputs = [
        {
            "question_key": str(item.get("qkey", "")),
            "weight": 1.0 / count,
            "rule": _convert_rule(item, f"$.questions[{i}]"),
        }
        for i, item in enumerate(questions)
    ]
    return {
        "engine": "weighted_sum",
        "pillars": [{"name": "total", "weight": 1.0, "inputs": inputs}],
        "decision": {"formula": f"total * {count}"},
        "bands": _convert_bands(document.get("bands"), "$.bands"),
        "warnings": [],
    }


def convert_legacy_config(document: dict[str, Any]) -> dict[str, Any]:
    """Rewrite a legacy document into the closed configuration shape.

    The result still has to pass parse_scoring_config().

    Args:
        document: Legacy configuration document.

    Returns:
        Configuration document in the current shape.

    Raises:
        ScoringConfigError: If the document cannot be expressed with the
            closed rule set.
    """
    if not is_legacy_document(document):
        raise _fail("LEGACY_UNKNOWN_SHAPE", "Document is not a legacy configuration", "$")
    try:
        if document["engine"] == "weighted_sum":
            return _convert_weighted_sum(document)
        return _convert_three_pillar(document)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise _fail(
            "LEGACY_MALFORMED",
            f"Malformed legacy document: {exc!r}",
            "$",
        ) from exc
