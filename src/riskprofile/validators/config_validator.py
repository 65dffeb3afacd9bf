"""Publish-time validation of scoring configuration documents.

Fails closed: unreadable files, unparseable documents and any unexpected
error during validation all yield a failed ValidationResult. Beyond the
errors raised by parse_scoring_config(), advisory warnings are reported for
configurations that are publishable but probably not what the author meant.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from riskprofile.scoring.config import (
    ScoringConfigError,
    ScoringConfiguration,
    parse_scoring_config,
)
from riskprofile.scoring.expressions import compile_decision_formula, compile_warning_predicate
from riskprofile.scoring.legacy import convert_legacy_config
from riskprofile.validators.result import ValidationError, ValidationResult


class ConfigDocumentError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


def load_document(path: Path | str) -> Any:
    """Load a JSON or YAML document from disk.

    Files ending in ``.yaml``/``.yml`` are parsed as YAML, everything else
    as JSON.

    Raises:
        ConfigDocumentError: If the file is missing or not parseable.
    """
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                return yaml.safe_load(f)
            return json.load(f)
    except FileNotFoundError as e:
        raise ConfigDocumentError(f"File not found: {path}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigDocumentError(f"Cannot parse {path}: {e}") from e
    except OSError as e:
        raise ConfigDocumentError(f"Cannot read {path}: {e}") from e


@dataclass
class ConfigValidationOutcome:
    """Validation result plus the parsed configuration when it passed."""

    result: ValidationResult
    config: ScoringConfiguration | None = None


class ConfigValidator:
    """Validates scoring configuration documents before publication."""

    def validate(self, document: Any, *, legacy: bool = False) -> ConfigValidationOutcome:
        """Validate a configuration document.

        Args:
            document: Configuration document (dict).
            legacy: Convert from a legacy shape first.

        Returns:
            ConfigValidationOutcome; config is set only when validation passed.
        """
        if document is None:
            return ConfigValidationOutcome(
                ValidationResult.fail_closed("Document is None - cannot validate")
            )
        if not isinstance(document, dict):
            return ConfigValidationOutcome(
                ValidationResult.fail_closed("Configuration document must be an object")
            )

        try:
            if legacy:
                document = convert_legacy_config(document)
            config = parse_scoring_config(document)
        except ScoringConfigError as e:
            return ConfigValidationOutcome(ValidationResult.fail(e.errors))

        return ConfigValidationOutcome(
            ValidationResult.success(advisory_warnings(config)),
            config=config,
        )

    def validate_file(self, path: Path | str, *, legacy: bool = False) -> ConfigValidationOutcome:
        """Validate a JSON/YAML configuration file. Fails closed on read errors."""
        try:
            document = load_document(path)
        except ConfigDocumentError as e:
            return ConfigValidationOutcome(ValidationResult.fail_closed(str(e)))
        return self.validate(document, legacy=legacy)


def advisory_warnings(config: ScoringConfiguration) -> list[ValidationError]:
    """Report publishable but suspicious parts of a configuration.

    - UNUSED_PILLAR: a pillar no formula or predicate reads (still computed)
    - ZERO_WEIGHT: an input or pillar with weight 0
    """
    warnings: list[ValidationError] = []
    pillars = config.pillar_names
    used = set(compile_decision_formula(config.decision.formula, pillars).names)
    for rule in config.warnings:
        used |= compile_warning_predicate(rule.when, pillars).names

    for i, pillar in enumerate(config.pillars):
        if pillar.name not in used:
            warnings.append(
                ValidationError(
                    code="UNUSED_PILLAR",
                    message=f"Pillar '{pillar.name}' is not read by any formula",
                    path=f"$.pillars[{i}]",
                    value=pillar.name,
                )
            )
        if pillar.weight == 0.0:
            warnings.append(
                ValidationError(
                    code="ZERO_WEIGHT",
                    message=f"Pillar '{pillar.name}' has weight 0",
                    path=f"$.pillars[{i}].weight",
                )
            )
        for j, item in enumerate(pillar.inputs):
            if item.weight == 0.0:
                warnings.append(
                    ValidationError(
                        code="ZERO_WEIGHT",
                        message=f"Input '{item.question_key}' has weight 0",
                        path=f"$.pillars[{i}].inputs[{j}].weight",
                    )
                )
    return warnings
