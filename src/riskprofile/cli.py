"""Risk profile CLI - deterministic command-line interface.

Usage:
    python -m riskprofile validate-config --input PATH [--legacy]
    python -m riskprofile score --config PATH --answers PATH [--legacy]
    python -m riskprofile reference-config
    python -m riskprofile migrate [--revision REV]

Configuration and answer files are JSON, or YAML when they end in .yaml/.yml.

Exit codes:
    0: Validation passed / success
    1: Internal error (unexpected)
    2: Validation failed / invalid input
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from riskprofile.scoring.evaluator import ScoringEvaluator
from riskprofile.scoring.reference import REFERENCE_CONFIG_DOCUMENT
from riskprofile.validators.config_validator import (
    ConfigDocumentError,
    ConfigValidator,
    load_document,
)
from riskprofile.validators.result import ValidationResult

logger = logging.getLogger(__name__)


def _result_to_dict(result: ValidationResult, config_hash: str | None = None) -> dict[str, Any]:
    """Convert ValidationResult to a deterministic dict for JSON output."""
    return {
        "config_hash": config_hash,
        "errors": [e.to_dict() for e in result.errors],
        "pass": result.passed,
        "warnings": [w.to_dict() for w in result.warnings],
    }


def _output_json(data: dict[str, Any]) -> None:
    """Output JSON to stdout with deterministic ordering."""
    print(json.dumps(data, sort_keys=True, indent=2))


def _make_error_result(code: str, message: str) -> dict[str, Any]:
    """Create a failed result dict with a single error."""
    return {
        "config_hash": None,
        "errors": [{"code": code, "message": message, "path": "$", "value": None}],
        "pass": False,
        "warnings": [],
    }


def cmd_validate_config(args: argparse.Namespace) -> int:
    """Validate a scoring configuration file.

    Exit codes:
        0: pass=True
        2: pass=False (validation failed or unreadable input)
    """
    outcome = ConfigValidator().validate_file(args.input, legacy=args.legacy)
    config_hash = outcome.config.config_hash if outcome.config is not None else None
    _output_json(_result_to_dict(outcome.result, config_hash))
    return 0 if outcome.result.passed else 2


def cmd_score(args: argparse.Namespace) -> int:
    """Score an answers file against a configuration file offline.

    Answers must already be typed (option strings, numbers, lists); no
    question set is applied.

    Exit codes:
        0: scored
        2: invalid configuration or answers
    """
    outcome = ConfigValidator().validate_file(args.config, legacy=args.legacy)
    if outcome.config is None:
        _output_json(_result_to_dict(outcome.result))
        return 2

    try:
        answers = load_document(args.answers)
    except ConfigDocumentError as e:
        _output_json(_make_error_result("INVALID_ANSWERS", str(e)))
        return 2
    if not isinstance(answers, dict):
        _output_json(_make_error_result("INVALID_ANSWERS", "Answers document must be an object"))
        return 2

    result = ScoringEvaluator(outcome.config).evaluate(answers)
    _output_json(result.model_dump(mode="json"))
    return 0


def cmd_reference_config(args: argparse.Namespace) -> int:
    """Print the built-in three-pillar reference configuration."""
    _output_json(REFERENCE_CONFIG_DOCUMENT)
    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    """Run Alembic migrations with RISKPROFILE_DATABASE_ADMIN_URL.

    Exit codes:
        0: migrated
        2: database not configured
    """
    from riskprofile.persistence.db import DatabaseConfigError
    from riskprofile.persistence.migrate import run_upgrade

    try:
        run_upgrade(revision=args.revision)
    except DatabaseConfigError as e:
        _output_json(_make_error_result("DATABASE_NOT_CONFIGURED", str(e)))
        return 2
    _output_json({"pass": True, "revision": args.revision})
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="riskprofile",
        description="Risk profile engine CLI",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    validate_parser = subparsers.add_parser(
        "validate-config",
        help="Validate a scoring configuration document",
    )
    validate_parser.add_argument(
        "--input",
        required=True,
        metavar="PATH",
        help="Path to a JSON or YAML configuration",
    )
    validate_parser.add_argument(
        "--legacy",
        action="store_true",
        default=False,
        help="Convert from a legacy configuration shape first",
    )
    validate_parser.set_defaults(handler=cmd_validate_config)

    score_parser = subparsers.add_parser(
        "score",
        help="Score answers against a configuration offline",
    )
    score_parser.add_argument("--config", required=True, metavar="PATH")
    score_parser.add_argument("--answers", required=True, metavar="PATH")
    score_parser.add_argument("--legacy", action="store_true", default=False)
    score_parser.set_defaults(handler=cmd_score)

    reference_parser = subparsers.add_parser(
        "reference-config",
        help="Print the reference three-pillar configuration",
    )
    reference_parser.set_defaults(handler=cmd_reference_config)

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Apply database migrations",
    )
    migrate_parser.add_argument("--revision", default="head", help="Target revision")
    migrate_parser.set_defaults(handler=cmd_migrate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success / validation passed
        1: Internal error (unexpected)
        2: Validation failed / invalid input
    """
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            return 0

        handler = args.handler
        exit_code: int = handler(args)
        return exit_code

    except Exception as e:
        # Fail-closed: unexpected errors return exit code 1
        logger.exception("CLI command failed")
        _output_json(_make_error_result("INTERNAL_ERROR", str(e)))
        return 1


if __name__ == "__main__":
    sys.exit(main())
