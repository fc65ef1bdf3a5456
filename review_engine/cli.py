"""Review engine CLI.

Usage:
    python -m review_engine score --facts FILE [--rubric FILE] [--redact]
    python -m review_engine rubric check [--rubric FILE]

Exit codes:
    0: scored / rubric clean
    1: unreadable input, rubric failed to load, or rubric has condition errors
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from review_engine.core.config import get_settings
from review_engine.core.errors import ConditionSyntaxError, RubricConfigError
from review_engine.core.logging import configure_logging
from review_engine.schemas.facts import wire_field_names
from review_engine.scoring.conditions import compile_condition, referenced_fields
from review_engine.scoring.engine import ScoringEngine
from review_engine.services.rubric_loader import load_rubric


def _output_json(data: Any) -> None:
    print(json.dumps(data, sort_keys=True, indent=2))


def _error(code: str, message: str) -> dict[str, Any]:
    return {"errors": [{"code": code, "message": message}], "pass": False}


def _load_facts(path: str) -> tuple[Any, str | None]:
    """Returns (facts, error_message); facts is ignored when an error is set."""
    try:
        with open(path, encoding="utf-8") as f:
            content = f.read()
    except FileNotFoundError:
        return None, f"File not found: {path}"
    except OSError as e:
        return None, f"Cannot read input: {e}"

    if not content.strip():
        return None, "Empty input"
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        return None, f"Invalid JSON: {e}"
    if not isinstance(data, dict):
        return None, "Facts document must be a JSON object"
    return data, None


def cmd_score(args: argparse.Namespace) -> int:
    facts, error_msg = _load_facts(args.facts)
    if error_msg is not None:
        _output_json(_error("INVALID_FACTS", error_msg))
        return 1

    try:
        engine = ScoringEngine(load_rubric(args.rubric or get_settings().rubric_path))
    except RubricConfigError as e:
        _output_json(_error("INVALID_RUBRIC", str(e)))
        return 1

    result = engine.score_agreement(facts)
    if args.redact and get_settings().redaction_enabled:
        result = engine.redact_result(result, entitled=False)
    _output_json(result.to_document())
    return 0


def cmd_rubric_check(args: argparse.Namespace) -> int:
    try:
        rubric = load_rubric(args.rubric or get_settings().rubric_path)
    except RubricConfigError as e:
        _output_json(_error("INVALID_RUBRIC", str(e)))
        return 1

    known = wire_field_names()
    errors: list[dict[str, Any]] = []
    for condition in dict.fromkeys(rubric.conditions()):
        try:
            node = compile_condition(condition)
        except ConditionSyntaxError as e:
            errors.append({
                "code": "CONDITION_SYNTAX",
                "condition": condition,
                "message": str(e),
            })
            continue
        for name in sorted(referenced_fields(node) - known):
            errors.append({
                "code": "UNKNOWN_FIELD",
                "condition": condition,
                "message": f"unknown field '{name}'",
            })

    _output_json({
        "conditions": len(set(rubric.conditions())),
        "errors": errors,
        "metrics": [m.id for m in rubric.metrics],
        "pass": not errors,
        "version": rubric.version,
    })
    return 0 if not errors else 1


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="review_engine",
        description="Market-maker agreement scoring engine",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    score_parser = subparsers.add_parser("score", help="Score an extracted facts document")
    score_parser.add_argument(
        "--facts",
        required=True,
        metavar="FILE",
        help="Path to the extracted facts JSON (camelCase keys)",
    )
    score_parser.add_argument(
        "--rubric",
        metavar="FILE",
        help="Rubric JSON (defaults to RUBRIC_PATH, then the packaged rubric)",
    )
    score_parser.add_argument(
        "--redact",
        action="store_true",
        default=False,
        help="Redact findings and recommendations as for a free-tier viewer",
    )

    rubric_parser = subparsers.add_parser("rubric", help="Rubric operations")
    rubric_subparsers = rubric_parser.add_subparsers(dest="rubric_command", help="Rubric subcommands")
    check_parser = rubric_subparsers.add_parser(
        "check",
        help="Validate the rubric and compile every condition",
    )
    check_parser.add_argument("--rubric", metavar="FILE", help="Rubric JSON to check")

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "score":
        return cmd_score(args)

    if args.command == "rubric":
        if getattr(args, "rubric_command", None) == "check":
            return cmd_rubric_check(args)
        parser.parse_args(["rubric", "--help"])
        return 0

    return 0


if __name__ == "__main__":
    sys.exit(main())
