"""Command-line front end for validating a workspace stored in a local directory."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence, TextIO

from .config import ValidationSettings
from .engine import WorkspaceValidationError, WorkspaceValidator
from .roster import validate_test_takers
from .sources import (
    InMemoryWorkspaceSource,
    load_directory,
    load_persons,
    load_schema_results,
)

_LOCAL_WORKSPACE_ID = 1


def main(argv: Sequence[str] | None = None, *, stdout: TextIO | None = None) -> int:
    """CLI entry point; returns 0 when the workspace is consistent, 1 when not, 2 on errors."""

    parser = _build_parser()
    args = parser.parse_args(argv)
    output = stdout if stdout is not None else sys.stdout

    try:
        settings = ValidationSettings.from_env()
        if args.workers is not None:
            settings = replace(settings, max_workers=args.workers)
        logging.basicConfig(
            level=args.log_level or settings.log_level,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

        files = load_directory(Path(args.workspace))
        schema_results = (
            load_schema_results(Path(args.schema_results))
            if getattr(args, "schema_results", None)
            else {}
        )
        persons = (
            load_persons(Path(args.persons)) if getattr(args, "persons", None) else []
        )
    except (OSError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    source = InMemoryWorkspaceSource(
        {_LOCAL_WORKSPACE_ID: files},
        schema_results={_LOCAL_WORKSPACE_ID: schema_results},
        persons={_LOCAL_WORKSPACE_ID: persons},
    )

    if args.command == "roster":
        roster = validate_test_takers(source, _LOCAL_WORKSPACE_ID, settings=settings)
        _write(output, roster.to_payload())
        return 0 if roster.test_takers_found and not roster.missing_persons else 1

    try:
        report = WorkspaceValidator(source, settings=settings).validate(
            _LOCAL_WORKSPACE_ID
        )
    except WorkspaceValidationError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    _write(output, report.to_payload())
    return 0 if report.complete else 1


def _write(output: TextIO, payload: object) -> None:
    output.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a positive integer") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return parsed


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="testcenter-audit",
        description="Check a bundle of test files for missing and unused references.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override TESTCENTER_AUDIT_LOG_LEVEL for this invocation.",
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        help="Override TESTCENTER_AUDIT_MAX_WORKERS for this invocation.",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    validate = subcommands.add_parser(
        "validate",
        help="Report missing references and unused files as JSON.",
    )
    validate.add_argument("workspace", help="Directory holding the workspace files.")
    validate.add_argument(
        "--schema-results",
        help="JSON file mapping 'Kind:identifier' to {schemaValid, errors}.",
    )
    validate.add_argument(
        "--persons",
        help="JSON list of {group, login, code, consider} person records.",
    )

    roster = subcommands.add_parser(
        "roster",
        help="Report roster totals and persons without an active login.",
    )
    roster.add_argument("workspace", help="Directory holding the workspace files.")
    roster.add_argument(
        "--persons",
        help="JSON list of {group, login, code, consider} person records.",
    )
    return parser


if __name__ == "__main__":  # pragma: no cover - module executable
    raise SystemExit(main())
