"""Command-line interface for apidiff."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from enum import Enum
from typing import Optional

from .engine import DiffEngine
from .exceptions import ApiDiffError
from .models import DiagnosticMode, EngineConfig, LogLevel, SpecificationChangeSet
from .render import HtmlRenderer, MarkdownRenderer, TextRenderer

logger = logging.getLogger(__name__)

EXIT_INPUT_ERROR = 2


class ExitPolicy(Enum):
    COMPATIBLE = "compatible"
    FAIL_ON_CHANGED = "fail-on-changed"
    PRINT_STATE = "print-state"


def exit_code(change_set: SpecificationChangeSet, policy: ExitPolicy) -> int:
    """Map a comparison result to a process exit code."""
    if policy == ExitPolicy.PRINT_STATE:
        return 0
    if policy == ExitPolicy.FAIL_ON_CHANGED:
        return 0 if change_set.is_unchanged() else 1
    return 0 if change_set.is_compatible() else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apidiff",
        description="Compare two OpenAPI documents and classify the changes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  apidiff --old v1.yaml --new v2.yaml --console
  apidiff -o v1.yaml -n v2.yaml --markdown changes.md --exit fail-on-changed
  apidiff -o v1.yaml -n v2.yaml --ignore "$.paths.'/internal'" --strict
        """
    )

    parser.add_argument("-o", "--old", required=True, help="Path to the old document")
    parser.add_argument("-n", "--new", required=True, help="Path to the new document")
    parser.add_argument(
        "-e", "--exit",
        dest="exit_policy",
        choices=[ExitPolicy.PRINT_STATE.value, ExitPolicy.FAIL_ON_CHANGED.value],
        help="Exit behavior (default: fail only on breaking changes)"
    )
    parser.add_argument("-c", "--console", action="store_true", help="Print the report to stdout")
    parser.add_argument("--markdown", help="Write a Markdown report to this file")
    parser.add_argument("--html", help="Write an HTML report to this file")
    parser.add_argument("--text", help="Write a plain-text report to this file")
    parser.add_argument("--json", help="Write a JSON report to this file")
    parser.add_argument("--config", help="Path to a YAML/JSON engine config")
    parser.add_argument("--strict", action="store_true", help="Treat document issues as errors")
    parser.add_argument(
        "--ignore",
        action="append",
        default=[],
        metavar="JSONPATH",
        help="Remove matching nodes before comparing (repeatable)"
    )
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level (default: INFO)"
    )
    return parser


def _load_config(args) -> EngineConfig:
    config = EngineConfig.from_file(args.config) if args.config else EngineConfig()
    if args.strict:
        config.diagnostic_mode = DiagnosticMode.STRICT
    if args.ignore:
        config.ignore_paths = config.ignore_paths + args.ignore
    if args.log_level:
        config.log_level = LogLevel(args.log_level)
    return config


def _save(content: str, path: str):
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(content)
    except OSError as e:
        logger.error("Error exporting to \"%s\": %s", path, e)
        return
    logger.debug("Report saved to %s", path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
    except (FileNotFoundError, ApiDiffError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    logging.basicConfig(
        level=config.log_level.to_logging(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        result = DiffEngine(config).from_locations(args.old, args.new)
    except (FileNotFoundError, ApiDiffError) as e:
        logger.error("%s", e)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    if args.console:
        print(TextRenderer().render(result))
    if args.html:
        _save(HtmlRenderer().render(result), args.html)
    if args.markdown:
        _save(MarkdownRenderer().render(result), args.markdown)
    if args.text:
        _save(TextRenderer().render(result), args.text)
    if args.json:
        _save(json.dumps(result.to_dict(), indent=2, default=str), args.json)

    policy = ExitPolicy(args.exit_policy) if args.exit_policy else ExitPolicy.COMPATIBLE
    if policy == ExitPolicy.PRINT_STATE:
        print(result.verdict.label)
    return exit_code(result, policy)


if __name__ == "__main__":
    sys.exit(main())
