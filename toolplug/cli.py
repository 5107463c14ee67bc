"""
Command-line entry point for scheduled jobs.

    toolplug init-db
    toolplug generate --kind week [--period-key 2025-W07] [--force]
    toolplug dispatch [--period-key 2025-W07] [--all-days]

Each command prints its JSON result and exits 1 on failure, so a cron
wrapper only needs the exit code.
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from dotenv import load_dotenv

from toolplug.errors import ToolPlugError
from toolplug.observability.logging import configure_logging, get_logger
from toolplug.pipeline.periods import PeriodKind

logger = get_logger(__name__)


def _print(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _init_db(args: argparse.Namespace) -> int:
    from toolplug.infrastructure.database import get_db_path, init_database

    init_database()
    _print({"ok": True, "db_path": str(get_db_path())})
    return 0


def _generate(args: argparse.Namespace) -> int:
    from toolplug.pipeline.generation import generate_period

    try:
        result = generate_period(args.period_key, kind=PeriodKind(args.kind), force=args.force)
    except (ValueError, ToolPlugError) as e:
        logger.error("Generation failed: %s", e)
        _print({"ok": False, "error": str(e), "period_key": args.period_key})
        return 1
    _print(result.to_dict())
    return 0 if result.ok else 1


def _dispatch(args: argparse.Namespace) -> int:
    from toolplug.dispatch.engine import default_week_key, dispatch_period

    period_key = args.period_key or default_week_key()
    try:
        report = dispatch_period(period_key, restrict_to_weekday=not args.all_days)
    except (ValueError, ToolPlugError) as e:
        logger.error("Dispatch failed: %s", e)
        _print({"ok": False, "error": str(e), "period_key": period_key})
        return 1
    _print(report.to_dict())
    # Nothing queued is a normal outcome for a re-run
    return 0 if report.ok or report.message == "no_queued_picks" else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="toolplug", description="ToolPlug scheduled jobs")
    parser.add_argument("--log-level", default=None, help="Override TOOLPLUG_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create the database schema")
    init_db.set_defaults(handler=_init_db)

    generate = subparsers.add_parser("generate", help="Fetch, classify, generate and store picks")
    generate.add_argument(
        "--kind",
        choices=[kind.value for kind in PeriodKind],
        default=PeriodKind.WEEK.value,
        help="Period kind (ignored when --period-key is given)",
    )
    generate.add_argument("--period-key", default=None, help="e.g. 2025-02-14, 2025-W07, 2025-02")
    generate.add_argument("--force", action="store_true", help="Regenerate even if content exists")
    generate.set_defaults(handler=_generate)

    dispatch = subparsers.add_parser("dispatch", help="Send a period's queued picks")
    dispatch.add_argument("--period-key", default=None, help="Defaults to the current ISO week")
    dispatch.add_argument(
        "--all-days",
        action="store_true",
        help="Send to every subscriber, not only those whose send day is today",
    )
    dispatch.set_defaults(handler=_dispatch)

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    if args.log_level:
        configure_logging(args.log_level)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
