#!/usr/bin/env python3
"""
symdedup - replace duplicate files with symlinks to one kept copy.

Usage:
    symdedup --dir /srv/mirror-a,/srv/mirror-b --dry_run
    symdedup --dir . --min_size 1048576
    symdedup --config symdedup.yaml --report-csv report.csv

Exit codes:
    0  run completed without errors
    1  run completed with per-file errors, or was interrupted
    2  fatal error (invalid configuration, no usable root)
"""

from __future__ import annotations

import argparse
import asyncio
import signal
from pathlib import Path
from typing import Optional, Sequence

import structlog

from symdedup.config.exceptions import SymdedupError
from symdedup.config.logging import LOG_FORMATS, configure_logging
from symdedup.config.settings import build_config
from symdedup.models import RunReport
from symdedup.pipeline import DedupPipeline
from symdedup.report_generator import ReportGenerator

EXIT_OK = 0
EXIT_ERRORS = 1
EXIT_FATAL = 2


def parse_dirs(value: str) -> list[Path]:
    """Split the comma separated --dir value; empty segments are ignored."""
    dirs = [Path(part.strip()) for part in value.split(",") if part.strip()]
    return dirs or [Path(".")]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="symdedup",
        description="Replace duplicate files with symlinks to a single kept copy",
    )
    parser.add_argument(
        "--dir",
        default=None,
        help="Directories to deduplicate, comma separated (default: .)",
    )
    parser.add_argument(
        "--dry_run",
        "--dry-run",
        dest="dry_run",
        action="store_true",
        default=None,
        help="Report duplicate groups without modifying anything",
    )
    parser.add_argument(
        "--min_size",
        "--min-size",
        dest="min_size",
        type=int,
        default=None,
        help="Ignore files at or below this size in bytes (default: 16384)",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Concurrent directory workers (default: 8)",
    )
    parser.add_argument(
        "--algorithm",
        default=None,
        help="hashlib digest algorithm (default: sha256)",
    )
    parser.add_argument(
        "--no-verify",
        dest="verify_before_replace",
        action="store_const",
        const=False,
        default=None,
        help="Do not re-hash duplicates right before replacing them",
    )
    parser.add_argument(
        "--report-csv",
        type=Path,
        default=None,
        help="Also write a CSV report of every duplicate group",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file with a 'symdedup' section",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="DEBUG, INFO, WARNING, ERROR (default: $LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=LOG_FORMATS,
        default=None,
        help="Log output format (default: $LOG_FORMAT or console)",
    )
    return parser


async def _run_pipeline(pipeline: DedupPipeline) -> RunReport:
    """Run the pipeline, turning SIGINT into a cooperative cancel."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, pipeline.cancel)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        handler_installed = False

    try:
        return await pipeline.run()
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(
            level=args.log_level,
            json_format=None if args.log_format is None else args.log_format == "json",
        )
    except ValueError as e:
        parser.error(str(e))

    log = structlog.get_logger("symdedup.cli")

    try:
        config = build_config(
            args.config,
            roots=parse_dirs(args.dir) if args.dir is not None else None,
            dry_run=args.dry_run,
            min_size=args.min_size,
            max_workers=args.max_workers,
            algorithm=args.algorithm,
            verify_before_replace=args.verify_before_replace,
        )
        report = ReportGenerator()
        run_report = asyncio.run(_run_pipeline(DedupPipeline(config, report=report)))
    except KeyboardInterrupt:
        log.warning("dedup_interrupted")
        return EXIT_ERRORS
    except SymdedupError as exc:
        log.error("dedup_failed", error=str(exc), error_type=type(exc).__name__)
        return EXIT_FATAL

    report.write_summary(run_report)
    if args.report_csv is not None:
        report.generate_csv(run_report, args.report_csv)

    if run_report.has_errors or run_report.cancelled:
        return EXIT_ERRORS
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
