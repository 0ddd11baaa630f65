"""
End-to-end dedup run: walk -> aggregate -> replace.

Steps:
1. Validate roots (drop missing, repeated and nested ones)
2. Walk every root with a bounded worker pool; an aggregator task
   drains the bounded record queue concurrently
3. Once every directory task is done, close the queue and let the
   aggregator consume what is still buffered
4. Report and replace duplicate groups, single-threaded
"""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

import structlog

from symdedup.aggregator import Aggregator
from symdedup.barrier import CompletionBarrier
from symdedup.config.exceptions import NoUsableRootError
from symdedup.models import ErrorKind, RunError, RunReport, ScanConfig, ScanStats
from symdedup.replacer import SymlinkReplacer
from symdedup.report_generator import ReportGenerator
from symdedup.walker import TreeWalker

logger = structlog.get_logger(__name__)


def resolve_roots(roots: Iterable[Path]) -> tuple[list[Path], list[RunError]]:
    """
    Keep the roots that can be walked exactly once.

    A root equal to, or nested inside, another root would make the same
    file show up twice in one group.

    Returns:
        (usable_roots, errors) - usable roots keep the spelling they were
        given with, in their original order
    """
    errors: list[RunError] = []
    candidates: list[tuple[Path, Path]] = []  # (given, resolved)

    for root in roots:
        given = Path(os.path.normpath(os.path.expanduser(str(root))))
        if not given.exists():
            errors.append(RunError(kind=ErrorKind.traversal, path=given, message="root does not exist"))
            continue
        if not given.is_dir():
            errors.append(RunError(kind=ErrorKind.traversal, path=given, message="root is not a directory"))
            continue
        candidates.append((given, given.resolve()))

    kept_resolved: list[Path] = []
    for _given, resolved in sorted(candidates, key=lambda c: len(c[1].parts)):
        if any(resolved == k or resolved.is_relative_to(k) for k in kept_resolved):
            logger.info("dedup_root_ignored", root=str(resolved), reason="covered by another root")
            continue
        kept_resolved.append(resolved)

    usable: list[Path] = []
    for given, resolved in candidates:
        if resolved in kept_resolved:
            kept_resolved.remove(resolved)
            usable.append(given)

    for error in errors:
        logger.warning("dedup_root_unusable", root=str(error.path), reason=error.message)

    return usable, errors


class DedupPipeline:
    """
    Run one deduplication pass over the configured roots.
    """

    def __init__(
        self,
        config: ScanConfig,
        report: Optional[ReportGenerator] = None,
        progress_callback: Optional[Callable[[ScanStats], None]] = None,
    ):
        self.config = config
        self.report = report or ReportGenerator()
        self.progress_callback = progress_callback
        self._walker: Optional[TreeWalker] = None
        self._replacer: Optional[SymlinkReplacer] = None
        self._cancelled = False

    def cancel(self) -> None:
        """Cancel the scan (and the replacement phase if it started)."""
        self._cancelled = True
        if self._walker is not None:
            self._walker.cancel()
        if self._replacer is not None:
            self._replacer.cancel()

    async def run(self) -> RunReport:
        """
        Execute the run.

        Returns:
            RunReport with groups, statistics and per-error detail

        Raises:
            NoUsableRootError: None of the roots can be walked
        """
        start_time = time.monotonic()
        roots, errors = resolve_roots(self.config.roots)
        if not roots:
            raise NoUsableRootError(
                [str(r) for r in self.config.roots],
                "; ".join(f"{e.path}: {e.message}" for e in errors) or None,
            )

        logger.info(
            "dedup_run_started",
            roots=[str(r) for r in roots],
            dry_run=self.config.dry_run,
            min_size=self.config.min_size,
            algorithm=self.config.algorithm,
        )

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.config.channel_capacity)
        aggregator = Aggregator(queue)
        walker = TreeWalker(
            self.config,
            queue,
            barrier=CompletionBarrier(),
            progress_callback=self.progress_callback,
        )
        self._walker = walker
        if self._cancelled:
            walker.cancel()

        consumer = aggregator.start()
        try:
            await walker.run(roots)
        except BaseException:
            consumer.cancel()
            raise
        await aggregator.close()

        stats = walker.stats
        stats.hardlinks_collapsed = aggregator.hardlinks_collapsed
        errors.extend(walker.errors)
        groups = aggregator.duplicate_groups()

        run_report = RunReport(
            dry_run=self.config.dry_run,
            cancelled=walker.cancelled,
            groups=groups,
            stats=stats,
            errors=errors,
        )

        if run_report.cancelled:
            # Partial scan: show what was found, change nothing.
            for group in groups:
                self.report.write_group_line(group)
        else:
            self._replacer = SymlinkReplacer(
                dry_run=self.config.dry_run,
                verify=self.config.verify_before_replace,
                algorithm=self.config.algorithm,
                chunk_size=self.config.chunk_size,
                report=self.report,
            )
            # Off the event loop so a signal handler can still call cancel().
            replacement = await asyncio.to_thread(self._replacer.replace_groups, groups)
            run_report.replacement = replacement
            run_report.errors.extend(replacement.errors)
            run_report.cancelled = self._cancelled

        logger.info(
            "dedup_run_completed",
            files_scanned=stats.files_scanned,
            duplicate_groups=len(groups),
            savable_bytes=run_report.total_savable_bytes,
            bytes_saved=run_report.replacement.bytes_saved if run_report.replacement else 0,
            errors=len(run_report.errors),
            elapsed_seconds=round(time.monotonic() - start_time, 2),
        )

        return run_report


async def run_dedup(
    config: ScanConfig,
    report: Optional[ReportGenerator] = None,
) -> RunReport:
    """Convenience wrapper around DedupPipeline.run()."""
    return await DedupPipeline(config, report=report).run()
