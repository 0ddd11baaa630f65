"""
Concurrent tree walker.

Features:
- Bounded worker pool (max_workers asyncio tasks) pulling directories
  from a shared work queue
- Each worker walks a chain of directories: it keeps the first
  subdirectory of a listing for itself and queues the others
- Symlinks are never followed nor fingerprinted
- Files at or below min_size are ignored
- Blocking filesystem calls (listing, hashing) run in threads
- Per-directory and per-file errors are recorded, never fatal
- Cooperative cancellation checked between directory entries
"""

from __future__ import annotations

import asyncio
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import structlog

from symdedup.barrier import CompletionBarrier
from symdedup.config.exceptions import HashError, TraversalError
from symdedup.fingerprint import fingerprint_file
from symdedup.models import ErrorKind, FileRecord, RunError, ScanConfig, ScanStats

logger = structlog.get_logger(__name__)

PROGRESS_EVERY = 100


@dataclass
class _Entry:
    """One directory entry, classified without following symlinks."""

    path: Path
    kind: str  # "dir", "file", "symlink", "other", "error"
    st: Optional[os.stat_result] = None
    error: Optional[str] = None


def _list_directory(directory: Path) -> list[_Entry]:
    """
    List and classify the immediate entries of a directory.

    Runs in a worker thread. Entries are sorted by name so the order
    within one directory is stable.

    Raises:
        TraversalError: Directory cannot be listed
    """
    try:
        with os.scandir(directory) as it:
            raw = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise TraversalError(directory, e.strerror or str(e)) from e

    entries = []
    for dir_entry in raw:
        path = Path(dir_entry.path)
        try:
            st = dir_entry.stat(follow_symlinks=False)
        except OSError as e:
            entries.append(_Entry(path, "error", error=e.strerror or str(e)))
            continue

        if stat.S_ISLNK(st.st_mode):
            entries.append(_Entry(path, "symlink", st))
        elif stat.S_ISDIR(st.st_mode):
            entries.append(_Entry(path, "dir", st))
        elif stat.S_ISREG(st.st_mode):
            entries.append(_Entry(path, "file", st))
        else:
            entries.append(_Entry(path, "other", st))
    return entries


class TreeWalker:
    """
    Walk root directories with a bounded pool of workers and emit one
    FileRecord per qualifying file into the output queue.

    The output queue is bounded: a worker blocks on put() while the
    aggregator is behind.
    """

    def __init__(
        self,
        config: ScanConfig,
        output: asyncio.Queue,
        barrier: Optional[CompletionBarrier] = None,
        progress_callback: Optional[Callable[[ScanStats], None]] = None,
    ):
        """
        Initialize walker.

        Args:
            config: Run configuration (min_size, max_workers, hashing)
            output: Queue receiving FileRecord objects
            barrier: Completion barrier shared by every directory task
            progress_callback: Called every PROGRESS_EVERY scanned files
        """
        self.config = config
        self.output = output
        self.barrier = barrier or CompletionBarrier()
        self.progress_callback = progress_callback
        self.stats = ScanStats()
        self.errors: list[RunError] = []
        self._work: asyncio.Queue = asyncio.Queue()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop scanning; queued directories are drained without being read."""
        self._cancelled = True

    def submit(self, directory: Path) -> None:
        """Register then queue one directory."""
        self.barrier.add(1)
        self._work.put_nowait(directory)

    async def run(self, roots: list[Path]) -> None:
        """
        Walk every root and return once all directories are processed.

        Args:
            roots: Directories to walk (already validated)
        """
        logger.info(
            "dedup_walk_started",
            roots=[str(r) for r in roots],
            max_workers=self.config.max_workers,
            min_size=self.config.min_size,
        )

        for root in roots:
            self.submit(root)

        workers = [
            asyncio.create_task(self._worker(i), name=f"symdedup-walker-{i}")
            for i in range(self.config.max_workers)
        ]
        try:
            await self.barrier.wait()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        logger.info(
            "dedup_walk_completed",
            directories=self.stats.directories_scanned,
            files=self.stats.files_scanned,
            errors=self.stats.errors,
            cancelled=self._cancelled,
        )

    async def _worker(self, worker_id: int) -> None:
        while True:
            directory = await self._work.get()
            try:
                await self._walk_chain(directory)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._record_error(ErrorKind.traversal, directory, f"unexpected error: {e}")
                logger.exception(
                    "dedup_worker_failed",
                    worker_id=worker_id,
                    directory=str(directory),
                )
            finally:
                self.barrier.done()

    async def _walk_chain(self, directory: Path) -> None:
        """Scan directory, then keep descending into its first subdirectory."""
        current: Optional[Path] = directory
        while current is not None and not self._cancelled:
            subdirs = await self._scan_directory(current)
            if not subdirs:
                break
            for subdir in subdirs[1:]:
                self.submit(subdir)
            current = subdirs[0]

    async def _scan_directory(self, directory: Path) -> list[Path]:
        """
        Fingerprint the qualifying files of one directory.

        Returns:
            Its subdirectories (symlinks excluded)
        """
        try:
            entries = await asyncio.to_thread(_list_directory, directory)
        except TraversalError as e:
            self._record_error(ErrorKind.traversal, e.path, e.message)
            return []

        self.stats.directories_scanned += 1
        subdirs: list[Path] = []

        for entry in entries:
            if self._cancelled:
                break

            if entry.kind == "symlink":
                self.stats.symlinks_skipped += 1
                continue
            if entry.kind == "dir":
                subdirs.append(entry.path)
                continue
            if entry.kind == "error":
                self._record_error(ErrorKind.traversal, entry.path, entry.error or "stat failed")
                continue
            if entry.kind == "other":
                self.stats.special_files_skipped += 1
                continue

            size = entry.st.st_size
            if size <= self.config.min_size:
                self.stats.files_below_threshold += 1
                continue

            await self._process_file(entry, size)

        return subdirs

    async def _process_file(self, entry: _Entry, size: int) -> None:
        try:
            fingerprint = await asyncio.to_thread(
                fingerprint_file,
                entry.path,
                size,
                self.config.algorithm,
                self.config.chunk_size,
            )
        except HashError as e:
            self._record_error(ErrorKind.hash, e.path, e.message)
            return

        await self.output.put(
            FileRecord(
                path=entry.path,
                fingerprint=fingerprint,
                size=size,
                device=entry.st.st_dev,
                inode=entry.st.st_ino,
            )
        )
        self.stats.files_scanned += 1

        if self.progress_callback and self.stats.files_scanned % PROGRESS_EVERY == 0:
            self.progress_callback(self.stats)

    def _record_error(self, kind: ErrorKind, path: Path, message: str) -> None:
        self.stats.errors += 1
        self.errors.append(RunError(kind=kind, path=path, message=message))
        logger.warning(
            "dedup_scan_error",
            kind=kind.value,
            path=str(path),
            error=message,
        )
