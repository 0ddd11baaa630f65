"""
Single-consumer aggregation of walker output into duplicate groups.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from symdedup.models import DuplicateGroup, FileRecord, Fingerprint

logger = structlog.get_logger(__name__)

# Close marker put on the queue once every walker has finished.
CLOSE = None


class Aggregator:
    """
    Drain the walker queue into fingerprint -> records, first-discovered order.

    Only the consume() task writes the mapping, so it needs no locking.
    A path already seen, or a second path to an already seen inode (hard
    link), is not grouped again.
    """

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue
        self._by_fingerprint: dict[Fingerprint, list[FileRecord]] = {}
        self._seen_paths: set[str] = set()
        self._seen_inodes: set[tuple[int, int]] = set()
        self.records_received = 0
        self.hardlinks_collapsed = 0
        self._task: Optional[asyncio.Task] = None

    def start(self) -> asyncio.Task:
        """Start draining in a background task."""
        self._task = asyncio.create_task(self.consume(), name="symdedup-aggregator")
        return self._task

    async def close(self) -> None:
        """Signal end of input and wait until every buffered record is consumed."""
        await self.queue.put(CLOSE)
        if self._task is not None:
            await self._task

    async def consume(self) -> None:
        while True:
            record = await self.queue.get()
            if record is CLOSE:
                break
            self.add(record)

        logger.debug(
            "dedup_aggregation_completed",
            records=self.records_received,
            fingerprints=len(self._by_fingerprint),
        )

    def add(self, record: FileRecord) -> bool:
        """Group one record; returns False when it was ignored."""
        self.records_received += 1

        path_key = str(record.path)
        if path_key in self._seen_paths:
            logger.debug("dedup_path_repeated", path=path_key)
            return False

        if record.inode:
            inode_key = (record.device, record.inode)
            if inode_key in self._seen_inodes:
                self.hardlinks_collapsed += 1
                logger.debug("dedup_hardlink_collapsed", path=path_key)
                return False
            self._seen_inodes.add(inode_key)

        self._seen_paths.add(path_key)
        self._by_fingerprint.setdefault(record.fingerprint, []).append(record)
        return True

    def groups(self) -> list[DuplicateGroup]:
        """Every group, including single-member ones."""
        groups = []
        for group_id, (fingerprint, records) in enumerate(self._by_fingerprint.items(), start=1):
            groups.append(
                DuplicateGroup(
                    group_id=group_id,
                    fingerprint=fingerprint,
                    members=[r.path for r in records],
                    size=records[0].size,
                )
            )
        return groups

    def duplicate_groups(self) -> list[DuplicateGroup]:
        """Groups with two or more members, numbered from 1."""
        groups = [g for g in self.groups() if g.is_actionable]
        for group_id, group in enumerate(groups, start=1):
            group.group_id = group_id
        return groups
