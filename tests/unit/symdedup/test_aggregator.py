"""
Unit tests for Aggregator.
"""

import asyncio
from pathlib import Path

import pytest

from symdedup.aggregator import Aggregator
from symdedup.models import FileRecord, Fingerprint


def _record(path: str, digest: str = "aa", size: int = 100, inode: int = 0) -> FileRecord:
    return FileRecord(
        path=Path(path),
        fingerprint=Fingerprint(size=size, digest=digest),
        size=size,
        device=1 if inode else 0,
        inode=inode,
    )


class TestGrouping:
    """Fingerprint grouping."""

    def test_same_fingerprint_same_group(self):
        agg = Aggregator(asyncio.Queue())
        agg.add(_record("/a/x", inode=1))
        agg.add(_record("/b/x", inode=2))
        agg.add(_record("/c/y", digest="bb", inode=3))

        groups = agg.groups()

        assert len(groups) == 2
        assert groups[0].members == [Path("/a/x"), Path("/b/x")]
        assert groups[1].members == [Path("/c/y")]

    def test_same_digest_different_size_not_grouped(self):
        """Size is part of the key."""
        agg = Aggregator(asyncio.Queue())
        agg.add(_record("/a", digest="aa", size=100, inode=1))
        agg.add(_record("/b", digest="aa", size=200, inode=2))

        assert agg.duplicate_groups() == []

    def test_duplicate_groups_only_actionable(self):
        agg = Aggregator(asyncio.Queue())
        agg.add(_record("/a", digest="aa", inode=1))
        agg.add(_record("/b", digest="aa", inode=2))
        agg.add(_record("/c", digest="cc", inode=3))
        agg.add(_record("/d", digest="dd", inode=4))
        agg.add(_record("/e", digest="dd", inode=5))
        agg.add(_record("/f", digest="dd", inode=6))

        groups = agg.duplicate_groups()

        assert [g.group_id for g in groups] == [1, 2]
        assert [len(g.members) for g in groups] == [2, 3]
        assert groups[1].savable_bytes == 200

    def test_first_discovered_order(self):
        agg = Aggregator(asyncio.Queue())
        for name in ["/z", "/m", "/a"]:
            agg.add(_record(name, inode=ord(name[1])))

        assert agg.groups()[0].canonical == Path("/z")

    def test_repeated_path_ignored(self):
        agg = Aggregator(asyncio.Queue())

        assert agg.add(_record("/a", inode=1)) is True
        assert agg.add(_record("/a", inode=1)) is False
        assert agg.duplicate_groups() == []

    def test_hardlinks_collapsed(self):
        """Two paths to one inode: linking them would save nothing."""
        agg = Aggregator(asyncio.Queue())
        agg.add(_record("/a", inode=7))
        agg.add(_record("/b", inode=7))

        assert agg.duplicate_groups() == []
        assert agg.hardlinks_collapsed == 1


class TestConsume:
    """Queue draining."""

    @pytest.mark.asyncio
    async def test_close_drains_buffered_records(self):
        queue = asyncio.Queue(maxsize=8)
        agg = Aggregator(queue)

        for i in range(5):
            queue.put_nowait(_record(f"/f{i}", inode=i + 1))

        agg.start()
        await asyncio.wait_for(agg.close(), timeout=5)

        assert agg.records_received == 5
        assert len(agg.groups()[0].members) == 5

    @pytest.mark.asyncio
    async def test_concurrent_producers(self):
        queue = asyncio.Queue(maxsize=2)
        agg = Aggregator(queue)
        agg.start()

        offsets = {"a": 1000, "b": 2000, "c": 3000}

        async def produce(prefix: str):
            for i in range(20):
                await queue.put(_record(f"/{prefix}/{i}", digest=str(i), inode=offsets[prefix] + i))

        await asyncio.gather(produce("a"), produce("b"), produce("c"))
        await asyncio.wait_for(agg.close(), timeout=5)

        groups = agg.duplicate_groups()
        assert len(groups) == 20
        assert all(len(g.members) == 3 for g in groups)
