"""
Unit tests for ReportGenerator.

Tests:
- Report line format and savings (size x (members - 1))
- Summary content (dry run, replacement counts, errors)
- CSV report with header stats and one row per member
"""

import csv
import io
from pathlib import Path

from symdedup.models import (
    DuplicateGroup,
    ErrorKind,
    Fingerprint,
    ReplacementResult,
    RunError,
    RunReport,
    ScanStats,
)
from symdedup.report_generator import ReportGenerator, format_group_line


def _group(members: list[str], size: int = 20000, group_id: int = 1) -> DuplicateGroup:
    return DuplicateGroup(
        group_id=group_id,
        fingerprint=Fingerprint(size=size, digest="abc123"),
        members=[Path(m) for m in members],
        size=size,
    )


class TestGroupLine:
    """One line per duplicate group."""

    def test_two_members(self):
        line = format_group_line(_group(["a/x.bin", "b/x.bin"]))

        assert line == "Symlink a/x.bin,b/x.bin, save bytes 20000"

    def test_savings_use_member_count(self):
        """Three copies of 1000 bytes save 2000 bytes, whatever the number of groups."""
        line = format_group_line(_group(["a", "b", "c"], size=1000))

        assert line.endswith("save bytes 2000")

    def test_write_group_line(self):
        out = io.StringIO()

        ReportGenerator(stream=out).write_group_line(_group(["a", "b"], size=5))

        assert out.getvalue() == "Symlink a,b, save bytes 5\n"


class TestSummary:
    """End-of-run summary."""

    def test_dry_run_summary(self):
        out = io.StringIO()
        report = RunReport(dry_run=True, groups=[_group(["a", "b"]), _group(["c", "d", "e"], size=10)])

        ReportGenerator(stream=out).write_summary(report)

        text = out.getvalue()
        assert "duplicate groups: 2" in text
        assert "savable bytes: 20020" in text
        assert "dry run: no file was modified" in text
        assert "files skipped due to errors: 0" in text

    def test_replacement_summary_with_errors(self):
        out = io.StringIO()
        replacement = ReplacementResult()
        replacement.replaced = 3
        replacement.bytes_saved = 60000
        replacement.skipped = 1
        replacement.skip_reasons.append(("c", "Hash mismatch (file modified since scan)"))
        report = RunReport(
            groups=[_group(["a", "b"])],
            replacement=replacement,
            errors=[RunError(kind=ErrorKind.hash, path=Path("/data/broken.bin"), message="Input/output error")],
        )

        ReportGenerator(stream=out).write_summary(report)

        text = out.getvalue()
        assert "bytes saved: 60000" in text
        assert "files replaced: 3" in text
        assert "c: Hash mismatch" in text
        assert "files skipped due to errors: 1" in text
        assert "[hash] /data/broken.bin: Input/output error" in text


class TestCsvReport:
    """CSV generation."""

    def test_generate_csv(self, tmp_path):
        report = RunReport(
            groups=[_group(["a/x.bin", "b/x.bin"]), _group(["c", "d", "e"], size=10, group_id=2)],
            stats=ScanStats(files_scanned=12),
        )
        output = tmp_path / "reports" / "dedup.csv"

        path = ReportGenerator(stream=io.StringIO()).generate_csv(report, output)

        content = path.read_text(encoding="utf-8")
        assert "# Files Scanned: 12" in content
        assert "# Duplicate Groups: 2" in content

        rows = list(csv.DictReader(line for line in content.splitlines() if not line.startswith("#")))
        assert len(rows) == 5
        assert [r["role"] for r in rows] == ["keep", "link", "keep", "link", "link"]
        assert rows[0]["fingerprint"] == "20000_abc123"
        assert rows[2]["group_id"] == "2"
