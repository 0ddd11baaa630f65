"""
Report output for dedup runs.

Generates:
- One line per duplicate group on stdout:
  "Symlink <comma-joined-paths>, save bytes <N>"
- End-of-run summary (bytes saved, skipped files, error detail)
- Optional CSV report with one row per group member
"""

from __future__ import annotations

import csv
import sys
from pathlib import Path
from typing import Optional, TextIO

import structlog

from symdedup.models import DuplicateGroup, RunReport

logger = structlog.get_logger(__name__)


def format_group_line(group: DuplicateGroup) -> str:
    members = ",".join(str(p) for p in group.members)
    return f"Symlink {members}, save bytes {group.savable_bytes}"


class ReportGenerator:
    """
    Write human-readable and CSV reports.

    Features:
    - Report lines flushed as groups are processed
    - Summary block with per-error detail
    - CSV with header statistics as comments
    """

    CSV_COLUMNS = [
        "group_id",
        "fingerprint",
        "file_path",
        "size_bytes",
        "size_mb",
        "role",
    ]

    def __init__(self, stream: Optional[TextIO] = None):
        """
        Initialize report generator.

        Args:
            stream: Destination of report lines (stdout by default)
        """
        self.stream = stream or sys.stdout

    def write_group_line(self, group: DuplicateGroup) -> None:
        self.stream.write(format_group_line(group) + "\n")
        self.stream.flush()

    def write_summary(self, report: RunReport) -> None:
        """Write the end-of-run summary block."""
        lines = [
            "",
            "Summary:",
            f"  duplicate groups: {len(report.groups)}",
            f"  savable bytes: {report.total_savable_bytes}",
        ]

        replacement = report.replacement
        if report.dry_run:
            lines.append("  dry run: no file was modified")
        elif replacement is not None:
            lines.extend(
                [
                    f"  bytes saved: {replacement.bytes_saved}",
                    f"  files replaced: {replacement.replaced}",
                    f"  files already linked: {replacement.already_linked}",
                    f"  files skipped by safety checks: {replacement.skipped}",
                ]
            )
            for file_path, reason in replacement.skip_reasons:
                lines.append(f"    {file_path}: {reason}")
            for file_path, error in replacement.mode_not_preserved:
                lines.append(f"  mode not preserved: {file_path}: {error}")

        if report.cancelled:
            lines.append("  run cancelled before completion")

        lines.append(f"  files skipped due to errors: {report.files_skipped}")
        for error in report.errors:
            lines.append(f"    {error}")

        self.stream.write("\n".join(lines) + "\n")
        self.stream.flush()

    def generate_csv(self, report: RunReport, output_path: Path) -> Path:
        """
        Generate CSV report file.

        Args:
            report: Run report with duplicate groups
            output_path: Where to save the CSV file

        Returns:
            Path to generated CSV file
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", newline="", encoding="utf-8") as f:
            self._write_header_stats(f, report)

            writer = csv.DictWriter(f, fieldnames=self.CSV_COLUMNS)
            writer.writeheader()

            for group in report.groups:
                for index, member in enumerate(group.members):
                    writer.writerow(
                        {
                            "group_id": group.group_id,
                            "fingerprint": str(group.fingerprint),
                            "file_path": str(member),
                            "size_bytes": group.size,
                            "size_mb": round(group.size / (1024 * 1024), 2),
                            "role": "keep" if index == 0 else "link",
                        }
                    )

        logger.info(
            "dedup_report_generated",
            output_path=str(output_path),
            groups=len(report.groups),
        )

        return output_path

    @staticmethod
    def _write_header_stats(f, report: RunReport) -> None:
        """Write header statistics as CSV comments."""
        f.write(f"# Dry Run: {'yes' if report.dry_run else 'no'}\n")
        f.write(f"# Files Scanned: {report.stats.files_scanned:,}\n")
        f.write(f"# Duplicate Groups: {len(report.groups):,}\n")
        f.write(f"# Savable Bytes: {report.total_savable_bytes:,}\n")
