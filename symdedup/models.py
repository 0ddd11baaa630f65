"""
Pydantic models for symdedup.

Models:
- ScanConfig: Run configuration (roots, size threshold, concurrency)
- Fingerprint: Content key (exact size + digest)
- FileRecord: One qualifying file emitted by the tree walker
- DuplicateGroup: All files sharing one fingerprint
- ScanStats: Traversal counters
- RunError: One recoverable error (traversal, hash, replacement)
- RunReport: Final result of a run
"""

from __future__ import annotations

import hashlib
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MIN_SIZE = 16 * 1024


class ErrorKind(str, Enum):
    """Kind of recoverable error collected during a run."""

    traversal = "traversal"
    hash = "hash"
    replacement = "replacement"


class ReplacementOutcome(str, Enum):
    """What happened to one duplicate member."""

    replaced = "replaced"
    already_linked = "already_linked"
    skipped = "skipped"
    failed = "failed"


class ScanConfig(BaseModel):
    """Configuration for a dedup run."""

    roots: list[Path] = Field(
        default_factory=lambda: [Path(".")],
        min_length=1,
        description="Root directories to scan",
    )
    min_size: int = Field(
        default=DEFAULT_MIN_SIZE,
        ge=0,
        description="Files at or below this size in bytes are ignored",
    )
    dry_run: bool = Field(
        default=False,
        description="Report duplicate groups without touching the filesystem",
    )
    max_workers: int = Field(
        default=8,
        ge=1,
        le=256,
        description="Number of concurrent directory workers",
    )
    channel_capacity: int = Field(
        default=64,
        ge=1,
        description="Capacity of the walker -> aggregator queue",
    )
    chunk_size: int = Field(
        default=65536,
        ge=1,
        description="Hashing chunk size in bytes",
    )
    algorithm: str = Field(
        default="sha256",
        description="hashlib algorithm used for content digests",
    )
    verify_before_replace: bool = Field(
        default=True,
        description="Re-hash each duplicate right before replacing it",
    )

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        """Only streaming hashlib algorithms with a fixed digest size."""
        name = v.lower()
        if name not in hashlib.algorithms_available or name.startswith("shake_"):
            raise ValueError(f"Unsupported digest algorithm: {v}")
        return name


class Fingerprint(BaseModel):
    """Composite content key: exact byte size + content digest."""

    model_config = ConfigDict(frozen=True)

    size: int
    digest: str

    def __str__(self) -> str:
        return f"{self.size}_{self.digest}"


class FileRecord(BaseModel):
    """Single qualifying file discovered during traversal."""

    model_config = ConfigDict(frozen=True)

    path: Path
    fingerprint: Fingerprint
    size: int
    device: int = 0
    inode: int = 0


class DuplicateGroup(BaseModel):
    """All files sharing one fingerprint, in first-discovered order."""

    group_id: int = 0
    fingerprint: Fingerprint
    members: list[Path] = Field(default_factory=list)
    size: int

    @property
    def canonical(self) -> Path:
        return self.members[0]

    @property
    def duplicates(self) -> list[Path]:
        return self.members[1:]

    @property
    def is_actionable(self) -> bool:
        return len(self.members) >= 2

    @property
    def savable_bytes(self) -> int:
        return self.size * max(len(self.members) - 1, 0)


class ScanStats(BaseModel):
    """Traversal statistics."""

    directories_scanned: int = 0
    files_scanned: int = 0
    files_below_threshold: int = 0
    symlinks_skipped: int = 0
    special_files_skipped: int = 0
    hardlinks_collapsed: int = 0
    errors: int = 0


class RunError(BaseModel):
    """One recoverable error, reported at the end of the run."""

    kind: ErrorKind
    path: Path
    message: str

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.path}: {self.message}"


class ReplacementResult:
    """Result of the replacement phase."""

    def __init__(self):
        self.groups_processed: int = 0
        self.replaced: int = 0
        self.already_linked: int = 0
        self.skipped: int = 0
        self.failed: int = 0
        self.bytes_saved: int = 0
        self.replaced_files: list[str] = []
        self.skip_reasons: list[tuple[str, str]] = []  # (file_path, reason)
        self.mode_not_preserved: list[tuple[str, str]] = []  # (file_path, error)
        self.errors: list[RunError] = []

    def record(self, outcome: ReplacementOutcome) -> None:
        if outcome is ReplacementOutcome.replaced:
            self.replaced += 1
        elif outcome is ReplacementOutcome.already_linked:
            self.already_linked += 1
        elif outcome is ReplacementOutcome.skipped:
            self.skipped += 1
        else:
            self.failed += 1


class RunReport(BaseModel):
    """Final result of one run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    dry_run: bool = False
    cancelled: bool = False
    groups: list[DuplicateGroup] = Field(default_factory=list)
    stats: ScanStats = Field(default_factory=ScanStats)
    replacement: Optional[ReplacementResult] = None
    errors: list[RunError] = Field(default_factory=list)

    @property
    def total_savable_bytes(self) -> int:
        return sum(group.savable_bytes for group in self.groups)

    @property
    def files_skipped(self) -> int:
        """Files left out because of an error (scan or replacement)."""
        return len(self.errors)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
