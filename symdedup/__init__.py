"""
symdedup - content-addressable file deduplication with symlinks.

Modules:
- fingerprint: Streaming (size, digest) content keys
- barrier: Counting completion barrier for the tree walk
- walker: Concurrent tree walker (bounded worker pool)
- aggregator: Groups walker output by fingerprint
- replacer: Atomic symlink replacement of duplicates
- report_generator: Report lines, summary and CSV report
- pipeline: End-to-end run
- models: Pydantic data models
"""

from symdedup.models import (
    DuplicateGroup,
    FileRecord,
    Fingerprint,
    RunError,
    RunReport,
    ScanConfig,
    ScanStats,
)
from symdedup.pipeline import DedupPipeline, run_dedup

__version__ = "0.1.0"

__all__ = [
    "DedupPipeline",
    "DuplicateGroup",
    "FileRecord",
    "Fingerprint",
    "RunError",
    "RunReport",
    "ScanConfig",
    "ScanStats",
    "run_dedup",
]
