"""
symdedup - Canonical exception hierarchy.

Recoverable errors (traversal, hash, replacement) are raised at the
per-file seam and turned into RunError entries by their caller.
Only SymdedupError subclasses that reach the CLI abort a run.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class SymdedupError(Exception):
    """Base exception symdedup."""


class ConfigError(SymdedupError):
    """Invalid configuration (unreadable YAML file, out-of-range values)."""


class PathError(SymdedupError):
    """Error tied to one filesystem path."""

    def __init__(self, path: Union[str, Path], message: str):
        super().__init__(f"{path}: {message}")
        self.path = Path(path)
        self.message = message


class TraversalError(PathError):
    """Directory unreadable (permissions, vanished mid-scan)."""


class HashError(PathError):
    """File unreadable while computing its digest."""


class ReplacementError(PathError):
    """Failure during the symlink swap of a duplicate."""


class NoUsableRootError(SymdedupError):
    """None of the requested roots can be scanned."""

    def __init__(self, roots: list[str], detail: Optional[str] = None):
        message = f"No usable root directory among: {', '.join(roots) or '(none)'}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.roots = roots
