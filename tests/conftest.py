"""
Shared pytest fixtures for symdedup tests.

Contains:
- PYTHONPATH setup (repo root)
- Helpers building real file trees under tmp_path
- ScanConfig factory with test-friendly thresholds
"""

import os
import sys
from pathlib import Path
from typing import Callable

import pytest

# ==========================================
# PYTHONPATH Setup
# ==========================================

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from symdedup.models import ScanConfig  # noqa: E402


# ==========================================
# File tree helpers
# ==========================================


def payload(seed: str, size: int) -> bytes:
    """Deterministic content of an exact size."""
    block = (seed.encode() * (size // max(len(seed), 1) + 1))[:size]
    return block


def write_file(path: Path, content: bytes, mode: int = 0o644) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    os.chmod(path, mode)
    return path


@pytest.fixture
def make_file() -> Callable[..., Path]:
    """Factory: make_file(path, seed="x", size=20000, mode=0o644)."""

    def _make(path: Path, seed: str = "x", size: int = 20000, mode: int = 0o644) -> Path:
        return write_file(path, payload(seed, size), mode)

    return _make


@pytest.fixture
def make_config(tmp_path) -> Callable[..., ScanConfig]:
    """Factory for a ScanConfig rooted at tmp_path by default."""

    def _make(**overrides) -> ScanConfig:
        values = {"roots": [tmp_path], "max_workers": 4}
        values.update(overrides)
        return ScanConfig(**values)

    return _make


@pytest.fixture
def symlinks_supported(tmp_path) -> bool:
    probe = tmp_path / ".symlink-probe"
    try:
        probe.symlink_to(tmp_path)
    except (OSError, NotImplementedError):
        pytest.skip("Symlinks not supported on this platform")
    probe.unlink()
    return True
