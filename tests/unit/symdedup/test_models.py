"""
Unit tests for symdedup models and settings.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from symdedup.config.exceptions import ConfigError
from symdedup.config.settings import build_config, load_settings
from symdedup.models import DuplicateGroup, Fingerprint, RunError, ErrorKind, ScanConfig


class TestScanConfig:
    """Validation of run settings."""

    def test_defaults(self):
        config = ScanConfig()

        assert config.roots == [Path(".")]
        assert config.min_size == 16384
        assert config.dry_run is False
        assert config.algorithm == "sha256"
        assert config.channel_capacity == 64

    def test_algorithm_normalized(self):
        assert ScanConfig(algorithm="MD5").algorithm == "md5"

    def test_unknown_algorithm_rejected(self):
        with pytest.raises(ValidationError):
            ScanConfig(algorithm="not-a-hash")

    def test_variable_length_digest_rejected(self):
        with pytest.raises(ValidationError):
            ScanConfig(algorithm="shake_128")

    def test_negative_min_size_rejected(self):
        with pytest.raises(ValidationError):
            ScanConfig(min_size=-1)

    def test_worker_bounds(self):
        with pytest.raises(ValidationError):
            ScanConfig(max_workers=0)

    def test_empty_roots_rejected(self):
        with pytest.raises(ValidationError):
            ScanConfig(roots=[])


class TestDuplicateGroup:
    """Derived properties."""

    def test_canonical_and_duplicates(self):
        group = DuplicateGroup(
            fingerprint=Fingerprint(size=10, digest="x"),
            members=[Path("a"), Path("b"), Path("c")],
            size=10,
        )

        assert group.canonical == Path("a")
        assert group.duplicates == [Path("b"), Path("c")]
        assert group.is_actionable
        assert group.savable_bytes == 20

    def test_single_member_saves_nothing(self):
        group = DuplicateGroup(fingerprint=Fingerprint(size=10, digest="x"), members=[Path("a")], size=10)

        assert not group.is_actionable
        assert group.savable_bytes == 0

    def test_run_error_str(self):
        error = RunError(kind=ErrorKind.traversal, path=Path("/x"), message="Permission denied")

        assert str(error) == "[traversal] /x: Permission denied"


class TestSettings:
    """YAML configuration file."""

    def test_no_file(self):
        assert load_settings(None) == {}

    def test_load_yaml(self, tmp_path):
        config_file = tmp_path / "symdedup.yaml"
        config_file.write_text(
            "symdedup:\n  roots: [/srv/a, /srv/b]\n  min_size: 1024\n  max_workers: 2\n",
            encoding="utf-8",
        )

        config = build_config(config_file)

        assert config.roots == [Path("/srv/a"), Path("/srv/b")]
        assert config.min_size == 1024
        assert config.max_workers == 2

    def test_overrides_win(self, tmp_path):
        config_file = tmp_path / "symdedup.yaml"
        config_file.write_text("symdedup:\n  min_size: 1024\n  dry_run: true\n", encoding="utf-8")

        config = build_config(config_file, min_size=10, dry_run=None)

        assert config.min_size == 10
        assert config.dry_run is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "missing.yaml")

    def test_missing_root_key(self, tmp_path):
        config_file = tmp_path / "other.yaml"
        config_file.write_text("watchdog:\n  enabled: true\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_settings(config_file)

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "broken.yaml"
        config_file.write_text("symdedup: [unclosed\n", encoding="utf-8")

        with pytest.raises(ConfigError):
            load_settings(config_file)

    def test_invalid_values(self):
        with pytest.raises(ConfigError):
            build_config(None, min_size=-5)
