"""
Optional YAML configuration for symdedup.

Expected layout:

    symdedup:
      roots: ["/srv/mirror-a", "/srv/mirror-b"]
      min_size: 16384
      max_workers: 8
      algorithm: sha256

Values given on the command line override the file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

import structlog
import yaml
from pydantic import ValidationError

from symdedup.config.exceptions import ConfigError
from symdedup.models import ScanConfig

logger = structlog.get_logger(__name__)

ROOT_KEY = "symdedup"


def load_settings(config_path: Optional[Union[str, Path]]) -> dict[str, Any]:
    """
    Read the symdedup section of a YAML file.

    Returns:
        Raw settings mapping (empty when no file is given)

    Raises:
        ConfigError: File missing, unparsable or without a 'symdedup' mapping
    """
    if config_path is None:
        return {}

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not raw or ROOT_KEY not in raw or not isinstance(raw[ROOT_KEY], dict):
        raise ConfigError(f"Invalid config {path}: missing '{ROOT_KEY}' root key")

    logger.debug("dedup_config_loaded", config_path=str(path), keys=sorted(raw[ROOT_KEY]))
    return dict(raw[ROOT_KEY])


def build_config(
    config_path: Optional[Union[str, Path]] = None,
    **overrides: Any,
) -> ScanConfig:
    """
    Merge file settings and explicit overrides into a validated ScanConfig.

    Overrides set to None are ignored, so unset CLI flags keep the file
    (or default) value.

    Raises:
        ConfigError: Invalid file or invalid values
    """
    values = load_settings(config_path)
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return ScanConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
