"""YAML configuration loading.

Safe loading via ``yaml.safe_load`` for
[BaseService.from_yaml()][georelay.core.base_service.BaseService.from_yaml]
and the CLI. The returned dictionary is unvalidated; callers pass it to a
pydantic model such as
[WatcherConfig][georelay.services.watcher.configs.WatcherConfig].
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed mapping, or an empty dict for an empty file.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file contains invalid YAML syntax.
        ConfigurationError: If the document is not a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: top-level YAML must be a mapping")
    return data
