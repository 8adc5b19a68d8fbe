"""Configuration management."""

from pathlib import Path
from typing import Any, Optional

import yaml

from scrapchat.models import Config


def load_config(config_path: Optional[Path] = None, **overrides: Any) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: YAML file (defaults to config.yaml in the working directory)
        **overrides: Values that take precedence over the file; None values
            are ignored so unset CLI flags keep the file's value

    Returns:
        Config (defaults if the file doesn't exist)
    """
    if config_path is None:
        config_path = Path("config.yaml")

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

    data.update({key: value for key, value in overrides.items() if value is not None})
    return Config(**data)
