"""Configuration loading for the callscrub CLI.

Supports configuration from:
1. Default values
2. Config file (~/.callscrub/config.yaml)
3. CLI arguments (handled by typer)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()

CONFIG_PATH = Path.home() / ".callscrub" / "config.yaml"


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from file.

    Priority (lowest to highest):
    1. Default values
    2. Config file

    Args:
        path: Config file to read instead of ~/.callscrub/config.yaml.

    Returns:
        Configuration dictionary.
    """
    config: dict[str, Any] = {
        "redaction": {
            "method": "beep",
            "beep_volume": 0.2,
            "audio_volume": 1.0,
            "size_tolerance": 0.10,
        },
    }

    config_path = path or CONFIG_PATH
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f)
            if isinstance(file_config, dict):
                _merge_config(config, file_config)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("config_file_ignored", path=str(config_path), error=str(e))

    return config


def _merge_config(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge override config into base config."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _merge_config(base[key], value)
        else:
            base[key] = value


def get_default(config: dict[str, Any], key: str, fallback: Any = None) -> Any:
    """Get a redaction default from config.

    Args:
        config: Configuration dictionary.
        key: Key to look up under ``redaction``.
        fallback: Value to return if not found.

    Returns:
        The default value or fallback.
    """
    return config.get("redaction", {}).get(key, fallback)
