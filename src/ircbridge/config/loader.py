"""Config loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from ircbridge.core.errors import BridgeConfigurationError


def load_config(path: str | Path) -> dict[str, Any]:
    """Load config from YAML file. Use SafeLoader. Returns raw dict."""
    path = Path(path)
    if not path.exists():
        raise BridgeConfigurationError(
            f"Config file not found: {path}",
            code="missing_file",
            details={"path": str(path)},
        )

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        logger.error("Failed to parse config {}: {}", path, exc)
        raise BridgeConfigurationError(
            f"Failed to parse config {path}",
            code="invalid_yaml",
            details={"path": str(path)},
            original_error=exc,
        ) from exc
    if data is None:
        logger.warning("Config file {} is empty", path)
        return {}
    if not isinstance(data, dict):
        raise BridgeConfigurationError(
            f"Config file {path} has invalid structure (expected mapping)",
            code="invalid_structure",
            details={"path": str(path), "type": type(data).__name__},
        )
    return data


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load config from YAML after loading .env into the process environment."""
    from dotenv import load_dotenv

    load_dotenv()
    return load_config(path)
