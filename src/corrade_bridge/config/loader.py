"""Config loading: YAML file plus .env."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from loguru import logger

from corrade_bridge.core.errors import BridgeConfigurationError


def load_config(path: str | Path) -> dict[str, Any]:
    """Read the YAML config with SafeLoader.

    A missing or non-mapping file yields ``{}`` (validation reports what is
    absent). Unparseable YAML raises BridgeConfigurationError.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Config file not found: {}", path)
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise BridgeConfigurationError(
            f"Failed to parse config {path}: {exc}",
            code="invalid_yaml",
            details={"path": str(path)},
            original_error=exc,
        ) from exc
    if not isinstance(data, dict):
        logger.warning("Config file {} has invalid structure (expected mapping)", path)
        return {}
    return data


def load_config_with_env(path: str | Path) -> dict[str, Any]:
    """Load .env into the process environment, then the YAML file."""
    from dotenv import load_dotenv

    load_dotenv()
    return load_config(path)
