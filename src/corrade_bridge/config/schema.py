"""Config schema and accessor."""

from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

from loguru import logger

from corrade_bridge.core.errors import BridgeConfigurationError

# Env keys that override config (read once per load)
_ENV_OVERRIDE_KEYS = (
    "DISCORD_TOKEN",
    "CORRADE_MQTT_URL",
)

# Dotted path -> config error code, checked by validate()
_REQUIRED = {
    "corrade.mqtt": "missing_broker_uri",
    "corrade.group.name": "missing_group_name",
    "corrade.group.password": "missing_group_password",
    "corrade.group.uuid": "missing_group_uuid",
    "discord.botKey": "missing_discord_token",
    "discord.server": "missing_discord_server",
    "discord.channel": "missing_discord_channel",
}


def _load_env_overrides() -> dict[str, str]:
    return {k: os.environ.get(k, "") for k in _ENV_OVERRIDE_KEYS}


def _number(key: str, value: Any, convert: Callable[[Any], Any], code: str) -> Any:
    """Convert an optional numeric setting; bad values become BridgeConfigurationError."""
    try:
        return convert(value)
    except (TypeError, ValueError) as exc:
        raise BridgeConfigurationError(
            f"{key} must be a number, got {value!r}",
            code=code,
            details={"key": key, "value": value},
            original_error=exc,
        ) from exc


class Config:
    """Read-only view over the loaded YAML with attribute-style accessors."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data = data or {}
        self._env: dict[str, str] = _load_env_overrides()

    def validate(self) -> None:
        """Raise BridgeConfigurationError for the first missing or malformed setting."""
        env_backed = {
            "corrade.mqtt": self._env.get("CORRADE_MQTT_URL"),
            "discord.botKey": self._env.get("DISCORD_TOKEN"),
        }
        for key, code in _REQUIRED.items():
            value = env_backed.get(key) or self.get(key)
            if value is None or not str(value).strip():
                raise BridgeConfigurationError(
                    f"Missing required config value: {key}",
                    code=code,
                    details={"key": key},
                )
        ttl = _number(
            "pending_ack_ttl_seconds",
            self._data.get("pending_ack_ttl_seconds", 0) or 0,
            float,
            "invalid_pending_ack_ttl",
        )
        if not ttl >= 0:
            raise BridgeConfigurationError(
                "pending_ack_ttl_seconds must be >= 0",
                code="invalid_pending_ack_ttl",
                details={"value": ttl},
            )
        max_entries = _number(
            "pending_ack_max_entries",
            self._data.get("pending_ack_max_entries", 10000),
            int,
            "invalid_pending_ack_max_entries",
        )
        if max_entries < 1:
            raise BridgeConfigurationError(
                "pending_ack_max_entries must be >= 1",
                code="invalid_pending_ack_max_entries",
                details={"value": max_entries},
            )
        logger.debug(
            "Config valid: group {!r} <-> {!r} #{}",
            self.group_name,
            self.discord_server,
            self.discord_channel,
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get value by dot-separated path (e.g. 'corrade.group.name')."""
        parts = key.split(".")
        obj: Any = self._data
        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                return default
        return obj

    @property
    def broker_uri(self) -> str:
        """Corrade MQTT broker URI; CORRADE_MQTT_URL wins over the file."""
        return self._env.get("CORRADE_MQTT_URL") or str(self.get("corrade.mqtt", ""))

    @property
    def group_name(self) -> str:
        return str(self.get("corrade.group.name", ""))

    @property
    def group_password(self) -> str:
        return str(self.get("corrade.group.password", ""))

    @property
    def group_uuid(self) -> str:
        return str(self.get("corrade.group.uuid", ""))

    @property
    def group_topic(self) -> str:
        """MQTT topic Corrade publishes group notifications on and reads commands from."""
        return f"{self.group_name}/{self.group_password}/group"

    @property
    def discord_token(self) -> str:
        """Bot token; DISCORD_TOKEN wins over discord.botKey."""
        return self._env.get("DISCORD_TOKEN") or str(self.get("discord.botKey", ""))

    @property
    def discord_server(self) -> str:
        return str(self.get("discord.server", ""))

    @property
    def discord_channel(self) -> str:
        return str(self.get("discord.channel", ""))

    @property
    def log_file(self) -> str | None:
        val = self._data.get("log_file")
        if val and isinstance(val, str) and val.strip():
            return val.strip()
        return None

    @property
    def pending_ack_ttl_seconds(self) -> float:
        """Seconds before an unacknowledged command is forgotten; 0 keeps it forever."""
        return float(self._data.get("pending_ack_ttl_seconds", 0) or 0)

    @property
    def pending_ack_max_entries(self) -> int:
        return int(self._data.get("pending_ack_max_entries", 10000))
