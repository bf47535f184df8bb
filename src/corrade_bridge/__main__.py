"""Bridge entrypoint. Loads config, wires the relay, starts the Corrade and Discord adapters."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import sys
from pathlib import Path
from typing import Protocol

from loguru import logger

from corrade_bridge import __version__
from corrade_bridge.adapters.corrade import CorradeAdapter, parse_broker_uri
from corrade_bridge.adapters.disc import DiscordAdapter
from corrade_bridge.config import Config, load_config_with_env
from corrade_bridge.core.errors import BridgeConfigurationError
from corrade_bridge.gateway import Bus, ChannelHandle, GroupSettings, PendingAckTable, Relay


class Adapter(Protocol):
    """Protocol for adapters with start/stop methods."""

    async def start(self) -> None: ...
    async def stop(self) -> None: ...


# Third-party libraries to intercept and route through loguru
_INTERCEPTED_LIBRARIES = ["discord", "discord.client", "discord.gateway", "discord.http", "paho.mqtt"]

_LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> | {message}"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


class InterceptHandler(logging.Handler):
    """Forward stdlib log records (discord.py, paho) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.patch(
            lambda r: r.update(
                name=record.name,
                function=record.funcName,
                line=record.lineno,
            ),
        ).opt(exception=record.exc_info).log(level, record.getMessage())


def _intercept_logging(level: str) -> None:
    """Route third-party library logs to loguru at the bridge's level."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for lib in _INTERCEPTED_LIBRARIES:
        lib_logger = logging.getLogger(lib)
        lib_logger.handlers = [InterceptHandler()]
        lib_logger.propagate = False
        lib_logger.setLevel(level)


def setup_logging(verbose: bool = False, log_file: str | Path | None = None) -> None:
    """Configure loguru. Replace default logging.
    Level: verbose=True or LOG_LEVEL=DEBUG enables DEBUG; otherwise INFO.
    With log_file, also write a rotated log file."""
    level = "INFO"
    if verbose:
        level = "DEBUG"
    else:
        env_level = (os.environ.get("LOG_LEVEL") or "").upper()
        if env_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
            level = env_level

    logger.remove()
    logger.add(sys.stderr, level=level, format=_LOG_FORMAT)
    if log_file:
        logger.add(
            str(log_file),
            level=level,
            format=_FILE_FORMAT,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
    _intercept_logging(level)


def load_bridge_config(config_path: Path) -> Config:
    """Load and validate config; raises BridgeConfigurationError."""
    config = Config(load_config_with_env(config_path))
    config.validate()
    parse_broker_uri(config.broker_uri)
    return config


def main() -> None:
    """Main entrypoint."""
    parser = argparse.ArgumentParser(description="Corrade group <-> Discord channel bridge")
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=Path("config.yml"),
        help="Path to config file (default: config.yml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also log to this file, rotated at 10 MB (overrides log_file in config)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args()

    setup_logging(args.verbose, args.log_file)

    if not args.config.exists():
        logger.error("Config file not found: {}", args.config)
        sys.exit(1)

    try:
        config = load_bridge_config(args.config)
    except BridgeConfigurationError as exc:
        logger.error("Invalid config {}: {} ({})", args.config, exc, exc.code)
        sys.exit(1)
    logger.info("Config loaded from {}", args.config)

    if not args.log_file and config.log_file:
        setup_logging(args.verbose, config.log_file)

    bus = Bus()
    channel = ChannelHandle()
    pending = PendingAckTable(
        ttl=config.pending_ack_ttl_seconds or None,
        maxsize=config.pending_ack_max_entries,
    )
    relay = Relay(bus, GroupSettings.from_config(config), channel, pending)
    bus.register(relay)

    logger.info(
        "Bridge ready: group {!r} <-> {!r} #{}",
        config.group_name,
        config.discord_server,
        config.discord_channel,
    )

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_run(bus, config, channel))


async def _run(bus: Bus, config: Config, channel: ChannelHandle) -> None:
    """Async run loop. Start adapters and wait."""
    corrade_adapter = CorradeAdapter(bus, config.broker_uri, config.group_topic)
    discord_adapter = DiscordAdapter(
        bus,
        channel,
        token=config.discord_token,
        server_name=config.discord_server,
        channel_name=config.discord_channel,
    )
    adapters: list[Adapter] = [corrade_adapter, discord_adapter]

    logger.info("Starting adapters")
    await corrade_adapter.start()
    await discord_adapter.start()

    try:
        while True:
            await asyncio.sleep(60)
    except asyncio.CancelledError:
        logger.info("Bridge shutting down")
        for adapter in adapters:
            name = getattr(adapter, "name", adapter.__class__.__name__)
            logger.info("Stopping {} adapter", name)
            await adapter.stop()


if __name__ == "__main__":
    main()
