"""Errors raised while setting up the bridge.

Relay decisions never raise: malformed Corrade notifications and unwanted
Discord messages are logged and suppressed. These exceptions cover startup
(config, broker URI) and misuse of the channel handle.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base for corrade-bridge errors; ``code`` is a stable machine-readable tag."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: dict[str, object] | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.original_error = original_error


class BridgeConfigurationError(BridgeError):
    """Missing or malformed config.yml / environment setting; fatal at startup."""


class ChannelAlreadyResolvedError(BridgeError):
    """The Discord channel handle was assigned twice."""
