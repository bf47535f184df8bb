"""Discord channel handle and its one-time resolution by server + channel name."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from corrade_bridge.core.errors import ChannelAlreadyResolvedError


@dataclass(frozen=True)
class ChannelInfo:
    """A channel visible to the Discord connection."""

    id: str
    name: str
    kind: str
    server_name: str | None


class ChannelHandle:
    """Single-assignment holder for the bridged Discord channel id.

    Starts unresolved. ``set`` succeeds once; after that the value is fixed for
    the life of the process.
    """

    def __init__(self) -> None:
        self._value: str | None = None

    @property
    def value(self) -> str | None:
        return self._value

    @property
    def is_resolved(self) -> bool:
        return self._value is not None

    def set(self, channel_id: str) -> None:
        if self._value is not None:
            raise ChannelAlreadyResolvedError(
                f"Discord channel already resolved to {self._value}",
                code="channel_already_resolved",
                details={"current": self._value, "attempted": channel_id},
            )
        self._value = str(channel_id)

    def matches(self, channel_id: str) -> bool:
        """True when resolved and equal to channel_id. An unresolved handle matches nothing."""
        return self._value is not None and self._value == str(channel_id)


def resolve_channel(
    channels: Iterable[ChannelInfo],
    server_name: str,
    channel_name: str,
) -> ChannelInfo | None:
    """Return the first channel named channel_name on server_name, in enumeration order."""
    for channel in channels:
        logger.debug("Found channel #{} on {}", channel.name, channel.server_name)
        if channel.name == channel_name and channel.server_name == server_name:
            return channel
    return None
