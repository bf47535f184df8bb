"""Bus events: inbound from Corrade and Discord, outbound to each, and their factories."""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass
class NotificationIn:
    """Corrade notification decoded from an MQTT payload."""

    topic: str
    fields: dict[str, str]

    def get(self, key: str) -> str | None:
        return self.fields.get(key)


@dataclass
class DiscordMessageIn:
    """Discord message as seen by the gateway, reduced to what the relay inspects."""

    channel_id: str
    channel_kind: str
    server_name: str | None
    author_name: str
    author_discriminator: str
    author_is_bot: bool
    content: str
    attachment_urls: list[str] = field(default_factory=list)


@dataclass
class MessageOut:
    """Outbound chat line for the Discord channel."""

    target_origin: str  # "discord"
    channel_id: str
    content: str


@dataclass
class TellOut:
    """Outbound Corrade "tell" command awaiting a status report."""

    target_origin: str  # "corrade"
    correlation_id: str
    payload: dict[str, str]


class EventTarget(Protocol):
    """Adapter interface: accept_event + push_event."""

    def accept_event(self, source: str, evt: object) -> bool:
        """Return True if this target wants the event."""
        ...

    def push_event(self, source: str, evt: object) -> None:
        """Handle the event (may be async via queue)."""
        ...


def event(type_name: str):
    """Decorator to mark a factory as producing an event with a given type."""

    def decorator(f: Any) -> Any:
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> tuple[str, object]:
            evt = f(*args, **kwargs)
            return (type_name, evt)

        wrapper.TYPE = type_name  # type: ignore[attr-defined]
        return wrapper

    return decorator


@event("notification_in")
def notification_in(topic: str, fields: dict[str, str]) -> NotificationIn:
    return NotificationIn(topic=topic, fields=dict(fields))


@event("discord_message_in")
def discord_message_in(
    channel_id: str,
    channel_kind: str,
    server_name: str | None,
    author_name: str,
    author_discriminator: str,
    content: str,
    *,
    author_is_bot: bool = False,
    attachment_urls: list[str] | None = None,
) -> DiscordMessageIn:
    return DiscordMessageIn(
        channel_id=channel_id,
        channel_kind=channel_kind,
        server_name=server_name,
        author_name=author_name,
        author_discriminator=author_discriminator,
        author_is_bot=author_is_bot,
        content=content,
        attachment_urls=list(attachment_urls or []),
    )


@event("message_out")
def message_out(channel_id: str, content: str) -> MessageOut:
    return MessageOut(target_origin="discord", channel_id=channel_id, content=content)


@event("tell_out")
def tell_out(correlation_id: str, payload: dict[str, str]) -> TellOut:
    return TellOut(
        target_origin="corrade",
        correlation_id=correlation_id,
        payload=dict(payload),
    )

