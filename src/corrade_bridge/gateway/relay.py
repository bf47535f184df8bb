"""Relay: decides, per inbound event, whether to forward, suppress, or treat it as an acknowledgment.

Corrade side: NotificationIn -> MessageOut (Discord) or a pending-table update.
Discord side: DiscordMessageIn -> TellOut (Corrade) plus a pending-table entry.
"""

from __future__ import annotations

import json
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from corrade_bridge.core.constants import (
    DISCORD_TEXT_CHANNEL,
    NOTIFICATION_TYPE_GROUP,
    RELAY_COMMAND,
    STATUS_SUCCESS,
    SYSTEM_SENDER,
    TARGET_ENTITY_GROUP,
)
from corrade_bridge.events import DiscordMessageIn, NotificationIn, message_out, tell_out
from corrade_bridge.formatting.text import (
    compose_discord_text,
    format_discord_line,
    format_group_line,
    is_relayed_echo,
)
from corrade_bridge.gateway.bus import Bus
from corrade_bridge.gateway.channel import ChannelHandle
from corrade_bridge.gateway.pending import PendingAckTable

if TYPE_CHECKING:
    from corrade_bridge.config import Config


class Action(str, Enum):
    FORWARD = "forward"
    SUPPRESS = "suppress"
    ACKNOWLEDGE = "acknowledge"


@dataclass(frozen=True)
class Verdict:
    """Outcome of one relay decision; ``reason`` is a stable machine-readable code."""

    action: Action
    reason: str

    @property
    def forwarded(self) -> bool:
        return self.action is Action.FORWARD


def _suppress(reason: str) -> Verdict:
    return Verdict(Action.SUPPRESS, reason)


def _redacted(fields: dict[str, str]) -> str:
    """JSON for logs with the group password masked."""
    return json.dumps({k: ("***" if k == "password" else v) for k, v in fields.items()})


@dataclass(frozen=True)
class GroupSettings:
    """The bridged pair: Corrade group credentials and the Discord server name."""

    group_name: str
    group_password: str
    group_uuid: str
    discord_server: str

    @classmethod
    def from_config(cls, config: Config) -> GroupSettings:
        return cls(
            group_name=config.group_name,
            group_password=config.group_password,
            group_uuid=config.group_uuid,
            discord_server=config.discord_server,
        )


class Relay:
    """Single-threaded rule engine between the Corrade group and the Discord channel."""

    def __init__(
        self,
        bus: Bus,
        settings: GroupSettings,
        channel: ChannelHandle,
        pending: PendingAckTable,
        *,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._bus = bus
        self._settings = settings
        self._channel = channel
        self._pending = pending
        self._new_id = id_factory or (lambda: str(uuid.uuid4()))

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, (NotificationIn, DiscordMessageIn))

    def push_event(self, source: str, evt: object) -> None:
        if isinstance(evt, NotificationIn):
            self.handle_notification(evt)
        elif isinstance(evt, DiscordMessageIn):
            self.handle_discord_message(evt)

    # Corrade -> Discord

    def handle_notification(self, evt: NotificationIn) -> Verdict:
        """Apply the Corrade-side rules in order; the first matching rule decides."""
        if not self._channel.is_resolved:
            logger.error(
                "Message received from Corrade but the Discord channel could not be "
                "retrieved, please check your configuration"
            )
            return _suppress("channel_unresolved")

        command = evt.get("command")
        if command is not None and command != RELAY_COMMAND:
            return self._handle_status_report(evt)

        if evt.get("type") != NOTIFICATION_TYPE_GROUP:
            logger.info("Skipping message without group notification type...")
            return _suppress("not_group_notification")

        group = evt.get("group")
        if group is None or group.upper() != self._settings.group_name.upper():
            logger.info("Ignoring message for group {!r} not defined within the configuration...", group)
            return _suppress("foreign_group")

        firstname = evt.get("firstname") or ""
        lastname = evt.get("lastname") or ""
        if (firstname, lastname) == SYSTEM_SENDER:
            logger.info("Ignoring system message...")
            return _suppress("system_message")

        message = evt.get("message")
        if message is None:
            logger.info("Ignoring group notification without a message from {} {}", firstname, lastname)
            return _suppress("missing_message")

        if is_relayed_echo(message):
            logger.info("Ignoring relayed message...")
            return _suppress("relayed_echo")

        channel_id = str(self._channel.value)
        _, out = message_out(channel_id, format_group_line(firstname, lastname, message))
        self._bus.publish("relay", out)
        logger.debug("Relay: corrade -> discord channel={}", channel_id)
        return Verdict(Action.FORWARD, "relayed")

    def _handle_status_report(self, evt: NotificationIn) -> Verdict:
        """Correlate a command status report with the command we sent. Never forwarded."""
        success = evt.get("success")
        if success is None:
            return _suppress("incomplete_report")

        correlation_id = evt.get("id")
        payload = self._pending.remove(correlation_id) if correlation_id is not None else None
        if payload is None:
            logger.warning("Found message that does not belong to us: {}", _redacted(evt.fields))
            return _suppress("orphaned_report")

        if success.lower() == STATUS_SUCCESS:
            logger.info("Successfully sent message with ID: {}", correlation_id)
            return Verdict(Action.ACKNOWLEDGE, "delivered")
        logger.warning("Tell command failed: {}", _redacted(evt.fields))
        return Verdict(Action.ACKNOWLEDGE, "delivery_failed")

    # Discord -> Corrade

    def handle_discord_message(self, evt: DiscordMessageIn) -> Verdict:
        """Apply the Discord-side rules in order; the first matching rule decides."""
        if evt.author_is_bot:
            logger.info("Not relaying Discord message from Discord bot {!r}...", evt.author_name)
            return _suppress("bot_author")

        text = compose_discord_text(evt.content, evt.attachment_urls)
        if not text:
            logger.info("Not relaying empty Discord message...")
            return _suppress("empty_message")

        if not self._channel.matches(evt.channel_id):
            logger.info(
                "Not relaying Discord message from channel {} other than the configured channel...",
                evt.channel_id,
            )
            return _suppress("wrong_channel")

        if evt.server_name != self._settings.discord_server:
            logger.info(
                "Not relaying Discord message from different server {!r} other than the configured server...",
                evt.server_name,
            )
            return _suppress("wrong_server")

        if evt.channel_kind != DISCORD_TEXT_CHANNEL:
            logger.info("Not relaying Discord message of type {!r} that is not text...", evt.channel_kind)
            return _suppress("not_text_channel")

        correlation_id = self._new_id()
        payload = {
            "command": RELAY_COMMAND,
            "group": self._settings.group_name,
            "password": self._settings.group_password,
            "entity": TARGET_ENTITY_GROUP,
            "target": self._settings.group_uuid,
            "message": format_discord_line(evt.author_name, evt.author_discriminator, text),
            "id": correlation_id,
        }
        self._pending.insert(correlation_id, payload)
        _, out = tell_out(correlation_id, payload)
        self._bus.publish("relay", out)
        logger.debug("Relay: discord -> corrade id={}", correlation_id)
        return Verdict(Action.FORWARD, "relayed")
