"""Discord adapter: gateway client, channel resolution on ready, queue for outbound."""

from __future__ import annotations

import asyncio
import contextlib

import aiohttp
import discord
from discord import AllowedMentions, Intents, LoginFailure, Message, TextChannel
from loguru import logger
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from corrade_bridge.adapters.base import AdapterBase
from corrade_bridge.core.constants import DISCORD_MAX_MESSAGE_LEN
from corrade_bridge.events import MessageOut, discord_message_in
from corrade_bridge.gateway import Bus, ChannelHandle, ChannelInfo, resolve_channel

# Login retry: 5 attempts, exponential backoff 2–30s, only on transient errors.
# The gateway connection itself reconnects inside discord.py.
LOGIN_RETRY = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception_type(
        (
            aiohttp.ClientConnectionError,
            asyncio.TimeoutError,
            discord.DiscordServerError,
        )
    ),
    reraise=True,
)

# Relayed group chat must not ping @everyone/@here or roles
_RELAY_MENTIONS = AllowedMentions(everyone=False, roles=False, users=True)


@LOGIN_RETRY
async def _login(client: discord.Client, token: str) -> None:
    await client.login(token)


def _channel_info(channel: discord.abc.GuildChannel) -> ChannelInfo:
    guild = getattr(channel, "guild", None)
    return ChannelInfo(
        id=str(channel.id),
        name=channel.name,
        kind=str(channel.type),
        server_name=guild.name if guild else None,
    )


class DiscordAdapter(AdapterBase):
    """Discord adapter: publishes DiscordMessageIn, sends MessageOut to the resolved channel."""

    def __init__(
        self,
        bus: Bus,
        channel: ChannelHandle,
        *,
        token: str,
        server_name: str,
        channel_name: str,
    ) -> None:
        self._bus = bus
        self._channel = channel
        self._token = token
        self._server_name = server_name
        self._channel_name = channel_name
        self._queue: asyncio.Queue[MessageOut] = asyncio.Queue()
        self._client: discord.Client | None = None
        self._consumer_task: asyncio.Task | None = None
        self._client_task: asyncio.Task | None = None
        self._resolution_attempted = False

    @property
    def name(self) -> str:
        return "discord"

    def accept_event(self, source: str, evt: object) -> bool:
        """Accept MessageOut targeting Discord."""
        return isinstance(evt, MessageOut) and evt.target_origin == "discord"

    def push_event(self, source: str, evt: object) -> None:
        """Queue MessageOut for the sender task."""
        if isinstance(evt, MessageOut):
            self._queue.put_nowait(evt)

    def _resolve_channel(self) -> None:
        """Find the configured server/channel on the first ready signal only.

        Later ready signals (new gateway sessions) keep the first outcome, even
        when nothing was found; a restart is needed to look again.
        """
        if self._resolution_attempted or self._channel.is_resolved:
            logger.info("Discord ready again; keeping channel {}", self._channel.value or "unresolved")
            return
        if not self._client:
            return
        self._resolution_attempted = True

        logger.info("Querying channels...")
        found = resolve_channel(
            (_channel_info(c) for c in self._client.get_all_channels()),
            self._server_name,
            self._channel_name,
        )
        if found is None:
            logger.error(
                "The channel #{} could not be found on Discord server {!r}.",
                self._channel_name,
                self._server_name,
            )
            return
        self._channel.set(found.id)
        logger.info("Discord channel ID retrieved successfully: {}", found.id)

    async def _on_message(self, message: Message) -> None:
        """Translate a gateway message into DiscordMessageIn; the relay decides what to do with it."""
        channel = message.channel
        guild = getattr(channel, "guild", None)
        _, evt = discord_message_in(
            channel_id=str(channel.id),
            channel_kind=str(channel.type),
            server_name=guild.name if guild else None,
            author_name=message.author.name,
            author_discriminator=str(message.author.discriminator),
            content=message.content or "",
            author_is_bot=bool(message.author.bot),
            attachment_urls=[attachment.url for attachment in message.attachments],
        )
        self._bus.publish("discord", evt)

    async def _send(self, evt: MessageOut) -> None:
        if not self._client:
            return
        channel = self._client.get_channel(int(evt.channel_id))
        if not isinstance(channel, TextChannel):
            logger.warning("Discord channel {} not found or not a text channel", evt.channel_id)
            return
        await channel.send(evt.content[:DISCORD_MAX_MESSAGE_LEN], allowed_mentions=_RELAY_MENTIONS)

    async def _queue_consumer(self) -> None:
        """Background consumer: pop from queue and send, one message at a time."""
        while True:
            try:
                evt = await self._queue.get()
                await self._send(evt)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("Discord send failed: {}", exc)

    async def _run_client(self, client: discord.Client) -> None:
        """Log in (with retry) and hold the gateway connection; discord.py handles reconnects."""
        try:
            await _login(client, self._token)
        except LoginFailure as exc:
            logger.error("Failed to login to Discord: {}", exc)
            return
        except Exception as exc:
            logger.exception("Failed to login to Discord: {}", exc)
            return
        logger.info("Logged-in to Discord.")
        try:
            await client.connect(reconnect=True)
        except Exception as exc:
            logger.exception("Discord connection closed with error: {}", exc)

    async def start(self) -> None:
        """Start Discord client and queue consumer."""
        if not self._token:
            logger.warning("Discord token not set; Discord adapter disabled")
            return

        intents = Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.messages = True

        client = discord.Client(intents=intents)

        @client.event
        async def on_ready() -> None:
            logger.info("Connected to Discord as {}", client.user)
            self._resolve_channel()

        @client.event
        async def on_message(message: Message) -> None:
            await self._on_message(message)

        @client.event
        async def on_connect() -> None:
            logger.debug("Discord gateway connected")

        @client.event
        async def on_disconnect() -> None:
            logger.error("Disconnected from Discord, reconnecting...")

        @client.event
        async def on_resumed() -> None:
            logger.info("Discord session resumed")

        @client.event
        async def on_error(event_method: str, *args: object, **kwargs: object) -> None:
            logger.exception("Error occurred in Discord event {}", event_method)

        self._client = client
        self._consumer_task = asyncio.create_task(self._queue_consumer())
        self._client_task = asyncio.create_task(self._run_client(client))

        self._bus.register(self)

    async def stop(self) -> None:
        """Stop Discord client and consumer."""
        self._bus.unregister(self)
        if self._consumer_task:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
        if self._client:
            await self._client.close()
        if self._client_task:
            self._client_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._client_task
        self._client = None
        self._client_task = None
        self._consumer_task = None
