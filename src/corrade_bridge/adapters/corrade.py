"""Corrade adapter: paho-mqtt client for the group topic, inbound queue, fire-and-forget commands."""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from typing import Any, NamedTuple
from urllib.parse import unquote, urlsplit

import paho.mqtt.client as mqtt
from loguru import logger

from corrade_bridge.adapters.base import AdapterBase
from corrade_bridge.core.errors import BridgeConfigurationError
from corrade_bridge.events import TellOut, notification_in
from corrade_bridge.formatting.notification import decode_notification, encode_command
from corrade_bridge.gateway import Bus

# scheme -> (transport, tls, default port)
_SCHEMES: dict[str, tuple[str, bool, int]] = {
    "mqtt": ("tcp", False, 1883),
    "tcp": ("tcp", False, 1883),
    "mqtts": ("tcp", True, 8883),
    "ssl": ("tcp", True, 8883),
    "ws": ("websockets", False, 80),
    "wss": ("websockets", True, 443),
}

# paho reconnect backoff bounds (seconds)
_RECONNECT_MIN = 1
_RECONNECT_MAX = 120
_KEEPALIVE = 60


class BrokerAddress(NamedTuple):
    host: str
    port: int
    transport: str
    tls: bool
    username: str | None = None
    password: str | None = None
    path: str = ""


def parse_broker_uri(uri: str) -> BrokerAddress:
    """Parse mqtt://, mqtts://, ws:// or wss:// URIs (credentials and port optional)."""
    parts = urlsplit(uri.strip())
    scheme = parts.scheme.lower()
    if scheme not in _SCHEMES:
        raise BridgeConfigurationError(
            f"Unsupported broker URI scheme {scheme!r}",
            code="invalid_broker_uri",
            details={"scheme": scheme},
        )
    if not parts.hostname:
        raise BridgeConfigurationError(
            "Broker URI has no host",
            code="invalid_broker_uri",
            details={"scheme": scheme},
        )
    transport, tls, default_port = _SCHEMES[scheme]
    try:
        port = parts.port or default_port
    except ValueError as exc:
        raise BridgeConfigurationError(
            "Broker URI has an invalid port",
            code="invalid_broker_uri",
            details={"host": parts.hostname},
            original_error=exc,
        ) from exc
    return BrokerAddress(
        host=parts.hostname,
        port=port,
        transport=transport,
        tls=tls,
        username=unquote(parts.username) if parts.username else None,
        password=unquote(parts.password) if parts.password else None,
        path=parts.path if transport == "websockets" else "",
    )


class CorradeAdapter(AdapterBase):
    """Subscribes to ``<group>/<password>/group`` and publishes relay commands to it.

    paho runs its network loop in a background thread that also handles
    reconnects. Its callbacks only hand raw payloads to the event loop; decoding
    and bus publishing happen on the loop.
    """

    def __init__(self, bus: Bus, broker_uri: str, topic: str) -> None:
        self._bus = bus
        self._broker_uri = broker_uri
        self._topic = topic
        self._inbound: asyncio.Queue[tuple[str, bytes]] = asyncio.Queue()
        self._client: mqtt.Client | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._consumer_task: asyncio.Task | None = None
        self._stopping = False

    @property
    def name(self) -> str:
        return "corrade"

    def accept_event(self, source: str, evt: object) -> bool:
        """Accept TellOut commands for Corrade."""
        return isinstance(evt, TellOut) and evt.target_origin == "corrade"

    def push_event(self, source: str, evt: object) -> None:
        if isinstance(evt, TellOut):
            self._publish(evt)

    def _publish(self, evt: TellOut) -> None:
        """Publish a command without waiting; delivery is confirmed later by a status report."""
        if not self._client:
            logger.warning("Corrade MQTT not started; dropping command {}", evt.correlation_id)
            return
        info = self._client.publish(self._topic, encode_command(evt.payload))
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(
                "Failed to publish command {} to Corrade: {}",
                evt.correlation_id,
                mqtt.error_string(info.rc),
            )

    def _handle_payload(self, topic: str, payload: bytes) -> None:
        """Decode one MQTT payload and publish it on the bus."""
        if topic != self._topic:
            logger.debug("Ignoring Corrade message on unexpected topic")
            return
        fields = decode_notification(payload)
        _, evt = notification_in(topic, fields)
        self._bus.publish("corrade", evt)

    async def _consume_inbound(self) -> None:
        while True:
            try:
                topic, payload = await self._inbound.get()
                self._handle_payload(topic, payload)
            except asyncio.CancelledError:
                break
            except Exception as exc:
                logger.exception("Failed to handle Corrade message: {}", exc)

    # paho callbacks (network thread)

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if reason_code.is_failure:
            logger.error("Corrade MQTT server refused connection: {}", reason_code)
            return
        logger.info("Connected to Corrade MQTT server.")
        result, _ = client.subscribe(self._topic)
        if result != mqtt.MQTT_ERR_SUCCESS:
            logger.error("Error subscribing to Corrade MQTT group messages: {}", mqtt.error_string(result))

    def _on_subscribe(self, client: mqtt.Client, userdata: Any, mid: int, reason_codes: Any, properties: Any) -> None:
        failures = [rc for rc in reason_codes if rc.is_failure]
        if failures:
            logger.error("Error subscribing to Corrade MQTT group messages: {}", failures[0])
            return
        logger.info("Subscribed to Corrade MQTT group messages.")

    def _on_disconnect(
        self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any
    ) -> None:
        if self._stopping:
            logger.info("Disconnected from Corrade MQTT server.")
            return
        logger.error("Disconnected from Corrade MQTT server ({}), reconnecting...", reason_code)

    def _on_connect_fail(self, client: mqtt.Client, userdata: Any) -> None:
        logger.error("Error found while connecting to Corrade MQTT server, retrying...")

    def _on_message(self, client: mqtt.Client, userdata: Any, message: mqtt.MQTTMessage) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._inbound.put_nowait, (message.topic, bytes(message.payload)))

    async def start(self) -> None:
        """Create the paho client, start its network thread and the inbound consumer."""
        address = parse_broker_uri(self._broker_uri)
        self._loop = asyncio.get_running_loop()
        self._stopping = False

        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=f"corrade-bridge-{uuid.uuid4().hex[:12]}",
            transport=address.transport,
        )
        if address.username:
            client.username_pw_set(address.username, address.password)
        if address.tls:
            client.tls_set()
        if address.path:
            client.ws_set_options(path=address.path)
        client.reconnect_delay_set(min_delay=_RECONNECT_MIN, max_delay=_RECONNECT_MAX)
        client.on_connect = self._on_connect
        client.on_subscribe = self._on_subscribe
        client.on_disconnect = self._on_disconnect
        client.on_connect_fail = self._on_connect_fail
        client.on_message = self._on_message

        self._client = client
        self._consumer_task = asyncio.create_task(self._consume_inbound())
        logger.info("Connecting to Corrade MQTT server {}:{}", address.host, address.port)
        client.connect_async(address.host, address.port, keepalive=_KEEPALIVE)
        client.loop_start()

        self._bus.register(self)

    async def stop(self) -> None:
        """Disconnect from the broker and stop the network thread and consumer."""
        self._bus.unregister(self)
        self._stopping = True
        if self._client:
            self._client.disconnect()
            self._client.loop_stop()
        if self._consumer_task:
            self._consumer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer_task
        self._client = None
        self._consumer_task = None
