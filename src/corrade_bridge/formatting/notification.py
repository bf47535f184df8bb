"""Corrade wire format: URL-encoded key/value pairs (application/x-www-form-urlencoded)."""

from __future__ import annotations

from urllib.parse import parse_qsl, quote, urlencode


def decode_notification(payload: bytes | str) -> dict[str, str]:
    """Decode a Corrade MQTT payload into a flat mapping.

    Malformed input never raises: undecodable bytes are replaced and pairs
    without a key are dropped, so garbage yields no recognized fields. When a
    key repeats, the last value wins.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    payload = payload.strip()
    if not payload:
        return {}
    pairs = parse_qsl(payload, keep_blank_values=True)
    return {key: value for key, value in pairs if key}


def encode_command(payload: dict[str, str]) -> str:
    """Encode a Corrade command. Spaces become %20, matching what Corrade's scripts expect."""
    return urlencode(payload, quote_via=quote)
