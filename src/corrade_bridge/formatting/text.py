"""Relay line formats and echo detection."""

from __future__ import annotations

import re
from collections.abc import Iterable

from corrade_bridge.core.constants import DISCORD_TAG, SL_TAG

# Line terminators (\r, \n, U+2028, U+2029); never part of a line's text
_EOL = r"\r\n\u2028\u2029"

# A line the bridge itself wrote into the group: "<name>#<digits> [Discord]: <text>".
# Any matching line marks the whole notification as our own echo.
_RELAYED_ECHO = re.compile(
    rf"(?:^|(?<=[{_EOL}]))[^{_EOL}]+?#[0-9]+? \[Discord\]:[^{_EOL}]+?(?=[{_EOL}]|\Z)"
)


def is_relayed_echo(message: str) -> bool:
    """True when the group message is one the bridge relayed from Discord."""
    return bool(message) and _RELAYED_ECHO.search(message) is not None


def format_group_line(firstname: str, lastname: str, message: str) -> str:
    """Second Life group chat -> Discord."""
    return f"{firstname} {lastname} [{SL_TAG}]: {message}"


def format_discord_line(username: str, discriminator: str, message: str) -> str:
    """Discord -> Second Life group chat."""
    return f"{username}#{discriminator} [{DISCORD_TAG}]: {message}"


def compose_discord_text(content: str | None, attachment_urls: Iterable[str]) -> str:
    """Message content followed by each attachment URL, space-separated, in order."""
    text = content or ""
    for url in attachment_urls:
        text = f"{text} {url}"
    return text
