"""Wire codec and text formats for relayed messages."""

from corrade_bridge.formatting.notification import decode_notification, encode_command
from corrade_bridge.formatting.text import (
    compose_discord_text,
    format_discord_line,
    format_group_line,
    is_relayed_echo,
)

__all__ = [
    "compose_discord_text",
    "decode_notification",
    "encode_command",
    "format_discord_line",
    "format_group_line",
    "is_relayed_echo",
]
