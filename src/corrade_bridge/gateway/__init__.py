"""Gateway: event bus, channel handle, pending acknowledgments, relay."""

from corrade_bridge.gateway.bus import Bus
from corrade_bridge.gateway.channel import ChannelHandle, ChannelInfo, resolve_channel
from corrade_bridge.gateway.pending import PendingAckTable
from corrade_bridge.gateway.relay import Action, GroupSettings, Relay, Verdict

__all__ = [
    "Action",
    "Bus",
    "ChannelHandle",
    "ChannelInfo",
    "GroupSettings",
    "PendingAckTable",
    "Relay",
    "Verdict",
    "resolve_channel",
]
