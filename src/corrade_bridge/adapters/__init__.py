"""Transport adapters. Each is a bus target with start/stop."""

from corrade_bridge.adapters.base import AdapterBase
from corrade_bridge.adapters.corrade import CorradeAdapter, parse_broker_uri
from corrade_bridge.adapters.disc import DiscordAdapter

__all__ = ["AdapterBase", "CorradeAdapter", "DiscordAdapter", "parse_broker_uri"]
