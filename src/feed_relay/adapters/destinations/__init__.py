"""Delivery destinations."""

from feed_relay.adapters.destinations.discord_transport import DiscordTransport
from feed_relay.adapters.destinations.handle_cache import DestinationHandleCache

__all__ = ["DiscordTransport", "DestinationHandleCache"]
