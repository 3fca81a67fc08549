"""Core domain layer."""

from feed_relay.core.chain import FallbackChain
from feed_relay.core.dedup import (
    DedupStrategy,
    SeenSetDedup,
    WatermarkDedup,
    build_dedup_strategy,
    is_new_item,
    sort_chronologically,
)
from feed_relay.core.entities import (
    DeliveryHandle,
    DeliveryOutcome,
    Destination,
    FeedItem,
    FeedResult,
    FeedSource,
    FetchedFeed,
    ItemMedia,
    RenderedPayload,
    Watermark,
    feed_key,
)
from feed_relay.core.errors import (
    DispatchError,
    FeedRelayError,
    FetchError,
    PersistenceError,
    RenderError,
)
from feed_relay.core.interfaces import DestinationTransport, FeedFetcher, WatermarkStore

__all__ = [
    "FallbackChain",
    "DedupStrategy",
    "SeenSetDedup",
    "WatermarkDedup",
    "build_dedup_strategy",
    "is_new_item",
    "sort_chronologically",
    "DeliveryHandle",
    "DeliveryOutcome",
    "Destination",
    "FeedItem",
    "FeedResult",
    "FeedSource",
    "FetchedFeed",
    "ItemMedia",
    "RenderedPayload",
    "Watermark",
    "feed_key",
    "DispatchError",
    "FeedRelayError",
    "FetchError",
    "PersistenceError",
    "RenderError",
    "DestinationTransport",
    "FeedFetcher",
    "WatermarkStore",
]
