"""Feed source adapters."""

from feed_relay.adapters.sources.feed_fetcher import HttpFeedFetcher

__all__ = ["HttpFeedFetcher"]
