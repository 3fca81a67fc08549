"""Business logic use cases."""

from typing import Optional

import structlog

from feed_relay.adapters.destinations import DestinationHandleCache
from feed_relay.adapters.icons import IconResolver, extract_domain
from feed_relay.adapters.rendering import ItemRenderer
from feed_relay.core import (
    DedupStrategy,
    DeliveryOutcome,
    DestinationTransport,
    DispatchError,
    FeedFetcher,
    FeedItem,
    FeedResult,
    FeedSource,
    PersistenceError,
    RenderError,
    Watermark,
    WatermarkDedup,
    WatermarkStore,
    sort_chronologically,
)

logger = structlog.get_logger(__name__)


class Dispatcher:
    """Deliver one item to one destination, isolating failures."""

    def __init__(
        self,
        transport: DestinationTransport,
        handle_cache: DestinationHandleCache,
        renderer: ItemRenderer,
        icon_resolver: Optional[IconResolver] = None,
    ) -> None:
        self.transport = transport
        self.handle_cache = handle_cache
        self.renderer = renderer
        self.icon_resolver = icon_resolver

    async def deliver(
        self,
        feed: FeedSource,
        item: FeedItem,
        destination_id: str,
        icon_url: Optional[str] = None,
        domain: Optional[str] = None,
    ) -> DeliveryOutcome:
        """Send an item, falling back to a plain message when the rich one fails."""
        handle = await self.handle_cache.resolve(destination_id)
        if handle is None:
            logger.error("No webhook for destination", feed=feed.name, destination=destination_id)
            return DeliveryOutcome.SKIPPED

        try:
            payload = await self.renderer.render(item, feed)
            if icon_url and self.icon_resolver:
                payload.avatar_url = await self.icon_resolver.validate_avatar(icon_url, domain)
            await self.transport.send(handle, payload)
            logger.info("Item delivered", feed=feed.name, destination=destination_id, title=item.title)
            return DeliveryOutcome.DELIVERED
        except (RenderError, DispatchError) as e:
            logger.error("Item delivery failed", feed=feed.name, destination=destination_id, error=str(e))

        if not item.title and not item.link:
            logger.warning("Nothing to fall back to, item skipped", feed=feed.name, destination=destination_id)
            return DeliveryOutcome.SKIPPED

        try:
            await self.transport.send(handle, self.renderer.fallback_payload(item, feed))
            logger.info("Fallback message delivered", feed=feed.name, destination=destination_id, title=item.title)
            return DeliveryOutcome.FALLBACK
        except DispatchError as e:
            logger.error("Fallback message failed", feed=feed.name, destination=destination_id, error=str(e))
            return DeliveryOutcome.SKIPPED


class FeedSyncService:
    """Service for polling feeds and fanning new items out to destinations."""

    def __init__(
        self,
        feeds: list[FeedSource],
        fetcher: FeedFetcher,
        store: WatermarkStore,
        dispatcher: Dispatcher,
        icon_resolver: Optional[IconResolver] = None,
        dedup: Optional[DedupStrategy] = None,
    ) -> None:
        self.feeds = feeds
        self.fetcher = fetcher
        self.store = store
        self.dispatcher = dispatcher
        self.icon_resolver = icon_resolver
        self.dedup = dedup or WatermarkDedup()

    async def run_cycle(self) -> list[FeedResult]:
        """Process every configured feed once, in order."""
        if not self.feeds:
            logger.warning("No feeds configured")
            return []

        logger.info("Feed cycle started", feeds=len(self.feeds))
        results = []

        for feed in self.feeds:
            result = FeedResult(feed=feed)
            try:
                await self.process_feed(feed, result)
            except Exception as e:
                # One broken feed must not stop the others
                result.error = str(e)
                logger.exception("Feed processing failed", feed=feed.name, url=feed.url)
            results.append(result)

        delivered = sum(r.delivered for r in results)
        failed = sum(1 for r in results if r.error)
        logger.info("Feed cycle finished", feeds=len(results), delivered=delivered, failed_feeds=failed)
        return results

    async def process_feed(self, feed: FeedSource, result: Optional[FeedResult] = None) -> FeedResult:
        """Fetch, diff, deliver and advance the watermark for one feed.

        Raises FetchError and PersistenceError (on write).
        """
        result = result or FeedResult(feed=feed)
        logger.info("Processing feed", feed=feed.name, url=feed.url)

        fetched = await self.fetcher.fetch(feed.url)
        result.fetched = len(fetched.items)

        watermark = await self._load_watermark(feed)
        new_items = sort_chronologically(self.dedup.select_new(fetched.items, watermark))
        result.new_items = len(new_items)

        if not new_items:
            logger.info("No new items", feed=feed.name)
            return result

        logger.info("New items found", feed=feed.name, items=len(new_items))

        domain = extract_domain(feed.url) or extract_domain(fetched.link)
        icon_url = await self.icon_resolver.resolve(domain) if self.icon_resolver and domain else None

        for item in new_items:
            for destination_id in feed.destinations:
                outcome = await self.dispatcher.deliver(feed, item, destination_id, icon_url, domain)
                result.record(outcome)

        await self._save_watermark(feed, watermark, new_items)
        result.watermark_updated = True
        return result

    async def _load_watermark(self, feed: FeedSource) -> Optional[Watermark]:
        try:
            return await self.store.get(feed.key)
        except PersistenceError as e:
            logger.warning("Watermark unreadable, treating all items as new", feed=feed.name, error=str(e))
            return None

    async def _save_watermark(
        self, feed: FeedSource, watermark: Optional[Watermark], delivered: list[FeedItem]
    ) -> None:
        last_item = delivered[-1]
        await self.store.set(
            feed.key,
            last_item.guid,
            last_item.published,
            last_item.title,
            feed_url=feed.url,
            recent_ids=self.dedup.remembered_ids(watermark, delivered),
        )
        logger.info("Watermark updated", feed=feed.name, last_title=last_item.title)

    async def verify_destinations(self) -> dict[str, bool]:
        """Check once that every configured destination can be reached."""
        reachable: dict[str, bool] = {}
        transport = self.dispatcher.transport

        for feed in self.feeds:
            if not feed.destinations:
                logger.warning("Feed has no destinations", feed=feed.name, url=feed.url)
                continue

            for destination_id in feed.destinations:
                if destination_id in reachable:
                    continue
                try:
                    destination = await transport.fetch_destination(destination_id)
                except DispatchError as e:
                    logger.error("Destination check failed", destination=destination_id, error=str(e))
                    reachable[destination_id] = False
                    continue

                reachable[destination_id] = destination is not None
                if destination is None:
                    logger.warning("Destination not found", destination=destination_id)
                else:
                    logger.info("Destination reachable", destination=destination_id, name=destination.name)

        return reachable
