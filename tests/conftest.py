"""Shared fakes for pipeline tests."""

from typing import Any, Optional

import pytest

from feed_relay.core import (
    DeliveryHandle,
    Destination,
    DestinationTransport,
    DispatchError,
    FeedFetcher,
    FetchedFeed,
    PersistenceError,
    RenderedPayload,
    Watermark,
    WatermarkStore,
)
from feed_relay.core.timestamps import to_datetime


class FakeTransport(DestinationTransport):
    """In-memory channels and webhooks that record every message."""

    def __init__(self) -> None:
        self.destinations: dict[str, Destination] = {}
        self.webhooks: dict[str, list[DeliveryHandle]] = {}
        self.created: list[str] = []
        self.sent: list[tuple[DeliveryHandle, RenderedPayload]] = []
        self.fail_send: set[str] = set()
        self.reject_components: set[str] = set()
        self.fetch_calls = 0

    def add_channel(self, channel_id: str, name: str = "") -> Destination:
        destination = Destination(id=channel_id, name=name or f"channel-{channel_id}")
        self.destinations[channel_id] = destination
        return destination

    def add_thread(self, thread_id: str, parent_id: str) -> Destination:
        destination = Destination(id=thread_id, name=f"thread-{thread_id}", parent_id=parent_id, is_thread=True)
        self.destinations[thread_id] = destination
        return destination

    def sent_to(self, channel_id: str) -> list[RenderedPayload]:
        return [
            payload for handle, payload in self.sent
            if (handle.thread_id or handle.channel_id) == channel_id
        ]

    async def fetch_destination(self, destination_id: str) -> Optional[Destination]:
        self.fetch_calls += 1
        return self.destinations.get(destination_id)

    async def list_persistent_senders(self, destination: Destination) -> list[DeliveryHandle]:
        return list(self.webhooks.get(destination.id, []))

    async def create_persistent_sender(self, destination: Destination, name: str) -> DeliveryHandle:
        handle = DeliveryHandle(webhook_id=f"wh-{destination.id}", token="token", channel_id=destination.id)
        self.webhooks.setdefault(destination.id, []).append(handle)
        self.created.append(name)
        return handle

    async def send(self, handle: DeliveryHandle, payload: RenderedPayload) -> None:
        target = handle.thread_id or handle.channel_id
        if target in self.fail_send:
            raise DispatchError(f"send to {target} refused")
        if payload.components and target in self.reject_components:
            raise DispatchError(f"components rejected by {target}")
        self.sent.append((handle, payload))


class FakeFetcher(FeedFetcher):
    """Serve canned feeds; exceptions are raised instead of returned."""

    def __init__(self) -> None:
        self.feeds: dict[str, Any] = {}

    async def fetch(self, url: str) -> FetchedFeed:
        result = self.feeds[url]
        if isinstance(result, Exception):
            raise result
        return result


class MemoryStore(WatermarkStore):
    """Dict-backed watermark store with switchable failures."""

    def __init__(self) -> None:
        self.watermarks: dict[str, Watermark] = {}
        self.fail_get = False
        self.fail_set = False
        self.writes = 0

    async def get(self, feed_key: str) -> Optional[Watermark]:
        if self.fail_get:
            raise PersistenceError("read failed")
        return self.watermarks.get(feed_key)

    async def set(
        self,
        feed_key: str,
        last_item_id: Optional[str],
        last_publish_date: Any,
        last_title: Optional[str],
        *,
        feed_url: Optional[str] = None,
        recent_ids: Optional[list[str]] = None,
    ) -> Watermark:
        if self.fail_set:
            raise PersistenceError("write failed")
        self.writes += 1
        watermark = Watermark(
            feed_key=feed_key,
            feed_url=feed_url,
            last_item_id=last_item_id,
            last_publish_date=to_datetime(last_publish_date),
            last_title=last_title,
            recent_ids=list(recent_ids or []),
        )
        self.watermarks[feed_key] = watermark
        return watermark

    async def list_all(self) -> list[Watermark]:
        return list(self.watermarks.values())


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
