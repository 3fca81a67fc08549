"""Core interfaces for adapters."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from feed_relay.core.entities import (
    DeliveryHandle,
    Destination,
    FetchedFeed,
    RenderedPayload,
    Watermark,
)


class FeedFetcher(ABC):
    """Interface for retrieving a feed."""

    @abstractmethod
    async def fetch(self, url: str) -> FetchedFeed:
        """Fetch and parse a feed. Raises FetchError."""
        pass


class WatermarkStore(ABC):
    """Interface for persisting per-feed delivery watermarks."""

    @abstractmethod
    async def get(self, feed_key: str) -> Optional[Watermark]:
        """Return the watermark for a feed, or None. Raises PersistenceError."""
        pass

    @abstractmethod
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
        """Upsert the watermark for a feed. Raises PersistenceError."""
        pass

    @abstractmethod
    async def list_all(self) -> list[Watermark]:
        """Return every stored watermark."""
        pass


class DestinationTransport(ABC):
    """Interface for the messaging platform that receives items."""

    @abstractmethod
    async def fetch_destination(self, destination_id: str) -> Optional[Destination]:
        """Look up a destination. None when it does not exist."""
        pass

    @abstractmethod
    async def list_persistent_senders(self, destination: Destination) -> list[DeliveryHandle]:
        """List the reusable senders (webhooks) of a destination."""
        pass

    @abstractmethod
    async def create_persistent_sender(self, destination: Destination, name: str) -> DeliveryHandle:
        """Create a reusable sender on a destination."""
        pass

    @abstractmethod
    async def send(self, handle: DeliveryHandle, payload: RenderedPayload) -> None:
        """Send a payload. Raises DispatchError on failure."""
        pass
