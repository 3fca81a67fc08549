"""Core domain entities."""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


def feed_key(url: str) -> str:
    """Derive the persistent key of a feed from its URL."""
    return hashlib.md5(url.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class FeedSource:
    """A configured feed and the channels it is delivered to."""

    url: str
    name: str
    destinations: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("URL cannot be empty")

    @property
    def key(self) -> str:
        return feed_key(self.url)


@dataclass
class ItemMedia:
    """Image references carried by a feed entry."""

    thumbnail_url: Optional[str] = None
    content_url: Optional[str] = None
    enclosure_url: Optional[str] = None
    enclosure_type: Optional[str] = None
    image_url: Optional[str] = None


@dataclass
class FeedItem:
    """One entry of a fetched feed."""

    title: Optional[str]
    link: Optional[str]
    guid: Optional[str] = None
    published: Optional[datetime] = None
    published_raw: Optional[str] = None
    content_snippet: str = ""
    categories: list[str] = field(default_factory=list)
    author: Optional[str] = None
    media: ItemMedia = field(default_factory=ItemMedia)

    @property
    def has_timestamp(self) -> bool:
        return bool(self.published_raw) or self.published is not None

    @property
    def identity(self) -> Optional[str]:
        """Best stable identifier for the item."""
        return self.guid or self.link or self.title


@dataclass
class FetchedFeed:
    """Result of fetching a feed."""

    url: str
    title: str
    link: Optional[str]
    items: list[FeedItem]


@dataclass
class Watermark:
    """Last delivered item of a feed."""

    feed_key: str
    feed_url: Optional[str] = None
    last_item_id: Optional[str] = None
    last_publish_date: Optional[datetime] = None
    last_title: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    recent_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Destination:
    """A delivery channel as reported by the transport."""

    id: str
    name: str = ""
    parent_id: Optional[str] = None
    is_thread: bool = False


@dataclass(frozen=True)
class DeliveryHandle:
    """Reusable webhook used to post into a channel."""

    webhook_id: str
    token: str
    channel_id: str
    thread_id: Optional[str] = None


@dataclass
class RenderedPayload:
    """A message ready to be sent through a webhook."""

    components: list[dict[str, Any]] = field(default_factory=list)
    content: str = ""
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    flags: int = 0

    def to_json(self) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if self.username:
            body["username"] = self.username
        if self.avatar_url:
            body["avatar_url"] = self.avatar_url
        if self.components:
            body["components"] = self.components
        else:
            body["content"] = self.content
        if self.flags:
            body["flags"] = self.flags
        return body


class DeliveryOutcome(str, Enum):
    """Result of delivering one item to one destination."""

    DELIVERED = "delivered"
    FALLBACK = "fallback"
    SKIPPED = "skipped"


@dataclass
class FeedResult:
    """Summary of one feed within a cycle."""

    feed: FeedSource
    fetched: int = 0
    new_items: int = 0
    deliveries: dict[DeliveryOutcome, int] = field(default_factory=dict)
    watermark_updated: bool = False
    error: Optional[str] = None

    def record(self, outcome: DeliveryOutcome) -> None:
        self.deliveries[outcome] = self.deliveries.get(outcome, 0) + 1

    @property
    def delivered(self) -> int:
        return self.deliveries.get(DeliveryOutcome.DELIVERED, 0)
