"""Deciding which fetched items still need to be delivered."""

from abc import ABC, abstractmethod
from typing import Optional

from feed_relay.core.entities import FeedItem, Watermark
from feed_relay.core.timestamps import is_later


def is_new_item(item: FeedItem, watermark: Optional[Watermark], confirm_with_date: bool = True) -> bool:
    """Compare one item against the stored watermark.

    The first field present on both sides decides: guid, then publish date,
    then title. With nothing to compare the item counts as new.

    A matching guid always means "already delivered". With
    ``confirm_with_date`` a differing guid is rejected when the item is
    strictly older than the watermark (if both carry dates); otherwise every
    older entry still listed by the feed would be sent again on each poll.
    Same-date items with a new guid are still delivered.

    Only the single last-delivered item is remembered, so an undated entry
    that the source re-surfaces or reorders can come back as new.
    """
    if watermark is None:
        return True

    if item.guid and watermark.last_item_id:
        if item.guid == watermark.last_item_id:
            return False
        if confirm_with_date and item.published and watermark.last_publish_date:
            return not is_later(watermark.last_publish_date, item.published)
        return True

    if item.has_timestamp and watermark.last_publish_date:
        return is_later(item.published, watermark.last_publish_date)

    if item.title and watermark.last_title:
        return item.title != watermark.last_title

    return True


def sort_chronologically(items: list[FeedItem]) -> list[FeedItem]:
    """Order items oldest first.

    Items without a usable timestamp stay at their fetch position; dated
    items are sorted (stably) among the remaining positions.
    """
    dated_slots = [i for i, item in enumerate(items) if item.published is not None]
    dated = sorted((items[i] for i in dated_slots), key=lambda item: item.published)

    ordered = list(items)
    for slot, item in zip(dated_slots, dated):
        ordered[slot] = item
    return ordered


class DedupStrategy(ABC):
    """Selects new items and decides what to remember about a batch."""

    @abstractmethod
    def select_new(self, items: list[FeedItem], watermark: Optional[Watermark]) -> list[FeedItem]:
        """Return the items that have not been delivered yet, in fetch order."""
        pass

    def remembered_ids(self, watermark: Optional[Watermark], delivered: list[FeedItem]) -> list[str]:
        """Ids to persist alongside the watermark."""
        return list(watermark.recent_ids) if watermark else []


class WatermarkDedup(DedupStrategy):
    """Item-by-item comparison against the last delivered item.

    ``strict`` disables the date confirmation of differing guids.
    """

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict

    def select_new(self, items: list[FeedItem], watermark: Optional[Watermark]) -> list[FeedItem]:
        return [item for item in items if is_new_item(item, watermark, confirm_with_date=not self.strict)]


class SeenSetDedup(DedupStrategy):
    """Compare against a bounded set of recently delivered ids.

    Falls back to the watermark comparison while no ids have been recorded
    yet, so switching strategies does not redeliver a whole feed.
    """

    def __init__(self, max_size: int = 200) -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self.max_size = max_size

    def select_new(self, items: list[FeedItem], watermark: Optional[Watermark]) -> list[FeedItem]:
        if watermark is None or not watermark.recent_ids:
            return [item for item in items if is_new_item(item, watermark)]

        seen = set(watermark.recent_ids)
        return [item for item in items if item.identity is None or item.identity not in seen]

    def remembered_ids(self, watermark: Optional[Watermark], delivered: list[FeedItem]) -> list[str]:
        ids = list(watermark.recent_ids) if watermark else []
        for item in delivered:
            identity = item.identity
            if identity is None:
                continue
            if identity in ids:
                ids.remove(identity)
            ids.append(identity)
        return ids[-self.max_size:]


def build_dedup_strategy(name: str, seen_set_size: int = 200) -> DedupStrategy:
    """Create the dedup strategy selected in config."""
    if name == "watermark":
        return WatermarkDedup()
    if name == "watermark_strict":
        return WatermarkDedup(strict=True)
    if name == "seen_set":
        return SeenSetDedup(seen_set_size)
    raise ValueError(f"Unsupported dedup strategy: {name}")
