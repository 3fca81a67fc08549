"""Tests for core entities."""

import hashlib

import pytest

from feed_relay.core import (
    DeliveryOutcome,
    FeedItem,
    FeedResult,
    FeedSource,
    RenderedPayload,
    feed_key,
)


def test_feed_key_is_md5_of_url() -> None:
    """Test the feed key is stable and derived from the URL."""
    url = "https://example.com/feed.xml"

    assert feed_key(url) == hashlib.md5(url.encode("utf-8")).hexdigest()
    assert feed_key(url) == feed_key(url)
    assert feed_key(url) != feed_key(url + "?page=2")
    assert len(feed_key(url)) == 32


def test_feed_source_requires_url() -> None:
    """Test feed source validation."""
    feed = FeedSource(url="https://example.com/feed.xml", name="Example", destinations=("1",))

    assert feed.key == feed_key("https://example.com/feed.xml")
    with pytest.raises(ValueError, match="URL cannot be empty"):
        FeedSource(url="", name="Empty")


def test_feed_item_identity() -> None:
    """Test identity prefers guid, then link, then title."""
    assert FeedItem(title="T", link="L", guid="G").identity == "G"
    assert FeedItem(title="T", link="L").identity == "L"
    assert FeedItem(title="T", link=None).identity == "T"
    assert FeedItem(title=None, link=None).identity is None


def test_feed_item_has_timestamp() -> None:
    """Test raw or parsed dates both count as a timestamp."""
    assert not FeedItem(title="T", link=None).has_timestamp
    assert FeedItem(title="T", link=None, published_raw="yesterday").has_timestamp


def test_rendered_payload_to_json_components() -> None:
    """Test component payloads omit content."""
    payload = RenderedPayload(
        components=[{"type": 17, "components": []}],
        username="Example",
        avatar_url="https://example.com/icon.png",
        flags=1 << 15,
    )

    assert payload.to_json() == {
        "username": "Example",
        "avatar_url": "https://example.com/icon.png",
        "components": [{"type": 17, "components": []}],
        "flags": 32768,
    }


def test_rendered_payload_to_json_plain() -> None:
    """Test plain payloads carry content only."""
    payload = RenderedPayload(content="**Title**\nhttps://example.com")

    assert payload.to_json() == {"content": "**Title**\nhttps://example.com"}


def test_feed_result_counts() -> None:
    """Test delivery outcomes are tallied."""
    result = FeedResult(feed=FeedSource(url="https://example.com/feed.xml", name="Example"))
    result.record(DeliveryOutcome.DELIVERED)
    result.record(DeliveryOutcome.DELIVERED)
    result.record(DeliveryOutcome.SKIPPED)

    assert result.delivered == 2
    assert result.deliveries[DeliveryOutcome.SKIPPED] == 1
