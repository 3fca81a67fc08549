"""RSS/Atom feed fetcher."""

import io
from datetime import datetime, timezone
from typing import Any, Optional

import feedparser
import httpx
import structlog
from bs4 import BeautifulSoup

from feed_relay.core import FeedFetcher, FeedItem, FetchedFeed, FetchError, ItemMedia
from feed_relay.core.timestamps import to_datetime

logger = structlog.get_logger(__name__)


class HttpFeedFetcher(FeedFetcher):
    """Download a feed with httpx and parse it with feedparser."""

    def __init__(self, client: httpx.AsyncClient, user_agent: str = "feed-relay/0.1 (RSS Reader)") -> None:
        self.client = client
        self.user_agent = user_agent

    async def fetch(self, url: str) -> FetchedFeed:
        """Fetch a feed and return its entries in source order."""
        try:
            response = await self.client.get(url, headers={"User-Agent": self.user_agent})
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise FetchError(f"HTTP {e.response.status_code} for {url}") from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed for {url}: {e}") from e

        fetched = self._parse_feed(url, response.content)
        logger.debug("Feed fetched", url=url, items=len(fetched.items))
        return fetched

    def _parse_feed(self, url: str, raw: bytes | str) -> FetchedFeed:
        """Parse feed XML into a FetchedFeed."""
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        # A stream keeps feedparser from treating the document as a URL or path
        parsed = feedparser.parse(io.BytesIO(raw))
        entries = parsed.get("entries", [])

        if parsed.get("bozo") and not entries:
            reason = parsed.get("bozo_exception")
            raise FetchError(f"Malformed feed at {url}: {reason}")

        items = []
        for entry in entries:
            try:
                items.append(self._parse_entry(entry))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed entry", url=url, error=str(e))

        channel = parsed.get("feed", {})
        return FetchedFeed(
            url=url,
            title=channel.get("title", ""),
            link=channel.get("link"),
            items=items,
        )

    def _parse_entry(self, entry: Any) -> FeedItem:
        published_raw = entry.get("published") or entry.get("updated")
        return FeedItem(
            title=_clean(entry.get("title")),
            link=_clean(entry.get("link")),
            guid=_clean(entry.get("id")),
            published=self._parse_date(entry, published_raw),
            published_raw=published_raw,
            content_snippet=self._content_snippet(entry),
            categories=[tag.get("term") for tag in entry.get("tags", []) if tag.get("term")],
            author=_clean(entry.get("author")),
            media=self._extract_media(entry),
        )

    @staticmethod
    def _parse_date(entry: Any, published_raw: Optional[str]) -> Optional[datetime]:
        for field in ("published_parsed", "updated_parsed"):
            ts = entry.get(field)
            if ts:
                try:
                    return datetime(*ts[:6], tzinfo=timezone.utc)
                except (ValueError, TypeError):
                    continue
        return to_datetime(published_raw)

    @staticmethod
    def _content_snippet(entry: Any) -> str:
        html = entry.get("summary") or ""
        if not html and entry.get("content"):
            html = entry["content"][0].get("value", "")
        if not html:
            return ""
        return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)

    @staticmethod
    def _extract_media(entry: Any) -> ItemMedia:
        media = ItemMedia()

        thumbnails = entry.get("media_thumbnail") or []
        if thumbnails and thumbnails[0].get("url"):
            media.thumbnail_url = thumbnails[0]["url"]

        contents = entry.get("media_content") or []
        if contents and contents[0].get("url"):
            media.content_url = contents[0]["url"]

        for enclosure in entry.get("enclosures") or []:
            href = enclosure.get("href") or enclosure.get("url")
            if href:
                media.enclosure_url = href
                media.enclosure_type = enclosure.get("type")
                break

        image = entry.get("image")
        if isinstance(image, dict):
            media.image_url = image.get("href") or image.get("url")

        return media


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None
