"""Turn feed items into Discord Components V2 messages."""

from datetime import datetime, tzinfo
from typing import Any, Callable, Optional
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from feed_relay.adapters.rendering.image_extractor import ImageExtractor
from feed_relay.core import FeedItem, FeedSource, RenderedPayload, RenderError

logger = structlog.get_logger(__name__)

# Discord component types
ACTION_ROW = 1
BUTTON = 2
TEXT_DISPLAY = 10
MEDIA_GALLERY = 12
SEPARATOR = 14
CONTAINER = 17

BUTTON_STYLE_LINK = 5
SEPARATOR_SPACING = {"small": 1, "large": 2}
IS_COMPONENTS_V2 = 1 << 15

TEXT_SEPARATOR = "---"


def truncate(text: str, limit: int = 500) -> str:
    """Clip text to ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) > limit:
        return text[:limit].strip() + "..."
    return text.strip()


def resolve_timezone(name: str) -> Optional[tzinfo]:
    """Return the configured zone; None means the host's local time."""
    if not name or name == "local":
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using local time", timezone=name)
        return None


def format_publish_time(published: datetime, zone: Optional[tzinfo] = None) -> str:
    """Format like ``2024/03/01 (Fri) 09:30`` in the display zone."""
    local = published.astimezone(zone)
    return local.strftime("%Y/%m/%d (%a) %H:%M")


def _text(content: str) -> dict[str, Any]:
    return {"type": TEXT_DISPLAY, "content": content}


class ItemRenderer:
    """Build the message posted for one feed item."""

    def __init__(
        self,
        image_extractor: ImageExtractor,
        snippet_chars: int = 500,
        timezone: str = "local",
        footer: str = "-# Delivered automatically via RSS",
        button_label: str = "Read article",
        separator_spacing: str = "large",
    ) -> None:
        self.image_extractor = image_extractor
        self.snippet_chars = snippet_chars
        self.zone = resolve_timezone(timezone)
        self.footer = footer
        self.button_label = button_label
        self.separator_spacing = separator_spacing

    async def render(self, item: FeedItem, feed: FeedSource) -> RenderedPayload:
        """Render an item. Raises RenderError if the message cannot be built."""
        if not item.title and not item.link:
            raise RenderError("Item has neither title nor link")

        image_url = await self.image_extractor.find(item)

        try:
            blocks: list[dict[str, Any]] = [_text(self._header(item))]
            self._add_optional(blocks, "separator", self._separator, _text(TEXT_SEPARATOR))

            if item.content_snippet:
                blocks.append(_text(truncate(item.content_snippet, self.snippet_chars)))

            self._add_optional(blocks, "separator", self._separator, _text(TEXT_SEPARATOR))

            if image_url:
                self._add_optional(blocks, "image", lambda: self._media_gallery(image_url), None)

            self._add_optional(blocks, "separator", self._separator, _text(TEXT_SEPARATOR))

            metadata = self._metadata(item)
            if metadata:
                blocks.append(_text(metadata))

            blocks.append(_text(self.footer))

            if item.link:
                blocks.append(self._link_button(item.link))
        except (TypeError, ValueError) as e:
            raise RenderError(f"Could not render {item.title!r}: {e}") from e

        return RenderedPayload(
            components=[{"type": CONTAINER, "components": blocks}],
            username=feed.name,
            flags=IS_COMPONENTS_V2,
        )

    def fallback_payload(self, item: FeedItem, feed: FeedSource) -> RenderedPayload:
        """Plain title and link, used when the rich message is rejected."""
        title = item.title or item.link or ""
        return RenderedPayload(
            content=f"**{title}**\n{item.link or ''}",
            username=feed.name,
        )

    def _add_optional(
        self,
        blocks: list[dict[str, Any]],
        label: str,
        build: Callable[[], dict[str, Any]],
        fallback: Optional[dict[str, Any]],
    ) -> None:
        try:
            blocks.append(build())
        except (TypeError, ValueError, KeyError) as e:
            logger.error("Block build failed", block=label, error=str(e))
            if fallback is not None:
                blocks.append(fallback)

    def _header(self, item: FeedItem) -> str:
        title = item.title or item.link
        if item.link:
            return f"## [{title}]({item.link})"
        return f"## {title}"

    def _separator(self) -> dict[str, Any]:
        return {"type": SEPARATOR, "divider": True, "spacing": SEPARATOR_SPACING[self.separator_spacing]}

    @staticmethod
    def _media_gallery(url: str) -> dict[str, Any]:
        if urlparse(url).scheme not in ("http", "https"):
            raise ValueError(f"Unsupported image URL: {url}")
        return {"type": MEDIA_GALLERY, "items": [{"media": {"url": url}}]}

    def _metadata(self, item: FeedItem) -> str:
        parts = []

        if item.categories:
            parts.append(f"📁 **Categories**: {', '.join(item.categories)}")

        if item.author:
            parts.append(f"✍️ **Author**: {item.author}")

        if item.published:
            parts.append(f"📅 **Published**: {format_publish_time(item.published, self.zone)}")

        return "\n".join(parts)

    def _link_button(self, link: str) -> dict[str, Any]:
        return {
            "type": ACTION_ROW,
            "components": [
                {
                    "type": BUTTON,
                    "style": BUTTON_STYLE_LINK,
                    "label": self.button_label,
                    "url": link,
                    "emoji": {"name": "🔗"},
                }
            ],
        }
