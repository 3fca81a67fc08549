"""Find a representative image for a feed item."""

from typing import Optional
from urllib.parse import urljoin

import httpx
import structlog
from bs4 import BeautifulSoup

from feed_relay.core import FallbackChain, FeedItem

logger = structlog.get_logger(__name__)

MIN_INLINE_IMAGE_SIZE = 200
INLINE_IMAGE_HINTS = ("header", "thumbnail", "eyecatch")


class ImageExtractor:
    """Look through the item's media fields, then the linked article page."""

    def __init__(self, client: httpx.AsyncClient, fetch_pages: bool = True) -> None:
        self.client = client
        self.fetch_pages = fetch_pages

    async def find(self, item: FeedItem) -> Optional[str]:
        """Return an image URL for the item, or None."""
        media = item.media
        steps = [
            ("media_thumbnail", lambda: media.thumbnail_url),
            ("media_content", lambda: media.content_url),
            ("enclosure", lambda: _image_enclosure(media.enclosure_url, media.enclosure_type)),
            ("image", lambda: media.image_url),
        ]
        if self.fetch_pages and item.link:
            steps.append(("article_page", lambda: self.page_image(item.link)))

        chain: FallbackChain[str] = FallbackChain("item_image", steps)
        return await chain.run()

    async def page_image(self, url: str) -> Optional[str]:
        """Pick the image an article page advertises for itself."""
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Article page fetch failed", url=url, error=str(e))
            return None

        return self.image_from_html(response.text, str(response.url))

    @staticmethod
    def image_from_html(html: str, page_url: str) -> Optional[str]:
        """Open Graph image, Twitter Card image, or the first large inline image."""
        soup = BeautifulSoup(html, "html.parser")

        og_image = soup.find("meta", attrs={"property": "og:image"})
        if og_image and og_image.get("content"):
            return urljoin(page_url, og_image["content"].strip())

        twitter_image = soup.find("meta", attrs={"name": "twitter:image"})
        if twitter_image and twitter_image.get("content"):
            return urljoin(page_url, twitter_image["content"].strip())

        for img in soup.find_all("img"):
            src = (img.get("src") or "").strip()
            if not src:
                continue
            if _is_large(img) or any(hint in src for hint in INLINE_IMAGE_HINTS):
                return urljoin(page_url, src)

        return None


def _image_enclosure(url: Optional[str], mime_type: Optional[str]) -> Optional[str]:
    if url and mime_type and mime_type.startswith("image/"):
        return url
    return None


def _is_large(img) -> bool:
    try:
        width = int(img.get("width") or 0)
        height = int(img.get("height") or 0)
    except ValueError:
        return False
    return width >= MIN_INLINE_IMAGE_SIZE and height >= MIN_INLINE_IMAGE_SIZE
