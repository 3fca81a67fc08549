"""Best-effort resolution of a site's icon, used as the webhook avatar."""

import re
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx
import structlog
from bs4 import BeautifulSoup

from feed_relay.core import FallbackChain

logger = structlog.get_logger(__name__)

IPV4_PATTERN = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")

# Public suffixes made of two labels; the registrable domain keeps three
TWO_LABEL_TLDS = frozenset({
    "co.jp", "co.uk", "com.au", "or.jp", "ne.jp",
    "ac.jp", "go.jp", "org.uk", "net.uk", "ac.uk",
})

ICON_PATHS = (
    "/favicon.ico",
    "/favicon.png",
    "/apple-touch-icon.png",
    "/apple-touch-icon-precomposed.png",
)

ICON_RELS = {"icon", "shortcut icon", "apple-touch-icon", "apple-touch-icon-precomposed"}

STRATEGIES = ("probe", "logo_service")


def strip_subdomain(domain: str) -> str:
    """Reduce a hostname to its registrable domain.

    >>> strip_subdomain("blog.example.co.jp")
    'example.co.jp'
    """
    if IPV4_PATTERN.match(domain):
        return domain

    parts = domain.split(".")
    if len(parts) <= 2:
        return domain

    if ".".join(parts[-2:]) in TWO_LABEL_TLDS:
        return ".".join(parts[-3:])
    return ".".join(parts[-2:])


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Hostname of a URL, or None."""
    if not url:
        return None
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def favicon_service_url(domain: str) -> str:
    return f"https://www.google.com/s2/favicons?domain={domain}&sz=128"


def logo_service_url(domain: str) -> str:
    return f"https://logo.clearbit.com/{domain}"


class IconResolver:
    """Find an icon URL for a domain. Never raises.

    The ``probe`` strategy checks well-known icon paths, then icon links on
    the home page; ``logo_service`` asks a logo service directly. Both end at
    the Google favicon service.
    """

    def __init__(self, client: httpx.AsyncClient, strategy: str = "probe") -> None:
        if strategy not in STRATEGIES:
            raise ValueError(f"Unsupported icon strategy: {strategy}")
        self.client = client
        self.strategy = strategy

    async def resolve(self, domain: str) -> str:
        """Return an icon URL for ``domain``."""
        main_domain = strip_subdomain(domain)
        logger.debug("Resolving icon", domain=domain, main_domain=main_domain)

        if self.strategy == "logo_service":
            steps = [("logo_service", lambda: self._probe_candidate(logo_service_url(main_domain)))]
        else:
            steps = [
                ("well_known_paths", lambda: self._probe_well_known(main_domain)),
                ("html_links", lambda: self._scan_home_page(main_domain)),
            ]

        chain: FallbackChain[str] = FallbackChain(
            "icon",
            steps,
            fallback=lambda: favicon_service_url(main_domain),
        )
        return await chain.run()

    async def validate_avatar(self, url: str, domain: Optional[str]) -> Optional[str]:
        """Re-check an icon right before sending.

        Returns ``url`` when it still serves an image, the favicon service
        URL for ``domain`` otherwise, or None when there is no domain either.
        """
        chain: FallbackChain[str] = FallbackChain(
            "avatar",
            [("live_check", lambda: self._probe_candidate(url))],
            fallback=lambda: favicon_service_url(domain) if domain else None,
        )
        return await chain.run()

    async def is_image(self, url: str) -> bool:
        """HEAD the URL and check it answers 200 with an image content type."""
        try:
            response = await self.client.head(url)
        except httpx.HTTPError as e:
            logger.debug("Icon probe failed", url=url, error=str(e))
            return False

        content_type = response.headers.get("content-type", "")
        return response.status_code == 200 and content_type.startswith("image/")

    async def _probe_candidate(self, url: str) -> Optional[str]:
        return url if await self.is_image(url) else None

    async def _probe_well_known(self, domain: str) -> Optional[str]:
        for path in ICON_PATHS:
            url = f"https://{domain}{path}"
            if await self.is_image(url):
                return url
        return None

    async def _scan_home_page(self, domain: str) -> Optional[str]:
        base_url = f"https://{domain}/"
        try:
            response = await self.client.get(base_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug("Home page icon lookup failed", domain=domain, error=str(e))
            return None

        for href in self._icon_links(response.text):
            url = urljoin(base_url, href)
            if await self.is_image(url):
                return url
        return None

    @staticmethod
    def _icon_links(html: str) -> list[str]:
        """Icon hrefs declared in a page, in document order."""
        soup = BeautifulSoup(html, "html.parser")
        links = []
        for tag in soup.find_all("link", href=True):
            rel = tag.get("rel") or []
            rel_value = " ".join(rel).lower() if isinstance(rel, list) else str(rel).lower()
            if rel_value in ICON_RELS:
                links.append(tag["href"].strip())
        return links
