"""Site icon lookup."""

from feed_relay.adapters.icons.icon_resolver import (
    IconResolver,
    extract_domain,
    favicon_service_url,
    strip_subdomain,
)

__all__ = ["IconResolver", "extract_domain", "favicon_service_url", "strip_subdomain"]
