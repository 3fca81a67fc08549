"""Configuration management."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from feed_relay.core import FeedSource

logger = structlog.get_logger(__name__)

# RSS_URL_n / RSS_CHANNEL_n / RSS_NAME_n are read for n in 1..MAX_ENV_FEEDS
MAX_ENV_FEEDS = 10


@dataclass
class SchedulerConfig:
    """Polling settings."""
    interval_seconds: float = 600
    run_on_start: bool = True


@dataclass
class HttpConfig:
    """Shared HTTP client settings."""
    timeout: float = 30.0
    user_agent: str = "feed-relay/0.1 (RSS Reader)"


@dataclass
class DedupConfig:
    """How new items are detected."""
    strategy: str = "watermark"
    seen_set_size: int = 200


@dataclass
class IconsConfig:
    """Webhook avatar lookup."""
    strategy: str = "probe"


@dataclass
class RenderingConfig:
    """Message layout settings."""
    snippet_chars: int = 500
    timezone: str = "local"
    footer: str = "-# Delivered automatically via RSS"
    button_label: str = "Read article"
    fetch_article_images: bool = True


@dataclass
class DiscordConfig:
    """Discord settings."""
    sender_name: str = "RSSBot"
    api_base: str = "https://discord.com/api/v10"


@dataclass
class PathsConfig:
    """Path settings."""
    state_dir: Path = Path("state")


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    json: bool = False


@dataclass
class Settings:
    """Application settings."""

    # Secrets (from environment only)
    discord_bot_token: Optional[str] = None

    feeds: list[FeedSource] = field(default_factory=list)

    # Config sections
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    dedup: DedupConfig = field(default_factory=DedupConfig)
    icons: IconsConfig = field(default_factory=IconsConfig)
    rendering: RenderingConfig = field(default_factory=RenderingConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(config_path: Path = Path("config.yaml")) -> dict:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_feeds(raw_feeds: list[dict[str, Any]]) -> list[FeedSource]:
    """Build feed sources from config entries, dropping unusable ones."""
    feeds = []
    for index, entry in enumerate(raw_feeds, 1):
        url = (entry.get("url") or "").strip()
        if not url:
            logger.warning("Feed entry without url ignored", index=index)
            continue
        if not entry.get("enabled", True):
            continue

        destinations = entry.get("destinations") or entry.get("channels") or []
        if isinstance(destinations, (str, int)):
            destinations = [destinations]
        destinations = tuple(str(d) for d in destinations if str(d).strip())
        if not destinations:
            logger.warning("Feed has no destinations, ignored", url=url)
            continue

        feeds.append(FeedSource(
            url=url,
            name=entry.get("name") or f"RSS Feed {index}",
            destinations=destinations,
        ))
    return feeds


def feeds_from_env(environ: Optional[dict[str, str]] = None) -> list[dict[str, Any]]:
    """Read feed entries from RSS_URL_n / RSS_CHANNEL_n / RSS_NAME_n."""
    environ = os.environ if environ is None else environ
    entries = []
    for i in range(1, MAX_ENV_FEEDS + 1):
        url = environ.get(f"RSS_URL_{i}")
        channel = environ.get(f"RSS_CHANNEL_{i}")
        if not url or not channel:
            continue
        entries.append({
            "url": url,
            "destinations": [c.strip() for c in channel.split(",")],
            "name": environ.get(f"RSS_NAME_{i}") or f"RSS Feed {i}",
        })
    return entries


def get_settings(config_path: Path = Path("config.yaml"), environ: Optional[dict[str, str]] = None) -> Settings:
    """Get application settings from YAML config and environment."""
    environ = os.environ if environ is None else environ
    config = load_config(config_path)

    settings = Settings(discord_bot_token=environ.get("DISCORD_BOT_TOKEN") or None)

    sections = {
        "scheduler": settings.scheduler,
        "http": settings.http,
        "dedup": settings.dedup,
        "icons": settings.icons,
        "rendering": settings.rendering,
        "discord": settings.discord,
        "logging": settings.logging,
    }
    for name, section in sections.items():
        for key, value in (config.get(name) or {}).items():
            if not hasattr(section, key):
                logger.warning("Unknown config key ignored", section=name, key=key)
                continue
            setattr(section, key, value)

    for key, value in (config.get("paths") or {}).items():
        setattr(settings.paths, key, Path(value))

    # Environment feeds are only used when config.yaml lists none
    raw_feeds = config.get("feeds") or feeds_from_env(environ)
    settings.feeds = parse_feeds(raw_feeds)

    return settings
