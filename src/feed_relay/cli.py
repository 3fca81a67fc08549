"""CLI entry point for feed relay."""

import asyncio
import signal
from pathlib import Path

import httpx
import structlog
import typer

from feed_relay.adapters.destinations import DestinationHandleCache, DiscordTransport
from feed_relay.adapters.icons import IconResolver
from feed_relay.adapters.rendering import ImageExtractor, ItemRenderer
from feed_relay.adapters.sources import HttpFeedFetcher
from feed_relay.adapters.storage import YamlWatermarkStore
from feed_relay.config import Settings, get_settings
from feed_relay.core import build_dedup_strategy
from feed_relay.observability import setup_logging
from feed_relay.scheduler import FeedScheduler
from feed_relay.use_cases import Dispatcher, FeedSyncService

logger = structlog.get_logger(__name__)


def main(
    config: Path = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to config.yaml"),
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit"),
    check: bool = typer.Option(False, "--check", help="Check destination access and exit"),
) -> None:
    """Deliver new RSS/Atom items to Discord channels."""
    settings = get_settings(config)
    setup_logging(settings.logging.level, settings.logging.json)
    asyncio.run(async_run(settings, once, check))


def app() -> None:
    """CLI entry point."""
    typer.run(main)


def build_service(settings: Settings, client: httpx.AsyncClient) -> FeedSyncService:
    """Wire adapters into a FeedSyncService."""
    transport = DiscordTransport(client, settings.discord_bot_token, api_base=settings.discord.api_base)
    icon_resolver = IconResolver(client, strategy=settings.icons.strategy)
    renderer = ItemRenderer(
        ImageExtractor(client, fetch_pages=settings.rendering.fetch_article_images),
        snippet_chars=settings.rendering.snippet_chars,
        timezone=settings.rendering.timezone,
        footer=settings.rendering.footer,
        button_label=settings.rendering.button_label,
    )
    dispatcher = Dispatcher(
        transport=transport,
        handle_cache=DestinationHandleCache(transport, sender_name=settings.discord.sender_name),
        renderer=renderer,
        icon_resolver=icon_resolver,
    )
    return FeedSyncService(
        feeds=settings.feeds,
        fetcher=HttpFeedFetcher(client, user_agent=settings.http.user_agent),
        store=YamlWatermarkStore(settings.paths.state_dir),
        dispatcher=dispatcher,
        icon_resolver=icon_resolver,
        dedup=build_dedup_strategy(settings.dedup.strategy, settings.dedup.seen_set_size),
    )


async def async_run(settings: Settings, once: bool, check: bool) -> None:
    """Async implementation of the run command."""
    if not settings.discord_bot_token:
        logger.warning("DISCORD_BOT_TOKEN not set, webhooks cannot be looked up")

    logger.info(
        "Feed relay starting",
        feeds=len(settings.feeds),
        interval_seconds=settings.scheduler.interval_seconds,
        dedup=settings.dedup.strategy,
        icons=settings.icons.strategy,
    )

    async with httpx.AsyncClient(
        timeout=settings.http.timeout,
        follow_redirects=True,
        headers={"User-Agent": settings.http.user_agent},
    ) as client:
        service = build_service(settings, client)
        watermarks = await service.store.list_all()
        logger.info("Watermarks loaded", count=len(watermarks), state_dir=str(settings.paths.state_dir))
        await service.verify_destinations()

        if check:
            return

        scheduler = FeedScheduler(
            service,
            interval_seconds=settings.scheduler.interval_seconds,
            run_on_start=settings.scheduler.run_on_start,
        )

        if once:
            await scheduler.tick()
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, scheduler.stop)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                pass

        await scheduler.run_forever()


if __name__ == "__main__":
    app()
