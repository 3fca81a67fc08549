"""Tests for CLI wiring."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from feed_relay.cli import async_run, build_service
from feed_relay.config import Settings
from feed_relay.core import FeedSource, SeenSetDedup


def test_build_service_wires_settings() -> None:
    """Test settings reach the adapters."""
    settings = Settings(
        discord_bot_token="secret",
        feeds=[FeedSource(url="https://blog.example.com/feed.xml", name="Example", destinations=("100",))],
    )
    settings.dedup.strategy = "seen_set"
    settings.dedup.seen_set_size = 25
    settings.icons.strategy = "logo_service"
    settings.discord.sender_name = "FeedBot"
    settings.paths.state_dir = Path("/tmp/state")

    service = build_service(settings, Mock())

    assert service.feeds == settings.feeds
    assert isinstance(service.dedup, SeenSetDedup)
    assert service.dedup.max_size == 25
    assert service.icon_resolver.strategy == "logo_service"
    assert service.dispatcher.handle_cache.sender_name == "FeedBot"
    assert service.dispatcher.transport.bot_token == "secret"
    assert service.store.state_dir == Path("/tmp/state")


@pytest.mark.asyncio
async def test_check_run_reports_watermarks_and_destinations() -> None:
    """Test --check loads stored watermarks, verifies destinations and exits."""
    service = AsyncMock()
    service.store.list_all.return_value = []
    service.verify_destinations.return_value = {"100": True}

    with patch("feed_relay.cli.build_service", return_value=service):
        await async_run(Settings(), once=False, check=True)

    service.store.list_all.assert_awaited_once()
    service.verify_destinations.assert_awaited_once()
