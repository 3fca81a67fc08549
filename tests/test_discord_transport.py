"""Tests for the Discord REST adapter."""

import json

import httpx
import pytest
import respx

from feed_relay.adapters.destinations import DestinationHandleCache, DiscordTransport
from feed_relay.core import DeliveryHandle, Destination, DispatchError, RenderedPayload

API = "https://discord.test/api/v10"


@pytest.mark.asyncio
@respx.mock
async def test_fetch_channel() -> None:
    """Test channel lookup sends the bot token."""
    route = respx.get(f"{API}/channels/100").mock(
        return_value=httpx.Response(200, json={"id": "100", "name": "news", "type": 0})
    )

    async with httpx.AsyncClient() as client:
        destination = await DiscordTransport(client, "bot-token", api_base=API).fetch_destination("100")

    assert destination == Destination(id="100", name="news", parent_id=None, is_thread=False)
    assert route.calls.last.request.headers["Authorization"] == "Bot bot-token"


@pytest.mark.asyncio
@respx.mock
async def test_fetch_thread_and_missing() -> None:
    """Test threads report their parent and unknown channels give None."""
    respx.get(f"{API}/channels/200").mock(
        return_value=httpx.Response(200, json={"id": "200", "name": "t", "type": 11, "parent_id": "100"})
    )
    respx.get(f"{API}/channels/404").mock(return_value=httpx.Response(404, json={"message": "Unknown Channel"}))

    async with httpx.AsyncClient() as client:
        transport = DiscordTransport(client, "bot-token", api_base=API)
        thread = await transport.fetch_destination("200")
        missing = await transport.fetch_destination("404")

    assert thread.is_thread
    assert thread.parent_id == "100"
    assert missing is None


@pytest.mark.asyncio
@respx.mock
async def test_fetch_forbidden_raises() -> None:
    """Test permission errors raise DispatchError."""
    respx.get(f"{API}/channels/100").mock(return_value=httpx.Response(403, json={"message": "Missing Access"}))

    async with httpx.AsyncClient() as client:
        with pytest.raises(DispatchError, match="403"):
            await DiscordTransport(client, "bot-token", api_base=API).fetch_destination("100")


@pytest.mark.asyncio
async def test_missing_token_raises() -> None:
    """Test management calls need a bot token."""
    async with httpx.AsyncClient() as client:
        with pytest.raises(DispatchError):
            await DiscordTransport(client, None, api_base=API).fetch_destination("100")


@pytest.mark.asyncio
@respx.mock
async def test_list_and_create_webhooks() -> None:
    """Test webhook listing and creation."""
    respx.get(f"{API}/channels/100/webhooks").mock(
        return_value=httpx.Response(200, json=[{"id": "1", "token": "abc"}, {"id": "2"}])
    )
    create = respx.post(f"{API}/channels/100/webhooks").mock(
        return_value=httpx.Response(200, json={"id": "3", "token": "def"})
    )
    channel = Destination(id="100", name="news")

    async with httpx.AsyncClient() as client:
        transport = DiscordTransport(client, "bot-token", api_base=API)
        listed = await transport.list_persistent_senders(channel)
        created = await transport.create_persistent_sender(channel, "RSSBot")

    assert listed == [
        DeliveryHandle(webhook_id="1", token="abc", channel_id="100"),
        DeliveryHandle(webhook_id="2", token="", channel_id="100"),
    ]
    assert created == DeliveryHandle(webhook_id="3", token="def", channel_id="100")
    assert json.loads(create.calls.last.request.content) == {"name": "RSSBot"}


@pytest.mark.asyncio
@respx.mock
async def test_send_components_to_thread() -> None:
    """Test component messages set the query flags and thread id."""
    route = respx.post(f"{API}/webhooks/1/abc").mock(return_value=httpx.Response(200, json={"id": "m1"}))
    handle = DeliveryHandle(webhook_id="1", token="abc", channel_id="100", thread_id="200")
    payload = RenderedPayload(components=[{"type": 17, "components": []}], username="Feed", flags=1 << 15)

    async with httpx.AsyncClient() as client:
        await DiscordTransport(client, None, api_base=API).send(handle, payload)

    request = route.calls.last.request
    assert request.url.params["wait"] == "true"
    assert request.url.params["with_components"] == "true"
    assert request.url.params["thread_id"] == "200"
    assert "Authorization" not in request.headers
    assert json.loads(request.content)["flags"] == 32768


@pytest.mark.asyncio
@respx.mock
async def test_send_plain_message() -> None:
    """Test plain messages omit the components flag."""
    route = respx.post(f"{API}/webhooks/1/abc").mock(return_value=httpx.Response(204))
    handle = DeliveryHandle(webhook_id="1", token="abc", channel_id="100")

    async with httpx.AsyncClient() as client:
        await DiscordTransport(client, None, api_base=API).send(handle, RenderedPayload(content="hi"))

    request = route.calls.last.request
    assert "with_components" not in request.url.params
    assert "thread_id" not in request.url.params
    assert json.loads(request.content) == {"content": "hi"}


@pytest.mark.asyncio
@respx.mock
async def test_send_rejected() -> None:
    """Test a rejected message raises DispatchError."""
    respx.post(f"{API}/webhooks/1/abc").mock(
        return_value=httpx.Response(400, json={"message": "Invalid Form Body"})
    )
    handle = DeliveryHandle(webhook_id="1", token="abc", channel_id="100")

    async with httpx.AsyncClient() as client:
        with pytest.raises(DispatchError, match="400"):
            await DiscordTransport(client, None, api_base=API).send(handle, RenderedPayload(content="hi"))


@pytest.mark.asyncio
@respx.mock
async def test_send_network_error() -> None:
    """Test connection failures raise DispatchError."""
    respx.post(f"{API}/webhooks/1/abc").mock(side_effect=httpx.ConnectError("reset"))
    handle = DeliveryHandle(webhook_id="1", token="abc", channel_id="100")

    async with httpx.AsyncClient() as client:
        with pytest.raises(DispatchError):
            await DiscordTransport(client, None, api_base=API).send(handle, RenderedPayload(content="hi"))


@pytest.mark.asyncio
@respx.mock
async def test_non_json_channel_body_raises() -> None:
    """Test an HTML body on a 200 reply is a dispatch failure, not a crash."""
    respx.get(f"{API}/channels/100").mock(return_value=httpx.Response(200, text="<html>captive portal</html>"))

    async with httpx.AsyncClient() as client:
        transport = DiscordTransport(client, "bot-token", api_base=API)

        with pytest.raises(DispatchError, match="unexpected body"):
            await transport.fetch_destination("100")
        assert await DestinationHandleCache(transport).resolve("100") is None


@pytest.mark.asyncio
@respx.mock
async def test_webhook_without_id_raises() -> None:
    """Test webhook payloads missing fields raise DispatchError."""
    respx.get(f"{API}/channels/100/webhooks").mock(return_value=httpx.Response(200, json=[{"token": "abc"}]))
    respx.post(f"{API}/channels/100/webhooks").mock(return_value=httpx.Response(200, json=["not", "a", "webhook"]))
    channel = Destination(id="100", name="news")

    async with httpx.AsyncClient() as client:
        transport = DiscordTransport(client, "bot-token", api_base=API)

        with pytest.raises(DispatchError):
            await transport.list_persistent_senders(channel)
        with pytest.raises(DispatchError):
            await transport.create_persistent_sender(channel, "RSSBot")
