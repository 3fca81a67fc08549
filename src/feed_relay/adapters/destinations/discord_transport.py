"""Discord REST adapter: channels, webhooks and message delivery."""

from typing import Any, Callable, Optional, TypeVar

import httpx
import structlog

from feed_relay.core import (
    DeliveryHandle,
    Destination,
    DestinationTransport,
    DispatchError,
    RenderedPayload,
)

logger = structlog.get_logger(__name__)

DISCORD_API_BASE = "https://discord.com/api/v10"

# Announcement, public and private thread channel types
THREAD_CHANNEL_TYPES = {10, 11, 12}

T = TypeVar("T")


class DiscordTransport(DestinationTransport):
    """Talk to Discord with a bot token; post through channel webhooks."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        bot_token: Optional[str],
        api_base: str = DISCORD_API_BASE,
    ) -> None:
        """Initialize Discord transport.

        Args:
            client: Shared HTTP client.
            bot_token: Bot token used for channel and webhook management.
                Sending through an existing webhook does not need it.
            api_base: REST API root, overridable for tests.
        """
        self.client = client
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")

    def _headers(self) -> dict[str, str]:
        if not self.bot_token:
            raise DispatchError("DISCORD_BOT_TOKEN is not configured")
        return {"Authorization": f"Bot {self.bot_token}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, f"{self.api_base}{path}", **kwargs)
        except httpx.HTTPError as e:
            raise DispatchError(f"{method} {path} failed: {e}") from e
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        raise DispatchError(f"{action} failed with HTTP {response.status_code}: {response.text[:200]}")

    @staticmethod
    def _decode(response: httpx.Response, action: str, parse: Callable[[Any], T]) -> T:
        try:
            return parse(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise DispatchError(f"{action} returned an unexpected body: {e}") from e

    async def fetch_destination(self, destination_id: str) -> Optional[Destination]:
        response = await self._request("GET", f"/channels/{destination_id}", headers=self._headers())
        if response.status_code == 404:
            return None
        action = f"Fetching channel {destination_id}"
        self._raise_for_status(response, action)

        return self._decode(response, action, lambda data: Destination(
            id=str(data["id"]),
            name=data.get("name") or "",
            parent_id=str(data["parent_id"]) if data.get("parent_id") else None,
            is_thread=data.get("type") in THREAD_CHANNEL_TYPES,
        ))

    async def list_persistent_senders(self, destination: Destination) -> list[DeliveryHandle]:
        response = await self._request("GET", f"/channels/{destination.id}/webhooks", headers=self._headers())
        action = f"Listing webhooks of {destination.id}"
        self._raise_for_status(response, action)

        return self._decode(response, action, lambda webhooks: [
            _webhook_handle(webhook, destination.id) for webhook in webhooks
        ])

    async def create_persistent_sender(self, destination: Destination, name: str) -> DeliveryHandle:
        response = await self._request(
            "POST",
            f"/channels/{destination.id}/webhooks",
            headers=self._headers(),
            json={"name": name},
        )
        action = f"Creating webhook in {destination.id}"
        self._raise_for_status(response, action)

        handle = self._decode(response, action, lambda webhook: _webhook_handle(webhook, destination.id))
        logger.info("Webhook created", channel=destination.id, webhook=handle.webhook_id)
        return handle

    async def send(self, handle: DeliveryHandle, payload: RenderedPayload) -> None:
        params: dict[str, str] = {"wait": "true"}
        if payload.components:
            params["with_components"] = "true"
        if handle.thread_id:
            params["thread_id"] = handle.thread_id

        response = await self._request(
            "POST",
            f"/webhooks/{handle.webhook_id}/{handle.token}",
            params=params,
            json=payload.to_json(),
        )
        self._raise_for_status(response, f"Sending to channel {handle.thread_id or handle.channel_id}")


def _webhook_handle(webhook: dict[str, Any], channel_id: str) -> DeliveryHandle:
    return DeliveryHandle(
        webhook_id=str(webhook["id"]),
        token=webhook.get("token") or "",
        channel_id=channel_id,
    )
