"""Cache of delivery handles (webhooks) per destination."""

from dataclasses import replace
from typing import Optional

import structlog

from feed_relay.core import DeliveryHandle, DestinationTransport, DispatchError

logger = structlog.get_logger(__name__)


class DestinationHandleCache:
    """Resolve destinations to webhooks, creating them on first use.

    Entries live for the lifetime of the cache; nothing is evicted. Call
    ``clear()`` to force fresh lookups.
    """

    def __init__(self, transport: DestinationTransport, sender_name: str = "RSSBot") -> None:
        self.transport = transport
        self.sender_name = sender_name
        self._handles: dict[str, DeliveryHandle] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, destination_id: str) -> bool:
        return destination_id in self._handles

    def clear(self) -> None:
        self._handles.clear()

    async def resolve(self, destination_id: str) -> Optional[DeliveryHandle]:
        """Return the handle for a destination, or None if it is unavailable."""
        cached = self._handles.get(destination_id)
        if cached:
            return cached

        try:
            handle = await self._lookup(destination_id)
        except DispatchError as e:
            logger.error("Webhook lookup failed", destination=destination_id, error=str(e))
            return None

        if handle:
            self._handles[destination_id] = handle
        return handle

    async def _lookup(self, destination_id: str) -> Optional[DeliveryHandle]:
        destination = await self.transport.fetch_destination(destination_id)
        if destination is None:
            logger.warning("Destination not found", destination=destination_id)
            return None

        # Threads cannot own webhooks; post through the parent channel's
        container = destination
        if destination.is_thread and destination.parent_id:
            parent = await self.transport.fetch_destination(destination.parent_id)
            if parent is None:
                logger.warning("Thread parent not found", destination=destination_id, parent=destination.parent_id)
                return None
            container = parent

        senders = await self.transport.list_persistent_senders(container)
        handle = next((sender for sender in senders if sender.token), None)
        if handle is None:
            handle = await self.transport.create_persistent_sender(container, self.sender_name)

        if not handle.token:
            logger.error("Webhook has no usable token", destination=destination_id)
            return None

        if container is not destination:
            handle = replace(handle, thread_id=destination.id)
        return handle
