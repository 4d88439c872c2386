"""In-process publish/subscribe of table row changes.

Writers publish a ``RowChangeEvent`` after each committed write; status
reconcilers and SSE streams subscribe with table, deal and event-type filters.
"""

import asyncio
from typing import AsyncIterator, Iterable, List, Optional, Set

from dealmate.core.config import settings
from dealmate.schemas.realtime import RowChangeEvent, RowEventType
from dealmate.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Subscription:
    """A filtered, bounded event queue. Iterate it to receive events."""

    def __init__(
        self,
        hub: "RealtimeHub",
        tables: Set[str],
        deal_id: Optional[str] = None,
        event_types: Optional[Iterable[RowEventType]] = None,
        maxsize: int = 100,
    ):
        self._hub = hub
        self.tables = tables
        self.deal_id = str(deal_id) if deal_id is not None else None
        self.event_types = set(event_types) if event_types else None
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def matches(self, event: RowChangeEvent) -> bool:
        if event.table not in self.tables:
            return False
        if self.event_types is not None and event.event_type not in self.event_types:
            return False
        return self.deal_id is None or event.deal_id == self.deal_id

    def deliver(self, event: RowChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            # Drop the oldest event; subscribers re-sync from the store anyway
            self.queue.get_nowait()
            self.queue.put_nowait(event)
            LOGGER.warning(
                "Realtime subscriber queue full, dropped oldest event",
                extra={"tables": sorted(self.tables), "deal_id": self.deal_id},
            )

    async def get(self) -> RowChangeEvent:
        return await self.queue.get()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._hub.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[RowChangeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[RowChangeEvent]:
        while not self.closed:
            yield await self.queue.get()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class RealtimeHub:
    """Fan-out of row-change events to matching subscriptions."""

    def __init__(self, queue_size: Optional[int] = None):
        self.queue_size = queue_size or settings.processing.realtime_queue_size
        self._subscriptions: List[Subscription] = []

    def subscribe(
        self,
        tables: Iterable[str] | str,
        deal_id: Optional[str] = None,
        event_types: Optional[Iterable[RowEventType]] = None,
    ) -> Subscription:
        table_set = {tables} if isinstance(tables, str) else set(tables)
        subscription = Subscription(
            self,
            tables=table_set,
            deal_id=deal_id,
            event_types=event_types,
            maxsize=self.queue_size,
        )
        self._subscriptions.append(subscription)
        LOGGER.debug(f"Subscribed to {sorted(table_set)} for deal {deal_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: RowChangeEvent) -> int:
        """Deliver ``event`` to every matching subscription; returns the count."""
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.deliver(event)
                delivered += 1
        return delivered

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


realtime_hub = RealtimeHub()


def get_realtime_hub() -> RealtimeHub:
    return realtime_hub
