"""
In-process stock change notifications.

Services publish a StockChanged event after a transaction that moved stock
has committed.  Subscribers (read-model caches, UI refreshers) are called
synchronously on the publishing thread; a failing subscriber is logged and
does not stop delivery to the others or affect the publisher.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from uuid import UUID

from inventory_kernel.logging_config import get_logger

logger = get_logger("services.change_feed")


@dataclass(frozen=True)
class StockChanged:
    """Stock of ``product_ids`` changed; ``source`` names the operation."""

    product_ids: frozenset[UUID]
    source: str

    @classmethod
    def for_products(cls, product_ids: Iterable[UUID], source: str) -> "StockChanged":
        return cls(product_ids=frozenset(product_ids), source=source)


Subscriber = Callable[[StockChanged], None]


class ChangeFeed:
    """Thread-safe publish/subscribe bus for StockChanged events."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register ``subscriber``; returns a callable that unsubscribes it."""
        with self._lock:
            self._subscribers.append(subscriber)
        return lambda: self.unsubscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, event: StockChanged) -> int:
        """Deliver ``event`` to every subscriber.  Returns how many succeeded."""
        with self._lock:
            subscribers = list(self._subscribers)
        delivered = 0
        for subscriber in subscribers:
            try:
                subscriber(event)
            except Exception:
                logger.exception(
                    "change_feed_subscriber_failed",
                    extra={"source": event.source, "product_count": len(event.product_ids)},
                )
                continue
            delivered += 1
        logger.debug(
            "stock_changed_published",
            extra={
                "source": event.source,
                "product_ids": sorted(str(p) for p in event.product_ids),
                "delivered": delivered,
            },
        )
        return delivered
