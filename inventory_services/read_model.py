"""
StockReadModel -- cached available-quantity reads for browsing screens.

Responsibility:
    Serve ``available_quantity`` for product lists without hitting the
    database on every render.  Entries are filled through the batch ledger
    on a miss, dropped when a StockChanged event names the product, and the
    whole cache is cleared when the clock's day changes (batches expire at
    day boundaries).  A load that overlaps an invalidation of the same
    product is returned to its caller but not cached.

Architecture position:
    Services -- read side only.  Never writes, never locks, and is never
    consulted by the sale or return paths, which always read the ledger.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from inventory_engines.expiry import DEFAULT_EXPIRY_HORIZON_DAYS
from inventory_kernel.domain.clock import Clock
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.batch_ledger import BatchLedger
from inventory_services.change_feed import ChangeFeed, StockChanged

logger = get_logger("services.read_model")


class StockReadModel:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock,
        change_feed: ChangeFeed | None = None,
        expiry_horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._horizon_days = expiry_horizon_days
        self._lock = threading.Lock()
        self._cache: dict[UUID, int] = {}
        self._cache_day: date | None = None
        # Bumped by every invalidation; a load is cached only if these did not move.
        self._epoch = 0
        self._versions: dict[UUID, int] = {}
        self.hits = 0
        self.misses = 0
        self._unsubscribe = change_feed.subscribe(self.on_stock_changed) if change_feed else None

    def available_quantity(self, product_id: UUID) -> int:
        return self.available_quantities([product_id])[product_id]

    def available_quantities(self, product_ids: Iterable[UUID]) -> dict[UUID, int]:
        wanted = list(dict.fromkeys(product_ids))
        with self._lock:
            self._roll_day()
            result = {pid: self._cache[pid] for pid in wanted if pid in self._cache}
            self.hits += len(result)
            missing = [pid for pid in wanted if pid not in result]
            epoch = self._epoch
            versions = {pid: self._versions.get(pid, 0) for pid in missing}
        if missing:
            loaded = self._load(missing)
            with self._lock:
                self.misses += len(missing)
                if self._epoch == epoch:
                    fresh = {
                        pid: qty for pid, qty in loaded.items()
                        if self._versions.get(pid, 0) == versions[pid]
                    }
                else:
                    fresh = {}
                self._cache.update(fresh)
            if len(fresh) < len(loaded):
                logger.debug(
                    "read_model_load_not_cached",
                    extra={"product_count": len(loaded) - len(fresh)},
                )
            result.update(loaded)
        return result

    def invalidate(self, product_ids: Iterable[UUID] | None = None) -> None:
        with self._lock:
            if product_ids is None:
                self._clear()
                return
            for pid in product_ids:
                self._cache.pop(pid, None)
                self._versions[pid] = self._versions.get(pid, 0) + 1

    def on_stock_changed(self, event: StockChanged) -> None:
        self.invalidate(event.product_ids)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _roll_day(self) -> None:
        today = self._clock.today()
        if self._cache_day != today:
            if self._cache_day is not None:
                logger.info(
                    "read_model_day_rollover",
                    extra={"previous_day": self._cache_day, "current_day": today},
                )
            self._clear()
            self._cache_day = today

    def _clear(self) -> None:
        self._cache.clear()
        self._versions.clear()
        self._epoch += 1

    def _load(self, product_ids: list[UUID]) -> dict[UUID, int]:
        session = self._session_factory()
        try:
            ledger = BatchLedger(session, self._clock, self._horizon_days)
            return {pid: ledger.available_quantity(pid) for pid in product_ids}
        finally:
            session.rollback()
            session.close()
