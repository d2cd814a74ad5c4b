"""
Module: inventory_kernel.selectors.batch_selector
Responsibility: Read access to stock batches as immutable BatchSnapshots.
Architecture position: Kernel > Selectors.

Locking:
    With lock=True the selected rows are locked FOR UPDATE (PostgreSQL) in
    product-id order, then batch-id order, so that two carts touching the
    same products always lock in the same order.  On SQLite the clause is
    omitted by the dialect; the connection already holds the write lock
    from BEGIN IMMEDIATE.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.snapshots import BatchSnapshot, StockSnapshot
from inventory_kernel.models.stock_batch import StockBatch
from inventory_kernel.selectors.base import BaseSelector


def _to_snapshot(batch: StockBatch) -> BatchSnapshot:
    return BatchSnapshot(
        batch_id=batch.id,
        product_id=batch.product_id,
        batch_number=batch.batch_number,
        quantity=batch.quantity,
        original_quantity=batch.original_quantity,
        expiry_date=batch.expiry_date,
        purchase_date=batch.purchase_date,
        cost_price=batch.cost_price,
        selling_price=batch.selling_price,
    )


def _fefo_order():
    return (StockBatch.expiry_date, StockBatch.purchase_date, StockBatch.id)


class BatchSelector(BaseSelector[StockBatch]):
    """Query stock batches."""

    def _rows(self, stmt, lock: bool) -> list[StockBatch]:
        if lock:
            stmt = stmt.with_for_update()
        # Quantities change through SQL UPDATEs, so identity-map copies may be stale.
        stmt = stmt.execution_options(populate_existing=True)
        return list(self.session.execute(stmt).scalars())

    def get(self, batch_id: UUID) -> BatchSnapshot | None:
        rows = self._rows(select(StockBatch).where(StockBatch.id == batch_id), lock=False)
        return _to_snapshot(rows[0]) if rows else None

    def exists(self, batch_id: UUID) -> bool:
        stmt = select(func.count()).select_from(StockBatch).where(StockBatch.id == batch_id)
        return self.session.execute(stmt).scalar_one() > 0

    def sellable(self, product_id: UUID, today: date, lock: bool = False) -> list[BatchSnapshot]:
        """Non-expired batches with stock for one product, FEFO-ordered."""
        stmt = select(StockBatch).where(
            StockBatch.product_id == product_id,
            StockBatch.quantity > 0,
            StockBatch.expiry_date >= today,
        )
        if lock:
            stmt = stmt.order_by(StockBatch.id)
        rows = self._rows(stmt, lock)
        return sorted((_to_snapshot(r) for r in rows), key=lambda b: b.fefo_key)

    def sellable_for_products(
        self,
        product_ids: Iterable[UUID],
        today: date,
        lock: bool = False,
    ) -> StockSnapshot:
        """
        Snapshot of sellable batches for several products.

        Products are read (and locked) one at a time in sorted id order.
        Every requested product appears in the result, possibly with an
        empty tuple.
        """
        snapshot: StockSnapshot = {}
        for product_id in sorted(set(product_ids), key=str):
            snapshot[product_id] = tuple(self.sellable(product_id, today, lock=lock))
        return snapshot

    def available_quantity(self, product_id: UUID, today: date) -> int:
        stmt = select(func.coalesce(func.sum(StockBatch.quantity), 0)).where(
            StockBatch.product_id == product_id,
            StockBatch.quantity > 0,
            StockBatch.expiry_date >= today,
        )
        return int(self.session.execute(stmt).scalar_one())

    def available_by_product(self, today: date) -> dict[UUID, int]:
        """Sellable quantity for every product that has any."""
        stmt = (
            select(StockBatch.product_id, func.sum(StockBatch.quantity))
            .where(StockBatch.quantity > 0, StockBatch.expiry_date >= today)
            .group_by(StockBatch.product_id)
        )
        return {pid: int(qty) for pid, qty in self.session.execute(stmt)}

    def with_stock_expiring_before(self, cutoff: date) -> list[BatchSnapshot]:
        """Batches with stock whose expiry_date < cutoff (includes expired ones)."""
        stmt = (
            select(StockBatch)
            .where(StockBatch.quantity > 0, StockBatch.expiry_date < cutoff)
            .order_by(*_fefo_order())
        )
        return [_to_snapshot(r) for r in self._rows(stmt, lock=False)]

    def cost_prices(self, batch_ids: Iterable[UUID]) -> dict[UUID, Decimal]:
        ids = list(set(batch_ids))
        if not ids:
            return {}
        stmt = select(StockBatch.id, StockBatch.cost_price).where(StockBatch.id.in_(ids))
        return {bid: cost for bid, cost in self.session.execute(stmt)}
