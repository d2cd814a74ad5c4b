"""
Module: inventory_kernel.selectors.sale_selector
Responsibility: Read access to sales, sale items and the quantities already
    returned against them.
Architecture position: Kernel > Selectors.

Locking:
    get(..., lock=True) locks the sale row FOR UPDATE.  Every return against
    a sale takes this lock before reading returned quantities, which is what
    serializes concurrent returns of the same item.
"""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.models.sale import Sale, SaleItem
from inventory_kernel.models.sales_return import ReturnItem
from inventory_kernel.selectors.base import BaseSelector


class SaleSelector(BaseSelector[Sale]):
    """Query sales and returns."""

    def get(self, sale_id: UUID, lock: bool = False) -> Sale | None:
        stmt = select(Sale).where(Sale.id == sale_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_receipt(self, receipt_code: str) -> Sale | None:
        stmt = select(Sale).where(Sale.receipt_code == receipt_code)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_item(self, sale_item_id: UUID) -> SaleItem | None:
        return self.session.get(SaleItem, sale_item_id)

    def items(self, sale_id: UUID) -> list[SaleItem]:
        stmt = select(SaleItem).where(SaleItem.sale_id == sale_id).order_by(SaleItem.line_no)
        return list(self.session.execute(stmt).scalars())

    def returned_quantities(self, sale_item_ids: Iterable[UUID]) -> dict[UUID, int]:
        """Units already returned per sale item (items with none are omitted)."""
        ids = list(set(sale_item_ids))
        if not ids:
            return {}
        stmt = (
            select(ReturnItem.sale_item_id, func.sum(ReturnItem.quantity))
            .where(ReturnItem.sale_item_id.in_(ids))
            .group_by(ReturnItem.sale_item_id)
        )
        return {item_id: int(qty) for item_id, qty in self.session.execute(stmt)}

    def returned_by_batch(self, sale_item_id: UUID) -> dict[UUID, int]:
        """Units of one sale item already returned per originating batch."""
        stmt = (
            select(ReturnItem.batch_id, func.sum(ReturnItem.quantity))
            .where(ReturnItem.sale_item_id == sale_item_id, ReturnItem.batch_id.is_not(None))
            .group_by(ReturnItem.batch_id)
        )
        return {batch_id: int(qty) for batch_id, qty in self.session.execute(stmt)}

    def receipt_codes_with_prefix(self, prefix: str) -> list[str]:
        stmt = select(Sale.receipt_code).where(Sale.receipt_code.startswith(prefix, autoescape=True))
        return list(self.session.execute(stmt).scalars())

    def sales_between(self, start: datetime, end: datetime) -> list[Sale]:
        """Sales with start <= created_at < end, oldest first."""
        stmt = (
            select(Sale)
            .where(Sale.created_at >= start, Sale.created_at < end)
            .order_by(Sale.created_at, Sale.receipt_code)
        )
        return list(self.session.execute(stmt).scalars())

    def items_for_sales(self, sale_ids: Iterable[UUID]) -> list[SaleItem]:
        ids = list(set(sale_ids))
        if not ids:
            return []
        stmt = select(SaleItem).where(SaleItem.sale_id.in_(ids)).order_by(SaleItem.sale_id, SaleItem.line_no)
        return list(self.session.execute(stmt).scalars())
