"""
Module: inventory_kernel.models.sales_return
Responsibility: ORM persistence for customer returns against a prior sale.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - For each sale item, the sum of ReturnItem.quantity never exceeds the
      quantity sold.  ReturnService checks this while holding a lock on the
      sale row; the schema alone cannot express it.
    - quantity > 0 (CHECK); reason is required.
    - Returns and return items are immutable after creation.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString


class SalesReturn(Base):
    """A return transaction.  May cover several items of one sale."""

    __tablename__ = "sales_returns"

    __table_args__ = (
        Index("idx_return_sale", "sale_id"),
        Index("idx_return_created_at", "created_at"),
    )

    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales.id"),
        nullable=False,
    )

    # Copied from the sale so return slips can be printed without a join
    receipt_code: Mapped[str] = mapped_column(String(32), nullable=False)

    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    operator_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # What happened to the returned stock: "none" or "original_batch"
    disposition: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    items: Mapped[list["ReturnItem"]] = relationship(
        "ReturnItem",
        back_populates="sales_return",
    )


class ReturnItem(Base):
    """Quantity of one sale item returned, optionally credited to a batch."""

    __tablename__ = "return_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_return_item_quantity_positive"),
        Index("idx_return_item_sale_item", "sale_item_id"),
    )

    return_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales_returns.id"),
        nullable=False,
    )

    sale_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sale_items.id"),
        nullable=False,
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    # Batch the units came from (explicit or credited); None when unknown
    batch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("stock_batches.id"),
        nullable=True,
    )

    quantity: Mapped[int] = mapped_column(nullable=False)

    sales_return: Mapped["SalesReturn"] = relationship("SalesReturn", back_populates="items")
