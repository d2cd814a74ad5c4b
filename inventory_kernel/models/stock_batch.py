"""
Module: inventory_kernel.models.stock_batch
Responsibility: ORM persistence for stock batches -- discrete, dated lots of
    one product received from a supplier.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - 0 <= quantity <= original_quantity (CHECK constraints).  quantity is the
      remaining stock; original_quantity is what was received and is the
      ceiling for any credit back into the batch.
    - original_quantity > 0, prices >= 0, expiry_date >= purchase_date.
    - Structural fields are immutable after creation and quantity is never
      written through the ORM.  BatchLedger changes quantity with conditional
      UPDATE statements; db/immutability.py rejects anything else.
    - Batches are never deleted.

Failure modes:
    - IntegrityError when a CHECK constraint fails.
    - ImmutabilityViolationError on ORM update or delete.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.models.product import Product


class StockBatch(Base):
    """One received lot of a product."""

    __tablename__ = "stock_batches"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_batch_quantity_non_negative"),
        CheckConstraint("quantity <= original_quantity", name="ck_batch_quantity_ceiling"),
        CheckConstraint("original_quantity > 0", name="ck_batch_original_positive"),
        CheckConstraint("cost_price >= 0", name="ck_batch_cost_non_negative"),
        CheckConstraint("selling_price >= 0", name="ck_batch_price_non_negative"),
        CheckConstraint("expiry_date >= purchase_date", name="ck_batch_expiry_after_purchase"),
        # Query: sellable batches of a product in FEFO order
        Index("idx_batch_product_expiry", "product_id", "expiry_date"),
        # Query: expiry alerts across all products
        Index("idx_batch_expiry", "expiry_date"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    batch_number: Mapped[str] = mapped_column(String(64), nullable=False)

    # Remaining units.  Written only by BatchLedger.
    quantity: Mapped[int] = mapped_column(nullable=False)

    # Units received.  Immutable.
    original_quantity: Mapped[int] = mapped_column(nullable=False)

    cost_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    expiry_date: Mapped[date] = mapped_column(Date, nullable=False)

    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)

    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    product: Mapped["Product"] = relationship("Product")

    def __repr__(self) -> str:
        return (
            f"<StockBatch {self.batch_number} qty={self.quantity}/"
            f"{self.original_quantity} exp={self.expiry_date}>"
        )
