"""
Module: inventory_kernel.models.sale
Responsibility: ORM persistence for sales and their line items -- the
    record of what left the shelf, at what price, and from which batches.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - receipt_code is unique (UNIQUE constraint); it is allocated from a
      locked counter row by SequenceService, never computed as max()+1.
    - Money columns are non-negative and total <= subtotal (CHECK).
    - Each item's deductions sum to its quantity (checked by SaleService
      before flush; the deduction column validates every record).
    - Sales and sale items are immutable after creation (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate receipt_code or (sale_id, line_no).
    - InvalidDeductionRecordError if stored deductions fail validation on load.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString
from inventory_kernel.db.types import DeductionListType
from inventory_kernel.domain.deduction import BatchDeduction


class Sale(Base):
    """A committed sale.  One receipt."""

    __tablename__ = "sales"

    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_sale_subtotal_non_negative"),
        CheckConstraint("discount_amount >= 0", name="ck_sale_discount_non_negative"),
        CheckConstraint("total >= 0", name="ck_sale_total_non_negative"),
        CheckConstraint("total <= subtotal", name="ck_sale_total_not_above_subtotal"),
        # Query: sales in a time range (reports, dashboard)
        Index("idx_sale_created_at", "created_at"),
    )

    receipt_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)

    # Opaque identity of the cashier
    operator_id: Mapped[str] = mapped_column(String(100), nullable=False)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    items: Mapped[list["SaleItem"]] = relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.line_no",
    )

    def __repr__(self) -> str:
        return f"<Sale {self.receipt_code} total={self.total}>"


class SaleItem(Base):
    """One cart line of a sale, with the batches it was taken from."""

    __tablename__ = "sale_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_sale_item_price_non_negative"),
        UniqueConstraint("sale_id", "line_no", name="uq_sale_item_line"),
        Index("idx_sale_item_product", "product_id"),
    )

    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales.id"),
        nullable=False,
    )

    # Position in the cart, starting at 1
    line_no: Mapped[int] = mapped_column(nullable=False)

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    # Name at the time of sale; products can be renamed later
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # FEFO order, as allocated
    deductions: Mapped[list[BatchDeduction]] = mapped_column(
        DeductionListType(),
        nullable=False,
    )

    sale: Mapped["Sale"] = relationship("Sale", back_populates="items")

    def __repr__(self) -> str:
        return f"<SaleItem {self.line_no} {self.product_name} x{self.quantity}>"
