"""
Module: inventory_kernel.models.product
Responsibility: ORM persistence for sellable products.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Barcodes are unique when present (UNIQUE constraint).
    - min_stock >= 0 (CHECK constraint).
    - Products are never hard-deleted; is_active=False retires them.
      Deletion is blocked by the ORM immutability listeners because sale
      items and batches reference products forever.

Failure modes:
    - IntegrityError on duplicate barcode or negative min_stock.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.models.rack import Rack

DEFAULT_MIN_STOCK = 10


class Product(Base):
    """
    A sellable product (medicine, consumable, ...).

    Stock is not stored here: it is the sum of the product's batches.
    """

    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("min_stock >= 0", name="ck_product_min_stock_non_negative"),
        Index("idx_product_name", "name"),
        Index("idx_product_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    barcode: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # e.g. "500mg"
    strength: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # e.g. "tablet", "syrup"
    dosage_form: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Salt / active ingredient formula
    formula: Mapped[str | None] = mapped_column(String(500), nullable=True)

    manufacturer: Mapped[str | None] = mapped_column(String(200), nullable=True)

    min_stock: Mapped[int] = mapped_column(nullable=False, default=DEFAULT_MIN_STOCK)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    rack_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("racks.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    rack: Mapped["Rack | None"] = relationship("Rack")

    def __repr__(self) -> str:
        return f"<Product {self.name} active={self.is_active}>"
