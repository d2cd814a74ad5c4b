"""
Module: inventory_kernel.models.stock_adjustment
Responsibility: Append-only audit trail for every batch quantity change that
    is not a sale deduction (return credits and manual corrections).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - delta != 0 (CHECK).
    - Rows are immutable after creation.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class AdjustmentKind(str, Enum):
    CORRECTION = "correction"
    RETURN_CREDIT = "return_credit"


class StockAdjustment(Base):
    """One non-sale change to a batch's quantity."""

    __tablename__ = "stock_adjustments"

    __table_args__ = (
        CheckConstraint("delta <> 0", name="ck_adjustment_delta_non_zero"),
        Index("idx_adjustment_batch", "batch_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_batches.id"),
        nullable=False,
    )

    # Signed change applied to quantity
    delta: Mapped[int] = mapped_column(nullable=False)

    kind: Mapped[str] = mapped_column(String(32), nullable=False)

    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    operator_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Return that caused a credit, if any
    reference_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
