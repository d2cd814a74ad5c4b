"""
Read-side value objects for batches and their expiry state.

BatchSnapshot is what the allocator sees: an immutable copy of a batch row
taken inside the sale's transaction.  Engines work on snapshots only, never
on ORM instances.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ExpiryStatus(str, Enum):
    """Expiry classification of a batch relative to a reference date."""

    EXPIRED = "expired"
    EXPIRING_SOON = "expiring_soon"
    ACTIVE = "active"


@dataclass(frozen=True)
class BatchSnapshot:
    """Immutable view of one stock batch."""

    batch_id: UUID
    product_id: UUID
    batch_number: str
    quantity: int
    original_quantity: int
    expiry_date: date
    purchase_date: date
    cost_price: Decimal
    selling_price: Decimal

    @property
    def fefo_key(self) -> tuple[date, date, str]:
        """Sort key: earliest expiry first, then oldest purchase, then id."""
        return (self.expiry_date, self.purchase_date, str(self.batch_id))

    def with_quantity(self, quantity: int) -> "BatchSnapshot":
        return replace(self, quantity=quantity)


# product_id -> FEFO-ordered batches
StockSnapshot = dict[UUID, tuple[BatchSnapshot, ...]]
