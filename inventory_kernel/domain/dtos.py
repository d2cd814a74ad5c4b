"""
Data transfer objects crossing the service boundary.

Inputs (CartLine, Discount, ReturnLine) are validated by the engines and
services that consume them; outputs (receipts, reports) are frozen and carry
no ORM references, so callers may keep them after the session closes.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from inventory_kernel.domain.deduction import BatchDeduction
from inventory_kernel.domain.snapshots import BatchSnapshot


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CartLine:
    """One line of a cart: a product, how many, and the price charged per unit."""

    product_id: UUID
    quantity: int
    unit_price: Decimal


class DiscountKind(str, Enum):
    PERCENT = "percent"
    AMOUNT = "amount"


@dataclass(frozen=True)
class Discount:
    """Cart-level discount: a percentage (0-100) or a fixed amount."""

    kind: DiscountKind
    value: Decimal

    @classmethod
    def percent(cls, value: Decimal | int | str) -> "Discount":
        return cls(DiscountKind.PERCENT, value)  # type: ignore[arg-type]

    @classmethod
    def amount(cls, value: Decimal | int | str) -> "Discount":
        return cls(DiscountKind.AMOUNT, value)  # type: ignore[arg-type]


@dataclass(frozen=True)
class ReturnLine:
    """
    Quantity of one sale item being returned.

    ``batch_id`` optionally names the batch the goods came from; it must be
    one of the item's recorded deductions.
    """

    sale_item_id: UUID
    quantity: int
    batch_id: UUID | None = None


# ---------------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DeductionPlan:
    """Ordered batch deductions satisfying one request for one product."""

    product_id: UUID
    requested: int
    deductions: tuple[BatchDeduction, ...]

    @property
    def total_quantity(self) -> int:
        return sum(d.quantity for d in self.deductions)


# ---------------------------------------------------------------------------
# Receipts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SaleReceiptLine:
    sale_item_id: UUID
    line_no: int
    product_id: UUID
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    deductions: tuple[BatchDeduction, ...]


@dataclass(frozen=True)
class SaleReceipt:
    """Result of a committed sale."""

    sale_id: UUID
    receipt_code: str
    created_at: datetime
    payment_method: str
    operator_id: str
    subtotal: Decimal
    discount_amount: Decimal
    total: Decimal
    lines: tuple[SaleReceiptLine, ...]


@dataclass(frozen=True)
class ReturnReceiptItem:
    return_item_id: UUID
    sale_item_id: UUID
    product_id: UUID
    batch_id: UUID | None
    quantity: int


@dataclass(frozen=True)
class ReturnReceipt:
    """Result of a committed return."""

    return_id: UUID
    sale_id: UUID
    receipt_code: str
    created_at: datetime
    reason: str
    operator_id: str
    disposition: str
    items: tuple[ReturnReceiptItem, ...]

    @property
    def total_quantity(self) -> int:
        return sum(i.quantity for i in self.items)


@dataclass(frozen=True)
class ReturnableItem:
    sale_item_id: UUID
    product_id: UUID
    product_name: str
    sold: int
    returned: int

    @property
    def remaining(self) -> int:
        return self.sold - self.returned


@dataclass(frozen=True)
class ReturnEligibility:
    """Whether a sale can still be returned against, and how much of each item."""

    sale_id: UUID
    receipt_code: str
    sold_at: datetime
    deadline: datetime
    eligible: bool
    items: tuple[ReturnableItem, ...]


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpiryAlerts:
    """Batches with stock that are expired or expire within the horizon."""

    as_of: date
    horizon_days: int
    expiring_soon: tuple[BatchSnapshot, ...]
    expired: tuple[BatchSnapshot, ...]


@dataclass(frozen=True)
class StockLevel:
    product_id: UUID
    product_name: str
    available: int
    min_stock: int


@dataclass(frozen=True)
class ItemProfit:
    sale_item_id: UUID
    product_id: UUID
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal
    profit: Decimal


@dataclass(frozen=True)
class SaleProfit:
    sale_id: UUID
    receipt_code: str
    strategy: str
    items: tuple[ItemProfit, ...]
    profit: Decimal


@dataclass(frozen=True)
class SalesSummary:
    """Aggregate figures for sales created in ``[start, end)``."""

    start: datetime
    end: datetime
    transactions: int
    revenue: Decimal
    average_ticket: Decimal
    items_sold: int
    discount_total: Decimal
    profit: Decimal


@dataclass(frozen=True)
class DashboardStats:
    today_sales: Decimal
    today_transactions: int
    total_products: int
    low_stock_count: int
    out_of_stock_count: int
    expiring_count: int
    expired_count: int
