"""
inventory_engines.returns -- Return window and quantity reconciliation.

Responsibility:
    Pure rules behind customer returns: is the sale still inside its return
    window, how much of each item remains returnable, and which batches a
    returned quantity is credited back to.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The return service feeds
    it the sale, the quantities already returned and "now".

Rules:
    - Eligible iff now - sold_at <= window (inclusive at the boundary).
    - remaining = sold - already_returned, per sale item.
    - Lines for the same sale item in one request are summed before the
      remaining check.
    - Credits go to the item's deductions in plan (FEFO) order, each
      bounded by what that deduction has not already had returned.

Failure modes:
    - ValidationError for non-positive quantities or a batch that is not
      one of the item's deductions.
    - ReturnQuantityExceededError when a request exceeds what remains.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from inventory_kernel.domain.deduction import BatchDeduction
from inventory_kernel.domain.dtos import ReturnLine
from inventory_kernel.domain.values import require_positive_int
from inventory_kernel.exceptions import ReturnQuantityExceededError, ValidationError

DEFAULT_RETURN_WINDOW_HOURS = 48


def return_deadline(sold_at: datetime, window_hours: int) -> datetime:
    return sold_at + timedelta(hours=window_hours)


def within_return_window(sold_at: datetime, now: datetime, window_hours: int) -> bool:
    return now - sold_at <= timedelta(hours=window_hours)


@dataclass(frozen=True)
class ItemReturnRequest:
    """All lines of one request that target the same sale item."""

    sale_item_id: UUID
    lines: tuple[ReturnLine, ...]

    @property
    def quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


def group_return_lines(lines: Sequence[ReturnLine]) -> tuple[ItemReturnRequest, ...]:
    """Validate line quantities and group lines by sale item, first-seen order."""
    if not lines:
        raise ValidationError("Return has no lines", field="lines")
    grouped: dict[UUID, list[ReturnLine]] = {}
    for i, line in enumerate(lines, start=1):
        require_positive_int(line.quantity, f"lines[{i}].quantity")
        grouped.setdefault(line.sale_item_id, []).append(line)
    return tuple(
        ItemReturnRequest(sale_item_id=item_id, lines=tuple(item_lines))
        for item_id, item_lines in grouped.items()
    )


def check_remaining(sale_item_id: UUID, requested: int, sold: int, returned: int) -> int:
    """Return the remaining quantity after this request, or raise."""
    remaining = sold - returned
    if requested > remaining:
        raise ReturnQuantityExceededError(
            sale_item_id=str(sale_item_id),
            requested=requested,
            remaining=remaining,
        )
    return remaining - requested


def plan_credits(
    sale_item_id: UUID,
    deductions: Sequence[BatchDeduction],
    returned_by_batch: Mapping[UUID, int],
    quantity: int,
    batch_id: UUID | None = None,
) -> list[tuple[UUID, int]]:
    """
    Choose batches to credit ``quantity`` returned units to.

    Args:
        deductions: The sale item's deductions, in plan order.
        returned_by_batch: Units of this item already returned per batch.
        batch_id: Restrict the credit to this batch (must be a deduction).

    Returns:
        ``[(batch_id, units), ...]`` in plan order; units sum to ``quantity``.
    """
    candidates: Iterable[BatchDeduction] = deductions
    if batch_id is not None:
        candidates = [d for d in deductions if d.batch_id == batch_id]
        if not candidates:
            raise ValidationError(
                f"Batch {batch_id} was not part of sale item {sale_item_id}",
                field="batch_id",
                value=str(batch_id),
            )

    plan: list[tuple[UUID, int]] = []
    needed = quantity
    capacity_total = 0
    for deduction in candidates:
        capacity = deduction.quantity - returned_by_batch.get(deduction.batch_id, 0)
        if capacity <= 0:
            continue
        capacity_total += capacity
        if needed == 0:
            continue
        take = min(capacity, needed)
        plan.append((deduction.batch_id, take))
        needed -= take

    if needed > 0:
        raise ReturnQuantityExceededError(
            sale_item_id=str(sale_item_id),
            requested=quantity,
            remaining=capacity_total,
        )
    return plan

