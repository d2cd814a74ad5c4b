"""
inventory_engines.fefo -- First-Expiry-First-Out batch allocation.

Responsibility:
    Turn "N units of product P" into an ordered list of batch deductions,
    taking from the batch that expires first, and fail cleanly when the
    sellable stock is short.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Operates on a
    StockSnapshot taken by the batch ledger inside the caller's
    transaction; never touches the database and never mutates its input.

Invariants enforced:
    - Order: batches are consumed by (expiry_date, purchase_date, batch_id).
    - Minimality: each batch contributes min(remaining, still_needed); no
      zero-quantity deductions; the plan's total equals the request.
    - No overdraft: a plan never takes more from a batch than the snapshot
      shows.  Expired and empty batches are never offered.
    - Determinism: identical snapshots and requests give identical plans.
      Allocating a then b (via apply_plan) consumes the same per-batch
      totals as allocating a + b at once.

Failure modes:
    - InsufficientStockError(product_id, requested, available) when the
      sellable total is short.  Nothing is allocated.
    - ValidationError for a non-positive or non-integer request.
    - LedgerError from apply_plan if a plan does not fit its snapshot.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from uuid import UUID

from inventory_engines.expiry import is_sellable
from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.deduction import BatchDeduction
from inventory_kernel.domain.dtos import DeductionPlan
from inventory_kernel.domain.snapshots import BatchSnapshot, StockSnapshot
from inventory_kernel.domain.values import require_positive_int
from inventory_kernel.exceptions import InsufficientStockError, LedgerError


def fefo_sort_key(batch: BatchSnapshot) -> tuple[date, date, str]:
    return batch.fefo_key


def sellable_batches(batches: Iterable[BatchSnapshot], today: date) -> tuple[BatchSnapshot, ...]:
    """Non-expired batches with stock, in FEFO order."""
    return tuple(sorted((b for b in batches if is_sellable(b, today)), key=fefo_sort_key))


def available_quantity(batches: Iterable[BatchSnapshot], today: date) -> int:
    return sum(b.quantity for b in batches if is_sellable(b, today))


@traced_engine("fefo_allocate", "1.0", fingerprint_fields=("product_id", "requested_qty", "today"))
def allocate(
    product_id: UUID,
    requested_qty: int,
    snapshot: Mapping[UUID, tuple[BatchSnapshot, ...]],
    today: date,
    product_name: str | None = None,
) -> DeductionPlan:
    """
    Allocate ``requested_qty`` units of ``product_id`` from ``snapshot``.

    Example:
        B1(qty 5, exp 2025-01-10), B2(qty 10, exp 2025-02-01), request 8
        -> [B1:5, B2:3]
    """
    require_positive_int(requested_qty, "quantity")
    candidates = sellable_batches(snapshot.get(product_id, ()), today)
    available = sum(b.quantity for b in candidates)
    if available < requested_qty:
        raise InsufficientStockError(
            product_id=str(product_id),
            requested=requested_qty,
            available=available,
            product_name=product_name,
        )

    deductions: list[BatchDeduction] = []
    needed = requested_qty
    for batch in candidates:
        if needed == 0:
            break
        take = min(batch.quantity, needed)
        deductions.append(
            BatchDeduction(
                batch_id=batch.batch_id,
                batch_number=batch.batch_number,
                quantity=take,
                expiry_date=batch.expiry_date,
            )
        )
        needed -= take

    return DeductionPlan(
        product_id=product_id,
        requested=requested_qty,
        deductions=tuple(deductions),
    )


def apply_plan(
    snapshot: Mapping[UUID, tuple[BatchSnapshot, ...]],
    plan: DeductionPlan,
) -> StockSnapshot:
    """
    Return a new snapshot with ``plan`` subtracted.

    Used to allocate several cart lines of the same product in sequence
    against one snapshot.  The input snapshot is left untouched.
    """
    batches = list(snapshot.get(plan.product_id, ()))
    index = {b.batch_id: i for i, b in enumerate(batches)}
    for deduction in plan.deductions:
        i = index.get(deduction.batch_id)
        if i is None:
            raise LedgerError(
                f"Deduction references batch {deduction.batch_id} "
                f"not present in the snapshot for product {plan.product_id}"
            )
        remaining = batches[i].quantity - deduction.quantity
        if remaining < 0:
            raise LedgerError(
                f"Deduction of {deduction.quantity} exceeds the "
                f"{batches[i].quantity} units of batch {deduction.batch_id}"
            )
        batches[i] = batches[i].with_quantity(remaining)

    updated: StockSnapshot = dict(snapshot)
    updated[plan.product_id] = tuple(batches)
    return updated
