"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A point-of-sale terminal has to turn every rejection into an actionable
message ("only 3 left", "return window closed on ...") without re-querying
the database.  That only works if:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (product, available, remaining, ...)

Example - WRONG way:
    try:
        sales.finalize_sale(lines, "cash", operator_id)
    except Exception as e:
        if "Insufficient" in str(e):
            ...

Example - RIGHT way:
    try:
        sales.finalize_sale(lines, "cash", operator_id)
    except InsufficientStockError as e:
        show(f"Only {e.available} of {e.product_name} left")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryError (base)
    |
    +-- ValidationError
    |   +-- InvalidDeductionRecordError
    |
    +-- InsufficientStockError
    |
    +-- ReturnError
    |   +-- ReturnWindowExpiredError
    |   +-- ReturnQuantityExceededError
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- BatchNotFoundError
    |   +-- SaleNotFoundError
    |   +-- SaleItemNotFoundError
    |
    +-- ConcurrencyError
    |   +-- ConcurrencyConflictError
    |   +-- UnitOfWorkTimeoutError
    |
    +-- LedgerError
    |   +-- BatchOverCreditError
    |   +-- InvalidSaleTransitionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- PersistenceError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|---------------------------------------
Validation   | VALIDATION_ERROR          | Bad input (cart, return, purchase)
             | INVALID_DEDUCTION_RECORD  | Stored deduction fails schema check
Stock        | INSUFFICIENT_STOCK        | Not enough sellable stock for a line
Return       | RETURN_WINDOW_EXPIRED     | Sale older than the return window
             | RETURN_QUANTITY_EXCEEDED  | More than the returnable remainder
Lookup       | PRODUCT_NOT_FOUND         | Unknown product id
             | BATCH_NOT_FOUND           | Unknown batch id
             | SALE_NOT_FOUND            | Unknown sale id / receipt
             | SALE_ITEM_NOT_FOUND       | Sale item not part of the sale
Concurrency  | CONCURRENCY_CONFLICT      | Conditional decrement lost a race
             | UNIT_OF_WORK_TIMEOUT      | Unit of work exceeded its time budget
Ledger       | BATCH_OVER_CREDIT         | Credit would exceed original quantity
             | INVALID_SALE_TRANSITION   | Sale state machine misuse
Immutability | IMMUTABILITY_VIOLATION    | Modifying an append-only record
Persistence  | PERSISTENCE_ERROR         | Database failure (non-retryable)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Domain exceptions inherit from Exception, not ValueError/KeyError, so
   they are catchable as a group without mixing in programming errors.

2. ``code`` is a class attribute: static per type, usable without an
   instance for API documentation.

3. ConcurrencyError subclasses are the only ones a service may retry.
"""

from __future__ import annotations

from datetime import datetime


class InventoryError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "INVENTORY_ERROR"


# Validation


class ValidationError(InventoryError):
    """Caller supplied invalid input. Never retried."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, value: object = None):
        self.field = field
        self.value = value
        super().__init__(message)


class InvalidDeductionRecordError(ValidationError):
    """A persisted batch deduction does not match its versioned schema."""

    code: str = "INVALID_DEDUCTION_RECORD"

    def __init__(self, reason: str, record: object = None):
        self.reason = reason
        super().__init__(
            f"Invalid batch deduction record: {reason}",
            field="deductions",
            value=record,
        )


# Stock


class InsufficientStockError(InventoryError):
    """
    Not enough sellable (non-expired, positive) stock for a sale line.

    Carries everything a terminal needs to render the rejection.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        requested: int,
        available: int,
        product_name: str | None = None,
    ):
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available
        label = product_name or product_id
        super().__init__(
            f"Insufficient stock for {label}. "
            f"Available: {available}, Required: {requested}"
        )


# Returns


class ReturnError(InventoryError):
    """Base exception for return-related errors."""

    code: str = "RETURN_ERROR"


class ReturnWindowExpiredError(ReturnError):
    """The sale is older than the return window; nothing may be returned."""

    code: str = "RETURN_WINDOW_EXPIRED"

    def __init__(
        self,
        sale_id: str,
        sold_at: datetime,
        attempted_at: datetime,
        window_hours: int,
    ):
        self.sale_id = sale_id
        self.sold_at = sold_at
        self.attempted_at = attempted_at
        self.window_hours = window_hours
        super().__init__(
            f"Return window of {window_hours}h expired for sale {sale_id} "
            f"(sold {sold_at.isoformat()}, attempted {attempted_at.isoformat()})"
        )


class ReturnQuantityExceededError(ReturnError):
    """Requested return quantity exceeds what remains returnable."""

    code: str = "RETURN_QUANTITY_EXCEEDED"

    def __init__(self, sale_item_id: str, requested: int, remaining: int):
        self.sale_item_id = sale_item_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot return {requested} of sale item {sale_item_id}: "
            f"only {remaining} remaining"
        )


# Lookups


class NotFoundError(InventoryError):
    """Base exception for lookup misses."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class BatchNotFoundError(NotFoundError):
    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Stock batch not found: {batch_id}")


class SaleNotFoundError(NotFoundError):
    code: str = "SALE_NOT_FOUND"

    def __init__(self, sale_ref: str):
        self.sale_ref = sale_ref
        super().__init__(f"Sale not found: {sale_ref}")


class SaleItemNotFoundError(NotFoundError):
    code: str = "SALE_ITEM_NOT_FOUND"

    def __init__(self, sale_item_id: str, sale_id: str):
        self.sale_item_id = sale_item_id
        self.sale_id = sale_id
        super().__init__(f"Sale item {sale_item_id} is not part of sale {sale_id}")


# Concurrency


class ConcurrencyError(InventoryError):
    """Base exception for transient, concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrencyConflictError(ConcurrencyError):
    """
    A conditional write lost a race (or the database reported a deadlock
    or serialization failure).  Retryable with a fresh snapshot.
    """

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, detail: str = ""):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.detail = detail
        message = f"Concurrent modification of {entity_type} {entity_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnitOfWorkTimeoutError(ConcurrencyError):
    """A unit of work did not finish within its time budget and was rolled back."""

    code: str = "UNIT_OF_WORK_TIMEOUT"

    def __init__(self, operation: str, elapsed_seconds: float, limit_seconds: float):
        self.operation = operation
        self.elapsed_seconds = elapsed_seconds
        self.limit_seconds = limit_seconds
        super().__init__(
            f"{operation} exceeded {limit_seconds:.1f}s "
            f"(elapsed {elapsed_seconds:.2f}s) and was rolled back"
        )


# Ledger


class LedgerError(InventoryError):
    """Base exception for ledger rule violations."""

    code: str = "LEDGER_ERROR"


class BatchOverCreditError(LedgerError):
    """A credit or correction would push a batch outside [0, original_quantity]."""

    code: str = "BATCH_OVER_CREDIT"

    def __init__(self, batch_id: str, delta: int, quantity: int, original_quantity: int):
        self.batch_id = batch_id
        self.delta = delta
        self.quantity = quantity
        self.original_quantity = original_quantity
        super().__init__(
            f"Adjusting batch {batch_id} by {delta} would leave "
            f"{quantity + delta} (allowed 0..{original_quantity})"
        )


class InvalidSaleTransitionError(LedgerError):
    code: str = "INVALID_SALE_TRANSITION"

    def __init__(self, from_stage: str, to_stage: str):
        self.from_stage = from_stage
        self.to_stage = to_stage
        super().__init__(f"Illegal sale transition {from_stage} -> {to_stage}")


# Immutability


class ImmutabilityError(InventoryError):
    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an append-only record.

    Sales, sale items, returns, return items and stock adjustments are
    immutable after creation; batch structure is frozen at receipt.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Persistence


class PersistenceError(InventoryError):
    """Database failure that is not a concurrency conflict. Not retried."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")

