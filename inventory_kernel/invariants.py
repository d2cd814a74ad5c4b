"""
Ledger Invariants Contract.

These invariants are structural law. They are hardcoded in the batch
ledger, the database check constraints and the ORM immutability
listeners. No LedgerConfig value may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across BatchLedger, SequenceService, the
models' check constraints and inventory_kernel.db.immutability.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """0 <= StockBatch.quantity <= original_quantity at all times. Enforced by
    conditional UPDATE statements in BatchLedger and DB check constraints."""

    NO_OVERDRAFT = "no_overdraft"
    """Committed deductions against a batch never exceed what it held.
    Enforced by row locks during allocation plus conditional decrements."""

    SINGLE_MUTATOR = "single_mutator"
    """Only BatchLedger changes StockBatch.quantity, and only via SQL.
    Enforced by the immutability listeners, which reject ORM quantity edits."""

    SALE_ATOMICITY = "sale_atomicity"
    """A sale row and all of its batch deductions commit together or not at
    all. Enforced by the SaleService unit of work."""

    RETURN_CEILING = "return_ceiling"
    """Returned quantity per sale item never exceeds the sold quantity.
    Enforced by ReturnService under a lock on the sale row."""

    IMMUTABILITY = "immutability"
    """Sales, sale items, returns, return items and stock adjustments are
    append-only. Enforced by ORM listeners."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """Receipt numbers come from a locked counter row, never max()+1.
    Enforced by SequenceService."""


ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# Pure engine modules may not import these packages.
# Enforced by tests/architecture/test_engine_purity.py.
FORBIDDEN_ENGINE_IMPORTS: tuple[str, ...] = (
    "sqlalchemy",
    "inventory_kernel.db",
    "inventory_kernel.models",
    "inventory_kernel.services",
    "inventory_kernel.selectors",
    "inventory_services",
)
