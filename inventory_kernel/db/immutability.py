"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

A sale that can be edited after the fact is not a record of what happened.
Receipts, returns and stock adjustments are the audit trail of the till;
once written they may only be followed by NEW rows (a return, a correction),
never rewritten.

Stock batches are a special case: their remaining quantity must change, but
only through the batch ledger's conditional UPDATE statements, which never
pass through the ORM unit of work.  Any ORM flush that touches a batch is
therefore a bypass of the ledger and is rejected here.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update event] --> _reject_*_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _reject_delete() ----> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

SQLAlchemy fires before_update for every instance marked dirty, including
ones whose only "change" is a relationship collection append.  The checks
look at column attribute history so that those no-op flushes pass.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Update                              | Delete
------------------|-------------------------------------|--------
Sale              | never                               | never
SaleItem          | never                               | never
SalesReturn       | never                               | never
ReturnItem        | never                               | never
StockAdjustment   | never                               | never
StockBatch        | never through the ORM (ledger only) | never
Product           | allowed (display fields, is_active) | never

===============================================================================
USAGE
===============================================================================

Registered by init_engine_from_url().  Tests that need to bypass the guard
(never production code) may call unregister_immutability_listeners().
"""

from sqlalchemy import event, inspect

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _changed_columns(target) -> list[str]:
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


def _violation(target, operation: str, reason: str) -> ImmutabilityViolationError:
    entity_type = type(target).__name__
    entity_id = str(getattr(target, "id", "unknown"))
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": entity_id,
            "operation": operation,
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(entity_type, entity_id, reason)


def _reject_record_update(mapper, connection, target):
    """Append-only records: any column change is a violation."""
    changed = _changed_columns(target)
    if changed:
        raise _violation(
            target,
            "UPDATE",
            f"{type(target).__name__} is append-only (attempted to change {', '.join(changed)})",
        )


def _reject_batch_update(mapper, connection, target):
    """Stock batches: structure is frozen, quantity belongs to the ledger."""
    changed = _changed_columns(target)
    if not changed:
        return
    if "quantity" in changed:
        reason = "quantity may only change through BatchLedger"
    else:
        reason = f"batch fields are immutable after receipt ({', '.join(changed)})"
    raise _violation(target, "UPDATE", reason)


def _reject_delete(mapper, connection, target):
    raise _violation(target, "DELETE", f"{type(target).__name__} rows are never deleted")


def _listener_table():
    from inventory_kernel.models import (
        Product,
        ReturnItem,
        Sale,
        SaleItem,
        SalesReturn,
        StockAdjustment,
        StockBatch,
    )

    table = []
    for model in (Sale, SaleItem, SalesReturn, ReturnItem, StockAdjustment):
        table.append((model, "before_update", _reject_record_update))
        table.append((model, "before_delete", _reject_delete))
    table.append((StockBatch, "before_update", _reject_batch_update))
    table.append((StockBatch, "before_delete", _reject_delete))
    table.append((Product, "before_delete", _reject_delete))
    return table


def register_immutability_listeners() -> None:
    """Install the ORM guards.  Safe to call more than once."""
    for model, identifier, fn in _listener_table():
        if not event.contains(model, identifier, fn):
            event.listen(model, identifier, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove the ORM guards.  FOR TESTING ONLY."""
    for model, identifier, fn in _listener_table():
        if event.contains(model, identifier, fn):
            event.remove(model, identifier, fn)
    logger.debug("immutability_listeners_unregistered")
