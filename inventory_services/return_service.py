"""
ReturnService -- customer returns against a prior sale.

Responsibility:
    Accepts returns inside the configured window, never more than was sold
    per item, records them as SalesReturn + ReturnItem rows and, when the
    disposition is ``original_batch``, credits the units back to the
    batches they were sold from.

Architecture position:
    Services -- stateful orchestration over kernel services.
    Window and quantity rules come from inventory_engines.returns; stock
    credits go through BatchLedger.

Invariants enforced:
    - Return ceiling: per sale item, returned <= sold, checked while holding
      a lock on the sale row, so two concurrent returns of the same item
      cannot both pass.
    - Validate first: every line is checked before anything is written.  A
      bad line rejects the whole return.
    - Window: eligible iff now - sold_at <= return_window_hours.
    - Credits never exceed what each batch gave to the item, nor the
      batch's original quantity.

Failure modes:
    - SaleNotFoundError, SaleItemNotFoundError.
    - ReturnWindowExpiredError for the whole return.
    - ValidationError for non-positive quantities, a missing reason or
      operator, or a batch the item was not sold from.
    - ReturnQuantityExceededError(sale_item_id, requested, remaining).
    - BatchOverCreditError if a credit would overfill a batch.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from inventory_config.schema import RETURN_DISPOSITION_ORIGINAL_BATCH, LedgerConfig
from inventory_engines.returns import (
    ItemReturnRequest,
    check_remaining,
    group_return_lines,
    plan_credits,
    return_deadline,
    within_return_window,
)
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    ReturnableItem,
    ReturnEligibility,
    ReturnLine,
    ReturnReceipt,
    ReturnReceiptItem,
)
from inventory_kernel.exceptions import (
    InventoryError,
    ReturnWindowExpiredError,
    SaleItemNotFoundError,
    SaleNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.sale import Sale, SaleItem
from inventory_kernel.models.sales_return import ReturnItem, SalesReturn
from inventory_kernel.selectors.sale_selector import SaleSelector
from inventory_kernel.services.batch_ledger import BatchLedger
from inventory_services.change_feed import ChangeFeed, StockChanged
from inventory_services.unit_of_work import UnitOfWork

logger = get_logger("services.returns")

# (sale item, [(batch_id or None, units), ...])
_ItemAllocation = tuple[SaleItem, list[tuple[UUID | None, int]]]


def _require_text(value: str, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field, value=value)
    return value.strip()


class ReturnService:
    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock,
        config: LedgerConfig | None = None,
        change_feed: ChangeFeed | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._config = config or LedgerConfig.with_defaults()
        self._feed = change_feed
        self._uow = UnitOfWork(session_factory, self._config, timer=timer)

    @property
    def credits_stock(self) -> bool:
        return self._config.return_disposition == RETURN_DISPOSITION_ORIGINAL_BATCH

    def process_return(
        self,
        sale_id: UUID,
        return_lines: Sequence[ReturnLine],
        reason: str,
        operator_id: str,
    ) -> ReturnReceipt:
        """
        Record a return of ``return_lines`` against ``sale_id``.

        Lines naming the same sale item are summed before the remaining
        check.  Either every line is accepted or none is.
        """
        with LogContext.bind(
            operator_id=operator_id,
            sale_id=str(sale_id),
            correlation_id=str(uuid4()),
        ):
            try:
                reason = _require_text(reason, "reason")
                operator_id = _require_text(operator_id, "operator_id")
                requests = group_return_lines(return_lines)
                receipt = self._uow.run(
                    "process_return",
                    lambda session: self._process(session, sale_id, requests, reason, operator_id),
                )
            except InventoryError as exc:
                logger.info(
                    "return_rejected",
                    extra={"error_code": exc.code, "line_count": len(return_lines or ())},
                )
                raise

            with LogContext.bind(return_id=str(receipt.return_id), receipt_code=receipt.receipt_code):
                logger.info(
                    "return_committed",
                    extra={
                        "quantity": receipt.total_quantity,
                        "item_count": len(receipt.items),
                        "disposition": receipt.disposition,
                    },
                )
            if self._feed is not None and self.credits_stock:
                self._feed.publish(
                    StockChanged.for_products(
                        (item.product_id for item in receipt.items), "process_return"
                    )
                )
            return receipt

    def eligibility(self, sale_id: UUID) -> ReturnEligibility:
        """Return window deadline and remaining returnable quantity per item."""
        return self._eligibility(lambda sales: sales.get(sale_id), str(sale_id))

    def eligibility_by_receipt(self, receipt_code: str) -> ReturnEligibility:
        """Same as ``eligibility`` for the sale printed with ``receipt_code``."""
        code = _require_text(receipt_code, "receipt_code")
        return self._eligibility(lambda sales: sales.get_by_receipt(code), code)

    def _eligibility(
        self, find: Callable[[SaleSelector], Sale | None], sale_ref: str
    ) -> ReturnEligibility:
        session = self._session_factory()
        try:
            sales = SaleSelector(session)
            sale = find(sales)
            if sale is None:
                raise SaleNotFoundError(sale_ref)
            items = sales.items(sale.id)
            returned = sales.returned_quantities(i.id for i in items)
            hours = self._config.return_window_hours
            return ReturnEligibility(
                sale_id=sale.id,
                receipt_code=sale.receipt_code,
                sold_at=sale.created_at,
                deadline=return_deadline(sale.created_at, hours),
                eligible=within_return_window(sale.created_at, self._clock.now_utc(), hours),
                items=tuple(
                    ReturnableItem(
                        sale_item_id=i.id,
                        product_id=i.product_id,
                        product_name=i.product_name,
                        sold=i.quantity,
                        returned=returned.get(i.id, 0),
                    )
                    for i in items
                ),
            )
        finally:
            session.rollback()
            session.close()

    # ------------------------------------------------------------------
    # Transaction body
    # ------------------------------------------------------------------

    def _process(
        self,
        session: Session,
        sale_id: UUID,
        requests: Sequence[ItemReturnRequest],
        reason: str,
        operator_id: str,
    ) -> ReturnReceipt:
        sales = SaleSelector(session)
        sale = sales.get(sale_id, lock=True)
        if sale is None:
            raise SaleNotFoundError(str(sale_id))

        now = self._clock.now_utc()
        hours = self._config.return_window_hours
        if not within_return_window(sale.created_at, now, hours):
            raise ReturnWindowExpiredError(str(sale.id), sale.created_at, now, hours)

        allocations = self._validate(sales, sale, requests)

        disposition = self._config.return_disposition
        sales_return = SalesReturn(
            sale_id=sale.id,
            receipt_code=sale.receipt_code,
            reason=reason,
            operator_id=operator_id,
            disposition=disposition,
            created_at=now,
        )
        session.add(sales_return)
        session.flush()

        rows: list[ReturnItem] = []
        for item, credits in allocations:
            for batch_id, units in credits:
                row = ReturnItem(
                    return_id=sales_return.id,
                    sale_item_id=item.id,
                    product_id=item.product_id,
                    batch_id=batch_id,
                    quantity=units,
                )
                session.add(row)
                rows.append(row)
        session.flush()

        if self.credits_stock:
            ledger = BatchLedger(session, self._clock, self._config.expiry_horizon_days)
            for row in rows:
                ledger.apply_credit(
                    row.batch_id,
                    row.quantity,
                    operator_id=operator_id,
                    reason=f"Return {sale.receipt_code}: {reason}"[:500],
                    reference_id=sales_return.id,
                )

        return ReturnReceipt(
            return_id=sales_return.id,
            sale_id=sale.id,
            receipt_code=sale.receipt_code,
            created_at=now,
            reason=reason,
            operator_id=operator_id,
            disposition=disposition,
            items=tuple(
                ReturnReceiptItem(
                    return_item_id=row.id,
                    sale_item_id=row.sale_item_id,
                    product_id=row.product_id,
                    batch_id=row.batch_id,
                    quantity=row.quantity,
                )
                for row in rows
            ),
        )

    def _validate(
        self,
        sales: SaleSelector,
        sale: Sale,
        requests: Sequence[ItemReturnRequest],
    ) -> list[_ItemAllocation]:
        items = {item.id: item for item in sales.items(sale.id)}
        returned = sales.returned_quantities(items.keys())

        allocations: list[_ItemAllocation] = []
        for request in requests:
            item = items.get(request.sale_item_id)
            if item is None:
                raise SaleItemNotFoundError(str(request.sale_item_id), str(sale.id))
            check_remaining(item.id, request.quantity, item.quantity, returned.get(item.id, 0))

            by_batch = sales.returned_by_batch(item.id)
            credits: dict[UUID | None, int] = {}
            for line in request.lines:
                if line.batch_id is None and not self.credits_stock:
                    credits[None] = credits.get(None, 0) + line.quantity
                    continue
                for batch_id, units in plan_credits(
                    item.id, item.deductions, by_batch, line.quantity, line.batch_id
                ):
                    credits[batch_id] = credits.get(batch_id, 0) + units
                    by_batch[batch_id] = by_batch.get(batch_id, 0) + units
            allocations.append((item, list(credits.items())))
        return allocations
