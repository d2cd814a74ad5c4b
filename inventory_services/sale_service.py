"""
SaleService -- finalize a cart into a committed sale.

Responsibility:
    Validates a cart, allocates every line to batches in FEFO order against
    one consistent snapshot, allocates a receipt code, persists the sale
    with its per-item batch deductions, and applies the deductions through
    the batch ledger.  All of it commits as one unit or not at all.

Architecture position:
    Services -- stateful orchestration over kernel services.
    Pure rules come from inventory_engines (pricing, fefo, sale_lifecycle);
    every stock write goes through BatchLedger.

Invariants enforced:
    - Atomicity: a failure on any line aborts the whole sale.  No sale row,
      no deduction and no receipt number survive a rejected cart.
    - No overdraft: the snapshot is read under row locks and deductions are
      conditional decrements.  A lost race raises ConcurrencyConflictError,
      which the unit of work retries with a fresh snapshot.
    - Same-product lines allocate sequentially: each line sees the stock
      consumed by the lines before it.
    - StockChanged is published only after commit.

Failure modes:
    - ValidationError: empty cart, bad quantity/price/discount, unknown
      payment method, missing operator, inactive product.
    - ProductNotFoundError: a cart line names an unknown product.
    - InsufficientStockError: a line cannot be satisfied from sellable stock.
    - ConcurrencyConflictError / UnitOfWorkTimeoutError / PersistenceError
      from the unit of work.

Audit relevance:
    Logs ``sale_committed`` (receipt, totals, line count) and
    ``sale_rejected`` (error code and stage) for every call.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from inventory_config.schema import LedgerConfig
from inventory_engines.fefo import allocate, apply_plan
from inventory_engines.pricing import CartTotals, compute_totals
from inventory_engines.sale_lifecycle import VALID_TRANSITIONS, SaleLifecycle, SaleStage
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    CartLine,
    DeductionPlan,
    Discount,
    SaleReceipt,
    SaleReceiptLine,
)
from inventory_kernel.exceptions import InventoryError, ProductNotFoundError, ValidationError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.product import Product
from inventory_kernel.models.sale import Sale, SaleItem
from inventory_kernel.selectors.product_selector import ProductSelector
from inventory_kernel.services.batch_ledger import BatchLedger
from inventory_kernel.services.sequence_service import SequenceService
from inventory_services.change_feed import ChangeFeed, StockChanged
from inventory_services.unit_of_work import UnitOfWork

logger = get_logger("services.sale")


class SaleService:
    """
    Point-of-sale checkout.

    Args:
        session_factory: Each unit of work opens its own session.
        clock: Sale timestamps and the "today" used for sellability.
        config: Receipt numbering, payment methods, retries, timeout.
        change_feed: Optional; receives StockChanged after each sale.
        timer: Monotonic timer for the unit-of-work budget.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock,
        config: LedgerConfig | None = None,
        change_feed: ChangeFeed | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._config = config or LedgerConfig.with_defaults()
        self._feed = change_feed
        self._uow = UnitOfWork(session_factory, self._config, timer=timer)

    def finalize_sale(
        self,
        cart_lines: Sequence[CartLine],
        payment_method: str,
        operator_id: str,
        discount: Discount | None = None,
    ) -> SaleReceipt:
        lifecycle = SaleLifecycle()
        with LogContext.bind(operator_id=operator_id, correlation_id=str(uuid4())):
            try:
                totals = compute_totals(cart_lines, discount)
                self._validate_payment(payment_method)
                self._validate_operator(operator_id)
                lifecycle.advance(SaleStage.ALLOCATING)

                def work(session: Session) -> SaleReceipt:
                    if lifecycle.stage is SaleStage.COMMITTING:
                        lifecycle.advance(SaleStage.ALLOCATING)
                    return self._finalize(session, totals, payment_method, operator_id, lifecycle)

                receipt = self._uow.run("finalize_sale", work)
            except InventoryError as exc:
                failed_stage = lifecycle.stage
                if SaleStage.REJECTED in VALID_TRANSITIONS[failed_stage]:
                    lifecycle.reject()
                logger.info(
                    "sale_rejected",
                    extra={
                        "error_code": exc.code,
                        "stage": failed_stage.value,
                        "line_count": len(cart_lines),
                    },
                )
                raise

            lifecycle.advance(SaleStage.COMMITTED)
            with LogContext.bind(sale_id=str(receipt.sale_id), receipt_code=receipt.receipt_code):
                logger.info(
                    "sale_committed",
                    extra={
                        "line_count": len(receipt.lines),
                        "subtotal": receipt.subtotal,
                        "discount_amount": receipt.discount_amount,
                        "total": receipt.total,
                        "payment_method": receipt.payment_method,
                    },
                )
            if self._feed is not None:
                self._feed.publish(
                    StockChanged.for_products(
                        (line.product_id for line in receipt.lines), "finalize_sale"
                    )
                )
            return receipt

    # ------------------------------------------------------------------
    # Transaction body
    # ------------------------------------------------------------------

    def _finalize(
        self,
        session: Session,
        totals: CartTotals,
        payment_method: str,
        operator_id: str,
        lifecycle: SaleLifecycle,
    ) -> SaleReceipt:
        products = self._load_products(session, totals)
        ledger = BatchLedger(session, self._clock, self._config.expiry_horizon_days)
        today = self._clock.today()

        snapshot = ledger.snapshot(products.keys(), lock=True)
        plans: list[DeductionPlan] = []
        for priced in totals.lines:
            product = products[priced.line.product_id]
            plan = allocate(
                product_id=product.id,
                requested_qty=priced.quantity,
                snapshot=snapshot,
                today=today,
                product_name=product.name,
            )
            snapshot = apply_plan(snapshot, plan)
            plans.append(plan)

        lifecycle.advance(SaleStage.COMMITTING)
        receipt_code = SequenceService(session).next_receipt_code(
            self._config.receipt_prefix, self._config.receipt_number_width
        )
        sale = Sale(
            receipt_code=receipt_code,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            total=totals.total,
            payment_method=payment_method,
            operator_id=operator_id,
            created_at=self._clock.now_utc(),
        )
        session.add(sale)
        session.flush()

        items: list[SaleItem] = []
        for priced, plan in zip(totals.lines, plans):
            item = SaleItem(
                sale_id=sale.id,
                line_no=priced.line_no,
                product_id=plan.product_id,
                product_name=products[plan.product_id].name,
                quantity=priced.quantity,
                unit_price=priced.unit_price,
                line_total=priced.line_total,
                deductions=list(plan.deductions),
            )
            session.add(item)
            items.append(item)
        session.flush()

        for plan in plans:
            for deduction in plan.deductions:
                ledger.apply_deduction(deduction.batch_id, deduction.quantity)

        return SaleReceipt(
            sale_id=sale.id,
            receipt_code=receipt_code,
            created_at=sale.created_at,
            payment_method=payment_method,
            operator_id=operator_id,
            subtotal=totals.subtotal,
            discount_amount=totals.discount_amount,
            total=totals.total,
            lines=tuple(
                SaleReceiptLine(
                    sale_item_id=item.id,
                    line_no=item.line_no,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                    deductions=plan.deductions,
                )
                for item, plan in zip(items, plans)
            ),
        )

    @staticmethod
    def _load_products(session: Session, totals: CartTotals) -> dict[UUID, Product]:
        wanted = [p.line.product_id for p in totals.lines]
        products = ProductSelector(session).get_many(wanted)
        for product_id in wanted:
            product = products.get(product_id)
            if product is None:
                raise ProductNotFoundError(str(product_id))
            if not product.is_active:
                raise ValidationError(
                    f"Product {product.name} is inactive and cannot be sold",
                    field="product_id",
                    value=str(product_id),
                )
        return products

    # ------------------------------------------------------------------
    # Input checks
    # ------------------------------------------------------------------

    def _validate_payment(self, payment_method: str) -> None:
        if payment_method not in self._config.allowed_payment_methods:
            raise ValidationError(
                f"Unknown payment method {payment_method!r}; expected one of "
                f"{', '.join(self._config.allowed_payment_methods)}",
                field="payment_method",
                value=payment_method,
            )

    @staticmethod
    def _validate_operator(operator_id: str) -> None:
        if not isinstance(operator_id, str) or not operator_id.strip():
            raise ValidationError("operator_id is required", field="operator_id", value=operator_id)
