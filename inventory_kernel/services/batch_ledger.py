"""
BatchLedger -- sole mutator of stock batch quantities.

Responsibility:
    Owns every change to ``StockBatch.quantity``: sale deductions, return
    credits and manual corrections, plus receipt of new batches.  Also the
    canonical read path for sellable stock (available quantity, FEFO-ordered
    batches, snapshots for allocation) and expiry classification.

Architecture position:
    Kernel > Services -- imperative shell.  Flushes within the caller's
    transaction; never commits.  Pure rules (expiry, FEFO order) come from
    inventory_engines.

Invariants enforced:
    - Non-negative stock: deductions are a single conditional UPDATE
      ``SET quantity = quantity - :n WHERE id = :id AND quantity >= :n``.
      There is no read-modify-write window for a concurrent sale to slip
      through.
    - Ceiling: credits and corrections never leave a batch above
      original_quantity or below zero (conditional UPDATE + CHECK).
    - Audit: every non-sale change writes a StockAdjustment row.
    - Single mutator: the UPDATEs bypass the ORM unit of work, and the
      immutability listeners reject ORM writes to quantity.

Failure modes:
    - ValidationError for non-positive amounts or bad receipt data.
    - BatchNotFoundError when the batch does not exist.
    - ConcurrencyConflictError when a deduction's condition fails (another
      transaction took the stock first).  Retryable with a fresh snapshot.
    - BatchOverCreditError when a credit or correction would breach
      [0, original_quantity].
"""

from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update

from inventory_engines.expiry import (
    DEFAULT_EXPIRY_HORIZON_DAYS,
    classify_expiry,
    partition_alerts,
)
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import ExpiryAlerts
from inventory_kernel.domain.snapshots import BatchSnapshot, ExpiryStatus, StockSnapshot
from inventory_kernel.domain.values import ZERO, as_decimal, require_positive_int, round_money
from inventory_kernel.exceptions import (
    BatchNotFoundError,
    BatchOverCreditError,
    ConcurrencyConflictError,
    ProductNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.stock_adjustment import AdjustmentKind, StockAdjustment
from inventory_kernel.models.stock_batch import StockBatch
from inventory_kernel.selectors.batch_selector import BatchSelector
from inventory_kernel.selectors.product_selector import ProductSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.batch_ledger")


def _require_text(value: str | None, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field, value=value)
    return value.strip()


class BatchLedger(BaseService[StockBatch]):
    """
    The batch stock ledger.

    Args:
        session: Caller-owned session (inside a transaction for writes).
        clock: Source of "today" for sellability and of adjustment timestamps.
        expiry_horizon_days: Default "expiring soon" window.
    """

    def __init__(
        self,
        session,
        clock: Clock,
        expiry_horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS,
    ):
        super().__init__(session)
        self._clock = clock
        self._horizon_days = expiry_horizon_days
        self._batches = BatchSelector(session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def available_quantity(self, product_id: UUID) -> int:
        """Sum of quantity over non-expired batches with stock."""
        return self._batches.available_quantity(product_id, self._clock.today())

    def available_batches(self, product_id: UUID, lock: bool = False) -> list[BatchSnapshot]:
        """Non-expired batches with stock in FEFO order (optionally locked)."""
        return self._batches.sellable(product_id, self._clock.today(), lock=lock)

    def snapshot(self, product_ids: Iterable[UUID], lock: bool = False) -> StockSnapshot:
        """Consistent snapshot of sellable batches for a whole cart."""
        return self._batches.sellable_for_products(product_ids, self._clock.today(), lock=lock)

    def classify(
        self,
        batch: BatchSnapshot | StockBatch,
        today: date | None = None,
        horizon_days: int | None = None,
    ) -> ExpiryStatus:
        return classify_expiry(
            batch.expiry_date,
            today or self._clock.today(),
            self._horizon_days if horizon_days is None else horizon_days,
        )

    def expiry_alerts(self, horizon_days: int | None = None) -> ExpiryAlerts:
        """Batches with stock that have expired or expire within the horizon."""
        today = self._clock.today()
        horizon = self._horizon_days if horizon_days is None else horizon_days
        expiring, expired = partition_alerts(
            self._batches.with_stock_expiring_before(today + timedelta(days=horizon)),
            today,
            horizon,
        )
        return ExpiryAlerts(
            as_of=today,
            horizon_days=horizon,
            expiring_soon=expiring,
            expired=expired,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_deduction(self, batch_id: UUID, amount: int) -> None:
        """
        Atomically take ``amount`` units from a batch.

        Raises:
            ValidationError: amount is not a positive integer.
            BatchNotFoundError: no such batch.
            ConcurrencyConflictError: fewer than ``amount`` units remain.
        """
        require_positive_int(amount, "amount")
        result = self.session.execute(
            update(StockBatch)
            .where(StockBatch.id == batch_id, StockBatch.quantity >= amount)
            .values(quantity=StockBatch.quantity - amount)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            if not self._batches.exists(batch_id):
                raise BatchNotFoundError(str(batch_id))
            logger.warning(
                "deduction_conflict",
                extra={"batch_id": str(batch_id), "amount": amount},
            )
            raise ConcurrencyConflictError(
                "StockBatch", str(batch_id), f"fewer than {amount} units remain"
            )
        logger.debug("deduction_applied", extra={"batch_id": str(batch_id), "amount": amount})

    def apply_credit(
        self,
        batch_id: UUID,
        amount: int,
        operator_id: str,
        reason: str,
        reference_id: UUID | None = None,
    ) -> StockAdjustment:
        """
        Atomically put ``amount`` units back into a batch (return credit).

        Raises:
            BatchOverCreditError: the batch would exceed original_quantity.
        """
        require_positive_int(amount, "amount")
        return self._adjust(
            batch_id,
            amount,
            AdjustmentKind.RETURN_CREDIT,
            _require_text(reason, "reason"),
            _require_text(operator_id, "operator_id"),
            reference_id,
        )

    def apply_correction(
        self,
        batch_id: UUID,
        delta: int,
        reason: str,
        operator_id: str,
    ) -> StockAdjustment:
        """
        Manual stock correction (count mismatch, damage, ...).

        The result must stay within [0, original_quantity].
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError("delta must be a non-zero integer", field="delta", value=delta)
        return self._adjust(
            batch_id,
            delta,
            AdjustmentKind.CORRECTION,
            _require_text(reason, "reason"),
            _require_text(operator_id, "operator_id"),
            None,
        )

    def _adjust(
        self,
        batch_id: UUID,
        delta: int,
        kind: AdjustmentKind,
        reason: str,
        operator_id: str,
        reference_id: UUID | None,
    ) -> StockAdjustment:
        result = self.session.execute(
            update(StockBatch)
            .where(
                StockBatch.id == batch_id,
                StockBatch.quantity + delta >= 0,
                StockBatch.quantity + delta <= StockBatch.original_quantity,
            )
            .values(quantity=StockBatch.quantity + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self._batches.get(batch_id)
            if current is None:
                raise BatchNotFoundError(str(batch_id))
            raise BatchOverCreditError(
                batch_id=str(batch_id),
                delta=delta,
                quantity=current.quantity,
                original_quantity=current.original_quantity,
            )

        adjustment = StockAdjustment(
            batch_id=batch_id,
            delta=delta,
            kind=kind.value,
            reason=reason,
            operator_id=operator_id,
            reference_id=reference_id,
            created_at=self._clock.now_utc(),
        )
        self.session.add(adjustment)
        self.session.flush()
        logger.info(
            "stock_adjusted",
            extra={
                "batch_id": str(batch_id),
                "delta": delta,
                "kind": kind.value,
                "operator_id": operator_id,
            },
        )
        return adjustment

    def receive_batch(
        self,
        product_id: UUID,
        batch_number: str,
        quantity: int,
        cost_price: Decimal | int | str,
        selling_price: Decimal | int | str,
        expiry_date: date,
        purchase_date: date | None = None,
        supplier: str | None = None,
    ) -> StockBatch:
        """
        Record a stock purchase as a new batch.

        Raises:
            ProductNotFoundError: unknown product.
            ValidationError: quantity <= 0, negative prices, or an expiry
                date before the purchase date.
        """
        if ProductSelector(self.session).get(product_id) is None:
            raise ProductNotFoundError(str(product_id))
        batch_number = _require_text(batch_number, "batch_number")
        require_positive_int(quantity, "quantity")
        cost = round_money(as_decimal(cost_price, "cost_price"), "cost_price")
        price = round_money(as_decimal(selling_price, "selling_price"), "selling_price")
        if cost < ZERO:
            raise ValidationError("cost_price must not be negative", field="cost_price", value=cost)
        if price < ZERO:
            raise ValidationError(
                "selling_price must not be negative", field="selling_price", value=price
            )
        purchase_date = purchase_date or self._clock.today()
        if expiry_date < purchase_date:
            raise ValidationError(
                "expiry_date must not be before purchase_date",
                field="expiry_date",
                value=expiry_date,
            )

        batch = StockBatch(
            product_id=product_id,
            batch_number=batch_number,
            quantity=quantity,
            original_quantity=quantity,
            cost_price=cost,
            selling_price=price,
            expiry_date=expiry_date,
            purchase_date=purchase_date,
            supplier=supplier,
            created_at=self._clock.now_utc(),
        )
        self.session.add(batch)
        self.session.flush()
        logger.info(
            "batch_received",
            extra={
                "product_id": str(product_id),
                "batch_id": str(batch.id),
                "batch_number": batch_number,
                "quantity": quantity,
                "expiry_date": expiry_date,
            },
        )
        return batch
