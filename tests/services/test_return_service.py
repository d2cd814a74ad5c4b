"""
Tests for ReturnService.

Covers:
- Return window boundary (inclusive at 48h)
- Remaining-quantity ceiling across successive returns
- Validate-before-write: one bad line rejects the whole return
- Disposition "none" (stock untouched) and "original_batch" (credited back)
- Explicit batch selection and eligibility reporting
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from inventory_config.schema import LedgerConfig
from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.dtos import CartLine, ReturnLine
from inventory_kernel.exceptions import (
    ReturnQuantityExceededError,
    ReturnWindowExpiredError,
    SaleItemNotFoundError,
    SaleNotFoundError,
    ValidationError,
)
from inventory_kernel.models.sales_return import ReturnItem, SalesReturn
from inventory_kernel.models.stock_adjustment import StockAdjustment
from inventory_services.return_service import ReturnService

REASON = "customer changed mind"


def count_rows(model) -> int:
    with session_scope() as sess:
        return sess.execute(select(func.count()).select_from(model)).scalar_one()


@pytest.fixture
def stocked(make_product, make_batch):
    """Product with B1(2, 2025-01-10) and B2(10, 2025-02-01)."""
    product = make_product("Amoxicillin 250mg")
    b1 = make_batch(product, 2, date(2025, 1, 10), batch_number="B1")
    b2 = make_batch(product, 10, date(2025, 2, 1), batch_number="B2")
    return product, b1, b2


@pytest.fixture
def sold(sale_service, stocked, operator_id):
    """Receipt for 5 units: B1 gives 2, B2 gives 3."""
    product, _, _ = stocked
    return sale_service.finalize_sale(
        [CartLine(product_id=product, quantity=5, unit_price=Decimal("4.00"))],
        "cash",
        operator_id,
    )


@pytest.fixture
def crediting_service(session_factory, clock, change_feed):
    return ReturnService(
        session_factory,
        clock,
        LedgerConfig(return_disposition="original_batch"),
        change_feed,
    )


class TestReturnWindow:
    def test_accepted_just_inside_window(self, return_service, sold, clock, operator_id):
        clock.advance(hours=47, seconds=59 * 60 + 59)
        receipt = return_service.process_return(
            sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 1)], REASON, operator_id
        )
        assert receipt.total_quantity == 1

    def test_rejected_just_outside_window(self, return_service, sold, clock, operator_id):
        clock.advance(hours=48, seconds=1)
        with pytest.raises(ReturnWindowExpiredError) as exc:
            return_service.process_return(
                sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 1)], REASON, operator_id
            )
        assert exc.value.window_hours == 48
        assert exc.value.sold_at == sold.created_at
        assert count_rows(SalesReturn) == 0

    def test_configured_window(self, session_factory, clock, sold, operator_id):
        service = ReturnService(session_factory, clock, LedgerConfig(return_window_hours=1))
        clock.advance(hours=2)
        with pytest.raises(ReturnWindowExpiredError):
            service.process_return(
                sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 1)], REASON, operator_id
            )


class TestReturnQuantities:
    def test_ceiling_across_successive_returns(self, return_service, sold, operator_id):
        item_id = sold.lines[0].sale_item_id

        return_service.process_return(sold.sale_id, [ReturnLine(item_id, 2)], REASON, operator_id)
        with pytest.raises(ReturnQuantityExceededError) as exc:
            return_service.process_return(sold.sale_id, [ReturnLine(item_id, 4)], REASON, operator_id)
        assert exc.value.requested == 4
        assert exc.value.remaining == 3

        return_service.process_return(sold.sale_id, [ReturnLine(item_id, 3)], REASON, operator_id)

        eligibility = return_service.eligibility(sold.sale_id)
        assert eligibility.items[0].remaining == 0
        assert count_rows(SalesReturn) == 2

    def test_lines_for_same_item_are_summed(self, return_service, sold, operator_id):
        item_id = sold.lines[0].sale_item_id
        with pytest.raises(ReturnQuantityExceededError) as exc:
            return_service.process_return(
                sold.sale_id,
                [ReturnLine(item_id, 3), ReturnLine(item_id, 3)],
                REASON,
                operator_id,
            )
        assert exc.value.requested == 6
        assert exc.value.remaining == 5

    def test_bad_line_rejects_whole_return(self, return_service, sold, operator_id):
        with pytest.raises(SaleItemNotFoundError):
            return_service.process_return(
                sold.sale_id,
                [ReturnLine(sold.lines[0].sale_item_id, 1), ReturnLine(uuid4(), 1)],
                REASON,
                operator_id,
            )
        assert count_rows(SalesReturn) == 0
        assert count_rows(ReturnItem) == 0

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity(self, return_service, sold, operator_id, quantity):
        with pytest.raises(ValidationError):
            return_service.process_return(
                sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, quantity)], REASON, operator_id
            )

    def test_reason_required(self, return_service, sold, operator_id):
        with pytest.raises(ValidationError) as exc:
            return_service.process_return(
                sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 1)], " ", operator_id
            )
        assert exc.value.field == "reason"

    def test_unknown_sale(self, return_service, operator_id):
        with pytest.raises(SaleNotFoundError):
            return_service.process_return(uuid4(), [ReturnLine(uuid4(), 1)], REASON, operator_id)


class TestDispositionNone:
    def test_stock_is_untouched(self, return_service, sold, stocked, available, operator_id):
        product, _, _ = stocked
        before = available(product)

        receipt = return_service.process_return(
            sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 2)], REASON, operator_id
        )

        assert receipt.disposition == "none"
        assert [(i.batch_id, i.quantity) for i in receipt.items] == [(None, 2)]
        assert available(product) == before
        assert count_rows(StockAdjustment) == 0

    def test_explicit_batch_is_recorded(self, return_service, sold, stocked, operator_id):
        _, _, b2 = stocked
        receipt = return_service.process_return(
            sold.sale_id,
            [ReturnLine(sold.lines[0].sale_item_id, 3, batch_id=b2)],
            REASON,
            operator_id,
        )
        assert [(i.batch_id, i.quantity) for i in receipt.items] == [(b2, 3)]

    def test_explicit_batch_must_be_a_deduction(self, return_service, sold, operator_id):
        with pytest.raises(ValidationError) as exc:
            return_service.process_return(
                sold.sale_id,
                [ReturnLine(sold.lines[0].sale_item_id, 1, batch_id=uuid4())],
                REASON,
                operator_id,
            )
        assert exc.value.field == "batch_id"

    def test_no_change_event(self, return_service, change_feed, sold, operator_id):
        events = []
        change_feed.subscribe(events.append)
        return_service.process_return(
            sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 1)], REASON, operator_id
        )
        assert events == []


class TestDispositionOriginalBatch:
    def test_credits_follow_deduction_order(
        self, crediting_service, sold, stocked, batch_quantity, operator_id
    ):
        _, b1, b2 = stocked
        assert (batch_quantity(b1), batch_quantity(b2)) == (0, 7)

        receipt = crediting_service.process_return(
            sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 3)], REASON, operator_id
        )

        assert [(i.batch_id, i.quantity) for i in receipt.items] == [(b1, 2), (b2, 1)]
        assert (batch_quantity(b1), batch_quantity(b2)) == (2, 8)
        assert count_rows(StockAdjustment) == 2

    def test_second_return_skips_fully_credited_batch(
        self, crediting_service, sold, stocked, batch_quantity, operator_id
    ):
        _, b1, b2 = stocked
        item_id = sold.lines[0].sale_item_id
        crediting_service.process_return(sold.sale_id, [ReturnLine(item_id, 2)], REASON, operator_id)

        receipt = crediting_service.process_return(
            sold.sale_id, [ReturnLine(item_id, 3)], REASON, operator_id
        )

        assert [(i.batch_id, i.quantity) for i in receipt.items] == [(b2, 3)]
        assert (batch_quantity(b1), batch_quantity(b2)) == (2, 10)

    def test_explicit_batch_over_its_deduction(self, crediting_service, sold, stocked, operator_id):
        _, b1, _ = stocked
        with pytest.raises(ReturnQuantityExceededError) as exc:
            crediting_service.process_return(
                sold.sale_id,
                [ReturnLine(sold.lines[0].sale_item_id, 3, batch_id=b1)],
                REASON,
                operator_id,
            )
        assert exc.value.remaining == 2

    def test_change_event_after_credit(
        self, crediting_service, change_feed, sold, stocked, operator_id
    ):
        product, _, _ = stocked
        events = []
        change_feed.subscribe(events.append)

        crediting_service.process_return(
            sold.sale_id, [ReturnLine(sold.lines[0].sale_item_id, 1)], REASON, operator_id
        )

        assert [(e.product_ids, e.source) for e in events] == [(frozenset({product}), "process_return")]


class TestEligibility:
    def test_reports_deadline_and_remaining(self, return_service, sold, clock, operator_id):
        item_id = sold.lines[0].sale_item_id
        return_service.process_return(sold.sale_id, [ReturnLine(item_id, 1)], REASON, operator_id)

        eligibility = return_service.eligibility(sold.sale_id)

        assert eligibility.eligible
        assert eligibility.receipt_code == sold.receipt_code
        assert eligibility.deadline == sold.created_at + timedelta(hours=48)
        item = eligibility.items[0]
        assert (item.sold, item.returned, item.remaining) == (5, 1, 4)
        assert item.product_name == "Amoxicillin 250mg"

    def test_not_eligible_after_window(self, return_service, sold, clock):
        clock.advance(days=3)
        assert not return_service.eligibility(sold.sale_id).eligible

    def test_unknown_sale(self, return_service):
        with pytest.raises(SaleNotFoundError):
            return_service.eligibility(uuid4())

    def test_lookup_by_receipt_code(self, return_service, sold, operator_id):
        item_id = sold.lines[0].sale_item_id
        return_service.process_return(sold.sale_id, [ReturnLine(item_id, 2)], REASON, operator_id)

        eligibility = return_service.eligibility_by_receipt(sold.receipt_code)

        assert eligibility.sale_id == sold.sale_id
        assert eligibility == return_service.eligibility(sold.sale_id)
        assert eligibility.items[0].remaining == 3

    def test_lookup_by_receipt_code_trims_whitespace(self, return_service, sold):
        assert return_service.eligibility_by_receipt(f"  {sold.receipt_code} ").sale_id == sold.sale_id

    def test_unknown_receipt_code(self, return_service, sold):
        with pytest.raises(SaleNotFoundError) as exc_info:
            return_service.eligibility_by_receipt("RCP-999999")
        assert exc_info.value.sale_ref == "RCP-999999"

    def test_blank_receipt_code(self, return_service):
        with pytest.raises(ValidationError):
            return_service.eligibility_by_receipt("  ")
