"""Tests for the pure return rules: window, remaining quantity, batch credits."""

from datetime import date, datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from inventory_engines.returns import (
    check_remaining,
    group_return_lines,
    plan_credits,
    return_deadline,
    within_return_window,
)
from inventory_kernel.domain.deduction import BatchDeduction
from inventory_kernel.domain.dtos import ReturnLine
from inventory_kernel.exceptions import ReturnQuantityExceededError, ValidationError

SOLD_AT = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
ITEM = uuid4()
B1 = UUID(int=1)
B2 = UUID(int=2)
DEDUCTIONS = [
    BatchDeduction(batch_id=B1, batch_number="B1", quantity=2, expiry_date=date(2025, 3, 1)),
    BatchDeduction(batch_id=B2, batch_number="B2", quantity=3, expiry_date=date(2025, 4, 1)),
]


class TestReturnWindow:
    def test_just_inside_window(self):
        now = SOLD_AT + timedelta(hours=47, minutes=59, seconds=59)
        assert within_return_window(SOLD_AT, now, 48)

    def test_exact_boundary_is_inside(self):
        assert within_return_window(SOLD_AT, SOLD_AT + timedelta(hours=48), 48)

    def test_just_outside_window(self):
        now = SOLD_AT + timedelta(hours=48, seconds=1)
        assert not within_return_window(SOLD_AT, now, 48)

    def test_deadline(self):
        assert return_deadline(SOLD_AT, 24) == SOLD_AT + timedelta(days=1)


class TestGroupingAndRemaining:
    def test_lines_for_same_item_are_summed(self):
        other = uuid4()
        requests = group_return_lines(
            [ReturnLine(ITEM, 1), ReturnLine(other, 2), ReturnLine(ITEM, 3)]
        )
        assert [(r.sale_item_id, r.quantity) for r in requests] == [(ITEM, 4), (other, 2)]

    def test_empty_request_rejected(self):
        with pytest.raises(ValidationError):
            group_return_lines([])

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            group_return_lines([ReturnLine(ITEM, 0)])

    def test_remaining_after_request(self):
        assert check_remaining(ITEM, requested=3, sold=5, returned=2) == 0

    def test_exceeding_remaining_reports_numbers(self):
        with pytest.raises(ReturnQuantityExceededError) as exc:
            check_remaining(ITEM, requested=4, sold=5, returned=2)
        assert exc.value.requested == 4
        assert exc.value.remaining == 3
        assert exc.value.sale_item_id == str(ITEM)


class TestPlanCredits:
    def test_credits_follow_deduction_order(self):
        assert plan_credits(ITEM, DEDUCTIONS, {}, 4) == [(B1, 2), (B2, 2)]

    def test_already_returned_units_are_skipped(self):
        assert plan_credits(ITEM, DEDUCTIONS, {B1: 2, B2: 1}, 2) == [(B2, 2)]

    def test_explicit_batch(self):
        assert plan_credits(ITEM, DEDUCTIONS, {}, 3, batch_id=B2) == [(B2, 3)]

    def test_explicit_batch_over_its_deduction(self):
        with pytest.raises(ReturnQuantityExceededError) as exc:
            plan_credits(ITEM, DEDUCTIONS, {}, 3, batch_id=B1)
        assert exc.value.remaining == 2

    def test_batch_not_in_deductions(self):
        with pytest.raises(ValidationError) as exc:
            plan_credits(ITEM, DEDUCTIONS, {}, 1, batch_id=uuid4())
        assert exc.value.field == "batch_id"
