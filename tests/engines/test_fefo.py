"""
Tests for the FEFO allocator.

Covers:
- Earliest-expiry-first consumption and the documented two-batch example
- Tie-breaks on purchase date and batch id
- Expired and empty batches are never offered
- Insufficient stock leaves the snapshot untouched
- Sequential allocation via apply_plan
- Property tests: determinism, no overdraft, associativity
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from inventory_engines.fefo import allocate, apply_plan, available_quantity, sellable_batches
from inventory_kernel.domain.snapshots import BatchSnapshot
from inventory_kernel.exceptions import InsufficientStockError, LedgerError, ValidationError

TODAY = date(2025, 1, 1)
PRODUCT = UUID("00000000-0000-4000-8000-000000000001")


def batch(
    quantity: int,
    expiry: date,
    purchase: date = date(2024, 12, 1),
    batch_id: UUID | None = None,
    number: str = "B",
) -> BatchSnapshot:
    return BatchSnapshot(
        batch_id=batch_id or uuid4(),
        product_id=PRODUCT,
        batch_number=number,
        quantity=quantity,
        original_quantity=max(quantity, 1),
        expiry_date=expiry,
        purchase_date=min(purchase, expiry),
        cost_price=Decimal("5.00"),
        selling_price=Decimal("10.00"),
    )


def quantities(plan) -> list[tuple[str, int]]:
    return [(d.batch_number, d.quantity) for d in plan.deductions]


class TestFefoOrder:
    def test_two_batch_example(self):
        b1 = batch(5, date(2025, 1, 10), number="B1")
        b2 = batch(10, date(2025, 2, 1), number="B2")
        snapshot = {PRODUCT: (b2, b1)}

        plan = allocate(product_id=PRODUCT, requested_qty=8, snapshot=snapshot, today=TODAY)

        assert quantities(plan) == [("B1", 5), ("B2", 3)]
        assert plan.total_quantity == 8
        after = apply_plan(snapshot, plan)
        remaining = {b.batch_number: b.quantity for b in after[PRODUCT]}
        assert remaining == {"B1": 0, "B2": 7}

    def test_request_above_stock_raises_with_available(self):
        snapshot = {
            PRODUCT: (
                batch(5, date(2025, 1, 10), number="B1"),
                batch(10, date(2025, 2, 1), number="B2"),
            )
        }
        before = dict(snapshot)

        with pytest.raises(InsufficientStockError) as exc:
            allocate(product_id=PRODUCT, requested_qty=20, snapshot=snapshot, today=TODAY)

        assert exc.value.available == 15
        assert exc.value.requested == 20
        assert exc.value.product_id == str(PRODUCT)
        assert snapshot == before

    def test_single_batch_covers_request(self):
        snapshot = {PRODUCT: (batch(10, date(2025, 1, 10), number="B1"), batch(10, date(2025, 3, 1), number="B2"))}
        plan = allocate(product_id=PRODUCT, requested_qty=4, snapshot=snapshot, today=TODAY)
        assert quantities(plan) == [("B1", 4)]

    def test_equal_expiry_breaks_tie_on_purchase_date(self):
        older = batch(3, date(2025, 6, 1), purchase=date(2024, 10, 1), number="OLD")
        newer = batch(3, date(2025, 6, 1), purchase=date(2024, 11, 1), number="NEW")
        plan = allocate(
            product_id=PRODUCT, requested_qty=4, snapshot={PRODUCT: (newer, older)}, today=TODAY
        )
        assert quantities(plan) == [("OLD", 3), ("NEW", 1)]

    def test_full_tie_breaks_on_batch_id(self):
        low = batch(2, date(2025, 6, 1), batch_id=UUID(int=1), number="LOW")
        high = batch(2, date(2025, 6, 1), batch_id=UUID(int=2), number="HIGH")
        plan = allocate(product_id=PRODUCT, requested_qty=3, snapshot={PRODUCT: (high, low)}, today=TODAY)
        assert quantities(plan) == [("LOW", 2), ("HIGH", 1)]


class TestSellability:
    def test_expired_batches_are_skipped(self):
        expired = batch(50, TODAY - timedelta(days=1), purchase=date(2024, 1, 1), number="EXP")
        fresh = batch(5, date(2025, 5, 1), number="OK")
        with pytest.raises(InsufficientStockError) as exc:
            allocate(product_id=PRODUCT, requested_qty=6, snapshot={PRODUCT: (expired, fresh)}, today=TODAY)
        assert exc.value.available == 5

    def test_batch_expiring_today_is_sellable(self):
        snapshot = {PRODUCT: (batch(2, TODAY, purchase=date(2024, 1, 1), number="TODAY"),)}
        plan = allocate(product_id=PRODUCT, requested_qty=2, snapshot=snapshot, today=TODAY)
        assert quantities(plan) == [("TODAY", 2)]

    def test_empty_batches_produce_no_deductions(self):
        empty = batch(0, date(2025, 1, 5), number="EMPTY")
        full = batch(4, date(2025, 2, 5), number="FULL")
        plan = allocate(product_id=PRODUCT, requested_qty=4, snapshot={PRODUCT: (empty, full)}, today=TODAY)
        assert quantities(plan) == [("FULL", 4)]

    def test_unknown_product_has_no_stock(self):
        with pytest.raises(InsufficientStockError) as exc:
            allocate(product_id=uuid4(), requested_qty=1, snapshot={PRODUCT: ()}, today=TODAY)
        assert exc.value.available == 0

    def test_available_quantity_ignores_expired_and_empty(self):
        batches = [
            batch(5, date(2025, 1, 10)),
            batch(0, date(2025, 1, 11)),
            batch(7, date(2024, 12, 31), purchase=date(2024, 1, 1)),
        ]
        assert available_quantity(batches, TODAY) == 5
        assert len(sellable_batches(batches, TODAY)) == 1

    @pytest.mark.parametrize("requested", [0, -3, True])
    def test_non_positive_request_rejected(self, requested):
        with pytest.raises(ValidationError):
            allocate(product_id=PRODUCT, requested_qty=requested, snapshot={}, today=TODAY)


class TestApplyPlan:
    def test_same_product_lines_allocate_sequentially(self):
        snapshot = {
            PRODUCT: (
                batch(5, date(2025, 1, 10), number="B1"),
                batch(10, date(2025, 2, 1), number="B2"),
            )
        }
        first = allocate(product_id=PRODUCT, requested_qty=3, snapshot=snapshot, today=TODAY)
        snapshot2 = apply_plan(snapshot, first)
        second = allocate(product_id=PRODUCT, requested_qty=5, snapshot=snapshot2, today=TODAY)

        assert quantities(first) == [("B1", 3)]
        assert quantities(second) == [("B1", 2), ("B2", 3)]
        assert snapshot[PRODUCT][0].quantity == 5

    def test_plan_from_other_snapshot_rejected(self):
        snapshot = {PRODUCT: (batch(5, date(2025, 1, 10)),)}
        foreign = allocate(
            product_id=PRODUCT,
            requested_qty=1,
            snapshot={PRODUCT: (batch(5, date(2025, 1, 10)),)},
            today=TODAY,
        )
        with pytest.raises(LedgerError):
            apply_plan(snapshot, foreign)


# -----------------------------------------------------------------------------
# Property tests
# -----------------------------------------------------------------------------

_batch_strategy = st.builds(
    lambda qty, expiry_offset, purchase_offset, n: batch(
        qty,
        TODAY + timedelta(days=expiry_offset),
        purchase=TODAY - timedelta(days=purchase_offset),
        batch_id=UUID(int=n),
        number=f"B{n}",
    ),
    st.integers(min_value=0, max_value=40),
    st.integers(min_value=-5, max_value=60),
    st.integers(min_value=0, max_value=30),
    st.integers(min_value=1, max_value=2**32),
)

_snapshot_strategy = st.lists(
    _batch_strategy, min_size=0, max_size=8, unique_by=lambda b: b.batch_id
).map(lambda batches: {PRODUCT: tuple(batches)})


def _consumed(snapshot, plans) -> dict[UUID, int]:
    totals: dict[UUID, int] = {}
    for plan in plans:
        for d in plan.deductions:
            totals[d.batch_id] = totals.get(d.batch_id, 0) + d.quantity
    return totals


class TestFefoProperties:
    @settings(max_examples=200, deadline=None)
    @given(snapshot=_snapshot_strategy, requested=st.integers(min_value=1, max_value=200))
    def test_plan_never_overdraws_and_matches_request(self, snapshot, requested):
        sellable = available_quantity(snapshot[PRODUCT], TODAY)
        if requested > sellable:
            with pytest.raises(InsufficientStockError) as exc:
                allocate(product_id=PRODUCT, requested_qty=requested, snapshot=snapshot, today=TODAY)
            assert exc.value.available == sellable
            return

        plan = allocate(product_id=PRODUCT, requested_qty=requested, snapshot=snapshot, today=TODAY)
        by_id = {b.batch_id: b for b in snapshot[PRODUCT]}
        assert plan.total_quantity == requested
        for d in plan.deductions:
            source = by_id[d.batch_id]
            assert 0 < d.quantity <= source.quantity
            assert source.expiry_date >= TODAY
        keys = [by_id[d.batch_id].fefo_key for d in plan.deductions]
        assert keys == sorted(keys)

    @settings(max_examples=100, deadline=None)
    @given(snapshot=_snapshot_strategy, requested=st.integers(min_value=1, max_value=100))
    def test_allocation_is_deterministic(self, snapshot, requested):
        if requested > available_quantity(snapshot[PRODUCT], TODAY):
            return
        shuffled = {PRODUCT: tuple(reversed(snapshot[PRODUCT]))}
        first = allocate(product_id=PRODUCT, requested_qty=requested, snapshot=snapshot, today=TODAY)
        second = allocate(product_id=PRODUCT, requested_qty=requested, snapshot=shuffled, today=TODAY)
        assert first == second

    @settings(max_examples=150, deadline=None)
    @given(
        snapshot=_snapshot_strategy,
        a=st.integers(min_value=1, max_value=60),
        b=st.integers(min_value=1, max_value=60),
    )
    def test_split_allocation_consumes_same_batches(self, snapshot, a, b):
        if a + b > available_quantity(snapshot[PRODUCT], TODAY):
            return
        whole = allocate(product_id=PRODUCT, requested_qty=a + b, snapshot=snapshot, today=TODAY)
        first = allocate(product_id=PRODUCT, requested_qty=a, snapshot=snapshot, today=TODAY)
        second = allocate(
            product_id=PRODUCT, requested_qty=b, snapshot=apply_plan(snapshot, first), today=TODAY
        )
        assert _consumed(snapshot, [whole]) == _consumed(snapshot, [first, second])
