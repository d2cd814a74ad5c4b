"""engine_trace records emitted around pure engine calls."""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from inventory_engines.fefo import allocate
from inventory_engines.tracer import traced_engine
from inventory_kernel.domain.snapshots import BatchSnapshot
from inventory_kernel.exceptions import InsufficientStockError

PRODUCT = UUID("00000000-0000-4000-8000-000000000001")
TODAY = date(2025, 1, 1)


def traces(captured_logs):
    return [r for r in captured_logs() if r["message"] == "engine_trace"]


@traced_engine("double", "2.1", fingerprint_fields=("value", "label"))
def double(value, label=None):
    return value * 2


class TestTracedEngine:
    def test_positional_and_keyword_calls_match(self, captured_logs):
        double(4, "x")
        double(value=4, label="x")
        first, second = traces(captured_logs)
        assert first["input_fingerprint"] == second["input_fingerprint"]
        assert first["engine_name"] == "double"
        assert first["engine_version"] == "2.1"
        assert first["outcome"] == "ok"

    def test_different_inputs_differ(self, captured_logs):
        double(4)
        double(5)
        first, second = traces(captured_logs)
        assert first["input_fingerprint"] != second["input_fingerprint"]

    def test_unbound_field_counts_as_null(self, captured_logs):
        double(4)
        double(4, None)
        first, second = traces(captured_logs)
        assert first["input_fingerprint"] == second["input_fingerprint"]
        assert len(first["input_fingerprint"]) == 16

    def test_failures_are_traced_and_reraised(self, captured_logs):
        with pytest.raises(InsufficientStockError):
            allocate(product_id=PRODUCT, requested_qty=3, snapshot={}, today=TODAY)
        (trace,) = traces(captured_logs)
        assert trace["engine_name"] == "fefo_allocate"
        assert trace["outcome"] == "InsufficientStockError"

    def test_allocation_trace(self, captured_logs):
        batch = BatchSnapshot(
            batch_id=UUID("00000000-0000-4000-8000-0000000000b1"),
            product_id=PRODUCT,
            batch_number="B1",
            quantity=5,
            original_quantity=5,
            expiry_date=date(2025, 1, 10),
            purchase_date=date(2024, 12, 1),
            cost_price=Decimal("4.00"),
            selling_price=Decimal("6.00"),
        )
        allocate(PRODUCT, 3, {PRODUCT: (batch,)}, TODAY)
        allocate(product_id=PRODUCT, requested_qty=3, snapshot={PRODUCT: (batch,)}, today=TODAY)
        first, second = traces(captured_logs)
        assert first["input_fingerprint"] == second["input_fingerprint"]
