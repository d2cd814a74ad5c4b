"""Tests for expiry classification and alerts."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_engines.expiry import classify_expiry, partition_alerts
from inventory_kernel.domain.snapshots import BatchSnapshot, ExpiryStatus
from inventory_kernel.exceptions import ValidationError

TODAY = date(2025, 1, 1)


def snap(quantity: int, expiry: date) -> BatchSnapshot:
    return BatchSnapshot(
        batch_id=uuid4(),
        product_id=uuid4(),
        batch_number="B",
        quantity=quantity,
        original_quantity=max(quantity, 1),
        expiry_date=expiry,
        purchase_date=date(2024, 1, 1),
        cost_price=Decimal("1.00"),
        selling_price=Decimal("2.00"),
    )


class TestClassifyExpiry:
    @pytest.mark.parametrize(
        "offset,expected",
        [
            (-1, ExpiryStatus.EXPIRED),
            (0, ExpiryStatus.EXPIRING_SOON),
            (29, ExpiryStatus.EXPIRING_SOON),
            (30, ExpiryStatus.ACTIVE),
            (365, ExpiryStatus.ACTIVE),
        ],
    )
    def test_default_horizon(self, offset, expected):
        assert classify_expiry(TODAY + timedelta(days=offset), TODAY) is expected

    def test_custom_horizon(self):
        assert classify_expiry(TODAY + timedelta(days=5), TODAY, 7) is ExpiryStatus.EXPIRING_SOON
        assert classify_expiry(TODAY + timedelta(days=7), TODAY, 7) is ExpiryStatus.ACTIVE

    def test_negative_horizon_rejected(self):
        with pytest.raises(ValidationError):
            classify_expiry(TODAY, TODAY, -1)


class TestPartitionAlerts:
    def test_groups_and_sorts(self):
        late = snap(1, TODAY + timedelta(days=20))
        soon = snap(1, TODAY + timedelta(days=2))
        gone = snap(3, TODAY - timedelta(days=4))
        fine = snap(9, TODAY + timedelta(days=90))
        expiring, expired = partition_alerts([late, fine, gone, soon], TODAY)
        assert expiring == (soon, late)
        assert expired == (gone,)

    def test_zero_quantity_never_alerts(self):
        expiring, expired = partition_alerts(
            [snap(0, TODAY - timedelta(days=1)), snap(0, TODAY + timedelta(days=1))], TODAY
        )
        assert expiring == ()
        assert expired == ()
