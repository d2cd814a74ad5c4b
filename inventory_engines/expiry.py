"""
inventory_engines.expiry -- Expiry classification of stock batches.

Responsibility:
    Decide whether a batch is expired, expiring soon or active relative to
    a reference date, and partition batches into expiry alerts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The reference date is
    always passed in; this module never reads the clock.

Rules:
    - expired        iff expiry_date <  today
    - expiring_soon  iff today <= expiry_date < today + horizon_days
    - active         otherwise
    A batch expiring today is still sellable today.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from inventory_kernel.domain.snapshots import BatchSnapshot, ExpiryStatus
from inventory_kernel.exceptions import ValidationError

DEFAULT_EXPIRY_HORIZON_DAYS = 30


def _check_horizon(horizon_days: int) -> None:
    if isinstance(horizon_days, bool) or not isinstance(horizon_days, int) or horizon_days < 0:
        raise ValidationError(
            "horizon_days must be a non-negative integer",
            field="horizon_days",
            value=horizon_days,
        )


def classify_expiry(
    expiry_date: date,
    today: date,
    horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS,
) -> ExpiryStatus:
    """Classify an expiry date relative to ``today``."""
    _check_horizon(horizon_days)
    if expiry_date < today:
        return ExpiryStatus.EXPIRED
    if expiry_date < today + timedelta(days=horizon_days):
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.ACTIVE


def is_sellable(batch: BatchSnapshot, today: date) -> bool:
    """A batch can be sold from iff it has stock and has not expired."""
    return batch.quantity > 0 and batch.expiry_date >= today


def partition_alerts(
    batches: Iterable[BatchSnapshot],
    today: date,
    horizon_days: int = DEFAULT_EXPIRY_HORIZON_DAYS,
) -> tuple[tuple[BatchSnapshot, ...], tuple[BatchSnapshot, ...]]:
    """
    Split batches with stock into (expiring_soon, expired), each in FEFO order.

    Zero-quantity batches never alert.
    """
    _check_horizon(horizon_days)
    expiring: list[BatchSnapshot] = []
    expired: list[BatchSnapshot] = []
    for batch in batches:
        if batch.quantity <= 0:
            continue
        status = classify_expiry(batch.expiry_date, today, horizon_days)
        if status is ExpiryStatus.EXPIRED:
            expired.append(batch)
        elif status is ExpiryStatus.EXPIRING_SOON:
            expiring.append(batch)
    expiring.sort(key=lambda b: b.fefo_key)
    expired.sort(key=lambda b: b.fefo_key)
    return tuple(expiring), tuple(expired)
