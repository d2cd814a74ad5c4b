"""Tests for the sale finalization state machine."""

import pytest

from inventory_engines.sale_lifecycle import SaleLifecycle, SaleStage
from inventory_kernel.exceptions import InvalidSaleTransitionError


class TestSaleLifecycle:
    def test_happy_path(self):
        lifecycle = SaleLifecycle()
        lifecycle.advance(SaleStage.ALLOCATING)
        lifecycle.advance(SaleStage.COMMITTING)
        lifecycle.advance(SaleStage.COMMITTED)
        assert lifecycle.is_terminal
        assert lifecycle.history == (
            SaleStage.VALIDATING,
            SaleStage.ALLOCATING,
            SaleStage.COMMITTING,
            SaleStage.COMMITTED,
        )

    @pytest.mark.parametrize("steps", [[], [SaleStage.ALLOCATING]])
    def test_reject_from_validating_or_allocating(self, steps):
        lifecycle = SaleLifecycle()
        for step in steps:
            lifecycle.advance(step)
        lifecycle.reject()
        assert lifecycle.stage is SaleStage.REJECTED
        assert lifecycle.is_terminal

    def test_retry_returns_to_allocating(self):
        lifecycle = SaleLifecycle()
        lifecycle.advance(SaleStage.ALLOCATING)
        lifecycle.advance(SaleStage.COMMITTING)
        lifecycle.advance(SaleStage.ALLOCATING)
        assert lifecycle.stage is SaleStage.ALLOCATING

    def test_cannot_skip_allocation(self):
        with pytest.raises(InvalidSaleTransitionError) as exc:
            SaleLifecycle().advance(SaleStage.COMMITTED)
        assert exc.value.from_stage == "validating"
        assert exc.value.to_stage == "committed"

    def test_committed_is_terminal(self):
        lifecycle = SaleLifecycle()
        for stage in (SaleStage.ALLOCATING, SaleStage.COMMITTING, SaleStage.COMMITTED):
            lifecycle.advance(stage)
        with pytest.raises(InvalidSaleTransitionError):
            lifecycle.reject()
