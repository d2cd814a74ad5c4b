"""
inventory_engines.sale_lifecycle -- Sale finalization state machine.

    VALIDATING --> ALLOCATING --> COMMITTING --> COMMITTED
        |              |  ^            |
        v              v  +------------+  (retry after a lost race)
     REJECTED       REJECTED

REJECTED and COMMITTED are terminal.  A rejected sale has no side effects:
nothing was written, and no receipt number was consumed.
"""

from __future__ import annotations

from enum import Enum

from inventory_kernel.exceptions import InvalidSaleTransitionError


class SaleStage(str, Enum):
    VALIDATING = "validating"
    ALLOCATING = "allocating"
    COMMITTING = "committing"
    COMMITTED = "committed"
    REJECTED = "rejected"


VALID_TRANSITIONS: dict[SaleStage, frozenset[SaleStage]] = {
    SaleStage.VALIDATING: frozenset({SaleStage.ALLOCATING, SaleStage.REJECTED}),
    SaleStage.ALLOCATING: frozenset({SaleStage.COMMITTING, SaleStage.REJECTED}),
    SaleStage.COMMITTING: frozenset({SaleStage.COMMITTED, SaleStage.ALLOCATING}),
    SaleStage.COMMITTED: frozenset(),
    SaleStage.REJECTED: frozenset(),
}


class SaleLifecycle:
    """Tracks one finalize_sale call through its stages."""

    def __init__(self) -> None:
        self._stage = SaleStage.VALIDATING
        self._history: list[SaleStage] = [SaleStage.VALIDATING]

    @property
    def stage(self) -> SaleStage:
        return self._stage

    @property
    def history(self) -> tuple[SaleStage, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self._stage]

    def advance(self, to_stage: SaleStage) -> SaleStage:
        if to_stage not in VALID_TRANSITIONS[self._stage]:
            raise InvalidSaleTransitionError(self._stage.value, to_stage.value)
        self._stage = to_stage
        self._history.append(to_stage)
        return to_stage

    def reject(self) -> None:
        self.advance(SaleStage.REJECTED)
