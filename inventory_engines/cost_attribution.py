"""
inventory_engines.cost_attribution -- Cost of goods sold per sale item.

Responsibility:
    Attribute a unit cost to a sale item from the batches it was taken
    from, and compute item profit as (unit_price - unit_cost) * quantity.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Batch costs are looked up
    by the caller and passed in as a mapping.

Strategies:
    first_batch       Cost of the first deduction's batch.  An
                      approximation: exact only when the item came from a
                      single batch.  Default, matching historical reports.
    weighted_average  Deduction-quantity-weighted mean of batch costs.
                      Exact for mixed-batch items.

Failure modes:
    - ValueError for an unknown strategy name.
    - BatchNotFoundError when a deduction's batch has no cost.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.deduction import BatchDeduction
from inventory_kernel.domain.values import ZERO, round_money
from inventory_kernel.exceptions import BatchNotFoundError


class CostAttributionStrategy(ABC):
    """Maps a sale item's deductions to a single unit cost."""

    name: str = ""

    @abstractmethod
    def unit_cost(
        self,
        deductions: Sequence[BatchDeduction],
        batch_costs: Mapping[UUID, Decimal],
    ) -> Decimal:
        ...

    @staticmethod
    def _cost_of(batch_id: UUID, batch_costs: Mapping[UUID, Decimal]) -> Decimal:
        try:
            return batch_costs[batch_id]
        except KeyError:
            raise BatchNotFoundError(str(batch_id)) from None


class FirstBatchCost(CostAttributionStrategy):
    name = "first_batch"

    def unit_cost(self, deductions, batch_costs):
        if not deductions:
            return ZERO
        return self._cost_of(deductions[0].batch_id, batch_costs)


class WeightedAverageCost(CostAttributionStrategy):
    name = "weighted_average"

    def unit_cost(self, deductions, batch_costs):
        total_quantity = sum(d.quantity for d in deductions)
        if total_quantity == 0:
            return ZERO
        total_cost = sum(
            (self._cost_of(d.batch_id, batch_costs) * d.quantity for d in deductions),
            ZERO,
        )
        return total_cost / total_quantity


_STRATEGIES: dict[str, type[CostAttributionStrategy]] = {
    FirstBatchCost.name: FirstBatchCost,
    WeightedAverageCost.name: WeightedAverageCost,
}


def available_strategies() -> tuple[str, ...]:
    return tuple(sorted(_STRATEGIES))


def get_strategy(name: str) -> CostAttributionStrategy:
    try:
        return _STRATEGIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown cost attribution strategy {name!r}; "
            f"expected one of {', '.join(available_strategies())}"
        ) from None


def item_profit(
    unit_price: Decimal,
    quantity: int,
    deductions: Sequence[BatchDeduction],
    batch_costs: Mapping[UUID, Decimal],
    strategy: CostAttributionStrategy | None = None,
) -> tuple[Decimal, Decimal]:
    """
    Return ``(unit_cost, profit)`` for one sale item.

    ``profit = round((unit_price - unit_cost) * quantity)``.
    """
    strategy = strategy or FirstBatchCost()
    unit_cost = strategy.unit_cost(deductions, batch_costs)
    profit = round_money((unit_price - unit_cost) * quantity)
    return unit_cost, profit
