"""
Module: inventory_engines
Responsibility:
    Pure calculation engines behind the point of sale: FEFO allocation,
    expiry classification, cart pricing, return rules, cost attribution
    and the sale state machine.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import inventory_kernel.domain, inventory_kernel.exceptions and
    inventory_kernel.logging_config only.  MUST NOT import sqlalchemy,
    the kernel's db/models/services/selectors, or inventory_services.

Invariants enforced:
    - Purity: engines NEVER read the clock.  "today" and "now" are
      parameters.
    - Decimal-only money arithmetic.
    - Determinism: identical inputs always produce identical outputs.
"""

from inventory_engines.cost_attribution import (
    CostAttributionStrategy,
    FirstBatchCost,
    WeightedAverageCost,
    get_strategy,
    item_profit,
)
from inventory_engines.expiry import classify_expiry, is_sellable, partition_alerts
from inventory_engines.fefo import allocate, apply_plan, fefo_sort_key, sellable_batches
from inventory_engines.pricing import CartTotals, compute_totals
from inventory_engines.returns import (
    group_return_lines,
    plan_credits,
    return_deadline,
    within_return_window,
)
from inventory_engines.sale_lifecycle import SaleLifecycle, SaleStage

__all__ = [
    "CartTotals",
    "CostAttributionStrategy",
    "FirstBatchCost",
    "SaleLifecycle",
    "SaleStage",
    "WeightedAverageCost",
    "allocate",
    "apply_plan",
    "classify_expiry",
    "compute_totals",
    "fefo_sort_key",
    "get_strategy",
    "group_return_lines",
    "is_sellable",
    "item_profit",
    "partition_alerts",
    "plan_credits",
    "return_deadline",
    "sellable_batches",
    "within_return_window",
]
