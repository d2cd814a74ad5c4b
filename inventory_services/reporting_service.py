"""
ReportingService -- profit, sales summaries and stock dashboards.

Responsibility:
    Read-only reports over committed sales and current stock: per-item and
    per-sale profit under the configured cost attribution strategy, sales
    summaries for a time range, low-stock and out-of-stock lists, expiry
    alerts and the dashboard counters.

Architecture position:
    Services -- read side.  Works on a caller-owned session and never
    writes.  Cost attribution is an engine (inventory_engines.cost_attribution).

Notes:
    Summary profit is net of cart discounts: the sum of item profits minus
    the discount granted on those sales.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, time, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerConfig
from inventory_engines.cost_attribution import CostAttributionStrategy, get_strategy, item_profit
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.dtos import (
    DashboardStats,
    ExpiryAlerts,
    ItemProfit,
    SaleProfit,
    SalesSummary,
    StockLevel,
)
from inventory_kernel.domain.values import ZERO, round_money
from inventory_kernel.exceptions import NotFoundError, SaleNotFoundError, ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sale import SaleItem
from inventory_kernel.selectors.batch_selector import BatchSelector
from inventory_kernel.selectors.product_selector import ProductSelector
from inventory_kernel.selectors.sale_selector import SaleSelector
from inventory_kernel.services.batch_ledger import BatchLedger

logger = get_logger("services.reporting")


class ReportingService:
    def __init__(
        self,
        session: Session,
        clock: Clock,
        config: LedgerConfig | None = None,
        strategy: CostAttributionStrategy | None = None,
    ):
        self._session = session
        self._clock = clock
        self._config = config or LedgerConfig.with_defaults()
        self._strategy = strategy or get_strategy(self._config.cost_attribution)
        self._sales = SaleSelector(session)
        self._batches = BatchSelector(session)
        self._products = ProductSelector(session)
        self._ledger = BatchLedger(session, clock, self._config.expiry_horizon_days)

    @property
    def strategy_name(self) -> str:
        return self._strategy.name

    # ------------------------------------------------------------------
    # Profit
    # ------------------------------------------------------------------

    def item_profit(self, item: SaleItem | UUID) -> ItemProfit:
        """(unit_price - attributed unit cost) * quantity for one sale item."""
        if not isinstance(item, SaleItem):
            found = self._sales.get_item(item)
            if found is None:
                raise NotFoundError(f"Sale item not found: {item}")
            item = found
        return self._profits([item])[0]

    def sale_profit(self, sale_id: UUID) -> SaleProfit:
        sale = self._sales.get(sale_id)
        if sale is None:
            raise SaleNotFoundError(str(sale_id))
        items = self._profits(self._sales.items(sale.id))
        return SaleProfit(
            sale_id=sale.id,
            receipt_code=sale.receipt_code,
            strategy=self._strategy.name,
            items=tuple(items),
            profit=round_money(sum((i.profit for i in items), ZERO)),
        )

    def _profits(self, items: Sequence[SaleItem]) -> list[ItemProfit]:
        costs = self._batches.cost_prices(
            d.batch_id for item in items for d in item.deductions
        )
        results = []
        for item in items:
            unit_cost, profit = item_profit(
                item.unit_price, item.quantity, item.deductions, costs, self._strategy
            )
            results.append(
                ItemProfit(
                    sale_item_id=item.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    unit_cost=round_money(unit_cost),
                    profit=profit,
                )
            )
        return results

    # ------------------------------------------------------------------
    # Sales
    # ------------------------------------------------------------------

    def sales_summary(self, start: datetime, end: datetime) -> SalesSummary:
        """Figures for sales created in ``[start, end)``."""
        if end < start:
            raise ValidationError("end must not be before start", field="end", value=end)
        sales = self._sales.sales_between(start, end)
        items = self._sales.items_for_sales(s.id for s in sales)

        transactions = len(sales)
        revenue = round_money(sum((s.total for s in sales), ZERO))
        discount_total = round_money(sum((s.discount_amount for s in sales), ZERO))
        gross_profit = sum((p.profit for p in self._profits(items)), ZERO)
        summary = SalesSummary(
            start=start,
            end=end,
            transactions=transactions,
            revenue=revenue,
            average_ticket=round_money(revenue / transactions) if transactions else ZERO,
            items_sold=sum(i.quantity for i in items),
            discount_total=discount_total,
            profit=round_money(gross_profit - discount_total),
        )
        logger.debug(
            "sales_summary_computed",
            extra={"transactions": transactions, "revenue": revenue, "strategy": self._strategy.name},
        )
        return summary

    def today_range(self) -> tuple[datetime, datetime]:
        """Start and end of the clock's current day, in its timezone."""
        now = self._clock.now()
        start = datetime.combine(now.date(), time.min, tzinfo=now.tzinfo)
        return start, start + timedelta(days=1)

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------

    def stock_levels(self) -> list[StockLevel]:
        """Sellable stock of every active product, by name."""
        available = self._batches.available_by_product(self._clock.today())
        return [
            StockLevel(
                product_id=p.id,
                product_name=p.name,
                available=available.get(p.id, 0),
                min_stock=p.min_stock,
            )
            for p in self._products.list_active()
        ]

    def low_stock(self, levels: Iterable[StockLevel] | None = None) -> list[StockLevel]:
        """Active products with 0 < available <= min_stock."""
        levels = self.stock_levels() if levels is None else levels
        return [lvl for lvl in levels if 0 < lvl.available <= lvl.min_stock]

    def out_of_stock(self, levels: Iterable[StockLevel] | None = None) -> list[StockLevel]:
        levels = self.stock_levels() if levels is None else levels
        return [lvl for lvl in levels if lvl.available == 0]

    def expiry_alerts(self, horizon_days: int | None = None) -> ExpiryAlerts:
        return self._ledger.expiry_alerts(horizon_days)

    def dashboard_stats(self) -> DashboardStats:
        start, end = self.today_range()
        today_sales = self._sales.sales_between(start, end)
        levels = self.stock_levels()
        alerts = self.expiry_alerts()
        return DashboardStats(
            today_sales=round_money(sum((s.total for s in today_sales), ZERO)),
            today_transactions=len(today_sales),
            total_products=len(levels),
            low_stock_count=len(self.low_stock(levels)),
            out_of_stock_count=len(self.out_of_stock(levels)),
            expiring_count=len(alerts.expiring_soon),
            expired_count=len(alerts.expired),
        )
