"""ORM models for the inventory kernel."""

from inventory_kernel.models.product import DEFAULT_MIN_STOCK, Product
from inventory_kernel.models.rack import DEFAULT_RACK_COLOR, Rack
from inventory_kernel.models.sale import Sale, SaleItem
from inventory_kernel.models.sales_return import ReturnItem, SalesReturn
from inventory_kernel.models.sequence_counter import SequenceCounter
from inventory_kernel.models.stock_adjustment import AdjustmentKind, StockAdjustment
from inventory_kernel.models.stock_batch import StockBatch


def import_all_models() -> None:
    """Ensure every model is registered on Base.metadata (imports above do it)."""


__all__ = [
    "AdjustmentKind",
    "DEFAULT_MIN_STOCK",
    "DEFAULT_RACK_COLOR",
    "Product",
    "Rack",
    "ReturnItem",
    "Sale",
    "SaleItem",
    "SalesReturn",
    "SequenceCounter",
    "StockAdjustment",
    "StockBatch",
    "import_all_models",
]
