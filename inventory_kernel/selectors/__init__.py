"""Read-only query selectors."""

from inventory_kernel.selectors.batch_selector import BatchSelector
from inventory_kernel.selectors.product_selector import ProductSelector
from inventory_kernel.selectors.sale_selector import SaleSelector

__all__ = ["BatchSelector", "ProductSelector", "SaleSelector"]
