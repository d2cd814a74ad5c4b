"""
Module: inventory_services
Responsibility:
    Stateful orchestration over the inventory kernel: checkout, returns,
    reporting, the transactional unit of work and the stock change feed.

Architecture position:
    Services -- may import inventory_kernel, inventory_engines and
    inventory_config.  Nothing in the kernel or the engines imports this
    package.
"""

from inventory_services.change_feed import ChangeFeed, StockChanged
from inventory_services.read_model import StockReadModel
from inventory_services.reporting_service import ReportingService
from inventory_services.return_service import ReturnService
from inventory_services.sale_service import SaleService
from inventory_services.unit_of_work import UnitOfWork, translate_db_error

__all__ = [
    "ChangeFeed",
    "ReportingService",
    "ReturnService",
    "SaleService",
    "StockChanged",
    "StockReadModel",
    "UnitOfWork",
    "translate_db_error",
]
