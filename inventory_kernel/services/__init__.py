"""Kernel services: the batch ledger, receipt numbering and the catalog."""

from inventory_kernel.services.batch_ledger import BatchLedger
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.sequence_service import SequenceService

__all__ = ["BatchLedger", "CatalogService", "SequenceService"]
