"""
Module: inventory_kernel.selectors.product_selector
Responsibility: Read access to products and racks.
Architecture position: Kernel > Selectors.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from inventory_kernel.models.product import Product
from inventory_kernel.models.rack import Rack
from inventory_kernel.selectors.base import BaseSelector


class ProductSelector(BaseSelector[Product]):
    """Query products."""

    def get(self, product_id: UUID) -> Product | None:
        return self.session.get(Product, product_id)

    def get_many(self, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        rows = self.session.execute(select(Product).where(Product.id.in_(ids))).scalars()
        return {p.id: p for p in rows}

    def find_by_barcode(self, barcode: str, active_only: bool = True) -> Product | None:
        stmt = select(Product).where(Product.barcode == barcode)
        if active_only:
            stmt = stmt.where(Product.is_active.is_(True))
        return self.session.execute(stmt).scalar_one_or_none()

    def list_active(self) -> list[Product]:
        stmt = select(Product).where(Product.is_active.is_(True)).order_by(Product.name, Product.id)
        return list(self.session.execute(stmt).scalars())

    def get_rack_by_name(self, name: str) -> Rack | None:
        return self.session.execute(select(Rack).where(Rack.name == name)).scalar_one_or_none()
