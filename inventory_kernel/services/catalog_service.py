"""
CatalogService -- racks and products.

Responsibility:
    Create and maintain the product catalog: racks (shelf locations) and
    products.  Neither is ever deleted; deactivating a product hides it
    from the till while keeping every historical sale and batch intact.

Architecture position:
    Kernel > Services.  Flushes within the caller's transaction.

Failure modes:
    - ValidationError for missing names, bad colors, negative min stock,
      duplicate barcodes or rack names, unknown racks, or unknown fields.
    - ProductNotFoundError for unknown product ids.
"""

import re
from typing import Any
from uuid import UUID

from inventory_kernel.domain.clock import Clock
from inventory_kernel.exceptions import ProductNotFoundError, ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.product import DEFAULT_MIN_STOCK, Product
from inventory_kernel.models.rack import DEFAULT_RACK_COLOR, Rack
from inventory_kernel.selectors.product_selector import ProductSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")

# Fields update_product may change.  Identity (id, barcode) and lifecycle
# (is_active, timestamps) have dedicated operations or none at all.
UPDATABLE_PRODUCT_FIELDS = frozenset(
    {
        "name",
        "category",
        "strength",
        "dosage_form",
        "formula",
        "manufacturer",
        "min_stock",
        "rack_id",
    }
)

UPDATABLE_RACK_FIELDS = frozenset({"name", "color", "description"})


def _check_color(color: str | None) -> str:
    if not _HEX_COLOR.match(color or ""):
        raise ValidationError("Rack color must be a #rrggbb hex value", field="color", value=color)
    return color.lower()


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class CatalogService(BaseService[Product]):
    """Create and maintain racks and products."""

    def __init__(self, session, clock: Clock):
        super().__init__(session)
        self._clock = clock
        self._products = ProductSelector(session)

    def create_rack(
        self,
        name: str,
        color: str = DEFAULT_RACK_COLOR,
        description: str | None = None,
    ) -> Rack:
        name = self._check_rack_name(name)
        color = _check_color(color)

        rack = Rack(
            name=name,
            color=color,
            description=_clean_optional(description),
            created_at=self._clock.now_utc(),
        )
        self.session.add(rack)
        self.session.flush()
        logger.info("rack_created", extra={"rack_id": str(rack.id), "rack_name": name})
        return rack

    def update_rack(self, rack_id: UUID, **changes: Any) -> Rack:
        """Rename, recolor or redescribe a rack.  Racks are never deleted."""
        unknown = set(changes) - UPDATABLE_RACK_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update rack fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )
        rack = self.session.get(Rack, rack_id)
        if rack is None:
            raise ValidationError(f"Rack not found: {rack_id}", field="rack_id", value=str(rack_id))
        if "name" in changes:
            changes["name"] = self._check_rack_name(changes["name"], rack)
        if "color" in changes:
            changes["color"] = _check_color(changes["color"])
        if "description" in changes:
            changes["description"] = _clean_optional(changes["description"])

        for key, value in changes.items():
            setattr(rack, key, value)
        self.session.flush()
        logger.info("rack_updated", extra={"rack_id": str(rack_id), "fields": sorted(changes)})
        return rack

    def create_product(
        self,
        name: str,
        barcode: str | None = None,
        category: str | None = None,
        strength: str | None = None,
        dosage_form: str | None = None,
        formula: str | None = None,
        manufacturer: str | None = None,
        min_stock: int = DEFAULT_MIN_STOCK,
        rack_id: UUID | None = None,
    ) -> Product:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Product name is required", field="name", value=name)
        self._check_min_stock(min_stock)
        barcode = _clean_optional(barcode)
        if barcode is not None and self._products.find_by_barcode(barcode, active_only=False):
            raise ValidationError(f"Barcode {barcode} is already in use", field="barcode", value=barcode)
        self._check_rack(rack_id)

        now = self._clock.now_utc()
        product = Product(
            name=name,
            barcode=barcode,
            category=_clean_optional(category),
            strength=_clean_optional(strength),
            dosage_form=_clean_optional(dosage_form),
            formula=_clean_optional(formula),
            manufacturer=_clean_optional(manufacturer),
            min_stock=min_stock,
            is_active=True,
            rack_id=rack_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(product)
        self.session.flush()
        logger.info(
            "product_created",
            extra={"product_id": str(product.id), "product_name": name, "barcode": barcode},
        )
        return product

    def update_product(self, product_id: UUID, **changes: Any) -> Product:
        """Change display attributes, min stock or rack of a product."""
        unknown = set(changes) - UPDATABLE_PRODUCT_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update product fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )
        product = self._get(product_id)
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("Product name is required", field="name", value=name)
            changes["name"] = name
        if "min_stock" in changes:
            self._check_min_stock(changes["min_stock"])
        if "rack_id" in changes:
            self._check_rack(changes["rack_id"])
        for key in ("category", "strength", "dosage_form", "formula", "manufacturer"):
            if key in changes:
                changes[key] = _clean_optional(changes[key])

        for key, value in changes.items():
            setattr(product, key, value)
        product.updated_at = self._clock.now_utc()
        self.session.flush()
        logger.info(
            "product_updated",
            extra={"product_id": str(product_id), "fields": sorted(changes)},
        )
        return product

    def deactivate_product(self, product_id: UUID) -> Product:
        return self._set_active(product_id, False)

    def reactivate_product(self, product_id: UUID) -> Product:
        return self._set_active(product_id, True)

    def find_by_barcode(self, barcode: str) -> Product | None:
        """Active product with this barcode, if any."""
        return self._products.find_by_barcode(barcode.strip(), active_only=True)

    def _set_active(self, product_id: UUID, active: bool) -> Product:
        product = self._get(product_id)
        if product.is_active != active:
            product.is_active = active
            product.updated_at = self._clock.now_utc()
            self.session.flush()
            logger.info(
                "product_activated" if active else "product_deactivated",
                extra={"product_id": str(product_id)},
            )
        return product

    def _get(self, product_id: UUID) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _check_rack_name(self, name: str | None, rack: Rack | None = None) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Rack name is required", field="name", value=name)
        existing = self._products.get_rack_by_name(name)
        if existing is not None and existing is not rack:
            raise ValidationError(f"Rack {name!r} already exists", field="name", value=name)
        return name

    def _check_rack(self, rack_id: UUID | None) -> None:
        if rack_id is not None and self.session.get(Rack, rack_id) is None:
            raise ValidationError(f"Rack not found: {rack_id}", field="rack_id", value=str(rack_id))

    @staticmethod
    def _check_min_stock(min_stock: object) -> None:
        if isinstance(min_stock, bool) or not isinstance(min_stock, int) or min_stock < 0:
            raise ValidationError(
                "min_stock must be a non-negative integer", field="min_stock", value=min_stock
            )
