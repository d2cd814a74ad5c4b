"""
Module: inventory_kernel.models.rack
Responsibility: ORM persistence for racks, the named, color-coded shelf
    locations products are stored on.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base

DEFAULT_RACK_COLOR = "#10b981"


class Rack(Base):
    """A shelf location.  Names are unique store-wide."""

    __tablename__ = "racks"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # Hex color used by the shelf labels, e.g. "#10b981"
    color: Mapped[str] = mapped_column(String(7), nullable=False, default=DEFAULT_RACK_COLOR)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<Rack {self.name}>"
