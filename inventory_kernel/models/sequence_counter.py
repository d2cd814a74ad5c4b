"""
Module: inventory_kernel.models.sequence_counter
Responsibility: Named counter rows used for receipt numbering.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    # e.g. "receipt:RCP-"
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
