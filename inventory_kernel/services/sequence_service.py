"""
SequenceService -- monotonic receipt numbering via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers for receipt codes.  Uses a
    dedicated counter table with row-level locking (``SELECT ... FOR
    UPDATE``) so that concurrent sales never share a number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by SaleService inside the sale's transaction.

Invariants enforced:
    - Monotonicity: the locked counter row is the sole source of truth for
      the next value.  Scanning sales for max()+1 is FORBIDDEN except to
      seed a counter on its very first use (a database that predates the
      counter table keeps its numbering).
    - Transactional: the increment is only visible after the caller's
      transaction commits.  A rolled-back sale does not consume a number.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and re-read under lock).
"""

import re
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.sequence_counter import SequenceCounter
from inventory_kernel.selectors.sale_selector import SaleSelector
from inventory_kernel.services.base import BaseService

logger = get_logger("services.sequence")

DEFAULT_RECEIPT_PREFIX = "RCP-"
DEFAULT_RECEIPT_WIDTH = 6


def format_receipt_code(prefix: str, number: int, width: int = DEFAULT_RECEIPT_WIDTH) -> str:
    """``format_receipt_code("RCP-", 42)`` -> ``"RCP-000042"``."""
    return f"{prefix}{number:0{width}d}"


def parse_receipt_number(code: str, prefix: str) -> int | None:
    """Numeric part of a receipt code with ``prefix``, or None if it has none."""
    if not code.startswith(prefix):
        return None
    digits = code[len(prefix):]
    if not re.fullmatch(r"[0-9]+", digits):
        return None
    return int(digits)


class SequenceService(BaseService[SequenceCounter]):
    """
    Service for generating transactional sequence numbers.

    Usage:
        with session.begin():
            code = SequenceService(session).next_receipt_code("RCP-", 6)
            # If the transaction rolls back, the number is not consumed
    """

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self.session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str, seed: Callable[[], int] | None = None) -> int:
        """
        Get the next value for a named sequence.

        Args:
            sequence_name: Name of the sequence.
            seed: Called once, when the counter row does not exist yet, to
                find the highest value already in use.  Defaults to 0.

        Returns:
            The next sequence value (always > 0).
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            start = (seed() if seed is not None else 0) + 1
            # Another transaction may create the counter at the same moment;
            # a savepoint keeps the rest of the sale intact if we lose.
            savepoint = self.session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=start)
                self.session.add(counter)
                self.session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": start, "seeded": True},
                )
                return start
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def next_receipt_code(
        self,
        prefix: str = DEFAULT_RECEIPT_PREFIX,
        width: int = DEFAULT_RECEIPT_WIDTH,
    ) -> str:
        """Allocate the next receipt code for ``prefix``."""

        def highest_existing() -> int:
            numbers = (
                parse_receipt_number(code, prefix)
                for code in SaleSelector(self.session).receipt_codes_with_prefix(prefix)
            )
            return max((n for n in numbers if n is not None), default=0)

        number = self.next_value(f"receipt:{prefix}", seed=highest_existing)
        return format_receipt_code(prefix, number, width)
