"""
Module: inventory_kernel.db.types
Responsibility: Annotated column type aliases and the validated JSON column
    type that stores a sale item's batch deductions.
Architecture position: Kernel > DB.  May import from domain/ value objects
    (pure, no I/O).  MUST NOT import from models/, services/ or selectors/.

Invariants enforced:
    - Deductions are validated against the versioned record schema both when
      written and when read.  A malformed row never reaches service code as a
      plain dict.

Failure modes:
    - InvalidDeductionRecordError on any schema mismatch in either direction.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import JSON, Numeric, String
from sqlalchemy.types import TypeDecorator

from inventory_kernel.domain.deduction import (
    BatchDeduction,
    deductions_from_records,
)
from inventory_kernel.exceptions import InvalidDeductionRecordError

# Prices and totals: 12 digits, 2 decimal places
Money = Annotated[Decimal, Numeric(12, 2)]

ShortCode = Annotated[str, String(64)]

Name = Annotated[str, String(200)]

LongText = Annotated[str, String(1000)]


class DeductionListType(TypeDecorator):
    """
    Ordered list of BatchDeduction stored as a JSON array of versioned records.

    Binding accepts only a list/tuple of BatchDeduction instances; loading
    parses every element with BatchDeduction.from_record.
    """

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise InvalidDeductionRecordError(
                f"expected a list of deductions, got {type(value).__name__}",
                record=value,
            )
        records = []
        for item in value:
            if not isinstance(item, BatchDeduction):
                raise InvalidDeductionRecordError(
                    f"expected BatchDeduction, got {type(item).__name__}",
                    record=item,
                )
            records.append(item.to_record())
        return records

    def process_result_value(self, value, dialect):
        if value is None:
            return []
        return deductions_from_records(value)
