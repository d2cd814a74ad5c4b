"""
BatchDeduction -- the audit record of stock taken from one batch.

Responsibility:
    A frozen, strictly validated value object recording that ``quantity``
    units of one sale line were taken from batch ``batch_id``.  The ordered
    list of deductions on a sale item is the only link between a sale and the
    batches it consumed, so returns and profit reporting both depend on it.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Record format (schema version 1)::

    {"v": 1, "batch_id": "<uuid>", "batch_number": "<str>",
     "quantity": <int > 0>, "expiry_date": "YYYY-MM-DD"}

    Keys must match exactly.  Unknown versions are rejected rather than
    guessed at.

Failure modes:
    - InvalidDeductionRecordError on construction with bad values or on
      parsing a record that does not match the schema.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from inventory_kernel.exceptions import InvalidDeductionRecordError

DEDUCTION_SCHEMA_VERSION = 1

_RECORD_KEYS = frozenset({"v", "batch_id", "batch_number", "quantity", "expiry_date"})


@dataclass(frozen=True)
class BatchDeduction:
    """Units of one sale line taken from one batch."""

    batch_id: UUID
    batch_number: str
    quantity: int
    expiry_date: date

    def __post_init__(self) -> None:
        if not isinstance(self.batch_id, UUID):
            raise InvalidDeductionRecordError("batch_id must be a UUID", record=self)
        if not isinstance(self.batch_number, str) or not self.batch_number.strip():
            raise InvalidDeductionRecordError("batch_number must be a non-empty string", record=self)
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidDeductionRecordError("quantity must be an integer", record=self)
        if self.quantity <= 0:
            raise InvalidDeductionRecordError("quantity must be positive", record=self)
        # datetime is a date subclass; a timestamp here means a caller mixed them up
        if isinstance(self.expiry_date, datetime) or not isinstance(self.expiry_date, date):
            raise InvalidDeductionRecordError("expiry_date must be a date", record=self)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the current versioned record format."""
        return {
            "v": DEDUCTION_SCHEMA_VERSION,
            "batch_id": str(self.batch_id),
            "batch_number": self.batch_number,
            "quantity": self.quantity,
            "expiry_date": self.expiry_date.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Any) -> "BatchDeduction":
        """
        Parse a stored record.

        Raises:
            InvalidDeductionRecordError: record is not a dict, has missing or
                extra keys, an unsupported version, or badly typed values.
        """
        if not isinstance(record, dict):
            raise InvalidDeductionRecordError(
                f"record must be an object, got {type(record).__name__}", record=record
            )
        keys = set(record)
        if keys != _RECORD_KEYS:
            missing = sorted(_RECORD_KEYS - keys)
            extra = sorted(keys - _RECORD_KEYS)
            raise InvalidDeductionRecordError(
                f"record keys mismatch (missing={missing}, unexpected={extra})",
                record=record,
            )
        version = record["v"]
        if isinstance(version, bool) or version != DEDUCTION_SCHEMA_VERSION:
            raise InvalidDeductionRecordError(
                f"unsupported record version {version!r}", record=record
            )

        raw_batch_id = record["batch_id"]
        if not isinstance(raw_batch_id, str):
            raise InvalidDeductionRecordError("batch_id must be a string", record=record)
        try:
            batch_id = UUID(raw_batch_id)
        except ValueError:
            raise InvalidDeductionRecordError(
                f"batch_id is not a UUID: {raw_batch_id!r}", record=record
            ) from None

        raw_expiry = record["expiry_date"]
        if not isinstance(raw_expiry, str):
            raise InvalidDeductionRecordError("expiry_date must be an ISO date string", record=record)
        try:
            expiry_date = date.fromisoformat(raw_expiry)
        except ValueError:
            raise InvalidDeductionRecordError(
                f"expiry_date is not an ISO date: {raw_expiry!r}", record=record
            ) from None

        return cls(
            batch_id=batch_id,
            batch_number=record["batch_number"],
            quantity=record["quantity"],
            expiry_date=expiry_date,
        )


def deductions_from_records(records: Any) -> list[BatchDeduction]:
    """Parse a stored JSON array of deduction records, preserving order."""
    if not isinstance(records, list):
        raise InvalidDeductionRecordError(
            f"deductions must be an array, got {type(records).__name__}", record=records
        )
    return [BatchDeduction.from_record(r) for r in records]


def total_quantity(deductions: list[BatchDeduction] | tuple[BatchDeduction, ...]) -> int:
    return sum(d.quantity for d in deductions)
