"""
Ledger Configuration Schema (``inventory_config.schema``).

Responsibility
--------------
Defines the typed, frozen configuration for the sale and return engines.
Every field has a default matching how the till has always behaved, so an
empty configuration is a valid one.

Architecture position
---------------------
**Config layer**.  Consumed by ``inventory_services``.  The kernel and the
engines never import configuration; services pass the relevant values in.

Invariants enforced
-------------------
* Every instance is validated in ``__post_init__``; an invalid
  configuration cannot be constructed.
* Values that switch ledger invariants off do not exist here: there is no
  "allow negative stock" and no "allow returns beyond sold quantity".

Failure modes
-------------
* ``ValueError`` with a descriptive message for any invalid value or, in
  ``from_dict``, any unknown key.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Any, Self

from inventory_kernel.logging_config import get_logger

logger = get_logger("config.schema")

RETURN_DISPOSITION_NONE = "none"
RETURN_DISPOSITION_ORIGINAL_BATCH = "original_batch"

VALID_RETURN_DISPOSITIONS = frozenset({RETURN_DISPOSITION_NONE, RETURN_DISPOSITION_ORIGINAL_BATCH})
VALID_COST_ATTRIBUTIONS = frozenset({"first_batch", "weighted_average"})

MAX_CONFLICT_RETRIES = 5

_CURRENCY = re.compile(r"^[A-Z]{3}$")
_PAYMENT_METHOD = re.compile(r"^[a-z][a-z0-9_]*$")


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class LedgerConfig:
    """
    Configuration for receipts, returns, expiry alerts and units of work.

        config = LedgerConfig(return_window_hours=72, return_disposition="original_batch")
    """

    # Receipts
    receipt_prefix: str = "RCP-"
    receipt_number_width: int = 6

    # Returns
    return_window_hours: int = 48
    return_disposition: str = RETURN_DISPOSITION_NONE

    # Expiry
    expiry_horizon_days: int = 30

    # Reporting
    cost_attribution: str = "first_batch"

    # Units of work
    conflict_retries: int = 1
    unit_of_work_timeout_seconds: float = 10.0

    # Till
    currency: str = "PKR"
    allowed_payment_methods: tuple[str, ...] = ("cash", "card", "mobile")

    def __post_init__(self) -> None:
        if not isinstance(self.receipt_prefix, str) or not self.receipt_prefix:
            raise ValueError("receipt_prefix must be a non-empty string")
        if len(self.receipt_prefix) > 16:
            raise ValueError("receipt_prefix cannot exceed 16 characters")
        if self.receipt_prefix[-1].isdigit():
            raise ValueError("receipt_prefix must not end with a digit")

        if not _is_int(self.receipt_number_width) or not 1 <= self.receipt_number_width <= 12:
            raise ValueError("receipt_number_width must be an integer between 1 and 12")

        if not _is_int(self.return_window_hours) or self.return_window_hours <= 0:
            raise ValueError("return_window_hours must be a positive integer")

        if self.return_disposition not in VALID_RETURN_DISPOSITIONS:
            raise ValueError(
                f"return_disposition must be one of {sorted(VALID_RETURN_DISPOSITIONS)}, "
                f"got '{self.return_disposition}'"
            )

        if not _is_int(self.expiry_horizon_days) or self.expiry_horizon_days < 0:
            raise ValueError("expiry_horizon_days must be a non-negative integer")

        if self.cost_attribution not in VALID_COST_ATTRIBUTIONS:
            raise ValueError(
                f"cost_attribution must be one of {sorted(VALID_COST_ATTRIBUTIONS)}, "
                f"got '{self.cost_attribution}'"
            )

        if not _is_int(self.conflict_retries) or not 0 <= self.conflict_retries <= MAX_CONFLICT_RETRIES:
            raise ValueError(f"conflict_retries must be an integer between 0 and {MAX_CONFLICT_RETRIES}")

        timeout = self.unit_of_work_timeout_seconds
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("unit_of_work_timeout_seconds must be a positive number")

        if not isinstance(self.currency, str) or not _CURRENCY.match(self.currency):
            raise ValueError(f"currency must be a 3-letter uppercase code, got '{self.currency}'")

        methods = self.allowed_payment_methods
        if isinstance(methods, str) or not isinstance(methods, (tuple, list)) or not methods:
            raise ValueError("allowed_payment_methods must be a non-empty list")
        for method in methods:
            if not isinstance(method, str) or not _PAYMENT_METHOD.match(method):
                raise ValueError(f"invalid payment method '{method}'")
        if len(set(methods)) != len(methods):
            raise ValueError("allowed_payment_methods contains duplicates")
        # Lists from YAML become tuples so the config stays hashable.
        object.__setattr__(self, "allowed_payment_methods", tuple(methods))

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a mapping (e.g. parsed YAML).  Unknown keys are errors."""
        if not isinstance(data, dict):
            raise ValueError(f"ledger configuration must be a mapping, got {type(data).__name__}")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown ledger configuration keys: {', '.join(unknown)}")
        logger.info("ledger_config_loading_from_dict", extra={"keys": sorted(data)})
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["allowed_payment_methods"] = list(self.allowed_payment_methods)
        return result
