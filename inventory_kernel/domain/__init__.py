"""Pure domain values: clock, money helpers, deductions, snapshots and DTOs."""
