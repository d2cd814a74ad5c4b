"""
Inventory Kernel

The batch stock ledger behind the point of sale:
- Perishable stock tracked in discrete, dated batches
- Atomic conditional decrements (no overdraft under concurrency)
- Append-only sales and returns with a strict deduction audit trail
- Row-locked receipt numbering
"""

__version__ = "0.1.0"
