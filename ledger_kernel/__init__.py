"""
Ledger Kernel

A double-entry bookkeeping core with:
- Chart of accounts with type-derived normal balances
- Two-account transactions with an explicit approval/posting lifecycle
- Atomic, exactly-once balance application on posting
- Append-only ledger movements for historical balance replay
"""

__version__ = "0.1.0"
