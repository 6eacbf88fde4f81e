"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.transaction import (
    EntrySide,
    LedgerMovement,
    ReferenceType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.services.sequence_service import SequenceCounter

__all__ = [
    "Account",
    "AccountType",
    "NormalBalance",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "ReferenceType",
    "LedgerMovement",
    "EntrySide",
    "SequenceCounter",
]
