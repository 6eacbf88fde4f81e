"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for two-account transactions and the
    append-only ledger movements that posting writes.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - (company_id, transaction_number) and (company_id, sequence) are unique.
    - reversal_of_id is unique: a transaction is reversed at most once.
    - Exactly two LedgerMovement rows (one per side) exist for every posted
      transaction, none for any other status (uq_movement_transaction_side).
    - Posted transactions and all movements are immutable
      (db/immutability.py).

Audit relevance:
    Transaction rows carry the approval trail (approved_by/at, posted_by/at,
    rejected_by/at with reason).  LedgerMovement rows are the replay source
    for historical balances and for drift detection.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import ExactDecimal, MinorUnits, TrackedBase, UUIDString
from ledger_kernel.domain.balance_rules import EntrySide
from ledger_kernel.domain.lifecycle import (
    ReferenceType,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "ReferenceType",
    "LedgerMovement",
    "EntrySide",
]


class Transaction(TrackedBase):
    """
    A double-entry transaction: one debit account, one credit account,
    one positive amount.

    Contract:
        Created in PENDING.  Only the posting transition writes movements
        and moves balances.  Once POSTED every column except the audit
        metadata is frozen.

    Guarantees:
        - base_amount = round_money(amount * exchange_rate) and is the
          figure applied to balances.
        - transaction_number is "<prefix>-<zero padded sequence>".
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint("company_id", "transaction_number", name="uq_transaction_number"),
        UniqueConstraint("company_id", "sequence", name="uq_transaction_sequence"),
        UniqueConstraint("reversal_of_id", name="uq_transaction_reversal_of"),
        Index("idx_transaction_company_status", "company_id", "status"),
        Index("idx_transaction_company_date", "company_id", "transaction_date"),
        Index("idx_transaction_debit_account", "debit_account_id"),
        Index("idx_transaction_credit_account", "credit_account_id"),
        Index("idx_transaction_reference", "reference_type", "reference_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)

    transaction_number: Mapped[str] = mapped_column(String(50), nullable=False)

    transaction_type: Mapped[TransactionType] = mapped_column(String(20), nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(1000), nullable=False, default="")

    debit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False
    )

    credit_account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False
    )

    amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    exchange_rate: Mapped[Decimal] = mapped_column(
        ExactDecimal(), nullable=False, default=Decimal("1")
    )

    # Amount in company base currency; this is what balances move by
    base_amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)

    reference_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[TransactionStatus] = mapped_column(
        String(20), nullable=False, default=TransactionStatus.PENDING.value
    )

    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    posted_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    rejected_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # Set on reversing entries; points at the transaction being undone
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("transactions.id"), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} {self.status} {self.amount}>"

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None


class LedgerMovement(TrackedBase):
    """
    One side of a posted transaction applied to one account.

    Contract:
        Written only by TransactionLedger.post_transaction; never updated
        or deleted.

    Guarantees:
        - amount is positive (the transaction's base_amount).
        - balance_delta is the signed change to the account's
          current_balance, per signed_delta(normal_balance, side, amount).
    """

    __tablename__ = "ledger_movements"

    __table_args__ = (
        UniqueConstraint("transaction_id", "side", name="uq_movement_transaction_side"),
        Index("idx_movement_account_date", "account_id", "effective_date"),
        Index("idx_movement_company_date", "company_id", "effective_date"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("transactions.id"), nullable=False
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("accounts.id"), nullable=False
    )

    side: Mapped[EntrySide] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)

    balance_delta: Mapped[Decimal] = mapped_column(MinorUnits(), nullable=False)

    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    def __repr__(self) -> str:
        return f"<LedgerMovement {self.side} {self.amount} -> {self.account_id}>"
