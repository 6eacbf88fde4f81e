"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the two targets
    of every transaction and the holder of each running balance.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - code is unique per company (uq_account_company_code).
    - normal_balance always equals normal_balance_for(account_type); the
      registry derives it and an ORM listener refuses anything else
      (db/immutability.py).
    - current_balance is a natural balance: positive means the account sits
      on its normal side.  Only TransactionLedger moves it.

Failure modes:
    - IntegrityError on a duplicate (company_id, code) pair that slipped
      past the registry's own check (concurrent creation).

Audit relevance:
    Account rows define the structure of the ledger.  Changing account_type
    after a transaction references the account would silently flip the sign
    of historical postings, so the registry locks it once referenced.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import MinorUnits, TrackedBase, UUIDString
from ledger_kernel.domain.balance_rules import (
    SUBTYPES_BY_TYPE,
    AccountType,
    NormalBalance,
)

__all__ = ["Account", "AccountType", "NormalBalance", "SUBTYPES_BY_TYPE"]


class Account(TrackedBase):
    """
    Chart of accounts entry -- a single node in the ledger structure.

    Contract:
        (company_id, code) is unique.  account_type is one of the five
        AccountType values; normal_balance is derived from it.  A parent,
        when set, is an account of the same company and the same type.

    Guarantees:
        - current_balance starts at zero.
        - Flags default to an ordinary, active, non-bank, non-tax account.

    Non-goals:
        - Does NOT guard deletion; AccountRegistry.delete_account does.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("company_id", "code", name="uq_account_company_code"),
        Index("idx_account_company_type", "company_id", "account_type"),
        Index("idx_account_parent", "parent_account_id"),
        Index("idx_account_active", "is_active"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Human-assigned code, e.g. "1110"
    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    subtype: Mapped[str | None] = mapped_column(String(20), nullable=True)

    normal_balance: Mapped[NormalBalance] = mapped_column(String(10), nullable=False)

    parent_account_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    current_balance: Mapped[Decimal] = mapped_column(
        MinorUnits(),
        nullable=False,
        default=Decimal("0"),
        server_default="0",
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # System accounts are seeded by the platform and cannot be deleted
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Cash flow reporting is restricted to bank accounts
    bank_account: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    routing_number: Mapped[str | None] = mapped_column(String(64), nullable=True)

    tax_account: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.CREDIT
