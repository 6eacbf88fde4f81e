"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable inputs to the kernel services (AccountSpec, TransactionSpec)
    and immutable read models returned by the selectors (AccountBalance,
    BalanceHistoryEntry, TrialBalanceRow, LedgerIntegrityReport).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ``from_model``
    converters exist for the service/selector boundary only.

Failure modes:
    - None at construction; semantic validation happens in the services so
      that it can raise typed errors with company context.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from ledger_kernel.domain.balance_rules import AccountType, NormalBalance
from ledger_kernel.domain.lifecycle import TransactionType

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account as AccountModel


@dataclass(frozen=True)
class AccountSpec:
    """Definition of a new account.

    ``parent_code`` is resolved within the company when
    ``parent_account_id`` is not given (used by chart seeding).
    """
    code: str
    name: str
    account_type: AccountType | str
    subtype: str | None = None
    description: str | None = None
    parent_account_id: UUID | None = None
    parent_code: str | None = None
    currency: str = "USD"
    is_active: bool = True
    is_system: bool = False
    bank_account: bool = False
    bank_name: str | None = None
    account_number: str | None = None
    routing_number: str | None = None
    tax_account: bool = False


@dataclass(frozen=True)
class TransactionSpec:
    """Definition of a new two-account transaction."""
    debit_account_id: UUID
    credit_account_id: UUID
    amount: Decimal
    transaction_type: TransactionType | str = TransactionType.JOURNAL
    transaction_date: date | None = None
    description: str = ""
    currency: str = "USD"
    exchange_rate: Decimal = Decimal("1")
    reference_type: str | None = None
    reference_id: str | None = None
    reference_number: str | None = None


@dataclass(frozen=True)
class AccountBalance:
    """An account's natural balance at a point in time."""
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    subtype: str | None
    normal_balance: NormalBalance
    balance: Decimal
    as_of: date | None = None

    @classmethod
    def from_model(
        cls, account: AccountModel, balance: Decimal, as_of: date | None = None
    ) -> AccountBalance:
        return cls(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            account_type=AccountType(account.account_type),
            subtype=account.subtype,
            normal_balance=NormalBalance(account.normal_balance),
            balance=balance,
            as_of=as_of,
        )


@dataclass(frozen=True)
class BalanceHistoryEntry:
    """One ledger movement on an account, with the balance after it."""
    transaction_id: UUID
    transaction_number: str
    effective_date: date
    description: str
    side: str
    amount: Decimal
    balance_delta: Decimal
    running_balance: Decimal


@dataclass(frozen=True)
class TrialBalanceRow:
    """Debit/credit totals of posted movements on one account."""
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    normal_balance: NormalBalance
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal


@dataclass(frozen=True)
class LedgerIntegrityReport:
    """Result of a full ledger verification pass."""
    company_id: UUID
    debit_total: Decimal
    credit_total: Decimal
    accounts_checked: int
    transactions_checked: int

    @property
    def is_balanced(self) -> bool:
        return self.debit_total == self.credit_total
