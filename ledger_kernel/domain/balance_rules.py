"""
Balance rules (``ledger_kernel.domain.balance_rules``).

Responsibility
--------------
The account taxonomy and the sign convention of double-entry posting as
pure functions:

* ``normal_balance_for(type)`` -- the ONLY source of an account's normal
  balance.  Callers never supply it.
* ``signed_delta(normal_balance, side, amount)`` -- the effect of one side
  of a posting on an account's ``current_balance``.
* ``debit_equivalent(normal_balance, balance)`` -- converts between a
  natural balance and debits minus credits.  The debit-positive figures
  sum to zero across the whole ledger; the trial balance uses the
  reverse direction to state each row in its natural sign.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  Imported by models, services and
selectors.

Invariants enforced
-------------------
* asset/expense accounts are debit-normal; liability/equity/revenue
  accounts are credit-normal.
* Subtypes are constrained per type (asset: current/fixed/intangible;
  liability: current/long_term; other types carry no subtype).
"""

from decimal import Decimal
from enum import Enum

from ledger_kernel.exceptions import InvalidSubtypeError


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Side on which an account naturally increases."""

    DEBIT = "debit"
    CREDIT = "credit"


class EntrySide(str, Enum):
    """Side of a posting a movement belongs to."""

    DEBIT = "debit"
    CREDIT = "credit"


SUBTYPES_BY_TYPE: dict[AccountType, tuple[str, ...]] = {
    AccountType.ASSET: ("current", "fixed", "intangible"),
    AccountType.LIABILITY: ("current", "long_term"),
    AccountType.EQUITY: (),
    AccountType.REVENUE: (),
    AccountType.EXPENSE: (),
}

_DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """Return the normal balance implied by an account type.

    Raises:
        ValueError: if ``account_type`` is not a known type.
    """
    account_type = AccountType(account_type)
    if account_type in _DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


def validate_subtype(account_type: AccountType | str, subtype: str | None) -> str | None:
    """Check ``subtype`` against the taxonomy and return it normalized."""
    account_type = AccountType(account_type)
    if subtype is None or subtype == "":
        return None
    allowed = SUBTYPES_BY_TYPE[account_type]
    normalized = subtype.strip().lower()
    if normalized not in allowed:
        raise InvalidSubtypeError(account_type.value, subtype, allowed)
    return normalized


def signed_delta(
    normal_balance: NormalBalance | str,
    side: EntrySide | str,
    amount: Decimal,
) -> Decimal:
    """Effect of posting ``amount`` on ``side`` of an account.

    A posting on the account's normal side increases its balance; the
    opposite side decreases it.
    """
    if NormalBalance(normal_balance).value == EntrySide(side).value:
        return amount
    return -amount


def posting_deltas(
    debit_account_normal: NormalBalance | str,
    credit_account_normal: NormalBalance | str,
    amount: Decimal,
) -> tuple[Decimal, Decimal]:
    """Balance deltas for the debit account and the credit account."""
    return (
        signed_delta(debit_account_normal, EntrySide.DEBIT, amount),
        signed_delta(credit_account_normal, EntrySide.CREDIT, amount),
    )


def debit_equivalent(normal_balance: NormalBalance | str, balance: Decimal) -> Decimal:
    """Restate a natural balance as debits minus credits, or the reverse.

    The conversion is its own inverse.  Summed over every account of a
    company the debit-positive figure is always zero.
    """
    if NormalBalance(normal_balance) == NormalBalance.DEBIT:
        return balance
    return -balance
