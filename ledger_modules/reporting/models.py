"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects for report outputs: profit and loss,
balance sheet, cash flow, trial balance and the finance dashboard.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by the
functions in ``statements`` and returned by ``ReportAggregator``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.domain.dtos import TrialBalanceRow
from ledger_modules.budget.models import BudgetProgress


# =========================================================================
# Statement lines
# =========================================================================


@dataclass(frozen=True)
class StatementLine:
    """One account's figure on a statement, in its natural sign."""

    account_id: UUID
    account_code: str
    account_name: str
    subtype: str | None
    amount: Decimal


@dataclass(frozen=True)
class SubtypeSubtotal:
    subtype: str | None
    total: Decimal


# =========================================================================
# Profit and Loss
# =========================================================================


@dataclass(frozen=True)
class ProfitAndLoss:
    """Revenue and expenses recognised in a period."""

    company_id: UUID
    date_from: date
    date_to: date
    revenue: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetSection:
    """Assets, liabilities or equity, with per-subtype subtotals."""

    account_type: str
    lines: tuple[StatementLine, ...]
    subtotals: tuple[SubtypeSubtotal, ...]
    total: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    """Position as of a date.

    ``current_earnings`` (revenue - expenses to date, not yet closed to
    equity) is included in ``total_equity``.
    """

    company_id: UUID
    as_of: date
    assets: BalanceSheetSection
    liabilities: BalanceSheetSection
    equity: BalanceSheetSection
    current_earnings: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal

    @property
    def identity_difference(self) -> Decimal:
        """assets - (liabilities + equity); zero on a healthy ledger."""
        return self.total_assets - (self.total_liabilities + self.total_equity)


# =========================================================================
# Cash Flow
# =========================================================================


@dataclass(frozen=True)
class CashFlowLine:
    """Movement on one bank account over the period."""

    account_id: UUID
    account_code: str
    account_name: str
    opening_balance: Decimal
    inflows: Decimal
    outflows: Decimal
    net_change: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class CashFlow:
    company_id: UUID
    date_from: date
    date_to: date
    lines: tuple[CashFlowLine, ...]
    opening_balance: Decimal
    total_inflows: Decimal
    total_outflows: Decimal
    net_change: Decimal
    closing_balance: Decimal


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalance:
    company_id: UUID
    as_of: date | None
    rows: tuple[TrialBalanceRow, ...]
    total_debits: Decimal
    total_credits: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


# =========================================================================
# Dashboard
# =========================================================================


@dataclass(frozen=True)
class RecentTransaction:
    transaction_id: UUID
    transaction_number: str
    transaction_date: date
    transaction_type: str
    description: str
    amount: Decimal
    currency: str
    status: str


@dataclass(frozen=True)
class Dashboard:
    """Headline figures for the finance overview screen."""

    company_id: UUID
    date_from: date
    date_to: date
    total_assets: Decimal
    total_liabilities: Decimal
    net_worth: Decimal
    cash_balance: Decimal
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    pending_transaction_count: int
    recent_transactions: tuple[RecentTransaction, ...]
    budget_progress: tuple[BudgetProgress, ...]
