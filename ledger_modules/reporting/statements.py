"""
Pure financial statement transformation functions.

These functions turn account balances (``AccountBalance`` DTOs from the
kernel selector) into statements.  ZERO I/O.  ZERO side effects.

- No database access
- No clock access
- Deterministic: same inputs always produce same outputs

Balances arrive in each account's natural sign (positive when the account
sits on its normal side), so revenue, liabilities and equity are positive
figures just like assets and expenses.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.balance_rules import AccountType
from ledger_kernel.domain.dtos import AccountBalance, TrialBalanceRow
from ledger_modules.reporting.models import (
    BalanceSheet,
    BalanceSheetSection,
    CashFlow,
    CashFlowLine,
    ProfitAndLoss,
    StatementLine,
    SubtypeSubtotal,
    TrialBalance,
)


def _lines(
    balances: Iterable[AccountBalance],
    account_type: AccountType,
    include_zero: bool,
) -> tuple[StatementLine, ...]:
    return tuple(
        StatementLine(
            account_id=b.account_id,
            account_code=b.account_code,
            account_name=b.account_name,
            subtype=b.subtype,
            amount=b.balance,
        )
        for b in sorted(balances, key=lambda b: b.account_code)
        if b.account_type == account_type and (include_zero or b.balance != ZERO)
    )


def _total(lines: Sequence[StatementLine]) -> Decimal:
    return sum((line.amount for line in lines), ZERO)


def _section(
    balances: Sequence[AccountBalance],
    account_type: AccountType,
    include_zero: bool,
) -> BalanceSheetSection:
    lines = _lines(balances, account_type, include_zero)
    by_subtype: dict[str | None, Decimal] = {}
    for line in lines:
        by_subtype[line.subtype] = by_subtype.get(line.subtype, ZERO) + line.amount
    subtotals = tuple(
        SubtypeSubtotal(subtype=subtype, total=total)
        for subtype, total in sorted(by_subtype.items(), key=lambda kv: kv[0] or "")
    )
    return BalanceSheetSection(
        account_type=account_type.value,
        lines=lines,
        subtotals=subtotals,
        total=_total(lines),
    )


def build_profit_and_loss(
    company_id: UUID,
    date_from: date,
    date_to: date,
    period_balances: Sequence[AccountBalance],
    include_zero: bool = False,
) -> ProfitAndLoss:
    """Revenue and expense lines from per-account period changes."""
    revenue = _lines(period_balances, AccountType.REVENUE, include_zero)
    expenses = _lines(period_balances, AccountType.EXPENSE, include_zero)
    total_revenue = _total(revenue)
    total_expenses = _total(expenses)
    return ProfitAndLoss(
        company_id=company_id,
        date_from=date_from,
        date_to=date_to,
        revenue=revenue,
        expenses=expenses,
        total_revenue=total_revenue,
        total_expenses=total_expenses,
        net_income=total_revenue - total_expenses,
    )


def current_earnings(balances: Iterable[AccountBalance]) -> Decimal:
    """Revenue minus expenses across the given balances."""
    earnings = ZERO
    for b in balances:
        if b.account_type == AccountType.REVENUE:
            earnings += b.balance
        elif b.account_type == AccountType.EXPENSE:
            earnings -= b.balance
    return earnings


def build_balance_sheet(
    company_id: UUID,
    as_of: date,
    balances: Sequence[AccountBalance],
    include_zero: bool = False,
) -> BalanceSheet:
    """Group balances by type; equity absorbs unclosed current earnings."""
    assets = _section(balances, AccountType.ASSET, include_zero)
    liabilities = _section(balances, AccountType.LIABILITY, include_zero)
    equity = _section(balances, AccountType.EQUITY, include_zero)
    earnings = current_earnings(balances)
    return BalanceSheet(
        company_id=company_id,
        as_of=as_of,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        current_earnings=earnings,
        total_assets=assets.total,
        total_liabilities=liabilities.total,
        total_equity=equity.total + earnings,
    )


def build_cash_flow(
    company_id: UUID,
    date_from: date,
    date_to: date,
    lines: Sequence[CashFlowLine],
) -> CashFlow:
    lines = tuple(sorted(lines, key=lambda line: line.account_code))
    opening = sum((line.opening_balance for line in lines), ZERO)
    inflows = sum((line.inflows for line in lines), ZERO)
    outflows = sum((line.outflows for line in lines), ZERO)
    return CashFlow(
        company_id=company_id,
        date_from=date_from,
        date_to=date_to,
        lines=lines,
        opening_balance=opening,
        total_inflows=inflows,
        total_outflows=outflows,
        net_change=inflows - outflows,
        closing_balance=opening + inflows - outflows,
    )


def build_trial_balance(
    company_id: UUID,
    as_of: date | None,
    rows: Sequence[TrialBalanceRow],
) -> TrialBalance:
    return TrialBalance(
        company_id=company_id,
        as_of=as_of,
        rows=tuple(rows),
        total_debits=sum((r.debit_total for r in rows), ZERO),
        total_credits=sum((r.credit_total for r in rows), ZERO),
    )
