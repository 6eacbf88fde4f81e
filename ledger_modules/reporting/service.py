"""
Reporting Service (``ledger_modules.reporting.service``).

Responsibility
--------------
``ReportAggregator`` produces read-only financial reports from posted
ledger movements: profit and loss, balance sheet, cash flow, trial
balance and the finance dashboard.

Architecture position
---------------------
**Modules layer** -- queries through ``LedgerSelector``, transforms through
the pure functions in ``statements``.  Never writes.

Invariants enforced
-------------------
* Accounting identity: every balance sheet is checked for
  ``assets == liabilities + equity`` (equity including current earnings)
  within ``ReportingConfig.identity_tolerance``.

Failure modes
-------------
* ``AccountingIdentityError`` (logged at ERROR first) when the identity
  fails -- a ledger-integrity bug, never a user error.
* ``InvalidPeriodError`` when ``date_from`` > ``date_to``.
"""

from __future__ import annotations

from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.balance_rules import AccountType
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import AccountBalance
from ledger_kernel.domain.lifecycle import TransactionStatus
from ledger_kernel.exceptions import AccountingIdentityError, InvalidPeriodError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import Transaction
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.transaction_ledger import TransactionLedger
from ledger_modules.budget.config import BudgetConfig
from ledger_modules.budget.service import BudgetTracker
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheet,
    CashFlow,
    CashFlowLine,
    Dashboard,
    ProfitAndLoss,
    RecentTransaction,
    TrialBalance,
)
from ledger_modules.reporting.statements import (
    build_balance_sheet,
    build_cash_flow,
    build_profit_and_loss,
    build_trial_balance,
)

logger = get_logger("modules.reporting.service")


class ReportAggregator:
    """
    Read-only report facade.

    Contract
    --------
    * Every method takes the company explicitly and returns a frozen
      report DTO.
    * Historical figures are replays of ledger movements, so a report for
      a past date is unaffected by later postings.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        budget_config: BudgetConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._selector = LedgerSelector(session)
        self._ledger = TransactionLedger(session, self._clock)
        self._budgets = BudgetTracker(session, self._clock, budget_config)

    # =========================================================================
    # Statements
    # =========================================================================

    def profit_and_loss(self, company_id: UUID, date_from: date, date_to: date) -> ProfitAndLoss:
        """Revenue and expense effects of movements dated in [date_from, date_to]."""
        self._check_period(date_from, date_to)
        with LogContext.bind(company_id=company_id):
            report = build_profit_and_loss(
                company_id,
                date_from,
                date_to,
                self._period_balances(company_id, date_from, date_to),
                include_zero=self._config.include_zero_balances,
            )
            logger.info("profit_and_loss_generated", extra={
                "date_from": date_from,
                "date_to": date_to,
                "total_revenue": report.total_revenue,
                "total_expenses": report.total_expenses,
                "net_income": report.net_income,
            })
        return report

    def balance_sheet(self, company_id: UUID, as_of: date | None = None) -> BalanceSheet:
        """
        Asset, liability and equity balances as of ``as_of`` (today by
        default), verified against the accounting identity.
        """
        as_of = as_of or self._clock.today()
        with LogContext.bind(company_id=company_id):
            balances = self._selector.account_balances(company_id, as_of=as_of)
            report = build_balance_sheet(
                company_id, as_of, balances, include_zero=self._config.include_zero_balances
            )
            difference = report.identity_difference
            if abs(difference) > self._config.identity_tolerance:
                logger.error("accounting_identity_violated", extra={
                    "as_of": as_of,
                    "total_assets": report.total_assets,
                    "total_liabilities": report.total_liabilities,
                    "total_equity": report.total_equity,
                    "difference": difference,
                })
                raise AccountingIdentityError(
                    str(company_id),
                    as_of.isoformat(),
                    report.total_assets,
                    report.total_liabilities,
                    report.total_equity,
                )
            logger.info("balance_sheet_generated", extra={
                "as_of": as_of,
                "total_assets": report.total_assets,
                "total_liabilities": report.total_liabilities,
                "total_equity": report.total_equity,
            })
        return report

    def cash_flow(self, company_id: UUID, date_from: date, date_to: date) -> CashFlow:
        """Opening, inflows, outflows and closing for each bank account."""
        self._check_period(date_from, date_to)
        day_before = date_from - timedelta(days=1)

        bank_accounts = self._session.execute(
            select(Account)
            .where(Account.company_id == company_id, Account.bank_account.is_(True))
            .order_by(Account.code)
        ).scalars().all()

        lines = []
        for account in bank_accounts:
            opening = self._selector.balance_as_of(account.id, day_before)
            inflows, outflows = self._selector.period_flows(
                company_id, date_from, date_to, {account.id}
            )
            lines.append(
                CashFlowLine(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    opening_balance=opening,
                    inflows=inflows,
                    outflows=outflows,
                    net_change=inflows - outflows,
                    closing_balance=opening + inflows - outflows,
                )
            )

        report = build_cash_flow(company_id, date_from, date_to, lines)
        logger.info("cash_flow_generated", extra={
            "company_id": str(company_id),
            "bank_account_count": len(lines),
            "net_change": report.net_change,
        })
        return report

    def trial_balance(self, company_id: UUID, as_of: date | None = None) -> TrialBalance:
        report = build_trial_balance(
            company_id, as_of, self._selector.trial_balance(company_id, as_of)
        )
        logger.info("trial_balance_generated", extra={
            "company_id": str(company_id),
            "as_of": as_of,
            "row_count": len(report.rows),
            "is_balanced": report.is_balanced,
        })
        return report

    def dashboard(
        self,
        company_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> Dashboard:
        """
        Headline figures.  The period defaults to the current month to date;
        position figures are as of ``date_to``.
        """
        date_to = date_to or self._clock.today()
        date_from = date_from or date_to.replace(day=1)
        self._check_period(date_from, date_to)

        balances = self._selector.account_balances(
            company_id,
            as_of=date_to,
            account_types=(AccountType.ASSET, AccountType.LIABILITY),
        )
        total_assets = sum(
            (b.balance for b in balances if b.account_type == AccountType.ASSET), ZERO
        )
        total_liabilities = sum(
            (b.balance for b in balances if b.account_type == AccountType.LIABILITY), ZERO
        )
        bank_ids = set(self._session.execute(
            select(Account.id).where(
                Account.company_id == company_id, Account.bank_account.is_(True)
            )
        ).scalars())
        cash_balance = sum((b.balance for b in balances if b.account_id in bank_ids), ZERO)

        pnl = self.profit_and_loss(company_id, date_from, date_to)

        pending = self._session.execute(
            select(func.count())
            .select_from(Transaction)
            .where(
                Transaction.company_id == company_id,
                Transaction.status == TransactionStatus.PENDING.value,
            )
        ).scalar_one()

        recent = tuple(
            RecentTransaction(
                transaction_id=txn.id,
                transaction_number=txn.transaction_number,
                transaction_date=txn.transaction_date,
                transaction_type=txn.transaction_type,
                description=txn.description,
                amount=txn.amount,
                currency=txn.currency,
                status=txn.status,
            )
            for txn in self._ledger.list_transactions(
                company_id, limit=self._config.recent_transaction_limit
            )
        )

        report = Dashboard(
            company_id=company_id,
            date_from=date_from,
            date_to=date_to,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            net_worth=total_assets - total_liabilities,
            cash_balance=cash_balance,
            total_revenue=pnl.total_revenue,
            total_expenses=pnl.total_expenses,
            net_income=pnl.net_income,
            pending_transaction_count=pending,
            recent_transactions=recent,
            budget_progress=tuple(self._budgets.progress_for_company(company_id)),
        )
        logger.info("dashboard_generated", extra={
            "company_id": str(company_id),
            "net_worth": report.net_worth,
            "pending_transaction_count": pending,
        })
        return report

    # =========================================================================
    # Internals
    # =========================================================================

    def _period_balances(
        self, company_id: UUID, date_from: date, date_to: date
    ) -> list[AccountBalance]:
        accounts = self._session.execute(
            select(Account).where(
                Account.company_id == company_id,
                Account.account_type.in_(
                    [AccountType.REVENUE.value, AccountType.EXPENSE.value]
                ),
            )
        ).scalars().all()
        deltas = self._selector.period_deltas(
            company_id, date_from, date_to, {a.id for a in accounts}
        )
        return [
            AccountBalance.from_model(a, deltas.get(a.id, ZERO), date_to) for a in accounts
        ]

    @staticmethod
    def _check_period(date_from: date, date_to: date) -> None:
        if date_from > date_to:
            raise InvalidPeriodError(str(date_from), str(date_to))
