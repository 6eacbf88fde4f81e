"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-only queries over ledger movements -- historical
    balances, period deltas, debit/credit totals, trial balance rows and
    per-account balance history.
Architecture position: Kernel > Selectors.  Read-only.  Used by
    AccountRegistry (as-of balances), TransactionLedger (integrity checks)
    and by the budget and reporting modules.

Invariants enforced:
    - Every historical figure is a replay of LedgerMovement rows, the
      append-only record written at posting time.  Only posted transactions
      have movements, so no status filter is needed.
    - Sums happen in SQL on minor-unit integers; results come back as
      Decimal through the MinorUnits column type.

Failure modes:
    - None beyond database errors; unknown ids simply yield zero balances.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.balance_rules import (
    AccountType,
    EntrySide,
    NormalBalance,
    debit_equivalent,
)
from ledger_kernel.domain.dtos import (
    AccountBalance,
    BalanceHistoryEntry,
    TrialBalanceRow,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import LedgerMovement, Transaction
from ledger_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[LedgerMovement]):
    """
    Balance and movement queries.

    Contract:
        Methods return Decimals and frozen DTOs, never ORM instances.
        Date bounds are inclusive.
    """

    def balance_as_of(self, account_id: UUID, as_of: date) -> Decimal:
        """Natural balance of one account after all movements up to ``as_of``."""
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerMovement.balance_delta), 0)).where(
                LedgerMovement.account_id == account_id,
                LedgerMovement.effective_date <= as_of,
            )
        ).scalar_one()
        return Decimal(total) if total is not None else ZERO

    def balances_as_of(self, company_id: UUID, as_of: date) -> dict[UUID, Decimal]:
        """Natural balance per account (accounts with movements only)."""
        rows = self.session.execute(
            select(LedgerMovement.account_id, func.sum(LedgerMovement.balance_delta))
            .where(
                LedgerMovement.company_id == company_id,
                LedgerMovement.effective_date <= as_of,
            )
            .group_by(LedgerMovement.account_id)
        ).all()
        return {account_id: total for account_id, total in rows}

    def period_deltas(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        account_ids: set[UUID] | None = None,
    ) -> dict[UUID, Decimal]:
        """Net change of each account's natural balance within the period."""
        stmt = (
            select(LedgerMovement.account_id, func.sum(LedgerMovement.balance_delta))
            .where(
                LedgerMovement.company_id == company_id,
                LedgerMovement.effective_date >= date_from,
                LedgerMovement.effective_date <= date_to,
            )
            .group_by(LedgerMovement.account_id)
        )
        if account_ids is not None:
            stmt = stmt.where(LedgerMovement.account_id.in_(account_ids))
        return {account_id: total for account_id, total in self.session.execute(stmt).all()}

    def period_flows(
        self,
        company_id: UUID,
        date_from: date,
        date_to: date,
        account_ids: set[UUID],
    ) -> tuple[Decimal, Decimal]:
        """Sum of increases and sum of decreases across ``account_ids`` in the period.

        Both figures are returned as non-negative amounts.
        """
        if not account_ids:
            return ZERO, ZERO
        rows = self.session.execute(
            select(LedgerMovement.balance_delta).where(
                LedgerMovement.company_id == company_id,
                LedgerMovement.account_id.in_(account_ids),
                LedgerMovement.effective_date >= date_from,
                LedgerMovement.effective_date <= date_to,
            )
        ).scalars()
        inflow = ZERO
        outflow = ZERO
        for delta in rows:
            if delta > 0:
                inflow += delta
            else:
                outflow -= delta
        return inflow, outflow

    def side_totals(self, company_id: UUID, as_of: date | None = None) -> tuple[Decimal, Decimal]:
        """Total debit movement amount and total credit movement amount."""
        stmt = (
            select(LedgerMovement.side, func.sum(LedgerMovement.amount))
            .where(LedgerMovement.company_id == company_id)
            .group_by(LedgerMovement.side)
        )
        if as_of is not None:
            stmt = stmt.where(LedgerMovement.effective_date <= as_of)
        totals = {side: total for side, total in self.session.execute(stmt).all()}
        return (
            totals.get(EntrySide.DEBIT.value, ZERO),
            totals.get(EntrySide.CREDIT.value, ZERO),
        )

    def replayed_balances(self, company_id: UUID) -> dict[UUID, Decimal]:
        """Sum of every movement per account, for drift detection."""
        rows = self.session.execute(
            select(LedgerMovement.account_id, func.sum(LedgerMovement.balance_delta))
            .where(LedgerMovement.company_id == company_id)
            .group_by(LedgerMovement.account_id)
        ).all()
        return {account_id: total for account_id, total in rows}

    def account_balances(
        self,
        company_id: UUID,
        as_of: date | None = None,
        account_types: tuple[AccountType, ...] | None = None,
    ) -> list[AccountBalance]:
        """
        Balance of every account of the company, ordered by code.

        Without ``as_of`` the stored current_balance is used; with it, the
        movement replay.
        """
        stmt = select(Account).where(Account.company_id == company_id)
        if account_types:
            stmt = stmt.where(Account.account_type.in_([t.value for t in account_types]))
        accounts = self.session.execute(stmt.order_by(Account.code)).scalars().all()

        if as_of is None:
            return [AccountBalance.from_model(a, a.current_balance) for a in accounts]

        replayed = self.balances_as_of(company_id, as_of)
        return [
            AccountBalance.from_model(a, replayed.get(a.id, ZERO), as_of)
            for a in accounts
        ]

    def trial_balance(self, company_id: UUID, as_of: date | None = None) -> list[TrialBalanceRow]:
        """Per-account debit and credit totals of posted movements."""
        stmt = (
            select(LedgerMovement.account_id, LedgerMovement.side, func.sum(LedgerMovement.amount))
            .where(LedgerMovement.company_id == company_id)
            .group_by(LedgerMovement.account_id, LedgerMovement.side)
        )
        if as_of is not None:
            stmt = stmt.where(LedgerMovement.effective_date <= as_of)

        sides: dict[UUID, dict[str, Decimal]] = defaultdict(dict)
        for account_id, side, total in self.session.execute(stmt).all():
            sides[account_id][side] = total

        accounts = self.session.execute(
            select(Account).where(Account.company_id == company_id).order_by(Account.code)
        ).scalars().all()

        rows = []
        for account in accounts:
            totals = sides.get(account.id)
            if not totals:
                continue
            debit_total = totals.get(EntrySide.DEBIT.value, ZERO)
            credit_total = totals.get(EntrySide.CREDIT.value, ZERO)
            normal = NormalBalance(account.normal_balance)
            balance = debit_equivalent(normal, debit_total - credit_total)
            rows.append(
                TrialBalanceRow(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=AccountType(account.account_type),
                    normal_balance=normal,
                    debit_total=debit_total,
                    credit_total=credit_total,
                    balance=balance,
                )
            )
        return rows

    def balance_history(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[BalanceHistoryEntry]:
        """Movements on one account in date order with the running balance."""
        opening = ZERO
        if date_from is not None:
            opening = self.balance_as_of(account_id, date.fromordinal(date_from.toordinal() - 1))

        stmt = (
            select(LedgerMovement, Transaction.transaction_number, Transaction.description)
            .join(Transaction, Transaction.id == LedgerMovement.transaction_id)
            .where(LedgerMovement.account_id == account_id)
            .order_by(LedgerMovement.effective_date, Transaction.sequence)
        )
        if date_from is not None:
            stmt = stmt.where(LedgerMovement.effective_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(LedgerMovement.effective_date <= date_to)

        running = opening
        history = []
        for movement, number, description in self.session.execute(stmt).all():
            running += movement.balance_delta
            history.append(
                BalanceHistoryEntry(
                    transaction_id=movement.transaction_id,
                    transaction_number=number,
                    effective_date=movement.effective_date,
                    description=description,
                    side=movement.side,
                    amount=movement.amount,
                    balance_delta=movement.balance_delta,
                    running_balance=running,
                )
            )
        return history
