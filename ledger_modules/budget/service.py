"""
Budget Module Service (``ledger_modules.budget.service``).

Responsibility
--------------
``BudgetTracker`` owns budget definitions and their line items, walks
budgets through ``BUDGET_WORKFLOW`` and computes budget-vs-actual
progress from posted ledger transactions.

Architecture position
---------------------
**Modules layer** -- thin glue over the kernel.  Reads accounts and
transactions; never posts and never moves a balance.

Invariants enforced
-------------------
* ``period_start`` < ``period_end`` and ``budgeted_amount`` >= 0.
* Item edits never change ``budgeted_amount``; the difference is reported
  as ``allocation_variance``.
* Closed and cancelled budgets reject edits; active budgets cannot be
  deleted.
* Flush only -- the caller owns the transaction boundary.

Failure modes
-------------
* ``InvalidPeriodError`` / ``InvalidAmountError`` / ``InvalidFieldError``
  for malformed specs and patches.
* ``InvalidStateError`` / ``InvalidTransitionError`` for illegal lifecycle
  steps or edits of closed budgets.
* ``ActiveBudgetError`` on delete of an active budget.

Audit relevance
---------------
Structured log events for every mutation, under a LogContext carrying
``budget_id``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, round_money, to_money, validate_currency
from ledger_kernel.domain.balance_rules import AccountType
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.lifecycle import ReferenceType, TransactionStatus
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    ActiveBudgetError,
    BudgetItemNotFoundError,
    BudgetNotFoundError,
    InvalidAmountError,
    InvalidFieldError,
    InvalidPeriodError,
    InvalidStateError,
    InvalidTransitionError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import Transaction
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_modules.budget.config import BudgetConfig
from ledger_modules.budget.models import (
    BudgetItemSpec,
    BudgetProgress,
    BudgetSpec,
    BudgetStatus,
    BudgetType,
)
from ledger_modules.budget.orm import BudgetItemModel, BudgetModel
from ledger_modules.budget.utilization import capped_utilization, classify, raw_utilization
from ledger_modules.budget.workflows import BUDGET_WORKFLOW, EDITABLE_BUDGET_STATUSES

logger = get_logger("modules.budget.service")


class BudgetTracker:
    """
    Budgets, line items and budget-vs-actual progress.

    Contract
    --------
    * Mutating methods flush and return the ORM row; they never commit.
    * ``compute_progress`` is read-only and safe to call while other
      sessions post transactions.

    Non-goals
    ---------
    * Does NOT block postings that would exceed a budget.
    """

    UPDATABLE_FIELDS = frozenset({
        "name",
        "budget_type",
        "period_start",
        "period_end",
        "budgeted_amount",
        "currency",
        "description",
        "department_id",
        "project_id",
        "account_id",
    })

    ITEM_FIELDS = frozenset({"name", "category", "description", "quantity", "unit_price"})

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: BudgetConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or BudgetConfig.with_defaults()
        self._accounts = AccountRegistry(session, self._clock)

    # =========================================================================
    # Budgets
    # =========================================================================

    def get_budget(self, budget_id: UUID, company_id: UUID | None = None) -> BudgetModel:
        budget = self._session.get(BudgetModel, budget_id)
        if budget is None or (company_id is not None and budget.company_id != company_id):
            raise BudgetNotFoundError(str(budget_id))
        return budget

    def list_budgets(
        self,
        company_id: UUID,
        status: BudgetStatus | str | None = None,
        budget_type: BudgetType | str | None = None,
    ) -> list[BudgetModel]:
        """Budgets of a company, most recent period first."""
        stmt = select(BudgetModel).where(BudgetModel.company_id == company_id)
        if status is not None:
            stmt = stmt.where(BudgetModel.status == BudgetStatus(status).value)
        if budget_type is not None:
            stmt = stmt.where(BudgetModel.budget_type == BudgetType(budget_type).value)
        stmt = stmt.order_by(BudgetModel.period_start.desc(), BudgetModel.name)
        return list(self._session.execute(stmt).scalars())

    def create_budget(self, company_id: UUID, spec: BudgetSpec, actor_id: UUID) -> BudgetModel:
        """Create a DRAFT budget, with optional initial items."""
        fields = self._validated_fields(
            company_id,
            name=spec.name,
            budget_type=spec.budget_type,
            period_start=spec.period_start,
            period_end=spec.period_end,
            budgeted_amount=spec.budgeted_amount,
            currency=spec.currency,
            description=spec.description,
            department_id=spec.department_id,
            project_id=spec.project_id,
            account_id=spec.account_id,
        )
        budget = BudgetModel(
            company_id=company_id,
            status=BUDGET_WORKFLOW.initial_state,
            created_by_id=actor_id,
            **fields,
        )
        for position, item_spec in enumerate(spec.items):
            budget.items.append(self._build_item(item_spec, position, actor_id))
        self._session.add(budget)
        self._session.flush()

        logger.info("budget_created", extra={
            "budget_id": str(budget.id),
            "company_id": str(company_id),
            "budget_name": budget.name,
            "budget_type": budget.budget_type,
            "budgeted_amount": budget.budgeted_amount,
            "item_count": len(budget.items),
            "actor_id": str(actor_id),
        })
        return budget

    def update_budget(
        self,
        budget_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
    ) -> BudgetModel:
        """Partial update of a draft or active budget."""
        budget = self.get_budget(budget_id)
        self._ensure_editable(budget, "update")

        for field in patch:
            if field not in self.UPDATABLE_FIELDS:
                raise InvalidFieldError("Budget", field, "field cannot be changed")

        current = {field: getattr(budget, field) for field in self.UPDATABLE_FIELDS}
        current.update(patch)
        fields = self._validated_fields(budget.company_id, **current)

        for field, value in fields.items():
            setattr(budget, field, value)
        budget.updated_by_id = actor_id
        self._session.flush()

        logger.info("budget_updated", extra={
            "budget_id": str(budget.id),
            "fields": sorted(patch),
            "actor_id": str(actor_id),
        })
        return budget

    def activate_budget(self, budget_id: UUID, actor_id: UUID) -> BudgetModel:
        return self._transition(budget_id, "activate", actor_id)

    def close_budget(self, budget_id: UUID, actor_id: UUID) -> BudgetModel:
        return self._transition(budget_id, "close", actor_id)

    def cancel_budget(self, budget_id: UUID, actor_id: UUID) -> BudgetModel:
        return self._transition(budget_id, "cancel", actor_id)

    def delete_budget(self, budget_id: UUID) -> None:
        """Delete a budget that is not active, with its items."""
        budget = self.get_budget(budget_id)
        if budget.status == BudgetStatus.ACTIVE.value:
            raise ActiveBudgetError(str(budget.id))
        self._session.delete(budget)
        self._session.flush()
        logger.info("budget_deleted", extra={"budget_id": str(budget_id)})

    # =========================================================================
    # Items
    # =========================================================================

    def add_item(self, budget_id: UUID, spec: BudgetItemSpec, actor_id: UUID) -> BudgetItemModel:
        budget = self.get_budget(budget_id)
        self._ensure_editable(budget, "add item to")

        position = max((item.position for item in budget.items), default=-1) + 1
        item = self._build_item(spec, position, actor_id)
        budget.items.append(item)
        self._session.flush()

        logger.info("budget_item_added", extra={
            "budget_id": str(budget.id),
            "item_id": str(item.id),
            "line_total": item.line_total,
        })
        return item

    def update_item(
        self,
        budget_id: UUID,
        item_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
    ) -> BudgetItemModel:
        budget = self.get_budget(budget_id)
        self._ensure_editable(budget, "update item of")
        item = self._get_item(budget, item_id)

        for field in patch:
            if field not in self.ITEM_FIELDS:
                raise InvalidFieldError("BudgetItem", field, "field cannot be changed")

        merged = BudgetItemSpec(
            name=patch.get("name", item.name),
            unit_price=patch.get("unit_price", item.unit_price),
            quantity=patch.get("quantity", item.quantity),
            category=patch.get("category", item.category),
            description=patch.get("description", item.description),
        )
        validated = self._validated_item(merged)
        for field, value in validated.items():
            setattr(item, field, value)
        item.updated_by_id = actor_id
        self._session.flush()

        logger.info("budget_item_updated", extra={
            "budget_id": str(budget.id),
            "item_id": str(item.id),
            "fields": sorted(patch),
        })
        return item

    def delete_item(self, budget_id: UUID, item_id: UUID) -> None:
        budget = self.get_budget(budget_id)
        self._ensure_editable(budget, "delete item of")
        item = self._get_item(budget, item_id)
        budget.items.remove(item)
        self._session.flush()
        logger.info("budget_item_deleted", extra={
            "budget_id": str(budget.id),
            "item_id": str(item_id),
        })

    # =========================================================================
    # Progress
    # =========================================================================

    def compute_progress(self, budget_id: UUID) -> BudgetProgress:
        """
        Budget-vs-actual over posted transactions dated inside the period.

        Scope conditions (all that are set must hold):
            account    -- debit account in the scoped subtree
            project    -- reference_type project with matching reference_id
            department -- reference_type department with matching reference_id
            none set   -- debit account is an expense account

        Reversing entries are matched on their credit side and subtract.
        """
        budget = self.get_budget(budget_id)
        with LogContext.bind(budget_id=budget.id, company_id=budget.company_id):
            actual, count = self._actual_spend(budget)
            budgeted = budget.budgeted_amount
            places = self._config.percentage_places
            utilization = capped_utilization(budgeted, actual, places)
            allocated = budget.allocated_amount

            progress = BudgetProgress(
                budget_id=budget.id,
                budget_name=budget.name,
                budget_status=BudgetStatus(budget.status),
                period_start=budget.period_start,
                period_end=budget.period_end,
                currency=budget.currency,
                budgeted_amount=budgeted,
                actual_amount=actual,
                remaining_amount=round_money(budgeted - actual),
                utilization_percentage=utilization,
                raw_utilization=raw_utilization(budgeted, actual, places),
                status=classify(budgeted, actual, self._config.warning_threshold_percentage),
                allocated_amount=allocated,
                allocation_variance=round_money(budgeted - allocated),
                transaction_count=count,
            )
            logger.debug("budget_progress_computed", extra={
                "actual_amount": actual,
                "utilization_percentage": utilization,
                "status": progress.status.value,
                "transaction_count": count,
            })
        return progress

    def progress_for_company(
        self,
        company_id: UUID,
        status: BudgetStatus | str = BudgetStatus.ACTIVE,
    ) -> list[BudgetProgress]:
        return [self.compute_progress(b.id) for b in self.list_budgets(company_id, status=status)]

    # =========================================================================
    # Internals
    # =========================================================================

    def _actual_spend(self, budget: BudgetModel) -> tuple[Decimal, int]:
        stmt = select(Transaction).where(
            Transaction.company_id == budget.company_id,
            Transaction.status == TransactionStatus.POSTED.value,
            Transaction.transaction_date >= budget.period_start,
            Transaction.transaction_date <= budget.period_end,
        )
        if budget.project_id:
            stmt = stmt.where(
                Transaction.reference_type == ReferenceType.PROJECT.value,
                Transaction.reference_id == budget.project_id,
            )
        if budget.department_id:
            stmt = stmt.where(
                Transaction.reference_type == ReferenceType.DEPARTMENT.value,
                Transaction.reference_id == budget.department_id,
            )

        if budget.account_id is not None:
            eligible = self._accounts.descendant_ids(budget.account_id)
        elif not budget.has_scope:
            eligible = set(self._session.execute(
                select(Account.id).where(
                    Account.company_id == budget.company_id,
                    Account.account_type == AccountType.EXPENSE.value,
                )
            ).scalars())
        else:
            eligible = None

        actual = ZERO
        count = 0
        for txn in self._session.execute(stmt).scalars():
            anchor = txn.credit_account_id if txn.is_reversal else txn.debit_account_id
            if eligible is not None and anchor not in eligible:
                continue
            actual += -txn.base_amount if txn.is_reversal else txn.base_amount
            count += 1
        return round_money(actual), count

    def _transition(self, budget_id: UUID, action: str, actor_id: UUID) -> BudgetModel:
        budget = self.get_budget(budget_id)
        transition = BUDGET_WORKFLOW.find(action, budget.status)
        if transition is None:
            target = next(
                (t.to_state for t in BUDGET_WORKFLOW.transitions if t.action == action),
                action,
            )
            raise InvalidTransitionError("Budget", str(budget.id), budget.status, target)

        from_status = budget.status
        budget.status = transition.to_state
        budget.updated_by_id = actor_id
        self._session.flush()

        logger.info("budget_status_changed", extra={
            "budget_id": str(budget.id),
            "from_status": from_status,
            "to_status": budget.status,
            "actor_id": str(actor_id),
        })
        return budget

    def _ensure_editable(self, budget: BudgetModel, operation: str) -> None:
        if budget.status not in EDITABLE_BUDGET_STATUSES:
            raise InvalidStateError("Budget", str(budget.id), budget.status, operation)

    def _get_item(self, budget: BudgetModel, item_id: UUID) -> BudgetItemModel:
        for item in budget.items:
            if item.id == item_id:
                return item
        raise BudgetItemNotFoundError(str(budget.id), str(item_id))

    def _build_item(self, spec: BudgetItemSpec, position: int, actor_id: UUID) -> BudgetItemModel:
        return BudgetItemModel(position=position, created_by_id=actor_id, **self._validated_item(spec))

    @staticmethod
    def _validated_item(spec: BudgetItemSpec) -> dict[str, Any]:
        name = (spec.name or "").strip()
        if not name:
            raise InvalidFieldError("BudgetItem", "name", "name is required")
        if isinstance(spec.quantity, bool) or not isinstance(spec.quantity, int) or spec.quantity < 1:
            raise InvalidFieldError("BudgetItem", "quantity", "must be an integer >= 1")
        unit_price = to_money(spec.unit_price, "unit_price")
        if unit_price < ZERO:
            raise InvalidAmountError("unit_price", unit_price, "cannot be negative")
        return {
            "name": name,
            "category": spec.category,
            "description": spec.description,
            "quantity": spec.quantity,
            "unit_price": unit_price,
        }

    def _validated_fields(
        self,
        company_id: UUID,
        *,
        name: str,
        budget_type: Any,
        period_start: date,
        period_end: date,
        budgeted_amount: Any,
        currency: str,
        description: str | None,
        department_id: str | None,
        project_id: str | None,
        account_id: UUID | None,
    ) -> dict[str, Any]:
        name = (name or "").strip()
        if not name:
            raise InvalidFieldError("Budget", "name", "name is required")
        try:
            budget_type = BudgetType(budget_type)
        except ValueError:
            raise InvalidFieldError(
                "Budget", "budget_type", f"unknown budget type '{budget_type}'"
            ) from None
        if period_start is None or period_end is None or period_end <= period_start:
            raise InvalidPeriodError(str(period_start), str(period_end))
        amount = to_money(budgeted_amount, "budgeted_amount")
        if amount < ZERO:
            raise InvalidAmountError("budgeted_amount", amount, "cannot be negative")
        if account_id is not None:
            try:
                self._accounts.get_account(account_id, company_id)
            except AccountNotFoundError:
                raise InvalidFieldError(
                    "Budget", "account_id", f"account {account_id} not found in company"
                ) from None
        return {
            "name": name,
            "budget_type": budget_type.value,
            "period_start": period_start,
            "period_end": period_end,
            "budgeted_amount": amount,
            "currency": validate_currency(currency),
            "description": description,
            "department_id": department_id or None,
            "project_id": project_id or None,
            "account_id": account_id,
        }

