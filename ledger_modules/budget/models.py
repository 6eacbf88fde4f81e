"""
Budget Domain Models (``ledger_modules.budget.models``).

Responsibility
--------------
Frozen dataclass value objects for budgeting: the specs callers hand to
``BudgetTracker`` and the ``BudgetProgress`` read model it returns.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class BudgetType(Enum):
    """Budget granularity / purpose."""
    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"
    PROJECT = "project"
    DEPARTMENT = "department"


class BudgetStatus(Enum):
    """Budget lifecycle states."""
    DRAFT = "draft"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class UtilizationStatus(Enum):
    """Budget-vs-actual health."""
    GOOD = "good"
    WARNING = "warning"
    OVER = "over"


@dataclass(frozen=True)
class BudgetItemSpec:
    """A planned line item: quantity x unit_price."""
    name: str
    unit_price: Decimal
    quantity: int = 1
    category: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class BudgetSpec:
    """Definition of a new budget.

    Scope fields narrow which posted transactions count as actual spend;
    with none set, every debit to an expense account counts.
    """
    name: str
    budget_type: BudgetType | str
    period_start: date
    period_end: date
    budgeted_amount: Decimal
    currency: str = "USD"
    description: str | None = None
    department_id: str | None = None
    project_id: str | None = None
    account_id: UUID | None = None
    items: tuple[BudgetItemSpec, ...] = ()


@dataclass(frozen=True)
class BudgetProgress:
    """Budget-vs-actual snapshot."""
    budget_id: UUID
    budget_name: str
    budget_status: BudgetStatus
    period_start: date
    period_end: date
    currency: str
    budgeted_amount: Decimal
    actual_amount: Decimal
    remaining_amount: Decimal
    utilization_percentage: Decimal
    raw_utilization: Decimal
    status: UtilizationStatus
    allocated_amount: Decimal
    allocation_variance: Decimal
    transaction_count: int

    @property
    def is_over_budget(self) -> bool:
        return self.status == UtilizationStatus.OVER
