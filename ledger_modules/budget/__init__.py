"""
Budget Module (``ledger_modules.budget``).

Responsibility
--------------
Budgets for a company and period, optionally scoped to an account subtree,
a project or a department; itemized line items; and budget-vs-actual
progress derived from posted ledger transactions.

Architecture position
---------------------
**Modules layer** -- frozen DTOs (``models``), ORM rows (``orm``), the
budget lifecycle (``workflows``), pure utilization math (``utilization``)
and the ``BudgetTracker`` service facade.

Invariants enforced
-------------------
* 0 <= utilization_percentage <= 100.
* Status is ``over`` iff actual > budgeted.
"""

from ledger_modules.budget.config import BudgetConfig
from ledger_modules.budget.models import (
    BudgetItemSpec,
    BudgetProgress,
    BudgetSpec,
    BudgetStatus,
    BudgetType,
    UtilizationStatus,
)
from ledger_modules.budget.service import BudgetTracker

__all__ = [
    "BudgetConfig",
    "BudgetItemSpec",
    "BudgetProgress",
    "BudgetSpec",
    "BudgetStatus",
    "BudgetType",
    "UtilizationStatus",
    "BudgetTracker",
]
