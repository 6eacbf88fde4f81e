"""
Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Read-only financial statements derived from posted ledger movements:
profit and loss, balance sheet (with the accounting identity check),
cash flow over bank accounts, trial balance and the finance dashboard.

Architecture position
---------------------
**Modules layer** -- frozen report DTOs (``models``), pure transformation
functions (``statements``) and the ``ReportAggregator`` facade.
"""

from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheet,
    BalanceSheetSection,
    CashFlow,
    CashFlowLine,
    Dashboard,
    ProfitAndLoss,
    RecentTransaction,
    StatementLine,
    TrialBalance,
)
from ledger_modules.reporting.service import ReportAggregator

__all__ = [
    "ReportingConfig",
    "BalanceSheet",
    "BalanceSheetSection",
    "CashFlow",
    "CashFlowLine",
    "Dashboard",
    "ProfitAndLoss",
    "RecentTransaction",
    "StatementLine",
    "TrialBalance",
    "ReportAggregator",
]
