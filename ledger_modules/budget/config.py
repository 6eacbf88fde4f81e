"""
Budgeting Configuration Schema.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.budget.config")


@dataclass
class BudgetConfig:
    """Configuration schema for the budget module."""

    default_currency: str = "USD"
    # Utilization above this percentage (and up to 100) reports "warning"
    warning_threshold_percentage: Decimal = Decimal("90")
    # Decimal places for utilization percentages
    percentage_places: int = 2

    def __post_init__(self):
        if not Decimal("0") <= self.warning_threshold_percentage <= Decimal("100"):
            raise ValueError("warning_threshold_percentage must be between 0 and 100")
        if self.percentage_places < 0:
            raise ValueError("percentage_places cannot be negative")
        logger.info("budget_config_initialized", extra={
            "warning_threshold_percentage": str(self.warning_threshold_percentage),
            "default_currency": self.default_currency,
        })

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()
