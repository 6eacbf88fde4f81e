"""
Reporting Configuration Schema.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.
    """

    # Default currency for reports
    default_currency: str = "USD"

    # Allowed |assets - (liabilities + equity)| before the balance sheet
    # raises AccountingIdentityError
    identity_tolerance: Decimal = Decimal("0.01")

    # Number of transactions shown on the dashboard
    recent_transaction_limit: int = 10

    # Whether to include accounts with zero balance in statements
    include_zero_balances: bool = False

    def __post_init__(self):
        if self.identity_tolerance < 0:
            raise ValueError("identity_tolerance cannot be negative")
        if self.recent_transaction_limit < 0:
            raise ValueError("recent_transaction_limit cannot be negative")
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "identity_tolerance" in data:
            data["identity_tolerance"] = Decimal(str(data["identity_tolerance"]))
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
