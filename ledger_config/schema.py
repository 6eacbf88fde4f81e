"""
Settings schema (``ledger_config.schema``).

Frozen dataclasses describing one parsed settings file.  Pure data: no
I/O and no dependency on the kernel, so the loader can be exercised in
isolation.  ``ledger_config.bridges`` turns these into kernel and module
configuration objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class PostingSettings:
    number_prefix: str = "TXN"
    number_width: int = 6
    verify_zero_sum_on_post: bool = True


@dataclass(frozen=True)
class BudgetSettings:
    warning_threshold_percentage: Decimal = Decimal("90")
    percentage_places: int = 2


@dataclass(frozen=True)
class ReportingSettings:
    identity_tolerance: Decimal = Decimal("0.01")
    recent_transaction_limit: int = 10
    include_zero_balances: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class ChartAccountDef:
    """One account of the default chart."""
    code: str
    name: str
    account_type: str
    subtype: str | None = None
    parent_code: str | None = None
    is_system: bool = False
    bank_account: bool = False
    tax_account: bool = False


@dataclass(frozen=True)
class LedgerSettings:
    """Everything one settings file declares."""
    config_id: str
    version: int
    checksum: str
    default_currency: str = "USD"
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    posting: PostingSettings = field(default_factory=PostingSettings)
    budget: BudgetSettings = field(default_factory=BudgetSettings)
    reporting: ReportingSettings = field(default_factory=ReportingSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    chart_of_accounts: tuple[ChartAccountDef, ...] = ()
