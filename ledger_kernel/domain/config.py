"""
Kernel posting configuration (``ledger_kernel.domain.config``).

Plain frozen values handed to TransactionLedger.  The kernel never reads
settings files itself; ``ledger_config.bridges`` builds these from the
active settings.
"""

from dataclasses import dataclass
from typing import Self


@dataclass(frozen=True)
class PostingConfig:
    """Transaction numbering and posting checks."""

    number_prefix: str = "TXN"
    number_width: int = 6
    base_currency: str = "USD"
    verify_zero_sum_on_post: bool = True

    def __post_init__(self):
        if not self.number_prefix:
            raise ValueError("number_prefix cannot be empty")
        if self.number_width < 1:
            raise ValueError("number_width must be at least 1")

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    def format_number(self, sequence: int) -> str:
        return f"{self.number_prefix}-{sequence:0{self.number_width}d}"
