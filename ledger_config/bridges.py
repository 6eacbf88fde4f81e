"""
Config -> Kernel Bridges.

Functions that convert ``LedgerSettings`` into kernel and module inputs.
They live in ledger_config (the producer) because the kernel must NEVER
import ledger_config.

Usage:
    from ledger_config import get_active_settings
    from ledger_config.bridges import build_posting_config, build_chart_specs

    settings = get_active_settings()
    ledger = TransactionLedger(session, config=build_posting_config(settings))
    registry.seed_chart_of_accounts(company_id, build_chart_specs(settings), actor_id)
"""

from __future__ import annotations

from ledger_config.schema import LedgerSettings
from ledger_kernel.domain.config import PostingConfig
from ledger_kernel.domain.dtos import AccountSpec
from ledger_modules.budget.config import BudgetConfig
from ledger_modules.reporting.config import ReportingConfig


def build_posting_config(settings: LedgerSettings) -> PostingConfig:
    return PostingConfig(
        number_prefix=settings.posting.number_prefix,
        number_width=settings.posting.number_width,
        base_currency=settings.default_currency,
        verify_zero_sum_on_post=settings.posting.verify_zero_sum_on_post,
    )


def build_budget_config(settings: LedgerSettings) -> BudgetConfig:
    return BudgetConfig(
        default_currency=settings.default_currency,
        warning_threshold_percentage=settings.budget.warning_threshold_percentage,
        percentage_places=settings.budget.percentage_places,
    )


def build_reporting_config(settings: LedgerSettings) -> ReportingConfig:
    return ReportingConfig(
        default_currency=settings.default_currency,
        identity_tolerance=settings.reporting.identity_tolerance,
        recent_transaction_limit=settings.reporting.recent_transaction_limit,
        include_zero_balances=settings.reporting.include_zero_balances,
    )


def build_chart_specs(settings: LedgerSettings) -> list[AccountSpec]:
    """Default chart as AccountSpecs, parents first, in the company currency.

    Normal balances are not carried over; the registry derives them from
    the account type.
    """
    return [
        AccountSpec(
            code=entry.code,
            name=entry.name,
            account_type=entry.account_type,
            subtype=entry.subtype,
            parent_code=entry.parent_code,
            currency=settings.default_currency,
            is_system=entry.is_system,
            bank_account=entry.bank_account,
            tax_account=entry.tax_account,
        )
        for entry in settings.chart_of_accounts
    ]
