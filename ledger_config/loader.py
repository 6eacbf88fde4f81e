"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``ledger_config.schema``.  Callers use ``ledger_config.get_active_settings()``;
the loader is the internal parsing step.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Decimal settings are parsed from their string form -- never via float.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Values of the wrong shape  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    BudgetSettings,
    ChartAccountDef,
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    PostingSettings,
    ReportingSettings,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, float):
        # Unquoted YAML decimals arrive as floats; use their repr.
        value = repr(value)
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name}: cannot parse decimal from {value!r}") from None


def parse_chart_account(data: dict[str, Any]) -> ChartAccountDef:
    """Parse one chart entry.  ``code``, ``name`` and ``type`` are required."""
    return ChartAccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=data["type"],
        subtype=data.get("subtype"),
        parent_code=str(data["parent"]) if data.get("parent") is not None else None,
        is_system=bool(data.get("system", False)),
        bank_account=bool(data.get("bank_account", False)),
        tax_account=bool(data.get("tax_account", False)),
    )


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Build ``LedgerSettings`` from a parsed YAML mapping.

    Sections that are absent fall back to the schema defaults.
    """
    database = data.get("database", {})
    posting = data.get("posting", {})
    budget = data.get("budget", {})
    reporting = data.get("reporting", {})
    logging_section = data.get("logging", {})

    chart = data.get("chart_of_accounts", [])
    if not isinstance(chart, list):
        raise ValueError("chart_of_accounts must be a list")

    return LedgerSettings(
        config_id=data.get("config_id", "default"),
        version=int(data.get("version", 1)),
        checksum=compute_checksum(data),
        default_currency=data.get("default_currency", "USD"),
        database=DatabaseSettings(
            url=database.get("url", DatabaseSettings.url),
            echo=bool(database.get("echo", False)),
            pool_size=int(database.get("pool_size", DatabaseSettings.pool_size)),
            max_overflow=int(database.get("max_overflow", DatabaseSettings.max_overflow)),
        ),
        posting=PostingSettings(
            number_prefix=posting.get("number_prefix", PostingSettings.number_prefix),
            number_width=int(posting.get("number_width", PostingSettings.number_width)),
            verify_zero_sum_on_post=bool(posting.get("verify_zero_sum_on_post", True)),
        ),
        budget=BudgetSettings(
            warning_threshold_percentage=parse_decimal(
                budget.get("warning_threshold_percentage", "90"),
                "budget.warning_threshold_percentage",
            ),
            percentage_places=int(budget.get("percentage_places", 2)),
        ),
        reporting=ReportingSettings(
            identity_tolerance=parse_decimal(
                reporting.get("identity_tolerance", "0.01"), "reporting.identity_tolerance"
            ),
            recent_transaction_limit=int(reporting.get("recent_transaction_limit", 10)),
            include_zero_balances=bool(reporting.get("include_zero_balances", False)),
        ),
        logging=LoggingSettings(level=str(logging_section.get("level", "INFO")).upper()),
        chart_of_accounts=tuple(parse_chart_account(entry) for entry in chart),
    )


def load_settings(path: Path) -> LedgerSettings:
    return parse_settings(load_yaml_file(path))
