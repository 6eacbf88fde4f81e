"""
ledger_config -- single public entrypoint for ledger settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    environment variables directly.  Returns a frozen ``LedgerSettings``.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and beside
    ``ledger_modules``.  The kernel MUST NEVER import from
    ``ledger_config``; ``ledger_config.bridges`` translates settings into
    kernel-compatible inputs.

Invariants enforced:
    - Single entrypoint: all runtime settings flow through
      ``get_active_settings()``.
    - Deterministic identity: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``yaml.YAMLError`` / ``KeyError`` / ``ValueError`` -- malformed file.

Audit relevance:
    Every call emits a ``LEDGER_CONFIG_TRACE`` log entry containing the
    config_id, version, checksum and chart size, tying posted transactions
    back to the settings that governed them.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from ledger_config.loader import load_settings
from ledger_config.schema import LedgerSettings

_logger = logging.getLogger("ledger_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "LEDGER_CONFIG_PATH"
DATABASE_URL_ENV = "LEDGER_DATABASE_URL"


def get_active_settings(config_path: Path | None = None) -> LedgerSettings:
    """The ONLY public settings entrypoint.

    Resolution order for the file: ``config_path`` argument, then the
    ``LEDGER_CONFIG_PATH`` environment variable, then the packaged
    ``sets/default.yaml``.  ``LEDGER_DATABASE_URL`` overrides the database
    URL from the file.

    Raises:
        FileNotFoundError: If the resolved settings file does not exist.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    path = config_path or (Path(env_path) if env_path else _DEFAULT_CONFIG_PATH)
    if not path.is_file():
        raise FileNotFoundError(f"Ledger settings file not found: {path}")

    settings = load_settings(path)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        settings = dataclasses.replace(
            settings,
            database=dataclasses.replace(settings.database, url=database_url),
        )

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "source_path": str(path),
            "database_url_overridden": bool(database_url),
            "chart_account_count": len(settings.chart_of_accounts),
        },
    )
    return settings


__all__ = ["get_active_settings", "LedgerSettings", "CONFIG_PATH_ENV", "DATABASE_URL_ENV"]
