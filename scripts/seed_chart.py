#!/usr/bin/env python3
"""
Seed the default chart of accounts for a company.

Reads the active ledger settings, creates the tables if needed and creates
every account of the configured chart for the company.  A company that
already has accounts is left untouched.

Usage:
  python3 -m scripts.seed_chart --company-id <uuid> [--actor-id <uuid>] [--db-url ...]
  ledger-seed-chart --company-id <uuid>
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from uuid import UUID

# Fixed actor for unattended seeding.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the default chart of accounts for a company.")
    parser.add_argument("--company-id", type=UUID, required=True)
    parser.add_argument("--actor-id", type=UUID, default=SYSTEM_ACTOR_ID)
    parser.add_argument("--db-url", type=str, default=None, help="Overrides the settings database URL")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML file")
    args = parser.parse_args(argv)

    from ledger_config import get_active_settings
    from ledger_config.bridges import build_chart_specs
    from ledger_kernel.db.engine import init_engine_from_url, session_scope
    from ledger_kernel.logging_config import configure_logging
    from ledger_kernel.services.account_registry import AccountRegistry
    from ledger_modules._orm_registry import create_all_tables

    settings = get_active_settings(args.config)
    configure_logging(level=getattr(logging, settings.logging.level, logging.INFO))

    init_engine_from_url(
        args.db_url or settings.database.url,
        echo=settings.database.echo,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
    )
    create_all_tables()

    with session_scope() as session:
        created = AccountRegistry(session).seed_chart_of_accounts(
            args.company_id, build_chart_specs(settings), args.actor_id
        )

    if created:
        print(f"Created {len(created)} accounts for company {args.company_id}")
    else:
        print(f"Company {args.company_id} already has accounts; nothing to do")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
