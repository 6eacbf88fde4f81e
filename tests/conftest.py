"""
Pytest fixtures for the ledger engine test suite.

Provides:
- An in-memory SQLite engine (or DATABASE_URL when set) shared by the session
- Per-test sessions that roll back everything at teardown
- Kernel and module service fixtures wired to a deterministic clock
- Account and posting helpers

Environment Variables:
- DATABASE_URL: SQLAlchemy URL of the test database.  Defaults to an
  in-memory SQLite database.
"""

import json
import logging
import os
from collections.abc import Generator
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import build_engine
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.config import PostingConfig
from ledger_kernel.domain.dtos import AccountSpec, TransactionSpec
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.transaction_ledger import TransactionLedger
from ledger_modules._orm_registry import create_all_tables
from ledger_modules.budget.service import BudgetTracker
from ledger_modules.reporting.service import ReportAggregator

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, post):
            post(...)
            logs = captured_logs()
            assert any(r["message"] == "transaction_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture(scope="session")
def db_engine():
    engine = build_engine(get_database_url())
    register_immutability_listeners()
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection; any
    ``session.commit()`` inside a test releases a savepoint only.  At
    teardown the outer transaction is rolled back.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Identity and time
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2024-01-01 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_company_id() -> UUID:
    return uuid4()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def registry(session, deterministic_clock) -> AccountRegistry:
    return AccountRegistry(session, deterministic_clock)


@pytest.fixture
def ledger(session, deterministic_clock) -> TransactionLedger:
    return TransactionLedger(session, deterministic_clock, PostingConfig())


@pytest.fixture
def budget_tracker(session, deterministic_clock) -> BudgetTracker:
    return BudgetTracker(session, deterministic_clock)


@pytest.fixture
def reports(session, deterministic_clock) -> ReportAggregator:
    return ReportAggregator(session, deterministic_clock)


# =============================================================================
# Accounts and postings
# =============================================================================


@pytest.fixture
def create_account(registry, company_id, test_actor_id):
    """Factory creating an account in the test company."""

    def _create(code, name=None, account_type="asset", owner=None, **kwargs):
        spec = AccountSpec(
            code=code,
            name=name or f"Account {code}",
            account_type=account_type,
            **kwargs,
        )
        return registry.create_account(owner or company_id, spec, test_actor_id)

    return _create


@pytest.fixture
def standard_accounts(create_account):
    """A small chart covering every account type.

    Keys: cash, receivable, equipment, payable, loan, equity, revenue,
    expenses, rent, supplies.
    """
    expenses = create_account("5000", "Operating Expenses", "expense")
    return {
        "cash": create_account(
            "1110", "Cash - Operating", "asset", subtype="current", bank_account=True
        ),
        "receivable": create_account("1120", "Accounts Receivable", "asset", subtype="current"),
        "equipment": create_account("1210", "Equipment", "asset", subtype="fixed"),
        "payable": create_account("2110", "Accounts Payable", "liability", subtype="current"),
        "loan": create_account("2210", "Long-term Loan", "liability", subtype="long_term"),
        "equity": create_account("3100", "Owner's Capital", "equity"),
        "revenue": create_account("4100", "Service Revenue", "revenue"),
        "expenses": expenses,
        "rent": create_account("5100", "Rent Expense", "expense", parent_account_id=expenses.id),
        "supplies": create_account(
            "5200", "Supplies Expense", "expense", parent_account_id=expenses.id
        ),
    }


@pytest.fixture
def make_spec():
    """Build a TransactionSpec from accounts."""

    def _make(debit, credit, amount, **kwargs):
        return TransactionSpec(
            debit_account_id=debit.id,
            credit_account_id=credit.id,
            amount=Decimal(str(amount)),
            **kwargs,
        )

    return _make


@pytest.fixture
def post(ledger, company_id, test_actor_id, make_spec):
    """Create, approve and post a transaction in one call."""

    def _post(debit, credit, amount, transaction_date: date | None = None, **kwargs):
        txn = ledger.create_transaction(
            company_id,
            make_spec(debit, credit, amount, transaction_date=transaction_date, **kwargs),
            test_actor_id,
        )
        return ledger.approve_and_post(txn.id, test_actor_id)

    return _post
