"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``create_all_tables()`` is the one entry point scripts,
entrypoints and ``tests/conftest.py`` use to get the complete schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``ledger_modules``
packages and from ``ledger_kernel.db.engine`` (allowed: modules -> kernel).
MUST NOT be imported by ``ledger_kernel``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.
    """
    # Kernel tables first; module tables reference accounts.id
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.budget.orm  # noqa: F401


def create_all_tables(engine: Engine | None = None) -> None:
    """Create kernel and module tables.

    Preconditions:
        ``engine`` is given, or the engine was initialized via
        ``init_engine_from_url()``.
    """
    from ledger_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
