"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Posted transactions are ledger history.  Corrections go through a new
reversing transaction so the audit trail stays visible; nothing may edit or
delete a posted row in place.  TransactionLedger already refuses such
requests, but any code holding a Session could still assign attributes on a
posted Transaction and flush.  These listeners close that gap: they fire
BEFORE the SQL is sent, so the database is never modified.

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutableStateError
         |                                                ^
         v                                                |
    [before_delete] --> _check_*_delete() ----------------+
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule                                   | Error
----------------|----------------------------------------|----------------------------
Transaction     | No change once status was POSTED       | PostedTransactionError
Transaction     | No delete while POSTED                 | PostedTransactionError
LedgerMovement  | Never updated or deleted               | LedgerMovementImmutableError
Account         | normal_balance == normal_balance_for() | NormalBalanceOverrideError

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at / updated_by_id may change on any row: they are audit
   metadata, not financial data.

2. "WAS posted", not "IS posted".  The posting transition itself sets
   status=POSTED; the listener reads attribute history to tell the posting
   flush (APPROVED -> POSTED) apart from a later edit.

3. Inline model imports avoid the models <-> db import cycle.

4. Bulk UPDATE statements bypass mapper events.  The only bulk statement
   the kernel issues is the atomic balance increment on accounts, which is
   not a protected column.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent

    # TESTS ONLY:
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.domain.balance_rules import normal_balance_for
from ledger_kernel.exceptions import (
    LedgerMovementImmutableError,
    NormalBalanceOverrideError,
    PostedTransactionError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})
_POSTED = "posted"


def _status_value(status) -> str:
    return getattr(status, "value", status)


def _check_transaction_immutability(mapper, connection, target):
    """
    Prevent updates to posted Transaction records.

    Logic:
        1. status changing FROM posted -> block
        2. status unchanged AND posted -> block any other field change
        3. status changing TO posted -> allow (this IS the posting)
    """
    status_history = get_history(target, "status")

    was_posted_before = False
    if status_history.deleted:
        was_posted_before = _status_value(status_history.deleted[0]) == _POSTED
    elif not status_history.added:
        was_posted_before = _status_value(target.status) == _POSTED

    if not was_posted_before:
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Transaction",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise PostedTransactionError(
                str(target.id),
                f"field '{attr.key}' is frozen once posted; create a reversing transaction",
            )


def _check_transaction_delete(mapper, connection, target):
    """Prevent deletion of posted Transaction records."""
    if _status_value(target.status) == _POSTED:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "Transaction",
                "entity_id": str(target.id),
                "operation": "DELETE",
            },
        )
        raise PostedTransactionError(str(target.id), "posted transactions cannot be deleted")


def _check_movement_update(mapper, connection, target):
    """Ledger movements are append-only."""
    changed = [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]
    if changed:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "LedgerMovement",
                "entity_id": str(target.id),
                "operation": "UPDATE",
                "fields": changed,
            },
        )
        raise LedgerMovementImmutableError(str(target.id), "UPDATE")


def _check_movement_delete(mapper, connection, target):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "LedgerMovement",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise LedgerMovementImmutableError(str(target.id), "DELETE")


def _check_account_normal_balance(mapper, connection, target):
    """normal_balance must always be the type-implied side."""
    expected = normal_balance_for(target.account_type)
    if _status_value(target.normal_balance) != expected.value:
        logger.error(
            "normal_balance_override_blocked",
            extra={
                "account_id": str(target.id),
                "account_type": _status_value(target.account_type),
                "normal_balance": _status_value(target.normal_balance),
            },
        )
        raise NormalBalanceOverrideError(
            str(target.id),
            _status_value(target.account_type),
            _status_value(target.normal_balance),
        )


def _listener_table():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.transaction import LedgerMovement, Transaction

    return (
        (Transaction, "before_update", _check_transaction_immutability),
        (Transaction, "before_delete", _check_transaction_delete),
        (LedgerMovement, "before_update", _check_movement_update),
        (LedgerMovement, "before_delete", _check_movement_delete),
        (Account, "before_insert", _check_account_normal_balance),
        (Account, "before_update", _check_account_normal_balance),
    )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call once after models are imported and before any database
    operations begin.  Repeated calls are harmless.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listener_table():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
