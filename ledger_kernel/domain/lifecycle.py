"""
Transaction lifecycle (``ledger_kernel.domain.lifecycle``).

One state machine for every transaction type::

    pending --approve--> approved --post--> posted
       |
       +----reject-----> rejected

``posted`` and ``rejected`` are terminal.  A posted transaction is
corrected only by a new reversing transaction that walks the same
machine.  ``post`` is the only transition that applies a balance effect.
"""

from enum import Enum

from ledger_kernel.domain.workflow import Transition, Workflow


class TransactionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    POSTED = "posted"


class TransactionType(str, Enum):
    JOURNAL = "journal"
    PAYMENT = "payment"
    RECEIPT = "receipt"
    TRANSFER = "transfer"
    ADJUSTMENT = "adjustment"


class ReferenceType(str, Enum):
    """Source documents a transaction may point back to."""

    INVOICE = "invoice"
    BILL = "bill"
    EXPENSE = "expense"
    PROJECT = "project"
    DEPARTMENT = "department"
    PAYROLL = "payroll"
    ASSET = "asset"
    MANUAL = "manual"


TRANSACTION_WORKFLOW = Workflow(
    name="transaction",
    description="Approval and posting lifecycle for ledger transactions",
    initial_state=TransactionStatus.PENDING.value,
    states=tuple(s.value for s in TransactionStatus),
    transitions=(
        Transition("pending", "approved", action="approve"),
        Transition("approved", "posted", action="post", applies_balance=True),
        Transition("pending", "rejected", action="reject"),
    ),
    terminal_states=("posted", "rejected"),
)

# Statuses in which the transaction's own fields may still be edited.
EDITABLE_STATUSES = frozenset({TransactionStatus.PENDING.value})

# Statuses from which a transaction may be hard-deleted.
DELETABLE_STATUSES = frozenset(
    {TransactionStatus.PENDING.value, TransactionStatus.REJECTED.value}
)
