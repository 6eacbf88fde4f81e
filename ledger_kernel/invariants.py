"""
Kernel Invariants Contract.

These invariants are structural law. They are hardcoded in the posting
path and the ORM immutability listeners. No settings file or module
configuration may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across AccountRegistry, TransactionLedger,
SequenceService and db.immutability.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally.
    """

    ZERO_SUM = "zero_sum"
    """Every posted transaction writes one debit and one credit movement of
    equal amount. Enforced by TransactionLedger.post_transaction and
    verify_ledger_integrity."""

    POST_ONCE = "post_once"
    """A transaction's balance effect is applied exactly once, at the
    transition into posted. Enforced by the transaction state machine."""

    APPEND_ONLY = "append_only"
    """Posted transactions and ledger movements are never updated or
    deleted. Enforced by db.immutability listeners."""

    DERIVED_NORMAL_BALANCE = "derived_normal_balance"
    """An account's normal balance always equals normal_balance_for(type).
    Enforced by AccountRegistry and an Account ORM listener."""

    ACYCLIC_HIERARCHY = "acyclic_hierarchy"
    """Parent accounts share the child's type and never form a cycle.
    Enforced by AccountRegistry ancestry checks."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """Transaction numbers are strictly monotonic per company. Enforced by
    SequenceService with locked counter rows."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "ledger_config",
    "ledger_modules",
)
