"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (UI handlers, API views, batch jobs) must be able to
react to a failure without parsing its message:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        registry.delete_account(account_id)
    except AccountHasBalanceError as e:
        api_response(code=e.code, balance=str(e.balance))

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError. The six categories map to
how a caller should respond:

    LedgerKernelError (base)
    |
    +-- ValidationError          malformed input, nothing written, resubmit
    |   +-- InvalidFieldError
    |   +-- InvalidAmountError
    |   +-- SameAccountError
    |   +-- AccountInactiveError
    |   +-- InvalidSubtypeError
    |   +-- InvalidParentAccountError
    |   +-- AccountCycleError
    |   +-- InvalidCurrencyError
    |   +-- InvalidExchangeRateError
    |   +-- InvalidPeriodError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- BudgetNotFoundError
    |   +-- BudgetItemNotFoundError
    |
    +-- ConflictError            referential or uniqueness conflicts
    |   +-- DuplicateAccountCodeError
    |   +-- AccountHasBalanceError
    |   +-- AccountReferencedError
    |   +-- AccountHasChildrenError
    |   +-- SystemAccountError
    |   +-- AccountTypeLockedError
    |   +-- TransactionAlreadyReversedError
    |   +-- ActiveBudgetError
    |
    +-- InvalidStateError        operation forbidden from the current state
    |   +-- InvalidTransitionError
    |
    +-- ImmutableStateError      mutation of posted history
    |   +-- PostedTransactionError
    |   +-- LedgerMovementImmutableError
    |   +-- NormalBalanceOverrideError
    |
    +-- IntegrityError           internal invariant broken, alert and abort
        +-- LedgerImbalanceError
        +-- BalanceDriftError
        +-- AccountingIdentityError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                        | When Raised
-------------|-----------------------------|-------------------------------------
Validation   | INVALID_FIELD               | Unknown or protected field in a patch
             | INVALID_AMOUNT              | Amount not > 0 (or < 0 where allowed)
             | SAME_ACCOUNT                | Debit account == credit account
             | ACCOUNT_INACTIVE            | Posting to a deactivated account
             | INVALID_SUBTYPE             | Subtype not allowed for account type
             | INVALID_PARENT_ACCOUNT      | Parent of other type/company or self
             | ACCOUNT_CYCLE               | Parent assignment would form a cycle
             | INVALID_CURRENCY            | Not a valid ISO 4217 code
             | INVALID_EXCHANGE_RATE       | Rate is zero or negative
             | INVALID_PERIOD              | period_end <= period_start
-------------|-----------------------------|-------------------------------------
Not found    | ACCOUNT_NOT_FOUND           | Account ID doesn't exist
             | TRANSACTION_NOT_FOUND       | Transaction ID doesn't exist
             | BUDGET_NOT_FOUND            | Budget ID doesn't exist
             | BUDGET_ITEM_NOT_FOUND       | Budget item ID doesn't exist
-------------|-----------------------------|-------------------------------------
Conflict     | DUPLICATE_ACCOUNT_CODE      | Code already used in the company
             | ACCOUNT_HAS_BALANCE         | Delete with nonzero balance
             | ACCOUNT_REFERENCED          | Delete while transactions reference it
             | ACCOUNT_HAS_CHILDREN        | Delete while child accounts exist
             | SYSTEM_ACCOUNT              | Delete of a system account
             | ACCOUNT_TYPE_LOCKED         | Type change once referenced
             | TRANSACTION_ALREADY_REVERSED| Second reversal of one transaction
             | ACTIVE_BUDGET               | Delete of an active budget
-------------|-----------------------------|-------------------------------------
State        | INVALID_STATE               | Operation not allowed in this status
             | INVALID_TRANSITION          | No such lifecycle transition
-------------|-----------------------------|-------------------------------------
Immutable    | POSTED_TRANSACTION          | Update/delete/re-post of posted row
             | LEDGER_MOVEMENT_IMMUTABLE   | Update/delete of a ledger movement
             | NORMAL_BALANCE_OVERRIDE     | normal_balance differs from type rule
-------------|-----------------------------|-------------------------------------
Integrity    | LEDGER_IMBALANCE            | Sum of debits != sum of credits
             | BALANCE_DRIFT               | Stored balance != movement replay
             | ACCOUNTING_IDENTITY         | Assets != liabilities + equity

===============================================================================
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Validation


class ValidationError(LedgerKernelError):
    """Malformed input. Raised before any state change."""

    code: str = "VALIDATION_ERROR"


class InvalidFieldError(ValidationError):
    """A patch names a field that is unknown or not caller-settable."""

    code: str = "INVALID_FIELD"

    def __init__(self, entity_type: str, field: str, reason: str):
        self.entity_type = entity_type
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid field '{field}' for {entity_type}: {reason}")


class InvalidAmountError(ValidationError):
    """Amount fails a sign or range rule."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Decimal | str, reason: str):
        self.field = field
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid {field} {amount}: {reason}")


class SameAccountError(ValidationError):
    """Debit and credit account are identical."""

    code: str = "SAME_ACCOUNT"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(
            f"Debit and credit account must differ (both {account_id})"
        )


class AccountInactiveError(ValidationError):
    """Account is deactivated and cannot receive new transactions."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str | None = None):
        self.account_id = account_id
        self.account_code = account_code
        label = account_code or account_id
        super().__init__(f"Account is inactive: {label}")


class InvalidSubtypeError(ValidationError):
    """Subtype is not part of the taxonomy for the account type."""

    code: str = "INVALID_SUBTYPE"

    def __init__(self, account_type: str, subtype: str, allowed: tuple[str, ...]):
        self.account_type = account_type
        self.subtype = subtype
        self.allowed = allowed
        super().__init__(
            f"Subtype '{subtype}' not allowed for {account_type} accounts "
            f"(allowed: {', '.join(allowed) or 'none'})"
        )


class InvalidParentAccountError(ValidationError):
    """Parent account is unusable for this child."""

    code: str = "INVALID_PARENT_ACCOUNT"

    def __init__(self, account_id: str | None, parent_account_id: str, reason: str):
        self.account_id = account_id
        self.parent_account_id = parent_account_id
        self.reason = reason
        super().__init__(f"Invalid parent account {parent_account_id}: {reason}")


class AccountCycleError(ValidationError):
    """Parent assignment would make an account its own ancestor."""

    code: str = "ACCOUNT_CYCLE"

    def __init__(self, account_id: str, parent_account_id: str):
        self.account_id = account_id
        self.parent_account_id = parent_account_id
        super().__init__(
            f"Setting parent {parent_account_id} on account {account_id} "
            f"would create a cycle"
        )


class InvalidCurrencyError(ValidationError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class InvalidExchangeRateError(ValidationError):
    """Exchange rate is zero, negative or not a number."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate: str):
        self.rate = rate
        super().__init__(f"Exchange rate must be positive, got {rate}")


class InvalidPeriodError(ValidationError):
    """Period end does not fall after period start."""

    code: str = "INVALID_PERIOD"

    def __init__(self, period_start: str, period_end: str):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            f"period_end ({period_end}) must be after period_start ({period_start})"
        )


# Not found


class NotFoundError(LedgerKernelError):
    """Referenced record does not exist in the company scope."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Account with given ID was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class TransactionNotFoundError(NotFoundError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class BudgetNotFoundError(NotFoundError):
    """Budget with given ID was not found."""

    code: str = "BUDGET_NOT_FOUND"

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget not found: {budget_id}")


class BudgetItemNotFoundError(NotFoundError):
    """Budget line item was not found on the given budget."""

    code: str = "BUDGET_ITEM_NOT_FOUND"

    def __init__(self, budget_id: str, item_id: str):
        self.budget_id = budget_id
        self.item_id = item_id
        super().__init__(f"Budget item {item_id} not found on budget {budget_id}")


# Conflict


class ConflictError(LedgerKernelError):
    """Referential or uniqueness conflict with existing records."""

    code: str = "CONFLICT"


class DuplicateAccountCodeError(ConflictError):
    """Account code already exists in the company."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, company_id: str, account_code: str):
        self.company_id = company_id
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class AccountHasBalanceError(ConflictError):
    """Account cannot be deleted while it carries a balance."""

    code: str = "ACCOUNT_HAS_BALANCE"

    def __init__(self, account_id: str, balance: Decimal):
        self.account_id = account_id
        self.balance = balance
        super().__init__(
            f"Account {account_id} has nonzero balance {balance}; cannot delete"
        )


class AccountReferencedError(ConflictError):
    """Account cannot be deleted because transactions reference it."""

    code: str = "ACCOUNT_REFERENCED"

    def __init__(self, account_id: str, transaction_count: int):
        self.account_id = account_id
        self.transaction_count = transaction_count
        super().__init__(
            f"Account {account_id} is referenced by {transaction_count} "
            f"transaction(s); deactivate it instead"
        )


class AccountHasChildrenError(ConflictError):
    """Account cannot be deleted or retyped while child accounts exist."""

    code: str = "ACCOUNT_HAS_CHILDREN"

    def __init__(self, account_id: str, child_count: int):
        self.account_id = account_id
        self.child_count = child_count
        super().__init__(f"Account {account_id} has {child_count} child account(s)")


class SystemAccountError(ConflictError):
    """System accounts cannot be deleted."""

    code: str = "SYSTEM_ACCOUNT"

    def __init__(self, account_id: str, account_code: str):
        self.account_id = account_id
        self.account_code = account_code
        super().__init__(f"Account {account_code} is a system account; cannot delete")


class AccountTypeLockedError(ConflictError):
    """Account type cannot change once the account is in use."""

    code: str = "ACCOUNT_TYPE_LOCKED"

    def __init__(self, account_id: str, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Cannot change type of account {account_id}: {reason}")


class TransactionAlreadyReversedError(ConflictError):
    """Transaction already has a reversing entry."""

    code: str = "TRANSACTION_ALREADY_REVERSED"

    def __init__(self, transaction_id: str, reversal_id: str):
        self.transaction_id = transaction_id
        self.reversal_id = reversal_id
        super().__init__(
            f"Transaction {transaction_id} already reversed by {reversal_id}"
        )


class ActiveBudgetError(ConflictError):
    """Active budgets cannot be deleted."""

    code: str = "ACTIVE_BUDGET"

    def __init__(self, budget_id: str):
        self.budget_id = budget_id
        super().__init__(f"Budget {budget_id} is active; close or cancel it first")


# State


class InvalidStateError(LedgerKernelError):
    """Operation attempted from a status that forbids it."""

    code: str = "INVALID_STATE"

    def __init__(self, entity_type: str, entity_id: str, status: str, operation: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id} in status '{status}'"
        )


class InvalidTransitionError(InvalidStateError):
    """Lifecycle has no edge between the two statuses."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            entity_type, entity_id, from_status, f"transition to '{to_status}'"
        )


# Immutability


class ImmutableStateError(LedgerKernelError):
    """Attempted mutation of finalized ledger history."""

    code: str = "IMMUTABLE_STATE"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


class PostedTransactionError(ImmutableStateError):
    """Posted transactions can only be corrected by a reversing entry."""

    code: str = "POSTED_TRANSACTION"

    def __init__(self, transaction_id: str, reason: str):
        super().__init__("Transaction", transaction_id, reason)


class LedgerMovementImmutableError(ImmutableStateError):
    """Ledger movements are append-only."""

    code: str = "LEDGER_MOVEMENT_IMMUTABLE"

    def __init__(self, movement_id: str, operation: str):
        self.operation = operation
        super().__init__("LedgerMovement", movement_id, f"{operation} not allowed")


class NormalBalanceOverrideError(ImmutableStateError):
    """normal_balance was set to something other than the type-implied side."""

    code: str = "NORMAL_BALANCE_OVERRIDE"

    def __init__(self, account_id: str, account_type: str, normal_balance: str):
        self.account_type = account_type
        self.normal_balance = normal_balance
        super().__init__(
            "Account",
            account_id,
            f"normal_balance '{normal_balance}' is not derived from type '{account_type}'",
        )


# Integrity


class IntegrityError(LedgerKernelError):
    """Internal invariant violated. Not user-recoverable."""

    code: str = "INTEGRITY_ERROR"


class LedgerImbalanceError(IntegrityError):
    """Posted debits and credits no longer sum to the same total."""

    code: str = "LEDGER_IMBALANCE"

    def __init__(self, company_id: str, debits: Decimal, credits: Decimal):
        self.company_id = company_id
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Ledger imbalance for company {company_id}: "
            f"debits={debits}, credits={credits}"
        )


class BalanceDriftError(IntegrityError):
    """Stored account balance disagrees with its movement history."""

    code: str = "BALANCE_DRIFT"

    def __init__(self, account_id: str, stored: Decimal, replayed: Decimal):
        self.account_id = account_id
        self.stored = stored
        self.replayed = replayed
        super().__init__(
            f"Balance drift on account {account_id}: "
            f"stored={stored}, replayed={replayed}"
        )


class AccountingIdentityError(IntegrityError):
    """Assets do not equal liabilities plus equity."""

    code: str = "ACCOUNTING_IDENTITY"

    def __init__(
        self,
        company_id: str,
        as_of: str,
        assets: Decimal,
        liabilities: Decimal,
        equity: Decimal,
    ):
        self.company_id = company_id
        self.as_of = as_of
        self.assets = assets
        self.liabilities = liabilities
        self.equity = equity
        super().__init__(
            f"Accounting identity violated as of {as_of}: assets={assets}, "
            f"liabilities={liabilities}, equity={equity}"
        )
