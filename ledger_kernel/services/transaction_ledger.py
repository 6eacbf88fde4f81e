"""
TransactionLedger -- the two-account transaction lifecycle and posting.

Responsibility:
    Creates transactions, walks them through the single lifecycle in
    ``domain.lifecycle`` (pending -> approved -> posted, pending -> rejected)
    and applies the balance effect exactly once, at the transition into
    ``posted``.  Corrections to posted history are new reversing
    transactions.

Architecture position:
    Kernel > Services -- imperative shell.  Writes balances through
    AccountRegistry._adjust_balance, allocates numbers through
    SequenceService, reads movement totals through LedgerSelector.

Invariants enforced:
    - Zero-sum: every posting writes one debit and one credit movement of
      the same base_amount, so total debits always equal total credits.
    - Post-once: the transaction row is locked and its status re-read before
      the post transition; a second post raises PostedTransactionError.
    - Append-only: posted rows and movements are never edited (service
      checks here, ORM listeners in db/immutability.py as the backstop).
    - Deadlock-free: the two account rows are locked in ascending id order.

Failure modes:
    - ValidationError subclasses for malformed specs (nothing is written).
    - InvalidStateError / InvalidTransitionError for illegal lifecycle steps.
    - PostedTransactionError for any change to a posted transaction.
    - TransactionAlreadyReversedError for a second reversal.
    - LedgerImbalanceError / BalanceDriftError from integrity checks.

Audit relevance:
    Every transition logs a structured event (transaction_created,
    transaction_approved, transaction_posted, transaction_rejected,
    transaction_reversed) with the transaction id, number and actor, under
    a LogContext carrying company_id and transaction_id.
"""

from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, round_money, to_money, validate_currency
from ledger_kernel.domain.balance_rules import EntrySide, posting_deltas
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.config import PostingConfig
from ledger_kernel.domain.dtos import LedgerIntegrityReport, TransactionSpec
from ledger_kernel.domain.lifecycle import (
    DELETABLE_STATUSES,
    EDITABLE_STATUSES,
    TRANSACTION_WORKFLOW,
    ReferenceType,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    BalanceDriftError,
    InvalidAmountError,
    InvalidExchangeRateError,
    InvalidFieldError,
    InvalidStateError,
    InvalidTransitionError,
    LedgerImbalanceError,
    PostedTransactionError,
    SameAccountError,
    TransactionAlreadyReversedError,
    TransactionNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import LedgerMovement, Transaction
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.transaction_ledger")


class TransactionLedger(BaseService[Transaction]):
    """
    Transaction lifecycle service.

    Contract:
        Mutating methods flush and return the Transaction; they never
        commit.  Posting runs inside a savepoint so a failure part-way
        through leaves neither movements nor balance changes behind.

    Guarantees:
        - Balances change only in post_transaction.
        - transaction_number is unique and sequential per company.
    """

    UPDATABLE_FIELDS = frozenset({
        "debit_account_id",
        "credit_account_id",
        "amount",
        "transaction_type",
        "transaction_date",
        "description",
        "currency",
        "exchange_rate",
        "reference_type",
        "reference_id",
        "reference_number",
    })

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: PostingConfig | None = None,
    ):
        super().__init__(session, clock)
        self._config = config or PostingConfig.with_defaults()
        self._accounts = AccountRegistry(session, self.clock)
        self._sequences = SequenceService(session)
        self._ledger_selector = LedgerSelector(session)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_transaction(self, transaction_id: UUID, company_id: UUID | None = None) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if txn is None or (company_id is not None and txn.company_id != company_id):
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    def get_by_number(self, company_id: UUID, transaction_number: str) -> Transaction:
        txn = self.session.execute(
            select(Transaction).where(
                Transaction.company_id == company_id,
                Transaction.transaction_number == transaction_number,
            )
        ).scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(transaction_number)
        return txn

    def list_transactions(
        self,
        company_id: UUID,
        status: TransactionStatus | str | None = None,
        transaction_type: TransactionType | str | None = None,
        account_id: UUID | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
        limit: int | None = None,
    ) -> list[Transaction]:
        """Transactions of a company, newest first, optionally filtered."""
        stmt = select(Transaction).where(Transaction.company_id == company_id)
        if status is not None:
            stmt = stmt.where(Transaction.status == TransactionStatus(status).value)
        if transaction_type is not None:
            stmt = stmt.where(
                Transaction.transaction_type == TransactionType(transaction_type).value
            )
        if account_id is not None:
            stmt = stmt.where(
                or_(
                    Transaction.debit_account_id == account_id,
                    Transaction.credit_account_id == account_id,
                )
            )
        if date_from is not None:
            stmt = stmt.where(Transaction.transaction_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Transaction.transaction_date <= date_to)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Transaction.description.ilike(pattern),
                    Transaction.transaction_number.ilike(pattern),
                    Transaction.reference_number.ilike(pattern),
                )
            )
        stmt = stmt.order_by(Transaction.transaction_date.desc(), Transaction.sequence.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def reversal_of(self, transaction_id: UUID) -> Transaction | None:
        """The reversing transaction for ``transaction_id``, if one exists."""
        return self.session.execute(
            select(Transaction).where(Transaction.reversal_of_id == transaction_id)
        ).scalar_one_or_none()

    # =========================================================================
    # Create / update / delete
    # =========================================================================

    def create_transaction(
        self,
        company_id: UUID,
        spec: TransactionSpec,
        actor_id: UUID,
        reversal_of_id: UUID | None = None,
    ) -> Transaction:
        """
        Record a new transaction in PENDING.

        Preconditions:
            - amount > 0, debit and credit accounts differ, both exist in
              the company and are active.
            - Reversals (reversal_of_id set) may use deactivated accounts.
            - currency is ISO 4217, exchange_rate > 0.

        Postconditions:
            - No balance has changed.
            - transaction_number holds the next company sequence.
        """
        fields = self._validated_fields(
            company_id,
            require_active=reversal_of_id is None,
            debit_account_id=spec.debit_account_id,
            credit_account_id=spec.credit_account_id,
            amount=spec.amount,
            transaction_type=spec.transaction_type,
            transaction_date=spec.transaction_date or self.clock.today(),
            description=spec.description,
            currency=spec.currency,
            exchange_rate=spec.exchange_rate,
            reference_type=spec.reference_type,
            reference_id=spec.reference_id,
            reference_number=spec.reference_number,
        )

        sequence = self._sequences.next_value(
            SequenceService.transaction_sequence_name(company_id)
        )
        txn = Transaction(
            company_id=company_id,
            sequence=sequence,
            transaction_number=self._config.format_number(sequence),
            status=TRANSACTION_WORKFLOW.initial_state,
            reversal_of_id=reversal_of_id,
            created_by_id=actor_id,
            **fields,
        )
        self.session.add(txn)
        self.session.flush()

        logger.info(
            "transaction_created",
            extra={
                "transaction_id": str(txn.id),
                "transaction_number": txn.transaction_number,
                "company_id": str(company_id),
                "transaction_type": txn.transaction_type,
                "amount": txn.amount,
                "currency": txn.currency,
                "actor_id": str(actor_id),
            },
        )
        return txn

    def update_transaction(
        self,
        transaction_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
    ) -> Transaction:
        """
        Edit a PENDING transaction.

        Raises:
            PostedTransactionError: transaction is posted.
            InvalidStateError: transaction is approved or rejected.
            InvalidFieldError: patch names an unknown field.
        """
        txn = self.get_transaction(transaction_id)
        self._ensure_status(txn, EDITABLE_STATUSES, "update")

        for field in patch:
            if field not in self.UPDATABLE_FIELDS:
                raise InvalidFieldError("Transaction", field, "field cannot be changed")

        current = {field: getattr(txn, field) for field in self.UPDATABLE_FIELDS}
        current.update(patch)
        fields = self._validated_fields(txn.company_id, **current)

        for field, value in fields.items():
            setattr(txn, field, value)
        txn.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "transaction_updated",
            extra={
                "transaction_id": str(txn.id),
                "transaction_number": txn.transaction_number,
                "fields": sorted(patch),
                "actor_id": str(actor_id),
            },
        )
        return txn

    def delete_transaction(self, transaction_id: UUID) -> None:
        """Hard delete of a PENDING or REJECTED transaction."""
        txn = self.get_transaction(transaction_id)
        self._ensure_status(txn, DELETABLE_STATUSES, "delete")

        number = txn.transaction_number
        self.session.delete(txn)
        self.session.flush()
        logger.info(
            "transaction_deleted",
            extra={"transaction_id": str(transaction_id), "transaction_number": number},
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def approve_transaction(self, transaction_id: UUID, actor_id: UUID) -> Transaction:
        """PENDING -> APPROVED.  No balance effect."""
        txn = self._lock_transaction(transaction_id)
        with LogContext.bind(company_id=txn.company_id, transaction_id=txn.id, actor_id=actor_id):
            self._transition(txn, "approve")
            txn.approved_by_id = actor_id
            txn.approved_at = self.clock.now()
            txn.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "transaction_approved",
                extra={
                    "transaction_id": str(txn.id),
                    "transaction_number": txn.transaction_number,
                },
            )
        return txn

    def post_transaction(self, transaction_id: UUID, actor_id: UUID) -> Transaction:
        """
        APPROVED -> POSTED, applying the balance effect.

        Postconditions:
            - Two LedgerMovement rows exist for the transaction.
            - Each account's current_balance moved by its signed delta.

        Raises:
            PostedTransactionError: already posted.
            InvalidTransitionError: not approved.
        """
        txn = self._lock_transaction(transaction_id)
        with LogContext.bind(company_id=txn.company_id, transaction_id=txn.id, actor_id=actor_id):
            transition = self._transition(txn, "post")
            with self.session.begin_nested():
                if transition.applies_balance:
                    self._apply_posting(txn)
                txn.status = transition.to_state
                txn.posted_by_id = actor_id
                txn.posted_at = self.clock.now()
                txn.updated_by_id = actor_id
                self.session.flush()
                if self._config.verify_zero_sum_on_post:
                    self._verify_zero_sum(txn.company_id)

            logger.info(
                "transaction_posted",
                extra={
                    "transaction_id": str(txn.id),
                    "transaction_number": txn.transaction_number,
                    "debit_account_id": str(txn.debit_account_id),
                    "credit_account_id": str(txn.credit_account_id),
                    "base_amount": txn.base_amount,
                },
            )
        return txn

    def approve_and_post(self, transaction_id: UUID, actor_id: UUID) -> Transaction:
        """Run approve then post as one unit of work."""
        with self.session.begin_nested():
            self.approve_transaction(transaction_id, actor_id)
            return self.post_transaction(transaction_id, actor_id)

    def reject_transaction(self, transaction_id: UUID, reason: str, actor_id: UUID) -> Transaction:
        """PENDING -> REJECTED.  A reason is required."""
        reason = (reason or "").strip()
        if not reason:
            raise InvalidFieldError("Transaction", "rejection_reason", "a reason is required")

        txn = self._lock_transaction(transaction_id)
        with LogContext.bind(company_id=txn.company_id, transaction_id=txn.id, actor_id=actor_id):
            self._transition(txn, "reject")
            txn.rejected_by_id = actor_id
            txn.rejected_at = self.clock.now()
            txn.rejection_reason = reason
            txn.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "transaction_rejected",
                extra={
                    "transaction_id": str(txn.id),
                    "transaction_number": txn.transaction_number,
                    "reason": reason,
                },
            )
        return txn

    def reverse_transaction(
        self,
        transaction_id: UUID,
        reason: str,
        actor_id: UUID,
        reversal_date: date | None = None,
    ) -> Transaction:
        """
        Undo a posted transaction with a new posted ADJUSTMENT that swaps
        the debit and credit accounts.

        Raises:
            InvalidStateError: original is not posted.
            TransactionAlreadyReversedError: a reversal already exists.
        """
        original = self._lock_transaction(transaction_id)
        if original.status != TransactionStatus.POSTED.value:
            raise InvalidStateError(
                "Transaction", str(original.id), original.status, "reverse"
            )
        existing = self.reversal_of(original.id)
        if existing is not None:
            raise TransactionAlreadyReversedError(str(original.id), str(existing.id))

        reason = (reason or "").strip() or f"Reversal of {original.transaction_number}"
        spec = TransactionSpec(
            debit_account_id=original.credit_account_id,
            credit_account_id=original.debit_account_id,
            amount=original.amount,
            transaction_type=TransactionType.ADJUSTMENT,
            transaction_date=reversal_date or self.clock.today(),
            description=reason,
            currency=original.currency,
            exchange_rate=original.exchange_rate,
            reference_type=original.reference_type,
            reference_id=original.reference_id,
            reference_number=original.transaction_number,
        )

        with self.session.begin_nested():
            reversal = self.create_transaction(
                original.company_id, spec, actor_id, reversal_of_id=original.id
            )
            self.approve_transaction(reversal.id, actor_id)
            self.post_transaction(reversal.id, actor_id)

        logger.info(
            "transaction_reversed",
            extra={
                "transaction_id": str(original.id),
                "transaction_number": original.transaction_number,
                "reversal_id": str(reversal.id),
                "reversal_number": reversal.transaction_number,
                "actor_id": str(actor_id),
            },
        )
        return reversal

    # =========================================================================
    # Integrity
    # =========================================================================

    def verify_ledger_integrity(self, company_id: UUID) -> LedgerIntegrityReport:
        """
        Check zero-sum and that every stored balance equals its replay.

        Raises:
            LedgerImbalanceError: total debits != total credits.
            BalanceDriftError: an account's current_balance drifted.
        """
        debits, credits = self._verify_zero_sum(company_id)

        replayed = self._ledger_selector.replayed_balances(company_id)
        accounts = self.session.execute(
            select(Account)
            .where(Account.company_id == company_id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        for account in accounts:
            expected = replayed.get(account.id, ZERO)
            if account.current_balance != expected:
                logger.error(
                    "balance_drift_detected",
                    extra={
                        "account_id": str(account.id),
                        "account_code": account.code,
                        "stored": account.current_balance,
                        "replayed": expected,
                    },
                )
                raise BalanceDriftError(str(account.id), account.current_balance, expected)

        posted = self.session.execute(
            select(func.count())
            .select_from(Transaction)
            .where(
                Transaction.company_id == company_id,
                Transaction.status == TransactionStatus.POSTED.value,
            )
        ).scalar_one()

        report = LedgerIntegrityReport(
            company_id=company_id,
            debit_total=debits,
            credit_total=credits,
            accounts_checked=len(accounts),
            transactions_checked=posted,
        )
        logger.info(
            "ledger_integrity_verified",
            extra={
                "company_id": str(company_id),
                "debit_total": debits,
                "credit_total": credits,
                "accounts_checked": report.accounts_checked,
                "transactions_checked": report.transactions_checked,
            },
        )
        return report

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_transaction(self, transaction_id: UUID) -> Transaction:
        txn = self.session.execute(
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if txn is None:
            raise TransactionNotFoundError(str(transaction_id))
        return txn

    def _transition(self, txn: Transaction, action: str):
        """Validate ``action`` from the current status and apply the new status.

        Posting returns the transition without applying it so the status
        change lands inside the posting savepoint.
        """
        if txn.status == TransactionStatus.POSTED.value:
            raise PostedTransactionError(
                str(txn.id), f"cannot {action} a posted transaction"
            )
        transition = TRANSACTION_WORKFLOW.find(action, txn.status)
        if transition is None:
            target = next(
                (t.to_state for t in TRANSACTION_WORKFLOW.transitions if t.action == action),
                action,
            )
            raise InvalidTransitionError("Transaction", str(txn.id), txn.status, target)
        if not transition.applies_balance:
            txn.status = transition.to_state
        return transition

    def _ensure_status(self, txn: Transaction, allowed: frozenset[str], operation: str) -> None:
        if txn.status == TransactionStatus.POSTED.value:
            raise PostedTransactionError(
                str(txn.id), f"cannot {operation} a posted transaction; reverse it instead"
            )
        if txn.status not in allowed:
            raise InvalidStateError("Transaction", str(txn.id), txn.status, operation)

    def _apply_posting(self, txn: Transaction) -> None:
        """Lock both accounts, write the two movements, move both balances."""
        ordered_ids = sorted({txn.debit_account_id, txn.credit_account_id}, key=str)
        locked = {
            account.id: account
            for account in self.session.execute(
                select(Account)
                .where(Account.id.in_(ordered_ids))
                .order_by(Account.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars()
        }
        debit_account = locked[txn.debit_account_id]
        credit_account = locked[txn.credit_account_id]

        debit_delta, credit_delta = posting_deltas(
            debit_account.normal_balance, credit_account.normal_balance, txn.base_amount
        )
        for account, side, delta in (
            (debit_account, EntrySide.DEBIT, debit_delta),
            (credit_account, EntrySide.CREDIT, credit_delta),
        ):
            self.session.add(
                LedgerMovement(
                    company_id=txn.company_id,
                    transaction_id=txn.id,
                    account_id=account.id,
                    side=side.value,
                    amount=txn.base_amount,
                    balance_delta=delta,
                    effective_date=txn.transaction_date,
                    created_by_id=txn.created_by_id,
                )
            )
        self.session.flush()

        self._accounts._adjust_balance(debit_account, debit_delta)
        self._accounts._adjust_balance(credit_account, credit_delta)

    def _verify_zero_sum(self, company_id: UUID) -> tuple[Decimal, Decimal]:
        debits, credits = self._ledger_selector.side_totals(company_id)
        if debits != credits:
            logger.error(
                "ledger_imbalance_detected",
                extra={"company_id": str(company_id), "debits": debits, "credits": credits},
            )
            raise LedgerImbalanceError(str(company_id), debits, credits)
        return debits, credits

    def _validated_fields(
        self,
        company_id: UUID,
        *,
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: Any,
        transaction_type: Any,
        transaction_date: date,
        description: str | None,
        currency: str,
        exchange_rate: Any,
        reference_type: str | None,
        reference_id: str | None,
        reference_number: str | None,
        require_active: bool = True,
    ) -> dict[str, Any]:
        """Validate transaction fields and return column values, base_amount included."""
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidAmountError("amount", amount, "must be greater than zero")

        if debit_account_id == credit_account_id:
            raise SameAccountError(str(debit_account_id))
        for account_id in (debit_account_id, credit_account_id):
            account = self.session.get(Account, account_id)
            if account is None or account.company_id != company_id:
                raise AccountNotFoundError(str(account_id))
            if require_active and not account.is_active:
                raise AccountInactiveError(str(account.id), account.code)

        try:
            txn_type = TransactionType(transaction_type)
        except ValueError:
            raise InvalidFieldError(
                "Transaction", "transaction_type", f"unknown type '{transaction_type}'"
            ) from None

        ref_type = None
        if reference_type:
            try:
                ref_type = ReferenceType(reference_type).value
            except ValueError:
                raise InvalidFieldError(
                    "Transaction", "reference_type", f"unknown reference type '{reference_type}'"
                ) from None

        if transaction_date is None:
            raise InvalidFieldError("Transaction", "transaction_date", "date is required")

        rate = self._to_rate(exchange_rate)
        return {
            "debit_account_id": debit_account_id,
            "credit_account_id": credit_account_id,
            "amount": amount,
            "transaction_type": txn_type.value,
            "transaction_date": transaction_date,
            "description": (description or "").strip(),
            "currency": validate_currency(currency),
            "exchange_rate": rate,
            "base_amount": round_money(amount * rate),
            "reference_type": ref_type,
            "reference_id": reference_id,
            "reference_number": reference_number,
        }

    @staticmethod
    def _to_rate(value: Any) -> Decimal:
        if isinstance(value, float):
            raise InvalidExchangeRateError(repr(value))
        try:
            rate = Decimal(str(value))
        except (InvalidOperation, ValueError):
            raise InvalidExchangeRateError(str(value)) from None
        if not rate.is_finite() or rate <= 0:
            raise InvalidExchangeRateError(str(value))
        return rate
