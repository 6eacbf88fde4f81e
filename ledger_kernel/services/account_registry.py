"""
AccountRegistry -- chart of accounts and running balances.

Responsibility:
    Owns account definitions (hierarchy, type/subtype taxonomy, bank and tax
    flags) and each account's current balance.  It is the dependency root
    of the ledger: TransactionLedger writes balances through it, BudgetTracker
    and ReportAggregator read through it.

Architecture position:
    Kernel > Services -- imperative shell.  Uses domain.balance_rules for
    every normal-balance decision and selectors.ledger_selector for
    historical balance replay.

Invariants enforced:
    - normal_balance is derived from account_type on create and on every
      type change; it never comes from the caller.
    - Parent accounts belong to the same company, have the same type, are
      not the account itself and never form a cycle (ancestry walk).
    - account_type is locked once any transaction references the account or
      once it has children.
    - Hard delete only when balance is zero, nothing references the account,
      it has no children and it is not a system account.
    - current_balance changes only through _adjust_balance, an atomic
      ``UPDATE ... SET current_balance = current_balance + :delta``.

Failure modes:
    - ValidationError subclasses for malformed specs and patches.
    - ConflictError subclasses for duplicate codes and guarded deletes.
    - AccountNotFoundError for unknown ids or ids of another company.

Audit relevance:
    account_created / account_updated / account_deleted log events carry
    the account id, code and actor.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, validate_currency
from ledger_kernel.domain.balance_rules import (
    AccountType,
    normal_balance_for,
    validate_subtype,
)
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import AccountSpec, BalanceHistoryEntry
from ledger_kernel.exceptions import (
    AccountCycleError,
    AccountHasBalanceError,
    AccountHasChildrenError,
    AccountNotFoundError,
    AccountReferencedError,
    AccountTypeLockedError,
    DuplicateAccountCodeError,
    InvalidFieldError,
    InvalidParentAccountError,
    SystemAccountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import Transaction
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_registry")


class AccountRegistry(BaseService[Account]):
    """
    Chart of accounts service.

    Contract:
        Every mutating method flushes and returns the affected Account.
        Company scope is explicit: lookups by id verify the company when
        one is given.

    Guarantees:
        - New accounts start at a zero balance.
        - A failed validation leaves the database untouched.

    Non-goals:
        - Does NOT post transactions (TransactionLedger does).
        - _adjust_balance is not part of the public surface.
    """

    # Fields a caller may change through update_account
    UPDATABLE_FIELDS = frozenset({
        "code",
        "name",
        "description",
        "account_type",
        "subtype",
        "parent_account_id",
        "currency",
        "is_active",
        "bank_account",
        "bank_name",
        "account_number",
        "routing_number",
        "tax_account",
    })

    # Fields owned by the kernel
    PROTECTED_FIELDS = frozenset({
        "id",
        "company_id",
        "normal_balance",
        "current_balance",
        "is_system",
        "created_at",
        "created_by_id",
        "updated_at",
        "updated_by_id",
    })

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)
        self._ledger_selector = LedgerSelector(session)

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_account(self, account_id: UUID, company_id: UUID | None = None) -> Account:
        account = self.session.get(Account, account_id)
        if account is None or (company_id is not None and account.company_id != company_id):
            raise AccountNotFoundError(str(account_id))
        return account

    def get_by_code(self, company_id: UUID, code: str) -> Account:
        account = self.session.execute(
            select(Account).where(Account.company_id == company_id, Account.code == code)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def list_accounts(
        self,
        company_id: UUID,
        account_type: AccountType | str | None = None,
        is_active: bool | None = None,
        bank_only: bool = False,
        search: str | None = None,
    ) -> list[Account]:
        """Accounts of a company ordered by code, optionally filtered."""
        stmt = select(Account).where(Account.company_id == company_id)
        if account_type is not None:
            stmt = stmt.where(Account.account_type == AccountType(account_type).value)
        if is_active is not None:
            stmt = stmt.where(Account.is_active == is_active)
        if bank_only:
            stmt = stmt.where(Account.bank_account.is_(True))
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(Account.code.ilike(pattern), Account.name.ilike(pattern)))
        return list(self.session.execute(stmt.order_by(Account.code)).scalars())

    def descendant_ids(self, account_id: UUID) -> set[UUID]:
        """The account itself plus every account below it in the hierarchy."""
        found = {account_id}
        frontier = [account_id]
        while frontier:
            children = self.session.execute(
                select(Account.id).where(Account.parent_account_id.in_(frontier))
            ).scalars().all()
            frontier = [c for c in children if c not in found]
            found.update(frontier)
        return found

    def get_balance(self, account_id: UUID, as_of: date | None = None) -> Decimal:
        """
        Current balance, or the balance replayed from ledger movements with
        ``effective_date <= as_of``.
        """
        account = self.get_account(account_id)
        if as_of is None:
            self.session.refresh(account, ["current_balance"])
            return account.current_balance
        return self._ledger_selector.balance_as_of(account.id, as_of)

    def balance_history(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[BalanceHistoryEntry]:
        """Posted movements on the account with the running balance after each."""
        account = self.get_account(account_id)
        return self._ledger_selector.balance_history(account.id, date_from, date_to)

    # =========================================================================
    # Create / update / delete
    # =========================================================================

    def create_account(self, company_id: UUID, spec: AccountSpec, actor_id: UUID) -> Account:
        """
        Define a new account.

        Preconditions:
            - spec.code is unique within the company.
            - spec.parent_account_id / spec.parent_code, if given, names an
              account of the same company and type.

        Postconditions:
            - Returns the flushed Account with current_balance == 0 and
              normal_balance == normal_balance_for(spec.account_type).
        """
        code = (spec.code or "").strip()
        name = (spec.name or "").strip()
        if not code:
            raise InvalidFieldError("Account", "code", "code is required")
        if not name:
            raise InvalidFieldError("Account", "name", "name is required")
        try:
            account_type = AccountType(spec.account_type)
        except ValueError:
            raise InvalidFieldError(
                "Account", "account_type", f"unknown account type '{spec.account_type}'"
            ) from None

        subtype = validate_subtype(account_type, spec.subtype)
        currency = validate_currency(spec.currency)
        self._ensure_code_free(company_id, code)

        parent_id = spec.parent_account_id
        if parent_id is None and spec.parent_code:
            parent_id = self._resolve_parent_code(company_id, spec.parent_code)
        if parent_id is not None:
            self._validate_parent(company_id, None, account_type, parent_id)

        account = Account(
            company_id=company_id,
            code=code,
            name=name,
            description=spec.description,
            account_type=account_type.value,
            subtype=subtype,
            normal_balance=normal_balance_for(account_type).value,
            parent_account_id=parent_id,
            current_balance=ZERO,
            currency=currency,
            is_active=spec.is_active,
            is_system=spec.is_system,
            bank_account=spec.bank_account,
            bank_name=spec.bank_name,
            account_number=spec.account_number,
            routing_number=spec.routing_number,
            tax_account=spec.tax_account,
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "company_id": str(company_id),
                "account_code": code,
                "account_type": account_type.value,
                "normal_balance": account.normal_balance,
                "actor_id": str(actor_id),
            },
        )
        return account

    def update_account(
        self,
        account_id: UUID,
        patch: Mapping[str, Any],
        actor_id: UUID,
    ) -> Account:
        """
        Apply a partial update.

        Raises:
            InvalidFieldError: patch names a protected or unknown field.
            AccountTypeLockedError: account_type change on a referenced
                account or one with children.
        """
        account = self.get_account(account_id)

        for field in patch:
            if field in self.PROTECTED_FIELDS:
                raise InvalidFieldError("Account", field, "field is maintained by the ledger")
            if field not in self.UPDATABLE_FIELDS:
                raise InvalidFieldError("Account", field, "unknown field")

        changes: dict[str, Any] = {}

        new_type = AccountType(account.account_type)
        if "account_type" in patch:
            try:
                new_type = AccountType(patch["account_type"])
            except ValueError:
                raise InvalidFieldError(
                    "Account", "account_type", f"unknown account type '{patch['account_type']}'"
                ) from None
            if new_type.value != account.account_type:
                self._ensure_type_unlocked(account)
                changes["account_type"] = new_type.value
                changes["normal_balance"] = normal_balance_for(new_type).value

        if "subtype" in patch or "account_type" in changes:
            changes["subtype"] = validate_subtype(new_type, patch.get("subtype", account.subtype))

        if "parent_account_id" in patch or "account_type" in changes:
            parent_id = patch.get("parent_account_id", account.parent_account_id)
            if parent_id is not None:
                self._validate_parent(account.company_id, account.id, new_type, parent_id)
            changes["parent_account_id"] = parent_id

        if "code" in patch:
            code = (patch["code"] or "").strip()
            if not code:
                raise InvalidFieldError("Account", "code", "code is required")
            if code != account.code:
                self._ensure_code_free(account.company_id, code)
            changes["code"] = code

        if "name" in patch:
            name = (patch["name"] or "").strip()
            if not name:
                raise InvalidFieldError("Account", "name", "name is required")
            changes["name"] = name

        if "currency" in patch:
            changes["currency"] = validate_currency(patch["currency"])

        for field in (
            "description",
            "is_active",
            "bank_account",
            "bank_name",
            "account_number",
            "routing_number",
            "tax_account",
        ):
            if field in patch:
                changes[field] = patch[field]

        for field, value in changes.items():
            setattr(account, field, value)
        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_updated",
            extra={
                "account_id": str(account.id),
                "account_code": account.code,
                "fields": sorted(changes),
                "actor_id": str(actor_id),
            },
        )
        return account

    def deactivate_account(self, account_id: UUID, actor_id: UUID) -> Account:
        """Soft-delete: the account keeps its history but takes no new transactions."""
        return self.update_account(account_id, {"is_active": False}, actor_id)

    def delete_account(self, account_id: UUID) -> None:
        """
        Hard delete.

        Raises:
            SystemAccountError: account is a system account.
            AccountHasBalanceError: current_balance != 0.
            AccountReferencedError: any transaction, in any status, names it.
            AccountHasChildrenError: child accounts point at it.
        """
        account = self.get_account(account_id)

        if account.is_system:
            raise SystemAccountError(str(account.id), account.code)
        if account.current_balance != ZERO:
            raise AccountHasBalanceError(str(account.id), account.current_balance)
        references = self._transaction_count(account.id)
        if references:
            raise AccountReferencedError(str(account.id), references)
        children = self._child_count(account.id)
        if children:
            raise AccountHasChildrenError(str(account.id), children)

        self.session.delete(account)
        self.session.flush()
        logger.info(
            "account_deleted",
            extra={"account_id": str(account_id), "account_code": account.code},
        )

    def seed_chart_of_accounts(
        self,
        company_id: UUID,
        specs: Iterable[AccountSpec],
        actor_id: UUID,
    ) -> list[Account]:
        """
        Create a default chart for a company that has no accounts yet.

        Specs are created in order; a spec's parent_code must name an
        earlier spec.  Returns the created accounts, or an empty list when
        the company already has a chart.
        """
        existing = self.session.execute(
            select(func.count()).select_from(Account).where(Account.company_id == company_id)
        ).scalar_one()
        if existing:
            logger.info(
                "chart_seed_skipped",
                extra={"company_id": str(company_id), "existing_accounts": existing},
            )
            return []

        created = [self.create_account(company_id, spec, actor_id) for spec in specs]
        logger.info(
            "chart_seeded",
            extra={"company_id": str(company_id), "account_count": len(created)},
        )
        return created

    # =========================================================================
    # Balance mutation (TransactionLedger only)
    # =========================================================================

    def _adjust_balance(self, account: Account, delta: Decimal) -> None:
        """
        Atomically add ``delta`` to the account's current balance.

        The increment happens in SQL so that two writers can never lose each
        other's update; the in-session attribute is expired and reloads on
        next access.
        """
        self.session.execute(
            update(Account)
            .where(Account.id == account.id)
            .values(current_balance=Account.current_balance + delta)
            .execution_options(synchronize_session=False)
        )
        self.session.expire(account, ["current_balance"])
        logger.debug(
            "account_balance_adjusted",
            extra={"account_id": str(account.id), "delta": delta},
        )

    # =========================================================================
    # Validation helpers
    # =========================================================================

    def _ensure_code_free(self, company_id: UUID, code: str) -> None:
        taken = self.session.execute(
            select(Account.id).where(Account.company_id == company_id, Account.code == code)
        ).first()
        if taken is not None:
            raise DuplicateAccountCodeError(str(company_id), code)

    def _resolve_parent_code(self, company_id: UUID, parent_code: str) -> UUID:
        try:
            return self.get_by_code(company_id, parent_code).id
        except AccountNotFoundError:
            raise InvalidParentAccountError(
                None, parent_code, "no account with this code in the company"
            ) from None

    def _validate_parent(
        self,
        company_id: UUID,
        account_id: UUID | None,
        account_type: AccountType,
        parent_id: UUID,
    ) -> None:
        if account_id is not None and parent_id == account_id:
            raise InvalidParentAccountError(
                str(account_id), str(parent_id), "an account cannot be its own parent"
            )

        parent = self.session.get(Account, parent_id)
        if parent is None or parent.company_id != company_id:
            raise InvalidParentAccountError(
                str(account_id) if account_id else None,
                str(parent_id),
                "parent not found in company",
            )
        if AccountType(parent.account_type) != account_type:
            raise InvalidParentAccountError(
                str(account_id) if account_id else None,
                str(parent_id),
                f"parent type '{parent.account_type}' differs from '{account_type.value}'",
            )

        if account_id is None:
            return

        # Walk up from the parent; meeting the account again means a cycle.
        seen: set[UUID] = {parent.id}
        cursor = parent
        while cursor.parent_account_id is not None:
            if cursor.parent_account_id == account_id or cursor.parent_account_id in seen:
                raise AccountCycleError(str(account_id), str(parent_id))
            seen.add(cursor.parent_account_id)
            cursor = self.session.get(Account, cursor.parent_account_id)
            if cursor is None:
                break

    def _ensure_type_unlocked(self, account: Account) -> None:
        references = self._transaction_count(account.id)
        if references:
            raise AccountTypeLockedError(
                str(account.id), f"referenced by {references} transaction(s)"
            )
        children = self._child_count(account.id)
        if children:
            raise AccountTypeLockedError(str(account.id), f"has {children} child account(s)")

    def _transaction_count(self, account_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(Transaction)
            .where(
                or_(
                    Transaction.debit_account_id == account_id,
                    Transaction.credit_account_id == account_id,
                )
            )
        ).scalar_one()

    def _child_count(self, account_id: UUID) -> int:
        return self.session.execute(
            select(func.count()).select_from(Account).where(Account.parent_account_id == account_id)
        ).scalar_one()
