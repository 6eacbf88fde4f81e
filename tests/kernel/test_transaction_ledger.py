"""
Tests for TransactionLedger: lifecycle, exactly-once posting, reversal and
integrity verification.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select, update

from ledger_kernel.domain.config import PostingConfig
from ledger_kernel.domain.lifecycle import TransactionStatus, TransactionType
from ledger_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    BalanceDriftError,
    InvalidAmountError,
    InvalidCurrencyError,
    InvalidExchangeRateError,
    InvalidFieldError,
    InvalidStateError,
    InvalidTransitionError,
    PostedTransactionError,
    SameAccountError,
    TransactionAlreadyReversedError,
    TransactionNotFoundError,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.transaction import LedgerMovement
from ledger_kernel.services.transaction_ledger import TransactionLedger


@pytest.fixture
def accounts(standard_accounts):
    return standard_accounts


@pytest.fixture
def create(ledger, company_id, test_actor_id, make_spec):
    def _create(debit, credit, amount, **kwargs):
        return ledger.create_transaction(
            company_id, make_spec(debit, credit, amount, **kwargs), test_actor_id
        )

    return _create


class TestCreateTransaction:

    def test_created_pending_without_balance_effect(self, registry, accounts, create):
        txn = create(accounts["rent"], accounts["cash"], "150.00")
        assert txn.status == TransactionStatus.PENDING.value
        assert txn.amount == Decimal("150.00")
        assert txn.base_amount == Decimal("150.00")
        assert registry.get_balance(accounts["rent"].id) == Decimal("0")
        assert registry.get_balance(accounts["cash"].id) == Decimal("0")

    def test_numbers_are_sequential(self, accounts, create):
        first = create(accounts["rent"], accounts["cash"], 1)
        second = create(accounts["rent"], accounts["cash"], 2)
        assert first.transaction_number == "TXN-000001"
        assert second.transaction_number == "TXN-000002"
        assert second.sequence == first.sequence + 1

    def test_numbering_is_per_company(
        self, ledger, accounts, create, create_account, other_company_id, test_actor_id, make_spec
    ):
        create(accounts["rent"], accounts["cash"], 1)
        foreign_cash = create_account("1000", owner=other_company_id)
        foreign_equity = create_account("3000", account_type="equity", owner=other_company_id)
        foreign = ledger.create_transaction(
            other_company_id, make_spec(foreign_cash, foreign_equity, 5), test_actor_id
        )
        assert foreign.transaction_number == "TXN-000001"

    def test_custom_number_format(self, session, deterministic_clock, accounts, company_id,
                                  test_actor_id, make_spec):
        ledger = TransactionLedger(
            session, deterministic_clock, PostingConfig(number_prefix="JE", number_width=4)
        )
        txn = ledger.create_transaction(
            company_id, make_spec(accounts["rent"], accounts["cash"], 1), test_actor_id
        )
        assert txn.transaction_number == "JE-0001"

    def test_date_defaults_to_clock_today(self, accounts, create):
        assert create(accounts["rent"], accounts["cash"], 1).transaction_date == date(2024, 1, 1)

    @pytest.mark.parametrize("amount", ["0", "-5", "0.004"])
    def test_non_positive_amount_rejected(self, accounts, create, amount):
        with pytest.raises(InvalidAmountError):
            create(accounts["rent"], accounts["cash"], amount)

    def test_float_amount_rejected(self, ledger, accounts, company_id, test_actor_id):
        from ledger_kernel.domain.dtos import TransactionSpec

        spec = TransactionSpec(
            debit_account_id=accounts["rent"].id,
            credit_account_id=accounts["cash"].id,
            amount=10.5,
        )
        with pytest.raises(InvalidAmountError):
            ledger.create_transaction(company_id, spec, test_actor_id)

    def test_same_account_rejected(self, accounts, create):
        with pytest.raises(SameAccountError):
            create(accounts["cash"], accounts["cash"], 10)

    def test_inactive_account_rejected(self, registry, accounts, create, test_actor_id):
        registry.deactivate_account(accounts["rent"].id, test_actor_id)
        with pytest.raises(AccountInactiveError):
            create(accounts["rent"], accounts["cash"], 10)

    def test_account_of_other_company_rejected(
        self, accounts, create, create_account, other_company_id
    ):
        foreign = create_account("1000", owner=other_company_id)
        with pytest.raises(AccountNotFoundError):
            create(foreign, accounts["cash"], 10)

    def test_invalid_currency_rejected(self, accounts, create):
        with pytest.raises(InvalidCurrencyError):
            create(accounts["rent"], accounts["cash"], 10, currency="ABC")

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-1"), "abc"])
    def test_invalid_exchange_rate_rejected(self, accounts, create, rate):
        with pytest.raises(InvalidExchangeRateError):
            create(accounts["rent"], accounts["cash"], 10, exchange_rate=rate)

    def test_unknown_reference_type_rejected(self, accounts, create):
        with pytest.raises(InvalidFieldError):
            create(accounts["rent"], accounts["cash"], 10, reference_type="spaceship")

    def test_base_amount_uses_exchange_rate(self, accounts, create):
        txn = create(
            accounts["rent"], accounts["cash"], "100.00",
            currency="EUR", exchange_rate=Decimal("1.0857"),
        )
        assert txn.base_amount == Decimal("108.57")
        assert txn.exchange_rate == Decimal("1.0857")


class TestUpdateAndDelete:

    def test_update_pending(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        updated = ledger.update_transaction(
            txn.id, {"amount": Decimal("25.00"), "description": "March rent"}, test_actor_id
        )
        assert updated.amount == Decimal("25.00")
        assert updated.base_amount == Decimal("25.00")
        assert updated.description == "March rent"

    def test_update_revalidates(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(SameAccountError):
            ledger.update_transaction(
                txn.id, {"debit_account_id": accounts["cash"].id}, test_actor_id
            )

    def test_update_unknown_field_rejected(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(InvalidFieldError):
            ledger.update_transaction(txn.id, {"status": "posted"}, test_actor_id)

    def test_update_approved_rejected(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        ledger.approve_transaction(txn.id, test_actor_id)
        with pytest.raises(InvalidStateError):
            ledger.update_transaction(txn.id, {"description": "x"}, test_actor_id)

    def test_update_posted_rejected(self, ledger, accounts, post, test_actor_id):
        txn = post(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(PostedTransactionError):
            ledger.update_transaction(txn.id, {"description": "x"}, test_actor_id)

    def test_delete_pending_and_rejected(self, ledger, accounts, create, test_actor_id):
        pending = create(accounts["rent"], accounts["cash"], 10)
        rejected = create(accounts["rent"], accounts["cash"], 20)
        ledger.reject_transaction(rejected.id, "wrong vendor", test_actor_id)

        ledger.delete_transaction(pending.id)
        ledger.delete_transaction(rejected.id)
        for txn_id in (pending.id, rejected.id):
            with pytest.raises(TransactionNotFoundError):
                ledger.get_transaction(txn_id)

    def test_delete_approved_rejected(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        ledger.approve_transaction(txn.id, test_actor_id)
        with pytest.raises(InvalidStateError):
            ledger.delete_transaction(txn.id)

    def test_delete_posted_rejected(self, ledger, accounts, post):
        txn = post(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(PostedTransactionError):
            ledger.delete_transaction(txn.id)


class TestLifecycle:

    def test_approve_records_actor(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        approved = ledger.approve_transaction(txn.id, test_actor_id)
        assert approved.status == TransactionStatus.APPROVED.value
        assert approved.approved_by_id == test_actor_id
        assert approved.approved_at is not None

    def test_approve_has_no_balance_effect(self, registry, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        ledger.approve_transaction(txn.id, test_actor_id)
        assert registry.get_balance(accounts["cash"].id) == Decimal("0")

    def test_post_applies_signed_deltas(self, registry, accounts, post):
        post(accounts["cash"], accounts["loan"], "5000.00")
        post(accounts["rent"], accounts["cash"], "1200.00")

        assert registry.get_balance(accounts["cash"].id) == Decimal("3800.00")
        assert registry.get_balance(accounts["loan"].id) == Decimal("5000.00")
        assert registry.get_balance(accounts["rent"].id) == Decimal("1200.00")

    def test_post_writes_two_movements(self, session, accounts, post):
        txn = post(accounts["rent"], accounts["cash"], 75)
        movements = session.execute(
            select(LedgerMovement).where(LedgerMovement.transaction_id == txn.id)
        ).scalars().all()
        by_side = {m.side: m for m in movements}
        assert set(by_side) == {"debit", "credit"}
        assert by_side["debit"].amount == by_side["credit"].amount == Decimal("75.00")
        assert by_side["debit"].balance_delta == Decimal("75.00")
        assert by_side["credit"].balance_delta == Decimal("-75.00")

    def test_post_requires_approval(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(InvalidTransitionError):
            ledger.post_transaction(txn.id, test_actor_id)

    def test_second_post_rejected_and_balance_moves_once(
        self, registry, ledger, accounts, post, test_actor_id
    ):
        txn = post(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(PostedTransactionError):
            ledger.post_transaction(txn.id, test_actor_id)
        assert registry.get_balance(accounts["cash"].id) == Decimal("-10.00")

    def test_second_approve_rejected(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        ledger.approve_transaction(txn.id, test_actor_id)
        with pytest.raises(InvalidTransitionError):
            ledger.approve_transaction(txn.id, test_actor_id)

    def test_reject_requires_reason(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(InvalidFieldError):
            ledger.reject_transaction(txn.id, "  ", test_actor_id)

    def test_reject_records_reason(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        rejected = ledger.reject_transaction(txn.id, "duplicate invoice", test_actor_id)
        assert rejected.status == TransactionStatus.REJECTED.value
        assert rejected.rejection_reason == "duplicate invoice"

    def test_rejected_cannot_be_approved(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["rent"], accounts["cash"], 10)
        ledger.reject_transaction(txn.id, "no receipt", test_actor_id)
        with pytest.raises(InvalidTransitionError):
            ledger.approve_transaction(txn.id, test_actor_id)

    def test_posted_cannot_be_rejected(self, ledger, accounts, post, test_actor_id):
        txn = post(accounts["rent"], accounts["cash"], 10)
        with pytest.raises(PostedTransactionError):
            ledger.reject_transaction(txn.id, "too late", test_actor_id)

    def test_unknown_transaction(self, ledger, test_actor_id):
        with pytest.raises(TransactionNotFoundError):
            ledger.approve_transaction(uuid4(), test_actor_id)

    def test_lifecycle_events_logged(self, ledger, accounts, create, test_actor_id, captured_logs):
        txn = create(accounts["rent"], accounts["cash"], 10)
        ledger.approve_and_post(txn.id, test_actor_id)

        logs = captured_logs()
        messages = [r["message"] for r in logs]
        assert messages.index("transaction_created") < messages.index("transaction_approved")
        assert messages.index("transaction_approved") < messages.index("transaction_posted")
        posted = next(r for r in logs if r["message"] == "transaction_posted")
        assert posted["transaction_id"] == str(txn.id)
        assert posted["company_id"] == str(txn.company_id)


class TestReversal:

    def test_reversal_restores_balances(self, registry, ledger, accounts, post, test_actor_id):
        original = post(accounts["supplies"], accounts["cash"], "240.00")
        reversal = ledger.reverse_transaction(original.id, "wrong account", test_actor_id)

        assert reversal.status == TransactionStatus.POSTED.value
        assert reversal.transaction_type == TransactionType.ADJUSTMENT.value
        assert reversal.debit_account_id == original.credit_account_id
        assert reversal.credit_account_id == original.debit_account_id
        assert reversal.reversal_of_id == original.id
        assert reversal.reference_number == original.transaction_number
        assert registry.get_balance(accounts["cash"].id) == Decimal("0")
        assert registry.get_balance(accounts["supplies"].id) == Decimal("0")

    def test_original_stays_posted(self, ledger, accounts, post, test_actor_id):
        original = post(accounts["supplies"], accounts["cash"], 10)
        ledger.reverse_transaction(original.id, "", test_actor_id)
        assert ledger.get_transaction(original.id).status == TransactionStatus.POSTED.value
        assert ledger.reversal_of(original.id).description == (
            f"Reversal of {original.transaction_number}"
        )

    def test_second_reversal_rejected(self, ledger, accounts, post, test_actor_id):
        original = post(accounts["supplies"], accounts["cash"], 10)
        ledger.reverse_transaction(original.id, "oops", test_actor_id)
        with pytest.raises(TransactionAlreadyReversedError):
            ledger.reverse_transaction(original.id, "again", test_actor_id)

    def test_only_posted_can_be_reversed(self, ledger, accounts, create, test_actor_id):
        txn = create(accounts["supplies"], accounts["cash"], 10)
        with pytest.raises(InvalidStateError):
            ledger.reverse_transaction(txn.id, "not posted", test_actor_id)

    def test_reversal_through_deactivated_account(self, registry, ledger, accounts, post,
                                                  create, test_actor_id):
        original = post(accounts["rent"], accounts["cash"], "50.00")
        registry.deactivate_account(accounts["rent"].id, test_actor_id)

        reversal = ledger.reverse_transaction(original.id, "wrong period", test_actor_id)

        assert reversal.status == TransactionStatus.POSTED.value
        assert registry.get_balance(accounts["rent"].id) == Decimal("0")
        assert registry.get_balance(accounts["cash"].id) == Decimal("0")
        # New activity is still refused
        with pytest.raises(AccountInactiveError):
            create(accounts["rent"], accounts["cash"], 10)

    def test_reversal_date(self, ledger, accounts, post, test_actor_id):
        original = post(accounts["supplies"], accounts["cash"], 10, transaction_date=date(2024, 1, 5))
        reversal = ledger.reverse_transaction(
            original.id, "late", test_actor_id, reversal_date=date(2024, 2, 1)
        )
        assert reversal.transaction_date == date(2024, 2, 1)


class TestQueries:

    def test_list_filters(self, ledger, accounts, create, post, company_id):
        post(accounts["cash"], accounts["revenue"], 100, transaction_date=date(2024, 1, 3),
             description="Consulting January")
        create(accounts["rent"], accounts["cash"], 50, transaction_date=date(2024, 1, 4))

        assert len(ledger.list_transactions(company_id)) == 2
        posted = ledger.list_transactions(company_id, status="posted")
        assert [t.amount for t in posted] == [Decimal("100.00")]
        assert len(ledger.list_transactions(company_id, account_id=accounts["rent"].id)) == 1
        assert len(ledger.list_transactions(company_id, date_from=date(2024, 1, 4))) == 1
        assert len(ledger.list_transactions(company_id, search="consulting")) == 1

    def test_newest_first(self, ledger, accounts, create, company_id):
        create(accounts["rent"], accounts["cash"], 1, transaction_date=date(2024, 1, 1))
        create(accounts["rent"], accounts["cash"], 2, transaction_date=date(2024, 1, 9))
        dates = [t.transaction_date for t in ledger.list_transactions(company_id)]
        assert dates == [date(2024, 1, 9), date(2024, 1, 1)]

    def test_get_by_number(self, ledger, accounts, create, company_id):
        txn = create(accounts["rent"], accounts["cash"], 1)
        assert ledger.get_by_number(company_id, txn.transaction_number).id == txn.id


class TestIntegrity:

    def test_clean_ledger_verifies(self, ledger, accounts, post, company_id):
        post(accounts["cash"], accounts["equity"], 1000)
        post(accounts["rent"], accounts["cash"], 400)
        post(accounts["receivable"], accounts["revenue"], 250)

        report = ledger.verify_ledger_integrity(company_id)
        assert report.is_balanced
        assert report.debit_total == Decimal("1650.00")
        assert report.transactions_checked == 3

    def test_drift_detected(self, session, ledger, accounts, post, company_id, captured_logs):
        post(accounts["cash"], accounts["equity"], 1000)
        session.execute(
            update(Account)
            .where(Account.id == accounts["cash"].id)
            .values(current_balance=Account.current_balance + Decimal("1.00"))
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(BalanceDriftError):
            ledger.verify_ledger_integrity(company_id)
        assert any(r["message"] == "balance_drift_detected" for r in captured_logs())
