"""Pure tests for the account taxonomy and posting sign convention."""

from decimal import Decimal

import pytest

from ledger_kernel.domain.balance_rules import (
    AccountType,
    EntrySide,
    NormalBalance,
    debit_equivalent,
    normal_balance_for,
    posting_deltas,
    signed_delta,
    validate_subtype,
)
from ledger_kernel.domain.config import PostingConfig
from ledger_kernel.domain.lifecycle import TRANSACTION_WORKFLOW
from ledger_kernel.domain.workflow import Transition, Workflow
from ledger_kernel.exceptions import InvalidSubtypeError


class TestNormalBalance:

    @pytest.mark.parametrize(
        "account_type, expected",
        [
            (AccountType.ASSET, NormalBalance.DEBIT),
            (AccountType.EXPENSE, NormalBalance.DEBIT),
            (AccountType.LIABILITY, NormalBalance.CREDIT),
            (AccountType.EQUITY, NormalBalance.CREDIT),
            (AccountType.REVENUE, NormalBalance.CREDIT),
        ],
    )
    def test_derived_from_type(self, account_type, expected):
        assert normal_balance_for(account_type) == expected
        assert normal_balance_for(account_type.value) == expected

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            normal_balance_for("contra")


class TestSubtypes:

    def test_asset_subtypes(self):
        assert validate_subtype("asset", "Fixed") == "fixed"
        assert validate_subtype("asset", " current ") == "current"

    def test_liability_long_term(self):
        assert validate_subtype(AccountType.LIABILITY, "long_term") == "long_term"

    def test_empty_subtype_is_none(self):
        assert validate_subtype("equity", None) is None
        assert validate_subtype("revenue", "") is None

    def test_subtype_not_allowed_for_type(self):
        with pytest.raises(InvalidSubtypeError):
            validate_subtype("liability", "fixed")

    def test_expense_takes_no_subtype(self):
        with pytest.raises(InvalidSubtypeError):
            validate_subtype("expense", "current")


class TestSignConvention:

    def test_normal_side_increases(self):
        assert signed_delta(NormalBalance.DEBIT, EntrySide.DEBIT, Decimal("5")) == Decimal("5")
        assert signed_delta("credit", "credit", Decimal("5")) == Decimal("5")

    def test_opposite_side_decreases(self):
        assert signed_delta("debit", "credit", Decimal("5")) == Decimal("-5")
        assert signed_delta("credit", "debit", Decimal("5")) == Decimal("-5")

    def test_expense_paid_from_cash(self):
        expense_delta, cash_delta = posting_deltas("debit", "debit", Decimal("100.00"))
        assert expense_delta == Decimal("100.00")
        assert cash_delta == Decimal("-100.00")

    def test_loan_received_into_cash(self):
        cash_delta, loan_delta = posting_deltas("debit", "credit", Decimal("250.00"))
        assert cash_delta == Decimal("250.00")
        assert loan_delta == Decimal("250.00")

    @pytest.mark.parametrize("debit_normal", ["debit", "credit"])
    @pytest.mark.parametrize("credit_normal", ["debit", "credit"])
    def test_debit_equivalents_cancel(self, debit_normal, credit_normal):
        d, c = posting_deltas(debit_normal, credit_normal, Decimal("42.17"))
        assert debit_equivalent(debit_normal, d) + debit_equivalent(credit_normal, c) == 0


class TestTransactionWorkflow:

    def test_initial_state_pending(self):
        assert TRANSACTION_WORKFLOW.initial_state == "pending"

    def test_only_post_applies_balance(self):
        applying = [t for t in TRANSACTION_WORKFLOW.transitions if t.applies_balance]
        assert [(t.from_state, t.to_state) for t in applying] == [("approved", "posted")]

    def test_terminal_states_have_no_actions(self):
        assert TRANSACTION_WORKFLOW.actions_from("posted") == ()
        assert TRANSACTION_WORKFLOW.actions_from("rejected") == ()

    def test_workflow_rejects_transition_out_of_terminal_state(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("b", "a", action="reopen"),),
                terminal_states=("b",),
            )


class TestPostingConfig:

    def test_number_format(self):
        assert PostingConfig().format_number(7) == "TXN-000007"
        assert PostingConfig(number_prefix="JE", number_width=3).format_number(12) == "JE-012"

    def test_invalid_width(self):
        with pytest.raises(ValueError):
            PostingConfig(number_width=0)
