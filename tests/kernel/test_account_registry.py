"""
Tests for AccountRegistry: chart of accounts, hierarchy and guarded deletes.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.balance_rules import AccountType, NormalBalance
from ledger_kernel.domain.dtos import AccountSpec
from ledger_kernel.exceptions import (
    AccountCycleError,
    AccountHasBalanceError,
    AccountHasChildrenError,
    AccountNotFoundError,
    AccountReferencedError,
    AccountTypeLockedError,
    DuplicateAccountCodeError,
    InvalidCurrencyError,
    InvalidFieldError,
    InvalidParentAccountError,
    InvalidSubtypeError,
    NormalBalanceOverrideError,
    SystemAccountError,
)


class TestCreateAccount:

    def test_new_account_starts_at_zero(self, create_account):
        account = create_account("1000", "Cash")
        assert account.current_balance == Decimal("0")
        assert account.is_active is True

    @pytest.mark.parametrize(
        "account_type, normal",
        [
            ("asset", NormalBalance.DEBIT),
            ("expense", NormalBalance.DEBIT),
            ("liability", NormalBalance.CREDIT),
            ("equity", NormalBalance.CREDIT),
            ("revenue", NormalBalance.CREDIT),
        ],
    )
    def test_normal_balance_derived_from_type(self, create_account, account_type, normal):
        account = create_account("9000", account_type=account_type)
        assert account.normal_balance == normal.value

    def test_duplicate_code_in_company_rejected(self, create_account):
        create_account("1000")
        with pytest.raises(DuplicateAccountCodeError):
            create_account("1000")

    def test_same_code_allowed_in_other_company(self, create_account, other_company_id):
        create_account("1000")
        other = create_account("1000", owner=other_company_id)
        assert other.company_id == other_company_id

    def test_blank_name_rejected(self, create_account):
        with pytest.raises(InvalidFieldError):
            create_account("1000", name="   ")

    def test_unknown_type_rejected(self, create_account):
        with pytest.raises(InvalidFieldError):
            create_account("1000", account_type="contra")

    def test_subtype_must_match_type(self, create_account):
        with pytest.raises(InvalidSubtypeError):
            create_account("2000", account_type="liability", subtype="fixed")

    def test_currency_must_be_iso(self, create_account):
        with pytest.raises(InvalidCurrencyError):
            create_account("1000", currency="XYZ")

    def test_currency_normalized(self, create_account):
        assert create_account("1000", currency="eur").currency == "EUR"


class TestHierarchy:

    def test_child_under_parent_of_same_type(self, create_account):
        parent = create_account("1100", "Current Assets")
        child = create_account("1110", "Cash", parent_account_id=parent.id)
        assert child.parent_account_id == parent.id

    def test_parent_of_other_type_rejected(self, create_account):
        parent = create_account("1100", "Current Assets")
        with pytest.raises(InvalidParentAccountError):
            create_account("2110", account_type="liability", parent_account_id=parent.id)

    def test_parent_from_other_company_rejected(self, create_account, other_company_id):
        foreign = create_account("1100", owner=other_company_id)
        with pytest.raises(InvalidParentAccountError):
            create_account("1110", parent_account_id=foreign.id)

    def test_parent_code_resolved(self, create_account):
        parent = create_account("1100")
        child = create_account("1110", parent_code="1100")
        assert child.parent_account_id == parent.id

    def test_unknown_parent_code_rejected(self, create_account):
        with pytest.raises(InvalidParentAccountError):
            create_account("1110", parent_code="9999")

    def test_self_parent_rejected(self, registry, create_account, test_actor_id):
        account = create_account("1100")
        with pytest.raises(InvalidParentAccountError):
            registry.update_account(account.id, {"parent_account_id": account.id}, test_actor_id)

    def test_cycle_rejected(self, registry, create_account, test_actor_id):
        top = create_account("1000")
        middle = create_account("1100", parent_account_id=top.id)
        bottom = create_account("1110", parent_account_id=middle.id)
        with pytest.raises(AccountCycleError):
            registry.update_account(top.id, {"parent_account_id": bottom.id}, test_actor_id)

    def test_descendant_ids(self, registry, create_account):
        top = create_account("5000", account_type="expense")
        mid = create_account("5100", account_type="expense", parent_account_id=top.id)
        leaf = create_account("5110", account_type="expense", parent_account_id=mid.id)
        unrelated = create_account("5200", account_type="expense")
        found = registry.descendant_ids(top.id)
        assert found == {top.id, mid.id, leaf.id}
        assert unrelated.id not in found


class TestUpdateAccount:

    def test_rename(self, registry, create_account, test_actor_id):
        account = create_account("1000", "Cash")
        updated = registry.update_account(account.id, {"name": "Petty Cash"}, test_actor_id)
        assert updated.name == "Petty Cash"
        assert updated.updated_by_id == test_actor_id

    def test_type_change_rederives_normal_balance(self, registry, create_account, test_actor_id):
        account = create_account("4000", account_type="revenue")
        updated = registry.update_account(account.id, {"account_type": "expense"}, test_actor_id)
        assert updated.normal_balance == NormalBalance.DEBIT.value

    @pytest.mark.parametrize("field", ["normal_balance", "current_balance", "company_id", "is_system"])
    def test_protected_fields_rejected(self, registry, create_account, test_actor_id, field):
        account = create_account("1000")
        with pytest.raises(InvalidFieldError):
            registry.update_account(account.id, {field: "credit"}, test_actor_id)

    def test_unknown_field_rejected(self, registry, create_account, test_actor_id):
        account = create_account("1000")
        with pytest.raises(InvalidFieldError):
            registry.update_account(account.id, {"colour": "red"}, test_actor_id)

    def test_code_change_checks_uniqueness(self, registry, create_account, test_actor_id):
        create_account("1000")
        other = create_account("1001")
        with pytest.raises(DuplicateAccountCodeError):
            registry.update_account(other.id, {"code": "1000"}, test_actor_id)

    def test_type_locked_once_referenced(
        self, registry, ledger, standard_accounts, company_id, test_actor_id, make_spec
    ):
        ledger.create_transaction(
            company_id,
            make_spec(standard_accounts["rent"], standard_accounts["cash"], 10),
            test_actor_id,
        )
        with pytest.raises(AccountTypeLockedError):
            registry.update_account(
                standard_accounts["rent"].id, {"account_type": "asset"}, test_actor_id
            )

    def test_type_locked_with_children(self, registry, standard_accounts, test_actor_id):
        with pytest.raises(AccountTypeLockedError):
            registry.update_account(
                standard_accounts["expenses"].id, {"account_type": "asset"}, test_actor_id
            )

    def test_deactivate(self, registry, create_account, test_actor_id):
        account = create_account("1000")
        assert registry.deactivate_account(account.id, test_actor_id).is_active is False

    def test_direct_normal_balance_override_blocked_at_flush(self, session, create_account):
        account = create_account("1000")
        account.normal_balance = "credit"
        with pytest.raises(NormalBalanceOverrideError):
            session.flush()


class TestDeleteAccount:

    def test_delete_unused_account(self, registry, create_account):
        account = create_account("1000")
        registry.delete_account(account.id)
        with pytest.raises(AccountNotFoundError):
            registry.get_account(account.id)

    def test_system_account_protected(self, create_account, registry):
        account = create_account("1000", is_system=True)
        with pytest.raises(SystemAccountError):
            registry.delete_account(account.id)

    def test_account_with_balance_protected(self, registry, standard_accounts, post):
        post(standard_accounts["cash"], standard_accounts["equity"], 100)
        with pytest.raises(AccountHasBalanceError):
            registry.delete_account(standard_accounts["cash"].id)

    def test_referenced_account_protected_even_at_zero_balance(
        self, registry, ledger, standard_accounts, company_id, test_actor_id, make_spec
    ):
        txn = ledger.create_transaction(
            company_id,
            make_spec(standard_accounts["receivable"], standard_accounts["revenue"], 50),
            test_actor_id,
        )
        ledger.reject_transaction(txn.id, "duplicate", test_actor_id)
        with pytest.raises(AccountReferencedError):
            registry.delete_account(standard_accounts["receivable"].id)

    def test_parent_with_children_protected(self, registry, standard_accounts):
        with pytest.raises(AccountHasChildrenError):
            registry.delete_account(standard_accounts["expenses"].id)


class TestLookups:

    def test_get_account_scoped_to_company(self, registry, create_account, other_company_id):
        account = create_account("1000")
        with pytest.raises(AccountNotFoundError):
            registry.get_account(account.id, other_company_id)

    def test_get_by_code(self, registry, create_account, company_id):
        account = create_account("1000")
        assert registry.get_by_code(company_id, "1000").id == account.id

    def test_list_filters(self, registry, standard_accounts, company_id, test_actor_id):
        expense_codes = [a.code for a in registry.list_accounts(company_id, account_type="expense")]
        assert expense_codes == ["5000", "5100", "5200"]

        banks = registry.list_accounts(company_id, bank_only=True)
        assert [a.code for a in banks] == ["1110"]

        registry.deactivate_account(standard_accounts["loan"].id, test_actor_id)
        inactive = registry.list_accounts(company_id, is_active=False)
        assert [a.code for a in inactive] == ["2210"]

        assert [a.code for a in registry.list_accounts(company_id, search="rent")] == ["5100"]

    def test_list_excludes_other_companies(self, registry, create_account, company_id, other_company_id):
        create_account("1000")
        create_account("1001", owner=other_company_id)
        assert [a.code for a in registry.list_accounts(company_id)] == ["1000"]


class TestBalances:

    def test_balance_as_of_replays_movements(self, registry, standard_accounts, post):
        cash, equity = standard_accounts["cash"], standard_accounts["equity"]
        post(cash, equity, 1000, transaction_date=date(2024, 1, 10))
        post(standard_accounts["rent"], cash, 300, transaction_date=date(2024, 2, 1))

        assert registry.get_balance(cash.id) == Decimal("700.00")
        assert registry.get_balance(cash.id, as_of=date(2024, 1, 31)) == Decimal("1000.00")
        assert registry.get_balance(cash.id, as_of=date(2023, 12, 31)) == Decimal("0")

    def test_balance_history_running_balance(self, registry, standard_accounts, post):
        cash = standard_accounts["cash"]
        post(cash, standard_accounts["equity"], 500, transaction_date=date(2024, 1, 5))
        post(standard_accounts["supplies"], cash, 120, transaction_date=date(2024, 1, 6))
        post(cash, standard_accounts["revenue"], 80, transaction_date=date(2024, 1, 7))

        history = registry.balance_history(cash.id)
        assert [h.balance_delta for h in history] == [
            Decimal("500.00"),
            Decimal("-120.00"),
            Decimal("80.00"),
        ]
        assert history[-1].running_balance == Decimal("460.00")

        windowed = registry.balance_history(cash.id, date_from=date(2024, 1, 6))
        assert windowed[0].running_balance == Decimal("380.00")


class TestSeedChart:

    def _specs(self):
        return [
            AccountSpec(code="1000", name="Assets", account_type=AccountType.ASSET, is_system=True),
            AccountSpec(code="1100", name="Current Assets", account_type="asset",
                        subtype="current", parent_code="1000"),
            AccountSpec(code="4000", name="Revenue", account_type="revenue", is_system=True),
        ]

    def test_seed_creates_hierarchy(self, registry, company_id, test_actor_id):
        created = registry.seed_chart_of_accounts(company_id, self._specs(), test_actor_id)
        assert [a.code for a in created] == ["1000", "1100", "4000"]
        assert created[1].parent_account_id == created[0].id

    def test_seed_skipped_when_chart_exists(
        self, registry, company_id, test_actor_id, create_account, captured_logs
    ):
        create_account("1000")
        assert registry.seed_chart_of_accounts(company_id, self._specs(), test_actor_id) == []
        assert any(r["message"] == "chart_seed_skipped" for r in captured_logs())
