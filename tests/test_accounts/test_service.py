"""
Tests for AccountService - creation, lookup, archiving and derived balances
"""

from datetime import date

import pytest

from envelope_ledger.accounts.service import AccountService
from envelope_ledger.kernel.errors import AccountNotFound, Duplicate, ValidationError
from envelope_ledger.ledger.audit import AuditOperation, EntityType, InMemoryAuditSink
from envelope_ledger.ledger.models import Account, AccountType, TransactionStatus
from envelope_ledger.transactions.service import TransactionService
from tests.helpers import usd


class TestCreate:
    def test_defaults(self, accounts: AccountService) -> None:
        account = accounts.create("  Checking ")

        assert account.id == "id-0001"
        assert account.name == "Checking"
        assert account.account_type == AccountType.CHECKING
        assert account.on_budget
        assert not account.archived
        assert account.starting_balance == usd("0.00")

    def test_create_is_audited(
        self, accounts: AccountService, audit_sink: InMemoryAuditSink
    ) -> None:
        account = accounts.create("Checking", starting_balance=usd("1000.00"))

        (entry,) = audit_sink.entries
        assert entry.operation == AuditOperation.CREATE
        assert entry.entity_type == EntityType.ACCOUNT
        assert entry.entity_id == account.id
        assert entry.after is not None

    def test_duplicate_name_is_case_insensitive(
        self, accounts: AccountService, checking: Account
    ) -> None:
        with pytest.raises(Duplicate) as exc_info:
            accounts.create("CHECKING")
        assert exc_info.value.entity_type == "Account"

    def test_empty_name(self, accounts: AccountService) -> None:
        with pytest.raises(ValidationError, match="empty"):
            accounts.create("   ")

    def test_name_too_long(self, accounts: AccountService) -> None:
        with pytest.raises(ValidationError, match="Invalid account"):
            accounts.create("x" * 101)


class TestLookup:
    def test_find_by_id_or_name(self, accounts: AccountService, checking: Account) -> None:
        assert accounts.find(checking.id) == checking
        assert accounts.find(" checking ") == checking

    def test_unknown_account(self, accounts: AccountService) -> None:
        with pytest.raises(AccountNotFound):
            accounts.get("missing")
        with pytest.raises(AccountNotFound):
            accounts.find("Nope")


class TestArchive:
    def test_archive_hides_from_default_listing(
        self, accounts: AccountService, checking: Account, savings: Account
    ) -> None:
        accounts.archive(checking.id)

        assert [a.name for a in accounts.list_accounts()] == ["Savings"]
        assert {a.name for a in accounts.list_accounts(include_archived=True)} == {"Checking", "Savings"}

    def test_unarchive(self, accounts: AccountService, checking: Account) -> None:
        accounts.archive(checking.id)
        restored = accounts.unarchive(checking.id)

        assert not restored.archived
        assert accounts.list_accounts() == [restored]

    def test_archiving_twice_writes_once(
        self, accounts: AccountService, checking: Account, audit_sink: InMemoryAuditSink
    ) -> None:
        accounts.archive(checking.id)
        accounts.archive(checking.id)

        updates = [e for e in audit_sink.entries if e.operation == AuditOperation.UPDATE]
        assert len(updates) == 1


class TestBalances:
    def test_summary_splits_cleared_from_pending(
        self,
        accounts: AccountService,
        transactions: TransactionService,
        checking: Account,
    ) -> None:
        transactions.create(checking.id, date(2025, 1, 3), usd("-100.00"))
        transactions.create(
            checking.id, date(2025, 1, 4), usd("250.00"), status=TransactionStatus.CLEARED
        )
        transactions.create(checking.id, date(2025, 1, 5), usd("-40.00"))

        summary = accounts.get_summary(checking.id)

        assert summary.balance == usd("1110.00")
        assert summary.cleared_balance == usd("1250.00")
        assert summary.uncleared_count == 2
        assert accounts.calculate_balance(checking.id) == summary.balance
        assert accounts.calculate_cleared_balance(checking.id) == summary.cleared_balance

    def test_total_on_budget_balance(
        self, accounts: AccountService, checking: Account, savings: Account
    ) -> None:
        accounts.create(
            "Brokerage",
            AccountType.INVESTMENT,
            starting_balance=usd("5000.00"),
            on_budget=False,
        )
        accounts.archive(savings.id)

        assert accounts.total_on_budget_balance() == usd("3000.00")

    def test_liability_accounts_carry_negative_balances(self, accounts: AccountService) -> None:
        visa = accounts.create(
            "Visa", AccountType.CREDIT, starting_balance=usd("-250.00")
        )

        assert visa.account_type.is_liability()
        assert accounts.total_on_budget_balance() == usd("-250.00")
