"""
Tests for SQLiteLedgerStore - persistence, indexed queries and atomic batches
"""

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from envelope_ledger.kernel.errors import StorageError
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.ledger.models import (
    Account,
    BudgetAllocation,
    BudgetTarget,
    Category,
    CategoryGroup,
    TargetCadence,
    TransactionStatus,
)
from envelope_ledger.ledger.sqlite_store import SQLiteLedgerStore
from envelope_ledger.ledger.store import Collection, WriteOp
from tests.helpers import FIXED_TIME, build_transaction, usd

JAN = BudgetPeriod.monthly(2025, 1)
FEB = BudgetPeriod.monthly(2025, 2)


def account(account_id: str = "a1", name: str = "Checking") -> Account:
    return Account(
        id=account_id,
        name=name,
        starting_balance=usd("1000.00"),
        created_at=FIXED_TIME,
        updated_at=FIXED_TIME,
    )


def allocation(category_id: str, period: BudgetPeriod, budgeted: str) -> BudgetAllocation:
    return BudgetAllocation(
        category_id=category_id,
        period=period,
        budgeted=usd(budgeted),
        created_at=FIXED_TIME,
        updated_at=FIXED_TIME,
    )


class TestPersistence:
    def test_entities_survive_reopen(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_account(account())
        store.upsert_group(
            CategoryGroup(id="g1", name="Needs", created_at=FIXED_TIME, updated_at=FIXED_TIME)
        )
        store.upsert_category(
            Category(
                id="c1",
                name="Groceries",
                group_id="g1",
                goal_amount=usd("400.00"),
                created_at=FIXED_TIME,
                updated_at=FIXED_TIME,
            )
        )
        store.upsert_transaction(
            build_transaction(
                "t1",
                "a1",
                "-100.00",
                splits=[("c1", "-60.00"), ("c2", "-40.00")],
                status=TransactionStatus.CLEARED,
            )
        )
        store.upsert_allocation(allocation("c1", JAN, "500.00"))

        reopened = SQLiteLedgerStore(temp_db)
        assert reopened.get_account("a1") == account()
        assert reopened.get_category("c1").goal_amount == usd("400.00")
        transaction = reopened.get_transaction("t1")
        assert transaction.status == TransactionStatus.CLEARED
        assert [s.amount for s in transaction.splits] == [usd("-60.00"), usd("-40.00")]
        assert reopened.get_allocation("c1", JAN).budgeted == usd("500.00")

    def test_upsert_replaces(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_account(account())
        store.upsert_account(account(name="Main Checking"))

        assert [a.name for a in store.list_accounts()] == ["Main Checking"]

    def test_delete(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_allocation(allocation("c1", JAN, "1.00"))
        store.delete_allocation("c1", JAN)
        assert store.get_allocation("c1", JAN) is None


class TestQueries:
    def test_transactions_by_account_and_date(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_transaction(build_transaction("t3", "a1", "-3.00", on_date=date(2025, 2, 1)))
        store.upsert_transaction(build_transaction("t1", "a1", "-1.00", on_date=date(2025, 1, 1)))
        store.upsert_transaction(build_transaction("t2", "a2", "-2.00", on_date=date(2025, 1, 31)))

        assert [t.id for t in store.list_transactions_by_account("a1")] == ["t1", "t3"]
        assert [
            t.id
            for t in store.list_transactions_by_date_range(date(2025, 1, 1), date(2025, 1, 31))
        ] == ["t1", "t2"]

    def test_moving_a_transaction_updates_its_index_columns(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_transaction(build_transaction("t1", "a1", "-1.00", on_date=date(2025, 1, 1)))
        store.upsert_transaction(build_transaction("t1", "a2", "-1.00", on_date=date(2025, 3, 1)))

        assert store.list_transactions_by_account("a1") == []
        assert [t.id for t in store.list_transactions_by_account("a2")] == ["t1"]

    def test_transactions_by_category_includes_splits(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_transaction(build_transaction("t1", "a1", "-5.00", category_id="c1"))
        store.upsert_transaction(
            build_transaction("t2", "a1", "-5.00", splits=[("c1", "-2.00"), ("c2", "-3.00")])
        )
        store.upsert_transaction(build_transaction("t3", "a1", "-5.00", category_id="c2"))

        assert {t.id for t in store.list_transactions_by_category("c1")} == {"t1", "t2"}

    def test_allocations_by_period_and_category(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_allocation(allocation("c1", FEB, "2.00"))
        store.upsert_allocation(allocation("c1", JAN, "1.00"))
        store.upsert_allocation(allocation("c2", JAN, "3.00"))

        assert {a.category_id for a in store.list_allocations_for_period(JAN)} == {"c1", "c2"}
        assert [str(a.period) for a in store.list_allocations_for_category("c1")] == [
            "2025-01",
            "2025-02",
        ]


class TestBatches:
    def test_batch_applies_upserts_and_deletes(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        store.upsert_allocation(allocation("c1", JAN, "1.00"))

        store.batch_write(
            [
                WriteOp.upsert(allocation("c2", JAN, "2.00")),
                WriteOp.delete(Collection.ALLOCATIONS, "c1:2025-01"),
            ]
        )

        assert [a.category_id for a in store.list_allocations_for_period(JAN)] == ["c2"]

    def test_failed_batch_writes_nothing(
        self, temp_db: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        store = SQLiteLedgerStore(temp_db)
        original = store._execute_op
        calls = {"count": 0}

        def fail_second(conn: sqlite3.Connection, op: WriteOp) -> None:
            calls["count"] += 1
            if calls["count"] == 2:
                raise sqlite3.IntegrityError("simulated failure")
            original(conn, op)

        monkeypatch.setattr(store, "_execute_op", fail_second)

        with pytest.raises(StorageError, match="simulated failure"):
            store.batch_write(
                [
                    WriteOp.upsert(build_transaction("t1", "a1", "-250.00")),
                    WriteOp.upsert(build_transaction("t2", "a2", "250.00")),
                ]
            )

        assert store.list_transactions() == []

    def test_empty_batch_is_a_no_op(self, temp_db: Path) -> None:
        SQLiteLedgerStore(temp_db).batch_write([])


def test_unopenable_database_is_a_storage_error(tmp_path: Path) -> None:
    with pytest.raises(StorageError):
        SQLiteLedgerStore(tmp_path / "missing-dir" / "ledger.db")


class TestTargets:
    def test_target_survives_reopen(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        saved = BudgetTarget(
            category_id="c1",
            amount=usd("1200.00"),
            cadence=TargetCadence.BY_DATE,
            target_date=date(2025, 6, 30),
            created_at=FIXED_TIME,
            updated_at=FIXED_TIME,
        )
        store.upsert_target(saved)

        reopened = SQLiteLedgerStore(temp_db)
        assert reopened.get_target("c1") == saved
        assert reopened.list_targets() == [saved]

    def test_upsert_replaces_and_delete_removes(self, temp_db: Path) -> None:
        store = SQLiteLedgerStore(temp_db)
        first = BudgetTarget(
            category_id="c1", amount=usd("10.00"), created_at=FIXED_TIME, updated_at=FIXED_TIME
        )
        store.upsert_target(first)
        store.upsert_target(first.model_copy(update={"amount": usd("25.00")}))

        assert [t.amount for t in store.list_targets()] == [usd("25.00")]

        store.batch_write([WriteOp.delete(Collection.TARGETS, "c1")])
        assert store.get_target("c1") is None
