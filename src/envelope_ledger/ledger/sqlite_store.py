"""
SQLite Ledger Store - durable single-file persistence

Every collection gets its own table holding the entity as JSON plus the
few columns the hot queries filter on (account, date, period). A batch is
applied inside one SQL transaction, so a transfer or a reconciliation
lands completely or not at all.

Schema:
- accounts, category_groups, categories: id, state_json
- transactions: id, account_id, txn_date, state_json
- allocations: key, category_id, period, period_start, state_json
- targets: category_id, state_json
"""

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path

from pydantic import BaseModel

from envelope_ledger.kernel.errors import StorageError
from envelope_ledger.kernel.logging import get_logger
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.kernel.retry import retry_on_sqlite_lock
from envelope_ledger.ledger.models import BudgetAllocation, Transaction
from envelope_ledger.ledger.store import BaseLedgerStore, Collection, WriteOp

logger = get_logger(__name__)

_KEY_COLUMN = {
    Collection.ACCOUNTS: "id",
    Collection.CATEGORY_GROUPS: "id",
    Collection.CATEGORIES: "id",
    Collection.TRANSACTIONS: "id",
    Collection.ALLOCATIONS: "key",
    Collection.TARGETS: "category_id",
}


class SQLiteLedgerStore(BaseLedgerStore):
    """
    SQLite-backed LedgerStore

    Connections are opened per call; the file is the only shared state.
    sqlite3 errors surface as StorageError, except lock contention, which
    is retried a few times first.
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize the store, creating tables if needed

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        try:
            self._initialize_schema()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open ledger database {self.db_path}: {e}") from e

    def _initialize_schema(self) -> None:
        """Create tables if they don't exist"""
        with self._connect() as conn:
            for collection in (
                Collection.ACCOUNTS,
                Collection.CATEGORY_GROUPS,
                Collection.CATEGORIES,
            ):
                conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {collection.value} (
                        id TEXT PRIMARY KEY,
                        state_json TEXT NOT NULL
                    )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL,
                    txn_date TEXT NOT NULL,
                    state_json TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions(account_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(txn_date)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS allocations (
                    key TEXT PRIMARY KEY,
                    category_id TEXT NOT NULL,
                    period TEXT NOT NULL,
                    period_start TEXT NOT NULL,
                    state_json TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_allocations_period ON allocations(period)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_allocations_category ON allocations(category_id)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS targets (
                    category_id TEXT PRIMARY KEY,
                    state_json TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections"""
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _decode(self, collection: Collection, state_json: str) -> BaseModel:
        return collection.model.model_validate(json.loads(state_json))

    @retry_on_sqlite_lock()
    def _query(self, sql: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchall()

    def _read(self, sql: str, params: tuple[object, ...] = ()) -> list[sqlite3.Row]:
        try:
            return self._query(sql, params)
        except sqlite3.Error as e:
            raise StorageError(f"Ledger read failed: {e}") from e

    # ========== Primitives ==========

    def _get(self, collection: Collection, key: str) -> BaseModel | None:
        rows = self._read(
            f"SELECT state_json FROM {collection.value} WHERE {_KEY_COLUMN[collection]} = ?",
            (key,),
        )
        return self._decode(collection, rows[0]["state_json"]) if rows else None

    def _list(self, collection: Collection) -> list[BaseModel]:
        rows = self._read(f"SELECT state_json FROM {collection.value}")
        return [self._decode(collection, row["state_json"]) for row in rows]

    def _apply(self, ops: list[WriteOp]) -> None:
        try:
            self._write_batch(ops)
        except sqlite3.Error as e:
            logger.error("Ledger batch write failed", ops=len(ops), error=str(e))
            raise StorageError(f"Ledger write failed: {e}") from e

    @retry_on_sqlite_lock()
    def _write_batch(self, ops: list[WriteOp]) -> None:
        with self._connect() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                for op in ops:
                    self._execute_op(conn, op)
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def _execute_op(self, conn: sqlite3.Connection, op: WriteOp) -> None:
        table = op.collection.value
        if op.action == "delete" or op.entity is None:
            conn.execute(f"DELETE FROM {table} WHERE {_KEY_COLUMN[op.collection]} = ?", (op.key,))
            return

        state_json = op.entity.model_dump_json()
        entity = op.entity
        if isinstance(entity, Transaction):
            conn.execute(
                """
                INSERT INTO transactions (id, account_id, txn_date, state_json)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    account_id = excluded.account_id,
                    txn_date = excluded.txn_date,
                    state_json = excluded.state_json
            """,
                (op.key, entity.account_id, entity.date.isoformat(), state_json),
            )
        elif isinstance(entity, BudgetAllocation):
            conn.execute(
                """
                INSERT INTO allocations (key, category_id, period, period_start, state_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    state_json = excluded.state_json
            """,
                (
                    op.key,
                    entity.category_id,
                    str(entity.period),
                    entity.period.start_date().isoformat(),
                    state_json,
                ),
            )
        else:
            key_column = _KEY_COLUMN[op.collection]
            conn.execute(
                f"""
                INSERT INTO {table} ({key_column}, state_json) VALUES (?, ?)
                ON CONFLICT({key_column}) DO UPDATE SET state_json = excluded.state_json
            """,
                (op.key, state_json),
            )

    # ========== Indexed queries ==========

    def list_transactions_by_account(self, account_id: str) -> list[Transaction]:
        rows = self._read(
            "SELECT state_json FROM transactions WHERE account_id = ?", (account_id,)
        )
        transactions = [Transaction.model_validate_json(row["state_json"]) for row in rows]
        return sorted(transactions, key=lambda t: (t.date, t.created_at, t.id))

    def list_transactions_by_date_range(self, start: date, end: date) -> list[Transaction]:
        rows = self._read(
            "SELECT state_json FROM transactions WHERE txn_date BETWEEN ? AND ?",
            (start.isoformat(), end.isoformat()),
        )
        transactions = [Transaction.model_validate_json(row["state_json"]) for row in rows]
        return sorted(transactions, key=lambda t: (t.date, t.created_at, t.id))

    def list_allocations_for_period(self, period: BudgetPeriod) -> list[BudgetAllocation]:
        rows = self._read(
            "SELECT state_json FROM allocations WHERE period = ?", (str(period),)
        )
        return [BudgetAllocation.model_validate_json(row["state_json"]) for row in rows]

    def list_allocations_for_category(self, category_id: str) -> list[BudgetAllocation]:
        rows = self._read(
            "SELECT state_json FROM allocations WHERE category_id = ? ORDER BY period_start",
            (category_id,),
        )
        return [BudgetAllocation.model_validate_json(row["state_json"]) for row in rows]
