"""
Ledger Store - persistence boundary for the engines

The engines only ever talk to a LedgerStore: typed get/list/upsert/delete
per collection plus batch_write, which applies the writes of one logical
operation (a move, a transfer, a reconciliation) together.

Two implementations ship: InMemoryLedgerStore (tests, scratch ledgers)
and SQLiteLedgerStore in ledger.sqlite_store. Both keep the typed query
methods from BaseLedgerStore and only supply the raw collection access.

Fun fact: Luca Pacioli described the double-entry ledger in 1494. Five
centuries later we still refuse to lose a write halfway through a transfer.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Literal, Protocol, TypeVar

from pydantic import BaseModel

from envelope_ledger.kernel.ids import allocation_key
from envelope_ledger.kernel.period import BudgetPeriod
from envelope_ledger.ledger.models import (
    Account,
    BudgetAllocation,
    BudgetTarget,
    Category,
    CategoryGroup,
    Transaction,
)

M = TypeVar("M", bound=BaseModel)


class Collection(str, Enum):
    """Persisted collections, in lock acquisition order"""

    ACCOUNTS = "accounts"
    CATEGORY_GROUPS = "category_groups"
    CATEGORIES = "categories"
    TRANSACTIONS = "transactions"
    ALLOCATIONS = "allocations"
    TARGETS = "targets"

    @property
    def model(self) -> type[BaseModel]:
        return _COLLECTION_MODELS[self]


_COLLECTION_MODELS: dict[Collection, type[BaseModel]] = {
    Collection.ACCOUNTS: Account,
    Collection.CATEGORY_GROUPS: CategoryGroup,
    Collection.CATEGORIES: Category,
    Collection.TRANSACTIONS: Transaction,
    Collection.ALLOCATIONS: BudgetAllocation,
    Collection.TARGETS: BudgetTarget,
}


def collection_for(entity: BaseModel) -> Collection:
    for collection, model in _COLLECTION_MODELS.items():
        if isinstance(entity, model):
            return collection
    raise TypeError(f"Not a ledger entity: {type(entity).__name__}")


def entity_key(entity: BaseModel) -> str:
    if isinstance(entity, BudgetAllocation):
        return entity.key
    if isinstance(entity, BudgetTarget):
        return entity.category_id
    return str(entity.id)  # type: ignore[attr-defined]


@dataclass(frozen=True)
class WriteOp:
    """
    One write inside a batch

    Build with WriteOp.upsert(entity) or WriteOp.delete(collection, key).
    """

    action: Literal["upsert", "delete"]
    collection: Collection
    key: str
    entity: BaseModel | None = None

    @classmethod
    def upsert(cls, entity: BaseModel) -> "WriteOp":
        return cls(
            action="upsert",
            collection=collection_for(entity),
            key=entity_key(entity),
            entity=entity,
        )

    @classmethod
    def delete(cls, collection: Collection, key: str) -> "WriteOp":
        return cls(action="delete", collection=collection, key=key)


class LedgerStore(Protocol):
    """What the engines need from persistence"""

    # Accounts
    def get_account(self, account_id: str) -> Account | None: ...
    def list_accounts(self) -> list[Account]: ...
    def upsert_account(self, account: Account) -> None: ...

    # Transactions
    def get_transaction(self, transaction_id: str) -> Transaction | None: ...
    def list_transactions(self) -> list[Transaction]: ...
    def list_transactions_by_account(self, account_id: str) -> list[Transaction]: ...
    def list_transactions_by_category(self, category_id: str) -> list[Transaction]: ...
    def list_transactions_by_date_range(self, start: date, end: date) -> list[Transaction]: ...
    def upsert_transaction(self, transaction: Transaction) -> None: ...
    def delete_transaction(self, transaction_id: str) -> None: ...

    # Categories
    def get_group(self, group_id: str) -> CategoryGroup | None: ...
    def list_groups(self) -> list[CategoryGroup]: ...
    def upsert_group(self, group: CategoryGroup) -> None: ...
    def delete_group(self, group_id: str) -> None: ...
    def get_category(self, category_id: str) -> Category | None: ...
    def list_categories(self) -> list[Category]: ...
    def upsert_category(self, category: Category) -> None: ...
    def delete_category(self, category_id: str) -> None: ...

    # Allocations
    def get_allocation(self, category_id: str, period: BudgetPeriod) -> BudgetAllocation | None: ...
    def list_allocations_for_period(self, period: BudgetPeriod) -> list[BudgetAllocation]: ...
    def list_allocations_for_category(self, category_id: str) -> list[BudgetAllocation]: ...
    def upsert_allocation(self, allocation: BudgetAllocation) -> None: ...
    def delete_allocation(self, category_id: str, period: BudgetPeriod) -> None: ...

    # Targets
    def get_target(self, category_id: str) -> BudgetTarget | None: ...
    def list_targets(self) -> list[BudgetTarget]: ...
    def upsert_target(self, target: BudgetTarget) -> None: ...
    def delete_target(self, category_id: str) -> None: ...

    # Batches
    def batch_write(self, ops: list[WriteOp]) -> None: ...


class BaseLedgerStore(ABC):
    """
    Typed LedgerStore methods on top of three raw primitives

    Subclasses implement _get, _list, _apply and may override any query
    with something faster. Returned entities are always copies: mutating
    one never changes the store until it is written back.
    """

    @abstractmethod
    def _get(self, collection: Collection, key: str) -> BaseModel | None: ...

    @abstractmethod
    def _list(self, collection: Collection) -> list[BaseModel]: ...

    @abstractmethod
    def _apply(self, ops: list[WriteOp]) -> None: ...

    def _typed_get(self, collection: Collection, key: str, model: type[M]) -> M | None:
        entity = self._get(collection, key)
        return entity if isinstance(entity, model) else None

    # ========== Accounts ==========

    def get_account(self, account_id: str) -> Account | None:
        return self._typed_get(Collection.ACCOUNTS, account_id, Account)

    def list_accounts(self) -> list[Account]:
        accounts = [a for a in self._list(Collection.ACCOUNTS) if isinstance(a, Account)]
        return sorted(accounts, key=lambda a: a.name.lower())

    def upsert_account(self, account: Account) -> None:
        self._apply([WriteOp.upsert(account)])

    # ========== Transactions ==========

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        return self._typed_get(Collection.TRANSACTIONS, transaction_id, Transaction)

    def list_transactions(self) -> list[Transaction]:
        transactions = [
            t for t in self._list(Collection.TRANSACTIONS) if isinstance(t, Transaction)
        ]
        return sorted(transactions, key=lambda t: (t.date, t.created_at, t.id))

    def list_transactions_by_account(self, account_id: str) -> list[Transaction]:
        return [t for t in self.list_transactions() if t.account_id == account_id]

    def list_transactions_by_category(self, category_id: str) -> list[Transaction]:
        return [
            t
            for t in self.list_transactions()
            if any(cid == category_id for cid, _ in t.category_amounts())
        ]

    def list_transactions_by_date_range(self, start: date, end: date) -> list[Transaction]:
        return [t for t in self.list_transactions() if start <= t.date <= end]

    def upsert_transaction(self, transaction: Transaction) -> None:
        self._apply([WriteOp.upsert(transaction)])

    def delete_transaction(self, transaction_id: str) -> None:
        self._apply([WriteOp.delete(Collection.TRANSACTIONS, transaction_id)])

    # ========== Categories ==========

    def get_group(self, group_id: str) -> CategoryGroup | None:
        return self._typed_get(Collection.CATEGORY_GROUPS, group_id, CategoryGroup)

    def list_groups(self) -> list[CategoryGroup]:
        groups = [
            g for g in self._list(Collection.CATEGORY_GROUPS) if isinstance(g, CategoryGroup)
        ]
        return sorted(groups, key=lambda g: (g.sort_order, g.name.lower()))

    def upsert_group(self, group: CategoryGroup) -> None:
        self._apply([WriteOp.upsert(group)])

    def delete_group(self, group_id: str) -> None:
        self._apply([WriteOp.delete(Collection.CATEGORY_GROUPS, group_id)])

    def get_category(self, category_id: str) -> Category | None:
        return self._typed_get(Collection.CATEGORIES, category_id, Category)

    def list_categories(self) -> list[Category]:
        categories = [c for c in self._list(Collection.CATEGORIES) if isinstance(c, Category)]
        return sorted(categories, key=lambda c: (c.sort_order, c.name.lower()))

    def upsert_category(self, category: Category) -> None:
        self._apply([WriteOp.upsert(category)])

    def delete_category(self, category_id: str) -> None:
        self._apply([WriteOp.delete(Collection.CATEGORIES, category_id)])

    # ========== Allocations ==========

    def get_allocation(self, category_id: str, period: BudgetPeriod) -> BudgetAllocation | None:
        return self._typed_get(
            Collection.ALLOCATIONS, allocation_key(category_id, period), BudgetAllocation
        )

    def _allocations(self) -> list[BudgetAllocation]:
        return [
            a for a in self._list(Collection.ALLOCATIONS) if isinstance(a, BudgetAllocation)
        ]

    def list_allocations_for_period(self, period: BudgetPeriod) -> list[BudgetAllocation]:
        return [a for a in self._allocations() if a.period == period]

    def list_allocations_for_category(self, category_id: str) -> list[BudgetAllocation]:
        return sorted(
            (a for a in self._allocations() if a.category_id == category_id),
            key=lambda a: a.period,
        )

    def upsert_allocation(self, allocation: BudgetAllocation) -> None:
        self._apply([WriteOp.upsert(allocation)])

    def delete_allocation(self, category_id: str, period: BudgetPeriod) -> None:
        self._apply(
            [WriteOp.delete(Collection.ALLOCATIONS, allocation_key(category_id, period))]
        )

    # ========== Targets ==========

    def get_target(self, category_id: str) -> BudgetTarget | None:
        return self._typed_get(Collection.TARGETS, category_id, BudgetTarget)

    def list_targets(self) -> list[BudgetTarget]:
        targets = [t for t in self._list(Collection.TARGETS) if isinstance(t, BudgetTarget)]
        return sorted(targets, key=lambda t: t.category_id)

    def upsert_target(self, target: BudgetTarget) -> None:
        self._apply([WriteOp.upsert(target)])

    def delete_target(self, category_id: str) -> None:
        self._apply([WriteOp.delete(Collection.TARGETS, category_id)])

    # ========== Batches ==========

    def batch_write(self, ops: list[WriteOp]) -> None:
        """
        Apply several writes as one unit

        Args:
            ops: Upserts and deletes, applied in order
        """
        if ops:
            self._apply(list(ops))


class InMemoryLedgerStore(BaseLedgerStore):
    """
    Dict-backed store

    Each collection has its own re-entrant lock, held for one call.
    A batch takes the locks of every collection it touches in
    Collection order, so readers never see half a batch.
    """

    def __init__(self) -> None:
        self._data: dict[Collection, dict[str, BaseModel]] = {c: {} for c in Collection}
        self._locks: dict[Collection, threading.RLock] = {
            c: threading.RLock() for c in Collection
        }
        self.write_count = 0

    @contextmanager
    def _locked(self, collections: Iterable[Collection]) -> Iterator[None]:
        with ExitStack() as stack:
            for collection in sorted(set(collections), key=list(Collection).index):
                stack.enter_context(self._locks[collection])
            yield

    def _get(self, collection: Collection, key: str) -> BaseModel | None:
        with self._locked([collection]):
            entity = self._data[collection].get(key)
            return entity.model_copy(deep=True) if entity is not None else None

    def _list(self, collection: Collection) -> list[BaseModel]:
        with self._locked([collection]):
            return [e.model_copy(deep=True) for e in self._data[collection].values()]

    def _apply(self, ops: list[WriteOp]) -> None:
        with self._locked(op.collection for op in ops):
            for op in ops:
                if op.action == "upsert" and op.entity is not None:
                    self._data[op.collection][op.key] = op.entity.model_copy(deep=True)
                else:
                    self._data[op.collection].pop(op.key, None)
                self.write_count += 1
