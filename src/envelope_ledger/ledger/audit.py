"""
Audit trail - append-only record of every ledger mutation

Engines hand each committed change to an AuditRecorder, which turns it
into an AuditEntry (before/after snapshots plus a one-line diff summary)
and passes it to an AuditSink. Sinks only append; reading history back
is for humans and tests, never for the engines.

A failing sink must not undo a write that already committed, so the
recorder logs and counts sink failures instead of raising them.
"""

import json
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel

from envelope_ledger.kernel.logging import get_logger
from envelope_ledger.kernel.metrics import audit_failures_total
from envelope_ledger.kernel.time import TimeProvider

logger = get_logger(__name__)


class AuditOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityType(str, Enum):
    ACCOUNT = "account"
    TRANSACTION = "transaction"
    CATEGORY = "category"
    CATEGORY_GROUP = "categorygroup"
    BUDGET_ALLOCATION = "budgetallocation"
    BUDGET_TARGET = "budgettarget"


class AuditEntry(BaseModel):
    """
    One audited change

    Attributes:
        timestamp: When the change was recorded
        operation: create/update/delete
        entity_type: What kind of entity changed
        entity_id: Its identifier (allocation key for allocations)
        entity_name: Human label, when there is one
        before: Snapshot before the change (None for create)
        after: Snapshot after the change (None for delete)
        diff_summary: Short description, e.g. "budgeted: $0.00 -> $500.00"
    """

    timestamp: datetime
    operation: AuditOperation
    entity_type: EntityType
    entity_id: str
    entity_name: str | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    diff_summary: str | None = None

    def format_human(self) -> str:
        name = f" '{self.entity_name}'" if self.entity_name else ""
        line = (
            f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] {self.operation.value.upper()} "
            f"{self.entity_type.value} {self.entity_id}{name}"
        )
        if self.diff_summary:
            line += f"\n  Changes: {self.diff_summary}"
        return line


class AuditSink(Protocol):
    """Append-only destination for audit entries"""

    def record(self, entry: AuditEntry) -> None: ...


class InMemoryAuditSink:
    """Keeps entries in a list; used by tests and throwaway ledgers"""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def summaries(self) -> list[str]:
        return [e.diff_summary for e in self.entries if e.diff_summary]


class JsonlAuditSink:
    """
    Appends one JSON object per line to a file

    Fun fact: JSON Lines files survive truncation gracefully - a crash
    mid-write costs you one line, never the whole history.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def record(self, entry: AuditEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(entry.model_dump_json() + "\n")

    def read_all(self) -> list[AuditEntry]:
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as f:
            return [AuditEntry.model_validate_json(line) for line in f if line.strip()]

    def read_recent(self, count: int) -> list[AuditEntry]:
        return self.read_all()[-count:]


def snapshot(entity: BaseModel | None) -> dict[str, Any] | None:
    """JSON-compatible snapshot of an entity"""
    return json.loads(entity.model_dump_json()) if entity is not None else None


def generate_diff(before: dict[str, Any], after: dict[str, Any]) -> str | None:
    """
    Summarize changed top-level fields, e.g. "payee_name: 'A' -> 'B'"

    Timestamps are ignored. Returns None when nothing else changed.
    """
    changes = []
    for key in sorted(set(before) | set(after)):
        if key in ("created_at", "updated_at"):
            continue
        old, new = before.get(key), after.get(key)
        if old != new:
            changes.append(f"{key}: {old!r} -> {new!r}")
    return ", ".join(changes) if changes else None


class AuditRecorder:
    """
    Builds audit entries and delivers them to a sink

    Sink failures are logged at warning level and counted in
    envelope_audit_failures_total; they never propagate.
    """

    def __init__(self, sink: AuditSink, time_provider: TimeProvider) -> None:
        self.sink = sink
        self.time_provider = time_provider

    def _deliver(self, entry: AuditEntry) -> None:
        try:
            self.sink.record(entry)
        except Exception as e:
            audit_failures_total.inc()
            logger.warning(
                "Audit record failed",
                entity_type=entry.entity_type.value,
                entity_id=entry.entity_id,
                operation=entry.operation.value,
                error=str(e),
            )

    def record_create(
        self,
        entity_type: EntityType,
        entity_id: str,
        entity: BaseModel,
        entity_name: str | None = None,
    ) -> None:
        self._deliver(
            AuditEntry(
                timestamp=self.time_provider.now(),
                operation=AuditOperation.CREATE,
                entity_type=entity_type,
                entity_id=entity_id,
                entity_name=entity_name,
                after=snapshot(entity),
            )
        )

    def record_update(
        self,
        entity_type: EntityType,
        entity_id: str,
        before: BaseModel | None,
        after: BaseModel,
        entity_name: str | None = None,
        diff_summary: str | None = None,
    ) -> None:
        """
        Record an update

        Args:
            diff_summary: Explicit summary; computed from the snapshots if omitted
        """
        before_snapshot = snapshot(before)
        after_snapshot = snapshot(after)
        if diff_summary is None and before_snapshot is not None and after_snapshot is not None:
            diff_summary = generate_diff(before_snapshot, after_snapshot)
        self._deliver(
            AuditEntry(
                timestamp=self.time_provider.now(),
                operation=AuditOperation.UPDATE,
                entity_type=entity_type,
                entity_id=entity_id,
                entity_name=entity_name,
                before=before_snapshot,
                after=after_snapshot,
                diff_summary=diff_summary,
            )
        )

    def record_delete(
        self,
        entity_type: EntityType,
        entity_id: str,
        entity: BaseModel,
        entity_name: str | None = None,
    ) -> None:
        self._deliver(
            AuditEntry(
                timestamp=self.time_provider.now(),
                operation=AuditOperation.DELETE,
                entity_type=entity_type,
                entity_id=entity_id,
                entity_name=entity_name,
                before=snapshot(entity),
            )
        )
