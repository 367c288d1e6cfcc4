"""SQLite-backed persistence for planner master data and saved plans.

Master data records are pickled into a table keyed by their uuid, with the
record name kept in its own column for "contains" lookups. Saved plans get a
table of their own: SQLite assigns the integer plan id on first save, and the
machine and plan date are stored as indexed columns so a day's plans for one
machine can be loaded without unpickling the whole table.
"""

from __future__ import annotations

import logging
import pickle
import sqlite3
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Generic, Iterator, List, Optional, Sequence, TypeVar

from .domain import Client, Machine, Material, Plan, Product, Roll
from .repository import DuplicateRecordError, RecordNotFoundError

T = TypeVar("T")

logger = logging.getLogger(__name__)


class SQLiteRepository(Generic[T]):
    """Master data table: one pickled record per id, searchable by name."""

    def __init__(self, connection: sqlite3.Connection, table: str) -> None:
        self._connection = connection
        self._table = table
        with connection:
            connection.execute(
                f"CREATE TABLE IF NOT EXISTS {table} ("  # nosec - static table names
                "id TEXT PRIMARY KEY, name TEXT NOT NULL DEFAULT '', payload BLOB NOT NULL)"
            )

    def _payloads(self, where: str = "", params: Sequence[Any] = ()) -> List[T]:
        cursor = self._connection.execute(
            f"SELECT payload FROM {self._table} {where} ORDER BY rowid", params
        )
        return [pickle.loads(row[0]) for row in cursor.fetchall()]

    def __contains__(self, item_id: object) -> bool:
        if not isinstance(item_id, str):
            return False
        return bool(self._payloads("WHERE id = ?", (item_id,)))

    def __iter__(self) -> Iterator[T]:
        return iter(self.list())

    def __len__(self) -> int:
        (count,) = self._connection.execute(f"SELECT COUNT(1) FROM {self._table}").fetchone()
        return int(count)

    def add(self, item_id: str, item: T) -> None:
        try:
            with self._connection:
                self._connection.execute(
                    f"INSERT INTO {self._table} (id, name, payload) VALUES (?, ?, ?)",
                    (item_id, getattr(item, "name", ""), pickle.dumps(item)),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists") from exc

    def upsert(self, item_id: str, item: T) -> None:
        with self._connection:
            self._connection.execute(
                f"INSERT INTO {self._table} (id, name, payload) VALUES (?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET name = excluded.name, payload = excluded.payload",
                (item_id, getattr(item, "name", ""), pickle.dumps(item)),
            )

    def get(self, item_id: str) -> T:
        found = self._payloads("WHERE id = ?", (item_id,))
        if not found:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        return found[0]

    def get_optional(self, item_id: Optional[str]) -> Optional[T]:
        if item_id is None:
            return None
        return self.get(item_id)

    def remove(self, item_id: str) -> None:
        with self._connection:
            cursor = self._connection.execute(
                f"DELETE FROM {self._table} WHERE id = ?", (item_id,)
            )
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")

    def list(self) -> List[T]:
        return self._payloads()

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self._payloads() if predicate(item)]

    def find_by_name(self, text: str) -> List[T]:
        """Records whose name contains ``text``, ignoring ASCII case."""

        return self._payloads("WHERE instr(lower(name), ?) > 0", (text.strip().lower(),))


class SQLitePlanStore:
    """Saved plans, numbered by SQLite and indexed by machine and date."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._connection = connection
        with connection:
            connection.execute(
                "CREATE TABLE IF NOT EXISTS plans ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "key TEXT NOT NULL UNIQUE, "
                "machine_id TEXT, "
                "plan_date TEXT, "
                "payload BLOB NOT NULL)"
            )
            connection.execute(
                "CREATE INDEX IF NOT EXISTS plans_machine_date ON plans (machine_id, plan_date)"
            )

    def __len__(self) -> int:
        (count,) = self._connection.execute("SELECT COUNT(1) FROM plans").fetchone()
        return int(count)

    def save(self, plan: Plan) -> Plan:
        """Store ``plan`` and return it carrying its database id."""

        machine_id = plan.machine.id if plan.machine else None
        plan_date = plan.plan_date.isoformat() if plan.plan_date else None
        with self._connection:
            if plan.id is None:
                cursor = self._connection.execute(
                    "INSERT INTO plans (key, machine_id, plan_date, payload) VALUES (?, ?, ?, ?)",
                    (plan.key, machine_id, plan_date, pickle.dumps(plan)),
                )
                plan = replace(plan, id=cursor.lastrowid)
            self._connection.execute(
                "INSERT INTO plans (id, key, machine_id, plan_date, payload) VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET machine_id = excluded.machine_id, "
                "plan_date = excluded.plan_date, payload = excluded.payload",
                (plan.id, plan.key, machine_id, plan_date, pickle.dumps(plan)),
            )
        logger.debug("Stored plan #%s (%s)", plan.id, plan.key)
        return plan

    def list(
        self,
        *,
        machine_id: Optional[str] = None,
        plan_date: Optional[date] = None,
    ) -> List[Plan]:
        clauses: List[str] = []
        params: List[Any] = []
        if machine_id is not None:
            clauses.append("machine_id = ?")
            params.append(machine_id)
        if plan_date is not None:
            clauses.append("plan_date = ?")
            params.append(plan_date.isoformat())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cursor = self._connection.execute(f"SELECT payload FROM plans {where} ORDER BY id", params)
        return [pickle.loads(row[0]) for row in cursor.fetchall()]


class PlanningDatabase:
    """Convenience facade bundling the master data tables and the plan store."""

    def __init__(self, path: str) -> None:
        connection = sqlite3.connect(path, check_same_thread=False)
        self._connection = connection
        self.clients = SQLiteRepository[Client](connection, "clients")
        self.machines = SQLiteRepository[Machine](connection, "machines")
        self.materials = SQLiteRepository[Material](connection, "materials")
        self.rolls = SQLiteRepository[Roll](connection, "rolls")
        self.products = SQLiteRepository[Product](connection, "products")
        self.plans = SQLitePlanStore(connection)
        logger.info("Opened planning database at %s", path)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._connection

    def close(self) -> None:
        self._connection.close()

    def __enter__(self) -> "PlanningDatabase":
        return self

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[BaseException],
    ) -> None:
        self.close()


__all__ = ["SQLiteRepository", "SQLitePlanStore", "PlanningDatabase"]
