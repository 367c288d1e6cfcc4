"""In-memory repositories backing the planning service."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Callable, Dict, Generic, Iterator, List, MutableMapping, Optional, TypeVar

from .domain import Plan

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


def name_contains(text: str) -> Callable[[object], bool]:
    """Case-insensitive "contains" filter on a record's ``name``."""

    needle = text.strip().lower()
    return lambda record: needle in getattr(record, "name", "").lower()


class InMemoryRepository(Generic[T]):
    """Repository keyed by record id, kept in insertion order."""

    def __init__(self) -> None:
        self._items: MutableMapping[str, T] = {}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def add(self, item_id: str, item: T) -> None:
        if item_id in self._items:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._items[item_id] = item

    def upsert(self, item_id: str, item: T) -> None:
        self._items[item_id] = item

    def get(self, item_id: str) -> T:
        try:
            return self._items[item_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found") from exc

    def get_optional(self, item_id: Optional[str]) -> Optional[T]:
        if item_id is None:
            return None
        return self.get(item_id)

    def remove(self, item_id: str) -> None:
        if item_id not in self._items:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found")
        del self._items[item_id]

    def list(self) -> List[T]:
        return list(self._items.values())

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        return [item for item in self._items.values() if predicate(item)]

    def find_by_name(self, text: str) -> List[T]:
        return self.find(name_contains(text))


class InMemoryPlanStore:
    """Saved plans numbered in save order, filtered by machine and date."""

    def __init__(self) -> None:
        self._plans: Dict[int, Plan] = {}
        self._last_id = 0

    def __len__(self) -> int:
        return len(self._plans)

    def save(self, plan: Plan) -> Plan:
        if plan.id is None:
            self._last_id += 1
            plan = replace(plan, id=self._last_id)
        else:
            self._last_id = max(self._last_id, plan.id)
        self._plans[plan.id] = plan
        return plan

    def list(
        self,
        *,
        machine_id: Optional[str] = None,
        plan_date: Optional[date] = None,
    ) -> List[Plan]:
        return [
            plan
            for _, plan in sorted(self._plans.items())
            if (machine_id is None or (plan.machine is not None and plan.machine.id == machine_id))
            and (plan_date is None or plan.plan_date == plan_date)
        ]


__all__ = [
    "InMemoryPlanStore",
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
    "name_contains",
]
