"""Core data structures for the roll production planner."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4


class EditDirection(str, Enum):
    """Which plan field the operator edited and therefore treats as authoritative."""

    AMOUNT = "amount"
    METERS = "meters"
    TIME = "time"


@dataclass(slots=True)
class Client:
    """Customer master data."""

    id: str
    name: str
    domain: int = 1


@dataclass(slots=True)
class Machine:
    """A production machine and its throughput."""

    id: str
    name: str
    blows_per_minute: float
    domain: int = 1


@dataclass(slots=True)
class Material:
    """Roll stock type; its dimensions act as the default roll."""

    id: str
    name: str
    width: float
    length: float
    domain: int = 1


@dataclass(slots=True)
class Roll:
    """A specific batch of material with its own dimensions."""

    id: str
    name: str
    material_id: str
    width: float
    length: float
    domain: int = 1


@dataclass(slots=True)
class Product:
    """Finished product cut or blown from a material."""

    id: str
    name: str
    width: float
    length: float
    material: Optional[Material] = None
    code: str = ""
    box_units: float = 0.0
    mold: str = ""
    domain: int = 1


@dataclass(slots=True)
class Plan:
    """One line of a production plan.

    ``key`` identifies the plan inside the working set; ``id`` stays ``None``
    until the plan is saved for the first time.
    """

    key: str = field(default_factory=lambda: str(uuid4()))
    id: Optional[int] = None
    domain: int = 1
    order: int = 0
    plan_date: Optional[date] = None
    machine: Optional[Machine] = None
    product: Optional[Product] = None
    material: Optional[Material] = None
    roll: Optional[Roll] = None
    client: Optional[Client] = None
    comments: str = ""
    width: float = 0.0
    length: float = 0.0
    roll_width: float = 0.0
    roll_length: float = 0.0
    units_per_cycle: int = 0
    amount: float = 0.0
    meters: float = 0.0
    blows: float = 0.0
    blows_per_minute: float = 0.0
    minutes: float = 0.0
    dirty: bool = True
    creation_user: str = ""
    creation_date: Optional[datetime] = None
    modification_user: str = ""
    modification_date: Optional[datetime] = None


__all__ = [
    "EditDirection",
    "Client",
    "Machine",
    "Material",
    "Roll",
    "Product",
    "Plan",
]
