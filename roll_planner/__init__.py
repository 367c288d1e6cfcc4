"""Production run planner for roll-fed blowing and cutting machines.

This package derives material meters, machine blows and run time from an
ordered amount (or back from meters or time), and provides in-memory and
SQLite persistence, spreadsheet import and a FastAPI edit surface around
that calculation.
"""

from .calculator import apply_edit, basic_calculate, calculate
from .domain import (
    Client,
    EditDirection,
    Machine,
    Material,
    Plan,
    Product,
    Roll,
)
from .services import PlanningOptions, PlanningService

__all__ = [
    "Client",
    "EditDirection",
    "Machine",
    "Material",
    "Plan",
    "Product",
    "Roll",
    "PlanningOptions",
    "PlanningService",
    "apply_edit",
    "basic_calculate",
    "calculate",
]
