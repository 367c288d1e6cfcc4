"""Production run calculation.

A plan is recalculated after every edit. The edited field decides the
:class:`EditDirection`: the amount, the material meters or the run minutes is
taken as given and the other quantities are derived from it. All three
directions end with the amount-driven formulas, so meters, blows and minutes
always come out of the same forward path.

Invalid configurations (no product, no resolvable material, a product that
does not fit the roll) never raise; the plan is normalised to zero instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional, Tuple

from .domain import EditDirection, Material, Plan
from .numeric import floor_down, is_zero, round_half_up, safe_divide

logger = logging.getLogger(__name__)

# Product length is given in millimetres, consumption is reported in meters.
METERS_FACTOR = 1000.0


@dataclass(frozen=True, slots=True)
class Dimensions:
    """Geometry used for the ratio and meter math of one plan."""

    width: float
    length: float
    roll_width: float
    roll_length: float
    material: Material


def effective_material(plan: Plan) -> Optional[Material]:
    if plan.material is not None:
        return plan.material
    if plan.product is None:
        return None
    return plan.product.material


def resolve_dimensions(plan: Plan) -> Optional[Dimensions]:
    """Return the plan geometry, or ``None`` when it cannot be calculated.

    A selected roll overrides the material dimensions; without one the
    material itself is used as a generic roll.
    """

    product = plan.product
    if product is None:
        return None
    material = effective_material(plan)
    if material is None:
        return None
    if plan.roll is not None:
        roll_width, roll_length = plan.roll.width, plan.roll.length
    else:
        roll_width, roll_length = material.width, material.length
    return Dimensions(
        width=product.width,
        length=product.length,
        roll_width=roll_width,
        roll_length=roll_length,
        material=material,
    )


def units_per_cycle(roll_width: float, width: float) -> int:
    """Number of product units across one roll width.

    The ratio is rounded, not truncated: a 1000 roll reports one unit for a
    1200 product.
    """

    if is_zero(width):
        return 0
    return int(round_half_up(roll_width / width, 0))


def zeroed(plan: Plan) -> Plan:
    """Plan with every derived field cleared."""

    return replace(
        clear_cycles(plan),
        width=0.0,
        length=0.0,
        roll_width=0.0,
        roll_length=0.0,
    )


def clear_cycles(plan: Plan) -> Plan:
    """Plan with the cycle-derived fields cleared and the geometry kept."""

    return replace(
        plan,
        units_per_cycle=0,
        amount=0.0,
        meters=0.0,
        blows=0.0,
        minutes=0.0,
    )


def basic_calculate(plan: Plan) -> Tuple[Plan, bool]:
    """Resolve geometry and units per cycle.

    Returns the updated plan and whether cycle based math is possible.
    """

    dimensions = resolve_dimensions(plan)
    if dimensions is None:
        return zeroed(plan), False
    units = units_per_cycle(dimensions.roll_width, dimensions.width)
    resolved = replace(
        plan,
        material=dimensions.material,
        width=dimensions.width,
        length=dimensions.length,
        roll_width=dimensions.roll_width,
        roll_length=dimensions.roll_length,
        units_per_cycle=units,
    )
    return resolved, not is_zero(units)


def amount_driven(plan: Plan) -> Plan:
    units = plan.units_per_cycle
    meters = round_half_up(
        safe_divide(plan.length * plan.amount, METERS_FACTOR * units)
    )
    blows = round_half_up(safe_divide(plan.amount, units))
    minutes = round_half_up(safe_divide(blows, plan.blows_per_minute))
    return replace(plan, meters=meters, blows=blows, minutes=minutes)


def meters_driven(plan: Plan) -> Plan:
    """Back-solve the amount from the material meters.

    The provisional amount is rounded to whole units before the blows are
    floored to whole machine cycles, and the amount follows from them. The
    meters echoed back can be below the value entered, and feeding them in
    again gives the same plan.
    """

    units = plan.units_per_cycle
    provisional = round_half_up(
        safe_divide(plan.meters * units * METERS_FACTOR, plan.length), 0
    )
    blows = floor_down(safe_divide(provisional, units), 0)
    amount = round_half_up(blows * units)
    return amount_driven(replace(plan, blows=blows, amount=amount))


def time_driven(plan: Plan) -> Plan:
    """Back-solve the amount from the run minutes, floored to whole cycles."""

    blows = floor_down(plan.blows_per_minute * plan.minutes, 0)
    amount = round_half_up(blows * plan.units_per_cycle)
    return amount_driven(replace(plan, blows=blows, amount=amount))


STRATEGIES: Dict[EditDirection, Callable[[Plan], Plan]] = {
    EditDirection.AMOUNT: amount_driven,
    EditDirection.METERS: meters_driven,
    EditDirection.TIME: time_driven,
}


def calculate(plan: Plan, direction: EditDirection = EditDirection.AMOUNT) -> Plan:
    """Recalculate ``plan`` treating the field behind ``direction`` as given.

    The input is left untouched; the returned plan is marked dirty.
    """

    resolved, valid = basic_calculate(plan)
    if valid:
        result = STRATEGIES[EditDirection(direction)](resolved)
    else:
        result = clear_cycles(resolved)
    logger.debug(
        "Recalculated plan %s (%s): units=%s amount=%s meters=%s blows=%s minutes=%s",
        result.key,
        EditDirection(direction).value,
        result.units_per_cycle,
        result.amount,
        result.meters,
        result.blows,
        result.minutes,
    )
    return replace(result, dirty=True)


# Plan attribute edited by the operator -> direction used to recalculate.
EDIT_DIRECTIONS: Dict[str, EditDirection] = {
    "product": EditDirection.AMOUNT,
    "material": EditDirection.AMOUNT,
    "roll": EditDirection.AMOUNT,
    "machine": EditDirection.AMOUNT,
    "client": EditDirection.AMOUNT,
    "comments": EditDirection.AMOUNT,
    "plan_date": EditDirection.AMOUNT,
    "amount": EditDirection.AMOUNT,
    "blows_per_minute": EditDirection.AMOUNT,
    "meters": EditDirection.METERS,
    "minutes": EditDirection.TIME,
}

NUMERIC_FIELDS = frozenset({"amount", "blows_per_minute", "meters", "minutes"})


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise ValueError(f"Plan date must be a date, not {type(value).__name__}")


def apply_edit(plan: Plan, field_name: str, value: Any) -> Plan:
    """Store one edited value and recalculate in the matching direction."""

    try:
        direction = EDIT_DIRECTIONS[field_name]
    except KeyError as exc:
        raise ValueError(f"Field {field_name!r} cannot be edited") from exc
    if field_name in NUMERIC_FIELDS:
        value = float(value or 0.0)
    changes: Dict[str, Any] = {field_name: value}
    if field_name == "product":
        changes["material"] = value.material if value is not None else None
    elif field_name == "machine":
        changes["blows_per_minute"] = value.blows_per_minute if value is not None else 0.0
    elif field_name == "comments":
        changes["comments"] = "" if value is None else str(value)
    elif field_name == "plan_date":
        changes["plan_date"] = _as_date(value)
    if "material" in changes and plan.roll is not None:
        material = changes["material"]
        if material is None or plan.roll.material_id != material.id:
            changes["roll"] = None
    return calculate(replace(plan, **changes), direction)


__all__ = [
    "METERS_FACTOR",
    "Dimensions",
    "effective_material",
    "resolve_dimensions",
    "units_per_cycle",
    "zeroed",
    "clear_cycles",
    "basic_calculate",
    "amount_driven",
    "meters_driven",
    "time_driven",
    "STRATEGIES",
    "calculate",
    "EDIT_DIRECTIONS",
    "apply_edit",
]
