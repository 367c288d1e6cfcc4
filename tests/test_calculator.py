from dataclasses import replace
from datetime import date, datetime

import pytest

from roll_planner.calculator import (
    amount_driven,
    apply_edit,
    basic_calculate,
    calculate,
    resolve_dimensions,
    units_per_cycle,
)
from roll_planner.domain import EditDirection, Machine, Material, Plan, Product, Roll
from roll_planner.numeric import round_half_up

DIRECTIONS = list(EditDirection)


def cycle_fields(plan):
    return (plan.amount, plan.meters, plan.blows, plan.minutes)


# ----------------------------------------------------------------------
# Dimensions and units per cycle
# ----------------------------------------------------------------------
def test_material_acts_as_default_roll(plan):
    dimensions = resolve_dimensions(plan)
    assert (dimensions.width, dimensions.length) == (500, 300)
    assert (dimensions.roll_width, dimensions.roll_length) == (1000, 2000)
    assert dimensions.material.id == "mat-pe"


def test_roll_overrides_material_dimensions(plan, wide_roll):
    resolved, valid = basic_calculate(replace(plan, roll=wide_roll))
    assert valid
    assert (resolved.roll_width, resolved.roll_length) == (1500, 2500)
    assert resolved.units_per_cycle == 3


def test_plan_material_takes_precedence_over_product_default(plan):
    narrow = Material(id="mat-narrow", name="PE 500", width=500, length=1000)
    resolved, _ = basic_calculate(replace(plan, material=narrow))
    assert resolved.material is narrow
    assert resolved.units_per_cycle == 1


def test_product_default_material_is_copied_onto_plan(plan):
    resolved, _ = basic_calculate(plan)
    assert resolved.material is plan.product.material


def test_no_product_cannot_be_resolved():
    assert resolve_dimensions(Plan(amount=10)) is None


@pytest.mark.parametrize(
    ("roll_width", "width", "expected"),
    [
        (1000, 500, 2),
        (1250, 500, 3),
        (1000, 1200, 1),
        (400, 500, 1),
        (200, 500, 0),
        (1000, 0, 0),
    ],
)
def test_units_per_cycle_rounds_ratio(roll_width, width, expected):
    assert units_per_cycle(roll_width, width) == expected


# ----------------------------------------------------------------------
# Amount driven
# ----------------------------------------------------------------------
def test_amount_driven_example(plan):
    result = calculate(plan, EditDirection.AMOUNT)
    assert result.units_per_cycle == 2
    assert result.blows == 500
    assert result.meters == 150
    assert result.minutes == 6.25
    assert (result.width, result.length, result.roll_width) == (500, 300, 1000)


def test_amount_driven_formulas_hold(bag):
    for amount in (1, 7, 333, 1001, 98765):
        result = calculate(Plan(product=bag, amount=amount, blows_per_minute=75))
        assert result.blows == round_half_up(amount / 2)
        assert result.meters == round_half_up(300 * amount / 2000)


def test_amount_driven_is_idempotent(plan):
    once = calculate(plan)
    assert calculate(once) == once
    assert amount_driven(once) == once


def test_calculate_does_not_mutate_input(plan):
    calculate(plan)
    assert plan.meters == 0
    assert plan.units_per_cycle == 0


# ----------------------------------------------------------------------
# Meters driven
# ----------------------------------------------------------------------
def test_meters_driven_floors_to_whole_blows(plan):
    result = calculate(replace(calculate(plan), meters=160), EditDirection.METERS)
    assert result.amount == 1066
    assert result.blows == 533
    assert result.meters == 159.9
    assert result.minutes == 6.66


def test_meters_driven_reaches_fixed_point(plan):
    first = calculate(replace(calculate(plan), meters=160), EditDirection.METERS)
    second = calculate(first, EditDirection.METERS)
    third = calculate(second, EditDirection.AMOUNT)
    assert cycle_fields(second) == cycle_fields(first)
    assert cycle_fields(third) == cycle_fields(first)


@pytest.mark.parametrize("length", [250, 300, 333, 337, 417])
@pytest.mark.parametrize("meters", [1, 5, 12.34, 160])
def test_meters_edit_is_stable_when_repeated(film, length, meters):
    bag = Product(id=f"prod-{length}", name=f"Bolsa 500x{length}", width=500, length=length, material=film)
    first = calculate(Plan(product=bag, meters=meters, blows_per_minute=80), EditDirection.METERS)
    second = calculate(first, EditDirection.METERS)
    assert first.units_per_cycle == 2
    assert cycle_fields(second) == cycle_fields(first)
    assert cycle_fields(calculate(first, EditDirection.AMOUNT)) == cycle_fields(first)


def test_meters_driven_exact_value_is_echoed(plan):
    result = calculate(replace(plan, meters=150), EditDirection.METERS)
    assert cycle_fields(result) == (1000, 150, 500, 6.25)


# ----------------------------------------------------------------------
# Time driven
# ----------------------------------------------------------------------
def test_time_driven_derives_amount_from_minutes(plan):
    result = calculate(replace(plan, minutes=10), EditDirection.TIME)
    assert cycle_fields(result) == (1600, 240, 800, 10)


def test_time_driven_floors_fractional_blows(plan):
    result = calculate(replace(plan, minutes=6.33), EditDirection.TIME)
    assert result.blows == 506
    assert result.amount == 1012
    assert result.meters == 151.8
    assert result.minutes == 6.33


# ----------------------------------------------------------------------
# Invalid configurations
# ----------------------------------------------------------------------
@pytest.mark.parametrize("direction", DIRECTIONS)
def test_zero_machine_rate_gives_zero_minutes(plan, direction):
    result = calculate(replace(plan, blows_per_minute=0, meters=160, minutes=10), direction)
    assert result.minutes == 0


@pytest.mark.parametrize("direction", DIRECTIONS)
def test_zero_width_zeroes_cycle_fields(film, direction):
    flat = Product(id="prod-flat", name="Flat", width=0, length=300, material=film)
    plan = Plan(product=flat, amount=1000, meters=160, minutes=10, blows_per_minute=80)
    result = calculate(plan, direction)
    assert result.units_per_cycle == 0
    assert cycle_fields(result) == (0, 0, 0, 0)


@pytest.mark.parametrize("direction", DIRECTIONS)
def test_unresolvable_material_zeroes_plan(direction):
    orphan = Product(id="prod-orphan", name="Orphan", width=500, length=300)
    plan = Plan(product=orphan, amount=1000, meters=160, minutes=10, blows_per_minute=80)
    result = calculate(plan, direction)
    assert (result.width, result.length, result.roll_width, result.roll_length) == (0, 0, 0, 0)
    assert result.units_per_cycle == 0
    assert cycle_fields(result) == (0, 0, 0, 0)
    assert result.dirty is True


def test_missing_product_zeroes_plan():
    result = calculate(Plan(amount=50, meters=3, width=10, blows_per_minute=80))
    assert result.width == 0
    assert cycle_fields(result) == (0, 0, 0, 0)
    assert result.blows_per_minute == 80


def test_narrow_roll_still_reports_one_unit(film):
    wide_product = Product(id="prod-wide", name="Wide", width=1200, length=300, material=film)
    result = calculate(Plan(product=wide_product, amount=100, blows_per_minute=80))
    assert result.units_per_cycle == 1
    assert result.blows == 100
    assert result.meters == 30


def test_too_narrow_roll_keeps_geometry_but_clears_cycles(bag, film):
    strip = Roll(id="roll-200", name="Strip", material_id=film.id, width=200, length=500)
    result = calculate(Plan(product=bag, roll=strip, amount=100, blows_per_minute=80))
    assert result.units_per_cycle == 0
    assert (result.width, result.roll_width) == (500, 200)
    assert cycle_fields(result) == (0, 0, 0, 0)


# ----------------------------------------------------------------------
# Edits
# ----------------------------------------------------------------------
def test_edit_marks_plan_dirty(plan):
    clean = replace(calculate(plan), dirty=False)
    assert apply_edit(clean, "comments", "urgente").dirty is True


def test_edit_meters_selects_meters_direction(plan):
    result = apply_edit(calculate(plan), "meters", "160")
    assert result.amount == 1066


def test_edit_minutes_selects_time_direction(plan):
    result = apply_edit(calculate(plan), "minutes", 10)
    assert result.amount == 1600


def test_selecting_product_takes_its_material(bag):
    other = Material(id="mat-other", name="Other", width=2000, length=1000)
    result = apply_edit(Plan(material=other, amount=1000, blows_per_minute=80), "product", bag)
    assert result.material is bag.material
    assert result.units_per_cycle == 2


def test_changing_material_drops_roll_of_other_material(plan, wide_roll):
    with_roll = calculate(replace(plan, roll=wide_roll))
    other = Material(id="mat-other", name="Other", width=2000, length=1000)
    result = apply_edit(with_roll, "material", other)
    assert result.roll is None
    assert result.units_per_cycle == 4


def test_selecting_machine_copies_its_rate(plan):
    machine = Machine(id="mach-1", name="Sopladora", blows_per_minute=50)
    result = apply_edit(plan, "machine", machine)
    assert result.blows_per_minute == 50
    assert result.minutes == 10


def test_unknown_field_is_rejected(plan):
    with pytest.raises(ValueError):
        apply_edit(plan, "units_per_cycle", 3)


@pytest.mark.parametrize("field_name", ["amount", "meters", "minutes"])
def test_huge_edits_are_calculated(plan, field_name):
    result = apply_edit(calculate(plan), field_name, 1e30)
    assert result.units_per_cycle == 2
    assert result.amount > 0
    assert result.blows == pytest.approx(result.amount / 2)


def test_clearing_machine_clears_its_rate(plan):
    machine = Machine(id="mach-1", name="Sopladora", blows_per_minute=50)
    with_machine = apply_edit(plan, "machine", machine)
    result = apply_edit(with_machine, "machine", None)
    assert result.machine is None
    assert result.blows_per_minute == 0
    assert result.minutes == 0
    assert result.blows == 500


def test_comments_are_stored_as_text(plan):
    assert apply_edit(plan, "comments", 12.5).comments == "12.5"
    assert apply_edit(plan, "comments", None).comments == ""


def test_plan_date_accepts_dates_and_iso_text(plan):
    assert apply_edit(plan, "plan_date", "2024-05-07").plan_date == date(2024, 5, 7)
    assert apply_edit(plan, "plan_date", datetime(2024, 5, 8, 6, 30)).plan_date == date(2024, 5, 8)
    assert apply_edit(plan, "plan_date", None).plan_date is None


@pytest.mark.parametrize("value", [3.5, "07/05/2024"])
def test_plan_date_rejects_other_values(plan, value):
    with pytest.raises(ValueError):
        apply_edit(plan, "plan_date", value)
