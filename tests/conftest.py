"""Shared fixtures for the planner tests."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from roll_planner.domain import Material, Plan, Product, Roll
from roll_planner.services import PlanningService


@pytest.fixture
def film() -> Material:
    return Material(id="mat-pe", name="PE 1000", width=1000, length=2000)


@pytest.fixture
def bag(film: Material) -> Product:
    return Product(id="prod-bag", name="Bolsa 500x300", width=500, length=300, material=film)


@pytest.fixture
def wide_roll(film: Material) -> Roll:
    return Roll(id="roll-1500", name="PE 1500", material_id=film.id, width=1500, length=2500)


@pytest.fixture
def plan(bag: Product) -> Plan:
    return Plan(product=bag, amount=1000, blows_per_minute=80)


@pytest.fixture
def service() -> PlanningService:
    return PlanningService()


@pytest.fixture
def catalog(service: PlanningService) -> SimpleNamespace:
    machine = service.register_machine("Sopladora 1", blows_per_minute=80)
    slow_machine = service.register_machine("Sopladora 2", blows_per_minute=65)
    client = service.create_client("Frutas del Sur S.L.")
    film = service.register_material("PE 1000", width=1000, length=2000)
    other_film = service.register_material("PP 800", width=800, length=1500)
    roll = service.register_roll("PE 1000 lote 17", film.id, width=1000, length=1800)
    odd_roll = service.register_roll("PE 1200 lote 3", film.id, width=1200, length=2200)
    bag = service.register_product("Bolsa 500x300", width=500, length=300, material_id=film.id)
    loose = service.register_product("Lamina 600", width=600, length=400)
    return SimpleNamespace(
        machine=machine,
        slow_machine=slow_machine,
        client=client,
        film=film,
        other_film=other_film,
        roll=roll,
        odd_roll=odd_roll,
        bag=bag,
        loose=loose,
    )
