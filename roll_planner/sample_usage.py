"""Demonstration script for the roll production planner."""

from __future__ import annotations

import logging
from datetime import date

from . import PlanningService


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    planner = PlanningService()

    # Master data
    machine = planner.register_machine("Sopladora 1", blows_per_minute=80)
    client = planner.create_client("Frutas del Sur S.L.")
    film = planner.register_material("PE 1000", width=1000, length=2000)
    bag = planner.register_product(
        "Bolsa 500x300", width=500, length=300, material_id=film.id, code="B-500"
    )

    # One plan line, edited the way an operator would
    plan = planner.new_plan(machine_id=machine.id, plan_date=date.today())
    planner.edit_plan(plan.key, "client_id", client.id)
    planner.edit_plan(plan.key, "product_id", bag.id)

    print("Amount entered")
    show(planner.edit_plan(plan.key, "amount", 1000))

    print("\nMeters entered")
    show(planner.edit_plan(plan.key, "meters", 160))

    print("\nMinutes entered")
    show(planner.edit_plan(plan.key, "minutes", 10))

    saved = planner.save_plans(user="demo")
    print(f"\nSaved {len(saved)} plan(s), first id #{saved[0].id}")


def show(plan) -> None:
    print(
        f"   units/blow {plan.units_per_cycle}  amount {plan.amount:.0f}"
        f"  meters {plan.meters:.2f}  blows {plan.blows:.0f}  minutes {plan.minutes:.2f}"
    )


if __name__ == "__main__":  # pragma: no cover - manual execution
    main()
