"""Service layer that exposes planning use-cases to clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .calculator import apply_edit, calculate
from .domain import Client, EditDirection, Machine, Material, Plan, Product, Roll
from .numeric import is_zero
from .repository import InMemoryPlanStore, InMemoryRepository, RecordNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_BLOWS_PER_MINUTE = 80.0


@dataclass(slots=True)
class PlanningOptions:
    """Configuration values used when plans are created or imported."""

    default_blows_per_minute: float = DEFAULT_BLOWS_PER_MINUTE
    default_domain: int = 1
    default_user: str = "system"
    auto_pick_roll: bool = True


class PlanningService:
    """Facade over master data, the working set of plans and persistence."""

    # Reference fields accepted by ``edit_plan`` and the plan attribute they set.
    REFERENCE_FIELDS = {
        "product_id": "product",
        "material_id": "material",
        "roll_id": "roll",
        "machine_id": "machine",
        "client_id": "client",
    }

    def __init__(
        self,
        client_repo: Optional[InMemoryRepository[Client]] = None,
        machine_repo: Optional[InMemoryRepository[Machine]] = None,
        material_repo: Optional[InMemoryRepository[Material]] = None,
        roll_repo: Optional[InMemoryRepository[Roll]] = None,
        product_repo: Optional[InMemoryRepository[Product]] = None,
        plan_repo: Optional[InMemoryPlanStore] = None,
        options: Optional[PlanningOptions] = None,
    ) -> None:
        self.clients = client_repo or InMemoryRepository()
        self.machines = machine_repo or InMemoryRepository()
        self.materials = material_repo or InMemoryRepository()
        self.rolls = roll_repo or InMemoryRepository()
        self.products = product_repo or InMemoryRepository()
        self.plans = plan_repo if plan_repo is not None else InMemoryPlanStore()
        self.options = options or PlanningOptions()
        self._working_set: Dict[str, Plan] = {}

    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------
    def create_client(self, name: str) -> Client:
        client = Client(id=str(uuid4()), name=name, domain=self.options.default_domain)
        self.clients.add(client.id, client)
        return client

    def register_machine(self, name: str, *, blows_per_minute: float) -> Machine:
        if blows_per_minute < 0:
            raise ValueError("Blows per minute cannot be negative")
        machine = Machine(
            id=str(uuid4()),
            name=name,
            blows_per_minute=blows_per_minute,
            domain=self.options.default_domain,
        )
        self.machines.add(machine.id, machine)
        return machine

    def register_material(self, name: str, *, width: float, length: float) -> Material:
        _check_dimensions(width, length)
        material = Material(
            id=str(uuid4()),
            name=name,
            width=width,
            length=length,
            domain=self.options.default_domain,
        )
        self.materials.add(material.id, material)
        return material

    def register_roll(
        self, name: str, material_id: str, *, width: float, length: float
    ) -> Roll:
        _check_dimensions(width, length)
        material = self.materials.get(material_id)
        roll = Roll(
            id=str(uuid4()),
            name=name,
            material_id=material.id,
            width=width,
            length=length,
            domain=self.options.default_domain,
        )
        self.rolls.add(roll.id, roll)
        return roll

    def register_product(
        self,
        name: str,
        *,
        width: float,
        length: float,
        material_id: Optional[str] = None,
        code: str = "",
        box_units: float = 0.0,
        mold: str = "",
    ) -> Product:
        _check_dimensions(width, length)
        product = Product(
            id=str(uuid4()),
            name=name,
            width=width,
            length=length,
            material=self.materials.get_optional(material_id),
            code=code,
            box_units=box_units,
            mold=mold,
            domain=self.options.default_domain,
        )
        self.products.add(product.id, product)
        return product

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def find_clients(self, text: str) -> List[Client]:
        return self.clients.find_by_name(text)

    def find_products(self, product_text: str, material_text: str = "") -> List[Product]:
        """Products whose name and material name contain the given texts."""

        needle = material_text.strip().lower()
        return [
            product
            for product in self.products.find_by_name(product_text)
            if product.material is not None and needle in product.material.name.lower()
        ]

    def candidate_rolls(self, product: Product) -> List[Roll]:
        """Rolls of the product's material whose width is a multiple of the product width."""

        if product.material is None or is_zero(product.width):
            return []
        material_id = product.material.id
        return [
            roll
            for roll in self.rolls.find(lambda roll: roll.material_id == material_id)
            if is_zero(roll.width % product.width)
        ]

    def pick_roll(self, product: Product) -> Optional[Roll]:
        candidates = self.candidate_rolls(product)
        if len(candidates) == 1:
            return candidates[0]
        return None

    def update_planning_options(
        self,
        *,
        default_blows_per_minute: float,
        default_domain: int,
        default_user: str,
        auto_pick_roll: bool,
    ) -> PlanningOptions:
        if default_blows_per_minute < 0:
            raise ValueError("Blows per minute cannot be negative")
        self.options = PlanningOptions(
            default_blows_per_minute=default_blows_per_minute,
            default_domain=default_domain,
            default_user=default_user,
            auto_pick_roll=auto_pick_roll,
        )
        return self.options

    # ------------------------------------------------------------------
    # Working set
    # ------------------------------------------------------------------
    def _next_order(self) -> int:
        return max((plan.order for plan in self._working_set.values()), default=0) + 1

    def new_plan(
        self,
        *,
        machine_id: Optional[str] = None,
        plan_date: Optional[date] = None,
    ) -> Plan:
        """Add a blank plan line, taking the machine rate when a machine is given."""

        machine = self.machines.get_optional(machine_id)
        plan = Plan(
            domain=self.options.default_domain,
            order=self._next_order(),
            plan_date=plan_date or date.today(),
            machine=machine,
            blows_per_minute=machine.blows_per_minute if machine else 0.0,
        )
        self._working_set[plan.key] = plan
        return plan

    def add_plan(self, plan: Plan) -> Plan:
        if not plan.order:
            plan = replace(plan, order=self._next_order())
        self._working_set[plan.key] = plan
        return plan

    def get_plan(self, key: str) -> Plan:
        try:
            return self._working_set[key]
        except KeyError as exc:
            raise RecordNotFoundError(f"Plan {key!r} not found") from exc

    def list_plans(
        self,
        *,
        machine_id: Optional[str] = None,
        plan_date: Optional[date] = None,
    ) -> List[Plan]:
        plans = [
            plan
            for plan in self._working_set.values()
            if (machine_id is None or (plan.machine and plan.machine.id == machine_id))
            and (plan_date is None or plan.plan_date == plan_date)
        ]
        plans.sort(key=lambda plan: plan.order)
        return plans

    def remove_plan(self, key: str) -> None:
        """Drop a plan from the working set; saved copies are left alone."""

        self.get_plan(key)
        del self._working_set[key]
        logger.info("Removed plan %s from the working set", key)

    def edit_plan(self, key: str, field_name: str, value: Any) -> Plan:
        """Apply one operator edit and recalculate the plan.

        ``field_name`` is either a plan attribute (``amount``, ``meters``,
        ``minutes``, ``blows_per_minute``, ``comments``, ``plan_date``) or one
        of the reference fields in :attr:`REFERENCE_FIELDS`, whose value is
        the id of the referenced record (or ``None`` to clear it).
        """

        plan = self.get_plan(key)
        if field_name in self.REFERENCE_FIELDS.values():
            raise ValueError(f"Edit {field_name!r} through its id field")
        if field_name in self.REFERENCE_FIELDS:
            attribute = self.REFERENCE_FIELDS[field_name]
            value = self._resolve_reference(attribute, value)
            field_name = attribute
        updated = apply_edit(plan, field_name, value)
        self._working_set[key] = updated
        if updated.units_per_cycle == 0 and updated.product is not None:
            logger.warning(
                "Plan %s cannot be calculated for product %r", key, updated.product.name
            )
        return updated

    def recalculate(self, key: str, direction: EditDirection = EditDirection.AMOUNT) -> Plan:
        plan = calculate(self.get_plan(key), direction)
        self._working_set[key] = plan
        return plan

    def _resolve_reference(self, attribute: str, record_id: Optional[str]) -> Any:
        repositories = {
            "product": self.products,
            "material": self.materials,
            "roll": self.rolls,
            "machine": self.machines,
            "client": self.clients,
        }
        return repositories[attribute].get_optional(record_id or None)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def save_plan(self, key: str, *, user: Optional[str] = None) -> Plan:
        """Persist a plan, stamping audit fields, and clear its change flag.

        The plan store assigns the integer id on the first save.
        """

        plan = self.get_plan(key)
        user = user or self.options.default_user
        now = datetime.now()
        if plan.id is None:
            plan = replace(plan, creation_user=user, creation_date=now)
        plan = self.plans.save(
            replace(plan, modification_user=user, modification_date=now, dirty=False)
        )
        self._working_set[key] = plan
        logger.info("Saved plan %s as #%s", key, plan.id)
        return plan

    def save_plans(self, *, user: Optional[str] = None) -> List[Plan]:
        """Persist every dirty plan of the working set."""

        saved = [
            self.save_plan(plan.key, user=user)
            for plan in self.list_plans()
            if plan.dirty
        ]
        logger.info("Saved %d plan(s)", len(saved))
        return saved

    def load_saved_plans(
        self,
        *,
        machine_id: Optional[str] = None,
        plan_date: Optional[date] = None,
    ) -> List[Plan]:
        """Bring saved plans into the working set, replacing unsaved edits of the same plan."""

        loaded = self.plans.list(machine_id=machine_id, plan_date=plan_date)
        for plan in loaded:
            self._working_set[plan.key] = plan
        return loaded


def _check_dimensions(width: float, length: float) -> None:
    if width < 0 or length < 0:
        raise ValueError("Dimensions cannot be negative")


__all__ = ["PlanningOptions", "PlanningService", "DEFAULT_BLOWS_PER_MINUTE"]
