"""FastAPI-based edit surface for the roll planner."""

from __future__ import annotations

import io
import logging
import os
from datetime import date
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from pydantic import BaseModel

from ..domain import Plan
from ..importer import ImportFormatError, import_plans
from ..repository import RecordNotFoundError
from ..services import PlanningService
from ..storage import PlanningDatabase

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_PATH = "planning.sqlite3"


class PlanEdit(BaseModel):
    field: str
    value: Union[float, str, None] = None


def create_app(
    database_path: Optional[str] = None,
    *,
    seed_demo_data: bool = True,
) -> FastAPI:
    database_path = database_path or os.getenv("ROLL_PLANNER_DB", DEFAULT_DATABASE_PATH)
    database = PlanningDatabase(database_path)
    service = PlanningService(
        client_repo=database.clients,
        machine_repo=database.machines,
        material_repo=database.materials,
        roll_repo=database.rolls,
        product_repo=database.products,
        plan_repo=database.plans,
    )
    if seed_demo_data:
        ensure_demo_data(service)
    service.load_saved_plans()

    app = FastAPI(title="Roll production planner")
    app.state.planning_service = service
    app.state.database = database

    @app.on_event("shutdown")
    async def shutdown_event() -> None:  # pragma: no cover - framework hook
        database.close()

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------
    @app.get("/plans")
    async def list_plans(
        request: Request,
        machine_id: Optional[str] = None,
        plan_date: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        service: PlanningService = request.app.state.planning_service
        plans = service.list_plans(machine_id=machine_id, plan_date=plan_date)
        return [serialize_plan(plan) for plan in plans]

    @app.post("/plans", status_code=201)
    async def create_plan(
        request: Request,
        machine_id: Optional[str] = Form(None),
        plan_date: Optional[date] = Form(None),
    ) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        try:
            plan = service.new_plan(machine_id=machine_id or None, plan_date=plan_date)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return serialize_plan(plan)

    @app.patch("/plans/{plan_key}")
    async def edit_plan(plan_key: str, edit: PlanEdit, request: Request) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        try:
            plan = service.edit_plan(plan_key, edit.field, edit.value)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return serialize_plan(plan)

    @app.delete("/plans/{plan_key}", status_code=204)
    async def delete_plan(plan_key: str, request: Request) -> None:
        service: PlanningService = request.app.state.planning_service
        try:
            service.remove_plan(plan_key)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.post("/plans/save")
    async def save_plans(request: Request, user: Optional[str] = Form(None)) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        saved = service.save_plans(user=user)
        return {"saved": len(saved), "plans": [serialize_plan(plan) for plan in saved]}

    @app.post("/plans/import")
    async def import_spreadsheet(
        request: Request,
        file: UploadFile = File(...),
        machine_id: Optional[str] = Form(None),
        plan_date: Optional[date] = Form(None),
    ) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        content = await file.read()
        try:
            plans = import_plans(
                service,
                io.BytesIO(content),
                plan_date=plan_date,
                machine_id=machine_id or None,
            )
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ImportFormatError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        logger.info("Imported %d plan(s) from %s", len(plans), file.filename)
        return {"imported": len(plans), "plans": [serialize_plan(plan) for plan in plans]}

    # ------------------------------------------------------------------
    # Master data
    # ------------------------------------------------------------------
    @app.get("/clients")
    async def list_clients(request: Request, name: str = "") -> List[Dict[str, Any]]:
        service: PlanningService = request.app.state.planning_service
        return [_record(client) for client in service.find_clients(name)]

    @app.post("/clients", status_code=201)
    async def create_client(request: Request, name: str = Form(...)) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        return _record(service.create_client(name))

    @app.get("/machines")
    async def list_machines(request: Request) -> List[Dict[str, Any]]:
        service: PlanningService = request.app.state.planning_service
        return [_record(machine) for machine in service.machines.list()]

    @app.post("/machines", status_code=201)
    async def create_machine(
        request: Request,
        name: str = Form(...),
        blows_per_minute: float = Form(...),
    ) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        try:
            machine = service.register_machine(name, blows_per_minute=blows_per_minute)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _record(machine)

    @app.get("/materials")
    async def list_materials(request: Request) -> List[Dict[str, Any]]:
        service: PlanningService = request.app.state.planning_service
        return [_record(material) for material in service.materials.list()]

    @app.post("/materials", status_code=201)
    async def create_material(
        request: Request,
        name: str = Form(...),
        width: float = Form(...),
        length: float = Form(...),
    ) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        try:
            material = service.register_material(name, width=width, length=length)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _record(material)

    @app.get("/rolls")
    async def list_rolls(request: Request, material_id: Optional[str] = None) -> List[Dict[str, Any]]:
        service: PlanningService = request.app.state.planning_service
        rolls = service.rolls.list()
        if material_id:
            rolls = [roll for roll in rolls if roll.material_id == material_id]
        return [_record(roll) for roll in rolls]

    @app.post("/rolls", status_code=201)
    async def create_roll(
        request: Request,
        name: str = Form(...),
        material_id: str = Form(...),
        width: float = Form(...),
        length: float = Form(...),
    ) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        try:
            roll = service.register_roll(name, material_id, width=width, length=length)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _record(roll)

    @app.get("/products")
    async def list_products(
        request: Request, name: str = "", material: str = ""
    ) -> List[Dict[str, Any]]:
        service: PlanningService = request.app.state.planning_service
        if name or material:
            products = service.find_products(name, material)
        else:
            products = service.products.list()
        return [serialize_product(product) for product in products]

    @app.post("/products", status_code=201)
    async def create_product(
        request: Request,
        name: str = Form(...),
        width: float = Form(...),
        length: float = Form(...),
        material_id: Optional[str] = Form(None),
        code: str = Form(""),
    ) -> Dict[str, Any]:
        service: PlanningService = request.app.state.planning_service
        try:
            product = service.register_product(
                name,
                width=width,
                length=length,
                material_id=material_id or None,
                code=code,
            )
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return serialize_product(product)

    return app


def _record(record: Any) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in record.__slots__}


def _reference(record: Any) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {"id": record.id, "name": record.name}


def serialize_product(product: Any) -> Dict[str, Any]:
    data = _record(product)
    data["material"] = _reference(product.material)
    return data


def serialize_plan(plan: Plan) -> Dict[str, Any]:
    data = _record(plan)
    for name in ("machine", "product", "material", "roll", "client"):
        data[name] = _reference(getattr(plan, name))
    return data


def ensure_demo_data(service: PlanningService) -> None:
    if len(service.machines) > 0:
        return

    service.register_machine("Sopladora 1", blows_per_minute=80)
    service.register_machine("Sopladora 2", blows_per_minute=65)

    service.create_client("Frutas del Sur S.L.")
    service.create_client("Panaderia La Espiga")

    polyethylene = service.register_material("PE 1000", width=1000, length=2000)
    polypropylene = service.register_material("PP 800", width=800, length=1500)
    service.register_roll("PE 1000 lote 17", polyethylene.id, width=1000, length=1800)
    service.register_roll("PE 1200 lote 3", polyethylene.id, width=1200, length=2200)
    service.register_roll("PP 800 lote 9", polypropylene.id, width=800, length=1500)

    service.register_product(
        "Bolsa 500x300", width=500, length=300, material_id=polyethylene.id, code="B-500"
    )
    service.register_product(
        "Bolsa 400x250", width=400, length=250, material_id=polypropylene.id, code="B-400"
    )
    service.register_product("Lamina sin material", width=600, length=400, code="L-600")
