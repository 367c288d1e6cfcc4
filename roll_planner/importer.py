"""Build plan lines from an order spreadsheet.

The first worksheet is read row by row. Columns are client name, product
name, material name and amount; rows whose amount is not a number (headers,
notes, blank lines) are ignored.
"""

from __future__ import annotations

import logging
from datetime import date
from os import PathLike
from typing import IO, List, Optional, Union
from zipfile import BadZipFile

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .calculator import calculate
from .domain import EditDirection, Plan
from .services import PlanningService

logger = logging.getLogger(__name__)

CLIENT_COLUMN = 0
PRODUCT_COLUMN = 1
MATERIAL_COLUMN = 2
AMOUNT_COLUMN = 3

Source = Union[str, "PathLike[str]", IO[bytes]]


class ImportFormatError(ValueError):
    """Raised when the source cannot be read as a workbook."""


def _cell_text(row: tuple, index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()


def _cell_amount(row: tuple, index: int) -> Optional[float]:
    if index >= len(row):
        return None
    value = row[index]
    # bool is an int subclass but never a quantity.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def build_plan(
    service: PlanningService,
    client_name: str,
    product_name: str,
    material_name: str,
    amount: float,
    *,
    plan_date: Optional[date] = None,
    machine_id: Optional[str] = None,
) -> Plan:
    """Resolve one spreadsheet row against master data and calculate it."""

    clients = service.find_clients(client_name) if client_name else []
    products = service.find_products(product_name, material_name) if product_name else []
    product = products[0] if len(products) == 1 else None
    if product is None:
        logger.warning(
            "No unique product for %r / %r (%d candidates)",
            product_name,
            material_name,
            len(products),
        )
    roll = None
    if product is not None and service.options.auto_pick_roll:
        roll = service.pick_roll(product)
    machine = service.machines.get_optional(machine_id)
    blows_per_minute = (
        machine.blows_per_minute if machine else service.options.default_blows_per_minute
    )
    plan = Plan(
        domain=service.options.default_domain,
        plan_date=plan_date or date.today(),
        machine=machine,
        client=clients[0] if clients else None,
        product=product,
        material=product.material if product else None,
        roll=roll,
        amount=amount,
        blows_per_minute=blows_per_minute,
    )
    return calculate(plan, EditDirection.AMOUNT)


def import_plans(
    service: PlanningService,
    source: Source,
    *,
    plan_date: Optional[date] = None,
    machine_id: Optional[str] = None,
) -> List[Plan]:
    """Read the workbook and add one calculated plan per order row to the working set."""

    try:
        workbook = load_workbook(source, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as exc:
        raise ImportFormatError(f"Cannot read workbook: {exc}") from exc

    imported: List[Plan] = []
    try:
        sheet = workbook.worksheets[0]
        for row_number, row in enumerate(sheet.iter_rows(values_only=True), start=1):
            amount = _cell_amount(row, AMOUNT_COLUMN)
            if amount is None:
                if any(cell not in (None, "") for cell in row):
                    logger.warning("Skipping row %d without a numeric amount", row_number)
                continue
            plan = build_plan(
                service,
                _cell_text(row, CLIENT_COLUMN),
                _cell_text(row, PRODUCT_COLUMN),
                _cell_text(row, MATERIAL_COLUMN),
                amount,
                plan_date=plan_date,
                machine_id=machine_id,
            )
            imported.append(service.add_plan(plan))
    finally:
        workbook.close()

    logger.info("Imported %d plan(s)", len(imported))
    return imported


__all__ = ["ImportFormatError", "build_plan", "import_plans"]
