"""
Spare parts stock imported from the warehouse on-hand export.

Columns: 1 warehouse name, 2 item number, 3 product name, 4 on-hand quantity.
The first row holds the headers.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.excel import PathLike, data_file, read_grid
from maintenance_api.importers.text import clean_arabic_text, parse_number, to_text
from maintenance_api.repositories.inventory import SparePartRepository

logger = logging.getLogger(__name__)

DEFAULT_FILE = "inventory.xlsx"
BATCH_SIZE = 100
DEFAULT_MIN_THRESHOLD = 5

WAREHOUSE_COLUMN = 1
ITEM_NUMBER_COLUMN = 2
NAME_COLUMN = 3
QUANTITY_COLUMN = 4


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


# PUBLIC_INTERFACE
def on_hand_quantity(value: Any) -> int:
    """Whole units on hand: thousands separators removed, halves rounded up, unparseable cells are 0."""
    number = parse_number(value)
    if number is None:
        return 0
    return int(math.floor(number + 0.5))


# PUBLIC_INTERFACE
def parse_inventory(grid: Sequence[Sequence[Any]], report: ImportReport) -> List[Dict[str, Any]]:
    """
    Build spare part rows from the on-hand sheet.

    Rows without a product name are skipped. A part repeated in the sheet (same
    item number, or same normalized name when it has none) is kept once.
    Negative quantities are reported as row errors.
    """
    parts: List[Dict[str, Any]] = []
    seen: set = set()
    for index, row in enumerate(grid[1:], start=2):
        if not any(to_text(cell) for cell in row):
            continue
        report.processed += 1
        name = to_text(_cell(row, NAME_COLUMN))
        if not name:
            report.skipped += 1
            continue
        part_number = to_text(_cell(row, ITEM_NUMBER_COLUMN)) or None
        key = part_number or clean_arabic_text(name)
        if key in seen:
            report.skipped += 1
            continue

        raw = _cell(row, QUANTITY_COLUMN)
        quantity = on_hand_quantity(raw)
        if quantity < 0:
            report.fail(index, f"Negative quantity for {name}: {to_text(raw)}")
            continue
        exact = parse_number(raw)
        if exact is not None and not float(exact).is_integer():
            logger.info("Row %d: quantity %s of %s rounded to %d", index, exact, name, quantity)

        seen.add(key)
        parts.append(
            {
                "name_ar": name,
                "part_number": part_number,
                "quantity": quantity,
                "min_threshold": DEFAULT_MIN_THRESHOLD,
            }
        )
    return parts


# PUBLIC_INTERFACE
async def import_inventory(
    session: AsyncSession, path: Optional[PathLike] = None, dry_run: bool = False
) -> ImportReport:
    """Insert parts not yet in stock; parts already known by item number or name are skipped."""
    report = ImportReport(name="inventory", dry_run=dry_run)
    parts = parse_inventory(read_grid(data_file(DEFAULT_FILE, path)), report)

    repo = SparePartRepository(session)
    numbers, names = await repo.part_keys()
    known_names = {clean_arabic_text(n) for n in names}
    fresh = []
    for part in parts:
        if part["part_number"] in numbers or (
            part["part_number"] is None and clean_arabic_text(part["name_ar"]) in known_names
        ):
            report.skipped += 1
            continue
        fresh.append(part)

    if dry_run:
        return report.log_summary()

    for start in range(0, len(fresh), BATCH_SIZE):
        batch = fresh[start:start + BATCH_SIZE]
        try:
            inserted = await repo.insert_many(batch)
            await repo.commit()
        except SQLAlchemyError as exc:
            await repo.rollback()
            report.fail(start + 2, f"Batch of {len(batch)} failed: {exc}")
            continue
        report.written += inserted
        report.skipped += len(batch) - inserted
    return report.log_summary()
