"""
Spreadsheet importers for the organization hierarchy, the maintenance team,
spare parts stock and historical maintenance reports.

Run with: python -m maintenance_api.importers <name> [--dry-run] [--file PATH]
"""

from typing import Awaitable, Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .base import ImportReport
from .branches import import_branches
from .brands import import_brands
from .categories import import_categories
from .excel import PathLike
from .inventory import import_inventory
from .profiles import import_profiles
from .sectors_areas import import_sectors_areas
from .tickets import import_tickets

Importer = Callable[[AsyncSession, Optional[PathLike], bool], Awaitable[ImportReport]]

# dependency order: branches need areas and brands, tickets need branches and profiles
IMPORTERS: Dict[str, Importer] = {
    "brands": import_brands,
    "sectors-areas": import_sectors_areas,
    "branches": import_branches,
    "profiles": import_profiles,
    "categories": import_categories,
    "inventory": import_inventory,
    "tickets": import_tickets,
}

__all__ = ["IMPORTERS", "ImportReport"]
