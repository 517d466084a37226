"""
Sectors and areas come from a matrix sheet: each column headed (on the third
row) by a sector name lists that sector's areas underneath.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.organization import Area, Sector
from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.excel import PathLike, data_file, read_grid
from maintenance_api.importers.text import clean_arabic_text
from maintenance_api.repositories.organization import OrganizationRepository

DEFAULT_FILE = "branches and sectors.xlsx"
HEADER_ROW = 2
MIN_SECTOR_LENGTH = 4
MIN_AREA_LENGTH = 3


# PUBLIC_INTERFACE
def parse_sector_matrix(grid: Sequence[Sequence[Any]]) -> Dict[str, List[str]]:
    """
    Map sector name -> area names, in sheet order.

    Sector headers shorter than four characters and area cells shorter than
    three are ignored; sectors without areas are dropped.
    """
    if len(grid) <= HEADER_ROW:
        return {}
    sectors: Dict[str, List[str]] = {}
    for col, header in enumerate(grid[HEADER_ROW]):
        sector = clean_arabic_text(header)
        if len(sector) < MIN_SECTOR_LENGTH:
            continue
        areas: List[str] = []
        for row in grid[HEADER_ROW + 1:]:
            area = clean_arabic_text(row[col]) if col < len(row) else ""
            if len(area) >= MIN_AREA_LENGTH and area not in areas:
                areas.append(area)
        if areas:
            sectors.setdefault(sector, [])
            sectors[sector].extend(a for a in areas if a not in sectors[sector])
    return sectors


# PUBLIC_INTERFACE
async def import_sectors_areas(
    session: AsyncSession, path: Optional[PathLike] = None, dry_run: bool = False
) -> ImportReport:
    report = ImportReport(name="sectors-areas", dry_run=dry_run)
    matrix = parse_sector_matrix(read_grid(data_file(DEFAULT_FILE, path)))
    report.processed = len(matrix) + sum(len(a) for a in matrix.values())
    if dry_run or not matrix:
        return report.log_summary()

    repo = OrganizationRepository(session)
    sector_ids = await repo.upsert_by_name(Sector, ({"name_ar": s} for s in matrix))
    # an area listed under several sectors keeps the first one
    areas: Dict[str, Dict[str, Any]] = {}
    for sector, names in matrix.items():
        for name in names:
            if name in areas:
                report.skipped += 1
                continue
            areas[name] = {"name_ar": name, "sector_id": sector_ids[sector]}
    area_ids = await repo.upsert_by_name(Area, areas.values())
    await repo.commit()
    report.written = len(sector_ids) + len(area_ids)
    return report.log_summary()
