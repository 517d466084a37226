from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.organization import Brand
from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.excel import PathLike, data_file, pick, read_records
from maintenance_api.importers.text import clean_arabic_text, validate_required
from maintenance_api.repositories.organization import OrganizationRepository

logger = logging.getLogger(__name__)

DEFAULT_FILE = "company brands.xlsx"
NAME_COLUMNS = ("البراند", "اسم الماركة", "Brand Name", "الماركة", "اسم", "name")


# PUBLIC_INTERFACE
def parse_brands(rows: Sequence[Dict[str, Any]], report: ImportReport) -> List[Dict[str, Any]]:
    """One {name_ar} row per distinct brand name; rows without a name are reported."""
    brands: Dict[str, Dict[str, Any]] = {}
    for index, row in enumerate(rows):
        report.processed += 1
        try:
            name = validate_required(clean_arabic_text(pick(row, NAME_COLUMNS)), "Brand Name")
        except ValueError as exc:
            report.fail(index + 2, str(exc))
            continue
        if name in brands:
            report.skipped += 1
            continue
        brands[name] = {"name_ar": name}
    return list(brands.values())


# PUBLIC_INTERFACE
async def import_brands(session: AsyncSession, path: Optional[PathLike] = None, dry_run: bool = False) -> ImportReport:
    report = ImportReport(name="brands", dry_run=dry_run)
    brands = parse_brands(read_records(data_file(DEFAULT_FILE, path)), report)
    if not dry_run and brands:
        repo = OrganizationRepository(session)
        written = await repo.upsert_by_name(Brand, brands)
        await repo.commit()
        report.written = len(written)
    return report.log_summary()
