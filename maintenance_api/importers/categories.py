from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.excel import PathLike, data_file, read_records
from maintenance_api.importers.tickets import DEFAULT_FILE, FAULT_TYPE_COLUMN
from maintenance_api.importers.text import to_text
from maintenance_api.repositories.assets import AssetRepository


# PUBLIC_INTERFACE
def parse_categories(rows: Sequence[Dict[str, Any]], report: ImportReport) -> List[str]:
    """Distinct fault types named in the maintenance reports, in first-seen order."""
    names: Dict[str, None] = {}
    for row in rows:
        report.processed += 1
        name = to_text(row.get(FAULT_TYPE_COLUMN))
        if not name or name in names:
            report.skipped += 1
            continue
        names[name] = None
    return list(names)


# PUBLIC_INTERFACE
async def import_categories(
    session: AsyncSession, path: Optional[PathLike] = None, dry_run: bool = False
) -> ImportReport:
    report = ImportReport(name="categories", dry_run=dry_run)
    names = parse_categories(read_records(data_file(DEFAULT_FILE, path)), report)
    if not dry_run and names:
        repo = AssetRepository(session)
        report.written = await repo.insert_missing_categories(names)
        await repo.commit()
    return report.log_summary()
