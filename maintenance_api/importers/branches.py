from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.organization import Area, Branch, Brand
from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.excel import PathLike, data_file, pick, read_records
from maintenance_api.importers.text import clean_arabic_text, to_text, validate_required
from maintenance_api.repositories.organization import OrganizationRepository

DEFAULT_FILE = "branches names and addresses .xlsx"

NAME_COLUMNS = ("اسم الفرع ", "Branch Name", "الفرع", "name")
AREA_COLUMNS = ("Zone", "المنطقة", "Area", "area")
BRAND_COLUMNS = ("الماركة", "Brand", "brand")
LOCATION_COLUMNS = ("الموقع", "Location", "location")
ADDRESS_COLUMNS = ("العنوان", "Address", "address")

# English zone labels used in the branch sheet
ZONE_ALIASES = {
    "delta": "الدلتا",
    "deltas": "الدلتا",
    "cairo": "القاهرة",
    "alex": "الإسكندرية",
    "upper egypt": "الصعيد",
    "canal": "الدلتا والقناة",
    "giza": "قطاع القاهره والجيزه (السواح)",
}
PREFERRED_BRANDS = ("بلبن", "B. Laban")


class BranchLookups:
    """Name indexes used to attach imported branches to areas and brands."""

    def __init__(
        self,
        areas: Mapping[str, UUID],
        area_sectors: Iterable[Tuple[UUID, str, Optional[str]]],
        brands: Mapping[str, UUID],
        first_brand_id: Optional[UUID] = None,
    ):
        self.areas = {clean_arabic_text(k): v for k, v in areas.items()}
        # first area of each sector stands in for the sector itself
        self.sector_areas: Dict[str, UUID] = {}
        for area_id, _area, sector in area_sectors:
            key = clean_arabic_text(sector).lower()
            if key and key not in self.sector_areas:
                self.sector_areas[key] = area_id
        self.brands = {clean_arabic_text(k): v for k, v in brands.items()}
        self.default_brand = next(
            (self.brands[b] for b in map(clean_arabic_text, PREFERRED_BRANDS) if b in self.brands),
            first_brand_id or next(iter(self.brands.values()), None),
        )

    def area_for(self, name: str) -> Optional[UUID]:
        """Area name, then the zone alias table, then a sector name."""
        area_id = self.areas.get(name)
        if area_id is None:
            alias = ZONE_ALIASES.get(name.lower())
            if alias:
                alias = clean_arabic_text(alias)
                area_id = self.areas.get(alias) or self.sector_areas.get(alias.lower())
        if area_id is None:
            area_id = self.sector_areas.get(name.lower())
        return area_id

    def brand_for(self, name: str) -> Optional[UUID]:
        return (self.brands.get(name) if name else None) or self.default_brand


# PUBLIC_INTERFACE
def parse_branches(
    rows: Sequence[Dict[str, Any]], lookups: BranchLookups, report: ImportReport
) -> List[Dict[str, Any]]:
    """Branch rows ready for upsert on name_ar; failing rows are reported with their sheet row number."""
    branches: Dict[str, Dict[str, Any]] = {}
    for index, row in enumerate(rows):
        report.processed += 1
        try:
            name = validate_required(clean_arabic_text(pick(row, NAME_COLUMNS)), "Branch Name")
            area_name = validate_required(clean_arabic_text(pick(row, AREA_COLUMNS)), "Area Name")
            area_id = lookups.area_for(area_name)
            if area_id is None:
                raise ValueError(f"Area or Sector not found: {area_name}")
            brand_id = lookups.brand_for(clean_arabic_text(pick(row, BRAND_COLUMNS)))
            if brand_id is None:
                raise ValueError("No brands found in database to link branch with")
        except ValueError as exc:
            report.fail(index + 2, str(exc))
            continue

        location = to_text(pick(row, LOCATION_COLUMNS))
        address = to_text(pick(row, ADDRESS_COLUMNS))
        if name in branches:
            report.skipped += 1
        branches[name] = {
            "name_ar": name,
            "area_id": area_id,
            "brand_id": brand_id,
            "address": address or None,
            "google_map_link": location if "http" in location else None,
        }
    return list(branches.values())


# PUBLIC_INTERFACE
async def import_branches(session: AsyncSession, path: Optional[PathLike] = None, dry_run: bool = False) -> ImportReport:
    report = ImportReport(name="branches", dry_run=dry_run)
    repo = OrganizationRepository(session)
    lookups = BranchLookups(
        areas=await repo.name_index(Area),
        area_sectors=await repo.area_sector_names(),
        brands=await repo.name_index(Brand),
        first_brand_id=await repo.first_brand_id(),
    )
    branches = parse_branches(read_records(data_file(DEFAULT_FILE, path)), lookups, report)
    if not dry_run and branches:
        written = await repo.upsert_by_name(Branch, branches)
        await repo.commit()
        report.written = len(written)
    return report.log_summary()
