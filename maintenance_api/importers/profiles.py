"""
Maintenance team import. The team sheet has four banner rows, then one member
per row with sector, area, name, employee code and job title in fixed columns.
Each member gets a sign-in account u<code>@<IMPORT_EMAIL_DOMAIN>.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.settings import get_app_settings
from maintenance_api.db.models.organization import Area, Sector
from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.excel import PathLike, data_file, read_grid
from maintenance_api.importers.text import clean_arabic_text, to_text
from maintenance_api.repositories.organization import OrganizationRepository
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.services.admin_users import AdminUserService
from maintenance_api.services.errors import ServiceError

logger = logging.getLogger(__name__)

DEFAULT_FILE = "maintenance team members.xlsx"
FIRST_DATA_ROW = 4
SECTOR_COL, AREA_COL, NAME_COL, CODE_COL, ROLE_COL = 1, 2, 5, 6, 8
MANAGER_TITLES = ("مدير", "منسق", "امين مخزن")
SPECIALIZATION_LENGTH = 50


class TeamMember(BaseModel):
    row: int
    email: str
    full_name: str
    role: str
    specialization: Optional[str] = None
    sector: str = ""
    area: str = ""


# PUBLIC_INTERFACE
def role_from_title(title: Any) -> str:
    """Managers, coordinators and storekeepers become managers; everyone else a technician."""
    text = clean_arabic_text(title).lower()
    titles = (clean_arabic_text(t) for t in MANAGER_TITLES)
    return "manager" if any(t in text for t in titles) else "technician"


def _cell(row: Sequence[Any], col: int) -> Any:
    return row[col] if col < len(row) else None


# PUBLIC_INTERFACE
def parse_team(grid: Sequence[Sequence[Any]], email_domain: str, report: ImportReport) -> List[TeamMember]:
    members: List[TeamMember] = []
    for offset, row in enumerate(grid[FIRST_DATA_ROW:]):
        name = clean_arabic_text(_cell(row, NAME_COL))
        code = to_text(_cell(row, CODE_COL))
        if not name or not code:
            continue
        report.processed += 1
        title = to_text(_cell(row, ROLE_COL))
        members.append(
            TeamMember(
                row=FIRST_DATA_ROW + offset + 1,
                email=f"u{code}@{email_domain}".lower(),
                full_name=name,
                role=role_from_title(title),
                specialization=title[:SPECIALIZATION_LENGTH] or None,
                sector=clean_arabic_text(_cell(row, SECTOR_COL)),
                area=clean_arabic_text(_cell(row, AREA_COL)),
            )
        )
    return members


def _profile_values(member: TeamMember, sectors: Mapping[str, UUID], areas: Mapping[str, UUID]) -> Dict[str, Any]:
    return {
        "specialization": member.specialization,
        "assigned_sector_id": sectors.get(member.sector),
        "assigned_area_id": areas.get(member.area),
        "status": "active",
    }


# PUBLIC_INTERFACE
async def import_profiles(session: AsyncSession, path: Optional[PathLike] = None, dry_run: bool = False) -> ImportReport:
    settings = get_app_settings()
    report = ImportReport(name="profiles", dry_run=dry_run)
    members = parse_team(read_grid(data_file(DEFAULT_FILE, path)), settings.IMPORT_EMAIL_DOMAIN, report)
    if dry_run:
        return report.log_summary()

    org = OrganizationRepository(session)
    sectors = {clean_arabic_text(k): v for k, v in (await org.name_index(Sector)).items()}
    areas = {clean_arabic_text(k): v for k, v in (await org.name_index(Area)).items()}
    security = SecurityRepository(session)
    accounts = await security.list_account_emails()
    admin = AdminUserService(session)

    for member in members:
        extra = _profile_values(member, sectors, areas)
        user_id = accounts.get(member.email)
        try:
            if user_id is None:
                account = await admin.create_user(
                    email=member.email,
                    password=settings.IMPORT_DEFAULT_PASSWORD,
                    full_name=member.full_name,
                    role=member.role,
                    profile_extra=extra,
                )
                accounts[member.email] = account.id
            else:
                await security.upsert_profile(
                    user_id,
                    {"email": member.email, "full_name": member.full_name, "role": member.role, **extra},
                )
                await security.commit()
        except ServiceError as exc:
            report.fail(member.row, exc.message)
            continue
        report.written += 1
    return report.log_summary()
