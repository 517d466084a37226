"""
Historical maintenance reports (form export) imported as tickets.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.organization import Branch
from maintenance_api.importers.base import ImportReport
from maintenance_api.importers.excel import PathLike, data_file, read_records
from maintenance_api.importers.matching import BranchMatcher
from maintenance_api.importers.text import clean_arabic_text, is_empty, parse_date, to_text
from maintenance_api.repositories.organization import OrganizationRepository
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.repositories.tickets import TicketRepository

logger = logging.getLogger(__name__)

DEFAULT_FILE = "maintenance reports.xlsx"
BATCH_SIZE = 50
FAULT_CATEGORY_LENGTH = 50
NO_PARTS = "لا يوجد"
NEEDS_PARTS = "قابل للإصلاح وبحاجة لقطع غيار"

TECHNICIAN_COLUMN = "القائم بالاصلاح"
BRANCH_COLUMN = "الفرع ؟! (مرتبة ابجديا أ الى ي )"
FAULT_TYPE_COLUMN = "نوع العطل ؟!"
DESCRIPTION_COLUMN = "وصف العطل بالتفصيل ؟!"
STATUS_COLUMN = "حاله العطل"
STEPS_COLUMN = "خطوات اصلاح العطل بالتفصيل ؟!"
PARTS_COLUMN = 'قطع الغيار ؟! اجب ب "لا يوجد" اذا لم تستخدم قطع غيار'
TIMESTAMP_COLUMN = "طابع زمني"
BEFORE_IMAGE_COLUMN = "ارفع صورة او فيديو قصير جدا لا يتعدى 20 ثانية لتوضيح العطل "
AFTER_IMAGE_COLUMN = "ارفع صورة او فيديو قصير جدا لا يتعدى 20 ثانية لتوضيح العطل بعد الاصلاح"


# PUBLIC_INTERFACE
def status_from_report(value: Any) -> str:
    """Map the report's free-text state to a ticket status."""
    if isinstance(value, str):
        if "تم" in value or "اصلاح" in value:
            return "closed"
        if value.strip() == NEEDS_PARTS:
            return "in_progress"
    return "open"


# PUBLIC_INTERFACE
def build_description(description: Any, parts: Any, steps: Any) -> str:
    text = to_text(description)
    parts_text = to_text(parts)
    if parts_text and parts_text != NO_PARTS:
        text += f"\n\n[قطع الغيار]: {parts_text}"
    steps_text = to_text(steps)
    if steps_text:
        text += f"\n\n[خطوات الاصلاح]: {steps_text}"
    return text


# PUBLIC_INTERFACE
def parse_reports(
    rows: Sequence[Dict[str, Any]],
    branches: BranchMatcher,
    technicians: Mapping[str, UUID],
    report: ImportReport,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Ticket rows for insert. Reports whose branch cannot be matched are skipped;
    technicians are matched on their normalized full name and left empty otherwise.
    """
    now = now or datetime.now(timezone.utc)
    tickets: List[Dict[str, Any]] = []
    for row in rows:
        report.processed += 1
        branch_id = branches.match(row.get(BRANCH_COLUMN))
        if branch_id is None:
            report.skipped += 1
            continue

        status = status_from_report(row.get(STATUS_COLUMN))
        created_at = parse_date(row.get(TIMESTAMP_COLUMN)) or now
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        fault_type = to_text(row.get(FAULT_TYPE_COLUMN))
        images = [to_text(row.get(c)) for c in (BEFORE_IMAGE_COLUMN, AFTER_IMAGE_COLUMN) if not is_empty(row.get(c))]
        tickets.append(
            {
                "branch_id": branch_id,
                "technician_id": technicians.get(clean_arabic_text(row.get(TECHNICIAN_COLUMN))),
                "status": status,
                "priority": "medium",
                "fault_category": fault_type[:FAULT_CATEGORY_LENGTH] or "other",
                "description": build_description(
                    row.get(DESCRIPTION_COLUMN), row.get(PARTS_COLUMN), row.get(STEPS_COLUMN)
                ),
                "images_url": images,
                "created_at": created_at,
                "closed_at": created_at if status == "closed" else None,
            }
        )
    return tickets


# PUBLIC_INTERFACE
async def import_tickets(session: AsyncSession, path: Optional[PathLike] = None, dry_run: bool = False) -> ImportReport:
    report = ImportReport(name="tickets", dry_run=dry_run)
    org = OrganizationRepository(session)
    branches = BranchMatcher(await org.name_index(Branch))
    people = await SecurityRepository(session).profiles_by_name()
    technicians = {clean_arabic_text(name): pid for name, pid in people.items()}
    logger.info("Loaded %d branches and %d profiles for matching", len(branches), len(technicians))

    tickets = parse_reports(read_records(data_file(DEFAULT_FILE, path)), branches, technicians, report)
    if dry_run:
        return report.log_summary()

    repo = TicketRepository(session)
    for start in range(0, len(tickets), BATCH_SIZE):
        batch = tickets[start:start + BATCH_SIZE]
        try:
            report.written += await repo.insert_many(batch)
            await repo.commit()
        except SQLAlchemyError as exc:
            await repo.rollback()
            report.fail(start + 2, f"Batch of {len(batch)} failed: {exc}")
    return report.log_summary()
