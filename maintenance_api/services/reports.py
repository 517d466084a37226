from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.organization import Branch
from maintenance_api.repositories.assets import AssetRepository
from maintenance_api.repositories.inventory import SparePartRepository
from maintenance_api.repositories.organization import OrganizationRepository
from maintenance_api.repositories.tickets import TicketRepository
from maintenance_api.services.base import BaseService
from maintenance_api.services.exports import (
    TICKET_REPORT_SHEET,
    TICKET_REPORT_WIDTHS,
    RenderedReport,
    asset_frame,
    inventory_frame,
    period_start,
    render_dataframe,
    report_filename,
    technician_performance_frame,
    ticket_report_frame,
)

logger = logging.getLogger(__name__)

REPORT_ROW_LIMIT = 100000


class ReportService(BaseService):
    """Collects report rows from the repositories and renders them for download."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.tickets = TicketRepository(session)
        self.assets = AssetRepository(session)
        self.parts = SparePartRepository(session)
        self.org = OrganizationRepository(session)

    # PUBLIC_INTERFACE
    async def maintenance_report(
        self,
        export_format: str = "xlsx",
        *,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[str] = None,
    ) -> RenderedReport:
        """Ticket listing with Arabic headers, one row per ticket."""
        rows = await self.tickets.list_with_names(date_from=date_from, date_to=date_to, status=status)
        logger.info("Rendering maintenance report with %d tickets as %s", len(rows), export_format)
        return render_dataframe(
            ticket_report_frame(rows),
            report_filename("Maintenance_Report"),
            export_format,
            sheet_name=TICKET_REPORT_SHEET,
            column_widths=TICKET_REPORT_WIDTHS,
        )

    # PUBLIC_INTERFACE
    async def technician_performance(self, export_format: str = "xlsx", period: str = "month") -> RenderedReport:
        rows = await self.tickets.list_with_names(date_from=period_start(period))
        return render_dataframe(
            technician_performance_frame(rows),
            report_filename("Technician_Performance"),
            export_format,
            sheet_name="Technicians",
        )

    # PUBLIC_INTERFACE
    async def inventory_report(self, export_format: str = "xlsx") -> RenderedReport:
        parts = await self.parts.list_parts(limit=REPORT_ROW_LIMIT)
        categories = await self.assets.category_names()
        return render_dataframe(
            inventory_frame(parts, categories),
            report_filename("Inventory_Report"),
            export_format,
            sheet_name="Inventory",
        )

    # PUBLIC_INTERFACE
    async def asset_report(self, export_format: str = "xlsx", branch_id=None) -> RenderedReport:
        assets = await self.assets.list_assets(branch_id=branch_id, limit=REPORT_ROW_LIMIT)
        branch_names = {bid: name for name, bid in (await self.org.name_index(Branch)).items()}
        categories = await self.assets.category_names()
        totals = await self.tickets.repair_totals_by_asset()
        return render_dataframe(
            asset_frame(assets, branch_names, categories, totals),
            report_filename("Assets_Report"),
            export_format,
            sheet_name="Assets",
        )
