from __future__ import annotations

import io
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.deps import get_user_session, require_roles
from maintenance_api.services.exports import RenderedReport
from maintenance_api.services.reports import ReportService

# PUBLIC_INTERFACE
router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    dependencies=[Depends(require_roles("admin", "manager"))],
)


def _stream(report: RenderedReport) -> StreamingResponse:
    """Wrap rendered report bytes in a download response."""
    headers = {"Content-Disposition": f'attachment; filename="{report.filename}"'}
    return StreamingResponse(io.BytesIO(report.content), media_type=report.media_type, headers=headers)


async def get_report_service(session: AsyncSession = Depends(get_user_session)) -> ReportService:
    return ReportService(session)


# PUBLIC_INTERFACE
@router.get(
    "/tickets",
    summary="Maintenance report",
    description="Ticket listing with Arabic headers. Excel by default; csv and pdf are also available.",
    response_description="File stream (XLSX/CSV/PDF)",
)
async def tickets_report(
    format: str = Query("xlsx", description="Export format: xlsx | csv | pdf"),
    date_from: Optional[datetime] = Query(None, description="Tickets created at or after"),
    date_to: Optional[datetime] = Query(None, description="Tickets created at or before"),
    status: Optional[str] = Query(None, description="Only tickets with this status"),
    service: ReportService = Depends(get_report_service),
):
    report = await service.maintenance_report(format, date_from=date_from, date_to=date_to, status=status)
    return _stream(report)


# PUBLIC_INTERFACE
@router.get(
    "/technicians",
    summary="Technician performance report",
    description="Tickets handled, completed and repair cost per technician over a period.",
    response_description="File stream (XLSX/CSV/PDF)",
)
async def technician_report(
    format: str = Query("xlsx", description="Export format: xlsx | csv | pdf"),
    period: str = Query("month", description="week | month | year | all"),
    service: ReportService = Depends(get_report_service),
):
    return _stream(await service.technician_performance(format, period))


# PUBLIC_INTERFACE
@router.get(
    "/inventory",
    summary="Inventory report",
    description="Spare part stock, value and low-stock flags.",
    response_description="File stream (XLSX/CSV/PDF)",
)
async def inventory_report(
    format: str = Query("xlsx", description="Export format: xlsx | csv | pdf"),
    service: ReportService = Depends(get_report_service),
):
    return _stream(await service.inventory_report(format))


# PUBLIC_INTERFACE
@router.get(
    "/assets",
    summary="Asset report",
    description="Assets with ticket counts and accumulated repair cost.",
    response_description="File stream (XLSX/CSV/PDF)",
)
async def asset_report(
    format: str = Query("xlsx", description="Export format: xlsx | csv | pdf"),
    branch_id: Optional[UUID] = Query(None),
    service: ReportService = Depends(get_report_service),
):
    return _stream(await service.asset_report(format, branch_id=branch_id))
