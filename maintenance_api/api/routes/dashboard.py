from __future__ import annotations

from fastapi import APIRouter, Depends

from maintenance_api.core.deps import get_dashboard_service, require_permission
from maintenance_api.schemas.dashboard import DashboardStats
from maintenance_api.services.dashboard import DashboardService
from maintenance_api.services.role_resolution import RoleResolution

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


# PUBLIC_INTERFACE
@router.get(
    "/stats",
    response_model=DashboardStats,
    summary="Dashboard statistics",
    description=(
        "Totals (all, open, emergency, closed today), status distribution with Arabic labels, "
        "category distribution and the five most recent tickets."
    ),
)
async def dashboard_stats(
    user: RoleResolution = Depends(require_permission("view", "dashboard")),
    service: DashboardService = Depends(get_dashboard_service),
) -> DashboardStats:
    return await service.stats(user)
