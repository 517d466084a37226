from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, status

from maintenance_api.core.deps import (
    get_current_user,
    get_ticket_service,
    require_feature,
    require_permission,
    require_roles,
)
from maintenance_api.schemas.tickets import (
    CommentCreate,
    CommentRead,
    TicketAssign,
    TicketClose,
    TicketCloseResult,
    TicketCreate,
    TicketPriority,
    TicketRead,
    TicketReject,
    TicketStatus,
    TicketStatusChange,
    TicketUpdate,
    ValidationResult,
)
from maintenance_api.services.role_resolution import RoleResolution
from maintenance_api.services.tickets import TicketService

router = APIRouter(prefix="/tickets", tags=["Tickets"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TicketRead],
    summary="List tickets",
    description="Admins and managers see every ticket; others see tickets assigned to them, created by them or in their area.",
)
async def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status", description="Filter by status"),
    priority: Optional[TicketPriority] = Query(None, description="Filter by priority"),
    branch_id: Optional[UUID] = Query(None),
    technician_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    user: RoleResolution = Depends(require_permission("view", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> List[TicketRead]:
    rows = await service.list_tickets(
        user,
        status=status_filter,
        priority=priority,
        branch_id=branch_id,
        technician_id=technician_id,
        limit=limit,
        offset=offset,
    )
    return [TicketRead.model_validate(t) for t in rows]


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TicketRead,
    status_code=status.HTTP_201_CREATED,
    summary="Open ticket",
    description="Create a ticket with status 'open' on behalf of the caller. Open to every authenticated user.",
)
async def create_ticket(
    payload: TicketCreate,
    user: RoleResolution = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
) -> TicketRead:
    return TicketRead.model_validate(await service.create(user, payload))


# PUBLIC_INTERFACE
@router.get(
    "/checks/part-compatibility",
    response_model=ValidationResult,
    summary="Check part/asset compatibility",
    description="Advisory check; never blocks and reports valid on lookup errors.",
)
async def check_part_compatibility(
    part_id: UUID = Query(...),
    asset_id: UUID = Query(...),
    _user: RoleResolution = Depends(require_permission("view", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> ValidationResult:
    return await service.validate_part_compatibility(part_id, asset_id)


# PUBLIC_INTERFACE
@router.get(
    "/checks/repair-cost",
    response_model=ValidationResult,
    summary="Check repair cost against asset value",
    description="Advisory warning when the repair cost exceeds the configured share of the asset purchase price.",
)
async def check_repair_cost(
    asset_id: UUID = Query(...),
    repair_cost: float = Query(..., ge=0),
    _user: RoleResolution = Depends(require_permission("view", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> ValidationResult:
    return await service.check_repair_cost_warning(asset_id, repair_cost)


# PUBLIC_INTERFACE
@router.get("/{ticket_id}", response_model=TicketRead, summary="Get ticket")
async def get_ticket(
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("view", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> TicketRead:
    return TicketRead.model_validate(await service.get(user, ticket_id))


# PUBLIC_INTERFACE
@router.patch("/{ticket_id}", response_model=TicketRead, summary="Update ticket details")
async def update_ticket(
    payload: TicketUpdate,
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("edit", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> TicketRead:
    return TicketRead.model_validate(await service.update(user, ticket_id, payload))


# PUBLIC_INTERFACE
@router.post(
    "/{ticket_id}/assign",
    response_model=TicketRead,
    summary="Assign technician",
    description="Assign an active technician and push the assignment notification to them.",
)
async def assign_ticket(
    payload: TicketAssign,
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_roles("admin", "manager")),
    service: TicketService = Depends(get_ticket_service),
) -> TicketRead:
    return TicketRead.model_validate(await service.assign(user, ticket_id, payload.technician_id))


# PUBLIC_INTERFACE
@router.post(
    "/{ticket_id}/status",
    response_model=TicketRead,
    summary="Change ticket status",
    description="open -> in_progress -> (pending_approval) -> resolved -> closed. Invalid transitions return 409.",
)
async def change_ticket_status(
    payload: TicketStatusChange,
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("edit", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> TicketRead:
    return TicketRead.model_validate(await service.change_status(user, ticket_id, payload))


# PUBLIC_INTERFACE
@router.post(
    "/{ticket_id}/close",
    response_model=TicketCloseResult,
    summary="Close ticket with spare parts",
    description="Consume spare parts from stock, record the repair cost and close the ticket. Advisory warnings are returned, not enforced.",
)
async def close_ticket(
    payload: TicketClose,
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("edit", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> TicketCloseResult:
    ticket, repair_cost, warnings = await service.close_with_parts(user, ticket_id, payload)
    return TicketCloseResult(ticket=TicketRead.model_validate(ticket), repair_cost=repair_cost, warnings=warnings)


# PUBLIC_INTERFACE
@router.post("/{ticket_id}/reject", response_model=TicketRead, summary="Reject ticket")
async def reject_ticket(
    payload: TicketReject,
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("edit", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> TicketRead:
    return TicketRead.model_validate(await service.reject(user, ticket_id, payload.reason))


# PUBLIC_INTERFACE
@router.delete(
    "/{ticket_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete ticket",
    dependencies=[Depends(require_feature("delete_ticket"))],
)
async def delete_ticket(
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("delete", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> Response:
    await service.delete(user, ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.get("/{ticket_id}/comments", response_model=List[CommentRead], summary="List comments")
async def list_comments(
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("view", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> List[CommentRead]:
    return [CommentRead.model_validate(c) for c in await service.list_comments(user, ticket_id)]


# PUBLIC_INTERFACE
@router.post(
    "/{ticket_id}/comments",
    response_model=CommentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add comment",
)
async def add_comment(
    payload: CommentCreate,
    ticket_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("view", "tickets")),
    service: TicketService = Depends(get_ticket_service),
) -> CommentRead:
    return CommentRead.model_validate(await service.add_comment(user, ticket_id, payload.content))
