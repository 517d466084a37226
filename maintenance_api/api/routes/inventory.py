from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, Response, status
from pydantic import BaseModel

from maintenance_api.core.deps import get_inventory_service, require_permission
from maintenance_api.schemas.inventory import (
    InventoryTransactionRead,
    SparePartCreate,
    SparePartRead,
    SparePartUpdate,
    StockMovement,
)
from maintenance_api.services.inventory import InventoryService
from maintenance_api.services.role_resolution import RoleResolution

router = APIRouter(prefix="/inventory", tags=["Inventory"])


class StockMovementResult(BaseModel):
    part: SparePartRead
    transaction: InventoryTransactionRead


# PUBLIC_INTERFACE
@router.get(
    "/parts",
    response_model=List[SparePartRead],
    summary="List spare parts",
    dependencies=[Depends(require_permission("view", "inventory"))],
)
async def list_parts(
    search: Optional[str] = Query(None, description="Substring of name or part number"),
    category_id: Optional[UUID] = Query(None),
    in_stock_only: bool = Query(False),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: InventoryService = Depends(get_inventory_service),
) -> List[SparePartRead]:
    rows = await service.list_parts(
        search=search, category_id=category_id, in_stock_only=in_stock_only, limit=limit, offset=offset
    )
    return [SparePartRead.model_validate(p) for p in rows]


# PUBLIC_INTERFACE
@router.get(
    "/parts/low-stock",
    response_model=List[SparePartRead],
    summary="Low stock parts",
    description="Parts whose quantity is at or below their minimum threshold.",
    dependencies=[Depends(require_permission("view", "inventory"))],
)
async def low_stock(service: InventoryService = Depends(get_inventory_service)) -> List[SparePartRead]:
    return [SparePartRead.model_validate(p) for p in await service.low_stock()]


# PUBLIC_INTERFACE
@router.get(
    "/parts/{part_id}",
    response_model=SparePartRead,
    summary="Get spare part",
    dependencies=[Depends(require_permission("view", "inventory"))],
)
async def get_part(part_id: UUID = Path(...), service: InventoryService = Depends(get_inventory_service)) -> SparePartRead:
    return SparePartRead.model_validate(await service.get_part(part_id))


# PUBLIC_INTERFACE
@router.post("/parts", response_model=SparePartRead, status_code=status.HTTP_201_CREATED, summary="Create spare part")
async def create_part(
    payload: SparePartCreate,
    user: RoleResolution = Depends(require_permission("create", "inventory")),
    service: InventoryService = Depends(get_inventory_service),
) -> SparePartRead:
    return SparePartRead.model_validate(await service.create_part(payload, user_id=user.user_id))


# PUBLIC_INTERFACE
@router.patch("/parts/{part_id}", response_model=SparePartRead, summary="Update spare part")
async def update_part(
    payload: SparePartUpdate,
    part_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("edit", "inventory")),
    service: InventoryService = Depends(get_inventory_service),
) -> SparePartRead:
    return SparePartRead.model_validate(await service.update_part(part_id, payload, user_id=user.user_id))


# PUBLIC_INTERFACE
@router.delete(
    "/parts/{part_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete spare part",
)
async def delete_part(
    part_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("delete", "inventory")),
    service: InventoryService = Depends(get_inventory_service),
) -> Response:
    await service.delete_part(part_id, user_id=user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# PUBLIC_INTERFACE
@router.post(
    "/parts/{part_id}/stock",
    response_model=StockMovementResult,
    summary="Restock or adjust stock",
    description="Record a restock (positive) or adjustment. Stock never goes negative (409).",
)
async def move_stock(
    payload: StockMovement,
    part_id: UUID = Path(...),
    user: RoleResolution = Depends(require_permission("edit", "inventory")),
    service: InventoryService = Depends(get_inventory_service),
) -> StockMovementResult:
    part, tx = await service.move_stock(part_id, payload, user.user_id)
    return StockMovementResult(
        part=SparePartRead.model_validate(part),
        transaction=InventoryTransactionRead.model_validate(tx),
    )


# PUBLIC_INTERFACE
@router.get(
    "/transactions",
    response_model=List[InventoryTransactionRead],
    summary="List inventory transactions",
    dependencies=[Depends(require_permission("view", "inventory"))],
)
async def list_transactions(
    part_id: Optional[UUID] = Query(None),
    ticket_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    service: InventoryService = Depends(get_inventory_service),
) -> List[InventoryTransactionRead]:
    rows = await service.list_transactions(part_id=part_id, ticket_id=ticket_id, limit=limit, offset=offset)
    return [InventoryTransactionRead.model_validate(t) for t in rows]
