from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.inventory import InventoryTransaction, SparePart
from maintenance_api.repositories.assets import AssetRepository
from maintenance_api.repositories.inventory import InventoryTransactionRepository, SparePartRepository
from maintenance_api.schemas.inventory import SparePartCreate, SparePartUpdate, StockMovement
from maintenance_api.services.activity_log import log_activity
from maintenance_api.services.base import BaseService
from maintenance_api.services.errors import ConflictError, NotFoundError, ValidationFailed

logger = logging.getLogger(__name__)


class InventoryService(BaseService):
    """
    Spare parts stock.

    Every quantity change after creation is recorded as an inventory
    transaction; stock never drops below zero.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.parts = SparePartRepository(session)
        self.transactions = InventoryTransactionRepository(session)
        self.assets = AssetRepository(session)

    async def _part(self, part_id: UUID) -> SparePart:
        part = await self.parts.get_part(part_id)
        if part is None:
            raise NotFoundError("Spare part not found")
        return part

    async def _check_category(self, category_id: Optional[UUID]) -> None:
        if category_id is not None and await self.assets.get_category(category_id) is None:
            raise ValidationFailed("Fault category not found")

    # PUBLIC_INTERFACE
    async def list_parts(self, *, search: Optional[str] = None, category_id: Optional[UUID] = None, in_stock_only: bool = False, limit: int = 100, offset: int = 0) -> List[SparePart]:
        return await self.parts.list_parts(
            search=search, category_id=category_id, in_stock_only=in_stock_only, limit=limit, offset=offset
        )

    # PUBLIC_INTERFACE
    async def low_stock(self) -> List[SparePart]:
        """Parts at or below their minimum threshold, lowest stock first."""
        return await self.parts.list_low_stock()

    # PUBLIC_INTERFACE
    async def get_part(self, part_id: UUID) -> SparePart:
        return await self._part(part_id)

    # PUBLIC_INTERFACE
    async def create_part(self, payload: SparePartCreate, user_id: Optional[UUID] = None) -> SparePart:
        await self._check_category(payload.category_id)
        part = await self.parts.create_part(payload.model_dump())
        await log_activity(
            self.session,
            user_id=user_id,
            action_type="CREATE",
            entity_name="spare_parts",
            details={"id": part.id, "name_ar": part.name_ar, "quantity": part.quantity},
        )
        await self.parts.commit()
        return part

    # PUBLIC_INTERFACE
    async def update_part(self, part_id: UUID, payload: SparePartUpdate, user_id: Optional[UUID] = None) -> SparePart:
        await self._part(part_id)
        values = payload.model_dump(exclude_unset=True)
        await self._check_category(values.get("category_id"))
        part = await self.parts.update_part(part_id, values)
        await log_activity(
            self.session,
            user_id=user_id,
            action_type="UPDATE",
            entity_name="spare_parts",
            details={"id": part_id, "fields": sorted(values)},
        )
        await self.parts.commit()
        return part

    # PUBLIC_INTERFACE
    async def delete_part(self, part_id: UUID, user_id: Optional[UUID] = None) -> None:
        if not await self.parts.delete_part(part_id):
            raise NotFoundError("Spare part not found")
        await log_activity(
            self.session,
            user_id=user_id,
            action_type="DELETE",
            entity_name="spare_parts",
            details={"id": part_id},
        )
        await self.parts.commit()

    # PUBLIC_INTERFACE
    async def move_stock(self, part_id: UUID, movement: StockMovement, user_id: Optional[UUID]) -> tuple[SparePart, InventoryTransaction]:
        """
        Apply a restock or adjustment and record it.

        Raises:
            ValidationFailed: zero change, or a negative restock.
            ConflictError: the change would make stock negative.
        """
        if movement.change_amount == 0:
            raise ValidationFailed("change_amount must not be zero")
        if movement.transaction_type == "restock" and movement.change_amount < 0:
            raise ValidationFailed("Restock amount must be positive")
        part = await self._part(part_id)

        remaining = await self.parts.adjust_quantity(part_id, movement.change_amount)
        if remaining is None:
            await self.parts.rollback()
            raise ConflictError(
                f"Insufficient stock for {part.name_ar}",
                details={"available": part.quantity, "requested": -movement.change_amount},
            )
        tx = await self.transactions.record(
            part_id=part_id,
            change_amount=movement.change_amount,
            transaction_type=movement.transaction_type,
            user_id=user_id,
            notes=movement.notes,
        )
        await self.parts.commit()
        await self.session.refresh(part)
        if part.quantity <= part.min_threshold:
            logger.warning("Spare part %s is low on stock (%d <= %d)", part.id, part.quantity, part.min_threshold)
        return part, tx

    # PUBLIC_INTERFACE
    async def list_transactions(self, *, part_id: Optional[UUID] = None, ticket_id: Optional[UUID] = None, limit: int = 100, offset: int = 0) -> List[InventoryTransaction]:
        return await self.transactions.list_transactions(part_id=part_id, ticket_id=ticket_id, limit=limit, offset=offset)
