from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.db.models.inventory import InventoryTransaction, SparePart
from .base import BaseRepository


class SparePartRepository(BaseRepository):
    """
    Repository for spare parts stock.

    Quantity changes go through adjust_quantity so stock never drops below zero.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_parts(
        self,
        *,
        search: Optional[str] = None,
        category_id: Optional[UUID] = None,
        in_stock_only: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[SparePart]:
        stmt = select(SparePart)
        if search:
            like = f"%{search}%"
            stmt = stmt.where(SparePart.name_ar.ilike(like) | SparePart.part_number.ilike(like))
        if category_id:
            stmt = stmt.where(SparePart.category_id == category_id)
        if in_stock_only:
            stmt = stmt.where(SparePart.quantity > 0)
        stmt = stmt.order_by(SparePart.name_ar).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def list_low_stock(self) -> List[SparePart]:
        stmt = (
            select(SparePart)
            .where(SparePart.quantity <= SparePart.min_threshold)
            .order_by(SparePart.quantity, SparePart.name_ar)
        )
        return list(await self.scalars(stmt))

    async def get_part(self, part_id: UUID) -> Optional[SparePart]:
        return await self.scalar_one_or_none(select(SparePart).where(SparePart.id == part_id))

    async def get_parts(self, part_ids: Sequence[UUID]) -> Dict[UUID, SparePart]:
        if not part_ids:
            return {}
        stmt = select(SparePart).where(SparePart.id.in_(list(part_ids))).with_for_update()
        return {p.id: p for p in await self.scalars(stmt)}

    async def create_part(self, values: Dict[str, Any]) -> SparePart:
        part = SparePart(**values)
        await self.add(part)
        await self.flush()
        await self.session.refresh(part)
        return part

    async def update_part(self, part_id: UUID, values: Dict[str, Any]) -> Optional[SparePart]:
        if values:
            stmt = (
                update(SparePart)
                .where(SparePart.id == part_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
        return await self.get_part(part_id)

    async def delete_part(self, part_id: UUID) -> int:
        res = await self.execute(delete(SparePart).where(SparePart.id == part_id))
        return res.rowcount or 0

    async def part_keys(self) -> Tuple[Set[str], Set[str]]:
        """Existing part numbers and names."""
        res = await self.execute(select(SparePart.part_number, SparePart.name_ar))
        numbers: Set[str] = set()
        names: Set[str] = set()
        for number, name in res.all():
            if number:
                numbers.add(number)
            names.add(name)
        return numbers, names

    async def insert_many(self, rows: Iterable[Dict[str, Any]]) -> int:
        """Bulk insert; rows whose part_number already exists are ignored. Returns the number inserted."""
        rows = list(rows)
        if not rows:
            return 0
        stmt = insert(SparePart).values(rows).on_conflict_do_nothing(index_elements=[SparePart.part_number])
        res = await self.execute(stmt.returning(SparePart.id))
        return len(res.all())

    async def adjust_quantity(self, part_id: UUID, change: int) -> Optional[int]:
        """
        Apply a stock change and return the new quantity.

        Returns None when the part is missing or the change would make stock negative.
        """
        stmt = (
            update(SparePart)
            .where(SparePart.id == part_id, SparePart.quantity + change >= 0)
            .values(quantity=SparePart.quantity + change)
            .returning(SparePart.quantity)
        )
        return await self.scalar_one_or_none(stmt)


class InventoryTransactionRepository(BaseRepository):
    """Repository for inventory transactions."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_transactions(
        self,
        *,
        part_id: Optional[UUID] = None,
        ticket_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[InventoryTransaction]:
        stmt = select(InventoryTransaction)
        if part_id:
            stmt = stmt.where(InventoryTransaction.part_id == part_id)
        if ticket_id:
            stmt = stmt.where(InventoryTransaction.ticket_id == ticket_id)
        stmt = stmt.order_by(InventoryTransaction.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def record(
        self,
        *,
        part_id: UUID,
        change_amount: int,
        transaction_type: str,
        user_id: Optional[UUID],
        ticket_id: Optional[UUID] = None,
        notes: Optional[str] = None,
    ) -> InventoryTransaction:
        tx = InventoryTransaction(
            part_id=part_id,
            ticket_id=ticket_id,
            user_id=user_id,
            change_amount=change_amount,
            transaction_type=transaction_type,
            notes=notes,
        )
        await self.add(tx)
        await self.flush()
        await self.session.refresh(tx)
        return tx
