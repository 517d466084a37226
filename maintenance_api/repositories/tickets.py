from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import Select, delete, func, or_, select, update

from maintenance_api.db.models.maintenance import FaultCategory, Ticket, TicketComment
from maintenance_api.db.models.organization import Branch, Brand
from maintenance_api.db.models.security import Profile
from .base import BaseRepository


class TicketRepository(BaseRepository):
    """Repository for tickets and their comments."""

    @staticmethod
    def _scoped(stmt: Select, user_id: Optional[UUID], area_id: Optional[UUID]) -> Select:
        """Restrict to tickets assigned to, created by, or in the area of the user."""
        if user_id is None:
            return stmt
        clauses = [Ticket.technician_id == user_id, Ticket.created_by == user_id]
        if area_id is not None:
            clauses.append(Ticket.branch_id.in_(select(Branch.id).where(Branch.area_id == area_id)))
        return stmt.where(or_(*clauses))

    async def create(self, values: Dict[str, Any]) -> Ticket:
        ticket = Ticket(**values)
        await self.add(ticket)
        await self.flush()
        await self.session.refresh(ticket)
        return ticket

    async def get(self, ticket_id: UUID) -> Optional[Ticket]:
        return await self.scalar_one_or_none(select(Ticket).where(Ticket.id == ticket_id))

    async def list_tickets(
        self,
        *,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        branch_id: Optional[UUID] = None,
        technician_id: Optional[UUID] = None,
        scope_user_id: Optional[UUID] = None,
        scope_area_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Ticket]:
        stmt = select(Ticket)
        if status:
            stmt = stmt.where(Ticket.status == status)
        if priority:
            stmt = stmt.where(Ticket.priority == priority)
        if branch_id:
            stmt = stmt.where(Ticket.branch_id == branch_id)
        if technician_id:
            stmt = stmt.where(Ticket.technician_id == technician_id)
        stmt = self._scoped(stmt, scope_user_id, scope_area_id)
        stmt = stmt.order_by(Ticket.created_at.desc()).offset(offset).limit(limit)
        return list(await self.scalars(stmt))

    async def update(self, ticket_id: UUID, values: Dict[str, Any]) -> Optional[Ticket]:
        if values:
            stmt = (
                update(Ticket)
                .where(Ticket.id == ticket_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.execute(stmt)
        ticket = await self.get(ticket_id)
        if ticket is not None:
            await self.session.refresh(ticket)
        return ticket

    async def delete(self, ticket_id: UUID) -> int:
        res = await self.execute(delete(Ticket).where(Ticket.id == ticket_id))
        return res.rowcount or 0

    async def insert_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        await self.add_all(Ticket(**r) for r in rows)
        await self.flush()
        return len(rows)

    async def list_for_asset(self, asset_id: UUID, limit: int = 100) -> List[Ticket]:
        stmt = (
            select(Ticket)
            .where(Ticket.asset_id == asset_id)
            .order_by(Ticket.created_at.desc())
            .limit(limit)
        )
        return list(await self.scalars(stmt))

    async def repair_totals_by_asset(self) -> Dict[UUID, tuple[int, float]]:
        """asset_id -> (ticket count, summed repair cost)."""
        stmt = (
            select(Ticket.asset_id, func.count(Ticket.id), func.coalesce(func.sum(Ticket.repair_cost), 0))
            .where(Ticket.asset_id.is_not(None))
            .group_by(Ticket.asset_id)
        )
        res = await self.execute(stmt)
        return {asset_id: (int(count), float(total)) for asset_id, count, total in res.all()}

    async def list_with_names(
        self,
        *,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        status: Optional[str] = None,
        scope_user_id: Optional[UUID] = None,
        scope_area_id: Optional[UUID] = None,
    ) -> List[tuple]:
        """
        Ticket rows joined with branch, brand, category and technician names.

        Each row is (Ticket, branch_name, brand_name, category_name, technician_name).
        """
        stmt = (
            select(
                Ticket,
                Branch.name_ar,
                Brand.name_ar,
                FaultCategory.name_ar,
                Profile.full_name,
            )
            .join(Branch, Branch.id == Ticket.branch_id)
            .join(Brand, Brand.id == Branch.brand_id, isouter=True)
            .join(FaultCategory, FaultCategory.id == Ticket.category_id, isouter=True)
            .join(Profile, Profile.id == Ticket.technician_id, isouter=True)
        )
        if date_from:
            stmt = stmt.where(Ticket.created_at >= date_from)
        if date_to:
            stmt = stmt.where(Ticket.created_at <= date_to)
        if status:
            stmt = stmt.where(Ticket.status == status)
        stmt = self._scoped(stmt, scope_user_id, scope_area_id)
        stmt = stmt.order_by(Ticket.created_at.desc())
        res = await self.execute(stmt)
        return [tuple(r) for r in res.all()]

    # Comments
    async def list_comments(self, ticket_id: UUID) -> List[TicketComment]:
        stmt = (
            select(TicketComment)
            .where(TicketComment.ticket_id == ticket_id)
            .order_by(TicketComment.created_at)
        )
        return list(await self.scalars(stmt))

    async def add_comment(self, ticket_id: UUID, user_id: UUID, content: str) -> TicketComment:
        comment = TicketComment(ticket_id=ticket_id, user_id=user_id, content=content)
        await self.add(comment)
        await self.flush()
        await self.session.refresh(comment)
        return comment
