from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.repositories.tickets import TicketRepository
from maintenance_api.schemas.dashboard import CategorySlice, DashboardStats, RecentTicket, StatusSlice
from maintenance_api.services.base import BaseService
from maintenance_api.services.role_resolution import RoleResolution

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "open": "مفتوح",
    "in_progress": "قيد التنفيذ",
    "pending_approval": "بانتظار الموافقة",
    "resolved": "تم الحل",
    "closed": "مغلق",
    "rejected": "مرفوض",
}
EMERGENCY_PRIORITIES = frozenset({"high", "critical"})
UNCATEGORIZED = "غير مصنف"
RECENT_LIMIT = 5


@dataclass
class TicketSummary:
    """The ticket fields the dashboard aggregates over."""
    id: UUID
    ticket_number: int
    status: str
    priority: str
    created_at: datetime
    updated_at: datetime
    closed_at: Optional[datetime] = None
    fault_category: Optional[str] = None
    branch_name: Optional[str] = None
    brand_name: Optional[str] = None


def _utc_date(value: Optional[datetime]) -> Optional[date]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


# PUBLIC_INTERFACE
def compute_stats(tickets: Iterable[TicketSummary], today: Optional[date] = None) -> DashboardStats:
    """
    Aggregate dashboard counters.

    - emergency: priority high or critical
    - closed today: status closed and closed (or last updated) on `today`
    - category distribution sorted by count, descending
    - recent: the five newest tickets
    """
    rows: List[TicketSummary] = list(tickets)
    today = today or datetime.now(timezone.utc).date()

    statuses = Counter(t.status for t in rows)
    categories = Counter(t.fault_category or UNCATEGORIZED for t in rows)
    closed_today = sum(
        1 for t in rows if t.status == "closed" and _utc_date(t.closed_at or t.updated_at) == today
    )
    recent = sorted(rows, key=lambda t: t.created_at, reverse=True)[:RECENT_LIMIT]

    return DashboardStats(
        total_tickets=len(rows),
        open_tickets=statuses.get("open", 0),
        emergency_tickets=sum(1 for t in rows if t.priority in EMERGENCY_PRIORITIES),
        closed_today=closed_today,
        status_distribution=[
            StatusSlice(status=s, label=STATUS_LABELS.get(s, s), value=n) for s, n in statuses.items()
        ],
        category_distribution=[CategorySlice(name=c, value=n) for c, n in categories.most_common()],
        recent_tickets=[
            RecentTicket(
                id=t.id,
                ticket_number=t.ticket_number,
                status=t.status,
                priority=t.priority,
                fault_category=t.fault_category,
                branch_name=t.branch_name,
                brand_name=t.brand_name,
                created_at=t.created_at,
            )
            for t in recent
        ],
    )


class DashboardService(BaseService):
    """Dashboard statistics over the tickets visible to the caller."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.tickets = TicketRepository(session)

    # PUBLIC_INTERFACE
    async def stats(self, user: RoleResolution) -> DashboardStats:
        """Technicians only count tickets of their assigned area (or their own)."""
        scoped = not user.is_staff
        rows = await self.tickets.list_with_names(
            scope_user_id=user.user_id if scoped else None,
            scope_area_id=user.assigned_area_id if scoped else None,
        )
        summaries = [
            TicketSummary(
                id=ticket.id,
                ticket_number=ticket.ticket_number,
                status=ticket.status,
                priority=ticket.priority,
                created_at=ticket.created_at,
                updated_at=ticket.updated_at,
                closed_at=ticket.closed_at,
                fault_category=ticket.fault_category or category_name,
                branch_name=branch_name,
                brand_name=brand_name,
            )
            for ticket, branch_name, brand_name, category_name, _tech in rows
        ]
        logger.debug("Dashboard stats over %d tickets for user %s", len(summaries), user.user_id)
        return compute_stats(summaries)
