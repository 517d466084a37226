"""
Ticket workflow: creation, assignment, status transitions, closing with spare
parts, rejection and the advisory checks shown to technicians.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from maintenance_api.core.settings import get_app_settings
from maintenance_api.db.models.maintenance import Ticket, TicketComment
from maintenance_api.db.models.organization import Branch
from maintenance_api.repositories.assets import AssetRepository
from maintenance_api.repositories.configuration import ConfigurationRepository
from maintenance_api.repositories.inventory import InventoryTransactionRepository, SparePartRepository
from maintenance_api.repositories.organization import OrganizationRepository
from maintenance_api.repositories.security import SecurityRepository
from maintenance_api.repositories.tickets import TicketRepository
from maintenance_api.schemas.tickets import (
    TicketClose,
    TicketCreate,
    TicketStatusChange,
    TicketUpdate,
    ValidationResult,
)
from maintenance_api.services.activity_log import log_activity
from maintenance_api.services.base import BaseService
from maintenance_api.services.errors import ConflictError, NotFoundError, PermissionDenied, ValidationFailed
from maintenance_api.services.notifications import notification_engine, push_notification
from maintenance_api.services.role_resolution import RoleResolution

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "open": frozenset({"in_progress"}),
    "in_progress": frozenset({"pending_approval", "resolved", "closed"}),
    "pending_approval": frozenset({"in_progress", "resolved", "closed"}),
    "resolved": frozenset({"closed"}),
    "closed": frozenset(),
    "rejected": frozenset(),
}
REJECTABLE_STATUSES = frozenset({"open", "in_progress"})
CONSUMPTION_NOTE = "Used in ticket close"


# PUBLIC_INTERFACE
def can_transition(current: str, target: str) -> bool:
    """Return True when a ticket in `current` status may move to `target`."""
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


# PUBLIC_INTERFACE
def transition_values(
    target: str,
    now: datetime,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    already_started: bool = False,
) -> Dict[str, Any]:
    """
    Column values written when a ticket enters `target`.

    in_progress stamps started_at (once) and the start coordinates; resolved and
    closed stamp their timestamp and the end coordinates.
    """
    values: Dict[str, Any] = {"status": target}
    if target == "in_progress":
        if not already_started:
            values["started_at"] = now
        if lat is not None and lng is not None:
            values["start_work_lat"] = lat
            values["start_work_lng"] = lng
    elif target in ("resolved", "closed"):
        values["resolved_at" if target == "resolved" else "closed_at"] = now
        if lat is not None and lng is not None:
            values["end_work_lat"] = lat
            values["end_work_lng"] = lng
    return values


def _amount(value: Any) -> str:
    number = float(value or 0)
    return str(int(number)) if number.is_integer() else str(number)


# PUBLIC_INTERFACE
def compatibility_result(part_name: str, asset_name: str, part_category: Any, asset_category: Any) -> ValidationResult:
    """A part fits an asset unless both carry a category and the categories differ."""
    if not part_category or not asset_category or part_category == asset_category:
        return ValidationResult(valid=True)
    return ValidationResult(
        valid=False,
        severity="error",
        message=f'⚠️ تنبيه توافق: القطعة "{part_name}" تابعة لتصنيف مختلف عن المعدة "{asset_name}". يرجى التحقق.',
    )


# PUBLIC_INTERFACE
def repair_cost_result(repair_cost: float, purchase_price: Any, ratio: float) -> ValidationResult:
    """Warn when repair_cost exceeds `ratio` of the asset's purchase price."""
    if not purchase_price or float(repair_cost) <= float(purchase_price) * ratio:
        return ValidationResult(valid=True)
    return ValidationResult(
        valid=False,
        severity="warning",
        message=(
            f"تنبيه: تكلفة الإصلاح ({_amount(repair_cost)}) تتجاوز {round(ratio * 100)}% "
            f"من قيمة المعدة ({_amount(purchase_price)}). قد يكون الاستبدال خياراً أفضل."
        ),
    )


class TicketService(BaseService):
    """
    Domain service for maintenance tickets.

    Non-staff callers (technicians, plain users) only reach tickets assigned to
    them, created by them, or raised in their assigned area. Missing and
    invisible tickets are reported the same way (404).
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = TicketRepository(session)
        self.assets = AssetRepository(session)
        self.parts = SparePartRepository(session)
        self.transactions = InventoryTransactionRepository(session)
        self.org = OrganizationRepository(session)
        self.security = SecurityRepository(session)
        self.config = ConfigurationRepository(session)

    async def _visible(self, user: RoleResolution, ticket_id: UUID) -> Ticket:
        ticket = await self.repo.get(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        if user.is_staff or user.user_id in (ticket.technician_id, ticket.created_by):
            return ticket
        if user.assigned_area_id is not None:
            branch = await self.org.get(Branch, ticket.branch_id)
            if branch is not None and branch.area_id == user.assigned_area_id:
                return ticket
        raise NotFoundError("Ticket not found")

    async def _check_references(self, values: Dict[str, Any]) -> None:
        if values.get("asset_id") is not None and await self.assets.get_asset(values["asset_id"]) is None:
            raise ValidationFailed("Asset not found")
        if values.get("category_id") is not None and await self.assets.get_category(values["category_id"]) is None:
            raise ValidationFailed("Fault category not found")

    async def _message_data(self, ticket: Ticket, name: Optional[str], reason: Optional[str] = None) -> Dict[str, Any]:
        branch = await self.org.get(Branch, ticket.branch_id)
        return {
            "name": name,
            "ticket_id": ticket.ticket_number,
            "branch": branch.name_ar if branch else None,
            "issue": ticket.fault_category or ticket.description,
            "reason": reason,
        }

    async def _notify(self, template_key: str, ticket: Ticket, *, user_id: Optional[UUID], name: Optional[str], reason: Optional[str] = None) -> None:
        try:
            data = await self._message_data(ticket, name, reason)
            body = await notification_engine.generate_message(template_key, data, self.config)
        except Exception:
            logger.exception("Failed to render %s notification for ticket %s", template_key, ticket.id)
            return
        await push_notification(user_id=user_id, body=body, url=f"/tickets/{ticket.id}")

    # PUBLIC_INTERFACE
    async def create(self, user: RoleResolution, payload: TicketCreate) -> Ticket:
        """Open a ticket for the caller and notify the technicians covering its branch."""
        if await self.org.get(Branch, payload.branch_id) is None:
            raise ValidationFailed("Branch not found")
        values = payload.model_dump()
        await self._check_references(values)
        values.update(status="open", created_by=user.user_id)
        ticket = await self.repo.create(values)
        await log_activity(
            self.session,
            user_id=user.user_id,
            action_type="CREATE",
            entity_name="tickets",
            details={"ticket_id": ticket.id, "ticket_number": ticket.ticket_number},
        )
        await self.repo.commit()
        logger.info("Ticket #%s opened at branch %s", ticket.ticket_number, ticket.branch_id)

        for tech in await self.security.technicians_for_branch(ticket.branch_id):
            await self._notify("new_ticket", ticket, user_id=tech.id, name=tech.full_name)
        return ticket

    # PUBLIC_INTERFACE
    async def list_tickets(
        self,
        user: RoleResolution,
        *,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        branch_id: Optional[UUID] = None,
        technician_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Ticket]:
        scope_user = None if user.is_staff else user.user_id
        return await self.repo.list_tickets(
            status=status,
            priority=priority,
            branch_id=branch_id,
            technician_id=technician_id,
            scope_user_id=scope_user,
            scope_area_id=None if user.is_staff else user.assigned_area_id,
            limit=limit,
            offset=offset,
        )

    # PUBLIC_INTERFACE
    async def get(self, user: RoleResolution, ticket_id: UUID) -> Ticket:
        return await self._visible(user, ticket_id)

    # PUBLIC_INTERFACE
    async def update(self, user: RoleResolution, ticket_id: UUID, payload: TicketUpdate) -> Ticket:
        ticket = await self._visible(user, ticket_id)
        if ticket.status in ("closed", "rejected"):
            raise ConflictError(f"Ticket is {ticket.status}")
        values = payload.model_dump(exclude_unset=True)
        await self._check_references(values)
        updated = await self.repo.update(ticket_id, values)
        await log_activity(
            self.session,
            user_id=user.user_id,
            action_type="UPDATE",
            entity_name="tickets",
            details={"ticket_id": ticket_id, "fields": sorted(values)},
        )
        await self.repo.commit()
        return updated

    # PUBLIC_INTERFACE
    async def assign(self, user: RoleResolution, ticket_id: UUID, technician_id: UUID) -> Ticket:
        """Assign a technician and push the ticket_assigned message to them."""
        ticket = await self._visible(user, ticket_id)
        if ticket.status in ("closed", "rejected"):
            raise ConflictError(f"Ticket is {ticket.status}")
        technician = await self.security.get_profile(technician_id)
        if technician is None or technician.role != "technician":
            raise ValidationFailed("Assignee must be a technician")
        if technician.status != "active":
            raise ValidationFailed("Technician is inactive")

        updated = await self.repo.update(ticket_id, {"technician_id": technician_id})
        await log_activity(
            self.session,
            user_id=user.user_id,
            action_type="UPDATE",
            entity_name="tickets",
            details={"ticket_id": ticket_id, "technician_id": technician_id},
        )
        await self.repo.commit()
        await self._notify("ticket_assigned", updated, user_id=technician.id, name=technician.full_name)
        return updated

    # PUBLIC_INTERFACE
    async def change_status(self, user: RoleResolution, ticket_id: UUID, payload: TicketStatusChange) -> Ticket:
        """
        Move a ticket along the workflow.

        Leaving pending_approval toward resolved/closed is an approval and is
        reserved for admins and managers.
        """
        ticket = await self._visible(user, ticket_id)
        if not can_transition(ticket.status, payload.status):
            raise ConflictError(f"Cannot change status from {ticket.status} to {payload.status}")
        if ticket.status == "pending_approval" and payload.status in ("resolved", "closed") and not user.is_staff:
            raise PermissionDenied("Approval required")

        values = transition_values(
            payload.status,
            datetime.now(timezone.utc),
            payload.lat,
            payload.lng,
            already_started=ticket.started_at is not None,
        )
        if payload.status == "in_progress" and ticket.technician_id is None and user.role == "technician":
            values["technician_id"] = user.user_id
        previous = ticket.status
        updated = await self.repo.update(ticket_id, values)
        await log_activity(
            self.session,
            user_id=user.user_id,
            action_type="UPDATE",
            entity_name="tickets",
            details={"ticket_id": ticket_id, "from": previous, "to": payload.status},
        )
        await self.repo.commit()
        logger.info("Ticket %s moved %s -> %s", ticket_id, previous, payload.status)
        return updated

    # PUBLIC_INTERFACE
    async def close_with_parts(self, user: RoleResolution, ticket_id: UUID, payload: TicketClose) -> tuple[Ticket, float, List[ValidationResult]]:
        """
        Close a ticket, consuming the listed spare parts.

        Each part is decremented in stock and a consumption transaction is
        recorded; repair_cost becomes the sum of price x quantity. The whole
        operation is one transaction: insufficient stock aborts it (409).

        Returns the closed ticket, the repair cost and advisory warnings.
        """
        ticket = await self._visible(user, ticket_id)
        if not can_transition(ticket.status, "closed"):
            raise ConflictError(f"Cannot change status from {ticket.status} to closed")

        usage: Dict[UUID, int] = {}
        for item in payload.parts:
            usage[item.part_id] = usage.get(item.part_id, 0) + item.quantity

        parts = await self.parts.get_parts(list(usage))
        missing = [str(pid) for pid in usage if pid not in parts]
        if missing:
            raise ValidationFailed("Unknown spare parts", details={"part_ids": missing})

        repair_cost = 0.0
        try:
            for part_id, quantity in usage.items():
                part = parts[part_id]
                remaining = await self.parts.adjust_quantity(part_id, -quantity)
                if remaining is None:
                    raise ConflictError(
                        f"Insufficient stock for {part.name_ar}",
                        details={"part_id": str(part_id), "available": part.quantity, "requested": quantity},
                    )
                await self.transactions.record(
                    part_id=part_id,
                    change_amount=-quantity,
                    transaction_type="consumption",
                    user_id=user.user_id,
                    ticket_id=ticket_id,
                    notes=CONSUMPTION_NOTE,
                )
                repair_cost += float(part.price or 0) * quantity

            values = transition_values(
                "closed",
                datetime.now(timezone.utc),
                payload.lat,
                payload.lng,
            )
            values["form_data"] = {**(ticket.form_data or {}), **payload.form_data}
            values["repair_cost"] = round(repair_cost, 2)
            updated = await self.repo.update(ticket_id, values)
            await log_activity(
                self.session,
                user_id=user.user_id,
                action_type="UPDATE",
                entity_name="tickets",
                details={"ticket_id": ticket_id, "to": "closed", "parts": {str(k): v for k, v in usage.items()}},
            )
            await self.repo.commit()
        except ConflictError:
            await self.repo.rollback()
            raise

        warnings: List[ValidationResult] = []
        if ticket.asset_id is not None:
            for part_id in usage:
                check = await self.validate_part_compatibility(part_id, ticket.asset_id)
                if not check.valid:
                    warnings.append(check)
            cost_check = await self.check_repair_cost_warning(ticket.asset_id, repair_cost)
            if not cost_check.valid:
                warnings.append(cost_check)
        return updated, round(repair_cost, 2), warnings

    # PUBLIC_INTERFACE
    async def reject(self, user: RoleResolution, ticket_id: UUID, reason: str) -> Ticket:
        """Reject an open or in-progress ticket and tell the reporter why."""
        ticket = await self._visible(user, ticket_id)
        if ticket.status not in REJECTABLE_STATUSES:
            raise ConflictError(f"Cannot reject a ticket that is {ticket.status}")
        updated = await self.repo.update(ticket_id, {"status": "rejected", "rejection_reason": reason})
        await log_activity(
            self.session,
            user_id=user.user_id,
            action_type="UPDATE",
            entity_name="tickets",
            details={"ticket_id": ticket_id, "to": "rejected", "reason": reason},
        )
        await self.repo.commit()

        if updated.created_by is not None and updated.created_by != user.user_id:
            reporter = await self.security.get_profile(updated.created_by)
            await self._notify(
                "ticket_rejected",
                updated,
                user_id=updated.created_by,
                name=reporter.full_name if reporter else None,
                reason=reason,
            )
        return updated

    # PUBLIC_INTERFACE
    async def delete(self, user: RoleResolution, ticket_id: UUID) -> None:
        await self._visible(user, ticket_id)
        await self.repo.delete(ticket_id)
        await log_activity(
            self.session,
            user_id=user.user_id,
            action_type="DELETE",
            entity_name="tickets",
            details={"ticket_id": ticket_id},
        )
        await self.repo.commit()

    # PUBLIC_INTERFACE
    async def list_comments(self, user: RoleResolution, ticket_id: UUID) -> List[TicketComment]:
        await self._visible(user, ticket_id)
        return await self.repo.list_comments(ticket_id)

    # PUBLIC_INTERFACE
    async def add_comment(self, user: RoleResolution, ticket_id: UUID, content: str) -> TicketComment:
        await self._visible(user, ticket_id)
        comment = await self.repo.add_comment(ticket_id, user.user_id, content)
        await self.repo.commit()
        return comment

    # PUBLIC_INTERFACE
    async def asset_history(self, asset_id: UUID, limit: int = 100) -> List[Ticket]:
        if await self.assets.get_asset(asset_id) is None:
            raise NotFoundError("Asset not found")
        return await self.repo.list_for_asset(asset_id, limit=limit)

    # PUBLIC_INTERFACE
    async def validate_part_compatibility(self, part_id: UUID, asset_id: UUID) -> ValidationResult:
        """Advisory: does the part's category match the asset's? Fails open on lookup errors."""
        try:
            part = await self.parts.get_part(part_id)
            asset = await self.assets.get_asset(asset_id)
        except Exception:
            logger.exception("Part compatibility check failed for part=%s asset=%s", part_id, asset_id)
            return ValidationResult(valid=True)
        if part is None or asset is None:
            return ValidationResult(valid=True)
        return compatibility_result(part.name_ar, asset.name, part.category_id, asset.category_id)

    # PUBLIC_INTERFACE
    async def check_repair_cost_warning(self, asset_id: UUID, repair_cost: float) -> ValidationResult:
        """Advisory: is the repair cost a large share of the asset's value? Fails open on lookup errors."""
        try:
            asset = await self.assets.get_asset(asset_id)
        except Exception:
            logger.exception("Repair cost check failed for asset=%s", asset_id)
            return ValidationResult(valid=True)
        if asset is None:
            return ValidationResult(valid=True)
        return repair_cost_result(repair_cost, asset.purchase_price, get_app_settings().REPAIR_COST_WARNING_RATIO)

