import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from maintenance_api.schemas.tickets import PartUsage, TicketClose, TicketCreate, TicketStatusChange, TicketUpdate
from maintenance_api.services import tickets as ticket_module
from maintenance_api.services.errors import ConflictError, NotFoundError, PermissionDenied, ValidationFailed
from maintenance_api.services.role_resolution import RoleResolution
from maintenance_api.services.tickets import TicketService

AREA = uuid4()
OTHER_AREA = uuid4()


def _ticket(**kw):
    now = datetime(2024, 5, 1, tzinfo=timezone.utc)
    values = dict(
        id=uuid4(),
        ticket_number=7,
        branch_id=uuid4(),
        asset_id=None,
        category_id=None,
        fault_category="تكييف",
        technician_id=None,
        created_by=None,
        status="open",
        priority="medium",
        description="عطل",
        images_url=[],
        form_data={},
        repair_cost=0,
        rejection_reason=None,
        started_at=None,
        resolved_at=None,
        closed_at=None,
        created_at=now,
        updated_at=now,
    )
    values.update(kw)
    return SimpleNamespace(**values)


def _user(role="technician", **kw):
    return RoleResolution(user_id=uuid4(), role=role, source="profile", **kw)


class FakeTickets:
    def __init__(self, *tickets):
        self.rows = {t.id: t for t in tickets}
        self.commits = 0
        self.rollbacks = 0
        self.list_args = None

    async def get(self, ticket_id):
        return self.rows.get(ticket_id)

    async def create(self, values):
        ticket = _ticket(**values)
        self.rows[ticket.id] = ticket
        return ticket

    async def update(self, ticket_id, values):
        ticket = self.rows[ticket_id]
        for key, value in values.items():
            setattr(ticket, key, value)
        return ticket

    async def delete(self, ticket_id):
        return 1 if self.rows.pop(ticket_id, None) else 0

    async def list_tickets(self, **kw):
        self.list_args = kw
        return list(self.rows.values())

    async def commit(self):
        self.commits += 1

    async def rollback(self):
        self.rollbacks += 1


class FakeOrg:
    def __init__(self, branches):
        self.branches = branches

    async def get(self, model, entity_id):
        return self.branches.get(entity_id)


class FakePeople:
    def __init__(self, *profiles):
        self.profiles = {p.id: p for p in profiles}

    async def get_profile(self, user_id):
        return self.profiles.get(user_id)

    async def technicians_for_branch(self, branch_id):
        return [p for p in self.profiles.values() if p.role == "technician"]


class FakeAssets:
    def __init__(self, assets=None, categories=None):
        self.assets = assets or {}
        self.categories = categories or {}

    async def get_asset(self, asset_id):
        return self.assets.get(asset_id)

    async def get_category(self, category_id):
        return self.categories.get(category_id)


class FakeParts:
    def __init__(self, *parts):
        self.parts = {p.id: p for p in parts}

    async def get_parts(self, part_ids):
        return {pid: self.parts[pid] for pid in part_ids if pid in self.parts}

    async def get_part(self, part_id):
        return self.parts.get(part_id)

    async def adjust_quantity(self, part_id, change):
        part = self.parts[part_id]
        if part.quantity + change < 0:
            return None
        part.quantity += change
        return part.quantity


class FakeTransactions:
    def __init__(self):
        self.recorded = []

    async def record(self, **kw):
        self.recorded.append(kw)
        return SimpleNamespace(**kw)


class FakeConfig:
    async def get_template_by_key(self, key):
        return None


@pytest.fixture
def pushes(monkeypatch):
    sent = []

    async def _push(**kw):
        sent.append(kw)
        return 1

    async def _log(session, **kw):
        pass

    monkeypatch.setattr(ticket_module, "push_notification", _push)
    monkeypatch.setattr(ticket_module, "log_activity", _log)
    return sent


def _service(*tickets, branches=None, people=(), parts=(), assets=None):
    service = TicketService(None)
    service.repo = FakeTickets(*tickets)
    service.org = FakeOrg(branches or {})
    service.security = FakePeople(*people)
    service.assets = assets or FakeAssets()
    service.parts = FakeParts(*parts)
    service.transactions = FakeTransactions()
    service.config = FakeConfig()
    return service


def _branch(area_id=AREA):
    return SimpleNamespace(id=uuid4(), area_id=area_id, name_ar="فرع المعادي")


def test_create_opens_ticket_for_caller_and_notifies_area_technicians(pushes):
    branch = _branch()
    tech = SimpleNamespace(id=uuid4(), role="technician", full_name="أحمد", status="active")
    service = _service(branches={branch.id: branch}, people=[tech])
    caller = _user("user")

    ticket = asyncio.run(service.create(caller, TicketCreate(branch_id=branch.id, description="تسريب", status="closed")))

    assert ticket.status == "open"
    assert ticket.created_by == caller.user_id
    assert service.repo.commits == 1
    assert pushes[0]["user_id"] == tech.id
    assert "أحمد" in pushes[0]["body"]


def test_create_rejects_unknown_references(pushes):
    branch = _branch()
    service = _service(branches={branch.id: branch})
    with pytest.raises(ValidationFailed, match="Branch not found"):
        asyncio.run(service.create(_user(), TicketCreate(branch_id=uuid4())))
    with pytest.raises(ValidationFailed, match="Asset not found"):
        asyncio.run(service.create(_user(), TicketCreate(branch_id=branch.id, asset_id=uuid4())))
    with pytest.raises(ValidationFailed, match="Fault category not found"):
        asyncio.run(service.create(_user(), TicketCreate(branch_id=branch.id, category_id=uuid4())))
    assert service.repo.rows == {}


def test_update_rejects_unknown_category(pushes):
    ticket = _ticket()
    service = _service(ticket)
    staff = _user("manager")
    with pytest.raises(ValidationFailed):
        asyncio.run(service.update(staff, ticket.id, TicketUpdate(category_id=uuid4())))
    updated = asyncio.run(service.update(staff, ticket.id, TicketUpdate(priority="high")))
    assert updated.priority == "high"


def test_update_of_closed_ticket_conflicts(pushes):
    ticket = _ticket(status="closed")
    with pytest.raises(ConflictError):
        asyncio.run(_service(ticket).update(_user("admin"), ticket.id, TicketUpdate(priority="low")))


def test_technician_sees_own_created_and_area_tickets_only(pushes):
    tech = _user(assigned_area_id=AREA)
    near, far = _branch(AREA), _branch(OTHER_AREA)
    mine = _ticket(branch_id=far.id, technician_id=tech.user_id)
    reported = _ticket(branch_id=far.id, created_by=tech.user_id)
    in_area = _ticket(branch_id=near.id)
    elsewhere = _ticket(branch_id=far.id)
    service = _service(mine, reported, in_area, elsewhere, branches={near.id: near, far.id: far})

    for ticket in (mine, reported, in_area):
        assert asyncio.run(service.get(tech, ticket.id)) is ticket
    with pytest.raises(NotFoundError):
        asyncio.run(service.get(tech, elsewhere.id))
    assert asyncio.run(service.get(_user("manager"), elsewhere.id)) is elsewhere


def test_list_scope_follows_role(pushes):
    service = _service()
    tech = _user(assigned_area_id=AREA)
    asyncio.run(service.list_tickets(tech))
    assert service.repo.list_args["scope_user_id"] == tech.user_id
    assert service.repo.list_args["scope_area_id"] == AREA
    asyncio.run(service.list_tickets(_user("admin"), status="open"))
    assert service.repo.list_args["scope_user_id"] is None
    assert service.repo.list_args["scope_area_id"] is None
    assert service.repo.list_args["status"] == "open"


def test_assign_sets_technician_and_notifies(pushes):
    ticket = _ticket()
    tech = SimpleNamespace(id=uuid4(), role="technician", full_name="محمود", status="active")
    service = _service(ticket, people=[tech])

    updated = asyncio.run(service.assign(_user("manager"), ticket.id, tech.id))

    assert updated.technician_id == tech.id
    assert pushes[0]["user_id"] == tech.id
    assert pushes[0]["url"] == f"/tickets/{ticket.id}"


def test_assign_requires_active_technician(pushes):
    ticket = _ticket()
    manager = SimpleNamespace(id=uuid4(), role="manager", full_name="م", status="active")
    idle = SimpleNamespace(id=uuid4(), role="technician", full_name="ف", status="inactive")
    service = _service(ticket, people=[manager, idle])
    with pytest.raises(ValidationFailed, match="must be a technician"):
        asyncio.run(service.assign(_user("admin"), ticket.id, manager.id))
    with pytest.raises(ValidationFailed, match="inactive"):
        asyncio.run(service.assign(_user("admin"), ticket.id, idle.id))


def test_starting_work_claims_unassigned_ticket(pushes):
    tech = _user()
    ticket = _ticket(created_by=tech.user_id)
    service = _service(ticket)

    updated = asyncio.run(service.change_status(tech, ticket.id, TicketStatusChange(status="in_progress", lat=30.0, lng=31.2)))

    assert updated.status == "in_progress"
    assert updated.technician_id == tech.user_id
    assert updated.started_at is not None
    assert updated.start_work_lat == 30.0


def test_approval_is_reserved_for_staff(pushes):
    tech = _user()
    ticket = _ticket(status="pending_approval", technician_id=tech.user_id)
    service = _service(ticket)
    with pytest.raises(PermissionDenied):
        asyncio.run(service.change_status(tech, ticket.id, TicketStatusChange(status="closed")))
    with pytest.raises(ConflictError):
        asyncio.run(service.change_status(tech, ticket.id, TicketStatusChange(status="pending_approval")))
    closed = asyncio.run(service.change_status(_user("manager"), ticket.id, TicketStatusChange(status="closed")))
    assert closed.closed_at is not None


def _part(quantity=5, price=120.0, category_id=None):
    return SimpleNamespace(id=uuid4(), name_ar="فلتر", quantity=quantity, price=price, category_id=category_id)


def test_close_with_parts_consumes_stock_and_totals_cost(pushes):
    tech = _user()
    ticket = _ticket(status="in_progress", technician_id=tech.user_id, form_data={"a": 1})
    filter_, belt = _part(quantity=5, price=120.0), _part(quantity=2, price=35.5)
    service = _service(ticket, parts=[filter_, belt])
    payload = TicketClose(
        parts=[
            PartUsage(part_id=filter_.id, quantity=1),
            PartUsage(part_id=filter_.id, quantity=1),
            PartUsage(part_id=belt.id, quantity=2),
        ],
        form_data={"b": 2},
    )

    closed, cost, warnings = asyncio.run(service.close_with_parts(tech, ticket.id, payload))

    assert cost == 311.0
    assert closed.status == "closed"
    assert closed.repair_cost == 311.0
    assert closed.form_data == {"a": 1, "b": 2}
    assert (filter_.quantity, belt.quantity) == (3, 0)
    assert sorted(t["change_amount"] for t in service.transactions.recorded) == [-2, -2]
    assert all(t["transaction_type"] == "consumption" for t in service.transactions.recorded)
    assert warnings == []


def test_close_with_insufficient_stock_conflicts_and_rolls_back(pushes):
    tech = _user()
    ticket = _ticket(status="in_progress", technician_id=tech.user_id)
    part = _part(quantity=1)
    service = _service(ticket, parts=[part])

    with pytest.raises(ConflictError, match="Insufficient stock"):
        asyncio.run(service.close_with_parts(tech, ticket.id, TicketClose(parts=[PartUsage(part_id=part.id, quantity=3)])))

    assert service.repo.rollbacks == 1
    assert service.repo.commits == 0
    assert ticket.status == "in_progress"
    assert part.quantity == 1


def test_close_with_unknown_part_is_rejected(pushes):
    tech = _user()
    ticket = _ticket(status="in_progress", technician_id=tech.user_id)
    with pytest.raises(ValidationFailed, match="Unknown spare parts"):
        asyncio.run(_service(ticket).close_with_parts(tech, ticket.id, TicketClose(parts=[PartUsage(part_id=uuid4(), quantity=1)])))


def test_close_reports_advisory_warnings(pushes):
    tech = _user()
    asset = SimpleNamespace(id=uuid4(), name="ثلاجة", category_id=uuid4(), purchase_price=400)
    ticket = _ticket(status="in_progress", technician_id=tech.user_id, asset_id=asset.id)
    part = _part(quantity=4, price=150.0, category_id=uuid4())
    service = _service(ticket, parts=[part], assets=FakeAssets({asset.id: asset}))

    _, cost, warnings = asyncio.run(
        service.close_with_parts(tech, ticket.id, TicketClose(parts=[PartUsage(part_id=part.id, quantity=2)]))
    )

    assert cost == 300.0
    assert [w.severity for w in warnings] == ["error", "warning"]


def test_reject_records_reason_and_tells_reporter(pushes):
    reporter = SimpleNamespace(id=uuid4(), role="user", full_name="سارة", status="active")
    ticket = _ticket(created_by=reporter.id)
    service = _service(ticket, people=[reporter])

    rejected = asyncio.run(service.reject(_user("manager"), ticket.id, "مكرر"))

    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "مكرر"
    assert pushes[0]["user_id"] == reporter.id
    assert "مكرر" in pushes[0]["body"]


def test_reject_closed_ticket_conflicts(pushes):
    ticket = _ticket(status="closed")
    with pytest.raises(ConflictError):
        asyncio.run(_service(ticket).reject(_user("admin"), ticket.id, "x"))
