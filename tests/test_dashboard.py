from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from maintenance_api.services.dashboard import TicketSummary, compute_stats

TODAY = date(2024, 6, 1)
NOON = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _ticket(n, status="open", priority="medium", category=None, closed_at=None, age_hours=0):
    created = NOON - timedelta(hours=age_hours)
    return TicketSummary(
        id=uuid4(),
        ticket_number=n,
        status=status,
        priority=priority,
        created_at=created,
        updated_at=created,
        closed_at=closed_at,
        fault_category=category,
    )


def test_counters():
    tickets = [
        _ticket(1, priority="high", category="كهرباء"),
        _ticket(2, priority="critical", category="كهرباء", age_hours=1),
        _ticket(3, status="closed", closed_at=NOON, age_hours=48),
        _ticket(4, status="closed", closed_at=NOON - timedelta(days=2), age_hours=72),
        _ticket(5, status="in_progress", category="سباكة", age_hours=5),
    ]
    stats = compute_stats(tickets, today=TODAY)
    assert stats.total_tickets == 5
    assert stats.open_tickets == 2
    assert stats.emergency_tickets == 2
    assert stats.closed_today == 1


def test_distributions_and_recent():
    tickets = [_ticket(i, category="كهرباء" if i % 2 else None, age_hours=i) for i in range(1, 8)]
    stats = compute_stats(tickets, today=TODAY)
    assert stats.category_distribution[0].name == "كهرباء"
    assert stats.category_distribution[0].value == 4
    assert stats.category_distribution[1].name == "غير مصنف"
    assert [s.label for s in stats.status_distribution] == ["مفتوح"]
    assert [t.ticket_number for t in stats.recent_tickets] == [1, 2, 3, 4, 5]


def test_closed_without_timestamp_uses_last_update():
    ticket = _ticket(1, status="closed")
    assert compute_stats([ticket], today=TODAY).closed_today == 1


def test_empty():
    stats = compute_stats([], today=TODAY)
    assert stats.total_tickets == 0
    assert stats.recent_tickets == []
