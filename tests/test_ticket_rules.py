from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from maintenance_api.schemas.inventory import SparePartUpdate
from maintenance_api.schemas.organization import BranchUpdate
from maintenance_api.schemas.tickets import TicketUpdate
from maintenance_api.services.tickets import (
    can_transition,
    compatibility_result,
    repair_cost_result,
    transition_values,
)

NOW = datetime(2024, 6, 1, 8, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("open", "in_progress", True),
        ("open", "closed", False),
        ("in_progress", "pending_approval", True),
        ("pending_approval", "closed", True),
        ("resolved", "closed", True),
        ("closed", "open", False),
        ("rejected", "in_progress", False),
        ("unknown", "open", False),
    ],
)
def test_status_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_starting_work_stamps_time_and_location_once():
    values = transition_values("in_progress", NOW, lat=30.1, lng=31.2)
    assert values == {"status": "in_progress", "started_at": NOW, "start_work_lat": 30.1, "start_work_lng": 31.2}
    assert "started_at" not in transition_values("in_progress", NOW, already_started=True)


def test_closing_stamps_end_location():
    values = transition_values("closed", NOW, lat=1.0, lng=2.0)
    assert values["closed_at"] == NOW
    assert values["end_work_lat"] == 1.0
    assert transition_values("resolved", NOW) == {"status": "resolved", "resolved_at": NOW}


def test_compatibility():
    assert compatibility_result("فلتر", "تكييف", None, "c1").valid
    assert compatibility_result("فلتر", "تكييف", "c1", "c1").valid
    result = compatibility_result("فلتر", "ثلاجة", "c1", "c2")
    assert not result.valid
    assert result.severity == "error"
    assert "فلتر" in result.message and "ثلاجة" in result.message


def test_repair_cost_warning():
    assert repair_cost_result(400, 1000, 0.5).valid
    assert repair_cost_result(900, None, 0.5).valid
    result = repair_cost_result(600, 1000, 0.5)
    assert not result.valid
    assert result.severity == "warning"
    assert "(600)" in result.message and "50%" in result.message and "(1000)" in result.message


@pytest.mark.parametrize(
    "schema,field",
    [
        (TicketUpdate, "priority"),
        (TicketUpdate, "images_url"),
        (TicketUpdate, "form_data"),
        (SparePartUpdate, "price"),
        (BranchUpdate, "name_ar"),
    ],
)
def test_partial_updates_refuse_null_for_required_columns(schema, field):
    with pytest.raises(ValidationError):
        schema.model_validate({field: None})


def test_partial_updates_allow_omitted_and_nullable_fields():
    update = TicketUpdate.model_validate({"asset_id": None, "description": "x"})
    assert update.model_dump(exclude_unset=True) == {"asset_id": None, "description": "x"}
    assert TicketUpdate().model_dump(exclude_unset=True) == {}
