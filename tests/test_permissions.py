import pytest

from maintenance_api.services.permissions import (
    DEFAULT_MATRIX,
    can,
    feature_enabled,
    role_matrix,
    validate_matrix,
)


def test_admin_passes_every_check():
    assert can("admin", "delete", "settings")
    assert can("admin", "approve", "anything", matrix={})


def test_missing_role_never_passes():
    assert not can(None, "view", "tickets")
    assert not can("", "view", "tickets")


def test_default_matrix_lookups():
    assert can("manager", "approve", "tickets")
    assert can("technician", "edit", "tickets")
    assert not can("technician", "delete", "tickets")
    assert not can("user", "view", "inventory")
    assert not can("ghost", "view", "tickets")


def test_manage_implies_every_action():
    matrix = {"manager": {"forms": ["manage"]}}
    assert can("manager", "delete", "forms", matrix)
    assert not can("manager", "view", "tickets", matrix)


def test_stored_matrix_overrides_defaults():
    matrix = {"technician": {"tickets": ["view"]}}
    assert not can("technician", "edit", "tickets", matrix)
    assert can("technician", "edit", "tickets", DEFAULT_MATRIX)


def test_malformed_role_entry_is_denied():
    assert not can("manager", "view", "tickets", {"manager": ["view"]})


def test_role_matrix_for_admin_lists_everything():
    admin = role_matrix("admin")
    assert "view" in admin["settings"]
    assert role_matrix(None) == {}
    assert role_matrix("user") == {"tickets": ["view", "create"]}


def test_validate_matrix_dedupes_actions():
    cleaned = validate_matrix({"manager": {"tickets": ["view", "view", "edit"]}})
    assert cleaned == {"manager": {"tickets": ["view", "edit"]}}


@pytest.mark.parametrize(
    "matrix",
    [
        {"owner": {"tickets": ["view"]}},
        {"manager": {"payroll": ["view"]}},
        {"manager": {"tickets": ["fly"]}},
        {"manager": ["tickets"]},
    ],
)
def test_validate_matrix_rejects_unknown_entries(matrix):
    with pytest.raises(ValueError):
        validate_matrix(matrix)


def test_feature_toggles():
    assert feature_enabled("admin", "delete_ticket", {})
    assert feature_enabled("manager", "view_cost", {"view_cost": True})
    assert not feature_enabled("manager", "view_cost", {})
    assert not feature_enabled(None, "view_cost", {"view_cost": True})
