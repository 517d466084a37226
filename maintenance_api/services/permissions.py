"""
Role based permission lookup.

A permission matrix maps role -> resource -> list of allowed actions. The
matrix stored under the `permissions_matrix` system setting overrides the
built-in DEFAULT_MATRIX. Administrators pass every check.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

ACTIONS = ("view", "create", "edit", "delete", "manage", "approve")
RESOURCES = ("tickets", "users", "inventory", "reports", "settings", "forms", "assets", "dashboard")
KNOWN_ROLES = ("admin", "manager", "technician", "user")
FEATURE_KEYS = ("view_cost", "delete_ticket", "view_map", "edit_asset", "approve_purchase")

PERMISSIONS_MATRIX_KEY = "permissions_matrix"

PermissionMatrix = Dict[str, Dict[str, List[str]]]

DEFAULT_MATRIX: PermissionMatrix = {
    "admin": {
        "tickets": ["view", "create", "edit", "delete", "manage"],
        "users": ["view", "create", "edit", "delete", "manage"],
        "inventory": ["view", "create", "edit", "delete", "manage"],
        "reports": ["view", "create", "manage"],
        "settings": ["view", "create", "edit", "delete", "manage"],
        "forms": ["view", "create", "edit", "delete", "manage"],
        "assets": ["view", "create", "edit", "delete", "manage"],
        "dashboard": ["view"],
    },
    "manager": {
        "tickets": ["view", "create", "edit", "approve"],
        "users": ["view"],
        "inventory": ["view", "create", "edit"],
        "reports": ["view"],
        "assets": ["view", "create", "edit"],
        "dashboard": ["view"],
    },
    "technician": {
        "tickets": ["view", "edit"],
        "inventory": ["view"],
        "assets": ["view"],
        "dashboard": ["view"],
    },
    "user": {
        "tickets": ["view", "create"],
    },
}


# PUBLIC_INTERFACE
def can(
    role: Optional[str],
    action: str,
    resource: str,
    matrix: Optional[Mapping[str, Any]] = None,
) -> bool:
    """
    Return True when `role` may perform `action` on `resource`.

    A missing role never passes; the admin role always passes. Otherwise the
    action (or 'manage') must be listed under matrix[role][resource].
    """
    if not role:
        return False
    if role == "admin":
        return True

    matrix = DEFAULT_MATRIX if matrix is None else matrix
    role_permissions = matrix.get(role)
    if not isinstance(role_permissions, Mapping):
        return False
    resource_actions = role_permissions.get(resource)
    if not resource_actions:
        return False
    return action in resource_actions or "manage" in resource_actions


# PUBLIC_INTERFACE
def role_matrix(role: Optional[str], matrix: Optional[Mapping[str, Any]] = None) -> Dict[str, List[str]]:
    """Return the resource -> actions slice of the matrix for a single role."""
    matrix = DEFAULT_MATRIX if matrix is None else matrix
    if not role:
        return {}
    if role == "admin":
        return {resource: list(ACTIONS) for resource in RESOURCES}
    return {k: list(v) for k, v in (matrix.get(role) or {}).items()}


# PUBLIC_INTERFACE
def validate_matrix(matrix: Mapping[str, Any]) -> PermissionMatrix:
    """
    Normalize a matrix submitted by an administrator.

    Raises ValueError on unknown roles, resources or actions.
    """
    cleaned: PermissionMatrix = {}
    for role, resources in matrix.items():
        if role not in KNOWN_ROLES:
            raise ValueError(f"Unknown role: {role}")
        if not isinstance(resources, Mapping):
            raise ValueError(f"Permissions for role '{role}' must be an object")
        cleaned[role] = {}
        for resource, actions in resources.items():
            if resource not in RESOURCES:
                raise ValueError(f"Unknown resource: {resource}")
            unknown = [a for a in actions if a not in ACTIONS]
            if unknown:
                raise ValueError(f"Unknown action(s) for {role}.{resource}: {', '.join(unknown)}")
            cleaned[role][resource] = list(dict.fromkeys(actions))
    return cleaned


# PUBLIC_INTERFACE
def feature_enabled(role: Optional[str], feature_key: str, toggles: Mapping[str, bool]) -> bool:
    """
    Evaluate a per-role feature toggle.

    `toggles` maps feature_key -> is_enabled for the role. Admins always pass;
    absent keys are disabled.
    """
    if not role:
        return False
    if role == "admin":
        return True
    return bool(toggles.get(feature_key, False))
