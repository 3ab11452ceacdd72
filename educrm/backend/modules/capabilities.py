# educrm/backend/modules/capabilities.py
"""
Role-to-capability table.

A capability is a "resource:action" string. The backend is the authority on
these; the frontend only uses the same table to hide controls.
"""
from typing import Dict, List, Optional, Iterable

ADMIN_ROLES = frozenset({"admin", "it_admin", "super_admin"})

ROLE_CAPABILITIES: Dict[str, List[str]] = {
    "super_admin": [
        "admin:manage",
        "users:manage",
        "attendance:manage",
        "classes:manage",
        "students:manage",
        "teachers:manage",
        "parents:manage",
        "notifications:manage",
        "reports:manage",
        "settings:manage",
    ],
    "admin": [
        "admin:view",
        "users:read", "users:create", "users:update",
        "attendance:read", "attendance:view",
        "classes:read", "classes:create", "classes:update",
        "students:read", "students:create", "students:update",
        "teachers:read", "teachers:create", "teachers:update",
        "parents:read", "parents:create", "parents:update",
        "notifications:read", "notifications:create",
        "reports:read", "reports:view",
        "settings:read", "settings:update",
    ],
    "it_admin": [
        "admin:view",
        "users:read", "users:update",
        "settings:read", "settings:update",
        "reports:read", "reports:view",
    ],
    "staff": [
        "attendance:read", "attendance:view",
        "classes:read",
        "students:read",
        "teachers:read",
        "parents:read",
        "notifications:read",
        "reports:read", "reports:view",
    ],
    "teacher": [
        "attendance:read", "attendance:mark", "attendance:view",
        "classes:read", "classes:view",
        "students:read", "students:view",
        "notifications:read", "notifications:create",
        "reports:read", "reports:view",
    ],
    "parent": [
        "attendance:view",
        "students:view",  # own children only
        "notifications:read", "notifications:view",
    ],
    "student": [
        "attendance:view",  # own records only
        "notifications:read", "notifications:view",
    ],
}

ROLE_HOME_ROUTES: Dict[str, str] = {
    "admin": "/admin",
    "super_admin": "/superadmin",
    "it_admin": "/it",
    "teacher": "/teacher",
    "parent": "/parent",
    "student": "/student",
    "staff": "/admin",
}


def get_capabilities_for_role(role: Optional[str]) -> List[str]:
    if not role:
        return []
    return list(ROLE_CAPABILITIES.get(role, []))


def role_has_capability(role: Optional[str], capability: str) -> bool:
    """
    True when the role holds the capability, either directly or through
    "<resource>:manage", which grants every action on that resource.
    """
    if not role:
        return False
    capabilities = ROLE_CAPABILITIES.get(role, [])
    if capability in capabilities:
        return True
    resource = capability.split(":", 1)[0]
    return f"{resource}:manage" in capabilities


def role_has_any_capability(role: Optional[str], capabilities: Iterable[str]) -> bool:
    if not role:
        return False
    return any(role_has_capability(role, cap) for cap in capabilities)


def role_has_all_capabilities(role: Optional[str], capabilities: Iterable[str]) -> bool:
    if not role:
        return False
    return all(role_has_capability(role, cap) for cap in capabilities)


def is_admin_role(role: Optional[str]) -> bool:
    return role in ADMIN_ROLES


def get_home_route(role: Optional[str]) -> str:
    """Dashboard path a client should open after sign-in."""
    if not role:
        return "/login"
    return ROLE_HOME_ROUTES.get(role, "/")
