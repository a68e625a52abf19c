"""Role hierarchy and table-driven capability checks.

Every authorization decision in the project starts from this table instead
of comparing role strings inline.
"""

from enum import Enum
from typing import Any, Iterable

from LmsApp.core.choices import Role


class Capability(str, Enum):
    CREATE_COURSE = "create_course"
    VIEW_ALL_COURSES = "view_all_courses"
    ASSIGN_STAFF = "assign_staff"
    MANAGE_ROSTER = "manage_roster"
    REVIEW_STAFF = "review_staff"
    LIST_STAFF = "list_staff"
    LIST_STUDENTS = "list_students"
    JOIN_COURSE = "join_course"
    SUBMIT_TASK = "submit_task"
    REQUEST_UNLOCK = "request_unlock"
    MANAGE_QUICK_TASKS = "manage_quick_tasks"
    VIEW_AUDIT_LOG = "view_audit_log"
    PURGE_AUDIT_LOG = "purge_audit_log"
    VIEW_LOGIN_HISTORY = "view_login_history"


# Higher number = more privilege. Roles absent from this map have no rank.
PRIVILEGE: dict[Role, int] = {
    Role.SUPERADMIN: 3,
    Role.ADMIN: 2,
    Role.STAFF: 1,
    Role.STUDENT: 0,
}

_STAFF_CAPABILITIES = frozenset({
    Capability.CREATE_COURSE,
    Capability.MANAGE_ROSTER,
    Capability.LIST_STUDENTS,
    Capability.MANAGE_QUICK_TASKS,
})

_ADMIN_CAPABILITIES = _STAFF_CAPABILITIES | {
    Capability.VIEW_ALL_COURSES,
    Capability.ASSIGN_STAFF,
    Capability.LIST_STAFF,
    Capability.VIEW_AUDIT_LOG,
}

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.SUPERADMIN: _ADMIN_CAPABILITIES | {
        Capability.REVIEW_STAFF,
        Capability.PURGE_AUDIT_LOG,
        Capability.VIEW_LOGIN_HISTORY,
    },
    Role.ADMIN: _ADMIN_CAPABILITIES,
    Role.STAFF: _STAFF_CAPABILITIES,
    Role.STUDENT: frozenset({
        Capability.JOIN_COURSE,
        Capability.SUBMIT_TASK,
        Capability.REQUEST_UNLOCK,
    }),
    Role.PENDING_STAFF: frozenset(),
    Role.DECLINED: frozenset(),
}


def _as_role(value: Any) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        return None


def role_of(principal: Any) -> Role | None:
    """Return the Role of an authenticated principal, or None for anonymous/unknown."""
    if principal is None or not getattr(principal, "is_authenticated", False):
        return None
    return _as_role(getattr(principal, "role", None))


def has_any_role(principal: Any, allowed: Iterable[Role | str]) -> bool:
    """Base predicate: principal is authenticated and holds one of the allowed roles."""
    role = role_of(principal)
    if role is None:
        return False
    return role in {_as_role(r) for r in allowed}


def has_capability(role: Role | str | None, capability: Capability) -> bool:
    resolved = _as_role(role) if role is not None else None
    if resolved is None:
        return False
    return capability in ROLE_CAPABILITIES[resolved]


def principal_can(principal: Any, capability: Capability) -> bool:
    return has_capability(role_of(principal), capability)


def outranks(role_a: Role | str, role_b: Role | str) -> bool:
    """True if role_a is strictly more privileged than role_b. Unranked roles never outrank."""
    a, b = _as_role(role_a), _as_role(role_b)
    if a not in PRIVILEGE or b not in PRIVILEGE:
        return False
    return PRIVILEGE[a] > PRIVILEGE[b]
