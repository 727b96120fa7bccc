# workforce_api/seed_rbac.py
"""
Default roles and permissions.

ROLE_PERM_MAP is a configuration default: it is applied when a role is first
defined (``define_role``) and never consulted again at request time. After that
the role_permissions table is the only source of truth.
"""
from flask import current_app

from workforce_api.extensions import db
from workforce_api.models.security import Role, Permission, RolePermission

DEFAULT_ROLES = [
    ("admin", "Administrator"),
    ("hr", "HR"),
    ("manager", "Manager"),
    ("employee", "Employee"),
]

DEFAULT_PERMS = [
    # Employees
    "employee.read", "employee.create", "employee.update", "employee.delete",
    "payroll.structure.manage",

    # Attendance
    "attendance.self", "attendance.read", "attendance.manage",

    # Leave
    "leave.types.manage", "leave.balance.read",
    "leave.request.create", "leave.request.read", "leave.request.approve",

    # Calendar
    "calendar.read",

    # Payroll
    "payroll.view", "payroll.run", "payroll.approve",

    # Performance
    "performance.goals.read", "performance.goals.manage",
    "performance.reviews.read", "performance.reviews.write",
    "performance.cycles.manage",

    # Appraisal
    "appraisal.read", "appraisal.manage", "appraisal.approve",
]

_SELF_SERVICE = [
    "attendance.self",
    "leave.balance.read", "leave.request.create", "leave.request.read",
    "calendar.read",
    "performance.goals.read", "performance.reviews.read", "performance.reviews.write",
]

ROLE_PERM_MAP = {
    "admin": DEFAULT_PERMS,
    "hr": DEFAULT_PERMS,
    "manager": _SELF_SERVICE + [
        "employee.read",
        "attendance.read",
        "leave.request.approve",
        "performance.goals.manage",
    ],
    "employee": _SELF_SERVICE,
}


def _role_perm_map() -> dict:
    return current_app.config.get("RBAC_ROLE_PERMISSIONS") or ROLE_PERM_MAP


def ensure_permissions(codes=None) -> dict:
    code_to_perm = {}
    for code in codes or DEFAULT_PERMS:
        p = Permission.query.filter_by(code=code).first()
        if not p:
            p = Permission(code=code, name=code.replace(".", " ").title())
            db.session.add(p)
            db.session.flush()
        code_to_perm[code] = p
    return code_to_perm


def define_role(code: str, name: str | None = None, perms=None) -> Role:
    """
    Create a role if missing. A new role with no explicit ``perms`` is granted the
    configured default for its code. Existing roles keep their grants untouched.
    """
    role = Role.query.filter_by(code=code).first()
    if role is not None:
        return role
    role = Role(code=code, name=name or code.title())
    db.session.add(role)
    db.session.flush()

    if perms is None:
        perms = _role_perm_map().get(code, [])
    code_to_perm = ensure_permissions(perms) if perms else {}
    for pcode in perms:
        db.session.add(RolePermission(role_id=role.id, permission_id=code_to_perm[pcode].id))
    db.session.flush()
    return role


def run():
    ensure_permissions()
    for code, name in DEFAULT_ROLES:
        define_role(code, name)
    db.session.commit()
    return {"ok": True, "roles": len(DEFAULT_ROLES), "perms": len(DEFAULT_PERMS)}
