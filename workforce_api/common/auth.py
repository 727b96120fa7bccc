# workforce_api/common/auth.py
from __future__ import annotations

from dataclasses import dataclass, field
from functools import wraps
from typing import Iterable, Optional, Set

from flask import g
from flask_jwt_extended import jwt_required, get_jwt_identity

from workforce_api.common.errors import AuthorizationError
from workforce_api.common.http import fail
from workforce_api.extensions import db
from workforce_api.models.employee import Employee
from workforce_api.models.security import Role, Permission, UserRole, RolePermission
from workforce_api.models.user import User


HR_ROLES = ("hr", "admin")


# ---------- helpers ----------

def _wildcard_match(user_perm: str, required: str) -> bool:
    """
    Match required permission against a granted permission with simple wildcards.
      'payroll.*'  matches 'payroll.run'
      'payroll.run' matches only exact
    """
    if user_perm == required:
        return True
    if user_perm.endswith(".*"):
        return required.startswith(user_perm[:-1])
    return False


def _has_any_perm(user_perms: Iterable[str], required_perms: Iterable[str]) -> bool:
    required_perms = list(required_perms)
    if not required_perms:
        return True
    for req in required_perms:
        if any(_wildcard_match(up, req) for up in user_perms):
            return True
    return False


def _collect_perms_from_db(user_id: int) -> Set[str]:
    q = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .filter(UserRole.user_id == user_id)
        .distinct()
    )
    return {row[0] for row in q.all()}


def _collect_roles_from_db(user_id: int) -> Set[str]:
    q = (
        db.session.query(Role.code)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .distinct()
    )
    return {row[0].lower() for row in q.all()}


# ---------- resolved caller ----------

@dataclass(frozen=True)
class Actor:
    """The caller, resolved once at the auth boundary and passed down to services."""
    user_id: Optional[int]
    roles: frozenset = field(default_factory=frozenset)
    permissions: frozenset = field(default_factory=frozenset)
    employee_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    @property
    def is_hr(self) -> bool:
        return any(r in self.roles for r in HR_ROLES)

    def has_role(self, *codes: str) -> bool:
        return self.is_admin or any(c in self.roles for c in codes)

    def can(self, *perm_codes: str) -> bool:
        return self.is_admin or _has_any_perm(self.permissions, perm_codes)

    def require_role(self, *codes: str):
        if not self.has_role(*codes):
            raise AuthorizationError("You are not allowed to perform this action")


def actor_for_user(user: User) -> Actor:
    emp = Employee.query.filter_by(user_id=user.id).first()
    return Actor(
        user_id=user.id,
        roles=frozenset(_collect_roles_from_db(user.id)),
        permissions=frozenset(_collect_perms_from_db(user.id)),
        employee_id=emp.id if emp else None,
    )


def current_actor() -> Optional[Actor]:
    """Resolve the JWT identity into an Actor, once per request."""
    uid = get_jwt_identity()
    if uid is None:
        return None
    actor = g.get("actor")
    if actor is not None and actor.user_id == int(uid):
        return actor
    user = db.session.get(User, int(uid))
    if not user or user.status != "active":
        return None
    actor = actor_for_user(user)
    g.actor = actor
    return actor


# ---------- decorators ----------

def requires_roles(*codes: str):
    """Require AT LEAST ONE of the given role codes; 'admin' always passes."""
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            actor = current_actor()
            if actor is None:
                return fail("Unauthorized", status=401)
            if not actor.has_role(*codes):
                return fail("Forbidden", status=403, code="forbidden")
            return fn(*args, **kwargs)
        return inner
    return outer


def requires_perms(*perm_codes: str):
    """
    Require that the current user has ANY of the given permission codes.
    Granted permissions may use 'prefix.*' wildcards.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            actor = current_actor()
            if actor is None:
                return fail("Unauthorized", status=401)
            if not actor.can(*perm_codes):
                return fail("Forbidden", status=403, code="forbidden")
            return fn(*args, **kwargs)
        return inner
    return outer
