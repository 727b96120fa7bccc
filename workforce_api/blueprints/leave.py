# workforce_api/blueprints/leave.py
from datetime import date
from decimal import Decimal

from flask import Blueprint, request
from sqlalchemy.exc import IntegrityError

from workforce_api.common.auth import requires_perms, current_actor
from workforce_api.common.errors import AuthorizationError, DuplicateError, NotFoundError, ValidationError
from workforce_api.common.http import ok
from workforce_api.common.paging import body, page_limit, paginate, parse_date
from workforce_api.extensions import db
from workforce_api.models.leave import LeaveRequest, LeaveType
from workforce_api.services import leave_service as svc

bp = Blueprint("leave", __name__, url_prefix="/api/v1/leave")


# ---------- Leave Types ----------
@bp.get("/types")
@requires_perms("leave.request.create", "leave.types.manage")
def list_types():
    items = LeaveType.query.filter_by(is_active=True).order_by(LeaveType.code.asc()).all()
    return ok([t.to_dict() for t in items])


@bp.post("/types")
@requires_perms("leave.types.manage")
def create_type():
    d = body()
    if not (d.get("code") and d.get("name")):
        raise ValidationError("code and name are required")
    lt = LeaveType(
        code=d["code"].strip().upper(),
        name=d["name"].strip(),
        is_paid=bool(d.get("is_paid", True)),
        max_days_per_year=Decimal(str(d.get("max_days_per_year") or 0)),
        allow_half_day=bool(d.get("allow_half_day", True)),
        affects_attendance=bool(d.get("affects_attendance", True)),
        carry_forward_limit=Decimal(str(d.get("carry_forward_limit") or 0)),
    )
    db.session.add(lt)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError(f"Leave type {lt.code} already exists")
    return ok(lt.to_dict(), 201)


# ---------- Balances ----------
@bp.get("/balances")
@requires_perms("leave.balance.read", "leave.request.approve")
def get_balances():
    year = request.args.get("year", type=int) or date.today().year
    rows = svc.balance(current_actor(), request.args.get("employee_id", type=int), year)
    return ok(rows)


# ---------- Requests ----------
@bp.post("/requests")
@requires_perms("leave.request.create")
def apply_leave():
    d = body()
    if not d.get("leave_type_id"):
        raise ValidationError("leave_type_id is required")
    lr = svc.apply_leave(
        current_actor(),
        employee_id=d.get("employee_id"),
        leave_type_id=int(d["leave_type_id"]),
        start=parse_date(d.get("start_date"), "start_date", required=True),
        end=parse_date(d.get("end_date"), "end_date", required=True),
        reason=d.get("reason") or "",
        is_half_day=bool(d.get("is_half_day", False)),
        half_day_session=d.get("half_day_session"),
    )
    return ok(lr.to_dict(), 201, message="Leave applied")


@bp.get("/requests")
@requires_perms("leave.request.read", "leave.request.approve")
def list_requests():
    page, size = page_limit()
    q = svc.list_requests(
        current_actor(),
        employee_id=request.args.get("employee_id", type=int),
        status=request.args.get("status") or None,
        mine=request.args.get("mine") in ("1", "true", "yes"),
    )
    items, total = paginate(q, page, size)
    return ok([lr.to_dict() for lr in items], page=page, size=size, total=total)


@bp.get("/requests/<int:leave_id>")
@requires_perms("leave.request.read", "leave.request.approve")
def get_request(leave_id: int):
    actor = current_actor()
    lr = db.session.get(LeaveRequest, leave_id)
    if lr is None:
        raise NotFoundError("Leave request not found")
    if lr.employee_id != actor.employee_id and not actor.can("leave.request.approve"):
        raise AuthorizationError("You can only view your own leave")
    return ok(lr.to_dict())


@bp.post("/requests/<int:leave_id>/approve")
@requires_perms("leave.request.approve")
def approve(leave_id: int):
    d = body()
    lr = svc.approve(current_actor(), leave_id, d.get("comment"))
    return ok(lr.to_dict(), message="Leave approved")


@bp.post("/requests/<int:leave_id>/reject")
@requires_perms("leave.request.approve")
def reject(leave_id: int):
    d = body()
    lr = svc.reject(current_actor(), leave_id, d.get("reason") or "")
    return ok(lr.to_dict(), message="Leave rejected")


@bp.post("/requests/<int:leave_id>/cancel")
@requires_perms("leave.request.create", "leave.request.approve")
def cancel(leave_id: int):
    d = body()
    lr = svc.cancel(current_actor(), leave_id, d.get("reason"))
    return ok(lr.to_dict(), message="Leave cancelled")
