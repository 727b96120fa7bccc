# workforce_api/services/leave_service.py
"""
Leave requests: pending -> approved | rejected, then optionally -> cancelled.

Approving a leave that affects attendance writes one Attendance row with status
'leave' per date in the range; cancelling an approved leave deletes exactly those
rows again. The companion calendar event is best-effort in both directions.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func

from workforce_api.common.auth import Actor
from workforce_api.common.errors import (
    AuthorizationError, NotFoundError, StateConflictError, ValidationError,
)
from workforce_api.extensions import db
from workforce_api.models.attendance import Attendance
from workforce_api.models.employee import Employee
from workforce_api.models.leave import LeaveApprovalAction, LeavePolicy, LeaveRequest, LeaveType
from workforce_api.services import calendar_service

log = logging.getLogger(__name__)

HALF_DAY_SESSIONS = ("first_half", "second_half")


# ---------- rules ----------

def leave_days(start: date, end: date, is_half_day: bool = False) -> Decimal:
    if start > end:
        raise ValidationError("start_date cannot be after end_date")
    if is_half_day:
        if start != end:
            raise ValidationError("Half-day leave must be for a single date")
        return Decimal("0.5")
    return Decimal((end - start).days + 1)


def daterange(start: date, end: date):
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)


def effective_quota(emp: Employee, lt: LeaveType, year: int) -> Decimal:
    """Department policy for the year, then company-wide policy, then the leave type's default."""
    base = LeavePolicy.query.filter_by(leave_type_id=lt.id, year=year, is_active=True)
    pol = None
    if emp.department_id:
        pol = base.filter(LeavePolicy.department_id == emp.department_id).first()
    if pol is None:
        pol = base.filter(LeavePolicy.department_id.is_(None)).first()
    if pol is not None:
        return Decimal(pol.quota)
    return Decimal(lt.max_days_per_year or 0)


def days_taken(employee_id: int, leave_type_id: int, year: int, statuses=("approved",)) -> Decimal:
    total = (db.session.query(func.coalesce(func.sum(LeaveRequest.total_days), 0))
             .filter(LeaveRequest.employee_id == employee_id,
                     LeaveRequest.leave_type_id == leave_type_id,
                     LeaveRequest.status.in_(statuses),
                     LeaveRequest.start_date >= date(year, 1, 1),
                     LeaveRequest.start_date <= date(year, 12, 31))
             .scalar())
    return Decimal(str(total or 0))


def _get_leave(leave_id: int) -> LeaveRequest:
    lr = db.session.get(LeaveRequest, leave_id)
    if lr is None:
        raise NotFoundError("Leave request not found")
    return lr


def _can_decide(actor: Actor, lr: LeaveRequest) -> bool:
    """HR/Admin decide any leave; otherwise only the employee's reporting manager."""
    if actor.is_hr:
        return True
    return actor.employee_id is not None and lr.employee.manager_id == actor.employee_id


def _audit(lr: LeaveRequest, actor: Actor, action: str, comment: str | None = None):
    db.session.add(LeaveApprovalAction(
        leave_request_id=lr.id, actor_user_id=actor.user_id, action=action, comment=comment,
    ))


# ---------- operations ----------

def apply_leave(actor: Actor, *, leave_type_id: int, start: date, end: date, reason: str,
                employee_id: int | None = None, is_half_day: bool = False,
                half_day_session: str | None = None) -> LeaveRequest:
    employee_id = employee_id or actor.employee_id
    if employee_id is None:
        raise ValidationError("employee_id is required")
    if employee_id != actor.employee_id and not actor.can("leave.request.approve"):
        raise AuthorizationError("You can only apply leave for yourself")

    emp = db.session.get(Employee, employee_id)
    if emp is None:
        raise NotFoundError("Employee not found")
    lt = db.session.get(LeaveType, leave_type_id)
    if lt is None or not lt.is_active:
        raise NotFoundError("Leave type not found")
    if not (reason or "").strip():
        raise ValidationError("reason is required")

    total = leave_days(start, end, is_half_day)
    if is_half_day:
        if not lt.allow_half_day:
            raise ValidationError(f"Half day is not allowed for {lt.name}")
        if half_day_session and half_day_session not in HALF_DAY_SESSIONS:
            raise ValidationError("half_day_session must be first_half or second_half")

    overlap = (LeaveRequest.query
               .filter(LeaveRequest.employee_id == emp.id,
                       LeaveRequest.status.in_(("pending", "approved")),
                       LeaveRequest.start_date <= end,
                       LeaveRequest.end_date >= start)
               .first())
    if overlap is not None:
        raise StateConflictError("Leave overlaps an existing pending or approved request", code="overlap")

    if lt.is_paid:
        quota = effective_quota(emp, lt, start.year)
        available = quota - days_taken(emp.id, lt.id, start.year)
        if total > available:
            raise ValidationError(
                f"Insufficient {lt.name} balance: requested {total}, available {available}",
                code="insufficient_balance",
            )

    lr = LeaveRequest(
        employee_id=emp.id,
        leave_type_id=lt.id,
        start_date=start,
        end_date=end,
        is_half_day=bool(is_half_day),
        half_day_session=half_day_session if is_half_day else None,
        total_days=total,
        reason=reason.strip(),
        status="pending",
        applied_by_user_id=actor.user_id,
    )
    db.session.add(lr)
    db.session.flush()
    _audit(lr, actor, "apply")
    db.session.commit()
    return lr


def approve(actor: Actor, leave_id: int, comment: str | None = None) -> LeaveRequest:
    lr = _get_leave(leave_id)
    if not _can_decide(actor, lr):
        raise AuthorizationError("Only HR or the reporting manager can approve this leave")
    if lr.status != "pending":
        raise StateConflictError(f"Leave is {lr.status}; only pending leave can be approved", code="invalid_state")

    lr.status = "approved"
    lr.approved_by_user_id = actor.user_id
    lr.approved_at = datetime.utcnow()

    if lr.leave_type.affects_attendance:
        for d in daterange(lr.start_date, lr.end_date):
            rec = Attendance.query.filter_by(employee_id=lr.employee_id, work_date=d).first()
            if rec is None:
                rec = Attendance(employee_id=lr.employee_id, work_date=d, marked_by_user_id=actor.user_id)
                db.session.add(rec)
            rec.status = "leave"
            rec.remarks = f"Leave: {lr.leave_type.code}"
            rec.updated_by_user_id = actor.user_id

    _audit(lr, actor, "approve", comment)
    db.session.commit()

    try:
        ev = calendar_service.create_leave_event(lr, created_by_user_id=actor.user_id)
        lr.calendar_event_id = ev.id
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        log.warning("Calendar event for leave %s could not be created: %s", lr.id, e)
    return lr


def reject(actor: Actor, leave_id: int, reason: str) -> LeaveRequest:
    lr = _get_leave(leave_id)
    if not _can_decide(actor, lr):
        raise AuthorizationError("Only HR or the reporting manager can reject this leave")
    if not (reason or "").strip():
        raise ValidationError("A rejection reason is required")
    if lr.status != "pending":
        raise StateConflictError(f"Leave is {lr.status}; only pending leave can be rejected", code="invalid_state")

    lr.status = "rejected"
    lr.rejection_reason = reason.strip()
    lr.approved_by_user_id = actor.user_id
    lr.approved_at = datetime.utcnow()
    _audit(lr, actor, "reject", lr.rejection_reason)
    db.session.commit()
    return lr


def cancel(actor: Actor, leave_id: int, reason: str | None = None, today: date | None = None) -> LeaveRequest:
    """
    Owners cancel their own pending leave. Approvers may also cancel an approved leave
    that has not started yet, which removes its 'leave' attendance rows.
    """
    lr = _get_leave(leave_id)
    today = today or date.today()
    is_owner = actor.employee_id is not None and lr.employee_id == actor.employee_id
    approver = _can_decide(actor, lr)
    if not (is_owner or approver):
        raise AuthorizationError("You cannot cancel this leave")

    if lr.status == "pending":
        pass
    elif lr.status == "approved":
        if not approver:
            raise StateConflictError("Approved leave can only be cancelled by HR or the reporting manager",
                                     code="invalid_state")
        if lr.start_date <= today:
            raise StateConflictError("Leave has already started and can no longer be cancelled",
                                     code="invalid_state")
    else:
        raise StateConflictError(f"Leave is already {lr.status}", code="invalid_state")

    was_approved = lr.status == "approved"
    if was_approved and lr.leave_type.affects_attendance:
        (Attendance.query
         .filter(Attendance.employee_id == lr.employee_id,
                 Attendance.work_date >= lr.start_date,
                 Attendance.work_date <= lr.end_date,
                 Attendance.status == "leave")
         .delete(synchronize_session=False))

    lr.status = "cancelled"
    lr.cancelled_at = datetime.utcnow()
    _audit(lr, actor, "cancel", reason)
    db.session.commit()

    if was_approved:
        try:
            calendar_service.delete_leave_event(lr)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            log.warning("Calendar event for leave %s could not be removed: %s", lr.id, e)
    return lr


def balance(actor: Actor, employee_id: Optional[int], year: int) -> list[dict]:
    employee_id = employee_id or actor.employee_id
    if employee_id is None:
        raise ValidationError("employee_id is required")
    if employee_id != actor.employee_id and not actor.can("leave.request.approve"):
        raise AuthorizationError("You can only view your own balance")
    emp = db.session.get(Employee, employee_id)
    if emp is None:
        raise NotFoundError("Employee not found")

    out = []
    for lt in LeaveType.query.filter_by(is_active=True).order_by(LeaveType.code.asc()).all():
        used = days_taken(emp.id, lt.id, year)
        pending = days_taken(emp.id, lt.id, year, statuses=("pending",))
        row = {
            "leave_type": {"id": lt.id, "code": lt.code, "name": lt.name, "is_paid": lt.is_paid},
            "year": year,
            "used": float(used),
            "pending": float(pending),
            "quota": None,
            "available": None,
        }
        if lt.is_paid:
            quota = effective_quota(emp, lt, year)
            row["quota"] = float(quota)
            row["available"] = float(quota - used)
        out.append(row)
    return out


def list_requests(actor: Actor, *, employee_id=None, status=None, mine=False):
    q = LeaveRequest.query
    if mine or not actor.can("leave.request.approve"):
        if actor.employee_id is None:
            raise AuthorizationError("No employee profile is linked to this user")
        q = q.filter(LeaveRequest.employee_id == actor.employee_id)
    elif not actor.is_hr:
        # managers see their direct reports (and themselves)
        reports = db.select(Employee.id).where(Employee.manager_id == actor.employee_id)
        q = q.filter((LeaveRequest.employee_id.in_(reports)) | (LeaveRequest.employee_id == actor.employee_id))
    if employee_id:
        q = q.filter(LeaveRequest.employee_id == employee_id)
    if status:
        q = q.filter(LeaveRequest.status == status)
    return q.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
