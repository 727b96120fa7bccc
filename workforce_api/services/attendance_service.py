# workforce_api/services/attendance_service.py
"""
Attendance ledger: one row per (employee, local calendar day).

Timestamps are stored as naive UTC. The calendar day a punch belongs to is the
date at the employee's location timezone, so an employee in Asia/Kolkata who
checks in at 20:00 UTC is already on the next day's row.
"""
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, time as _time, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from workforce_api.common.auth import Actor
from workforce_api.common.errors import (
    AuthorizationError, NotFoundError, StateConflictError, ValidationError,
)
from workforce_api.extensions import db
from workforce_api.models.attendance import Attendance, ATTENDANCE_STATUSES
from workforce_api.models.employee import Employee

log = logging.getLogger(__name__)

FULL_DAY_HOURS = Decimal("8")
HALF_DAY_HOURS = Decimal("4")


# ---------- time helpers ----------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def location_tz(emp: Employee) -> ZoneInfo:
    """Timezone of the employee's location, else DEFAULT_TIMEZONE, else UTC."""
    candidates = []
    if emp.location is not None and emp.location.timezone:
        candidates.append(emp.location.timezone)
    candidates.append(current_app.config.get("DEFAULT_TIMEZONE") or "UTC")
    for name in candidates:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            log.warning("Unknown timezone %r for employee %s; falling back", name, emp.code)
    return ZoneInfo("UTC")


def local_day(emp: Employee, at: datetime) -> date:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(location_tz(emp)).date()


def _naive_utc(at: datetime) -> datetime:
    if at.tzinfo is None:
        return at
    return at.astimezone(timezone.utc).replace(tzinfo=None)


def parse_punch(emp: Employee, day: date, value) -> Optional[datetime]:
    """
    Accepts "HH:MM" (local wall time on ``day``), an ISO datetime with offset, or a naive
    ISO datetime (local wall time). Returns naive UTC.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value).strip()
        try:
            if len(raw) <= 8 and ":" in raw:
                dt = datetime.combine(day, _time.fromisoformat(raw))
            else:
                dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid time value: {raw!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=location_tz(emp))
    return _naive_utc(dt)


def compute_worked_hours(check_in: datetime, check_out: datetime) -> Decimal:
    seconds = (check_out - check_in).total_seconds()
    if seconds < 0:
        raise ValidationError("check_out must be after check_in")
    return (Decimal(str(seconds)) / Decimal(3600)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def classify(hours: Decimal) -> str:
    if hours >= FULL_DAY_HOURS:
        return "present"
    if hours >= HALF_DAY_HOURS:
        return "half_day"
    return "absent"


# ---------- lookups ----------

def get_employee(employee_id) -> Employee:
    emp = db.session.get(Employee, employee_id) if employee_id else None
    if emp is None:
        raise NotFoundError("Employee not found")
    return emp


def _self_employee(actor: Actor) -> Employee:
    if actor.employee_id is None:
        raise AuthorizationError("No employee profile is linked to this user")
    return get_employee(actor.employee_id)


def day_record(employee_id: int, day: date) -> Optional[Attendance]:
    return Attendance.query.filter_by(employee_id=employee_id, work_date=day).first()


def _ensure_unlocked(rec: Optional[Attendance]):
    if rec is not None and rec.is_locked:
        raise StateConflictError(
            f"Attendance for {rec.work_date.isoformat()} is locked", code="locked"
        )


# ---------- self service ----------

def check_in(actor: Actor, now: datetime | None = None) -> Attendance:
    emp = _self_employee(actor)
    now = now or utcnow()
    day = local_day(emp, now)

    rec = day_record(emp.id, day)
    if rec is not None and rec.check_in_at is not None:
        raise StateConflictError("Already checked in today", code="already_checked_in")
    _ensure_unlocked(rec)

    if rec is None:
        rec = Attendance(employee_id=emp.id, work_date=day, marked_by_user_id=actor.user_id)
        db.session.add(rec)
    rec.check_in_at = _naive_utc(now)
    rec.status = "present"
    rec.updated_by_user_id = actor.user_id
    try:
        db.session.commit()
    except IntegrityError:
        # a concurrent check-in won the unique (employee, date) race
        db.session.rollback()
        raise StateConflictError("Already checked in today", code="already_checked_in")
    return rec


def check_out(actor: Actor, now: datetime | None = None) -> Attendance:
    emp = _self_employee(actor)
    now = now or utcnow()
    day = local_day(emp, now)

    rec = day_record(emp.id, day)
    if rec is None or rec.check_in_at is None:
        raise StateConflictError("You have not checked in today", code="not_checked_in")
    if rec.check_out_at is not None:
        raise StateConflictError("Already checked out today", code="already_checked_out")
    _ensure_unlocked(rec)

    rec.check_out_at = _naive_utc(now)
    rec.worked_hours = compute_worked_hours(rec.check_in_at, rec.check_out_at)
    rec.status = classify(rec.worked_hours)
    rec.updated_by_user_id = actor.user_id
    db.session.commit()
    return rec


# ---------- admin / hr ----------

def _validate_status(status):
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(ATTENDANCE_STATUSES)}")


def manual_entry(actor: Actor, employee_id: int, day: date, fields: dict) -> Attendance:
    """
    Upsert a day's attendance. Worked hours are always recomputed when both times are
    present; an explicit status is kept as given, otherwise it is derived from the hours.
    """
    emp = get_employee(employee_id)
    status = fields.get("status")
    if status is not None:
        _validate_status(status)

    rec = day_record(emp.id, day)
    _ensure_unlocked(rec)
    if rec is None:
        if status is None and not (fields.get("check_in") and fields.get("check_out")):
            raise ValidationError("status is required when check_in/check_out are not both given")
        rec = Attendance(employee_id=emp.id, work_date=day, marked_by_user_id=actor.user_id)
        db.session.add(rec)

    if "check_in" in fields:
        rec.check_in_at = parse_punch(emp, day, fields.get("check_in"))
    if "check_out" in fields:
        rec.check_out_at = parse_punch(emp, day, fields.get("check_out"))

    if rec.check_in_at is not None and rec.check_out_at is not None:
        rec.worked_hours = compute_worked_hours(rec.check_in_at, rec.check_out_at)
        rec.status = status or classify(rec.worked_hours)
    else:
        rec.worked_hours = Decimal("0")
        if status is not None:
            rec.status = status

    if "remarks" in fields:
        rec.remarks = fields.get("remarks")
    rec.updated_by_user_id = actor.user_id
    db.session.commit()
    return rec


def bulk_mark(actor: Actor, employee_ids: Iterable[int], day: date, status: str, remarks: str | None = None) -> dict:
    """Mark many employees for one day; per-employee failures are collected, not raised."""
    _validate_status(status)
    employee_ids = list(dict.fromkeys(employee_ids or []))
    if not employee_ids:
        raise ValidationError("employee_ids is required")

    updated, errors = [], []
    for eid in employee_ids:
        try:
            emp = get_employee(eid)
            rec = day_record(emp.id, day)
            _ensure_unlocked(rec)
            if rec is None:
                rec = Attendance(employee_id=emp.id, work_date=day, marked_by_user_id=actor.user_id)
                db.session.add(rec)
            rec.status = status
            if rec.check_in_at is not None and rec.check_out_at is not None:
                rec.worked_hours = compute_worked_hours(rec.check_in_at, rec.check_out_at)
            if remarks is not None:
                rec.remarks = remarks
            rec.updated_by_user_id = actor.user_id
            db.session.commit()
            updated.append(rec)
        except (NotFoundError, StateConflictError, ValidationError) as e:
            db.session.rollback()
            errors.append({"employee_id": eid, "message": e.message})
        except IntegrityError as e:
            db.session.rollback()
            log.warning("bulk_mark: employee %s on %s failed: %s", eid, day, e)
            errors.append({"employee_id": eid, "message": "Attendance already recorded concurrently"})
    return {"updated": updated, "errors": errors}


def toggle_lock(actor: Actor, day: date, locked: bool, employee_ids: Iterable[int] | None = None) -> int:
    q = Attendance.query.filter(Attendance.work_date == day)
    if employee_ids:
        q = q.filter(Attendance.employee_id.in_(list(employee_ids)))
    count = q.update(
        {"is_locked": bool(locked), "updated_by_user_id": actor.user_id},
        synchronize_session=False,
    )
    db.session.commit()
    log.info("attendance %s for %s (%d rows) by user %s",
             "locked" if locked else "unlocked", day, count, actor.user_id)
    return count


# ---------- reads ----------

def _filtered(employee_id=None, department_id=None, start=None, end=None, status=None):
    q = Attendance.query
    if employee_id:
        q = q.filter(Attendance.employee_id == employee_id)
    if department_id:
        q = q.join(Employee, Employee.id == Attendance.employee_id).filter(Employee.department_id == department_id)
    if start:
        q = q.filter(Attendance.work_date >= start)
    if end:
        q = q.filter(Attendance.work_date <= end)
    if status:
        _validate_status(status)
        q = q.filter(Attendance.status == status)
    return q


def summarize(counts: dict) -> dict:
    total = sum(counts.values())
    present = counts.get("present", 0)
    half = counts.get("half_day", 0)
    pct = round((present + half * 0.5) / total * 100, 2) if total else 0.0
    return {
        "total": total,
        "present": present,
        "half_day": half,
        "absent": counts.get("absent", 0),
        "leave": counts.get("leave", 0),
        "holiday": counts.get("holiday", 0),
        "attendance_percentage": pct,
    }


def query(actor: Actor, *, employee_id=None, department_id=None, start=None, end=None,
          status=None, page=1, size=20) -> dict:
    """Records plus a status summary. Callers without attendance.read only see themselves."""
    if start and end and start > end:
        raise ValidationError("start must be on or before end")
    if not actor.can("attendance.read"):
        if actor.employee_id is None:
            raise AuthorizationError("No employee profile is linked to this user")
        employee_id, department_id = actor.employee_id, None

    q = _filtered(employee_id, department_id, start, end, status)
    total = q.order_by(None).count()
    items = (q.order_by(Attendance.work_date.desc(), Attendance.employee_id.asc())
             .offset((page - 1) * size).limit(size).all())

    counts = dict(
        _filtered(employee_id, department_id, start, end, status)
        .with_entities(Attendance.status, func.count(Attendance.id))
        .group_by(Attendance.status)
        .all()
    )
    return {"items": items, "total": total, "summary": summarize(counts)}


def month_bounds(month: int, year: int) -> tuple[date, date]:
    if not (1 <= int(month) <= 12):
        raise ValidationError("month must be between 1 and 12")
    last = calendar.monthrange(int(year), int(month))[1]
    return date(int(year), int(month), 1), date(int(year), int(month), last)


def monthly_report(month: int, year: int, department_id: int | None = None) -> list[dict]:
    start, end = month_bounds(month, year)
    emps = Employee.query.filter(Employee.status == "active")
    if department_id:
        emps = emps.filter(Employee.department_id == department_id)
    emps = emps.order_by(Employee.code.asc()).all()

    rows = (_filtered(None, department_id, start, end)
            .with_entities(Attendance.employee_id, Attendance.status,
                           func.count(Attendance.id), func.coalesce(func.sum(Attendance.worked_hours), 0))
            .group_by(Attendance.employee_id, Attendance.status)
            .all())
    by_emp: dict[int, dict] = {}
    hours: dict[int, float] = {}
    for emp_id, st, n, h in rows:
        by_emp.setdefault(emp_id, {})[st] = n
        hours[emp_id] = hours.get(emp_id, 0.0) + float(h or 0)

    out = []
    for e in emps:
        summary = summarize(by_emp.get(e.id, {}))
        summary.update({
            "employee_id": e.id,
            "employee_code": e.code,
            "employee_name": e.full_name,
            "department": e.department.name if e.department else None,
            "worked_hours": round(hours.get(e.id, 0.0), 2),
        })
        out.append(summary)
    return out
