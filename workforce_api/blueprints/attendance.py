# workforce_api/blueprints/attendance.py
from datetime import date

from flask import Blueprint, request

from workforce_api.common.auth import requires_perms, current_actor
from workforce_api.common.errors import ValidationError
from workforce_api.common.http import ok
from workforce_api.common.paging import body, page_limit, parse_date
from workforce_api.services import attendance_service as svc

bp = Blueprint("attendance", __name__, url_prefix="/api/v1/attendance")


@bp.post("/check-in")
@requires_perms("attendance.self")
def check_in():
    rec = svc.check_in(current_actor())
    return ok(rec.to_dict(), 201, message="Checked in")


@bp.post("/check-out")
@requires_perms("attendance.self")
def check_out():
    rec = svc.check_out(current_actor())
    return ok(rec.to_dict(), message="Checked out")


@bp.get("/today")
@requires_perms("attendance.self")
def today():
    actor = current_actor()
    emp = svc.get_employee(actor.employee_id)
    rec = svc.day_record(emp.id, svc.local_day(emp, svc.utcnow()))
    return ok(rec.to_dict() if rec else None)


@bp.post("/manual")
@requires_perms("attendance.manage")
def manual_entry():
    d = body()
    emp_id = d.get("employee_id")
    if not emp_id:
        raise ValidationError("employee_id is required")
    day = parse_date(d.get("date"), "date", required=True)
    fields = {k: d[k] for k in ("check_in", "check_out", "status", "remarks") if k in d}
    rec = svc.manual_entry(current_actor(), int(emp_id), day, fields)
    return ok(rec.to_dict(), message="Attendance saved")


@bp.post("/bulk")
@requires_perms("attendance.manage")
def bulk_mark():
    d = body()
    day = parse_date(d.get("date"), "date", required=True)
    if not d.get("status"):
        raise ValidationError("status is required")
    res = svc.bulk_mark(current_actor(), d.get("employee_ids") or [], day, d["status"], d.get("remarks"))
    return ok({
        "updated": [r.to_dict() for r in res["updated"]],
        "errors": res["errors"],
    }, message=f"{len(res['updated'])} marked, {len(res['errors'])} failed")


@bp.post("/lock")
@requires_perms("attendance.manage")
def toggle_lock():
    d = body()
    day = parse_date(d.get("date"), "date", required=True)
    if "locked" not in d:
        raise ValidationError("locked is required")
    count = svc.toggle_lock(current_actor(), day, bool(d["locked"]), d.get("employee_ids"))
    return ok({"date": day.isoformat(), "locked": bool(d["locked"]), "records": count})


@bp.get("")
@requires_perms("attendance.self", "attendance.read")
def list_attendance():
    page, size = page_limit()
    res = svc.query(
        current_actor(),
        employee_id=request.args.get("employee_id", type=int),
        department_id=request.args.get("department_id", type=int),
        start=parse_date(request.args.get("start"), "start"),
        end=parse_date(request.args.get("end"), "end"),
        status=request.args.get("status") or None,
        page=page,
        size=size,
    )
    return ok([r.to_dict() for r in res["items"]], summary=res["summary"],
              page=page, size=size, total=res["total"])


@bp.get("/reports/monthly")
@requires_perms("attendance.read")
def monthly_report():
    today_ = date.today()
    month = request.args.get("month", type=int) or today_.month
    year = request.args.get("year", type=int) or today_.year
    rows = svc.monthly_report(month, year, request.args.get("department_id", type=int))
    return ok(rows, month=month, year=year)
