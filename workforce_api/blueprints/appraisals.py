# workforce_api/blueprints/appraisals.py
from flask import Blueprint, request

from workforce_api.common.auth import requires_perms, current_actor
from workforce_api.common.errors import ValidationError
from workforce_api.common.http import ok
from workforce_api.common.paging import body, parse_date
from workforce_api.services import appraisal_service as svc

bp = Blueprint("appraisals", __name__, url_prefix="/api/v1/appraisals")


# ---------- cycles ----------
@bp.get("/cycles")
@requires_perms("appraisal.read", "appraisal.manage")
def list_cycles():
    return ok([c.to_dict() for c in svc.list_cycles()])


@bp.post("/cycles")
@requires_perms("appraisal.manage")
def create_cycle():
    d = body()
    if not d.get("review_cycle_id"):
        raise ValidationError("review_cycle_id is required")
    c = svc.create_cycle(
        name=d.get("name") or "",
        review_cycle_id=int(d["review_cycle_id"]),
        effective_from=parse_date(d.get("effective_from"), "effective_from", required=True),
        status=d.get("status") or "Draft",
    )
    return ok(c.to_dict(), 201, message="Appraisal cycle created")


@bp.patch("/cycles/<int:cycle_id>")
@requires_perms("appraisal.manage")
def update_cycle(cycle_id: int):
    d = body()
    return ok(svc.update_cycle_status(cycle_id, d.get("status")).to_dict())


@bp.get("/cycles/<int:cycle_id>/eligible")
@requires_perms("appraisal.manage")
def eligible(cycle_id: int):
    return ok(svc.eligible_employees(cycle_id))


# ---------- records ----------
@bp.post("/records")
@requires_perms("appraisal.manage")
def propose():
    d = body()
    for k in ("employee_id", "appraisal_cycle_id", "increment_type", "increment_value"):
        if d.get(k) in (None, ""):
            raise ValidationError(f"{k} is required")
    rec = svc.propose_increment(
        current_actor(),
        employee_id=int(d["employee_id"]),
        appraisal_cycle_id=int(d["appraisal_cycle_id"]),
        increment_type=d["increment_type"],
        increment_value=d["increment_value"],
        new_designation_id=d.get("new_designation_id"),
        remarks=d.get("remarks"),
    )
    return ok(rec.to_dict(), 201, message="Appraisal proposed")


@bp.get("/records")
@requires_perms("appraisal.read", "appraisal.manage")
def list_records():
    rows = svc.list_records(
        appraisal_cycle_id=request.args.get("appraisal_cycle_id", type=int),
        status=request.args.get("status") or None,
    )
    return ok([r.to_dict() for r in rows])


@bp.post("/records/<int:record_id>/approve")
@requires_perms("appraisal.approve")
def approve(record_id: int):
    rec = svc.approve_appraisal(current_actor(), record_id)
    return ok(rec.to_dict(), message="Appraisal approved")


@bp.post("/records/<int:record_id>/reject")
@requires_perms("appraisal.approve")
def reject(record_id: int):
    d = body()
    rec = svc.reject_appraisal(current_actor(), record_id, d.get("remarks"))
    return ok(rec.to_dict(), message="Appraisal rejected")


@bp.get("/history")
@requires_perms("performance.reviews.read", "appraisal.read")
def history():
    rows = svc.history(current_actor(), request.args.get("employee_id", type=int))
    return ok([r.to_dict() for r in rows])
