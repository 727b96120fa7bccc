# workforce_api/blueprints/payroll.py
from datetime import date

from flask import Blueprint, request

from workforce_api.common.auth import requires_perms, current_actor
from workforce_api.common.errors import AuthorizationError, ValidationError
from workforce_api.common.http import ok
from workforce_api.common.paging import body, page_limit, paginate, parse_date
from workforce_api.extensions import db
from workforce_api.services import payroll_engine, salary_service
from workforce_api.services.employee_service import get_employee

bp = Blueprint("payroll", __name__, url_prefix="/api/v1/payroll")


def _month_year(d):
    try:
        return int(d.get("month")), int(d.get("year"))
    except (TypeError, ValueError):
        raise ValidationError("month and year are required")


@bp.post("/generate")
@requires_perms("payroll.run")
def generate():
    d = body()
    month, year = _month_year(d)
    res = payroll_engine.generate(
        current_actor(), month, year,
        employee_id=d.get("employee_id"),
        department_id=d.get("department_id"),
    )
    return ok({
        "generated": [p.to_dict() for p in res["generated"]],
        "errors": res["errors"],
        "summary": res["summary"],
    }, 201 if res["generated"] else 200,
        message=f"Payroll generated for {len(res['generated'])} employee(s)")


@bp.get("")
@requires_perms("payroll.view")
def list_payrolls():
    month, year = _month_year(request.args)
    page, size = page_limit()
    q = payroll_engine.list_payrolls(
        month, year,
        status=request.args.get("status") or None,
        department_id=request.args.get("department_id", type=int),
    )
    items, total = paginate(q, page, size)
    return ok([p.to_dict() for p in items], page=page, size=size, total=total)


@bp.get("/payslip/<int:employee_id>/<int:month>/<int:year>")
@requires_perms("attendance.self", "payroll.view")
def payslip(employee_id: int, month: int, year: int):
    p = payroll_engine.get_payslip(current_actor(), employee_id, month, year)
    return ok(p.to_dict())


@bp.get("/my-payslips")
@requires_perms("attendance.self")
def my_payslips():
    return ok([p.to_dict() for p in payroll_engine.my_payslips(current_actor())])


@bp.post("/<int:payroll_id>/approve")
@requires_perms("payroll.approve")
def approve(payroll_id: int):
    p = payroll_engine.approve(current_actor(), payroll_id)
    return ok(p.to_dict(), message="Payroll approved")


@bp.post("/<int:payroll_id>/lock")
@requires_perms("payroll.approve")
def lock(payroll_id: int):
    p = payroll_engine.lock(current_actor(), payroll_id)
    return ok(p.to_dict(), message="Payroll locked")


@bp.post("/approve-all")
@requires_perms("payroll.approve")
def approve_all():
    d = body()
    month, year = _month_year(d)
    n = payroll_engine.approve_many(current_actor(), month, year, d.get("department_id"))
    return ok({"approved": n})


@bp.get("/reports/departments")
@requires_perms("payroll.view")
def department_report():
    month, year = _month_year(request.args)
    return ok(payroll_engine.department_summary(month, year), month=month, year=year)


# ---------- Salary structures ----------
@bp.get("/structures/<int:employee_id>")
@requires_perms("attendance.self", "payroll.view")
def get_structures(employee_id: int):
    actor = current_actor()
    if employee_id != actor.employee_id and not actor.can("payroll.view"):
        raise AuthorizationError("You can only view your own salary structure")
    get_employee(employee_id)
    history = salary_service.structure_history(employee_id)
    active = next((s for s in history if s.is_active), None)
    return ok({
        "active": active.to_dict() if active else None,
        "history": [s.to_dict() for s in history],
    })


@bp.post("/structures/<int:employee_id>")
@requires_perms("payroll.structure.manage")
def create_structure(employee_id: int):
    d = body()
    emp = get_employee(employee_id)
    ss = salary_service.rotate_structure(
        emp,
        basic_salary=d.get("basic_salary"),
        hra=d.get("hra"),
        allowances=d.get("allowances"),
        deductions=d.get("deductions"),
        effective_from=parse_date(d.get("effective_from"), "effective_from") or date.today(),
        created_by_user_id=current_actor().user_id,
    )
    db.session.commit()
    return ok(ss.to_dict(), 201, message="Salary structure saved")
