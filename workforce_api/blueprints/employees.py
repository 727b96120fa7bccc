# workforce_api/blueprints/employees.py
from flask import Blueprint, request

from workforce_api.common.auth import requires_perms, current_actor
from workforce_api.common.errors import NotFoundError
from workforce_api.common.http import ok
from workforce_api.common.paging import body, page_limit, paginate, parse_date
from workforce_api.services import employee_service as svc

bp = Blueprint("employees", __name__, url_prefix="/api/v1/employees")


def _payload():
    d = dict(body())
    if "doj" in d:
        d["doj"] = parse_date(d["doj"], "doj")
    return d


@bp.get("")
@requires_perms("employee.read")
def list_employees():
    page, size = page_limit()
    q = svc.list_employees(
        q=(request.args.get("q") or "").strip() or None,
        department_id=request.args.get("department_id", type=int),
        status=request.args.get("status") or None,
        manager_id=request.args.get("manager_id", type=int),
    )
    items, total = paginate(q, page, size)
    return ok([e.to_dict() for e in items], page=page, size=size, total=total)


@bp.get("/me")
@requires_perms("attendance.self", "employee.read")
def me():
    actor = current_actor()
    if actor.employee_id is None:
        raise NotFoundError("No employee profile is linked to this user")
    return ok(svc.get_employee(actor.employee_id).to_dict())


@bp.get("/<int:employee_id>")
@requires_perms("employee.read")
def get_employee(employee_id: int):
    return ok(svc.get_employee(employee_id).to_dict())


@bp.post("")
@requires_perms("employee.create")
def create_employee():
    emp = svc.create_employee(current_actor(), _payload())
    return ok(emp.to_dict(), 201, message="Employee created")


@bp.patch("/<int:employee_id>")
@requires_perms("employee.update")
def update_employee(employee_id: int):
    emp = svc.update_employee(current_actor(), employee_id, _payload())
    return ok(emp.to_dict(), message="Employee updated")


@bp.delete("/<int:employee_id>")
@requires_perms("employee.delete")
def delete_employee(employee_id: int):
    svc.delete_employee(current_actor(), employee_id)
    return ok({"deleted": employee_id}, message="Employee deleted")
