# workforce_api/services/employee_service.py
from __future__ import annotations

from datetime import date

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from workforce_api.common.auth import Actor
from workforce_api.common.errors import DuplicateError, NotFoundError, ValidationError
from workforce_api.extensions import db
from workforce_api.models.employee import Employee, EMPLOYEE_STATUSES
from workforce_api.models.master import Department, Designation, Location
from workforce_api.models.security import Role, UserRole
from workforce_api.models.user import User
from workforce_api.services.salary_service import rotate_structure, split_ctc, to_money

_REFS = {
    "department_id": (Department, "Department"),
    "designation_id": (Designation, "Designation"),
    "location_id": (Location, "Location"),
    "manager_id": (Employee, "Manager"),
}
_PLAIN = ("first_name", "last_name", "phone", "doj", "employment_type", "is_pf_eligible", "is_esi_eligible")


def get_employee(employee_id: int) -> Employee:
    emp = db.session.get(Employee, employee_id)
    if emp is None:
        raise NotFoundError("Employee not found")
    return emp


def _apply(emp: Employee, data: dict):
    for key, (model, label) in _REFS.items():
        if key in data:
            ref_id = data.get(key)
            if ref_id is not None:
                ref = db.session.get(model, ref_id)
                if ref is None or getattr(ref, "is_active", True) is False:
                    raise ValidationError(f"{label} {ref_id} does not exist or is inactive")
                if key == "manager_id" and emp.id is not None and ref_id == emp.id:
                    raise ValidationError("An employee cannot be their own manager")
            setattr(emp, key, ref_id)
    for key in _PLAIN:
        if key in data:
            setattr(emp, key, data[key])
    if "email" in data:
        email = (data.get("email") or "").strip().lower()
        if "@" not in email:
            raise ValidationError("A valid email is required")
        emp.email = email
    if "status" in data:
        if data["status"] not in EMPLOYEE_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(EMPLOYEE_STATUSES)}")
        emp.status = data["status"]
    if "tax_deduction" in data:
        emp.tax_deduction = to_money(data.get("tax_deduction"))


def _attach_login(emp: Employee, password: str, roles):
    user = User(email=emp.email, full_name=emp.full_name, status="active")
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    for code in roles or ["employee"]:
        role = Role.query.filter_by(code=code).first()
        if role is None:
            raise ValidationError(f"Unknown role {code!r}")
        db.session.add(UserRole(user_id=user.id, role_id=role.id))
    emp.user_id = user.id


def create_employee(actor: Actor, data: dict) -> Employee:
    for k in ("code", "email", "first_name"):
        if not (data.get(k) or "").strip():
            raise ValidationError(f"{k} is required")
    emp = Employee(code=data["code"].strip(), status="active")
    _apply(emp, data)
    db.session.add(emp)
    try:
        db.session.flush()
        if data.get("password"):
            _attach_login(emp, data["password"], data.get("roles"))
        salary = to_money(data.get("salary"))
        if salary > 0:
            parts = split_ctc(salary)
            rotate_structure(emp, effective_from=emp.doj or date.today(),
                             created_by_user_id=actor.user_id, **parts)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError("An employee or user with this code or email already exists")
    return emp


def update_employee(actor: Actor, employee_id: int, data: dict) -> Employee:
    emp = get_employee(employee_id)
    if "salary" in data:
        raise ValidationError("Salary changes go through salary structures or appraisals")
    _apply(emp, data)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError("Another employee already uses this email")
    return emp


def delete_employee(actor: Actor, employee_id: int):
    """Hard delete of the employee and the linked login; dependent rows cascade."""
    emp = get_employee(employee_id)
    user = emp.user
    Employee.query.filter_by(manager_id=emp.id).update({"manager_id": None}, synchronize_session=False)
    db.session.delete(emp)
    if user is not None:
        db.session.delete(user)
    db.session.commit()


def list_employees(*, q=None, department_id=None, status=None, manager_id=None):
    query = Employee.query
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Employee.code.ilike(like), Employee.first_name.ilike(like),
                                 Employee.last_name.ilike(like), Employee.email.ilike(like)))
    if department_id:
        query = query.filter(Employee.department_id == department_id)
    if status:
        query = query.filter(Employee.status == status)
    if manager_id:
        query = query.filter(Employee.manager_id == manager_id)
    return query.order_by(Employee.code.asc())
