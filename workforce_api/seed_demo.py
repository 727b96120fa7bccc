# workforce_api/seed_demo.py
from datetime import date

from workforce_api.extensions import db
from workforce_api.models.employee import Employee
from workforce_api.models.leave import LeaveType
from workforce_api.models.master import Department, Designation, Location
from workforce_api.models.security import Role, UserRole
from workforce_api.models.user import User
from workforce_api import seed_rbac
from workforce_api.services.salary_service import rotate_structure, split_ctc

LEAVE_TYPES = [
    # code, name, is_paid, max_days, half_day, affects_attendance
    ("CL", "Casual Leave", True, 12, True, True),
    ("SL", "Sick Leave", True, 10, True, True),
    ("EL", "Earned Leave", True, 15, False, True),
    ("LWP", "Leave Without Pay", False, 0, True, True),
]

TEAM = [
    # code, email, first, last, role, designation, ctc, manager code
    ("E001", "admin@workforce.local", "Asha", "Admin", "admin", "HR Manager", 120000, None),
    ("E002", "hr@workforce.local", "Ravi", "Menon", "hr", "HR Executive", 60000, "E001"),
    ("E003", "manager@workforce.local", "Nina", "Shah", "manager", "Engineering Manager", 150000, "E001"),
    ("E004", "employee@workforce.local", "Karan", "Iyer", "employee", "Software Engineer", 50000, "E003"),
]


def _get_or_create(model, defaults=None, **kw):
    obj = model.query.filter_by(**kw).first()
    if obj is None:
        obj = model(**kw, **(defaults or {}))
        db.session.add(obj)
        db.session.flush()
    return obj


def run(password: str = "changeme"):
    seed_rbac.run()

    site = _get_or_create(Location, name="Head Office", defaults={"timezone": "Asia/Kolkata"})
    dept = _get_or_create(Department, name="Engineering", defaults={"code": "ENG"})
    hr_dept = _get_or_create(Department, name="Human Resources", defaults={"code": "HR"})

    for code, name, paid, max_days, half, affects in LEAVE_TYPES:
        _get_or_create(LeaveType, code=code, defaults={
            "name": name, "is_paid": paid, "max_days_per_year": max_days,
            "allow_half_day": half, "affects_attendance": affects,
        })

    created = 0
    by_code = {}
    for code, email, first, last, role_code, title, ctc, mgr in TEAM:
        emp = Employee.query.filter_by(code=code).first()
        if emp is None:
            desig = _get_or_create(Designation, title=title)
            user = User(email=email, full_name=f"{first} {last}", status="active")
            user.set_password(password)
            db.session.add(user)
            db.session.flush()
            role = Role.query.filter_by(code=role_code).first()
            db.session.add(UserRole(user_id=user.id, role_id=role.id))
            emp = Employee(
                code=code, email=email, first_name=first, last_name=last,
                location_id=site.id,
                department_id=hr_dept.id if role_code in ("admin", "hr") else dept.id,
                designation_id=desig.id,
                manager_id=by_code[mgr].id if mgr else None,
                user_id=user.id,
                doj=date(date.today().year, 1, 1),
            )
            db.session.add(emp)
            db.session.flush()
            rotate_structure(emp, effective_from=emp.doj, **split_ctc(ctc))
            created += 1
        by_code[code] = emp

    db.session.commit()
    return {"ok": True, "employees_created": created}
