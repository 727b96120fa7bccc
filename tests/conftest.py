import os
from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from workforce_api import create_app, seed_rbac
from workforce_api.common.auth import actor_for_user
from workforce_api.extensions import db
from workforce_api.models.employee import Employee
from workforce_api.models.leave import LeaveType
from workforce_api.models.security import Role, UserRole
from workforce_api.models.user import User


@pytest.fixture(scope="function")
def app():
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    app = create_app()
    app.config["TESTING"] = True
    with app.app_context():
        db.create_all()
        seed_rbac.run()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_employee(app):
    """Employee + login user holding one role. Returns the committed Employee."""
    seq = {"n": 0}

    def _make(role="employee", *, manager=None, department=None, location=None, **kw):
        seq["n"] += 1
        n = seq["n"]
        user = User(email=f"user{n}@example.test", full_name=f"User {n}", status="active")
        user.set_password("secret")
        db.session.add(user)
        db.session.flush()
        if role:
            r = Role.query.filter_by(code=role).first()
            db.session.add(UserRole(user_id=user.id, role_id=r.id))

        fields = dict(
            code=f"E{n:03d}",
            email=f"emp{n}@example.test",
            first_name="Emp",
            last_name=str(n),
            doj=date(2024, 1, 1),
            user_id=user.id,
            manager_id=manager.id if manager is not None else None,
            department_id=department.id if department is not None else None,
            location_id=location.id if location is not None else None,
        )
        fields.update(kw)
        emp = Employee(**fields)
        db.session.add(emp)
        db.session.commit()
        return emp

    return _make


@pytest.fixture
def actor_of(app):
    def _actor(emp):
        return actor_for_user(db.session.get(User, emp.user_id))
    return _actor


@pytest.fixture
def auth_headers(app):
    def _headers(emp):
        token = create_access_token(identity=str(emp.user_id))
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def leave_types(app):
    cl = LeaveType(code="CL", name="Casual Leave", is_paid=True, max_days_per_year=12)
    lwp = LeaveType(code="LWP", name="Leave Without Pay", is_paid=False, max_days_per_year=0)
    db.session.add_all([cl, lwp]); db.session.commit()
    return {"CL": cl, "LWP": lwp}
