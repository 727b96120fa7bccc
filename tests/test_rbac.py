from workforce_api import seed_demo, seed_rbac
from workforce_api.common.auth import Actor
from workforce_api.extensions import db
from workforce_api.models.employee import Employee
from workforce_api.models.security import Role, RolePermission
from workforce_api.services.salary_service import get_active_structure


def test_wildcard_permissions():
    actor = Actor(user_id=1, roles=frozenset({"manager"}), permissions=frozenset({"payroll.*"}))
    assert actor.can("payroll.run")
    assert not actor.can("attendance.read")
    assert not actor.is_hr


def test_admin_passes_every_check():
    actor = Actor(user_id=1, roles=frozenset({"admin"}))
    assert actor.can("anything.at.all")
    assert actor.has_role("hr")


def test_seed_is_idempotent_and_keeps_edited_grants(app):
    manager = Role.query.filter_by(code="manager").first()
    before = manager.permission_codes()
    assert "leave.request.approve" in before
    assert "payroll.run" not in before

    RolePermission.query.filter_by(role_id=manager.id).delete()
    db.session.commit()

    seed_rbac.run()
    assert Role.query.filter_by(code="manager").count() == 1
    assert manager.permission_codes() == set()


def test_role_defaults_come_from_config(app):
    app.config["RBAC_ROLE_PERMISSIONS"] = {"auditor": ["payroll.view"]}
    role = seed_rbac.define_role("auditor", "Auditor")
    db.session.commit()
    assert role.permission_codes() == {"payroll.view"}


def test_seed_demo_builds_team_once(app):
    assert seed_demo.run(password="pw")["employees_created"] == 4
    assert seed_demo.run(password="pw")["employees_created"] == 0

    karan = Employee.query.filter_by(code="E004").first()
    assert karan.manager.code == "E003"
    assert get_active_structure(karan.id).monthly_ctc() == karan.salary
