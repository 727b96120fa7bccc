from datetime import date
from decimal import Decimal

import pytest

from workforce_api.common.errors import AuthorizationError, StateConflictError, ValidationError
from workforce_api.extensions import db
from workforce_api.models.attendance import Attendance
from workforce_api.models.calendar import CalendarEvent
from workforce_api.models.leave import LeavePolicy, LeaveType
from workforce_api.models.master import Department
from workforce_api.services import calendar_service
from workforce_api.services import leave_service as svc


@pytest.fixture
def team(make_employee):
    manager = make_employee("manager")
    emp = make_employee(manager=manager)
    return manager, emp


def _apply(actor, lt, start, end, **kw):
    kw.setdefault("reason", "family function")
    return svc.apply_leave(actor, leave_type_id=lt.id, start=start, end=end, **kw)


def test_leave_days():
    assert svc.leave_days(date(2025, 5, 5), date(2025, 5, 7)) == Decimal(3)
    assert svc.leave_days(date(2025, 5, 5), date(2025, 5, 5), True) == Decimal("0.5")
    with pytest.raises(ValidationError):
        svc.leave_days(date(2025, 5, 5), date(2025, 5, 6), True)
    with pytest.raises(ValidationError):
        svc.leave_days(date(2025, 5, 7), date(2025, 5, 5))


def test_apply_requires_reason(team, actor_of, leave_types):
    _, emp = team
    with pytest.raises(ValidationError):
        _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 5), reason="  ")


def test_apply_computes_total_days(team, actor_of, leave_types):
    _, emp = team
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 7))
    assert lr.status == "pending"
    assert lr.total_days == Decimal(3)


def test_overlapping_request_rejected(team, actor_of, leave_types):
    _, emp = team
    actor = actor_of(emp)
    _apply(actor, leave_types["CL"], date(2025, 5, 5), date(2025, 5, 7))
    with pytest.raises(StateConflictError) as ei:
        _apply(actor, leave_types["LWP"], date(2025, 5, 7), date(2025, 5, 8))
    assert ei.value.code == "overlap"


def test_insufficient_balance(team, actor_of, leave_types):
    _, emp = team
    cl = leave_types["CL"]
    db.session.add(LeavePolicy(leave_type_id=cl.id, department_id=None, year=2025, quota=2))
    db.session.commit()
    with pytest.raises(ValidationError) as ei:
        _apply(actor_of(emp), cl, date(2025, 5, 5), date(2025, 5, 7))
    assert ei.value.code == "insufficient_balance"


def test_unpaid_leave_has_no_quota(team, actor_of, leave_types):
    _, emp = team
    lr = _apply(actor_of(emp), leave_types["LWP"], date(2025, 5, 1), date(2025, 5, 20))
    assert lr.total_days == Decimal(20)


def test_quota_resolution_department_then_company_then_type(app, make_employee, leave_types):
    cl = leave_types["CL"]
    sales = Department(name="Sales")
    ops = Department(name="Ops")
    db.session.add_all([sales, ops]); db.session.commit()
    in_sales = make_employee(department=sales)
    in_ops = make_employee(department=ops)

    assert svc.effective_quota(in_sales, cl, 2025) == Decimal(12)

    db.session.add(LeavePolicy(leave_type_id=cl.id, department_id=None, year=2025, quota=10))
    db.session.add(LeavePolicy(leave_type_id=cl.id, department_id=sales.id, year=2025, quota=15))
    db.session.commit()
    assert svc.effective_quota(in_sales, cl, 2025) == Decimal(15)
    assert svc.effective_quota(in_ops, cl, 2025) == Decimal(10)
    assert svc.effective_quota(in_ops, cl, 2026) == Decimal(12)


def test_manager_approval_writes_attendance_and_event(team, actor_of, leave_types):
    manager, emp = team
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 7))
    lr = svc.approve(actor_of(manager), lr.id, "enjoy")

    assert lr.status == "approved"
    rows = Attendance.query.filter_by(employee_id=emp.id).order_by(Attendance.work_date).all()
    assert [r.work_date for r in rows] == [date(2025, 5, 5), date(2025, 5, 6), date(2025, 5, 7)]
    assert {r.status for r in rows} == {"leave"}
    ev = db.session.get(CalendarEvent, lr.calendar_event_id)
    assert ev.event_type == "LEAVE"
    assert ev.participant_employee_id == emp.id


def test_approval_by_unrelated_employee_forbidden(team, make_employee, actor_of, leave_types):
    _, emp = team
    other_manager = make_employee("manager")
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 5))
    with pytest.raises(AuthorizationError):
        svc.approve(actor_of(other_manager), lr.id)


def test_calendar_failure_does_not_block_approval(team, actor_of, leave_types, monkeypatch):
    manager, emp = team
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 5))

    def boom(*a, **kw):
        raise RuntimeError("calendar down")

    monkeypatch.setattr(calendar_service, "create_leave_event", boom)
    lr = svc.approve(actor_of(manager), lr.id)
    assert lr.status == "approved"
    assert lr.calendar_event_id is None
    assert Attendance.query.filter_by(employee_id=emp.id, status="leave").count() == 1


def test_approve_twice_is_a_state_conflict(team, actor_of, leave_types):
    manager, emp = team
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 5))
    svc.approve(actor_of(manager), lr.id)
    with pytest.raises(StateConflictError):
        svc.approve(actor_of(manager), lr.id)


def test_reject_requires_reason(team, actor_of, leave_types):
    manager, emp = team
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 5))
    with pytest.raises(ValidationError):
        svc.reject(actor_of(manager), lr.id, "")
    lr = svc.reject(actor_of(manager), lr.id, "release week")
    assert lr.status == "rejected"
    assert lr.rejection_reason == "release week"


def test_owner_cancels_pending(team, actor_of, leave_types):
    _, emp = team
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 5))
    lr = svc.cancel(actor_of(emp), lr.id, today=date(2025, 5, 1))
    assert lr.status == "cancelled"


def test_cancel_approved_future_leave_removes_leave_rows(team, make_employee, actor_of, leave_types):
    manager, emp = team
    peer = make_employee(manager=manager)
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 6))
    svc.approve(actor_of(manager), lr.id)
    db.session.add_all([
        Attendance(employee_id=emp.id, work_date=date(2025, 5, 7), status="present"),
        Attendance(employee_id=peer.id, work_date=date(2025, 5, 5), status="leave"),
    ])
    db.session.commit()

    with pytest.raises(StateConflictError):
        svc.cancel(actor_of(emp), lr.id, today=date(2025, 5, 1))

    lr = svc.cancel(actor_of(manager), lr.id, "plans changed", today=date(2025, 5, 1))
    assert lr.status == "cancelled"
    assert Attendance.query.filter_by(employee_id=emp.id, status="leave").count() == 0
    assert CalendarEvent.query.filter_by(participant_employee_id=emp.id).count() == 0
    # rows outside the request are untouched
    kept = Attendance.query.filter_by(employee_id=emp.id).all()
    assert [(r.work_date, r.status) for r in kept] == [(date(2025, 5, 7), "present")]
    assert Attendance.query.filter_by(employee_id=peer.id, status="leave").count() == 1


def test_leave_type_without_attendance_writes_no_rows(team, actor_of, leave_types):
    manager, emp = team
    wfh = LeaveType(code="WFH", name="Work From Home", is_paid=True, max_days_per_year=24,
                    affects_attendance=False)
    db.session.add(wfh); db.session.commit()

    lr = _apply(actor_of(emp), wfh, date(2025, 5, 5), date(2025, 5, 7))
    lr = svc.approve(actor_of(manager), lr.id)
    assert lr.status == "approved"
    assert Attendance.query.filter_by(employee_id=emp.id).count() == 0

    lr = svc.cancel(actor_of(manager), lr.id, today=date(2025, 5, 1))
    assert lr.status == "cancelled"


def test_started_leave_cannot_be_cancelled(team, actor_of, leave_types):
    manager, emp = team
    lr = _apply(actor_of(emp), leave_types["CL"], date(2025, 5, 5), date(2025, 5, 6))
    svc.approve(actor_of(manager), lr.id)
    with pytest.raises(StateConflictError):
        svc.cancel(actor_of(manager), lr.id, today=date(2025, 5, 5))


def test_balance_counts_approved_and_pending(team, actor_of, leave_types):
    manager, emp = team
    actor = actor_of(emp)
    approved = _apply(actor, leave_types["CL"], date(2025, 5, 5), date(2025, 5, 6))
    svc.approve(actor_of(manager), approved.id)
    _apply(actor, leave_types["CL"], date(2025, 6, 2), date(2025, 6, 2))

    rows = {r["leave_type"]["code"]: r for r in svc.balance(actor, None, 2025)}
    assert rows["CL"]["used"] == 2.0
    assert rows["CL"]["pending"] == 1.0
    assert rows["CL"]["available"] == 10.0
    assert rows["LWP"]["quota"] is None


def test_employee_cannot_read_someone_elses_balance(team, actor_of, leave_types):
    manager, emp = team
    with pytest.raises(AuthorizationError):
        svc.balance(actor_of(emp), manager.id, 2025)
