from datetime import date
from decimal import Decimal

import pytest

from workforce_api.common.errors import AuthorizationError, NotFoundError, StateConflictError
from workforce_api.extensions import db
from workforce_api.models.attendance import Attendance, Holiday
from workforce_api.models.employee import Employee
from workforce_api.models.leave import LeaveRequest
from workforce_api.models.payroll import Payroll, SalaryStructure
from workforce_api.services import payroll_engine as engine
from workforce_api.services.salary_service import rotate_structure, split_ctc

RATES = engine.StatutoryRates(
    pf_rate=Decimal("0.12"),
    esi_rate=Decimal("0.0075"),
    esi_ceiling=Decimal("21000"),
    professional_tax=Decimal("200"),
)


def _structure(basic, hra, allowances=(), deductions=()):
    return SalaryStructure(basic_salary=Decimal(basic), hra=Decimal(hra),
                           allowances=list(allowances), deductions=list(deductions),
                           effective_from=date(2025, 1, 1))


def _with_structure(emp, basic=12000, hra=4800, special=13200):
    rotate_structure(emp, basic_salary=basic, hra=hra,
                     allowances=[{"name": "Special Allowance", "amount": special}],
                     effective_from=date(2025, 1, 1))
    db.session.commit()
    return emp


def test_split_ctc_adds_back_up():
    parts = split_ctc(55000)
    assert parts["basic_salary"] == Decimal(22000)
    assert parts["hra"] == Decimal(8800)
    assert parts["allowances"][0]["amount"] == 24200.0


def test_month_with_unpaid_days(app, make_employee, actor_of, leave_types):
    hr = make_employee("hr")
    emp = _with_structure(make_employee())
    db.session.add(LeaveRequest(employee_id=emp.id, leave_type_id=leave_types["LWP"].id,
                                start_date=date(2025, 6, 10), end_date=date(2025, 6, 11),
                                total_days=2, reason="personal", status="approved"))
    db.session.add(Attendance(employee_id=emp.id, work_date=date(2025, 6, 12), status="absent"))
    db.session.commit()

    res = engine.generate(actor_of(hr), 6, 2025, employee_id=emp.id)
    assert res["errors"] == []
    p = res["generated"][0]
    assert p.total_days == 30
    assert p.full_gross == Decimal("30000")
    assert p.unpaid_leave_days == Decimal("2")
    assert p.absent_days == Decimal("1")
    assert p.loss_of_pay == Decimal("3000")
    assert p.gross_salary == Decimal("27000")
    assert p.payable_days == Decimal("27")
    # PF on earned basic 10800
    assert p.pf == Decimal("1296")
    assert p.professional_tax == Decimal("200")
    assert p.net_salary == Decimal("25504")
    assert p.status == "generated"


def test_paid_leave_is_not_loss_of_pay(app, make_employee, actor_of, leave_types):
    hr = make_employee("hr")
    emp = _with_structure(make_employee())
    db.session.add(LeaveRequest(employee_id=emp.id, leave_type_id=leave_types["CL"].id,
                                start_date=date(2025, 6, 10), end_date=date(2025, 6, 11),
                                total_days=2, reason="trip", status="approved"))
    db.session.commit()
    p = engine.generate(actor_of(hr), 6, 2025, employee_id=emp.id)["generated"][0]
    assert p.paid_leave_days == Decimal("2")
    assert p.loss_of_pay == Decimal("0")
    assert p.gross_salary == Decimal("30000")


def test_regeneration_replaces_the_row(app, make_employee, actor_of, leave_types):
    hr = make_employee("hr")
    emp = _with_structure(make_employee())
    db.session.add(Attendance(employee_id=emp.id, work_date=date(2025, 6, 12), status="absent"))
    db.session.add(LeaveRequest(employee_id=emp.id, leave_type_id=leave_types["LWP"].id,
                                start_date=date(2025, 6, 20), end_date=date(2025, 6, 20),
                                total_days=1, reason="errand", status="approved"))
    db.session.commit()
    actor = actor_of(hr)

    first = engine.generate(actor, 6, 2025, employee_id=emp.id)["generated"][0].to_dict()
    second = engine.generate(actor, 6, 2025, employee_id=emp.id)["generated"][0].to_dict()
    assert Payroll.query.filter_by(employee_id=emp.id, month=6, year=2025).count() == 1
    first.pop("id"); second.pop("id")
    assert second == first
    assert first["earnings"]["loss_of_pay"] == 2000.0


def test_approved_payroll_is_not_regenerated(app, make_employee, actor_of):
    hr = make_employee("hr")
    emp = _with_structure(make_employee())
    actor = actor_of(hr)
    p = engine.generate(actor, 6, 2025, employee_id=emp.id)["generated"][0]
    engine.approve(actor, p.id)

    res = engine.generate(actor, 6, 2025, employee_id=emp.id)
    assert res["generated"] == []
    assert res["summary"]["failed"] == 1
    assert res["errors"][0]["employee_code"] == emp.code
    assert db.session.get(Payroll, p.id).status == "approved"


def test_status_moves_one_way(app, make_employee, actor_of):
    hr = make_employee("hr")
    emp = _with_structure(make_employee())
    actor = actor_of(hr)
    p = engine.generate(actor, 6, 2025, employee_id=emp.id)["generated"][0]

    with pytest.raises(StateConflictError):
        engine.lock(actor, p.id)
    engine.approve(actor, p.id)
    with pytest.raises(StateConflictError):
        engine.approve(actor, p.id)
    assert engine.lock(actor, p.id).status == "locked"


def test_batch_isolates_failures(app, make_employee, actor_of):
    hr = make_employee("hr", salary=40000)
    good = _with_structure(make_employee())
    bad = make_employee()  # no structure, no salary

    res = engine.generate(actor_of(hr), 6, 2025)
    codes = {p.employee.code for p in res["generated"]}
    assert good.code in codes and hr.code in codes
    assert [e["employee_code"] for e in res["errors"]] == [bad.code]
    assert res["summary"]["generated"] == 2


def test_legacy_salary_without_structure(app, make_employee, actor_of):
    hr = make_employee("hr")
    emp = make_employee(salary=30000)
    p = engine.generate(actor_of(hr), 6, 2025, employee_id=emp.id)["generated"][0]
    assert p.salary_structure_id is None
    assert p.full_gross == Decimal("30000")
    assert SalaryStructure.query.filter_by(employee_id=emp.id).count() == 0


def test_net_never_negative():
    emp = Employee(is_pf_eligible=True, is_esi_eligible=False, tax_deduction=Decimal("50000"))
    counts = engine.DayCounts(total=30, sundays=5, holidays=0, working=25)
    out = engine.compute_payroll(emp, _structure(10000, 4000), counts, RATES)
    assert out["net_salary"] == Decimal("0")


def test_full_absence_zeroes_earnings():
    emp = Employee(is_pf_eligible=True, is_esi_eligible=False, tax_deduction=Decimal("0"))
    counts = engine.DayCounts(total=30, sundays=5, holidays=0, working=25, absent=Decimal("31"))
    out = engine.compute_payroll(emp, _structure(10000, 4000), counts, RATES)
    assert out["payable_days"] == Decimal("0")
    assert out["gross_salary"] == Decimal("0")
    assert out["pf"] == Decimal("0")


@pytest.mark.parametrize("basic,expected_esi", [(16000, Decimal("150")), (24000, Decimal("0"))])
def test_esi_applies_under_ceiling(basic, expected_esi):
    emp = Employee(is_pf_eligible=False, is_esi_eligible=True, tax_deduction=Decimal("0"))
    counts = engine.DayCounts(total=30, sundays=4, holidays=0, working=26)
    out = engine.compute_payroll(emp, _structure(basic, 4000), counts, RATES)
    assert out["esi"] == expected_esi


def test_structure_deductions_fixed_and_percent():
    emp = Employee(is_pf_eligible=False, is_esi_eligible=False, tax_deduction=Decimal("1000"))
    counts = engine.DayCounts(total=30, sundays=4, holidays=0, working=26)
    structure = _structure(20000, 0, deductions=[
        {"name": "Canteen", "amount": 500, "is_fixed": True},
        {"name": "Welfare", "amount": 1, "is_fixed": False},
    ])
    out = engine.compute_payroll(emp, structure, counts, RATES)
    assert out["other_deductions"] == Decimal("700")
    assert out["total_deductions"] == Decimal("1900")
    assert out["net_salary"] == Decimal("18100")


def test_holidays_reduce_working_days_only(app, make_employee):
    emp = make_employee()
    # 2025-06-16 is a Monday, 2025-06-15 a Sunday
    db.session.add_all([
        Holiday(date=date(2025, 6, 16), name="Founders Day"),
        Holiday(date=date(2025, 6, 15), name="Sunday holiday"),
    ])
    db.session.commit()
    counts = engine.count_days(emp, 6, 2025)
    assert counts.total == 30
    assert counts.sundays == 5
    assert counts.holidays == 1
    assert counts.working == 24


def test_payslip_is_private(app, make_employee, actor_of):
    hr = make_employee("hr")
    emp = _with_structure(make_employee())
    other = make_employee()
    p = engine.generate(actor_of(hr), 6, 2025, employee_id=emp.id)["generated"][0]

    # not visible to the employee until approved
    with pytest.raises(NotFoundError):
        engine.get_payslip(actor_of(emp), emp.id, 6, 2025)
    assert engine.my_payslips(actor_of(emp)) == []
    assert engine.get_payslip(actor_of(hr), emp.id, 6, 2025).status == "generated"

    engine.approve(actor_of(hr), p.id)
    assert engine.get_payslip(actor_of(emp), emp.id, 6, 2025).employee_id == emp.id
    assert [s.id for s in engine.my_payslips(actor_of(emp))] == [p.id]
    with pytest.raises(AuthorizationError):
        engine.get_payslip(actor_of(other), emp.id, 6, 2025)


@pytest.mark.parametrize("total,absent", [(30, 3), (31, 1), (28, 5), (31, 0)])
def test_prorated_components_match_earned_gross(total, absent):
    emp = Employee(is_pf_eligible=True, is_esi_eligible=False, tax_deduction=Decimal("0"))
    counts = engine.DayCounts(total=total, sundays=4, holidays=0, working=total - 4, absent=Decimal(absent))
    structure = _structure(12000, 4800, allowances=[{"name": "Special Allowance", "amount": 13200}])
    out = engine.compute_payroll(emp, structure, counts, RATES)

    parts = out["basic_salary"] + out["hra"] + sum(Decimal(str(a["earned"])) for a in out["allowances"])
    # each component rounds independently
    assert abs(parts - out["gross_salary"]) <= Decimal(len(out["allowances"]) + 2)
