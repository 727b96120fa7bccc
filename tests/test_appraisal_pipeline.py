from datetime import date
from decimal import Decimal

import pytest

from workforce_api.common.errors import (
    AuthorizationError, DuplicateError, StateConflictError, ValidationError,
)
from workforce_api.extensions import db
from workforce_api.models.appraisal import AppraisalRecord
from workforce_api.models.employee import Employee
from workforce_api.models.master import Designation
from workforce_api.models.performance import PerformanceReview, ReviewCycle
from workforce_api.models.payroll import SalaryStructure
from workforce_api.services import appraisal_service as svc
from workforce_api.services.salary_service import get_active_structure, rotate_structure, split_ctc, to_money


@pytest.fixture
def setup(app, make_employee):
    hr = make_employee("hr")
    emp = make_employee()
    rotate_structure(emp, effective_from=date(2024, 1, 1), **split_ctc(50000))
    review_cycle = ReviewCycle(name="FY25", start_date=date(2024, 4, 1), end_date=date(2025, 3, 31), status="Closed")
    db.session.add(review_cycle); db.session.commit()
    cycle = svc.create_cycle(name="FY25 increments", review_cycle_id=review_cycle.id,
                             effective_from=date(2025, 4, 1), status="Active")
    return hr, emp, review_cycle, cycle


def _finalized(emp, review_cycle, rating="4.20"):
    r = PerformanceReview(employee_id=emp.id, review_cycle_id=review_cycle.id,
                          status="Finalized", final_rating=Decimal(rating))
    db.session.add(r); db.session.commit()
    return r


def test_fixed_increment_rotates_structure(setup, actor_of):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    old = get_active_structure(emp.id)

    rec = svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                                increment_type="Fixed", increment_value=5000)
    assert rec.old_ctc == Decimal("50000")
    assert rec.new_ctc == Decimal("55000")
    assert rec.final_rating == Decimal("4.20")

    rec = svc.approve_appraisal(actor_of(hr), rec.id)
    assert rec.status == "Approved"
    assert rec.approved_by_user_id == hr.user_id

    emp = db.session.get(Employee, emp.id)
    assert emp.salary == Decimal("55000")
    new = get_active_structure(emp.id)
    assert new.id != old.id
    assert new.basic_salary == Decimal("22000")
    assert new.hra == Decimal("8800")
    assert new.effective_from == date(2025, 4, 1)
    assert db.session.get(SalaryStructure, old.id).is_active is False
    assert SalaryStructure.query.filter_by(employee_id=emp.id, is_active=True).count() == 1


def test_percentage_increment(setup, actor_of):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    rec = svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                                increment_type="Percentage", increment_value=10)
    assert rec.new_ctc == Decimal("55000.00")


def test_failed_rotation_rolls_everything_back(setup, actor_of, monkeypatch):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    old = get_active_structure(emp.id)
    senior = Designation(title="Senior Engineer")
    db.session.add(senior); db.session.commit()
    rec = svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                                increment_type="Fixed", increment_value=5000,
                                new_designation_id=senior.id)

    def boom(*a, **kw):
        raise RuntimeError("disk full")

    monkeypatch.setattr(svc, "_rotate_salary_structure", boom)
    with pytest.raises(RuntimeError):
        svc.approve_appraisal(actor_of(hr), rec.id)

    emp = db.session.get(Employee, emp.id)
    assert emp.salary == Decimal("50000")
    assert emp.designation_id is None
    assert db.session.get(AppraisalRecord, rec.id).status == "Proposed"
    assert get_active_structure(emp.id).id == old.id


def test_no_finalized_review(setup, actor_of):
    hr, emp, review_cycle, cycle = setup
    db.session.add(PerformanceReview(employee_id=emp.id, review_cycle_id=review_cycle.id, status="HR Reviewed"))
    db.session.commit()
    with pytest.raises(StateConflictError) as ei:
        svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                              increment_type="Fixed", increment_value=1000)
    assert ei.value.code == "no_finalized_review"


def test_one_record_per_employee_per_cycle(setup, actor_of):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    actor = actor_of(hr)
    svc.propose_increment(actor, employee_id=emp.id, appraisal_cycle_id=cycle.id,
                          increment_type="Fixed", increment_value=1000)
    with pytest.raises(DuplicateError):
        svc.propose_increment(actor, employee_id=emp.id, appraisal_cycle_id=cycle.id,
                              increment_type="Fixed", increment_value=2000)


def test_closed_cycle_rejects_proposals(setup, actor_of):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    svc.update_cycle_status(cycle.id, "Closed")
    with pytest.raises(StateConflictError) as ei:
        svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                              increment_type="Fixed", increment_value=1000)
    assert ei.value.code == "cycle_closed"


def test_approve_only_once(setup, actor_of):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    rec = svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                                increment_type="Fixed", increment_value=1000)
    svc.approve_appraisal(actor_of(hr), rec.id)
    with pytest.raises(StateConflictError):
        svc.approve_appraisal(actor_of(hr), rec.id)
    with pytest.raises(StateConflictError):
        svc.reject_appraisal(actor_of(hr), rec.id)


def test_employee_cannot_approve(setup, actor_of):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    rec = svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                                increment_type="Fixed", increment_value=1000)
    with pytest.raises(AuthorizationError):
        svc.approve_appraisal(actor_of(emp), rec.id)


def test_eligible_excludes_already_proposed(setup, make_employee, actor_of):
    hr, emp, review_cycle, cycle = setup
    peer = make_employee(salary=40000)
    _finalized(emp, review_cycle, "4.50")
    _finalized(peer, review_cycle, "3.10")
    assert [e["employee_id"] for e in svc.eligible_employees(cycle.id)] == [emp.id, peer.id]

    svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                          increment_type="Fixed", increment_value=1000)
    assert [e["employee_id"] for e in svc.eligible_employees(cycle.id)] == [peer.id]


def test_one_appraisal_cycle_per_review_cycle(setup):
    _, _, review_cycle, _ = setup
    with pytest.raises(DuplicateError):
        svc.create_cycle(name="Again", review_cycle_id=review_cycle.id, effective_from=date(2025, 4, 1))


@pytest.mark.parametrize("value", ["NaN", "Infinity", "-inf", "ten"])
def test_non_numeric_increment_is_rejected(setup, actor_of, value):
    hr, emp, review_cycle, cycle = setup
    _finalized(emp, review_cycle)
    with pytest.raises(ValidationError):
        svc.propose_increment(actor_of(hr), employee_id=emp.id, appraisal_cycle_id=cycle.id,
                              increment_type="Fixed", increment_value=value)
    assert AppraisalRecord.query.count() == 0


def test_money_must_be_finite():
    assert to_money("1250.50") == Decimal("1250.50")
    assert to_money(None) == Decimal("0")
    with pytest.raises(ValidationError):
        to_money("nan")
