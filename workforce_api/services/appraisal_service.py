# workforce_api/services/appraisal_service.py
"""
Appraisal cycles and increment proposals.

``approve_appraisal`` is the only multi-row write in the system that runs as a single
transaction: the employee's salary/designation, the salary structure rotation and
the record's own status either all commit or all roll back.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from workforce_api.common.auth import Actor
from workforce_api.common.errors import (
    AuthorizationError, DuplicateError, NotFoundError, StateConflictError, ValidationError,
)
from workforce_api.extensions import db
from workforce_api.models.appraisal import (
    AppraisalCycle, AppraisalRecord, APPRAISAL_CYCLE_STATUSES, INCREMENT_TYPES,
)
from workforce_api.models.employee import Employee
from workforce_api.models.master import Designation
from workforce_api.models.performance import PerformanceReview, ReviewCycle, REVIEW_FINALIZED
from workforce_api.services.salary_service import (
    get_active_structure, round_cents, rotate_structure, split_ctc, to_money,
)

log = logging.getLogger(__name__)


# ---------- cycles ----------

def get_cycle(cycle_id: int) -> AppraisalCycle:
    c = db.session.get(AppraisalCycle, cycle_id)
    if c is None:
        raise NotFoundError("Appraisal cycle not found")
    return c


def create_cycle(*, name: str, review_cycle_id: int, effective_from, status: str = "Draft") -> AppraisalCycle:
    if not (name or "").strip():
        raise ValidationError("name is required")
    if effective_from is None:
        raise ValidationError("effective_from is required")
    if status not in APPRAISAL_CYCLE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(APPRAISAL_CYCLE_STATUSES)}")
    if db.session.get(ReviewCycle, review_cycle_id) is None:
        raise NotFoundError("Review cycle not found")

    cycle = AppraisalCycle(name=name.strip(), review_cycle_id=review_cycle_id,
                           effective_from=effective_from, status=status)
    db.session.add(cycle)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError("An appraisal cycle already exists for this review cycle")
    return cycle


def update_cycle_status(cycle_id: int, status: str) -> AppraisalCycle:
    if status not in APPRAISAL_CYCLE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(APPRAISAL_CYCLE_STATUSES)}")
    cycle = get_cycle(cycle_id)
    cycle.status = status
    db.session.commit()
    return cycle


def list_cycles():
    return AppraisalCycle.query.order_by(AppraisalCycle.effective_from.desc()).all()


def _finalized_review(employee_id: int, cycle: AppraisalCycle):
    return (PerformanceReview.query
            .filter_by(employee_id=employee_id, review_cycle_id=cycle.review_cycle_id, status=REVIEW_FINALIZED)
            .first())


def eligible_employees(cycle_id: int) -> list[dict]:
    """Employees with a finalized review in the linked cycle and no appraisal record yet."""
    cycle = get_cycle(cycle_id)
    already = db.select(AppraisalRecord.employee_id).where(AppraisalRecord.appraisal_cycle_id == cycle.id)
    reviews = (PerformanceReview.query
               .filter(PerformanceReview.review_cycle_id == cycle.review_cycle_id,
                       PerformanceReview.status == REVIEW_FINALIZED,
                       PerformanceReview.employee_id.not_in(already))
               .order_by(PerformanceReview.final_rating.desc())
               .all())
    return [
        {
            "employee_id": r.employee_id,
            "employee_code": r.employee.code,
            "employee_name": r.employee.full_name,
            "designation": r.employee.designation.title if r.employee.designation else None,
            "current_ctc": float(r.employee.salary or 0),
            "final_rating": float(r.final_rating) if r.final_rating is not None else None,
            "performance_review_id": r.id,
        }
        for r in reviews
    ]


# ---------- proposals ----------

def compute_new_ctc(old_ctc, increment_type: str, value) -> Decimal:
    old_ctc, value = to_money(old_ctc), to_money(value)
    if increment_type == "Percentage":
        return round_cents(old_ctc * (1 + value / Decimal(100)))
    if increment_type == "Fixed":
        return round_cents(old_ctc + value)
    raise ValidationError(f"increment_type must be one of {', '.join(INCREMENT_TYPES)}")


def propose_increment(actor: Actor, *, employee_id: int, appraisal_cycle_id: int, increment_type: str,
                      increment_value, new_designation_id: int | None = None,
                      remarks: str | None = None) -> AppraisalRecord:
    cycle = get_cycle(appraisal_cycle_id)
    if cycle.status == "Closed":
        raise StateConflictError("Appraisal cycle is closed", code="cycle_closed")
    emp = db.session.get(Employee, employee_id)
    if emp is None:
        raise NotFoundError("Employee not found")
    if to_money(increment_value) < 0:
        raise ValidationError("increment_value cannot be negative")
    if new_designation_id is not None and db.session.get(Designation, new_designation_id) is None:
        raise NotFoundError("Designation not found")

    review = _finalized_review(emp.id, cycle)
    if review is None:
        raise StateConflictError("Employee has no finalized performance review for this cycle",
                                 code="no_finalized_review")

    # Employee.salary is the CTC projection kept in step with the active structure
    old_ctc = to_money(emp.salary)
    if old_ctc <= 0:
        active = get_active_structure(emp.id)
        old_ctc = active.monthly_ctc() if active is not None else old_ctc
    if old_ctc <= 0:
        raise ValidationError("Employee has no CTC on record")
    new_ctc = compute_new_ctc(old_ctc, increment_type, increment_value)

    rec = AppraisalRecord(
        employee_id=emp.id,
        appraisal_cycle_id=cycle.id,
        performance_review_id=review.id,
        final_rating=review.final_rating,
        increment_type=increment_type,
        increment_value=to_money(increment_value),
        old_ctc=round_cents(old_ctc),
        new_ctc=new_ctc,
        old_designation_id=emp.designation_id,
        new_designation_id=new_designation_id,
        remarks=remarks,
        status="Proposed",
        proposed_by_user_id=actor.user_id,
    )
    db.session.add(rec)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateError("An appraisal has already been proposed for this employee in this cycle")
    return rec


def get_record(record_id: int) -> AppraisalRecord:
    rec = db.session.get(AppraisalRecord, record_id)
    if rec is None:
        raise NotFoundError("Appraisal record not found")
    return rec


def _apply_to_employee(emp: Employee, rec: AppraisalRecord):
    emp.salary = rec.new_ctc
    if rec.new_designation_id and rec.new_designation_id != emp.designation_id:
        emp.designation_id = rec.new_designation_id


def _rotate_salary_structure(emp: Employee, rec: AppraisalRecord, actor: Actor):
    parts = split_ctc(rec.new_ctc)
    return rotate_structure(
        emp,
        basic_salary=parts["basic_salary"],
        hra=parts["hra"],
        allowances=parts["allowances"],
        deductions=parts["deductions"],
        effective_from=rec.cycle.effective_from,
        created_by_user_id=actor.user_id,
    )


def approve_appraisal(actor: Actor, record_id: int) -> AppraisalRecord:
    actor.require_role("hr", "admin")
    rec = get_record(record_id)
    if rec.status != "Proposed":
        raise StateConflictError(f"Appraisal is already {rec.status}", code="invalid_state")
    emp = db.session.get(Employee, rec.employee_id)
    if emp is None:
        raise NotFoundError("Employee not found")
    old_ctc = emp.salary

    try:
        _apply_to_employee(emp, rec)
        _rotate_salary_structure(emp, rec, actor)
        rec.status = "Approved"
        rec.approved_by_user_id = actor.user_id
        rec.approved_at = datetime.utcnow()
        db.session.commit()
    except Exception:
        db.session.rollback()
        log.exception("appraisal %s approval rolled back", record_id)
        raise

    log.info("appraisal %s approved: employee %s ctc %s -> %s", rec.id, emp.code, old_ctc, rec.new_ctc)
    return rec


def reject_appraisal(actor: Actor, record_id: int, remarks: str | None = None) -> AppraisalRecord:
    actor.require_role("hr", "admin")
    rec = get_record(record_id)
    if rec.status != "Proposed":
        raise StateConflictError(f"Appraisal is already {rec.status}", code="invalid_state")
    rec.status = "Rejected"
    if remarks:
        rec.remarks = remarks
    db.session.commit()
    return rec


# ---------- reads ----------

def list_records(*, appraisal_cycle_id=None, status=None):
    q = AppraisalRecord.query
    if appraisal_cycle_id:
        q = q.filter(AppraisalRecord.appraisal_cycle_id == appraisal_cycle_id)
    if status:
        q = q.filter(AppraisalRecord.status == status)
    return q.order_by(AppraisalRecord.created_at.desc()).all()


def history(actor: Actor, employee_id: int | None = None):
    employee_id = employee_id or actor.employee_id
    if employee_id is None:
        raise ValidationError("employee_id is required")
    if employee_id != actor.employee_id and not actor.can("appraisal.read"):
        raise AuthorizationError("You can only view your own appraisal history")
    return (AppraisalRecord.query
            .filter_by(employee_id=employee_id)
            .order_by(AppraisalRecord.created_at.desc())
            .all())
