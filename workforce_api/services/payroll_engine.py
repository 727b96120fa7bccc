# workforce_api/services/payroll_engine.py
"""
Monthly payroll generation.

Per employee: gather day counts from the attendance ledger and approved leave,
take the active salary structure, compute loss of pay, statutory deductions and
net pay, and persist a Payroll row in status 'generated'. Rows move one way
through generated -> approved -> locked; approved/locked rows are never regenerated.

A batch is best-effort: each employee is committed on its own and failures are
collected into ``errors`` keyed by employee code.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from workforce_api.common.auth import Actor
from workforce_api.common.errors import (
    APIError, AuthorizationError, NotFoundError, StateConflictError, ValidationError,
)
from workforce_api.extensions import db
from workforce_api.models.attendance import Attendance, Holiday
from workforce_api.models.employee import Employee
from workforce_api.models.leave import LeaveRequest
from workforce_api.models.master import Department
from workforce_api.models.payroll import Payroll, SalaryStructure
from workforce_api.services.attendance_service import month_bounds
from workforce_api.services.leave_service import daterange
from workforce_api.services.salary_service import (
    get_active_structure, legacy_structure, round_units, to_money,
)

log = logging.getLogger(__name__)

FINAL_STATUSES = ("approved", "locked")
ZERO = Decimal("0")


@dataclass
class DayCounts:
    total: int
    sundays: int
    holidays: int
    working: int
    present: Decimal = ZERO
    half_day: Decimal = ZERO
    absent: Decimal = ZERO
    leave: Decimal = ZERO
    paid_leave: Decimal = ZERO
    unpaid_leave: Decimal = ZERO


@dataclass
class StatutoryRates:
    pf_rate: Decimal
    esi_rate: Decimal
    esi_ceiling: Decimal
    professional_tax: Decimal

    @classmethod
    def from_config(cls, config) -> "StatutoryRates":
        return cls(
            pf_rate=to_money(config.get("PAYROLL_PF_RATE", "0.12")),
            esi_rate=to_money(config.get("PAYROLL_ESI_RATE", "0.0075")),
            esi_ceiling=to_money(config.get("PAYROLL_ESI_CEILING", 21000)),
            professional_tax=to_money(config.get("PAYROLL_PROFESSIONAL_TAX", 200)),
        )


# ---------- day counting ----------

def count_holidays(emp: Employee, start: date, end: date) -> int:
    """Distinct non-Sunday holiday dates for the employee's site (or all sites)."""
    q = (db.session.query(Holiday.date)
         .filter(Holiday.date >= start, Holiday.date <= end)
         .filter(or_(Holiday.location_id.is_(None), Holiday.location_id == emp.location_id))
         .distinct())
    return sum(1 for (d,) in q.all() if d.weekday() != 6)


def count_days(emp: Employee, month: int, year: int) -> DayCounts:
    start, end = month_bounds(month, year)
    days = list(daterange(start, end))
    sundays = sum(1 for d in days if d.weekday() == 6)
    holidays = count_holidays(emp, start, end)
    counts = DayCounts(
        total=len(days),
        sundays=sundays,
        holidays=holidays,
        working=len(days) - sundays - holidays,
    )

    rows = (db.session.query(Attendance.status, func.count(Attendance.id))
            .filter(Attendance.employee_id == emp.id,
                    Attendance.work_date >= start, Attendance.work_date <= end)
            .group_by(Attendance.status).all())
    by_status = {st: Decimal(n) for st, n in rows}
    counts.present = by_status.get("present", ZERO)
    counts.half_day = by_status.get("half_day", ZERO)
    counts.absent = by_status.get("absent", ZERO)
    counts.leave = by_status.get("leave", ZERO)

    leaves = (LeaveRequest.query
              .filter(LeaveRequest.employee_id == emp.id,
                      LeaveRequest.status == "approved",
                      LeaveRequest.start_date <= end,
                      LeaveRequest.end_date >= start)
              .all())
    for d in days:
        for lr in leaves:
            if lr.start_date <= d <= lr.end_date:
                unit = Decimal("0.5") if lr.is_half_day else Decimal("1")
                if lr.leave_type.is_paid:
                    counts.paid_leave += unit
                else:
                    counts.unpaid_leave += unit
                break
    return counts


# ---------- arithmetic ----------

def compute_payroll(emp: Employee, structure: SalaryStructure, counts: DayCounts,
                    rates: StatutoryRates) -> dict:
    """Pure calculation; returns column values for a Payroll row."""
    basic = to_money(structure.basic_salary)
    hra = to_money(structure.hra)
    allowances = [(a.get("name"), to_money(a.get("amount"))) for a in (structure.allowances or [])]
    full_gross = basic + hra + sum((amt for _, amt in allowances), ZERO)

    total_days = Decimal(counts.total)
    unpaid = min(counts.unpaid_leave + counts.absent, total_days)
    payable = total_days - unpaid

    per_day = full_gross / total_days
    loss_of_pay = round_units(per_day * unpaid)
    earned_gross = full_gross - loss_of_pay

    # component proration is for the payslip; earned_gross above is authoritative
    ratio = payable / total_days
    earned_basic = round_units(basic * ratio)
    earned_hra = round_units(hra * ratio)
    earned_allowances = [
        {"name": name, "amount": float(amt), "earned": float(round_units(amt * ratio))}
        for name, amt in allowances
    ]

    pf = round_units(earned_basic * rates.pf_rate) if emp.is_pf_eligible else ZERO
    esi = ZERO
    if emp.is_esi_eligible and earned_gross <= rates.esi_ceiling:
        esi = round_units(earned_gross * rates.esi_rate)
    professional_tax = rates.professional_tax
    income_tax = to_money(emp.tax_deduction)

    other = ZERO
    for d in structure.deductions or []:
        amt = to_money(d.get("amount"))
        other += amt if d.get("is_fixed", True) else round_units(earned_gross * amt / Decimal(100))

    total_deductions = pf + esi + professional_tax + income_tax + other
    net = max(ZERO, earned_gross - total_deductions)

    return {
        "total_days": counts.total,
        "working_days": counts.working,
        "holidays": counts.holidays,
        "present_days": counts.present,
        "half_days": counts.half_day,
        "absent_days": counts.absent,
        "paid_leave_days": counts.paid_leave,
        "unpaid_leave_days": counts.unpaid_leave,
        "payable_days": payable,
        "full_gross": full_gross,
        "basic_salary": earned_basic,
        "hra": earned_hra,
        "allowances": earned_allowances,
        "loss_of_pay": loss_of_pay,
        "gross_salary": earned_gross,
        "pf": pf,
        "esi": esi,
        "professional_tax": professional_tax,
        "income_tax": income_tax,
        "other_deductions": other,
        "total_deductions": total_deductions,
        "net_salary": net,
    }


# ---------- generation ----------

def _scope(employee_id=None, department_id=None) -> list[Employee]:
    q = Employee.query.filter(Employee.status == "active")
    if employee_id:
        q = q.filter(Employee.id == employee_id)
    if department_id:
        q = q.filter(Employee.department_id == department_id)
    return q.order_by(Employee.code.asc()).all()


def generate_for_employee(emp: Employee, month: int, year: int, rates: StatutoryRates,
                          generated_by_user_id=None) -> Payroll:
    existing = Payroll.query.filter_by(employee_id=emp.id, month=month, year=year).first()
    if existing is not None and existing.status in FINAL_STATUSES:
        raise StateConflictError(f"Payroll for {month:02d}/{year} is already {existing.status}",
                                 code="payroll_finalized")

    structure = get_active_structure(emp.id)
    if structure is None:
        if not emp.salary:
            raise ValidationError("No active salary structure and no salary on record")
        structure = legacy_structure(emp)

    values = compute_payroll(emp, structure, count_days(emp, month, year), rates)

    if existing is not None:
        db.session.delete(existing)
        db.session.flush()

    p = Payroll(
        employee_id=emp.id,
        month=month,
        year=year,
        salary_structure_id=structure.id,
        status="generated",
        generated_by_user_id=generated_by_user_id,
        **values,
    )
    db.session.add(p)
    db.session.commit()
    return p


def generate(actor: Actor, month: int, year: int, *, employee_id: int | None = None,
             department_id: int | None = None) -> dict:
    month, year = int(month), int(year)
    month_bounds(month, year)
    if year < 2000 or year > 2100:
        raise ValidationError("year is out of range")

    employees = _scope(employee_id, department_id)
    if not employees:
        raise NotFoundError("No active employees found for the given scope")

    rates = StatutoryRates.from_config(current_app.config)
    generated, errors = [], []
    for emp in employees:
        code = emp.code
        try:
            generated.append(generate_for_employee(emp, month, year, rates, actor.user_id))
        except APIError as e:
            db.session.rollback()
            errors.append({"employee_code": code, "employee_id": emp.id, "message": e.message})
            log.warning("payroll %02d/%d skipped for %s: %s", month, year, code, e.message)
        except IntegrityError:
            db.session.rollback()
            errors.append({"employee_code": code, "employee_id": emp.id,
                           "message": f"Payroll for {month:02d}/{year} already exists"})
            log.warning("payroll %02d/%d duplicate for %s", month, year, code)
        except Exception as e:
            db.session.rollback()
            log.exception("payroll %02d/%d failed for %s", month, year, code)
            errors.append({"employee_code": code, "employee_id": emp.id, "message": str(e)})

    log.info("payroll %02d/%d generated=%d errors=%d", month, year, len(generated), len(errors))
    return {
        "generated": generated,
        "errors": errors,
        "summary": {
            "employees": len(employees),
            "generated": len(generated),
            "failed": len(errors),
            "total_gross": float(sum((p.gross_salary for p in generated), ZERO)),
            "total_net": float(sum((p.net_salary for p in generated), ZERO)),
        },
    }


# ---------- lifecycle ----------

def _get(payroll_id: int) -> Payroll:
    p = db.session.get(Payroll, payroll_id)
    if p is None:
        raise NotFoundError("Payroll record not found")
    return p


def _ensure_status(p: Payroll, allowed: Iterable[str]):
    if p.status not in allowed:
        raise StateConflictError(
            f"Payroll in status '{p.status}' cannot perform this action (allowed: {', '.join(allowed)})",
            code="invalid_state",
        )


def approve(actor: Actor, payroll_id: int) -> Payroll:
    p = _get(payroll_id)
    _ensure_status(p, ("generated",))
    p.status = "approved"
    p.approved_by_user_id = actor.user_id
    p.approved_at = datetime.utcnow()
    db.session.commit()
    return p


def lock(actor: Actor, payroll_id: int) -> Payroll:
    p = _get(payroll_id)
    _ensure_status(p, ("approved",))
    p.status = "locked"
    p.locked_at = datetime.utcnow()
    db.session.commit()
    return p


def approve_many(actor: Actor, month: int, year: int, department_id: Optional[int] = None) -> int:
    """Approve every 'generated' row of a month; already approved/locked rows are left alone."""
    q = Payroll.query.filter_by(month=int(month), year=int(year), status="generated")
    if department_id:
        q = q.join(Employee, Employee.id == Payroll.employee_id).filter(Employee.department_id == department_id)
    rows = q.all()
    now = datetime.utcnow()
    for p in rows:
        p.status = "approved"
        p.approved_by_user_id = actor.user_id
        p.approved_at = now
    db.session.commit()
    return len(rows)


# ---------- reads ----------

def list_payrolls(month: int, year: int, *, status=None, department_id=None):
    q = Payroll.query.filter_by(month=int(month), year=int(year))
    if status:
        q = q.filter(Payroll.status == status)
    if department_id:
        q = q.join(Employee, Employee.id == Payroll.employee_id).filter(Employee.department_id == department_id)
    return q.order_by(Payroll.employee_id.asc())


def get_payslip(actor: Actor, employee_id: int, month: int, year: int) -> Payroll:
    """Employees see their own payslip once it is approved; payroll viewers see any row."""
    viewer = actor.can("payroll.view")
    if employee_id != actor.employee_id and not viewer:
        raise AuthorizationError("You can only view your own payslip")
    p = Payroll.query.filter_by(employee_id=employee_id, month=int(month), year=int(year)).first()
    if p is None or (not viewer and p.status not in FINAL_STATUSES):
        raise NotFoundError("Payslip not found")
    return p


def my_payslips(actor: Actor) -> list[Payroll]:
    if actor.employee_id is None:
        raise AuthorizationError("No employee profile is linked to this user")
    return (Payroll.query
            .filter(Payroll.employee_id == actor.employee_id, Payroll.status.in_(FINAL_STATUSES))
            .order_by(Payroll.year.desc(), Payroll.month.desc())
            .all())


def department_summary(month: int, year: int) -> list[dict]:
    rows = (db.session.query(
                Department.name,
                func.count(Payroll.id),
                func.coalesce(func.sum(Payroll.gross_salary), 0),
                func.coalesce(func.sum(Payroll.total_deductions), 0),
                func.coalesce(func.sum(Payroll.net_salary), 0))
            .select_from(Payroll)
            .join(Employee, Employee.id == Payroll.employee_id)
            .outerjoin(Department, Department.id == Employee.department_id)
            .filter(Payroll.month == int(month), Payroll.year == int(year))
            .group_by(Department.name)
            .order_by(Department.name.asc())
            .all())
    return [
        {
            "department": name or "Unassigned",
            "headcount": int(n),
            "total_gross": float(gross),
            "total_deductions": float(ded),
            "total_net": float(net),
        }
        for name, n, gross, ded, net in rows
    ]
