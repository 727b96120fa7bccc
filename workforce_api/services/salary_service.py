# workforce_api/services/salary_service.py
from __future__ import annotations

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from workforce_api.common.errors import ValidationError
from workforce_api.extensions import db
from workforce_api.models.employee import Employee
from workforce_api.models.payroll import SalaryStructure

BASIC_RATIO = Decimal("0.40")
HRA_OF_BASIC = Decimal("0.40")
REMAINDER_ALLOWANCE = "Special Allowance"

ONE = Decimal("1")
CENT = Decimal("0.01")


def to_money(v) -> Decimal:
    if v is None or v == "":
        return Decimal("0")
    try:
        d = Decimal(str(v))
    except ArithmeticError:
        raise ValidationError(f"Invalid amount: {v!r}")
    if not d.is_finite():
        raise ValidationError(f"Invalid amount: {v!r}")
    return d


def round_units(v: Decimal) -> Decimal:
    """Round to whole currency units, half away from zero."""
    return Decimal(v).quantize(ONE, rounding=ROUND_HALF_UP)


def round_cents(v: Decimal) -> Decimal:
    return Decimal(v).quantize(CENT, rounding=ROUND_HALF_UP)


def split_ctc(ctc) -> dict:
    """
    Standard breakdown of a monthly CTC: basic 40%, HRA 40% of basic, the remainder as
    a single special allowance so the components add back up to the CTC.
    """
    ctc = to_money(ctc)
    basic = round_units(ctc * BASIC_RATIO)
    hra = round_units(basic * HRA_OF_BASIC)
    remainder = ctc - basic - hra
    allowances = []
    if remainder > 0:
        allowances.append({"name": REMAINDER_ALLOWANCE, "amount": float(round_cents(remainder)), "is_taxable": True})
    return {"basic_salary": basic, "hra": hra, "allowances": allowances, "deductions": []}


def get_active_structure(employee_id: int) -> Optional[SalaryStructure]:
    return (SalaryStructure.query
            .filter_by(employee_id=employee_id, is_active=True)
            .order_by(SalaryStructure.effective_from.desc(), SalaryStructure.id.desc())
            .first())


def legacy_structure(emp: Employee) -> SalaryStructure:
    """
    Compatibility shim for employees migrated from the flat-salary model who have no
    SalaryStructure row yet. The returned object is transient and never persisted.
    """
    parts = split_ctc(emp.salary or 0)
    return SalaryStructure(
        employee_id=emp.id,
        basic_salary=parts["basic_salary"],
        hra=parts["hra"],
        allowances=parts["allowances"],
        deductions=[],
        effective_from=emp.doj or date.today(),
        is_active=False,
    )


def _clean_items(items, kind: str) -> list:
    out = []
    for it in items or []:
        if not isinstance(it, dict) or not (it.get("name") or "").strip():
            raise ValidationError(f"Each {kind} needs a name")
        amount = to_money(it.get("amount"))
        if amount < 0:
            raise ValidationError(f"{kind.capitalize()} '{it['name']}' cannot be negative")
        row = {"name": it["name"].strip(), "amount": float(amount)}
        if kind == "allowance":
            row["is_taxable"] = bool(it.get("is_taxable", True))
        else:
            row["is_fixed"] = bool(it.get("is_fixed", True))
        out.append(row)
    return out


def rotate_structure(emp: Employee, *, basic_salary, hra, allowances=None, deductions=None,
                     effective_from: date, created_by_user_id=None) -> SalaryStructure:
    """
    Retire the employee's active structure and insert a new active one. Does not commit;
    callers own the transaction. Employee.salary is refreshed from the new total.
    """
    basic_salary = to_money(basic_salary)
    hra = to_money(hra)
    if basic_salary <= 0:
        raise ValidationError("basic_salary must be positive")
    if hra < 0:
        raise ValidationError("hra cannot be negative")

    current = get_active_structure(emp.id)
    if current is not None:
        current.is_active = False
        # release the partial unique index before the insert
        db.session.flush()

    ss = SalaryStructure(
        employee_id=emp.id,
        basic_salary=basic_salary,
        hra=hra,
        allowances=_clean_items(allowances, "allowance"),
        deductions=_clean_items(deductions, "deduction"),
        effective_from=effective_from,
        is_active=True,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(ss)
    emp.salary = round_cents(ss.monthly_ctc())
    db.session.flush()
    return ss


def structure_history(employee_id: int) -> list[SalaryStructure]:
    return (SalaryStructure.query
            .filter_by(employee_id=employee_id)
            .order_by(SalaryStructure.effective_from.desc(), SalaryStructure.id.desc())
            .all())
