from datetime import datetime
from decimal import Decimal

from sqlalchemy import text

from workforce_api.extensions import db

PAYROLL_STATUSES = ("generated", "approved", "locked")


def _f(v):
    return float(v) if v is not None else 0.0


class SalaryStructure(db.Model):
    """
    Monthly compensation breakdown. Never edited in place: a revision deactivates the
    current row and inserts a new one, so rows with is_active=False are history.

    allowances: [{"name": str, "amount": number, "is_taxable": bool}]
    deductions: [{"name": str, "amount": number, "is_fixed": bool}]  (is_fixed=False -> percent of earned gross)
    """
    __tablename__ = "salary_structures"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    basic_salary = db.Column(db.Numeric(14, 2), nullable=False)
    hra = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    allowances = db.Column(db.JSON, nullable=False, default=list)
    deductions = db.Column(db.JSON, nullable=False, default=list)
    effective_from = db.Column(db.Date, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index(
            "uq_salary_structure_active",
            "employee_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    def allowance_total(self) -> Decimal:
        return sum((Decimal(str(a.get("amount") or 0)) for a in (self.allowances or [])), Decimal("0"))

    def monthly_ctc(self) -> Decimal:
        return Decimal(self.basic_salary or 0) + Decimal(self.hra or 0) + self.allowance_total()

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "basic_salary": _f(self.basic_salary),
            "hra": _f(self.hra),
            "allowances": self.allowances or [],
            "deductions": self.deductions or [],
            "monthly_ctc": float(self.monthly_ctc()),
            "effective_from": self.effective_from.isoformat() if self.effective_from else None,
            "is_active": self.is_active,
        }


class Payroll(db.Model):
    __tablename__ = "payrolls"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    salary_structure_id = db.Column(db.Integer, db.ForeignKey("salary_structures.id", ondelete="SET NULL"), nullable=True)

    # day counts
    total_days = db.Column(db.Integer, nullable=False)
    working_days = db.Column(db.Integer, nullable=False)
    holidays = db.Column(db.Integer, nullable=False, default=0)
    present_days = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    half_days = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    absent_days = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    paid_leave_days = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    unpaid_leave_days = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    payable_days = db.Column(db.Numeric(5, 1), nullable=False)

    # earnings
    full_gross = db.Column(db.Numeric(14, 2), nullable=False)
    basic_salary = db.Column(db.Numeric(14, 2), nullable=False)
    hra = db.Column(db.Numeric(14, 2), nullable=False)
    allowances = db.Column(db.JSON, nullable=False, default=list)
    loss_of_pay = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    gross_salary = db.Column(db.Numeric(14, 2), nullable=False)

    # deductions
    pf = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    esi = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    professional_tax = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    income_tax = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    other_deductions = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_deductions = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    net_salary = db.Column(db.Numeric(14, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="generated")

    generated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    locked_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "month", "year", name="uq_payroll_employee_period"),
        db.Index("ix_payroll_period", "year", "month"),
    )

    employee = db.relationship("Employee", lazy="joined")

    def to_dict(self):
        emp = self.employee
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_code": emp.code if emp else None,
            "employee_name": emp.full_name if emp else None,
            "department": emp.department.name if emp and emp.department else None,
            "month": self.month,
            "year": self.year,
            "status": self.status,
            "days": {
                "total": self.total_days,
                "working": self.working_days,
                "holidays": self.holidays,
                "present": _f(self.present_days),
                "half_day": _f(self.half_days),
                "absent": _f(self.absent_days),
                "paid_leave": _f(self.paid_leave_days),
                "unpaid_leave": _f(self.unpaid_leave_days),
                "payable": _f(self.payable_days),
            },
            "earnings": {
                "full_gross": _f(self.full_gross),
                "basic": _f(self.basic_salary),
                "hra": _f(self.hra),
                "allowances": self.allowances or [],
                "loss_of_pay": _f(self.loss_of_pay),
                "gross": _f(self.gross_salary),
            },
            "deductions": {
                "pf": _f(self.pf),
                "esi": _f(self.esi),
                "professional_tax": _f(self.professional_tax),
                "income_tax": _f(self.income_tax),
                "other": _f(self.other_deductions),
                "total": _f(self.total_deductions),
            },
            "net_salary": _f(self.net_salary),
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "locked_at": self.locked_at.isoformat() if self.locked_at else None,
        }
