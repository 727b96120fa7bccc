from datetime import datetime

from workforce_api.extensions import db

EMPLOYEE_STATUSES = ("active", "inactive", "on_leave", "terminated")


class Employee(db.Model):
    __tablename__ = "employees"

    id = db.Column(db.Integer, primary_key=True)
    location_id    = db.Column(db.Integer, db.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=True)
    department_id  = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="RESTRICT"), nullable=True)
    designation_id = db.Column(db.Integer, db.ForeignKey("designations.id", ondelete="RESTRICT"), nullable=True)
    manager_id     = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    user_id        = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    code  = db.Column(db.String(32), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(80), nullable=False)
    last_name  = db.Column(db.String(80), nullable=True)
    phone      = db.Column(db.String(20), nullable=True)

    doj = db.Column(db.Date, nullable=True)   # date of joining
    employment_type = db.Column(db.String(20), default="fulltime", nullable=False)  # fulltime/parttime/contract/intern
    status = db.Column(db.String(16), default="active", nullable=False)

    # compensation: ``salary`` mirrors the active SalaryStructure's monthly CTC
    salary = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    tax_deduction = db.Column(db.Numeric(14, 2), nullable=False, default=0)  # monthly income-tax override
    is_pf_eligible = db.Column(db.Boolean, nullable=False, default=True)
    is_esi_eligible = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_emp_dept_id", "department_id"),
        db.Index("ix_emp_location_id", "location_id"),
        db.Index("ix_emp_manager_id", "manager_id"),
        db.Index("ix_emp_status", "status"),
    )

    location    = db.relationship("Location", lazy="joined")
    department  = db.relationship("Department", lazy="joined")
    designation = db.relationship("Designation", lazy="joined")
    manager     = db.relationship("Employee", remote_side=[id])
    user        = db.relationship("User", foreign_keys=[user_id])

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "doj": self.doj.isoformat() if self.doj else None,
            "employment_type": self.employment_type,
            "status": self.status,
            "location_id": self.location_id,
            "location": self.location.name if self.location else None,
            "department_id": self.department_id,
            "department": self.department.name if self.department else None,
            "designation_id": self.designation_id,
            "designation": self.designation.title if self.designation else None,
            "manager_id": self.manager_id,
            "user_id": self.user_id,
            "salary": float(self.salary or 0),
            "tax_deduction": float(self.tax_deduction or 0),
            "is_pf_eligible": self.is_pf_eligible,
            "is_esi_eligible": self.is_esi_eligible,
        }
