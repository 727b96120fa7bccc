from datetime import datetime

from workforce_api.extensions import db

LEAVE_STATUSES = ("pending", "approved", "rejected", "cancelled")


class LeaveType(db.Model):
    __tablename__ = "leave_types"
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(20), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    is_paid = db.Column(db.Boolean, nullable=False, default=True)  # unpaid types have no quota
    max_days_per_year = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    allow_half_day = db.Column(db.Boolean, nullable=False, default=True)
    affects_attendance = db.Column(db.Boolean, nullable=False, default=True)
    carry_forward_limit = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id, "code": self.code, "name": self.name,
            "is_paid": self.is_paid,
            "max_days_per_year": float(self.max_days_per_year or 0),
            "allow_half_day": self.allow_half_day,
            "affects_attendance": self.affects_attendance,
            "carry_forward_limit": float(self.carry_forward_limit or 0),
            "is_active": self.is_active,
        }


class LeavePolicy(db.Model):
    """Yearly quota for a leave type; department rows override the company-wide row."""
    __tablename__ = "leave_policies"

    id = db.Column(db.Integer, primary_key=True)
    leave_type_id = db.Column(db.Integer, db.ForeignKey("leave_types.id", ondelete="CASCADE"), nullable=False, index=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="CASCADE"), nullable=True)
    year = db.Column(db.Integer, nullable=False)
    quota = db.Column(db.Numeric(5, 2), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("leave_type_id", "department_id", "year", name="uq_leave_policy_type_dept_year"),
    )

    leave_type = db.relationship("LeaveType")


class LeaveRequest(db.Model):
    __tablename__ = "leave_requests"
    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    leave_type_id = db.Column(db.Integer, db.ForeignKey("leave_types.id", ondelete="RESTRICT"), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    is_half_day = db.Column(db.Boolean, nullable=False, default=False)
    half_day_session = db.Column(db.String(20), nullable=True)  # first_half|second_half
    total_days = db.Column(db.Numeric(5, 2), nullable=False)
    reason = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="pending")

    applied_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    approved_at = db.Column(db.DateTime)
    rejection_reason = db.Column(db.Text)
    cancelled_at = db.Column(db.DateTime)
    calendar_event_id = db.Column(db.Integer, db.ForeignKey("calendar_events.id", ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_leave_requests_emp_status", "employee_id", "status"),
    )

    employee = db.relationship("Employee", lazy="joined")
    leave_type = db.relationship("LeaveType", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_code": self.employee.code if self.employee else None,
            "employee_name": self.employee.full_name if self.employee else None,
            "leave_type": {"id": self.leave_type.id, "code": self.leave_type.code, "name": self.leave_type.name}
            if self.leave_type else None,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "is_half_day": self.is_half_day,
            "half_day_session": self.half_day_session,
            "total_days": float(self.total_days),
            "reason": self.reason,
            "status": self.status,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "rejection_reason": self.rejection_reason,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LeaveApprovalAction(db.Model):
    __tablename__ = "leave_approval_actions"
    id = db.Column(db.Integer, primary_key=True)
    leave_request_id = db.Column(db.Integer, db.ForeignKey("leave_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = db.Column(db.String(20), nullable=False)  # apply|approve|reject|cancel
    comment = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
