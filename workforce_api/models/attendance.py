from datetime import datetime

from workforce_api.extensions import db

ATTENDANCE_STATUSES = ("present", "half_day", "absent", "holiday", "leave")


class Attendance(db.Model):
    """One row per employee per calendar day (the day is local to the employee's location)."""
    __tablename__ = "attendance"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    work_date = db.Column(db.Date, nullable=False)

    # UTC, naive
    check_in_at = db.Column(db.DateTime, nullable=True)
    check_out_at = db.Column(db.DateTime, nullable=True)
    worked_hours = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="absent")
    remarks = db.Column(db.String(255), nullable=True)
    is_locked = db.Column(db.Boolean, nullable=False, default=False)

    marked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "work_date", name="uq_attendance_employee_date"),
        db.Index("ix_attendance_date", "work_date"),
    )

    employee = db.relationship("Employee", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_code": self.employee.code if self.employee else None,
            "date": self.work_date.isoformat(),
            "check_in": self.check_in_at.isoformat() + "Z" if self.check_in_at else None,
            "check_out": self.check_out_at.isoformat() + "Z" if self.check_out_at else None,
            "worked_hours": float(self.worked_hours or 0),
            "status": self.status,
            "remarks": self.remarks,
            "is_locked": self.is_locked,
        }


class Holiday(db.Model):
    __tablename__ = "holidays"

    id = db.Column(db.Integer, primary_key=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id", ondelete="CASCADE"), nullable=True)  # null = all sites
    date = db.Column(db.Date, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("location_id", "date", name="uq_holiday_location_date"),
    )
