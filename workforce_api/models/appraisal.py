from datetime import datetime

from workforce_api.extensions import db

APPRAISAL_CYCLE_STATUSES = ("Draft", "Active", "Closed")
INCREMENT_TYPES = ("Percentage", "Fixed")
APPRAISAL_STATUSES = ("Proposed", "Approved", "Rejected")


class AppraisalCycle(db.Model):
    __tablename__ = "appraisal_cycles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    review_cycle_id = db.Column(db.Integer, db.ForeignKey("review_cycles.id", ondelete="RESTRICT"), nullable=False)
    effective_from = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Draft")
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("review_cycle_id", name="uq_appraisal_cycle_review_cycle"),
    )

    review_cycle = db.relationship("ReviewCycle", lazy="joined")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "review_cycle_id": self.review_cycle_id,
            "review_cycle": self.review_cycle.name if self.review_cycle else None,
            "effective_from": self.effective_from.isoformat(),
            "status": self.status,
        }


class AppraisalRecord(db.Model):
    __tablename__ = "appraisal_records"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    appraisal_cycle_id = db.Column(db.Integer, db.ForeignKey("appraisal_cycles.id", ondelete="CASCADE"), nullable=False)
    performance_review_id = db.Column(db.Integer, db.ForeignKey("performance_reviews.id", ondelete="SET NULL"), nullable=True)

    final_rating = db.Column(db.Numeric(4, 2), nullable=True)
    increment_type = db.Column(db.String(16), nullable=False)
    increment_value = db.Column(db.Numeric(14, 2), nullable=False)
    old_ctc = db.Column(db.Numeric(14, 2), nullable=False)
    new_ctc = db.Column(db.Numeric(14, 2), nullable=False)
    old_designation_id = db.Column(db.Integer, db.ForeignKey("designations.id", ondelete="SET NULL"), nullable=True)
    new_designation_id = db.Column(db.Integer, db.ForeignKey("designations.id", ondelete="SET NULL"), nullable=True)
    remarks = db.Column(db.Text)
    status = db.Column(db.String(16), nullable=False, default="Proposed")

    proposed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approved_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "appraisal_cycle_id", name="uq_appraisal_employee_cycle"),
    )

    employee = db.relationship("Employee", lazy="joined")
    cycle = db.relationship("AppraisalCycle", lazy="joined")

    def to_dict(self):
        emp = self.employee
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_code": emp.code if emp else None,
            "employee_name": emp.full_name if emp else None,
            "appraisal_cycle_id": self.appraisal_cycle_id,
            "appraisal_cycle": self.cycle.name if self.cycle else None,
            "performance_review_id": self.performance_review_id,
            "final_rating": float(self.final_rating) if self.final_rating is not None else None,
            "increment_type": self.increment_type,
            "increment_value": float(self.increment_value),
            "old_ctc": float(self.old_ctc),
            "new_ctc": float(self.new_ctc),
            "old_designation_id": self.old_designation_id,
            "new_designation_id": self.new_designation_id,
            "remarks": self.remarks,
            "status": self.status,
            "approved_by_user_id": self.approved_by_user_id,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
        }
