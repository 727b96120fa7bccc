from datetime import datetime

from workforce_api.extensions import db

GOAL_TYPES = ("Individual", "Team", "Department")
GOAL_STATUSES = ("Draft", "Active", "Completed", "Archived")
CYCLE_STATUSES = ("Upcoming", "Active", "Closed")

REVIEW_NOT_STARTED = "Not Started"
REVIEW_SELF_SUBMITTED = "Self Submitted"
REVIEW_MANAGER_REVIEWED = "Manager Reviewed"
REVIEW_HR_REVIEWED = "HR Reviewed"
REVIEW_FINALIZED = "Finalized"

# strict forward order
REVIEW_STATUSES = (
    REVIEW_NOT_STARTED,
    REVIEW_SELF_SUBMITTED,
    REVIEW_MANAGER_REVIEWED,
    REVIEW_HR_REVIEWED,
    REVIEW_FINALIZED,
)


goal_assignees = db.Table(
    "goal_assignees",
    db.Column("goal_id", db.Integer, db.ForeignKey("goals.id", ondelete="CASCADE"), primary_key=True),
    db.Column("employee_id", db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), primary_key=True),
)


class Goal(db.Model):
    __tablename__ = "goals"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    goal_type = db.Column(db.String(20), nullable=False, default="Individual")
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    weightage = db.Column(db.Integer, nullable=False, default=0)
    target_value = db.Column(db.Numeric(14, 2), nullable=True)
    current_value = db.Column(db.Numeric(14, 2), nullable=True)
    progress = db.Column(db.Integer, nullable=False, default=0)  # 0-100
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Draft")
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    assignees = db.relationship("Employee", secondary=goal_assignees, lazy="selectin")

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.goal_type,
            "department_id": self.department_id,
            "weightage": self.weightage,
            "target_value": float(self.target_value) if self.target_value is not None else None,
            "current_value": float(self.current_value) if self.current_value is not None else None,
            "progress": self.progress,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status,
            "assignees": [{"id": e.id, "code": e.code, "name": e.full_name} for e in self.assignees],
        }


class ReviewCycle(db.Model):
    __tablename__ = "review_cycles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="Upcoming")
    self_review_open = db.Column(db.Boolean, nullable=False, default=True)
    manager_review_open = db.Column(db.Boolean, nullable=False, default=True)
    hr_review_open = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "status": self.status,
            "self_review_open": self.self_review_open,
            "manager_review_open": self.manager_review_open,
            "hr_review_open": self.hr_review_open,
        }


class PerformanceReview(db.Model):
    __tablename__ = "performance_reviews"

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    review_cycle_id = db.Column(db.Integer, db.ForeignKey("review_cycles.id", ondelete="CASCADE"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=REVIEW_NOT_STARTED)

    self_rating = db.Column(db.Integer, nullable=True)
    manager_rating = db.Column(db.Integer, nullable=True)
    hr_rating = db.Column(db.Integer, nullable=True)
    final_rating = db.Column(db.Numeric(4, 2), nullable=True)

    self_comments = db.Column(db.Text)
    manager_comments = db.Column(db.Text)
    hr_comments = db.Column(db.Text)

    manager_reviewer_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    hr_reviewer_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    finalized_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    submitted_at = db.Column(db.DateTime)
    manager_reviewed_at = db.Column(db.DateTime)
    hr_reviewed_at = db.Column(db.DateTime)
    finalized_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("employee_id", "review_cycle_id", name="uq_review_employee_cycle"),
    )

    employee = db.relationship("Employee", lazy="joined")
    cycle = db.relationship("ReviewCycle", lazy="joined")
    goals = db.relationship(
        "ReviewGoal",
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="ReviewGoal.id",
        lazy="selectin",
    )

    def to_dict(self):
        emp = self.employee
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_code": emp.code if emp else None,
            "employee_name": emp.full_name if emp else None,
            "review_cycle_id": self.review_cycle_id,
            "review_cycle": self.cycle.name if self.cycle else None,
            "status": self.status,
            "self_rating": self.self_rating,
            "manager_rating": self.manager_rating,
            "hr_rating": self.hr_rating,
            "final_rating": float(self.final_rating) if self.final_rating is not None else None,
            "self_comments": self.self_comments,
            "manager_comments": self.manager_comments,
            "hr_comments": self.hr_comments,
            "goals": [g.to_dict() for g in self.goals],
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "manager_reviewed_at": self.manager_reviewed_at.isoformat() if self.manager_reviewed_at else None,
            "hr_reviewed_at": self.hr_reviewed_at.isoformat() if self.hr_reviewed_at else None,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
        }


class ReviewGoal(db.Model):
    """Goal snapshot taken when the review is created; later Goal edits do not flow back."""
    __tablename__ = "review_goals"

    id = db.Column(db.Integer, primary_key=True)
    review_id = db.Column(db.Integer, db.ForeignKey("performance_reviews.id", ondelete="CASCADE"), nullable=False, index=True)
    goal_id = db.Column(db.Integer, db.ForeignKey("goals.id", ondelete="SET NULL"), nullable=True)
    title = db.Column(db.String(200), nullable=False)
    weightage = db.Column(db.Integer, nullable=False, default=0)
    final_progress = db.Column(db.Integer, nullable=False, default=0)
    self_comment = db.Column(db.Text)
    manager_comment = db.Column(db.Text)

    review = db.relationship("PerformanceReview", back_populates="goals")

    def to_dict(self):
        return {
            "id": self.id,
            "goal_id": self.goal_id,
            "title": self.title,
            "weightage": self.weightage,
            "final_progress": self.final_progress,
            "self_comment": self.self_comment,
            "manager_comment": self.manager_comment,
        }
