# workforce_api/services/review_service.py
"""
Performance reviews move strictly forward:

    Not Started -> Self Submitted -> Manager Reviewed -> HR Reviewed -> Finalized

Every mutating step re-reads the cycle status from the database; a review is only
editable while its cycle is Active. Finalization is the one step still permitted
once the cycle is Closed.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from sqlalchemy.exc import IntegrityError

from workforce_api.common.auth import Actor
from workforce_api.common.errors import (
    AuthorizationError, NotFoundError, StateConflictError, ValidationError,
)
from workforce_api.extensions import db
from workforce_api.models.employee import Employee
from workforce_api.models.performance import (
    Goal, PerformanceReview, ReviewCycle, ReviewGoal, goal_assignees,
    CYCLE_STATUSES, REVIEW_STATUSES, REVIEW_NOT_STARTED, REVIEW_SELF_SUBMITTED, REVIEW_MANAGER_REVIEWED,
    REVIEW_HR_REVIEWED, REVIEW_FINALIZED,
)

log = logging.getLogger(__name__)

GOAL_WEIGHT = Decimal("0.6")
MANAGER_WEIGHT = Decimal("0.3")
HR_WEIGHT = Decimal("0.1")


# ---------- rating ----------

def calculate_final_rating(progresses: Iterable[int], manager_rating=None, hr_rating=None) -> Decimal:
    """
    goal rating maps average progress 0-100 onto 1-5, then a 60/30/10 blend with the
    manager and HR ratings. Missing ratings count as 0, so the value is provisional
    until the HR stage.
    """
    progresses = [Decimal(p or 0) for p in progresses]
    avg = sum(progresses, Decimal(0)) / len(progresses) if progresses else Decimal(0)
    goal_rating = (avg / Decimal(100)) * 4 + 1
    value = (goal_rating * GOAL_WEIGHT
             + Decimal(manager_rating or 0) * MANAGER_WEIGHT
             + Decimal(hr_rating or 0) * HR_WEIGHT)
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _recompute(review: PerformanceReview):
    review.final_rating = calculate_final_rating(
        [g.final_progress for g in review.goals], review.manager_rating, review.hr_rating,
    )


# ---------- guards ----------

def cycle_status(review: PerformanceReview) -> Optional[str]:
    """Live status of the review's cycle, read from the database on every call."""
    return db.session.execute(
        db.select(ReviewCycle.status).where(ReviewCycle.id == review.review_cycle_id)
    ).scalar_one_or_none()


def is_editable(review: PerformanceReview) -> bool:
    return review.status != REVIEW_FINALIZED and cycle_status(review) == "Active"


def _advance(review: PerformanceReview, expected: str, target: str):
    if REVIEW_STATUSES.index(target) != REVIEW_STATUSES.index(expected) + 1:
        raise StateConflictError("Invalid review transition")
    if review.status != expected:
        raise StateConflictError(
            f"Review is '{review.status}'; expected '{expected}' before moving to '{target}'",
            code="invalid_state",
        )
    if target == REVIEW_FINALIZED:
        # closed cycles still accept finalization
        if cycle_status(review) not in ("Active", "Closed"):
            raise StateConflictError("Review cycle is not open", code="cycle_not_active")
    elif not is_editable(review):
        raise StateConflictError("Review cycle is not active; the review can no longer be edited",
                                 code="cycle_not_active")


def _rating(value, field: str) -> int:
    try:
        r = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer between 1 and 5")
    if r < 1 or r > 5 or str(value).strip() not in (str(r), f"{r}.0"):
        raise ValidationError(f"{field} must be an integer between 1 and 5")
    return r


def _apply_goal_updates(review: PerformanceReview, updates, *, comment_field: str, allow_progress: bool):
    by_id = {g.id: g for g in review.goals}
    by_goal = {g.goal_id: g for g in review.goals if g.goal_id}
    for u in updates or []:
        row = by_id.get(u.get("id")) or by_goal.get(u.get("goal_id"))
        if row is None:
            raise ValidationError(f"Goal {u.get('id') or u.get('goal_id')} is not part of this review")
        if allow_progress and "final_progress" in u:
            try:
                p = int(u["final_progress"])
            except (TypeError, ValueError):
                raise ValidationError("final_progress must be a number between 0 and 100")
            if p < 0 or p > 100:
                raise ValidationError("final_progress must be between 0 and 100")
            row.final_progress = p
        if "comment" in u:
            setattr(row, comment_field, u.get("comment"))


def get_review(review_id: int) -> PerformanceReview:
    r = db.session.get(PerformanceReview, review_id)
    if r is None:
        raise NotFoundError("Performance review not found")
    return r


# ---------- operations ----------

def create_or_get_review(actor: Actor, employee_id: int, review_cycle_id: int) -> tuple[PerformanceReview, bool]:
    """Returns (review, created). Existing reviews are returned regardless of cycle state."""
    emp = db.session.get(Employee, employee_id)
    if emp is None:
        raise NotFoundError("Employee not found")
    if (employee_id != actor.employee_id and not actor.is_hr
            and emp.manager_id != actor.employee_id):
        raise AuthorizationError("You cannot access a review for this employee")

    existing = PerformanceReview.query.filter_by(employee_id=employee_id, review_cycle_id=review_cycle_id).first()
    if existing is not None:
        return existing, False

    cycle = db.session.get(ReviewCycle, review_cycle_id)
    if cycle is None:
        raise NotFoundError("Review cycle not found")
    if cycle.status != "Active":
        raise StateConflictError("Review cycle is not active", code="cycle_not_active")

    goals = (Goal.query
             .join(goal_assignees, goal_assignees.c.goal_id == Goal.id)
             .filter(goal_assignees.c.employee_id == employee_id,
                     Goal.status.in_(("Active", "Completed")))
             .order_by(Goal.id.asc())
             .all())

    review = PerformanceReview(employee_id=employee_id, review_cycle_id=review_cycle_id, status=REVIEW_NOT_STARTED)
    for g in goals:
        review.goals.append(ReviewGoal(goal_id=g.id, title=g.title, weightage=g.weightage or 0,
                                       final_progress=g.progress or 0))
    db.session.add(review)
    try:
        db.session.commit()
    except IntegrityError:
        # another request created it first
        db.session.rollback()
        existing = PerformanceReview.query.filter_by(employee_id=employee_id, review_cycle_id=review_cycle_id).first()
        if existing is None:
            raise
        return existing, False
    return review, True


def submit_self_review(actor: Actor, review_id: int, *, self_rating, goals=None, comments=None) -> PerformanceReview:
    review = get_review(review_id)
    if actor.employee_id is None or review.employee_id != actor.employee_id:
        raise AuthorizationError("Only the employee can submit their self review")
    _advance(review, REVIEW_NOT_STARTED, REVIEW_SELF_SUBMITTED)

    review.self_rating = _rating(self_rating, "self_rating")
    _apply_goal_updates(review, goals, comment_field="self_comment", allow_progress=True)
    review.self_comments = comments
    _recompute(review)
    review.status = REVIEW_SELF_SUBMITTED
    review.submitted_at = datetime.utcnow()
    db.session.commit()
    return review


def submit_manager_review(actor: Actor, review_id: int, *, manager_rating, goals=None, comments=None) -> PerformanceReview:
    review = get_review(review_id)
    manager_id = review.employee.manager_id if review.employee else None
    if actor.employee_id is None or manager_id != actor.employee_id:
        raise AuthorizationError("Only the employee's reporting manager can submit this review")
    _advance(review, REVIEW_SELF_SUBMITTED, REVIEW_MANAGER_REVIEWED)

    review.manager_rating = _rating(manager_rating, "manager_rating")
    _apply_goal_updates(review, goals, comment_field="manager_comment", allow_progress=False)
    review.manager_comments = comments
    _recompute(review)
    review.status = REVIEW_MANAGER_REVIEWED
    review.manager_reviewer_user_id = actor.user_id
    review.manager_reviewed_at = datetime.utcnow()
    db.session.commit()
    return review


def submit_hr_review(actor: Actor, review_id: int, *, hr_rating, comments=None) -> PerformanceReview:
    actor.require_role("hr", "admin")
    review = get_review(review_id)
    _advance(review, REVIEW_MANAGER_REVIEWED, REVIEW_HR_REVIEWED)

    review.hr_rating = _rating(hr_rating, "hr_rating")
    review.hr_comments = comments
    _recompute(review)
    review.status = REVIEW_HR_REVIEWED
    review.hr_reviewer_user_id = actor.user_id
    review.hr_reviewed_at = datetime.utcnow()
    db.session.commit()
    return review


def finalize_review(actor: Actor, review_id: int) -> PerformanceReview:
    actor.require_role("hr", "admin")
    review = get_review(review_id)
    _advance(review, REVIEW_HR_REVIEWED, REVIEW_FINALIZED)

    _recompute(review)
    review.status = REVIEW_FINALIZED
    review.finalized_by_user_id = actor.user_id
    review.finalized_at = datetime.utcnow()
    db.session.commit()
    log.info("review %s finalized for employee %s rating=%s", review.id, review.employee_id, review.final_rating)
    return review


# ---------- reads ----------

def my_reviews(actor: Actor):
    if actor.employee_id is None:
        raise AuthorizationError("No employee profile is linked to this user")
    return (PerformanceReview.query.filter_by(employee_id=actor.employee_id)
            .order_by(PerformanceReview.created_at.desc()).all())


def team_reviews(actor: Actor, review_cycle_id: int | None = None):
    if actor.employee_id is None:
        raise AuthorizationError("No employee profile is linked to this user")
    reports = db.select(Employee.id).where(Employee.manager_id == actor.employee_id)
    q = PerformanceReview.query.filter(PerformanceReview.employee_id.in_(reports))
    if review_cycle_id:
        q = q.filter(PerformanceReview.review_cycle_id == review_cycle_id)
    return q.order_by(PerformanceReview.created_at.desc()).all()


def all_reviews(actor: Actor, *, review_cycle_id=None, status=None):
    actor.require_role("hr", "admin")
    q = PerformanceReview.query
    if review_cycle_id:
        q = q.filter(PerformanceReview.review_cycle_id == review_cycle_id)
    if status:
        if status not in REVIEW_STATUSES:
            raise ValidationError("Unknown review status")
        q = q.filter(PerformanceReview.status == status)
    return q.order_by(PerformanceReview.created_at.desc())


def can_view(actor: Actor, review: PerformanceReview) -> bool:
    if actor.is_hr or review.employee_id == actor.employee_id:
        return True
    return review.employee is not None and review.employee.manager_id == actor.employee_id


# ---------- cycles ----------

def _cycle_fields(cycle: ReviewCycle, data: dict):
    if "name" in data:
        if not (data.get("name") or "").strip():
            raise ValidationError("name is required")
        cycle.name = data["name"].strip()
    for key in ("start_date", "end_date"):
        if key in data:
            setattr(cycle, key, data[key])
    if "status" in data:
        if data["status"] not in CYCLE_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(CYCLE_STATUSES)}")
        cycle.status = data["status"]
    for flag in ("self_review_open", "manager_review_open", "hr_review_open"):
        if flag in data:
            setattr(cycle, flag, bool(data[flag]))
    if not cycle.start_date or not cycle.end_date:
        raise ValidationError("start_date and end_date are required")
    if cycle.start_date > cycle.end_date:
        raise ValidationError("start_date cannot be after end_date")


def create_cycle(data: dict) -> ReviewCycle:
    cycle = ReviewCycle(status="Upcoming")
    _cycle_fields(cycle, {"name": data.get("name", ""), **data})
    db.session.add(cycle)
    db.session.commit()
    return cycle


def update_cycle(cycle_id: int, data: dict) -> ReviewCycle:
    cycle = db.session.get(ReviewCycle, cycle_id)
    if cycle is None:
        raise NotFoundError("Review cycle not found")
    _cycle_fields(cycle, data)
    db.session.commit()
    return cycle


def delete_cycle(cycle_id: int):
    cycle = db.session.get(ReviewCycle, cycle_id)
    if cycle is None:
        raise NotFoundError("Review cycle not found")
    if PerformanceReview.query.filter_by(review_cycle_id=cycle.id).first() is not None:
        raise StateConflictError("Cannot delete a review cycle that has reviews", code="in_use")
    db.session.delete(cycle)
    db.session.commit()


def list_cycles(status: str | None = None):
    q = ReviewCycle.query
    if status:
        q = q.filter(ReviewCycle.status == status)
    return q.order_by(ReviewCycle.start_date.desc()).all()
