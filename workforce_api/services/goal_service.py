# workforce_api/services/goal_service.py
from __future__ import annotations

from workforce_api.common.auth import Actor
from workforce_api.common.errors import AuthorizationError, NotFoundError, ValidationError
from workforce_api.extensions import db
from workforce_api.models.employee import Employee
from workforce_api.models.performance import Goal, GOAL_STATUSES, GOAL_TYPES, goal_assignees


def get_goal(goal_id: int) -> Goal:
    g = db.session.get(Goal, goal_id)
    if g is None:
        raise NotFoundError("Goal not found")
    return g


def _progress(value) -> int:
    try:
        p = int(value)
    except (TypeError, ValueError):
        raise ValidationError("progress must be a number between 0 and 100")
    if p < 0 or p > 100:
        raise ValidationError("progress must be between 0 and 100")
    return p


def _apply(goal: Goal, data: dict):
    if "title" in data:
        if not (data.get("title") or "").strip():
            raise ValidationError("title is required")
        goal.title = data["title"].strip()
    if "description" in data:
        goal.description = data.get("description")
    if "type" in data:
        if data["type"] not in GOAL_TYPES:
            raise ValidationError(f"type must be one of {', '.join(GOAL_TYPES)}")
        goal.goal_type = data["type"]
    if "status" in data:
        if data["status"] not in GOAL_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(GOAL_STATUSES)}")
        goal.status = data["status"]
    for key in ("department_id", "target_value", "current_value", "start_date", "end_date"):
        if key in data:
            setattr(goal, key, data[key])
    if "weightage" in data:
        w = int(data.get("weightage") or 0)
        if w < 0 or w > 100:
            raise ValidationError("weightage must be between 0 and 100")
        goal.weightage = w
    if "progress" in data:
        goal.progress = _progress(data["progress"])
    if "assignee_ids" in data:
        ids = list(dict.fromkeys(data.get("assignee_ids") or []))
        emps = Employee.query.filter(Employee.id.in_(ids)).all() if ids else []
        if len(emps) != len(ids):
            raise ValidationError("One or more assignees do not exist")
        goal.assignees = emps
    if not goal.start_date or not goal.end_date:
        raise ValidationError("start_date and end_date are required")
    if goal.start_date > goal.end_date:
        raise ValidationError("start_date cannot be after end_date")


def create_goal(actor: Actor, data: dict) -> Goal:
    if not data.get("assignee_ids"):
        if actor.employee_id is None:
            raise ValidationError("assignee_ids is required")
        data = {**data, "assignee_ids": [actor.employee_id]}
    goal = Goal(status="Draft", goal_type="Individual", created_by_user_id=actor.user_id)
    _apply(goal, {"title": data.get("title", ""), **data})
    db.session.add(goal)
    db.session.commit()
    return goal


def update_goal(actor: Actor, goal_id: int, data: dict) -> Goal:
    goal = get_goal(goal_id)
    _apply(goal, data)
    db.session.commit()
    return goal


def update_progress(actor: Actor, goal_id: int, progress, current_value=None) -> Goal:
    """Assignees (or goal managers) report progress; an Active goal at 100 becomes Completed."""
    goal = get_goal(goal_id)
    assignee_ids = {e.id for e in goal.assignees}
    if actor.employee_id not in assignee_ids and not actor.can("performance.goals.manage"):
        raise AuthorizationError("Only assignees can update goal progress")
    goal.progress = _progress(progress)
    if current_value is not None:
        goal.current_value = current_value
    if goal.progress == 100 and goal.status == "Active":
        goal.status = "Completed"
    db.session.commit()
    return goal


def delete_goal(actor: Actor, goal_id: int):
    goal = get_goal(goal_id)
    db.session.delete(goal)
    db.session.commit()


def list_goals(actor: Actor, *, employee_id=None, status=None, goal_type=None):
    q = Goal.query
    if not actor.can("performance.goals.manage"):
        employee_id = actor.employee_id
        if employee_id is None:
            raise AuthorizationError("No employee profile is linked to this user")
    if employee_id:
        q = q.join(goal_assignees, goal_assignees.c.goal_id == Goal.id).filter(
            goal_assignees.c.employee_id == employee_id)
    if status:
        q = q.filter(Goal.status == status)
    if goal_type:
        q = q.filter(Goal.goal_type == goal_type)
    return q.order_by(Goal.end_date.asc(), Goal.id.asc()).all()
