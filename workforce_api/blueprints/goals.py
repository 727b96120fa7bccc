# workforce_api/blueprints/goals.py
from flask import Blueprint, request

from workforce_api.common.auth import requires_perms, current_actor
from workforce_api.common.http import ok
from workforce_api.common.paging import body, parse_date
from workforce_api.services import goal_service as svc

bp = Blueprint("goals", __name__, url_prefix="/api/v1/performance/goals")

_DATE_KEYS = ("start_date", "end_date")


def _payload():
    d = dict(body())
    for k in _DATE_KEYS:
        if k in d:
            d[k] = parse_date(d[k], k, required=True)
    return d


@bp.get("")
@requires_perms("performance.goals.read", "performance.goals.manage")
def list_goals():
    goals = svc.list_goals(
        current_actor(),
        employee_id=request.args.get("employee_id", type=int),
        status=request.args.get("status") or None,
        goal_type=request.args.get("type") or None,
    )
    return ok([g.to_dict() for g in goals])


@bp.post("")
@requires_perms("performance.goals.manage")
def create_goal():
    g = svc.create_goal(current_actor(), _payload())
    return ok(g.to_dict(), 201, message="Goal created")


@bp.get("/<int:goal_id>")
@requires_perms("performance.goals.read", "performance.goals.manage")
def get_goal(goal_id: int):
    return ok(svc.get_goal(goal_id).to_dict())


@bp.patch("/<int:goal_id>")
@requires_perms("performance.goals.manage")
def update_goal(goal_id: int):
    g = svc.update_goal(current_actor(), goal_id, _payload())
    return ok(g.to_dict(), message="Goal updated")


@bp.patch("/<int:goal_id>/progress")
@requires_perms("performance.goals.read", "performance.goals.manage")
def update_progress(goal_id: int):
    d = body()
    g = svc.update_progress(current_actor(), goal_id, d.get("progress"), d.get("current_value"))
    return ok(g.to_dict(), message="Progress updated")


@bp.delete("/<int:goal_id>")
@requires_perms("performance.goals.manage")
def delete_goal(goal_id: int):
    svc.delete_goal(current_actor(), goal_id)
    return ok({"deleted": goal_id})
