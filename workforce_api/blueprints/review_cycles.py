# workforce_api/blueprints/review_cycles.py
from flask import Blueprint, request

from workforce_api.common.auth import requires_perms
from workforce_api.common.http import ok
from workforce_api.common.paging import body, parse_date
from workforce_api.services import review_service as svc

bp = Blueprint("review_cycles", __name__, url_prefix="/api/v1/performance/cycles")


def _payload():
    d = dict(body())
    for k in ("start_date", "end_date"):
        if k in d:
            d[k] = parse_date(d[k], k, required=True)
    return d


@bp.get("")
@requires_perms("performance.reviews.read", "performance.cycles.manage")
def list_cycles():
    return ok([c.to_dict() for c in svc.list_cycles(request.args.get("status") or None)])


@bp.post("")
@requires_perms("performance.cycles.manage")
def create_cycle():
    return ok(svc.create_cycle(_payload()).to_dict(), 201, message="Review cycle created")


@bp.patch("/<int:cycle_id>")
@requires_perms("performance.cycles.manage")
def update_cycle(cycle_id: int):
    return ok(svc.update_cycle(cycle_id, _payload()).to_dict(), message="Review cycle updated")


@bp.delete("/<int:cycle_id>")
@requires_perms("performance.cycles.manage")
def delete_cycle(cycle_id: int):
    svc.delete_cycle(cycle_id)
    return ok({"deleted": cycle_id})
