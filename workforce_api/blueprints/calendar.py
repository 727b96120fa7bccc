# workforce_api/blueprints/calendar.py
from datetime import timedelta, date

from flask import Blueprint, request

from workforce_api.common.auth import requires_perms
from workforce_api.common.http import ok
from workforce_api.common.paging import parse_date
from workforce_api.services import calendar_service

bp = Blueprint("calendar", __name__, url_prefix="/api/v1/calendar")


@bp.get("/events")
@requires_perms("calendar.read")
def list_events():
    start = parse_date(request.args.get("start"), "start") or date.today().replace(day=1)
    end = parse_date(request.args.get("end"), "end") or start + timedelta(days=41)
    events = calendar_service.list_events(
        start, end,
        event_type=request.args.get("type") or None,
        department_id=request.args.get("department_id", type=int),
        employee_id=request.args.get("employee_id", type=int),
    )
    return ok([e.to_dict() for e in events], start=start.isoformat(), end=end.isoformat())
