# workforce_api/services/calendar_service.py
from __future__ import annotations

from datetime import date

from sqlalchemy import and_

from workforce_api.extensions import db
from workforce_api.models.calendar import CalendarEvent
from workforce_api.models.leave import LeaveRequest


def create_leave_event(lr: LeaveRequest, created_by_user_id=None) -> CalendarEvent:
    emp = lr.employee
    label = "Half-day leave" if lr.is_half_day else "On leave"
    ev = CalendarEvent(
        title=f"{emp.full_name}: {label} ({lr.leave_type.name})",
        description=lr.reason,
        event_type="LEAVE",
        start_date=lr.start_date,
        end_date=lr.end_date,
        all_day=not lr.is_half_day,
        visibility="team",
        participant_employee_id=emp.id,
        department_id=emp.department_id,
        created_by_user_id=created_by_user_id,
    )
    db.session.add(ev)
    db.session.flush()
    return ev


def delete_leave_event(lr: LeaveRequest) -> int:
    """Delete the companion event for a leave; falls back to matching on participant and range."""
    if lr.calendar_event_id:
        ev = db.session.get(CalendarEvent, lr.calendar_event_id)
        lr.calendar_event_id = None
        if ev is None:
            return 0
        db.session.delete(ev)
        return 1
    return (CalendarEvent.query
            .filter_by(event_type="LEAVE", participant_employee_id=lr.employee_id,
                       start_date=lr.start_date, end_date=lr.end_date)
            .delete(synchronize_session=False))


def list_events(start: date, end: date, *, event_type=None, department_id=None, employee_id=None):
    q = CalendarEvent.query.filter(and_(CalendarEvent.start_date <= end, CalendarEvent.end_date >= start))
    if event_type:
        q = q.filter(CalendarEvent.event_type == event_type)
    if department_id:
        q = q.filter(CalendarEvent.department_id == department_id)
    if employee_id:
        q = q.filter(CalendarEvent.participant_employee_id == employee_id)
    return q.order_by(CalendarEvent.start_date.asc(), CalendarEvent.id.asc()).all()
