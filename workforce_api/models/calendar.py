from datetime import datetime

from workforce_api.extensions import db


class CalendarEvent(db.Model):
    __tablename__ = "calendar_events"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    event_type = db.Column(db.String(20), nullable=False, default="EVENT")  # LEAVE|HOLIDAY|MEETING|EVENT
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    all_day = db.Column(db.Boolean, nullable=False, default=True)
    visibility = db.Column(db.String(20), nullable=False, default="team")  # private|team|company
    participant_employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="CASCADE"), nullable=True)
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        db.Index("ix_calendar_events_range", "start_date", "end_date"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "event_type": self.event_type,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "all_day": self.all_day,
            "visibility": self.visibility,
            "participant_employee_id": self.participant_employee_id,
            "department_id": self.department_id,
        }
