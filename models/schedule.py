from models.db import db
from utils.time_utils import utcnow


class ScheduleEntry(db.Model):
    """One recurring weekly window of a coach's template."""

    __tablename__ = "schedule_entries"

    id = db.Column(db.Integer, primary_key=True)
    coach_id = db.Column(db.Integer, db.ForeignKey("coaches.id"), nullable=False, index=True)

    weekday = db.Column(db.Integer, nullable=False)  # 0 = Monday .. 6 = Sunday
    start_time = db.Column(db.String(5), nullable=False)
    end_time = db.Column(db.String(5), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("coach_id", "weekday", "start_time", name="uq_schedule_entry_start"),
        db.CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_schedule_entries_weekday"),
    )
