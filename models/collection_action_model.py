from init_db import db
from datetime import datetime, timezone


class CollectionAction(db.Model):
    """Append-only log of reminders sent and manual follow-ups"""
    __tablename__ = 'collection_actions'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    action_type = db.Column(db.String(30), nullable=False)
    notes = db.Column(db.Text)
    action_date = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc), index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "action_type": self.action_type,
            "notes": self.notes,
            "action_date": self.action_date.strftime("%Y-%m-%d %H:%M:%S") if self.action_date else None,
        }
