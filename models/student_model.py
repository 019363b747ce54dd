from init_db import db
from datetime import datetime, timezone


class Student(db.Model):
    __tablename__ = 'students'

    id = db.Column(db.Integer, primary_key=True)
    admission_number = db.Column(db.String(50), nullable=False, unique=True, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20))
    guardian_phone = db.Column(db.String(20))
    credit_balance = db.Column(db.Float, default=0.0)   # Overpayments held for future invoices
    status = db.Column(db.String(20), default='Active')
    is_deleted = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def contact_phone(self):
        """Guardian number first; reminders go to whoever pays"""
        return self.guardian_phone or self.phone

    def to_dict(self):
        return {
            "id": self.id,
            "admission_number": self.admission_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "guardian_phone": self.guardian_phone,
            "credit_balance": self.credit_balance or 0.0,
            "status": self.status,
        }
