from init_db import db
from datetime import datetime, timezone
from utils.finance_vocabulary import InvoiceStatus, canonical_invoice_status


class FeeInvoice(db.Model):
    __tablename__ = 'fee_invoices'

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(50), unique=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    term_name = db.Column(db.String(50))
    total_amount = db.Column(db.Float, nullable=False, default=0.0)
    amount_due = db.Column(db.Float)    # Older generation's billed amount
    amount = db.Column(db.Float)        # Oldest generation's billed amount
    amount_paid = db.Column(db.Float, default=0.0)
    status = db.Column(db.String(20), default=InvoiceStatus.OUTSTANDING.value)
    invoice_date = db.Column(db.Date)
    due_date = db.Column(db.Date, index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    student = db.relationship('Student', backref='invoices')

    @property
    def billed_amount(self):
        """Same fallback as the SQL normalizer: non-zero first, then raw"""
        for value in (self.total_amount, self.amount_due, self.amount):
            if value:
                return float(value)
        return 0.0

    @property
    def canonical_status(self):
        return canonical_invoice_status(self.status)

    @property
    def balance(self):
        if self.canonical_status == InvoiceStatus.CANCELLED:
            return 0.0
        return max(self.billed_amount - (self.amount_paid or 0.0), 0.0)

    def to_dict(self):
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "student_id": self.student_id,
            "term_name": self.term_name,
            "total_amount": self.billed_amount,
            "amount_paid": self.amount_paid or 0.0,
            "balance": self.balance,
            "status": self.canonical_status.value if self.canonical_status else self.status,
            "invoice_date": self.invoice_date.strftime('%Y-%m-%d') if self.invoice_date else None,
            "due_date": self.due_date.strftime('%Y-%m-%d') if self.due_date else None,
        }
