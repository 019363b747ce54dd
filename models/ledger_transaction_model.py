from init_db import db
from datetime import datetime, timezone


class LedgerTransaction(db.Model):
    """
    A single money movement. Rows are never deleted; a mistaken payment is
    voided and stays on file for audit.
    """
    __tablename__ = 'ledger_transactions'

    id = db.Column(db.Integer, primary_key=True)
    transaction_ref = db.Column(db.String(60), unique=True, nullable=False)
    transaction_date = db.Column(db.Date, nullable=False, index=True)
    transaction_type = db.Column(db.String(30), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    debit_credit = db.Column(db.String(6), default='CREDIT')
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=True, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('fee_invoices.id'), nullable=True)
    payment_method = db.Column(db.String(30))
    payment_reference = db.Column(db.String(100))
    description = db.Column(db.String(255))
    account_code = db.Column(db.String(20))   # Chart-of-accounts code, opaque here
    idempotency_key = db.Column(db.String(100), unique=True)
    is_voided = db.Column(db.Boolean, default=False, nullable=False)
    voided_reason = db.Column(db.String(255))
    voided_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    student = db.relationship('Student', backref='ledger_transactions')

    def to_dict(self):
        return {
            "id": self.id,
            "transaction_ref": self.transaction_ref,
            "transaction_date": self.transaction_date.strftime('%Y-%m-%d') if self.transaction_date else None,
            "transaction_type": self.transaction_type,
            "amount": self.amount,
            "student_id": self.student_id,
            "invoice_id": self.invoice_id,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "description": self.description,
            "account_code": self.account_code,
            "is_voided": bool(self.is_voided),
            "voided_reason": self.voided_reason,
        }
