from init_db import db
from datetime import datetime, timezone


class PaymentAllocation(db.Model):
    """How much of one ledger transaction went to one invoice"""
    __tablename__ = 'payment_invoice_allocations'

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('ledger_transactions.id'), nullable=False, index=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey('fee_invoices.id'), nullable=False, index=True)
    applied_amount = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "transaction_id": self.transaction_id,
            "invoice_id": self.invoice_id,
            "applied_amount": self.applied_amount,
        }


class CreditTransaction(db.Model):
    """Movements on a student's credit balance (overpayments and their reversal)"""
    __tablename__ = 'credit_transactions'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('students.id'), nullable=False, index=True)
    source_transaction_id = db.Column(db.Integer, db.ForeignKey('ledger_transactions.id'))
    amount = db.Column(db.Float, nullable=False)
    transaction_type = db.Column(db.String(20), nullable=False)  # CREDIT_RECEIVED, CREDIT_REFUNDED
    notes = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "source_transaction_id": self.source_transaction_id,
            "amount": self.amount,
            "transaction_type": self.transaction_type,
            "notes": self.notes,
        }
