"""
Payment recording workflow

Applies a payment to a student's invoices in the order PaymentAllocator
reports (oldest obligation first), writes the ledger transaction and the
allocation rows, and credits any excess to the student. Everything in one
call commits together or not at all.
"""

import uuid

from init_db import db
from models.invoice_model import FeeInvoice
from models.ledger_transaction_model import LedgerTransaction
from models.payment_allocation_model import CreditTransaction, PaymentAllocation
from models.student_model import Student
from utils.error_handler import NotFoundError, ValidationError
from utils.finance_vocabulary import (
    CREDIT_RECEIVED, CREDIT_REFUNDED, FEE_PAYMENT, InvoiceStatus, status_after_payment
)
from utils.logger import log_error, log_info
from utils.payment_allocator import MONEY_TOLERANCE, PaymentAllocator, allocate_oldest_first, coerce_amount
from utils.receivables_repository import ReceivablesRepository
from utils.timezone_helper import get_current_local_date, get_current_utc_datetime, parse_date


def _generate_transaction_ref(transaction_date):
    return f"PAY-{transaction_date.strftime('%Y%m%d')}-{uuid.uuid4().hex[:8].upper()}"


def _get_student(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        raise NotFoundError(f"Student {student_id} has no enrollment record")
    return student


def _resolve_transaction_date(transaction_date):
    if transaction_date is None or transaction_date == '':
        return get_current_local_date()
    parsed = parse_date(transaction_date)
    if parsed is None:
        raise ValidationError(f"Invalid transaction date: {transaction_date!r}")
    return parsed


def _plan_for_named_invoice(student_id, invoice_id, amount, repo):
    """Allocation plan when the payer names the invoice being settled"""
    invoice = db.session.get(FeeInvoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    if invoice.student_id != student_id:
        raise ValidationError(f"Invoice {invoice_id} does not belong to student {student_id}")
    if invoice.canonical_status == InvoiceStatus.CANCELLED:
        raise ValidationError(f"Invoice {invoice_id} is cancelled and cannot take payments")

    open_invoices = [row for row in repo.get_outstanding_invoices(student_id=student_id)
                     if row['id'] == invoice_id]
    return allocate_oldest_first(open_invoices, amount)


def _apply_allocation(ledger_transaction, allocation):
    invoice = db.session.get(FeeInvoice, allocation['invoice_id'])
    applied = allocation['applied_amount']

    invoice.amount_paid = round((invoice.amount_paid or 0.0) + applied, 2)
    if invoice.billed_amount - invoice.amount_paid <= MONEY_TOLERANCE:
        invoice.status = InvoiceStatus.PAID.value
    else:
        invoice.status = status_after_payment(invoice.billed_amount, invoice.amount_paid).value

    db.session.add(PaymentAllocation(
        transaction_id=ledger_transaction.id,
        invoice_id=invoice.id,
        applied_amount=applied
    ))


def _credit_overpayment(student, ledger_transaction, excess):
    student.credit_balance = round((student.credit_balance or 0.0) + excess, 2)
    db.session.add(CreditTransaction(
        student_id=student.id,
        source_transaction_id=ledger_transaction.id,
        amount=excess,
        transaction_type=CREDIT_RECEIVED,
        notes=f"Overpayment on {ledger_transaction.transaction_ref}"
    ))


def _replay(existing, student_id, amount):
    """Result for a request whose idempotency key has already been recorded"""
    if existing.student_id != student_id or abs((existing.amount or 0) - amount) > MONEY_TOLERANCE:
        raise ValidationError(
            f"Idempotency key already used for a different payment ({existing.transaction_ref})"
        )
    allocations = PaymentAllocation.query.filter_by(transaction_id=existing.id)\
        .order_by(PaymentAllocation.id).all()
    credited = sum(credit.amount for credit in CreditTransaction.query.filter_by(
        source_transaction_id=existing.id, transaction_type=CREDIT_RECEIVED))
    log_info(f"Replayed payment {existing.transaction_ref} for idempotency key {existing.idempotency_key}")
    return {
        'transaction': existing.to_dict(),
        'allocations': [allocation.to_dict() for allocation in allocations],
        'credited_amount': round(credited, 2),
        'credit_balance': round(existing.student.credit_balance or 0.0, 2) if existing.student else 0.0,
        'invoices': [db.session.get(FeeInvoice, allocation.invoice_id).to_dict() for allocation in allocations],
        'replayed': True,
    }


def record_payment(student_id, amount, payment_method, transaction_date=None, payment_reference=None,
                   invoice_id=None, description=None, idempotency_key=None, account_code=None):
    """
    Record a fee payment and apply it to the student's invoices

    Args:
        student_id (int): student paying
        amount: tendered amount
        payment_method (str): e.g. CASH, MPESA, BANK
        transaction_date: date of the payment (defaults to today, school time)
        payment_reference (str): receipt / bank reference
        invoice_id (int): settle this invoice only, crediting any excess
        description (str): free text stored on the ledger row
        idempotency_key (str): repeated keys return the original transaction
        account_code (str): chart-of-accounts code, stored as given

    Returns:
        dict: transaction, allocations, credited_amount, credit_balance, replayed

    Raises:
        ValidationError: bad amount, date, method or invoice
        NotFoundError: unknown student or invoice
    """
    amount = coerce_amount(amount)
    if not payment_method or not str(payment_method).strip():
        raise ValidationError("Payment method is required")
    payment_date = _resolve_transaction_date(transaction_date)

    if idempotency_key:
        existing = LedgerTransaction.query.filter_by(idempotency_key=idempotency_key).first()
        if existing is not None:
            return _replay(existing, student_id, amount)

    student = _get_student(student_id)
    repo = ReceivablesRepository(db.session)

    if invoice_id is not None:
        allocations, excess = _plan_for_named_invoice(student_id, invoice_id, amount, repo)
    else:
        invoices = PaymentAllocator(repo).get_outstanding_invoices(student_id)
        allocations, excess = allocate_oldest_first(invoices, amount)

    try:
        ledger_transaction = LedgerTransaction(
            transaction_ref=_generate_transaction_ref(payment_date),
            transaction_date=payment_date,
            transaction_type=FEE_PAYMENT,
            amount=amount,
            debit_credit='CREDIT',
            student_id=student_id,
            invoice_id=invoice_id,
            payment_method=str(payment_method).strip().upper(),
            payment_reference=payment_reference,
            description=description or f"Fee payment by {student.full_name}",
            account_code=account_code,
            idempotency_key=idempotency_key,
            is_voided=False
        )
        db.session.add(ledger_transaction)
        db.session.flush()

        for allocation in allocations:
            _apply_allocation(ledger_transaction, allocation)

        if excess > MONEY_TOLERANCE:
            _credit_overpayment(student, ledger_transaction, excess)

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        log_error(f"Failed to record payment of {amount} for student {student_id}: {str(e)}")
        raise

    log_info(
        f"Recorded payment {ledger_transaction.transaction_ref}: {amount} from student {student_id} "
        f"across {len(allocations)} invoice(s), credited {excess}"
    )
    return {
        'transaction': ledger_transaction.to_dict(),
        'allocations': allocations,
        'credited_amount': excess,
        'credit_balance': round(student.credit_balance or 0.0, 2),
        'invoices': [db.session.get(FeeInvoice, allocation['invoice_id']).to_dict() for allocation in allocations],
        'replayed': False,
    }


def void_payment(transaction_id, reason):
    """
    Void a recorded payment

    The ledger row stays on file with is_voided set; every invoice it paid
    gets the money back on its balance and any credited excess is clawed back.

    Raises:
        NotFoundError: unknown transaction
        ValidationError: missing reason or transaction already voided
    """
    if not reason or not str(reason).strip():
        raise ValidationError("A reason is required to void a payment")

    ledger_transaction = db.session.get(LedgerTransaction, transaction_id)
    if ledger_transaction is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    if ledger_transaction.is_voided:
        raise ValidationError(f"Transaction {ledger_transaction.transaction_ref} is already voided")

    try:
        allocations = PaymentAllocation.query.filter_by(transaction_id=ledger_transaction.id).all()
        for allocation in allocations:
            invoice = db.session.get(FeeInvoice, allocation.invoice_id)
            invoice.amount_paid = round(max((invoice.amount_paid or 0.0) - allocation.applied_amount, 0.0), 2)
            if invoice.canonical_status != InvoiceStatus.CANCELLED:
                invoice.status = status_after_payment(invoice.billed_amount, invoice.amount_paid).value

        credited = sum(credit.amount for credit in CreditTransaction.query.filter_by(
            source_transaction_id=ledger_transaction.id, transaction_type=CREDIT_RECEIVED))
        if credited > 0 and ledger_transaction.student_id is not None:
            student = _get_student(ledger_transaction.student_id)
            student.credit_balance = round((student.credit_balance or 0.0) - credited, 2)
            db.session.add(CreditTransaction(
                student_id=student.id,
                source_transaction_id=ledger_transaction.id,
                amount=round(credited, 2),
                transaction_type=CREDIT_REFUNDED,
                notes=f"Reversal of {ledger_transaction.transaction_ref}: {reason}"
            ))

        ledger_transaction.is_voided = True
        ledger_transaction.voided_reason = str(reason).strip()
        ledger_transaction.voided_at = get_current_utc_datetime()

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        log_error(f"Failed to void transaction {transaction_id}: {str(e)}")
        raise

    log_info(f"Voided payment {ledger_transaction.transaction_ref} ({reason}); "
             f"reversed {len(allocations)} allocation(s)")
    return ledger_transaction.to_dict()


def get_student_credit_balance(student_id):
    student = _get_student(student_id)
    credits = CreditTransaction.query.filter_by(student_id=student_id)\
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc()).all()
    return {
        'student_id': student_id,
        'student': student.to_dict(),
        'credit_balance': round(student.credit_balance or 0.0, 2),
        'movements': [credit.to_dict() for credit in credits],
    }
