"""
Payment allocation against outstanding fee invoices

Payments are applied oldest obligation first. validate_payment reports the
plan without writing anything; utils.payment_recorder applies the same plan
inside one database transaction.
"""

import math
from decimal import Decimal, InvalidOperation

from utils.error_handler import ValidationError
from utils.logger import log_debug
from utils.receivables_repository import ReceivablesRepository
from utils.timezone_helper import format_date

# Amounts closer than this are treated as equal
MONEY_TOLERANCE = 0.01


def coerce_amount(amount):
    """
    Parse a tendered amount into a positive float

    Raises:
        ValidationError: for missing, non-numeric, non-finite or non-positive amounts
    """
    if isinstance(amount, bool) or amount is None:
        raise ValidationError("Payment amount is required")
    try:
        value = float(Decimal(str(amount).strip()))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Payment amount must be numeric, got {amount!r}")
    if not math.isfinite(value):
        raise ValidationError("Payment amount must be greater than 0")
    value = round(value, 2)
    if value <= 0:
        raise ValidationError("Payment amount must be greater than 0")
    return value


def allocate_oldest_first(invoices, amount):
    """
    Split an amount across invoices in the order given

    Args:
        invoices (list): dicts with 'id' and 'amount' (outstanding balance)
        amount (float): tendered amount

    Returns:
        tuple: (list of {'invoice_id', 'applied_amount'}, remaining amount to credit)
    """
    remaining = amount
    allocations = []

    for invoice in invoices:
        if remaining <= MONEY_TOLERANCE:
            break
        outstanding = max(float(invoice.get('amount') or 0), 0.0)
        applied = round(min(remaining, outstanding), 2)
        if applied <= 0:
            continue
        allocations.append({'invoice_id': invoice['id'], 'applied_amount': applied})
        remaining = round(remaining - applied, 2)

    if remaining <= MONEY_TOLERANCE:
        remaining = 0.0
    return allocations, remaining


class PaymentAllocator:

    def __init__(self, repository=None):
        self.repo = repository or ReceivablesRepository()

    def get_outstanding_invoices(self, student_id):
        """All of a student's outstanding invoices, oldest obligation first"""
        return self.repo.get_outstanding_invoices(student_id=student_id)

    def validate_payment(self, student_id, amount):
        """
        Check a tendered payment against the student's outstanding invoices

        Overpayment is not an error: the excess becomes a credit balance
        when the payment is recorded.

        Args:
            student_id (int): student paying
            amount: tendered amount (number or numeric string)

        Returns:
            dict: valid, message, invoices (oldest first), total_outstanding,
                  overpayment, allocations

        Raises:
            ValidationError: if the amount is not a positive number
            NotFoundError: if the student does not exist
        """
        amount = coerce_amount(amount)
        self.repo.require_student(student_id)

        invoices = self.get_outstanding_invoices(student_id)
        for invoice in invoices:
            invoice['due_date'] = format_date(invoice['due_date'])

        if not invoices:
            return {
                'valid': True,
                'message': 'No outstanding invoices for this student',
                'invoices': [],
                'total_outstanding': 0.0,
                'overpayment': amount,
                'allocations': [],
            }

        total_outstanding = round(sum(max(invoice['amount'], 0.0) for invoice in invoices), 2)
        allocations, remaining = allocate_oldest_first(invoices, amount)

        log_debug(
            f"Validated payment of {amount} for student {student_id}: "
            f"{len(invoices)} open invoice(s), outstanding {total_outstanding}"
        )

        if amount > total_outstanding + MONEY_TOLERANCE:
            message = (
                f"Payment exceeds outstanding balance of {total_outstanding:,.2f}. "
                f"Overpayment of {remaining:,.2f} will be credited."
            )
        else:
            message = f"Payment applied to {len(allocations)} outstanding invoice(s)"

        return {
            'valid': True,
            'message': message,
            'invoices': invoices,
            'total_outstanding': total_outstanding,
            'overpayment': remaining,
            'allocations': allocations,
        }
