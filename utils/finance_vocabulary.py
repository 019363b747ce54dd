"""
Canonical finance vocabularies

Invoice statuses and ledger transaction types have been stored under several
spellings over the years. Every component compares against the sets defined
here instead of literal strings.
"""

import enum


class InvoiceStatus(str, enum.Enum):
    OUTSTANDING = 'OUTSTANDING'
    PARTIAL = 'PARTIAL'
    PAID = 'PAID'
    CANCELLED = 'CANCELLED'


# Stored spelling (upper-cased) -> canonical status
INVOICE_STATUS_EQUIVALENTS = {
    'OUTSTANDING': InvoiceStatus.OUTSTANDING,
    'PENDING': InvoiceStatus.OUTSTANDING,
    'UNPAID': InvoiceStatus.OUTSTANDING,
    'OVERDUE': InvoiceStatus.OUTSTANDING,
    'OPEN': InvoiceStatus.OUTSTANDING,
    'PARTIAL': InvoiceStatus.PARTIAL,
    'PARTIALLY_PAID': InvoiceStatus.PARTIAL,
    'PART_PAID': InvoiceStatus.PARTIAL,
    'PAID': InvoiceStatus.PAID,
    'SETTLED': InvoiceStatus.PAID,
    'CANCELLED': InvoiceStatus.CANCELLED,
    'CANCELED': InvoiceStatus.CANCELLED,
    'VOID': InvoiceStatus.CANCELLED,
    'VOIDED': InvoiceStatus.CANCELLED,
}

# Oldest generation stored the status as an integer code
NUMERIC_INVOICE_STATUS_CODES = {
    '0': InvoiceStatus.OUTSTANDING,
    '1': InvoiceStatus.PAID,
    '2': InvoiceStatus.PARTIAL,
    '-1': InvoiceStatus.CANCELLED,
}

# A missing status is read as a fresh, unpaid invoice
DEFAULT_INVOICE_STATUS = 'PENDING'


def _spellings_for(*statuses):
    spellings = [raw for raw, canonical in INVOICE_STATUS_EQUIVALENTS.items() if canonical in statuses]
    spellings += [code for code, canonical in NUMERIC_INVOICE_STATUS_CODES.items() if canonical in statuses]
    return tuple(spellings)


OUTSTANDING_INVOICE_STATUSES = _spellings_for(InvoiceStatus.OUTSTANDING, InvoiceStatus.PARTIAL)
CANCELLED_INVOICE_STATUSES = _spellings_for(InvoiceStatus.CANCELLED)


def canonical_invoice_status(raw_status):
    """
    Map any stored status spelling to an InvoiceStatus

    Unknown values are returned as None so callers can decide; a missing value
    is a fresh invoice.
    """
    if raw_status is None or str(raw_status).strip() == '':
        return InvoiceStatus.OUTSTANDING
    if isinstance(raw_status, float) and raw_status.is_integer():
        raw_status = int(raw_status)
    key = str(raw_status).strip().upper()
    if key in NUMERIC_INVOICE_STATUS_CODES:
        return NUMERIC_INVOICE_STATUS_CODES[key]
    return INVOICE_STATUS_EQUIVALENTS.get(key)


def is_cancelled_status(raw_status):
    return canonical_invoice_status(raw_status) == InvoiceStatus.CANCELLED


def status_after_payment(billed_amount, paid_amount):
    """Status an invoice moves to once amount_paid changes"""
    if paid_amount <= 0:
        return InvoiceStatus.OUTSTANDING
    if paid_amount >= billed_amount:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIAL


# ---------------------------------------------------------------------------
# Ledger transaction types
# ---------------------------------------------------------------------------

FEE_PAYMENT = 'FEE_PAYMENT'

# Every spelling that means "a student paid fees"
STUDENT_COLLECTION_TRANSACTION_TYPES = (
    'FEE_PAYMENT',
    'PAYMENT',
    'FEE_COLLECTION',
    'SCHOOL_FEES',
    'CREDIT_PAYMENT',
)

TRANSACTION_TYPE_ALIASES = {
    'FEES_PAYMENT': 'FEE_PAYMENT',
    'FEE PAYMENT': 'FEE_PAYMENT',
    'FEEPAYMENT': 'FEE_PAYMENT',
    'STUDENT_PAYMENT': 'PAYMENT',
    'FEES_COLLECTION': 'FEE_COLLECTION',
}

CREDIT_RECEIVED = 'CREDIT_RECEIVED'
CREDIT_REFUNDED = 'CREDIT_REFUNDED'


def canonical_transaction_type(raw_type):
    """Upper-case a stored type and resolve known aliases"""
    if raw_type is None:
        return ''
    key = str(raw_type).strip().upper()
    return TRANSACTION_TYPE_ALIASES.get(key, key)


def is_student_collection(raw_type):
    return canonical_transaction_type(raw_type) in STUDENT_COLLECTION_TRANSACTION_TYPES


def collection_type_spellings():
    """Canonical types plus every alias, upper-cased, for SQL filters"""
    spellings = list(STUDENT_COLLECTION_TRANSACTION_TYPES)
    spellings += [alias for alias, canonical in TRANSACTION_TYPE_ALIASES.items()
                  if canonical in STUDENT_COLLECTION_TRANSACTION_TYPES]
    return tuple(spellings)


def sql_in_list(values):
    """Render constant values as a quoted SQL IN list"""
    return ', '.join("'" + str(value).replace("'", "''") + "'" for value in values)


# ---------------------------------------------------------------------------
# Collections reminders and effectiveness
# ---------------------------------------------------------------------------

class ReminderTier(enum.Enum):
    FIRST_REMINDER = 30
    SECOND_REMINDER = 60
    FINAL_WARNING = 90

    @classmethod
    def for_days_overdue(cls, days_overdue):
        for tier in cls:
            if tier.value == days_overdue:
                return tier
        return None


REMINDER_TEMPLATES = {
    ReminderTier.FIRST_REMINDER:
        "First reminder: Fee balance of {currency} {amount} is now due. Please settle immediately.",
    ReminderTier.SECOND_REMINDER:
        "Second reminder: Outstanding balance {currency} {amount} for {days} days. Urgent action required.",
    ReminderTier.FINAL_WARNING:
        "Final warning: Account suspended. Balance {currency} {amount} overdue for {days} days. "
        "Contact bursar immediately.",
}

# Manual follow-ups recorded by staff
MANUAL_ACTION_TYPES = ('PHONE_CALL', 'MEETING', 'LETTER', 'PAYMENT_PLAN', 'NOTE')


class EffectivenessStatus(str, enum.Enum):
    EXCELLENT = 'EXCELLENT'
    GOOD = 'GOOD'
    FAIR = 'FAIR'
    POOR = 'POOR'


# Lower bound of each band, best first
EFFECTIVENESS_BANDS = (
    (80, EffectivenessStatus.EXCELLENT),
    (60, EffectivenessStatus.GOOD),
    (40, EffectivenessStatus.FAIR),
)


def effectiveness_status(collection_rate):
    for lower_bound, status in EFFECTIVENESS_BANDS:
        if collection_rate >= lower_bound:
            return status
    return EffectivenessStatus.POOR
