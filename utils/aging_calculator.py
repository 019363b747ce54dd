"""
Aged receivables

Buckets every outstanding invoice due on or before the reference date into
fixed day-overdue windows and rolls the buckets up per student.
"""

from collections import namedtuple

from utils.receivables_repository import ReceivablesRepository
from utils.timezone_helper import days_between, format_date, get_current_local_date

NO_PAYMENT_ON_RECORD = 'No payment on record'

BucketDefinition = namedtuple('BucketDefinition', ['key', 'name', 'days_from', 'days_to'])

# Ordered youngest first; days_to of None means open-ended
AGING_BUCKETS = (
    BucketDefinition('0-30', '0-30 Days', 0, 30),
    BucketDefinition('31-60', '31-60 Days', 31, 60),
    BucketDefinition('61-90', '61-90 Days', 61, 90),
    BucketDefinition('91-120', '91-120 Days', 91, 120),
    BucketDefinition('120+', '120+ Days', 121, None),
)


def resolve_bucket(days_overdue):
    """Bucket definition for a whole number of days overdue"""
    for bucket in AGING_BUCKETS:
        if bucket.days_to is None or days_overdue <= bucket.days_to:
            return bucket
    return AGING_BUCKETS[-1]


def _empty_bucket(definition):
    return {
        'bucket_key': definition.key,
        'bucket_name': definition.name,
        'bucket_days_from': definition.days_from,
        'bucket_days_to': definition.days_to,
        'student_count': 0,
        'total_amount': 0.0,
        'accounts': [],
    }


class AgingCalculator:

    def __init__(self, repository=None):
        self.repo = repository or ReceivablesRepository()

    def calculate_aged_receivables(self, as_of=None):
        """
        Age outstanding invoices as of a reference date

        Every invoice lands in exactly one bucket and contributes its whole
        balance there. A student is counted once across all buckets, in the
        bucket of the first invoice processed for them; invoices come oldest
        due date first, so that is the student's most overdue bucket.

        Args:
            as_of (date): reference date (defaults to today, school time)

        Returns:
            list: five bucket dicts (bucket_name, bucket_days_from,
                  bucket_days_to, student_count, total_amount, accounts)
        """
        as_of = as_of or get_current_local_date()
        invoices = self.repo.get_outstanding_invoices(as_of=as_of)
        last_payments = self.repo.get_last_payment_dates(invoice['student_id'] for invoice in invoices)

        buckets = {definition.key: _empty_bucket(definition) for definition in AGING_BUCKETS}
        student_buckets = {}

        for invoice in invoices:
            days_overdue = max(days_between(invoice['due_date'], as_of), 0)
            definition = resolve_bucket(days_overdue)
            bucket = buckets[definition.key]

            if invoice['student_id'] not in student_buckets:
                student_buckets[invoice['student_id']] = definition.key
                bucket['student_count'] += 1

            bucket['total_amount'] += invoice['amount']
            bucket['accounts'].append({
                'student_id': invoice['student_id'],
                'invoice_id': invoice['id'],
                'student_name': invoice['student_name'],
                'admission_number': invoice['admission_number'],
                'amount': invoice['amount'],
                'days_overdue': days_overdue,
                'due_date': format_date(invoice['due_date']),
                'last_payment_date': last_payments.get(invoice['student_id']) or NO_PAYMENT_ON_RECORD,
            })

        report = [buckets[definition.key] for definition in AGING_BUCKETS]
        for bucket in report:
            bucket['total_amount'] = round(bucket['total_amount'], 2)
        return report
