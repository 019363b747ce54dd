"""
Aged receivables and collections reporting facade

Composes the aging calculator, priority determiner, reminder generator and
collections analyzer into the views the routes expose. No normalization
logic lives here.
"""

import csv
import io

from utils.aging_calculator import AgingCalculator
from utils.collections_analytics import (
    CollectionReminderGenerator, CollectionsAnalyzer, PriorityDeterminer, get_setting
)
from utils.error_handler import ValidationError
from utils.finance_vocabulary import MANUAL_ACTION_TYPES, ReminderTier
from utils.receivables_repository import ReceivablesRepository
from utils.report_exports import generate_aged_receivables_excel, generate_aged_receivables_pdf
from utils.timezone_helper import get_current_local_date

CSV_HEADER = 'Bucket,Days Overdue,Student Count,Total Amount,Student Name,Admission #,Amount,Last Payment'


def _csv_number(value):
    value = float(value or 0)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}"


class AgedReceivablesService:

    def __init__(self, session=None):
        self.repo = ReceivablesRepository(session)
        self.aging_calculator = AgingCalculator(self.repo)
        self.priority_determiner = PriorityDeterminer(self.repo)
        self.reminder_generator = CollectionReminderGenerator(self.repo)
        self.analyzer = CollectionsAnalyzer(self.repo.session)

    def calculate_aged_receivables(self, as_of=None):
        return self.aging_calculator.calculate_aged_receivables(as_of or get_current_local_date())

    def get_aging_summary(self, as_of=None):
        """Bucket totals without the account rows"""
        as_of = as_of or get_current_local_date()
        report = self.calculate_aged_receivables(as_of)
        return {
            'as_of_date': as_of.isoformat(),
            'buckets': [
                {
                    'bucket_name': bucket['bucket_name'],
                    'bucket_days_from': bucket['bucket_days_from'],
                    'bucket_days_to': bucket['bucket_days_to'],
                    'student_count': bucket['student_count'],
                    'total_amount': bucket['total_amount'],
                    'account_count': len(bucket['accounts']),
                }
                for bucket in report
            ],
            'grand_total': round(sum(bucket['total_amount'] for bucket in report), 2),
            # Each student is counted in exactly one bucket
            'total_students': sum(bucket['student_count'] for bucket in report),
        }

    def get_top_overdue_accounts(self, limit=None, as_of=None):
        """Account rows from every bucket, largest amount first"""
        if limit is None:
            limit = get_setting('TOP_OVERDUE_DEFAULT_LIMIT')
        accounts = [account for bucket in self.calculate_aged_receivables(as_of) for account in bucket['accounts']]
        accounts.sort(key=lambda account: account['amount'], reverse=True)
        return accounts[:max(int(limit), 0)]

    def get_high_priority_collections(self, as_of=None):
        return self.priority_determiner.get_high_priority_collections(as_of)

    def generate_collection_reminders(self, as_of=None):
        return self.reminder_generator.generate_collection_reminders(as_of)

    def run_collection_reminders(self, as_of=None):
        return self.reminder_generator.run(as_of)

    def get_collections_effectiveness_report(self, as_of=None):
        return self.analyzer.get_collections_effectiveness_report(as_of)

    def record_collection_action(self, student_id, action_type, notes=None):
        """Manual staff follow-up; committed immediately"""
        action_type = str(action_type or '').strip().upper()
        allowed = MANUAL_ACTION_TYPES + tuple(tier.name for tier in ReminderTier)
        if action_type not in allowed:
            raise ValidationError(f"Unknown collection action type {action_type!r}; expected one of {', '.join(allowed)}")
        self.repo.require_student(student_id)
        try:
            action = self.repo.record_collection_action(student_id, action_type, notes)
            self.repo.session.commit()
        except Exception:
            self.repo.session.rollback()
            raise
        return action

    def get_collection_history(self, student_id):
        self.repo.require_student(student_id)
        return self.repo.get_collection_history(student_id)

    def export_aged_receivables_csv(self, as_of=None):
        """
        CSV of the aging report, one row per account per bucket

        Bucket-level columns (student count, total amount) repeat on every
        account row of their bucket.
        """
        report = self.calculate_aged_receivables(as_of)
        output = io.StringIO()
        output.write(CSV_HEADER + '\n')
        writer = csv.writer(output, lineterminator='\n')
        for bucket in report:
            for account in bucket['accounts']:
                writer.writerow([
                    bucket['bucket_name'],
                    account['days_overdue'],
                    bucket['student_count'],
                    _csv_number(bucket['total_amount']),
                    account['student_name'],
                    account['admission_number'] or '',
                    _csv_number(account['amount']),
                    account['last_payment_date'],
                ])
        return output.getvalue()

    def export_aged_receivables_excel(self, as_of=None):
        as_of = as_of or get_current_local_date()
        return generate_aged_receivables_excel(
            self.calculate_aged_receivables(as_of), as_of, get_setting('CURRENCY_CODE')
        )

    def export_aged_receivables_pdf(self, as_of=None):
        as_of = as_of or get_current_local_date()
        return generate_aged_receivables_pdf(
            self.calculate_aged_receivables(as_of), as_of, get_setting('CURRENCY_CODE')
        )
