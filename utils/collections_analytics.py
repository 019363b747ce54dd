"""
Collections analytics: high-priority accounts, reminder generation and the
collection effectiveness report.

All three read the same normalized outstanding set as the aging report, so
they never disagree about which invoices are owed or for how much.
"""

from datetime import timedelta

from flask import current_app, has_app_context
from sqlalchemy import text

from init_db import db
from utils.fee_invoice_sql import (
    FEE_INVOICE_TABLE, build_active_status_predicate, build_invoice_amount_sql,
    build_invoice_date_sql, build_normalized_invoice_sql
)
from utils.finance_vocabulary import REMINDER_TEMPLATES, ReminderTier, effectiveness_status
from utils.ledger_recorder import get_collection_metrics
from utils.logger import log_error, log_info
from utils.receivables_repository import ReceivablesRepository
from utils.timezone_helper import days_between, format_date, get_current_local_date, subtract_months

DEFAULTS = {
    'HIGH_PRIORITY_AMOUNT_THRESHOLD': 100000,
    'HIGH_PRIORITY_DAYS_OVERDUE': 90,
    'HIGH_PRIORITY_LIMIT': 50,
    'COLLECTION_WINDOW_MONTHS': 3,
    'CURRENCY_CODE': 'KES',
    'TOP_OVERDUE_DEFAULT_LIMIT': 20,
}


def get_setting(name):
    if has_app_context():
        return current_app.config.get(name, DEFAULTS[name])
    return DEFAULTS[name]


def _with_days_overdue(invoices, as_of):
    for invoice in invoices:
        invoice['days_overdue'] = max(days_between(invoice['due_date'], as_of), 0)
        invoice['due_date'] = format_date(invoice['due_date'])
    return invoices


class PriorityDeterminer:

    def __init__(self, repository=None):
        self.repo = repository or ReceivablesRepository()

    def get_high_priority_collections(self, as_of=None):
        """
        Outstanding invoices that need attention first

        An invoice qualifies when it is more than HIGH_PRIORITY_DAYS_OVERDUE
        days overdue or its balance exceeds HIGH_PRIORITY_AMOUNT_THRESHOLD.
        Largest balances first, at most HIGH_PRIORITY_LIMIT rows. A student
        with several qualifying invoices appears once per invoice.
        """
        as_of = as_of or get_current_local_date()
        amount_threshold = get_setting('HIGH_PRIORITY_AMOUNT_THRESHOLD')
        days_threshold = get_setting('HIGH_PRIORITY_DAYS_OVERDUE')

        invoices = _with_days_overdue(self.repo.get_outstanding_invoices(as_of=as_of), as_of)
        priority = [
            invoice for invoice in invoices
            if invoice['days_overdue'] > days_threshold or invoice['amount'] > amount_threshold
        ]
        priority.sort(key=lambda invoice: invoice['amount'], reverse=True)
        return priority[:get_setting('HIGH_PRIORITY_LIMIT')]


class CollectionReminderGenerator:

    def __init__(self, repository=None):
        self.repo = repository or ReceivablesRepository()

    @staticmethod
    def build_reminder(days_overdue, amount, currency=None):
        """
        Reminder tier and message for an invoice, or None

        Thresholds are point events: only exactly 30, 60 or 90 days overdue
        produce a reminder.
        """
        tier = ReminderTier.for_days_overdue(days_overdue)
        if tier is None:
            return None
        message = REMINDER_TEMPLATES[tier].format(
            currency=currency or get_setting('CURRENCY_CODE'),
            amount=f"{amount:,.2f}",
            days=days_overdue
        )
        return tier, message

    def run(self, as_of=None):
        """
        Generate reminders for every invoice on a threshold day

        Each reminder records a CollectionAction in its own savepoint. A
        failure for one student is logged and reported; the remaining
        students are still processed and the batch commits at the end.

        Returns:
            dict: reminders (issued), failed (student_id, invoice_id, error), total
        """
        as_of = as_of or get_current_local_date()
        currency = get_setting('CURRENCY_CODE')
        invoices = _with_days_overdue(self.repo.get_outstanding_invoices(as_of=as_of), as_of)

        reminders = []
        failed = []

        for invoice in invoices:
            reminder = self.build_reminder(invoice['days_overdue'], invoice['amount'], currency)
            if reminder is None:
                continue
            tier, message = reminder

            try:
                action = self.repo.record_collection_action(invoice['student_id'], tier.name, message)
            except Exception as e:
                log_error(
                    f"Failed to record {tier.name} for student {invoice['student_id']} "
                    f"(invoice {invoice['id']}): {str(e)}"
                )
                failed.append({
                    'student_id': invoice['student_id'],
                    'invoice_id': invoice['id'],
                    'error': str(e),
                })
                continue

            reminders.append({
                'student_id': invoice['student_id'],
                'student_name': invoice['student_name'],
                'student_phone': invoice['phone'] or 'N/A',
                'invoice_id': invoice['id'],
                'reminder_type': tier.name,
                'reminder_text': message,
                'amount': invoice['amount'],
                'days_overdue': invoice['days_overdue'],
                'action_id': action.id,
            })

        try:
            self.repo.session.commit()
        except Exception as e:
            self.repo.session.rollback()
            log_error(f"Failed to commit collection reminders: {str(e)}")
            raise

        log_info(f"Collection reminders for {as_of.isoformat()}: {len(reminders)} issued, {len(failed)} failed")
        return {'reminders': reminders, 'failed': failed, 'total': len(reminders)}

    def generate_collection_reminders(self, as_of=None):
        return self.run(as_of)['reminders']


class CollectionsAnalyzer:

    def __init__(self, session=None):
        self.session = session or db.session

    def get_outstanding_metrics(self):
        """Outstanding invoices regardless of date"""
        sql = build_normalized_invoice_sql('fi')
        row = self.session.execute(text(f"""
            SELECT
                COUNT(*) AS total_outstanding_invoices,
                SUM({sql.balance}) AS total_outstanding_amount,
                COUNT(DISTINCT fi.student_id) AS students_with_arrears
            FROM {FEE_INVOICE_TABLE} fi
            WHERE {sql.outstanding_predicate}
        """)).mappings().first()

        return {
            'total_outstanding_invoices': int(row['total_outstanding_invoices'] or 0),
            'total_outstanding_amount': round(float(row['total_outstanding_amount'] or 0), 2),
            'students_with_arrears': int(row['students_with_arrears'] or 0),
        }

    def get_total_billed(self, start_date, end_date):
        """Billed amount of non-cancelled invoices issued within the window"""
        invoice_date_sql = build_invoice_date_sql('fi')
        total = self.session.execute(text(f"""
            SELECT SUM({build_invoice_amount_sql('fi')}) AS total
            FROM {FEE_INVOICE_TABLE} fi
            WHERE ({build_active_status_predicate('fi')})
              AND {invoice_date_sql} >= :start_date
              AND {invoice_date_sql} < :day_after_end
        """), {
            'start_date': start_date.isoformat(),
            'day_after_end': (end_date + timedelta(days=1)).isoformat(),
        }).scalar()
        return round(float(total or 0), 2)

    @staticmethod
    def collection_rate(collected, billed):
        """Collected over billed as a percentage in [0, 100]; 0 when nothing was billed"""
        if not billed or billed <= 0:
            return 0.0
        rate = (collected or 0) / billed * 100
        return round(min(max(rate, 0.0), 100.0), 2)

    def get_collections_effectiveness_report(self, as_of=None):
        """
        Collections over the trailing window compared to billing

        Returns:
            dict: period, collection_metrics, outstanding_metrics, total_billed,
                  collection_rate_percentage, effectiveness_status
        """
        end_date = as_of or get_current_local_date()
        start_date = subtract_months(end_date, get_setting('COLLECTION_WINDOW_MONTHS'))

        collection_metrics = get_collection_metrics(start_date, end_date, self.session)
        outstanding_metrics = self.get_outstanding_metrics()
        total_billed = self.get_total_billed(start_date, end_date)
        rate = self.collection_rate(collection_metrics['total_amount_collected'], total_billed)

        return {
            'period': {'start_date': start_date.isoformat(), 'end_date': end_date.isoformat()},
            'collection_metrics': collection_metrics,
            'outstanding_metrics': outstanding_metrics,
            'total_billed': total_billed,
            'collection_rate_percentage': rate,
            'effectiveness_status': effectiveness_status(rate).value,
        }
