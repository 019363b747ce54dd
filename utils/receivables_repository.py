"""
Receivables repository

Raw, parameterized queries over fee invoices, students, ledger transactions
and collection actions. Invoice amounts and the outstanding filter always
come from utils.fee_invoice_sql; collection filters come from
utils.ledger_recorder.
"""

from datetime import timedelta

from sqlalchemy import bindparam, text

from init_db import db
from models.collection_action_model import CollectionAction
from utils.error_handler import NotFoundError, ValidationError
from utils.fee_invoice_sql import (
    FEE_INVOICE_TABLE, build_normalized_invoice_sql, require_due_date_column, sql_coalesce
)
from utils.ledger_recorder import LEDGER_TABLE, build_collection_predicate
from utils.schema_helper import column_exists, existing_columns, table_exists
from utils.timezone_helper import format_date, get_current_utc_datetime

STUDENT_TABLE = 'students'
STUDENT_PHONE_COLUMNS = ('guardian_phone', 'phone', 'contact_phone')


class ReceivablesRepository:

    def __init__(self, session=None):
        self.session = session or db.session

    def _student_column(self, column, fallback="''"):
        if column_exists(STUDENT_TABLE, column):
            return f"s.{column}"
        return fallback

    def _student_phone_sql(self):
        columns = existing_columns(STUDENT_TABLE, STUDENT_PHONE_COLUMNS)
        if not columns:
            return "NULL"
        return sql_coalesce(f's.{column}' for column in columns)

    def student_exists(self, student_id):
        if not table_exists(STUDENT_TABLE):
            raise ValidationError(f"Table '{STUDENT_TABLE}' does not exist")
        row = self.session.execute(
            text(f"SELECT id FROM {STUDENT_TABLE} WHERE id = :student_id"),
            {'student_id': student_id}
        ).first()
        return row is not None

    def require_student(self, student_id):
        if not self.student_exists(student_id):
            raise NotFoundError(f"Student {student_id} has no enrollment record")

    def get_outstanding_invoices(self, as_of=None, student_id=None):
        """
        Outstanding invoices, oldest obligation first

        Args:
            as_of (date): only invoices due on or before this date
            student_id (int): restrict to one student

        Returns:
            list of dicts with id, student_id, names, admission_number, phone,
            billed_amount, paid_amount, amount (normalized balance), status,
            due_date
        """
        sql = build_normalized_invoice_sql('fi')
        params = {}
        filters = [sql.outstanding_predicate]

        if as_of is not None:
            require_due_date_column()
            # Legacy due dates may carry a time part
            filters.append("fi.due_date < :day_after_as_of")
            params['day_after_as_of'] = (as_of + timedelta(days=1)).isoformat()

        if student_id is not None:
            filters.append("fi.student_id = :student_id")
            params['student_id'] = student_id

        due_date_sql = "fi.due_date" if column_exists(FEE_INVOICE_TABLE, 'due_date') else "NULL"
        invoice_number_sql = "fi.invoice_number" if column_exists(FEE_INVOICE_TABLE, 'invoice_number') else "NULL"

        query = f"""
            SELECT
                fi.id AS id,
                fi.student_id AS student_id,
                {invoice_number_sql} AS invoice_number,
                {self._student_column('first_name')} AS first_name,
                {self._student_column('last_name')} AS last_name,
                {self._student_column('admission_number')} AS admission_number,
                {self._student_phone_sql()} AS phone,
                {sql.amount} AS billed_amount,
                {sql.paid_amount} AS paid_amount,
                {sql.balance} AS amount,
                {sql.status} AS status,
                {due_date_sql} AS due_date
            FROM {FEE_INVOICE_TABLE} fi
            LEFT JOIN {STUDENT_TABLE} s ON fi.student_id = s.id
            WHERE {' AND '.join(f'({condition})' for condition in filters)}
            ORDER BY {sql.order_by}
        """

        rows = self.session.execute(text(query), params).mappings().all()
        invoices = []
        for row in rows:
            invoice = dict(row)
            invoice['amount'] = round(max(float(invoice['amount'] or 0), 0.0), 2)
            invoice['billed_amount'] = float(invoice['billed_amount'] or 0)
            invoice['paid_amount'] = float(invoice['paid_amount'] or 0)
            invoice['student_name'] = f"{invoice['first_name'] or ''} {invoice['last_name'] or ''}".strip()
            invoices.append(invoice)
        return invoices

    def get_last_payment_dates(self, student_ids):
        """
        Most recent canonical, non-voided collection date per student

        Returns:
            dict: student_id -> 'YYYY-MM-DD' (students without payments are absent)
        """
        student_ids = sorted({student_id for student_id in student_ids if student_id is not None})
        if not student_ids or not table_exists(LEDGER_TABLE):
            return {}

        query = text(f"""
            SELECT lt.student_id AS student_id, MAX(lt.transaction_date) AS last_payment_date
            FROM {LEDGER_TABLE} lt
            WHERE lt.student_id IN :student_ids
              AND {build_collection_predicate('lt')}
            GROUP BY lt.student_id
        """).bindparams(bindparam('student_ids', expanding=True))

        rows = self.session.execute(query, {'student_ids': student_ids}).mappings().all()
        return {row['student_id']: format_date(row['last_payment_date']) for row in rows}

    def get_student_last_payment_date(self, student_id):
        return self.get_last_payment_dates([student_id]).get(student_id)

    def record_collection_action(self, student_id, action_type, notes=None):
        """
        Append a collection action inside a savepoint

        A failure rolls back this action only; the caller owns the commit.
        """
        with self.session.begin_nested():
            action = CollectionAction(
                student_id=student_id,
                action_type=action_type,
                notes=notes,
                action_date=get_current_utc_datetime()
            )
            self.session.add(action)
        return action

    def get_collection_history(self, student_id):
        return self.session.query(CollectionAction).filter_by(student_id=student_id)\
            .order_by(CollectionAction.action_date.desc(), CollectionAction.id.desc()).all()
