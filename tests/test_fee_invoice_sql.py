import unittest

from sqlalchemy import text

from init_db import db
from tests.ledger_test_case import LedgerTestCase
from utils.aging_calculator import AgingCalculator
from utils.error_handler import ConsistencyError, ValidationError
from utils.fee_invoice_sql import (
    build_invoice_amount_sql, build_invoice_date_sql, build_invoice_order_sql, build_invoice_paid_amount_sql,
    build_normalized_invoice_sql, build_outstanding_status_predicate, outstanding_balance, sql_coalesce
)
from utils.receivables_repository import ReceivablesRepository


def outstanding_totals():
    """Count and sum of the normalized outstanding set"""
    sql = build_normalized_invoice_sql('fi')
    row = db.session.execute(text(f"""
        SELECT COUNT(*) AS invoices, COALESCE(SUM({sql.balance}), 0) AS total
        FROM fee_invoices fi
        WHERE {sql.outstanding_predicate}
    """)).mappings().first()
    return row['invoices'], float(row['total'])


class CurrentSchemaNormalizationTestCase(LedgerTestCase):
    """Outstanding-balance normalization on the current schema"""

    def test_billed_amount_falls_back_past_zero_total(self):
        student = self.add_student()
        self.add_invoice(student, total_amount=0, amount_due=17000, amount_paid=2000, status='partial')

        count, total = outstanding_totals()

        self.assertEqual(count, 1)
        self.assertAlmostEqual(total, 15000)

    def test_cancelled_invoices_never_outstanding_in_any_casing(self):
        student = self.add_student()
        for status in ('cancelled', 'Cancelled', 'CANCELED', 'void', 'Voided'):
            self.add_invoice(student, total_amount=9000, status=status)
        self.add_invoice(student, total_amount=5000, amount_paid=1000, status='OUTSTANDING')

        count, total = outstanding_totals()

        self.assertEqual(count, 1)
        self.assertAlmostEqual(total, 4000)

    def test_paid_and_zero_balance_invoices_excluded(self):
        student = self.add_student()
        self.add_invoice(student, total_amount=5000, amount_paid=5000, status='PAID')
        # Status still says outstanding but nothing is owed
        self.add_invoice(student, total_amount=3000, amount_paid=3000, status='OUTSTANDING')
        self.add_invoice(student, total_amount=3000, amount_paid=3500, status='PARTIAL')

        self.assertEqual(outstanding_totals(), (0, 0.0))

    def test_legacy_status_spellings_count_as_outstanding(self):
        student = self.add_student()
        for status in ('pending', 'Unpaid', 'OVERDUE', None):
            self.add_invoice(student, total_amount=1000, status=status)

        count, total = outstanding_totals()

        self.assertEqual(count, 4)
        self.assertAlmostEqual(total, 4000)

    def test_unsafe_alias_rejected(self):
        with self.assertRaises(ValidationError):
            build_invoice_amount_sql('fi; DROP TABLE students')

    def test_outstanding_invoices_ordered_oldest_due_first(self):
        student = self.add_student()
        recent = self.add_invoice(student, total_amount=1000, days_overdue=5)
        oldest = self.add_invoice(student, total_amount=1000, days_overdue=80)
        middle = self.add_invoice(student, total_amount=1000, days_overdue=40)

        invoices = ReceivablesRepository().get_outstanding_invoices(student_id=student.id)

        self.assertEqual([invoice['id'] for invoice in invoices], [oldest.id, middle.id, recent.id])


class LegacySchemaNormalizationTestCase(LedgerTestCase):
    """Older generations of fee_invoices"""

    USE_CURRENT_SCHEMA = False

    def setUp(self):
        super().setUp()
        self.execute_sql(
            "CREATE TABLE students (id INTEGER PRIMARY KEY, first_name TEXT, last_name TEXT, "
            "admission_number TEXT, phone TEXT)",
            "INSERT INTO students (id, first_name, last_name, admission_number, phone) "
            "VALUES (1, 'Juma', 'Kamau', 'OLD-001', '0711000000')",
        )

    def test_amount_and_paid_amount_generation(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, amount REAL, "
            "paid_amount REAL, status TEXT, due_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 5000, 1000, 'OUTSTANDING', '2026-03-01')",
            "INSERT INTO fee_invoices VALUES (2, 1, 9000, 0, 'cancelled', '2026-03-01')",
            "INSERT INTO fee_invoices VALUES (3, 1, 2500, NULL, 'pending', '2026-03-10')",
        )

        self.assertIn('fi.amount', build_invoice_amount_sql('fi'))
        self.assertIn('fi.paid_amount', build_invoice_paid_amount_sql('fi'))
        count, total = outstanding_totals()
        self.assertEqual(count, 2)
        self.assertAlmostEqual(total, 6500)

    def test_numeric_status_codes(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, amount_due REAL, "
            "amount_paid REAL, status INTEGER, due_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 4000, 0, 0, '2026-03-01')",
            "INSERT INTO fee_invoices VALUES (2, 1, 4000, 1000, 2, '2026-03-01')",
            "INSERT INTO fee_invoices VALUES (3, 1, 4000, 4000, 1, '2026-03-01')",
            "INSERT INTO fee_invoices VALUES (4, 1, 4000, 0, -1, '2026-03-01')",
        )

        count, total = outstanding_totals()

        self.assertEqual(count, 2)
        self.assertAlmostEqual(total, 7000)

    def test_missing_status_column_relies_on_balance(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, total_amount REAL, "
            "amount_paid REAL, due_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 3000, 1000, '2026-03-01')",
            "INSERT INTO fee_invoices VALUES (2, 1, 3000, 3000, '2026-03-01')",
        )

        self.assertEqual(build_outstanding_status_predicate('fi'), '1=1')
        self.assertEqual(outstanding_totals(), (1, 2000.0))

    def test_missing_paid_column_treated_as_unpaid(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, total_amount REAL, "
            "status TEXT, due_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 3000, 'OUTSTANDING', '2026-03-01')",
        )

        self.assertEqual(build_invoice_paid_amount_sql('fi'), '0')
        self.assertEqual(outstanding_totals(), (1, 3000.0))

    def test_no_billed_amount_column_fails_fast(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, amount_paid REAL, "
            "status TEXT, due_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 0, 'OUTSTANDING', '2026-03-01')",
        )

        with self.assertRaises(ConsistencyError):
            build_normalized_invoice_sql('fi')
        with self.assertRaises(ConsistencyError):
            ReceivablesRepository().get_outstanding_invoices()

    def test_missing_invoice_table_fails_fast(self):
        with self.assertRaises(ConsistencyError):
            build_invoice_amount_sql('fi')

    def test_aging_requires_due_date_column(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, total_amount REAL, "
            "amount_paid REAL, status TEXT, invoice_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 3000, 0, 'OUTSTANDING', '2026-01-01')",
        )

        with self.assertRaises(ValidationError):
            ReceivablesRepository().get_outstanding_invoices(as_of=self.AS_OF)

    def test_single_date_column_used_without_coalesce(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, total_amount REAL, "
            "amount_paid REAL, status TEXT, due_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 3000, 500, 'OUTSTANDING', '2026-03-01')",
        )

        self.assertEqual(build_invoice_date_sql('fi'), 'fi.due_date')
        self.assertEqual(build_invoice_order_sql('fi'), 'fi.due_date ASC, fi.id ASC')
        invoices = ReceivablesRepository().get_outstanding_invoices(as_of=self.AS_OF)
        self.assertEqual(len(invoices), 1)
        self.assertEqual(invoices[0]['amount'], 2500)
        # students carries only the phone column
        self.assertEqual(invoices[0]['phone'], '0711000000')

    def test_due_date_with_time_part_is_due_on_that_day(self):
        self.execute_sql(
            "CREATE TABLE fee_invoices (id INTEGER PRIMARY KEY, student_id INTEGER, total_amount REAL, "
            "amount_paid REAL, status TEXT, due_date TEXT)",
            "INSERT INTO fee_invoices VALUES (1, 1, 6000, 0, 'OUTSTANDING', '2026-03-31 00:00:00')",
            "INSERT INTO fee_invoices VALUES (2, 1, 4000, 0, 'OUTSTANDING', '2026-04-01 00:00:00')",
        )

        invoices = ReceivablesRepository().get_outstanding_invoices(as_of=self.AS_OF)

        self.assertEqual([invoice['id'] for invoice in invoices], [1])
        self.assertEqual(invoices[0]['amount'], 6000)
        report = AgingCalculator().calculate_aged_receivables(self.AS_OF)
        self.assertEqual(sum(bucket['total_amount'] for bucket in report), 6000)
        self.assertEqual(report[0]['accounts'][0]['days_overdue'], 0)


class OutstandingBalanceHelperTestCase(unittest.TestCase):

    def test_floors_at_zero(self):
        self.assertEqual(outstanding_balance(1000, 1500), 0.0)

    def test_cancelled_owes_nothing(self):
        self.assertEqual(outstanding_balance(9000, 0, 'Canceled'), 0.0)
        self.assertEqual(outstanding_balance(9000, 0, -1), 0.0)

    def test_missing_values(self):
        self.assertEqual(outstanding_balance(None, None), 0.0)
        self.assertEqual(outstanding_balance(17000, 2000, 'partial'), 15000.0)

    def test_coalesce_of_one_expression_is_the_expression(self):
        self.assertEqual(sql_coalesce(['s.phone']), 's.phone')
        self.assertEqual(sql_coalesce(['s.guardian_phone', 's.phone']), 'COALESCE(s.guardian_phone, s.phone)')
