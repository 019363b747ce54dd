import unittest

from utils.finance_vocabulary import (
    CANCELLED_INVOICE_STATUSES, OUTSTANDING_INVOICE_STATUSES, EffectivenessStatus, InvoiceStatus,
    ReminderTier, canonical_invoice_status, canonical_transaction_type, collection_type_spellings,
    effectiveness_status, is_cancelled_status, is_student_collection, sql_in_list, status_after_payment
)


class InvoiceStatusVocabularyTestCase(unittest.TestCase):

    def test_legacy_spellings_map_to_canonical(self):
        self.assertEqual(canonical_invoice_status('pending'), InvoiceStatus.OUTSTANDING)
        self.assertEqual(canonical_invoice_status(' Partially_Paid '), InvoiceStatus.PARTIAL)
        self.assertEqual(canonical_invoice_status('settled'), InvoiceStatus.PAID)
        self.assertEqual(canonical_invoice_status('Canceled'), InvoiceStatus.CANCELLED)

    def test_numeric_codes(self):
        self.assertEqual(canonical_invoice_status(0), InvoiceStatus.OUTSTANDING)
        self.assertEqual(canonical_invoice_status(1), InvoiceStatus.PAID)
        self.assertEqual(canonical_invoice_status(2.0), InvoiceStatus.PARTIAL)
        self.assertEqual(canonical_invoice_status('-1'), InvoiceStatus.CANCELLED)

    def test_missing_and_unknown(self):
        self.assertEqual(canonical_invoice_status(None), InvoiceStatus.OUTSTANDING)
        self.assertEqual(canonical_invoice_status(''), InvoiceStatus.OUTSTANDING)
        self.assertIsNone(canonical_invoice_status('WRITTEN_OFF'))

    def test_cancelled_never_in_outstanding_set(self):
        self.assertFalse(set(CANCELLED_INVOICE_STATUSES) & set(OUTSTANDING_INVOICE_STATUSES))
        self.assertTrue(is_cancelled_status('VOID'))
        self.assertFalse(is_cancelled_status('PAID'))

    def test_status_after_payment(self):
        self.assertEqual(status_after_payment(1000, 0), InvoiceStatus.OUTSTANDING)
        self.assertEqual(status_after_payment(1000, 400), InvoiceStatus.PARTIAL)
        self.assertEqual(status_after_payment(1000, 1000), InvoiceStatus.PAID)


class TransactionTypeVocabularyTestCase(unittest.TestCase):

    def test_collection_types_case_insensitive(self):
        for raw in ('FEE_PAYMENT', 'payment', ' Fee_Collection ', 'school_fees', 'CREDIT_PAYMENT'):
            self.assertTrue(is_student_collection(raw), raw)

    def test_aliases_resolve(self):
        self.assertEqual(canonical_transaction_type('fees_payment'), 'FEE_PAYMENT')
        self.assertTrue(is_student_collection('Student_Payment'))

    def test_non_collection_types(self):
        self.assertFalse(is_student_collection('SALARY'))
        self.assertFalse(is_student_collection(None))

    def test_sql_spellings_include_aliases(self):
        spellings = collection_type_spellings()
        self.assertIn('FEE_PAYMENT', spellings)
        self.assertIn('FEES_PAYMENT', spellings)

    def test_sql_in_list_escapes_quotes(self):
        self.assertEqual(sql_in_list(['A', "O'B"]), "'A', 'O''B'")


class ReminderAndEffectivenessTestCase(unittest.TestCase):

    def test_reminder_tiers_are_exact_days(self):
        self.assertEqual(ReminderTier.for_days_overdue(30), ReminderTier.FIRST_REMINDER)
        self.assertEqual(ReminderTier.for_days_overdue(60), ReminderTier.SECOND_REMINDER)
        self.assertEqual(ReminderTier.for_days_overdue(90), ReminderTier.FINAL_WARNING)
        for days in (0, 29, 31, 59, 61, 89, 91, 120):
            self.assertIsNone(ReminderTier.for_days_overdue(days))

    def test_effectiveness_bands(self):
        self.assertEqual(effectiveness_status(100), EffectivenessStatus.EXCELLENT)
        self.assertEqual(effectiveness_status(80), EffectivenessStatus.EXCELLENT)
        self.assertEqual(effectiveness_status(79.99), EffectivenessStatus.GOOD)
        self.assertEqual(effectiveness_status(60), EffectivenessStatus.GOOD)
        self.assertEqual(effectiveness_status(40), EffectivenessStatus.FAIR)
        self.assertEqual(effectiveness_status(39.9), EffectivenessStatus.POOR)
        self.assertEqual(effectiveness_status(0), EffectivenessStatus.POOR)
