from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from apps.finance.conf import LATE_FEE_AUTO_APPLY, LATE_FEE_INFORMATIONAL
from apps.finance.exceptions import InvalidStateError, OverpaymentError, ValidationError
from apps.finance.models import FeeJournalEntry, FeeStructure, StudentFeeAssignment

PENDING = FeeJournalEntry.STATUS_PENDING
PARTIAL = FeeJournalEntry.STATUS_PARTIAL
PAID = FeeJournalEntry.STATUS_PAID
OVERDUE = FeeJournalEntry.STATUS_OVERDUE
WAIVED = FeeJournalEntry.STATUS_WAIVED


class JournalEntryStateTests(SimpleTestCase):
    """State machine of a single journal entry, no database involved"""

    def make_entry(self, due='1080.00', late_fee_amount='50', late_fee_percentage=None):
        structure = FeeStructure(
            structure_name='Grade 6 Monthly Fees',
            due_day=5,
            grace_period_days=7,
            late_fee_amount=Decimal(late_fee_amount),
            late_fee_percentage=late_fee_percentage,
        )
        assignment = StudentFeeAssignment(fee_structure=structure)
        entry = FeeJournalEntry(
            assignment=assignment,
            fee_month='2025-09',
            due_amount=Decimal(due),
            paid_amount=Decimal('0'),
            status=PENDING,
            due_date=date(2025, 9, 5),
        )
        entry.recalculate_balance()
        return entry

    def assertBalanced(self, entry):
        if entry.status != WAIVED:
            self.assertEqual(entry.balance_amount, entry.due_amount - entry.paid_amount)

    def test_full_payment(self):
        entry = self.make_entry()
        entry.apply_payment(Decimal('1080'), paid_on=date(2025, 9, 3))

        self.assertEqual(entry.status, PAID)
        self.assertEqual(entry.balance_amount, Decimal('0.00'))
        self.assertEqual(entry.paid_date, date(2025, 9, 3))
        self.assertBalanced(entry)

        with self.assertRaises(OverpaymentError):
            entry.apply_payment(Decimal('1'))

    def test_partial_then_rest(self):
        entry = self.make_entry()
        entry.apply_payment(Decimal('500'))
        self.assertEqual(entry.status, PARTIAL)
        self.assertEqual(entry.balance_amount, Decimal('580.00'))
        self.assertIsNone(entry.paid_date)

        entry.apply_payment(Decimal('580'))
        self.assertEqual(entry.status, PAID)
        self.assertBalanced(entry)

    def test_overpayment_leaves_entry_untouched(self):
        entry = self.make_entry()
        with self.assertRaises(OverpaymentError) as ctx:
            entry.apply_payment(Decimal('1080.01'))
        self.assertIn('amountPaid', ctx.exception.errors)
        self.assertEqual(entry.status, PENDING)
        self.assertEqual(entry.paid_amount, Decimal('0'))

    def test_non_positive_amount(self):
        entry = self.make_entry()
        for amount in (Decimal('0'), Decimal('-5')):
            with self.assertRaises(ValidationError):
                entry.apply_payment(amount)

    def test_overdue_after_grace_period(self):
        entry = self.make_entry()
        self.assertFalse(entry.check_overdue(date(2025, 9, 12), LATE_FEE_INFORMATIONAL))
        self.assertEqual(entry.status, PENDING)

        self.assertTrue(entry.check_overdue(date(2025, 9, 13), LATE_FEE_INFORMATIONAL))
        self.assertEqual(entry.status, OVERDUE)
        self.assertEqual(entry.late_fee_applied, Decimal('50.00'))
        # informational: the amount due does not change
        self.assertEqual(entry.due_amount, Decimal('1080.00'))
        self.assertEqual(entry.balance_amount, Decimal('1080.00'))

    def test_auto_applied_late_fee(self):
        entry = self.make_entry(late_fee_percentage=Decimal('10'))
        entry.check_overdue(date(2025, 10, 1), LATE_FEE_AUTO_APPLY)

        self.assertEqual(entry.late_fee_applied, Decimal('108.00'))
        self.assertEqual(entry.due_amount, Decimal('1188.00'))
        self.assertEqual(entry.balance_amount, Decimal('1188.00'))

        # applied once only
        self.assertFalse(entry.check_overdue(date(2025, 11, 1), LATE_FEE_AUTO_APPLY))
        self.assertEqual(entry.due_amount, Decimal('1188.00'))

    def test_partial_entry_becomes_overdue_and_can_still_be_paid(self):
        entry = self.make_entry()
        entry.apply_payment(Decimal('500'))
        entry.check_overdue(date(2025, 10, 1), LATE_FEE_INFORMATIONAL)
        self.assertEqual(entry.status, OVERDUE)

        entry.apply_payment(Decimal('580'))
        self.assertEqual(entry.status, PAID)
        self.assertBalanced(entry)

    def test_paid_entry_never_overdue(self):
        entry = self.make_entry()
        entry.apply_payment(Decimal('1080'))
        self.assertFalse(entry.check_overdue(date(2026, 1, 1), LATE_FEE_INFORMATIONAL))
        self.assertEqual(entry.status, PAID)

    def test_waive(self):
        entry = self.make_entry()
        entry.apply_payment(Decimal('500'))
        entry.waive('  Hardship case approved by the head  ')

        self.assertEqual(entry.status, WAIVED)
        self.assertEqual(entry.balance_amount, Decimal('0.00'))
        self.assertEqual(entry.waived_amount, Decimal('580.00'))
        self.assertEqual(entry.waiver_reason, 'Hardship case approved by the head')

        with self.assertRaises(InvalidStateError):
            entry.apply_payment(Decimal('1'))
        with self.assertRaises(InvalidStateError):
            entry.waive('Again')
        self.assertFalse(entry.check_overdue(date(2026, 1, 1), LATE_FEE_INFORMATIONAL))

    def test_waive_needs_reason(self):
        entry = self.make_entry()
        with self.assertRaises(ValidationError):
            entry.waive('   ')
        self.assertEqual(entry.status, PENDING)

    def test_cannot_waive_paid_entry(self):
        entry = self.make_entry()
        entry.apply_payment(Decimal('1080'))
        with self.assertRaises(InvalidStateError):
            entry.waive('Paid already')

    def test_reverse_payment(self):
        entry = self.make_entry()
        entry.apply_payment(Decimal('1080'), paid_on=date(2025, 9, 3))

        self.assertEqual(entry.reverse_payment(Decimal('80')), Decimal('80'))
        self.assertEqual(entry.status, PARTIAL)
        self.assertEqual(entry.balance_amount, Decimal('80.00'))
        self.assertIsNone(entry.paid_date)

        self.assertEqual(entry.reverse_payment(Decimal('5000')), Decimal('1000.00'))
        self.assertEqual(entry.status, PENDING)
        self.assertBalanced(entry)
