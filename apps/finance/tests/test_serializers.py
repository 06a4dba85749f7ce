from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from apps.finance.exceptions import ValidationError
from apps.finance.serializers import (
    AssignmentTermsSerializer, FeeStructureInputSerializer, GenerateJournalSerializer,
    PaymentFilterSerializer, PaymentInputSerializer, RefundFilterSerializer, RefundInputSerializer,
)
from apps.finance.validators import find_duplicate_items, flatten_errors, validate_with

from .factories import structure_data

TODAY = date(2025, 9, 10)


def errors_of(serializer_class, data, **context):
    try:
        validate_with(serializer_class, data, **context)
    except ValidationError as e:
        return e.errors
    return {}


class FlattenErrorsTests(SimpleTestCase):
    def test_nested_paths(self):
        errors = {
            'components': [{}, {'amount': ['Too small']}],
            'dueDateConfig': {'dueDay': ['Too big']},
            'applicableClasses': {0: ['Too long']},
        }
        self.assertEqual(flatten_errors(errors), {
            'components[1].amount': ['Too small'],
            'dueDateConfig.dueDay': ['Too big'],
            'applicableClasses[0]': ['Too long'],
        })

    def test_nested_non_field_errors_reported_on_parent(self):
        errors = {'feeItems': {'non_field_errors': ['This list may not be empty.']}}
        self.assertEqual(flatten_errors(errors), {'feeItems': ['This list may not be empty.']})

    def test_duplicates_compare_ids_as_integers(self):
        items = [{'journal_entry_id': 1}, {'journal_entry_id': 2}, {'journal_entry_id': '1'}]
        self.assertEqual(find_duplicate_items(items), [1])


class FeeStructureInputTests(SimpleTestCase):
    def test_valid_structure(self):
        data = validate_with(FeeStructureInputSerializer, structure_data())
        self.assertEqual(data['structure_name'], 'Grade 6 Monthly Fees')
        self.assertEqual(data['due_day'], 5)
        self.assertEqual(data['components'][1]['fee_type'], 'LIBRARY')

    def test_due_date_defaults(self):
        payload = structure_data()
        payload['dueDateConfig'] = {'lateFeeAmount': '25'}
        data = validate_with(FeeStructureInputSerializer, payload)
        self.assertEqual(data['due_day'], 5)
        self.assertEqual(data['grace_period_days'], 7)
        self.assertEqual(data['late_fee_amount'], Decimal('25.00'))

    def test_academic_year_must_be_consecutive(self):
        self.assertIn('academicYearCode', errors_of(FeeStructureInputSerializer, structure_data(academicYearCode='2025-2027')))
        self.assertIn('academicYearCode', errors_of(FeeStructureInputSerializer, structure_data(academicYearCode='2025/26')))

    def test_component_count_bounds(self):
        self.assertIn('components', errors_of(FeeStructureInputSerializer, structure_data(components=[])))

        many = [{'feeType': 'OTHER', 'feeName': f'Fee {i}', 'amount': 10} for i in range(21)]
        self.assertIn('components', errors_of(FeeStructureInputSerializer, structure_data(components=many)))

    def test_component_errors_are_indexed(self):
        components = [
            {'feeType': 'TUITION', 'feeName': 'Tuition Fee', 'amount': Decimal('1000')},
            {'feeType': 'LIBRARY', 'feeName': 'Library Fee', 'amount': Decimal('0')},
            {'feeType': 'BOOKS', 'feeName': 'B', 'amount': Decimal('10.005')},
        ]
        errors = errors_of(FeeStructureInputSerializer, structure_data(components=components))
        self.assertIn('components[1].amount', errors)
        self.assertIn('components[2].feeType', errors)
        self.assertIn('components[2].feeName', errors)
        self.assertIn('components[2].amount', errors)
        self.assertNotIn('components[0].amount', errors)

    def test_text_limits(self):
        errors = errors_of(FeeStructureInputSerializer, structure_data(structureName='  ', description='x' * 1001))
        self.assertIn('structureName', errors)
        self.assertIn('description', errors)

    def test_due_date_config(self):
        errors = errors_of(FeeStructureInputSerializer, structure_data(dueDay=32, gracePeriodDays=31))
        self.assertIn('dueDateConfig.dueDay', errors)
        self.assertIn('dueDateConfig.gracePeriodDays', errors)

    def test_late_fee_required(self):
        errors = errors_of(FeeStructureInputSerializer, structure_data(lateFeeAmount=0, lateFeePercentage=None))
        self.assertIn('dueDateConfig', errors)

        errors = errors_of(FeeStructureInputSerializer, structure_data(lateFeeAmount=0, lateFeePercentage=Decimal('2')))
        self.assertNotIn('dueDateConfig', errors)

    def test_effective_to_after_effective_from(self):
        errors = errors_of(FeeStructureInputSerializer, structure_data(effectiveTo=date(2025, 9, 1)))
        self.assertEqual(list(errors), ['effectiveTo'])

    def test_applicable_classes(self):
        self.assertIn('applicableClasses', errors_of(FeeStructureInputSerializer, structure_data(applicableClasses=[])))
        errors = errors_of(FeeStructureInputSerializer, structure_data(applicableClasses=['x' * 51]))
        self.assertIn('applicableClasses[0]', errors)


class AssignmentTermsTests(SimpleTestCase):
    def validate(self, data):
        return validate_with(AssignmentTermsSerializer, data, default_effective_from=TODAY)

    def test_no_discount(self):
        data = self.validate({})
        self.assertEqual(data['effective_from'], TODAY)
        self.assertNotIn('discount_type', data)

    def test_discount_is_flattened(self):
        data = self.validate({
            'discount': {'discountType': 'FIXED', 'discountValue': '100', 'reason': 'Staff child'},
        })
        self.assertEqual(data['discount_type'], 'FIXED')
        self.assertEqual(data['discount_value'], Decimal('100.00'))
        self.assertEqual(data['discount_reason'], 'Staff child')

    def test_percentage_over_100(self):
        errors = errors_of(AssignmentTermsSerializer, {
            'discount': {'discountType': 'PERCENTAGE', 'discountValue': '150', 'reason': 'Sibling discount'},
        }, default_effective_from=TODAY)
        self.assertIn('discount.discountValue', errors)

    def test_discount_needs_reason(self):
        errors = errors_of(AssignmentTermsSerializer, {
            'discount': {'discountType': 'FIXED', 'discountValue': '100', 'reason': 'abc'},
        }, default_effective_from=TODAY)
        self.assertEqual(list(errors), ['discount.reason'])

    def test_effective_to_after_effective_from(self):
        errors = errors_of(AssignmentTermsSerializer, {'effectiveTo': '2025-09-01'}, default_effective_from=TODAY)
        self.assertEqual(list(errors), ['effectiveTo'])


class PaymentInputTests(SimpleTestCase):
    def payload(self, **overrides):
        data = {
            'feeItems': [{'journalEntryId': 1, 'amountPaid': '500'}],
            'paymentMethod': 'Cash',
        }
        data.update(overrides)
        return data

    def test_cash_without_reference(self):
        data = validate_with(PaymentInputSerializer, self.payload(), today=TODAY)
        self.assertEqual(data['payment_date'], TODAY)
        self.assertEqual(data['transaction_reference'], '')
        self.assertEqual(data['fee_items'][0]['amount_paid'], Decimal('500.00'))

    def test_card_requires_reference(self):
        errors = errors_of(PaymentInputSerializer, self.payload(paymentMethod='Card'), today=TODAY)
        self.assertEqual(list(errors), ['transactionReference'])

        errors = errors_of(
            PaymentInputSerializer, self.payload(paymentMethod='Card', transactionReference='TXN-001'), today=TODAY,
        )
        self.assertEqual(errors, {})

    def test_future_payment_date(self):
        errors = errors_of(PaymentInputSerializer, self.payload(paymentDate='2025-09-11'), today=TODAY)
        self.assertIn('paymentDate', errors)

    def test_item_errors(self):
        errors = errors_of(PaymentInputSerializer, self.payload(feeItems=[
            {'journalEntryId': 'abc', 'amountPaid': '0'},
            {'journalEntryId': 2, 'amountPaid': '1.999'},
        ]), today=TODAY)
        self.assertIn('feeItems[0].journalEntryId', errors)
        self.assertIn('feeItems[0].amountPaid', errors)
        self.assertIn('feeItems[1].amountPaid', errors)

    def test_empty_items(self):
        self.assertIn('feeItems', errors_of(PaymentInputSerializer, self.payload(feeItems=[]), today=TODAY))

    def test_unknown_method(self):
        self.assertIn('paymentMethod', errors_of(PaymentInputSerializer, self.payload(paymentMethod='Bitcoin'), today=TODAY))


class RefundInputTests(SimpleTestCase):
    reason = 'Student transferred to another school'

    def errors(self, amount, reason=None, **fields):
        fields.update(refundAmount=amount, reason=reason or self.reason)
        return errors_of(RefundInputSerializer, fields, payment_total=Decimal('1080.00'))

    def test_valid(self):
        self.assertEqual(self.errors('500'), {})

    def test_zero_amount(self):
        self.assertEqual(list(self.errors('0')), ['refundAmount'])

    def test_short_reason(self):
        self.assertEqual(list(self.errors('500', 'too long')), ['reason'])

    def test_more_than_paid(self):
        self.assertIn('refundAmount', self.errors('1080.01'))

    def test_full_refund_must_match_total(self):
        self.assertIn('refundAmount', self.errors('500', isFullRefund=True))
        self.assertEqual(self.errors('1080', isFullRefund=True), {})


class QueryFilterTests(SimpleTestCase):
    def test_fee_month_format(self):
        self.assertIn('feeMonth', errors_of(GenerateJournalSerializer, {'feeMonth': '2025-13'}))
        self.assertEqual(errors_of(GenerateJournalSerializer, {'feeMonth': '2025-12'}), {})

    def test_payment_filters(self):
        errors = errors_of(PaymentFilterSerializer, {'studentId': 'abc', 'fromDate': 'abc', 'paymentMethod': 'Cash'})
        self.assertEqual(sorted(errors), ['fromDate', 'studentId'])

        params = validate_with(PaymentFilterSerializer, {'studentId': '7', 'toDate': '2025-09-30'})
        self.assertEqual(params['student_id'], 7)
        self.assertEqual(params['to_date'], date(2025, 9, 30))

    def test_refund_filters(self):
        self.assertIn('paymentId', errors_of(RefundFilterSerializer, {'paymentId': 'abc'}))
