from decimal import Decimal

from rest_framework import status
from rest_framework.test import APITestCase

from apps.finance.models import FeeStructure, Payment

from .factories import make_class, make_entry, make_structure, make_student, make_user

STRUCTURE_PAYLOAD = {
    'structureName': 'Grade 6 Monthly Fees',
    'academicYearCode': '2025-2026',
    'frequency': 'MONTHLY',
    'components': [
        {'feeType': 'TUITION', 'feeName': 'Tuition Fee', 'amount': 1000},
        {'feeType': 'LIBRARY', 'feeName': 'Library Fee', 'amount': 200},
    ],
    'applicableClasses': ['Grade 6-A'],
    'effectiveFrom': '2025-09-01',
    'dueDateConfig': {'dueDay': 5, 'gracePeriodDays': 7, 'lateFeeAmount': 50},
    'isActive': True,
}


class FeeStructureApiTests(APITestCase):
    def setUp(self):
        self.user = make_user()
        self.client.force_authenticate(self.user)

    def test_create_and_list(self):
        response = self.client.post('/api/v1/fee-structures/', STRUCTURE_PAYLOAD, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['data']
        self.assertEqual(data['totalAmount'], Decimal('1200.00'))
        self.assertEqual(data['dueDateConfig']['dueDay'], 5)
        self.assertEqual(data['version'], 1)
        self.assertEqual([c['feeName'] for c in data['components']], ['Tuition Fee', 'Library Fee'])

        response = self.client.get('/api/v1/fee-structures/', {'academicYearCode': '2025-2026', 'isActive': 'true'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['totalElements'], 1)
        self.assertEqual(response.data['data']['content'][0]['structureName'], 'Grade 6 Monthly Fees')

    def test_serialized_structure_can_be_posted_back(self):
        created = self.client.post('/api/v1/fee-structures/', STRUCTURE_PAYLOAD, format='json').data['data']
        copy = self.client.post('/api/v1/fee-structures/', created, format='json')
        self.assertEqual(copy.status_code, status.HTTP_201_CREATED)

        copied = copy.data['data']
        self.assertNotEqual(copied['feeStructureId'], created['feeStructureId'])
        for key in ('structureName', 'academicYearCode', 'frequency', 'applicableClasses',
                    'effectiveFrom', 'effectiveTo', 'dueDateConfig', 'totalAmount', 'isActive'):
            self.assertEqual(copied[key], created[key], key)
        self.assertEqual(
            [(c['feeType'], c['feeName'], c['amount']) for c in copied['components']],
            [(c['feeType'], c['feeName'], c['amount']) for c in created['components']],
        )

    def test_validation_errors_name_the_field(self):
        payload = dict(STRUCTURE_PAYLOAD, academicYearCode='2025-2027')
        response = self.client.post('/api/v1/fee-structures/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['code'], 'validation_error')
        self.assertIn('academicYearCode', response.data['errors'])
        self.assertFalse(FeeStructure.objects.exists())

    def test_component_amount_precision(self):
        payload = dict(STRUCTURE_PAYLOAD, components=[
            {'feeType': 'TUITION', 'feeName': 'Tuition Fee', 'amount': '1000.005'},
        ])
        response = self.client.post('/api/v1/fee-structures/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('components[0].amount', response.data['errors'])

    def test_active_structure_update_conflict(self):
        structure = make_structure()
        response = self.client.put(f'/api/v1/fee-structures/{structure.pk}/', STRUCTURE_PAYLOAD, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('version', response.data['errors'])

        payload = dict(STRUCTURE_PAYLOAD, version=1, structureName='Grade 6 Fees 2025')
        response = self.client.put(f'/api/v1/fee-structures/{structure.pk}/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['version'], 2)

    def test_status_toggle_and_components(self):
        structure = make_structure()
        response = self.client.patch(
            f'/api/v1/fee-structures/{structure.pk}/status/', {'isActive': False}, format='json',
        )
        self.assertFalse(response.data['data']['isActive'])

        response = self.client.post(
            f'/api/v1/fee-structures/{structure.pk}/components/',
            {'feeType': 'SPORTS', 'feeName': 'Sports Fee', 'amount': '75.50'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['totalAmount'], Decimal('1275.50'))

    def test_delete(self):
        structure = make_structure()
        response = self.client.delete(f'/api/v1/fee-structures/{structure.pk}/')
        self.assertTrue(response.data['data']['deleted'])

    def test_not_found(self):
        response = self.client.get('/api/v1/fee-structures/999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(response.data['success'])

    def test_read_only_for_other_roles(self):
        self.client.force_authenticate(make_user(username='teacher', role='teacher'))
        self.assertEqual(self.client.get('/api/v1/fee-structures/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/fee-structures/', STRUCTURE_PAYLOAD, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.get('/api/v1/fee-structures/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class FeeAssignmentApiTests(APITestCase):
    def setUp(self):
        self.client.force_authenticate(make_user())
        self.student = make_student()
        self.structure = make_structure()

    def test_assign_with_discount_and_calculate(self):
        response = self.client.post('/api/v1/fees/assign/', {
            'studentId': self.student.pk,
            'feeStructureId': self.structure.pk,
            'discount': {'discountType': 'PERCENTAGE', 'discountValue': 10, 'reason': 'Sibling discount'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['data']['netAmount'], Decimal('1080.00'))

        response = self.client.post('/api/v1/fee-structures/calculate/', {
            'studentId': self.student.pk, 'feeMonth': '2025-09',
        }, format='json')
        self.assertEqual(response.data['data']['netAmount'], Decimal('1080.00'))
        self.assertEqual(response.data['data']['discountApplied'], Decimal('120.00'))

        response = self.client.post('/api/v1/fees/journals/generate/', {'feeMonth': '2025-09'}, format='json')
        self.assertEqual(response.data['data']['created'], 1)

        response = self.client.get(f'/api/v1/students/{self.student.pk}/fee-journals/', {'feeMonth': '2025-09'})
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(response.data['data'][0]['dueAmount'], Decimal('1080.00'))

    def test_duplicate_assignment_conflict(self):
        payload = {'studentId': self.student.pk, 'feeStructureId': self.structure.pk}
        self.client.post('/api/v1/fees/assign/', payload, format='json')
        response = self.client.post('/api/v1/fees/assign/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'invalid_state')

    def test_waive(self):
        entry = make_entry(self.student, self.structure)
        response = self.client.post(
            f'/api/v1/fees/journals/{entry.pk}/waive/', {'reason': 'Scholarship granted'}, format='json',
        )
        self.assertEqual(response.data['data']['status'], 'WAIVED')
        self.assertEqual(response.data['data']['balanceAmount'], Decimal('0.00'))


class PaymentApiTests(APITestCase):
    reason = 'Student transferred to another school'

    def setUp(self):
        self.client.force_authenticate(make_user())
        self.student = make_student(school_class=make_class())
        self.entry = make_entry(self.student, make_structure())

    def payment_payload(self, **overrides):
        payload = {
            'studentId': self.student.pk,
            'feeItems': [{'journalEntryId': self.entry.pk, 'amountPaid': '500.00'}],
            'paymentMethod': 'Cash',
        }
        payload.update(overrides)
        return payload

    def test_record_payment(self):
        response = self.client.post('/api/v1/payments/', self.payment_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        data = response.data['data']
        self.assertTrue(data['receiptNumber'].startswith('RCP-'))
        self.assertEqual(data['totalAmount'], Decimal('500.00'))
        self.assertEqual(data['remainingBalance'], Decimal('700.00'))
        self.assertEqual(data['feeItems'][0]['amountDue'], Decimal('1200.00'))

        receipt = self.client.get(f"/api/v1/payments/receipt/{data['paymentId']}/").data['data']
        self.assertEqual(receipt['student']['class'], 'Grade 6-A')
        self.assertEqual(receipt['academicYear'], '2025-2026')
        self.assertIn('name', receipt['school'])

        listing = self.client.get('/api/v1/payments/', {'studentId': self.student.pk}).data['data']
        self.assertEqual(listing['totalElements'], 1)

    def test_card_without_reference(self):
        response = self.client.post('/api/v1/payments/', self.payment_payload(paymentMethod='Card'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(list(response.data['errors']), ['transactionReference'])
        self.assertFalse(Payment.objects.exists())

    def test_overpayment(self):
        payload = self.payment_payload(feeItems=[{'journalEntryId': self.entry.pk, 'amountPaid': '1200.01'}])
        response = self.client.post('/api/v1/payments/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'overpayment')

    def test_idempotency_key_header(self):
        first = self.client.post(
            '/api/v1/payments/', self.payment_payload(), format='json', HTTP_IDEMPOTENCY_KEY='abc-1',
        )
        second = self.client.post(
            '/api/v1/payments/', self.payment_payload(), format='json', HTTP_IDEMPOTENCY_KEY='abc-1',
        )
        self.assertEqual(first.data['data']['paymentId'], second.data['data']['paymentId'])
        self.assertEqual(Payment.objects.count(), 1)

    def test_refund_workflow(self):
        payment_id = self.client.post('/api/v1/payments/', self.payment_payload(), format='json').data['data']['paymentId']

        response = self.client.post(
            f'/api/v1/payments/{payment_id}/refund/', {'refundAmount': 0, 'reason': self.reason}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('refundAmount', response.data['errors'])

        response = self.client.post(
            f'/api/v1/payments/{payment_id}/refund/', {'refundAmount': 500, 'reason': self.reason}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        refund_id = response.data['data']['refundId']
        self.assertTrue(response.data['data']['isFullRefund'])

        response = self.client.post(f'/api/v1/payments/refunds/{refund_id}/complete/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

        self.client.post(f'/api/v1/payments/refunds/{refund_id}/approve/', {'notes': 'ok'}, format='json')
        response = self.client.post(f'/api/v1/payments/refunds/{refund_id}/complete/', {}, format='json')
        self.assertEqual(response.data['data']['status'], 'Completed')

        payment = self.client.get(f'/api/v1/payments/{payment_id}/').data['data']
        self.assertEqual(payment['status'], 'Refunded')

    def test_malformed_filters(self):
        cases = [
            ('/api/v1/payments/', {'fromDate': 'abc'}, 'fromDate'),
            ('/api/v1/payments/', {'studentId': 'abc'}, 'studentId'),
            ('/api/v1/payments/refunds/', {'paymentId': 'abc'}, 'paymentId'),
        ]
        for url, params, field in cases:
            with self.subTest(field=field):
                response = self.client.get(url, params)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertEqual(response.data['code'], 'validation_error')
                self.assertIn(field, response.data['errors'])

    def test_filters(self):
        self.client.post('/api/v1/payments/', self.payment_payload(), format='json')

        listing = self.client.get('/api/v1/payments/', {'fromDate': '2099-01-01', 'status': ''}).data['data']
        self.assertEqual(listing['totalElements'], 0)
        listing = self.client.get('/api/v1/payments/', {'paymentMethod': 'Cash', 'search': 'Mensah'}).data['data']
        self.assertEqual(listing['totalElements'], 1)

    def test_mixed_id_types_are_duplicates(self):
        payload = self.payment_payload(feeItems=[
            {'journalEntryId': self.entry.pk, 'amountPaid': '100.00'},
            {'journalEntryId': str(self.entry.pk), 'amountPaid': '100.00'},
        ])
        response = self.client.post('/api/v1/payments/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'duplicate_fee_item')
        self.assertFalse(Payment.objects.exists())

    def test_unknown_payment(self):
        self.assertEqual(self.client.get('/api/v1/payments/4242/').status_code, status.HTTP_404_NOT_FOUND)

    def test_student_views_and_dashboards(self):
        self.client.post('/api/v1/payments/', self.payment_payload(), format='json')

        summary = self.client.get(f'/api/v1/payments/student/{self.student.pk}/fees/').data['data']
        self.assertEqual(summary['totalPaid'], Decimal('500.00'))
        self.assertEqual(summary['totalOutstanding'], Decimal('700.00'))

        history = self.client.get(f'/api/v1/payments/student/{self.student.pk}/').data['data']
        self.assertEqual(len(history), 1)

        response = self.client.get('/api/v1/payments/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']['revenueTrends']), 12)

        response = self.client.get('/api/v1/fees/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['overdueStats']['totalOverdueStudents'], 1)


class ClassApiTests(APITestCase):
    def test_list_classes(self):
        make_class()
        make_class(name='Grade 7-A', grade_level='Grade 7')
        self.client.force_authenticate(make_user(username='teacher', role='teacher'))

        response = self.client.get('/api/v1/academics/classes/', {'academicYear': '2025-2026'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [c['className'] for c in response.data['data']['classes']],
            ['Grade 6-A', 'Grade 7-A'],
        )
