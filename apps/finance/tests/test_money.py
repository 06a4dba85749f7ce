from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from apps.finance import money


class TotalOfTests(SimpleTestCase):
    def test_sums_components(self):
        self.assertEqual(money.total_of([Decimal('1000'), Decimal('200')]), Decimal('1200.00'))

    def test_no_float_drift(self):
        self.assertEqual(money.total_of([0.1, 0.2]), Decimal('0.30'))
        self.assertEqual(money.total_of(['0.10'] * 10), Decimal('1.00'))

    def test_empty_is_zero(self):
        self.assertEqual(money.total_of([]), Decimal('0.00'))


class ResolveNetAmountTests(SimpleTestCase):
    def test_percentage_discount(self):
        self.assertEqual(money.resolve_net_amount(Decimal('1200'), 'PERCENTAGE', Decimal('10')), Decimal('1080.00'))

    def test_fixed_discount(self):
        self.assertEqual(money.resolve_net_amount(Decimal('1200'), 'FIXED', Decimal('200')), Decimal('1000.00'))

    def test_fixed_discount_floors_at_zero(self):
        self.assertEqual(money.resolve_net_amount(Decimal('1200'), 'FIXED', Decimal('5000')), Decimal('0.00'))

    def test_no_discount(self):
        self.assertEqual(money.resolve_net_amount(Decimal('999.5')), Decimal('999.50'))

    def test_same_inputs_same_result(self):
        first = money.resolve_net_amount(Decimal('333.33'), 'PERCENTAGE', Decimal('12.5'))
        second = money.resolve_net_amount(Decimal('333.33'), 'PERCENTAGE', Decimal('12.5'))
        self.assertEqual(first, second)
        self.assertEqual(first, Decimal('291.66'))

    def test_rounds_half_up_by_default(self):
        # 0.01 * 50% = 0.005
        self.assertEqual(money.resolve_net_amount(Decimal('0.01'), 'PERCENTAGE', Decimal('50')), Decimal('0.01'))

    @override_settings(FEES={'ROUNDING': 'ROUND_HALF_EVEN'})
    def test_rounding_mode_is_configurable(self):
        self.assertEqual(money.resolve_net_amount(Decimal('0.01'), 'PERCENTAGE', Decimal('50')), Decimal('0.00'))

    @override_settings(FEES={'ROUNDING': 'HALF_UP'})
    def test_unknown_rounding_mode(self):
        with self.assertRaises(ValueError):
            money.quantize('1.005')


class LateFeeTests(SimpleTestCase):
    def test_larger_of_flat_and_percentage(self):
        self.assertEqual(money.late_fee_for(Decimal('1080'), Decimal('50'), Decimal('10')), Decimal('108.00'))
        self.assertEqual(money.late_fee_for(Decimal('100'), Decimal('50'), Decimal('10')), Decimal('50.00'))

    def test_flat_only(self):
        self.assertEqual(money.late_fee_for(Decimal('1080'), Decimal('50')), Decimal('50.00'))


class BillingCalendarTests(SimpleTestCase):
    def test_parse_fee_month(self):
        self.assertEqual(money.parse_fee_month('2025-09'), (2025, 9))
        for bad in ('2025-13', '2025-9', '25-09', '', None):
            with self.assertRaises(ValueError):
                money.parse_fee_month(bad)

    def test_add_months_across_years(self):
        self.assertEqual(money.add_months('2025-01', -1), '2024-12')
        self.assertEqual(money.add_months('2025-11', 3), '2026-02')

    def test_due_day_clamped_to_month_end(self):
        self.assertEqual(money.due_date_for('2025-02', 31), date(2025, 2, 28))
        self.assertEqual(money.due_date_for('2024-02', 31), date(2024, 2, 29))
        self.assertEqual(money.due_date_for('2025-09', 5), date(2025, 9, 5))

    def test_monthly(self):
        anchor = date(2025, 9, 15)
        self.assertFalse(money.is_billing_month('MONTHLY', anchor, '2025-08'))
        self.assertTrue(money.is_billing_month('MONTHLY', anchor, '2025-09'))
        self.assertTrue(money.is_billing_month('MONTHLY', anchor, '2026-03'))

    def test_quarterly_and_annual(self):
        anchor = date(2025, 9, 1)
        billed = [m for m in ('2025-09', '2025-10', '2025-11', '2025-12', '2026-03')
                  if money.is_billing_month('QUARTERLY', anchor, m)]
        self.assertEqual(billed, ['2025-09', '2025-12', '2026-03'])
        self.assertTrue(money.is_billing_month('ANNUAL', anchor, '2026-09'))
        self.assertFalse(money.is_billing_month('ANNUAL', anchor, '2026-08'))

    def test_decimal_places(self):
        self.assertEqual(money.decimal_places('1.10'), 1)
        self.assertEqual(money.decimal_places('1.005'), 3)
        self.assertEqual(money.decimal_places(1000), 0)
