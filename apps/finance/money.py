# apps/finance/money.py
"""
Fixed-point currency arithmetic and billing-calendar helpers.

Amounts are ``Decimal`` values quantized to two places. Nothing in here
touches the database, so these functions give the same answer for the same
inputs every time.
"""

import calendar
import decimal
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from .conf import fee_setting

TWO_PLACES = Decimal('0.01')
ZERO = Decimal('0.00')
HUNDRED = Decimal('100')

PERCENTAGE = 'PERCENTAGE'
FIXED = 'FIXED'

FEE_MONTH_RE = re.compile(r'^(\d{4})-(0[1-9]|1[0-2])$')


def to_decimal(value):
    """Convert user input to Decimal without going through binary floats"""
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise InvalidOperation(f"Not a number: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidOperation(f"Not a number: {value!r}")
    if not result.is_finite():
        raise InvalidOperation(f"Not a finite number: {value!r}")
    return result


def decimal_places(value):
    exponent = to_decimal(value).normalize().as_tuple().exponent
    return -exponent if exponent < 0 else 0


def rounding_mode():
    name = fee_setting('ROUNDING')
    mode = getattr(decimal, name, None)
    if mode is None or not name.startswith('ROUND_'):
        raise ValueError(f"Unknown rounding mode: {name}")
    return mode


def quantize(value, rounding=None):
    return to_decimal(value).quantize(TWO_PLACES, rounding=rounding or rounding_mode())


def total_of(amounts):
    """Exact sum of currency amounts"""
    return quantize(sum((to_decimal(a) for a in amounts), ZERO))


def resolve_net_amount(base_amount, discount_type=None, discount_value=None, rounding=None):
    """
    Apply an optional discount to a base amount.

    PERCENTAGE discounts are taken against the pre-discount amount, FIXED
    discounts are subtracted directly and floored at zero.
    """
    base = to_decimal(base_amount)

    if discount_type and discount_value is not None:
        value = to_decimal(discount_value)
        if discount_type == PERCENTAGE:
            base = base - (base * value / HUNDRED)
        elif discount_type == FIXED:
            base = max(ZERO, base - value)
        else:
            raise ValueError(f"Unknown discount type: {discount_type}")

    return quantize(base, rounding)


def late_fee_for(due_amount, late_fee_amount=None, late_fee_percentage=None, rounding=None):
    """Larger of the flat late fee and the percentage of the amount due"""
    flat = to_decimal(late_fee_amount) if late_fee_amount is not None else ZERO
    by_percentage = ZERO
    if late_fee_percentage is not None:
        by_percentage = to_decimal(due_amount) * to_decimal(late_fee_percentage) / HUNDRED
    return quantize(max(flat, by_percentage), rounding)


# ---------------------------------------------------------------------------
# Billing calendar
# ---------------------------------------------------------------------------

def parse_fee_month(fee_month):
    """'2025-03' -> (2025, 3)"""
    match = FEE_MONTH_RE.match(fee_month or '')
    if not match:
        raise ValueError(f"Fee month must be YYYY-MM, got {fee_month!r}")
    return int(match.group(1)), int(match.group(2))


def format_fee_month(year, month):
    return f"{year:04d}-{month:02d}"


def fee_month_of(day):
    return format_fee_month(day.year, day.month)


def add_months(fee_month, count):
    year, month = parse_fee_month(fee_month)
    index = year * 12 + (month - 1) + count
    return format_fee_month(index // 12, index % 12 + 1)


def month_bounds(fee_month):
    year, month = parse_fee_month(fee_month)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def due_date_for(fee_month, due_day):
    """Due day within the month, clamped to the month's last day"""
    first, last = month_bounds(fee_month)
    return first.replace(day=min(int(due_day), last.day))


def months_since(anchor, fee_month):
    year, month = parse_fee_month(fee_month)
    return (year * 12 + month) - (anchor.year * 12 + anchor.month)


def is_billing_month(frequency, anchor, fee_month):
    """
    Whether a structure anchored at ``anchor`` bills in ``fee_month``.

    ONE_TIME structures bill in any month on or after the anchor; the caller
    makes sure only one entry is ever produced for them.
    """
    elapsed = months_since(anchor, fee_month)
    if elapsed < 0:
        return False
    if frequency == 'MONTHLY':
        return True
    if frequency == 'QUARTERLY':
        return elapsed % 3 == 0
    if frequency == 'ANNUAL':
        return elapsed % 12 == 0
    if frequency == 'ONE_TIME':
        return True
    raise ValueError(f"Unknown frequency: {frequency}")
