# apps/finance/stats.py

"""
Read-side summaries for the fee journal and payments: the per-student fee
summary and the fee and payment dashboards.

Overdue status is refreshed before anything is summarized, so a dashboard
never reports a stale PENDING entry.
"""

from datetime import date

from django.db.models import Count, DecimalField, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone
import logging

from .models import FeeJournalEntry, Payment, Refund
from .money import ZERO, HUNDRED, add_months, fee_month_of, month_bounds, quantize
from .services import JournalService

logger = logging.getLogger(__name__)

COLLECTED_STATUSES = (
    Payment.STATUS_COMPLETED,
    Payment.STATUS_PARTIALLY_REFUNDED,
    Payment.STATUS_REFUNDED,
)


def _sum(field):
    return Coalesce(Sum(field), Value(ZERO), output_field=DecimalField(max_digits=14, decimal_places=2))


def _percentage(part, whole):
    if not whole:
        return ZERO
    return quantize(part * HUNDRED / whole)


def _journal_totals(entries):
    """Due, collected and pending for a set of journal entries (waived entries excluded)"""
    totals = entries.exclude(status=FeeJournalEntry.STATUS_WAIVED).aggregate(
        total_due=_sum('due_amount'),
        total_collected=_sum('paid_amount'),
        total_pending=_sum('balance_amount'),
    )
    totals['collection_percentage'] = _percentage(totals['total_collected'], totals['total_due'])
    return totals


def net_collections(start, end):
    """Payments received between two dates less refunds paid out in that range"""
    received = Payment.objects.filter(
        payment_date__range=(start, end), status__in=COLLECTED_STATUSES,
    ).aggregate(total=_sum('total_amount'))['total']
    refunded = Refund.objects.filter(
        refund_date__range=(start, end), status=Refund.STATUS_COMPLETED,
    ).aggregate(total=_sum('refund_amount'))['total']
    return quantize(received - refunded)


# =============================================================================
# STUDENT SUMMARY
# =============================================================================

def student_fee_summary(student, today=None):
    """
    Totals over a student's fee journal.

    Returns:
        dict: student, total_fees, total_paid, total_waived,
        total_outstanding and pending_fees (open journal entries)
    """
    today = today or timezone.localdate()
    JournalService.refresh_overdue(today=today, student=student)

    entries = student.fee_journal.select_related('assignment__fee_structure')
    totals = _journal_totals(entries)
    waived = entries.filter(status=FeeJournalEntry.STATUS_WAIVED).aggregate(
        total=_sum('waived_amount'),
    )['total']

    return {
        'student': student,
        'total_fees': totals['total_due'],
        'total_paid': totals['total_collected'],
        'total_waived': waived,
        'total_outstanding': totals['total_pending'],
        'pending_fees': list(entries.filter(status__in=FeeJournalEntry.OPEN_STATUSES)),
    }


# =============================================================================
# FEE DASHBOARD
# =============================================================================

def fee_dashboard_stats(today=None, trend_months=6):
    """Billing position for the current month and year, overdue fees and the collection trend"""
    today = today or timezone.localdate()
    JournalService.refresh_overdue(today=today)

    current_month = fee_month_of(today)
    entries = FeeJournalEntry.objects.all()

    overdue = entries.filter(status=FeeJournalEntry.STATUS_OVERDUE)
    overdue_by_class = (
        overdue.values('student__current_class__name')
        .annotate(overdue_amount=_sum('balance_amount'), student_count=Count('student', distinct=True))
        .order_by('-overdue_amount')
    )

    trend = []
    for offset in range(trend_months - 1, -1, -1):
        month = add_months(current_month, -offset)
        month_totals = _journal_totals(entries.filter(fee_month=month))
        trend.append({
            'month': month,
            'collected': month_totals['total_collected'],
            'pending': month_totals['total_pending'],
        })

    return {
        'current_month': _journal_totals(entries.filter(fee_month=current_month)),
        'current_year': _journal_totals(entries.filter(fee_month__startswith=f'{today.year}-')),
        'overdue_stats': {
            'total_overdue_amount': overdue.aggregate(total=_sum('balance_amount'))['total'],
            'total_overdue_students': overdue.values('student').distinct().count(),
            'overdue_by_class': [
                {
                    'class_name': row['student__current_class__name'] or 'Unassigned',
                    'overdue_amount': row['overdue_amount'],
                    'student_count': row['student_count'],
                }
                for row in overdue_by_class
            ],
        },
        'collection_trend': trend,
        'recent_transactions': list(Payment.objects.select_related('student')[:10]),
    }


# =============================================================================
# PAYMENT DASHBOARD
# =============================================================================

def payment_dashboard_stats(today=None):
    """Collections for today, this month and this year, by method and by class"""
    today = today or timezone.localdate()
    JournalService.refresh_overdue(today=today)

    month_start = today.replace(day=1)
    year_start = date(today.year, 1, 1)
    year_payments = Payment.objects.filter(
        payment_date__range=(year_start, today), status__in=COLLECTED_STATUSES,
    )

    by_method = (
        year_payments.values('payment_method')
        .annotate(amount=_sum('total_amount'), count=Count('id'))
        .order_by('-amount')
    )
    top_classes = (
        year_payments.values('student__current_class__name')
        .annotate(total_amount=_sum('total_amount'), student_count=Count('student', distinct=True))
        .order_by('-total_amount')[:5]
    )
    open_entries = FeeJournalEntry.objects.filter(
        status__in=FeeJournalEntry.OPEN_STATUSES, balance_amount__gt=0,
    )

    trend = []
    current_month = fee_month_of(today)
    for offset in range(11, -1, -1):
        month = add_months(current_month, -offset)
        first, last = month_bounds(month)
        trend.append({'month': month, 'amount': net_collections(first, last)})

    logger.debug(f"Payment dashboard computed for {today}")
    return {
        'today_collections': net_collections(today, today),
        'month_collections': net_collections(month_start, today),
        'year_collections': net_collections(year_start, today),
        'collections_by_method': [
            {'method': row['payment_method'], 'amount': row['amount'], 'count': row['count']}
            for row in by_method
        ],
        'pending_payments': {
            'count': open_entries.count(),
            'total_amount': open_entries.aggregate(total=_sum('balance_amount'))['total'],
        },
        'revenue_trends': trend,
        'top_classes': [
            {
                'class_name': row['student__current_class__name'] or 'Unassigned',
                'total_amount': row['total_amount'],
                'student_count': row['student_count'],
            }
            for row in top_classes
        ],
        'recent_payments': list(Payment.objects.select_related('student')[:10]),
    }
