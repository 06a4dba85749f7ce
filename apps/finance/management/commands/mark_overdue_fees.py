# apps/finance/management/commands/mark_overdue_fees.py
"""
Periodic job: mark fees past their grace period as overdue.
Usage: python manage.py mark_overdue_fees [--date 2025-10-20]
"""
from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from apps.finance.conf import fee_setting
from apps.finance.services import JournalService


class Command(BaseCommand):
    help = 'Mark pending and partially paid fees past their grace period as overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            type=str,
            default=None,
            help='Evaluate as of this date (YYYY-MM-DD). Defaults to today.',
        )

    def handle(self, *args, **options):
        if options.get('date'):
            try:
                today = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid date: {options['date']}")
        else:
            today = timezone.localdate()

        changed = JournalService.refresh_overdue(today=today)

        self.stdout.write(
            self.style.SUCCESS(
                f'Marked {changed} fees overdue as of {today} '
                f'(late fee policy: {fee_setting("LATE_FEE_POLICY")})'
            )
        )
