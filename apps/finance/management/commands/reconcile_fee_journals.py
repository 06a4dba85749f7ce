# apps/finance/management/commands/reconcile_fee_journals.py
"""
Verify the fee journal: balances, statuses and structure totals.
Usage: python manage.py reconcile_fee_journals [--fix]
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from apps.finance.models import FeeJournalEntry, FeeStructure


def expected_status(entry):
    if entry.is_waived:
        return FeeJournalEntry.STATUS_WAIVED
    if entry.balance_amount == 0:
        return FeeJournalEntry.STATUS_PAID
    if entry.status == FeeJournalEntry.STATUS_OVERDUE:
        return FeeJournalEntry.STATUS_OVERDUE
    return FeeJournalEntry.STATUS_PARTIAL if entry.paid_amount > 0 else FeeJournalEntry.STATUS_PENDING


class Command(BaseCommand):
    help = 'Verify fee journal balances and fee structure totals'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Re-derive balances, statuses and totals that are inconsistent',
        )

    def handle(self, *args, **options):
        fix = options['fix']
        issues_found = 0

        self.stdout.write('Verifying fee structures...')
        for structure in FeeStructure.objects.all():
            actual_total = structure.compute_total()
            if structure.total_amount != actual_total:
                issues_found += 1
                self.stdout.write(self.style.WARNING(
                    f'  {structure}: stored total {structure.total_amount}, components sum to {actual_total}'
                ))
                if fix:
                    structure.recalculate_total()

        self.stdout.write('Verifying fee journal...')
        entries = FeeJournalEntry.objects.select_related('student', 'assignment__fee_structure')
        for entry in entries:
            problems = []
            expected_balance = 0 if entry.is_waived else entry.due_amount - entry.paid_amount

            if entry.balance_amount != expected_balance:
                problems.append(f'balance {entry.balance_amount}, expected {expected_balance}')
            if entry.balance_amount < 0 or entry.paid_amount < 0:
                problems.append('negative amount')
            if entry.balance_amount == expected_balance and entry.status != expected_status(entry):
                problems.append(f'status {entry.status}, expected {expected_status(entry)}')

            if not problems:
                continue

            issues_found += 1
            self.stdout.write(self.style.WARNING(
                f'  {entry.student.student_id} {entry.fee_month}: ' + '; '.join(problems)
            ))
            if fix:
                with transaction.atomic():
                    entry.recalculate_balance()
                    entry.status = expected_status(entry)
                    entry.save(update_fields=['balance_amount', 'status', 'updated_at'])
                self.stdout.write(self.style.SUCCESS(f'    Fixed: balance {entry.balance_amount}, {entry.status}'))

        if issues_found == 0:
            self.stdout.write(self.style.SUCCESS('All fee records are consistent. No issues found.'))
        elif fix:
            self.stdout.write(self.style.SUCCESS(f'Fixed {issues_found} issues.'))
        else:
            self.stdout.write(self.style.ERROR(f'Found {issues_found} issues. Run with --fix to repair them.'))
