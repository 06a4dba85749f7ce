# apps/finance/management/commands/generate_fee_journals.py
"""
Materialize the fee journal for a month.
Usage: python manage.py generate_fee_journals --month 2025-09
"""
from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from apps.finance.exceptions import FeeError
from apps.finance.models import FeeStructure
from apps.finance.money import fee_month_of
from apps.finance.services import JournalService


class Command(BaseCommand):
    help = 'Create the fee journal entries of every active assignment for one month'

    def add_arguments(self, parser):
        parser.add_argument(
            '--month',
            type=str,
            default=None,
            help='Fee month as YYYY-MM. Defaults to the current month.',
        )
        parser.add_argument(
            '--structure-id',
            type=int,
            help='Generate entries for a specific fee structure only',
        )

    def handle(self, *args, **options):
        fee_month = options.get('month') or fee_month_of(timezone.localdate())
        structure = None

        if options.get('structure_id'):
            structure = FeeStructure.objects.filter(pk=options['structure_id']).first()
            if structure is None:
                raise CommandError(f"Fee structure {options['structure_id']} not found")

        try:
            created = JournalService.generate_entries(fee_month, fee_structure=structure)
        except FeeError as e:
            raise CommandError(e.message)

        if not created:
            self.stdout.write(self.style.WARNING(f'No new journal entries for {fee_month}'))
            return

        for entry in created:
            self.stdout.write(
                f'  {entry.student.student_id} - {entry.assignment.fee_structure.structure_name}: {entry.due_amount}'
            )
        self.stdout.write(self.style.SUCCESS(f'Created {len(created)} journal entries for {fee_month}'))
