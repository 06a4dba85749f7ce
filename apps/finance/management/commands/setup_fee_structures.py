# apps/finance/management/commands/setup_fee_structures.py
"""
Create default monthly fee structures for the existing classes.
Usage: python manage.py setup_fee_structures --academic-year 2025-2026 [--activate] [--assign]
"""
from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from apps.academics.models import Class, SchoolSettings
from apps.admissions.models import Student
from apps.finance.exceptions import FeeError
from apps.finance.models import FeeFrequency, FeeStructure, FeeType
from apps.finance.services import AssignmentService, FeeStructureService

# Default monthly fee components for each level
DEFAULT_FEES = {
    'nursery': [
        (FeeType.TUITION, 'Tuition Fee', 300),
        (FeeType.LIBRARY, 'Library Fee', 10),
        (FeeType.SPORTS, 'Sports Fee', 15),
        (FeeType.OTHER, 'Miscellaneous', 10),
    ],
    'kindergarten': [
        (FeeType.TUITION, 'Tuition Fee', 350),
        (FeeType.LIBRARY, 'Library Fee', 15),
        (FeeType.SPORTS, 'Sports Fee', 20),
        (FeeType.OTHER, 'Miscellaneous', 15),
    ],
    'primary': [
        (FeeType.TUITION, 'Tuition Fee', 400),
        (FeeType.LIBRARY, 'Library Fee', 20),
        (FeeType.SPORTS, 'Sports Fee', 25),
        (FeeType.COMPUTER, 'Computer Fee', 20),
        (FeeType.OTHER, 'Miscellaneous', 20),
    ],
    'jhs': [
        (FeeType.TUITION, 'Tuition Fee', 500),
        (FeeType.LIBRARY, 'Library Fee', 30),
        (FeeType.SPORTS, 'Sports Fee', 30),
        (FeeType.LAB, 'Laboratory Fee', 40),
        (FeeType.COMPUTER, 'Computer Fee', 25),
    ],
}


def fee_category(class_name):
    """Determine fee category based on class name"""
    name = class_name.lower()
    if 'nursery' in name:
        return 'nursery'
    if 'kindergarten' in name or 'kg' in name:
        return 'kindergarten'
    if 'jhs' in name or 'junior high' in name:
        return 'jhs'
    return 'primary'


class Command(BaseCommand):
    help = 'Create default monthly fee structures for all classes'

    def add_arguments(self, parser):
        parser.add_argument(
            '--academic-year',
            type=str,
            default=None,
            help='Academic year code (e.g., 2025-2026). Defaults to the current year from settings.'
        )
        parser.add_argument('--activate', action='store_true', help='Activate the created structures')
        parser.add_argument('--assign', action='store_true', help='Assign activated structures to active students')

    def handle(self, *args, **options):
        academic_year = options.get('academic_year') or SchoolSettings.get_instance().current_academic_year
        if not academic_year:
            raise CommandError('No academic year given and none configured in school settings')

        start_year = int(academic_year.split('-')[0]) if academic_year[:4].isdigit() else timezone.localdate().year
        effective_from = date(start_year, 9, 1)

        self.stdout.write(f'\nSetting up fee structures for {academic_year}...\n')

        classes_by_category = {}
        for class_obj in Class.objects.filter(is_active=True):
            classes_by_category.setdefault(fee_category(class_obj.name), []).append(class_obj)

        created_count = 0
        skipped_count = 0

        for category, classes in classes_by_category.items():
            structure_name = f'{category.title()} Monthly Fees'

            if FeeStructure.objects.filter(structure_name=structure_name, academic_year_code=academic_year).exists():
                skipped_count += 1
                self.stdout.write(self.style.WARNING(f'{structure_name}: Already exists'))
                continue

            try:
                structure = FeeStructureService.create_structure({
                    'structureName': structure_name,
                    'academicYearCode': academic_year,
                    'frequency': FeeFrequency.MONTHLY,
                    'components': [
                        {'feeType': fee_type, 'feeName': name, 'amount': amount}
                        for fee_type, name, amount in DEFAULT_FEES[category]
                    ],
                    'applicableClasses': [str(c.pk) for c in classes],
                    'effectiveFrom': effective_from,
                    'dueDateConfig': {'dueDay': 5, 'gracePeriodDays': 7, 'lateFeeAmount': 50},
                    'isActive': options['activate'],
                })
            except FeeError as e:
                raise CommandError(f'{structure_name}: {e.message} {e.errors}')

            created_count += 1
            self.stdout.write(self.style.SUCCESS(
                f'{structure_name}: {structure.total_amount} for {len(classes)} classes (Created)'
            ))

            if options['activate'] and options['assign']:
                students = Student.objects.filter(current_class__in=classes, status='active')
                assigned = AssignmentService.assign_to_students(structure, students, effective_from=effective_from)
                self.stdout.write(f'  Assigned to {len(assigned)} students')

        self.stdout.write('\n' + '=' * 60)
        self.stdout.write(
            self.style.SUCCESS(
                f'\nSummary:\n'
                f'   Created: {created_count}\n'
                f'   Skipped (Already Exist): {skipped_count}\n'
                f'   Academic Year: {academic_year}\n'
            )
        )
