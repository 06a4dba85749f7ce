# apps/academics/management/commands/init_school_settings.py
from django.core.management.base import BaseCommand
from django.utils import timezone
from apps.academics.models import SchoolSettings


class Command(BaseCommand):
    help = 'Initialize school settings (the identity printed on fee receipts)'

    def add_arguments(self, parser):
        parser.add_argument('--name', default='Excellence Academy', help='School name')
        parser.add_argument('--currency', default='GHS', help='ISO currency code')

    def handle(self, *args, **options):
        if SchoolSettings.objects.exists():
            self.stdout.write(self.style.WARNING('School settings already exist. Skipping initialization.'))
            return

        today = timezone.localdate()
        # Academic year runs September to July
        start_year = today.year if today.month >= 9 else today.year - 1

        settings = SchoolSettings.objects.create(
            school_name=options['name'],
            currency_code=options['currency'],
            current_academic_year=f"{start_year}-{start_year + 1}",
            academic_year_start=today.replace(year=start_year, month=9, day=1),
            academic_year_end=today.replace(year=start_year + 1, month=7, day=31),
        )

        self.stdout.write(self.style.SUCCESS(f'Successfully created school settings for {settings.school_name}'))
        self.stdout.write(self.style.SUCCESS(f'Academic Year: {settings.current_academic_year}'))
