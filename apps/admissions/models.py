# apps/admissions/models.py
from django.db import models
from django.utils import timezone
from apps.accounts.models import User


class Student(models.Model):
    """Enrolled students in the school"""

    # Link to User account (optional, portal access)
    user = models.OneToOneField(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='student_profile')

    # Unique student ID: STU-2024-0001
    student_id = models.CharField(max_length=20, unique=True, blank=True)

    # Basic Info
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    other_names = models.CharField(max_length=100, blank=True)

    # Current Academic Info
    current_class = models.ForeignKey('academics.Class', on_delete=models.SET_NULL, null=True, blank=True)
    academic_year = models.CharField(max_length=20, blank=True)
    roll_number = models.CharField(max_length=10, blank=True)

    # Guardian contact (shown on receipts)
    guardian_name = models.CharField(max_length=200, blank=True)
    guardian_phone = models.CharField(max_length=20, blank=True)

    # Status
    STATUS_CHOICES = (
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('graduated', 'Graduated'),
        ('transferred', 'Transferred'),
        ('expelled', 'Expelled'),
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')

    # Dates
    admission_date = models.DateField(default=timezone.localdate)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['student_id']

    def save(self, *args, **kwargs):
        if not self.student_id:
            year = timezone.now().year
            last_student = Student.objects.filter(
                student_id__startswith=f'STU-{year}-'
            ).order_by('-student_id').first()

            if last_student:
                last_num = int(last_student.student_id.split('-')[-1])
                new_num = last_num + 1
            else:
                new_num = 1

            self.student_id = f'STU-{year}-{new_num:04d}'

        super().save(*args, **kwargs)

    @property
    def full_name(self):
        return " ".join(filter(None, [self.first_name, self.other_names, self.last_name]))

    def __str__(self):
        return f"{self.student_id} - {self.first_name} {self.last_name}"
