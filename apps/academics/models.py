# apps/academics/models.py
from django.db import models


class Class(models.Model):
    """School classes/grades"""
    name = models.CharField(max_length=50)  # e.g., "Grade 6-A"
    grade_level = models.CharField(max_length=20)  # e.g., "Grade 6"
    section = models.CharField(max_length=10, blank=True)  # e.g., "A"
    capacity = models.IntegerField(default=50)

    # Academic year, e.g. "2025-2026"
    academic_year = models.CharField(max_length=20)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Classes"
        ordering = ['grade_level', 'section']

    def __str__(self):
        return f"{self.name} ({self.academic_year})"

    @property
    def enrolled_count(self):
        """Get number of enrolled students"""
        return self.student_set.filter(status='active').count()

    @property
    def identifiers(self):
        """Ways a fee structure may refer to this class in its applicable classes"""
        return {str(self.pk), self.name, self.grade_level}


class SchoolSettings(models.Model):
    """Global school settings - Only ONE record should exist"""

    # School Information (printed on receipts)
    school_name = models.CharField(max_length=200, default="Excellence Academy")
    school_motto = models.CharField(max_length=200, blank=True)
    school_address = models.TextField(blank=True)
    school_phone = models.CharField(max_length=20, blank=True)
    school_email = models.EmailField(blank=True)
    school_website = models.URLField(blank=True)
    logo_url = models.URLField(blank=True)

    # Academic Year Settings, e.g. "2025-2026"
    current_academic_year = models.CharField(max_length=20)
    academic_year_start = models.DateField(null=True, blank=True)
    academic_year_end = models.DateField(null=True, blank=True)

    currency_code = models.CharField(max_length=3, default='GHS')

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    updated_by = models.ForeignKey('accounts.User', on_delete=models.SET_NULL, null=True, blank=True)

    class Meta:
        verbose_name = "School Settings"
        verbose_name_plural = "School Settings"

    def __str__(self):
        return f"{self.school_name} Settings"

    @classmethod
    def get_instance(cls):
        """Return the settings row, or an unsaved default when none was configured"""
        return cls.objects.first() or cls(current_academic_year='')
