# apps/admissions/admin.py
from django.contrib import admin
from .models import Student


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['student_id', 'full_name', 'current_class', 'guardian_phone', 'status']
    list_filter = ['status', 'current_class', 'academic_year']
    search_fields = ['student_id', 'first_name', 'last_name', 'guardian_name', 'guardian_phone']
    readonly_fields = ['student_id', 'created_at', 'updated_at']
    fieldsets = (
        ('Student', {
            'fields': ('student_id', 'first_name', 'other_names', 'last_name', 'user')
        }),
        ('Enrollment', {
            'fields': ('current_class', 'academic_year', 'roll_number', 'status', 'admission_date')
        }),
        ('Guardian (printed on fee receipts)', {
            'fields': ('guardian_name', 'guardian_phone')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at')
        }),
    )
