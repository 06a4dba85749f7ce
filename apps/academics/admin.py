from django.contrib import admin
from .models import Class, SchoolSettings

@admin.register(Class)
class ClassAdmin(admin.ModelAdmin):
    list_display = ['name', 'grade_level', 'section', 'capacity', 'enrolled_count', 'academic_year']
    list_filter = ['grade_level', 'academic_year', 'is_active']
    search_fields = ['name', 'grade_level']

@admin.register(SchoolSettings)
class SchoolSettingsAdmin(admin.ModelAdmin):
    list_display = ['school_name', 'current_academic_year', 'currency_code', 'updated_at']
