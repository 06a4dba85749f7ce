# apps/academics/serializers.py
from rest_framework import serializers
from apps.academics.models import Class


class ClassSerializer(serializers.ModelSerializer):
    """Serializer for Class model"""

    classId = serializers.IntegerField(source='id', read_only=True)
    className = serializers.CharField(source='name')
    gradeLevel = serializers.CharField(source='grade_level')
    maxCapacity = serializers.IntegerField(source='capacity')
    currentEnrollment = serializers.ReadOnlyField(source='enrolled_count')
    academicYear = serializers.CharField(source='academic_year')
    isActive = serializers.BooleanField(source='is_active')

    class Meta:
        model = Class
        fields = [
            'classId', 'className', 'gradeLevel', 'section', 'maxCapacity',
            'currentEnrollment', 'academicYear', 'isActive'
        ]
