# apps/academics/views.py
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from apps.academics.models import Class
from apps.academics.serializers import ClassSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_classes(request):
    """Get list of all classes"""
    classes = Class.objects.filter(is_active=True).order_by('grade_level', 'section')

    academic_year = request.query_params.get('academicYear')
    if academic_year:
        classes = classes.filter(academic_year=academic_year)

    serializer = ClassSerializer(classes, many=True)

    return Response({
        'success': True,
        'data': {
            'classes': serializer.data
        }
    })
