# apps/finance/views.py
from django.core.paginator import Paginator
from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from apps.accounts.permissions import IsFinanceStaffOrReadOnly
from apps.admissions.models import Student
from .models import (
    FeeComponent, FeeJournalEntry, FeeStructure, Payment, Refund, StudentFeeAssignment,
)
from .serializers import (
    AssignmentRequestSerializer, FeeCalculationInputSerializer, FeeCalculationSerializer,
    FeeDashboardSerializer, FeeJournalEntrySerializer, FeeStructureSerializer,
    FeeStructureStatusSerializer, GenerateJournalSerializer, PaymentDashboardSerializer,
    PaymentFilterSerializer, PaymentRequestSerializer, PaymentSerializer,
    PaymentSummarySerializer, ReceiptSerializer, RefundDecisionSerializer,
    RefundFilterSerializer, RefundSerializer, StudentFeeAssignmentSerializer,
    StudentFeeSummarySerializer, WaiverSerializer,
)
from .services import (
    AssignmentService, FeeStructureService, JournalService, PaymentService, RefundService,
)
from . import stats
from .validators import validate_with


def _not_found(what):
    return Response({
        'success': False,
        'error': f'{what} not found'
    }, status=status.HTTP_404_NOT_FOUND)


def _filled(query_params):
    """Query params without the empty ones, so ?status= means no filter"""
    return {key: value for key, value in query_params.items() if value != ''}


def _paginate(request, queryset, serializer_class):
    """Page a queryset with ?page=&pageSize= and serialize the page"""
    try:
        page_size = min(max(int(request.query_params.get('pageSize', 20)), 1), 100)
        page = int(request.query_params.get('page', 1))
    except ValueError:
        page_size, page = 20, 1

    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj.object_list, many=True)

    return {
        'content': serializer.data,
        'page': page_obj.number,
        'pageSize': page_size,
        'totalElements': paginator.count,
        'totalPages': paginator.num_pages,
    }


def _structure_queryset():
    return FeeStructure.objects.prefetch_related('components')


def _payment_queryset():
    return Payment.objects.select_related('student', 'processed_by').prefetch_related(
        'items__journal_entry__assignment__fee_structure'
    )


# =============================================================================
# FEE STRUCTURES
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def fee_structures(request):
    """List fee structures (filters: academicYearCode, frequency, isActive, search) or create one"""
    if request.method == 'POST':
        structure = FeeStructureService.create_structure(request.data, created_by=request.user)
        return Response({
            'success': True,
            'message': 'Fee structure created successfully',
            'data': FeeStructureSerializer(_structure_queryset().get(pk=structure.pk)).data
        }, status=status.HTTP_201_CREATED)

    params = request.query_params
    structures = _structure_queryset()

    if params.get('academicYearCode'):
        structures = structures.filter(academic_year_code=params['academicYearCode'])
    if params.get('frequency'):
        structures = structures.filter(frequency=params['frequency'])
    if params.get('isActive') in ('true', 'false'):
        structures = structures.filter(is_active=params['isActive'] == 'true')
    if params.get('search'):
        structures = structures.filter(structure_name__icontains=params['search'].strip())

    return Response({
        'success': True,
        'data': _paginate(request, structures, FeeStructureSerializer)
    })


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsFinanceStaffOrReadOnly])
def fee_structure_detail(request, pk):
    structure = _structure_queryset().filter(pk=pk).first()
    if structure is None:
        return _not_found('Fee structure')

    if request.method == 'GET':
        return Response({
            'success': True,
            'data': FeeStructureSerializer(structure).data
        })

    if request.method == 'DELETE':
        deleted = FeeStructureService.delete_structure(structure)
        return Response({
            'success': True,
            'message': (
                'Fee structure deleted successfully' if deleted
                else 'Fee structure is assigned to students and was deactivated instead'
            ),
            'data': {'deleted': deleted}
        })

    structure = FeeStructureService.update_structure(structure, request.data)

    return Response({
        'success': True,
        'message': 'Fee structure updated successfully',
        'data': FeeStructureSerializer(_structure_queryset().get(pk=structure.pk)).data
    })


@api_view(['PATCH'])
@permission_classes([IsFinanceStaffOrReadOnly])
def fee_structure_status(request, pk):
    structure = FeeStructure.objects.filter(pk=pk).first()
    if structure is None:
        return _not_found('Fee structure')

    data = validate_with(FeeStructureStatusSerializer, request.data)
    structure = FeeStructureService.set_active(structure, data['is_active'])
    return Response({
        'success': True,
        'message': f"Fee structure {'activated' if structure.is_active else 'deactivated'}",
        'data': FeeStructureSerializer(_structure_queryset().get(pk=structure.pk)).data
    })


@api_view(['POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def fee_structure_components(request, pk):
    structure = FeeStructure.objects.filter(pk=pk).first()
    if structure is None:
        return _not_found('Fee structure')

    structure = FeeStructureService.add_component(structure, request.data)
    return Response({
        'success': True,
        'message': 'Component added',
        'data': FeeStructureSerializer(_structure_queryset().get(pk=structure.pk)).data
    }, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsFinanceStaffOrReadOnly])
def fee_structure_component_detail(request, pk, component_id):
    structure = FeeStructure.objects.filter(pk=pk).first()
    if structure is None:
        return _not_found('Fee structure')

    try:
        structure = FeeStructureService.remove_component(structure, component_id)
    except FeeComponent.DoesNotExist:
        return _not_found('Fee component')

    return Response({
        'success': True,
        'message': 'Component removed',
        'data': FeeStructureSerializer(_structure_queryset().get(pk=structure.pk)).data
    })


@api_view(['POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def calculate_fees(request):
    """Fee breakdown for a student and month, nothing is written"""
    data = validate_with(FeeCalculationInputSerializer, request.data)
    student = Student.objects.select_related('current_class').filter(pk=data['student_id']).first()
    if student is None:
        return _not_found('Student')

    result = FeeStructureService.calculate_student_fees(
        student, data['fee_month'], academic_year_code=data.get('academic_year_code') or None,
    )
    return Response({
        'success': True,
        'data': FeeCalculationSerializer(result).data
    })


# =============================================================================
# ASSIGNMENTS & JOURNAL
# =============================================================================

@api_view(['POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def assign_fee(request):
    target = validate_with(AssignmentRequestSerializer, request.data)
    student = Student.objects.filter(pk=target['student_id']).first()
    if student is None:
        return _not_found('Student')
    structure = FeeStructure.objects.filter(pk=target['fee_structure_id']).first()
    if structure is None:
        return _not_found('Fee structure')

    assignment = AssignmentService.assign_fee(student, structure, request.data, created_by=request.user)
    return Response({
        'success': True,
        'message': 'Fee assigned successfully',
        'data': StudentFeeAssignmentSerializer(assignment).data
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def student_assignments(request, student_id):
    student = Student.objects.filter(pk=student_id).first()
    if student is None:
        return _not_found('Student')

    assignments = StudentFeeAssignment.objects.filter(student=student).select_related('student', 'fee_structure')
    return Response({
        'success': True,
        'data': StudentFeeAssignmentSerializer(assignments, many=True).data
    })


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def student_fee_journals(request, student_id):
    """A student's fee journal (filters: feeMonth, status). Overdue status is refreshed first."""
    student = Student.objects.filter(pk=student_id).first()
    if student is None:
        return _not_found('Student')

    JournalService.refresh_overdue(student=student)

    entries = FeeJournalEntry.objects.filter(student=student).select_related('assignment__fee_structure')
    if request.query_params.get('feeMonth'):
        entries = entries.filter(fee_month=request.query_params['feeMonth'])
    if request.query_params.get('status'):
        entries = entries.filter(status=request.query_params['status'].upper())

    return Response({
        'success': True,
        'data': FeeJournalEntrySerializer(entries, many=True).data
    })


@api_view(['POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def generate_journals(request):
    data = validate_with(GenerateJournalSerializer, request.data)
    structure = None
    if data.get('fee_structure_id'):
        structure = FeeStructure.objects.filter(pk=data['fee_structure_id']).first()
        if structure is None:
            return _not_found('Fee structure')

    created = JournalService.generate_entries(data['fee_month'], fee_structure=structure)
    return Response({
        'success': True,
        'message': f"Generated {len(created)} journal entries for {data['fee_month']}",
        'data': {'created': len(created)}
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def waive_journal_entry(request, pk):
    entry = FeeJournalEntry.objects.filter(pk=pk).first()
    if entry is None:
        return _not_found('Journal entry')

    data = validate_with(WaiverSerializer, request.data)
    entry = JournalService.waive_entry(entry, data['reason'])
    return Response({
        'success': True,
        'message': 'Fee waived',
        'data': FeeJournalEntrySerializer(entry).data
    })


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def fee_dashboard(request):
    return Response({
        'success': True,
        'data': FeeDashboardSerializer(stats.fee_dashboard_stats()).data
    })


# =============================================================================
# PAYMENTS
# =============================================================================

@api_view(['GET', 'POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def payments(request):
    """
    List payments (filters: studentId, paymentMethod, status, fromDate, toDate, search)
    or record a new one. An Idempotency-Key header (or requestKey) makes retries safe.
    """
    if request.method == 'POST':
        target = validate_with(PaymentRequestSerializer, request.data)
        student = Student.objects.filter(pk=target['student_id']).first()
        if student is None:
            return _not_found('Student')

        request_key = target.get('request_key') or request.headers.get('Idempotency-Key')
        payment = PaymentService.apply_payment(
            student, request.data, processed_by=request.user, request_key=request_key or None,
        )
        return Response({
            'success': True,
            'message': 'Payment recorded successfully',
            'data': PaymentSerializer(_payment_queryset().get(pk=payment.pk)).data
        }, status=status.HTTP_201_CREATED)

    params = validate_with(PaymentFilterSerializer, _filled(request.query_params))
    queryset = _payment_queryset()

    if 'student_id' in params:
        queryset = queryset.filter(student_id=params['student_id'])
    if 'payment_method' in params:
        queryset = queryset.filter(payment_method=params['payment_method'])
    if 'status' in params:
        queryset = queryset.filter(status=params['status'])
    if 'from_date' in params:
        queryset = queryset.filter(payment_date__gte=params['from_date'])
    if 'to_date' in params:
        queryset = queryset.filter(payment_date__lte=params['to_date'])
    if params.get('search'):
        term = params['search']
        queryset = queryset.filter(
            Q(receipt_number__icontains=term) |
            Q(student__student_id__icontains=term) |
            Q(student__first_name__icontains=term) |
            Q(student__last_name__icontains=term)
        )

    return Response({
        'success': True,
        'data': _paginate(request, queryset, PaymentSerializer)
    })


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def payment_detail(request, pk):
    payment = _payment_queryset().filter(pk=pk).first()
    if payment is None:
        return _not_found('Payment')

    return Response({
        'success': True,
        'data': PaymentSerializer(payment).data
    })


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def payment_receipt(request, pk):
    payment = _payment_queryset().select_related('student__current_class').filter(pk=pk).first()
    if payment is None:
        return _not_found('Payment')

    return Response({
        'success': True,
        'data': ReceiptSerializer(payment).data
    })


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def student_payments(request, student_id):
    if not Student.objects.filter(pk=student_id).exists():
        return _not_found('Student')

    return Response({
        'success': True,
        'data': PaymentSummarySerializer(
            Payment.objects.filter(student_id=student_id).select_related('student'), many=True
        ).data
    })


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def student_fee_summary(request, student_id):
    student = Student.objects.select_related('current_class').filter(pk=student_id).first()
    if student is None:
        return _not_found('Student')

    return Response({
        'success': True,
        'data': StudentFeeSummarySerializer(stats.student_fee_summary(student)).data
    })


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def payment_dashboard(request):
    return Response({
        'success': True,
        'data': PaymentDashboardSerializer(stats.payment_dashboard_stats()).data
    })


# =============================================================================
# REFUNDS
# =============================================================================

@api_view(['POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def request_refund(request, pk):
    payment = Payment.objects.filter(pk=pk).first()
    if payment is None:
        return _not_found('Payment')

    refund = RefundService.request_refund(payment, request.data, requested_by=request.user)
    return Response({
        'success': True,
        'message': 'Refund requested',
        'data': RefundSerializer(refund).data
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsFinanceStaffOrReadOnly])
def refunds(request):
    params = validate_with(RefundFilterSerializer, _filled(request.query_params))
    queryset = Refund.objects.select_related('payment', 'requested_by', 'approved_by')
    if 'status' in params:
        queryset = queryset.filter(status=params['status'])
    if 'payment_id' in params:
        queryset = queryset.filter(payment_id=params['payment_id'])

    return Response({
        'success': True,
        'data': _paginate(request, queryset, RefundSerializer)
    })


@api_view(['POST'])
@permission_classes([IsFinanceStaffOrReadOnly])
def refund_action(request, pk, action):
    """Approve, reject or complete a refund"""
    refund = Refund.objects.filter(pk=pk).first()
    if refund is None:
        return _not_found('Refund')

    notes = validate_with(RefundDecisionSerializer, request.data)['notes']
    if action == 'approve':
        refund = RefundService.approve_refund(refund, approved_by=request.user, notes=notes)
        message = 'Refund approved'
    elif action == 'reject':
        refund = RefundService.reject_refund(refund, approved_by=request.user, notes=notes)
        message = 'Refund rejected'
    else:
        refund = RefundService.complete_refund(refund)
        message = 'Refund completed'

    return Response({
        'success': True,
        'message': message,
        'data': RefundSerializer(Refund.objects.select_related('payment', 'requested_by', 'approved_by').get(pk=refund.pk)).data
    })
