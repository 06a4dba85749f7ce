# apps/finance/serializers.py
"""
camelCase request/response shapes for the fee API.

Input serializers carry every field rule (choices, lengths, ranges, two
decimal places) and the cross-field rules in ``validate()``. Services run
them through ``validators.validate_with`` so a rule reports the same field
path whether it is hit from the API or from a management command.
Checks that need the database or the clock beyond ``today`` stay in
apps.finance.services.
"""

from rest_framework import serializers

from apps.academics.models import SchoolSettings
from .models import (
    DiscountType, FeeComponent, FeeFrequency, FeeJournalEntry, FeeStructure, FeeType,
    Payment, PaymentItem, PaymentMethod, Refund, StudentFeeAssignment,
)
from .money import ZERO
from .validators import (
    ACADEMIC_YEAR_RE, MAX_CLASSES, MAX_COMPONENT_AMOUNT, MAX_COMPONENTS, MAX_DISCOUNT_VALUE,
    MAX_ITEM_AMOUNT, MAX_LATE_FEE, MAX_REFUND_AMOUNT, MIN_AMOUNT, fee_month_validator,
)


def money_field(**kwargs):
    kwargs.setdefault('max_digits', 12)
    kwargs.setdefault('decimal_places', 2)
    return serializers.DecimalField(**kwargs)


# =============================================================================
# FEE STRUCTURES
# =============================================================================

class DueDateConfigSerializer(serializers.Serializer):
    dueDay = serializers.IntegerField(source='due_day', min_value=1, max_value=31, default=5)
    gracePeriodDays = serializers.IntegerField(source='grace_period_days', min_value=0, max_value=30, default=7)
    lateFeeAmount = money_field(source='late_fee_amount', min_value=ZERO, max_value=MAX_LATE_FEE, default=ZERO)
    lateFeePercentage = money_field(
        source='late_fee_percentage', max_digits=5, min_value=ZERO, max_value=100,
        required=False, allow_null=True,
    )


class FeeComponentSerializer(serializers.ModelSerializer):
    componentId = serializers.IntegerField(source='id', read_only=True)
    feeType = serializers.ChoiceField(source='fee_type', choices=FeeType.choices)
    feeName = serializers.CharField(source='fee_name', min_length=2, max_length=100)
    amount = money_field(min_value=MIN_AMOUNT, max_value=MAX_COMPONENT_AMOUNT)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500, default='')

    class Meta:
        model = FeeComponent
        fields = ['componentId', 'feeType', 'feeName', 'amount', 'description']


class FeeStructureSerializer(serializers.ModelSerializer):
    """Fee structure with its components and due date configuration"""

    feeStructureId = serializers.IntegerField(source='id', read_only=True)
    structureName = serializers.CharField(source='structure_name')
    academicYearCode = serializers.CharField(source='academic_year_code')
    components = FeeComponentSerializer(many=True, read_only=True)
    applicableClasses = serializers.ListField(source='applicable_classes', child=serializers.CharField())
    effectiveFrom = serializers.DateField(source='effective_from')
    effectiveTo = serializers.DateField(source='effective_to', allow_null=True)
    dueDateConfig = DueDateConfigSerializer(source='*', read_only=True)
    totalAmount = money_field(source='total_amount', read_only=True)
    isActive = serializers.BooleanField(source='is_active')
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = FeeStructure
        fields = [
            'feeStructureId', 'structureName', 'academicYearCode', 'frequency',
            'components', 'applicableClasses', 'effectiveFrom', 'effectiveTo',
            'description', 'dueDateConfig', 'totalAmount', 'isActive', 'version',
            'createdAt', 'updatedAt',
        ]


class FeeStructureInputSerializer(serializers.Serializer):
    structureName = serializers.CharField(source='structure_name', min_length=3, max_length=200)
    academicYearCode = serializers.CharField(source='academic_year_code')
    frequency = serializers.ChoiceField(choices=FeeFrequency.choices)
    components = FeeComponentSerializer(many=True, allow_empty=False)
    applicableClasses = serializers.ListField(
        source='applicable_classes', child=serializers.CharField(max_length=50),
        allow_empty=False, max_length=MAX_CLASSES,
    )
    effectiveFrom = serializers.DateField(source='effective_from')
    effectiveTo = serializers.DateField(source='effective_to', required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=1000)
    dueDateConfig = DueDateConfigSerializer(source='*', required=False)
    isActive = serializers.BooleanField(source='is_active', required=False)
    version = serializers.IntegerField(required=False, allow_null=True, min_value=1)

    def validate_academicYearCode(self, value):
        match = ACADEMIC_YEAR_RE.match(value)
        if not match:
            raise serializers.ValidationError('Must be in YYYY-YYYY format')
        if int(match.group(2)) != int(match.group(1)) + 1:
            raise serializers.ValidationError('End year must be start year + 1')
        return value

    def validate_components(self, value):
        if len(value) > MAX_COMPONENTS:
            raise serializers.ValidationError(f'Must have between 1 and {MAX_COMPONENTS} components')
        return value

    def validate(self, attrs):
        attrs.setdefault('due_day', 5)
        attrs.setdefault('grace_period_days', 7)
        attrs.setdefault('late_fee_amount', ZERO)
        attrs.setdefault('late_fee_percentage', None)

        errors = {}
        effective_to = attrs.get('effective_to')
        if effective_to is not None and effective_to <= attrs['effective_from']:
            errors['effectiveTo'] = 'Must be after effectiveFrom'
        if attrs['late_fee_percentage'] is None and not attrs['late_fee_amount'] > 0:
            errors['dueDateConfig'] = 'Either lateFeeAmount or lateFeePercentage must be specified'
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class FeeStructureStatusSerializer(serializers.Serializer):
    isActive = serializers.BooleanField(source='is_active')


class FeeCalculationInputSerializer(serializers.Serializer):
    studentId = serializers.IntegerField(source='student_id')
    academicYearCode = serializers.CharField(source='academic_year_code', required=False, allow_blank=True)
    feeMonth = serializers.CharField(source='fee_month', validators=[fee_month_validator])


class FeeBreakdownSerializer(serializers.Serializer):
    feeStructureId = serializers.IntegerField(source='fee_structure_id')
    feeType = serializers.CharField(source='fee_type')
    feeName = serializers.CharField(source='fee_name')
    amount = money_field()
    frequency = serializers.CharField()


class FeeCalculationSerializer(serializers.Serializer):
    studentId = serializers.IntegerField(source='student.id')
    studentName = serializers.CharField(source='student.full_name')
    className = serializers.SerializerMethodField()
    feeMonth = serializers.CharField(source='fee_month')
    feeBreakdown = FeeBreakdownSerializer(source='breakdown', many=True)
    totalAmount = money_field(source='total_amount')
    discountApplied = money_field(source='discount_applied')
    netAmount = money_field(source='net_amount')

    def get_className(self, obj):
        school_class = obj['student'].current_class
        return school_class.name if school_class else None


# =============================================================================
# ASSIGNMENTS
# =============================================================================

class DiscountSerializer(serializers.Serializer):
    discountType = serializers.ChoiceField(source='discount_type', choices=DiscountType.choices)
    discountValue = money_field(source='discount_value', min_value=MIN_AMOUNT, max_value=MAX_DISCOUNT_VALUE)
    reason = serializers.CharField(source='discount_reason', min_length=5, max_length=500)

    def validate(self, attrs):
        if attrs['discount_type'] == DiscountType.PERCENTAGE and attrs['discount_value'] > 100:
            raise serializers.ValidationError({'discountValue': 'Percentage discount cannot exceed 100'})
        return attrs


class AssignmentTermsSerializer(serializers.Serializer):
    """
    Terms of one assignment. ``effectiveFrom`` falls back to the
    ``default_effective_from`` passed in the context (the structure's).
    """
    customAmount = money_field(
        source='custom_amount', min_value=MIN_AMOUNT, max_value=MAX_COMPONENT_AMOUNT,
        required=False, allow_null=True,
    )
    discount = DiscountSerializer(required=False, allow_null=True)
    effectiveFrom = serializers.DateField(source='effective_from', required=False)
    effectiveTo = serializers.DateField(source='effective_to', required=False, allow_null=True)

    def validate(self, attrs):
        discount = attrs.pop('discount', None) or {}
        attrs.update(discount)

        attrs.setdefault('effective_from', self.context.get('default_effective_from'))
        if attrs['effective_from'] is None:
            raise serializers.ValidationError({'effectiveFrom': 'This field is required.'})
        effective_to = attrs.get('effective_to')
        if effective_to is not None and effective_to <= attrs['effective_from']:
            raise serializers.ValidationError({'effectiveTo': 'Must be after effectiveFrom'})
        return attrs


class AssignmentRequestSerializer(serializers.Serializer):
    studentId = serializers.IntegerField(source='student_id')
    feeStructureId = serializers.IntegerField(source='fee_structure_id')


class StudentFeeAssignmentSerializer(serializers.ModelSerializer):
    assignmentId = serializers.IntegerField(source='id', read_only=True)
    studentId = serializers.IntegerField(source='student.id')
    studentCode = serializers.CharField(source='student.student_id')
    studentName = serializers.CharField(source='student.full_name')
    feeStructureId = serializers.IntegerField(source='fee_structure.id')
    structureName = serializers.CharField(source='fee_structure.structure_name')
    frequency = serializers.CharField(source='fee_structure.frequency')
    totalAmount = money_field(source='fee_structure.total_amount')
    customAmount = money_field(source='custom_amount')
    discount = serializers.SerializerMethodField()
    netAmount = money_field(source='net_amount')
    effectiveFrom = serializers.DateField(source='effective_from')
    effectiveTo = serializers.DateField(source='effective_to')
    isActive = serializers.BooleanField(source='is_active')

    class Meta:
        model = StudentFeeAssignment
        fields = [
            'assignmentId', 'studentId', 'studentCode', 'studentName', 'feeStructureId',
            'structureName', 'frequency', 'totalAmount', 'customAmount', 'discount',
            'netAmount', 'effectiveFrom', 'effectiveTo', 'isActive',
        ]

    def get_discount(self, obj):
        if not obj.has_discount:
            return None
        return DiscountSerializer(obj).data


# =============================================================================
# JOURNAL
# =============================================================================

class FeeJournalEntrySerializer(serializers.ModelSerializer):
    journalEntryId = serializers.IntegerField(source='id', read_only=True)
    studentId = serializers.IntegerField(source='student_id')
    assignmentId = serializers.IntegerField(source='assignment_id')
    feeStructureId = serializers.IntegerField(source='assignment.fee_structure_id')
    structureName = serializers.CharField(source='assignment.fee_structure.structure_name')
    feeMonth = serializers.CharField(source='fee_month')
    dueAmount = money_field(source='due_amount')
    paidAmount = money_field(source='paid_amount')
    balanceAmount = money_field(source='balance_amount')
    dueDate = serializers.DateField(source='due_date')
    paidDate = serializers.DateField(source='paid_date')
    lateFeeApplied = money_field(source='late_fee_applied')
    waiverReason = serializers.CharField(source='waiver_reason')
    waivedAmount = money_field(source='waived_amount')
    isOverdue = serializers.SerializerMethodField()

    class Meta:
        model = FeeJournalEntry
        fields = [
            'journalEntryId', 'studentId', 'assignmentId', 'feeStructureId', 'structureName',
            'feeMonth', 'dueAmount', 'paidAmount', 'balanceAmount', 'status', 'dueDate',
            'paidDate', 'lateFeeApplied', 'waiverReason', 'waivedAmount', 'isOverdue',
        ]

    def get_isOverdue(self, obj):
        return obj.status == FeeJournalEntry.STATUS_OVERDUE


class GenerateJournalSerializer(serializers.Serializer):
    feeMonth = serializers.CharField(source='fee_month', validators=[fee_month_validator])
    feeStructureId = serializers.IntegerField(source='fee_structure_id', required=False, allow_null=True)


class WaiverSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class StudentFeeSummarySerializer(serializers.Serializer):
    studentId = serializers.IntegerField(source='student.id')
    studentCode = serializers.CharField(source='student.student_id')
    studentName = serializers.CharField(source='student.full_name')
    studentClass = serializers.SerializerMethodField()
    totalFees = money_field(source='total_fees')
    totalPaid = money_field(source='total_paid')
    totalWaived = money_field(source='total_waived')
    totalOutstanding = money_field(source='total_outstanding')
    pendingFees = FeeJournalEntrySerializer(source='pending_fees', many=True)

    def get_studentClass(self, obj):
        school_class = obj['student'].current_class
        return school_class.name if school_class else None


# =============================================================================
# PAYMENTS
# =============================================================================

class FeeItemInputSerializer(serializers.Serializer):
    journalEntryId = serializers.IntegerField(source='journal_entry_id', min_value=1)
    amountPaid = money_field(source='amount_paid', min_value=MIN_AMOUNT, max_value=MAX_ITEM_AMOUNT)


class PaymentInputSerializer(serializers.Serializer):
    """
    One payment request. ``today`` in the context bounds ``paymentDate``,
    which defaults to it.
    """
    feeItems = FeeItemInputSerializer(source='fee_items', many=True, allow_empty=False)
    paymentMethod = serializers.ChoiceField(source='payment_method', choices=PaymentMethod.choices)
    paymentDate = serializers.DateField(source='payment_date', required=False, allow_null=True)
    transactionReference = serializers.CharField(
        source='transaction_reference', required=False, allow_blank=True, allow_null=True, max_length=100,
    )
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)

    def validate(self, attrs):
        today = self.context['today']
        attrs['payment_date'] = attrs.get('payment_date') or today
        attrs['transaction_reference'] = attrs.get('transaction_reference') or ''
        attrs['notes'] = attrs.get('notes') or ''

        errors = {}
        method = attrs['payment_method']
        if method != PaymentMethod.CASH and not attrs['transaction_reference']:
            errors['transactionReference'] = f'Transaction reference is required for {method} payments'
        if attrs['payment_date'] > today:
            errors['paymentDate'] = 'Payment date cannot be in the future'
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class PaymentRequestSerializer(serializers.Serializer):
    studentId = serializers.IntegerField(source='student_id')
    requestKey = serializers.CharField(source='request_key', required=False, allow_blank=True, allow_null=True, max_length=100)


class PaymentFilterSerializer(serializers.Serializer):
    studentId = serializers.IntegerField(source='student_id', required=False)
    paymentMethod = serializers.ChoiceField(source='payment_method', choices=PaymentMethod.choices, required=False)
    status = serializers.ChoiceField(choices=Payment.STATUS_CHOICES, required=False)
    fromDate = serializers.DateField(source='from_date', required=False)
    toDate = serializers.DateField(source='to_date', required=False)
    search = serializers.CharField(required=False, allow_blank=True)


class PaymentItemSerializer(serializers.ModelSerializer):
    journalEntryId = serializers.IntegerField(source='journal_entry_id')
    feeMonth = serializers.CharField(source='journal_entry.fee_month')
    structureName = serializers.CharField(source='journal_entry.assignment.fee_structure.structure_name')
    amountDue = money_field(source='amount_due')
    amountPaid = money_field(source='amount_paid')
    remainingBalance = money_field(source='remaining_balance')

    class Meta:
        model = PaymentItem
        fields = ['journalEntryId', 'feeMonth', 'structureName', 'amountDue', 'amountPaid', 'remainingBalance']


class PaymentSerializer(serializers.ModelSerializer):
    paymentId = serializers.IntegerField(source='id', read_only=True)
    receiptNumber = serializers.CharField(source='receipt_number')
    studentId = serializers.IntegerField(source='student.id')
    studentCode = serializers.CharField(source='student.student_id')
    studentName = serializers.CharField(source='student.full_name')
    feeItems = PaymentItemSerializer(source='items', many=True)
    totalAmount = money_field(source='total_amount')
    previousBalance = money_field(source='previous_balance')
    remainingBalance = money_field(source='remaining_balance')
    paymentDate = serializers.DateField(source='payment_date')
    paymentMethod = serializers.CharField(source='payment_method')
    transactionReference = serializers.CharField(source='transaction_reference')
    processedBy = serializers.CharField(source='processed_by.username', default=None)
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = Payment
        fields = [
            'paymentId', 'receiptNumber', 'studentId', 'studentCode', 'studentName',
            'feeItems', 'totalAmount', 'previousBalance', 'remainingBalance',
            'paymentDate', 'paymentMethod', 'transactionReference', 'notes', 'status',
            'processedBy', 'createdAt',
        ]


class PaymentSummarySerializer(serializers.ModelSerializer):
    """Lightweight payment row for lists and dashboards"""
    paymentId = serializers.IntegerField(source='id', read_only=True)
    receiptNumber = serializers.CharField(source='receipt_number')
    studentId = serializers.IntegerField(source='student.id')
    studentName = serializers.CharField(source='student.full_name')
    totalAmount = money_field(source='total_amount')
    paymentDate = serializers.DateField(source='payment_date')
    paymentMethod = serializers.CharField(source='payment_method')

    class Meta:
        model = Payment
        fields = [
            'paymentId', 'receiptNumber', 'studentId', 'studentName', 'totalAmount',
            'paymentDate', 'paymentMethod', 'status',
        ]

class ReceiptSerializer(serializers.Serializer):
    """Everything needed to print a receipt: payment, school and student identity"""
    payment = PaymentSerializer(source='*')
    school = serializers.SerializerMethodField()
    student = serializers.SerializerMethodField()
    academicYear = serializers.SerializerMethodField()

    def get_school(self, obj):
        school = SchoolSettings.get_instance()
        return {
            'name': school.school_name,
            'address': school.school_address,
            'phone': school.school_phone,
            'email': school.school_email,
            'website': school.school_website or None,
            'logoUrl': school.logo_url or None,
        }

    def get_student(self, obj):
        student = obj.student
        school_class = student.current_class
        return {
            'id': student.id,
            'studentId': student.student_id,
            'name': student.full_name,
            'class': school_class.name if school_class else None,
            'section': school_class.section if school_class else None,
            'rollNumber': student.roll_number or None,
            'guardianName': student.guardian_name,
            'guardianPhone': student.guardian_phone,
        }

    def get_academicYear(self, obj):
        first_item = obj.items.select_related('journal_entry__assignment__fee_structure').first()
        if first_item is not None:
            return first_item.journal_entry.assignment.fee_structure.academic_year_code
        return obj.student.academic_year or SchoolSettings.get_instance().current_academic_year


# =============================================================================
# REFUNDS
# =============================================================================

class RefundInputSerializer(serializers.Serializer):
    """Refund request against one payment; ``payment_total`` in the context caps the amount"""
    refundAmount = money_field(source='refund_amount', min_value=MIN_AMOUNT, max_value=MAX_REFUND_AMOUNT)
    reason = serializers.CharField(min_length=10, max_length=500)
    isFullRefund = serializers.BooleanField(source='is_full_refund', default=False)

    def validate(self, attrs):
        total = self.context.get('payment_total')
        if total is None:
            return attrs
        amount = attrs['refund_amount']
        if amount > total:
            raise serializers.ValidationError({'refundAmount': 'Refund amount cannot exceed payment amount'})
        if attrs['is_full_refund'] and amount != total:
            raise serializers.ValidationError({'refundAmount': 'Full refund must equal the payment amount'})
        return attrs


class RefundFilterSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Refund.STATUS_CHOICES, required=False)
    paymentId = serializers.IntegerField(source='payment_id', required=False)


class RefundDecisionSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RefundSerializer(serializers.ModelSerializer):
    refundId = serializers.IntegerField(source='id', read_only=True)
    paymentId = serializers.IntegerField(source='payment_id')
    receiptNumber = serializers.CharField(source='payment.receipt_number')
    refundAmount = money_field(source='refund_amount')
    isFullRefund = serializers.BooleanField(source='is_full_refund')
    requestedBy = serializers.CharField(source='requested_by.username', default=None)
    approvedBy = serializers.CharField(source='approved_by.username', default=None)
    approvalNotes = serializers.CharField(source='approval_notes')
    requestDate = serializers.DateTimeField(source='request_date')
    approvalDate = serializers.DateTimeField(source='approval_date')
    refundDate = serializers.DateField(source='refund_date')

    class Meta:
        model = Refund
        fields = [
            'refundId', 'paymentId', 'receiptNumber', 'refundAmount', 'reason',
            'isFullRefund', 'status', 'requestedBy', 'approvedBy', 'approvalNotes',
            'requestDate', 'approvalDate', 'refundDate',
        ]


# =============================================================================
# DASHBOARDS
# =============================================================================

class PeriodTotalsSerializer(serializers.Serializer):
    totalDue = money_field(source='total_due')
    totalCollected = money_field(source='total_collected')
    totalPending = money_field(source='total_pending')
    collectionPercentage = money_field(source='collection_percentage')


class ClassAmountSerializer(serializers.Serializer):
    className = serializers.CharField(source='class_name')
    overdueAmount = money_field(source='overdue_amount', required=False)
    totalAmount = money_field(source='total_amount', required=False)
    studentCount = serializers.IntegerField(source='student_count')


class OverdueStatsSerializer(serializers.Serializer):
    totalOverdueAmount = money_field(source='total_overdue_amount')
    totalOverdueStudents = serializers.IntegerField(source='total_overdue_students')
    overdueByClass = ClassAmountSerializer(source='overdue_by_class', many=True)


class CollectionTrendSerializer(serializers.Serializer):
    month = serializers.CharField()
    collected = money_field()
    pending = money_field()


class FeeDashboardSerializer(serializers.Serializer):
    currentMonth = PeriodTotalsSerializer(source='current_month')
    currentYear = PeriodTotalsSerializer(source='current_year')
    overdueStats = OverdueStatsSerializer(source='overdue_stats')
    collectionTrend = CollectionTrendSerializer(source='collection_trend', many=True)
    recentTransactions = PaymentSummarySerializer(source='recent_transactions', many=True)


class MethodCollectionSerializer(serializers.Serializer):
    method = serializers.CharField()
    amount = money_field()
    count = serializers.IntegerField()


class PendingPaymentsSerializer(serializers.Serializer):
    count = serializers.IntegerField()
    totalAmount = money_field(source='total_amount')


class RevenueTrendSerializer(serializers.Serializer):
    month = serializers.CharField()
    amount = money_field()


class PaymentDashboardSerializer(serializers.Serializer):
    todayCollections = money_field(source='today_collections')
    monthCollections = money_field(source='month_collections')
    yearCollections = money_field(source='year_collections')
    collectionsByMethod = MethodCollectionSerializer(source='collections_by_method', many=True)
    pendingPayments = PendingPaymentsSerializer(source='pending_payments')
    revenueTrends = RevenueTrendSerializer(source='revenue_trends', many=True)
    topClasses = ClassAmountSerializer(source='top_classes', many=True)
    recentPayments = PaymentSummarySerializer(source='recent_payments', many=True)
