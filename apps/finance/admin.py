# apps/finance/admin.py
from django.contrib import admin
from .models import (
    FeeComponent, FeeJournalEntry, FeeStructure, Payment, PaymentItem, ReceiptSequence, Refund,
    StudentFeeAssignment,
)


class FeeComponentInline(admin.TabularInline):
    model = FeeComponent
    extra = 0
    fields = ['position', 'fee_type', 'fee_name', 'amount', 'description']

    def has_change_permission(self, request, obj=None):
        # Components of an active structure are immutable
        return obj is None or not obj.is_active

    has_add_permission = has_change_permission
    has_delete_permission = has_change_permission


@admin.register(FeeStructure)
class FeeStructureAdmin(admin.ModelAdmin):
    list_display = ['structure_name', 'academic_year_code', 'frequency', 'total_amount', 'is_active', 'version']
    list_filter = ['academic_year_code', 'frequency', 'is_active']
    search_fields = ['structure_name', 'academic_year_code']
    inlines = [FeeComponentInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('structure_name', 'academic_year_code', 'frequency', 'applicable_classes', 'description')
        }),
        ('Effective Period', {
            'fields': ('effective_from', 'effective_to')
        }),
        ('Due Date & Late Fee', {
            'fields': ('due_day', 'grace_period_days', 'late_fee_amount', 'late_fee_percentage')
        }),
        ('Status', {
            'fields': ('is_active', 'version', 'total_amount')
        }),
    )

    readonly_fields = ['total_amount', 'version', 'created_at', 'updated_at']

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        form.instance.recalculate_total()


@admin.register(StudentFeeAssignment)
class StudentFeeAssignmentAdmin(admin.ModelAdmin):
    list_display = ['student', 'fee_structure', 'custom_amount', 'discount_type', 'discount_value', 'is_active']
    list_filter = ['is_active', 'discount_type', 'fee_structure__academic_year_code']
    search_fields = ['student__student_id', 'student__first_name', 'student__last_name']


@admin.register(FeeJournalEntry)
class FeeJournalEntryAdmin(admin.ModelAdmin):
    list_display = ['student', 'fee_month', 'due_amount', 'paid_amount', 'balance_amount', 'status', 'due_date']
    list_filter = ['status', 'fee_month']
    search_fields = ['student__student_id', 'student__first_name', 'student__last_name']
    readonly_fields = [f.name for f in FeeJournalEntry._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class PaymentItemInline(admin.TabularInline):
    model = PaymentItem
    extra = 0
    readonly_fields = ['journal_entry', 'amount_due', 'amount_paid', 'remaining_balance']
    can_delete = False


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'student', 'total_amount', 'payment_method', 'status', 'payment_date']
    list_filter = ['status', 'payment_method', 'payment_date']
    search_fields = ['receipt_number', 'transaction_reference', 'student__student_id']
    readonly_fields = [f.name for f in Payment._meta.fields]
    inlines = [PaymentItemInline]

    def has_add_permission(self, request):
        return False


@admin.register(Refund)
class RefundAdmin(admin.ModelAdmin):
    list_display = ['payment', 'refund_amount', 'is_full_refund', 'status', 'request_date']
    list_filter = ['status', 'is_full_refund']
    search_fields = ['payment__receipt_number']
    readonly_fields = [f.name for f in Refund._meta.fields]


@admin.register(ReceiptSequence)
class ReceiptSequenceAdmin(admin.ModelAdmin):
    list_display = ['prefix', 'year', 'last_number']
    readonly_fields = ['prefix', 'year', 'last_number']
