# apps/finance/models.py

from datetime import timedelta

from django.db import models, transaction
from django.utils import timezone
from apps.admissions.models import Student
from apps.accounts.models import User

from .conf import LATE_FEE_AUTO_APPLY, fee_setting
from .exceptions import InvalidStateError, OverpaymentError, ValidationError
from .money import ZERO, late_fee_for, quantize, resolve_net_amount, to_decimal, total_of


class FeeType(models.TextChoices):
    TUITION = 'TUITION', 'Tuition'
    LIBRARY = 'LIBRARY', 'Library'
    COMPUTER = 'COMPUTER', 'Computer'
    SPORTS = 'SPORTS', 'Sports'
    TRANSPORT = 'TRANSPORT', 'Transport'
    LAB = 'LAB', 'Laboratory'
    OTHER = 'OTHER', 'Other'


class FeeFrequency(models.TextChoices):
    MONTHLY = 'MONTHLY', 'Monthly'
    QUARTERLY = 'QUARTERLY', 'Quarterly'
    ANNUAL = 'ANNUAL', 'Annual'
    ONE_TIME = 'ONE_TIME', 'One time'


class DiscountType(models.TextChoices):
    PERCENTAGE = 'PERCENTAGE', 'Percentage'
    FIXED = 'FIXED', 'Fixed amount'


class PaymentMethod(models.TextChoices):
    CASH = 'Cash', 'Cash'
    CARD = 'Card', 'Card'
    BANK_TRANSFER = 'Bank Transfer', 'Bank Transfer'
    UPI = 'UPI', 'UPI'
    CHEQUE = 'Cheque', 'Cheque'


class FeeStructure(models.Model):
    """A named set of fee components billed to one or more classes"""
    structure_name = models.CharField(max_length=200)
    academic_year_code = models.CharField(max_length=9)  # e.g. "2025-2026"
    frequency = models.CharField(max_length=20, choices=FeeFrequency.choices)

    # Class identifiers (id or name) the structure applies to
    applicable_classes = models.JSONField(default=list)
    description = models.TextField(blank=True)

    effective_from = models.DateField()
    effective_to = models.DateField(null=True, blank=True)

    # Due date configuration
    due_day = models.PositiveSmallIntegerField(default=5)
    grace_period_days = models.PositiveSmallIntegerField(default=7)
    late_fee_amount = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    late_fee_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)

    # Derived from the components, rewritten on every component change
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    is_active = models.BooleanField(default=False)
    version = models.PositiveIntegerField(default=1)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-academic_year_code', 'structure_name']

    def __str__(self):
        return f"{self.structure_name} - {self.academic_year_code}"

    def compute_total(self):
        return total_of(self.components.values_list('amount', flat=True))

    def recalculate_total(self):
        """Re-derive total_amount from the stored components"""
        self.total_amount = self.compute_total()
        FeeStructure.objects.filter(pk=self.pk).update(total_amount=self.total_amount)
        return self.total_amount

    def applies_to(self, school_class):
        if school_class is None:
            return False
        wanted = {str(c) for c in self.applicable_classes}
        return bool(wanted & school_class.identifiers)


class FeeComponent(models.Model):
    """One line item within a fee structure"""
    fee_structure = models.ForeignKey(FeeStructure, on_delete=models.CASCADE, related_name='components')
    position = models.PositiveSmallIntegerField(default=0)
    fee_type = models.CharField(max_length=20, choices=FeeType.choices)
    fee_name = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    description = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ['fee_structure', 'position', 'id']

    def __str__(self):
        return f"{self.fee_name} ({self.get_fee_type_display()}) - {self.amount}"


class StudentFeeAssignment(models.Model):
    """Binds a fee structure to a student, optionally discounted"""
    student = models.ForeignKey(Student, on_delete=models.CASCADE, related_name='fee_assignments')
    fee_structure = models.ForeignKey(FeeStructure, on_delete=models.PROTECT, related_name='assignments')

    custom_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, blank=True)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    discount_reason = models.CharField(max_length=500, blank=True)

    effective_from = models.DateField()
    effective_to = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        unique_together = ['student', 'fee_structure']

    def __str__(self):
        return f"{self.student.student_id} - {self.fee_structure}"

    @property
    def has_discount(self):
        return bool(self.discount_type) and self.discount_value is not None

    @property
    def base_amount(self):
        if self.custom_amount is not None:
            return self.custom_amount
        return self.fee_structure.total_amount

    @property
    def net_amount(self):
        """custom_amount (or the structure total) less any discount"""
        return resolve_net_amount(self.base_amount, self.discount_type or None, self.discount_value)


class FeeJournalEntry(models.Model):
    """One billable month of an assignment"""

    STATUS_PENDING = 'PENDING'
    STATUS_PARTIAL = 'PARTIAL'
    STATUS_PAID = 'PAID'
    STATUS_OVERDUE = 'OVERDUE'
    STATUS_WAIVED = 'WAIVED'

    STATUS_CHOICES = (
        (STATUS_PENDING, 'Pending'),
        (STATUS_PARTIAL, 'Partially Paid'),
        (STATUS_PAID, 'Fully Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_WAIVED, 'Waived'),
    )
    OPEN_STATUSES = (STATUS_PENDING, STATUS_PARTIAL, STATUS_OVERDUE)

    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name='fee_journal')
    assignment = models.ForeignKey(StudentFeeAssignment, on_delete=models.PROTECT, related_name='journal_entries')
    fee_month = models.CharField(max_length=7)  # YYYY-MM

    due_amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    balance_amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    due_date = models.DateField()
    paid_date = models.DateField(null=True, blank=True)
    late_fee_applied = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    waiver_reason = models.CharField(max_length=500, blank=True)
    waived_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['fee_month', 'due_date', 'id']
        unique_together = ['assignment', 'fee_month']
        verbose_name_plural = 'Fee journal entries'

    def __str__(self):
        return f"{self.student.student_id} - {self.fee_month} - {self.status}"

    @property
    def fee_structure(self):
        return self.assignment.fee_structure

    @property
    def is_waived(self):
        return self.status == self.STATUS_WAIVED

    def recalculate_balance(self):
        """Balance is always due minus paid; waived entries owe nothing"""
        if self.is_waived:
            self.balance_amount = ZERO
        else:
            self.balance_amount = quantize(self.due_amount) - quantize(self.paid_amount)
        return self.balance_amount

    def apply_payment(self, amount, paid_on=None):
        """Apply ``amount`` to this entry. Does not save."""
        if self.is_waived:
            raise InvalidStateError(
                f"Fee for {self.fee_month} is waived and cannot accept payments",
                field='journalEntryId',
            )

        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError('Payment amount must be greater than 0', field='amountPaid')
        if amount > self.balance_amount:
            raise OverpaymentError(
                f"Payment of {amount} exceeds the outstanding balance of {self.balance_amount} for {self.fee_month}",
                field='amountPaid',
            )

        self.paid_amount = quantize(self.paid_amount + amount)
        self.recalculate_balance()

        if self.balance_amount == 0:
            self.status = self.STATUS_PAID
            self.paid_date = paid_on or timezone.localdate()
        else:
            self.status = self.STATUS_PARTIAL
        return self

    def reverse_payment(self, amount):
        """Take back part of what was paid (refund). Does not save."""
        amount = min(to_decimal(amount), self.paid_amount)
        self.paid_amount = quantize(self.paid_amount - amount)
        self.recalculate_balance()
        self.paid_date = None
        self.status = self.STATUS_PARTIAL if self.paid_amount > 0 else self.STATUS_PENDING
        return amount

    def grace_deadline(self):
        return self.due_date + timedelta(days=self.fee_structure.grace_period_days)

    def check_overdue(self, today, late_fee_policy):
        """
        Mark the entry OVERDUE once the grace period has passed. Does not save.

        The late fee is computed once. With the auto_apply policy it is added
        to the amount due, otherwise it is only recorded.
        Returns True when anything changed.
        """
        if self.status not in (self.STATUS_PENDING, self.STATUS_PARTIAL):
            return False
        if self.balance_amount <= 0 or today <= self.grace_deadline():
            return False

        self.status = self.STATUS_OVERDUE
        if self.late_fee_applied is None:
            structure = self.fee_structure
            self.late_fee_applied = late_fee_for(
                self.due_amount, structure.late_fee_amount, structure.late_fee_percentage,
            )
            if late_fee_policy == LATE_FEE_AUTO_APPLY and self.late_fee_applied > 0:
                self.due_amount = quantize(self.due_amount + self.late_fee_applied)
                self.recalculate_balance()
        return True

    def waive(self, reason):
        """Forgive the outstanding balance. Terminal. Does not save."""
        if self.status in (self.STATUS_PAID, self.STATUS_WAIVED):
            raise InvalidStateError(
                f"Fee for {self.fee_month} is already {self.get_status_display().lower()}",
                field='status',
            )
        if not (reason or '').strip():
            raise ValidationError('A waiver reason is required', field='waiverReason')

        self.waived_amount = self.balance_amount
        self.waiver_reason = reason.strip()
        self.status = self.STATUS_WAIVED
        self.recalculate_balance()
        return self


class ReceiptSequence(models.Model):
    """Last receipt number issued per prefix and year"""
    prefix = models.CharField(max_length=20)
    year = models.PositiveIntegerField()
    last_number = models.PositiveIntegerField(default=0)

    class Meta:
        unique_together = ['prefix', 'year']

    def __str__(self):
        return f"{self.prefix}-{self.year}: {self.last_number}"

    @classmethod
    @transaction.atomic
    def next_number(cls, prefix, year):
        """Reserve the next receipt number, e.g. RCP-2025-00001. The row lock serializes concurrent payments."""
        sequence, _ = cls.objects.select_for_update().get_or_create(prefix=prefix, year=year)
        sequence.last_number += 1
        sequence.save(update_fields=['last_number'])
        return f'{prefix}-{year}-{sequence.last_number:05d}'


class Payment(models.Model):
    """Money applied against one or more journal entries of one student"""

    STATUS_COMPLETED = 'Completed'
    STATUS_PENDING = 'Pending'
    STATUS_FAILED = 'Failed'
    STATUS_REFUNDED = 'Refunded'
    STATUS_PARTIALLY_REFUNDED = 'Partially Refunded'

    STATUS_CHOICES = (
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_PENDING, 'Pending'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_REFUNDED, 'Refunded'),
        (STATUS_PARTIALLY_REFUNDED, 'Partially Refunded'),
    )

    receipt_number = models.CharField(max_length=50, unique=True, blank=True)
    student = models.ForeignKey(Student, on_delete=models.PROTECT, related_name='payments')

    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    previous_balance = models.DecimalField(max_digits=12, decimal_places=2)
    remaining_balance = models.DecimalField(max_digits=12, decimal_places=2)

    payment_date = models.DateField()
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    transaction_reference = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_COMPLETED)

    # Client supplied idempotency key; a retried request returns the same payment
    request_key = models.CharField(max_length=100, unique=True, null=True, blank=True)

    processed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-payment_date', '-id']

    def __str__(self):
        return f"{self.receipt_number} - {self.total_amount}"

    @property
    def refunded_amount(self):
        completed = self.refunds.filter(status=Refund.STATUS_COMPLETED)
        return total_of(completed.values_list('refund_amount', flat=True))

    def save(self, *args, **kwargs):
        if not self.receipt_number:
            self.receipt_number = ReceiptSequence.next_number(fee_setting('RECEIPT_PREFIX'), self.payment_date.year)

        super().save(*args, **kwargs)


class PaymentItem(models.Model):
    """The part of a payment applied to one journal entry"""
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='items')
    journal_entry = models.ForeignKey(FeeJournalEntry, on_delete=models.PROTECT, related_name='payment_items')
    amount_due = models.DecimalField(max_digits=12, decimal_places=2)
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2)
    remaining_balance = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ['payment', 'id']

    def __str__(self):
        return f"{self.payment.receipt_number} - {self.journal_entry.fee_month} - {self.amount_paid}"


class Refund(models.Model):
    """Return of part or all of a completed payment"""

    STATUS_PENDING = 'Pending'
    STATUS_APPROVED = 'Approved'
    STATUS_REJECTED = 'Rejected'
    STATUS_COMPLETED = 'Completed'

    STATUS_CHOICES = (
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_COMPLETED, 'Completed'),
    )
    OPEN_STATUSES = (STATUS_PENDING, STATUS_APPROVED)

    payment = models.ForeignKey(Payment, on_delete=models.PROTECT, related_name='refunds')
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2)
    reason = models.CharField(max_length=500)
    is_full_refund = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    requested_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='requested_refunds'
    )
    approved_by = models.ForeignKey(
        User, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_refunds'
    )
    approval_notes = models.TextField(blank=True)

    request_date = models.DateTimeField(default=timezone.now)
    approval_date = models.DateTimeField(null=True, blank=True)
    refund_date = models.DateField(null=True, blank=True)

    class Meta:
        ordering = ['-request_date', '-id']

    def __str__(self):
        return f"Refund {self.refund_amount} on {self.payment.receipt_number} ({self.status})"
