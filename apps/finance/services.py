# apps/finance/services.py

"""
Fee Operations

Fee structure composition, assignment of structures to students, the monthly
fee journal, payment application and refunds.

Operations take request-shaped (camelCase) data and run it through the input
serializers in apps.finance.serializers first. Every operation that writes
runs inside ``transaction.atomic`` and performs all of its checks before the
first write, so a raised FeeError leaves the database untouched. Operations
that depend on the current date take a ``today`` argument (defaults to
``timezone.localdate()``).
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Max, Q
from django.utils import timezone

from .conf import fee_setting
from .exceptions import (
    DuplicateFeeItemError, InvalidStateError, OverpaymentError, ValidationError,
)
from .models import (
    FeeComponent, FeeFrequency, FeeJournalEntry, FeeStructure, Payment,
    PaymentItem, Refund, StudentFeeAssignment,
)
from . import money
from .serializers import (
    AssignmentTermsSerializer, FeeComponentSerializer, FeeStructureInputSerializer,
    PaymentInputSerializer, RefundInputSerializer,
)
from .validators import MAX_COMPONENTS, find_duplicate_items, validate_with

logger = logging.getLogger(__name__)

STRUCTURE_FIELDS = (
    'structure_name', 'academic_year_code', 'frequency', 'applicable_classes',
    'description', 'effective_from', 'effective_to', 'due_day',
    'grace_period_days', 'late_fee_amount', 'late_fee_percentage',
)


def _today(today=None):
    return today or timezone.localdate()


def _structure_values(data):
    values = {field: data.get(field) for field in STRUCTURE_FIELDS}
    values['description'] = values['description'] or ''
    values['late_fee_amount'] = money.quantize(values['late_fee_amount'])
    return values


# =============================================================================
# FEE STRUCTURE SERVICE
# =============================================================================

class FeeStructureService:
    """
    Fee structures and their components.

    total_amount is always re-derived from the components in the same
    transaction that changes them.
    """

    @staticmethod
    def _write_components(structure, components, start=0):
        FeeComponent.objects.bulk_create([
            FeeComponent(
                fee_structure=structure,
                position=start + index,
                fee_type=component['fee_type'],
                fee_name=component['fee_name'],
                amount=money.quantize(component['amount']),
                description=component.get('description') or '',
            )
            for index, component in enumerate(components)
        ])

    @staticmethod
    def _lock(structure):
        return FeeStructure.objects.select_for_update().get(pk=structure.pk)

    @staticmethod
    def _ensure_inactive(structure):
        if structure.is_active:
            raise InvalidStateError(
                'Components of an active fee structure cannot be changed; deactivate it first',
                field='components',
            )

    @staticmethod
    @transaction.atomic
    def create_structure(data, created_by=None):
        """
        Create a fee structure with its components.

        Args:
            data (dict): request payload (structureName, academicYearCode,
                frequency, components, applicableClasses, effectiveFrom,
                effectiveTo, description, dueDateConfig, isActive)

        Returns:
            FeeStructure instance
        """
        data = validate_with(FeeStructureInputSerializer, data)

        structure = FeeStructure.objects.create(
            **_structure_values(data),
            is_active=bool(data.get('is_active', False)),
            created_by=created_by,
        )
        FeeStructureService._write_components(structure, data['components'])
        structure.recalculate_total()

        logger.info(
            f"Created fee structure {structure.pk} '{structure.structure_name}' "
            f"({structure.academic_year_code}) total {structure.total_amount}"
        )
        return structure

    @staticmethod
    @transaction.atomic
    def update_structure(structure, data, expected_version=None):
        """
        Replace a structure's fields and components.

        An inactive structure may be updated freely. An active one only when
        ``expected_version`` matches the stored version. Every update bumps
        the version. ``expected_version`` falls back to the payload's
        ``version``.
        """
        data = validate_with(FeeStructureInputSerializer, data)
        if expected_version is None:
            expected_version = data.get('version')
        structure = FeeStructureService._lock(structure)

        if structure.is_active and expected_version is None:
            raise InvalidStateError(
                f'Active fee structure can only be updated with its current version ({structure.version})',
                field='version',
            )
        if expected_version is not None and int(expected_version) != structure.version:
            raise InvalidStateError(
                f'Fee structure was modified (version {structure.version}, got {expected_version})',
                field='version',
            )

        for field, value in _structure_values(data).items():
            setattr(structure, field, value)
        if 'is_active' in data:
            structure.is_active = bool(data['is_active'])
        structure.version += 1
        structure.save()

        structure.components.all().delete()
        FeeStructureService._write_components(structure, data['components'])
        structure.recalculate_total()

        logger.info(f"Updated fee structure {structure.pk} to version {structure.version}, total {structure.total_amount}")
        return structure

    @staticmethod
    @transaction.atomic
    def add_component(structure, data):
        component_data = validate_with(FeeComponentSerializer, data)
        structure = FeeStructureService._lock(structure)
        FeeStructureService._ensure_inactive(structure)

        count = structure.components.count()
        if count >= MAX_COMPONENTS:
            raise ValidationError(
                f'A fee structure cannot have more than {MAX_COMPONENTS} components',
                field='components',
            )

        last_position = structure.components.aggregate(last=Max('position'))['last']
        start = 0 if last_position is None else last_position + 1
        FeeStructureService._write_components(structure, [component_data], start=start)

        structure.version += 1
        structure.save(update_fields=['version', 'updated_at'])
        structure.recalculate_total()

        logger.info(f"Added component '{component_data['fee_name']}' to fee structure {structure.pk}")
        return structure

    @staticmethod
    @transaction.atomic
    def remove_component(structure, component_id):
        structure = FeeStructureService._lock(structure)
        FeeStructureService._ensure_inactive(structure)

        component = structure.components.get(pk=component_id)
        if structure.components.count() <= 1:
            raise ValidationError(
                'A fee structure must keep at least one component',
                field='components',
            )
        component.delete()

        structure.version += 1
        structure.save(update_fields=['version', 'updated_at'])
        structure.recalculate_total()

        logger.info(f"Removed component {component_id} from fee structure {structure.pk}")
        return structure

    @staticmethod
    @transaction.atomic
    def set_active(structure, is_active):
        structure = FeeStructureService._lock(structure)
        if structure.is_active != bool(is_active):
            structure.is_active = bool(is_active)
            structure.save(update_fields=['is_active', 'updated_at'])
            logger.info(f"Fee structure {structure.pk} {'activated' if is_active else 'deactivated'}")
        return structure

    @staticmethod
    @transaction.atomic
    def delete_structure(structure):
        """
        Delete an unreferenced structure. A structure that was ever assigned
        is deactivated instead.

        Returns:
            bool: True when the row was deleted
        """
        structure = FeeStructureService._lock(structure)
        if structure.assignments.exists():
            structure.is_active = False
            structure.save(update_fields=['is_active', 'updated_at'])
            logger.info(f"Fee structure {structure.pk} is assigned to students; deactivated instead of deleting")
            return False

        structure_id = structure.pk
        structure.delete()
        logger.info(f"Deleted fee structure {structure_id}")
        return True

    @staticmethod
    def calculate_student_fees(student, fee_month, academic_year_code=None):
        """
        Fee breakdown for one student and month, without writing anything.

        Returns:
            dict with student, fee_month, breakdown (one row per component),
            total_amount (before discounts), discount_applied and net_amount.
        """
        try:
            money.parse_fee_month(fee_month)
        except ValueError as e:
            raise ValidationError(str(e), field='feeMonth')

        assignments = AssignmentService.billable_assignments(fee_month).filter(student=student)
        if academic_year_code:
            assignments = assignments.filter(fee_structure__academic_year_code=academic_year_code)

        breakdown = []
        bases, nets = [], []
        for assignment in assignments.prefetch_related('fee_structure__components'):
            if not JournalService.bills_in(assignment, fee_month):
                continue
            structure = assignment.fee_structure
            for component in structure.components.all():
                breakdown.append({
                    'fee_structure_id': structure.pk,
                    'fee_type': component.fee_type,
                    'fee_name': component.fee_name,
                    'amount': component.amount,
                    'frequency': structure.frequency,
                })
            bases.append(assignment.base_amount)
            nets.append(AssignmentService.resolve_net_amount(assignment))

        total = money.total_of(bases)
        net = money.total_of(nets)
        return {
            'student': student,
            'fee_month': fee_month,
            'breakdown': breakdown,
            'total_amount': total,
            'discount_applied': total - net,
            'net_amount': net,
        }


# =============================================================================
# ASSIGNMENT SERVICE
# =============================================================================

class AssignmentService:
    """Binding fee structures to students"""

    @staticmethod
    @transaction.atomic
    def assign_fee(student, fee_structure, data=None, created_by=None):
        """
        Assign an active fee structure to a student.

        Args:
            data (dict): optional customAmount, discount (discountType,
                discountValue, reason), effectiveFrom (defaults to the
                structure's) and effectiveTo.
        """
        data = validate_with(
            AssignmentTermsSerializer, data or {}, default_effective_from=fee_structure.effective_from,
        )

        if not fee_structure.is_active:
            raise InvalidStateError(
                f"Fee structure '{fee_structure.structure_name}' is not active",
                field='feeStructureId',
            )
        if StudentFeeAssignment.objects.filter(student=student, fee_structure=fee_structure).exists():
            raise InvalidStateError(
                f"{student.student_id} is already assigned to '{fee_structure.structure_name}'",
                field='feeStructureId',
            )

        has_discount = data.get('discount_type') is not None
        assignment = StudentFeeAssignment.objects.create(
            student=student,
            fee_structure=fee_structure,
            custom_amount=data.get('custom_amount'),
            discount_type=data['discount_type'] if has_discount else '',
            discount_value=data['discount_value'] if has_discount else None,
            discount_reason=data['discount_reason'] if has_discount else '',
            effective_from=data['effective_from'],
            effective_to=data.get('effective_to'),
            created_by=created_by,
        )

        logger.info(
            f"Assigned fee structure {fee_structure.pk} to {student.student_id}, "
            f"net {assignment.net_amount}"
        )
        return assignment

    @staticmethod
    def assign_to_students(fee_structure, students, effective_from=None, created_by=None):
        """Assign a structure to every student not yet assigned to it. Returns the new assignments."""
        already = set(
            StudentFeeAssignment.objects.filter(fee_structure=fee_structure).values_list('student_id', flat=True)
        )
        data = {'effectiveFrom': effective_from} if effective_from else {}
        return [
            AssignmentService.assign_fee(student, fee_structure, data, created_by=created_by)
            for student in students
            if student.pk not in already
        ]

    @staticmethod
    def resolve_net_amount(assignment):
        """custom_amount (or the structure total) less any discount"""
        return assignment.net_amount

    @staticmethod
    def billable_assignments(fee_month):
        """Active assignments on active structures whose effective ranges touch ``fee_month``"""
        first, last = money.month_bounds(fee_month)
        return StudentFeeAssignment.objects.filter(
            is_active=True,
            fee_structure__is_active=True,
            effective_from__lte=last,
            fee_structure__effective_from__lte=last,
        ).filter(
            Q(effective_to__isnull=True) | Q(effective_to__gte=first),
            Q(fee_structure__effective_to__isnull=True) | Q(fee_structure__effective_to__gte=first),
        ).select_related('fee_structure', 'student')


# =============================================================================
# JOURNAL SERVICE
# =============================================================================

class JournalService:
    """Materializing and maintaining fee journal entries"""

    @staticmethod
    def bills_in(assignment, fee_month):
        structure = assignment.fee_structure
        anchor = max(assignment.effective_from, structure.effective_from)
        if not money.is_billing_month(structure.frequency, anchor, fee_month):
            return False
        if structure.frequency == FeeFrequency.ONE_TIME:
            # Only the first materialized month counts for one-time fees
            first_entry = assignment.journal_entries.order_by('fee_month').first()
            return first_entry is None or first_entry.fee_month == fee_month
        return True

    @staticmethod
    @transaction.atomic
    def generate_entries(fee_month, fee_structure=None, student=None):
        """
        Create the PENDING journal entries for ``fee_month``.

        Existing (assignment, month) pairs and zero net amounts are skipped,
        so running this twice for the same month is harmless.

        Returns:
            list of created FeeJournalEntry
        """
        try:
            money.parse_fee_month(fee_month)
        except ValueError as e:
            raise ValidationError(str(e), field='feeMonth')

        assignments = AssignmentService.billable_assignments(fee_month)
        if fee_structure is not None:
            assignments = assignments.filter(fee_structure=fee_structure)
        if student is not None:
            assignments = assignments.filter(student=student)

        existing = set(
            FeeJournalEntry.objects.filter(
                fee_month=fee_month, assignment__in=assignments
            ).values_list('assignment_id', flat=True)
        )

        created = []
        for assignment in assignments:
            if assignment.pk in existing or not JournalService.bills_in(assignment, fee_month):
                continue

            net = AssignmentService.resolve_net_amount(assignment)
            if net <= 0:
                logger.debug(f"Skipping zero net amount for assignment {assignment.pk} in {fee_month}")
                continue

            created.append(FeeJournalEntry.objects.create(
                student=assignment.student,
                assignment=assignment,
                fee_month=fee_month,
                due_amount=net,
                paid_amount=money.ZERO,
                balance_amount=net,
                status=FeeJournalEntry.STATUS_PENDING,
                due_date=money.due_date_for(fee_month, assignment.fee_structure.due_day),
            ))

        logger.info(f"Generated {len(created)} fee journal entries for {fee_month}")
        return created

    @staticmethod
    @transaction.atomic
    def refresh_overdue(today=None, student=None, entries=None):
        """
        Move PENDING/PARTIAL entries past their grace period to OVERDUE.

        Works on ``entries`` when given (already locked by the caller),
        otherwise on every candidate entry (optionally for one student).

        Returns:
            int: number of entries changed
        """
        today = _today(today)
        policy = fee_setting('LATE_FEE_POLICY')

        if entries is None:
            entries = FeeJournalEntry.objects.select_for_update().filter(
                status__in=[FeeJournalEntry.STATUS_PENDING, FeeJournalEntry.STATUS_PARTIAL],
                balance_amount__gt=0,
                due_date__lt=today,
            ).select_related('assignment__fee_structure')
            if student is not None:
                entries = entries.filter(student=student)

        changed = 0
        for entry in entries:
            if entry.check_overdue(today, policy):
                entry.save(update_fields=[
                    'status', 'late_fee_applied', 'due_amount', 'balance_amount', 'updated_at',
                ])
                changed += 1

        if changed:
            logger.info(f"Marked {changed} fee journal entries overdue as of {today}")
        return changed

    @staticmethod
    @transaction.atomic
    def waive_entry(entry, reason):
        """Forgive an entry's outstanding balance. WAIVED is terminal."""
        entry = FeeJournalEntry.objects.select_for_update().get(pk=entry.pk)
        entry.waive(reason)
        entry.save()

        logger.info(f"Waived {entry.waived_amount} on journal entry {entry.pk} ({entry.fee_month}): {entry.waiver_reason}")
        return entry


# =============================================================================
# PAYMENT SERVICE
# =============================================================================

class PaymentService:
    """Applying payments against journal entries"""

    @staticmethod
    def _replayed(student, request_key):
        """The payment already recorded under ``request_key``, if any"""
        existing = Payment.objects.filter(request_key=request_key).first()
        if existing is not None and existing.student_id != student.pk:
            raise ValidationError('Request key was already used for another student', field='requestKey')
        return existing

    @staticmethod
    @transaction.atomic
    def apply_payment(student, data, processed_by=None, request_key=None, today=None):
        """
        Apply one payment across one or more of a student's journal entries.

        All items are checked before any is applied; a single bad item
        aborts the whole payment.

        Args:
            data (dict): request payload with feeItems (journalEntryId,
                amountPaid), paymentMethod, paymentDate, transactionReference
                and notes
            request_key (str): optional idempotency key; a retried request
                with the same key returns the original payment unchanged,
                also when the retry races the original

        Returns:
            Payment instance
        """
        today = _today(today)
        data = validate_with(PaymentInputSerializer, data, today=today)
        fee_items = data['fee_items']
        payment_date = data['payment_date']
        payment_method = data['payment_method']

        duplicates = find_duplicate_items(fee_items)
        if duplicates:
            errors = {}
            for index, item in enumerate(fee_items):
                if item['journal_entry_id'] in duplicates:
                    errors.setdefault(f'feeItems[{index}].journalEntryId', []).append(
                        f"Journal entry {item['journal_entry_id']} appears more than once"
                    )
            raise DuplicateFeeItemError('The same fee cannot be paid twice in one payment', errors=errors)

        if request_key:
            existing = PaymentService._replayed(student, request_key)
            if existing is not None:
                logger.warning(f"Replayed payment request {request_key}; returning {existing.receipt_number}")
                return existing

        # Lock every entry of the student: serializes concurrent payments and
        # keeps previous_balance consistent.
        entries = list(
            FeeJournalEntry.objects.select_for_update()
            .filter(student=student)
            .select_related('assignment__fee_structure')
            .order_by('id')
        )
        JournalService.refresh_overdue(today=today, entries=entries)
        by_id = {entry.pk: entry for entry in entries}

        planned = []
        for index, item in enumerate(fee_items):
            entry = by_id.get(item['journal_entry_id'])
            if entry is None:
                raise ValidationError(
                    f"Journal entry {item['journal_entry_id']} does not belong to student {student.student_id}",
                    field=f'feeItems[{index}].journalEntryId',
                )
            amount = item['amount_paid']
            if entry.is_waived:
                raise InvalidStateError(
                    f"Fee for {entry.fee_month} is waived and cannot accept payments",
                    field=f'feeItems[{index}].journalEntryId',
                )
            if amount > entry.balance_amount:
                raise OverpaymentError(
                    f"Payment of {amount} exceeds the outstanding balance of {entry.balance_amount} for {entry.fee_month}",
                    field=f'feeItems[{index}].amountPaid',
                )
            planned.append((entry, amount))

        previous_balance = money.total_of(e.balance_amount for e in entries if not e.is_waived)
        total = money.total_of(amount for _, amount in planned)

        # The payment row goes first: a concurrent retry with the same
        # request_key fails here, before any entry is touched.
        try:
            with transaction.atomic():
                payment = Payment.objects.create(
                    student=student,
                    total_amount=total,
                    previous_balance=previous_balance,
                    remaining_balance=previous_balance - total,
                    payment_date=payment_date,
                    payment_method=payment_method,
                    transaction_reference=data['transaction_reference'],
                    notes=data['notes'],
                    status=Payment.STATUS_COMPLETED,
                    request_key=request_key or None,
                    processed_by=processed_by,
                )
        except IntegrityError:
            existing = PaymentService._replayed(student, request_key) if request_key else None
            if existing is None:
                raise
            logger.warning(f"Payment request {request_key} was recorded concurrently; returning {existing.receipt_number}")
            return existing

        items = []
        for entry, amount in planned:
            amount_due = entry.balance_amount
            entry.apply_payment(amount, paid_on=payment_date)
            entry.save(update_fields=['paid_amount', 'balance_amount', 'status', 'paid_date', 'updated_at'])
            items.append(PaymentItem(
                payment=payment,
                journal_entry=entry,
                amount_due=amount_due,
                amount_paid=amount,
                remaining_balance=entry.balance_amount,
            ))
        PaymentItem.objects.bulk_create(items)

        logger.info(
            f"Payment {payment.receipt_number}: {total} from {student.student_id} "
            f"via {payment_method}, balance {previous_balance} -> {payment.remaining_balance}"
        )
        return payment


# =============================================================================
# REFUND SERVICE
# =============================================================================

class RefundService:
    """Refund workflow: Pending -> Approved/Rejected, Approved -> Completed"""

    @staticmethod
    def _lock(refund):
        return Refund.objects.select_for_update().select_related('payment').get(pk=refund.pk)

    @staticmethod
    def _expect_status(refund, status):
        if refund.status != status:
            raise InvalidStateError(
                f'Refund is {refund.status}; expected {status}',
                field='status',
            )

    @staticmethod
    @transaction.atomic
    def request_refund(payment, data, requested_by=None):
        """
        Open a refund request on a completed payment.

        Args:
            data (dict): request payload with refundAmount, reason and
                isFullRefund
        """
        payment = Payment.objects.select_for_update().get(pk=payment.pk)
        data = validate_with(RefundInputSerializer, data, payment_total=payment.total_amount)

        if payment.status != Payment.STATUS_COMPLETED:
            raise InvalidStateError(
                f'Only completed payments can be refunded; {payment.receipt_number} is {payment.status}',
                field='paymentId',
            )
        if payment.refunds.filter(status__in=Refund.OPEN_STATUSES).exists():
            raise InvalidStateError(
                f'Payment {payment.receipt_number} already has a refund in progress',
                field='paymentId',
            )

        amount = data['refund_amount']
        refund = Refund.objects.create(
            payment=payment,
            refund_amount=amount,
            reason=data['reason'],
            is_full_refund=data['is_full_refund'] or amount == payment.total_amount,
            requested_by=requested_by,
        )

        logger.info(f"Refund {refund.pk} of {amount} requested on {payment.receipt_number}")
        return refund

    @staticmethod
    @transaction.atomic
    def approve_refund(refund, approved_by=None, notes=''):
        refund = RefundService._lock(refund)
        RefundService._expect_status(refund, Refund.STATUS_PENDING)

        refund.status = Refund.STATUS_APPROVED
        refund.approved_by = approved_by
        refund.approval_notes = (notes or '').strip()
        refund.approval_date = timezone.now()
        refund.save()

        logger.info(f"Refund {refund.pk} approved")
        return refund

    @staticmethod
    @transaction.atomic
    def reject_refund(refund, approved_by=None, notes=''):
        refund = RefundService._lock(refund)
        RefundService._expect_status(refund, Refund.STATUS_PENDING)

        refund.status = Refund.STATUS_REJECTED
        refund.approved_by = approved_by
        refund.approval_notes = (notes or '').strip()
        refund.approval_date = timezone.now()
        refund.save()

        logger.info(f"Refund {refund.pk} rejected")
        return refund

    @staticmethod
    @transaction.atomic
    def complete_refund(refund, today=None):
        """
        Pay out an approved refund and move the payment to Refunded or
        Partially Refunded. With REFUND_REOPENS_JOURNAL the refunded amount is
        also taken back from the payment's journal entries.
        """
        refund = RefundService._lock(refund)
        RefundService._expect_status(refund, Refund.STATUS_APPROVED)

        payment = Payment.objects.select_for_update().get(pk=refund.payment_id)
        if payment.status != Payment.STATUS_COMPLETED:
            raise InvalidStateError(
                f'Payment {payment.receipt_number} is {payment.status} and cannot be refunded',
                field='paymentId',
            )

        refund.status = Refund.STATUS_COMPLETED
        refund.refund_date = _today(today)
        refund.save(update_fields=['status', 'refund_date'])

        payment.status = Payment.STATUS_REFUNDED if refund.is_full_refund else Payment.STATUS_PARTIALLY_REFUNDED
        payment.save(update_fields=['status'])

        if fee_setting('REFUND_REOPENS_JOURNAL'):
            RefundService._reopen_journal(payment, refund.refund_amount)

        logger.info(f"Refund {refund.pk} completed; payment {payment.receipt_number} is now {payment.status}")
        return refund

    @staticmethod
    def _reopen_journal(payment, amount):
        """Take ``amount`` back from the payment's entries, last item first"""
        items = list(payment.items.order_by('-id'))
        entries = FeeJournalEntry.objects.select_for_update().in_bulk([item.journal_entry_id for item in items])

        remaining = amount
        for item in items:
            if remaining <= 0:
                break
            entry = entries[item.journal_entry_id]
            if entry.is_waived:
                continue
            taken = entry.reverse_payment(min(remaining, item.amount_paid))
            entry.save(update_fields=['paid_amount', 'balance_amount', 'status', 'paid_date', 'updated_at'])
            remaining -= taken
            logger.info(f"Reopened journal entry {entry.pk} by {taken}")
