# apps/finance/signals.py
import logging

from django.db.models.signals import post_save
from django.dispatch import receiver
from apps.admissions.models import Student

from .conf import fee_setting
from .models import FeeStructure
from .services import AssignmentService

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Student)
def assign_fees_for_new_student(sender, instance, created, **kwargs):
    """
    When a new student is enrolled, assign every active fee structure
    that applies to their class
    """
    if not created or instance.current_class is None or instance.status != 'active':
        return
    if not fee_setting('AUTO_ASSIGN_ON_ENROLLMENT'):
        return

    fee_structures = [
        structure for structure in FeeStructure.objects.filter(is_active=True)
        if structure.applies_to(instance.current_class)
    ]

    for fee_structure in fee_structures:
        effective_from = max(fee_structure.effective_from, instance.admission_date)
        if fee_structure.effective_to is not None and effective_from > fee_structure.effective_to:
            continue
        AssignmentService.assign_to_students(fee_structure, [instance], effective_from=effective_from)
        logger.info(f"Assigned '{fee_structure.structure_name}' to new student {instance.student_id}")
