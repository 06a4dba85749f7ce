# apps/finance/validators.py
"""
Input limits and the glue between DRF serializers and the fee errors.

The rules themselves live on the input serializers in
``apps.finance.serializers``. ``validate_with`` runs one of them and turns
``serializer.errors`` into a ``ValidationError`` whose ``errors`` map uses
flat camelCase paths (``components[1].amount``, ``dueDateConfig.dueDay``).
"""

import re
from decimal import Decimal

from django.core.validators import RegexValidator
from rest_framework.settings import api_settings

from .exceptions import ValidationError

MAX_COMPONENTS = 20
MAX_CLASSES = 50
MIN_AMOUNT = Decimal('0.01')
MAX_COMPONENT_AMOUNT = Decimal('1000000')
MAX_LATE_FEE = Decimal('10000')
MAX_DISCOUNT_VALUE = Decimal('1000000')
MAX_ITEM_AMOUNT = Decimal('999999.99')
MAX_REFUND_AMOUNT = Decimal('999999.99')

ACADEMIC_YEAR_RE = re.compile(r'^(\d{4})-(\d{4})$')

fee_month_validator = RegexValidator(r'^\d{4}-(0[1-9]|1[0-2])$', 'Fee month must be YYYY-MM')


def _merge(flat, other):
    for path, messages in other.items():
        flat.setdefault(path, []).extend(messages)
    return flat


def flatten_errors(errors, prefix=''):
    """
    Flatten nested ``serializer.errors`` into ``{path: [messages]}``.

    List items become ``name[index]``, nested fields ``name.field`` and a
    nested serializer's non-field errors are reported on the parent path.
    """
    flat = {}
    if isinstance(errors, dict):
        for key, value in errors.items():
            if key == api_settings.NON_FIELD_ERRORS_KEY and prefix:
                path = prefix
            elif isinstance(key, int):
                path = f'{prefix}[{key}]'
            else:
                path = f'{prefix}.{key}' if prefix else str(key)
            _merge(flat, flatten_errors(value, path))
    elif isinstance(errors, list):
        if errors and all(isinstance(item, (dict, list)) for item in errors):
            # ListSerializer: one entry per item, empty for valid items
            for index, item in enumerate(errors):
                if item:
                    _merge(flat, flatten_errors(item, f'{prefix}[{index}]'))
        else:
            flat.setdefault(prefix, []).extend(str(message) for message in errors)
    else:
        flat.setdefault(prefix, []).append(str(errors))
    return flat


def validate_with(serializer_class, data, **context):
    """Validate ``data`` with an input serializer; raise ValidationError or return validated_data"""
    serializer = serializer_class(data=data, context=context)
    if not serializer.is_valid():
        raise ValidationError.from_errors(flatten_errors(serializer.errors))
    return serializer.validated_data


def find_duplicate_items(fee_items):
    """Journal entry ids that appear more than once in one (validated) payment request"""
    seen, duplicates = set(), []
    for item in fee_items:
        entry_id = int(item['journal_entry_id'])
        if entry_id in seen and entry_id not in duplicates:
            duplicates.append(entry_id)
        seen.add(entry_id)
    return duplicates
