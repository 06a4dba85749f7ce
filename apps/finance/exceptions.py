# apps/finance/exceptions.py
"""
Fee domain errors.

Every error is raised before any state is touched, and services run inside
``transaction.atomic`` so nothing half-written survives a raise. Each error
carries a ``{fieldPath: [messages]}`` map so callers can tell which field or
amount violated which constraint.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class FeeError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'fee_error'

    def __init__(self, message, field=None, errors=None):
        super().__init__(message)
        self.message = message
        self.errors = dict(errors or {})
        if field:
            self.errors.setdefault(field, []).append(message)

    def as_dict(self):
        return {
            'success': False,
            'error': self.message,
            'code': self.code,
            'errors': self.errors,
        }


class ValidationError(FeeError):
    """Malformed or out-of-range input"""
    code = 'validation_error'

    @classmethod
    def from_errors(cls, errors):
        fields = ', '.join(errors)
        return cls(f"Invalid value for: {fields}", errors=errors)


class InvalidStateError(FeeError):
    """Operation not permitted in the current lifecycle state"""
    status_code = status.HTTP_409_CONFLICT
    code = 'invalid_state'


class OverpaymentError(FeeError):
    """Amount exceeds the outstanding balance"""
    code = 'overpayment'


class DuplicateFeeItemError(FeeError):
    """Same journal entry targeted twice in one payment"""
    code = 'duplicate_fee_item'


def api_exception_handler(exc, context):
    """DRF exception handler rendering FeeError in the API envelope"""
    if isinstance(exc, FeeError):
        request = context.get('request')
        if request is not None:
            logger.info("Rejected %s %s: %s %s", request.method, request.path, exc.code, exc.errors)
        return Response(exc.as_dict(), status=exc.status_code)

    return exception_handler(exc, context)
