# apps/finance/conf.py
from django.conf import settings

DEFAULTS = {
    'ROUNDING': 'ROUND_HALF_UP',
    'LATE_FEE_POLICY': 'informational',
    'REFUND_REOPENS_JOURNAL': False,
    'AUTO_ASSIGN_ON_ENROLLMENT': True,
    'RECEIPT_PREFIX': 'RCP',
}

LATE_FEE_INFORMATIONAL = 'informational'
LATE_FEE_AUTO_APPLY = 'auto_apply'


def fee_setting(name):
    """Read one value of the FEES settings dict, falling back to the default"""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown fee setting: {name}")
    return getattr(settings, 'FEES', {}).get(name, DEFAULTS[name])
