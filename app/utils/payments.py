"""
Fee, tax and insurance arithmetic for appointments and receipts.

Amounts are Decimals rounded half-up to cents; receipts store the result
once and never recompute it.
"""
from datetime import datetime, date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

from app.utils.dates import parse_time

ONLINE_PAYMENT_DEADLINE_MINUTES = 60
RECEPTION_PAYMENT_DEADLINE_MINUTES = 15
DEFAULT_CONSULTATION_FEE = Decimal('120.00')
TAX_RATE = Decimal('0.06')
INSURANCE_COVERAGE_RATE = Decimal('0.5')
CURRENCY = 'MYR'

PAYMENT_METHOD_ONLINE = 'Online'
PAYMENT_METHOD_RECEPTION = 'Reception'

_CENT = Decimal('0.01')


def to_money(value) -> Decimal:
    if value is None:
        return DEFAULT_CONSULTATION_FEE
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


def payment_deadline(appointment_date: date, time_str: str, method: Optional[str]) -> datetime:
    """Appointment start minus 15 minutes for reception payment, 60 otherwise"""
    minutes = parse_time(time_str) or 0
    start = datetime.combine(appointment_date, datetime.min.time()) + timedelta(minutes=minutes)
    if method == PAYMENT_METHOD_RECEPTION:
        return start - timedelta(minutes=RECEPTION_PAYMENT_DEADLINE_MINUTES)
    return start - timedelta(minutes=ONLINE_PAYMENT_DEADLINE_MINUTES)


def is_insured(insurance: Optional[str]) -> bool:
    return bool(insurance and insurance.strip()) and insurance.strip().lower() != 'self-pay'


def receipt_amounts(base, insurance: Optional[str]) -> Dict[str, Decimal]:
    base = to_money(base)
    tax = (base * TAX_RATE).quantize(_CENT, rounding=ROUND_HALF_UP)
    covered = Decimal('0.00')
    if is_insured(insurance):
        covered = (base * INSURANCE_COVERAGE_RATE).quantize(_CENT, rounding=ROUND_HALF_UP)
    total = (base + tax).quantize(_CENT, rounding=ROUND_HALF_UP)
    return {
        'subtotal': base,
        'tax_rate': TAX_RATE,
        'tax_amount': tax,
        'insurance_covered': covered,
        'total': total,
        'patient_due': (total - covered).quantize(_CENT, rounding=ROUND_HALF_UP),
    }
