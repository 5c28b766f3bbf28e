"""
Receipt Service
Receipts are issued once per paid appointment; amounts are fixed at issue time
"""
import json
import logging
from datetime import datetime
from typing import Optional, List

from app.extensions import db
from app.models import Receipt, Appointment
from app.utils.errors import NotFoundError
from app.utils.ids import generate_id
from app.utils.payments import receipt_amounts, to_money, CURRENCY, TAX_RATE

logger = logging.getLogger(__name__)


def list_receipts(patient_email: Optional[str] = None, doctor_id: Optional[str] = None) -> List[Receipt]:
    query = Receipt.query
    if patient_email:
        query = query.filter_by(patient_email=patient_email.strip().lower())
    if doctor_id:
        query = query.filter_by(doctor_id=doctor_id)
    return query.order_by(Receipt.issued_at.desc()).all()


def get_receipt(receipt_id: str) -> Receipt:
    receipt = Receipt.query.get(receipt_id)
    if not receipt:
        raise NotFoundError('Receipt not found')
    return receipt


def get_receipt_for_appointment(appointment_id: str) -> Optional[Receipt]:
    return Receipt.query.filter_by(appointment_id=appointment_id).first()


def issue_receipt(appointment: Appointment, now: Optional[datetime] = None) -> Receipt:
    """Return the appointment's receipt, issuing one if it has none. Not committed."""
    existing = get_receipt_for_appointment(appointment.id)
    if existing:
        return existing

    base = to_money(appointment.fee)
    amounts = receipt_amounts(base, appointment.insurance)
    line_items = [
        {'description': appointment.type or 'Consultation', 'amount': float(base)},
        {'description': f'Tax ({int(TAX_RATE * 100)}%)', 'amount': float(amounts['tax_amount'])},
    ]
    if amounts['insurance_covered'] > 0:
        line_items.append({
            'description': f'Insurance ({appointment.insurance})',
            'amount': -float(amounts['insurance_covered']),
        })

    receipt = Receipt(
        id=generate_id('receipt'),
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        doctor_name=appointment.doctor_name,
        patient_name=appointment.patient_name,
        patient_email=appointment.patient_email,
        description=appointment.type,
        amount=base,
        subtotal=amounts['subtotal'],
        tax_rate=amounts['tax_rate'],
        tax_amount=amounts['tax_amount'],
        insurance_covered=amounts['insurance_covered'],
        total=amounts['total'],
        patient_due=amounts['patient_due'],
        currency=CURRENCY,
        status='Paid',
        payment_method=appointment.payment_method,
        insurance_provider=appointment.insurance,
        recorded_by=appointment.recorded_by,
        line_items=json.dumps(line_items),
        issued_at=now or datetime.utcnow(),
    )
    db.session.add(receipt)
    db.session.flush()
    logger.info("Receipt %s issued for appointment %s (total %s %s)", receipt.id, appointment.id, receipt.total, CURRENCY)
    return receipt
