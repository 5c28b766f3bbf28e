"""
Payment Service
Online payment sessions and manual payment outcomes for appointments
"""
import logging
import uuid
from typing import Optional, List, Dict, Any

from app.extensions import db
from app.models import Appointment
from app.models.appointment import STATUS_PAID, STATUS_PENDING_PAYMENT, STATUS_PAYMENT_FAILED
from app.services import notification_service
from app.services.appointment_service import get_appointment, record_payment
from app.utils.errors import ServiceError
from app.utils.payments import CURRENCY, PAYMENT_METHOD_ONLINE, to_money

logger = logging.getLogger(__name__)


def list_payments(status: Optional[str] = None) -> List[Appointment]:
    query = Appointment.query
    if status:
        query = query.filter(Appointment.status == status)
    else:
        query = query.filter(Appointment.status.in_((STATUS_PENDING_PAYMENT, STATUS_PAID)))
    return query.order_by(Appointment.created_at.desc()).all()


def initiate(appointment_id: str, payment_channel: Optional[str] = None,
             payment_instrument: Optional[str] = None) -> Dict[str, Any]:
    """Open an online payment session for an unpaid Online appointment"""
    appointment = get_appointment(appointment_id)
    if appointment.status == STATUS_PAID:
        raise ServiceError('Appointment already paid')
    if appointment.payment_method != PAYMENT_METHOD_ONLINE:
        raise ServiceError('This appointment requires reception payment')

    appointment.payment_channel = payment_channel
    appointment.payment_instrument = payment_instrument
    db.session.commit()

    session_id = f"pay-{uuid.uuid4()}"
    logger.info("Payment session %s opened for appointment %s", session_id, appointment.id)
    return {
        'payment_session_id': session_id,
        'appointment_id': appointment.id,
        'amount': float(to_money(appointment.fee)),
        'currency': CURRENCY,
        'payment_channel': payment_channel,
        'payment_instrument': payment_instrument,
        'status': 'initiated',
        'redirect_url': f"/api/payments/{session_id}/confirm",
    }


def confirm(session_id: str, appointment_id: str, patient_name: Optional[str] = None) -> Dict[str, Any]:
    """
    Complete an online payment session.

    Returns the payment result, with ``already_paid`` set when the appointment
    was settled before this call.
    """
    appointment = get_appointment(appointment_id)
    if appointment.status == STATUS_PAID:
        return {'already_paid': True, 'appointment': appointment}

    payer = patient_name.strip() if patient_name and patient_name.strip() else 'Online Payment'
    result = record_payment(
        appointment,
        recorded_by=payer,
        notify_message=f"{appointment.patient_name} completed online payment for {appointment.type}.",
        notify_type='payment.completed',
    )
    logger.info("Payment session %s confirmed for appointment %s", session_id, appointment.id)
    result['already_paid'] = False
    return result


def mark_paid_manual(appointment_id: str) -> Dict[str, Any]:
    appointment = get_appointment(appointment_id)
    return record_payment(
        appointment,
        recorded_by='Manual Payment',
        notify_message=f"Payment confirmed for appointment on {appointment.date.isoformat()}",
        notify_audiences=['Patient', 'Doctor'],
        notify_type='payment.confirmed',
    )


def mark_failed(appointment_id: str) -> Appointment:
    appointment = get_appointment(appointment_id)
    if appointment.status == STATUS_PAID:
        raise ServiceError('Cannot mark a paid appointment as failed')

    appointment.status = STATUS_PAYMENT_FAILED
    notification_service.create_notification(
        message=f"Payment failed for appointment on {appointment.date.isoformat()}. Please try again.",
        audiences=['Patient', 'Receptionist'],
        type='payment.failed',
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        patient_email=appointment.patient_email,
        commit=False,
    )
    db.session.commit()
    logger.warning("Payment failed for appointment %s", appointment.id)
    return appointment
