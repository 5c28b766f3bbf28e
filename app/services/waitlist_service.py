"""
Waitlist Service
Patients waiting for a doctor, and manual promotion to a booked appointment
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from app.extensions import db
from app.models import Waitlist, User, Doctor, Appointment
from app.models.appointment import STATUS_PENDING_PAYMENT
from app.models.waitlist import (
    WAITLIST_WAITING, WAITLIST_NOTIFIED, WAITLIST_PROMOTED, WAITLIST_CANCELLED,
)
from app.services import notification_service
from app.utils.dates import parse_date
from app.utils.errors import ServiceError, NotFoundError
from app.utils.ids import generate_id
from app.utils.payments import payment_deadline, DEFAULT_CONSULTATION_FEE, PAYMENT_METHOD_ONLINE

logger = logging.getLogger(__name__)

WAITLIST_STATUSES = (WAITLIST_WAITING, WAITLIST_NOTIFIED, WAITLIST_PROMOTED, WAITLIST_CANCELLED)
PROMOTED_APPOINTMENT_TIME = '09:00'


def list_entries(doctor_id: Optional[str] = None, status: Optional[str] = None) -> List[Waitlist]:
    query = Waitlist.query
    if doctor_id:
        query = query.filter_by(doctor_id=doctor_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Waitlist.preferred_date.asc(), Waitlist.created_at.asc()).all()


def get_entry(entry_id: str) -> Waitlist:
    entry = Waitlist.query.get(entry_id)
    if not entry:
        raise NotFoundError('Waitlist entry not found')
    return entry


def create_entry(data: Dict[str, Any]) -> Waitlist:
    email = (data.get('patient_email') or '').strip().lower()
    user = User.query.get(email) if email else None
    if not user:
        raise ServiceError('Patient not found')
    if not Doctor.query.get(data.get('doctor_id') or ''):
        raise NotFoundError('Doctor not found')
    preferred = parse_date(data.get('preferred_date'))
    if preferred is None:
        raise ServiceError('Invalid preferred_date. Use YYYY-MM-DD')

    entry = Waitlist(
        id=generate_id('wait'),
        doctor_id=data['doctor_id'],
        patient_email=user.email,
        patient_name=user.name,
        preferred_date=preferred,
        appointment_type=data.get('appointment_type') or 'Consultation',
        status=WAITLIST_WAITING,
    )
    db.session.add(entry)
    db.session.commit()
    logger.info("Waitlist entry %s: %s for doctor %s on %s", entry.id, user.email, entry.doctor_id, preferred)
    return entry


def update_status(entry_id: str, status: str) -> Waitlist:
    if status not in WAITLIST_STATUSES:
        raise ServiceError(f'Invalid status. Use one of: {", ".join(WAITLIST_STATUSES)}')
    entry = get_entry(entry_id)
    entry.status = status
    if status == WAITLIST_NOTIFIED:
        entry.notified_at = datetime.utcnow()
    db.session.commit()
    return entry


def delete_entry(entry_id: str) -> None:
    entry = get_entry(entry_id)
    db.session.delete(entry)
    db.session.commit()


def promote(entry_id: str) -> Dict[str, Any]:
    """
    Turn a waitlist entry into an unpaid Online appointment at 09:00 on the
    preferred date. The slot schedule is not checked; staff promote manually.

    Raises:
        ServiceError: entry already promoted
    """
    entry = get_entry(entry_id)
    if entry.status == WAITLIST_PROMOTED:
        raise ServiceError('Waitlist entry already promoted')

    doctor = Doctor.query.get(entry.doctor_id)
    user = User.query.get(entry.patient_email)
    appointment = Appointment(
        id=generate_id('apt'),
        patient_name=entry.patient_name,
        patient_email=entry.patient_email,
        doctor_id=entry.doctor_id,
        doctor_name=doctor.name if doctor else None,
        specialty=doctor.specialty if doctor else None,
        type=entry.appointment_type,
        date=entry.preferred_date,
        time=PROMOTED_APPOINTMENT_TIME,
        status=STATUS_PENDING_PAYMENT,
        payment_method=PAYMENT_METHOD_ONLINE,
        payment_deadline=payment_deadline(entry.preferred_date, PROMOTED_APPOINTMENT_TIME, PAYMENT_METHOD_ONLINE),
        fee=DEFAULT_CONSULTATION_FEE,
        insurance=(user.insurance if user and user.insurance else 'self-pay'),
    )
    db.session.add(appointment)
    entry.status = WAITLIST_PROMOTED

    notification_service.create_notification(
        message=(f"You've been promoted from waitlist! Appointment scheduled for "
                 f"{entry.preferred_date.isoformat()} at {PROMOTED_APPOINTMENT_TIME}. Please complete payment."),
        audiences=['Patient'],
        type='waitlist.promoted',
        appointment_id=appointment.id,
        doctor_id=entry.doctor_id,
        patient_email=entry.patient_email,
        commit=False,
    )
    db.session.commit()
    logger.info("Waitlist entry %s promoted to appointment %s", entry.id, appointment.id)
    return {'waitlist': entry, 'appointment': appointment}
