"""
Appointment Service
Booking against doctor availability, payment recording and front-desk actions
"""
import logging
from datetime import datetime, date
from typing import Optional, List, Dict, Any

from app.extensions import db
from app.models import Appointment, Doctor, User, ConsultationMemo, Receipt, Notification
from app.models.appointment import (
    ACTIVE_STATUSES, STATUS_PAID, STATUS_RESCHEDULED, STATUS_NO_SHOW, STATUS_EXPIRED,
    STATUS_PENDING_PAYMENT,
)
from app.models.consultation_memo import MEMO_WAITING
from app.services import notification_service, consultation_memo_service, receipt_service
from app.utils.availability import slots_for_day
from app.utils.dates import parse_date, parse_time
from app.utils.errors import ServiceError, NotFoundError, ConflictError
from app.utils.ids import generate_id
from app.utils.payments import (
    payment_deadline, to_money, DEFAULT_CONSULTATION_FEE, PAYMENT_METHOD_ONLINE,
)

logger = logging.getLogger(__name__)

STAFF_AUDIENCES = ['Doctor', 'Receptionist', 'Admin']


def _require_date(value) -> date:
    parsed = parse_date(value)
    if parsed is None:
        raise ServiceError('Invalid date format. Use YYYY-MM-DD')
    return parsed


def get_appointment(appointment_id: str) -> Appointment:
    appointment = Appointment.query.get(appointment_id)
    if not appointment:
        raise NotFoundError('Appointment not found')
    return appointment


def list_appointments(
    patient_email: Optional[str] = None,
    doctor_id: Optional[str] = None,
    on_date: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> List[Appointment]:
    query = Appointment.query
    if patient_email:
        query = query.filter(Appointment.patient_email == patient_email.strip().lower())
    if doctor_id:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if on_date:
        query = query.filter(Appointment.date == _require_date(on_date))
    if status:
        query = query.filter(Appointment.status == status)
    if start_date:
        query = query.filter(Appointment.date >= _require_date(start_date))
    if end_date:
        query = query.filter(Appointment.date <= _require_date(end_date))
    return query.order_by(Appointment.date.asc(), Appointment.time.asc()).all()


def list_for_patient(email: str) -> List[Appointment]:
    return Appointment.query.filter_by(patient_email=email.strip().lower()).order_by(
        Appointment.date.desc(), Appointment.time.desc()
    ).all()


def list_for_doctor(doctor_id: str) -> List[Appointment]:
    return Appointment.query.filter_by(doctor_id=doctor_id).order_by(
        Appointment.date.desc(), Appointment.time.desc()
    ).all()


def _taken_times(doctor_id: str, day: date, exclude_id: Optional[str] = None) -> set:
    query = Appointment.query.filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date == day,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    if exclude_id:
        query = query.filter(Appointment.id != exclude_id)
    return {a.time for a in query.all()}


def available_slots(doctor_id: str, day_value) -> Dict[str, Any]:
    """Offered slots for the day, split into free and taken"""
    doctor = Doctor.query.get(doctor_id)
    if not doctor:
        raise NotFoundError('Doctor not found')
    day = _require_date(day_value)
    offered = slots_for_day(doctor.availability, day)
    taken = _taken_times(doctor.id, day)
    return {
        'doctor_id': doctor.id,
        'date': day.isoformat(),
        'slots': offered,
        'available': [s for s in offered if s not in taken],
        'taken': sorted(t for t in taken if t in offered),
    }


def _check_slot(doctor: Doctor, day: date, time_str: str, exclude_id: Optional[str] = None) -> str:
    """Validate time against the doctor's schedule and capacity; returns the normalized HH:MM"""
    if parse_time(time_str) is None:
        raise ServiceError('Invalid time format. Use HH:MM (e.g., 10:30)')
    time_str = time_str.strip()
    offered = slots_for_day(doctor.availability, day)
    if time_str not in offered:
        listed = ', '.join(offered) if offered else 'none'
        raise ServiceError(f'Time {time_str} is not available for {doctor.name} on {day.isoformat()}. '
                           f'Available slots: {listed}')
    if time_str in _taken_times(doctor.id, day, exclude_id=exclude_id):
        raise ConflictError('This time slot is already booked.')
    return time_str


def create_appointment(data: Dict[str, Any], commit: bool = True) -> Appointment:
    """
    Book an appointment.

    Args:
        data: doctor_id, patient_email, date, time and optionally patient_name,
              type, payment_method, fee, insurance, room

    Raises:
        NotFoundError: doctor does not exist
        ServiceError: bad date/time or time outside the doctor's schedule
        ConflictError: slot already held by an active appointment
    """
    doctor = Doctor.query.get(data.get('doctor_id') or '')
    if not doctor:
        raise NotFoundError('Doctor not found')
    day = _require_date(data.get('date'))
    time_str = _check_slot(doctor, day, str(data.get('time') or ''))

    email = (data.get('patient_email') or '').strip().lower()
    if not email:
        raise ServiceError('Field "patient_email" is required')

    # Appointments reference users.email, so the patient must be registered
    user = User.query.get(email)
    if not user:
        raise NotFoundError(f'Patient with email {email} not found')
    patient_name = user.name or data.get('patient_name') or email
    insurance = user.insurance or data.get('insurance')

    method = data.get('payment_method') or PAYMENT_METHOD_ONLINE
    fee = data.get('fee')

    appointment = Appointment(
        id=generate_id('apt'),
        patient_name=patient_name,
        patient_email=email,
        doctor_id=doctor.id,
        doctor_name=doctor.name,
        specialty=data.get('specialty') or doctor.specialty,
        type=data.get('type') or 'Consultation',
        date=day,
        time=time_str,
        room=data.get('room'),
        status=STATUS_PENDING_PAYMENT,
        payment_method=method,
        payment_channel=data.get('payment_channel'),
        payment_instrument=data.get('payment_instrument'),
        payment_deadline=payment_deadline(day, time_str, method),
        fee=to_money(fee) if fee is not None else DEFAULT_CONSULTATION_FEE,
        insurance=insurance,
    )
    db.session.add(appointment)
    db.session.flush()

    notification_service.create_notification(
        message=f"New {appointment.type} appointment booked with {doctor.name} for {day.isoformat()} at {time_str}.",
        audiences=STAFF_AUDIENCES,
        type='appointment.created',
        appointment_id=appointment.id,
        doctor_id=doctor.id,
        patient_email=email,
        commit=False,
    )
    if commit:
        db.session.commit()
    logger.info("Appointment %s booked: %s with %s on %s %s", appointment.id, email, doctor.id, day, time_str)
    return appointment


def update_appointment(appointment_id: str, data: Dict[str, Any]) -> Appointment:
    """Apply the non-blank fields among date, time, type, room and status"""
    appointment = get_appointment(appointment_id)
    if str(data.get('status') or '').strip().lower() == STATUS_PAID.lower():
        raise ServiceError('Use mark-paid to record a payment')

    new_date = appointment.date
    if data.get('date'):
        new_date = _require_date(data['date'])
    new_time = (data.get('time') or '').strip() or appointment.time

    if new_date != appointment.date or new_time != appointment.time:
        doctor = Doctor.query.get(appointment.doctor_id)
        appointment.time = _check_slot(doctor, new_date, new_time, exclude_id=appointment.id)
        appointment.date = new_date
        appointment.payment_deadline = payment_deadline(new_date, appointment.time, appointment.payment_method)

    for field in ('type', 'room', 'status'):
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            setattr(appointment, field, value.strip())

    db.session.commit()
    return appointment


def delete_appointment(appointment_id: str) -> None:
    appointment = get_appointment(appointment_id)
    ConsultationMemo.query.filter_by(appointment_id=appointment.id).delete()
    Receipt.query.filter_by(appointment_id=appointment.id).delete()
    Notification.query.filter_by(appointment_id=appointment.id).delete()
    db.session.delete(appointment)
    db.session.commit()
    logger.info("Appointment %s deleted", appointment_id)


def record_payment(
    appointment: Appointment,
    recorded_by: Optional[str],
    amount=None,
    payment_method: Optional[str] = None,
    notify_message: Optional[str] = None,
    notify_audiences: Optional[List[str]] = None,
    notify_type: str = 'appointment.paid',
) -> Dict[str, Any]:
    """
    Mark an appointment paid and issue its receipt and memo in one commit.

    Every payment path (reception, online confirm, manual) goes through here,
    so an appointment never ends up with more than one receipt or memo.

    Raises:
        ServiceError: appointment already paid
    """
    if appointment.status == STATUS_PAID:
        raise ServiceError('Appointment already paid')

    now = datetime.utcnow()
    appointment.status = STATUS_PAID
    appointment.paid_at = now
    appointment.recorded_by = recorded_by
    if amount is not None:
        appointment.fee = to_money(amount)
    if payment_method:
        appointment.payment_method = payment_method

    receipt = receipt_service.issue_receipt(appointment, now=now)
    memo = consultation_memo_service.issue_memo(appointment, now=now)

    if notify_message is None:
        suffix = f" by {recorded_by}" if recorded_by and recorded_by.strip() else ""
        notify_message = f"{appointment.patient_name} payment recorded{suffix}."
    notification_service.create_notification(
        message=notify_message,
        audiences=notify_audiences or STAFF_AUDIENCES,
        type=notify_type,
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        patient_email=appointment.patient_email,
        commit=False,
    )
    db.session.commit()
    logger.info("Appointment %s paid (recorded by %s), receipt %s, memo #%s",
                appointment.id, recorded_by, receipt.id, memo.memo_number)
    return {'appointment': appointment, 'receipt': receipt, 'memo': memo}


def mark_paid(appointment_id: str, recorded_by: Optional[str] = None, amount=None,
              payment_method: Optional[str] = None) -> Dict[str, Any]:
    return record_payment(get_appointment(appointment_id), recorded_by, amount=amount,
                          payment_method=payment_method)


def reschedule(appointment_id: str, new_date, new_time: str) -> Appointment:
    appointment = get_appointment(appointment_id)
    day = _require_date(new_date)
    doctor = Doctor.query.get(appointment.doctor_id)
    appointment.time = _check_slot(doctor, day, str(new_time or ''), exclude_id=appointment.id)
    appointment.date = day
    appointment.status = STATUS_RESCHEDULED
    appointment.payment_deadline = payment_deadline(day, appointment.time, appointment.payment_method)

    notification_service.create_notification(
        message=f"Appointment rescheduled to {day.isoformat()} at {appointment.time}.",
        audiences=['Doctor', 'Patient', 'Receptionist'],
        type='appointment.rescheduled',
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        patient_email=appointment.patient_email,
        commit=False,
    )
    db.session.commit()
    return appointment


def mark_no_show(appointment_id: str) -> Appointment:
    appointment = get_appointment(appointment_id)
    appointment.status = STATUS_NO_SHOW
    notification_service.create_notification(
        message=f"Patient {appointment.patient_name} marked as no-show for appointment on {appointment.date.isoformat()}.",
        audiences=STAFF_AUDIENCES,
        type='appointment.noshow',
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        patient_email=appointment.patient_email,
        commit=False,
    )
    db.session.commit()
    return appointment


def expire(appointment_id: str) -> Appointment:
    appointment = get_appointment(appointment_id)
    appointment.status = STATUS_EXPIRED
    db.session.commit()
    return appointment


def expire_overdue(now: Optional[datetime] = None) -> List[str]:
    """Expire PendingPayment appointments whose payment deadline has passed"""
    now = now or datetime.utcnow()
    overdue = Appointment.query.filter(
        Appointment.status == STATUS_PENDING_PAYMENT,
        Appointment.payment_deadline.isnot(None),
        Appointment.payment_deadline < now,
    ).all()
    for appointment in overdue:
        appointment.status = STATUS_EXPIRED
    db.session.commit()
    return [a.id for a in overdue]


def check_in(appointment_id: str) -> ConsultationMemo:
    """Put a paid patient (back) into the doctor's Waiting queue"""
    appointment = get_appointment(appointment_id)
    if appointment.status != STATUS_PAID:
        raise ServiceError('Must be paid first')

    existing = consultation_memo_service.get_memo_for_appointment(appointment.id)
    if existing:
        existing.status = MEMO_WAITING
        existing.checked_in_at = datetime.utcnow()
        memo = existing
    else:
        memo = consultation_memo_service.issue_memo(appointment)
    db.session.commit()
    return memo
