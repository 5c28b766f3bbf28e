"""
Doctor Service
Doctor profiles, weekly availability and their queue session
"""
import json
import logging
from typing import Optional, List, Dict, Any

from app.extensions import db
from app.models import Doctor, DoctorSession, Appointment
from app.models.doctor_session import SESSION_IDLE
from app.utils.availability import DEFAULT_AVAILABILITY
from app.utils.errors import ServiceError, NotFoundError, ConflictError
from app.utils.ids import generate_id

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'name', 'specialty', 'phone', 'phone_country_code', 'license_number',
    'practice_name', 'years_of_experience', 'bio',
)


def _normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def list_doctors() -> List[Doctor]:
    return Doctor.query.order_by(Doctor.name.asc()).all()


def get_doctor(doctor_id: str) -> Doctor:
    doctor = Doctor.query.get(doctor_id)
    if not doctor:
        raise NotFoundError('Doctor not found')
    return doctor


def get_doctor_by_email(email: str) -> Optional[Doctor]:
    return Doctor.query.filter_by(email=_normalize_email(email)).first()


def ensure_session(doctor: Doctor) -> DoctorSession:
    """Return the doctor's session row, adding an Idle one if missing (not committed)"""
    session = DoctorSession.query.get(doctor.id)
    if session is None:
        session = DoctorSession(doctor_id=doctor.id, doctor_name=doctor.name, status=SESSION_IDLE)
        db.session.add(session)
    return session


def create_doctor(data: Dict[str, Any], commit: bool = True) -> Doctor:
    """
    Create a doctor and its Idle queue session.

    Raises:
        ServiceError: name or email missing
        ConflictError: email already used by another doctor
    """
    email = _normalize_email(data.get('email'))
    if not email or not data.get('name'):
        raise ServiceError('Fields "name" and "email" are required')
    if get_doctor_by_email(email):
        raise ConflictError('A doctor with this email already exists.')

    availability = data.get('availability')
    if availability is None:
        availability = DEFAULT_AVAILABILITY

    doctor = Doctor(
        id=generate_id('doc'),
        email=email,
        availability=json.dumps(availability) if not isinstance(availability, str) else availability,
    )
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(doctor, field, data[field])
    db.session.add(doctor)
    db.session.flush()
    ensure_session(doctor)

    if commit:
        db.session.commit()
    logger.info("Doctor created: %s (%s)", doctor.id, doctor.email)
    return doctor


def update_doctor(doctor_id: str, data: Dict[str, Any]) -> Doctor:
    doctor = get_doctor(doctor_id)

    if data.get('email'):
        email = _normalize_email(data['email'])
        clash = Doctor.query.filter(Doctor.email == email, Doctor.id != doctor.id).first()
        if clash:
            raise ConflictError('Email is already used by another doctor.')
        doctor.email = email

    for field in EDITABLE_FIELDS:
        if field in data and data[field] is not None:
            setattr(doctor, field, data[field])
    if 'availability' in data and data['availability'] is not None:
        doctor.availability = json.dumps(data['availability'])

    if doctor.session and data.get('name'):
        doctor.session.doctor_name = doctor.name

    db.session.commit()
    return doctor


def set_availability(doctor_id: str, availability: Dict[str, Any]) -> Doctor:
    if not isinstance(availability, dict):
        raise ServiceError('Availability must be a JSON object keyed by weekday')
    doctor = get_doctor(doctor_id)
    doctor.availability = json.dumps(availability)
    db.session.commit()
    return doctor


def delete_doctor(doctor_id: str) -> None:
    doctor = get_doctor(doctor_id)
    if Appointment.query.filter_by(doctor_id=doctor.id).count() > 0:
        raise ServiceError('Cannot delete a doctor who has appointments.')
    session = DoctorSession.query.get(doctor.id)
    if session:
        db.session.delete(session)
    db.session.delete(doctor)
    db.session.commit()
    logger.info("Doctor deleted: %s", doctor_id)
