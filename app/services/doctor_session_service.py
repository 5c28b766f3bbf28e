"""
Doctor Session Service
Per-doctor consultation queue: who is being seen, breaks and emergencies
"""
import json
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from app.extensions import db
from app.models import DoctorSession, ConsultationMemo, Doctor, User
from app.models.consultation_memo import (
    MEMO_WAITING, MEMO_IN_PROGRESS, MEMO_RESCHEDULED, MEMO_CANCELLED,
)
from app.models.doctor_session import SESSION_IDLE, SESSION_BUSY, SESSION_BREAK, SESSION_EMERGENCY
from app.models.user import ROLE_DOCTOR
from app.services import consultation_memo_service, doctor_service
from app.utils.availability import DEFAULT_AVAILABILITY
from app.utils.dates import parse_datetime
from app.utils.errors import ServiceError, NotFoundError
from app.utils.ids import generate_id

logger = logging.getLogger(__name__)

DEFAULT_EMERGENCY_NOTE = 'Emergency - session paused'


def list_sessions() -> List[DoctorSession]:
    return DoctorSession.query.order_by(DoctorSession.doctor_name.asc()).all()


def get_session(doctor_id: str) -> DoctorSession:
    session = DoctorSession.query.get(doctor_id)
    if not session:
        raise NotFoundError('Doctor session not found')
    return session


def update_session(doctor_id: str, data: Dict[str, Any]) -> DoctorSession:
    session = get_session(doctor_id)
    if 'status' in data and data['status']:
        session.status = data['status']
    if 'active_memo_id' in data:
        session.active_memo_id = data['active_memo_id']
    if 'note' in data:
        session.note = data['note']
    db.session.commit()
    return session


def _active_memo(session: DoctorSession) -> Optional[ConsultationMemo]:
    if not session.active_memo_id:
        return None
    return ConsultationMemo.query.get(session.active_memo_id)


def start_next(doctor_id: str) -> Dict[str, Any]:
    """
    Call the next Waiting patient (oldest memo first).

    A consultation still InProgress is auto-completed before moving on.

    Raises:
        ServiceError: nobody is waiting
    """
    session = get_session(doctor_id)
    now = datetime.utcnow()

    current = _active_memo(session)
    if session.status == SESSION_BUSY and current and current.status == MEMO_IN_PROGRESS:
        consultation_memo_service.complete_memo(current, note='Auto-completed when starting next patient', now=now)
        logger.warning("Doctor %s started next patient with memo %s still in progress; auto-completed",
                       doctor_id, current.id)

    next_memo = ConsultationMemo.query.filter_by(
        doctor_id=doctor_id, status=MEMO_WAITING
    ).order_by(ConsultationMemo.issued_at.asc()).first()
    if not next_memo:
        raise ServiceError('No patients waiting')

    consultation_memo_service.start_memo(next_memo, now=now)
    session.status = SESSION_BUSY
    session.active_memo_id = next_memo.id
    db.session.commit()
    return {'session': session, 'memo': next_memo}


def complete(doctor_id: str) -> DoctorSession:
    session = get_session(doctor_id)
    memo = _active_memo(session)
    if memo and memo.status == MEMO_IN_PROGRESS:
        consultation_memo_service.complete_memo(memo)
    session.status = SESSION_IDLE
    session.active_memo_id = None
    db.session.commit()
    return session


def reset(doctor_id: str) -> DoctorSession:
    session = get_session(doctor_id)
    memo = _active_memo(session)
    if memo and memo.status in (MEMO_IN_PROGRESS, MEMO_WAITING):
        consultation_memo_service.complete_memo(memo, note='Auto-completed due to session reset')
    logger.warning("Doctor session %s reset (active memo %s)", doctor_id, session.active_memo_id)
    session.status = SESSION_IDLE
    session.active_memo_id = None
    session.note = None
    db.session.commit()
    return session


def take_break(doctor_id: str) -> DoctorSession:
    session = get_session(doctor_id)
    session.status = SESSION_BREAK
    db.session.commit()
    return session


def resume(doctor_id: str) -> DoctorSession:
    session = get_session(doctor_id)
    session.status = SESSION_BUSY if session.active_memo_id else SESSION_IDLE
    session.note = None
    db.session.commit()
    return session


def emergency(doctor_id: str, note: Optional[str] = None, reschedule_to: Optional[str] = None) -> DoctorSession:
    """Pause the session; the patient being seen is rescheduled or cancelled"""
    session = get_session(doctor_id)
    note = note.strip() if note and note.strip() else DEFAULT_EMERGENCY_NOTE

    memo = _active_memo(session)
    if memo:
        memo.note = note
        new_time = parse_datetime(reschedule_to) if reschedule_to else None
        if new_time:
            memo.status = MEMO_RESCHEDULED
            memo.rescheduled_to = new_time
        else:
            memo.status = MEMO_CANCELLED

    session.status = SESSION_EMERGENCY
    session.active_memo_id = None
    session.note = note
    db.session.commit()
    logger.warning("Doctor %s declared an emergency: %s", doctor_id, note)
    return session


def recall_patient(doctor_id: str, memo_id: str) -> Dict[str, Any]:
    session = get_session(doctor_id)
    memo = consultation_memo_service.get_memo(memo_id)
    if memo.doctor_id != doctor_id:
        raise ServiceError('Consultation memo does not belong to this doctor.')

    memo.status = MEMO_IN_PROGRESS
    memo.started_at = datetime.utcnow()
    session.status = SESSION_BUSY
    session.active_memo_id = memo.id
    db.session.commit()
    return {'session': session, 'memo': memo}


def ensure_for_email(doctor_email: str) -> Dict[str, Any]:
    """Make sure a Doctor user has a doctor profile and a queue session"""
    email = (doctor_email or '').strip().lower()
    user = User.query.get(email)
    if not user or user.role != ROLE_DOCTOR:
        raise NotFoundError('Doctor user not found')

    doctor = doctor_service.get_doctor_by_email(email)
    if doctor is None:
        doctor = Doctor(
            id=generate_id('doc'),
            name=user.name,
            email=email,
            specialty='General Practice',
            phone=user.phone,
            phone_country_code=user.phone_country_code,
            availability=json.dumps(DEFAULT_AVAILABILITY),
        )
        db.session.add(doctor)
        db.session.flush()
        logger.info("Doctor profile %s created for %s", doctor.id, email)

    session = doctor_service.ensure_session(doctor)
    db.session.commit()
    return {'doctor': doctor, 'session': session}
