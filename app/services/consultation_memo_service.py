"""
Consultation Memo Service
Queue tickets issued when an appointment is paid
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, List

from app.extensions import db
from app.models import ConsultationMemo, Appointment
from app.models.consultation_memo import (
    MEMO_WAITING, MEMO_IN_PROGRESS, MEMO_COMPLETED, MEMO_RESCHEDULED, MEMO_CANCELLED,
)
from app.utils.errors import ServiceError, NotFoundError
from app.utils.ids import generate_id

logger = logging.getLogger(__name__)

MEMO_STATUSES = (MEMO_WAITING, MEMO_IN_PROGRESS, MEMO_COMPLETED, MEMO_RESCHEDULED, MEMO_CANCELLED)

# Used as the start time when a consultation is completed without ever being started
ASSUMED_CONSULTATION_MINUTES = 15


def list_memos(doctor_id: Optional[str] = None, status: Optional[str] = None) -> List[ConsultationMemo]:
    query = ConsultationMemo.query
    if doctor_id:
        query = query.filter_by(doctor_id=doctor_id)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(ConsultationMemo.issued_at.desc()).all()


def get_memo(memo_id: str) -> ConsultationMemo:
    memo = ConsultationMemo.query.get(memo_id)
    if not memo:
        raise NotFoundError('Consultation memo not found')
    return memo


def get_memo_for_appointment(appointment_id: str) -> Optional[ConsultationMemo]:
    return ConsultationMemo.query.filter_by(appointment_id=appointment_id).first()


def issue_memo(appointment: Appointment, now: Optional[datetime] = None) -> ConsultationMemo:
    """
    Return the appointment's memo, issuing a new Waiting one if it has none.

    The memo number is the doctor's memo count plus one. Not committed.
    """
    existing = get_memo_for_appointment(appointment.id)
    if existing:
        return existing

    now = now or datetime.utcnow()
    memo_count = ConsultationMemo.query.filter_by(doctor_id=appointment.doctor_id).count()
    memo = ConsultationMemo(
        id=generate_id('memo'),
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        doctor_name=appointment.doctor_name,
        patient_name=appointment.patient_name,
        patient_email=appointment.patient_email,
        memo_number=memo_count + 1,
        status=MEMO_WAITING,
        issued_at=now,
        checked_in_at=now,
    )
    db.session.add(memo)
    db.session.flush()
    logger.info("Memo #%s issued for appointment %s", memo.memo_number, appointment.id)
    return memo


def start_memo(memo: ConsultationMemo, now: Optional[datetime] = None) -> None:
    memo.status = MEMO_IN_PROGRESS
    memo.started_at = memo.started_at or now or datetime.utcnow()


def complete_memo(memo: ConsultationMemo, note: Optional[str] = None, now: Optional[datetime] = None) -> None:
    now = now or datetime.utcnow()
    memo.status = MEMO_COMPLETED
    if memo.started_at is None:
        memo.started_at = now - timedelta(minutes=ASSUMED_CONSULTATION_MINUTES)
    memo.completed_at = now
    if note:
        memo.note = note


def update_status(memo_id: str, status: str, clinical_summary: Optional[str] = None,
                  prescriptions: Optional[str] = None, lab_orders: Optional[str] = None,
                  note: Optional[str] = None) -> ConsultationMemo:
    if status not in MEMO_STATUSES:
        raise ServiceError(f'Invalid memo status. Use one of: {", ".join(MEMO_STATUSES)}')
    memo = get_memo(memo_id)

    if status == MEMO_IN_PROGRESS:
        start_memo(memo)
    elif status == MEMO_COMPLETED:
        complete_memo(memo)
    else:
        memo.status = status

    # Optional text only overwrites when something was written
    if clinical_summary and clinical_summary.strip():
        memo.clinical_summary = clinical_summary
    if prescriptions and prescriptions.strip():
        memo.prescriptions = prescriptions
    if lab_orders and lab_orders.strip():
        memo.lab_orders = lab_orders
    if note and note.strip():
        memo.note = note

    db.session.commit()
    return memo
