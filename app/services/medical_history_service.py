"""
Medical History Service
Consultation notes and prescriptions, only writable during an active consultation
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from app.extensions import db
from app.models import MedicalHistoryEntry, DoctorSession, ConsultationMemo
from app.models.consultation_memo import MEMO_IN_PROGRESS
from app.models.doctor_session import SESSION_BUSY
from app.models.medical_history import ENTRY_NOTE, ENTRY_PRESCRIPTION
from app.services import doctor_service
from app.utils.dates import parse_date
from app.utils.errors import ServiceError, NotFoundError
from app.utils.pdf_utils import generate_prescription_pdf

logger = logging.getLogger(__name__)


def validate_consultation(doctor_email: str, patient_email: str):
    """
    Check that the doctor is currently seeing this patient.

    Returns:
        tuple: (Doctor, ConsultationMemo)

    Raises:
        ServiceError: doctor unknown, or not in an InProgress consultation with this patient
    """
    doctor = doctor_service.get_doctor_by_email(doctor_email or '')
    if not doctor:
        raise ServiceError('Doctor not found.')

    session = DoctorSession.query.get(doctor.id)
    if not session:
        raise ServiceError('Doctor session not found.')
    if session.status != SESSION_BUSY:
        raise ServiceError('Doctor is not in an active consultation.')
    if not session.active_memo_id:
        raise ServiceError('No active memo found for this doctor.')

    memo = ConsultationMemo.query.get(session.active_memo_id)
    if not memo:
        raise ServiceError('Consultation memo not found.')
    if memo.doctor_id != doctor.id:
        raise ServiceError('Consultation memo does not belong to this doctor.')
    if (memo.patient_email or '').lower() != (patient_email or '').strip().lower():
        raise ServiceError('This memo belongs to a different patient.')
    if memo.status != MEMO_IN_PROGRESS:
        raise ServiceError('Consultation must be IN PROGRESS to write notes or prescriptions.')
    return doctor, memo


def add_note(data: Dict[str, Any]) -> MedicalHistoryEntry:
    doctor, memo = validate_consultation(data.get('doctor_email'), data.get('patient_email'))
    entry = MedicalHistoryEntry(
        patient_email=memo.patient_email,
        patient_name=memo.patient_name,
        doctor_email=doctor.email,
        doctor_name=doctor.name,
        type=ENTRY_NOTE,
        date=datetime.utcnow(),
        diagnosis=data.get('diagnosis'),
        treatment=data.get('treatment'),
        follow_up=data.get('follow_up'),
        notes=data.get('notes'),
    )
    db.session.add(entry)
    db.session.commit()
    logger.info("Note added for %s by %s (memo %s)", entry.patient_email, doctor.email, memo.id)
    return entry


def add_prescription(data: Dict[str, Any]) -> MedicalHistoryEntry:
    if not (data.get('medicine') or '').strip():
        raise ServiceError('Field "medicine" is required')
    doctor, memo = validate_consultation(data.get('doctor_email'), data.get('patient_email'))
    entry = MedicalHistoryEntry(
        patient_email=memo.patient_email,
        patient_name=memo.patient_name,
        doctor_email=doctor.email,
        doctor_name=doctor.name,
        type=ENTRY_PRESCRIPTION,
        date=datetime.utcnow(),
        medicine=data.get('medicine'),
        dosage_instructions=data.get('dosage_instructions'),
        notes=data.get('notes'),
    )
    db.session.add(entry)
    db.session.flush()

    entry.file_url = generate_prescription_pdf(entry)
    db.session.commit()
    logger.info("Prescription %s added for %s by %s", entry.id, entry.patient_email, doctor.email)
    return entry


def history_for_patient(patient_email: str) -> List[MedicalHistoryEntry]:
    return MedicalHistoryEntry.query.filter_by(
        patient_email=(patient_email or '').strip().lower()
    ).order_by(MedicalHistoryEntry.date.desc()).all()


def get_entry(entry_id: int) -> MedicalHistoryEntry:
    entry = MedicalHistoryEntry.query.get(entry_id)
    if not entry:
        raise NotFoundError('Medical history entry not found')
    return entry


def prescriptions_for_patient(
    patient_email: str,
    search: Optional[str] = None,
    doctor: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> List[MedicalHistoryEntry]:
    query = MedicalHistoryEntry.query.filter_by(
        patient_email=(patient_email or '').strip().lower(), type=ENTRY_PRESCRIPTION
    )
    if search and search.strip():
        pattern = f'%{search.strip()}%'
        query = query.filter(db.or_(
            MedicalHistoryEntry.medicine.ilike(pattern),
            MedicalHistoryEntry.dosage_instructions.ilike(pattern),
            MedicalHistoryEntry.notes.ilike(pattern),
        ))
    if doctor and doctor.strip():
        query = query.filter(MedicalHistoryEntry.doctor_name.ilike(f'%{doctor.strip()}%'))
    start = parse_date(date_from)
    if start:
        query = query.filter(MedicalHistoryEntry.date >= datetime.combine(start, datetime.min.time()))
    end = parse_date(date_to)
    if end:
        query = query.filter(MedicalHistoryEntry.date <= datetime.combine(end, datetime.max.time()))
    return query.order_by(MedicalHistoryEntry.date.desc()).all()
