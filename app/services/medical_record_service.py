"""
Medical Record Service
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from app.extensions import db
from app.models import MedicalRecord, User
from app.models.user import ROLE_PATIENT
from app.utils.dates import parse_datetime
from app.utils.errors import ServiceError, NotFoundError, ForbiddenError

logger = logging.getLogger(__name__)


def list_records(patient_email: str) -> List[MedicalRecord]:
    return MedicalRecord.query.filter_by(
        patient_email=(patient_email or '').strip().lower()
    ).order_by(MedicalRecord.record_date.desc()).all()


def get_record(record_id: int) -> MedicalRecord:
    record = MedicalRecord.query.get(record_id)
    if not record:
        raise NotFoundError('Medical record not found')
    return record


def create_record(data: Dict[str, Any], commit: bool = True) -> MedicalRecord:
    """
    Attach a stored file to a patient.

    Raises:
        ServiceError: patient missing or not a Patient, or file metadata missing
    """
    email = (data.get('patient_email') or '').strip().lower()
    patient = User.query.get(email) if email else None
    if not patient or patient.role != ROLE_PATIENT:
        raise ServiceError('Patient not found')
    if not data.get('file_url') or not data.get('file_name'):
        raise ServiceError('Fields "file_name" and "file_url" are required')

    record = MedicalRecord(
        patient_email=email,
        doctor_id=data.get('doctor_id'),
        doctor_name=data.get('doctor_name'),
        record_type=data.get('record_type') or 'General',
        file_name=data['file_name'],
        file_url=data['file_url'],
        content_type=data.get('content_type') or 'application/octet-stream',
        file_size_bytes=int(data.get('file_size_bytes') or 0),
        record_date=parse_datetime(data.get('record_date')) or datetime.utcnow(),
    )
    db.session.add(record)
    if commit:
        db.session.commit()
    logger.info("Medical record stored for %s: %s", email, record.file_name)
    return record


def delete_record(record_id: int, acting_email: Optional[str], is_admin: bool = False) -> None:
    record = get_record(record_id)
    if not is_admin and (acting_email or '').strip().lower() != record.patient_email:
        raise ForbiddenError('You can only delete your own medical records')
    db.session.delete(record)
    db.session.commit()
