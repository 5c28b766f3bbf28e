"""
Celery tasks for uploaded files
"""
import logging
from app.extensions import celery, db
from app.services import medical_record_service
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)


@celery.task(name='tasks.register_uploaded_record')
def register_uploaded_record(patient_email, file_name, file_url, content_type, file_size_bytes,
                             record_type=None, doctor_name=None, record_date=None):
    """
    Insert the MedicalRecord row for a file that has just been stored.

    Args:
        patient_email: Owner of the record
        file_name: Original file name
        file_url: URL returned by storage
        content_type: MIME type of the stored file
        file_size_bytes: Size of the stored file
        record_type: Defaults to 'General'
        doctor_name: Optional
        record_date: ISO date or datetime, defaults to now

    Returns:
        dict: Registration result
    """
    try:
        record = medical_record_service.create_record({
            'patient_email': patient_email,
            'file_name': file_name,
            'file_url': file_url,
            'content_type': content_type,
            'file_size_bytes': file_size_bytes,
            'record_type': record_type,
            'doctor_name': doctor_name,
            'record_date': record_date,
        })
        return {'success': True, 'record_id': record.id}
    except ServiceError as e:
        db.session.rollback()
        logger.warning(f"Uploaded record for {patient_email} rejected: {e.message}")
        return {'success': False, 'error': e.message}
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error registering uploaded record for {patient_email}: {e}", exc_info=True)
        return {'success': False, 'error': str(e)}
