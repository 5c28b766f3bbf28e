"""
File upload endpoints (profile photos, medical records, prescriptions)
"""
import os
import uuid
import logging

from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, get_jwt
from werkzeug.utils import secure_filename

from app.models.user import ROLE_PATIENT
from app.utils import storage
from app.utils.audit import log_audit
from app.utils.decorators import current_user_email

logger = logging.getLogger(__name__)

upload_bp = Blueprint('upload', __name__, url_prefix='/api/upload')

ALLOWED_CONTENT_TYPES = {
    'profile-photo': {'image/jpeg', 'image/png'},
    'medical-record': {'application/pdf', 'image/png', 'image/jpeg'},
    'prescription': {'application/pdf'},
}

EXTENSION_BY_CONTENT_TYPE = {
    'image/jpeg': '.jpg',
    'image/png': '.png',
    'application/pdf': '.pdf',
}


def _extension(file_storage):
    ext = os.path.splitext(secure_filename(file_storage.filename or ''))[1].lower()
    return ext or EXTENSION_BY_CONTENT_TYPE.get(file_storage.mimetype, '')


@upload_bp.route('/file', methods=['POST'])
@jwt_required()
def upload_file():
    """
    Upload a single file (multipart field "file")
    Query params:
        type: profile-photo | medical-record | prescription
    Returns the absolute URL of the stored file
    """
    # Step 1: Validate file and type
    file = request.files.get('file')
    if not file or not file.filename:
        return jsonify({
            'success': False,
            'error': 'No file provided'
        }), 400

    upload_type = request.args.get('type', type=str)
    if not upload_type:
        return jsonify({
            'success': False,
            'error': 'Upload type is required'
        }), 400
    if upload_type not in ALLOWED_CONTENT_TYPES:
        return jsonify({
            'success': False,
            'error': f"Invalid upload type. Allowed: {', '.join(ALLOWED_CONTENT_TYPES)}"
        }), 400

    allowed = ALLOWED_CONTENT_TYPES[upload_type]
    if file.mimetype not in allowed:
        return jsonify({
            'success': False,
            'error': f"Invalid file type. Allowed: {', '.join(sorted(allowed))}"
        }), 400

    # Step 2: Store
    key = f"{upload_type}_{uuid.uuid4()}{_extension(file)}"
    try:
        url = storage.save_bytes(key, file.read(), file.mimetype)
    except storage.StorageError as e:
        logger.error(f"Upload failed for {key}: {e}")
        return jsonify({
            'success': False,
            'error': 'Failed to store file'
        }), 500

    log_audit('upload', 'create', user_email=current_user_email(), entity_id=key,
              details={'type': upload_type, 'content_type': file.mimetype})
    return jsonify({
        'success': True,
        'data': {'url': storage.absolute_url(url, request.host_url), 'key': key}
    }), 201


@upload_bp.route('/medical-record', methods=['POST'])
@jwt_required()
def upload_medical_record():
    """
    Upload a patient's medical record file (multipart field "file")
    Query params:
        patient_email (required), record_type, doctor_name, record_date
        Patients can only upload into their own records
    The MedicalRecord row is inserted by the tasks.register_uploaded_record worker
    """
    from tasks.upload_tasks import register_uploaded_record

    patient_email = (request.args.get('patient_email', type=str) or '').strip().lower()
    if get_jwt().get('role') == ROLE_PATIENT:
        patient_email = current_user_email()
    if not patient_email:
        return jsonify({
            'success': False,
            'error': 'patient_email is required'
        }), 400

    file = request.files.get('file')
    if not file or not file.filename:
        return jsonify({
            'success': False,
            'error': 'No file provided'
        }), 400

    body = file.read()
    if not body:
        return jsonify({
            'success': False,
            'error': 'File is empty'
        }), 400
    max_bytes = current_app.config['MAX_UPLOAD_BYTES']
    if len(body) > max_bytes:
        return jsonify({
            'success': False,
            'error': f'File exceeds the {max_bytes // (1024 * 1024)}MB limit'
        }), 400

    key = f"patients/{patient_email}/{uuid.uuid4()}{_extension(file)}"
    content_type = file.mimetype or 'application/octet-stream'
    try:
        url = storage.save_bytes(key, body, content_type)
    except storage.StorageError as e:
        logger.error(f"Medical record upload failed for {patient_email}: {e}")
        return jsonify({
            'success': False,
            'error': 'Failed to store file'
        }), 500

    task = register_uploaded_record.delay(
        patient_email,
        secure_filename(file.filename) or key.rsplit('/', 1)[-1],
        url,
        content_type,
        len(body),
        record_type=request.args.get('record_type', type=str),
        doctor_name=request.args.get('doctor_name', type=str),
        record_date=request.args.get('record_date', type=str),
    )

    log_audit('upload', 'medical_record', user_email=current_user_email(), entity_id=key,
              details={'patient_email': patient_email, 'size': len(body)})
    return jsonify({
        'success': True,
        'data': {
            'url': storage.absolute_url(url, request.host_url),
            'key': key,
            'task_id': task.id,
        },
        'message': 'File uploaded'
    }), 201
