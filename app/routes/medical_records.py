import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt

from app.extensions import db
from app.models.user import ROLE_PATIENT
from app.services import medical_record_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email, current_user_is_admin
from app.utils.errors import ServiceError, ForbiddenError

logger = logging.getLogger(__name__)

records_bp = Blueprint('medical_records', __name__, url_prefix='/api/medicalrecords')


@records_bp.route('', methods=['GET'])
@jwt_required()
def list_records():
    """
    Query params:
        patient_email (patients always get their own)
    """
    patient_email = request.args.get('patient_email', type=str)
    if get_jwt().get('role') == ROLE_PATIENT or not patient_email:
        patient_email = current_user_email()
    records = medical_record_service.list_records(patient_email)
    return jsonify({'success': True, 'data': [r.to_dict() for r in records]}), 200


@records_bp.route('/<int:record_id>', methods=['GET'])
@jwt_required()
def get_record(record_id):
    record = medical_record_service.get_record(record_id)
    if get_jwt().get('role') == ROLE_PATIENT and record.patient_email != current_user_email():
        raise ForbiddenError('You can only view your own medical records')
    return jsonify({'success': True, 'data': record.to_dict()}), 200


@records_bp.route('', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Receptionist', 'Admin')
def create_record():
    """Body: patient_email, record_type, file_name, file_url, content_type, file_size_bytes, record_date"""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    try:
        record = medical_record_service.create_record(data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to create medical record: %s", e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to create medical record'
        }), 500

    log_audit('medical_record', 'create', user_email=current_user_email(), entity_id=record.id)
    return jsonify({'success': True, 'data': record.to_dict()}), 201


@records_bp.route('/<int:record_id>', methods=['DELETE'])
@jwt_required()
def delete_record(record_id):
    """Owners and admins only"""
    try:
        medical_record_service.delete_record(record_id, current_user_email(), is_admin=current_user_is_admin())
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to delete medical record %s: %s", record_id, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to delete medical record'
        }), 500

    log_audit('medical_record', 'delete', user_email=current_user_email(), entity_id=record_id)
    return jsonify({'success': True, 'message': 'Medical record deleted'}), 200
