import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.extensions import db
from app.services import doctor_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

doctors_bp = Blueprint('doctors', __name__, url_prefix='/api/doctors')


@doctors_bp.route('', methods=['GET'])
@jwt_required()
def list_doctors():
    doctors = doctor_service.list_doctors()
    return jsonify({
        'success': True,
        'data': [d.to_dict() for d in doctors]
    }), 200


@doctors_bp.route('/<doctor_id>', methods=['GET'])
@jwt_required()
def get_doctor(doctor_id):
    doctor = doctor_service.get_doctor(doctor_id)
    return jsonify({'success': True, 'data': doctor.to_dict()}), 200


@doctors_bp.route('', methods=['POST'])
@jwt_required()
@require_role('Admin')
def create_doctor():
    """
    Create a doctor profile (and its Idle queue session)
    Access: Admin
    """
    # Step 1: Get data from request
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    # Step 2: Create
    try:
        doctor = doctor_service.create_doctor(data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to create doctor: %s", e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to create doctor'
        }), 500

    log_audit('doctor', 'create', user_email=current_user_email(), entity_id=doctor.id)
    return jsonify({
        'success': True,
        'data': doctor.to_dict(),
        'message': 'Doctor created successfully'
    }), 201


@doctors_bp.route('/<doctor_id>', methods=['PUT'])
@jwt_required()
@require_role('Admin')
def update_doctor(doctor_id):
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    try:
        doctor = doctor_service.update_doctor(doctor_id, data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to update doctor %s: %s", doctor_id, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to update doctor'
        }), 500

    log_audit('doctor', 'update', user_email=current_user_email(), entity_id=doctor.id)
    return jsonify({
        'success': True,
        'data': doctor.to_dict(),
        'message': 'Doctor updated successfully'
    }), 200


@doctors_bp.route('/<doctor_id>', methods=['DELETE'])
@jwt_required()
@require_role('Admin')
def delete_doctor(doctor_id):
    try:
        doctor_service.delete_doctor(doctor_id)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to delete doctor %s: %s", doctor_id, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to delete doctor'
        }), 500

    log_audit('doctor', 'delete', user_email=current_user_email(), entity_id=doctor_id)
    return jsonify({
        'success': True,
        'message': 'Doctor deleted successfully'
    }), 200


@doctors_bp.route('/<doctor_id>/availability', methods=['PUT'])
@jwt_required()
@require_role('Admin', 'Doctor')
def set_availability(doctor_id):
    """
    Replace the weekly schedule
    Body: {"mon": {"start": "09:00", "end": "17:00", "slots": 8}, "sat": "off", ...}
    """
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    try:
        doctor = doctor_service.set_availability(doctor_id, data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to set availability for %s: %s", doctor_id, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to update availability'
        }), 500

    log_audit('doctor', 'availability', user_email=current_user_email(), entity_id=doctor.id)
    return jsonify({
        'success': True,
        'data': doctor.to_dict(),
        'message': 'Availability updated successfully'
    }), 200
