"""
Medical history: consultation notes and prescriptions
"""
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt

from app.extensions import db
from app.models.user import ROLE_PATIENT, ROLE_DOCTOR
from app.services import medical_history_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError, ForbiddenError

logger = logging.getLogger(__name__)

history_bp = Blueprint('medical_history', __name__, url_prefix='/api/medical-history')


def _own_only(patient_email):
    if get_jwt().get('role') == ROLE_PATIENT and current_user_email() != (patient_email or '').strip().lower():
        raise ForbiddenError('You can only view your own medical history')


def _write(kind, add_fn):
    # Step 1: Get data from request
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400
    if not data.get('patient_email'):
        return jsonify({
            'success': False,
            'error': 'Field "patient_email" is required'
        }), 400

    # Step 2: Doctors always write as themselves
    if get_jwt().get('role') == ROLE_DOCTOR:
        data['doctor_email'] = current_user_email()

    # Step 3: Validate the active consultation and save
    try:
        entry = add_fn(data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to add %s: %s", kind, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': f'Failed to add {kind}'
        }), 500

    log_audit('medical_history', kind, user_email=current_user_email(), entity_id=entry.id,
              details={'patient_email': entry.patient_email})
    return jsonify({
        'success': True,
        'data': entry.to_dict(),
        'message': f'{kind.capitalize()} added'
    }), 201


@history_bp.route('/notes', methods=['POST'])
@jwt_required()
@require_role('Doctor')
def add_note():
    """Body: patient_email, diagnosis, treatment, follow_up, notes"""
    return _write('note', medical_history_service.add_note)


@history_bp.route('/prescriptions', methods=['POST'])
@jwt_required()
@require_role('Doctor')
def add_prescription():
    """Body: patient_email, medicine, dosage_instructions, notes. Renders a PDF."""
    return _write('prescription', medical_history_service.add_prescription)


@history_bp.route('/<patient_email>', methods=['GET'])
@jwt_required()
def get_history(patient_email):
    _own_only(patient_email)
    entries = medical_history_service.history_for_patient(patient_email)
    return jsonify({'success': True, 'data': [e.to_dict() for e in entries]}), 200


@history_bp.route('/patient/<email>/prescriptions', methods=['GET'])
@jwt_required()
def get_prescriptions(email):
    """
    Query params:
        search: medicine, dosage or notes contains
        doctor: doctor name contains
        from, to: YYYY-MM-DD
    """
    _own_only(email)
    entries = medical_history_service.prescriptions_for_patient(
        email,
        search=request.args.get('search', type=str),
        doctor=request.args.get('doctor', type=str),
        date_from=request.args.get('from', type=str),
        date_to=request.args.get('to', type=str),
    )
    return jsonify({'success': True, 'data': [e.to_dict() for e in entries]}), 200


@history_bp.route('/entry/<int:entry_id>', methods=['GET'])
@jwt_required()
def get_entry(entry_id):
    entry = medical_history_service.get_entry(entry_id)
    _own_only(entry.patient_email)
    return jsonify({'success': True, 'data': entry.to_dict()}), 200
