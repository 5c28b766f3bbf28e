import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt

from app.extensions import db
from app.models.user import ROLE_PATIENT
from app.services import waitlist_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

waitlist_bp = Blueprint('waitlist', __name__, url_prefix='/api/waitlist')


def _failed(action, entry_id, error):
    db.session.rollback()
    logger.error("Failed to %s waitlist entry %s: %s", action, entry_id, error, exc_info=True)
    return jsonify({
        'success': False,
        'error': f'Failed to {action} waitlist entry'
    }), 500


@waitlist_bp.route('', methods=['GET'])
@jwt_required()
def list_entries():
    """
    Query params:
        doctor_id, status (optional)
    """
    entries = waitlist_service.list_entries(
        doctor_id=request.args.get('doctor_id', type=str),
        status=request.args.get('status', type=str),
    )
    if get_jwt().get('role') == ROLE_PATIENT:
        entries = [e for e in entries if e.patient_email == current_user_email()]
    return jsonify({'success': True, 'data': [e.to_dict() for e in entries]}), 200


@waitlist_bp.route('/<entry_id>', methods=['GET'])
@jwt_required()
def get_entry(entry_id):
    entry = waitlist_service.get_entry(entry_id)
    return jsonify({'success': True, 'data': entry.to_dict()}), 200


@waitlist_bp.route('', methods=['POST'])
@jwt_required()
def create_entry():
    """Body: doctor_id, patient_email, preferred_date (YYYY-MM-DD), appointment_type"""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400
    if get_jwt().get('role') == ROLE_PATIENT:
        data['patient_email'] = current_user_email()

    try:
        entry = waitlist_service.create_entry(data)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('create', None, e)

    log_audit('waitlist', 'create', user_email=current_user_email(), entity_id=entry.id)
    return jsonify({
        'success': True,
        'data': entry.to_dict(),
        'message': 'Added to waitlist'
    }), 201


@waitlist_bp.route('/<entry_id>', methods=['PUT'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def update_entry(entry_id):
    """Body: status (Waiting|Notified|Promoted|Cancelled)"""
    data = request.get_json(silent=True) or {}
    if not data.get('status'):
        return jsonify({
            'success': False,
            'error': 'Field "status" is required'
        }), 400

    try:
        entry = waitlist_service.update_status(entry_id, data['status'])
    except ServiceError:
        raise
    except Exception as e:
        return _failed('update', entry_id, e)

    log_audit('waitlist', 'update', user_email=current_user_email(), entity_id=entry_id,
              details={'status': entry.status})
    return jsonify({'success': True, 'data': entry.to_dict()}), 200


@waitlist_bp.route('/<entry_id>', methods=['DELETE'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def delete_entry(entry_id):
    try:
        waitlist_service.delete_entry(entry_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('delete', entry_id, e)

    log_audit('waitlist', 'delete', user_email=current_user_email(), entity_id=entry_id)
    return jsonify({'success': True, 'message': 'Waitlist entry deleted'}), 200


@waitlist_bp.route('/<entry_id>/promote', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def promote(entry_id):
    """Book the waiting patient at 09:00 on their preferred date"""
    try:
        result = waitlist_service.promote(entry_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('promote', entry_id, e)

    log_audit('waitlist', 'promote', user_email=current_user_email(), entity_id=entry_id,
              details={'appointment_id': result['appointment'].id})
    return jsonify({
        'success': True,
        'data': {
            'waitlist': result['waitlist'].to_dict(),
            'appointment': result['appointment'].to_dict(),
        },
        'message': 'Waitlist entry promoted'
    }), 200
