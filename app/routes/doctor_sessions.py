"""
Doctor session (consultation queue) endpoints
"""
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.extensions import db
from app.services import doctor_session_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

sessions_bp = Blueprint('doctor_sessions', __name__, url_prefix='/api/doctorsessions')


def _run(action, doctor_id, fn):
    """Run a queue action, audit it and render the session (plus memo when there is one)"""
    try:
        result = fn()
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Doctor session %s failed for %s: %s", action, doctor_id, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'An error occurred'
        }), 500

    if isinstance(result, dict):
        session, memo = result['session'], result.get('memo')
    else:
        session, memo = result, None

    log_audit('doctor_session', action, user_email=current_user_email(), entity_id=doctor_id,
              details={'status': session.status, 'active_memo_id': session.active_memo_id})
    data = session.to_dict()
    if memo is not None:
        data['memo'] = memo.to_dict()
    return jsonify({'success': True, 'data': data}), 200


@sessions_bp.route('', methods=['GET'])
@jwt_required()
def list_sessions():
    sessions = doctor_session_service.list_sessions()
    return jsonify({'success': True, 'data': [s.to_dict() for s in sessions]}), 200


@sessions_bp.route('/<doctor_id>', methods=['GET'])
@jwt_required()
def get_session(doctor_id):
    session = doctor_session_service.get_session(doctor_id)
    return jsonify({'success': True, 'data': session.to_dict()}), 200


@sessions_bp.route('/<doctor_id>', methods=['PUT'])
@jwt_required()
@require_role('Doctor', 'Receptionist', 'Admin')
def update_session(doctor_id):
    """Body: status, active_memo_id, note"""
    data = request.get_json(silent=True) or {}
    return _run('update', doctor_id, lambda: doctor_session_service.update_session(doctor_id, data))


@sessions_bp.route('/<doctor_id>/start-next', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Admin')
def start_next(doctor_id):
    return _run('start_next', doctor_id, lambda: doctor_session_service.start_next(doctor_id))


@sessions_bp.route('/<doctor_id>/complete', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Admin')
def complete(doctor_id):
    return _run('complete', doctor_id, lambda: doctor_session_service.complete(doctor_id))


@sessions_bp.route('/<doctor_id>/reset', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Admin')
def reset(doctor_id):
    return _run('reset', doctor_id, lambda: doctor_session_service.reset(doctor_id))


@sessions_bp.route('/<doctor_id>/break', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Admin')
def take_break(doctor_id):
    return _run('break', doctor_id, lambda: doctor_session_service.take_break(doctor_id))


@sessions_bp.route('/<doctor_id>/resume', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Admin')
def resume(doctor_id):
    return _run('resume', doctor_id, lambda: doctor_session_service.resume(doctor_id))


@sessions_bp.route('/<doctor_id>/emergency', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Admin')
def emergency(doctor_id):
    """
    Body (optional):
        note: shown to staff (default "Emergency - session paused")
        reschedule_to: ISO datetime; when given the current patient is rescheduled instead of cancelled
    """
    data = request.get_json(silent=True) or {}
    return _run('emergency', doctor_id, lambda: doctor_session_service.emergency(
        doctor_id, note=data.get('note'), reschedule_to=data.get('reschedule_to')))


@sessions_bp.route('/<doctor_id>/recall-patient', methods=['POST'])
@jwt_required()
@require_role('Doctor', 'Admin')
def recall_patient(doctor_id):
    """Body: memo_id"""
    data = request.get_json(silent=True) or {}
    if not data.get('memo_id'):
        return jsonify({
            'success': False,
            'error': 'Field "memo_id" is required'
        }), 400
    return _run('recall', doctor_id, lambda: doctor_session_service.recall_patient(doctor_id, data['memo_id']))


@sessions_bp.route('/ensure/<doctor_email>', methods=['POST'])
@jwt_required()
def ensure(doctor_email):
    """Create the doctor profile and session for a Doctor user if they are missing"""
    try:
        result = doctor_session_service.ensure_for_email(doctor_email)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to ensure doctor session for %s: %s", doctor_email, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'An error occurred'
        }), 500

    return jsonify({
        'success': True,
        'data': {
            'doctor': result['doctor'].to_dict(),
            'session': result['session'].to_dict(),
        }
    }), 200
