"""
Role-specific profile endpoints
"""
import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.extensions import db
from app.services import user_service
from app.utils.audit import log_audit
from app.utils.decorators import get_current_user, current_user_email, current_user_is_admin
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

profile_bp = Blueprint('profile', __name__, url_prefix='/api')


def _can_access(email):
    return current_user_is_admin() or (current_user_email() or '') == email.strip().lower()


def _forbidden():
    return jsonify({
        'success': False,
        'error': 'You can only access your own profile'
    }), 403


def _save(update_fn, email, data):
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400
    try:
        profile = update_fn(email, data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Profile update failed for %s: %s", email, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to update profile'
        }), 500

    log_audit('profile', 'update', user_email=current_user_email(), entity_id=email.strip().lower())
    return jsonify({
        'success': True,
        'data': profile,
        'message': 'Profile updated successfully'
    }), 200


@profile_bp.route('/profile', methods=['GET'])
@jwt_required()
def get_own_profile():
    user = get_current_user()
    if not user:
        return jsonify({'success': False, 'error': 'User not found'}), 404
    return jsonify({'success': True, 'data': user_service.get_own_profile(user)}), 200


@profile_bp.route('/profile', methods=['PUT'])
@jwt_required()
def update_own_profile():
    user = get_current_user()
    if not user:
        return jsonify({'success': False, 'error': 'User not found'}), 404
    return _save(lambda _email, data: user_service.update_own_profile(user, data),
                 user.email, request.get_json(silent=True))


@profile_bp.route('/patients/<email>/profile', methods=['GET'])
@jwt_required()
def get_patient_profile(email):
    if not _can_access(email):
        return _forbidden()
    return jsonify({'success': True, 'data': user_service.get_patient_profile(email)}), 200


@profile_bp.route('/patients/<email>/profile', methods=['PUT'])
@jwt_required()
def update_patient_profile(email):
    if not _can_access(email):
        return _forbidden()
    return _save(user_service.update_patient_profile, email, request.get_json(silent=True))


@profile_bp.route('/admins/<email>/profile', methods=['GET'])
@jwt_required()
def get_admin_profile(email):
    if not _can_access(email):
        return _forbidden()
    return jsonify({'success': True, 'data': user_service.get_admin_profile(email)}), 200


@profile_bp.route('/admins/<email>/profile', methods=['PUT'])
@jwt_required()
def update_admin_profile(email):
    if not _can_access(email):
        return _forbidden()
    return _save(user_service.update_admin_profile, email, request.get_json(silent=True))


@profile_bp.route('/doctors/<email>/profile', methods=['GET'])
@jwt_required()
def get_doctor_profile(email):
    return jsonify({'success': True, 'data': user_service.get_doctor_profile(email)}), 200


@profile_bp.route('/doctors/<email>/profile', methods=['PUT'])
@jwt_required()
def update_doctor_profile(email):
    if not _can_access(email):
        return _forbidden()
    return _save(user_service.update_doctor_profile, email, request.get_json(silent=True))


@profile_bp.route('/receptionists/<email>/profile', methods=['GET'])
@jwt_required()
def get_receptionist_profile(email):
    """Missing receptionist profiles are created on first read"""
    if not _can_access(email):
        return _forbidden()
    return jsonify({'success': True, 'data': user_service.get_receptionist_profile(email)}), 200


@profile_bp.route('/receptionists/<email>/profile', methods=['PUT'])
@jwt_required()
def update_receptionist_profile(email):
    if not _can_access(email):
        return _forbidden()
    return _save(user_service.update_receptionist_profile, email, request.get_json(silent=True))
