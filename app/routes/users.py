import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.extensions import db
from app.services import user_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email, current_user_is_admin
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

users_bp = Blueprint('users', __name__, url_prefix='/api/users')
admin_users_bp = Blueprint('admin_users', __name__, url_prefix='/api/admin/users')


@users_bp.route('/search', methods=['GET'])
@jwt_required()
@require_role('Admin', 'Receptionist', 'Doctor')
def search_users():
    """
    Search users by email, name or national id
    Query params:
        q: keyword (blank returns an empty list)
    """
    users = user_service.search_users(request.args.get('q', type=str))
    return jsonify({
        'success': True,
        'data': [u.to_dict() for u in users]
    }), 200


def _set_avatar(email):
    # Step 1: Only the owner or an admin may change the avatar
    if not current_user_is_admin() and (current_user_email() or '') != email.strip().lower():
        return jsonify({
            'success': False,
            'error': 'You can only change your own avatar'
        }), 403

    # Step 2: Validate body
    data = request.get_json(silent=True) or {}

    # Step 3: Save
    try:
        user = user_service.set_avatar(email, data.get('avatar_url'))
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Avatar update failed for %s: %s", email, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to update avatar'
        }), 500

    log_audit('user', 'avatar', user_email=current_user_email(), entity_id=user.email)
    return jsonify({
        'success': True,
        'data': {'email': user.email, 'avatar_url': user.avatar_url},
        'message': 'Avatar updated successfully'
    }), 200


@users_bp.route('/<email>/avatar', methods=['PATCH'])
@jwt_required()
def set_avatar(email):
    return _set_avatar(email)


# Admin user management

@admin_users_bp.route('', methods=['GET'])
@jwt_required()
@require_role('Admin')
def list_users():
    """
    List users
    Query params:
        role: Patient, Doctor, Receptionist or Admin (optional)
    """
    users = user_service.list_users(role=request.args.get('role', type=str))
    return jsonify({
        'success': True,
        'data': [u.to_dict() for u in users],
        'total': len(users)
    }), 200


@admin_users_bp.route('/<email>', methods=['GET'])
@jwt_required()
@require_role('Admin')
def get_user(email):
    user = user_service.get_user(email)
    return jsonify({'success': True, 'data': user.to_dict()}), 200


@admin_users_bp.route('', methods=['POST'])
@jwt_required()
@require_role('Admin')
def create_user():
    """
    Create a user of any role
    Access: Admin
    """
    # Step 1: Get data from request
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    # Step 2: Create user and role profile
    try:
        user = user_service.create_user(data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to create user: %s", e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to create user'
        }), 500

    # Step 3: Audit and respond
    log_audit('user', 'create', user_email=current_user_email(), entity_id=user.email, details={'role': user.role})
    return jsonify({
        'success': True,
        'data': user.to_dict(),
        'message': 'User created successfully'
    }), 201


@admin_users_bp.route('/<email>', methods=['PUT'])
@jwt_required()
@require_role('Admin')
def update_user(email):
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    try:
        user = user_service.update_user(email, data)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to update user %s: %s", email, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to update user'
        }), 500

    log_audit('user', 'update', user_email=current_user_email(), entity_id=user.email)
    return jsonify({
        'success': True,
        'data': user.to_dict(),
        'message': 'User updated successfully'
    }), 200


@admin_users_bp.route('/<email>', methods=['DELETE'])
@jwt_required()
@require_role('Admin')
def delete_user(email):
    """Delete a user and its doctor/receptionist profile. Admins cannot delete themselves."""
    try:
        user_service.delete_user(email, acting_email=current_user_email())
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to delete user %s: %s", email, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to delete user'
        }), 500

    log_audit('user', 'delete', user_email=current_user_email(), entity_id=email.strip().lower())
    return jsonify({
        'success': True,
        'message': 'User deleted successfully'
    }), 200


@admin_users_bp.route('/<email>/avatar', methods=['PATCH'])
@jwt_required()
@require_role('Admin')
def admin_set_avatar(email):
    return _set_avatar(email)
