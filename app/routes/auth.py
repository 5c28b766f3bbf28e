import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    jwt_required,
    get_jwt_identity,
    get_jwt,
)
from app.extensions import db
from app.models.user import ROLE_PATIENT
from app.services import user_service
from app.utils.audit import log_audit
from app.utils.decorators import get_current_user
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login endpoint - authenticates a user and returns JWT tokens"""
    data = request.get_json(silent=True)

    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    email = data.get('email')
    password = data.get('password')

    if not email or not password:
        return jsonify({
            'success': False,
            'error': 'Email and password required'
        }), 400

    user = user_service.authenticate(email, password)
    if not user:
        return jsonify({
            'success': False,
            'error': 'Invalid email or password'
        }), 401

    # Email is the identity; role and doctor id travel as claims
    additional_claims = user_service.token_claims(user)
    access_token = create_access_token(
        identity=user.email,
        additional_claims=additional_claims,
        fresh=True,
    )
    refresh_token = create_refresh_token(
        identity=user.email,
        additional_claims=additional_claims,
    )
    logger.info("User %s logged in", user.email)

    return jsonify({
        'success': True,
        'data': user_service.login_payload(user),
        'access_token': access_token,
        'refresh_token': refresh_token,
        'token_type': 'bearer',
    }), 200


@auth_bp.route('/register', methods=['POST'])
def register():
    """Public sign-up; always creates a Patient account"""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    try:
        user = user_service.create_user(data, role=ROLE_PATIENT, require_password=True)
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Registration failed: %s", e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to register user'
        }), 500

    log_audit('user', 'register', user_email=user.email, entity_id=user.email)
    return jsonify({
        'success': True,
        'data': user.to_dict(),
        'message': 'Registration successful'
    }), 201


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """Stateless JWT: the client deletes its tokens"""
    return jsonify({
        'success': True,
        'message': 'Logged out successfully (delete tokens on client)'
    }), 200


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def me():
    user = get_current_user()
    if not user:
        return jsonify({'success': False, 'error': 'User not found'}), 404

    data = user.to_dict()
    data['doctor_id'] = get_jwt().get('doctor_id')
    return jsonify({'success': True, 'data': data}), 200


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    """Refresh access token using refresh token"""
    identity = get_jwt_identity()
    claims = get_jwt()
    additional_claims = {
        'role': claims.get('role'),
        'doctor_id': claims.get('doctor_id'),
        'name': claims.get('name'),
    }
    new_access_token = create_access_token(
        identity=identity,
        additional_claims=additional_claims,
        fresh=False
    )
    return jsonify({
        'success': True,
        'access_token': new_access_token,
        'token_type': 'bearer',
    }), 200
