from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt_identity, get_jwt
from app.models import User


def get_current_user():
    """User row for the JWT subject (email), or None"""
    identity = get_jwt_identity()
    if not identity:
        return None
    return User.query.get(identity)


def current_user_email():
    return get_jwt_identity()


def current_user_is_admin():
    return get_jwt().get("role") == "Admin"


def require_role(*roles):
    """
    Decorator to require specific roles
    Usage: @require_role('Receptionist', 'Admin')
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            """
            Require that the current JWT-authenticated user has one of the given roles.
            Must be used together with @jwt_required() on the route.
            """
            user = get_current_user()
            if not user:
                return jsonify({
                    'success': False,
                    'error': 'Authentication required'
                }), 401

            if user.role not in roles:
                return jsonify({
                    'success': False,
                    'error': f'Permission denied. Required roles: {", ".join(roles)}'
                }), 403

            return f(*args, **kwargs)
        return decorated_function
    return decorator
