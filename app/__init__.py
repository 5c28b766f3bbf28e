from flask import Flask, jsonify, request, send_from_directory, has_app_context
from werkzeug.exceptions import HTTPException
from .extensions import db, migrate, bcrypt, login_manager, celery
import logging
import os

# Setup basic logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Create Flask application factory"""
    app = Flask(__name__)

    # Load configuration
    if config_name:
        from app.config import config
        config_class = config.get(config_name, config['default'])
    else:
        from app.config import get_config
        config_class = get_config()
    if hasattr(config_class, 'validate'):
        config_class.validate()
    app.config.from_object(config_class)

    # Ensure production mode if FLASK_ENV is production
    if os.getenv('FLASK_ENV') == 'production':
        app.config['DEBUG'] = False
        app.config['TESTING'] = False

    # Initialize extensions first (before error handlers)
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    login_manager.init_app(app)

    # Initialize JWT
    from flask_jwt_extended import JWTManager
    jwt = JWTManager(app)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({
            'success': False,
            'error': 'Authentication required'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({
            'success': False,
            'error': f'Invalid token: {reason}'
        }), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({
            'success': False,
            'error': 'Token has expired'
        }), 401

    # Initialize CORS
    from app.utils.cors import init_cors
    init_cors(app)

    # Initialize Celery
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_serializer=app.config['CELERY_TASK_SERIALIZER'],
        accept_content=app.config['CELERY_ACCEPT_CONTENT'],
        result_serializer=app.config['CELERY_RESULT_SERIALIZER'],
        timezone=app.config['CELERY_TIMEZONE'],
        enable_utc=app.config['CELERY_ENABLE_UTC'],
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
        beat_schedule={
            'expire-unpaid-appointments': {
                'task': 'tasks.expire_unpaid_appointments',
                'schedule': float(app.config['EXPIRE_UNPAID_INTERVAL_SECONDS']),
            },
        },
    )

    # Make celery tasks work with Flask app context
    class FlaskAppContextTask(celery.Task):
        """Make celery tasks work with Flask app context."""
        def __call__(self, *args, **kwargs):
            # Eager calls from inside a request reuse its context
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskAppContextTask

    # Error handlers
    from app.utils.errors import ServiceError

    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        db.session.rollback()
        return jsonify({
            'success': False,
            'error': e.message
        }), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        if e.code == 404:
            message = 'Endpoint not found'
        elif e.code == 405:
            message = 'Method not allowed'
        else:
            message = e.description
        return jsonify({
            'success': False,
            'error': message
        }), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        db.session.rollback()
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Internal server error. Check server logs for details.'
        }), 500

    # Setup logging
    if not app.debug and not app.testing:
        from logging.handlers import RotatingFileHandler

        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = RotatingFileHandler(
            os.path.join('logs', app.config.get('LOG_FILE', 'app.log')),
            maxBytes=10240000,
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO))
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('Application startup')

    # Security headers middleware
    @app.after_request
    def set_security_headers(response):
        """Add security headers to all responses"""
        if not app.debug:
            response.headers['X-Content-Type-Options'] = 'nosniff'
            response.headers['X-Frame-Options'] = 'DENY'
            response.headers['X-XSS-Protection'] = '1; mode=block'
            response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
            # Only add HSTS if using HTTPS
            if request.is_secure:
                response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    # Feed 5xx responses into the monitoring error log
    @app.after_request
    def record_server_errors(response):
        if response.status_code >= 500:
            from app.services.monitoring_service import record_error
            message = ''
            if response.is_json:
                message = (response.get_json(silent=True) or {}).get('error', '')
            record_error(request.path, request.method, response.status_code, message)
        return response

    # Configure Flask-Login
    login_manager.session_protection = 'strong'

    # User loader function - Flask-Login calls this to get user
    @login_manager.user_loader
    def load_user(user_id):
        from app.models import User
        return User.query.get(user_id)

    # Unauthorized handler - returns JSON instead of redirect
    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({
            'success': False,
            'error': 'Authentication required'
        }), 401

    # Stored uploads (local storage backend)
    @app.route('/uploads/<path:filename>', methods=['GET'])
    def uploaded_file(filename):
        return send_from_directory(os.path.abspath(app.config['UPLOAD_FOLDER']), filename)

    # Import models to register them with SQLAlchemy
    with app.app_context():
        from . import models  # noqa: F401

        # Register blueprints
        from .routes import (
            auth_bp, users_bp, admin_users_bp, profile_bp, doctors_bp, appointment_bp, payments_bp,
            memos_bp, receipts_bp, notifications_bp, sessions_bp, waitlist_bp, records_bp, history_bp,
            upload_bp, reports_bp, monitoring_bp, health_bp,
        )
        app.register_blueprint(health_bp)  # Register health check first
        app.register_blueprint(auth_bp)
        app.register_blueprint(users_bp)
        app.register_blueprint(admin_users_bp)
        app.register_blueprint(profile_bp)
        app.register_blueprint(doctors_bp)
        app.register_blueprint(appointment_bp)
        app.register_blueprint(payments_bp)
        app.register_blueprint(memos_bp)
        app.register_blueprint(receipts_bp)
        app.register_blueprint(notifications_bp)
        app.register_blueprint(sessions_bp)
        app.register_blueprint(waitlist_bp)
        app.register_blueprint(records_bp)
        app.register_blueprint(history_bp)
        app.register_blueprint(upload_bp)
        app.register_blueprint(reports_bp)
        app.register_blueprint(monitoring_bp)

    return app
