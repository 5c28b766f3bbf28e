import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt

from app.extensions import db
from app.models.user import ROLE_PATIENT
from app.services import notification_service
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError, ForbiddenError

logger = logging.getLogger(__name__)

notifications_bp = Blueprint('notifications', __name__, url_prefix='/api/notifications')


@notifications_bp.route('', methods=['GET'])
@jwt_required()
def list_notifications():
    """
    Latest 50 notifications, newest first
    Query params:
        audience: role name, or comma separated role names (optional)
        doctor_id: also include notifications not tied to a doctor (optional)
        patient_email (optional)
    """
    # Patients get their own notifications plus broadcasts
    patient_email = request.args.get('patient_email', type=str)
    recipient_email = None
    if get_jwt().get('role') == ROLE_PATIENT:
        patient_email, recipient_email = None, current_user_email()

    notifications = notification_service.list_notifications(
        audience=request.args.get('audience', type=str),
        doctor_id=request.args.get('doctor_id', type=str),
        patient_email=patient_email,
        recipient_email=recipient_email,
    )
    return jsonify({'success': True, 'data': [n.to_dict() for n in notifications]}), 200


@notifications_bp.route('/<notification_id>', methods=['GET'])
@jwt_required()
def get_notification(notification_id):
    notification = notification_service.get_notification(notification_id)
    if (get_jwt().get('role') == ROLE_PATIENT and notification.patient_email
            and notification.patient_email != current_user_email()):
        raise ForbiddenError('You can only view your own notifications')
    return jsonify({'success': True, 'data': notification.to_dict()}), 200


@notifications_bp.route('', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin', 'Doctor')
def create_notification():
    """Body: message, audiences (list of roles), type, appointment_id, doctor_id, patient_email"""
    data = request.get_json(silent=True) or {}
    if not data.get('message') or not isinstance(data.get('audiences'), list) or not data['audiences']:
        return jsonify({
            'success': False,
            'error': 'Fields "message" and "audiences" (non-empty list) are required'
        }), 400

    try:
        notification = notification_service.create_notification(
            message=data['message'],
            audiences=data['audiences'],
            type=data.get('type'),
            appointment_id=data.get('appointment_id'),
            doctor_id=data.get('doctor_id'),
            patient_email=data.get('patient_email'),
        )
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to create notification: %s", e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to create notification'
        }), 500

    return jsonify({'success': True, 'data': notification.to_dict()}), 201


@notifications_bp.route('/<notification_id>/read', methods=['PUT'])
@jwt_required()
def mark_read(notification_id):
    notification_service.mark_read(notification_id)
    return '', 204
