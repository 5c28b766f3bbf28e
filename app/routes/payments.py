import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.extensions import db
from app.services import payment_service, appointment_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

payments_bp = Blueprint('payments', __name__, url_prefix='/api/payments')


def _failed(action, appointment_id, error):
    db.session.rollback()
    logger.error("Payment %s failed for %s: %s", action, appointment_id, error, exc_info=True)
    return jsonify({
        'success': False,
        'error': 'An error occurred while processing the payment'
    }), 500


@payments_bp.route('', methods=['GET'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def list_payments():
    """
    Appointments awaiting or having completed payment
    Query params:
        status: filter to a single status (default PendingPayment and Paid)
    """
    appointments = payment_service.list_payments(status=request.args.get('status', type=str))
    return jsonify({
        'success': True,
        'data': [a.to_dict() for a in appointments]
    }), 200


@payments_bp.route('/initiate', methods=['POST'])
@jwt_required()
def initiate():
    """Body: appointment_id, payment_channel, payment_instrument"""
    data = request.get_json(silent=True) or {}
    if not data.get('appointment_id'):
        return jsonify({
            'success': False,
            'error': 'Field "appointment_id" is required'
        }), 400

    try:
        session = payment_service.initiate(
            data['appointment_id'],
            payment_channel=data.get('payment_channel'),
            payment_instrument=data.get('payment_instrument'),
        )
    except ServiceError:
        raise
    except Exception as e:
        return _failed('initiate', data.get('appointment_id'), e)

    log_audit('payment', 'initiate', user_email=current_user_email(), entity_id=data['appointment_id'],
              details={'payment_session_id': session['payment_session_id']})
    return jsonify({'success': True, 'data': session}), 200


@payments_bp.route('/<session_id>/confirm', methods=['POST'])
@jwt_required()
def confirm(session_id):
    """Body: appointment_id, patient_name (optional)"""
    data = request.get_json(silent=True) or {}
    if not data.get('appointment_id'):
        return jsonify({
            'success': False,
            'error': 'Field "appointment_id" is required'
        }), 400

    try:
        result = payment_service.confirm(session_id, data['appointment_id'], data.get('patient_name'))
    except ServiceError:
        raise
    except Exception as e:
        return _failed('confirm', data.get('appointment_id'), e)

    if result['already_paid']:
        return jsonify({
            'success': True,
            'message': 'Payment already confirmed',
            'data': {'appointment_id': result['appointment'].id, 'status': result['appointment'].status}
        }), 200

    log_audit('payment', 'confirm', user_email=current_user_email(), entity_id=data['appointment_id'],
              details={'payment_session_id': session_id, 'receipt_id': result['receipt'].id})
    return jsonify({
        'success': True,
        'message': 'Payment confirmed',
        'data': {
            'appointment': result['appointment'].to_dict(),
            'receipt': result['receipt'].to_dict(),
            'memo': result['memo'].to_dict(),
        }
    }), 200


@payments_bp.route('/<appointment_id>/mark-paid', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def mark_paid(appointment_id):
    try:
        result = payment_service.mark_paid_manual(appointment_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('mark-paid', appointment_id, e)

    appointment = result['appointment']
    log_audit('payment', 'mark_paid', user_email=current_user_email(), entity_id=appointment_id,
              details={'receipt_id': result['receipt'].id})
    return jsonify({
        'success': True,
        'message': 'Payment marked as paid',
        'data': {
            'appointment_id': appointment.id,
            'receipt_id': result['receipt'].id,
            'status': appointment.status,
            'paid_at': appointment.paid_at.isoformat() if appointment.paid_at else None,
        }
    }), 200


@payments_bp.route('/<appointment_id>/mark-failed', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def mark_failed(appointment_id):
    try:
        appointment = payment_service.mark_failed(appointment_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('mark-failed', appointment_id, e)

    log_audit('payment', 'mark_failed', user_email=current_user_email(), entity_id=appointment_id)
    return jsonify({
        'success': True,
        'message': 'Payment marked as failed',
        'data': appointment.to_dict()
    }), 200


@payments_bp.route('/<appointment_id>/mark-no-show', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def mark_no_show(appointment_id):
    try:
        appointment = appointment_service.mark_no_show(appointment_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('mark-no-show', appointment_id, e)

    log_audit('payment', 'no_show', user_email=current_user_email(), entity_id=appointment_id)
    return jsonify({
        'success': True,
        'message': 'Appointment marked as no-show',
        'data': appointment.to_dict()
    }), 200
