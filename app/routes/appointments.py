import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt

from app.extensions import db
from app.models.user import ROLE_PATIENT
from app.services import appointment_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

appointment_bp = Blueprint('appointment', __name__, url_prefix='/api/appointments')


def _failed(action, appointment_id, error):
    db.session.rollback()
    logger.error("Failed to %s appointment %s: %s", action, appointment_id, error, exc_info=True)
    return jsonify({
        'success': False,
        'error': f'Failed to {action} appointment'
    }), 500


@appointment_bp.route('', methods=['GET'])
@jwt_required()
def list_appointments():
    """
    List appointments ordered by date and time.
    Query params:
        patient_email, doctor_id, date (YYYY-MM-DD), status,
        start_date, end_date (all optional)
    Patients only ever see their own appointments.
    """
    # Step 1: Get query parameters
    patient_email = request.args.get('patient_email', type=str)
    if get_jwt().get('role') == ROLE_PATIENT:
        patient_email = current_user_email()

    # Step 2: Query
    appointments = appointment_service.list_appointments(
        patient_email=patient_email,
        doctor_id=request.args.get('doctor_id', type=str),
        on_date=request.args.get('date', type=str),
        status=request.args.get('status', type=str),
        start_date=request.args.get('start_date', type=str),
        end_date=request.args.get('end_date', type=str),
    )

    return jsonify({
        'success': True,
        'data': [a.to_dict() for a in appointments],
        'total': len(appointments)
    }), 200


@appointment_bp.route('/slots', methods=['GET'])
@jwt_required()
def get_slots():
    """
    Bookable times for a doctor on a date
    Query params:
        doctor_id, date (YYYY-MM-DD)
    """
    doctor_id = request.args.get('doctor_id', type=str)
    on_date = request.args.get('date', type=str)
    if not doctor_id or not on_date:
        return jsonify({
            'success': False,
            'error': 'Query params "doctor_id" and "date" are required'
        }), 400

    return jsonify({
        'success': True,
        'data': appointment_service.available_slots(doctor_id, on_date)
    }), 200


@appointment_bp.route('/patient/<email>', methods=['GET'])
@jwt_required()
def list_for_patient(email):
    if get_jwt().get('role') == ROLE_PATIENT and current_user_email() != email.strip().lower():
        return jsonify({
            'success': False,
            'error': 'You can only view your own appointments'
        }), 403
    appointments = appointment_service.list_for_patient(email)
    return jsonify({'success': True, 'data': [a.to_dict() for a in appointments]}), 200


@appointment_bp.route('/doctor/<doctor_id>', methods=['GET'])
@jwt_required()
@require_role('Doctor', 'Receptionist', 'Admin')
def list_for_doctor(doctor_id):
    appointments = appointment_service.list_for_doctor(doctor_id)
    return jsonify({'success': True, 'data': [a.to_dict() for a in appointments]}), 200


@appointment_bp.route('/<appointment_id>', methods=['GET'])
@jwt_required()
def get_appointment(appointment_id):
    appointment = appointment_service.get_appointment(appointment_id)
    if get_jwt().get('role') == ROLE_PATIENT and appointment.patient_email != current_user_email():
        return jsonify({
            'success': False,
            'error': 'You can only view your own appointments'
        }), 403
    return jsonify({'success': True, 'data': appointment.to_dict()}), 200


@appointment_bp.route('', methods=['POST'])
@jwt_required()
def create_appointment():
    """
    Book an appointment in one of the doctor's free slots
    Body: doctor_id, patient_email, date, time, type, payment_method (Online|Reception), fee
    """
    # Step 1: Get data from request
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    # Step 2: Validate required fields
    if get_jwt().get('role') == ROLE_PATIENT:
        data['patient_email'] = current_user_email()
    for field in ('doctor_id', 'patient_email', 'date', 'time'):
        if not data.get(field):
            return jsonify({
                'success': False,
                'error': f'Field "{field}" is required'
            }), 400

    # Step 3: Book (slot and capacity checks happen in the service)
    try:
        appointment = appointment_service.create_appointment(data)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('create', None, e)

    log_audit('appointment', 'create', user_email=current_user_email(), entity_id=appointment.id,
              details={'doctor_id': appointment.doctor_id, 'date': appointment.date.isoformat(), 'time': appointment.time})
    return jsonify({
        'success': True,
        'data': appointment.to_dict(),
        'message': 'Appointment created successfully'
    }), 201


@appointment_bp.route('/<appointment_id>', methods=['PUT'])
@jwt_required()
@require_role('Receptionist', 'Admin', 'Doctor')
def update_appointment(appointment_id):
    data = request.get_json(silent=True)
    if not data:
        return jsonify({
            'success': False,
            'error': 'Request body must be JSON'
        }), 400

    try:
        appointment = appointment_service.update_appointment(appointment_id, data)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('update', appointment_id, e)

    log_audit('appointment', 'update', user_email=current_user_email(), entity_id=appointment.id)
    return jsonify({
        'success': True,
        'data': appointment.to_dict(),
        'message': 'Appointment updated successfully'
    }), 200


@appointment_bp.route('/<appointment_id>', methods=['DELETE'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def delete_appointment(appointment_id):
    try:
        appointment_service.delete_appointment(appointment_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('delete', appointment_id, e)

    log_audit('appointment', 'delete', user_email=current_user_email(), entity_id=appointment_id)
    return jsonify({
        'success': True,
        'message': 'Appointment deleted successfully'
    }), 200


@appointment_bp.route('/<appointment_id>/mark-paid', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def mark_paid(appointment_id):
    """
    Record a payment taken at the desk. Issues the receipt and the queue memo.
    Body (optional): recorded_by, amount, payment_method
    """
    data = request.get_json(silent=True) or {}
    try:
        result = appointment_service.mark_paid(
            appointment_id,
            recorded_by=data.get('recorded_by') or current_user_email(),
            amount=data.get('amount'),
            payment_method=data.get('payment_method'),
        )
    except ServiceError:
        raise
    except Exception as e:
        return _failed('mark paid', appointment_id, e)

    log_audit('appointment', 'payment', user_email=current_user_email(), entity_id=appointment_id,
              details={'receipt_id': result['receipt'].id, 'memo_id': result['memo'].id})
    return jsonify({
        'success': True,
        'data': {
            'appointment': result['appointment'].to_dict(),
            'receipt': result['receipt'].to_dict(),
            'memo': result['memo'].to_dict(),
        },
        'message': 'Payment recorded'
    }), 200


@appointment_bp.route('/<appointment_id>/reschedule', methods=['POST'])
@jwt_required()
def reschedule(appointment_id):
    """Body: date (YYYY-MM-DD), time (HH:MM)"""
    data = request.get_json(silent=True) or {}
    if not data.get('date') or not data.get('time'):
        return jsonify({
            'success': False,
            'error': 'Fields "date" and "time" are required'
        }), 400

    if get_jwt().get('role') == ROLE_PATIENT:
        owned = appointment_service.get_appointment(appointment_id)
        if owned.patient_email != current_user_email():
            return jsonify({
                'success': False,
                'error': 'You can only reschedule your own appointments'
            }), 403

    try:
        appointment = appointment_service.reschedule(appointment_id, data['date'], data['time'])
    except ServiceError:
        raise
    except Exception as e:
        return _failed('reschedule', appointment_id, e)

    log_audit('appointment', 'reschedule', user_email=current_user_email(), entity_id=appointment_id,
              details={'date': appointment.date.isoformat(), 'time': appointment.time})
    return jsonify({
        'success': True,
        'data': appointment.to_dict(),
        'message': 'Appointment rescheduled'
    }), 200


@appointment_bp.route('/<appointment_id>/no-show', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin', 'Doctor')
def no_show(appointment_id):
    try:
        appointment = appointment_service.mark_no_show(appointment_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('mark no-show for', appointment_id, e)

    log_audit('appointment', 'no_show', user_email=current_user_email(), entity_id=appointment_id)
    return jsonify({
        'success': True,
        'data': appointment.to_dict(),
        'message': 'Appointment marked as no-show'
    }), 200


@appointment_bp.route('/<appointment_id>/expire', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def expire(appointment_id):
    try:
        appointment = appointment_service.expire(appointment_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('expire', appointment_id, e)

    log_audit('appointment', 'expire', user_email=current_user_email(), entity_id=appointment_id)
    return jsonify({
        'success': True,
        'data': appointment.to_dict(),
        'message': 'Appointment expired'
    }), 200


@appointment_bp.route('/<appointment_id>/check-in', methods=['POST'])
@jwt_required()
@require_role('Receptionist', 'Admin')
def check_in(appointment_id):
    """Put a paid patient in the doctor's waiting queue"""
    try:
        memo = appointment_service.check_in(appointment_id)
    except ServiceError:
        raise
    except Exception as e:
        return _failed('check in', appointment_id, e)

    log_audit('appointment', 'check_in', user_email=current_user_email(), entity_id=appointment_id,
              details={'memo_id': memo.id})
    return jsonify({
        'success': True,
        'data': memo.to_dict(),
        'message': 'Patient checked in'
    }), 200
