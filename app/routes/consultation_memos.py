import logging

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.extensions import db
from app.services import consultation_memo_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError, NotFoundError

logger = logging.getLogger(__name__)

memos_bp = Blueprint('consultation_memos', __name__, url_prefix='/api/consultationmemos')


@memos_bp.route('', methods=['GET'])
@jwt_required()
@require_role('Doctor', 'Receptionist', 'Admin')
def list_memos():
    """
    Query params:
        doctor_id, status (optional)
    """
    memos = consultation_memo_service.list_memos(
        doctor_id=request.args.get('doctor_id', type=str),
        status=request.args.get('status', type=str),
    )
    return jsonify({'success': True, 'data': [m.to_dict() for m in memos]}), 200


@memos_bp.route('/<memo_id>', methods=['GET'])
@jwt_required()
def get_memo(memo_id):
    memo = consultation_memo_service.get_memo(memo_id)
    return jsonify({'success': True, 'data': memo.to_dict()}), 200


@memos_bp.route('/appointment/<appointment_id>', methods=['GET'])
@jwt_required()
def get_memo_for_appointment(appointment_id):
    memo = consultation_memo_service.get_memo_for_appointment(appointment_id)
    if not memo:
        raise NotFoundError('Consultation memo not found for this appointment')
    return jsonify({'success': True, 'data': memo.to_dict()}), 200


@memos_bp.route('/<memo_id>/status', methods=['PUT'])
@jwt_required()
@require_role('Doctor', 'Receptionist', 'Admin')
def update_status(memo_id):
    """
    Body: status (Waiting|InProgress|Completed|Rescheduled|Cancelled),
          clinical_summary, prescriptions, lab_orders, note (optional)
    """
    data = request.get_json(silent=True) or {}
    if not data.get('status'):
        return jsonify({
            'success': False,
            'error': 'Field "status" is required'
        }), 400

    try:
        memo = consultation_memo_service.update_status(
            memo_id,
            data['status'],
            clinical_summary=data.get('clinical_summary'),
            prescriptions=data.get('prescriptions'),
            lab_orders=data.get('lab_orders'),
            note=data.get('note'),
        )
    except ServiceError:
        raise
    except Exception as e:
        db.session.rollback()
        logger.error("Failed to update memo %s: %s", memo_id, e, exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to update consultation memo'
        }), 500

    log_audit('consultation_memo', 'status', user_email=current_user_email(), entity_id=memo.id,
              details={'status': memo.status})
    return jsonify({
        'success': True,
        'data': memo.to_dict(),
        'message': 'Consultation memo updated'
    }), 200
