from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt

from app.models.user import ROLE_PATIENT
from app.services import receipt_service
from app.utils.decorators import current_user_email
from app.utils.errors import NotFoundError, ForbiddenError

receipts_bp = Blueprint('receipts', __name__, url_prefix='/api/receipts')


def _check_owner(receipt):
    if get_jwt().get('role') == ROLE_PATIENT and receipt.patient_email != current_user_email():
        raise ForbiddenError('You can only view your own receipts')


@receipts_bp.route('', methods=['GET'])
@jwt_required()
def list_receipts():
    """
    Query params:
        patient_email, doctor_id (optional; patients are limited to their own)
    """
    patient_email = request.args.get('patient_email', type=str)
    if get_jwt().get('role') == ROLE_PATIENT:
        patient_email = current_user_email()
    receipts = receipt_service.list_receipts(
        patient_email=patient_email,
        doctor_id=request.args.get('doctor_id', type=str),
    )
    return jsonify({'success': True, 'data': [r.to_dict() for r in receipts]}), 200


@receipts_bp.route('/<receipt_id>', methods=['GET'])
@jwt_required()
def get_receipt(receipt_id):
    receipt = receipt_service.get_receipt(receipt_id)
    _check_owner(receipt)
    return jsonify({'success': True, 'data': receipt.to_dict()}), 200


@receipts_bp.route('/appointment/<appointment_id>', methods=['GET'])
@jwt_required()
def get_receipt_for_appointment(appointment_id):
    receipt = receipt_service.get_receipt_for_appointment(appointment_id)
    if not receipt:
        raise NotFoundError('Receipt not found for this appointment')
    _check_owner(receipt)
    return jsonify({'success': True, 'data': receipt.to_dict()}), 200
