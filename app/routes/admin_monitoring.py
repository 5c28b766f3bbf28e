from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required

from app.services import monitoring_service
from app.utils.decorators import require_role

monitoring_bp = Blueprint('admin_monitoring', __name__, url_prefix='/api/admin/monitoring')


@monitoring_bp.route('/status', methods=['GET'])
@jwt_required()
@require_role('Admin')
def status():
    return jsonify({'success': True, 'data': monitoring_service.system_status()}), 200


@monitoring_bp.route('/latency', methods=['GET'])
@jwt_required()
@require_role('Admin')
def latency():
    return jsonify({'success': True, 'data': monitoring_service.latency()}), 200


@monitoring_bp.route('/errors', methods=['GET'])
@jwt_required()
@require_role('Admin')
def errors():
    """Recent 5xx responses recorded by this process"""
    limit = min(request.args.get('limit', 50, type=int), monitoring_service.MAX_ERROR_LOG)
    return jsonify({'success': True, 'data': monitoring_service.errors(limit)}), 200


@monitoring_bp.route('/storage', methods=['GET'])
@jwt_required()
@require_role('Admin')
def storage():
    return jsonify({'success': True, 'data': monitoring_service.storage()}), 200
