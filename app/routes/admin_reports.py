"""
Admin reporting and exports
"""
import logging

from flask import Blueprint, Response, request, jsonify
from flask_jwt_extended import jwt_required

from app.services import report_service
from app.utils.audit import log_audit
from app.utils.decorators import require_role, current_user_email
from app.utils.errors import ServiceError

logger = logging.getLogger(__name__)

reports_bp = Blueprint('admin_reports', __name__, url_prefix='/api/admin/reports')


def _report(name, build):
    try:
        data = build()
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error building {name} report: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': f'Failed to generate {name} report'
        }), 500
    return jsonify({'success': True, 'data': data}), 200


@reports_bp.route('/appointments', methods=['GET'])
@jwt_required()
@require_role('Admin')
def appointments_report():
    """Query params: range=last_7|last_30|last_90|ytd"""
    return _report('appointments', lambda: report_service.appointments_report(request.args.get('range', type=str)))


@reports_bp.route('/patients', methods=['GET'])
@jwt_required()
@require_role('Admin')
def patients_report():
    """Query params: start_date, end_date (YYYY-MM-DD)"""
    return _report('patients', lambda: report_service.patients_report(
        request.args.get('start_date', type=str), request.args.get('end_date', type=str)))


@reports_bp.route('/doctors', methods=['GET'])
@jwt_required()
@require_role('Admin')
def doctors_report():
    """Query params: start_date, end_date, filter_by=created|appointment"""
    return _report('doctors', lambda: report_service.doctors_report(
        request.args.get('start_date', type=str),
        request.args.get('end_date', type=str),
        request.args.get('filter_by', 'created', type=str),
    ))


@reports_bp.route('/payments', methods=['GET'])
@jwt_required()
@require_role('Admin')
def payments_report():
    return _report('payments', lambda: report_service.payments_report(
        request.args.get('start_date', type=str), request.args.get('end_date', type=str)))


@reports_bp.route('/export/csv', methods=['GET'])
@jwt_required()
@require_role('Admin')
def export_csv():
    """Query params: type=appointments|patients|doctors|payments, start_date, end_date"""
    report_type = request.args.get('type', type=str)
    filename, body = report_service.export_csv(
        report_type, request.args.get('start_date', type=str), request.args.get('end_date', type=str))

    log_audit('report', 'export', user_email=current_user_email(), entity_id=filename, details={'format': 'csv'})
    resp = Response(body, status=200, mimetype='text/csv')
    resp.headers['Content-Disposition'] = f'attachment; filename="{filename}"'
    resp.headers['Cache-Control'] = 'no-store'
    return resp


@reports_bp.route('/export/pdf', methods=['GET'])
@jwt_required()
@require_role('Admin')
def export_pdf():
    """Query params: type=appointments|patients|payments, start_date, end_date"""
    report_type = request.args.get('type', type=str)
    try:
        filename, body = report_service.export_pdf(
            report_type, request.args.get('start_date', type=str), request.args.get('end_date', type=str))
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Error exporting {report_type} PDF: {e}", exc_info=True)
        return jsonify({
            'success': False,
            'error': 'Failed to export report'
        }), 500

    log_audit('report', 'export', user_email=current_user_email(), entity_id=filename, details={'format': 'pdf'})
    resp = Response(body, status=200, mimetype='application/pdf')
    resp.headers['Content-Length'] = str(len(body))
    resp.headers['Content-Disposition'] = f'attachment; filename="{filename}"'
    resp.headers['Cache-Control'] = 'no-store'
    return resp
