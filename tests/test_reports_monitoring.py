"""
Tests for admin reports, exports, monitoring and health checks.
"""
import csv
import io

import pytest

from app.services import monitoring_service


@pytest.fixture
def clinic_activity(make_appointment, patient_user, insured_patient, paid_appointment):
    """One paid self-pay visit plus one unpaid insured booking"""
    make_appointment(insured_patient, time='11:00')
    return paid_appointment


@pytest.fixture(autouse=True)
def clear_error_log():
    monitoring_service.ERROR_LOG.clear()
    yield
    monitoring_service.ERROR_LOG.clear()


# ============================================================================
# Reports
# ============================================================================

def test_appointments_report(client, admin_headers, clinic_activity):
    resp = client.get('/api/admin/reports/appointments?range=last_7', headers=admin_headers)

    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['summary']['total_appointments'] == 2
    assert data['summary']['pending_appointments'] == 1
    assert data['by_status']['Paid'] == 1
    assert data['by_doctor'][0]['doctor_name'] == 'Sarah Lim'
    assert data['by_doctor'][0]['completion_rate'] == 50.0


def test_patients_report(client, admin_headers, clinic_activity):
    resp = client.get('/api/admin/reports/patients', headers=admin_headers)

    data = resp.get_json()['data']
    assert data['summary']['total_patients'] == 2
    assert data['summary']['active_patients'] == 2
    assert data['demographics']['by_insurance'] == {'self-pay': 1, 'AIA': 1}


def test_doctors_report(client, admin_headers, clinic_activity):
    resp = client.get('/api/admin/reports/doctors?filter_by=appointment', headers=admin_headers)

    # Bookings are a week or more out, so the default window misses them
    data = resp.get_json()['data']
    assert data['summary']['total_doctors'] == 1
    assert data['doctors'][0]['statistics']['total_appointments'] == 0

    resp = client.get('/api/admin/reports/doctors', headers=admin_headers)
    doctor = resp.get_json()['data']['doctors'][0]
    assert doctor['statistics']['total_appointments'] == 2
    assert doctor['revenue']['total_earned'] == 127.2


def test_payments_report(client, admin_headers, clinic_activity):
    resp = client.get('/api/admin/reports/payments', headers=admin_headers)

    data = resp.get_json()['data']
    assert data['currency'] == 'MYR'
    assert data['summary']['total_revenue'] == 127.2
    assert data['summary']['total_transactions'] == 1
    assert data['summary']['success_rate'] == 50.0


def test_report_bad_date(client, admin_headers):
    resp = client.get('/api/admin/reports/payments?start_date=yesterday', headers=admin_headers)

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid date format. Use YYYY-MM-DD'


def test_reports_admin_only(client, receptionist_headers):
    resp = client.get('/api/admin/reports/appointments', headers=receptionist_headers)

    assert resp.status_code == 403


# ============================================================================
# Exports
# ============================================================================

def test_csv_export_appointments(client, admin_headers, clinic_activity):
    resp = client.get('/api/admin/reports/export/csv?type=appointments', headers=admin_headers)

    assert resp.status_code == 200
    assert resp.mimetype == 'text/csv'
    assert resp.headers['Content-Disposition'].startswith('attachment; filename="appointments_report_')
    rows = list(csv.reader(io.StringIO(resp.get_data(as_text=True))))
    assert rows[0][:3] == ['Appointment ID', 'Patient Name', 'Patient Email']
    assert len(rows) == 3


def test_csv_export_quotes_values(client, admin_headers, make_user):
    make_user('quoted@test.com', first_name='Ann', last_name='Smith, "Jr"')

    resp = client.get('/api/admin/reports/export/csv?type=patients', headers=admin_headers)

    text = resp.get_data(as_text=True)
    assert '"Ann Smith, ""Jr"""' in text


def test_csv_export_invalid_type(client, admin_headers):
    resp = client.get('/api/admin/reports/export/csv?type=inventory', headers=admin_headers)

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid report type'


def test_pdf_export(client, admin_headers, clinic_activity):
    resp = client.get('/api/admin/reports/export/pdf?type=payments', headers=admin_headers)

    assert resp.status_code == 200
    assert resp.mimetype == 'application/pdf'
    assert resp.data.startswith(b'%PDF')


def test_pdf_export_has_no_doctor_layout(client, admin_headers):
    resp = client.get('/api/admin/reports/export/pdf?type=doctors', headers=admin_headers)

    assert resp.status_code == 400


# ============================================================================
# Monitoring
# ============================================================================

def test_system_status(client, admin_headers, doctor):
    resp = client.get('/api/admin/monitoring/status', headers=admin_headers)

    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['status'] == 'Healthy'
    assert data['database']['status'] == 'Connected'
    assert data['data_counts']['doctors'] == 1


def test_latency(client, admin_headers):
    resp = client.get('/api/admin/monitoring/latency', headers=admin_headers)

    data = resp.get_json()['data']
    assert len(data['endpoints']) == 3
    assert data['statistics']['min_ms'] <= data['statistics']['max_ms']


def test_errors_newest_first(client, admin_headers):
    monitoring_service.record_error('/api/appointments', 'POST', 500, 'Failed to create appointment')
    monitoring_service.record_error('/api/payments', 'GET', 503, 'Database unavailable')

    resp = client.get('/api/admin/monitoring/errors?limit=1', headers=admin_headers)

    data = resp.get_json()['data']
    assert data['total_errors'] == 2
    assert data['critical'] == 1
    assert data['errors_by_type'] == {'HTTP 500': 1, 'HTTP 503': 1}
    assert [e['endpoint'] for e in data['errors']] == ['/api/payments']


def test_storage_estimate(client, admin_headers, clinic_activity):
    resp = client.get('/api/admin/monitoring/storage', headers=admin_headers)

    tables = {t['name']: t for t in resp.get_json()['data']['tables']}
    assert tables['Appointments']['rows'] == 2
    assert tables['Receipts']['rows'] == 1


def test_monitoring_admin_only(client, doctor_headers):
    resp = client.get('/api/admin/monitoring/status', headers=doctor_headers)

    assert resp.status_code == 403


# ============================================================================
# Health
# ============================================================================

def test_health(client):
    resp = client.get('/health')

    assert resp.status_code == 200
    assert resp.get_json()['service'] == 'mediconnect-backend'


def test_health_ready(client):
    resp = client.get('/health/ready')

    assert resp.status_code == 200
    assert resp.get_json()['database'] == 'connected'
