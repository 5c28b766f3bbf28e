"""
Tests for file uploads and patient medical records.

Rules covered:
- Upload types restrict the accepted content types
- Medical record uploads are stored under the patient's folder and the
  record row is registered by the worker task
- Files above MAX_UPLOAD_BYTES are refused
- Patients only see their own records and only upload into them;
  owners or admins may delete
"""
import io
import os

from app.models import MedicalRecord
from app.services import medical_record_service


def _file(body=b'%PDF-1.4 test', name='scan.pdf', content_type='application/pdf'):
    return {'file': (io.BytesIO(body), name, content_type)}


def _record(patient_email='patient@test.com', **extra):
    data = {
        'patient_email': patient_email,
        'file_name': 'bloods.pdf',
        'file_url': '/uploads/patients/bloods.pdf',
        'content_type': 'application/pdf',
        'file_size_bytes': 1200,
    }
    data.update(extra)
    return medical_record_service.create_record(data)


# ============================================================================
# /api/upload/file
# ============================================================================

def test_upload_profile_photo(client, app, patient_headers):
    resp = client.post('/api/upload/file?type=profile-photo', headers=patient_headers,
                       data=_file(b'\x89PNG....', 'me.png', 'image/png'),
                       content_type='multipart/form-data')

    assert resp.status_code == 201
    data = resp.get_json()['data']
    assert data['key'].startswith('profile-photo_')
    assert data['key'].endswith('.png')
    assert data['url'] == f"http://localhost/uploads/{data['key']}"
    assert os.path.exists(os.path.join(app.config['UPLOAD_FOLDER'], data['key']))


def test_upload_requires_type(client, patient_headers):
    resp = client.post('/api/upload/file', headers=patient_headers,
                       data=_file(), content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Upload type is required'


def test_upload_rejects_unknown_type(client, patient_headers):
    resp = client.post('/api/upload/file?type=xray', headers=patient_headers,
                       data=_file(), content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'].startswith('Invalid upload type')


def test_upload_rejects_wrong_content_type(client, patient_headers):
    resp = client.post('/api/upload/file?type=prescription', headers=patient_headers,
                       data=_file(b'\x89PNG', 'rx.png', 'image/png'),
                       content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Invalid file type. Allowed: application/pdf'


def test_upload_without_file(client, patient_headers):
    resp = client.post('/api/upload/file?type=prescription', headers=patient_headers,
                       data={}, content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'No file provided'


# ============================================================================
# /api/upload/medical-record
# ============================================================================

def test_medical_record_upload_registers_record(client, app, patient_user, receptionist_headers):
    resp = client.post('/api/upload/medical-record?patient_email=patient@test.com'
                       '&record_type=Lab&doctor_name=Dr.%20Lim&record_date=2026-01-15',
                       headers=receptionist_headers, data=_file(), content_type='multipart/form-data')

    assert resp.status_code == 201
    data = resp.get_json()['data']
    assert data['key'].startswith('patients/patient@test.com/')
    assert data['task_id']
    assert os.path.exists(os.path.join(app.config['UPLOAD_FOLDER'], data['key']))

    records = MedicalRecord.query.filter_by(patient_email='patient@test.com').all()
    assert len(records) == 1
    record = records[0]
    assert record.file_name == 'scan.pdf'
    assert record.record_type == 'Lab'
    assert record.doctor_name == 'Dr. Lim'
    assert record.file_size_bytes == len(b'%PDF-1.4 test')
    assert record.record_date.date().isoformat() == '2026-01-15'


def test_medical_record_upload_requires_patient(client, receptionist_headers):
    resp = client.post('/api/upload/medical-record', headers=receptionist_headers,
                       data=_file(), content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'patient_email is required'


def test_medical_record_upload_empty_file(client, patient_user, receptionist_headers):
    resp = client.post('/api/upload/medical-record?patient_email=patient@test.com',
                       headers=receptionist_headers, data=_file(b''), content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'File is empty'


def test_medical_record_upload_size_limit(client, app, patient_user, receptionist_headers):
    app.config['MAX_UPLOAD_BYTES'] = 1024 * 1024

    resp = client.post('/api/upload/medical-record?patient_email=patient@test.com',
                       headers=receptionist_headers, data=_file(b'x' * (1024 * 1024 + 1)),
                       content_type='multipart/form-data')

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'File exceeds the 1MB limit'
    assert MedicalRecord.query.count() == 0


def test_medical_record_upload_unknown_patient_stores_no_row(client, receptionist_headers):
    resp = client.post('/api/upload/medical-record?patient_email=ghost@test.com',
                       headers=receptionist_headers, data=_file(), content_type='multipart/form-data')

    # The file is stored; the worker rejects the registration
    assert resp.status_code == 201
    assert MedicalRecord.query.count() == 0


def test_patient_upload_goes_to_own_records(client, patient_headers, patient_user, insured_patient):
    resp = client.post('/api/upload/medical-record?patient_email=insured@test.com',
                       headers=patient_headers, data=_file(), content_type='multipart/form-data')

    assert resp.status_code == 201
    assert resp.get_json()['data']['key'].startswith('patients/patient@test.com/')
    assert MedicalRecord.query.filter_by(patient_email='insured@test.com').count() == 0
    assert MedicalRecord.query.filter_by(patient_email='patient@test.com').count() == 1


# ============================================================================
# /api/medicalrecords
# ============================================================================

def test_patient_lists_own_records(client, patient_headers, patient_user, insured_patient):
    _record()
    _record('insured@test.com')

    resp = client.get('/api/medicalrecords?patient_email=insured@test.com', headers=patient_headers)

    assert resp.status_code == 200
    assert [r['patient_email'] for r in resp.get_json()['data']] == ['patient@test.com']


def test_staff_lists_patient_records(client, doctor_headers, patient_user):
    _record(record_date='2026-01-01')
    _record(record_date='2026-03-01', file_name='xray.png')

    resp = client.get('/api/medicalrecords?patient_email=patient@test.com', headers=doctor_headers)

    assert [r['file_name'] for r in resp.get_json()['data']] == ['xray.png', 'bloods.pdf']


def test_patient_cannot_view_other_record(client, patient_headers, patient_user, insured_patient):
    record = _record('insured@test.com')

    resp = client.get(f'/api/medicalrecords/{record.id}', headers=patient_headers)

    assert resp.status_code == 403


def test_create_record_rejects_non_patient(client, receptionist_headers, doctor_user):
    resp = client.post('/api/medicalrecords', headers=receptionist_headers, json={
        'patient_email': 'doctor@test.com',
        'file_name': 'a.pdf',
        'file_url': '/uploads/a.pdf',
    })

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Patient not found'


def test_create_record_default_type(client, receptionist_headers, patient_user):
    resp = client.post('/api/medicalrecords', headers=receptionist_headers, json={
        'patient_email': 'patient@test.com',
        'file_name': 'a.pdf',
        'file_url': '/uploads/a.pdf',
    })

    assert resp.status_code == 201
    assert resp.get_json()['data']['record_type'] == 'General'


def test_owner_deletes_record(client, patient_headers, patient_user):
    record_id = _record().id

    resp = client.delete(f'/api/medicalrecords/{record_id}', headers=patient_headers)

    assert resp.status_code == 200
    assert MedicalRecord.query.get(record_id) is None


def test_other_patient_cannot_delete(client, patient_headers, patient_user, insured_patient):
    record_id = _record('insured@test.com').id

    resp = client.delete(f'/api/medicalrecords/{record_id}', headers=patient_headers)

    assert resp.status_code == 403
    assert MedicalRecord.query.get(record_id) is not None


def test_admin_deletes_any_record(client, admin_headers, patient_user):
    record_id = _record().id

    resp = client.delete(f'/api/medicalrecords/{record_id}', headers=admin_headers)

    assert resp.status_code == 200
