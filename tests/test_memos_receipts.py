"""
Tests for consultation memos and receipts.

Rules covered:
- Memo status changes stamp started_at/completed_at
- Empty clinical text never overwrites what is already written
- Patients can only read their own receipts
"""
from app.models import ConsultationMemo, Receipt
from app.services import appointment_service


def _memo(appointment):
    return ConsultationMemo.query.filter_by(appointment_id=appointment.id).first()


def test_list_memos_by_status(client, receptionist_headers, paid_appointment):
    resp = client.get('/api/consultationmemos?status=Waiting', headers=receptionist_headers)

    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert len(data) == 1
    assert data[0]['appointment_id'] == paid_appointment.id
    assert data[0]['memo_number'] == 1


def test_memo_for_appointment(client, doctor_headers, paid_appointment):
    resp = client.get(f'/api/consultationmemos/appointment/{paid_appointment.id}', headers=doctor_headers)

    assert resp.status_code == 200
    assert resp.get_json()['data']['status'] == 'Waiting'


def test_memo_for_unpaid_appointment(client, doctor_headers, make_appointment, patient_user):
    appointment = make_appointment(patient_user)

    resp = client.get(f'/api/consultationmemos/appointment/{appointment.id}', headers=doctor_headers)

    assert resp.status_code == 404


def test_memo_in_progress_then_completed(client, doctor_headers, paid_appointment):
    memo_id = _memo(paid_appointment).id

    resp = client.put(f'/api/consultationmemos/{memo_id}/status', headers=doctor_headers,
                      json={'status': 'InProgress', 'clinical_summary': 'Mild fever'})
    assert resp.status_code == 200
    assert resp.get_json()['data']['started_at'] is not None

    resp = client.put(f'/api/consultationmemos/{memo_id}/status', headers=doctor_headers,
                      json={'status': 'Completed', 'clinical_summary': '   ', 'prescriptions': 'Paracetamol'})
    data = resp.get_json()['data']
    assert data['status'] == 'Completed'
    assert data['completed_at'] is not None
    assert data['clinical_summary'] == 'Mild fever'
    assert data['prescriptions'] == 'Paracetamol'


def test_memo_invalid_status(client, doctor_headers, paid_appointment):
    resp = client.put(f'/api/consultationmemos/{_memo(paid_appointment).id}/status', headers=doctor_headers,
                      json={'status': 'Done'})

    assert resp.status_code == 400


def test_patient_cannot_update_memo(client, patient_headers, paid_appointment):
    resp = client.put(f'/api/consultationmemos/{_memo(paid_appointment).id}/status', headers=patient_headers,
                      json={'status': 'Cancelled'})

    assert resp.status_code == 403


def test_receipt_for_appointment(client, patient_headers, paid_appointment):
    resp = client.get(f'/api/receipts/appointment/{paid_appointment.id}', headers=patient_headers)

    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['total'] == 127.2
    assert data['patient_due'] == 127.2
    assert data['currency'] == 'MYR'
    assert data['recorded_by'] == 'Front Desk'


def test_patient_lists_only_own_receipts(client, patient_headers, paid_appointment, make_appointment,
                                         insured_patient):
    other = make_appointment(insured_patient, time='11:00')
    appointment_service.mark_paid(other.id, recorded_by='Front Desk')

    resp = client.get('/api/receipts?patient_email=insured@test.com', headers=patient_headers)

    assert [r['patient_email'] for r in resp.get_json()['data']] == ['patient@test.com']
    assert Receipt.query.count() == 2


def test_patient_cannot_view_other_receipt(client, make_appointment, insured_patient, patient_user,
                                           auth_headers):
    appointment = make_appointment(insured_patient, time='11:00')
    receipt = appointment_service.mark_paid(appointment.id)['receipt']

    resp = client.get(f'/api/receipts/{receipt.id}', headers=auth_headers(patient_user))

    assert resp.status_code == 403


def test_unknown_receipt(client, receptionist_headers):
    resp = client.get('/api/receipts/rcpt-missing', headers=receptionist_headers)

    assert resp.status_code == 404
