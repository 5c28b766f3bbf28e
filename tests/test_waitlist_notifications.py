"""
Tests for the waitlist and the notification feed.

Rules covered:
- Patients can only add themselves and only see their own entries
- Promotion books an unpaid Online appointment at 09:00 on the preferred date
- An entry can only be promoted once
- Marking an entry Notified stamps notified_at
- The feed filters by audience and marking read returns 204
- Patients only see their own targeted notifications plus broadcasts
"""
from app.models import Appointment, Notification, Waitlist
from app.services import notification_service

from conftest import next_weekday


def _add(client, headers, doctor, patient_email='patient@test.com', day=None):
    return client.post('/api/waitlist', headers=headers, json={
        'doctor_id': doctor.id,
        'patient_email': patient_email,
        'preferred_date': (day or next_weekday(1)).isoformat(),
        'appointment_type': 'Follow-up',
    })


# ============================================================================
# Waitlist
# ============================================================================

def test_patient_joins_waitlist_as_self(client, doctor, patient_headers, insured_patient):
    resp = _add(client, patient_headers, doctor, patient_email='insured@test.com')

    assert resp.status_code == 201
    body = resp.get_json()
    assert body['message'] == 'Added to waitlist'
    assert body['data']['patient_email'] == 'patient@test.com'
    assert body['data']['patient_name'] == 'John Doe'
    assert body['data']['status'] == 'Waiting'
    assert body['data']['doctor_name'] == 'Sarah Lim'


def test_waitlist_unknown_doctor(client, patient_headers):
    resp = client.post('/api/waitlist', headers=patient_headers, json={
        'doctor_id': 'doc-missing',
        'preferred_date': next_weekday(1).isoformat(),
    })

    assert resp.status_code == 404


def test_waitlist_bad_date(client, doctor, patient_headers):
    resp = client.post('/api/waitlist', headers=patient_headers, json={
        'doctor_id': doctor.id,
        'preferred_date': 'next tuesday',
    })

    assert resp.status_code == 400


def test_patient_sees_only_own_entries(client, doctor, patient_headers, receptionist_headers, insured_patient):
    _add(client, patient_headers, doctor)
    _add(client, receptionist_headers, doctor, patient_email='insured@test.com')

    mine = client.get('/api/waitlist', headers=patient_headers).get_json()['data']
    everyone = client.get('/api/waitlist', headers=receptionist_headers).get_json()['data']

    assert [e['patient_email'] for e in mine] == ['patient@test.com']
    assert len(everyone) == 2


def test_promote_books_nine_am(client, doctor, patient_headers, receptionist_headers):
    day = next_weekday(1)
    entry_id = _add(client, patient_headers, doctor, day=day).get_json()['data']['id']

    resp = client.post(f'/api/waitlist/{entry_id}/promote', headers=receptionist_headers)

    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert data['waitlist']['status'] == 'Promoted'
    appointment = data['appointment']
    assert appointment['date'] == day.isoformat()
    assert appointment['time'] == '09:00'
    assert appointment['status'] == 'PendingPayment'
    assert appointment['payment_method'] == 'Online'
    assert appointment['type'] == 'Follow-up'
    assert appointment['insurance'] == 'self-pay'
    assert Appointment.query.get(appointment['id']) is not None

    notes = Notification.query.filter_by(type='waitlist.promoted').all()
    assert len(notes) == 1
    assert notes[0].patient_email == 'patient@test.com'
    assert 'promoted from waitlist' in notes[0].message


def test_promote_twice(client, doctor, patient_headers, receptionist_headers):
    entry_id = _add(client, patient_headers, doctor).get_json()['data']['id']
    client.post(f'/api/waitlist/{entry_id}/promote', headers=receptionist_headers)

    resp = client.post(f'/api/waitlist/{entry_id}/promote', headers=receptionist_headers)

    assert resp.status_code == 400
    assert resp.get_json()['error'] == 'Waitlist entry already promoted'
    assert Appointment.query.count() == 1


def test_patient_cannot_promote(client, doctor, patient_headers):
    entry_id = _add(client, patient_headers, doctor).get_json()['data']['id']

    resp = client.post(f'/api/waitlist/{entry_id}/promote', headers=patient_headers)

    assert resp.status_code == 403


def test_mark_notified_stamps_time(client, doctor, patient_headers, receptionist_headers):
    entry_id = _add(client, patient_headers, doctor).get_json()['data']['id']

    resp = client.put(f'/api/waitlist/{entry_id}', headers=receptionist_headers, json={'status': 'Notified'})

    assert resp.status_code == 200
    assert resp.get_json()['data']['notified_at'] is not None


def test_invalid_waitlist_status(client, doctor, patient_headers, receptionist_headers):
    entry_id = _add(client, patient_headers, doctor).get_json()['data']['id']

    resp = client.put(f'/api/waitlist/{entry_id}', headers=receptionist_headers, json={'status': 'Lost'})

    assert resp.status_code == 400


def test_delete_entry(client, doctor, patient_headers, receptionist_headers):
    entry_id = _add(client, patient_headers, doctor).get_json()['data']['id']

    resp = client.delete(f'/api/waitlist/{entry_id}', headers=receptionist_headers)

    assert resp.status_code == 200
    assert Waitlist.query.get(entry_id) is None
    assert client.get(f'/api/waitlist/{entry_id}', headers=receptionist_headers).status_code == 404


# ============================================================================
# Notifications
# ============================================================================

def test_feed_filters_by_audience(client, patient_headers, doctor):
    notification_service.create_notification('Room 3 is closed', ['Receptionist'])
    notification_service.create_notification('Dr. Lim is running late', ['Patient', 'Doctor'], doctor_id=doctor.id)

    resp = client.get('/api/notifications?audience=Patient', headers=patient_headers)

    assert resp.status_code == 200
    messages = [n['message'] for n in resp.get_json()['data']]
    assert messages == ['Dr. Lim is running late']


def test_feed_multiple_audiences(client, patient_headers):
    notification_service.create_notification('A', ['Receptionist'])
    notification_service.create_notification('B', ['Admin'])
    notification_service.create_notification('C', ['Patient'])

    resp = client.get('/api/notifications?audience=Receptionist,Admin', headers=patient_headers)

    assert sorted(n['message'] for n in resp.get_json()['data']) == ['A', 'B']


def test_create_notification_requires_audiences(client, receptionist_headers):
    resp = client.post('/api/notifications', headers=receptionist_headers, json={'message': 'hello'})

    assert resp.status_code == 400


def test_create_notification(client, receptionist_headers):
    resp = client.post('/api/notifications', headers=receptionist_headers,
                       json={'message': 'Clinic closes at 3pm', 'audiences': ['Patient']})

    assert resp.status_code == 201
    assert resp.get_json()['data']['audiences'] == ['Patient']


def test_mark_read(client, patient_headers):
    note = notification_service.create_notification('Hello', ['Patient'])

    resp = client.put(f'/api/notifications/{note.id}/read', headers=patient_headers)

    assert resp.status_code == 204
    assert Notification.query.get(note.id).is_read is True


def test_mark_read_unknown(client, patient_headers):
    resp = client.put('/api/notifications/note-missing/read', headers=patient_headers)

    assert resp.status_code == 404


def test_patient_feed_ignores_other_patient_email(client, patient_headers, patient_user, insured_patient):
    notification_service.create_notification('Your lab results are ready', ['Patient'],
                                             patient_email='insured@test.com')
    notification_service.create_notification('Your receipt is ready', ['Patient'],
                                             patient_email='patient@test.com')
    notification_service.create_notification('Clinic closed on Friday', ['Patient'])

    resp = client.get('/api/notifications?patient_email=insured@test.com', headers=patient_headers)

    messages = sorted(n['message'] for n in resp.get_json()['data'])
    assert messages == ['Clinic closed on Friday', 'Your receipt is ready']


def test_staff_feed_filters_by_patient(client, receptionist_headers, insured_patient):
    notification_service.create_notification('For Ina', ['Receptionist'], patient_email='insured@test.com')
    notification_service.create_notification('Broadcast', ['Receptionist'])

    resp = client.get('/api/notifications?patient_email=insured@test.com', headers=receptionist_headers)

    assert [n['message'] for n in resp.get_json()['data']] == ['For Ina']


def test_patient_cannot_read_other_patient_notification(client, patient_headers, insured_patient):
    note = notification_service.create_notification('Private', ['Patient'], patient_email='insured@test.com')

    resp = client.get(f'/api/notifications/{note.id}', headers=patient_headers)

    assert resp.status_code == 403


def test_patient_reads_own_notification(client, patient_headers):
    note = notification_service.create_notification('Mine', ['Patient'], patient_email='patient@test.com')

    resp = client.get(f'/api/notifications/{note.id}', headers=patient_headers)

    assert resp.status_code == 200
    assert resp.get_json()['data']['message'] == 'Mine'
