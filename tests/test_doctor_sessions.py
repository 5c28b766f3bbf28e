"""
Consultation queue transitions for a doctor session.
"""
from datetime import datetime

from app.extensions import db
from app.models import ConsultationMemo, DoctorSession, Doctor
from app.models.consultation_memo import MEMO_COMPLETED, MEMO_IN_PROGRESS, MEMO_WAITING
from app.services import appointment_service


def _memo(appointment):
    return ConsultationMemo.query.filter_by(appointment_id=appointment.id).one()


def _post(client, headers, doctor, action, **body):
    return client.post(f'/api/doctorsessions/{doctor.id}/{action}', json=body, headers=headers)


class TestQueue:
    def test_new_doctor_starts_idle(self, client, doctor_headers, doctor):
        resp = client.get(f'/api/doctorsessions/{doctor.id}', headers=doctor_headers)
        assert resp.get_json()['data']['status'] == 'Idle'
        assert resp.get_json()['data']['active_memo_id'] is None

    def test_start_next_takes_oldest_waiting_memo(self, client, doctor_headers, doctor, paid_appointment,
                                                  make_user, make_appointment):
        later = make_appointment(make_user('second@test.com'), time='10:00')
        appointment_service.mark_paid(later.id)

        resp = _post(client, doctor_headers, doctor, 'start-next')

        assert resp.status_code == 200
        data = resp.get_json()['data']
        first_memo = _memo(paid_appointment)
        assert data['status'] == 'Busy'
        assert data['active_memo_id'] == first_memo.id
        assert data['memo']['status'] == MEMO_IN_PROGRESS
        assert first_memo.started_at is not None
        assert _memo(later).status == MEMO_WAITING

    def test_start_next_with_empty_queue(self, client, doctor_headers, doctor):
        resp = _post(client, doctor_headers, doctor, 'start-next')
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'No patients waiting'

    def test_start_next_auto_completes_current(self, client, doctor_headers, doctor, paid_appointment,
                                               make_user, make_appointment):
        later = make_appointment(make_user('second@test.com'), time='10:00')
        appointment_service.mark_paid(later.id)
        _post(client, doctor_headers, doctor, 'start-next')

        resp = _post(client, doctor_headers, doctor, 'start-next')

        assert resp.get_json()['data']['active_memo_id'] == _memo(later).id
        first = _memo(paid_appointment)
        assert first.status == MEMO_COMPLETED
        assert first.note == 'Auto-completed when starting next patient'

    def test_complete_returns_to_idle(self, client, doctor_headers, doctor, paid_appointment):
        _post(client, doctor_headers, doctor, 'start-next')

        resp = _post(client, doctor_headers, doctor, 'complete')

        data = resp.get_json()['data']
        assert data['status'] == 'Idle'
        assert data['active_memo_id'] is None
        memo = _memo(paid_appointment)
        assert memo.status == MEMO_COMPLETED
        assert memo.completed_at >= memo.started_at

    def test_break_and_resume(self, client, doctor_headers, doctor, paid_appointment):
        _post(client, doctor_headers, doctor, 'start-next')

        assert _post(client, doctor_headers, doctor, 'break').get_json()['data']['status'] == 'Break'
        # Resume goes back to Busy because a memo is still active
        assert _post(client, doctor_headers, doctor, 'resume').get_json()['data']['status'] == 'Busy'

    def test_reset_clears_everything(self, client, doctor_headers, doctor, paid_appointment):
        _post(client, doctor_headers, doctor, 'start-next')

        resp = _post(client, doctor_headers, doctor, 'reset')

        data = resp.get_json()['data']
        assert data['status'] == 'Idle'
        assert data['active_memo_id'] is None
        assert _memo(paid_appointment).note == 'Auto-completed due to session reset'


class TestEmergency:
    def test_emergency_cancels_current_patient(self, client, doctor_headers, doctor, paid_appointment):
        _post(client, doctor_headers, doctor, 'start-next')

        resp = _post(client, doctor_headers, doctor, 'emergency')

        data = resp.get_json()['data']
        assert data['status'] == 'Emergency'
        assert data['active_memo_id'] is None
        assert data['note'] == 'Emergency - session paused'
        assert _memo(paid_appointment).status == 'Cancelled'

    def test_emergency_can_reschedule_current_patient(self, client, doctor_headers, doctor, paid_appointment):
        _post(client, doctor_headers, doctor, 'start-next')

        _post(client, doctor_headers, doctor, 'emergency', note='Called to ER', reschedule_to='2030-01-07T10:00:00Z')

        memo = _memo(paid_appointment)
        assert memo.status == 'Rescheduled'
        assert memo.rescheduled_to == datetime(2030, 1, 7, 10, 0)
        assert memo.note == 'Called to ER'
        assert DoctorSession.query.get(doctor.id).note == 'Called to ER'

    def test_recall_patient(self, client, doctor_headers, doctor, paid_appointment):
        memo = _memo(paid_appointment)

        resp = _post(client, doctor_headers, doctor, 'recall-patient', memo_id=memo.id)

        assert resp.status_code == 200
        assert resp.get_json()['data']['active_memo_id'] == memo.id
        assert memo.status == MEMO_IN_PROGRESS

    def test_recall_requires_memo_id(self, client, doctor_headers, doctor):
        assert _post(client, doctor_headers, doctor, 'recall-patient').status_code == 400

    def test_patient_cannot_drive_queue(self, client, patient_headers, doctor):
        assert _post(client, patient_headers, doctor, 'start-next').status_code == 403


class TestEnsure:
    def test_ensure_creates_missing_profile_and_session(self, client, admin_headers, doctor_user, doctor):
        DoctorSession.query.filter_by(doctor_id=doctor.id).delete()
        Doctor.query.filter_by(id=doctor.id).delete()
        db.session.commit()

        resp = client.post(f'/api/doctorsessions/ensure/{doctor_user.email}', headers=admin_headers)

        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['doctor']['email'] == doctor_user.email
        assert data['doctor']['specialty'] == 'General Practice'
        assert data['session']['status'] == 'Idle'

    def test_ensure_for_non_doctor(self, client, admin_headers, patient_user):
        resp = client.post(f'/api/doctorsessions/ensure/{patient_user.email}', headers=admin_headers)
        assert resp.status_code == 404
