"""
Appointment booking rules:
1. Only times in the doctor's weekly schedule can be booked
2. One active appointment per doctor slot; cancelled ones free the slot
3. Reception payment issues exactly one receipt and one queue memo;
   a plain update can never mark an appointment Paid
4. Patients only see their own appointments
5. Unpaid appointments expire after their payment deadline
"""
from datetime import datetime, timedelta

from app.extensions import db
from app.models import Appointment, ConsultationMemo, Notification, Receipt
from app.models.appointment import STATUS_CANCELLED, STATUS_EXPIRED, STATUS_PAID
from app.models.consultation_memo import MEMO_WAITING
from tasks.appointment_tasks import expire_unpaid_appointments

from conftest import next_weekday


def _book(client, headers, doctor, day, time, **extra):
    body = {'doctor_id': doctor.id, 'date': day.isoformat(), 'time': time}
    body.update(extra)
    return client.post('/api/appointments', json=body, headers=headers)


class TestBooking:
    def test_patient_books_free_slot(self, client, patient_headers, patient_user, doctor, booking_day):
        resp = _book(client, patient_headers, doctor, booking_day, '10:00')

        assert resp.status_code == 201
        data = resp.get_json()['data']
        assert data['status'] == 'PendingPayment'
        assert data['patient_email'] == patient_user.email
        assert data['patient_name'] == 'John Doe'
        assert data['doctor_name'] == doctor.name
        assert data['fee'] == 120.0
        assert data['payment_method'] == 'Online'
        assert data['payment_deadline'] == f'{booking_day.isoformat()}T09:00:00'

    def test_booking_notifies_staff(self, client, patient_headers, doctor, booking_day):
        resp = _book(client, patient_headers, doctor, booking_day, '10:00')
        notification = Notification.query.filter_by(appointment_id=resp.get_json()['data']['id']).one()
        assert notification.type == 'appointment.created'
        assert set(notification.to_dict()['audiences']) == {'Doctor', 'Receptionist', 'Admin'}

    def test_taken_slot_is_rejected(self, client, patient_headers, make_user, auth_headers, doctor, booking_day):
        assert _book(client, patient_headers, doctor, booking_day, '10:00').status_code == 201

        other = make_user('second@test.com')
        resp = _book(client, auth_headers(other), doctor, booking_day, '10:00')

        assert resp.status_code == 409
        assert resp.get_json() == {'success': False, 'error': 'This time slot is already booked.'}

    def test_time_outside_schedule_lists_available_slots(self, client, patient_headers, doctor, booking_day):
        resp = _book(client, patient_headers, doctor, booking_day, '09:30')

        assert resp.status_code == 400
        error = resp.get_json()['error']
        assert 'Available slots: 09:00, 10:00' in error

    def test_day_off_has_no_slots(self, client, patient_headers, doctor):
        saturday = next_weekday(5)
        resp = _book(client, patient_headers, doctor, saturday, '10:00')
        assert resp.status_code == 400
        assert resp.get_json()['error'].endswith('Available slots: none')

    def test_cancelled_appointment_frees_the_slot(self, client, patient_user, make_user, auth_headers,
                                                 make_appointment, doctor, booking_day):
        first = make_appointment(patient_user, time='11:00')
        first.status = STATUS_CANCELLED
        db.session.commit()

        other = make_user('second@test.com')
        resp = _book(client, auth_headers(other), doctor, booking_day, '11:00')
        assert resp.status_code == 201

    def test_unknown_patient_is_not_found(self, client, receptionist_headers, doctor, booking_day):
        resp = _book(client, receptionist_headers, doctor, booking_day, '10:00', patient_email='ghost@test.com')
        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'Patient with email ghost@test.com not found'

    def test_missing_field(self, client, receptionist_headers, doctor, booking_day):
        resp = client.post('/api/appointments', json={'doctor_id': doctor.id, 'date': booking_day.isoformat()},
                           headers=receptionist_headers)
        assert resp.status_code == 400

    def test_slots_endpoint_splits_free_and_taken(self, client, patient_headers, patient_user,
                                                  make_appointment, doctor, booking_day):
        make_appointment(patient_user, time='13:00')

        resp = client.get(f'/api/appointments/slots?doctor_id={doctor.id}&date={booking_day.isoformat()}',
                          headers=patient_headers)

        data = resp.get_json()['data']
        assert resp.status_code == 200
        assert len(data['slots']) == 8
        assert data['taken'] == ['13:00']
        assert '13:00' not in data['available']
        assert len(data['available']) == 7


class TestPayment:
    def test_mark_paid_issues_one_receipt_and_one_memo(self, client, receptionist_headers, patient_user,
                                                       make_appointment):
        appointment = make_appointment(patient_user)

        resp = client.post(f'/api/appointments/{appointment.id}/mark-paid', json={'recorded_by': 'Rita'},
                           headers=receptionist_headers)

        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['appointment']['status'] == STATUS_PAID
        assert data['appointment']['recorded_by'] == 'Rita'
        assert data['receipt']['total'] == 127.2
        assert data['receipt']['patient_due'] == 127.2
        assert data['memo']['status'] == MEMO_WAITING
        assert data['memo']['memo_number'] == 1
        assert Receipt.query.filter_by(appointment_id=appointment.id).count() == 1
        assert ConsultationMemo.query.filter_by(appointment_id=appointment.id).count() == 1

    def test_insured_patient_receipt(self, client, receptionist_headers, insured_patient, make_appointment):
        appointment = make_appointment(insured_patient)

        resp = client.post(f'/api/appointments/{appointment.id}/mark-paid', headers=receptionist_headers)

        receipt = resp.get_json()['data']['receipt']
        assert receipt['insurance_covered'] == 60.0
        assert receipt['patient_due'] == 67.2
        assert receipt['line_items'][-1] == {'description': 'Insurance (AIA)', 'amount': -60.0}

    def test_paying_twice_is_rejected(self, client, receptionist_headers, paid_appointment):
        resp = client.post(f'/api/appointments/{paid_appointment.id}/mark-paid', headers=receptionist_headers)

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Appointment already paid'
        assert Receipt.query.filter_by(appointment_id=paid_appointment.id).count() == 1

    def test_memo_numbers_increase_per_doctor(self, receptionist_headers, client, patient_user, make_user,
                                              make_appointment):
        first = make_appointment(patient_user, time='09:00')
        second = make_appointment(make_user('second@test.com'), time='10:00')

        client.post(f'/api/appointments/{first.id}/mark-paid', headers=receptionist_headers)
        resp = client.post(f'/api/appointments/{second.id}/mark-paid', headers=receptionist_headers)

        assert resp.get_json()['data']['memo']['memo_number'] == 2

    def test_patient_cannot_mark_paid(self, client, patient_headers, patient_user, make_appointment):
        appointment = make_appointment(patient_user)
        resp = client.post(f'/api/appointments/{appointment.id}/mark-paid', headers=patient_headers)
        assert resp.status_code == 403

    def test_update_cannot_set_paid(self, client, receptionist_headers, patient_user, make_appointment):
        appointment = make_appointment(patient_user)
        status_before = appointment.status

        resp = client.put(f'/api/appointments/{appointment.id}', json={'status': 'Paid', 'room': 'R2'},
                          headers=receptionist_headers)

        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Use mark-paid to record a payment'
        reloaded = Appointment.query.get(appointment.id)
        assert reloaded.status == status_before
        assert reloaded.room != 'R2'
        assert Receipt.query.filter_by(appointment_id=appointment.id).count() == 0
        assert ConsultationMemo.query.filter_by(appointment_id=appointment.id).count() == 0

    def test_update_other_status_still_allowed(self, client, receptionist_headers, patient_user,
                                               make_appointment):
        appointment = make_appointment(patient_user)

        resp = client.put(f'/api/appointments/{appointment.id}', json={'status': 'Cancelled'},
                          headers=receptionist_headers)

        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == STATUS_CANCELLED


class TestFrontDesk:
    def test_check_in_requires_payment(self, client, receptionist_headers, patient_user, make_appointment):
        appointment = make_appointment(patient_user)
        resp = client.post(f'/api/appointments/{appointment.id}/check-in', headers=receptionist_headers)
        assert resp.status_code == 400
        assert resp.get_json()['error'] == 'Must be paid first'

    def test_check_in_reuses_existing_memo(self, client, receptionist_headers, paid_appointment):
        resp = client.post(f'/api/appointments/{paid_appointment.id}/check-in', headers=receptionist_headers)

        assert resp.status_code == 200
        assert ConsultationMemo.query.filter_by(appointment_id=paid_appointment.id).count() == 1

    def test_no_show_notifies_staff(self, client, receptionist_headers, patient_user, make_appointment):
        appointment = make_appointment(patient_user)

        resp = client.post(f'/api/appointments/{appointment.id}/no-show', headers=receptionist_headers)

        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'NoShow'
        notification = Notification.query.filter_by(appointment_id=appointment.id, type='appointment.noshow').one()
        assert notification.message.endswith(f'for appointment on {appointment.date.isoformat()}.')

    def test_reschedule_to_taken_slot_conflicts(self, client, receptionist_headers, patient_user, make_user,
                                                make_appointment, booking_day):
        make_appointment(make_user('second@test.com'), time='14:00')
        appointment = make_appointment(patient_user, time='10:00')

        resp = client.post(f'/api/appointments/{appointment.id}/reschedule',
                           json={'date': booking_day.isoformat(), 'time': '14:00'},
                           headers=receptionist_headers)

        assert resp.status_code == 409

    def test_reschedule_moves_appointment(self, client, receptionist_headers, patient_user, make_appointment):
        appointment = make_appointment(patient_user, time='10:00')
        tuesday = next_weekday(1)

        resp = client.post(f'/api/appointments/{appointment.id}/reschedule',
                           json={'date': tuesday.isoformat(), 'time': '15:00'},
                           headers=receptionist_headers)

        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['status'] == 'Rescheduled'
        assert data['date'] == tuesday.isoformat()
        assert data['time'] == '15:00'

    def test_delete_removes_dependents(self, client, receptionist_headers, paid_appointment):
        resp = client.delete(f'/api/appointments/{paid_appointment.id}', headers=receptionist_headers)

        assert resp.status_code == 200
        assert Appointment.query.get(paid_appointment.id) is None
        assert Receipt.query.filter_by(appointment_id=paid_appointment.id).count() == 0
        assert ConsultationMemo.query.filter_by(appointment_id=paid_appointment.id).count() == 0


class TestVisibility:
    def test_patient_list_is_limited_to_own(self, client, patient_headers, patient_user, make_user,
                                           make_appointment):
        make_appointment(patient_user, time='09:00')
        make_appointment(make_user('second@test.com'), time='10:00')

        resp = client.get('/api/appointments?patient_email=second@test.com', headers=patient_headers)

        data = resp.get_json()['data']
        assert [a['patient_email'] for a in data] == [patient_user.email]

    def test_patient_cannot_open_other_appointment(self, client, patient_headers, make_user, make_appointment):
        other = make_appointment(make_user('second@test.com'))
        resp = client.get(f'/api/appointments/{other.id}', headers=patient_headers)
        assert resp.status_code == 403

    def test_requires_token(self, client):
        resp = client.get('/api/appointments')
        assert resp.status_code == 401
        assert resp.get_json()['success'] is False


class TestExpiry:
    def test_overdue_unpaid_appointments_expire(self, app, patient_user, make_user, make_appointment):
        overdue = make_appointment(patient_user, time='09:00')
        upcoming = make_appointment(make_user('second@test.com'), time='10:00')
        overdue.payment_deadline = datetime.utcnow() - timedelta(minutes=1)
        db.session.commit()

        result = expire_unpaid_appointments()

        assert result['success'] is True
        assert result['expired_ids'] == [overdue.id]
        assert Appointment.query.get(overdue.id).status == STATUS_EXPIRED
        assert Appointment.query.get(upcoming.id).status == 'PendingPayment'

    def test_paid_appointments_never_expire(self, app, paid_appointment):
        paid_appointment.payment_deadline = datetime.utcnow() - timedelta(days=1)
        db.session.commit()

        assert expire_unpaid_appointments()['expired_ids'] == []
