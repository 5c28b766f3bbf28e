"""
Global test fixtures for pytest.

Provides reusable fixtures for API testing:
- Flask app on TestingConfig (in-memory SQLite, eager Celery, tmp upload folder)
- Auth headers by role (Admin, Receptionist, Doctor, Patient)
- Model factories (users, doctors, appointments)
"""
from datetime import date, timedelta

import pytest
from flask_jwt_extended import create_access_token

from app import create_app
from app.extensions import db
from app.models import Doctor, DoctorSession
from app.models.user import ROLE_ADMIN, ROLE_DOCTOR, ROLE_PATIENT, ROLE_RECEPTIONIST
from app.services import appointment_service, user_service

PASSWORD = 'testpass123'


def next_weekday(weekday=0, weeks_ahead=1):
    """Date of the given weekday (0=Monday) at least a week from today"""
    today = date.today()
    return today + timedelta(days=(weekday - today.weekday()) % 7 + 7 * weeks_ahead)


# ============================================================================
# App and client
# ============================================================================

@pytest.fixture
def app(tmp_path):
    app = create_app('testing')
    app.config['UPLOAD_FOLDER'] = str(tmp_path / 'uploads')

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


# ============================================================================
# Factories
# ============================================================================

@pytest.fixture
def make_user(app):
    """Create a user through the service so role profiles are created too"""
    def _make(email, role=ROLE_PATIENT, first_name='Test', last_name='User', **extra):
        data = dict(email=email, first_name=first_name, last_name=last_name,
                    password=PASSWORD, confirm_password=PASSWORD, **extra)
        return user_service.create_user(data, role=role)
    return _make


@pytest.fixture
def auth_headers(app):
    """Bearer headers for an existing user, with the same claims login issues"""
    def _headers(user):
        token = create_access_token(identity=user.email, additional_claims=user_service.token_claims(user))
        return {'Authorization': f'Bearer {token}'}
    return _headers


@pytest.fixture
def admin_user(make_user):
    return make_user('admin@test.com', role=ROLE_ADMIN, first_name='Ada', last_name='Admin')


@pytest.fixture
def receptionist_user(make_user):
    return make_user('reception@test.com', role=ROLE_RECEPTIONIST, first_name='Rita', last_name='Desk')


@pytest.fixture
def patient_user(make_user):
    return make_user('patient@test.com', first_name='John', last_name='Doe', insurance='self-pay')


@pytest.fixture
def insured_patient(make_user):
    return make_user('insured@test.com', first_name='Ina', last_name='Sured', insurance='AIA')


@pytest.fixture
def doctor_user(make_user):
    # New doctors get the default Mon-Fri 09:00-17:00 schedule (eight hourly slots)
    return make_user('doctor@test.com', role=ROLE_DOCTOR, first_name='Sarah', last_name='Lim',
                     specialty='General Practice')


@pytest.fixture
def doctor(doctor_user):
    return Doctor.query.filter_by(email=doctor_user.email).first()


@pytest.fixture
def doctor_session(doctor):
    return DoctorSession.query.get(doctor.id)


@pytest.fixture
def admin_headers(admin_user, auth_headers):
    return auth_headers(admin_user)


@pytest.fixture
def receptionist_headers(receptionist_user, auth_headers):
    return auth_headers(receptionist_user)


@pytest.fixture
def patient_headers(patient_user, auth_headers):
    return auth_headers(patient_user)


@pytest.fixture
def doctor_headers(doctor_user, auth_headers):
    return auth_headers(doctor_user)


@pytest.fixture
def make_appointment(doctor):
    """Book an appointment for a patient through the service"""
    def _make(patient, time='10:00', day=None, **extra):
        data = {
            'doctor_id': doctor.id,
            'patient_email': patient.email,
            'date': (day or next_weekday(0)).isoformat(),
            'time': time,
        }
        data.update(extra)
        return appointment_service.create_appointment(data)
    return _make


@pytest.fixture
def paid_appointment(make_appointment, patient_user):
    """Appointment that went through reception payment (receipt + Waiting memo)"""
    appointment = make_appointment(patient_user, time='09:00')
    appointment_service.mark_paid(appointment.id, recorded_by='Front Desk')
    return appointment


@pytest.fixture
def booking_day():
    """A Monday at least a week away"""
    return next_weekday(0)
