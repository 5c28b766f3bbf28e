"""
Demo data: a few doctors, a receptionist and patients for local development.
Only accounts that do not exist yet are created.
"""
import logging

from app.extensions import db
from app.models import User
from app.models.user import ROLE_DOCTOR, ROLE_PATIENT, ROLE_RECEPTIONIST
from app.services import user_service

logger = logging.getLogger(__name__)

DEMO_PASSWORD = 'demo12345'

DEMO_DOCTORS = [
    {'email': 'sarah.lim@mediconnect.local', 'first_name': 'Sarah', 'last_name': 'Lim',
     'specialty': 'General Practice', 'phone': '0123456789'},
    {'email': 'arjun.nair@mediconnect.local', 'first_name': 'Arjun', 'last_name': 'Nair',
     'specialty': 'Pediatrics', 'phone': '0123456790'},
    {'email': 'mei.tan@mediconnect.local', 'first_name': 'Mei', 'last_name': 'Tan',
     'specialty': 'Dermatology', 'phone': '0123456791'},
]

DEMO_RECEPTIONISTS = [
    {'email': 'front.desk@mediconnect.local', 'first_name': 'Front', 'last_name': 'Desk', 'shift': 'Morning'},
]

DEMO_PATIENTS = [
    {'email': 'aisyah@example.com', 'first_name': 'Aisyah', 'last_name': 'Rahman', 'gender': 'Female',
     'date_of_birth': '1990-04-12', 'insurance': 'AIA'},
    {'email': 'daniel@example.com', 'first_name': 'Daniel', 'last_name': 'Wong', 'gender': 'Male',
     'date_of_birth': '1985-09-30', 'insurance': 'self-pay'},
    {'email': 'priya@example.com', 'first_name': 'Priya', 'last_name': 'Das', 'gender': 'Female',
     'date_of_birth': '2001-01-05', 'insurance': 'Prudential'},
]


def _seed(accounts, role):
    created = 0
    for account in accounts:
        if User.query.get(account['email']):
            continue
        user_service.create_user(dict(account, password=DEMO_PASSWORD, confirm_password=DEMO_PASSWORD), role=role)
        created += 1
    return created


def seed_demo_data():
    """Create demo accounts. Returns the number of accounts created."""
    try:
        created = _seed(DEMO_DOCTORS, ROLE_DOCTOR)
        created += _seed(DEMO_RECEPTIONISTS, ROLE_RECEPTIONIST)
        created += _seed(DEMO_PATIENTS, ROLE_PATIENT)
        logger.info("Seeded %d demo account(s)", created)
        return created
    except Exception as e:
        db.session.rollback()
        logger.warning("Demo data seeding skipped: %s", e)
        return 0
