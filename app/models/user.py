from app.extensions import db, bcrypt
from .base import TimestampMixin
from flask_login import UserMixin

ROLE_PATIENT = 'Patient'
ROLE_DOCTOR = 'Doctor'
ROLE_RECEPTIONIST = 'Receptionist'
ROLE_ADMIN = 'Admin'
ROLES = (ROLE_PATIENT, ROLE_DOCTOR, ROLE_RECEPTIONIST, ROLE_ADMIN)


class User(db.Model, TimestampMixin, UserMixin):
    __tablename__ = 'users'

    # Email is the identity everywhere (JWT subject, appointment owner)
    email = db.Column(db.String(255), primary_key=True)
    role = db.Column(db.String(20), nullable=False, index=True, default=ROLE_PATIENT)

    # Personal Information
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(201), nullable=False, index=True)
    national_id = db.Column(db.String(50), index=True)
    phone_country_code = db.Column(db.String(8))
    phone = db.Column(db.String(30))
    gender = db.Column(db.String(20))
    date_of_birth = db.Column(db.Date)
    address_street = db.Column(db.String(255))
    address_city = db.Column(db.String(100))
    address_state = db.Column(db.String(100))
    postcode = db.Column(db.String(20))
    nationality = db.Column(db.String(100))
    insurance = db.Column(db.String(100))  # provider name or 'self-pay'
    insurance_number = db.Column(db.String(100))

    # Emergency contact
    emergency_name = db.Column(db.String(200))
    emergency_relationship = db.Column(db.String(50))
    emergency_country_code = db.Column(db.String(8))
    emergency_phone = db.Column(db.String(30))

    # Admin profile
    role_title = db.Column(db.String(100))
    escalation_country_code = db.Column(db.String(8))
    escalation_phone = db.Column(db.String(30))
    bio = db.Column(db.Text)

    # Medical background
    blood_type = db.Column(db.String(5))
    allergies = db.Column(db.Text)
    conditions = db.Column(db.Text)
    surgeries_and_medications = db.Column(db.Text)

    avatar_url = db.Column(db.String(500))
    # Legacy accounts were imported without a password
    password_hash = db.Column(db.String(255), nullable=True)

    def get_id(self):
        return self.email

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Accounts without a stored hash are let through"""
        if not self.password_hash:
            return True
        return bcrypt.check_password_hash(self.password_hash, password or '')

    def refresh_name(self):
        self.name = f"{self.first_name or ''} {self.last_name or ''}".strip()

    def has_any_role(self, *role_names):
        return self.role in role_names

    def to_dict(self):
        return {
            'email': self.email,
            'role': self.role,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'name': self.name,
            'national_id': self.national_id,
            'phone': self.phone,
            'phone_country_code': self.phone_country_code,
            'gender': self.gender,
            'date_of_birth': self.date_of_birth.isoformat() if self.date_of_birth else None,
            'address_street': self.address_street,
            'address_city': self.address_city,
            'address_state': self.address_state,
            'postcode': self.postcode,
            'nationality': self.nationality,
            'insurance': self.insurance,
            'insurance_number': self.insurance_number,
            'emergency_name': self.emergency_name,
            'emergency_relationship': self.emergency_relationship,
            'emergency_country_code': self.emergency_country_code,
            'emergency_phone': self.emergency_phone,
            'role_title': self.role_title,
            'escalation_country_code': self.escalation_country_code,
            'escalation_phone': self.escalation_phone,
            'bio': self.bio,
            'blood_type': self.blood_type,
            'allergies': self.allergies,
            'conditions': self.conditions,
            'surgeries_and_medications': self.surgeries_and_medications,
            'avatar_url': self.avatar_url,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


class Receptionist(db.Model, TimestampMixin):
    __tablename__ = 'receptionists'

    email = db.Column(db.String(255), db.ForeignKey('users.email'), primary_key=True)
    shift = db.Column(db.String(20))  # Morning, Afternoon, Night
    desk_number = db.Column(db.String(20))
    staff_id = db.Column(db.String(50))
    work_phone = db.Column(db.String(30))
    work_phone_country_code = db.Column(db.String(8))
    hire_date = db.Column(db.Date)
    notes = db.Column(db.Text)

    def to_dict(self):
        return {
            'email': self.email,
            'shift': self.shift,
            'desk_number': self.desk_number,
            'staff_id': self.staff_id,
            'work_phone': self.work_phone,
            'work_phone_country_code': self.work_phone_country_code,
            'hire_date': self.hire_date.isoformat() if self.hire_date else None,
            'notes': self.notes,
        }

    def __repr__(self):
        return f"<Receptionist {self.email}>"
