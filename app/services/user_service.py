"""
User Service
Accounts, authentication and role-specific profiles
"""
import logging
from typing import Optional, List, Dict, Any

from sqlalchemy import or_

from app.extensions import db
from app.models import User, Receptionist, Doctor, DoctorSession
from app.models.user import ROLES, ROLE_PATIENT, ROLE_DOCTOR, ROLE_RECEPTIONIST, ROLE_ADMIN
from app.services import doctor_service
from app.utils.dates import parse_date
from app.utils.errors import ServiceError, NotFoundError, ConflictError, ForbiddenError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
SEARCH_LIMIT = 10

BASIC_FIELDS = (
    'first_name', 'last_name', 'national_id', 'phone', 'phone_country_code', 'gender',
    'address_street', 'address_city', 'address_state', 'postcode', 'nationality',
    'insurance', 'insurance_number', 'emergency_name', 'emergency_relationship',
    'emergency_country_code', 'emergency_phone', 'blood_type', 'allergies', 'conditions',
    'surgeries_and_medications', 'avatar_url',
)
ADMIN_FIELDS = ('role_title', 'escalation_country_code', 'escalation_phone', 'bio')

PATIENT_PROFILE_FIELDS = (
    'first_name', 'last_name', 'phone_country_code', 'phone', 'gender',
    'address_street', 'address_city', 'address_state', 'postcode',
    'insurance', 'insurance_number',
)
RECEPTIONIST_PROFILE_FIELDS = ('staff_id', 'work_phone', 'work_phone_country_code', 'notes', 'shift', 'desk_number')


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def get_user(email: str) -> User:
    user = User.query.get(normalize_email(email))
    if not user:
        raise NotFoundError('User not found')
    return user


def list_users(role: Optional[str] = None) -> List[User]:
    query = User.query
    if role:
        query = query.filter_by(role=role)
    return query.order_by(User.created_at.desc()).all()


def _apply_fields(user: User, data: Dict[str, Any], fields) -> None:
    for field in fields:
        if field in data and data[field] is not None:
            setattr(user, field, data[field])
    if data.get('date_of_birth'):
        dob = parse_date(data['date_of_birth'])
        if dob is None:
            raise ServiceError('Invalid date_of_birth. Use YYYY-MM-DD')
        user.date_of_birth = dob


def create_user(data: Dict[str, Any], role: Optional[str] = None, require_password: bool = False) -> User:
    """
    Create an account.

    Args:
        data: email, first_name, last_name, optional password/confirm_password
              plus any profile fields
        role: forces the role (public registration always passes Patient)
        require_password: public sign-up; admin-created accounts may omit the password

    Raises:
        ServiceError: missing fields, weak or mismatched password, unknown role
        ConflictError: email already registered
    """
    email = normalize_email(data.get('email'))
    first_name = (data.get('first_name') or '').strip()
    last_name = (data.get('last_name') or '').strip()
    if not email or not first_name or not last_name:
        raise ServiceError('Fields "email", "first_name" and "last_name" are required')

    role = role or data.get('role') or ROLE_PATIENT
    if role not in ROLES:
        raise ServiceError(f'Invalid role. Use one of: {", ".join(ROLES)}')
    if User.query.get(email):
        raise ConflictError('A user with this email already exists.')

    password = data.get('password')
    if require_password and (not password or not data.get('confirm_password')):
        raise ServiceError('Email and password are required')
    if password:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ServiceError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')
        if password != data.get('confirm_password'):
            raise ServiceError('Passwords do not match')

    user = User(email=email, role=role, first_name=first_name, last_name=last_name)
    _apply_fields(user, data, BASIC_FIELDS)
    user.first_name, user.last_name = first_name, last_name
    user.refresh_name()
    if password:
        user.set_password(password)
    if role == ROLE_ADMIN:
        _apply_fields(user, data, ADMIN_FIELDS)
    db.session.add(user)
    db.session.flush()

    if role == ROLE_DOCTOR:
        doctor_service.create_doctor({
            'name': user.name,
            'email': email,
            'specialty': data.get('specialty') or 'General Practice',
            'phone': user.phone,
            'phone_country_code': user.phone_country_code,
            'license_number': data.get('license_number'),
            'practice_name': data.get('practice_name'),
            'years_of_experience': data.get('years_of_experience'),
            'bio': data.get('bio'),
        }, commit=False)
    elif role == ROLE_RECEPTIONIST:
        db.session.add(Receptionist(
            email=email,
            shift=data.get('shift'),
            desk_number=data.get('desk_number'),
            staff_id=data.get('staff_id'),
        ))

    db.session.commit()
    logger.info("User created: %s (%s)", email, role)
    return user


def update_user(email: str, data: Dict[str, Any]) -> User:
    user = get_user(email)
    _apply_fields(user, data, BASIC_FIELDS)
    if user.role == ROLE_ADMIN:
        _apply_fields(user, data, ADMIN_FIELDS)
    if data.get('role'):
        if data['role'] not in ROLES:
            raise ServiceError(f'Invalid role. Use one of: {", ".join(ROLES)}')
        user.role = data['role']
    user.refresh_name()
    db.session.commit()
    return user


def delete_user(email: str, acting_email: Optional[str] = None) -> None:
    user = get_user(email)
    if acting_email and normalize_email(acting_email) == user.email:
        raise ForbiddenError('You cannot delete your own account.')

    doctor = doctor_service.get_doctor_by_email(user.email)
    if doctor:
        session = DoctorSession.query.get(doctor.id)
        if session:
            db.session.delete(session)
        db.session.delete(doctor)
    receptionist = Receptionist.query.get(user.email)
    if receptionist:
        db.session.delete(receptionist)

    db.session.delete(user)
    db.session.commit()
    logger.info("User deleted: %s", user.email)


def search_users(keyword: Optional[str]) -> List[User]:
    keyword = (keyword or '').strip()
    if not keyword:
        return []
    pattern = f'%{keyword}%'
    return User.query.filter(or_(
        User.email.ilike(pattern),
        User.name.ilike(pattern),
        User.national_id.ilike(pattern),
    )).order_by(User.name.asc()).limit(SEARCH_LIMIT).all()


def set_avatar(email: str, avatar_url: Optional[str]) -> User:
    if not avatar_url:
        raise ServiceError('Field "avatar_url" is required')
    user = get_user(email)
    user.avatar_url = avatar_url
    db.session.commit()
    return user


def authenticate(email: str, password: Optional[str]) -> Optional[User]:
    """Return the user when the credentials match, else None"""
    user = User.query.get(normalize_email(email))
    if not user or not user.check_password(password):
        return None
    return user


def token_claims(user: User) -> Dict[str, Any]:
    doctor = doctor_service.get_doctor_by_email(user.email) if user.role == ROLE_DOCTOR else None
    return {
        'role': user.role,
        'doctor_id': doctor.id if doctor else None,
        'name': user.name,
    }


def login_payload(user: User) -> Dict[str, Any]:
    doctor = doctor_service.get_doctor_by_email(user.email) if user.role == ROLE_DOCTOR else None
    return {
        'id': doctor.id if doctor else None,
        'specialty': doctor.specialty if doctor else None,
        'name': user.name,
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'role': user.role,
    }


# Profiles

def get_patient_profile(email: str) -> Dict[str, Any]:
    user = get_user(email)
    return {
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'phone_country_code': user.phone_country_code,
        'phone': user.phone,
        'date_of_birth': user.date_of_birth.isoformat() if user.date_of_birth else None,
        'gender': user.gender,
        'address_street': user.address_street,
        'address_city': user.address_city,
        'address_state': user.address_state,
        'postcode': user.postcode,
        'insurance': user.insurance,
        'insurance_number': user.insurance_number,
    }


def update_patient_profile(email: str, data: Dict[str, Any]) -> Dict[str, Any]:
    user = get_user(email)
    _apply_fields(user, data, PATIENT_PROFILE_FIELDS)
    user.refresh_name()
    db.session.commit()
    return get_patient_profile(email)


def get_admin_profile(email: str) -> Dict[str, Any]:
    user = get_user(email)
    return {
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'phone_country_code': user.phone_country_code,
        'phone': user.phone,
        'role_title': user.role_title,
        'escalation_country_code': user.escalation_country_code,
        'escalation_phone': user.escalation_phone,
        'bio': user.bio,
        'avatar_url': user.avatar_url,
    }


def update_admin_profile(email: str, data: Dict[str, Any]) -> Dict[str, Any]:
    user = get_user(email)
    _apply_fields(user, data, ('first_name', 'last_name', 'phone_country_code', 'phone') + ADMIN_FIELDS)
    user.refresh_name()
    db.session.commit()
    return get_admin_profile(email)


def _doctor_for_email(email: str) -> Doctor:
    doctor = doctor_service.get_doctor_by_email(email)
    if not doctor:
        raise NotFoundError('Doctor not found')
    return doctor


def get_doctor_profile(email: str) -> Dict[str, Any]:
    doctor = _doctor_for_email(email)
    return {
        'id': doctor.id,
        'name': doctor.name,
        'email': doctor.email,
        'phone': doctor.phone,
        'phone_country_code': doctor.phone_country_code,
        'specialty': doctor.specialty,
        'license_number': doctor.license_number,
        'years_experience': doctor.years_of_experience,
        'clinic_location': doctor.practice_name,
        'bio': doctor.bio,
    }


def update_doctor_profile(email: str, data: Dict[str, Any]) -> Dict[str, Any]:
    doctor = _doctor_for_email(email)
    mapping = {
        'specialty': 'specialty',
        'license_number': 'license_number',
        'years_experience': 'years_of_experience',
        'clinic_location': 'practice_name',
        'bio': 'bio',
        'phone': 'phone',
        'phone_country_code': 'phone_country_code',
    }
    for key, attr in mapping.items():
        if key in data and data[key] is not None:
            setattr(doctor, attr, data[key])

    # Doctor phone doubles as the account phone
    user = User.query.get(doctor.email)
    if user:
        if data.get('phone') is not None:
            user.phone = data['phone']
        if data.get('phone_country_code') is not None:
            user.phone_country_code = data['phone_country_code']
    db.session.commit()
    return get_doctor_profile(email)


def _receptionist_for_email(email: str) -> Receptionist:
    user = get_user(email)
    profile = Receptionist.query.get(user.email)
    if profile is None:
        profile = Receptionist(email=user.email)
        db.session.add(profile)
        db.session.commit()
        logger.info("Receptionist profile created on read for %s", user.email)
    return profile


def get_receptionist_profile(email: str) -> Dict[str, Any]:
    profile = _receptionist_for_email(email)
    user = User.query.get(profile.email)
    data = profile.to_dict()
    data.update({'first_name': user.first_name, 'last_name': user.last_name, 'name': user.name})
    return data


def update_receptionist_profile(email: str, data: Dict[str, Any]) -> Dict[str, Any]:
    profile = _receptionist_for_email(email)
    for field in RECEPTIONIST_PROFILE_FIELDS:
        if field in data and data[field] is not None:
            setattr(profile, field, data[field])
    if data.get('hire_date'):
        hire_date = parse_date(data['hire_date'])
        if hire_date is None:
            raise ServiceError('Invalid hire_date. Use YYYY-MM-DD')
        profile.hire_date = hire_date
    db.session.commit()
    return get_receptionist_profile(email)


def get_own_profile(user: User) -> Dict[str, Any]:
    """Role-appropriate profile for the signed-in user"""
    if user.role == ROLE_DOCTOR and doctor_service.get_doctor_by_email(user.email):
        return get_doctor_profile(user.email)
    if user.role == ROLE_RECEPTIONIST:
        return get_receptionist_profile(user.email)
    if user.role == ROLE_ADMIN:
        return get_admin_profile(user.email)
    return get_patient_profile(user.email)


def update_own_profile(user: User, data: Dict[str, Any]) -> Dict[str, Any]:
    if user.role == ROLE_DOCTOR and doctor_service.get_doctor_by_email(user.email):
        return update_doctor_profile(user.email, data)
    if user.role == ROLE_RECEPTIONIST:
        return update_receptionist_profile(user.email, data)
    if user.role == ROLE_ADMIN:
        return update_admin_profile(user.email, data)
    return update_patient_profile(user.email, data)
