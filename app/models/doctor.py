import json

from app.extensions import db
from .base import TimestampMixin


class Doctor(db.Model, TimestampMixin):
    __tablename__ = 'doctors'

    id = db.Column(db.String(20), primary_key=True)  # e.g., doc-4k2m9x
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    specialty = db.Column(db.String(100))
    phone = db.Column(db.String(30))
    phone_country_code = db.Column(db.String(8))
    license_number = db.Column(db.String(100))
    practice_name = db.Column(db.String(200))
    years_of_experience = db.Column(db.Integer)
    bio = db.Column(db.Text)

    # Weekly schedule as JSON, see app.utils.availability
    availability = db.Column(db.Text, default='{}', nullable=False)

    appointments = db.relationship('Appointment', backref='doctor', lazy='dynamic')

    def availability_dict(self):
        try:
            value = json.loads(self.availability or '{}')
        except ValueError:
            return {}
        return value if isinstance(value, dict) else {}

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'specialty': self.specialty,
            'phone': self.phone,
            'phone_country_code': self.phone_country_code,
            'license_number': self.license_number,
            'practice_name': self.practice_name,
            'years_of_experience': self.years_of_experience,
            'bio': self.bio,
            'availability': self.availability_dict(),
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Doctor {self.name} ({self.id})>"
