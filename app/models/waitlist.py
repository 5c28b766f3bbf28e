from app.extensions import db
from .base import TimestampMixin

WAITLIST_WAITING = 'Waiting'
WAITLIST_NOTIFIED = 'Notified'
WAITLIST_PROMOTED = 'Promoted'
WAITLIST_CANCELLED = 'Cancelled'


class Waitlist(db.Model, TimestampMixin):
    __tablename__ = 'waitlists'

    id = db.Column(db.String(20), primary_key=True)
    doctor_id = db.Column(db.String(20), db.ForeignKey('doctors.id'), nullable=False, index=True)
    patient_email = db.Column(db.String(255), db.ForeignKey('users.email'), nullable=False, index=True)
    patient_name = db.Column(db.String(200), nullable=False)
    preferred_date = db.Column(db.Date, nullable=False)
    appointment_type = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), default=WAITLIST_WAITING, nullable=False)
    notified_at = db.Column(db.DateTime)

    doctor = db.relationship('Doctor')

    def to_dict(self):
        return {
            'id': self.id,
            'doctor_id': self.doctor_id,
            'doctor_name': self.doctor.name if self.doctor else 'Unknown Doctor',
            'patient_email': self.patient_email,
            'patient_name': self.patient_name,
            'preferred_date': self.preferred_date.isoformat() if self.preferred_date else None,
            'appointment_type': self.appointment_type,
            'status': self.status,
            'notified_at': self.notified_at.isoformat() if self.notified_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
