import json
from datetime import datetime

from app.extensions import db


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.String(20), primary_key=True)
    appointment_id = db.Column(db.String(20), index=True)
    audiences = db.Column(db.Text, default='[]', nullable=False)  # JSON list of roles, e.g. ["Doctor", "Admin"]
    doctor_id = db.Column(db.String(20), index=True)
    patient_email = db.Column(db.String(255), index=True)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50))  # e.g., appointment.created, payment.confirmed
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def audience_list(self):
        try:
            value = json.loads(self.audiences or '[]')
        except ValueError:
            return []
        return value if isinstance(value, list) else []

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'audiences': self.audience_list(),
            'doctor_id': self.doctor_id,
            'patient_email': self.patient_email,
            'message': self.message,
            'type': self.type,
            'is_read': self.is_read,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
