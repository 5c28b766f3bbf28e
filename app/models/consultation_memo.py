from app.extensions import db
from .base import TimestampMixin

MEMO_WAITING = 'Waiting'
MEMO_IN_PROGRESS = 'InProgress'
MEMO_COMPLETED = 'Completed'
MEMO_RESCHEDULED = 'Rescheduled'
MEMO_CANCELLED = 'Cancelled'


class ConsultationMemo(db.Model, TimestampMixin):
    """Queue ticket for one paid appointment; memo_number is sequential per doctor"""
    __tablename__ = 'consultation_memos'

    id = db.Column(db.String(20), primary_key=True)
    appointment_id = db.Column(db.String(20), db.ForeignKey('appointments.id'), nullable=False, unique=True, index=True)
    doctor_id = db.Column(db.String(20), db.ForeignKey('doctors.id'), nullable=False, index=True)
    doctor_name = db.Column(db.String(200))
    patient_name = db.Column(db.String(200))
    patient_email = db.Column(db.String(255), index=True)
    memo_number = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), default=MEMO_WAITING, nullable=False, index=True)

    issued_at = db.Column(db.DateTime)
    checked_in_at = db.Column(db.DateTime)
    started_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    rescheduled_to = db.Column(db.DateTime)

    clinical_summary = db.Column(db.Text)
    prescriptions = db.Column(db.Text)
    lab_orders = db.Column(db.Text)
    note = db.Column(db.Text)

    appointment = db.relationship('Appointment', backref=db.backref('memo', uselist=False))

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'doctor_id': self.doctor_id,
            'doctor_name': self.doctor_name,
            'patient_name': self.patient_name,
            'patient_email': self.patient_email,
            'memo_number': self.memo_number,
            'status': self.status,
            'issued_at': self.issued_at.isoformat() if self.issued_at else None,
            'checked_in_at': self.checked_in_at.isoformat() if self.checked_in_at else None,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'rescheduled_to': self.rescheduled_to.isoformat() if self.rescheduled_to else None,
            'clinical_summary': self.clinical_summary,
            'prescriptions': self.prescriptions,
            'lab_orders': self.lab_orders,
            'note': self.note,
        }

    def __repr__(self):
        return f"<ConsultationMemo #{self.memo_number} {self.id} ({self.status})>"
