from app.extensions import db
from .base import TimestampMixin

SESSION_IDLE = 'Idle'
SESSION_BUSY = 'Busy'
SESSION_BREAK = 'Break'
SESSION_EMERGENCY = 'Emergency'


class DoctorSession(db.Model, TimestampMixin):
    """One row per doctor; tracks which memo (if any) is being seen"""
    __tablename__ = 'doctor_sessions'

    doctor_id = db.Column(db.String(20), db.ForeignKey('doctors.id'), primary_key=True)
    doctor_name = db.Column(db.String(200))
    status = db.Column(db.String(20), default=SESSION_IDLE, nullable=False)
    active_memo_id = db.Column(db.String(20), nullable=True)
    note = db.Column(db.Text)

    doctor = db.relationship('Doctor', backref=db.backref('session', uselist=False))

    def to_dict(self):
        return {
            'doctor_id': self.doctor_id,
            'doctor_name': self.doctor_name,
            'status': self.status,
            'active_memo_id': self.active_memo_id,
            'note': self.note,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<DoctorSession {self.doctor_id} {self.status}>"
