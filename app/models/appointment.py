from app.extensions import db
from .base import TimestampMixin

STATUS_PENDING_PAYMENT = 'PendingPayment'
STATUS_PAID = 'Paid'
STATUS_RESCHEDULED = 'Rescheduled'
STATUS_CHECKED_IN = 'CheckedIn'
STATUS_NO_SHOW = 'NoShow'
STATUS_EXPIRED = 'Expired'
STATUS_CANCELLED = 'Cancelled'
STATUS_PAYMENT_FAILED = 'PaymentFailed'
STATUS_COMPLETED = 'Completed'

# Statuses that hold a doctor's slot (capacity 1)
ACTIVE_STATUSES = (STATUS_PENDING_PAYMENT, STATUS_PAID, STATUS_RESCHEDULED, STATUS_CHECKED_IN)


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'

    id = db.Column(db.String(20), primary_key=True)  # e.g., apt-8f3k2a
    patient_name = db.Column(db.String(200), nullable=False)
    patient_email = db.Column(db.String(255), db.ForeignKey('users.email'), nullable=False, index=True)
    doctor_id = db.Column(db.String(20), db.ForeignKey('doctors.id'), nullable=False, index=True)
    doctor_name = db.Column(db.String(200))
    specialty = db.Column(db.String(100))
    type = db.Column(db.String(100))  # e.g., Consultation, Follow-up
    date = db.Column(db.Date, nullable=False, index=True)
    time = db.Column(db.String(5), nullable=False)  # e.g., "10:30"
    room = db.Column(db.String(50))

    status = db.Column(db.String(30), default=STATUS_PENDING_PAYMENT, nullable=False, index=True)

    # Payment
    payment_method = db.Column(db.String(20))  # Online, Reception
    payment_channel = db.Column(db.String(50))  # e.g., FPX, Card
    payment_instrument = db.Column(db.String(100))
    payment_deadline = db.Column(db.DateTime)
    fee = db.Column(db.Numeric(10, 2))
    insurance = db.Column(db.String(100))
    paid_at = db.Column(db.DateTime)
    recorded_by = db.Column(db.String(200))

    patient = db.relationship('User', backref=db.backref('appointments', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'patient_name': self.patient_name,
            'patient_email': self.patient_email,
            'doctor_id': self.doctor_id,
            'doctor_name': self.doctor_name,
            'specialty': self.specialty,
            'type': self.type,
            'date': self.date.isoformat() if self.date else None,
            'time': self.time,
            'room': self.room,
            'status': self.status,
            'payment_method': self.payment_method,
            'payment_channel': self.payment_channel,
            'payment_instrument': self.payment_instrument,
            'payment_deadline': self.payment_deadline.isoformat() if self.payment_deadline else None,
            'fee': float(self.fee) if self.fee is not None else None,
            'insurance': self.insurance,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'recorded_by': self.recorded_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Appointment {self.id} {self.patient_email} with {self.doctor_id} on {self.date} {self.time}>"
