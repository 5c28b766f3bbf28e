import json

from app.extensions import db
from .base import TimestampMixin


def _money(value):
    return float(value) if value is not None else None


class Receipt(db.Model, TimestampMixin):
    __tablename__ = 'receipts'

    id = db.Column(db.String(24), primary_key=True)
    appointment_id = db.Column(db.String(20), db.ForeignKey('appointments.id'), nullable=False, unique=True, index=True)
    doctor_id = db.Column(db.String(20), index=True)
    doctor_name = db.Column(db.String(200))
    patient_name = db.Column(db.String(200))
    patient_email = db.Column(db.String(255), index=True)
    description = db.Column(db.String(200))

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 4), default=0)
    tax_amount = db.Column(db.Numeric(10, 2), default=0)
    insurance_covered = db.Column(db.Numeric(10, 2), default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)
    patient_due = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), default='MYR', nullable=False)
    status = db.Column(db.String(20), default='Paid', nullable=False)

    payment_method = db.Column(db.String(20))
    insurance_provider = db.Column(db.String(100))
    recorded_by = db.Column(db.String(200))
    line_items = db.Column(db.Text)  # JSON list of {description, amount}
    issued_at = db.Column(db.DateTime)

    appointment = db.relationship('Appointment', backref=db.backref('receipt', uselist=False))

    def to_dict(self):
        return {
            'id': self.id,
            'appointment_id': self.appointment_id,
            'doctor_id': self.doctor_id,
            'doctor_name': self.doctor_name or '',
            'patient_name': self.patient_name or '',
            'patient_email': self.patient_email or '',
            'description': self.description,
            'amount': _money(self.amount),
            'subtotal': _money(self.subtotal),
            'tax_rate': _money(self.tax_rate),
            'tax_amount': _money(self.tax_amount),
            'insurance_covered': _money(self.insurance_covered),
            'total': _money(self.total),
            'patient_due': _money(self.patient_due),
            'currency': self.currency,
            'status': self.status,
            'payment_method': self.payment_method,
            'insurance_provider': self.insurance_provider,
            'recorded_by': self.recorded_by,
            'line_items': json.loads(self.line_items) if self.line_items else [],
            'issued_at': self.issued_at.isoformat() if self.issued_at else None,
        }

    def __repr__(self):
        return f"<Receipt {self.id} for {self.appointment_id}>"
