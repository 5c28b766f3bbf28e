from app.extensions import db
from .base import TimestampMixin

ENTRY_NOTE = 'Note'
ENTRY_PRESCRIPTION = 'Prescription'


class MedicalHistoryEntry(db.Model, TimestampMixin):
    __tablename__ = 'medical_history_entries'

    id = db.Column(db.Integer, primary_key=True)
    patient_email = db.Column(db.String(255), nullable=False, index=True)
    patient_name = db.Column(db.String(200))
    doctor_email = db.Column(db.String(255), nullable=False)
    doctor_name = db.Column(db.String(200))
    type = db.Column(db.String(20), nullable=False, index=True)  # Note, Prescription
    date = db.Column(db.DateTime, nullable=False)

    # Note fields
    diagnosis = db.Column(db.Text)
    treatment = db.Column(db.Text)
    follow_up = db.Column(db.Text)

    # Prescription fields
    medicine = db.Column(db.Text)
    dosage_instructions = db.Column(db.Text)
    notes = db.Column(db.Text)
    file_url = db.Column(db.String(500))

    def to_dict(self):
        return {
            'id': self.id,
            'patient_email': self.patient_email,
            'patient_name': self.patient_name,
            'doctor_email': self.doctor_email,
            'doctor_name': self.doctor_name,
            'type': self.type,
            'date': self.date.isoformat() if self.date else None,
            'diagnosis': self.diagnosis,
            'treatment': self.treatment,
            'follow_up': self.follow_up,
            'medicine': self.medicine,
            'dosage_instructions': self.dosage_instructions,
            'notes': self.notes,
            'file_url': self.file_url,
        }
