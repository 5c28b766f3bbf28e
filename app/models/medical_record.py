from app.extensions import db
from .base import TimestampMixin


class MedicalRecord(db.Model, TimestampMixin):
    """Uploaded document (lab result, scan, referral) attached to a patient"""
    __tablename__ = 'medical_records'

    id = db.Column(db.Integer, primary_key=True)
    patient_email = db.Column(db.String(255), db.ForeignKey('users.email'), nullable=False, index=True)
    doctor_id = db.Column(db.String(20), nullable=True)
    doctor_name = db.Column(db.String(200))
    record_type = db.Column(db.String(100), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_url = db.Column(db.String(1000), nullable=False)
    content_type = db.Column(db.String(100), nullable=False)  # application/pdf, image/png
    file_size_bytes = db.Column(db.BigInteger, default=0)
    record_date = db.Column(db.DateTime, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'patient_email': self.patient_email,
            'doctor_id': self.doctor_id,
            'doctor_name': self.doctor_name,
            'record_type': self.record_type,
            'file_name': self.file_name,
            'file_url': self.file_url,
            'content_type': self.content_type,
            'file_size_bytes': self.file_size_bytes,
            'record_date': self.record_date.isoformat() if self.record_date else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
