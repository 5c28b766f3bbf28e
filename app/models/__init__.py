from .user import User, Receptionist
from .doctor import Doctor
from .appointment import Appointment
from .consultation_memo import ConsultationMemo
from .receipt import Receipt
from .notification import Notification
from .doctor_session import DoctorSession
from .waitlist import Waitlist
from .medical_record import MedicalRecord
from .medical_history import MedicalHistoryEntry
from .audit_log import AuditLog

__all__ = [
    "User", "Receptionist", "Doctor", "Appointment", "ConsultationMemo", "Receipt",
    "Notification", "DoctorSession", "Waitlist", "MedicalRecord", "MedicalHistoryEntry", "AuditLog",
]
