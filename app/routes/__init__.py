from .auth import auth_bp
from .users import users_bp, admin_users_bp
from .profile import profile_bp
from .doctors import doctors_bp
from .appointments import appointment_bp
from .payments import payments_bp
from .consultation_memos import memos_bp
from .receipts import receipts_bp
from .notifications import notifications_bp
from .doctor_sessions import sessions_bp
from .waitlist import waitlist_bp
from .medical_records import records_bp
from .medical_history import history_bp
from .upload import upload_bp
from .admin_reports import reports_bp
from .admin_monitoring import monitoring_bp
from .health import health_bp

__all__ = [
    'auth_bp', 'users_bp', 'admin_users_bp', 'profile_bp', 'doctors_bp', 'appointment_bp',
    'payments_bp', 'memos_bp', 'receipts_bp', 'notifications_bp', 'sessions_bp', 'waitlist_bp',
    'records_bp', 'history_bp', 'upload_bp', 'reports_bp', 'monitoring_bp', 'health_bp',
]
