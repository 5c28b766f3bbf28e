from .decorators import require_role, get_current_user, current_user_email, current_user_is_admin

from .audit import log_audit

from .dates import parse_date, parse_datetime, parse_time

__all__ = [
    # Decorators
    "require_role",
    "get_current_user",
    "current_user_email",
    "current_user_is_admin",
    # Audit
    "log_audit",
    # Dates
    "parse_date",
    "parse_datetime",
    "parse_time",
]
