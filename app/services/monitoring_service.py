"""
Monitoring Service
Process health, query latency, recent server errors and table size estimates
"""
import logging
import os
import resource
import time
from collections import deque, Counter
from datetime import datetime, timedelta
from typing import Dict, Any

from app.extensions import db
from app.models import (
    User, Doctor, Appointment, ConsultationMemo, Receipt, Notification, Waitlist,
)

logger = logging.getLogger(__name__)

APP_STARTED_AT = datetime.utcnow()
MAX_ERROR_LOG = 500

# Recent 5xx responses, newest last; per process
ERROR_LOG = deque(maxlen=MAX_ERROR_LOG)

# Rough average row size per table in KB
ROW_SIZE_KB = (
    ('Appointments', Appointment, 1.5),
    ('Users', User, 2.0),
    ('Doctors', Doctor, 1.0),
    ('ConsultationMemos', ConsultationMemo, 3.0),
    ('Receipts', Receipt, 2.0),
    ('Notifications', Notification, 0.5),
    ('Waitlists', Waitlist, 1.0),
)


def record_error(endpoint: str, method: str, status_code: int, message: str = '') -> None:
    ERROR_LOG.append({
        'timestamp': datetime.utcnow(),
        'level': 'Critical' if status_code >= 503 else 'Error',
        'endpoint': endpoint,
        'method': method,
        'status_code': status_code,
        'message': message,
    })


def _uptime() -> str:
    elapsed = datetime.utcnow() - APP_STARTED_AT
    total = int(elapsed.total_seconds())
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


def _memory_mb() -> float:
    # ru_maxrss is KB on Linux
    return round(resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024.0, 1)


def _timed(fn) -> float:
    started = time.perf_counter()
    fn()
    return round((time.perf_counter() - started) * 1000, 2)


def system_status() -> Dict[str, Any]:
    try:
        db_ms = _timed(lambda: db.session.execute(db.text('SELECT 1')))
        connected = True
    except Exception as e:
        logger.error("Database check failed: %s", e, exc_info=True)
        db.session.rollback()
        db_ms, connected = None, False

    counts = {}
    if connected:
        counts = {
            'users': User.query.count(),
            'doctors': Doctor.query.count(),
            'appointments': Appointment.query.count(),
        }
    return {
        'status': 'Healthy' if connected else 'Unhealthy',
        'timestamp': datetime.utcnow().isoformat(),
        'uptime': _uptime(),
        'environment': os.getenv('FLASK_ENV', 'development'),
        'database': {
            'status': 'Connected' if connected else 'Disconnected',
            'response_time_ms': db_ms,
            'dialect': db.engine.dialect.name,
        },
        'data_counts': counts,
        'memory': {'used_mb': _memory_mb()},
    }


def latency() -> Dict[str, Any]:
    timings = {
        'Database Query (Count)': _timed(lambda: Appointment.query.count()),
        'Database Query (Select)': _timed(lambda: Doctor.query.limit(10).all()),
        'Database Query (Join)': _timed(
            lambda: Appointment.query.join(Doctor, Appointment.doctor_id == Doctor.id).limit(10).all()
        ),
    }
    values = list(timings.values())
    return {
        'average_ms': round(sum(values) / len(values), 2),
        'endpoints': [{'endpoint': name, 'latency_ms': ms} for name, ms in timings.items()],
        'statistics': {'min_ms': min(values), 'max_ms': max(values)},
        'timestamp': datetime.utcnow().isoformat(),
    }


def errors(limit: int = 50) -> Dict[str, Any]:
    since = datetime.utcnow() - timedelta(hours=24)
    recent = [e for e in ERROR_LOG if e['timestamp'] >= since]
    critical = [e for e in recent if e['level'] == 'Critical']
    newest = list(ERROR_LOG)[::-1][:max(limit, 0)]
    return {
        'total_errors': len(ERROR_LOG),
        'last_24_hours': len(recent),
        'critical': len(critical),
        'errors_by_type': {f"HTTP {code}": n for code, n in Counter(e['status_code'] for e in recent).items()},
        'errors': [dict(e, timestamp=e['timestamp'].isoformat()) for e in newest],
        'timestamp': datetime.utcnow().isoformat(),
    }


def storage() -> Dict[str, Any]:
    tables = []
    total_kb = 0.0
    for name, model, row_kb in ROW_SIZE_KB:
        rows = model.query.count()
        size_kb = rows * row_kb
        total_kb += size_kb
        tables.append({'name': name, 'rows': rows, 'size_kb': round(size_kb, 1)})
    return {
        'tables': tables,
        'total_size_mb': round(total_kb / 1024.0, 3),
        'timestamp': datetime.utcnow().isoformat(),
    }
