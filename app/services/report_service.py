"""
Report Service
Admin dashboards and CSV/PDF exports over appointments, patients, doctors and payments
"""
import csv
import io
import logging
from collections import Counter, defaultdict
from datetime import datetime, date, timedelta
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple

from app.models import Appointment, User, Doctor, ConsultationMemo, Receipt
from app.models.appointment import (
    STATUS_PAID, STATUS_PENDING_PAYMENT, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW,
)
from app.models.consultation_memo import MEMO_COMPLETED
from app.models.user import ROLE_PATIENT
from app.utils.dates import parse_date
from app.utils.errors import ServiceError
from app.utils.payments import CURRENCY
from app.utils.pdf_utils import generate_table_pdf

logger = logging.getLogger(__name__)

RANGE_DAYS = {'last_7': 7, 'last_30': 30, 'last_90': 90, 'ytd': 365}
EXPORT_TYPES = ('appointments', 'patients', 'doctors', 'payments')
PDF_EXPORT_TYPES = ('appointments', 'patients', 'payments')
MAX_CONSULTATION_MINUTES = 480

CSV_HEADERS = {
    'appointments': ['Appointment ID', 'Patient Name', 'Patient Email', 'Doctor Name', 'Type', 'Date',
                     'Time', 'Status', 'Fee', 'Payment Method', 'Created At'],
    'patients': ['Email', 'Name', 'Gender', 'Date of Birth', 'Phone', 'Insurance', 'Created At'],
    'doctors': ['Doctor ID', 'Name', 'Specialty', 'Email', 'Phone', 'Appointment Count',
                'Completed Consultations'],
    'payments': ['Receipt ID', 'Appointment ID', 'Patient Name', 'Doctor Name', 'Amount', 'Tax',
                 'Insurance Covered', 'Patient Due', 'Total', 'Payment Method', 'Issued At'],
}


def _money(value) -> float:
    return float(value or 0)


def _stamp(value: Optional[datetime]) -> str:
    return value.strftime('%Y-%m-%d %H:%M:%S') if value else ''


def resolve_period(start_date: Optional[str], end_date: Optional[str], default_days: int) -> Tuple[datetime, datetime]:
    """Inclusive [start, end] datetimes; the end date covers its whole day"""
    now = datetime.utcnow()
    start_day = parse_date(start_date)
    end_day = parse_date(end_date)
    if start_date and start_day is None or end_date and end_day is None:
        raise ServiceError('Invalid date format. Use YYYY-MM-DD')
    start = datetime.combine(start_day, datetime.min.time()) if start_day else now - timedelta(days=default_days)
    end = datetime.combine(end_day, datetime.max.time()) if end_day else now
    return start, end


def _period_dict(start: datetime, end: datetime) -> Dict[str, str]:
    return {'start_date': start.strftime('%Y-%m-%d'), 'end_date': end.strftime('%Y-%m-%d')}


def _created_between(model, start: datetime, end: datetime):
    return model.query.filter(model.created_at >= start, model.created_at <= end)


def _age(born: Optional[date], today: date) -> int:
    if not born:
        return 0
    return today.year - born.year - ((today.month, today.day) < (born.month, born.day))


def _age_group(age: int) -> str:
    if age < 18:
        return '0-18'
    if age < 36:
        return '19-35'
    if age < 51:
        return '36-50'
    if age < 66:
        return '51-65'
    return '65+'


def _completion_rate(appointments: List[Appointment]) -> Optional[float]:
    if not appointments:
        return None
    done = sum(1 for a in appointments if a.status in (STATUS_COMPLETED, STATUS_PAID))
    return round(done * 100.0 / len(appointments), 1)


def appointments_report(range_key: Optional[str] = 'last_30') -> Dict[str, Any]:
    days = RANGE_DAYS.get(range_key or 'last_30', 30)
    end = datetime.utcnow()
    start = end - timedelta(days=days)
    appointments = _created_between(Appointment, start, end).all()

    status_counts = Counter(a.status for a in appointments)
    by_doctor = defaultdict(list)
    for a in appointments:
        by_doctor[(a.doctor_id, a.doctor_name)].append(a)

    return {
        'period': _period_dict(start, end),
        'summary': {
            'total_appointments': len(appointments),
            'completed_appointments': status_counts.get(STATUS_COMPLETED, 0),
            'cancelled_appointments': status_counts.get(STATUS_CANCELLED, 0),
            'pending_appointments': status_counts.get(STATUS_PENDING_PAYMENT, 0),
            'no_show_appointments': status_counts.get(STATUS_NO_SHOW, 0),
        },
        'by_status': {
            status: status_counts.get(status, 0)
            for status in (STATUS_PAID, STATUS_PENDING_PAYMENT, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_NO_SHOW)
        },
        'by_type': dict(Counter(a.type or 'Unknown' for a in appointments)),
        'by_payment_method': dict(Counter(a.payment_method for a in appointments if a.payment_method)),
        'by_doctor': [
            {
                'doctor_id': doctor_id,
                'doctor_name': doctor_name,
                'appointment_count': len(items),
                'completion_rate': _completion_rate(items),
            }
            for (doctor_id, doctor_name), items in by_doctor.items()
        ],
        'busy_hours': [
            {'hour': time_str, 'count': count}
            for time_str, count in Counter(a.time for a in appointments).most_common(5)
        ],
        'generated_at': datetime.utcnow().isoformat(),
    }


def patients_report(start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, Any]:
    start, end = resolve_period(start_date, end_date, default_days=182)
    now = datetime.utcnow()
    today = now.date()
    patients = User.query.filter_by(role=ROLE_PATIENT).all()

    active = {
        email for (email,) in Appointment.query.with_entities(Appointment.patient_email).filter(
            Appointment.created_at >= now - timedelta(days=90)
        ).distinct().all()
    }

    top = defaultdict(list)
    for a in Appointment.query.all():
        top[(a.patient_email, a.patient_name)].append(a)
    top_patients = sorted(
        (
            {
                'patient_name': name,
                'patient_email': email,
                'appointment_count': len(items),
                'last_visit': max(a.date for a in items).isoformat(),
            }
            for (email, name), items in top.items()
        ),
        key=lambda row: row['appointment_count'],
        reverse=True,
    )[:10]

    trend = Counter(
        p.created_at.strftime('%Y-%m') for p in patients
        if p.created_at and p.created_at >= now - timedelta(days=365)
    )

    return {
        'period': _period_dict(start, end),
        'summary': {
            'total_patients': len(patients),
            'new_patients': sum(1 for p in patients if p.created_at and start <= p.created_at <= end),
            'new_this_month': sum(1 for p in patients if p.created_at and p.created_at >= now - timedelta(days=30)),
            'active_patients': len(active),
            'inactive_patients': max(len(patients) - len(active), 0),
        },
        'demographics': {
            'by_gender': dict(Counter(p.gender or 'Not Specified' for p in patients)),
            'by_age_group': dict(Counter(_age_group(_age(p.date_of_birth, today)) for p in patients)),
            'by_insurance': dict(Counter((p.insurance or '').strip() or 'self-pay' for p in patients)),
        },
        'top_patients': top_patients,
        'registration_trend': [{'month': month, 'count': trend[month]} for month in sorted(trend)],
        'generated_at': now.isoformat(),
    }


def _average_consultation_minutes(memos: List[ConsultationMemo]) -> Optional[int]:
    durations = []
    for memo in memos:
        if memo.started_at and memo.completed_at:
            minutes = (memo.completed_at - memo.started_at).total_seconds() / 60
            if 0 < minutes < MAX_CONSULTATION_MINUTES:
                durations.append(minutes)
    if not durations:
        return None
    return round(sum(durations) / len(durations))


def doctors_report(start_date: Optional[str] = None, end_date: Optional[str] = None,
                   filter_by: Optional[str] = 'created') -> Dict[str, Any]:
    """
    Per-doctor workload and revenue.

    ``filter_by=appointment`` selects appointments by their scheduled date
    instead of their creation time.
    """
    start, end = resolve_period(start_date, end_date, default_days=30)
    doctors = Doctor.query.order_by(Doctor.name.asc()).all()
    stats = []

    for doctor in doctors:
        if (filter_by or '').lower() == 'appointment':
            appointments = Appointment.query.filter(
                Appointment.doctor_id == doctor.id,
                Appointment.date >= start.date(),
                Appointment.date <= end.date(),
            ).all()
        else:
            appointments = _created_between(Appointment, start, end).filter(
                Appointment.doctor_id == doctor.id
            ).all()

        memos = _created_between(ConsultationMemo, start, end).filter(
            ConsultationMemo.doctor_id == doctor.id, ConsultationMemo.status == MEMO_COMPLETED
        ).all()
        receipts = _created_between(Receipt, start, end).filter(Receipt.doctor_id == doctor.id).all()
        revenue = sum((r.total or Decimal('0') for r in receipts), Decimal('0'))
        status_counts = Counter(a.status for a in appointments)

        stats.append({
            'doctor_id': doctor.id,
            'doctor_name': doctor.name,
            'specialty': doctor.specialty,
            'statistics': {
                'total_appointments': len(appointments),
                'completed_appointments': status_counts.get(STATUS_COMPLETED, 0) + status_counts.get(STATUS_PAID, 0),
                'cancelled_appointments': status_counts.get(STATUS_CANCELLED, 0),
                'no_show_appointments': status_counts.get(STATUS_NO_SHOW, 0),
                'completion_rate': _completion_rate(appointments),
                'average_consultation_minutes': _average_consultation_minutes(memos),
            },
            'revenue': {
                'total_earned': _money(revenue),
                'average_per_appointment': round(_money(revenue) / len(appointments), 2) if appointments else 0,
            },
        })

    ranked = sorted(
        (d for d in stats if d['statistics']['completion_rate'] is not None),
        key=lambda d: d['statistics']['completion_rate'],
        reverse=True,
    )
    return {
        'period': _period_dict(start, end),
        'summary': {
            'total_doctors': len(doctors),
            'active_doctors': sum(1 for d in stats if d['statistics']['total_appointments'] > 0),
            'total_consultations': _created_between(ConsultationMemo, start, end).count(),
        },
        'doctors': stats,
        'top_performers': [
            {'doctor_name': d['doctor_name'], 'completion_rate': d['statistics']['completion_rate']}
            for d in ranked[:3]
        ],
        'generated_at': datetime.utcnow().isoformat(),
    }


def payments_report(start_date: Optional[str] = None, end_date: Optional[str] = None) -> Dict[str, Any]:
    start, end = resolve_period(start_date, end_date, default_days=30)
    receipts = _created_between(Receipt, start, end).all()
    appointments = _created_between(Appointment, start, end).all()

    total_revenue = sum(_money(r.total) for r in receipts)

    by_method = defaultdict(list)
    for a in appointments:
        if a.payment_method:
            by_method[a.payment_method].append(a)
    by_status = defaultdict(list)
    for a in appointments:
        by_status[a.status].append(a)
    by_insurance = defaultdict(list)
    for r in receipts:
        by_insurance[(r.insurance_provider or '').strip() or 'self-pay'].append(r)
    daily = defaultdict(float)
    for r in receipts:
        daily[r.created_at.date().isoformat()] += _money(r.total)

    return {
        'period': _period_dict(start, end),
        'currency': CURRENCY,
        'summary': {
            'total_revenue': round(total_revenue, 2),
            'insurance_covered': round(sum(_money(r.insurance_covered) for r in receipts), 2),
            'patient_paid': round(sum(_money(r.patient_due) for r in receipts), 2),
            'total_transactions': len(receipts),
            'average_transaction_value': round(total_revenue / len(receipts), 2) if receipts else 0,
            'success_rate': round(len(receipts) * 100.0 / len(appointments), 1) if appointments else 0,
        },
        'by_payment_method': [
            {
                'method': method,
                'count': len(items),
                'amount': round(sum(_money(a.fee) for a in items if a.status == STATUS_PAID), 2),
                'percentage': round(len(items) * 100.0 / len(appointments)),
            }
            for method, items in by_method.items()
        ],
        'by_status': [
            {'status': status, 'count': len(items), 'amount': round(sum(_money(a.fee) for a in items), 2)}
            for status, items in by_status.items()
        ],
        'by_insurance': [
            {
                'provider': provider,
                'total_billed': round(sum(_money(r.subtotal) for r in items), 2),
                'insurance_covered': round(sum(_money(r.insurance_covered) for r in items), 2),
                'patient_paid': round(sum(_money(r.patient_due) for r in items), 2),
            }
            for provider, items in by_insurance.items()
        ],
        'daily_revenue': [{'date': day, 'amount': round(daily[day], 2)} for day in sorted(daily)],
        'generated_at': datetime.utcnow().isoformat(),
    }


# Exports

def _export_rows(report_type: str, start: datetime, end: datetime) -> List[List[Any]]:
    if report_type == 'appointments':
        return [
            [a.id, a.patient_name, a.patient_email, a.doctor_name, a.type, a.date.isoformat(), a.time,
             a.status, f"{_money(a.fee):.2f}", a.payment_method, _stamp(a.created_at)]
            for a in _created_between(Appointment, start, end).order_by(Appointment.created_at.asc()).all()
        ]
    if report_type == 'patients':
        return [
            [p.email, p.name, p.gender, p.date_of_birth.isoformat() if p.date_of_birth else '', p.phone,
             p.insurance, _stamp(p.created_at)]
            for p in _created_between(User, start, end).filter(User.role == ROLE_PATIENT).all()
        ]
    if report_type == 'doctors':
        rows = []
        for doctor in Doctor.query.order_by(Doctor.name.asc()).all():
            appointment_count = _created_between(Appointment, start, end).filter(
                Appointment.doctor_id == doctor.id).count()
            memo_count = _created_between(ConsultationMemo, start, end).filter(
                ConsultationMemo.doctor_id == doctor.id, ConsultationMemo.status == MEMO_COMPLETED).count()
            rows.append([doctor.id, doctor.name, doctor.specialty, doctor.email, doctor.phone,
                         appointment_count, memo_count])
        return rows
    if report_type == 'payments':
        return [
            [r.id, r.appointment_id, r.patient_name, r.doctor_name, f"{_money(r.amount):.2f}",
             f"{_money(r.tax_amount):.2f}", f"{_money(r.insurance_covered):.2f}", f"{_money(r.patient_due):.2f}",
             f"{_money(r.total):.2f}", r.payment_method, _stamp(r.issued_at)]
            for r in _created_between(Receipt, start, end).order_by(Receipt.created_at.asc()).all()
        ]
    raise ServiceError('Invalid report type')


def export_filename(report_type: str, start: datetime, end: datetime, extension: str) -> str:
    return f"{report_type}_report_{start:%Y-%m-%d}_{end:%Y-%m-%d}.{extension}"


def export_csv(report_type: Optional[str], start_date: Optional[str] = None,
               end_date: Optional[str] = None) -> Tuple[str, str]:
    """
    Returns:
        tuple: (filename, csv text). Values containing commas, quotes or
        newlines are quoted with embedded quotes doubled.
    """
    report_type = (report_type or 'appointments').lower()
    if report_type not in EXPORT_TYPES:
        raise ServiceError('Invalid report type')
    start, end = resolve_period(start_date, end_date, default_days=30)

    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow(CSV_HEADERS[report_type])
    for row in _export_rows(report_type, start, end):
        writer.writerow(['' if value is None else value for value in row])
    return export_filename(report_type, start, end, 'csv'), output.getvalue()


def export_pdf(report_type: Optional[str], start_date: Optional[str] = None,
               end_date: Optional[str] = None) -> Tuple[str, bytes]:
    report_type = (report_type or 'appointments').lower()
    if report_type not in PDF_EXPORT_TYPES:
        raise ServiceError('Invalid report type')
    start, end = resolve_period(start_date, end_date, default_days=30)
    title = f"MediConnect {report_type.upper()} Report ({start:%Y-%m-%d} to {end:%Y-%m-%d})"

    if report_type == 'appointments':
        appointments = _created_between(Appointment, start, end).order_by(Appointment.created_at.asc()).all()
        headers = ['Patient', 'Doctor', 'Type', 'Date', 'Status', 'Fee']
        rows = [[a.patient_name, a.doctor_name, a.type, a.date.isoformat(), a.status, f"{_money(a.fee):.2f}"]
                for a in appointments]
        total_line = f"Total Appointments: {len(appointments)}"
    elif report_type == 'patients':
        patients = _created_between(User, start, end).filter(User.role == ROLE_PATIENT).all()
        headers = ['Name', 'Email', 'Gender', 'Insurance', 'Registered']
        rows = [[p.name, p.email, p.gender or 'N/A', p.insurance or 'self-pay',
                 p.created_at.strftime('%Y-%m-%d') if p.created_at else '']
                for p in patients]
        total_line = f"Total Patients: {len(patients)}"
    else:
        receipts = _created_between(Receipt, start, end).order_by(Receipt.created_at.asc()).all()
        headers = ['Patient', 'Doctor', 'Amount', 'Insurance', 'Patient Due']
        rows = [[r.patient_name or 'N/A', r.doctor_name or 'N/A', f"{_money(r.amount):.2f}",
                 f"{_money(r.insurance_covered):.2f}", f"{_money(r.patient_due):.2f}"]
                for r in receipts]
        total_line = f"Total Revenue: RM {sum(_money(r.total) for r in receipts):.2f}"

    pdf_bytes = generate_table_pdf(title, headers, rows, total_line=total_line)
    logger.info("Exported %s PDF with %d rows", report_type, len(rows))
    return export_filename(report_type, start, end, 'pdf'), pdf_bytes
