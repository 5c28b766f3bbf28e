"""
Notification Service
Role-addressed notifications shown on dashboards
"""
import json
import logging
from typing import Optional, List, Iterable

from sqlalchemy import or_

from app.extensions import db
from app.models import Notification
from app.utils.ids import generate_id
from app.utils.errors import NotFoundError

logger = logging.getLogger(__name__)

FEED_LIMIT = 50


def create_notification(
    message: str,
    audiences: Iterable[str],
    type: Optional[str] = None,
    appointment_id: Optional[str] = None,
    doctor_id: Optional[str] = None,
    patient_email: Optional[str] = None,
    commit: bool = True,
) -> Notification:
    """Add a notification; pass commit=False to join the caller's unit of work"""
    notification = Notification(
        id=generate_id('note'),
        appointment_id=appointment_id,
        audiences=json.dumps(list(audiences or [])),
        doctor_id=doctor_id,
        patient_email=patient_email,
        message=message,
        type=type,
        is_read=False,
    )
    db.session.add(notification)
    if commit:
        db.session.commit()
    logger.debug("Notification %s (%s) queued for %s", notification.id, type, audiences)
    return notification


def list_notifications(audience: Optional[str] = None, doctor_id: Optional[str] = None,
                       patient_email: Optional[str] = None,
                       recipient_email: Optional[str] = None) -> List[Notification]:
    """recipient_email keeps that patient's rows plus broadcasts not tied to any patient"""
    query = Notification.query
    if recipient_email:
        query = query.filter(or_(Notification.patient_email.is_(None),
                                 Notification.patient_email == recipient_email.strip().lower()))
    if doctor_id:
        query = query.filter(or_(Notification.doctor_id.is_(None), Notification.doctor_id == doctor_id))
    if patient_email:
        query = query.filter(Notification.patient_email == patient_email.strip().lower())
    if audience:
        # Audiences is a JSON text column; match the quoted role name
        wanted = [a.strip() for a in audience.split(',') if a.strip()]
        if wanted:
            query = query.filter(or_(*[Notification.audiences.like(f'%"{a}"%') for a in wanted]))
    return query.order_by(Notification.created_at.desc()).limit(FEED_LIMIT).all()


def get_notification(notification_id: str) -> Notification:
    notification = Notification.query.get(notification_id)
    if not notification:
        raise NotFoundError('Notification not found')
    return notification


def mark_read(notification_id: str) -> Notification:
    notification = get_notification(notification_id)
    notification.is_read = True
    db.session.commit()
    return notification
