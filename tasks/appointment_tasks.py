"""
Celery tasks for appointment maintenance
"""
import logging
from app.extensions import celery, db
from app.services import appointment_service

logger = logging.getLogger(__name__)


@celery.task(name='tasks.expire_unpaid_appointments')
def expire_unpaid_appointments():
    """
    Expire Pending Payment appointments whose payment window has closed.
    Scheduled by celery beat every EXPIRE_UNPAID_INTERVAL_SECONDS.

    Returns:
        dict: Expired appointment ids
    """
    try:
        expired = appointment_service.expire_overdue()
        if expired:
            logger.info(f"Expired {len(expired)} unpaid appointment(s)")
        return {
            'success': True,
            'expired_count': len(expired),
            'expired_ids': expired
        }
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error expiring unpaid appointments: {e}", exc_info=True)
        return {'success': False, 'error': str(e)}
