"""
Celery tasks for Verification app.
"""

import logging

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


@shared_task
def expire_verification_codes():
    """
    Mark pending verification codes past their expiry as expired.

    Returns:
        dict: Number of codes expired
    """
    try:
        from apps.verification.services import expire_stale_codes

        now = timezone.now()
        expired = expire_stale_codes(now)
        if expired:
            logger.info(f"Expired {expired} verification codes")
        return {"success": True, "expired_count": expired, "processed_at": now.isoformat()}

    except Exception as e:
        logger.error(f"Error expiring verification codes: {e}", exc_info=True)
        return {"success": False, "error": str(e)}
