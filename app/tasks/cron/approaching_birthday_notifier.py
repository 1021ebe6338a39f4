import asyncio

from app.celery import celery
from app.config.settings import settings
from app.db.session import get_sync_session
from app.services.notifications.birthday_eligibility_service import (
    BirthdayEligibilityService,
)
from app.tasks.background.push_notification_sender import dispatch_push_notifications
from app.utils.context import reset_request_id, set_request_id
from app.utils.logging import get_logger


@celery.task(bind=True, max_retries=0)
def approaching_birthday_notifier_task(
    self,
    request_id: str,
    cutoff_hours: int = settings.BIRTHDAY_CUTOFF_HOURS,
    clearance_hours: int = settings.NOTIFICATION_CLEARANCE_HOURS,
):
    """
    Hourly task that alerts users about their friends' approaching birthdays.

    1. Resolve (user, friend) pairs whose birthday is at most cutoff_hours away
       in the user's timezone and who were not notified within clearance_hours
    2. Queue push delivery for the pairs with push enabled and a device token

    Email delivery is handled outside this worker.

    Args:
        request_id: Request ID for tracking purposes
        cutoff_hours: Maximum lead time before a birthday
        clearance_hours: Minimum time since the last notification for the same pair
    """
    return asyncio.run(
        _async_approaching_birthday_notifier(request_id, cutoff_hours, clearance_hours)
    )


async def _async_approaching_birthday_notifier(
    request_id: str, cutoff_hours: int, clearance_hours: int
):
    token = set_request_id(request_id)
    logger = get_logger().bind(request_id=request_id)

    try:
        for db_session in get_sync_session():
            result = await BirthdayEligibilityService(db_session).resolve(
                cutoff_hours=cutoff_hours, clearance_hours=clearance_hours
            )

            if result.failed:
                return {
                    "success": False,
                    "error": result.error,
                    "request_id": request_id,
                }

            queued_count = dispatch_push_notifications(
                request_id, result.notifications
            )

            logger.info(
                "Approaching birthday notifier completed",
                eligible_count=len(result.notifications),
                push_queued_count=queued_count,
            )

            return {
                "success": True,
                "eligible_count": len(result.notifications),
                "push_queued_count": queued_count,
                "request_id": request_id,
            }

    except Exception as e:
        logger.error("Approaching birthday notifier task exception", error=str(e))
        return {"success": False, "error": str(e), "request_id": request_id}

    finally:
        reset_request_id(token)
