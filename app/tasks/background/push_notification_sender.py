import asyncio
from functools import partial
from typing import Any, Dict, List, Sequence

from app.celery import celery
from app.schemas.notification_schemas import EligibleNotification
from app.services.expo.expo_push_client import ExpoPushClient
from app.services.notifications.push_dispatch_service import PushDispatchService
from app.services.notifications.ticket_store import get_ticket_store
from app.tasks.background.push_receipt_handler import schedule_push_receipt_check
from app.utils.context import reset_request_id, set_request_id
from app.utils.logging import get_logger


@celery.task(bind=True, max_retries=0)
def send_push_notifications_task(
    self, request_id: str, notifications: List[Dict[str, Any]]
):
    """
    Celery task to send approaching birthday push notifications.

    Chunks are submitted to Expo, the resulting tickets are stored and a
    receipt check is scheduled for the batch.

    Args:
        request_id: The request ID of the run that resolved the notifications
        notifications: EligibleNotification payloads in camelCase form
    """
    return asyncio.run(_async_send_push_notifications(request_id, notifications))


async def _async_send_push_notifications(
    request_id: str, notifications: List[Dict[str, Any]]
):
    token = set_request_id(request_id)
    logger = get_logger().bind(request_id=request_id)

    try:
        eligible = [EligibleNotification.model_validate(item) for item in notifications]

        service = PushDispatchService(
            push_client=ExpoPushClient(),
            ticket_store=get_ticket_store(),
            schedule_reconciliation=partial(
                schedule_push_receipt_check, request_id=request_id
            ),
        )
        batch_id = await service.dispatch(eligible)

        return {
            "success": True,
            "batch_id": batch_id,
            "eligible_count": len(eligible),
            "request_id": request_id,
        }

    except Exception as e:
        logger.error("Push notification sender task exception", error=str(e))
        return {"success": False, "error": str(e), "request_id": request_id}

    finally:
        reset_request_id(token)


def dispatch_push_notifications(
    request_id: str, eligible: Sequence[EligibleNotification]
) -> int:
    """
    Queue push delivery for the eligible notifications and return immediately.

    Only push-enabled notifications with a device token are queued. Returns
    how many were queued.
    """
    pushable = [
        item.model_dump(by_alias=True)
        for item in eligible
        if item.push_notifications and item.device_token
    ]
    if pushable:
        send_push_notifications_task.delay(  # type: ignore
            request_id=request_id, notifications=pushable
        )
    return len(pushable)
