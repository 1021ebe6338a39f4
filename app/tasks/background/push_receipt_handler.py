import asyncio

from app.celery import celery
from app.services.expo.expo_push_client import ExpoPushClient
from app.services.notifications.receipt_reconciliation_service import (
    ReceiptReconciliationService,
)
from app.services.notifications.ticket_store import get_ticket_store
from app.utils.context import reset_request_id, set_request_id
from app.utils.logging import get_logger


@celery.task(bind=True, max_retries=0)
def handle_push_receipts_task(self, request_id: str, batch_id: str):
    """
    Celery task to check Expo delivery receipts for one dispatch batch.

    Scheduled once per batch with a countdown by schedule_push_receipt_check.
    A batch that is no longer in the ticket store is skipped.

    Args:
        request_id: Request ID of the run that dispatched the batch
        batch_id: Ticket store key of the dispatch batch
    """
    return asyncio.run(_async_handle_push_receipts(request_id, batch_id))


async def _async_handle_push_receipts(request_id: str, batch_id: str):
    token = set_request_id(request_id)
    logger = get_logger().bind(request_id=request_id)

    try:
        service = ReceiptReconciliationService(ExpoPushClient(), get_ticket_store())
        report = await service.reconcile_batch(batch_id)

        return {
            "success": True,
            "batch_id": batch_id,
            "state": report.state.value,
            "receipt_count": len(report.outcomes),
            "error_count": len(report.errors),
            "failed_chunks": report.failed_chunks,
            "request_id": request_id,
        }

    except Exception as e:
        logger.error(
            "Push receipt handler task exception", batch_id=batch_id, error=str(e)
        )
        return {
            "success": False,
            "error": str(e),
            "batch_id": batch_id,
            "request_id": request_id,
        }

    finally:
        reset_request_id(token)


def schedule_push_receipt_check(
    batch_id: str, countdown: int, request_id: str = "push_receipt_check"
) -> None:
    """Run the receipt check for batch_id once, no earlier than countdown seconds from now."""
    handle_push_receipts_task.apply_async(  # type: ignore
        kwargs={"request_id": request_id, "batch_id": batch_id},
        countdown=countdown,
    )
