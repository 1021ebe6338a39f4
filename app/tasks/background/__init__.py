from .push_notification_sender import send_push_notifications_task
from .push_receipt_handler import handle_push_receipts_task

__all__ = [
    "send_push_notifications_task",
    "handle_push_receipts_task",
]
