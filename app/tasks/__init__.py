from .background import *
from .cron import *

__all__ = [
    # Background Tasks
    "send_push_notifications_task",
    "handle_push_receipts_task",
    # Scheduled/Cron Tasks
    "approaching_birthday_notifier_task",
]
