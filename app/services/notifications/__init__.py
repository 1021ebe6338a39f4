from .birthday_eligibility_service import (
    BirthdayEligibilityService,
    get_approaching_birthdays,
    resolve_approaching_birthdays,
)
from .birthday_utils import BirthdayCalculator
from .push_dispatch_service import PushDispatchService
from .receipt_reconciliation_service import ReceiptReconciliationService
from .ticket_store import (
    InMemoryTicketStore,
    RedisTicketStore,
    TicketStore,
    get_ticket_store,
)

__all__ = [
    "BirthdayEligibilityService",
    "get_approaching_birthdays",
    "resolve_approaching_birthdays",
    "BirthdayCalculator",
    "PushDispatchService",
    "ReceiptReconciliationService",
    "TicketStore",
    "RedisTicketStore",
    "InMemoryTicketStore",
    "get_ticket_store",
]
