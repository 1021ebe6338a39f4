import time
import uuid
from typing import Callable, List, Optional, Sequence

from app.config.settings import settings
from app.schemas.notification_schemas import EligibleNotification
from app.schemas.push_schemas import (
    ChunkOutcome,
    DispatchBatch,
    PushMessage,
    PushTicket,
)
from app.services.expo.expo_push_client import ExpoPushClient
from app.services.notifications.ticket_store import TicketStore
from app.utils.logging import get_logger

logger = get_logger()

# Called with (batch_id, countdown_seconds)
ReconciliationScheduler = Callable[[str, int], None]

BIRTHDAY_MESSAGE_TEMPLATE = "{friend_name}'s birthday is {hours_until} hours away!"


def build_birthday_message(notification: EligibleNotification) -> PushMessage:
    return PushMessage(
        to=notification.device_token,
        sound="default",
        body=BIRTHDAY_MESSAGE_TEMPLATE.format(
            friend_name=notification.friend_name,
            hours_until=notification.hours_until,
        ),
    )


def generate_batch_id(prefix: str = settings.TICKET_STORE_KEY_PREFIX) -> str:
    """Time-ordered batch id, the random suffix keeps concurrent workers apart"""
    return f"{prefix}:{time.time_ns()}-{uuid.uuid4().hex[:8]}"


class PushDispatchService:
    """
    Sends birthday push notifications in provider-sized chunks.

    Tickets from every chunk are stored under a fresh batch id and a receipt
    check for that batch is scheduled RECEIPT_CHECK_DELAY_SECONDS later.
    """

    def __init__(
        self,
        push_client: ExpoPushClient,
        ticket_store: TicketStore,
        schedule_reconciliation: ReconciliationScheduler,
        reconciliation_delay: int = settings.RECEIPT_CHECK_DELAY_SECONDS,
    ):
        self.push_client = push_client
        self.ticket_store = ticket_store
        self.schedule_reconciliation = schedule_reconciliation
        self.reconciliation_delay = reconciliation_delay

    @staticmethod
    def build_messages(eligible: Sequence[EligibleNotification]) -> List[PushMessage]:
        """Push messages for users who opted in and have a registered device"""
        return [
            build_birthday_message(item)
            for item in eligible
            if item.push_notifications and item.device_token
        ]

    async def dispatch(
        self, eligible: Sequence[EligibleNotification]
    ) -> Optional[str]:
        """
        Send push notifications and schedule their receipt check.

        Never raises. Returns the batch id, or None when nothing was sent.
        """
        try:
            messages = self.build_messages(eligible)
            if not messages:
                logger.info(
                    "No push notifications to send", eligible_count=len(eligible)
                )
                return None

            outcomes = await self.send_chunks(messages)
            tickets = [ticket for outcome in outcomes for ticket in outcome.tickets]

            batch_id = generate_batch_id()
            batch = DispatchBatch(batch_id=batch_id, tickets=tickets)
            self.ticket_store.put(batch_id, batch.model_dump_json(by_alias=True))

            self.schedule_reconciliation(batch_id, self.reconciliation_delay)

            logger.info(
                "Push notifications dispatched",
                batch_id=batch_id,
                message_count=len(messages),
                ticket_count=len(tickets),
                failed_chunks=sum(1 for outcome in outcomes if not outcome.succeeded),
            )
            return batch_id

        except Exception as e:
            logger.error("Push notification dispatch failed", error=str(e))
            return None

    async def send_chunks(self, messages: Sequence[PushMessage]) -> List[ChunkOutcome]:
        """Submit chunks in order. A failed chunk does not stop the ones after it."""
        outcomes = []
        for index, chunk in enumerate(self.push_client.chunk_push_notifications(messages)):
            try:
                tickets = await self.push_client.send_push_notifications(chunk)
            except Exception as e:
                logger.error(
                    "Failed to send push notification chunk",
                    chunk_index=index,
                    chunk_size=len(chunk),
                    error=str(e),
                    error_code=getattr(e, "error_code", None),
                )
                outcomes.append(ChunkOutcome(index=index, size=len(chunk), error=str(e)))
                continue

            self._log_ticket_errors(chunk, tickets)
            outcomes.append(ChunkOutcome(index=index, size=len(chunk), tickets=tickets))
        return outcomes

    @staticmethod
    def _log_ticket_errors(
        chunk: Sequence[PushMessage], tickets: Sequence[PushTicket]
    ) -> None:
        # Rejected tickets carry no receipt id, so they are only reported here
        for message, ticket in zip(chunk, tickets):
            if ticket.status != "error":
                continue
            logger.error(
                "Push notification was rejected by Expo",
                to=message.to,
                reason=ticket.message,
                error_code=ticket.details.error if ticket.details else None,
            )
