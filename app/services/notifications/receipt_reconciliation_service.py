from typing import List

from pydantic import ValidationError

from app.schemas.push_schemas import (
    BatchState,
    DispatchBatch,
    ReceiptOutcome,
    ReconciliationReport,
)
from app.services.expo.expo_push_client import ExpoPushClient
from app.services.notifications.ticket_store import TicketStore
from app.utils.errors import TicketStoreError
from app.utils.logging import get_logger

logger = get_logger()


class ReceiptReconciliationService:
    """
    Exchanges the tickets of a dispatch batch for Expo delivery receipts.

    Runs once per batch after the receipt check delay. Errors are logged,
    nothing is retried or re-dispatched.
    """

    def __init__(self, push_client: ExpoPushClient, ticket_store: TicketStore):
        self.push_client = push_client
        self.ticket_store = ticket_store

    async def reconcile(self, batch_id: str) -> None:
        """Reconcile a batch. Never raises."""
        try:
            await self.reconcile_batch(batch_id)
        except Exception as e:
            logger.error(
                "Push receipt reconciliation failed", batch_id=batch_id, error=str(e)
            )

    async def reconcile_batch(self, batch_id: str) -> ReconciliationReport:
        batch = self._load_batch(batch_id)
        if batch is None:
            # Expired, never stored or evicted: nothing to check
            return ReconciliationReport(batch_id=batch_id, state=BatchState.LOST)

        if batch.state != BatchState.PENDING:
            return ReconciliationReport(batch_id=batch_id, state=batch.state)

        outcomes: List[ReceiptOutcome] = []
        failed_chunks = 0
        receipt_ids = batch.receipt_ids()

        for index, chunk in enumerate(
            self.push_client.chunk_push_notification_receipt_ids(receipt_ids)
        ):
            try:
                receipts = await self.push_client.get_push_notification_receipts(chunk)
            except Exception as e:
                failed_chunks += 1
                logger.error(
                    "Failed to fetch push receipt chunk",
                    batch_id=batch_id,
                    chunk_index=index,
                    chunk_size=len(chunk),
                    error=str(e),
                )
                continue

            # Keep ticket order, receipts that are not ready yet are skipped
            for receipt_id in chunk:
                receipt = receipts.get(receipt_id)
                if receipt is None:
                    continue
                outcome = ReceiptOutcome(
                    receipt_id=receipt_id,
                    status=receipt.status,
                    message=receipt.message,
                    error_code=receipt.details.error if receipt.details else None,
                )
                self._log_outcome(batch_id, outcome)
                outcomes.append(outcome)

        batch.state = BatchState.RECONCILED
        self.ticket_store.put(batch_id, batch.model_dump_json(by_alias=True))

        report = ReconciliationReport(
            batch_id=batch_id,
            state=BatchState.RECONCILED,
            outcomes=outcomes,
            failed_chunks=failed_chunks,
        )
        logger.info(
            "Push receipts reconciled",
            batch_id=batch_id,
            receipt_count=len(outcomes),
            error_count=len(report.errors),
            failed_chunks=failed_chunks,
        )
        return report

    def _load_batch(self, batch_id: str):
        raw = self.ticket_store.get(batch_id)
        if raw is None:
            return None
        try:
            return DispatchBatch.model_validate_json(raw)
        except ValidationError as e:
            raise TicketStoreError(
                f"Stored tickets for {batch_id} are corrupt: {str(e)}",
                error_code="TICKET_STORE_CORRUPT_ENTRY",
            ) from e

    @staticmethod
    def _log_outcome(batch_id: str, outcome: ReceiptOutcome) -> None:
        if outcome.status == "ok":
            return
        logger.error(
            "There was an error sending a notification",
            batch_id=batch_id,
            receipt_id=outcome.receipt_id,
            reason=outcome.message,
        )
        if outcome.error_code:
            logger.error(
                "Push notification error code",
                batch_id=batch_id,
                receipt_id=outcome.receipt_id,
                error_code=outcome.error_code,
            )
