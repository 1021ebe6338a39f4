from typing import Dict, List, Optional, Sequence, TypeVar

import httpx

from app.config.settings import settings
from app.schemas.push_schemas import PushMessage, PushReceipt, PushTicket
from app.utils.logging import get_logger
from app.utils.errors import PushGatewayError

logger = get_logger()

T = TypeVar("T")


def _chunk(items: Sequence[T], size: int) -> List[List[T]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class ExpoPushClient:
    """Client for the Expo push notification service."""

    # Limits imposed by the Expo push API
    PUSH_NOTIFICATION_CHUNK_LIMIT = 100
    PUSH_NOTIFICATION_RECEIPT_CHUNK_LIMIT = 300

    def __init__(
        self,
        base_url: str = settings.EXPO_BASE_URL,
        access_token: Optional[str] = settings.EXPO_ACCESS_TOKEN,
        timeout: float = settings.EXPO_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    def chunk_push_notifications(
        self, messages: Sequence[PushMessage]
    ) -> List[List[PushMessage]]:
        return _chunk(messages, self.PUSH_NOTIFICATION_CHUNK_LIMIT)

    def chunk_push_notification_receipt_ids(
        self, receipt_ids: Sequence[str]
    ) -> List[List[str]]:
        return _chunk(receipt_ids, self.PUSH_NOTIFICATION_RECEIPT_CHUNK_LIMIT)

    async def _post(self, path: str, payload) -> dict:
        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}{path}",
                    headers=self._headers(),
                    json=payload,
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                raise PushGatewayError(
                    f"Request to Expo {path} failed: {str(e)}",
                    error_code="PUSH_GATEWAY_UNREACHABLE",
                ) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code != 200 or not isinstance(body, dict):
            raise PushGatewayError(
                f"Expo {path} returned {response.status_code} - {response.text}",
                error_code="PUSH_GATEWAY_HTTP_ERROR",
                status_code=response.status_code,
            )

        # Request-level errors, individual message errors come back as tickets
        if body.get("errors"):
            first = body["errors"][0]
            raise PushGatewayError(
                f"Expo {path} rejected the request: {first.get('message', first)}",
                error_code=first.get("code", "PUSH_GATEWAY_REQUEST_ERROR"),
                status_code=response.status_code,
            )

        return body

    async def send_push_notifications(
        self, messages: Sequence[PushMessage]
    ) -> List[PushTicket]:
        """Submit one chunk and return its tickets, in message order."""
        payload = [
            message.model_dump(by_alias=True, exclude_none=True) for message in messages
        ]
        body = await self._post("/push/send", payload)
        logger.debug("Submitted push chunk to Expo", size=len(payload))

        data = body.get("data")
        if not isinstance(data, list) or len(data) != len(messages):
            raise PushGatewayError(
                f"Expected {len(messages)} push tickets, got "
                f"{len(data) if isinstance(data, list) else 'none'}",
                error_code="PUSH_GATEWAY_TICKET_MISMATCH",
            )

        return [PushTicket.model_validate(ticket) for ticket in data]

    async def get_push_notification_receipts(
        self, receipt_ids: Sequence[str]
    ) -> Dict[str, PushReceipt]:
        """Fetch receipts for one chunk of ids. Receipts not ready yet are omitted."""
        body = await self._post("/push/getReceipts", {"ids": list(receipt_ids)})

        data = body.get("data")
        if not isinstance(data, dict):
            raise PushGatewayError(
                "Expo receipts response has no data object",
                error_code="PUSH_GATEWAY_INVALID_RECEIPTS",
            )

        return {
            receipt_id: PushReceipt.model_validate(receipt)
            for receipt_id, receipt in data.items()
        }
