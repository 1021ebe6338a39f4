import json
import pytest

import httpx

from app.schemas.push_schemas import PushMessage
from app.services.expo.expo_push_client import ExpoPushClient
from app.utils.errors import PushGatewayError

BASE_URL = "https://push.test/--/api/v2"


def _client(handler, access_token: str = "") -> ExpoPushClient:
    return ExpoPushClient(
        base_url=BASE_URL,
        access_token=access_token,
        transport=httpx.MockTransport(handler),
    )


def _messages(count: int):
    return [
        PushMessage(to=f"ExponentPushToken[{i}]", body=f"F{i}'s birthday is 10 hours away!")
        for i in range(count)
    ]


class TestChunking:
    """Test splitting of messages and receipt ids to Expo's limits."""

    def test_message_chunks_preserve_order(self):
        client = ExpoPushClient(base_url=BASE_URL)
        messages = _messages(250)

        chunks = client.chunk_push_notifications(messages)

        assert [len(chunk) for chunk in chunks] == [100, 100, 50]
        assert [m for chunk in chunks for m in chunk] == messages

    def test_receipt_id_chunks(self):
        client = ExpoPushClient(base_url=BASE_URL)
        ids = [f"receipt-{i}" for i in range(301)]

        chunks = client.chunk_push_notification_receipt_ids(ids)

        assert [len(chunk) for chunk in chunks] == [300, 1]

    def test_empty_input_has_no_chunks(self):
        client = ExpoPushClient(base_url=BASE_URL)
        assert client.chunk_push_notifications([]) == []


class TestSendPushNotifications:
    """Test submission of a chunk to /push/send."""

    @pytest.mark.asyncio
    async def test_sends_camel_case_payload_and_parses_tickets(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers.get("Authorization")
            captured["payload"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"status": "ok", "id": "receipt-0"},
                        {
                            "status": "error",
                            "message": "not a registered push notification recipient",
                            "details": {"error": "DeviceNotRegistered"},
                        },
                    ]
                },
            )

        messages = [
            PushMessage(to="ExponentPushToken[a]", body="A", channel_id="birthdays"),
            PushMessage(to="ExponentPushToken[b]", body="B"),
        ]
        tickets = await _client(handler, access_token="secret").send_push_notifications(
            messages
        )

        assert captured["url"] == f"{BASE_URL}/push/send"
        assert captured["auth"] == "Bearer secret"
        assert captured["payload"] == [
            {
                "to": "ExponentPushToken[a]",
                "body": "A",
                "sound": "default",
                "channelId": "birthdays",
            },
            {"to": "ExponentPushToken[b]", "body": "B", "sound": "default"},
        ]
        assert [ticket.status for ticket in tickets] == ["ok", "error"]
        assert tickets[0].id == "receipt-0"
        assert tickets[1].details.error == "DeviceNotRegistered"

    @pytest.mark.asyncio
    async def test_no_authorization_header_without_token(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"data": [{"status": "ok", "id": "r"}]})

        await _client(handler).send_push_notifications(_messages(1))

        assert captured["auth"] is None

    @pytest.mark.asyncio
    async def test_ticket_count_mismatch(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"status": "ok", "id": "r"}]})

        with pytest.raises(PushGatewayError) as exc_info:
            await _client(handler).send_push_notifications(_messages(2))

        assert exc_info.value.error_code == "PUSH_GATEWAY_TICKET_MISMATCH"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        with pytest.raises(PushGatewayError) as exc_info:
            await _client(handler).send_push_notifications(_messages(1))

        assert exc_info.value.error_code == "PUSH_GATEWAY_HTTP_ERROR"
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_request_level_errors(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "errors": [
                        {
                            "code": "PUSH_TOO_MANY_EXPERIENCE_IDS",
                            "message": "All push notification messages must belong to the same project",
                        }
                    ]
                },
            )

        with pytest.raises(PushGatewayError) as exc_info:
            await _client(handler).send_push_notifications(_messages(1))

        assert exc_info.value.error_code == "PUSH_TOO_MANY_EXPERIENCE_IDS"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(PushGatewayError) as exc_info:
            await _client(handler).send_push_notifications(_messages(1))

        assert exc_info.value.error_code == "PUSH_GATEWAY_UNREACHABLE"


class TestGetPushNotificationReceipts:
    """Test receipt retrieval from /push/getReceipts."""

    @pytest.mark.asyncio
    async def test_fetches_receipts_by_id(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["payload"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "data": {
                        "receipt-1": {"status": "ok"},
                        "receipt-2": {
                            "status": "error",
                            "message": "The device cannot receive push notifications",
                            "details": {"error": "DeviceNotRegistered"},
                        },
                    }
                },
            )

        receipts = await _client(handler).get_push_notification_receipts(
            ["receipt-1", "receipt-2", "receipt-3"]
        )

        assert captured["url"] == f"{BASE_URL}/push/getReceipts"
        assert captured["payload"] == {"ids": ["receipt-1", "receipt-2", "receipt-3"]}
        assert set(receipts) == {"receipt-1", "receipt-2"}
        assert receipts["receipt-1"].status == "ok"
        assert receipts["receipt-2"].details.error == "DeviceNotRegistered"

    @pytest.mark.asyncio
    async def test_invalid_receipts_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": []})

        with pytest.raises(PushGatewayError) as exc_info:
            await _client(handler).get_push_notification_receipts(["receipt-1"])

        assert exc_info.value.error_code == "PUSH_GATEWAY_INVALID_RECEIPTS"
