import pytest
from datetime import date, datetime, timedelta
from typing import Dict, Generator, Iterable, List, Optional, Sequence

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.db import create_tables
from app.db.models import DeviceInfo, Friend, Gender, Notification, User, UserProfile
from app.schemas.push_schemas import PushMessage, PushReceipt, PushTicket
from app.services.expo.expo_push_client import ExpoPushClient
from app.services.notifications.ticket_store import InMemoryTicketStore
from app.utils.datetime_utils import to_naive_utc
from app.utils.errors import PushGatewayError


# Test database setup
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture
def test_engine():
    """Fresh in-memory database for each test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    session_maker = sessionmaker(bind=test_engine, expire_on_commit=False)
    with session_maker() as session:
        yield session
        session.rollback()


# Test data factories
@pytest.fixture
def make_user(db_session: Session):
    """Create a user with a profile and, optionally, registered devices."""
    counter = {"value": 0}

    def _make_user(
        name: str = "U",
        tz: str = "UTC",
        push_notifications: bool = True,
        email_notifications: bool = False,
        device_tokens: Iterable[str] = (),
    ) -> User:
        counter["value"] += 1
        user = User(
            email=f"user{counter['value']}@example.com",
            name=name,
            dob=date(1990, 1, 1),
            gender=Gender.OTHER,
        )
        user.profile = UserProfile(
            timezone=tz,
            push_notifications=push_notifications,
            email_notifications=email_notifications,
        )
        db_session.add(user)
        db_session.flush()

        # Later tokens are registered later
        for offset, token in enumerate(device_tokens):
            db_session.add(
                DeviceInfo(
                    user_id=user.id,
                    device_token=token,
                    created_at=datetime(2026, 1, 1) + timedelta(days=offset),
                )
            )
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_friend(db_session: Session):
    def _make_friend(user: User, name: str, dob: date) -> Friend:
        friend = Friend(user_id=user.id, name=name, dob=dob)
        db_session.add(friend)
        db_session.commit()
        return friend

    return _make_friend


@pytest.fixture
def make_notification(db_session: Session):
    def _make_notification(user: User, friend: Friend, date_sent: datetime) -> Notification:
        notification = Notification(
            user_id=user.id,
            friend_id=friend.id,
            message=f"{friend.name}'s birthday is coming up",
            date_sent=to_naive_utc(date_sent),
        )
        db_session.add(notification)
        db_session.commit()
        return notification

    return _make_notification


class FakePushClient(ExpoPushClient):
    """Expo client double that records calls instead of hitting the network."""

    def __init__(
        self,
        chunk_limit: int = ExpoPushClient.PUSH_NOTIFICATION_CHUNK_LIMIT,
        receipt_chunk_limit: int = ExpoPushClient.PUSH_NOTIFICATION_RECEIPT_CHUNK_LIMIT,
        failing_chunks: Sequence[int] = (),
        failing_receipt_chunks: Sequence[int] = (),
        rejected_tokens: Sequence[str] = (),
        receipts: Optional[Dict[str, PushReceipt]] = None,
    ):
        super().__init__(base_url="https://push.test/--/api/v2", access_token="")
        self.PUSH_NOTIFICATION_CHUNK_LIMIT = chunk_limit
        self.PUSH_NOTIFICATION_RECEIPT_CHUNK_LIMIT = receipt_chunk_limit
        self.failing_chunks = set(failing_chunks)
        self.failing_receipt_chunks = set(failing_receipt_chunks)
        self.rejected_tokens = set(rejected_tokens)
        self.receipts = receipts or {}
        self.sent_chunks: List[List[PushMessage]] = []
        self.receipt_requests: List[List[str]] = []

    async def send_push_notifications(self, messages):
        index = len(self.sent_chunks)
        self.sent_chunks.append(list(messages))
        if index in self.failing_chunks:
            raise PushGatewayError("Expo is unavailable", error_code="PUSH_GATEWAY_HTTP_ERROR")

        tickets = []
        for message in messages:
            if message.to in self.rejected_tokens:
                tickets.append(
                    PushTicket(
                        status="error",
                        message=f"{message.to} is not a registered push notification recipient",
                        details={"error": "DeviceNotRegistered"},
                    )
                )
            else:
                tickets.append(PushTicket(status="ok", id=f"receipt-{message.to}"))
        return tickets

    async def get_push_notification_receipts(self, receipt_ids):
        index = len(self.receipt_requests)
        self.receipt_requests.append(list(receipt_ids))
        if index in self.failing_receipt_chunks:
            raise PushGatewayError("Expo is unavailable", error_code="PUSH_GATEWAY_HTTP_ERROR")
        return {
            receipt_id: self.receipts.get(receipt_id, PushReceipt(status="ok"))
            for receipt_id in receipt_ids
        }


@pytest.fixture
def push_client_factory():
    return FakePushClient


@pytest.fixture
def ticket_store() -> InMemoryTicketStore:
    return InMemoryTicketStore(ttl_seconds=3600)
