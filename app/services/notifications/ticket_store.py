import threading
import time
from typing import Dict, Optional, Protocol, Tuple

import redis

from app.config.settings import settings
from app.utils.errors import TicketStoreError


class TicketStore(Protocol):
    """Short-lived cache mapping a dispatch batch id to its serialized tickets."""

    ttl_seconds: int

    def put(self, key: str, value: str) -> None: ...

    def get(self, key: str) -> Optional[str]: ...


def _check_retention(ttl_seconds: int) -> None:
    # The receipt check runs no earlier than the delay, often later
    minimum = 2 * settings.RECEIPT_CHECK_DELAY_SECONDS
    if ttl_seconds < minimum:
        raise TicketStoreError(
            f"Ticket TTL of {ttl_seconds}s is below {minimum}s, twice the receipt "
            f"check delay of {settings.RECEIPT_CHECK_DELAY_SECONDS}s",
            error_code="TICKET_STORE_TTL_TOO_SHORT",
        )


class RedisTicketStore:
    """Ticket store shared by every worker process through Redis."""

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        ttl_seconds: int = settings.TICKET_STORE_TTL_SECONDS,
    ):
        _check_retention(ttl_seconds)
        self.client = client or redis.Redis.from_url(
            settings.redis_url, decode_responses=True, socket_connect_timeout=5
        )
        self.ttl_seconds = ttl_seconds

    def put(self, key: str, value: str) -> None:
        self.client.setex(key, self.ttl_seconds, value)

    set = put

    def get(self, key: str) -> Optional[str]:
        value = self.client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value


class InMemoryTicketStore:
    """Process-local ticket store for tests and single-process runs."""

    def __init__(self, ttl_seconds: int = settings.TICKET_STORE_TTL_SECONDS, clock=None):
        _check_retention(ttl_seconds)
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: str) -> None:
        with self._lock:
            now = self._clock()
            self._evict_expired(now)
            self._entries[key] = (now + self.ttl_seconds, value)

    set = put

    def _evict_expired(self, now: float) -> None:
        # Reconciled batches are never read again, so expiry cannot wait for get
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


_default_store: Optional[TicketStore] = None


def get_ticket_store() -> TicketStore:
    """Lazily create the Redis-backed store used by the Celery tasks."""
    global _default_store
    if _default_store is None:
        _default_store = RedisTicketStore()
    return _default_store
