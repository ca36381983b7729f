"""Shared fixtures: in-memory remote store, scripted transports, sample data."""

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from portaria.exceptions import LocalCacheError, RemoteStoreError
from portaria.messaging.dispatcher import NotificationDispatcher
from portaria.models.delivery import Delivery, DeliveryStatus, Location, Resident
from portaria.models.notification import ChannelAttempt
from portaria.storage.delivery_store import DeliveryStore
from portaria.storage.local_cache import LocalCache

SCOPE = "condo-1"
NOW = datetime(2025, 9, 14, 19, 30, tzinfo=timezone.utc)


def make_delivery(
    code: str = "12345",
    unit: str = "1905",
    notes: Optional[str] = None,
    status: DeliveryStatus = DeliveryStatus.PENDING,
    registered_at: Optional[datetime] = None,
    scope_id: Optional[str] = SCOPE,
    delivery_id: Optional[str] = None,
    block: Optional[str] = "A",
) -> Delivery:
    return Delivery(
        id=delivery_id or str(uuid.uuid4()),
        scope_id=scope_id,
        resident=Resident(id="r-1", name="João Teste", phone="5511999999999"),
        location=Location(block=block, unit=unit),
        pickup_code=code,
        notes=notes,
        registered_at=registered_at or NOW,
        status=status,
    )


class FakeRemote:
    """Remote store kept in memory; `update` is atomic under a lock."""

    def __init__(self, rows=None, failing=()):
        self.rows: List[dict] = [dict(r) for r in rows or []]
        self.failing = set(failing)
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def add(self, delivery: Delivery) -> Delivery:
        self.rows.append(delivery.to_record())
        return delivery

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.failing:
            raise RemoteStoreError(f"{operation} failed")

    @staticmethod
    def _matches(row, filters) -> bool:
        return all(str(row.get(k, "")) == str(v) for k, v in filters.items())

    def select(self, table, filters, order_by=None, descending=False):
        self._check("select")
        with self._lock:
            rows = [dict(r) for r in self.rows if self._matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=descending)
        return rows

    def insert(self, table, values):
        self._check("insert")
        with self._lock:
            self.rows.append(dict(values))
        return dict(values)

    def update(self, table, filters, values, expected=None):
        self._check("update")
        updated = []
        with self._lock:
            for row in self.rows:
                if not self._matches(row, filters):
                    continue
                if expected and not self._matches(row, expected):
                    continue
                row.update(values)
                updated.append(dict(row))
        return updated


class BrokenCache:
    """Local cache whose storage primitive always fails."""

    def read_all(self):
        raise LocalCacheError("cache unreadable")

    def write_all(self, entries):
        raise LocalCacheError("cache unwritable")


class ScriptedTransport:
    """Transport returning pre-set results and counting calls."""

    def __init__(self, name: str, success: bool, status_code: Optional[int] = None):
        self.name = name
        self.success = success
        self.status_code = status_code or (200 if success else 500)
        self.sent = []

    async def send(self, message):
        self.sent.append(message)
        return ChannelAttempt(
            channel=self.name,
            success=self.success,
            status_code=self.status_code,
            error=None if self.success else f"HTTP {self.status_code}",
            latency_ms=1.0,
        )


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def cache(tmp_path) -> LocalCache:
    return LocalCache(tmp_path / "cache.json")


@pytest.fixture
def store(remote, cache) -> DeliveryStore:
    return DeliveryStore(remote, cache, table="Entregas")


@pytest.fixture
def transports():
    return [
        ScriptedTransport("webhook", True),
        ScriptedTransport("function", True),
        ScriptedTransport("direct", True),
    ]


@pytest.fixture
def dispatcher(transports) -> NotificationDispatcher:
    return NotificationDispatcher(transports)


def days_ago(days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=days)
