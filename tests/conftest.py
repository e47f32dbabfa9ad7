import threading
from typing import List

import pytest
from fastapi.testclient import TestClient

from app.core.clock import ManualClock
from app.core.errors import NotificationDeliveryError
from app.main import app
from app.models.user import Identity, Role
from app.services.container import build_services, set_services
from app.services.location_service import STATIONS_COLLECTION
from app.services.notification_service import Notification, NotificationSender, TargetKind
from app.services.user_service import USERS_COLLECTION
from app.store.memory import InMemoryStore


class RecordingSender(NotificationSender):
    """Collects every notification; optionally fails for chosen types."""

    target_kinds = (TargetKind.USER, TargetKind.STATION, TargetKind.ADDRESS)

    def __init__(self):
        self.sent: List[Notification] = []
        self.fail_types = set()
        self._lock = threading.Lock()

    def send(self, notification: Notification) -> None:
        if notification.type in self.fail_types:
            raise NotificationDeliveryError(f"transport down for {notification.type}")
        with self._lock:
            self.sent.append(notification)

    def of_type(self, notification_type: str) -> List[Notification]:
        return [n for n in self.sent if n.type == notification_type]


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def services(store, clock, sender):
    wired = build_services(store=store, clock=clock, sender=sender)
    set_services(wired)
    try:
        yield wired
    finally:
        wired.dispatcher.stop()
        set_services(None)


@pytest.fixture
def make_user(store, clock):
    def _make(user_id: str, role: Role = Role.CITIZEN, station_id=None, is_active=True, trust_score=50, email=None):
        store.add(USERS_COLLECTION, {
            "email": email or f"{user_id}@example.com",
            "name": user_id.replace("-", " ").title(),
            "role": role.value,
            "is_verified": True,
            "is_active": is_active,
            "trust_score": trust_score,
            "station_id": station_id,
            "created_at": clock.now(),
            "last_login_at": None,
        }, doc_id=user_id)
        return Identity(id=user_id, role=role.value)
    return _make


@pytest.fixture
def make_station(store, clock):
    def _make(station_id: str, latitude: float, longitude: float, is_active=True, name=None):
        store.add(STATIONS_COLLECTION, {
            "name": name or f"{station_id} Police Station",
            "station_type": "SUB_STATION",
            "address": f"{station_id} main road",
            "city": "Mumbai",
            "state": "Maharashtra",
            "pincode": "400001",
            "latitude": latitude,
            "longitude": longitude,
            "is_active": is_active,
            "created_at": clock.now(),
        }, doc_id=station_id)
        return station_id
    return _make


@pytest.fixture
def client(services):
    return TestClient(app)
