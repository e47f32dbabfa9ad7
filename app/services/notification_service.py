"""
Notification Service - fire-and-forget delivery of user, station and email
notifications.

DESIGN PRINCIPLES (CRITICAL):
- Delivery NEVER fails or delays the action that triggered it
- Callers hand a Notification to the dispatcher queue and return immediately
- A worker thread delivers; failures are logged, never raised back
- Senders are pluggable per target kind:
  - in-app records in the store (users and station staff)
  - Firebase Cloud Messaging topics (user_<id>, station_<id>)
  - SMTP email (one-time codes and welcome mails)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.message import EmailMessage
from enum import Enum
from typing import Dict, List, Optional, Sequence
import asyncio
import json
import logging
import queue
import threading

import aiosmtplib
from firebase_admin import messaging

from app.core.clock import Clock, system_clock
from app.core.errors import NotificationDeliveryError
from app.core.settings import settings
from app.services.user_service import USERS_COLLECTION
from app.store.base import DocumentStore

logger = logging.getLogger(__name__)

NOTIFICATIONS_COLLECTION = "notifications"


class TargetKind(str, Enum):
    USER = "USER"
    STATION = "STATION"
    ADDRESS = "ADDRESS"


@dataclass(frozen=True)
class NotificationTarget:
    kind: TargetKind
    id: str

    @classmethod
    def user(cls, user_id: str) -> "NotificationTarget":
        return cls(TargetKind.USER, user_id)

    @classmethod
    def station(cls, station_id: str) -> "NotificationTarget":
        return cls(TargetKind.STATION, station_id)

    @classmethod
    def address(cls, address: str) -> "NotificationTarget":
        return cls(TargetKind.ADDRESS, address)


@dataclass
class Notification:
    target: NotificationTarget
    type: str
    title: str
    body: str
    data: Dict = field(default_factory=dict)


class NotificationSender(ABC):
    """
    Outbound transport.

    Contract:
    - send() may block on I/O and may raise; the dispatcher handles both
    - supports() tells the composite sender which targets to route here
    """

    target_kinds: Sequence[TargetKind] = ()

    def supports(self, target: NotificationTarget) -> bool:
        return target.kind in self.target_kinds

    @abstractmethod
    def send(self, notification: Notification) -> None:
        raise NotImplementedError


class InAppNotificationSender(NotificationSender):
    """Stores notification records; station targets fan out to active officers."""

    target_kinds = (TargetKind.USER, TargetKind.STATION)

    def __init__(self, store: DocumentStore, clock: Clock = system_clock):
        self.store = store
        self.clock = clock

    def _recipients(self, target: NotificationTarget) -> List[str]:
        if target.kind == TargetKind.USER:
            return [target.id]
        officers = self.store.find(
            USERS_COLLECTION,
            [("station_id", "==", target.id), ("role", "==", "POLICE"), ("is_active", "==", True)],
        )
        return [officer["id"] for officer in officers]

    def send(self, notification: Notification) -> None:
        recipients = self._recipients(notification.target)
        if not recipients:
            logger.info(f"No recipients for {notification.target.kind.value}/{notification.target.id}")
            return

        def _write_batch(txn):
            for user_id in recipients:
                txn.add(NOTIFICATIONS_COLLECTION, {
                    "user_id": user_id,
                    "type": notification.type,
                    "title": notification.title,
                    "message": notification.body,
                    "data": json.dumps(notification.data),
                    "is_read": False,
                    "created_at": self.clock.now(),
                })

        self.store.run_transaction(_write_batch)


class FirebasePushSender(NotificationSender):
    """Push via Firebase Cloud Messaging topics."""

    target_kinds = (TargetKind.USER, TargetKind.STATION)

    @staticmethod
    def topic_for(target: NotificationTarget) -> str:
        prefix = "user" if target.kind == TargetKind.USER else "station"
        return f"{prefix}_{target.id}"

    def send(self, notification: Notification) -> None:
        message = messaging.Message(
            notification=messaging.Notification(title=notification.title, body=notification.body),
            data={key: str(value) for key, value in notification.data.items()},
            topic=self.topic_for(notification.target),
        )
        message_id = messaging.send(message)
        logger.info(f"Push sent to {self.topic_for(notification.target)}: {message_id}")


class EmailSender(NotificationSender):
    """SMTP delivery for address targets."""

    target_kinds = (TargetKind.ADDRESS,)

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_email: Optional[str] = None,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.from_email = from_email or settings.SMTP_FROM_EMAIL

    def send(self, notification: Notification) -> None:
        if not self.host:
            logger.warning(f"SMTP not configured, skipping email '{notification.type}'")
            return

        msg = EmailMessage()
        msg["From"] = self.from_email
        msg["To"] = notification.target.id
        msg["Subject"] = notification.title
        msg.set_content(notification.body)

        # STARTTLS on 587, implicit TLS on 465
        asyncio.run(aiosmtplib.send(
            msg,
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            start_tls=self.port == 587,
            use_tls=self.port == 465,
        ))
        logger.info(f"Email '{notification.type}' sent")


class CompositeSender(NotificationSender):
    """Routes each notification to every sender that supports its target."""

    def __init__(self, senders: Sequence[NotificationSender]):
        self.senders = list(senders)

    def supports(self, target: NotificationTarget) -> bool:
        return any(sender.supports(target) for sender in self.senders)

    def send(self, notification: Notification) -> None:
        errors = []
        for sender in self.senders:
            if not sender.supports(notification.target):
                continue
            try:
                sender.send(notification)
            except Exception as e:
                errors.append(f"{type(sender).__name__}: {e}")
        if errors:
            raise NotificationDeliveryError("; ".join(errors))


_STOP = object()


class NotificationDispatcher:
    """
    Queue plus a daemon worker thread.

    dispatch() never raises and never waits for delivery.
    """

    def __init__(self, sender: NotificationSender):
        self.sender = sender
        self._queue: "queue.Queue" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self.failures = 0

    def start(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._run, name="notification-dispatcher", daemon=True)
            self._worker.start()

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            worker = self._worker
            self._worker = None
        if worker is not None:
            self._queue.put(_STOP)
            worker.join(timeout)

    def dispatch(self, notification: Notification) -> None:
        self.start()
        self._queue.put(notification)

    def flush(self) -> None:
        """Block until everything queued so far has been attempted."""
        self._queue.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._deliver(item)
            finally:
                self._queue.task_done()

    def _deliver(self, notification: Notification) -> None:
        target = notification.target
        try:
            self.sender.send(notification)
        except Exception as e:
            self.failures += 1
            error = e if isinstance(e, NotificationDeliveryError) else NotificationDeliveryError(str(e))
            logger.error(
                f"Notification '{notification.type}' to {target.kind.value}/{target.id} failed: {error}",
                exc_info=not isinstance(e, NotificationDeliveryError),
            )
