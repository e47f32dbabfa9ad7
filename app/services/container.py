"""
Service wiring.

Every service is built once per process from one DocumentStore, one clock
and one notification sender. Routes fetch the wired set with get_services();
tests install their own with set_services().
"""

from typing import Optional
import logging

from app.config.firebase import get_store
from app.core.clock import Clock, system_clock
from app.core.settings import settings
from app.services.audit_service import AuditTrail
from app.services.auth_service import AuthService
from app.services.location_service import LocationResolver
from app.services.moderation_service import ModerationService
from app.services.notification_service import (
    CompositeSender,
    EmailSender,
    FirebasePushSender,
    InAppNotificationSender,
    NotificationDispatcher,
    NotificationSender,
)
from app.services.otp_service import OTPService
from app.services.rate_limiter import RateLimiter
from app.services.report_service import ReportService
from app.services.station_service import StationService
from app.services.user_service import UserService
from app.store.base import DocumentStore

logger = logging.getLogger(__name__)


class Services:
    """The wired service graph."""

    def __init__(self, store: DocumentStore, clock: Clock, sender: NotificationSender):
        self.store = store
        self.clock = clock

        self.dispatcher = NotificationDispatcher(sender)
        self.audit = AuditTrail(store)
        self.resolver = LocationResolver(store)

        self.submission_limiter = RateLimiter(
            "submission", settings.CITIZEN_DAILY_LIMIT, settings.SUBMISSION_WINDOW_SECONDS, clock=clock,
        )
        self.otp_request_limiter = RateLimiter(
            "otp_request", settings.OTP_REQUESTS_PER_HOUR, 60 * 60, clock=clock,
        )
        self.otp = OTPService(
            clock=clock,
            length=settings.OTP_LENGTH,
            expiry_minutes=settings.OTP_EXPIRY_MINUTES,
            max_attempts=settings.OTP_MAX_ATTEMPTS,
        )

        self.users = UserService(store, clock)
        self.stations = StationService(store, clock)
        self.reports = ReportService(store, self.resolver, self.submission_limiter, self.audit, clock)
        self.moderation = ModerationService(store, self.resolver, self.audit, self.dispatcher, clock)
        self.auth = AuthService(self.users, self.otp, self.otp_request_limiter, self.dispatcher)

    def sweep(self) -> int:
        """Drop expired codes and elapsed rate windows. Returns records removed."""
        return self.otp.sweep_expired() + self.submission_limiter.sweep() + self.otp_request_limiter.sweep()


def default_sender(store: DocumentStore, clock: Clock) -> NotificationSender:
    senders = [InAppNotificationSender(store, clock), EmailSender()]
    if settings.PUSH_NOTIFICATIONS_ENABLED:
        senders.append(FirebasePushSender())
    return CompositeSender(senders)


def build_services(
    store: Optional[DocumentStore] = None,
    clock: Clock = system_clock,
    sender: Optional[NotificationSender] = None,
) -> Services:
    if store is None:
        store = get_store()
    if sender is None:
        sender = default_sender(store, clock)
    return Services(store, clock, sender)


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
        logger.info("Services initialized")
    return _services


def set_services(services: Optional[Services]) -> None:
    global _services
    _services = services
