import json

import pytest

from app.core.errors import NotificationDeliveryError
from app.models.user import Role
from app.services.notification_service import (
    NOTIFICATIONS_COLLECTION,
    CompositeSender,
    EmailSender,
    FirebasePushSender,
    InAppNotificationSender,
    Notification,
    NotificationDispatcher,
    NotificationSender,
    NotificationTarget,
    TargetKind,
)


class FailingSender(NotificationSender):
    target_kinds = (TargetKind.USER, TargetKind.STATION, TargetKind.ADDRESS)

    def send(self, notification):
        raise RuntimeError("boom")


def note(target, type_="TEST"):
    return Notification(target, type_, "Title", "Body", {"incidentId": "inc-1"})


def test_in_app_user_notification(store, clock):
    sender = InAppNotificationSender(store, clock)
    sender.send(note(NotificationTarget.user("user-1")))

    records = store.find(NOTIFICATIONS_COLLECTION)
    assert len(records) == 1
    assert records[0]["user_id"] == "user-1"
    assert records[0]["is_read"] is False
    assert json.loads(records[0]["data"]) == {"incidentId": "inc-1"}


def test_station_fan_out_reaches_active_officers_only(store, clock, make_user):
    make_user("officer-1", Role.POLICE, station_id="station-a")
    make_user("officer-2", Role.POLICE, station_id="station-a")
    make_user("retired", Role.POLICE, station_id="station-a", is_active=False)
    make_user("elsewhere", Role.POLICE, station_id="station-b")
    make_user("citizen", Role.CITIZEN, station_id="station-a")

    InAppNotificationSender(store, clock).send(note(NotificationTarget.station("station-a")))

    recipients = sorted(r["user_id"] for r in store.find(NOTIFICATIONS_COLLECTION))
    assert recipients == ["officer-1", "officer-2"]


def test_push_topics():
    assert FirebasePushSender.topic_for(NotificationTarget.user("u1")) == "user_u1"
    assert FirebasePushSender.topic_for(NotificationTarget.station("s1")) == "station_s1"


def test_email_sender_without_smtp_is_a_noop():
    EmailSender(host="").send(note(NotificationTarget.address("a@example.com")))


def test_composite_routes_by_target_and_aggregates_errors(store, clock):
    in_app = InAppNotificationSender(store, clock)
    composite = CompositeSender([in_app, FailingSender()])

    with pytest.raises(NotificationDeliveryError):
        composite.send(note(NotificationTarget.user("user-1")))
    assert len(store.find(NOTIFICATIONS_COLLECTION)) == 1

    assert composite.supports(NotificationTarget.address("a@example.com"))
    assert not in_app.supports(NotificationTarget.address("a@example.com"))


def test_dispatcher_isolates_failures():
    dispatcher = NotificationDispatcher(FailingSender())
    try:
        dispatcher.dispatch(note(NotificationTarget.user("user-1")))
        dispatcher.dispatch(note(NotificationTarget.user("user-2")))
        dispatcher.flush()
        assert dispatcher.failures == 2
    finally:
        dispatcher.stop()


def test_dispatcher_keeps_delivering_after_a_failure(sender):
    sender.fail_types = {"BROKEN"}
    dispatcher = NotificationDispatcher(sender)
    try:
        dispatcher.dispatch(note(NotificationTarget.user("user-1"), "BROKEN"))
        dispatcher.dispatch(note(NotificationTarget.user("user-1"), "OK"))
        dispatcher.flush()
        assert [n.type for n in sender.sent] == ["OK"]
        assert dispatcher.failures == 1
    finally:
        dispatcher.stop()
