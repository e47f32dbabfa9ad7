import threading

import pytest

from app.core.errors import Conflict, InvalidStatus, NotFound, PolicyViolation
from app.models.audit import RequestMeta
from app.models.report import IncidentCreate
from app.models.user import Role
from app.services.audit_service import AUDIT_COLLECTION
from app.services.notification_service import TargetKind
from app.services.report_service import COMPLAINTS_COLLECTION, INCIDENTS_COLLECTION
from app.services.user_service import USERS_COLLECTION


@pytest.fixture
def setup(services, make_user, make_station):
    make_station("station-a", 19.12, 72.85)
    make_station("station-b", 18.94, 72.83)
    publisher = make_user("publisher", trust_score=50)
    moderator = make_user("moderator", Role.MODERATOR)
    make_user("officer-a", Role.POLICE, station_id="station-a")
    make_user("officer-b", Role.POLICE, station_id="station-b")
    return publisher, moderator


def submit(services, publisher, **overrides):
    draft = {
        "title": "Fire in building",
        "description": "Smoke coming out of the third floor windows.",
        "category": "FIRE",
        "latitude": 19.119,
        "longitude": 72.846,
        "address": "SV Road",
    }
    draft.update(overrides)
    return services.reports.submit(IncidentCreate(**draft), publisher)


def test_verify_scenario(services, store, sender, setup):
    publisher, moderator = setup
    incident = submit(services, publisher)

    updated = services.moderation.decide(
        incident["id"], moderator, "VERIFIED", "Confirmed by caller",
        RequestMeta(ip_address="10.0.0.1", user_agent="pytest"),
    )
    services.dispatcher.flush()

    assert updated["status"] == "VERIFIED"
    assert updated["station_id"] == "station-a"
    stored = store.get(INCIDENTS_COLLECTION, incident["id"])
    assert stored["status"] == "VERIFIED"
    assert stored["moderated_by"] == moderator.id
    assert stored["moderation_note"] == "Confirmed by caller"
    assert stored["moderated_at"] is not None

    assert store.get(USERS_COLLECTION, publisher.id)["trust_score"] == 52

    entries = store.find(AUDIT_COLLECTION)
    assert len(entries) == 1
    assert entries[0]["action"] == "VERIFY_INCIDENT"
    assert entries[0]["target_id"] == incident["id"]
    assert entries[0]["reason"] == "Confirmed by caller"
    assert entries[0]["ip_address_hash"] and entries[0]["ip_address_hash"] != "10.0.0.1"

    assert [n.target.id for n in sender.of_type("INCIDENT_VERIFIED")] == [publisher.id]
    station_batches = sender.of_type("NEW_INCIDENT_NEARBY")
    assert len(station_batches) == 1
    assert station_batches[0].target.kind == TargetKind.STATION
    assert station_batches[0].target.id == "station-a"
    assert station_batches[0].data["urgency"] == "HIGH"


def test_reject_lowers_trust_and_skips_station(services, store, sender, setup):
    publisher, moderator = setup
    incident = submit(services, publisher, category="CIVIC_ISSUE")

    services.moderation.decide(incident["id"], moderator, "REJECTED", "Duplicate")
    services.dispatcher.flush()

    assert store.get(USERS_COLLECTION, publisher.id)["trust_score"] == 49
    assert store.find(AUDIT_COLLECTION)[0]["action"] == "REJECT_INCIDENT"
    rejected = sender.of_type("INCIDENT_REJECTED")
    assert len(rejected) == 1
    assert "Duplicate" in rejected[0].body
    assert sender.of_type("NEW_INCIDENT_NEARBY") == []


MODERATION_FIELDS = ("moderation_note", "moderated_by", "moderated_at")


@pytest.mark.parametrize("decision", ["VERIFIED", "REJECTED", "TAKEN_DOWN"])
def test_decision_without_note_sets_all_moderation_fields(services, store, setup, decision):
    publisher, moderator = setup
    incident = submit(services, publisher)
    before = store.get(INCIDENTS_COLLECTION, incident["id"])
    assert all(before[field] is None for field in MODERATION_FIELDS)

    services.moderation.decide(incident["id"], moderator, decision)

    stored = store.get(INCIDENTS_COLLECTION, incident["id"])
    assert all(stored[field] is not None for field in MODERATION_FIELDS)
    assert stored["moderation_note"] == ""


def test_takedown_leaves_trust_unchanged(services, store, setup):
    publisher, moderator = setup
    incident = submit(services, publisher)

    services.moderation.decide(incident["id"], moderator, "TAKEN_DOWN")

    assert store.get(USERS_COLLECTION, publisher.id)["trust_score"] == 50
    assert store.find(AUDIT_COLLECTION)[0]["action"] == "TAKEDOWN_INCIDENT"


def test_invalid_status_leaves_incident_unchanged(services, store, sender, setup):
    publisher, moderator = setup
    incident = submit(services, publisher)

    with pytest.raises(InvalidStatus):
        services.moderation.decide(incident["id"], moderator, "SUBMITTED")
    services.dispatcher.flush()

    assert store.get(INCIDENTS_COLLECTION, incident["id"])["status"] == "SUBMITTED"
    assert store.find(AUDIT_COLLECTION) == []
    assert sender.sent == []


def test_unknown_incident(services, setup):
    _, moderator = setup
    with pytest.raises(NotFound):
        services.moderation.decide("missing", moderator, "VERIFIED")


def test_second_decision_conflicts_without_side_effects(services, store, sender, setup):
    publisher, moderator = setup
    incident = submit(services, publisher)
    services.moderation.decide(incident["id"], moderator, "VERIFIED")

    with pytest.raises(Conflict):
        services.moderation.decide(incident["id"], moderator, "REJECTED")
    services.dispatcher.flush()

    assert store.get(INCIDENTS_COLLECTION, incident["id"])["status"] == "VERIFIED"
    assert store.get(USERS_COLLECTION, publisher.id)["trust_score"] == 52
    assert len(store.find(AUDIT_COLLECTION)) == 1
    assert sender.of_type("INCIDENT_REJECTED") == []


def test_verified_incident_can_be_taken_down(services, store, setup):
    publisher, moderator = setup
    incident = submit(services, publisher)
    services.moderation.decide(incident["id"], moderator, "VERIFIED")
    services.moderation.decide(incident["id"], moderator, "TAKEN_DOWN", "Misleading")

    stored = store.get(INCIDENTS_COLLECTION, incident["id"])
    assert stored["status"] == "TAKEN_DOWN"
    assert stored["station_id"] == "station-a"


def test_concurrent_decisions_apply_once(services, store, setup):
    publisher, moderator = setup
    incident = submit(services, publisher)
    outcomes = []
    barrier = threading.Barrier(2)

    def decide(status):
        barrier.wait()
        try:
            services.moderation.decide(incident["id"], moderator, status)
            outcomes.append("ok")
        except Conflict:
            outcomes.append("conflict")

    threads = [threading.Thread(target=decide, args=(s,)) for s in ("VERIFIED", "REJECTED")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ["conflict", "ok"]
    assert len(store.find(AUDIT_COLLECTION)) == 1
    assert store.get(USERS_COLLECTION, publisher.id)["trust_score"] in (52, 49)


def test_non_moderator_cannot_decide(services, setup):
    publisher, _ = setup
    incident = submit(services, publisher)
    with pytest.raises(PolicyViolation):
        services.moderation.decide(incident["id"], publisher, "VERIFIED")


def test_verify_without_station_still_succeeds(services, store, sender, make_user):
    publisher = make_user("publisher")
    moderator = make_user("moderator", Role.ADMIN)
    incident = services.reports.submit(IncidentCreate(
        title="Road cave-in", description="A large pothole opened overnight.",
        category="INFRASTRUCTURE", latitude=12.97, longitude=77.59,
    ), publisher)

    updated = services.moderation.decide(incident["id"], moderator, "VERIFIED")
    services.dispatcher.flush()

    assert updated["station_id"] is None
    assert sender.of_type("NEW_INCIDENT_NEARBY") == []
    assert len(sender.of_type("INCIDENT_VERIFIED")) == 1


def test_missing_publisher_does_not_block_decision(services, store, setup):
    publisher, moderator = setup
    incident = submit(services, publisher)
    store.delete(USERS_COLLECTION, publisher.id)

    updated = services.moderation.decide(incident["id"], moderator, "VERIFIED")
    assert updated["status"] == "VERIFIED"


def test_notification_failure_does_not_fail_decision(services, store, sender, setup):
    publisher, moderator = setup
    sender.fail_types = {"INCIDENT_VERIFIED", "NEW_INCIDENT_NEARBY"}
    incident = submit(services, publisher)

    updated = services.moderation.decide(incident["id"], moderator, "VERIFIED")
    services.dispatcher.flush()

    assert updated["status"] == "VERIFIED"
    assert services.dispatcher.failures == 2


class TestComplaintReview:

    def test_review_with_takedown(self, services, store, sender, setup, make_user):
        publisher, moderator = setup
        citizen = make_user("citizen")
        incident = submit(services, publisher)
        services.moderation.decide(incident["id"], moderator, "VERIFIED")
        complaint = services.reports.file_complaint(incident["id"], citizen, "FAKE_NEWS")

        reviewed = services.moderation.review_complaint(
            complaint["id"], moderator, "ACTION_TAKEN", None, take_down_incident=True,
        )
        services.dispatcher.flush()

        assert reviewed["status"] == "ACTION_TAKEN"
        stored = store.get(INCIDENTS_COLLECTION, incident["id"])
        assert stored["status"] == "TAKEN_DOWN"
        assert stored["moderation_note"] == "Taken down due to reports"
        actions = sorted(e["action"] for e in store.find(AUDIT_COLLECTION))
        assert actions == ["REVIEW_COMPLAINT", "TAKEDOWN_INCIDENT", "VERIFY_INCIDENT"]
        assert len(sender.of_type("INCIDENT_TAKEN_DOWN")) == 1

    def test_dismiss_leaves_incident(self, services, store, setup, make_user):
        publisher, moderator = setup
        citizen = make_user("citizen")
        incident = submit(services, publisher)
        services.moderation.decide(incident["id"], moderator, "VERIFIED")
        complaint = services.reports.file_complaint(incident["id"], citizen, "SPAM")

        services.moderation.review_complaint(complaint["id"], moderator, "DISMISSED", "Looks fine")

        assert store.get(INCIDENTS_COLLECTION, incident["id"])["status"] == "VERIFIED"

    def test_pending_is_not_a_review_status(self, services, setup, make_user):
        publisher, moderator = setup
        incident = submit(services, publisher)
        complaint = services.reports.file_complaint(incident["id"], publisher, "OTHER")
        with pytest.raises(InvalidStatus):
            services.moderation.review_complaint(complaint["id"], moderator, "PENDING")

    def test_failed_takedown_rolls_back_review(self, services, store, setup, make_user):
        publisher, moderator = setup
        incident = submit(services, publisher)
        complaint = services.reports.file_complaint(incident["id"], publisher, "OTHER")
        services.moderation.decide(incident["id"], moderator, "REJECTED")

        with pytest.raises(Conflict):
            services.moderation.review_complaint(complaint["id"], moderator, "ACTION_TAKEN", take_down_incident=True)

        assert store.get(COMPLAINTS_COLLECTION, complaint["id"])["status"] == "PENDING"

    def test_unknown_complaint(self, services, setup):
        _, moderator = setup
        with pytest.raises(NotFound):
            services.moderation.review_complaint("missing", moderator, "REVIEWED")
