import pytest

from app.core.errors import Conflict, InvalidStatus, PolicyViolation
from app.models.user import Identity
from app.services.status_workflow import DeletionMode, IncidentStatus, StatusWorkflowEngine as Engine

publisher = Identity(id="pub-1", role="CITIZEN")
stranger = Identity(id="other", role="CITIZEN")
moderator = Identity(id="mod-1", role="MODERATOR")


def incident(status: str, is_active: bool = True) -> dict:
    return {"id": "inc-1", "status": status, "publisher_id": publisher.id, "is_active": is_active}


@pytest.mark.parametrize("requested", ["VERIFIED", "rejected", " TAKEN_DOWN "])
def test_parse_decision_accepts_decision_statuses(requested):
    assert Engine.parse_decision(requested).value == requested.strip().upper()


@pytest.mark.parametrize("requested", ["SUBMITTED", "DRAFT", "APPROVED", "", None])
def test_parse_decision_rejects_everything_else(requested):
    with pytest.raises(InvalidStatus):
        Engine.parse_decision(requested)


def test_moderator_transitions():
    assert Engine.get_allowed_transitions("SUBMITTED") == ["VERIFIED", "REJECTED", "TAKEN_DOWN"]
    assert Engine.get_allowed_transitions("VERIFIED") == ["TAKEN_DOWN"]
    assert Engine.get_allowed_transitions("REJECTED") == []
    assert Engine.get_allowed_transitions("TAKEN_DOWN") == []
    assert Engine.get_allowed_transitions("NONSENSE") == []


def test_validate_transition_conflict():
    Engine.validate_transition("SUBMITTED", IncidentStatus.VERIFIED)
    Engine.validate_transition("VERIFIED", IncidentStatus.TAKEN_DOWN)
    with pytest.raises(Conflict):
        Engine.validate_transition("VERIFIED", IncidentStatus.REJECTED)
    with pytest.raises(Conflict):
        Engine.validate_transition("TAKEN_DOWN", IncidentStatus.VERIFIED)


@pytest.mark.parametrize("status", ["DRAFT", "SUBMITTED", "REJECTED"])
def test_edit_resubmits(status):
    assert Engine.status_after_edit(status) == IncidentStatus.SUBMITTED


@pytest.mark.parametrize("status", ["VERIFIED", "TAKEN_DOWN"])
def test_edit_blocked_after_decision(status):
    with pytest.raises(PolicyViolation):
        Engine.status_after_edit(status)


def test_visibility():
    assert Engine.can_view(incident("VERIFIED"), None)
    assert not Engine.can_view(incident("VERIFIED", is_active=False), None)
    assert not Engine.can_view(incident("SUBMITTED"), None)
    assert not Engine.can_view(incident("SUBMITTED"), stranger)
    assert Engine.can_view(incident("SUBMITTED"), publisher)
    assert Engine.can_view(incident("REJECTED"), moderator)


def test_deletion_mode():
    assert Engine.deletion_mode(incident("SUBMITTED"), publisher) == DeletionMode.HARD
    assert Engine.deletion_mode(incident("REJECTED"), moderator) == DeletionMode.HARD
    assert Engine.deletion_mode(incident("VERIFIED"), moderator) == DeletionMode.SOFT

    with pytest.raises(PolicyViolation):
        Engine.deletion_mode(incident("VERIFIED"), publisher)
    with pytest.raises(PolicyViolation):
        Engine.deletion_mode(incident("SUBMITTED"), stranger)
