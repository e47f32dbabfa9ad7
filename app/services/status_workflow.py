"""
Status Workflow Engine - incident lifecycle state machine.

DESIGN PRINCIPLES:
- Incidents are created in SUBMITTED
- Publishers may edit (and thereby resubmit) only DRAFT, SUBMITTED or REJECTED incidents
- Only moderators decide: SUBMITTED -> VERIFIED | REJECTED | TAKEN_DOWN
- A verified incident can only be taken down (after a sustained complaint)
- Only VERIFIED incidents are visible to the public
"""

from enum import Enum
from typing import Dict, List, Optional

from app.core.errors import Conflict, InvalidStatus, PolicyViolation
from app.models.user import Identity


class IncidentStatus(str, Enum):
    """Incident lifecycle states."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"            # Initial state, awaiting moderation
    VERIFIED = "VERIFIED"              # Approved, publicly visible
    REJECTED = "REJECTED"              # Declined, publisher may edit and resubmit
    TAKEN_DOWN = "TAKEN_DOWN"          # Removed by a moderator


class DeletionMode(str, Enum):
    HARD = "HARD"
    SOFT = "SOFT"


class StatusWorkflowEngine:
    """
    Incident state machine.

    Rules:
    - Moderator transitions come from MODERATOR_TRANSITIONS only
    - Publisher edits always land in SUBMITTED
    - Any other request is rejected
    """

    INITIAL_STATUS = IncidentStatus.SUBMITTED

    # Statuses a moderator may request
    DECISION_STATUSES = (IncidentStatus.VERIFIED, IncidentStatus.REJECTED, IncidentStatus.TAKEN_DOWN)

    # Statuses in which the publisher may still edit the incident
    EDITABLE_STATUSES = (IncidentStatus.DRAFT, IncidentStatus.SUBMITTED, IncidentStatus.REJECTED)

    # Allowed moderator transitions map: {from_status: [to_status, ...]}
    MODERATOR_TRANSITIONS: Dict[IncidentStatus, List[IncidentStatus]] = {
        IncidentStatus.DRAFT: [],
        IncidentStatus.SUBMITTED: [IncidentStatus.VERIFIED, IncidentStatus.REJECTED, IncidentStatus.TAKEN_DOWN],
        IncidentStatus.VERIFIED: [IncidentStatus.TAKEN_DOWN],
        IncidentStatus.REJECTED: [],
        IncidentStatus.TAKEN_DOWN: [],
    }

    @classmethod
    def parse_decision(cls, requested: Optional[str]) -> IncidentStatus:
        """
        Parse a moderator's requested status.

        Raises:
            InvalidStatus: If the value is not one of the decision statuses
        """
        try:
            status = IncidentStatus((requested or "").strip().upper())
        except ValueError:
            status = None
        if status not in cls.DECISION_STATUSES:
            allowed = [s.value for s in cls.DECISION_STATUSES]
            raise InvalidStatus(f"Invalid status: {requested}. Allowed: {allowed}")
        return status

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            return [s.value for s in cls.MODERATOR_TRANSITIONS[IncidentStatus(current_status)]]
        except ValueError:
            return []

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        return to_status in cls.get_allowed_transitions(from_status)

    @classmethod
    def validate_transition(cls, current_status: str, new_status: IncidentStatus) -> None:
        """
        Raises:
            Conflict: If the incident is not in a status the decision can leave
        """
        if not cls.is_valid_transition(current_status, new_status.value):
            raise Conflict(
                f"Invalid status transition: {current_status} → {new_status.value}. "
                f"Allowed transitions from {current_status}: {cls.get_allowed_transitions(current_status)}"
            )

    @classmethod
    def can_publisher_edit(cls, current_status: str) -> bool:
        return current_status in [s.value for s in cls.EDITABLE_STATUSES]

    @classmethod
    def status_after_edit(cls, current_status: str) -> IncidentStatus:
        """
        Status an incident moves to when its publisher edits it.

        Raises:
            PolicyViolation: If the incident can no longer be edited
        """
        if not cls.can_publisher_edit(current_status):
            raise PolicyViolation(f"Cannot edit incident in status {current_status}")
        return IncidentStatus.SUBMITTED

    @staticmethod
    def is_publicly_visible(incident: Dict) -> bool:
        return incident.get("status") == IncidentStatus.VERIFIED.value and incident.get("is_active", True)

    @classmethod
    def can_view(cls, incident: Dict, viewer: Optional[Identity]) -> bool:
        if cls.is_publicly_visible(incident):
            return True
        if viewer is None:
            return False
        return viewer.is_moderator or viewer.id == incident.get("publisher_id")

    @staticmethod
    def deletion_mode(incident: Dict, actor: Identity) -> DeletionMode:
        """
        Decide how (and whether) actor may delete the incident.

        Raises:
            PolicyViolation: If actor is neither the publisher nor a moderator,
                or a publisher tries to delete a verified incident
        """
        is_owner = actor.id == incident.get("publisher_id")
        if not is_owner and not actor.is_moderator:
            raise PolicyViolation("You can only delete your own incidents")

        if incident.get("status") == IncidentStatus.VERIFIED.value:
            if not actor.is_moderator:
                raise PolicyViolation("Cannot delete verified incidents. Contact support if needed.")
            return DeletionMode.SOFT

        return DeletionMode.HARD
