"""
Moderation Service - one moderator decision as a single transactional unit.

DESIGN PRINCIPLES (CRITICAL):
- The status check is a compare-and-swap inside the store transaction:
  two moderators deciding the same incident serialize, the loser gets Conflict
- Jurisdiction refresh, trust score adjustment and the audit entry are
  written in the SAME transaction as the status, so they happen if and only
  if the transition is accepted
- Notifications go out only after commit, through the fire-and-forget dispatcher

Side effects per decision:
    VERIFIED    -> station refreshed, trust +2, publisher + station staff notified
    REJECTED    -> trust -1, publisher notified
    TAKEN_DOWN  -> trust unchanged, publisher notified
"""

from typing import Dict, List, Optional, Tuple, Union
import logging

from app.core.clock import Clock, system_clock
from app.core.errors import InvalidStatus, NotFound, PolicyViolation
from app.models.audit import AuditAction, AuditTargetType, RequestMeta
from app.models.report import HIGH_URGENCY_CATEGORIES, ComplaintStatus
from app.models.user import Identity
from app.services.audit_service import AuditTrail, build_entry
from app.services.location_service import LocationResolver, NearestStation
from app.services.notification_service import Notification, NotificationDispatcher, NotificationTarget
from app.services.report_service import COMPLAINTS_COLLECTION, INCIDENTS_COLLECTION
from app.services.status_workflow import IncidentStatus, StatusWorkflowEngine
from app.services.user_service import USERS_COLLECTION
from app.store.base import DocumentStore, StoreTransaction

logger = logging.getLogger(__name__)

TRUST_DELTAS = {
    IncidentStatus.VERIFIED: 2,
    IncidentStatus.REJECTED: -1,
    IncidentStatus.TAKEN_DOWN: 0,
}

AUDIT_ACTIONS = {
    IncidentStatus.VERIFIED: AuditAction.VERIFY_INCIDENT,
    IncidentStatus.REJECTED: AuditAction.REJECT_INCIDENT,
    IncidentStatus.TAKEN_DOWN: AuditAction.TAKEDOWN_INCIDENT,
}

REVIEW_STATUSES = (ComplaintStatus.REVIEWED, ComplaintStatus.ACTION_TAKEN, ComplaintStatus.DISMISSED)

DEFAULT_TAKEDOWN_NOTE = "Taken down due to reports"


def _publisher_notification(incident: Dict, status: IncidentStatus, note: Optional[str]) -> Notification:
    target = NotificationTarget.user(incident["publisher_id"])
    data = {"incidentId": incident["id"]}

    if status == IncidentStatus.VERIFIED:
        return Notification(
            target, "INCIDENT_VERIFIED", "Incident Verified!",
            "Your incident report has been verified and is now visible to the public.", data,
        )
    if status == IncidentStatus.REJECTED:
        return Notification(
            target, "INCIDENT_REJECTED", "Incident Status Update",
            f"Your incident report was rejected. Reason: {note or 'Not specified'}", data,
        )
    return Notification(
        target, "INCIDENT_TAKEN_DOWN", "Incident Taken Down",
        f"Your incident \"{incident.get('title', '')}\" was taken down. Reason: {note or 'Policy violation'}", data,
    )


def _station_notification(incident: Dict, nearest: NearestStation) -> Notification:
    category = incident.get("category", "OTHER")
    return Notification(
        NotificationTarget.station(nearest.station_id),
        "NEW_INCIDENT_NEARBY",
        f"New Incident: {category}",
        f"A new {category.lower()} incident has been reported near your jurisdiction "
        f"at {incident.get('address') or 'the location'}.",
        {
            "incidentId": incident["id"],
            "distance": f"{nearest.distance_km:.2f}",
            "urgency": "HIGH" if category in HIGH_URGENCY_CATEGORIES else "MEDIUM",
        },
    )


class ModerationService:
    """
    Orchestrates moderator decisions and complaint reviews.
    """

    def __init__(
        self,
        store: DocumentStore,
        resolver: LocationResolver,
        audit: AuditTrail,
        dispatcher: NotificationDispatcher,
        clock: Clock = system_clock,
    ):
        self.store = store
        self.resolver = resolver
        self.audit = audit
        self.dispatcher = dispatcher
        self.clock = clock
        self.workflow = StatusWorkflowEngine()

    @staticmethod
    def _require_moderator(moderator: Identity) -> None:
        if not moderator.is_moderator:
            raise PolicyViolation("Moderator access required")

    def _transition(
        self,
        txn: StoreTransaction,
        incident_id: str,
        moderator: Identity,
        status: IncidentStatus,
        note: Optional[str],
        nearest: Optional[NearestStation],
        meta: Optional[RequestMeta],
    ) -> Dict:
        """
        Apply one status transition and its store side effects in txn.

        All reads happen before the first write.

        Raises:
            NotFound: Unknown incident
            Conflict: Incident no longer in a status the decision can leave
        """
        incident = txn.get(INCIDENTS_COLLECTION, incident_id)
        if incident is None:
            raise NotFound("Incident not found")
        publisher = txn.get(USERS_COLLECTION, incident["publisher_id"])

        self.workflow.validate_transition(incident["status"], status)

        now = self.clock.now()
        update = {
            "status": status.value,
            "moderation_note": note or "",
            "moderated_by": moderator.id,
            "moderated_at": now,
            "updated_at": now,
        }
        if nearest is not None:
            update["station_id"] = nearest.station_id
            update["station_distance_km"] = round(nearest.distance_km, 3)
        txn.update(INCIDENTS_COLLECTION, incident_id, update)
        incident.update(update)

        delta = TRUST_DELTAS[status]
        if delta:
            if publisher is None:
                logger.warning(f"Publisher {incident['publisher_id']} of incident {incident_id} not found, trust unchanged")
            else:
                txn.increment(USERS_COLLECTION, publisher["id"], "trust_score", delta)

        self.audit.append(txn, build_entry(
            moderator.id, AUDIT_ACTIONS[status], AuditTargetType.INCIDENT, incident_id, now,
            reason=note, meta=meta,
        ))
        return incident

    def _notify(self, incident: Dict, status: IncidentStatus, note: Optional[str], nearest: Optional[NearestStation]) -> None:
        self.dispatcher.dispatch(_publisher_notification(incident, status, note))
        if status == IncidentStatus.VERIFIED and nearest is not None:
            self.dispatcher.dispatch(_station_notification(incident, nearest))

    def decide(
        self,
        incident_id: str,
        moderator: Identity,
        requested_status: str,
        note: Optional[str] = None,
        meta: Optional[RequestMeta] = None,
    ) -> Dict:
        """
        Apply a moderator decision to an incident.

        Args:
            incident_id: Incident to decide on
            moderator: Acting moderator
            requested_status: VERIFIED, REJECTED or TAKEN_DOWN
            note: Reason recorded on the incident and in the audit entry
            meta: Requester network/client metadata for the audit entry

        Returns:
            The updated incident

        Raises:
            InvalidStatus: requested_status outside the decision set
            NotFound: Unknown incident
            Conflict: Transition not legal from the current status
        """
        self._require_moderator(moderator)
        status = self.workflow.parse_decision(requested_status)

        current = self.store.get(INCIDENTS_COLLECTION, incident_id)
        if current is None:
            raise NotFound("Incident not found")

        nearest = None
        if status == IncidentStatus.VERIFIED:
            nearest = self.resolver.resolve(current.get("latitude"), current.get("longitude"))

        incident = self.store.run_transaction(
            lambda txn: self._transition(txn, incident_id, moderator, status, note, nearest, meta)
        )

        logger.info(f"✅ Incident {incident_id} {current['status']} → {status.value} by {moderator.id}")
        self._notify(incident, status, note, nearest)
        return incident

    def review_complaint(
        self,
        complaint_id: str,
        moderator: Identity,
        review_status: Union[ComplaintStatus, str],
        review_note: Optional[str] = None,
        take_down_incident: bool = False,
        meta: Optional[RequestMeta] = None,
    ) -> Dict:
        """
        Close a complaint, optionally taking the incident down in the same
        transaction (with the full takedown side-effect bundle).

        Raises:
            InvalidStatus: review_status is not a closing status
            NotFound: Unknown complaint
            Conflict: Takedown not legal from the incident's current status
        """
        self._require_moderator(moderator)
        try:
            status = ComplaintStatus(review_status)
        except ValueError:
            status = None
        if status not in REVIEW_STATUSES:
            raise InvalidStatus(f"Invalid status: {review_status}. Allowed: {[s.value for s in REVIEW_STATUSES]}")

        def _apply(txn) -> Tuple[Dict, Optional[Dict]]:
            complaint = txn.get(COMPLAINTS_COLLECTION, complaint_id)
            if complaint is None:
                raise NotFound("Complaint not found")

            incident = None
            if take_down_incident:
                current = txn.get(INCIDENTS_COLLECTION, complaint["incident_id"])
                if current is None:
                    logger.warning(f"Complaint {complaint_id} targets missing incident {complaint['incident_id']}")
                elif current["status"] == IncidentStatus.TAKEN_DOWN.value:
                    logger.info(f"Incident {current['id']} already taken down")
                else:
                    incident = self._transition(
                        txn, complaint["incident_id"], moderator, IncidentStatus.TAKEN_DOWN,
                        review_note or DEFAULT_TAKEDOWN_NOTE, None, meta,
                    )

            now = self.clock.now()
            update = {
                "status": status.value,
                "review_note": review_note,
                "reviewed_by": moderator.id,
                "reviewed_at": now,
            }
            txn.update(COMPLAINTS_COLLECTION, complaint_id, update)
            complaint.update(update)

            self.audit.append(txn, build_entry(
                moderator.id, AuditAction.REVIEW_COMPLAINT, AuditTargetType.COMPLAINT, complaint_id, now,
                reason=review_note, meta=meta,
            ))
            return complaint, incident

        complaint, incident = self.store.run_transaction(_apply)

        logger.info(f"Complaint {complaint_id} reviewed by {moderator.id}: {status.value}")
        if incident is not None:
            self._notify(incident, IncidentStatus.TAKEN_DOWN, incident.get("moderation_note"), None)
        return complaint

    def pending_queue(self, limit: int = 50) -> List[Dict]:
        """Oldest submitted incidents first."""
        return self.store.find(
            INCIDENTS_COLLECTION,
            [("status", "==", IncidentStatus.SUBMITTED.value)],
            order_by="created_at",
            limit=limit,
        )
