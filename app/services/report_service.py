"""
Report service - incident submission and publisher-side lifecycle.

DESIGN NOTE:
- Submission is gated by the per-publisher daily quota (fixed window)
- Jurisdiction is pre-assigned at submission from the nearest active station
- New incidents start in SUBMITTED and stay private until a moderator verifies them
- Publisher edits resubmit the incident; the status check runs inside the
  same transaction as the write
"""

from typing import Dict, List, Optional, Union
import logging

import pydantic

from app.core.clock import Clock, system_clock
from app.core.errors import Conflict, NotFound, PolicyViolation, ValidationError
from app.core.settings import settings
from app.models.audit import AuditAction, AuditTargetType, RequestMeta
from app.models.base import Pagination
from app.models.report import ComplaintStatus, IncidentCreate, IncidentUpdate
from app.models.user import Identity, Role
from app.services.audit_service import AuditTrail, build_entry
from app.services.location_service import LocationResolver
from app.services.rate_limiter import RateLimiter
from app.services.status_workflow import DeletionMode, IncidentStatus, StatusWorkflowEngine
from app.services.user_service import USERS_COLLECTION
from app.store.base import DocumentStore

logger = logging.getLogger(__name__)

INCIDENTS_COLLECTION = "incidents"
COMPLAINTS_COLLECTION = "complaints"


class ReportService:
    """
    Service for publisher-facing incident operations.
    """

    def __init__(
        self,
        store: DocumentStore,
        resolver: LocationResolver,
        submission_limiter: RateLimiter,
        audit: AuditTrail,
        clock: Clock = system_clock,
        citizen_daily_limit: int = None,
        reporter_daily_limit: int = None,
    ):
        self.store = store
        self.resolver = resolver
        self.submission_limiter = submission_limiter
        self.audit = audit
        self.clock = clock
        self.citizen_daily_limit = citizen_daily_limit if citizen_daily_limit is not None else settings.CITIZEN_DAILY_LIMIT
        self.reporter_daily_limit = reporter_daily_limit if reporter_daily_limit is not None else settings.VERIFIED_REPORTER_DAILY_LIMIT
        self.workflow = StatusWorkflowEngine()

    def daily_limit_for(self, role: str) -> int:
        """Citizens get the base quota; every other tier gets the reporter quota."""
        if role == Role.CITIZEN.value:
            return self.citizen_daily_limit
        return self.reporter_daily_limit

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, draft: Union[IncidentCreate, Dict], publisher: Identity) -> Dict:
        """
        Create a new incident in SUBMITTED.

        Flow:
        1. Validate the draft
        2. Take one slot of the publisher's daily quota
        3. Pre-assign the nearest active station
        4. Store the incident (the quota slot is released if this fails)

        Raises:
            ValidationError: Malformed draft
            RateLimited: Daily quota exhausted
        """
        if not isinstance(draft, IncidentCreate):
            try:
                draft = IncidentCreate.model_validate(draft)
            except pydantic.ValidationError as e:
                raise ValidationError("Invalid incident", details=e.errors(include_url=False))

        limit = self.daily_limit_for(publisher.role)
        tier = "Verified reporters" if publisher.role != Role.CITIZEN.value else "Citizens"
        self.submission_limiter.acquire_or_raise(
            publisher.id,
            limit,
            message=f"Daily posting limit reached. {tier} can post {limit} incidents per day.",
        )

        try:
            nearest = self.resolver.resolve(draft.latitude, draft.longitude)
            now = self.clock.now()
            incident = draft.model_dump()
            incident.update({
                "category": draft.category.value,
                "incident_time": draft.incident_time or now,
                "station_id": nearest.station_id if nearest else None,
                "station_distance_km": round(nearest.distance_km, 3) if nearest else None,
                "status": StatusWorkflowEngine.INITIAL_STATUS.value,
                "moderation_note": None,
                "moderated_by": None,
                "moderated_at": None,
                "publisher_id": publisher.id,
                "publisher_badge": publisher.role,
                "view_count": 0,
                "share_count": 0,
                "is_active": True,
                "created_at": now,
                "updated_at": now,
            })
            incident["id"] = self.store.add(INCIDENTS_COLLECTION, incident)
        except Exception:
            self.submission_limiter.release(publisher.id)
            raise

        logger.info(f"📝 Incident {incident['id']} submitted by {publisher.id} (station={incident['station_id']})")
        return incident

    # ------------------------------------------------------------------
    # Publisher edits and deletion
    # ------------------------------------------------------------------

    def edit(self, incident_id: str, editor: Identity, changes: IncidentUpdate) -> Dict:
        """
        Apply a publisher edit and resubmit the incident for moderation.

        Raises:
            NotFound: Unknown incident
            PolicyViolation: Not the publisher, or the status is no longer editable
        """
        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        if "category" in fields:
            fields["category"] = changes.category.value

        def _apply(txn):
            incident = txn.get(INCIDENTS_COLLECTION, incident_id)
            if incident is None:
                raise NotFound("Incident not found")
            if incident.get("publisher_id") != editor.id:
                raise PolicyViolation("You can only edit your own incidents")

            update = dict(fields)
            update["status"] = self.workflow.status_after_edit(incident["status"]).value
            update["updated_at"] = self.clock.now()
            txn.update(INCIDENTS_COLLECTION, incident_id, update)
            incident.update(update)
            return incident

        updated = self.store.run_transaction(_apply)
        logger.info(f"Incident {incident_id} edited and resubmitted by {editor.id}")
        return updated

    def delete_incident(self, incident_id: str, actor: Identity, meta: Optional[RequestMeta] = None) -> Dict:
        """
        Delete an incident.

        Publishers may hard-delete their own unverified incidents. Moderators
        may delete any incident; verified ones are deactivated instead.

        Returns:
            Dict with the deletion mode applied
        """

        def _apply(txn):
            incident = txn.get(INCIDENTS_COLLECTION, incident_id)
            if incident is None:
                raise NotFound("Incident not found")

            mode = self.workflow.deletion_mode(incident, actor)
            acting_as_moderator = actor.is_moderator and actor.id != incident.get("publisher_id")

            if mode == DeletionMode.SOFT:
                txn.update(INCIDENTS_COLLECTION, incident_id, {"is_active": False, "updated_at": self.clock.now()})
                action = AuditAction.DEACTIVATE_INCIDENT
            else:
                txn.delete(INCIDENTS_COLLECTION, incident_id)
                action = AuditAction.DELETE_INCIDENT

            if acting_as_moderator or mode == DeletionMode.SOFT:
                self.audit.append(txn, build_entry(
                    actor.id, action, AuditTargetType.INCIDENT, incident_id, self.clock.now(), meta=meta,
                ))
            return mode

        mode = self.store.run_transaction(_apply)
        logger.info(f"Incident {incident_id} deleted by {actor.id} ({mode.value})")
        return {"mode": mode.value}

    # ------------------------------------------------------------------
    # Reads and counters
    # ------------------------------------------------------------------

    def get_incident(self, incident_id: str, viewer: Optional[Identity] = None, count_view: bool = True) -> Dict:
        """
        Fetch one incident, hiding non-public ones from everyone but the
        publisher and moderators.

        Raises:
            NotFound: Unknown incident or not visible to viewer
        """
        incident = self.store.get(INCIDENTS_COLLECTION, incident_id)
        if incident is None or not self.workflow.can_view(incident, viewer):
            raise NotFound("Incident not found")
        if count_view:
            self.store.increment(INCIDENTS_COLLECTION, incident_id, "view_count", 1)
        return incident

    def list_public(
        self,
        category: Optional[str] = None,
        city: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict:
        """Verified, active incidents, newest first."""
        filters = [("status", "==", IncidentStatus.VERIFIED.value), ("is_active", "==", True)]
        if category:
            filters.append(("category", "==", category))
        if city:
            filters.append(("city", "==", city))
        return self._page(filters, page, limit)

    def list_incidents(
        self,
        status: Optional[str] = None,
        category: Optional[str] = None,
        publisher_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict:
        """Unrestricted listing for moderators."""
        filters = []
        if status:
            filters.append(("status", "==", status))
        if category:
            filters.append(("category", "==", category))
        if publisher_id:
            filters.append(("publisher_id", "==", publisher_id))
        return self._page(filters, page, limit)

    def _page(self, filters: List, page: int, limit: int) -> Dict:
        incidents = self.store.find(
            INCIDENTS_COLLECTION, filters, order_by="created_at", descending=True,
            limit=limit, offset=(page - 1) * limit,
        )
        total = self.store.count(INCIDENTS_COLLECTION, filters)
        return {
            "incidents": incidents,
            "pagination": Pagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=(total + limit - 1) // limit if limit else 0,
            ).model_dump(),
        }

    def record_share(self, incident_id: str) -> None:
        if self.store.get(INCIDENTS_COLLECTION, incident_id) is None:
            raise NotFound("Incident not found")
        self.store.increment(INCIDENTS_COLLECTION, incident_id, "share_count", 1)

    # ------------------------------------------------------------------
    # Complaints
    # ------------------------------------------------------------------

    def file_complaint(self, incident_id: str, reporter: Identity, reason: str, description: Optional[str] = None) -> Dict:
        """
        File a complaint against an incident. One complaint per user per incident.

        Raises:
            NotFound: Unknown incident
            Conflict: reporter already complained about this incident
        """
        complaint_id = f"{incident_id}_{reporter.id}"

        def _apply(txn):
            incident = txn.get(INCIDENTS_COLLECTION, incident_id)
            if incident is None or not self.workflow.can_view(incident, reporter):
                raise NotFound("Incident not found")
            if txn.get(COMPLAINTS_COLLECTION, complaint_id) is not None:
                raise Conflict("You have already reported this incident")

            complaint = {
                "incident_id": incident_id,
                "reporter_id": reporter.id,
                "reason": reason,
                "description": description,
                "status": ComplaintStatus.PENDING.value,
                "reviewed_by": None,
                "review_note": None,
                "reviewed_at": None,
                "created_at": self.clock.now(),
            }
            txn.set(COMPLAINTS_COLLECTION, complaint_id, complaint)
            complaint["id"] = complaint_id
            return complaint

        complaint = self.store.run_transaction(_apply)
        logger.info(f"Complaint {complaint_id} filed against incident {incident_id}")
        return complaint

    def list_complaints(self, status: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict:
        filters = [("status", "==", status)] if status else []
        complaints = self.store.find(
            COMPLAINTS_COLLECTION, filters, order_by="created_at", descending=True,
            limit=limit, offset=(page - 1) * limit,
        )
        return {"complaints": complaints, "total": self.store.count(COMPLAINTS_COLLECTION, filters)}

    def stats(self) -> Dict:
        """Dashboard counters for moderators."""
        counts = {
            status.value: self.store.count(INCIDENTS_COLLECTION, [("status", "==", status.value)])
            for status in IncidentStatus
        }
        return {
            "total_incidents": sum(counts.values()),
            "incidents_by_status": counts,
            "pending_complaints": self.store.count(COMPLAINTS_COLLECTION, [("status", "==", ComplaintStatus.PENDING.value)]),
            "total_users": self.store.count(USERS_COLLECTION),
        }
