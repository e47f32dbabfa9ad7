"""
Admin endpoints - moderation and back-office control layer.

DESIGN PRINCIPLES (CRITICAL):
- Every route here requires a MODERATOR or ADMIN identity
- Status decisions and complaint reviews go through ModerationService,
  which writes the audit entry in the same transaction as the change
- Role changes and station deletion are ADMIN only

SCOPE OF ADMIN:
✅ Verify, reject or take down incidents
✅ Review complaints (optionally taking the incident down)
✅ Manage users, reporter promotion and police stations
✅ Read the audit trail

❌ NOT edit incident content
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, status

from app.core.errors import PolicyViolation
from app.models.audit import RequestMeta
from app.models.base import BaseResponse
from app.models.report import ComplaintReviewRequest, IncidentResponse, StatusDecisionRequest
from app.models.station import StationCreate, StationResponse, StationUpdate
from app.models.user import Identity, ReporterVerificationRequest, Role, UserResponse, UserUpdateRequest
from app.routes.deps import request_meta, require_admin, require_moderator
from app.services.container import get_services
from app.services.notification_service import Notification, NotificationTarget

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


# ----------------------------------------------------------------------
# Dashboard and incidents
# ----------------------------------------------------------------------

@router.get("/stats", response_model=BaseResponse)
def dashboard_stats(moderator: Identity = Depends(require_moderator)):
    return BaseResponse(data=get_services().reports.stats())


@router.get("/incidents", response_model=BaseResponse)
def list_all_incidents(
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = None,
    publisher_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    moderator: Identity = Depends(require_moderator),
):
    result = get_services().reports.list_incidents(
        status=status_filter, category=category, publisher_id=publisher_id, page=page, limit=limit,
    )
    result["incidents"] = [IncidentResponse(**incident) for incident in result["incidents"]]
    return BaseResponse(data=result)


@router.get("/incidents/pending", response_model=BaseResponse)
def pending_incidents(
    limit: int = Query(50, ge=1, le=200),
    moderator: Identity = Depends(require_moderator),
):
    """Moderation queue, oldest first."""
    incidents = get_services().moderation.pending_queue(limit)
    return BaseResponse(data={"incidents": [IncidentResponse(**incident) for incident in incidents]})


@router.get("/incidents/{incident_id}", response_model=BaseResponse)
def get_incident_for_review(incident_id: str, moderator: Identity = Depends(require_moderator)):
    services = get_services()
    incident = services.reports.get_incident(incident_id, moderator, count_view=False)
    return BaseResponse(data={
        "incident": IncidentResponse(**incident),
        "allowed_transitions": services.moderation.workflow.get_allowed_transitions(incident["status"]),
    })


@router.put("/incidents/{incident_id}/status", response_model=BaseResponse)
def decide_incident(
    incident_id: str,
    decision: StatusDecisionRequest,
    moderator: Identity = Depends(require_moderator),
    meta: RequestMeta = Depends(request_meta),
):
    """
    Verify, reject or take down an incident.

    On success the jurisdiction is refreshed (verification only), the
    publisher's trust score is adjusted, an audit entry is written and
    notifications are queued.
    """
    incident = get_services().moderation.decide(incident_id, moderator, decision.status, decision.note, meta)
    return BaseResponse(
        message=f"Incident {incident['status'].lower()} successfully",
        data={"incident": IncidentResponse(**incident)},
    )


# ----------------------------------------------------------------------
# Complaints
# ----------------------------------------------------------------------

@router.get("/complaints", response_model=BaseResponse)
def list_complaints(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    moderator: Identity = Depends(require_moderator),
):
    return BaseResponse(data=get_services().reports.list_complaints(status_filter, page, limit))


@router.put("/complaints/{complaint_id}", response_model=BaseResponse)
def review_complaint(
    complaint_id: str,
    review: ComplaintReviewRequest,
    moderator: Identity = Depends(require_moderator),
    meta: RequestMeta = Depends(request_meta),
):
    complaint = get_services().moderation.review_complaint(
        complaint_id, moderator, review.status, review.review_note, review.take_down_incident, meta,
    )
    return BaseResponse(message="Complaint reviewed successfully", data={"complaint": complaint})


# ----------------------------------------------------------------------
# Audit trail
# ----------------------------------------------------------------------

@router.get("/audit-logs", response_model=BaseResponse)
def list_audit_logs(
    admin_id: Optional[str] = None,
    action: Optional[str] = None,
    target_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    moderator: Identity = Depends(require_moderator),
):
    return BaseResponse(data=get_services().audit.list_entries(admin_id, action, target_id, page, limit))


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

@router.get("/users", response_model=BaseResponse)
def list_users(
    role: Optional[Role] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    moderator: Identity = Depends(require_moderator),
):
    result = get_services().users.list_users(role.value if role else None, page, limit)
    result["users"] = [UserResponse(**user) for user in result["users"]]
    return BaseResponse(data=result)


@router.put("/users/{user_id}", response_model=BaseResponse)
def update_user(user_id: str, request: UserUpdateRequest, moderator: Identity = Depends(require_moderator)):
    """Suspend/reactivate a user or link them to a station. Role changes are ADMIN only."""
    if request.role is not None and moderator.role != Role.ADMIN.value:
        raise PolicyViolation("Only admins can change user roles")
    if user_id == moderator.id and request.is_active is False:
        raise PolicyViolation("You cannot deactivate your own account")

    fields = request.model_dump(exclude_unset=True)
    if request.role is not None:
        fields["role"] = request.role.value
    user = get_services().users.update_user(user_id, fields)
    return BaseResponse(message="User updated successfully", data={"user": UserResponse(**user)})


@router.post("/users/{user_id}/verify-reporter", response_model=BaseResponse)
def verify_reporter(
    user_id: str,
    request: ReporterVerificationRequest,
    moderator: Identity = Depends(require_moderator),
):
    """Approve or reject a citizen's request to become a verified reporter."""
    services = get_services()

    if request.approve:
        user = services.users.promote_to_reporter(user_id, moderator.id)
        services.dispatcher.dispatch(Notification(
            NotificationTarget.user(user_id),
            "VERIFICATION_APPROVED",
            "Verification Approved!",
            f"Congratulations! You are now a Verified Reporter. "
            f"You can post up to {services.reports.reporter_daily_limit} incidents per day.",
        ))
        return BaseResponse(message="User verified as reporter", data={"user": UserResponse(**user)})

    services.users.require_user(user_id)
    services.dispatcher.dispatch(Notification(
        NotificationTarget.user(user_id),
        "VERIFICATION_REJECTED",
        "Verification Rejected",
        request.note or "Your verification request was rejected. Please submit valid documents.",
    ))
    return BaseResponse(message="Verification rejected")


# ----------------------------------------------------------------------
# Police stations
# ----------------------------------------------------------------------

@router.get("/stations", response_model=BaseResponse)
def list_all_stations(moderator: Identity = Depends(require_moderator)):
    stations = get_services().stations.list_stations(include_inactive=True)
    return BaseResponse(data={"stations": [StationResponse(**station) for station in stations]})


@router.post("/stations", status_code=status.HTTP_201_CREATED, response_model=BaseResponse)
def create_station(data: StationCreate, moderator: Identity = Depends(require_moderator)):
    station = get_services().stations.create_station(data)
    return BaseResponse(message="Police station created successfully", data={"station": StationResponse(**station)})


@router.put("/stations/{station_id}", response_model=BaseResponse)
def update_station(station_id: str, data: StationUpdate, moderator: Identity = Depends(require_moderator)):
    station = get_services().stations.update_station(station_id, data)
    return BaseResponse(message="Police station updated successfully", data={"station": StationResponse(**station)})


@router.delete("/stations/{station_id}", response_model=BaseResponse)
def delete_station(station_id: str, admin: Identity = Depends(require_admin)):
    result = get_services().stations.delete_station(station_id)
    if result["deactivated"]:
        return BaseResponse(message="Police station deactivated (has linked incidents)", data=result)
    return BaseResponse(message="Police station deleted successfully", data=result)
