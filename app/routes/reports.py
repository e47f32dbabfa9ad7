"""
Incident endpoints - submission, publisher edits and the public feed.
"""

from typing import Optional
import logging

from fastapi import APIRouter, Depends, Query, status

from app.models.audit import RequestMeta
from app.models.base import BaseResponse
from app.models.report import ComplaintCreate, IncidentCategory, IncidentCreate, IncidentResponse, IncidentUpdate
from app.models.user import Identity
from app.routes.deps import get_current_identity, get_optional_identity, request_meta
from app.services.container import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/incidents", tags=["Incidents"])


@router.get("", response_model=BaseResponse)
def list_incidents(
    category: Optional[IncidentCategory] = None,
    city: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
):
    """Public feed: verified, active incidents, newest first."""
    result = get_services().reports.list_public(
        category=category.value if category else None, city=city, page=page, limit=limit,
    )
    result["incidents"] = [IncidentResponse(**incident) for incident in result["incidents"]]
    return BaseResponse(data=result)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=BaseResponse)
def submit_incident(draft: IncidentCreate, identity: Identity = Depends(get_current_identity)):
    """
    Submit a new incident.

    This endpoint:
    1. Checks the publisher's daily quota (2 for citizens, 5 for verified reporters)
    2. Assigns the nearest active police station
    3. Stores the incident in SUBMITTED, awaiting moderation
    """
    incident = get_services().reports.submit(draft, identity)
    return BaseResponse(
        message="Incident submitted successfully. It will be visible after verification.",
        data={"incident": IncidentResponse(**incident)},
    )


@router.get("/{incident_id}", response_model=BaseResponse)
def get_incident(incident_id: str, identity: Optional[Identity] = Depends(get_optional_identity)):
    incident = get_services().reports.get_incident(incident_id, identity)
    return BaseResponse(data={"incident": IncidentResponse(**incident)})


@router.put("/{incident_id}", response_model=BaseResponse)
def edit_incident(incident_id: str, changes: IncidentUpdate, identity: Identity = Depends(get_current_identity)):
    """Edit an own incident. The incident goes back to SUBMITTED for moderation."""
    incident = get_services().reports.edit(incident_id, identity, changes)
    return BaseResponse(message="Incident updated successfully", data={"incident": IncidentResponse(**incident)})


@router.delete("/{incident_id}", response_model=BaseResponse)
def delete_incident(
    incident_id: str,
    identity: Identity = Depends(get_current_identity),
    meta: RequestMeta = Depends(request_meta),
):
    result = get_services().reports.delete_incident(incident_id, identity, meta)
    message = "Incident deactivated successfully" if result["mode"] == "SOFT" else "Incident deleted successfully"
    return BaseResponse(message=message, data=result)


@router.post("/{incident_id}/complaints", status_code=status.HTTP_201_CREATED, response_model=BaseResponse)
def file_complaint(incident_id: str, complaint: ComplaintCreate, identity: Identity = Depends(get_current_identity)):
    """Report an incident to the moderators (one complaint per user per incident)."""
    created = get_services().reports.file_complaint(incident_id, identity, complaint.reason, complaint.description)
    return BaseResponse(message="Complaint submitted successfully", data={"complaint": created})


@router.post("/{incident_id}/share", response_model=BaseResponse)
def share_incident(incident_id: str):
    get_services().reports.record_share(incident_id)
    return BaseResponse(message="Share recorded")
