"""
Pydantic models for incident reports and complaints against them.
These models handle validation for submission and responses.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum


class IncidentCategory(str, Enum):
    """Closed set of incident categories."""
    ACCIDENT = "ACCIDENT"
    CRIME = "CRIME"
    FIRE = "FIRE"
    NATURAL_DISASTER = "NATURAL_DISASTER"
    PROTEST = "PROTEST"
    TRAFFIC = "TRAFFIC"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    HEALTH_EMERGENCY = "HEALTH_EMERGENCY"
    CIVIC_ISSUE = "CIVIC_ISSUE"
    OTHER = "OTHER"


# Categories that station staff should treat as urgent
HIGH_URGENCY_CATEGORIES = {IncidentCategory.FIRE.value, IncidentCategory.ACCIDENT.value}


class IncidentCreate(BaseModel):
    """
    Model for submitting a new incident (incoming POST request).
    """
    title: str = Field(..., min_length=5, max_length=200, description="Short headline")
    description: str = Field(..., min_length=10, max_length=2000, description="What the citizen observed")
    category: IncidentCategory = Field(..., description="Incident category")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude (WGS84 degrees)")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude (WGS84 degrees)")
    address: Optional[str] = Field(None, max_length=500)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    pincode: Optional[str] = Field(None, max_length=12)
    incident_time: Optional[datetime] = Field(None, description="When the incident happened (defaults to now)")

    class Config:
        json_schema_extra = {
            "example": {
                "title": "Car collision at MG Road signal",
                "description": "Two cars collided near the signal, traffic is blocked.",
                "category": "ACCIDENT",
                "latitude": 18.5204,
                "longitude": 73.8567,
                "address": "MG Road signal",
                "city": "Pune",
                "state": "Maharashtra",
                "pincode": "411001",
            }
        }
        extra = "ignore"


class IncidentUpdate(BaseModel):
    """Publisher edit. Any edit resubmits the incident for moderation."""
    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    category: Optional[IncidentCategory] = None
    address: Optional[str] = Field(None, max_length=500)


class IncidentResponse(BaseModel):
    """
    Model for incident responses (what the API returns).
    """
    id: str
    title: str
    description: str
    category: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    station_id: Optional[str] = Field(None, description="Assigned jurisdictional office")
    station_distance_km: Optional[float] = None
    status: str
    moderation_note: Optional[str] = None
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None
    publisher_id: str
    publisher_badge: str = Field(..., description="Publisher trust tier at submission time")
    view_count: int = 0
    share_count: int = 0
    is_active: bool = True
    incident_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class StatusDecisionRequest(BaseModel):
    """
    Moderator decision on an incident.

    status is a plain string so that values outside the decision set are
    answered with INVALID_STATUS rather than a schema error.
    """
    status: str = Field(..., description="VERIFIED, REJECTED or TAKEN_DOWN")
    note: Optional[str] = Field(None, max_length=1000, description="Reason shown to the publisher")


class ComplaintStatus(str, Enum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    ACTION_TAKEN = "ACTION_TAKEN"
    DISMISSED = "DISMISSED"


class ComplaintCreate(BaseModel):
    """A citizen complaint against a published incident."""
    reason: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)


class ComplaintReviewRequest(BaseModel):
    status: ComplaintStatus = Field(..., description="REVIEWED, ACTION_TAKEN or DISMISSED")
    review_note: Optional[str] = Field(None, max_length=1000)
    take_down_incident: bool = Field(False, description="Cascade into a takedown of the incident")
