"""
Moderation audit entries. Immutable once written.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum


class AuditAction(str, Enum):
    VERIFY_INCIDENT = "VERIFY_INCIDENT"
    REJECT_INCIDENT = "REJECT_INCIDENT"
    TAKEDOWN_INCIDENT = "TAKEDOWN_INCIDENT"
    REVIEW_COMPLAINT = "REVIEW_COMPLAINT"
    DELETE_INCIDENT = "DELETE_INCIDENT"
    DEACTIVATE_INCIDENT = "DEACTIVATE_INCIDENT"


class AuditTargetType(str, Enum):
    INCIDENT = "INCIDENT"
    COMPLAINT = "COMPLAINT"


class RequestMeta(BaseModel):
    """Network/client metadata of the moderator's request."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditEntry(BaseModel):
    admin_id: str
    action: AuditAction
    target_type: AuditTargetType
    target_id: str
    reason: Optional[str] = None
    ip_address_hash: Optional[str] = Field(None, description="Salted hash of the requester IP")
    user_agent: Optional[str] = None
    created_at: datetime

    class Config:
        frozen = True
