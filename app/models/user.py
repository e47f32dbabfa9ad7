"""
User models for authentication, roles and trust tiers.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from enum import Enum


class Role(str, Enum):
    """
    Role of an identity. Doubles as the publisher's trust badge:
    CITIZEN and VERIFIED_REPORTER are the two publisher tiers.
    """
    CITIZEN = "CITIZEN"
    VERIFIED_REPORTER = "VERIFIED_REPORTER"
    POLICE = "POLICE"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


MODERATOR_ROLES = {Role.MODERATOR.value, Role.ADMIN.value}


class Identity(BaseModel):
    """Authenticated caller, resolved from a session token."""
    id: str
    role: str = Role.CITIZEN.value

    @property
    def is_moderator(self) -> bool:
        return self.role in MODERATOR_ROLES


class OTPRequest(BaseModel):
    """Request a one-time code for an email address."""
    email: str = Field(..., min_length=3, max_length=254, description="Address to send the code to")


class OTPVerifyRequest(BaseModel):
    """Verify a one-time code (and sign up if the address is new)."""
    email: str = Field(..., min_length=3, max_length=254)
    otp: str = Field(..., min_length=4, max_length=10, description="One-time code")
    name: Optional[str] = Field(None, min_length=2, max_length=100, description="Required for new accounts")


class RefreshRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    """Model for user responses."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = Role.CITIZEN.value
    is_verified: bool = False
    is_active: bool = True
    trust_score: int = 0
    station_id: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    """Authentication response."""
    success: bool
    message: str
    user: Optional[UserResponse] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class UserUpdateRequest(BaseModel):
    """Admin update of a user's role or status."""
    role: Optional[Role] = None
    is_active: Optional[bool] = None
    station_id: Optional[str] = None


class ReporterVerificationRequest(BaseModel):
    """Approve or reject a citizen's request to become a verified reporter."""
    approve: bool
    note: Optional[str] = Field(None, max_length=500)
