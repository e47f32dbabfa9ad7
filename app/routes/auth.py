"""
Authentication endpoints - email + one-time code login.
"""

from fastapi import APIRouter, Depends
import logging

from app.models.base import BaseResponse
from app.models.user import AuthResponse, Identity, OTPRequest, OTPVerifyRequest, RefreshRequest, UserResponse
from app.routes.deps import get_current_identity
from app.services.container import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/send-otp", response_model=BaseResponse)
def send_otp(request: OTPRequest):
    """
    Send a one-time code to an email address.

    The code is never part of the response; it is delivered by email only.
    """
    result = get_services().auth.request_code(request.email)
    return BaseResponse(
        message="OTP sent to your email",
        data={"expires_in_minutes": result["expires_in_minutes"]},
    )


@router.post("/verify-otp", response_model=AuthResponse)
def verify_otp(request: OTPVerifyRequest):
    """
    Verify a one-time code and log in.

    - Creates a CITIZEN account if the address is new (name required)
    - Records last_login_at
    - Returns access and refresh tokens
    """
    session = get_services().auth.verify_code(request.email, request.otp, request.name)
    return AuthResponse(
        success=True,
        message="Account created successfully" if session["is_new_user"] else "Login successful",
        user=UserResponse(**session["user"]),
        access_token=session["access_token"],
        refresh_token=session["refresh_token"],
    )


@router.post("/refresh", response_model=AuthResponse)
def refresh_tokens(request: RefreshRequest):
    session = get_services().auth.refresh(request.refresh_token)
    return AuthResponse(
        success=True,
        message="Token refreshed",
        user=UserResponse(**session["user"]),
        access_token=session["access_token"],
        refresh_token=session["refresh_token"],
    )


@router.get("/me", response_model=UserResponse)
def get_current_user(identity: Identity = Depends(get_current_identity)):
    """Profile of the authenticated caller."""
    return UserResponse(**get_services().users.require_user(identity.id))
