"""
Auth Service - passwordless login with emailed one-time codes.

Flow:
1. request_code(email): per-address request quota, then a fresh code is
   issued and handed to the dispatcher as an email
2. verify_code(email, otp, name): the code is checked; unknown addresses get
   a CITIZEN account (name required), suspended accounts are refused, and
   an access/refresh token pair is returned
"""

from typing import Dict, Optional
import logging
import re

import jwt

from app.core.errors import AuthenticationRequired, InvalidCode, PolicyViolation, ValidationError
from app.services.notification_service import Notification, NotificationDispatcher, NotificationTarget
from app.services.otp_service import OTPService, normalize_address
from app.services.rate_limiter import RateLimiter
from app.services.user_service import UserService
from app.utils.security import REFRESH_TOKEN_TYPE, create_access_token, create_refresh_token, decode_token

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class AuthService:

    def __init__(
        self,
        users: UserService,
        otp: OTPService,
        otp_request_limiter: RateLimiter,
        dispatcher: NotificationDispatcher,
    ):
        self.users = users
        self.otp = otp
        self.otp_request_limiter = otp_request_limiter
        self.dispatcher = dispatcher

    @staticmethod
    def _normalize_email(email: Optional[str]) -> str:
        if not email or not email.strip():
            raise ValidationError("Email is required")
        email = normalize_address(email)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        return email

    def request_code(self, email: str) -> Dict:
        """
        Issue a one-time code for email.

        Raises:
            ValidationError: Malformed address
            RateLimited: Too many code requests for this address
        """
        email = self._normalize_email(email)
        self.otp_request_limiter.acquire_or_raise(email)

        otp = self.otp.issue(email)
        self.dispatcher.dispatch(Notification(
            NotificationTarget.address(email),
            "OTP",
            "Your verification code",
            f"Your one-time code is {otp}. It expires in {int(self.otp.expiry.total_seconds() // 60)} minutes.",
        ))
        return {"email": email, "expires_in_minutes": int(self.otp.expiry.total_seconds() // 60)}

    def _session(self, user: Dict) -> Dict:
        return {
            "user": user,
            "access_token": create_access_token(user["id"], user["role"]),
            "refresh_token": create_refresh_token(user["id"]),
        }

    def verify_code(self, email: str, otp: str, name: Optional[str] = None) -> Dict:
        """
        Verify a code and log the user in, creating the account if needed.

        Returns:
            Dict with user, access_token, refresh_token and is_new_user

        Raises:
            InvalidCode: Code missing, expired, exhausted or wrong
            ValidationError: New account without a name
            PolicyViolation: Account suspended
        """
        email = self._normalize_email(email)
        result = self.otp.verify_otp(email, otp)
        if not result.success:
            raise InvalidCode(result.message, result.reason.value)

        user = self.users.get_user_by_email(email)
        is_new_user = user is None

        if is_new_user:
            if not name or not name.strip():
                raise ValidationError("Name is required for new account")
            user = self.users.create_user(email, name.strip())
            self.dispatcher.dispatch(Notification(
                NotificationTarget.address(email),
                "WELCOME",
                "Welcome to Incident Watch!",
                f"Hi {user['name']}, your account is ready. Verified incidents you report help your neighbourhood.",
            ))
        elif not user.get("is_active", True):
            raise PolicyViolation("Your account has been suspended")

        user = self.users.record_login(user["id"])
        logger.info(f"🔐 Login for user {user['id']} (new={is_new_user})")

        session = self._session(user)
        session["is_new_user"] = is_new_user
        return session

    def refresh(self, refresh_token: str) -> Dict:
        """
        Exchange a refresh token for a new token pair.

        Raises:
            AuthenticationRequired: Invalid or expired token, unknown user
            PolicyViolation: Account deactivated
        """
        try:
            payload = decode_token(refresh_token, expected_type=REFRESH_TOKEN_TYPE)
        except jwt.ExpiredSignatureError:
            raise AuthenticationRequired("Refresh token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationRequired("Invalid refresh token")

        user = self.users.get_user(payload["sub"])
        if user is None:
            raise AuthenticationRequired("Invalid refresh token")
        if not user.get("is_active", True):
            raise PolicyViolation("Account is deactivated")
        return self._session(user)
