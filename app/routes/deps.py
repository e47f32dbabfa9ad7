"""
Request dependencies: caller identity from the bearer token, role guards,
and request metadata for audit entries.
"""

from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import AuthenticationRequired, PolicyViolation
from app.models.audit import RequestMeta
from app.models.user import Identity, Role
from app.services.container import get_services
from app.utils.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


def _identity_from_token(token: str) -> Identity:
    try:
        payload = decode_token(token)
    except jwt.ExpiredSignatureError:
        raise AuthenticationRequired("Token expired")
    except jwt.InvalidTokenError:
        raise AuthenticationRequired("Invalid token")

    user = get_services().users.get_user(payload["sub"])
    if user is None:
        raise AuthenticationRequired("User not found")
    if not user.get("is_active", True):
        raise PolicyViolation("Account is deactivated")

    # Role comes from the stored user, so role changes apply without a new login
    return Identity(id=user["id"], role=user.get("role", Role.CITIZEN.value))


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    if credentials is None:
        raise AuthenticationRequired("Access token required")
    return _identity_from_token(credentials.credentials)


def get_optional_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Identity]:
    if credentials is None:
        return None
    try:
        return _identity_from_token(credentials.credentials)
    except AuthenticationRequired:
        return None


def require_moderator(identity: Identity = Depends(get_current_identity)) -> Identity:
    if not identity.is_moderator:
        raise PolicyViolation("Moderator access required")
    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    if identity.role != Role.ADMIN.value:
        raise PolicyViolation("Admin access required")
    return identity


def request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
