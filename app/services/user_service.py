"""
User Service - identities, roles and trust tiers.
"""

from typing import Dict, List, Optional
import logging

from app.core.clock import Clock, system_clock
from app.core.errors import Conflict, NotFound
from app.core.settings import settings
from app.models.user import Role
from app.store.base import DocumentStore

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


class UserService:
    """
    Service for user records in the store.
    """

    def __init__(self, store: DocumentStore, clock: Clock = system_clock):
        self.store = store
        self.clock = clock

    def get_user(self, user_id: str) -> Optional[Dict]:
        return self.store.get(USERS_COLLECTION, user_id)

    def require_user(self, user_id: str) -> Dict:
        user = self.get_user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def get_user_by_email(self, email: str) -> Optional[Dict]:
        users = self.store.find(USERS_COLLECTION, [("email", "==", email)], limit=1)
        return users[0] if users else None

    def create_user(self, email: str, name: str, role: Role = Role.CITIZEN) -> Dict:
        """
        Create a user whose address has just been proven by a one-time code.

        Returns:
            Created user dictionary
        """
        now = self.clock.now()
        user = {
            "email": email,
            "name": name,
            "role": role.value,
            "is_verified": True,
            "is_active": True,
            "trust_score": settings.DEFAULT_TRUST_SCORE,
            "station_id": None,
            "created_at": now,
            "last_login_at": None,
        }
        user["id"] = self.store.add(USERS_COLLECTION, user)
        logger.info(f"User created: {user['id']}")
        return user

    def record_login(self, user_id: str) -> Dict:
        return self.store.update(USERS_COLLECTION, user_id, {"last_login_at": self.clock.now()})

    def list_users(self, role: Optional[str] = None, page: int = 1, limit: int = 20) -> Dict:
        filters = [("role", "==", role)] if role else []
        users: List[Dict] = self.store.find(
            USERS_COLLECTION, filters, order_by="created_at", descending=True,
            limit=limit, offset=(page - 1) * limit,
        )
        return {"users": users, "total": self.store.count(USERS_COLLECTION, filters)}

    def update_user(self, user_id: str, fields: Dict) -> Dict:
        self.require_user(user_id)
        fields = {k: v for k, v in fields.items() if v is not None}
        if not fields:
            return self.require_user(user_id)
        updated = self.store.update(USERS_COLLECTION, user_id, fields)
        logger.info(f"User {user_id} updated: {sorted(fields)}")
        return updated

    def promote_to_reporter(self, user_id: str, approved_by: str) -> Dict:
        """
        Promote a citizen to VERIFIED_REPORTER (larger daily submission quota).

        Raises:
            NotFound: Unknown user
            Conflict: User is not a plain citizen
        """
        user = self.require_user(user_id)
        if user.get("role") != Role.CITIZEN.value:
            raise Conflict(f"User already has role {user.get('role')}")
        return self.store.update(USERS_COLLECTION, user_id, {
            "role": Role.VERIFIED_REPORTER.value,
            "is_verified": True,
            "verified_at": self.clock.now(),
            "verified_by": approved_by,
        })
