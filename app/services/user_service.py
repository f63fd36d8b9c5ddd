"""User service for business logic."""

from typing import Any

import structlog

from app.core.clinic_time import utcnow
from app.core.datastore import DocumentStore, FieldFilter
from app.core.redis_client import CacheManager
from app.models.users import USERS, user_from_document, user_to_document
from app.schemas.users import DoctorSummary, StaffRole, UserUpdate

logger = structlog.get_logger(__name__)


class UserService:
    """Service for staff user profiles."""

    # Cache TTL in seconds (30 minutes for user profiles)
    USER_CACHE_TTL = 1800

    def __init__(self, db: DocumentStore, cache_manager: CacheManager | None = None):
        """Initialize service with the document store and optional cache manager."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _get_user_cache_key(user_id: str) -> str:
        """Generate cache key for user."""
        return f"user:{user_id}"

    def _invalidate(self, user_id: str) -> None:
        if self.cache:
            self.cache.delete(self._get_user_cache_key(user_id))

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        """Get user by uid with caching."""
        if self.cache:
            cached_user = self.cache.get_json(self._get_user_cache_key(user_id))
            if cached_user:
                return cached_user

        doc = await self.db.get(USERS, user_id)
        if doc is None:
            return None

        user = user_from_document(doc)

        if self.cache:
            self.cache.set_json(self._get_user_cache_key(user_id), user, ttl=self.USER_CACHE_TTL)

        return user

    async def create_user(self, user_id: str, name: str, email: str | None) -> dict[str, Any]:
        """Create a profile with no role; the user picks one afterwards."""
        now = utcnow()
        values = {
            "name": name,
            "email": email,
            "role": None,
            "created_at": now,
            "updated_at": now,
        }
        await self.db.set(USERS, user_id, user_to_document(values))
        logger.info("user_profile_created", user_id=user_id)
        self._invalidate(user_id)
        return {"id": user_id, "specialization": None, "phone": None, **values}

    async def get_or_create_user(
        self, user_id: str, email: str | None, name: str | None = None
    ) -> dict[str, Any]:
        """Get existing profile or create one for a first-time sign-in."""
        user = await self.get_user(user_id)
        if user:
            return user
        return await self.create_user(user_id, name or email or user_id, email)

    async def update_user(self, user_id: str, data: UserUpdate) -> dict[str, Any] | None:
        """Update the editable profile fields."""
        update_data = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not update_data:
            return await self.get_user(user_id)

        update_data["updated_at"] = utcnow()
        await self.db.set(USERS, user_id, user_to_document(update_data), merge=True)
        self._invalidate(user_id)

        return await self.get_user(user_id)

    async def set_role(self, user_id: str, role: StaffRole) -> dict[str, Any] | None:
        """Assign a staff role."""
        await self.db.set(
            USERS,
            user_id,
            user_to_document({"role": role.value, "updated_at": utcnow()}),
            merge=True,
        )
        self._invalidate(user_id)
        logger.info("user_role_assigned", user_id=user_id, role=role.value)
        return await self.get_user(user_id)

    async def list_users_by_role(self, role: StaffRole) -> list[dict[str, Any]]:
        """All users holding ``role``, ordered by name."""
        docs = await self.db.query(USERS, filters=[FieldFilter("role", "==", role.value)])
        users = [user_from_document(doc) for doc in docs]
        users.sort(key=lambda u: u["name"].lower())
        return users

    async def list_doctors(self) -> list[DoctorSummary]:
        """Doctors for pickers and prescription headers."""
        return [
            DoctorSummary(
                id=user["id"],
                name=user["name"],
                email=user["email"],
                specialization=user["specialization"] or "",
                phone=user["phone"] or "",
            )
            for user in await self.list_users_by_role(StaffRole.DOCTOR)
        ]
