"""
Account management. Only lookup by id is implemented; the CRUD operations
are declared and answer "not implemented".
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from retailpos.db.session import AsyncSessionLocal
from retailpos.db.models import User
from retailpos.core.errors import NotImplementedFeatureError


class UserService:
    """Service for account records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal):
        self.session_factory = session_factory

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        async with self.session_factory() as session:
            return await session.get(User, user_id)

    async def list_users(self, page: int = 1, limit: int = 20) -> dict:
        raise NotImplementedFeatureError("List users")

    async def get_user(self, user_id: UUID) -> User:
        raise NotImplementedFeatureError("Get user")

    async def update_user(self, user_id: UUID, changes: dict) -> User:
        raise NotImplementedFeatureError("Update user")

    async def delete_user(self, user_id: UUID) -> None:
        raise NotImplementedFeatureError("Delete user")


# Singleton instance
_user_service: UserService | None = None


def get_user_service() -> UserService:
    """Get the user service singleton."""
    global _user_service
    if _user_service is None:
        _user_service = UserService()
    return _user_service
