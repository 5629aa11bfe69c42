"""Role and ban gate.

Every check re-reads the user's row: a role granted or revoked, or a ban
applied, after the credential was issued takes effect on the very next call.
Nothing here is cached on the principal.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agora.errors import ForbiddenError, UnauthenticatedError
from agora.models.user import MODERATOR_ROLES, User, UserRole
from agora.services.identity import Principal


class RoleGate:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def _load(self, principal: Principal) -> User:
        result = await self._db.execute(
            select(User).where(User.id == principal.id).execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise UnauthenticatedError("User not found")
        return user

    async def require_moderator(self, principal: Principal) -> User:
        """Return the caller's current row if they are a moderator or admin."""
        user = await self._load(principal)
        if user.role not in MODERATOR_ROLES:
            raise ForbiddenError("Moderator access required")
        return user

    async def require_admin(self, principal: Principal) -> User:
        user = await self._load(principal)
        if user.role != UserRole.admin.value:
            raise ForbiddenError("Admin access required")
        return user

    async def check_ban_status(self, principal: Principal) -> None:
        """Gate for content creation only; voting and reporting skip it."""
        result = await self._db.execute(select(User.is_banned).where(User.id == principal.id))
        is_banned = result.scalar_one_or_none()
        if is_banned is None:
            raise UnauthenticatedError("User not found")
        if is_banned:
            raise ForbiddenError("Your account has been banned from posting content")
