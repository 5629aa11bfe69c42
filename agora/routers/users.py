"""Account registration and the authenticated caller.

POST /api/v1/users    -- register a username, receive an API key (no auth required)
GET  /api/v1/users/me -- the caller's account as the server currently sees it
"""

from fastapi import APIRouter
from sqlalchemy import select

from agora.dependencies import CurrentUser, DbSession
from agora.errors import UnauthenticatedError
from agora.models.user import User
from agora.schemas.auth import APIKeyResponse, MeResponse, UserCreate
from agora.services.identity import register_user

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.post("/users", response_model=APIKeyResponse, status_code=201)
async def create_user(body: UserCreate, db: DbSession) -> APIKeyResponse:
    """Register a user account and issue its API key.

    The raw API key is returned exactly once in this response. Only its
    SHA-256 hash is stored; it cannot be retrieved again.
    """
    user, raw_key = await register_user(db, body.username)
    return APIKeyResponse(api_key=raw_key, user_id=user.id, username=user.username)


@router.get("/users/me", response_model=MeResponse)
async def get_me(user: CurrentUser, db: DbSession) -> MeResponse:
    result = await db.execute(select(User).where(User.id == user.id))
    account = result.scalar_one_or_none()
    if account is None:
        raise UnauthenticatedError("User not found")
    return MeResponse(
        id=account.id,
        username=account.username,
        role=account.role,
        is_banned=account.is_banned,
    )
