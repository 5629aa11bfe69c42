"""Identity gate: turns an opaque API key into a principal.

Keys are generated server-side, shown to the client once, and stored only as
a SHA-256 hash. A principal carries identity only; role and ban state are
re-read by the role gate whenever they matter.
"""

import hashlib
import secrets
from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agora.errors import ConflictError
from agora.models.user import User

log = structlog.get_logger()


@dataclass(frozen=True)
class Principal:
    id: int
    username: str


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_api_key() -> str:
    return secrets.token_urlsafe(32)


async def resolve_principal(db: AsyncSession, raw_key: str) -> Optional[Principal]:
    """Look up the user owning ``raw_key``; None when no user matches."""
    result = await db.execute(
        select(User.id, User.username).where(User.api_key_hash == hash_api_key(raw_key))
    )
    row = result.one_or_none()
    if row is None:
        return None
    return Principal(id=row.id, username=row.username)


async def register_user(db: AsyncSession, username: str) -> tuple[User, str]:
    """Create a user account and return it with its raw API key.

    Raises ConflictError if the username is taken. On the astronomically
    unlikely event of a key hash collision, one retry is made with a fresh key.
    """
    result = await db.execute(select(User.id).where(User.username == username))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Username already taken")

    def _make_user(raw_key: str) -> User:
        return User(username=username, api_key_hash=hash_api_key(raw_key))

    raw_key = generate_api_key()
    user = _make_user(raw_key)
    db.add(user)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # Either a concurrent registration took the username or the key collided
        result = await db.execute(select(User.id).where(User.username == username))
        if result.scalar_one_or_none() is not None:
            raise ConflictError("Username already taken")
        raw_key = generate_api_key()
        user = _make_user(raw_key)
        db.add(user)
        await db.commit()

    await db.refresh(user)
    log.info("user_registered", user_id=user.id, username=username)
    return user, raw_key
