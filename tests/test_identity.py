import pytest
from sqlalchemy import select

from agora.errors import ConflictError
from agora.models.user import User
from agora.services.identity import hash_api_key, register_user, resolve_principal


class TestIdentity:
    async def test_only_the_hash_is_stored(self, db):
        user, raw_key = await register_user(db, "carol")
        stored = await db.scalar(select(User.api_key_hash).where(User.id == user.id))
        assert stored == hash_api_key(raw_key)
        assert raw_key not in stored

    async def test_resolve_principal(self, db, alice):
        principal = await resolve_principal(db, alice.api_key)
        assert principal == alice.principal

    async def test_unknown_key(self, db, alice):
        assert await resolve_principal(db, alice.api_key + "x") is None

    async def test_username_taken(self, db, alice):
        with pytest.raises(ConflictError):
            await register_user(db, "alice")

    async def test_new_users_are_plain_and_unbanned(self, db):
        user, _ = await register_user(db, "dave")
        assert user.role == "user"
        assert user.is_banned is False
