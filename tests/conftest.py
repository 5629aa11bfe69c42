"""Shared fixtures: a fresh in-memory database per test and ready-made services.

Environment overrides must happen before anything under ``agora`` is
imported, because settings and the module-level engine are built at import.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from dataclasses import dataclass  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import update  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from agora.database import build_engine, get_db, get_session_factory  # noqa: E402
from agora.main import app  # noqa: E402
from agora.models import Base, ItemType, User, UserRole  # noqa: E402
from agora.services.audit import AuditLog  # noqa: E402
from agora.services.content import ContentService  # noqa: E402
from agora.services.gate import RoleGate  # noqa: E402
from agora.services.identity import Principal, register_user  # noqa: E402
from agora.services.items import ItemRef  # noqa: E402
from agora.services.moderation import ModerationExecutor  # noqa: E402
from agora.services.reports import ReportWorkflow  # noqa: E402
from agora.services.votes import VoteLedger  # noqa: E402


@dataclass(frozen=True)
class Account:
    principal: Principal
    api_key: str

    @property
    def headers(self) -> dict[str, str]:
        return {"X-API-Key": self.api_key}


@pytest.fixture
async def engine():
    # One shared connection so every session sees the same in-memory database
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_account(db):
    async def _make(username: str, role: UserRole = UserRole.user) -> Account:
        user, raw_key = await register_user(db, username)
        if role is not UserRole.user:
            await db.execute(update(User).where(User.id == user.id).values(role=role.value))
            await db.commit()
        return Account(Principal(id=user.id, username=user.username), raw_key)

    return _make


@pytest.fixture
async def alice(make_account) -> Account:
    return await make_account("alice")


@pytest.fixture
async def bob(make_account) -> Account:
    return await make_account("bob")


@pytest.fixture
async def mod(make_account) -> Account:
    return await make_account("mod", UserRole.moderator)


@pytest.fixture
async def admin(make_account) -> Account:
    return await make_account("root", UserRole.admin)


@pytest.fixture
def gate(db) -> RoleGate:
    return RoleGate(db)


@pytest.fixture
def audit(session_factory) -> AuditLog:
    return AuditLog(session_factory)


@pytest.fixture
def ledger(db) -> VoteLedger:
    return VoteLedger(db)


@pytest.fixture
def reports(db, gate, audit) -> ReportWorkflow:
    return ReportWorkflow(db, gate, audit)


@pytest.fixture
def executor(db, gate, audit) -> ModerationExecutor:
    return ModerationExecutor(db, gate, audit)


@pytest.fixture
def content(db, gate, ledger) -> ContentService:
    return ContentService(db, gate, ledger)


@pytest.fixture
async def post(content, alice) -> ItemRef:
    created = await content.create_post(alice.principal, "First post", body="Hello")
    return ItemRef(ItemType.post, created["id"])


@pytest.fixture
async def comment(content, bob, post) -> ItemRef:
    created = await content.create_comment(bob.principal, post.item_id, "Nice post, thanks for sharing it")
    return ItemRef(ItemType.comment, created["id"])


@pytest.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
