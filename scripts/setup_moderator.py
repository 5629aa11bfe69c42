"""Create a moderator (or admin) account, or promote an existing one.

Bootstraps the first moderators out of band: the moderation API itself only
lets admins change roles, so somebody has to be made admin directly in the
database. The change is not written to the moderation log.

Key behaviors:
- Unknown username: creates the account with the requested role and prints
  its API key (shown once, only the hash is stored)
- Known username: updates its role in place; the existing API key keeps working

Usage:
    # From project root:
    DATABASE_URL="postgresql+asyncpg://..." python -m scripts.setup_moderator alice

    # Make an admin instead:
    python -m scripts.setup_moderator alice --role admin
"""
import argparse
import asyncio
import sys
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

# Support running from the project root without installing the package
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from agora.config import settings
from agora.database import build_engine
from agora.models.user import User, UserRole
from agora.services.identity import generate_api_key, hash_api_key


async def setup_moderator(username: str, role: UserRole) -> None:
    # Standalone engine: the script runs without the app
    engine = build_engine(settings.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async with session_factory() as session:
        result = await session.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()

        if user is None:
            raw_key = generate_api_key()
            session.add(User(username=username, api_key_hash=hash_api_key(raw_key), role=role.value))
            await session.commit()
            print(f"Created {role.value} {username}")
            print(f"API key (store it now, it cannot be shown again): {raw_key}")
        elif user.role == role.value:
            print(f"{username} is already {role.value}; nothing to do")
        else:
            previous = user.role
            user.role = role.value
            await session.commit()
            print(f"Changed role of {username}: {previous} -> {role.value}")

    await engine.dispose()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create or promote a moderator in the Agora database"
    )
    parser.add_argument("username", help="Account to create or promote")
    parser.add_argument(
        "--role",
        choices=[UserRole.moderator.value, UserRole.admin.value],
        default=UserRole.moderator.value,
        help="Role to grant (default: moderator)",
    )
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(setup_moderator(args.username, UserRole(args.role)))
