"""Append-only moderation audit log.

Entries are written after the action they describe has been committed, in a
session of their own: a failure here is logged and counted, the caller gets
None, and neither the action nor the caller's session is touched.
"""

from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agora.metrics import audit_write_failures, moderation_actions
from agora.models.moderation_log import ModerationLog
from agora.models.user import User
from agora.services.pagination import Page

log = structlog.get_logger()


class AuditLog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _write(self, entry: ModerationLog) -> None:
        async with self._session_factory() as session:
            session.add(entry)
            await session.commit()

    async def record(
        self,
        moderator_id: int,
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[int] = None,
        details: Optional[str] = None,
    ) -> Optional[ModerationLog]:
        """Persist one entry; never raises on a store failure."""
        entry = ModerationLog(
            moderator_id=moderator_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details,
        )
        try:
            await self._write(entry)
        except SQLAlchemyError:
            audit_write_failures.inc()
            log.error(
                "audit_write_failed",
                moderator_id=moderator_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                exc_info=True,
            )
            return None
        return entry

    async def record_action(
        self,
        moderator_id: int,
        action: str,
        target_type: Optional[str],
        target_id: Optional[int],
        details: str,
    ) -> Optional[ModerationLog]:
        """Count, log and persist a moderation action that has already been committed."""
        moderation_actions.labels(action=action).inc()
        log.info(
            "moderation_action",
            action=action,
            moderator_id=moderator_id,
            target_type=target_type,
            target_id=target_id,
        )
        return await self.record(moderator_id, action, target_type, target_id, details)

    async def list_entries(self, page: Page) -> list[dict]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ModerationLog, User.username)
                .join(User, User.id == ModerationLog.moderator_id)
                .order_by(ModerationLog.created_at.desc(), ModerationLog.id.desc())
                .limit(page.limit)
                .offset(page.offset)
            )
            rows = result.all()
        return [
            {
                "id": entry.id,
                "moderator": username,
                "action": entry.action,
                "target_type": entry.target_type,
                "target_id": entry.target_id,
                "details": entry.details,
                "created_at": entry.created_at,
            }
            for entry, username in rows
        ]
