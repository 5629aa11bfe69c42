from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agora.config import settings
from agora.database import get_db, get_session_factory
from agora.services.audit import AuditLog
from agora.services.content import ContentService
from agora.services.gate import RoleGate
from agora.services.identity import Principal, resolve_principal
from agora.services.moderation import ModerationExecutor
from agora.services.reports import ReportWorkflow
from agora.services.votes import VoteLedger

DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]

# API key security scheme (shows up in the OpenAPI security definitions)
api_key_header = APIKeyHeader(name=settings.api_key_header_name, auto_error=True)
optional_api_key_header = APIKeyHeader(name=settings.api_key_header_name, auto_error=False)


async def get_current_user(
    raw_key: str = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Authenticate a request via X-API-Key header.

    Missing and invalid keys get the same 401 so keys cannot be enumerated.
    """
    principal = await resolve_principal(db, raw_key)
    if principal is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return principal


async def get_optional_user(
    raw_key: Optional[str] = Security(optional_api_key_header),
    db: AsyncSession = Depends(get_db),
) -> Optional[Principal]:
    """Like get_current_user, but anonymous readers get None.

    A key that is present but unknown is still rejected.
    """
    if raw_key is None:
        return None
    return await get_current_user(raw_key, db)


CurrentUser = Annotated[Principal, Depends(get_current_user)]
OptionalUser = Annotated[Optional[Principal], Depends(get_optional_user)]


def get_gate(db: DbSession) -> RoleGate:
    return RoleGate(db)


def get_audit_log(session_factory: SessionFactory) -> AuditLog:
    return AuditLog(session_factory)


def get_vote_ledger(db: DbSession) -> VoteLedger:
    return VoteLedger(db, max_attempts=settings.vote_max_attempts)


Gate = Annotated[RoleGate, Depends(get_gate)]
Audit = Annotated[AuditLog, Depends(get_audit_log)]
Ledger = Annotated[VoteLedger, Depends(get_vote_ledger)]


def get_report_workflow(db: DbSession, gate: Gate, audit: Audit) -> ReportWorkflow:
    return ReportWorkflow(db, gate, audit)


def get_moderation_executor(db: DbSession, gate: Gate, audit: Audit) -> ModerationExecutor:
    return ModerationExecutor(db, gate, audit)


def get_content_service(db: DbSession, gate: Gate, ledger: Ledger) -> ContentService:
    return ContentService(db, gate, ledger)


Reports = Annotated[ReportWorkflow, Depends(get_report_workflow)]
Moderation = Annotated[ModerationExecutor, Depends(get_moderation_executor)]
Content = Annotated[ContentService, Depends(get_content_service)]
