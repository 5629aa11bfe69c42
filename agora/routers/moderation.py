"""Moderation endpoints: the report queue, content removal, bans and the audit trail.

Every endpoint re-checks the caller's role against the database before doing
anything; holding a valid API key is not enough. Role changes are admin-only.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Query

from agora.config import settings
from agora.dependencies import CurrentUser, Moderation, Reports
from agora.middleware.rate_limiter import ReadRateLimit, WriteRateLimit
from agora.models.report import ReportStatus
from agora.schemas.common import MessageResponse, PaginatedResponse, Pagination
from agora.schemas.moderation import (
    BulkDeleteComments,
    BulkDeletePosts,
    BulkDeleteResponse,
    ModeratedComment,
    ModeratedPost,
    ModeratedUser,
    ModerationLogEntry,
    ModerationStats,
    RoleChange,
    UserContentDeletionResponse,
    UserProfile,
)
from agora.schemas.report import ReportResponse
from agora.services.moderation import ContentFilters, UserFilters
from agora.services.pagination import Page

router = APIRouter(prefix="/api/v1/moderation", tags=["moderation"])

ContentStatus = Literal["all", "reported", "normal"]
ContentSort = Literal["created_at", "votes"]
UserSort = Literal["created_at", "posts", "comments"]


def _pagination(page: Page, rows: list) -> Pagination:
    return Pagination(page=page.page, limit=page.limit, has_more=page.has_more(rows))


# ---------------------------------------------------------------------------
# Report queue
# ---------------------------------------------------------------------------


@router.get("/reports", response_model=PaginatedResponse[ReportResponse])
async def list_reports(
    user: CurrentUser,
    reports: Reports,
    _rate: ReadRateLimit,
    status: ReportStatus = ReportStatus.pending,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.page_size_default, ge=1),
) -> PaginatedResponse[ReportResponse]:
    """Reports in the given status, newest first, with reporter and content context."""
    request = Page(page=page, limit=limit)
    rows = await reports.list_reports(user, status, request)
    return PaginatedResponse[ReportResponse](
        items=[ReportResponse(**row) for row in rows],
        pagination=_pagination(request, rows),
    )


@router.post("/reports/{report_id}/dismiss", response_model=MessageResponse)
async def dismiss_report(
    report_id: int,
    user: CurrentUser,
    reports: Reports,
    _rate: WriteRateLimit,
) -> MessageResponse:
    """Dismiss a report. Already-dismissed or reviewed reports can be dismissed again."""
    await reports.dismiss(user, report_id)
    return MessageResponse(message="Report dismissed")


@router.get("/stats", response_model=ModerationStats)
async def get_stats(user: CurrentUser, moderation: Moderation, _rate: ReadRateLimit) -> ModerationStats:
    return ModerationStats(**await moderation.get_stats(user))


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


@router.get("/posts", response_model=PaginatedResponse[ModeratedPost])
async def list_posts(
    user: CurrentUser,
    moderation: Moderation,
    _rate: ReadRateLimit,
    search: Optional[str] = Query(None, max_length=200),
    author: Optional[str] = Query(None, max_length=50),
    status: ContentStatus = "all",
    sort_by: ContentSort = "created_at",
    page: int = Query(1, ge=1),
    limit: int = Query(settings.page_size_default, ge=1),
) -> PaginatedResponse[ModeratedPost]:
    request = Page(page=page, limit=limit)
    filters = ContentFilters(search=search, author=author, status=status, sort_by=sort_by)
    rows = await moderation.list_posts(user, filters, request)
    return PaginatedResponse[ModeratedPost](
        items=[ModeratedPost(**row) for row in rows],
        pagination=_pagination(request, rows),
    )


@router.get("/comments", response_model=PaginatedResponse[ModeratedComment])
async def list_comments(
    user: CurrentUser,
    moderation: Moderation,
    _rate: ReadRateLimit,
    search: Optional[str] = Query(None, max_length=200),
    author: Optional[str] = Query(None, max_length=50),
    status: ContentStatus = "all",
    sort_by: ContentSort = "created_at",
    page: int = Query(1, ge=1),
    limit: int = Query(settings.page_size_default, ge=1),
) -> PaginatedResponse[ModeratedComment]:
    request = Page(page=page, limit=limit)
    filters = ContentFilters(search=search, author=author, status=status, sort_by=sort_by)
    rows = await moderation.list_comments(user, filters, request)
    return PaginatedResponse[ModeratedComment](
        items=[ModeratedComment(**row) for row in rows],
        pagination=_pagination(request, rows),
    )


@router.get("/users", response_model=PaginatedResponse[ModeratedUser])
async def list_users(
    user: CurrentUser,
    moderation: Moderation,
    _rate: ReadRateLimit,
    search: Optional[str] = Query(None, max_length=50),
    sort_by: UserSort = "created_at",
    page: int = Query(1, ge=1),
    limit: int = Query(settings.page_size_default, ge=1),
) -> PaginatedResponse[ModeratedUser]:
    request = Page(page=page, limit=limit)
    rows = await moderation.list_users(user, UserFilters(search=search, sort_by=sort_by), request)
    return PaginatedResponse[ModeratedUser](
        items=[ModeratedUser(**row) for row in rows],
        pagination=_pagination(request, rows),
    )


@router.get("/users/{username}", response_model=UserProfile)
async def get_user_profile(
    username: str,
    user: CurrentUser,
    moderation: Moderation,
    _rate: ReadRateLimit,
) -> UserProfile:
    return UserProfile(**await moderation.get_user_profile(user, username))


@router.get("/logs", response_model=PaginatedResponse[ModerationLogEntry])
async def list_logs(
    user: CurrentUser,
    moderation: Moderation,
    _rate: ReadRateLimit,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.page_size_default, ge=1),
) -> PaginatedResponse[ModerationLogEntry]:
    request = Page(page=page, limit=limit)
    rows = await moderation.list_logs(user, request)
    return PaginatedResponse[ModerationLogEntry](
        items=[ModerationLogEntry(**row) for row in rows],
        pagination=_pagination(request, rows),
    )


# ---------------------------------------------------------------------------
# Content removal
# ---------------------------------------------------------------------------


@router.delete("/posts/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: int,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> MessageResponse:
    """Hard-delete a post. Its comments go with it; its pending reports become reviewed."""
    await moderation.delete_post(user, post_id)
    return MessageResponse(message="Post deleted successfully")


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
async def delete_comment(
    comment_id: int,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> MessageResponse:
    await moderation.delete_comment(user, comment_id)
    return MessageResponse(message="Comment deleted successfully")


@router.post("/posts/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_posts(
    body: BulkDeletePosts,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> BulkDeleteResponse:
    """Delete every listed post that exists. Unknown ids are skipped; 404 only if none exist."""
    deleted = await moderation.bulk_delete_posts(user, body.post_ids)
    return BulkDeleteResponse(message=f"Deleted {deleted} posts", deleted_count=deleted)


@router.post("/comments/bulk-delete", response_model=BulkDeleteResponse)
async def bulk_delete_comments(
    body: BulkDeleteComments,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> BulkDeleteResponse:
    deleted = await moderation.bulk_delete_comments(user, body.comment_ids)
    return BulkDeleteResponse(message=f"Deleted {deleted} comments", deleted_count=deleted)


# ---------------------------------------------------------------------------
# User actions
# ---------------------------------------------------------------------------


@router.post("/users/{username}/ban", response_model=MessageResponse)
async def ban_user(
    username: str,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> MessageResponse:
    """Ban a user from creating posts and comments. Voting and reporting stay open to them."""
    await moderation.ban_user(user, username)
    return MessageResponse(message=f"User {username} has been banned")


@router.post("/users/{username}/unban", response_model=MessageResponse)
async def unban_user(
    username: str,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> MessageResponse:
    await moderation.unban_user(user, username)
    return MessageResponse(message=f"User {username} has been unbanned")


@router.delete("/users/{username}/content", response_model=UserContentDeletionResponse)
async def delete_user_content(
    username: str,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> UserContentDeletionResponse:
    outcome = await moderation.delete_user_content(user, username)
    return UserContentDeletionResponse(
        message=f"Deleted all content for user {username}",
        deleted_posts=outcome.deleted_posts,
        deleted_comments=outcome.deleted_comments,
    )


@router.post("/users/{username}/role", response_model=MessageResponse)
async def change_role(
    username: str,
    body: RoleChange,
    user: CurrentUser,
    moderation: Moderation,
    _rate: WriteRateLimit,
) -> MessageResponse:
    """Set a user's role. Admins only."""
    await moderation.change_role(user, username, body.role)
    return MessageResponse(message=f"User {username} is now {body.role.value}")
