"""Agora Pydantic schemas package.

Re-exports all request and response schemas for convenient importing:

    from agora.schemas import PostCreate, VoteCreate, ReportCreate, ...
"""

from agora.schemas.auth import APIKeyResponse, MeResponse, UserCreate
from agora.schemas.common import MessageResponse, PaginatedResponse, Pagination
from agora.schemas.content import CommentCreate, CommentResponse, PostCreate, PostDetailResponse, PostResponse
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
from agora.schemas.report import ReportCreate, ReportResponse
from agora.schemas.vote import VoteCreate, VoteResponse, VoteStatusRequest, VoteStatusResponse

__all__ = [
    # Auth
    "UserCreate",
    "APIKeyResponse",
    "MeResponse",
    # Content
    "PostCreate",
    "PostResponse",
    "PostDetailResponse",
    "CommentCreate",
    "CommentResponse",
    # Vote
    "VoteCreate",
    "VoteResponse",
    "VoteStatusRequest",
    "VoteStatusResponse",
    # Report
    "ReportCreate",
    "ReportResponse",
    # Moderation
    "BulkDeletePosts",
    "BulkDeleteComments",
    "BulkDeleteResponse",
    "UserContentDeletionResponse",
    "RoleChange",
    "ModeratedPost",
    "ModeratedComment",
    "ModeratedUser",
    "UserProfile",
    "ModerationStats",
    "ModerationLogEntry",
    # Common
    "MessageResponse",
    "Pagination",
    "PaginatedResponse",
]
