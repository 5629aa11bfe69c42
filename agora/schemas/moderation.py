"""Pydantic schemas for the moderation API."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from agora.models.user import UserRole


class BulkDeletePosts(BaseModel):
    post_ids: list[int] = Field(min_length=1, max_length=100)


class BulkDeleteComments(BaseModel):
    comment_ids: list[int] = Field(min_length=1, max_length=100)


class BulkDeleteResponse(BaseModel):
    message: str
    deleted_count: int


class UserContentDeletionResponse(BaseModel):
    message: str
    deleted_posts: int
    deleted_comments: int


class RoleChange(BaseModel):
    role: UserRole


class ModeratedPost(BaseModel):
    id: int
    title: str
    url: Optional[str] = None
    image_url: Optional[str] = None
    body: Optional[str] = None
    votes: int
    created_at: datetime
    author: str
    author_banned: bool
    comment_count: int
    is_reported: bool


class ModeratedComment(BaseModel):
    id: int
    body: str
    votes: int
    created_at: datetime
    author: str
    author_banned: bool
    post_id: int
    post_title: str
    is_reported: bool


class ModeratedUser(BaseModel):
    id: int
    username: str
    role: str
    is_banned: bool
    created_at: datetime
    post_count: int
    comment_count: int


class ProfilePost(BaseModel):
    id: int
    title: str
    url: Optional[str] = None
    image_url: Optional[str] = None
    body: Optional[str] = None
    votes: int
    created_at: datetime
    comment_count: int


class ProfileComment(BaseModel):
    id: int
    body: str
    votes: int
    created_at: datetime
    post_id: int
    post_title: str


class UserProfile(ModeratedUser):
    posts: list[ProfilePost] = Field(default_factory=list)
    comments: list[ProfileComment] = Field(default_factory=list)


class ModerationStats(BaseModel):
    total_posts: int
    total_comments: int
    reported_posts: int
    reported_comments: int
    total_users: int
    banned_users: int


class ModerationLogEntry(BaseModel):
    id: int
    moderator: str
    action: str
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    details: Optional[str] = None
    created_at: datetime
