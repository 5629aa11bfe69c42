"""Pydantic schemas for posts and comments."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from agora.services.content import COMMENT_BODY_MAX_LENGTH, POST_BODY_MAX_LENGTH, TITLE_MAX_LENGTH


class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    url: Optional[str] = Field(None, max_length=2048)
    image_url: Optional[str] = Field(None, max_length=2048)
    body: Optional[str] = Field(None, max_length=POST_BODY_MAX_LENGTH)


class CommentCreate(BaseModel):
    post_id: int = Field(ge=1)
    body: str = Field(min_length=1, max_length=COMMENT_BODY_MAX_LENGTH)
    reply_to_id: Optional[int] = Field(None, ge=1)


class CommentResponse(BaseModel):
    id: int
    post_id: int
    body: str
    reply_to_id: Optional[int] = None
    votes: int
    created_at: datetime
    author: str
    user_vote: Optional[str] = None


class PostResponse(BaseModel):
    id: int
    title: str
    url: Optional[str] = None
    image_url: Optional[str] = None
    body: Optional[str] = None
    votes: int
    created_at: datetime
    author: str
    author_banned: bool = False
    comment_count: int = 0
    user_vote: Optional[str] = None


class PostDetailResponse(PostResponse):
    comments: list[CommentResponse] = Field(default_factory=list)
